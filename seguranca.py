"""
Helpers de ofuscação para logs (A09).
CPF e nomes de beneficiários são dados pessoais: nunca vão em texto claro para o log.
"""
import hmac
import hashlib
import os

from flask import current_app, has_app_context


def _get_salt():
    # SECRET_KEY da app como salt do HMAC; fora de contexto cai para a variável de ambiente
    if has_app_context():
        key = current_app.config.get('SECRET_KEY')
        if key:
            return key
    return os.getenv('SECRET_KEY', 'dev_key')


def hmac_hash(value: str, length: int = 10) -> str:
    key = _get_salt().encode('utf-8')
    return hmac.new(key, str(value).encode('utf-8'), hashlib.sha256).hexdigest()[:length]


def mask_ip(ip: str) -> str:
    if not ip:
        return ''
    # IPv4: 192.0.2.xxx
    if '.' in ip:
        parts = ip.split('.')
        if len(parts) == 4:
            return '.'.join(parts[:3] + ['xxx'])
        return ip
    if ':' in ip:
        parts = ip.split(':')
        return ':'.join(parts[:len(parts) - 1] + ['xxxx'])
    return ip


def sanitize_for_log(value, maxlen: int = 120) -> str:
    s = str(value)
    s = s.replace('\n', '\\n').replace('\r', '\\r').replace('\t', ' ')
    if len(s) > maxlen:
        return s[:maxlen] + '...'
    return s
