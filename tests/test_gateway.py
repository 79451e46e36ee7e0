import re
from decimal import Decimal

from pagamentos_gateway import SandboxGenerator, get_generator


def test_sandbox_create_pix_shape():
    gw = SandboxGenerator(payee_name='Pagador Teste', seed=1)
    pix = gw.create_pix(Decimal('15.75'), reference=3)
    assert pix.amount == Decimal('15.75')
    assert pix.payee_name == 'Pagador Teste'
    assert pix.pix_key.endswith('@pix.com')
    assert re.fullmatch(r'PGTO\d{6}', pix.reference_id)
    assert pix.qr_payload.startswith('000201')
    assert 'BR.GOV.BCB.PIX' in pix.qr_payload
    assert '540515.75' in pix.qr_payload
    assert re.search(r'6304[0-9A-F]{4}$', pix.qr_payload)


def test_sandbox_create_boleto_shape():
    gw = SandboxGenerator(base_url='http://api.local/', seed=1)
    boleto = gw.create_boleto(7)
    assert re.fullmatch(r'http://api\.local/boletos/download/7/[a-z0-9]{13}\.pdf', boleto.download_url)
    assert re.fullmatch(r'23793\.\d{5} \d{5}\.\d{5} \d{5}\.\d{5} \d \d{5}', boleto.digitable_line)


def test_sandbox_is_reproducible_with_seed():
    a = SandboxGenerator(seed=99)
    b = SandboxGenerator(seed=99)
    assert a.create_pix(Decimal('1.00'), 1) == b.create_pix(Decimal('1.00'), 1)
    assert a.create_boleto(1) == b.create_boleto(1)


def test_get_generator_defaults_to_sandbox(monkeypatch):
    monkeypatch.delenv('PAYMENT_GENERATOR', raising=False)
    assert isinstance(get_generator(), SandboxGenerator)
    assert isinstance(get_generator('desconhecido'), SandboxGenerator)
