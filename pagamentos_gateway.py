"""
Gerador de instrumentos de pagamento (PIX e boleto).
Só produz dados de exemplo com o formato esperado pelos clientes: não há
integração com gateway nem validade bancária. Implementações reais ou
determinísticas (testes) entram pela interface BasePaymentGenerator.
"""
import logging
import os
import random
import string
from decimal import Decimal

from modelos import BoletoPayment, PixPayment, format_amount

logger = logging.getLogger(__name__)

DEFAULT_PAYEE_NAME = "Sistema de Beneficiários LTDA"
DEFAULT_BASE_URL = "http://localhost:5000"


def _emv(tag: str, value: str) -> str:
    # campo TLV do BR Code: id + tamanho com dois dígitos + valor
    return f"{tag}{len(value):02d}{value}"


class BasePaymentGenerator:
    def create_pix(self, amount: Decimal, reference: int) -> PixPayment:
        raise NotImplementedError()

    def create_boleto(self, batch_id: int) -> BoletoPayment:
        raise NotImplementedError()


class SandboxGenerator(BasePaymentGenerator):
    """Gera PIX/boleto aleatórios. Passe `seed` para saídas reprodutíveis."""

    def __init__(self, base_url: str = DEFAULT_BASE_URL, payee_name: str = DEFAULT_PAYEE_NAME, seed=None):
        self.base_url = base_url.rstrip('/')
        self.payee_name = payee_name
        self._rng = random.Random(seed)

    def _token(self, length: int) -> str:
        alphabet = string.ascii_lowercase + string.digits
        return ''.join(self._rng.choice(alphabet) for _ in range(length))

    def _digits(self, length: int) -> str:
        return ''.join(self._rng.choice(string.digits) for _ in range(length))

    def create_pix(self, amount: Decimal, reference: int) -> PixPayment:
        pix_key = f"{self._token(13)}@pix.com"
        merchant = _emv("00", "BR.GOV.BCB.PIX") + _emv("01", pix_key)
        payload = (
            _emv("00", "01")
            + _emv("26", merchant)
            + _emv("52", "0000")
            + _emv("53", "986")
            + _emv("54", format_amount(amount))
            + _emv("58", "BR")
            + _emv("59", "Beneficiarios")
            + _emv("60", "SAO PAULO")
            + _emv("62", _emv("05", f"LOTE{reference}"))
            # CRC fictício: o payload não é um BR Code válido
            + "6304" + f"{self._rng.randrange(16 ** 4):04X}"
        )
        return PixPayment(
            qr_payload=payload,
            pix_key=pix_key,
            amount=amount,
            payee_name=self.payee_name,
            reference_id=f"PGTO{self._digits(6)}",
        )

    def create_boleto(self, batch_id: int) -> BoletoPayment:
        filename = f"{self._token(13)}.pdf"
        d = self._digits
        line = f"23793.{d(5)} {d(5)}.{d(5)} {d(5)}.{d(5)} {d(1)} {d(5)}"
        return BoletoPayment(
            download_url=f"{self.base_url}/boletos/download/{batch_id}/{filename}",
            digitable_line=line,
        )


def get_generator(name: str = None, **kwargs) -> BasePaymentGenerator:
    # Seleciona pelo argumento ou pela variável PAYMENT_GENERATOR; padrão sandbox
    provider = (name or os.getenv('PAYMENT_GENERATOR', 'sandbox')).lower()
    if provider != 'sandbox':
        logger.warning(f"Gerador de pagamento desconhecido: {provider}. Usando sandbox.")
    return SandboxGenerator(**kwargs)
