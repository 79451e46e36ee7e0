from datetime import date

import pytest

from comprovantes import ReceiptRenderer, ascii_text
from erros import ExternalServiceError
from lotes import CreditBatchIssuer
from pagamentos_gateway import SandboxGenerator


@pytest.fixture
def result(registry, store):
    maria = registry.create('Maria Conceição', '12345678909')
    issuer = CreditBatchIssuer(store, SandboxGenerator(seed=3), clock=lambda: date(2030, 1, 10))
    return issuer.issue_batch([{'beneficiaryId': maria.id, 'amount': '12.34', 'creditDate': '2030-01-15'}])


def test_ascii_text_strips_accents():
    assert ascii_text('João Conceição') == 'Joao Conceicao'


def test_render_receipt_returns_png(result):
    content = ReceiptRenderer().render_receipt(result)
    assert content.startswith(b'\x89PNG')


def test_render_boleto_returns_pdf(result):
    content = ReceiptRenderer().render_boleto(result.batch)
    assert content.startswith(b'%PDF')


def test_render_failure_becomes_external_service_error(result, monkeypatch):
    renderer = ReceiptRenderer()

    def broken(_):
        raise OSError('disk full')

    monkeypatch.setattr(renderer, '_draw_receipt', broken)
    with pytest.raises(ExternalServiceError):
        renderer.render_receipt(result)
