"""
Renderização de comprovantes (PNG) e boletos (PDF) com Pillow + qrcode.
Do ponto de vista da API é um colaborador externo: qualquer falha vira
ExternalServiceError (HTTP 500).
"""
import io
import logging
import unicodedata

import qrcode
from PIL import Image, ImageDraw, ImageFont

from erros import ExternalServiceError
from modelos import format_amount

logger = logging.getLogger(__name__)

RECEIPT_WIDTH = 640
LINE_HEIGHT = 22
MARGIN = 24
QR_SIZE = 220
MAX_CREDIT_LINES = 30
# página Carta (612x792 pt)
PDF_PAGE = (612, 792)


def ascii_text(value) -> str:
    # a fonte padrão do Pillow não cobre todos os acentos
    normalized = unicodedata.normalize('NFKD', str(value))
    return normalized.encode('ascii', 'ignore').decode('ascii')


def qr_image(payload: str, size: int = QR_SIZE) -> Image.Image:
    qr = qrcode.QRCode(box_size=10, border=4)
    qr.add_data(payload)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white").get_image()
    return img.convert("RGB").resize((size, size), Image.Resampling.NEAREST)


class ReceiptRenderer:

    def __init__(self, title: str = "COMPROVANTE DE LOTE DE CREDITOS"):
        self.title = title
        self.font = ImageFont.load_default()

    def render_receipt(self, result) -> bytes:
        """PNG com cabeçalho do lote, créditos, totais e QR code do PIX."""
        try:
            return self._draw_receipt(result)
        except Exception as e:
            logger.error(f"Falha ao renderizar comprovante do lote {result.batch.id}: {e}")
            raise ExternalServiceError("Falha ao gerar o comprovante do lote") from e

    def render_boleto(self, batch) -> bytes:
        try:
            return self._draw_boleto(batch)
        except Exception as e:
            logger.error(f"Falha ao gerar PDF do boleto do lote {batch.id}: {e}")
            raise ExternalServiceError("Falha ao gerar o boleto") from e

    def _draw_receipt(self, result) -> bytes:
        batch = result.batch
        credits = result.credits[:MAX_CREDIT_LINES]
        lines = [
            self.title,
            "",
            f"Lote: {batch.id}",
            f"Data do credito: {batch.date.isoformat()}",
            f"Vencimento: {batch.due_date.isoformat()}",
            f"Status: {batch.status}",
            "",
            "Creditos:",
        ]
        for detail in credits:
            lines.append(
                f"  {detail.national_id}  {detail.full_name[:32]}  R$ {format_amount(detail.credit.amount)}"
            )
        hidden = len(result.credits) - len(credits)
        if hidden > 0:
            lines.append(f"  ... e mais {hidden} credito(s)")
        lines += [
            "",
            f"Valor total: R$ {format_amount(batch.total_amount)}",
            f"Linha digitavel: {batch.payment.boleto.digitable_line}",
            f"Chave PIX: {batch.payment.pix.pix_key}",
            f"Identificador: {batch.payment.pix.reference_id}",
        ]

        text_height = MARGIN * 2 + LINE_HEIGHT * len(lines)
        img = Image.new("RGB", (RECEIPT_WIDTH, text_height + QR_SIZE + MARGIN), "white")
        draw = ImageDraw.Draw(img)
        y = MARGIN
        for line in lines:
            draw.text((MARGIN, y), ascii_text(line), fill="black", font=self.font)
            y += LINE_HEIGHT
        draw.line((MARGIN, y, RECEIPT_WIDTH - MARGIN, y), fill="black", width=1)
        img.paste(qr_image(batch.payment.pix.qr_payload), ((RECEIPT_WIDTH - QR_SIZE) // 2, text_height))

        buffered = io.BytesIO()
        img.save(buffered, format="PNG")
        return buffered.getvalue()

    def _draw_boleto(self, batch) -> bytes:
        img = Image.new("RGB", PDF_PAGE, "white")
        draw = ImageDraw.Draw(img)
        lines = [
            "BOLETO BANCARIO - SISTEMA DE BENEFICIARIOS",
            "",
            f"Lote: {batch.id}",
            f"Valor: R$ {format_amount(batch.total_amount)}",
            f"Vencimento: {batch.due_date.isoformat()}",
            f"Linha Digitavel: {batch.payment.boleto.digitable_line}",
        ]
        y = MARGIN * 2
        for line in lines:
            draw.text((MARGIN * 2, y), ascii_text(line), fill="black", font=self.font)
            y += LINE_HEIGHT * 2

        buffered = io.BytesIO()
        img.save(buffered, format="PDF")
        return buffered.getvalue()
