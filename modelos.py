"""
Modelos em memória: beneficiários, créditos, lotes e dados de pagamento.
to_dict() produz a representação JSON da API (chaves camelCase,
valores monetários como string com duas casas).
"""
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import List, Tuple

PENDING = 'PENDING'
PAID = 'PAID'
CANCELLED = 'CANCELLED'
CREDIT_STATUSES = (PENDING, PAID, CANCELLED)


def format_amount(amount: Decimal) -> str:
    return format(amount, '.2f')


@dataclass(frozen=True)
class Credit:
    id: int
    amount: Decimal
    credit_date: date
    batch_id: int
    status: str = PENDING

    def to_dict(self):
        return {
            "id": self.id,
            "amount": format_amount(self.amount),
            "creditDate": self.credit_date.isoformat(),
            "status": self.status,
            "batchId": self.batch_id,
        }


@dataclass
class Beneficiary:
    id: int
    full_name: str
    national_id: str
    credits: List[Credit] = field(default_factory=list)

    def has_pending_credits(self) -> bool:
        return any(c.status == PENDING for c in self.credits)

    def next_credit_id(self) -> int:
        return max((c.id for c in self.credits), default=0) + 1

    def summary(self):
        return {"id": self.id, "fullName": self.full_name, "nationalId": self.national_id}

    def to_dict(self):
        data = self.summary()
        data["credits"] = [c.to_dict() for c in self.credits]
        return data


@dataclass(frozen=True)
class PixPayment:
    qr_payload: str
    pix_key: str
    amount: Decimal
    payee_name: str
    reference_id: str

    def to_dict(self):
        return {
            "qrPayload": self.qr_payload,
            "pixKey": self.pix_key,
            "amount": format_amount(self.amount),
            "payeeName": self.payee_name,
            "referenceId": self.reference_id,
        }


@dataclass(frozen=True)
class BoletoPayment:
    download_url: str
    digitable_line: str

    def to_dict(self):
        return {"downloadUrl": self.download_url, "digitableLine": self.digitable_line}


@dataclass(frozen=True)
class PaymentBundle:
    pix: PixPayment
    boleto: BoletoPayment

    def to_dict(self):
        return {"pix": self.pix.to_dict(), "boleto": self.boleto.to_dict()}


@dataclass(frozen=True)
class Batch:
    id: int
    date: date
    due_date: date
    total_amount: Decimal
    # (beneficiary_id, credit_id): o id do crédito só é único dentro do beneficiário
    credit_refs: Tuple[Tuple[int, int], ...]
    payment: PaymentBundle
    status: str = PENDING

    def to_dict(self):
        return {
            "id": self.id,
            "date": self.date.isoformat(),
            "status": self.status,
            "creditIds": [
                {"beneficiaryId": beneficiary_id, "creditId": credit_id}
                for beneficiary_id, credit_id in self.credit_refs
            ],
            "totalAmount": format_amount(self.total_amount),
            "dueDate": self.due_date.isoformat(),
            "payment": self.payment.to_dict(),
        }


@dataclass(frozen=True)
class CreditDetail:
    """Crédito gerado no lote junto com os dados do beneficiário."""
    beneficiary_id: int
    full_name: str
    national_id: str
    credit: Credit

    def to_dict(self):
        return {
            "beneficiaryId": self.beneficiary_id,
            "fullName": self.full_name,
            "nationalId": self.national_id,
            "credit": self.credit.to_dict(),
        }


@dataclass(frozen=True)
class BatchResult:
    batch: Batch
    credits: List[CreditDetail]
    payment: PaymentBundle

    def to_dict(self):
        return {
            "batch": self.batch.to_dict(),
            "credits": [c.to_dict() for c in self.credits],
            "payment": self.payment.to_dict(),
        }


@dataclass(frozen=True)
class BillingDocument:
    batch_id: int
    beneficiary_ids: Tuple[int, ...]
    kind: str
    filename: str
    media_type: str
    content: bytes = b''
