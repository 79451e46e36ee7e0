"""
Emissão de lotes de créditos.

issue_batch valida todos os itens antes de alterar qualquer beneficiário:
um item inválido no meio do lote não deixa créditos órfãos nos anteriores.
"""
import logging
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from erros import NotFoundError, ValidationError
from modelos import Batch, BatchResult, Credit, CreditDetail, PaymentBundle
from seguranca import sanitize_for_log

logger = logging.getLogger(__name__)

CENTS = Decimal('0.01')
# teto de um crédito (Numeric(12, 2))
MAX_AMOUNT = Decimal('9999999999.99')
DUE_DATE_OFFSET = timedelta(days=2)


def parse_credit_date(value) -> date:
    """Aceita 'AAAA-MM-DD' ou um datetime ISO; devolve só a data."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value or not isinstance(value, str):
        raise ValidationError("Data de crédito é obrigatória")
    try:
        return date.fromisoformat(value)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(value.replace('Z', '+00:00')).date()
    except ValueError:
        raise ValidationError(f"Data de crédito inválida: {sanitize_for_log(value, 40)}")


def parse_amount(value):
    """Converte o valor informado em Decimal com duas casas; None se inválido."""
    if value is None or isinstance(value, bool):
        return None
    # vírgula decimal, como no formulário de doação
    text = str(value).strip().replace(',', '.')
    try:
        amount = Decimal(text)
    except InvalidOperation:
        return None
    if not amount.is_finite() or amount > MAX_AMOUNT:
        return None
    amount = amount.quantize(CENTS, rounding=ROUND_HALF_UP)
    if amount <= 0:
        return None
    return amount


def _coerce_id(value):
    # só inteiros ou texto com dígitos; 1.9 não vira 1
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdecimal():
        return int(value.strip())
    return None


class CreditBatchIssuer:

    def __init__(self, store, generator, clock=date.today):
        self.store = store
        self.generator = generator
        self.clock = clock

    def issue_batch(self, items) -> BatchResult:
        if not isinstance(items, list) or not items:
            raise ValidationError("É necessário enviar pelo menos um crédito")
        if not all(isinstance(item, dict) for item in items):
            raise ValidationError("Cada crédito deve ser um objeto")

        batch_date = parse_credit_date(items[0].get('creditDate'))
        if batch_date < self.clock():
            raise ValidationError("A data de crédito não pode ser anterior à data atual")

        with self.store.lock:
            validated = []
            for item in items:
                raw_id = item.get('beneficiaryId')
                beneficiary = self.store.beneficiaries.get(_coerce_id(raw_id))
                if beneficiary is None:
                    raise ValidationError(f"Beneficiário {sanitize_for_log(raw_id, 40)} não encontrado")
                amount = parse_amount(item.get('amount'))
                if amount is None:
                    raise ValidationError(
                        f"Valor inválido para o beneficiário {beneficiary.full_name}",
                        log_message=f"Valor inválido para o beneficiário ID {beneficiary.id}",
                    )
                validated.append((beneficiary, amount))

            # pagamento gerado antes de qualquer alteração: se falhar, nada muda
            batch_id = self.store.next_batch_id()
            total = sum((amount for _, amount in validated), Decimal('0.00'))
            payment = PaymentBundle(
                pix=self.generator.create_pix(total, batch_id),
                boleto=self.generator.create_boleto(batch_id),
            )

            details = []
            refs = []
            for beneficiary, amount in validated:
                credit = Credit(
                    id=beneficiary.next_credit_id(),
                    amount=amount,
                    credit_date=batch_date,
                    batch_id=batch_id,
                )
                beneficiary.credits.append(credit)
                refs.append((beneficiary.id, credit.id))
                details.append(CreditDetail(
                    beneficiary_id=beneficiary.id,
                    full_name=beneficiary.full_name,
                    national_id=beneficiary.national_id,
                    credit=credit,
                ))

            batch = Batch(
                id=batch_id,
                date=batch_date,
                due_date=batch_date - DUE_DATE_OFFSET,
                total_amount=total,
                credit_refs=tuple(refs),
                payment=payment,
            )
            self.store.batches[batch.id] = batch

        logger.info(f"Lote {batch.id} emitido. Créditos: {len(refs)}. Valor total: R$ {format(total, '.2f')}")
        return BatchResult(batch=batch, credits=details, payment=payment)

    def list_batches(self):
        with self.store.lock:
            return list(self.store.batches.values())

    def get_batch(self, batch_id):
        """Devolve o lote e os créditos dele, cada um com o resumo do beneficiário."""
        with self.store.lock:
            batch = self.store.batches.get(batch_id)
            if batch is None:
                raise NotFoundError("Lote não encontrado")
            credits = []
            for beneficiary in self.store.beneficiaries.values():
                for credit in beneficiary.credits:
                    if credit.batch_id == batch.id:
                        credits.append((beneficiary.summary(), credit))
            return batch, credits
