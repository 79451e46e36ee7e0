"""
Cadastro de beneficiários (CRUD) sobre o MemoryStore.
"""
import copy
import logging
import re

from erros import ConflictError, NotFoundError, ValidationError
from modelos import Beneficiary
from seguranca import hmac_hash, sanitize_for_log

logger = logging.getLogger(__name__)

_NON_DIGITS = re.compile(r'\D')


def only_digits(value) -> str:
    return _NON_DIGITS.sub('', str(value))


def normalize_cpf(raw) -> str:
    """Normaliza um CPF para o formato de exibição 000.000.000-00.

    Aceita qualquer pontuação na entrada; exige exatamente 11 dígitos.
    Os dígitos verificadores não são validados.
    """
    if raw is None:
        raise ValidationError("CPF é obrigatório")
    digits = only_digits(raw)
    if len(digits) != 11:
        raise ValidationError("CPF inválido: informe 11 dígitos")
    return f"{digits[:3]}.{digits[3:6]}.{digits[6:9]}-{digits[9:]}"


def _clean_name(value):
    if value is None:
        return ''
    return str(value).strip()


class BeneficiaryRegistry:

    def __init__(self, store):
        self.store = store

    def list(self, name=None, national_id=None):
        with self.store.lock:
            result = list(self.store.beneficiaries.values())
            if name:
                needle = name.lower()
                result = [b for b in result if needle in b.full_name.lower()]
            if national_id:
                digits = only_digits(national_id)
                result = [
                    b for b in result
                    if national_id in b.national_id or (digits and digits in only_digits(b.national_id))
                ]
            return [copy.deepcopy(b) for b in result]

    def get(self, beneficiary_id):
        with self.store.lock:
            return copy.deepcopy(self._find(beneficiary_id))

    def create(self, full_name, national_id):
        full_name = _clean_name(full_name)
        if not full_name or national_id is None or not str(national_id).strip():
            raise ValidationError("Nome completo e CPF são obrigatórios")
        cpf = normalize_cpf(national_id)

        with self.store.lock:
            if self._find_by_cpf(cpf) is not None:
                logger.warning(f"Cadastro recusado: CPF já cadastrado. cpf_hash={hmac_hash(cpf)}")
                raise ConflictError("CPF já cadastrado")
            beneficiary = Beneficiary(id=self.store.next_beneficiary_id(), full_name=full_name, national_id=cpf)
            self.store.beneficiaries[beneficiary.id] = beneficiary
            logger.info(f"Beneficiário criado. ID: {beneficiary.id}, cpf_hash={hmac_hash(cpf)}")
            return copy.deepcopy(beneficiary)

    def update(self, beneficiary_id, full_name=None, national_id=None):
        full_name = _clean_name(full_name)
        cpf = None
        if national_id is not None and str(national_id).strip():
            cpf = normalize_cpf(national_id)

        with self.store.lock:
            beneficiary = self._find(beneficiary_id)
            if cpf is not None:
                owner = self._find_by_cpf(cpf)
                if owner is not None and owner.id != beneficiary.id:
                    logger.warning(f"Edição recusada: CPF em uso por outro beneficiário. ID: {beneficiary.id}, cpf_hash={hmac_hash(cpf)}")
                    raise ConflictError("CPF já cadastrado para outro beneficiário")
                beneficiary.national_id = cpf
            if full_name:
                beneficiary.full_name = full_name
            logger.info(f"Beneficiário atualizado. ID: {beneficiary.id}")
            return copy.deepcopy(beneficiary)

    def delete(self, beneficiary_id):
        with self.store.lock:
            beneficiary = self._find(beneficiary_id)
            if beneficiary.has_pending_credits():
                logger.warning(f"Exclusão recusada: beneficiário ID {beneficiary.id} possui créditos pendentes")
                raise ConflictError("Não é possível excluir beneficiário com créditos pendentes")
            del self.store.beneficiaries[beneficiary.id]
            self.store.remove_documents_for_beneficiary(beneficiary.id)
            logger.info(f"Beneficiário excluído. ID: {beneficiary.id}")

    def _find(self, beneficiary_id):
        beneficiary = self.store.beneficiaries.get(beneficiary_id)
        if beneficiary is None:
            logger.info(f"Beneficiário não encontrado: {sanitize_for_log(beneficiary_id)}")
            raise NotFoundError("Beneficiário não encontrado")
        return beneficiary

    def _find_by_cpf(self, cpf):
        for beneficiary in self.store.beneficiaries.values():
            if beneficiary.national_id == cpf:
                return beneficiary
        return None
