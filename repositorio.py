"""
Repositório em memória.
Uma instância por app (criada em create_app) e passada para os serviços;
nada de estado global. Todo read-then-write dos serviços roda sob `lock`.
"""
import itertools
import logging
import threading

logger = logging.getLogger(__name__)


class MemoryStore:

    def __init__(self):
        self.lock = threading.RLock()
        self.beneficiaries = {}
        self.batches = {}
        # batch_id -> [BillingDocument]
        self.documents = {}
        self._beneficiary_ids = itertools.count(1)
        self._batch_ids = itertools.count(1)

    def next_beneficiary_id(self) -> int:
        return next(self._beneficiary_ids)

    def next_batch_id(self) -> int:
        return next(self._batch_ids)

    def add_document(self, document):
        with self.lock:
            self.documents.setdefault(document.batch_id, []).append(document)

    def find_document(self, batch_id, kind):
        with self.lock:
            for document in self.documents.get(batch_id, []):
                if document.kind == kind:
                    return document
        return None

    def remove_documents_for_beneficiary(self, beneficiary_id) -> int:
        """Remove os documentos de cobrança que referenciam o beneficiário."""
        removed = 0
        with self.lock:
            for batch_id in list(self.documents):
                kept = [d for d in self.documents[batch_id] if beneficiary_id not in d.beneficiary_ids]
                removed += len(self.documents[batch_id]) - len(kept)
                if kept:
                    self.documents[batch_id] = kept
                else:
                    del self.documents[batch_id]
        if removed:
            logger.info(f"{removed} documento(s) de cobrança removido(s) junto com o beneficiário ID: {beneficiary_id}")
        return removed
