"""Payment log — append-only audit trail of every fee settled or attempted."""

import threading

import structlog
from pydantic import ValidationError

from hivemind.models import PaymentRecord
from hivemind.store.repository import Repository

logger = structlog.get_logger()


class PaymentLog:
    def __init__(self, repository: Repository):
        self.repository = repository
        self._lock = threading.Lock()
        self._records: list[PaymentRecord] = []
        for raw in repository.load() or []:
            try:
                self._records.append(PaymentRecord.model_validate(raw))
            except ValidationError as e:
                logger.warning("payments.log_entry_skipped", error=str(e))

    def append(self, record: PaymentRecord) -> None:
        with self._lock:
            self._records.append(record)
            self.repository.save([r.to_wire() for r in self._records])
        logger.info(
            "payments.logged",
            status=record.status,
            amount=record.amount,
            currency=record.currency,
            network=record.network,
            tx_hash=record.tx_hash,
        )

    def all(self) -> list[PaymentRecord]:
        return list(self._records)

    def recent(self, limit: int = 50) -> list[PaymentRecord]:
        return self._records[-limit:] if limit > 0 else []
