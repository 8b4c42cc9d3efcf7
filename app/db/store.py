from typing import Optional, Protocol

from loguru import logger
from pydantic import ValidationError
from sqlmodel import Session

from app.core.config import settings
from app.core.exceptions import RecordNotFoundError, RecordSerializationError
from app.db.schema import LedgerState, utc_now
from app.models.dpp import DigitalProductPassport


class RecordStore(Protocol):
    def get(self, key: str) -> Optional[bytes]:
        ...

    def put(self, key: str, value: bytes) -> None:
        ...


class SQLModelRecordStore:
    """
    RecordStore backed by the `ledgerstate` table.
    Writes are flushed but not committed; the calling service owns the
    transaction so multi-record operations commit (or roll back) together.
    """

    def __init__(self, session: Session):
        self.session = session

    def get(self, key: str) -> Optional[bytes]:
        row = self.session.get(LedgerState, key)
        return row.value if row else None

    def put(self, key: str, value: bytes) -> None:
        row = self.session.get(LedgerState, key)
        if row:
            row.value = value
            row.updated_at = utc_now()
        else:
            row = LedgerState(key=key, value=value)

        self.session.add(row)
        self.session.flush()


class DPPRepository:
    """Loads and stores passports by id on top of a RecordStore."""

    def __init__(self, store: RecordStore, key_prefix: str = settings.record_key_prefix):
        self.store = store
        self.key_prefix = key_prefix

    def _key(self, dpp_id: str) -> str:
        return f"{self.key_prefix}{dpp_id}"

    def exists(self, dpp_id: str) -> bool:
        return self.store.get(self._key(dpp_id)) is not None

    def load(self, dpp_id: str) -> DigitalProductPassport:
        raw = self.store.get(self._key(dpp_id))
        if raw is None:
            raise RecordNotFoundError(dpp_id)

        try:
            return DigitalProductPassport.model_validate_json(raw)
        except ValidationError as e:
            logger.error(f"Stored passport {dpp_id} could not be decoded: {e}")
            raise RecordSerializationError(
                f"Stored passport '{dpp_id}' is malformed.")

    def save(self, dpp: DigitalProductPassport) -> None:
        try:
            raw = dpp.model_dump_json().encode("utf-8")
        except (ValueError, TypeError) as e:
            logger.error(f"Passport {dpp.id} could not be encoded: {e}")
            raise RecordSerializationError(
                f"Passport '{dpp.id}' could not be encoded.")

        self.store.put(self._key(dpp.id), raw)
