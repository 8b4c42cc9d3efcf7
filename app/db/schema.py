from datetime import datetime, timezone
import uuid
from sqlalchemy import DateTime, LargeBinary
from sqlmodel import SQLModel, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class LedgerState(SQLModel, table=True):
    """
    Key-value world state of the ledger.
    Each row holds one serialized Digital Product Passport under
    '<record_key_prefix><dpp id>'. The core never range-scans this table.
    """
    key: str = Field(
        primary_key=True,
        description="Prefixed record key. Example: 'DPP-COMPOUND-0042'"
    )
    value: bytes = Field(
        sa_type=LargeBinary,
        description="JSON encoded passport."
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_type=DateTime(timezone=True),
        description="When this key was last written."
    )


class NotificationOutbox(SQLModel, table=True):
    """
    Side-channel notifications (e.g. 'QualityAlert') waiting to be picked up
    by downstream consumers. Delivery is best effort.
    """
    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True
    )
    topic: str = Field(
        index=True,
        description="Notification topic. Example: 'QualityAlert'"
    )
    payload: str = Field(
        description="JSON document carried by the notification."
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_type=DateTime(timezone=True)
    )
