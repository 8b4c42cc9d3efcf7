import uuid
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from app.core.config import settings


class SystemClock:
    """
    Wall clock used to stamp events and quality entries.
    Services receive a clock instance so tests can pin "now".
    """

    def __init__(self, tz_name: str = settings.event_timezone):
        self.tz = ZoneInfo(tz_name)

    def now(self) -> datetime:
        return datetime.now(timezone.utc).astimezone(self.tz)


class EventIdFactory:
    """Generates unique traceability event identifiers, e.g. 'evt-qc-<hex>'."""

    def new_id(self, prefix: str) -> str:
        return f"evt-{prefix}-{uuid.uuid4().hex}"


def format_utc(moment: datetime) -> str:
    """RFC 3339 timestamp in UTC with second precision. Example: '2025-05-06T10:00:00Z'"""
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def format_offset(moment: datetime) -> str:
    """Timezone offset of the given moment. Example: '+02:00'"""
    raw = moment.strftime("%z") or "+0000"
    return f"{raw[:3]}:{raw[3:]}"
