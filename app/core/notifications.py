from typing import Protocol
from fastapi import BackgroundTasks
from loguru import logger
from sqlalchemy.engine import Engine
from sqlmodel import Session

from app.db.schema import NotificationOutbox


class NotificationSink(Protocol):
    def emit(self, topic: str, payload: bytes) -> None:
        ...


def _publish_notification(engine: Engine, topic: str, payload: bytes):
    """
    Background worker.
    Creates its OWN session so a failed delivery never touches the
    transaction of the operation that raised the notification.
    """
    try:
        with Session(engine) as session:
            session.add(NotificationOutbox(
                topic=topic,
                payload=payload.decode("utf-8")
            ))
            session.commit()
        logger.info(f"Notification published on '{topic}'")

    except Exception:
        # Fire-and-forget: report, never propagate
        logger.exception(f"Notification on '{topic}' could not be published")


class OutboxNotificationSink:
    """Publishes immediately into the outbox table (scripts, CLI use)."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def emit(self, topic: str, payload: bytes) -> None:
        _publish_notification(self.engine, topic, payload)


class BackgroundNotificationSink:
    """Defers publishing until the HTTP response has been sent."""

    def __init__(self, background_tasks: BackgroundTasks, engine: Engine):
        self.background_tasks = background_tasks
        self.engine = engine

    def emit(self, topic: str, payload: bytes) -> None:
        self.background_tasks.add_task(
            _publish_notification, self.engine, topic, payload)
