"""SQL persistence of seen events and known channels."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import DateTime, Engine, String, delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column

from crawlslack.entities import AlreadyExistsError, Channel, Event
from crawlslack.usecase import Repository

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _Base(DeclarativeBase):
    pass


class EventRecord(_Base):
    """A stored event; (uid, name) identifies it."""

    __tablename__ = "event"

    crawler: Mapped[str] = mapped_column(String(128), default="")
    job: Mapped[str] = mapped_column(String(128), default="")
    user_name: Mapped[str] = mapped_column(String(128), default="")
    uid: Mapped[str] = mapped_column(String(256), primary_key=True)
    name: Mapped[str] = mapped_column(String(256), primary_key=True)
    message: Mapped[str] = mapped_column(String(65535), default="")
    event_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class ChannelRecord(_Base):
    """A stored channel."""

    __tablename__ = "channel"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    name: Mapped[str] = mapped_column(String(128), index=True, default="")


def create_schema(engine: Engine) -> None:
    """Create the event and channel tables if they are missing."""
    _Base.metadata.create_all(engine)


class EventRepository(Repository):
    """Repository backed by an SQLAlchemy engine."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def save_event(self, event: Event) -> None:
        record = EventRecord(
            crawler=event.crawler,
            job=event.job,
            user_name=event.user_name,
            uid=event.uid,
            name=event.name,
            message=event.message,
            event_time=event.event_time,
        )
        try:
            with Session(self._engine) as session, session.begin():
                session.add(record)
        except IntegrityError as exc:
            raise AlreadyExistsError() from exc

    def get_channel(self, user_name: str) -> Channel | None:
        with Session(self._engine) as session:
            record = session.scalars(
                select(ChannelRecord).where(ChannelRecord.name == user_name).limit(1)
            ).first()
            if record is None:
                return None
            return Channel(id=record.id, name=record.name)

    def sync_channels(self, channels: list[Channel]) -> None:
        with Session(self._engine) as session, session.begin():
            session.execute(delete(ChannelRecord))
            session.add_all(ChannelRecord(id=c.id, name=c.name) for c in channels)

    def remove_old_events(self, before: datetime) -> int:
        """Delete events created before ``before`` and return how many went."""
        with Session(self._engine) as session, session.begin():
            result = session.execute(delete(EventRecord).where(EventRecord.created_at < before))
            count = result.rowcount
        logger.info("removed %d events", count)
        return count