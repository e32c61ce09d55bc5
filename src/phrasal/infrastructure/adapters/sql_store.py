"""
SQL Store: Infrastructure adapter for the relational phrase store.

Implements DueItemProvider, ReviewWriter, SessionRecorder and ReviewHistory
on top of SQLAlchemy. SQLite is the default backend; any SQLAlchemy URL works.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import create_engine, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session as OrmSession
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from ulid import ULID

from phrasal.domain.constants import ITEM_ID_PREFIX
from phrasal.domain.errors import ProviderFailure
from phrasal.domain.models import (
    DueItem,
    Grade,
    Phrase,
    ReviewEntry,
    ScheduleState,
    Session,
    SessionType,
    StudyItem,
    UserStats,
)
from phrasal.domain.ordering import select_due_items
from phrasal.domain.ports import DueItemProvider, ReviewHistory, ReviewWriter, SessionRecorder
from phrasal.infrastructure.persistence.models import (
    Base,
    PhraseRecord,
    ReviewRecord,
    StudySessionItemRecord,
    StudySessionRecord,
)

logger = logging.getLogger(__name__)


def generate_phrase_id() -> str:
    return f"phrase_{ULID()}"


def _to_db(value: datetime | None) -> datetime | None:
    # Stored without an offset, so everything goes in as UTC
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc)


def _utc(value: datetime | None) -> datetime | None:
    # SQLite drops tzinfo on the way back out
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _make_engine(database_url: str, echo: bool = False):
    if not database_url.startswith("sqlite"):
        return create_engine(database_url, pool_pre_ping=True, echo=echo)

    connect_args = {"check_same_thread": False}
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        # One shared connection, otherwise every checkout sees an empty database
        return create_engine(
            database_url, connect_args=connect_args, poolclass=StaticPool, echo=echo
        )

    db_path = database_url.split("sqlite:///", 1)[-1]
    if db_path:
        Path(db_path).expanduser().parent.mkdir(parents=True, exist_ok=True)
    return create_engine(database_url, connect_args=connect_args, echo=echo)


class SqlStore(DueItemProvider, ReviewWriter, SessionRecorder, ReviewHistory):
    """
    Phrase, review and session persistence backed by SQLAlchemy.

    Due items are computed from the latest review of each phrase and ordered
    by the shared due-ordering rules.
    """

    def __init__(self, database_url: str, echo: bool = False):
        self.database_url = database_url
        self._engine = _make_engine(database_url, echo=echo)
        self._session_factory = sessionmaker(bind=self._engine, expire_on_commit=False)

    def init_db(self) -> None:
        """Create tables if they don't exist. Safe to call multiple times."""
        Base.metadata.create_all(self._engine)

    def close(self) -> None:
        self._engine.dispose()

    @contextmanager
    def _scope(self, operation: str) -> Iterator[OrmSession]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Database error during {operation}: {e}")
            raise ProviderFailure(operation, str(e)) from e
        finally:
            session.close()

    # ------------------------------------------------------------------
    # Phrases
    # ------------------------------------------------------------------

    def add_phrase(
        self,
        user_id: str,
        text: str,
        translation: str | None = None,
        context: str | None = None,
        added_at: datetime | None = None,
    ) -> Phrase:
        record = PhraseRecord(
            id=generate_phrase_id(),
            user_id=user_id,
            text=text,
            translation=translation,
            context=context,
            added_at=_to_db(added_at or datetime.now(timezone.utc)),
        )
        with self._scope("add phrase") as session:
            session.add(record)
        logger.debug(f"Added phrase {record.id} for user={user_id}")
        return self._to_phrase(record)

    def list_phrases(self, user_id: str) -> list[Phrase]:
        with self._scope("list phrases") as session:
            rows = session.scalars(
                select(PhraseRecord)
                .where(PhraseRecord.user_id == user_id)
                .order_by(PhraseRecord.added_at, PhraseRecord.id)
            ).all()
            return [self._to_phrase(row) for row in rows]

    # ------------------------------------------------------------------
    # DueItemProvider
    # ------------------------------------------------------------------

    async def fetch_due_items(
        self, user_id: str, limit: int, now: datetime | None = None
    ) -> list[DueItem]:
        now = now or datetime.now(timezone.utc)
        with self._scope("fetch due items") as session:
            phrases = session.scalars(
                select(PhraseRecord).where(PhraseRecord.user_id == user_id)
            ).all()
            latest = self._latest_reviews(session, user_id)

            candidates = [
                DueItem(
                    phrase=self._to_phrase(row),
                    schedule=self._to_schedule(latest[row.id]) if row.id in latest else None,
                )
                for row in phrases
            ]

        due = select_due_items(candidates, now, limit)
        logger.debug(f"{len(due)} due of {len(candidates)} phrases for user={user_id}")
        return due

    # ------------------------------------------------------------------
    # ReviewWriter
    # ------------------------------------------------------------------

    async def record_review(
        self,
        item_id: str,
        grade: Grade,
        schedule: ScheduleState,
        responded_at: datetime,
    ) -> None:
        with self._scope("record review") as session:
            phrase = session.get(PhraseRecord, item_id)
            if phrase is None:
                raise ProviderFailure("record review", f"Unknown phrase: {item_id}")
            session.add(
                ReviewRecord(
                    phrase_id=item_id,
                    user_id=phrase.user_id,
                    grade=int(grade),
                    ease_factor=schedule.ease_factor,
                    interval_days=schedule.interval_days,
                    repetitions=schedule.repetitions,
                    next_review_at=_to_db(schedule.next_review_at),
                    reviewed_at=_to_db(responded_at),
                )
            )

    # ------------------------------------------------------------------
    # SessionRecorder
    # ------------------------------------------------------------------

    async def open_session(self, session: Session) -> None:
        with self._scope("create study session") as db:
            db.add(
                StudySessionRecord(
                    id=session.id,
                    user_id=session.user_id,
                    session_type=session.session_type.value,
                    total_items=session.total_items,
                    started_at=_to_db(session.started_at),
                )
            )

    async def record_item(self, session_id: str, item: StudyItem) -> None:
        with self._scope("record session item") as db:
            db.add(
                StudySessionItemRecord(
                    session_id=session_id,
                    phrase_id=item.phrase.id,
                    item_order=item.order,
                    grade=int(item.grade),
                    response_time_seconds=item.response_time_seconds,
                    is_correct=bool(item.is_correct),
                    created_at=_to_db(item.graded_at or datetime.now(timezone.utc)),
                )
            )

    def get_session_items(self, session_id: str) -> list[StudyItem]:
        """Graded items recorded for a session, in session order."""
        with self._scope("load session items") as db:
            rows = db.execute(
                select(StudySessionItemRecord, PhraseRecord)
                .join(PhraseRecord, StudySessionItemRecord.phrase_id == PhraseRecord.id)
                .where(StudySessionItemRecord.session_id == session_id)
                .order_by(StudySessionItemRecord.item_order, StudySessionItemRecord.id)
            ).all()
            return [
                StudyItem(
                    id=f"{ITEM_ID_PREFIX}{record.item_order}",
                    phrase=self._to_phrase(phrase),
                    order=record.item_order,
                    grade=Grade(record.grade),
                    response_time_seconds=record.response_time_seconds,
                    is_correct=record.is_correct,
                    graded_at=_utc(record.created_at),
                )
                for record, phrase in rows
            ]

    async def close_session(self, session: Session) -> None:
        with self._scope("complete session") as db:
            record = db.get(StudySessionRecord, session.id)
            if record is None:
                raise ProviderFailure("complete session", f"Unknown session: {session.id}")
            record.completed_items = session.completed_items
            record.correct_items = session.correct_items
            record.average_grade = session.average_grade
            record.duration_seconds = session.duration_seconds
            record.completed_at = _to_db(session.completed_at)
            record.is_complete = True

    def get_session(self, session_id: str) -> Session | None:
        with self._scope("load study session") as db:
            record = db.get(StudySessionRecord, session_id)
            if record is None:
                return None
            return Session(
                id=record.id,
                user_id=record.user_id,
                session_type=SessionType(record.session_type),
                total_items=record.total_items,
                started_at=_utc(record.started_at),
                completed_items=record.completed_items,
                correct_items=record.correct_items,
                average_grade=record.average_grade,
                duration_seconds=record.duration_seconds,
                completed_at=_utc(record.completed_at),
            )

    # ------------------------------------------------------------------
    # ReviewHistory
    # ------------------------------------------------------------------

    async def get_review_history(self, user_id: str) -> list[ReviewEntry]:
        with self._scope("load review history") as session:
            rows = session.scalars(
                select(ReviewRecord)
                .where(ReviewRecord.user_id == user_id)
                .order_by(ReviewRecord.reviewed_at, ReviewRecord.id)
            ).all()
            return [
                ReviewEntry(
                    phrase_id=row.phrase_id,
                    grade=row.grade,
                    reviewed_at=_utc(row.reviewed_at),
                    next_review_at=_utc(row.next_review_at),
                    ease_factor=row.ease_factor,
                )
                for row in rows
            ]

    async def count_phrases(self, user_id: str) -> int:
        with self._scope("count phrases") as session:
            return session.scalar(
                select(func.count()).select_from(PhraseRecord).where(
                    PhraseRecord.user_id == user_id
                )
            )

    async def get_user_stats(self, user_id: str, now: datetime | None = None) -> UserStats:
        from phrasal.application.stats import SrsStatsService

        return await SrsStatsService(self).get_user_stats(user_id, now=now)

    # ------------------------------------------------------------------
    # Mapping
    # ------------------------------------------------------------------

    def _latest_reviews(self, session: OrmSession, user_id: str) -> dict[str, ReviewRecord]:
        rows = session.scalars(
            select(ReviewRecord)
            .where(ReviewRecord.user_id == user_id)
            .order_by(ReviewRecord.reviewed_at, ReviewRecord.id)
        ).all()
        latest: dict[str, ReviewRecord] = {}
        for row in rows:
            latest[row.phrase_id] = row
        return latest

    @staticmethod
    def _to_phrase(record: PhraseRecord) -> Phrase:
        return Phrase(
            id=record.id,
            text=record.text,
            translation=record.translation,
            context=record.context,
            added_at=_utc(record.added_at),
        )

    @staticmethod
    def _to_schedule(record: ReviewRecord) -> ScheduleState:
        return ScheduleState(
            ease_factor=record.ease_factor,
            interval_days=record.interval_days,
            repetitions=record.repetitions,
            next_review_at=_utc(record.next_review_at),
        )
