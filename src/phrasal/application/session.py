"""
Study session orchestration.

Owns one in-memory session at a time and sequences its phases:

    loading -> drilling -> reviewing -> grading -> complete

Pending items form a FIFO queue: grading removes an item, skipping moves it
to the back. Schedule math is delegated to the scheduler module; persistence
and content generation go through the ports in phrasal.domain.ports.
"""

import logging
from collections import deque
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import datetime, timezone

from ulid import ULID

from phrasal.application.config import SessionConfig
from phrasal.application.scheduler import (
    compute_schedule,
    initial_schedule,
    round_half_up,
    validate_grade,
)
from phrasal.domain.constants import ITEM_ID_PREFIX, PASSING_GRADE
from phrasal.domain.errors import (
    GradeAlreadySubmitted,
    InvalidPhase,
    NoActiveSession,
    NoItemsAvailable,
    ProviderFailure,
    SessionBusy,
    UnknownItem,
)
from phrasal.domain.models import (
    DrillExercise,
    Grade,
    NarrativeResult,
    ScheduleState,
    Session,
    SessionPhase,
    StudyItem,
)
from phrasal.domain.ports import (
    DrillGenerator,
    DueItemProvider,
    NarrativeGenerator,
    ReviewWriter,
    SessionRecorder,
    SpeechSynthesizer,
)

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_provider_failure(operation: str, exc: Exception) -> ProviderFailure:
    if isinstance(exc, ProviderFailure):
        return exc
    return ProviderFailure(operation, str(exc) or type(exc).__name__)


@dataclass(eq=False)
class UnsyncedReview:
    """
    Writes still owed for one graded item: the review and, when a session
    recorder is configured, the session item record.

    Queued before the writes are awaited and dropped once both succeed, so a
    failed or cancelled write stays here for flush_unsynced().
    """

    phrase_id: str
    grade: Grade
    schedule: ScheduleState
    responded_at: datetime
    session_id: str | None = None
    item: StudyItem | None = None
    review_written: bool = False


class StudySessionOrchestrator:
    """
    Drives a single study session from due-item fetch to completion.

    Follows Dependency Inversion: depends on port abstractions, not on
    concrete storage or content adapters. Content ports are optional and
    their failures only skip the phase they feed.
    """

    def __init__(
        self,
        due_items: DueItemProvider,
        review_writer: ReviewWriter,
        session_recorder: SessionRecorder | None = None,
        narrative_generator: NarrativeGenerator | None = None,
        drill_generator: DrillGenerator | None = None,
        speech_synthesizer: SpeechSynthesizer | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self._due_items = due_items
        self._review_writer = review_writer
        self._session_recorder = session_recorder
        self._narrative_generator = narrative_generator
        self._drill_generator = drill_generator
        self._speech_synthesizer = speech_synthesizer
        self._clock = clock or _utcnow

        self._busy = False
        self._unsynced: list[UnsyncedReview] = []
        self._reset()

    def _reset(self) -> None:
        self._session: Session | None = None
        self._config: SessionConfig | None = None
        self._items: dict[str, StudyItem] = {}
        self._queue: deque[str] = deque()
        self._phase = SessionPhase.LOADING
        self._drill_exercises: list[DrillExercise] = []
        self._narrative: NarrativeResult | None = None

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def config(self) -> SessionConfig | None:
        return self._config

    @property
    def is_active(self) -> bool:
        return self._session is not None

    @property
    def drill_exercises(self) -> list[DrillExercise]:
        return list(self._drill_exercises)

    @property
    def narrative(self) -> NarrativeResult | None:
        return self._narrative

    @property
    def has_unsynced_reviews(self) -> bool:
        return bool(self._unsynced)

    @property
    def unsynced_reviews(self) -> list[UnsyncedReview]:
        return list(self._unsynced)

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------

    @contextmanager
    def _exclusive(self, operation: str) -> Iterator[None]:
        if self._busy:
            raise SessionBusy(operation)
        self._busy = True
        try:
            yield
        finally:
            self._busy = False

    def _require_session(self) -> Session:
        if self._session is None:
            raise NoActiveSession()
        return self._session

    def _require_phase(self, phase: SessionPhase, operation: str) -> None:
        if self._phase is not phase:
            raise InvalidPhase(operation, self._phase.value)

    def _require_item(self, item_id: str) -> StudyItem:
        item = self._items.get(item_id)
        if item is None:
            raise UnknownItem(item_id)
        return item

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start_session(self, config: SessionConfig) -> Session:
        """
        Start a new study session, discarding any active one.

        Raises:
            ProviderFailure: due-item fetch or session record creation failed.
            NoItemsAvailable: nothing is due.
        """
        with self._exclusive("start session"):
            if self._session is not None:
                logger.info(f"Discarding active session {self._session.id}")
            self._reset()

            try:
                due = await self._due_items.fetch_due_items(config.user_id, config.max_items)
            except Exception as e:
                logger.error(f"Failed to fetch due items for user={config.user_id}: {e}")
                raise _as_provider_failure("fetch due items", e) from e

            due = list(due or [])[: config.max_items]
            if not due:
                raise NoItemsAvailable(config.user_id)

            session = Session(
                id=str(ULID()),
                user_id=config.user_id,
                session_type=config.session_type,
                total_items=len(due),
                started_at=self._clock(),
            )

            if self._session_recorder is not None:
                try:
                    await self._session_recorder.open_session(replace(session))
                except Exception as e:
                    logger.error(f"Failed to create study session record: {e}")
                    raise _as_provider_failure("create study session", e) from e

            items = [
                StudyItem(
                    id=f"{ITEM_ID_PREFIX}{index}",
                    phrase=entry.phrase,
                    order=index,
                    schedule=entry.schedule,
                )
                for index, entry in enumerate(due)
            ]

            self._session = session
            self._config = config
            self._items = {item.id: item for item in items}
            self._queue = deque(item.id for item in items)

            if config.include_drill:
                self._phase = SessionPhase.DRILLING
                self._drill_exercises = await self._load_drill_exercises()
            elif config.include_narrative:
                self._phase = SessionPhase.REVIEWING
            else:
                self._phase = SessionPhase.COMPLETE

            logger.info(
                f"Started {config.session_type.value} session {session.id} "
                f"with {session.total_items} items (phase={self._phase.value})"
            )
            return self._snapshot()

    async def complete_session(self) -> Session:
        """
        Freeze and persist final aggregates, then clear the session.

        If the session record cannot be written, ProviderFailure is raised and
        the session stays active so the caller can retry.
        """
        with self._exclusive("complete session"):
            self._require_session()
            now = self._clock()
            final = self._snapshot(now)
            final.completed_at = now

            if self._session_recorder is not None:
                try:
                    await self._session_recorder.close_session(replace(final))
                except Exception as e:
                    logger.error(f"Failed to complete session {final.id}: {e}")
                    raise _as_provider_failure("complete session", e) from e

            if self._unsynced:
                logger.warning(
                    f"Session {final.id} completed with {len(self._unsynced)} unsynced reviews"
                )

            self._reset()
            logger.info(
                f"Completed session {final.id}: {final.completed_items}/{final.total_items} "
                f"items, average grade {final.average_grade:.2f}"
            )
            return final

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    def get_next_item(self) -> StudyItem | None:
        """First ungraded item in queue order; None means the phase should advance."""
        if self._session is None or not self._queue:
            return None
        return self._items[self._queue[0]]

    def get_current_items(self) -> list[StudyItem]:
        return list(self._items.values())

    def get_item(self, item_id: str) -> StudyItem:
        self._require_session()
        return self._require_item(item_id)

    async def submit_grade(
        self,
        item_id: str,
        grade: int,
        response_time_seconds: float | None = None,
    ) -> StudyItem:
        """
        Grade one item, schedule its phrase and persist the review.

        Validation happens before any mutation. A failed review write raises
        ProviderFailure after the in-memory update; the review and its session
        item record stay in unsynced_reviews until flush_unsynced() succeeds.
        """
        with self._exclusive("submit grade"):
            self._require_session()
            item = self._require_item(item_id)
            grade = validate_grade(grade)
            if item.is_graded:
                raise GradeAlreadySubmitted(item_id)

            now = self._clock()
            schedule = self._schedule_for(item, grade, now)
            self._apply_grade(item, grade, schedule, now, response_time_seconds)
            self._refresh_stats()

            if self._phase is SessionPhase.DRILLING and not self._queue:
                self._finish_drill()

            logger.debug(
                f"Graded {item.id} ({item.phrase.id}) grade={int(grade)} "
                f"next_review={schedule.next_review_at.isoformat()}"
            )

            error = await self._record(self._queue_writes(item))
            if error is not None:
                raise error
            return item

    def skip_item(self, item_id: str) -> StudyItem | None:
        """
        Move a pending item to the back of the queue during drilling.

        Returns the new next item.
        """
        with self._exclusive("skip item"):
            self._require_session()
            item = self._require_item(item_id)
            if item.is_graded:
                raise GradeAlreadySubmitted(item_id)
            self._require_phase(SessionPhase.DRILLING, "skip item")

            self._queue.remove(item_id)
            self._queue.append(item_id)
            return self.get_next_item()

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    def end_drill(self) -> SessionPhase:
        """Leave the drill phase early; remaining items stay pending."""
        with self._exclusive("end drill"):
            self._require_session()
            self._require_phase(SessionPhase.DRILLING, "end drill")
            self._finish_drill()
            return self._phase

    async def generate_narrative(self) -> NarrativeResult | None:
        """
        Produce the review narrative for the session's phrases.

        Moves to grading when a narrative is available, otherwise completes.
        """
        with self._exclusive("generate narrative"):
            self._require_session()
            self._require_phase(SessionPhase.REVIEWING, "generate narrative")

            narrative = None
            if self._narrative_generator is None:
                logger.info("No narrative generator configured; skipping review phase")
            else:
                phrases = [item.phrase for item in self._items.values()]
                try:
                    narrative = await self._narrative_generator.generate_narrative(
                        phrases, self._config.language_context
                    )
                except Exception as e:
                    logger.warning(f"Narrative unavailable, skipping review phase: {e}")
                    narrative = None

            self._narrative = narrative
            self._phase = SessionPhase.GRADING if narrative else SessionPhase.COMPLETE
            return narrative

    async def apply_bulk_grade(self, grade: int) -> list[StudyItem]:
        """
        Apply one narrative-level grade to every ungraded item.

        Returns the items graded by this call. Write failures are collected
        and raised together after every item is updated.
        """
        with self._exclusive("apply bulk grade"):
            self._require_session()
            self._require_phase(SessionPhase.GRADING, "apply bulk grade")
            grade = validate_grade(grade)

            now = self._clock()
            pending = [self._items[item_id] for item_id in self._queue]
            # Schedule everything first so a bad prior leaves no partial grades
            schedules = [self._schedule_for(item, grade, now) for item in pending]
            for item, schedule in zip(pending, schedules):
                self._apply_grade(item, grade, schedule, now, None)

            self._refresh_stats()
            self._phase = SessionPhase.COMPLETE
            logger.info(f"Bulk grade {int(grade)} applied to {len(pending)} items")

            reviews = [self._queue_writes(item) for item in pending]
            errors = [err for err in [await self._record(review) for review in reviews] if err]
            if errors:
                raise ProviderFailure(
                    "record review",
                    f"{len(errors)} of {len(pending)} review writes failed: {errors[0]}",
                )
            return pending

    async def synthesize_item(self, item_id: str) -> bytes | None:
        """Audio for an item's phrase, or None when speech is off or unavailable."""
        self._require_session()
        item = self._require_item(item_id)
        if not self._config.include_speech or self._speech_synthesizer is None:
            return None
        try:
            return await self._speech_synthesizer.synthesize(
                item.phrase.text, self._config.target_language
            )
        except Exception as e:
            logger.warning(f"Speech unavailable for {item.phrase.id}: {e}")
            return None

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    def get_session_stats(self) -> Session | None:
        """Live snapshot of the session aggregates; None if no session is active."""
        if self._session is None:
            return None
        return self._snapshot()

    def is_session_complete(self) -> bool:
        if self._session is None:
            return False
        return all(item.is_graded for item in self._items.values())

    def get_session_progress(self) -> int:
        """Percentage of graded items, 0-100."""
        if self._session is None or not self._items:
            return 0
        graded = sum(1 for item in self._items.values() if item.is_graded)
        return round_half_up(graded / len(self._items) * 100)

    async def flush_unsynced(self) -> int:
        """
        Retry review writes that previously failed.

        Returns the number of reviews written; failures stay queued.
        """
        with self._exclusive("flush unsynced reviews"):
            written = 0
            for review in list(self._unsynced):
                try:
                    await self._write(review)
                except Exception as e:
                    logger.warning(f"Retry failed for review of {review.phrase_id}: {e}")
                    continue
                self._unsynced.remove(review)
                written += 1
            return written

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _snapshot(self, now: datetime | None = None) -> Session:
        session = replace(self._session)
        elapsed = ((now or self._clock()) - session.started_at).total_seconds()
        session.duration_seconds = max(0, int(elapsed))
        return session

    def _refresh_stats(self) -> None:
        graded = [item for item in self._items.values() if item.is_graded]
        self._session.completed_items = len(graded)
        self._session.correct_items = sum(1 for item in graded if item.is_correct)
        self._session.average_grade = (
            sum(int(item.grade) for item in graded) / len(graded) if graded else 0.0
        )

    def _schedule_for(self, item: StudyItem, grade: Grade, now: datetime) -> ScheduleState:
        # A first review only seeds the default state; the grade is still recorded
        if item.schedule is None:
            return initial_schedule(now)
        return compute_schedule(grade, item.schedule, now)

    def _apply_grade(
        self,
        item: StudyItem,
        grade: Grade,
        schedule: ScheduleState,
        now: datetime,
        response_time_seconds: float | None,
    ) -> None:
        item.grade = grade
        item.is_correct = grade >= PASSING_GRADE
        item.response_time_seconds = response_time_seconds
        item.schedule = schedule
        item.graded_at = now
        if item.id in self._queue:
            self._queue.remove(item.id)

    def _finish_drill(self) -> None:
        if self._config.include_narrative:
            self._phase = SessionPhase.REVIEWING
        else:
            self._phase = SessionPhase.COMPLETE

    def _queue_writes(self, item: StudyItem) -> UnsyncedReview:
        # Queued before any await so a cancelled write still shows up as unsynced
        recorded = self._session_recorder is not None
        review = UnsyncedReview(
            phrase_id=item.phrase.id,
            grade=item.grade,
            schedule=item.schedule,
            responded_at=item.graded_at,
            session_id=self._session.id if recorded else None,
            item=replace(item) if recorded else None,
        )
        self._unsynced.append(review)
        return review

    async def _record(self, review: UnsyncedReview) -> ProviderFailure | None:
        try:
            await self._write(review)
        except Exception as e:
            logger.error(f"Failed to record review for {review.phrase_id}: {e}")
            failure = _as_provider_failure("record review", e)
            if failure is not e:
                failure.__cause__ = e
            return failure
        self._unsynced.remove(review)
        return None

    async def _write(self, review: UnsyncedReview) -> None:
        if not review.review_written:
            await self._review_writer.record_review(
                review.phrase_id, review.grade, review.schedule, review.responded_at
            )
            review.review_written = True
        if review.item is not None:
            await self._session_recorder.record_item(review.session_id, review.item)

    async def _load_drill_exercises(self) -> list[DrillExercise]:
        if self._drill_generator is None or self._config.drill_count == 0:
            return []
        phrases = [item.phrase for item in self._items.values()]
        try:
            exercises = await self._drill_generator.generate_drill_exercises(
                phrases, self._config.language_context, self._config.drill_count
            )
        except Exception as e:
            logger.warning(f"Drill exercises unavailable: {e}")
            return []
        return list(exercises or [])
