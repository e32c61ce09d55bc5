import logging
import time
from contextlib import asynccontextmanager
from dataclasses import asdict
from datetime import datetime

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from phrasal.application.config import (
    AppConfig,
    Proficiency,
    build_session_config,
    resolve_config,
)
from phrasal.application.session import StudySessionOrchestrator
from phrasal.consts import VERSION
from phrasal.domain.errors import (
    GradeAlreadySubmitted,
    InvalidGrade,
    InvalidPhase,
    NoActiveSession,
    NoItemsAvailable,
    ProviderFailure,
    SessionBusy,
    StudyError,
    UnknownItem,
)
from phrasal.domain.models import SessionPhase, SessionType, StudyItem

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("phrasal.server")

_orchestrator: StudySessionOrchestrator | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info(f"Phrasal Server v{VERSION} starting up...")
    yield
    # Shutdown
    if _orchestrator is not None and _orchestrator.has_unsynced_reviews:
        logger.warning(
            f"Shutting down with {len(_orchestrator.unsynced_reviews)} unsynced reviews"
        )
    logger.info("Phrasal Server shutting down...")


app = FastAPI(
    title="Phrasal Server",
    description="Study-session API for phrasal.",
    version=VERSION,
    lifespan=lifespan,
)


def get_config() -> AppConfig:
    return resolve_config()


def get_orchestrator(config: AppConfig = Depends(get_config)) -> StudySessionOrchestrator:
    """Process-wide orchestrator, built from the resolved config on first use."""
    global _orchestrator
    if _orchestrator is None:
        from phrasal.application.factory import get_orchestrator as build_orchestrator

        _orchestrator = build_orchestrator(config)
    return _orchestrator


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------

ERROR_STATUS: dict[type[StudyError], int] = {
    InvalidGrade: 400,
    UnknownItem: 404,
    NoItemsAvailable: 404,
    NoActiveSession: 409,
    InvalidPhase: 409,
    GradeAlreadySubmitted: 409,
    SessionBusy: 409,
    ProviderFailure: 502,
}


@app.exception_handler(StudyError)
async def study_error_handler(request: Request, exc: StudyError):
    status = next(
        (code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)),
        500,
    )
    if status >= 500:
        logger.error(f"{request.url.path} failed: {exc}")
    return JSONResponse(
        status_code=status,
        content={"error": type(exc).__name__, "detail": str(exc)},
    )


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    status: str
    version: str
    uptime_seconds: float


class PhraseOut(BaseModel):
    id: str
    text: str
    translation: str | None = None
    context: str | None = None


class ItemOut(BaseModel):
    id: str
    order: int
    phrase: PhraseOut
    grade: int | None = None
    is_correct: bool | None = None
    response_time_seconds: float | None = None
    next_review_at: datetime | None = None


class SessionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    session_type: SessionType
    total_items: int
    completed_items: int
    correct_items: int
    average_grade: float
    duration_seconds: int
    started_at: datetime
    completed_at: datetime | None = None


class StartRequest(BaseModel):
    # If None, use defaults/config file.
    user_id: str | None = None
    max_items: int | None = Field(default=None, ge=1)
    session_type: SessionType | None = None
    include_drill: bool | None = None
    include_narrative: bool | None = None
    include_speech: bool | None = None
    drill_count: int | None = Field(default=None, ge=0)
    native_language: str | None = None
    target_language: str | None = None
    proficiency: Proficiency | None = None


class GradeRequest(BaseModel):
    item_id: str
    grade: int
    response_time_seconds: float | None = None


class SkipRequest(BaseModel):
    item_id: str


class BulkGradeRequest(BaseModel):
    grade: int


class SessionStateResponse(BaseModel):
    session: SessionOut
    phase: SessionPhase
    progress: int
    next_item: ItemOut | None = None


class GradeResponse(BaseModel):
    item: ItemOut
    phase: SessionPhase
    progress: int
    next_item: ItemOut | None = None


def _item_out(item: StudyItem | None) -> ItemOut | None:
    if item is None:
        return None
    return ItemOut(
        id=item.id,
        order=item.order,
        phrase=PhraseOut(
            id=item.phrase.id,
            text=item.phrase.text,
            translation=item.phrase.translation,
            context=item.phrase.context,
        ),
        grade=int(item.grade) if item.grade is not None else None,
        is_correct=item.is_correct,
        response_time_seconds=item.response_time_seconds,
        next_review_at=item.schedule.next_review_at if item.schedule else None,
    )


def _require_active(orchestrator: StudySessionOrchestrator) -> None:
    if not orchestrator.is_active:
        raise NoActiveSession()


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

start_time = time.time()


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Simple health check to verify server is reachable.
    """
    return HealthResponse(status="ok", version=VERSION, uptime_seconds=time.time() - start_time)


@app.get("/version")
async def get_version():
    return {"version": VERSION}


@app.post("/session/start", response_model=SessionStateResponse)
async def start_session(
    req: StartRequest,
    config: AppConfig = Depends(get_config),
    orchestrator: StudySessionOrchestrator = Depends(get_orchestrator),
):
    """
    Start a study session. Unset fields fall back to the resolved config.
    """
    logger.info(f"Session start requested via API: {req}")
    session_config = build_session_config(config, **req.model_dump())
    session = await orchestrator.start_session(session_config)
    return SessionStateResponse(
        session=SessionOut.model_validate(session),
        phase=orchestrator.phase,
        progress=orchestrator.get_session_progress(),
        next_item=_item_out(orchestrator.get_next_item()),
    )


@app.get("/session/next")
async def next_item(orchestrator: StudySessionOrchestrator = Depends(get_orchestrator)):
    _require_active(orchestrator)
    return {
        "phase": orchestrator.phase,
        "item": _item_out(orchestrator.get_next_item()),
    }


@app.post("/session/grade", response_model=GradeResponse)
async def submit_grade(
    req: GradeRequest,
    orchestrator: StudySessionOrchestrator = Depends(get_orchestrator),
):
    item = await orchestrator.submit_grade(req.item_id, req.grade, req.response_time_seconds)
    return GradeResponse(
        item=_item_out(item),
        phase=orchestrator.phase,
        progress=orchestrator.get_session_progress(),
        next_item=_item_out(orchestrator.get_next_item()),
    )


@app.post("/session/skip")
async def skip_item(
    req: SkipRequest,
    orchestrator: StudySessionOrchestrator = Depends(get_orchestrator),
):
    return {"next_item": _item_out(orchestrator.skip_item(req.item_id))}


@app.post("/session/end-drill")
async def end_drill(orchestrator: StudySessionOrchestrator = Depends(get_orchestrator)):
    return {"phase": orchestrator.end_drill()}


@app.post("/session/narrative")
async def generate_narrative(
    orchestrator: StudySessionOrchestrator = Depends(get_orchestrator),
):
    """
    Generate the review story. A null narrative means the phase was skipped.
    """
    narrative = await orchestrator.generate_narrative()
    return {
        "phase": orchestrator.phase,
        "narrative": asdict(narrative) if narrative is not None else None,
    }


@app.post("/session/bulk-grade")
async def bulk_grade(
    req: BulkGradeRequest,
    orchestrator: StudySessionOrchestrator = Depends(get_orchestrator),
):
    graded = await orchestrator.apply_bulk_grade(req.grade)
    return {
        "phase": orchestrator.phase,
        "graded": [_item_out(item) for item in graded],
    }


@app.get("/session/stats", response_model=SessionOut)
async def session_stats(orchestrator: StudySessionOrchestrator = Depends(get_orchestrator)):
    session = orchestrator.get_session_stats()
    if session is None:
        raise NoActiveSession()
    return SessionOut.model_validate(session)


@app.get("/session/progress")
async def session_progress(
    orchestrator: StudySessionOrchestrator = Depends(get_orchestrator),
):
    _require_active(orchestrator)
    return {
        "progress": orchestrator.get_session_progress(),
        "is_complete": orchestrator.is_session_complete(),
        "phase": orchestrator.phase,
    }


@app.post("/session/complete", response_model=SessionOut)
async def complete_session(
    orchestrator: StudySessionOrchestrator = Depends(get_orchestrator),
):
    session = await orchestrator.complete_session()
    return SessionOut.model_validate(session)
