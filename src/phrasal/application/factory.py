"""
Service Factory
Centralizes the wiring of adapters into the orchestrator and stats service.
"""

import logging

from phrasal.application.config import AppConfig
from phrasal.application.session import StudySessionOrchestrator
from phrasal.application.stats import SrsStatsService
from phrasal.infrastructure.adapters.openai_content import OpenAIContentAdapter
from phrasal.infrastructure.adapters.sql_store import SqlStore

logger = logging.getLogger(__name__)


def get_store(config: AppConfig) -> SqlStore:
    """
    Returns a SqlStore for the configured database, with tables created.
    """
    store = SqlStore(config.database_url)
    store.init_db()
    return store


def get_content_adapter(config: AppConfig) -> OpenAIContentAdapter | None:
    """
    Returns the content adapter, or None when no API key is configured.
    """
    if not config.content_enabled:
        logger.debug("No LLM API key configured; drills, narratives and speech disabled")
        return None

    return OpenAIContentAdapter(
        base_url=config.llm_base_url,
        api_key=config.llm_api_key,
        model=config.llm_model,
        speech_model=config.speech_model,
        voice=config.speech_voice,
        timeout=config.request_timeout,
        max_retries=config.max_retries,
        backoff_seconds=config.backoff_seconds,
    )


def get_orchestrator(
    config: AppConfig,
    store: SqlStore | None = None,
    content: OpenAIContentAdapter | None = None,
) -> StudySessionOrchestrator:
    store = store or get_store(config)
    if content is None:
        content = get_content_adapter(config)

    return StudySessionOrchestrator(
        due_items=store,
        review_writer=store,
        session_recorder=store,
        narrative_generator=content,
        drill_generator=content,
        speech_synthesizer=content,
    )


def get_stats_service(config: AppConfig, store: SqlStore | None = None) -> SrsStatsService:
    return SrsStatsService(store or get_store(config))
