"""Unit tests for settings helpers."""

from manual_kb.core.config import DatabaseSettings, LLMSettings, PipelineSettings, settings
from manual_kb.core.rate_limiter import FixedDelayRateLimiter
from manual_kb.pipeline.context import build_context


def test_database_url_gets_asyncpg_driver():
    db = DatabaseSettings(DATABASE_URL="postgres://user:pw@db:5432/kb?sslmode=require")

    assert db.connection_url == "postgresql+asyncpg://user:pw@db:5432/kb?ssl=require"


def test_asyncpg_url_is_unchanged():
    db = DatabaseSettings(DATABASE_URL="postgresql+asyncpg://user:pw@db/kb")

    assert db.connection_url == "postgresql+asyncpg://user:pw@db/kb"


def test_text_model_follows_provider():
    llm = LLMSettings(LLM_PROVIDER="gemini", GEMINI_MODEL="gemini-2.0-flash")

    assert llm.text_model == "gemini-2.0-flash"


def test_build_context_creates_independent_limiters():
    pipeline = PipelineSettings(RATE_LIMITER="fixed", COMPLETION_REQUEST_DELAY=1.0)

    first = build_context("doc-1", pipeline, "openai/gpt-4o-mini")
    second = build_context("doc-2", pipeline, "openai/gpt-4o-mini")

    assert isinstance(first.completion_limiter, FixedDelayRateLimiter)
    assert first.completion_limiter is not second.completion_limiter
    assert first.extraction_method == "llm:openai/gpt-4o-mini"
    assert first.term_ids == {} and first.term_ids is not second.term_ids
    assert first.page_number is None


def test_global_settings_defaults():
    assert settings.pipeline.chunk_size == 3000
    assert settings.embedding.dimension == 384
