from __future__ import annotations

import os
from collections.abc import Generator
from pathlib import Path

import pytest

from fxlab.config import EngineSettings
from fxlab.core.events import Notification
from fxlab.core.surface import SimulatedSurface, build_demo_surface
from fxlab.engine import EffectsEngine, create_engine


@pytest.fixture(scope="session", autouse=True)
def _load_dotenv_for_tests() -> None:
    """Load repo .env for local runs (PyCharm/CLI).

    In CI, we *don't* auto-load `.env` by default so a developer's REDIS_URL
    never leaks into the hermetic test run.
    """

    # Opt-in locally with: FXLAB_LOAD_DOTENV_FOR_TESTS=1
    if os.environ.get("CI") and os.environ.get("FXLAB_LOAD_DOTENV_FOR_TESTS") != "1":
        return

    env_path = Path(__file__).resolve().parents[1] / ".env"
    if env_path.exists():
        from dotenv import load_dotenv

        load_dotenv(dotenv_path=env_path, override=False)


@pytest.fixture()
def surface() -> SimulatedSurface:
    return build_demo_surface()


@pytest.fixture()
def fast_settings() -> EngineSettings:
    # Smallest duration the config accepts keeps the timing tests quick.
    return EngineSettings(default_duration_ms=50)


@pytest.fixture()
def engine(surface: SimulatedSurface, fast_settings: EngineSettings) -> EffectsEngine:
    return create_engine(surface, settings=fast_settings)


@pytest.fixture()
def notes(engine: EffectsEngine) -> list[Notification]:
    """Every notification emitted after the fixture was requested."""

    seen: list[Notification] = []
    engine.bus.subscribe(seen.append)
    return seen


@pytest.fixture()
def client_and_redis(monkeypatch: pytest.MonkeyPatch):
    """FastAPI TestClient running a fresh engine, plus the fakeredis used by `/activity`."""

    import fakeredis
    from fastapi.testclient import TestClient

    from fxlab.api.deps import get_redis
    from fxlab.main import app

    monkeypatch.setenv("FXLAB_DEFAULT_DURATION_MS", "50")
    monkeypatch.delenv("REDIS_URL", raising=False)

    r = fakeredis.FakeRedis(decode_responses=True)

    def _override() -> Generator[fakeredis.FakeRedis, None, None]:
        yield r

    app.dependency_overrides[get_redis] = _override
    with TestClient(app) as c:
        yield c, r
    app.dependency_overrides.clear()
