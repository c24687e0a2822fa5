"""Process entry point and logging setup tests."""

import asyncio
import logging

import pytest

from livetourney.config import Settings
from livetourney.logging_config import configure_logging, get_logger
from livetourney.main import lifespan, serve
from livetourney.tournament.engine import create_runtime
from livetourney.tournament.repository import InMemoryTournamentRepository


class TestLogging:
    def test_configure_sets_root_level(self):
        configure_logging(log_level="WARNING", json_logs=True)

        root = logging.getLogger()
        assert root.level == logging.WARNING
        assert len(root.handlers) == 1
        assert logging.getLogger("redis").level == logging.WARNING

        configure_logging(log_level="INFO")
        get_logger(__name__).info("logging_configured", check=True)

    def test_production_rejects_debug(self):
        with pytest.raises(ValueError):
            Settings(_env_file=None, app_env="production", log_level="DEBUG")

    def test_production_forces_json(self):
        assert Settings(_env_file=None, app_env="production").json_logs is True

    def test_production_redis_requires_state_key(self):
        with pytest.raises(ValueError):
            Settings(_env_file=None, app_env="production", redis_url="redis://cache:6379/0")

        settings = Settings(
            _env_file=None,
            app_env="production",
            redis_url="redis://cache:6379/0",
            state_hmac_key="rotated-secret",
        )
        assert settings.state_hmac_key == "rotated-secret"

    def test_state_key_wired_into_repository(self, mock_redis):
        settings = Settings(_env_file=None, state_hmac_key="rotated-secret")

        runtime = create_runtime(settings, mock_redis)

        assert runtime.repository._hmac_key == b"rotated-secret"


class TestLifespan:
    @pytest.mark.asyncio
    async def test_in_memory_runtime_ticks(self):
        settings = Settings(_env_file=None, tick_interval_seconds=0.01)

        async with lifespan(settings) as runtime:
            assert isinstance(runtime.repository, InMemoryTournamentRepository)
            tournament = await runtime.create_tournament("Nightly")
            await asyncio.sleep(0.03)

        assert await runtime.repository.list_ids() == [tournament.tournament_id]

    @pytest.mark.asyncio
    async def test_serve_stops_on_event(self):
        settings = Settings(_env_file=None, tick_interval_seconds=0.01)
        stop = asyncio.Event()

        async def trigger():
            await asyncio.sleep(0.02)
            stop.set()

        await asyncio.gather(serve(settings, stop_event=stop), trigger())
        assert stop.is_set()
