"""
Pytest configuration og shared fixtures.
"""

import pytest

from file_retrieval.config import Settings
from file_retrieval.dependencies import get_settings, reset_singletons
from file_retrieval.models import Configuration, FtpSettings, ProtocolKind


@pytest.fixture(autouse=True)
def clean_singletons():
    """Automatically reset singletons before hver test."""
    reset_singletons()
    get_settings.cache_clear()
    yield
    reset_singletons()
    get_settings.cache_clear()


@pytest.fixture
def settings() -> Settings:
    """Settings uden ventetid: retries sker med det samme."""
    return Settings(
        _env_file=None,
        scheduler_tick_seconds=60,
        scheduler_startup_delay_seconds=0,
        retry_delays_seconds=[0.0, 0.0, 0.0],
        adapter_call_timeout_seconds=5.0,
    )


def make_configuration(**overrides) -> Configuration:
    """Gyldig FTP configuration; felter kan overskrives pr. test."""
    values = dict(
        client_id="client-a",
        name="Daily ACH",
        protocol=ProtocolKind.FTP,
        protocol_settings=FtpSettings(server="ftp.example.com", username="intake", password_secret="ftp-password"),
        file_path_pattern="/inbound/{yyyy}/{mm}",
        filename_pattern="ach_{yyyy}{mm}{dd}.csv",
        cron_expression="0 8 * * *",
        timezone="UTC",
    )
    values.update(overrides)
    return Configuration(**values)


@pytest.fixture
def configuration_factory():
    return make_configuration
