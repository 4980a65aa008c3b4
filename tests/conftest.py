"""Test configuration and fixtures for APISentry."""

import tempfile
from collections.abc import Generator
from pathlib import Path

import pytest

from apisentry.modules.findings import Severity, Vulnerability
from apisentry.modules.openapi import EndpointDescriptor, EndpointModel, ParameterSpec
from apisentry.modules.ratelimit import RateLimiter

BASE_URL = "http://api.test"


class FakeSleep:
    """Records requested sleeps instead of waiting."""

    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def endpoint(
    path: str,
    method: str = "GET",
    params: list[tuple[str, str]] | None = None,
    **kwargs,
) -> EndpointDescriptor:
    """Build an EndpointDescriptor from (name, location) pairs."""
    return EndpointDescriptor(
        path=path,
        method=method,
        parameters=tuple(ParameterSpec(name=name, location=loc) for name, loc in params or []),
        **kwargs,
    )


def model(*endpoints: EndpointDescriptor, **kwargs) -> EndpointModel:
    return EndpointModel(endpoints=tuple(endpoints), **kwargs)


def finding(
    category: str = "API1:2023",
    severity: Severity = Severity.HIGH,
    endpoint_path: str = "/items/{id}",
    **kwargs,
) -> Vulnerability:
    return Vulnerability(
        category=category,
        title=kwargs.pop("title", "Test finding"),
        description=kwargs.pop("description", "A test finding"),
        severity=severity,
        endpoint=endpoint_path,
        method=kwargs.pop("method", "GET"),
        **kwargs,
    )


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch: pytest.MonkeyPatch, temp_dir: Path) -> Path:
    """Point home and the working directory at an empty temp dir and clear APISENTRY_* vars."""
    import os

    for key in list(os.environ):
        if key.startswith("APISENTRY_"):
            monkeypatch.delenv(key, raising=False)
    home = temp_dir / "home"
    home.mkdir()
    monkeypatch.setattr(Path, "home", lambda: home)
    monkeypatch.chdir(temp_dir)
    return home


@pytest.fixture
def db_path(temp_dir: Path) -> Path:
    """Return a database path inside the temp directory."""
    return temp_dir / "data" / "apisentry.db"


@pytest.fixture
def fake_sleep() -> FakeSleep:
    return FakeSleep()


@pytest.fixture
def fast_limiter(fake_sleep: FakeSleep) -> RateLimiter:
    """Limiter with no pacing and instant backoff sleeps."""
    return RateLimiter(base_delay_ms=0, max_retries=2, sleep=fake_sleep)
