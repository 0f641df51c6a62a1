"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It sets TESTING so settings never load a local .env file.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["TESTING"] = "true"
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from typing import Iterator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from virelle.adapters.rate_limit.in_memory import InMemoryRateLimiter
from virelle.core.app_factory import create_app


class FakeClock:
    """Deterministic millisecond clock for window arithmetic."""

    def __init__(self, start: int = 1_000_000) -> None:
        self.current = start

    def __call__(self) -> int:
        return self.current

    def advance(self, ms: int) -> None:
        self.current += ms


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def limiter(clock: FakeClock) -> Iterator[InMemoryRateLimiter]:
    rate_limiter = InMemoryRateLimiter(clock=clock)
    yield rate_limiter
    rate_limiter.stop()


@pytest.fixture
def ip_limiter(clock: FakeClock) -> Iterator[InMemoryRateLimiter]:
    rate_limiter = InMemoryRateLimiter(clock=clock)
    yield rate_limiter
    rate_limiter.stop()


@pytest.fixture
def app(limiter: InMemoryRateLimiter, ip_limiter: InMemoryRateLimiter) -> FastAPI:
    return create_app(limiter=limiter, ip_limiter=ip_limiter)


@pytest.fixture
def client(app: FastAPI) -> Iterator[TestClient]:
    # Entering the client runs the lifespan, which installs the limiter.
    with TestClient(app) as test_client:
        yield test_client
