# ABOUTME: Pytest hooks and shared fixtures. Sets SECRET_KEY and UTC cycle zone before app/config load.
# ABOUTME: Provides an in-memory SQLite engine and a get_session stand-in bound to it.

import os
from contextlib import contextmanager

import pytest
from dotenv import load_dotenv

# Loads GEMINI_API_KEY for the integration evals when present.
load_dotenv()

# Required by core.config before any test imports api.main.
os.environ.setdefault("SECRET_KEY", "test-secret-for-pytest")
os.environ["CYCLE_TIMEZONE"] = "UTC"

from sqlmodel import Session, SQLModel, create_engine  # noqa: E402
from sqlmodel.pool import StaticPool  # noqa: E402


@pytest.fixture
def in_memory_engine():
    """Engine for in-memory SQLite; one DB per test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    return engine


@pytest.fixture
def session(in_memory_engine):
    """Yield a session that uses the in-memory engine."""
    with Session(in_memory_engine) as session:
        yield session


@pytest.fixture
def fake_get_session(in_memory_engine):
    """Context manager that yields a session on the in-memory engine, shaped like core.database.get_session."""

    @contextmanager
    def _fake():
        with Session(in_memory_engine) as s:
            yield s

    return _fake


class FakeTimer:
    """Stand-in for threading.Timer; fire() runs the callback on demand."""

    def __init__(self, delay, fn, args=()):
        self.delay = delay
        self.fn = fn
        self.args = args
        self.daemon = False
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        self.fn(*self.args)


class FakeTimers:
    """Timer factory that remembers every timer it made."""

    def __init__(self):
        self.made = []

    def __call__(self, delay, fn, args=()):
        timer = FakeTimer(delay, fn, args)
        self.made.append(timer)
        return timer


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


@pytest.fixture
def timers():
    return FakeTimers()


@pytest.fixture
def clock():
    return FakeClock()
