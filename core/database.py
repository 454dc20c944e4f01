# ABOUTME: SQLModel tables (users, goals, tactics, measurements, vision, cycles) and SQLite session factory.
# ABOUTME: Every data table is partitioned by user_id; get_session yields a session, init_db creates the schema.

from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID, uuid4

from sqlalchemy import JSON, Column, UniqueConstraint
from sqlmodel import Field, Session, SQLModel, create_engine

from core.config import TRACKER_DB_PATH


def new_id() -> str:
    return uuid4().hex


class User(SQLModel, table=True):
    """Account for authentication. Passwords stored as hashes only."""

    __tablename__ = "users"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    email: str = Field(unique=True, index=True)
    name: str = ""
    password_hash: str = Field()
    email_confirmed_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class Goal(SQLModel, table=True):
    """Top-level outcome; measurement configs are embedded as a JSON array."""

    __tablename__ = "goals"

    id: str = Field(default_factory=new_id, primary_key=True)
    user_id: UUID = Field(foreign_key="users.id", index=True)
    name: str = ""
    description: str = ""
    measurement_configs: list[dict[str, Any]] = Field(
        default_factory=list, sa_column=Column(JSON, nullable=False)
    )
    position: int = 0


class Tactic(SQLModel, table=True):
    """Recurring action serving a goal. completions is keyed by week; value shape follows type."""

    __tablename__ = "tactics"

    id: str = Field(default_factory=new_id, primary_key=True)
    user_id: UUID = Field(foreign_key="users.id", index=True)
    goal_id: str = Field(foreign_key="goals.id", index=True)
    name: str = ""
    type: str = "weekly"
    assigned_weeks: list[int] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    completions: dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    position: int = 0


class Measurement(SQLModel, table=True):
    """One KPI sample; at most one per (user, config, week)."""

    __tablename__ = "measurements"
    __table_args__ = (UniqueConstraint("user_id", "config_id", "week_num"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: UUID = Field(foreign_key="users.id", index=True)
    goal_id: str = Field(index=True)
    config_id: str
    week_num: int
    value: float


class Vision(SQLModel, table=True):
    __tablename__ = "vision"

    user_id: UUID = Field(foreign_key="users.id", primary_key=True)
    long_term: str = ""
    short_term: str = ""


class Cycle(SQLModel, table=True):
    """The user's 12-week cycle anchor. start_date is an ISO timestamp of a Monday at local midnight."""

    __tablename__ = "cycles"

    id: str = Field(default_factory=new_id, primary_key=True)
    user_id: UUID = Field(foreign_key="users.id", unique=True, index=True)
    start_date: str
    current_week: int = 1


_engine = create_engine(
    f"sqlite:///{TRACKER_DB_PATH}",
    connect_args={"check_same_thread": False},
)


def init_db() -> None:
    """Create all tables if they do not exist."""
    SQLModel.metadata.create_all(_engine)


@contextmanager
def get_session():
    """Yield an SQLite session for the default engine."""
    init_db()
    with Session(_engine) as session:
        yield session
