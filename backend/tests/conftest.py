from __future__ import annotations

import datetime as dt
import os
from typing import Callable, Generator

os.environ.setdefault("TR_DATABASE_URL", "sqlite://")
os.environ.setdefault("TR_LOG_JSON", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from timereporting import models
from timereporting.activity import ActivityContext
from timereporting.config import settings
from timereporting.database import get_db
from timereporting.main import app
from timereporting.schemas import LogTimeRequest, TagInput
from timereporting.seed import seed_demo_configuration
from timereporting.services import create_entry


@pytest.fixture(scope="function")
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    models.Base.metadata.create_all(bind=engine)
    yield engine
    models.Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session(engine) -> Generator[Session, None, None]:
    SessionTesting = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    session = SessionTesting()
    seed_demo_configuration(session)
    session.commit()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def client(session: Session) -> Generator[TestClient, None, None]:
    def override_get_db():
        yield session

    app.dependency_overrides[get_db] = override_get_db
    app.state.activity = ActivityContext(settings)
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def sample_day() -> dt.date:
    return dt.date(2024, 1, 1)


@pytest.fixture()
def make_entry(session: Session, sample_day: dt.date) -> Callable[..., models.TimeEntry]:
    def _make(
        project_code: str = "INTERNAL",
        task: str = "Development",
        tags: list[tuple[str, str]] | None = None,
        status: models.TimeEntryStatus = models.TimeEntryStatus.NOT_REPORTED,
        **overrides,
    ) -> models.TimeEntry:
        payload = LogTimeRequest(
            project_code=project_code,
            task=task,
            standard_hours=overrides.pop("standard_hours", 8),
            start_date=overrides.pop("start_date", sample_day),
            completion_date=overrides.pop("completion_date", sample_day),
            tags=[TagInput(name=name, value=value) for name, value in (tags or [])],
            **overrides,
        )
        entry = create_entry(session, payload)
        if status is not models.TimeEntryStatus.NOT_REPORTED:
            force_status(session, entry, status)
        return entry

    return _make


def force_status(session: Session, entry: models.TimeEntry, status: models.TimeEntryStatus) -> None:
    entry.status = status.value
    if status is models.TimeEntryStatus.DECLINED and not entry.decline_comment:
        entry.decline_comment = "Please fix"
    session.commit()


@pytest.fixture()
def set_status(session: Session) -> Callable[[models.TimeEntry, models.TimeEntryStatus], None]:
    return lambda entry, status: force_status(session, entry, status)
