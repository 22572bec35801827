from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from .models import Project, ProjectTag, ProjectTask, TagValue, TimeEntry, TimeEntryStatus, TimeEntryTag


def _entry_options():
    return (
        selectinload(TimeEntry.project_task),
        selectinload(TimeEntry.tags)
        .selectinload(TimeEntryTag.tag_value)
        .selectinload(TagValue.project_tag),
    )


class ConfigurationStore:
    """Read-only access to projects and their task/tag configuration."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def get_project(self, code: str) -> Optional[Project]:
        return self.db.get(Project, code)

    def get_task(self, project_code: str, task_name: str) -> Optional[ProjectTask]:
        stmt = select(ProjectTask).where(
            ProjectTask.project_code == project_code,
            ProjectTask.task_name == task_name,
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def get_tag(self, project_code: str, tag_name: str) -> Optional[ProjectTag]:
        stmt = (
            select(ProjectTag)
            .options(selectinload(ProjectTag.values))
            .where(ProjectTag.project_code == project_code, ProjectTag.tag_name == tag_name)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def list_tags(self, project_code: str) -> List[ProjectTag]:
        stmt = (
            select(ProjectTag)
            .options(selectinload(ProjectTag.values))
            .where(ProjectTag.project_code == project_code)
            .order_by(ProjectTag.id)
        )
        return list(self.db.execute(stmt).scalars())

    def list_projects(self, active_only: bool = True) -> List[Project]:
        stmt = select(Project).options(
            selectinload(Project.tasks),
            selectinload(Project.tags).selectinload(ProjectTag.values),
        )
        if active_only:
            stmt = stmt.where(Project.is_active.is_(True))
        return list(self.db.execute(stmt.order_by(Project.code)).scalars())


@dataclass
class EntryFilters:
    project_code: Optional[str] = None
    status: Optional[TimeEntryStatus] = None
    user_id: Optional[str] = None
    from_date: Optional[dt.date] = None
    to_date: Optional[dt.date] = None
    limit: int = 50
    offset: int = 0


class EntryStore:
    """Durable storage for time entries; every call runs in the caller's transaction."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def get(self, entry_id: str, *, for_update: bool = False) -> Optional[TimeEntry]:
        stmt = select(TimeEntry).options(*_entry_options()).where(TimeEntry.id == entry_id)
        if for_update:
            stmt = stmt.with_for_update()
        return self.db.execute(stmt).scalar_one_or_none()

    def create(self, entry: TimeEntry) -> TimeEntry:
        self.db.add(entry)
        self.db.flush()
        return entry

    def update(self, entry_id: str, entry: TimeEntry) -> TimeEntry:
        if entry.id != entry_id:
            raise ValueError(f"Entry id mismatch: {entry.id!r} != {entry_id!r}")
        self.db.add(entry)
        self.db.flush()
        return entry

    def delete(self, entry_id: str) -> bool:
        entry = self.db.get(TimeEntry, entry_id)
        if entry is None:
            return False
        self.db.delete(entry)
        self.db.flush()
        return True

    def list(self, filters: EntryFilters) -> List[TimeEntry]:
        stmt = select(TimeEntry).options(*_entry_options())
        if filters.project_code:
            stmt = stmt.where(TimeEntry.project_code == filters.project_code)
        if filters.status is not None:
            stmt = stmt.where(TimeEntry.status == TimeEntryStatus(filters.status).value)
        if filters.user_id:
            stmt = stmt.where(TimeEntry.user_id == filters.user_id)
        if filters.from_date:
            stmt = stmt.where(TimeEntry.start_date >= filters.from_date)
        if filters.to_date:
            stmt = stmt.where(TimeEntry.completion_date <= filters.to_date)
        stmt = stmt.order_by(TimeEntry.start_date.desc(), TimeEntry.created_at.desc())
        stmt = stmt.offset(filters.offset).limit(filters.limit)
        return list(self.db.execute(stmt).scalars())
