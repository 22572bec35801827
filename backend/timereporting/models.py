from __future__ import annotations

import datetime as dt
import enum
import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def new_entry_id() -> str:
    return str(uuid.uuid4())


class TimeEntryStatus(str, enum.Enum):
    NOT_REPORTED = "NOT_REPORTED"
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    DECLINED = "DECLINED"


class Project(Base):
    __tablename__ = "projects"

    code = Column(String(10), primary_key=True)
    name = Column(String(200), nullable=False, unique=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    tasks = relationship(
        "ProjectTask",
        back_populates="project",
        cascade="all, delete-orphan",
        order_by="ProjectTask.id",
    )
    tags = relationship(
        "ProjectTag",
        back_populates="project",
        cascade="all, delete-orphan",
        order_by="ProjectTag.id",
    )


class ProjectTask(Base):
    __tablename__ = "project_tasks"
    __table_args__ = (UniqueConstraint("project_code", "task_name", name="uq_project_tasks_name"),)

    id = Column(Integer, primary_key=True)
    project_code = Column(String(10), ForeignKey("projects.code", ondelete="CASCADE"), nullable=False, index=True)
    task_name = Column(String(100), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    project = relationship("Project", back_populates="tasks")


class ProjectTag(Base):
    __tablename__ = "project_tags"
    __table_args__ = (UniqueConstraint("project_code", "tag_name", name="uq_project_tags_name"),)

    id = Column(Integer, primary_key=True)
    project_code = Column(String(10), ForeignKey("projects.code", ondelete="CASCADE"), nullable=False, index=True)
    tag_name = Column(String(20), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    is_required = Column(Boolean, nullable=False, default=False)

    project = relationship("Project", back_populates="tags")
    values = relationship(
        "TagValue",
        back_populates="project_tag",
        cascade="all, delete-orphan",
        order_by="TagValue.id",
    )

    @property
    def allowed_values(self) -> list[str]:
        return [item.value for item in self.values]

    def find_value(self, value: str) -> TagValue | None:
        for item in self.values:
            if item.value == value:
                return item
        return None


class TagValue(Base):
    __tablename__ = "tag_values"

    id = Column(Integer, primary_key=True)
    project_tag_id = Column(Integer, ForeignKey("project_tags.id", ondelete="CASCADE"), nullable=False, index=True)
    value = Column(String(100), nullable=False)

    project_tag = relationship("ProjectTag", back_populates="values")


class TimeEntry(Base):
    __tablename__ = "time_entries"
    __table_args__ = (
        CheckConstraint("standard_hours >= 0", name="ck_time_entries_standard_hours"),
        CheckConstraint("overtime_hours >= 0", name="ck_time_entries_overtime_hours"),
        CheckConstraint("start_date <= completion_date", name="ck_time_entries_date_range"),
    )

    id = Column(String(36), primary_key=True, default=new_entry_id)
    project_code = Column(String(10), ForeignKey("projects.code", ondelete="RESTRICT"), nullable=False, index=True)
    project_task_id = Column(Integer, ForeignKey("project_tasks.id", ondelete="RESTRICT"), nullable=False)
    issue_id = Column(String(30), nullable=True)
    standard_hours = Column(Numeric(10, 2, asdecimal=False), nullable=False)
    overtime_hours = Column(Numeric(10, 2, asdecimal=False), nullable=False, default=0)
    description = Column(Text, nullable=True)
    start_date = Column(Date, nullable=False, index=True)
    completion_date = Column(Date, nullable=False)
    status = Column(String(20), nullable=False, default=TimeEntryStatus.NOT_REPORTED.value, index=True)
    decline_comment = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    user_id = Column(String(100), nullable=True, index=True)
    user_email = Column(String(255), nullable=True)
    user_name = Column(String(255), nullable=True)

    project = relationship("Project")
    project_task = relationship("ProjectTask")
    tags = relationship(
        "TimeEntryTag",
        back_populates="time_entry",
        cascade="all, delete-orphan",
        order_by="TimeEntryTag.id",
    )

    @property
    def current_status(self) -> TimeEntryStatus:
        return TimeEntryStatus(self.status)

    @property
    def task_name(self) -> str:
        return self.project_task.task_name

    def tag_pairs(self) -> list[tuple[str, str]]:
        return [(tag.tag_value.project_tag.tag_name, tag.tag_value.value) for tag in self.tags]


class TimeEntryTag(Base):
    __tablename__ = "time_entry_tags"
    __table_args__ = (
        UniqueConstraint("time_entry_id", "project_tag_id", name="uq_time_entry_tags_tag"),
        UniqueConstraint("time_entry_id", "tag_value_id", name="uq_time_entry_tags_value"),
    )

    id = Column(Integer, primary_key=True)
    time_entry_id = Column(String(36), ForeignKey("time_entries.id", ondelete="CASCADE"), nullable=False, index=True)
    project_tag_id = Column(Integer, ForeignKey("project_tags.id"), nullable=False)
    tag_value_id = Column(Integer, ForeignKey("tag_values.id"), nullable=False)

    time_entry = relationship("TimeEntry", back_populates="tags")
    tag_value = relationship("TagValue")

    @property
    def name(self) -> str:
        return self.tag_value.project_tag.tag_name

    @property
    def value(self) -> str:
        return self.tag_value.value
