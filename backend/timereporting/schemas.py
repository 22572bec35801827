from __future__ import annotations

import datetime as dt
from typing import Annotated, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel

from .models import Project, ProjectTag, TimeEntry, TimeEntryStatus
from .workflow import can_edit

Hours = Annotated[float, Field(allow_inf_nan=False)]


def _serialize_datetime(value: dt.datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=dt.timezone.utc)
    else:
        value = value.astimezone(dt.timezone.utc)
    return value.isoformat()


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TagInput(ApiModel):
    name: str = Field(min_length=1)
    value: str = Field(min_length=1)

    def as_pair(self) -> Tuple[str, str]:
        return self.name.strip(), self.value.strip()


def tag_pairs(tags: Optional[List[TagInput]]) -> List[Tuple[str, str]]:
    return [tag.as_pair() for tag in tags or []]


class LogTimeRequest(ApiModel):
    project_code: str = Field(min_length=1, max_length=10)
    task: str = Field(min_length=1, max_length=100)
    issue_id: Optional[str] = Field(default=None, max_length=30)
    standard_hours: Hours
    overtime_hours: Hours = 0.0
    description: Optional[str] = None
    start_date: dt.date
    completion_date: dt.date
    tags: List[TagInput] = Field(default_factory=list)


class UpdateEntryRequest(ApiModel):
    issue_id: Optional[str] = Field(default=None, max_length=30)
    standard_hours: Optional[Hours] = None
    overtime_hours: Optional[Hours] = None
    description: Optional[str] = None
    start_date: Optional[dt.date] = None
    completion_date: Optional[dt.date] = None
    tags: Optional[List[TagInput]] = None


class ReplaceTagsRequest(ApiModel):
    tags: List[TagInput] = Field(default_factory=list)


class MoveEntryRequest(ApiModel):
    project_code: str = Field(min_length=1, max_length=10)
    task: str = Field(min_length=1, max_length=100)


class DeclineRequest(ApiModel):
    comment: str = ""


class TagResponse(ApiModel):
    name: str
    value: str


class TimeEntryResponse(ApiModel):
    id: str
    project_code: str
    task: str
    issue_id: Optional[str]
    standard_hours: float
    overtime_hours: float
    description: Optional[str]
    start_date: dt.date
    completion_date: dt.date
    status: TimeEntryStatus
    decline_comment: Optional[str]
    editable: bool
    created_at: dt.datetime
    updated_at: dt.datetime
    user_id: Optional[str] = None
    user_email: Optional[str] = None
    user_name: Optional[str] = None
    tags: List[TagResponse] = Field(default_factory=list)

    @field_serializer("created_at", "updated_at")
    def _serialize_timestamps(self, value: dt.datetime) -> str:
        return _serialize_datetime(value)

    @classmethod
    def from_entry(cls, entry: TimeEntry) -> "TimeEntryResponse":
        return cls(
            id=entry.id,
            project_code=entry.project_code,
            task=entry.task_name,
            issue_id=entry.issue_id,
            standard_hours=float(entry.standard_hours),
            overtime_hours=float(entry.overtime_hours or 0),
            description=entry.description,
            start_date=entry.start_date,
            completion_date=entry.completion_date,
            status=entry.current_status,
            decline_comment=entry.decline_comment,
            editable=can_edit(entry.current_status),
            created_at=entry.created_at,
            updated_at=entry.updated_at,
            user_id=entry.user_id,
            user_email=entry.user_email,
            user_name=entry.user_name,
            tags=[TagResponse(name=name, value=value) for name, value in entry.tag_pairs()],
        )


class DeleteResponse(ApiModel):
    id: str
    deleted: bool


class TaskResponse(ApiModel):
    task_name: str
    is_active: bool


class ProjectTagResponse(ApiModel):
    name: str
    is_active: bool
    is_required: bool
    allowed_values: List[str]

    @classmethod
    def from_tag(cls, tag: ProjectTag) -> "ProjectTagResponse":
        return cls(
            name=tag.tag_name,
            is_active=tag.is_active,
            is_required=tag.is_required,
            allowed_values=tag.allowed_values,
        )


class ProjectResponse(ApiModel):
    code: str
    name: str
    is_active: bool
    tasks: List[TaskResponse]
    tags: List[ProjectTagResponse]

    @classmethod
    def from_project(cls, project: Project) -> "ProjectResponse":
        return cls(
            code=project.code,
            name=project.name,
            is_active=project.is_active,
            tasks=[TaskResponse(task_name=task.task_name, is_active=task.is_active) for task in project.tasks],
            tags=[ProjectTagResponse.from_tag(tag) for tag in project.tags],
        )


class ErrorResponse(BaseModel):
    detail: str
    code: str
    field: Optional[str] = None


class SuggestionResponse(ApiModel):
    available: bool
    suggested_hours: Optional[float] = None
    idle_minutes: float = 0.0
    minutes_since_last_entry: Optional[float] = None
    proposal: Optional[LogTimeRequest] = None
