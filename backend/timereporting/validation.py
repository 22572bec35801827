"""Checks a proposed time entry against its project's configuration.

The validator never mutates state and never raises for expected problems:
every check returns :class:`FieldFailure` items collected in a
:class:`ValidationResult`, so it is safe to call speculatively.
"""

from __future__ import annotations

import datetime as dt
import math
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Tuple

from .stores import ConfigurationStore

TagPair = Tuple[str, str]


def _non_negative(hours: Optional[float]) -> bool:
    return hours is not None and math.isfinite(hours) and hours >= 0


@dataclass(frozen=True)
class FieldFailure:
    field: str
    message: str


@dataclass
class ValidationResult:
    failures: List[FieldFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    def add(self, field_name: str, message: str) -> None:
        self.failures.append(FieldFailure(field_name, message))

    def extend(self, other: "ValidationResult") -> None:
        self.failures.extend(other.failures)

    def first(self) -> Optional[FieldFailure]:
        return self.failures[0] if self.failures else None


@dataclass
class EntryDraft:
    project_code: str
    task_name: str
    standard_hours: float
    start_date: dt.date
    completion_date: dt.date
    overtime_hours: float = 0.0
    tags: Sequence[TagPair] = ()


class EntryValidator:
    def __init__(self, config: ConfigurationStore, *, enforce_required_tags: bool = False) -> None:
        self.config = config
        self.enforce_required_tags = enforce_required_tags

    def validate_project(self, project_code: str) -> ValidationResult:
        result = ValidationResult()
        project = self.config.get_project(project_code)
        if project is None:
            result.add("projectCode", f"Project '{project_code}' does not exist")
        elif not project.is_active:
            result.add("projectCode", f"Project '{project_code}' is inactive")
        return result

    def validate_task(self, project_code: str, task_name: str) -> ValidationResult:
        result = ValidationResult()
        task = self.config.get_task(project_code, task_name)
        if task is None or not task.is_active:
            result.add("task", f"Task '{task_name}' is not available for project '{project_code}'")
        return result

    @staticmethod
    def validate_hours(standard_hours: float, overtime_hours: float) -> ValidationResult:
        result = ValidationResult()
        if not _non_negative(standard_hours):
            result.add("standardHours", "StandardHours must be greater than or equal to 0")
        if not _non_negative(overtime_hours):
            result.add("overtimeHours", "OvertimeHours must be greater than or equal to 0")
        return result

    @staticmethod
    def validate_date_range(start_date: dt.date, completion_date: dt.date) -> ValidationResult:
        result = ValidationResult()
        if start_date > completion_date:
            result.add("startDate", "StartDate must be less than or equal to CompletionDate")
        return result

    def validate_tags(self, project_code: str, tags: Iterable[TagPair]) -> ValidationResult:
        result = ValidationResult()
        seen: set[str] = set()
        supplied = list(tags)
        for name, value in supplied:
            if name in seen:
                result.add(
                    "tags",
                    f"Tag '{name}' is supplied more than once. Only one value per tag is allowed",
                )
                continue
            seen.add(name)
            project_tag = self.config.get_tag(project_code, name)
            if project_tag is None:
                result.add("tags", f"Tag '{name}' is not configured for project '{project_code}'")
                continue
            if not project_tag.is_active:
                result.add("tags", f"Tag '{name}' is inactive for project '{project_code}'")
                continue
            if project_tag.find_value(value) is None:
                allowed = ", ".join(project_tag.allowed_values)
                result.add(
                    "tags",
                    f"Value '{value}' is not allowed for tag '{name}'. Allowed values: {allowed}",
                )
        if self.enforce_required_tags:
            for project_tag in self.config.list_tags(project_code):
                if project_tag.is_active and project_tag.is_required and project_tag.tag_name not in seen:
                    result.add(
                        "tags",
                        f"Tag '{project_tag.tag_name}' is required for project '{project_code}'",
                    )
        return result

    def validate_placement(self, project_code: str, task_name: str) -> ValidationResult:
        result = self.validate_project(project_code)
        if result.ok:
            result.extend(self.validate_task(project_code, task_name))
        return result

    def validate(self, draft: EntryDraft) -> ValidationResult:
        result = self.validate_project(draft.project_code)
        project_ok = result.ok
        if project_ok:
            result.extend(self.validate_task(draft.project_code, draft.task_name))
        result.extend(self.validate_hours(draft.standard_hours, draft.overtime_hours))
        result.extend(self.validate_date_range(draft.start_date, draft.completion_date))
        if project_ok:
            result.extend(self.validate_tags(draft.project_code, draft.tags))
        return result
