"""Project configuration loading, including the demo data set."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List

from sqlalchemy.orm import Session

from .logging_config import get_logger
from .models import Project, ProjectTag, ProjectTask, TagValue

logger = get_logger(__name__)

DEMO_CONFIGURATION: List[Dict[str, Any]] = [
    {
        "code": "INTERNAL",
        "name": "Internal Project",
        "tasks": ["Development", "Code Review", "Meetings"],
        "tags": [
            {"name": "Environment", "values": ["Development", "Production"]},
            {"name": "Billable", "values": ["Yes", "No"]},
        ],
    },
    {
        "code": "CLIENT-A",
        "name": "Client A",
        "tasks": ["Bug Fixing", "Feature Work"],
        "tags": [
            {"name": "Priority", "values": ["Low", "Medium", "High"]},
        ],
    },
]


def _unique(values: Iterable[str]) -> List[str]:
    seen: set[str] = set()
    ordered: List[str] = []
    for value in values:
        text = str(value).strip()
        if not text or text in seen:
            continue
        seen.add(text)
        ordered.append(text)
    return ordered


def _upsert_tag(project: Project, spec: Dict[str, Any]) -> None:
    tag = next((item for item in project.tags if item.tag_name == spec["name"]), None)
    if tag is None:
        tag = ProjectTag(tag_name=spec["name"])
        project.tags.append(tag)
    tag.is_active = bool(spec.get("active", True))
    tag.is_required = bool(spec.get("required", False))
    existing = {item.value for item in tag.values}
    for value in _unique(spec.get("values", [])):
        if value not in existing:
            tag.values.append(TagValue(value=value))


def load_configuration(db: Session, data: Iterable[Dict[str, Any]]) -> List[Project]:
    """Create or update projects with their tasks, tags and allowed values.

    Tag values are de-duplicated per tag here; the entry engine assumes the
    allowed-value lists it reads are already unique.
    """
    projects: List[Project] = []
    for spec in data:
        code = spec["code"]
        if len(code) > 10:
            raise ValueError(f"Project code '{code}' exceeds 10 characters")
        project = db.get(Project, code)
        if project is None:
            project = Project(code=code, name=spec.get("name", code))
            db.add(project)
        else:
            project.name = spec.get("name", project.name)
        project.is_active = bool(spec.get("active", True))

        task_names = {task.task_name for task in project.tasks}
        for task in spec.get("tasks", []):
            name = task["name"] if isinstance(task, dict) else task
            active = task.get("active", True) if isinstance(task, dict) else True
            if name in task_names:
                for existing in project.tasks:
                    if existing.task_name == name:
                        existing.is_active = bool(active)
                continue
            project.tasks.append(ProjectTask(task_name=name, is_active=bool(active)))
            task_names.add(name)

        for tag_spec in spec.get("tags", []):
            _upsert_tag(project, tag_spec)
        projects.append(project)
    db.flush()
    logger.info("configuration.loaded", projects=[project.code for project in projects])
    return projects


def seed_demo_configuration(db: Session) -> List[Project]:
    return load_configuration(db, DEMO_CONFIGURATION)
