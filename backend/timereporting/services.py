from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import List, Optional, Sequence

from sqlalchemy.orm import Session

from .config import Settings, settings as default_settings
from .database import unit_of_work
from .errors import BusinessRuleError, ValidationError, entry_not_found
from .logging_config import get_logger
from .models import Project, TimeEntry, TimeEntryStatus, TimeEntryTag
from .schemas import LogTimeRequest, TagInput, UpdateEntryRequest, tag_pairs
from .stores import ConfigurationStore, EntryFilters, EntryStore
from .validation import EntryDraft, EntryValidator, TagPair, ValidationResult
from .workflow import Operation, evaluate

logger = get_logger(__name__)

UTC = dt.timezone.utc


@dataclass(frozen=True)
class UserInfo:
    user_id: Optional[str] = None
    email: Optional[str] = None
    name: Optional[str] = None


def _now() -> dt.datetime:
    return dt.datetime.now(UTC)


def _validator(db: Session, config: Optional[Settings] = None) -> EntryValidator:
    active = config or default_settings
    return EntryValidator(ConfigurationStore(db), enforce_required_tags=active.enforce_required_tags)


def _raise_on_failure(result: ValidationResult, operation: str, entry_id: Optional[str] = None) -> None:
    failure = result.first()
    if failure is None:
        return
    logger.info(
        "time_entry.rejected",
        operation=operation,
        entry_id=entry_id,
        field=failure.field,
        reason=failure.message,
        failures=len(result.failures),
    )
    raise ValidationError(failure.message, failure.field)


def _load_entry(store: EntryStore, entry_id: str) -> TimeEntry:
    entry = store.get(entry_id, for_update=True)
    if entry is None:
        raise entry_not_found(entry_id)
    return entry


def _guard(entry: TimeEntry, operation: Operation) -> TimeEntryStatus:
    decision = evaluate(entry.status, operation)
    if not decision.allowed:
        logger.info(
            "time_entry.rejected",
            operation=operation.value,
            entry_id=entry.id,
            status=entry.status,
            reason=decision.reason,
        )
        raise BusinessRuleError(decision.reason or f"Operation '{operation.value}' is not allowed")
    return decision.resulting_status or TimeEntryStatus(entry.status)


def _attach_tags(db: Session, entry: TimeEntry, project_code: str, tags: Sequence[TagPair]) -> None:
    config = ConfigurationStore(db)
    for name, value in tags:
        project_tag = config.get_tag(project_code, name)
        tag_value = project_tag.find_value(value) if project_tag is not None else None
        if tag_value is None:
            # Only reachable when configuration changed between validation and write
            raise ValidationError(f"Value '{value}' is not allowed for tag '{name}'", "tags")
        entry.tags.append(TimeEntryTag(tag_value=tag_value, project_tag_id=project_tag.id))


def _replace_tags(db: Session, entry: TimeEntry, project_code: str, tags: Sequence[TagPair]) -> None:
    entry.tags.clear()
    # Flush removals first so unique (entry, tag) rows can be re-added
    db.flush()
    _attach_tags(db, entry, project_code, tags)


def get_entry(db: Session, entry_id: str) -> Optional[TimeEntry]:
    return EntryStore(db).get(entry_id)


def list_entries(db: Session, filters: EntryFilters, config: Optional[Settings] = None) -> List[TimeEntry]:
    active = config or default_settings
    limit = filters.limit or active.default_page_size
    filters.limit = max(1, min(limit, active.max_page_size))
    filters.offset = max(0, filters.offset)
    return EntryStore(db).list(filters)


def list_projects(db: Session, active_only: bool = True) -> List[Project]:
    return ConfigurationStore(db).list_projects(active_only=active_only)


def create_entry(
    db: Session,
    payload: LogTimeRequest,
    user: Optional[UserInfo] = None,
    config: Optional[Settings] = None,
) -> TimeEntry:
    user = user or UserInfo()
    tags = tag_pairs(payload.tags)
    with unit_of_work(db):
        draft = EntryDraft(
            project_code=payload.project_code,
            task_name=payload.task,
            standard_hours=payload.standard_hours,
            overtime_hours=payload.overtime_hours,
            start_date=payload.start_date,
            completion_date=payload.completion_date,
            tags=tags,
        )
        _raise_on_failure(_validator(db, config).validate(draft), "create")

        task = ConfigurationStore(db).get_task(payload.project_code, payload.task)
        now = _now()
        entry = TimeEntry(
            project_code=payload.project_code,
            project_task=task,
            issue_id=payload.issue_id,
            standard_hours=payload.standard_hours,
            overtime_hours=payload.overtime_hours,
            description=payload.description,
            start_date=payload.start_date,
            completion_date=payload.completion_date,
            status=TimeEntryStatus.NOT_REPORTED.value,
            created_at=now,
            updated_at=now,
            user_id=user.user_id,
            user_email=user.email,
            user_name=user.name,
        )
        _attach_tags(db, entry, payload.project_code, tags)
        EntryStore(db).create(entry)
    logger.info(
        "time_entry.created",
        entry_id=entry.id,
        project_code=entry.project_code,
        task=payload.task,
        tags=len(tags),
    )
    return entry


def update_entry(
    db: Session,
    entry_id: str,
    changes: UpdateEntryRequest,
    config: Optional[Settings] = None,
) -> TimeEntry:
    supplied = changes.model_dump(exclude_none=True)
    store = EntryStore(db)
    with unit_of_work(db):
        entry = _load_entry(store, entry_id)
        _guard(entry, Operation.UPDATE)

        standard_hours = supplied.get("standard_hours", entry.standard_hours)
        overtime_hours = supplied.get("overtime_hours", entry.overtime_hours)
        start_date = supplied.get("start_date", entry.start_date)
        completion_date = supplied.get("completion_date", entry.completion_date)
        tags = tag_pairs(changes.tags) if changes.tags is not None else None

        validator = _validator(db, config)
        result = validator.validate_hours(standard_hours, overtime_hours)
        result.extend(validator.validate_date_range(start_date, completion_date))
        if tags is not None:
            result.extend(validator.validate_tags(entry.project_code, tags))
        _raise_on_failure(result, Operation.UPDATE.value, entry_id)

        entry.standard_hours = standard_hours
        entry.overtime_hours = overtime_hours
        entry.start_date = start_date
        entry.completion_date = completion_date
        if "issue_id" in supplied:
            entry.issue_id = supplied["issue_id"]
        if "description" in supplied:
            entry.description = supplied["description"]
        if tags is not None:
            _replace_tags(db, entry, entry.project_code, tags)
        entry.updated_at = _now()
        store.update(entry_id, entry)
    logger.info("time_entry.updated", entry_id=entry_id, fields=sorted(supplied))
    return entry


def replace_entry_tags(
    db: Session,
    entry_id: str,
    tags: Optional[List[TagInput]],
    config: Optional[Settings] = None,
) -> TimeEntry:
    pairs = tag_pairs(tags)
    store = EntryStore(db)
    with unit_of_work(db):
        entry = _load_entry(store, entry_id)
        _guard(entry, Operation.REPLACE_TAGS)
        _raise_on_failure(
            _validator(db, config).validate_tags(entry.project_code, pairs),
            Operation.REPLACE_TAGS.value,
            entry_id,
        )
        _replace_tags(db, entry, entry.project_code, pairs)
        entry.updated_at = _now()
        store.update(entry_id, entry)
    logger.info("time_entry.tags_replaced", entry_id=entry_id, tags=len(pairs))
    return entry


def move_entry(
    db: Session,
    entry_id: str,
    project_code: str,
    task_name: str,
    config: Optional[Settings] = None,
) -> TimeEntry:
    store = EntryStore(db)
    with unit_of_work(db):
        entry = _load_entry(store, entry_id)
        _guard(entry, Operation.MOVE)
        _raise_on_failure(
            _validator(db, config).validate_placement(project_code, task_name),
            Operation.MOVE.value,
            entry_id,
        )
        previous_project = entry.project_code
        config_store = ConfigurationStore(db)
        task = config_store.get_task(project_code, task_name)
        if previous_project != project_code:
            # Tags are project-scoped and cannot carry over
            entry.tags.clear()
        entry.project = config_store.get_project(project_code)
        entry.project_code = project_code
        entry.project_task = task
        entry.updated_at = _now()
        store.update(entry_id, entry)
    logger.info(
        "time_entry.moved",
        entry_id=entry_id,
        from_project=previous_project,
        to_project=project_code,
        task=task_name,
    )
    return entry


def delete_entry(db: Session, entry_id: str) -> bool:
    store = EntryStore(db)
    with unit_of_work(db):
        entry = _load_entry(store, entry_id)
        _guard(entry, Operation.DELETE)
        deleted = store.delete(entry_id)
    logger.info("time_entry.deleted", entry_id=entry_id)
    return deleted


def submit_entry(db: Session, entry_id: str, config: Optional[Settings] = None) -> TimeEntry:
    active = config or default_settings
    store = EntryStore(db)
    with unit_of_work(db):
        entry = _load_entry(store, entry_id)
        previous = entry.status
        entry.status = _guard(entry, Operation.SUBMIT).value
        if active.clear_decline_comment_on_submit:
            entry.decline_comment = None
        entry.updated_at = _now()
        store.update(entry_id, entry)
    logger.info("time_entry.submitted", entry_id=entry_id, previous_status=previous)
    return entry


def approve_entry(db: Session, entry_id: str) -> TimeEntry:
    store = EntryStore(db)
    with unit_of_work(db):
        entry = _load_entry(store, entry_id)
        entry.status = _guard(entry, Operation.APPROVE).value
        entry.updated_at = _now()
        store.update(entry_id, entry)
    logger.info("time_entry.approved", entry_id=entry_id)
    return entry


def decline_entry(db: Session, entry_id: str, comment: Optional[str]) -> TimeEntry:
    text = (comment or "").strip()
    if not text:
        logger.info("time_entry.rejected", operation=Operation.DECLINE.value, entry_id=entry_id, field="comment")
        raise ValidationError("Decline comment is required", "comment")
    store = EntryStore(db)
    with unit_of_work(db):
        entry = _load_entry(store, entry_id)
        entry.status = _guard(entry, Operation.DECLINE).value
        entry.decline_comment = text
        entry.updated_at = _now()
        store.update(entry_id, entry)
    logger.info("time_entry.declined", entry_id=entry_id)
    return entry
