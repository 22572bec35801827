from __future__ import annotations

import datetime as dt
from typing import Optional

from fastapi import Depends, FastAPI, Header, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import models
from .activity import ActivityContext
from .config import settings
from .database import db_session, engine, get_db
from .errors import BusinessRuleError, InfrastructureError, TimeReportingError, ValidationError
from .logging_config import configure_logging, get_logger
from .middleware import RequestContextMiddleware
from .models import TimeEntryStatus
from .schemas import (
    DeclineRequest,
    DeleteResponse,
    ErrorResponse,
    LogTimeRequest,
    MoveEntryRequest,
    ProjectResponse,
    ReplaceTagsRequest,
    SuggestionResponse,
    TimeEntryResponse,
    UpdateEntryRequest,
)
from .seed import seed_demo_configuration
from .services import (
    UserInfo,
    approve_entry,
    create_entry,
    decline_entry,
    delete_entry,
    get_entry,
    list_entries,
    list_projects,
    move_entry,
    replace_entry_tags,
    submit_entry,
    update_entry,
)
from .stores import EntryFilters

configure_logging(settings.log_level, settings.log_json)
logger = get_logger(__name__)

models.Base.metadata.create_all(bind=engine)

if settings.seed_demo_data:
    with db_session() as session:
        seed_demo_configuration(session)

app = FastAPI(title=settings.app_name)
app.state.activity = ActivityContext(settings)
app.add_middleware(RequestContextMiddleware)

ERROR_STATUS = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    BusinessRuleError: status.HTTP_409_CONFLICT,
    InfrastructureError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def _error_response(exc: TimeReportingError) -> JSONResponse:
    status_code = ERROR_STATUS.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
    body = ErrorResponse(detail=exc.message, code=exc.code, field=getattr(exc, "field", None))
    headers = None
    if isinstance(exc, InfrastructureError) and exc.retryable:
        headers = {"Retry-After": "1"}
    return JSONResponse(body.model_dump(), status_code=status_code, headers=headers)


@app.exception_handler(TimeReportingError)
async def handle_engine_error(request: Request, exc: TimeReportingError) -> JSONResponse:
    return _error_response(exc)


@app.exception_handler(RequestValidationError)
async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    error = exc.errors()[0]
    location = ("body", "query", "path", "header")
    field_names = [part for part in error.get("loc", ()) if isinstance(part, str) and part not in location]
    message = error.get("msg", "Invalid request")
    return _error_response(ValidationError(message, field_names[-1] if field_names else None))


@app.exception_handler(SQLAlchemyError)
async def handle_store_error(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("store.failure", error=str(exc))
    return _error_response(InfrastructureError("Entry store is unavailable"))


@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("request.failed")
    body = ErrorResponse(detail="An unexpected error occurred", code="INTERNAL_ERROR")
    return JSONResponse(body.model_dump(), status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


def _activity(request: Request) -> ActivityContext:
    return request.app.state.activity


def current_user(
    user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
    email: Optional[str] = Header(default=None, alias="X-User-Email"),
    name: Optional[str] = Header(default=None, alias="X-User-Name"),
) -> UserInfo:
    return UserInfo(user_id=user_id, email=email, name=name)


@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/projects", response_model=list[ProjectResponse])
def get_projects(active_only: bool = True, db: Session = Depends(get_db)) -> list[ProjectResponse]:
    return [ProjectResponse.from_project(project) for project in list_projects(db, active_only)]


@app.get("/entries", response_model=list[TimeEntryResponse])
def get_entries(
    project_code: Optional[str] = None,
    entry_status: Optional[TimeEntryStatus] = Query(default=None, alias="status"),
    user_id: Optional[str] = None,
    from_date: Optional[dt.date] = None,
    to_date: Optional[dt.date] = None,
    limit: Optional[int] = Query(default=None, ge=1),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
) -> list[TimeEntryResponse]:
    if from_date and to_date and to_date < from_date:
        raise ValidationError("Invalid range: toDate is before fromDate", "toDate")
    filters = EntryFilters(
        project_code=project_code,
        status=entry_status,
        user_id=user_id,
        from_date=from_date,
        to_date=to_date,
        limit=limit or settings.default_page_size,
        offset=offset,
    )
    return [TimeEntryResponse.from_entry(entry) for entry in list_entries(db, filters)]


@app.get(
    "/entries/{entry_id}",
    response_model=TimeEntryResponse,
    responses={status.HTTP_404_NOT_FOUND: {"model": ErrorResponse}},
)
def get_time_entry(entry_id: str, db: Session = Depends(get_db)):
    entry = get_entry(db, entry_id)
    if entry is None:
        body = ErrorResponse(detail=f"Time entry with ID '{entry_id}' not found", code="NOT_FOUND", field="id")
        return JSONResponse(body.model_dump(), status_code=status.HTTP_404_NOT_FOUND)
    return TimeEntryResponse.from_entry(entry)


@app.post("/entries", response_model=TimeEntryResponse, status_code=status.HTTP_201_CREATED)
def log_time(
    payload: LogTimeRequest,
    request: Request,
    user: UserInfo = Depends(current_user),
    db: Session = Depends(get_db),
) -> TimeEntryResponse:
    entry = create_entry(db, payload, user)
    _activity(request).record_entry(payload.project_code, payload.task, entry.id)
    return TimeEntryResponse.from_entry(entry)


@app.patch("/entries/{entry_id}", response_model=TimeEntryResponse)
def update_time_entry(
    entry_id: str,
    payload: UpdateEntryRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> TimeEntryResponse:
    entry = update_entry(db, entry_id, payload)
    _activity(request).record_activity()
    return TimeEntryResponse.from_entry(entry)


@app.put("/entries/{entry_id}/tags", response_model=TimeEntryResponse)
def update_time_entry_tags(
    entry_id: str,
    payload: ReplaceTagsRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> TimeEntryResponse:
    entry = replace_entry_tags(db, entry_id, payload.tags)
    _activity(request).record_activity()
    return TimeEntryResponse.from_entry(entry)


@app.post("/entries/{entry_id}/move", response_model=TimeEntryResponse)
def move_time_entry(
    entry_id: str,
    payload: MoveEntryRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> TimeEntryResponse:
    entry = move_entry(db, entry_id, payload.project_code, payload.task)
    _activity(request).record_activity()
    return TimeEntryResponse.from_entry(entry)


@app.delete("/entries/{entry_id}", response_model=DeleteResponse)
def delete_time_entry(entry_id: str, request: Request, db: Session = Depends(get_db)) -> DeleteResponse:
    deleted = delete_entry(db, entry_id)
    _activity(request).record_activity()
    return DeleteResponse(id=entry_id, deleted=deleted)


@app.post("/entries/{entry_id}/submit", response_model=TimeEntryResponse)
def submit_time_entry(entry_id: str, db: Session = Depends(get_db)) -> TimeEntryResponse:
    return TimeEntryResponse.from_entry(submit_entry(db, entry_id))


@app.post("/entries/{entry_id}/approve", response_model=TimeEntryResponse)
def approve_time_entry(entry_id: str, db: Session = Depends(get_db)) -> TimeEntryResponse:
    return TimeEntryResponse.from_entry(approve_entry(db, entry_id))


@app.post("/entries/{entry_id}/decline", response_model=TimeEntryResponse)
def decline_time_entry(
    entry_id: str,
    payload: DeclineRequest,
    db: Session = Depends(get_db),
) -> TimeEntryResponse:
    return TimeEntryResponse.from_entry(decline_entry(db, entry_id, payload.comment))


@app.get("/suggestions/next", response_model=SuggestionResponse)
def next_suggestion(request: Request) -> SuggestionResponse:
    activity = _activity(request)
    proposal = activity.propose()
    since_entry = activity.minutes_since_last_entry()
    return SuggestionResponse(
        available=proposal is not None,
        suggested_hours=proposal.standard_hours if proposal else None,
        idle_minutes=round(activity.idle_minutes(), 2),
        minutes_since_last_entry=round(since_entry, 2) if since_entry is not None else None,
        proposal=proposal,
    )
