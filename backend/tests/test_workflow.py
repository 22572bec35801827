from __future__ import annotations

from typing import Optional

from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from timereporting import models


def _log_time(client: TestClient, tags: Optional[list[dict[str, str]]] = None, **overrides) -> dict:
    payload = {
        "projectCode": "INTERNAL",
        "task": "Development",
        "standardHours": 8,
        "startDate": "2024-01-01",
        "completionDate": "2024-01-01",
        "tags": tags if tags is not None else [{"name": "Environment", "value": "Development"}],
    }
    payload.update(overrides)
    resp = client.post("/entries", json=payload, headers={"X-User-Id": "user-1"})
    assert resp.status_code == 201, resp.text
    return resp.json()


def _set_status(session: Session, entry_id: str, status: models.TimeEntryStatus) -> None:
    entry = session.get(models.TimeEntry, entry_id)
    entry.status = status.value
    session.commit()


def test_healthz(client: TestClient):
    resp = client.get("/healthz")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}
    assert resp.headers["X-Request-ID"]


def test_request_id_is_echoed(client: TestClient):
    resp = client.get("/healthz", headers={"X-Request-ID": "abc-123"})
    assert resp.headers["X-Request-ID"] == "abc-123"


def test_projects_listing(client: TestClient):
    resp = client.get("/projects")
    assert resp.status_code == 200
    projects = {project["code"]: project for project in resp.json()}
    assert {"INTERNAL", "CLIENT-A"} <= set(projects)
    internal = projects["INTERNAL"]
    assert {task["taskName"] for task in internal["tasks"]} >= {"Development", "Code Review"}
    environment = next(tag for tag in internal["tags"] if tag["name"] == "Environment")
    assert environment["allowedValues"] == ["Development", "Production"]
    assert environment["isRequired"] is False


def test_log_time_and_replace_tags_flow(client: TestClient):
    created = _log_time(client)
    assert created["status"] == "NOT_REPORTED"
    assert created["userId"] == "user-1"
    assert created["tags"] == [{"name": "Environment", "value": "Development"}]
    assert created["createdAt"].endswith("+00:00")

    replaced = client.put(
        f"/entries/{created['id']}/tags",
        json={"tags": [{"name": "Environment", "value": "Production"}, {"name": "Billable", "value": "Yes"}]},
    )
    assert replaced.status_code == 200
    tags = {tag["name"]: tag["value"] for tag in replaced.json()["tags"]}
    assert tags == {"Environment": "Production", "Billable": "Yes"}

    cleared = client.put(f"/entries/{created['id']}/tags", json={"tags": []})
    assert cleared.status_code == 200
    assert cleared.json()["tags"] == []

    fetched = client.get(f"/entries/{created['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["tags"] == []


def test_update_submitted_entry_is_conflict(client: TestClient, session: Session):
    created = _log_time(client)
    _set_status(session, created["id"], models.TimeEntryStatus.SUBMITTED)

    resp = client.patch(f"/entries/{created['id']}", json={"standardHours": 4})
    assert resp.status_code == 409
    body = resp.json()
    assert body["code"] == "BUSINESS_RULE_VIOLATION"
    assert "SUBMITTED" in body["detail"]


def test_move_approved_entry_is_rejected(client: TestClient, session: Session):
    created = _log_time(client)
    _set_status(session, created["id"], models.TimeEntryStatus.APPROVED)

    resp = client.post(f"/entries/{created['id']}/move", json={"projectCode": "CLIENT-A", "task": "Bug Fixing"})
    assert resp.status_code == 409
    assert "APPROVED" in resp.json()["detail"]
    assert "immutable" in resp.json()["detail"]


def test_move_to_other_project_clears_tags(client: TestClient):
    created = _log_time(client)
    resp = client.post(f"/entries/{created['id']}/move", json={"projectCode": "CLIENT-A", "task": "Bug Fixing"})
    assert resp.status_code == 200
    moved = resp.json()
    assert moved["projectCode"] == "CLIENT-A"
    assert moved["task"] == "Bug Fixing"
    assert moved["tags"] == []


def test_decline_with_empty_comment(client: TestClient, session: Session):
    created = _log_time(client)
    _set_status(session, created["id"], models.TimeEntryStatus.SUBMITTED)

    resp = client.post(f"/entries/{created['id']}/decline", json={"comment": ""})
    assert resp.status_code == 400
    body = resp.json()
    assert body["code"] == "VALIDATION_ERROR"
    assert body["field"] == "comment"
    assert "required" in body["detail"]

    fetched = client.get(f"/entries/{created['id']}").json()
    assert fetched["status"] == "SUBMITTED"


def test_submit_approve_decline_endpoints(client: TestClient):
    first = _log_time(client)
    second = _log_time(client, tags=[])

    for entry in (first, second):
        resp = client.post(f"/entries/{entry['id']}/submit")
        assert resp.status_code == 200
        assert resp.json()["status"] == "SUBMITTED"

    again = client.post(f"/entries/{first['id']}/submit")
    assert again.status_code == 409
    assert "already SUBMITTED" in again.json()["detail"]

    approved = client.post(f"/entries/{first['id']}/approve")
    assert approved.json()["status"] == "APPROVED"

    declined = client.post(f"/entries/{second['id']}/decline", json={"comment": "Split by day"})
    assert declined.status_code == 200
    assert declined.json()["status"] == "DECLINED"
    assert declined.json()["declineComment"] == "Split by day"

    delete_approved = client.delete(f"/entries/{first['id']}")
    assert delete_approved.status_code == 409

    delete_declined = client.delete(f"/entries/{second['id']}")
    assert delete_declined.status_code == 200
    assert delete_declined.json() == {"id": second["id"], "deleted": True}
    assert client.get(f"/entries/{second['id']}").status_code == 404


def test_validation_errors_carry_field(client: TestClient):
    resp = client.post(
        "/entries",
        json={
            "projectCode": "INTERNAL",
            "task": "Development",
            "standardHours": 8,
            "startDate": "2024-01-01",
            "completionDate": "2024-01-01",
            "tags": [{"name": "Environment", "value": "Staging"}],
        },
    )
    assert resp.status_code == 400
    body = resp.json()
    assert body["field"] == "tags"
    assert "Staging" in body["detail"]

    unknown = client.post("/entries/does-not-exist/submit")
    assert unknown.status_code == 400
    assert unknown.json()["field"] == "id"


def test_entry_listing_filters(client: TestClient, session: Session):
    first = _log_time(client)
    _log_time(client, projectCode="CLIENT-A", task="Bug Fixing", tags=[], startDate="2024-02-01", completionDate="2024-02-02")
    _set_status(session, first["id"], models.TimeEntryStatus.SUBMITTED)

    everything = client.get("/entries").json()
    assert len(everything) == 2
    assert everything[0]["projectCode"] == "CLIENT-A"

    submitted = client.get("/entries", params={"status": "SUBMITTED"}).json()
    assert [entry["id"] for entry in submitted] == [first["id"]]

    january = client.get("/entries", params={"from_date": "2024-01-01", "to_date": "2024-01-31"}).json()
    assert [entry["id"] for entry in january] == [first["id"]]

    bad_range = client.get("/entries", params={"from_date": "2024-02-01", "to_date": "2024-01-01"})
    assert bad_range.status_code == 400
    assert bad_range.json()["field"] == "toDate"


def test_store_failure_maps_to_service_unavailable(client: TestClient, session: Session, monkeypatch):
    created = _log_time(client)

    def failing_commit():
        raise OperationalError("COMMIT", {}, Exception("database is locked"))

    monkeypatch.setattr(session, "commit", failing_commit)
    resp = client.post(f"/entries/{created['id']}/submit")
    assert resp.status_code == 503
    assert resp.json()["code"] == "INFRASTRUCTURE_ERROR"
    assert resp.headers["Retry-After"] == "1"
    monkeypatch.undo()

    session.expire_all()
    assert session.get(models.TimeEntry, created["id"]).status == "NOT_REPORTED"


def test_suggestion_after_logging_time(client: TestClient):
    empty = client.get("/suggestions/next").json()
    assert empty["available"] is False
    assert empty["minutesSinceLastEntry"] is None

    _log_time(client)
    suggestion = client.get("/suggestions/next").json()
    assert suggestion["available"] is True
    assert suggestion["proposal"]["projectCode"] == "INTERNAL"
    assert suggestion["proposal"]["task"] == "Development"
    assert suggestion["suggestedHours"] == 0.25
    assert 0 <= suggestion["minutesSinceLastEntry"] < 1

    assert client.get("/suggestions/next").json()["available"] is False


def test_nan_hours_in_body_is_validation_error(client: TestClient):
    body = (
        '{"projectCode": "INTERNAL", "task": "Development", "standardHours": NaN,'
        ' "startDate": "2024-01-01", "completionDate": "2024-01-01"}'
    )
    resp = client.post("/entries", content=body, headers={"Content-Type": "application/json"})
    assert resp.status_code == 400
    assert resp.json()["code"] == "VALIDATION_ERROR"
    assert resp.json()["field"] == "standardHours"
    assert client.get("/entries").json() == []

    created = _log_time(client)
    patched = client.patch(
        f"/entries/{created['id']}",
        content='{"overtimeHours": NaN}',
        headers={"Content-Type": "application/json"},
    )
    assert patched.status_code == 400
    assert patched.json()["field"] == "overtimeHours"
    assert client.get(f"/entries/{created['id']}").json()["overtimeHours"] == 0


def test_missing_entry_uses_error_body(client: TestClient):
    resp = client.get("/entries/does-not-exist")
    assert resp.status_code == 404
    assert resp.json() == {
        "detail": "Time entry with ID 'does-not-exist' not found",
        "code": "NOT_FOUND",
        "field": "id",
    }


def test_entries_report_whether_they_are_editable(client: TestClient):
    created = _log_time(client)
    assert created["editable"] is True

    submitted = client.post(f"/entries/{created['id']}/submit").json()
    assert submitted["editable"] is False
