"""Tests for submission listing, detail and retry."""

import uuid

import pytest

from formrelay.db.models import Submission


def _add_submissions(db, form, statuses):
    submissions = []
    for status in statuses:
        submission = Submission(form_id=form.id, data={"name": status}, status=status)
        db.add(submission)
        db.commit()
        submissions.append(submission)
    return submissions


@pytest.mark.asyncio
async def test_list_submissions_paginates(authed_client, db, test_form):
    _add_submissions(db, test_form, ["completed", "failed", "pending"])

    res = await authed_client.get("/api/submissions", params={"page": 1, "per_page": 2})
    assert res.status_code == 200
    body = res.json()
    assert body["total"] == 3
    assert body["page"] == 1
    assert body["per_page"] == 2
    assert body["pages"] == 2
    assert len(body["items"]) == 2
    assert body["items"][0]["form_name"] == "Contact"


@pytest.mark.asyncio
async def test_list_submissions_filters_by_status(authed_client, db, test_form):
    _add_submissions(db, test_form, ["completed", "failed", "failed"])

    res = await authed_client.get("/api/submissions", params={"status": "failed"})
    body = res.json()
    assert body["total"] == 2
    assert {item["status"] for item in body["items"]} == {"failed"}


@pytest.mark.asyncio
async def test_list_submissions_rejects_unknown_status(authed_client):
    res = await authed_client.get("/api/submissions", params={"status": "archived"})
    assert res.status_code == 422


@pytest.mark.asyncio
async def test_submissions_are_workspace_scoped(authed_client, db, make_user, make_form):
    other = make_form(make_user(workspace_id="ws-other"))
    [theirs] = _add_submissions(db, other, ["completed"])

    res = await authed_client.get("/api/submissions")
    assert res.json()["total"] == 0

    res = await authed_client.get(f"/api/submissions/{theirs.id}")
    assert res.status_code == 404


@pytest.mark.asyncio
async def test_form_submissions_endpoint(authed_client, db, test_user, test_form, make_form):
    second = make_form(test_user, name="Second")
    _add_submissions(db, test_form, ["completed"])
    _add_submissions(db, second, ["failed", "pending"])

    res = await authed_client.get(f"/api/forms/{second.id}/submissions")
    assert res.status_code == 200
    body = res.json()
    assert body["total"] == 2
    assert {item["form_name"] for item in body["items"]} == {"Second"}


@pytest.mark.asyncio
async def test_get_submission(authed_client, db, test_form):
    [submission] = _add_submissions(db, test_form, ["failed"])

    res = await authed_client.get(f"/api/submissions/{submission.id}")
    assert res.status_code == 200
    assert res.json()["data"] == {"name": "failed"}

    res = await authed_client.get(f"/api/submissions/{uuid.uuid4()}")
    assert res.status_code == 404


@pytest.mark.asyncio
async def test_retry_completed_submission_conflicts(authed_client, db, test_form):
    [submission] = _add_submissions(db, test_form, ["completed"])

    res = await authed_client.post(f"/api/submissions/{submission.id}/retry")
    assert res.status_code == 409


@pytest.mark.asyncio
async def test_retry_failed_submission_reuses_created_project(
    authed_client, db, test_form, fake_awork
):
    test_form.action_type = "both"
    db.commit()
    submission = Submission(
        form_id=test_form.id,
        data={"name": "Ada", "email": "ada@example.com"},
        status="failed",
        awork_project_id="proj-existing",
        error_message="Processing error: boom",
    )
    db.add(submission)
    db.commit()
    fake_awork.routes["POST /tasks"] = {"id": "task-1"}

    res = await authed_client.post(f"/api/submissions/{submission.id}/retry")
    assert res.status_code == 200
    body = res.json()
    assert body["status"] == "completed"
    assert body["error_message"] is None
    assert body["awork_project_id"] == "proj-existing"
    assert body["awork_task_id"] == "task-1"
    assert fake_awork.calls("POST", "/projects") == []
    assert fake_awork.json_of("POST", "/tasks")["entityId"] == "proj-existing"


@pytest.mark.asyncio
async def test_retry_while_processing_conflicts(authed_client, db, test_form, fake_awork):
    test_form.action_type = "project"
    db.commit()
    [submission] = _add_submissions(db, test_form, ["processing"])

    res = await authed_client.post(f"/api/submissions/{submission.id}/retry")

    assert res.status_code == 409
    assert res.json()["detail"] == "Submission is already being processed"
    assert fake_awork.requests == []


@pytest.mark.asyncio
async def test_list_submissions_filters_processing(authed_client, db, test_form):
    _add_submissions(db, test_form, ["processing", "failed"])

    res = await authed_client.get("/api/submissions", params={"status": "processing"})
    assert res.status_code == 200
    assert res.json()["total"] == 1
