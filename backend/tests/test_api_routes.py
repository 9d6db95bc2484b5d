from conftest import auth_headers, sample_documents

from app.models.user import UserRole

SCORES = {
    "presentation_media": 75,
    "communication": 80,
    "subject_mastery": 85,
    "report_content": 70,
    "writing_structure": 90,
}


def _submit_proposal(client, cast) -> dict:
    response = client.post(
        "/api/proposals",
        json={
            "title": "Edge Caching for Campus Video Lectures",
            "research_field": "Distributed Systems",
            "supervisor1_id": cast.supervisor1.id,
            "supervisor2_id": cast.supervisor2.id,
        },
        headers=auth_headers(cast.student),
    )
    assert response.status_code == 201, response.text
    return response.json()


def _approved_proposal(client, cast) -> dict:
    proposal = _submit_proposal(client, cast)
    for supervisor in (cast.supervisor1, cast.supervisor2):
        response = client.post(f"/api/proposals/{proposal['id']}/approve", headers=auth_headers(supervisor))
        assert response.status_code == 200, response.text
    return response.json()


def test_requests_without_token_are_refused(client):
    response = client.get("/api/proposals")

    assert response.status_code in {401, 403}


def test_inactive_account_is_refused(client, make_user):
    retired = make_user("Retired", UserRole.lecturer, is_active=False)

    response = client.get("/api/me", headers=auth_headers(retired))

    assert response.status_code == 403


def test_me_reports_identity(client, cast):
    response = client.get("/api/me", headers=auth_headers(cast.coordinator))

    assert response.status_code == 200
    payload = response.json()
    assert payload["is_admin"] is True
    assert payload["user"]["id"] == cast.coordinator.id
    assert set(payload["user"]["roles"]) == {"coordinator", "lecturer"}


def test_proposal_approval_over_http(client, cast):
    proposal = _submit_proposal(client, cast)
    assert proposal["status"] == "submitted"

    first = client.post(f"/api/proposals/{proposal['id']}/approve", headers=auth_headers(cast.supervisor1))
    assert first.status_code == 200
    assert first.json()["approve_supervisor1"] is True
    assert first.json()["status"] == "submitted"

    outsider = client.post(f"/api/proposals/{proposal['id']}/approve", headers=auth_headers(cast.examiner1))
    assert outsider.status_code == 403
    assert outsider.json()["category"] == "permission"
    assert outsider.json()["retryable"] is False

    second = client.post(f"/api/proposals/{proposal['id']}/approve", headers=auth_headers(cast.supervisor2))
    assert second.json()["status"] == "approved"

    history = client.get(f"/api/proposals/{proposal['id']}/history", headers=auth_headers(cast.student))
    assert [entry["sequence"] for entry in history.json()] == [1, 2, 3]


def test_workflow_errors_map_to_status_codes(client, cast):
    identical = client.post(
        "/api/proposals",
        json={
            "title": "Title",
            "research_field": "Field",
            "supervisor1_id": cast.supervisor1.id,
            "supervisor2_id": cast.supervisor1.id,
        },
        headers=auth_headers(cast.student),
    )
    assert identical.status_code == 400
    assert identical.json()["category"] == "validation"

    missing = client.get("/api/proposals/does-not-exist", headers=auth_headers(cast.student))
    assert missing.status_code == 404
    assert missing.json()["category"] == "not_found"

    proposal = _submit_proposal(client, cast)
    client.post(
        f"/api/proposals/{proposal['id']}/reject",
        json={"reason": "Out of scope"},
        headers=auth_headers(cast.supervisor1),
    )
    late = client.post(f"/api/proposals/{proposal['id']}/approve", headers=auth_headers(cast.supervisor2))
    assert late.status_code == 409
    assert late.json()["category"] == "invalid_state"
    assert late.json()["retryable"] is True
    assert late.json()["details"] == {"current": "rejected", "attempted": "approve"}


def test_sempro_registration_on_unapproved_proposal_is_a_precondition_failure(client, cast):
    proposal = _submit_proposal(client, cast)

    response = client.post(
        "/api/sempro",
        json={"proposal_id": proposal["id"], "documents": sample_documents()},
        headers=auth_headers(cast.student),
    )

    assert response.status_code == 422
    assert response.json()["category"] == "precondition"


def test_consultation_over_http(client, cast):
    proposal = _approved_proposal(client, cast)

    logged = client.post(
        "/api/consultations",
        json={
            "proposal_id": proposal["id"],
            "supervisor_id": cast.supervisor2.id,
            "session_date": "2026-04-10",
            "description": "Discussed the evaluation plan",
            "outcome": "Prepare a baseline",
        },
        headers=auth_headers(cast.student),
    )
    assert logged.status_code == 201, logged.text
    consultation = logged.json()

    decided = client.post(
        f"/api/consultations/{consultation['id']}/decision",
        json={"approved": True, "note": "Fine"},
        headers=auth_headers(cast.supervisor2),
    )
    assert decided.status_code == 200
    assert decided.json()["status"] == "approved"

    edit = client.patch(
        f"/api/consultations/{consultation['id']}",
        json={"outcome": "Changed afterwards"},
        headers=auth_headers(cast.student),
    )
    assert edit.status_code == 409

    listed = client.get(
        "/api/consultations",
        params={"proposal_id": proposal["id"]},
        headers=auth_headers(cast.supervisor2),
    )
    assert [item["id"] for item in listed.json()] == [consultation["id"]]


def test_sempro_cycle_over_http(client, cast):
    proposal = _approved_proposal(client, cast)
    student = auth_headers(cast.student)
    staff = auth_headers(cast.staff)

    registered = client.post(
        "/api/sempro",
        json={"proposal_id": proposal["id"], "documents": sample_documents()},
        headers=student,
    )
    assert registered.status_code == 201, registered.text
    sempro_id = registered.json()["id"]
    assert registered.json()["form_document"]["id"] == "form-v1"

    verified = client.post(f"/api/sempro/{sempro_id}/verify", json={"note": "Complete"}, headers=staff)
    assert verified.json()["status"] == "verified"

    scheduled = client.post(
        f"/api/sempro/{sempro_id}/schedule",
        json={
            "examiner1_id": cast.examiner1.id,
            "examiner2_id": cast.examiner2.id,
            "seminar_date": "2026-05-20",
            "start_time": "13:00:00",
            "end_time": "14:30:00",
            "room": "Lab 2",
        },
        headers=staff,
    )
    assert scheduled.status_code == 201, scheduled.text
    published = client.post(f"/api/sempro/{sempro_id}/schedule/publish", json={"published": True}, headers=staff)
    assert published.json()["published"] is True

    for reviewer in (cast.supervisor1, cast.supervisor2, cast.examiner1, cast.examiner2):
        evaluation = client.post(f"/api/sempro/{sempro_id}/evaluations", json=SCORES, headers=auth_headers(reviewer))
        assert evaluation.status_code == 200, evaluation.text
        assert evaluation.json()["total_score"] == 400

    assert client.get(f"/api/sempro/{sempro_id}", headers=student).json()["status"] == "completed"

    revision = client.post(
        f"/api/sempro/{sempro_id}/revision",
        json={"note": "Redo the related work", "is_major": True, "documents": ["draft"]},
        headers=auth_headers(cast.examiner1),
    )
    assert revision.status_code == 200, revision.text
    assert revision.json()["revision_documents"] == ["draft"]

    latest = client.get(f"/api/sempro/{sempro_id}/revision-notes/latest", headers=student)
    assert latest.json()["examiner1"]["note"] == "Redo the related work"

    resubmitted = client.post(
        f"/api/sempro/{sempro_id}/resubmit",
        json={"documents": {"draft": sample_documents("v2")["draft"]}},
        headers=student,
    )
    assert resubmitted.status_code == 200, resubmitted.text
    body = resubmitted.json()
    assert body["status"] == "registered"
    assert body["review_round"] == 2
    assert body["draft_document"]["id"] == "draft-v2"
    assert body["form_document"]["id"] == "form-v1"

    rounds = client.get(f"/api/sempro/{sempro_id}/evaluations", params={"review_round": 1}, headers=staff)
    assert len(rounds.json()) == 4

    examiner_view = client.get("/api/sempro", headers=auth_headers(cast.examiner2))
    assert [item["id"] for item in examiner_view.json()] == [sempro_id]


def test_notifications_inbox(client, cast):
    _submit_proposal(client, cast)
    supervisor = auth_headers(cast.supervisor1)

    inbox = client.get("/api/notifications", headers=supervisor)
    assert inbox.status_code == 200
    notices = inbox.json()
    assert [item["title"] for item in notices] == ["Thesis Proposal Approval Request"]
    assert notices[0]["is_read"] is False
    assert notices[0]["delivery_status"] == "delivered"

    foreign = client.post(f"/api/notifications/{notices[0]['id']}/read", headers=auth_headers(cast.supervisor2))
    assert foreign.status_code == 404

    marked = client.post(f"/api/notifications/{notices[0]['id']}/read", headers=supervisor)
    assert marked.json()["is_read"] is True

    unread = client.get("/api/notifications", params={"is_read": False}, headers=supervisor)
    assert unread.json() == []


def test_mark_all_notifications_read(client, cast):
    _submit_proposal(client, cast)
    supervisor = auth_headers(cast.supervisor2)

    first = client.post("/api/notifications/read-all", headers=supervisor)
    second = client.post("/api/notifications/read-all", headers=supervisor)

    assert first.json() == {"updated": 1}
    assert second.json() == {"updated": 0}


def test_reading_someone_elses_proposal_is_forbidden(client, cast):
    proposal = _submit_proposal(client, cast)
    outsider = auth_headers(cast.other_student)

    assert client.get("/api/proposals", headers=outsider).json() == []
    for path in (f"/api/proposals/{proposal['id']}", f"/api/proposals/{proposal['id']}/history"):
        response = client.get(path, headers=outsider)
        assert response.status_code == 403
        assert response.json()["category"] == "permission"

    assert client.get(f"/api/proposals/{proposal['id']}", headers=auth_headers(cast.supervisor2)).status_code == 200
