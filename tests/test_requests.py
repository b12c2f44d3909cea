# File: tests/test_requests.py

import json

from uservoice.models.activity import ActivityLog
from uservoice.models.comment import Comment
from uservoice.models.form_config import FieldType, ProjectCustomField
from uservoice.models.request import Request, RequestStatus, RequestWatcher
from uservoice.models.user import UserRole
from uservoice.models.vote import Vote, VoteType

FORM = {"title": "Dark mode for dashboards", "category": "new_feature", "priority": "high", "team": "Sales", "region": "EMEA"}


def test_create_request_multipart(client, db, employee, headers):
    resp = client.post(
        "/api/requests",
        data={**FORM, "business_problem": "Eyes hurt at night"},
        files=[("attachments", ("notes.txt", b"some notes", "text/plain"))],
        headers=headers(employee),
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["status"] == "pending"
    assert body["author_name"] == "Alice Smith"
    assert body["is_watching"] is True
    assert body["attachments"][0]["filename"] == "notes.txt"
    assert body["attachments"][0]["url"].startswith("data:text/plain;base64,")

    actions = [a.action for a in db.query(ActivityLog).filter(ActivityLog.request_id == body["id"]).all()]
    assert actions == ["created"]


def test_create_request_rejects_unknown_options(client, employee, headers):
    resp = client.post("/api/requests", data={**FORM, "category": "wishlist"}, headers=headers(employee))
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Invalid category: wishlist"


def test_create_request_rejects_disallowed_attachment(client, employee, headers):
    resp = client.post(
        "/api/requests",
        data=FORM,
        files=[("attachments", ("run.exe", b"MZ", "application/octet-stream"))],
        headers=headers(employee),
    )
    assert resp.status_code == 400


def test_only_admins_post_on_behalf_of_others(client, db, employee, other_employee, admin, headers):
    resp = client.post(
        "/api/requests", data={**FORM, "on_behalf_of_user_id": str(other_employee.id)}, headers=headers(employee)
    )
    assert resp.status_code == 403

    resp = client.post(
        "/api/requests", data={**FORM, "on_behalf_of_user_id": str(other_employee.id)}, headers=headers(admin)
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["user_id"] == other_employee.id
    assert body["posted_by_admin_id"] == admin.id
    watchers = {w.user_id for w in db.query(RequestWatcher).filter(RequestWatcher.request_id == body["id"]).all()}
    assert watchers == {other_employee.id, admin.id}


def test_custom_field_values_are_validated_and_hidden(client, db, default_project, employee, admin, headers):
    db.add_all([
        ProjectCustomField(project_id=default_project.id, name="impact_area", label="Impact Area",
                           field_type=FieldType.select, options=["Cost", "Quality"], is_required=True),
        ProjectCustomField(project_id=default_project.id, name="internal_score", label="Internal Score",
                           field_type=FieldType.number, visibility="admin_only"),
    ])
    db.commit()

    resp = client.post("/api/requests", data=FORM, headers=headers(employee))
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Impact Area is required"

    resp = client.post(
        "/api/requests", data={**FORM, "custom_fields": json.dumps({"impact_area": "Speed"})}, headers=headers(employee)
    )
    assert resp.status_code == 400

    resp = client.post(
        "/api/requests",
        data={**FORM, "custom_fields": json.dumps({"impact_area": "Cost", "internal_score": 7})},
        headers=headers(admin),
    )
    assert resp.status_code == 201
    request_id = resp.json()["id"]
    admin_view = {f["name"]: f["value"] for f in resp.json()["custom_fields"]}
    assert admin_view == {"impact_area": "Cost", "internal_score": 7}

    resp = client.get(f"/api/requests/{request_id}", headers=headers(employee))
    assert [f["name"] for f in resp.json()["custom_fields"]] == ["impact_area"]


def test_list_filters_and_sorting(client, db, employee, other_employee, headers, make_request):
    popular = make_request(employee, "Bulk import of contacts")
    quiet = make_request(other_employee, "Calendar sync", category="optimization")
    make_request(employee, "Old idea", status=RequestStatus.archived)
    db.add_all([
        Vote(request_id=popular.id, user_id=employee.id, type=VoteType.upvote),
        Vote(request_id=popular.id, user_id=other_employee.id, type=VoteType.upvote),
        Vote(request_id=quiet.id, user_id=employee.id, type=VoteType.like),
    ])
    db.commit()

    resp = client.get("/api/requests", params={"sort": "upvotes"}, headers=headers(employee))
    assert resp.status_code == 200
    rows = resp.json()
    assert [r["title"] for r in rows] == ["Bulk import of contacts", "Calendar sync"]
    assert rows[0]["upvotes"] == 2
    assert rows[0]["user_votes"] == ["upvote"]
    assert rows[0]["is_read"] is True

    resp = client.get("/api/requests", params={"status": "archived"}, headers=headers(employee))
    assert [r["title"] for r in resp.json()] == ["Old idea"]

    resp = client.get("/api/requests", params={"category": "optimization"}, headers=headers(employee))
    assert [r["title"] for r in resp.json()] == ["Calendar sync"]

    resp = client.get("/api/requests", params={"search": "bob"}, headers=headers(employee))
    assert [r["title"] for r in resp.json()] == ["Calendar sync"]

    resp = client.get("/api/requests", params={"my_requests": "true"}, headers=headers(other_employee))
    assert [r["title"] for r in resp.json()] == ["Calendar sync"]


def test_requests_are_scoped_to_the_project(client, employee, make_user, make_project, make_request, headers):
    other = make_project("field-service")
    outsider = make_user("eve@company.com", "Eve Adams", project=other)
    foreign = make_request(outsider, "Offline mode", project=other)

    assert client.get(f"/api/requests/{foreign.id}", headers=headers(employee)).status_code == 404
    assert client.get("/api/requests", headers=headers(employee, other)).status_code == 403

    resp = client.get("/api/requests", headers={**headers(outsider), "X-Project-Id": "field-service"})
    assert [r["id"] for r in resp.json()] == [foreign.id]


def test_status_change_is_admin_only_and_logged(client, db, employee, admin, headers, make_request):
    request = make_request(employee)

    resp = client.patch(f"/api/requests/{request.id}", json={"status": "completed"}, headers=headers(employee))
    assert resp.status_code == 403

    resp = client.patch(f"/api/requests/{request.id}", json={"status": "completed"}, headers=headers(admin))
    assert resp.status_code == 200
    assert resp.json()["status"] == "completed"

    resp = client.get(f"/api/requests/{request.id}/activity", headers=headers(employee))
    entry = resp.json()[0]
    assert entry["action"] == "status_change"
    assert (entry["old_value"], entry["new_value"]) == ("pending", "completed")
    assert entry["user_name"] == "Admin User"


def test_owner_edits_but_others_cannot(client, employee, other_employee, headers, make_request):
    request = make_request(employee)

    resp = client.patch(f"/api/requests/{request.id}", json={"title": "Export to CSV too"}, headers=headers(other_employee))
    assert resp.status_code == 403

    resp = client.patch(f"/api/requests/{request.id}", json={"title": "Export to CSV too"}, headers=headers(employee))
    assert resp.status_code == 200
    assert resp.json()["title"] == "Export to CSV too"

    resp = client.patch(f"/api/requests/{request.id}", json={}, headers=headers(employee))
    assert resp.status_code == 400


def test_delete_requires_admin(client, db, employee, admin, headers, make_request):
    request = make_request(employee)
    assert client.delete(f"/api/requests/{request.id}", headers=headers(employee)).status_code == 403
    assert client.delete(f"/api/requests/{request.id}", headers=headers(admin)).status_code == 200
    db.expire_all()
    assert db.get(Request, request.id) is None


def test_mark_read_is_idempotent(client, employee, admin, headers, make_request):
    request = make_request(employee)
    for _ in range(2):
        assert client.post(f"/api/requests/{request.id}/read", headers=headers(admin)).json() == {"ok": True}
    rows = client.get("/api/requests", headers=headers(admin)).json()
    assert rows[0]["is_read"] is True


def test_merge_moves_votes_without_duplicates(client, db, employee, other_employee, admin, headers, make_request):
    source = make_request(employee, "Export to Excel")
    target = make_request(other_employee, "Excel export")
    db.add_all([
        Vote(request_id=source.id, user_id=employee.id, type=VoteType.upvote),
        Vote(request_id=source.id, user_id=other_employee.id, type=VoteType.upvote),
        Vote(request_id=target.id, user_id=other_employee.id, type=VoteType.upvote),
    ])
    db.commit()

    resp = client.post(f"/api/requests/{source.id}/merge", json={"target_id": target.id}, headers=headers(admin))
    assert resp.status_code == 200
    assert resp.json()["votes_moved"] == 1

    db.expire_all()
    merged = db.get(Request, source.id)
    assert merged.status == RequestStatus.duplicate
    assert merged.merged_into_id == target.id
    assert db.query(Vote).filter(Vote.request_id == target.id).count() == 2

    resp = client.post(f"/api/requests/{source.id}/merge", json={"target_id": target.id}, headers=headers(admin))
    assert resp.status_code == 400

    resp = client.post(f"/api/requests/{target.id}/merge", json={"target_id": target.id}, headers=headers(admin))
    assert resp.status_code == 400


def test_search_endpoint_ranks_title_prefix_first(client, employee, headers, make_request):
    make_request(employee, "Improve export speed")
    make_request(employee, "Export dashboards")

    assert client.get("/api/requests/search", params={"q": "e"}, headers=headers(employee)).json() == []
    resp = client.get("/api/requests/search", params={"q": "export"}, headers=headers(employee))
    titles = [r["title"] for r in resp.json()]
    assert titles == ["Export dashboards", "Improve export speed"]


def test_watch_unwatch_and_watchers(client, employee, other_employee, headers, make_request):
    request = make_request(employee)
    assert client.post(f"/api/requests/{request.id}/watch", headers=headers(other_employee)).json() == {"watching": True}

    resp = client.get(f"/api/requests/{request.id}/watchers", headers=headers(other_employee))
    assert resp.json()["count"] == 1
    assert resp.json()["is_watching"] is True

    assert client.delete(f"/api/requests/{request.id}/watch", headers=headers(other_employee)).json() == {"watching": False}
    assert client.get(f"/api/requests/{request.id}/watchers", headers=headers(other_employee)).json()["count"] == 0


def test_analytics_requires_admin(client, employee, admin, headers, make_request):
    make_request(employee)
    make_request(employee, "Second idea", status=RequestStatus.completed)

    assert client.get("/api/requests/stats/analytics", headers=headers(employee)).status_code == 403
    resp = client.get("/api/requests/stats/analytics", params={"period": "7days"}, headers=headers(admin))
    assert resp.status_code == 200
    body = resp.json()
    assert body["summary"]["total"] == 2
    assert body["summary"]["completed"] == 1
    assert len(body["trend_data"]) == 7
    assert body["category_breakdown"] == {"bug": 0, "new_feature": 2, "optimization": 0}


def test_blank_title_is_rejected_on_edit(client, db, employee, headers, make_request):
    request = make_request(employee)
    resp = client.patch(f"/api/requests/{request.id}", json={"title": "     "}, headers=headers(employee))
    assert resp.status_code == 400

    resp = client.patch(f"/api/requests/{request.id}", json={"title": "  CSV export  "}, headers=headers(employee))
    assert resp.json()["title"] == "CSV export"


def test_non_finite_numbers_are_rejected(client, default_project, db, employee, headers):
    db.add(ProjectCustomField(project_id=default_project.id, name="score", label="Score", field_type=FieldType.number))
    db.commit()
    for raw in ("nan", "inf", "-inf"):
        resp = client.post(
            "/api/requests", data={**FORM, "custom_fields": json.dumps({"score": raw})}, headers=headers(employee)
        )
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Score must be a number"


def test_merge_across_projects_is_refused(client, admin, make_user, make_project, make_request, headers):
    other = make_project("field-service")
    outsider = make_user("eve@company.com", "Eve Adams", project=other)
    source = make_request(admin, "Export to Excel")
    target = make_request(outsider, "Excel export", project=other)

    resp = client.post(f"/api/requests/{source.id}/merge", json={"target_id": target.id}, headers=headers(admin))
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Requests belong to different projects"


def test_merge_can_move_comments(client, db, employee, other_employee, admin, headers, make_request):
    source = make_request(employee, "Export to Excel")
    target = make_request(other_employee, "Excel export")
    db.add_all([
        Comment(request_id=source.id, user_id=employee.id, content="Needed for month end"),
        Comment(request_id=source.id, user_id=other_employee.id, content="Same here"),
        Comment(request_id=target.id, user_id=admin.id, content="Looking into it"),
    ])
    db.commit()

    resp = client.post(
        f"/api/requests/{source.id}/merge",
        json={"target_id": target.id, "merge_comments": True},
        headers=headers(admin),
    )
    assert resp.status_code == 200
    assert resp.json()["comments_moved"] == 2

    db.expire_all()
    assert db.query(Comment).filter(Comment.request_id == source.id).count() == 0
    assert db.query(Comment).filter(Comment.request_id == target.id).count() == 3


def test_global_admin_acts_as_admin_in_member_projects(client, db, employee, make_user, headers, make_request):
    manager = make_user("gina@company.com", "Gina Lopez", role=UserRole.admin)
    request = make_request(employee)
    assert client.delete(f"/api/requests/{request.id}", headers=headers(manager)).status_code == 200
