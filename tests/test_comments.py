# File: tests/test_comments.py

from uservoice.models.comment import CommentMention
from uservoice.models.request import RequestWatcher


def _comment(client, headers, user, request_id, content):
    return client.post(f"/api/requests/{request_id}/comments", json={"content": content}, headers=headers(user))


def test_add_and_list_comments(client, db, employee, other_employee, headers, make_request):
    request = make_request(employee)

    resp = _comment(client, headers, other_employee, request.id, "Would love this for the Q3 rollout")
    assert resp.status_code == 201
    assert resp.json()["author_name"] == "Bob Jones"

    _comment(client, headers, employee, request.id, "Thanks!")
    resp = client.get(f"/api/requests/{request.id}/comments", headers=headers(employee))
    assert [c["content"] for c in resp.json()] == ["Would love this for the Q3 rollout", "Thanks!"]

    watcher = db.query(RequestWatcher).filter(
        RequestWatcher.request_id == request.id, RequestWatcher.user_id == other_employee.id
    ).one()
    assert watcher.auto_subscribed is True


def test_comment_validation(client, employee, headers, make_request):
    request = make_request(employee)
    assert _comment(client, headers, employee, request.id, "   ").status_code == 400
    assert _comment(client, headers, employee, request.id, "x" * 5001).status_code == 400
    assert _comment(client, headers, employee, 4242, "hello").status_code == 404


def test_mentions_resolve_to_project_members(client, db, employee, other_employee, make_user, make_project,
                                              headers, make_request):
    outsider = make_user("bobby@company.com", "Bobby Tables", project=make_project("other"))
    request = make_request(employee)

    resp = _comment(client, headers, employee, request.id, "@Bob Jones can you check? cc @Bobby")
    assert resp.status_code == 201
    mentioned = {m["id"] for m in resp.json()["mentions"]}
    assert other_employee.id in mentioned
    assert outsider.id not in mentioned


def test_edit_comment_is_author_only_and_reprocesses_mentions(client, db, employee, other_employee, headers,
                                                              make_request):
    request = make_request(employee)
    comment_id = _comment(client, headers, employee, request.id, "First draft").json()["id"]

    resp = client.patch(f"/api/comments/{comment_id}", json={"content": "Hijacked"}, headers=headers(other_employee))
    assert resp.status_code == 403

    resp = client.patch(f"/api/comments/{comment_id}", json={"content": "Looping in @Bob"}, headers=headers(employee))
    assert resp.status_code == 200
    assert resp.json()["updated_at"] is not None
    assert [m["id"] for m in resp.json()["mentions"]] == [other_employee.id]

    resp = client.patch(f"/api/comments/{comment_id}", json={"content": "Never mind"}, headers=headers(employee))
    assert resp.json()["mentions"] == []
    assert db.query(CommentMention).filter(CommentMention.comment_id == comment_id).count() == 0


def test_delete_comment_by_author_or_admin(client, employee, other_employee, admin, headers, make_request):
    request = make_request(employee)
    first = _comment(client, headers, employee, request.id, "one").json()["id"]
    second = _comment(client, headers, employee, request.id, "two").json()["id"]

    assert client.delete(f"/api/comments/{first}", headers=headers(other_employee)).status_code == 403
    assert client.delete(f"/api/comments/{first}", headers=headers(employee)).status_code == 200
    assert client.delete(f"/api/comments/{second}", headers=headers(admin)).status_code == 200
    assert client.get(f"/api/requests/{request.id}/comments", headers=headers(employee)).json() == []
