# File: tests/test_votes.py

from uservoice.models.request import RequestWatcher


def test_vote_and_duplicate_vote(client, employee, headers, make_request):
    request = make_request(employee)

    resp = client.post(f"/api/requests/{request.id}/vote", json={"type": "upvote"}, headers=headers(employee))
    assert resp.status_code == 200
    assert resp.json()["upvotes"] == 1
    assert resp.json()["user_votes"] == ["upvote"]

    resp = client.post(f"/api/requests/{request.id}/vote", json={"type": "upvote"}, headers=headers(employee))
    assert resp.status_code == 400
    assert resp.json()["detail"] == "You have already upvoted this request"

    resp = client.post(f"/api/requests/{request.id}/vote", json={"type": "like"}, headers=headers(employee))
    assert resp.status_code == 200
    assert (resp.json()["upvotes"], resp.json()["likes"]) == (1, 1)


def test_vote_validation(client, employee, headers, make_request):
    request = make_request(employee)
    resp = client.post(f"/api/requests/{request.id}/vote", json={"type": "downvote"}, headers=headers(employee))
    assert resp.status_code == 400
    resp = client.post("/api/requests/9999/vote", json={"type": "like"}, headers=headers(employee))
    assert resp.status_code == 404


def test_remove_vote(client, employee, headers, make_request):
    request = make_request(employee)
    resp = client.delete(f"/api/requests/{request.id}/vote/like", headers=headers(employee))
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Vote not found"

    client.post(f"/api/requests/{request.id}/vote", json={"type": "like"}, headers=headers(employee))
    resp = client.delete(f"/api/requests/{request.id}/vote/like", headers=headers(employee))
    assert resp.status_code == 200
    assert resp.json()["likes"] == 0

    resp = client.get(f"/api/requests/{request.id}/votes", headers=headers(employee))
    assert resp.json() == {"upvotes": 0, "likes": 0, "user_votes": []}


def test_vote_auto_watch_follows_preference(client, db, make_user, employee, headers, make_request):
    request = make_request(employee)
    keen = make_user("frank@company.com", "Frank Moore", auto_watch_on_vote=True)
    quiet = make_user("gina@company.com", "Gina Lopez")

    client.post(f"/api/requests/{request.id}/vote", json={"type": "upvote"}, headers=headers(keen))
    client.post(f"/api/requests/{request.id}/vote", json={"type": "upvote"}, headers=headers(quiet))

    watchers = {w.user_id for w in db.query(RequestWatcher).filter(RequestWatcher.request_id == request.id).all()}
    assert watchers == {keen.id}
