# File: tests/test_roadmap.py

from uservoice.models.feature_flag import FeatureFlag
from uservoice.models.request import Request, RequestStatus
from uservoice.models.roadmap import RoadmapColumn, RoadmapItem


def _create(client, headers, admin, title, column="backlog"):
    resp = client.post("/api/roadmap", json={"title": title, "column_status": column}, headers=headers(admin))
    assert resp.status_code == 201
    return resp.json()


def _positions(db, project_id, column):
    db.expire_all()
    items = (
        db.query(RoadmapItem)
        .filter(RoadmapItem.project_id == project_id, RoadmapItem.column_status == column)
        .order_by(RoadmapItem.position)
        .all()
    )
    return [(i.title, i.position) for i in items]


def test_board_groups_items_and_synced_requests(client, employee, admin, headers, make_request):
    _create(client, headers, admin, "SSO login")
    make_request(employee, "Mobile app", status=RequestStatus.in_progress)
    make_request(employee, "Spam request", status=RequestStatus.rejected)

    resp = client.get("/api/roadmap", headers=headers(employee))
    assert resp.status_code == 200
    board = resp.json()
    assert set(board) == {"backlog", "in_progress", "released"}
    assert [i["title"] for i in board["backlog"]] == ["SSO login"]
    synced = board["in_progress"][0]
    assert synced["id"].startswith("request-")
    assert synced["is_synced"] is True
    assert synced["position"] == 999999
    assert board["released"] == []


def test_writes_are_admin_only(client, employee, headers):
    resp = client.post("/api/roadmap", json={"title": "Nope"}, headers=headers(employee))
    assert resp.status_code == 403


def test_disabled_flag_blocks_roadmap(client, db, employee, headers, default_project):
    db.add(FeatureFlag(name="roadmap_kanban", project_id=default_project.id, enabled=False))
    db.commit()
    resp = client.get("/api/roadmap", headers=headers(employee))
    assert resp.status_code == 403
    assert resp.json()["detail"] == "Roadmap feature is currently disabled"


def test_move_within_and_across_columns_keeps_positions_contiguous(client, db, admin, headers, default_project):
    a = _create(client, headers, admin, "A")
    _create(client, headers, admin, "B")
    c = _create(client, headers, admin, "C")
    assert _positions(db, default_project.id, RoadmapColumn.backlog) == [("A", 0), ("B", 1), ("C", 2)]

    resp = client.patch(f"/api/roadmap/{c['id']}/move", json={"column_status": "backlog", "position": 0},
                        headers=headers(admin))
    assert resp.status_code == 200
    assert _positions(db, default_project.id, RoadmapColumn.backlog) == [("C", 0), ("A", 1), ("B", 2)]

    client.patch(f"/api/roadmap/{a['id']}/move", json={"column_status": "in_progress", "position": 10},
                 headers=headers(admin))
    assert _positions(db, default_project.id, RoadmapColumn.backlog) == [("C", 0), ("B", 1)]
    assert _positions(db, default_project.id, RoadmapColumn.in_progress) == [("A", 0)]

    client.delete(f"/api/roadmap/{c['id']}", headers=headers(admin))
    assert _positions(db, default_project.id, RoadmapColumn.backlog) == [("B", 0)]


def test_promote_request_syncs_status(client, db, employee, admin, headers, make_request):
    request = make_request(employee, "Audit log")

    resp = client.post("/api/roadmap/promote", json={"request_id": request.id, "column_status": "released"},
                       headers=headers(admin))
    assert resp.status_code == 201
    item = resp.json()
    assert item["request_id"] == request.id
    assert item["title"] == "Audit log"

    db.expire_all()
    assert db.get(Request, request.id).status == RequestStatus.completed

    resp = client.post("/api/roadmap/promote", json={"request_id": request.id}, headers=headers(admin))
    assert resp.status_code == 409

    client.patch(f"/api/roadmap/{item['id']}/move", json={"column_status": "in_progress", "position": 0},
                 headers=headers(admin))
    db.expire_all()
    assert db.get(Request, request.id).status == RequestStatus.in_progress
    actions = client.get(f"/api/requests/{request.id}/activity", headers=headers(admin)).json()
    assert [a["new_value"] for a in actions] == ["in_progress", "completed"]


def test_update_item(client, admin, headers):
    item = _create(client, headers, admin, "Reporting v2")
    resp = client.patch(f"/api/roadmap/{item['id']}", json={}, headers=headers(admin))
    assert resp.status_code == 400
    assert resp.json()["detail"] == "No fields to update"

    resp = client.patch(f"/api/roadmap/{item['id']}", json={"is_discovery": True, "team": "Energy"},
                        headers=headers(admin))
    assert resp.status_code == 200
    assert resp.json()["is_discovery"] is True
    assert resp.json()["team"] == "Energy"

    assert client.patch("/api/roadmap/999/move", json={"column_status": "backlog", "position": 0},
                        headers=headers(admin)).status_code == 404
