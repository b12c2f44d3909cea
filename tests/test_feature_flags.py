# File: tests/test_feature_flags.py


def test_list_global_flags(client, employee, headers):
    resp = client.get("/api/feature-flags", headers=headers(employee))
    assert resp.status_code == 200
    assert [(f["name"], f["enabled"], f["scope"]) for f in resp.json()] == [("roadmap_kanban", True, "global")]


def test_project_flag_overrides_global(client, employee, admin, default_project, headers):
    resp = client.patch("/api/feature-flags/roadmap_kanban", json={"enabled": False},
                        headers=headers(admin, default_project))
    assert resp.status_code == 200
    assert resp.json()["scope"] == "project"

    flags = client.get("/api/feature-flags", headers=headers(employee, default_project)).json()
    assert flags[0]["enabled"] is False
    assert client.get("/api/feature-flags", headers=headers(employee)).json()[0]["enabled"] is True
    assert client.get("/api/roadmap", headers=headers(employee)).status_code == 403


def test_toggle_validation_and_permissions(client, employee, admin, headers):
    assert client.patch("/api/feature-flags/roadmap_kanban", json={"enabled": False},
                        headers=headers(employee)).status_code == 403
    assert client.patch("/api/feature-flags/roadmap_kanban", json={"enabled": "no"},
                        headers=headers(admin)).status_code == 400
