# File: tests/test_projects.py

from uservoice.models.project import Project


def test_list_projects_by_membership(client, employee, super_admin, make_project, headers):
    make_project("field-service")
    mine = client.get("/api/projects", headers=headers(employee)).json()
    assert [(p["slug"], p["member_role"]) for p in mine] == [("default", "member")]

    everything = client.get("/api/projects", headers=headers(super_admin)).json()
    assert {p["slug"] for p in everything} == {"default", "field-service"}


def test_admin_creates_project_and_becomes_its_admin(client, employee, admin, headers):
    payload = {"name": "Field Service", "slug": "field-service"}
    assert client.post("/api/projects", json=payload, headers=headers(employee)).status_code == 403

    resp = client.post("/api/projects", json=payload, headers=headers(admin))
    assert resp.status_code == 201
    project = resp.json()
    assert project["member_role"] == "admin"

    assert client.post("/api/projects", json=payload, headers=headers(admin)).status_code == 400
    assert client.post("/api/projects", json={"name": "X", "slug": "Bad Slug"}, headers=headers(admin)).status_code == 400

    members = client.get(f"/api/projects/{project['id']}/members", headers=headers(admin)).json()
    assert [(m["email"], m["role"]) for m in members] == [("admin@company.com", "admin")]


def test_get_project_includes_stats(client, employee, default_project, headers, make_request):
    make_request(employee)
    resp = client.get(f"/api/projects/{default_project.id}", headers=headers(employee))
    assert resp.status_code == 200
    assert resp.json()["stats"] == {"members": 1, "requests": 1, "completed": 0, "completion_rate": 0}


def test_non_members_cannot_see_a_project(client, employee, make_project, headers):
    other = make_project("secret")
    assert client.get(f"/api/projects/{other.id}", headers=headers(employee)).status_code == 403
    assert client.get("/api/projects/999", headers=headers(employee)).status_code == 404


def test_update_requires_project_admin(client, employee, admin, default_project, headers):
    url = f"/api/projects/{default_project.id}"
    assert client.patch(url, json={"name": "Renamed"}, headers=headers(employee)).status_code == 403
    resp = client.patch(url, json={"name": "Renamed"}, headers=headers(admin))
    assert resp.status_code == 200
    assert resp.json()["name"] == "Renamed"


def test_delete_is_super_admin_only_and_never_default(client, db, admin, super_admin, default_project,
                                                     make_project, headers):
    other = make_project("temp")
    assert client.delete(f"/api/projects/{other.id}", headers=headers(admin)).status_code == 403
    assert client.delete(f"/api/projects/{default_project.id}", headers=headers(super_admin)).status_code == 400
    assert client.delete(f"/api/projects/{other.id}", headers=headers(super_admin)).status_code == 200
    db.expire_all()
    assert db.get(Project, other.id) is None


def test_member_management(client, admin, default_project, make_user, make_project, headers):
    other = make_project("ops")
    newcomer = make_user("hal@company.com", "Hal Turner", project=other)
    url = f"/api/projects/{default_project.id}/members"

    resp = client.post(url, json={"user_id": newcomer.id}, headers=headers(admin))
    assert resp.status_code == 201
    assert client.post(url, json={"user_id": newcomer.id}, headers=headers(admin)).status_code == 400
    assert client.post(url, json={"user_id": 4040}, headers=headers(admin)).status_code == 404

    resp = client.patch(f"{url}/{newcomer.id}", json={"role": "admin"}, headers=headers(admin))
    assert resp.json()["role"] == "admin"

    assert client.delete(f"{url}/{newcomer.id}", headers=headers(admin)).status_code == 200
    assert client.delete(f"{url}/{newcomer.id}", headers=headers(admin)).status_code == 404


def test_create_project_keeps_logo(client, admin, headers):
    payload = {"name": "Field Service", "slug": "field-service", "logo_url": "https://cdn.example.net/fs.png"}
    resp = client.post("/api/projects", json=payload, headers=headers(admin))
    assert resp.status_code == 201
    assert resp.json()["logo_url"] == "https://cdn.example.net/fs.png"
