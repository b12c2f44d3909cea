# File: tests/test_push.py

from types import SimpleNamespace

from pywebpush import WebPushException

from uservoice.core.config import settings
from uservoice.models.push import PushSubscription
from uservoice.services import notify_push

SUB = {"endpoint": "https://push.example.net/abc", "keys": {"p256dh": "key", "auth": "secret"}}


def test_subscribe_is_an_upsert_by_endpoint(client, db, employee, other_employee, headers):
    assert client.post("/api/push/subscribe", json=SUB, headers=headers(employee)).json() == {"ok": True}
    assert client.post("/api/push/subscribe", json=SUB, headers=headers(other_employee)).json() == {"ok": True}
    subs = db.query(PushSubscription).all()
    assert [s.user_id for s in subs] == [other_employee.id]


def test_subscribe_rejects_incomplete_payload(client, employee, headers):
    resp = client.post("/api/push/subscribe", json={"endpoint": "https://push.example.net/x"}, headers=headers(employee))
    assert resp.status_code == 400


def test_unsubscribe(client, db, employee, headers):
    client.post("/api/push/subscribe", json=SUB, headers=headers(employee))
    client.post("/api/push/unsubscribe", json={"endpoint": SUB["endpoint"]}, headers=headers(employee))
    assert db.query(PushSubscription).count() == 0


def test_expired_subscriptions_are_pruned(db, employee, monkeypatch):
    monkeypatch.setattr(settings, "vapid_private_key", "private")
    monkeypatch.setattr(settings, "vapid_public_key", "public")
    delivered = []

    def fake_webpush(subscription_info, **kwargs):
        if subscription_info["endpoint"].endswith("/gone"):
            raise WebPushException("gone", response=SimpleNamespace(status_code=410))
        delivered.append(subscription_info["endpoint"])

    monkeypatch.setattr(notify_push, "webpush", fake_webpush)
    db.add_all([
        PushSubscription(user_id=employee.id, endpoint="https://push.example.net/live", p256dh="k", auth="a"),
        PushSubscription(user_id=employee.id, endpoint="https://push.example.net/gone", p256dh="k", auth="a"),
    ])
    db.commit()

    notify_push.push_to_user(db, employee.id, {"title": "hi"})

    assert delivered == ["https://push.example.net/live"]
    assert [s.endpoint for s in db.query(PushSubscription).all()] == ["https://push.example.net/live"]
