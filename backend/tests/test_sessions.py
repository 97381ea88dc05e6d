import pytest
from fastapi import HTTPException

from practica.routers.common import SessionRegistry, get_session


class Clock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class Closable:
    def __init__(self):
        self.closed = False

    def close(self):
        self.closed = True


@pytest.fixture
def clock():
    return Clock()


def test_idle_sessions_are_swept_and_closed(clock):
    registry = SessionRegistry(ttl_seconds=100, clock=clock)
    idle, busy = Closable(), Closable()
    idle_id = registry.add(idle)
    busy_id = registry.add(busy)

    clock.now = 80
    assert registry.get(busy_id) is busy
    clock.now = 150
    assert registry.sweep() == 1

    assert idle_id not in registry
    assert idle.closed
    assert registry.get(busy_id) is busy
    assert not busy.closed


def test_sessions_without_close_are_swept(clock):
    registry = SessionRegistry(ttl_seconds=10, clock=clock)
    sid = registry.add(object())
    clock.now = 11
    assert registry.sweep() == 1
    with pytest.raises(HTTPException) as err:
        get_session(registry, sid)
    assert err.value.status_code == 404


def test_clear_closes_everything(clock):
    registry = SessionRegistry(ttl_seconds=10, clock=clock)
    controllers = [Closable(), Closable()]
    for c in controllers:
        registry.add(c)
    registry.clear()
    assert len(registry) == 0
    assert all(c.closed for c in controllers)


def test_abandoned_exam_is_evicted(client, scheduler, monkeypatch):
    from practica import main
    from practica.routers import exam

    sid = client.post("/exam/session", json={"level": "B1"}).json()["session_id"]
    client.post("/exam/begin", json={"session_id": sid})
    assert scheduler.active

    monkeypatch.setattr(exam._sessions, "ttl_seconds", -1)
    assert main.sweep_idle_sessions() >= 1
    assert client.get("/exam/state", params={"session_id": sid}).status_code == 404
    # the countdown went with the session
    assert scheduler.active == []
