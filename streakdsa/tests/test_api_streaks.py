"""HTTP surface over the in-memory store."""

import asyncio

import pytest
from fastapi.testclient import TestClient

from streakdsa.api import deps
from streakdsa.main import app


@pytest.fixture
def client(services):
    deps.install_services(services)
    return TestClient(app)


def _onboard(client, user_id="u1", **body):
    body.setdefault("pledge_days", 30)
    resp = client.put(f"/v1/users/{user_id}", json=body)
    assert resp.status_code == 201
    return resp.json()


def test_onboard_and_profile(client):
    created = _onboard(client, timezone="Asia/Kolkata", reminder_time="21:30")
    assert created["start_date"] == "2026-03-10"
    assert created["current_streak"] == 0

    profile = client.get("/v1/users/u1").json()
    assert profile["timezone"] == "Asia/Kolkata"

    updated = client.patch("/v1/users/u1/settings", json={"daily_problem_limit": 3})
    assert updated.status_code == 200
    assert updated.json()["daily_problem_limit"] == 3


def test_log_view_and_delete_problem(client):
    _onboard(client)

    logged = client.post("/v1/problems/u1", json={"name": "Two Sum", "difficulty": "easy", "topic": "arrays"})
    assert logged.status_code == 201
    body = logged.json()
    assert body["problem"]["topic"] == "ARRAYS"
    assert body["milestone"] == "FIRST_DAY"
    assert body["gems"] == 10

    state = client.get("/v1/streaks/u1").json()
    assert state["current_streak"] == 1
    assert state["today"]["status"] == "completed"

    today = client.get("/v1/problems/u1/today").json()
    assert today["count"] == 1

    problem_id = body["problem"]["id"]
    removed = client.delete(f"/v1/problems/u1/{problem_id}")
    assert removed.status_code == 200
    assert removed.json()["remaining"] == 0
    assert client.get("/v1/streaks/u1").json()["current_streak"] == 0


def test_freeze_needs_gems(client):
    _onboard(client)
    client.post("/v1/problems/u1", json={"name": "Two Sum", "difficulty": "EASY"})

    resp = client.post("/v1/streaks/u1/freeze")
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "insufficient_gems"


def test_freeze_covers_local_today_only(client, make_user):
    # 15:00 UTC is already 04:00 on the 11th in Auckland
    asyncio.run(make_user("u1", gems=80, timezone="Pacific/Auckland"))

    resp = client.post("/v1/streaks/u1/freeze", json={"day": "2026-03-20"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["date"] == "2026-03-11"
    assert body["gems"] == 30
    assert body["streak"]["days_completed"] == 1
    assert client.get("/v1/streaks/u1").json()["today"]["status"] == "frozen"


def test_freeze_on_completed_day_conflicts(client, make_user):
    asyncio.run(make_user("u1", gems=500))
    client.post("/v1/problems/u1", json={"name": "Two Sum", "difficulty": "EASY"})

    resp = client.post("/v1/streaks/u1/freeze")

    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "already_completed"
    assert client.get("/v1/streaks/u1").json()["gems"] == 510


def test_recalculate_endpoint(client):
    _onboard(client)
    resp = client.post("/v1/streaks/u1/recalculate")
    assert resp.status_code == 200
    assert resp.json() == {"current_streak": 0, "max_streak": 0, "days_completed": 0}


def test_milestone_preview(client):
    resp = client.get("/v1/streaks/milestones/evaluate", params={"streak": 7, "pledge_complete": "true"})
    assert resp.status_code == 200
    assert resp.json()["reward_amount"] == 550
    assert resp.json()["milestone"] == "PLEDGE_COMPLETE"


def test_healthz(client):
    assert client.get("/healthz").json() == {"status": "ok"}
    assert client.get("/readyz").json()["store"] == "memory"


def test_claim_milestone_once(client, make_user):
    asyncio.run(make_user("u1", current_streak=7, max_streak=7))

    first = client.post("/v1/streaks/u1/milestones/claim", json={"streak": 7})
    assert first.status_code == 200
    assert first.json() == {"milestone": 7, "reward": 50, "gems": 50, "claimed_milestones": [7]}

    again = client.post("/v1/streaks/u1/milestones/claim", json={"streak": 7})
    assert again.status_code == 409
    assert again.json()["error"]["code"] == "milestone_already_claimed"

    state = client.get("/v1/streaks/u1").json()
    assert state["gems"] == 50
    assert state["claimed_milestones"] == [7]


def test_claim_rejections_have_distinct_codes(client, make_user):
    asyncio.run(make_user("u1", current_streak=7, max_streak=7))

    odd = client.post("/v1/streaks/u1/milestones/claim", json={"streak": 5})
    assert odd.status_code == 400
    assert odd.json()["error"]["code"] == "milestone_not_claimable"

    early = client.post("/v1/streaks/u1/milestones/claim", json={"streak": 30})
    assert early.status_code == 409
    assert early.json()["error"]["code"] == "milestone_not_reached"

    assert client.get("/v1/streaks/u1").json()["gems"] == 0


def test_edit_problem(client):
    _onboard(client)
    logged = client.post("/v1/problems/u1", json={"name": "Two Sum", "difficulty": "EASY"}).json()
    problem_id = logged["problem"]["id"]

    resp = client.patch(
        f"/v1/problems/u1/{problem_id}",
        json={"difficulty": "hard", "topic": "graphs", "notes": "BFS from every node"},
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["problem"]["name"] == "Two Sum"
    assert body["problem"]["difficulty"] == "HARD"
    assert body["problem"]["topic"] == "GRAPHS"
    assert body["problem"]["notes"] == "BFS from every node"
    assert body["gems_delta"] == 20
    assert body["gems"] == 30
    assert client.get("/v1/problems/u1/today").json()["problems"][0]["difficulty"] == "HARD"


def test_edit_someone_elses_problem_is_not_found(client):
    _onboard(client, "u1")
    _onboard(client, "u2")
    logged = client.post("/v1/problems/u1", json={"name": "Two Sum", "difficulty": "EASY"}).json()
    problem_id = logged["problem"]["id"]

    resp = client.patch(f"/v1/problems/u2/{problem_id}", json={"name": "Stolen"})

    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "not_found"
    assert client.get("/v1/problems/u1/today").json()["problems"][0]["name"] == "Two Sum"
    assert client.patch("/v1/problems/u1/nope", json={"name": "X"}).status_code == 404
