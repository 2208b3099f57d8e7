from datetime import date, timedelta

from mindwell.backend.app import main
from mindwell.backend.app.score_store import ScoreConflictError

TODAY = date(2025, 3, 10)

WORST_ANSWERS = {
    "mood": "depressed",
    "sleepHours": "8",
    "stressLevel": "high",
    "academicPressure": "high",
    "socialSupport": "weak",
    "loneliness": "often",
    "confidenceLevel": "high",
    "opennessToJournaling": "no",
    "willingForProfessionalHelp": "no",
}


def test_requests_without_token_are_rejected(client):
    assert client.get("/wri/today").status_code == 401
    assert client.post("/journal", json={"content": "hello"}).status_code == 401


def test_register_then_login(client):
    response = client.post("/auth/register", json={"email": "a@example.com", "password": "pw-123456"})
    assert response.status_code == 200
    duplicate = client.post("/auth/register", json={"email": "a@example.com", "password": "pw-123456"})
    assert duplicate.status_code == 400

    login = client.post("/auth/login", data={"username": "a@example.com", "password": "pw-123456"})
    assert login.status_code == 200
    assert login.json()["token_type"] == "bearer"
    bad = client.post("/auth/login", data={"username": "a@example.com", "password": "wrong"})
    assert bad.status_code == 400


def test_compute_persists_todays_score(client, auth_headers):
    assert client.get("/wri/today", headers=auth_headers).status_code == 404

    response = client.post("/wri/compute", json={"answers": WORST_ANSWERS}, headers=auth_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["wri"] == 77.0
    assert body["risk_band"] == "red"
    assert body["flags"]["depressive_symptoms"] == "high_priority"
    assert [item["code"] for item in body["recommendations"]] == ["A1", "A3", "A2", "A4", "A5"]
    assert body["date"] == TODAY.isoformat()
    assert body["version"] == 1

    today = client.get("/wri/today", headers=auth_headers).json()
    assert today["wri"] == 77.0


def test_unsupported_language(client, auth_headers):
    response = client.post("/wri/compute", json={"answers": {}, "language": "fr"}, headers=auth_headers)
    assert response.status_code == 400


def test_hindi_answers(client, auth_headers):
    answers = {"mood": "खुश", "sleep_hours": "आठ", "stress_level": "कम", "confidence": "अधिक"}
    body = client.post("/wri/compute", json={"answers": answers, "language": "hi"}, headers=auth_headers).json()
    assert body["subscores"]["mood"] == 0.0
    assert body["subscores"]["sleep"] == 0.0
    assert body["subscores"]["stress_level"] == 0.0
    assert body["subscores"]["confidence"] == 0.0


def test_journal_without_profile_stores_entry_only(client, auth_headers):
    response = client.post("/journal", json={"content": "Went for a walk."}, headers=auth_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["wri"] is None
    assert body["metrics"]["journal_entries_today"] == 1
    assert body["metrics"]["journal_bonus"]["total"] == 10
    assert client.get("/wri/today", headers=auth_headers).status_code == 404


def test_journal_bonus_is_not_applied_twice(client, auth_headers):
    client.post("/wri/compute", json={"answers": WORST_ANSWERS}, headers=auth_headers)

    first = client.post("/journal", json={"content": "First entry"}, headers=auth_headers).json()
    assert first["wri"] == 67.0
    assert first["risk_band"] == "orange"

    second = client.post("/journal", json={"content": "Second entry"}, headers=auth_headers).json()
    assert second["metrics"]["journal_bonus"] == {"base": 5, "frequency": 6, "streak": 2, "weekly": 0, "total": 13}
    assert second["wri"] == 64.0

    today = client.get("/wri/today", headers=auth_headers).json()
    assert today["wri"] == 64.0
    assert today["base_wri"] == 77.0
    assert today["version"] == 3


def test_journal_validation(client, auth_headers):
    empty = client.post("/journal", json={"content": "   "}, headers=auth_headers)
    assert empty.status_code == 400

    backdated = client.post(
        "/journal",
        json={"content": "Yesterday", "entry_date": (TODAY - timedelta(days=1)).isoformat()},
        headers=auth_headers,
    )
    assert backdated.status_code == 403


def test_journal_entry_is_kept_when_score_write_conflicts(client, auth_headers, session_factory, monkeypatch):
    client.post("/wri/compute", json={"answers": WORST_ANSWERS}, headers=auth_headers)

    def always_conflicting(user_id, score_date, build, db):
        raise ScoreConflictError(user_id, score_date, 3)

    monkeypatch.setattr(main, "write_daily_score", always_conflicting)
    response = client.post("/journal", json={"content": "Busy day"}, headers=auth_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["wri"] is None
    assert body["metrics"]["journal_entries_today"] == 1

    db = session_factory()
    try:
        assert db.query(main.JournalEntry).count() == 1
    finally:
        db.close()

    assert client.post("/wri/compute", json={"answers": WORST_ANSWERS}, headers=auth_headers).status_code == 409


def test_token_with_non_numeric_subject_is_rejected(client):
    token = main.create_access_token({"sub": "student@example.com"})
    response = client.get("/wri/today", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


def test_backdated_entries_in_dev_mode_build_a_streak(client, auth_headers, monkeypatch):
    monkeypatch.setenv("MINDWELL_DEV_MODE", "1")
    for offset in (2, 1, 0):
        day = (TODAY - timedelta(days=offset)).isoformat()
        response = client.post("/journal", json={"content": f"Entry {offset}", "entry_date": day}, headers=auth_headers)
        assert response.status_code == 200

    metrics = client.get("/journal/metrics", headers=auth_headers).json()
    assert metrics["journal_streak"] == 3
    assert metrics["weekly_journal_count"] == 3
    assert metrics["journal_entries_today"] == 1
    assert metrics["journal_bonus"] == {"base": 5, "frequency": 3, "streak": 8, "weekly": 6, "total": 22}

    entries = client.get("/journal?days=7", headers=auth_headers).json()
    assert len(entries) == 3


def test_history_feeds_trend_note(client, auth_headers, session_factory):
    me = client.post("/wri/compute", json={"answers": {}}, headers=auth_headers).json()
    assert "trend_note" not in me["copy"]

    db = session_factory()
    try:
        user = db.query(main.User).filter(main.User.email == "student@example.com").one()
        for offset in range(1, 15):
            value = 30.0 if offset <= 7 else 45.0
            db.add(main.DailyScore(
                user_id=user.id,
                score_date=TODAY - timedelta(days=offset),
                wri=value,
                base_wri=value,
                risk_band="yellow",
                payload_json="{}",
            ))
        db.commit()
    finally:
        db.close()

    body = client.post("/wri/compute", json={"answers": {}}, headers=auth_headers).json()
    assert body["history_indexes"]["weekly_index"] == 30.0
    assert body["copy"]["trend_note"].startswith("Trending down")

    history = client.get("/wri/history?days=7", headers=auth_headers).json()
    assert [point["date"] for point in history][-1] == TODAY.isoformat()
    assert len(history) == 7


def test_meta_hides_db_path_outside_dev_mode(client):
    assert "db_path" not in client.get("/meta").json()
