from sqlalchemy.exc import OperationalError
from sqlmodel import Session, select

from mycine.core.db import get_session
from mycine.models.achievements import RequirementType
from mycine.models.challenges import ChallengeType
from mycine.models.xp import XPEvent

HEADERS = {"X-User-Id": "user-1"}
COMMENT = "Uma direção segura e atuações memoráveis do elenco."


def _seed_title(engine, make_title, name="Cidade de Deus"):
    with Session(engine) as session:
        title = make_title(session, name, ("Drama",))
        session.commit()
        return title.id


def _seed_challenge(engine, make_challenge, **kwargs):
    with Session(engine) as session:
        challenge = make_challenge(session, **kwargs)
        session.commit()
        return challenge.id


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"ok": True}


def test_requests_without_identity_are_rejected(client):
    assert client.get("/me/xp").status_code == 401
    assert client.get("/me/xp", headers={"X-User-Id": "x" * 40}).status_code == 400


def test_new_user_starts_at_level_one(client):
    response = client.get("/me/xp", headers=HEADERS)

    assert response.status_code == 200
    body = response.json()
    assert body["total_xp"] == 0
    assert body["level"] == 1
    assert body["rank"] == "bronze"
    assert body["rank_label"] == "BRONZE"
    assert body["next_level_xp"] == 150


def test_posting_a_review_awards_xp(client, engine, make_title):
    title_id = _seed_title(engine, make_title)

    response = client.post(
        f"/titles/{title_id}/reviews",
        json={"rating": 5, "comment": COMMENT},
        headers=HEADERS,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["created"] is True
    assert body["xp_gained"] == 80
    assert body["xp_events"] == ["first_review_title", "daily_review", "extra_comment"]
    assert body["xp"]["total_xp"] == 80

    history = client.get("/me/xp/history", headers=HEADERS).json()["events"]
    assert len(history) == 3
    assert {event["label"] for event in history} >= {"Review comment"}

    rating = client.get(f"/titles/{title_id}/rating").json()
    assert rating == {"title_id": title_id, "average_rating": 5.0, "reviews_count": 1}


def test_invalid_review_returns_error_detail(client, engine, make_title):
    title_id = _seed_title(engine, make_title)

    short = client.post(
        f"/titles/{title_id}/reviews", json={"rating": 4, "comment": "curto"}, headers=HEADERS
    )
    missing = client.post("/titles/999/reviews", json={"rating": 4}, headers=HEADERS)

    assert short.status_code == 422
    assert short.json()["detail"]["code"] == "review.comment_too_short"
    assert missing.status_code == 404
    assert missing.json()["detail"]["code"] == "title.not_found"


def test_challenge_claim_flow(client, engine, make_title, make_challenge):
    title_id = _seed_title(engine, make_title)
    challenge_id = _seed_challenge(
        engine, make_challenge, challenge_type=ChallengeType.UNIQUE, target_value=1, xp_reward=150
    )

    before = client.get("/challenges", headers=HEADERS).json()
    assert before["challenges"][0]["status"] == "in_progress"
    assert before["summary"]["available_xp"] == 150

    client.post(f"/titles/{title_id}/reviews", json={"rating": 4}, headers=HEADERS)
    board = client.get("/challenges", headers=HEADERS).json()
    assert board["challenges"][0]["status"] == "completed"
    assert board["challenges"][0]["percent_complete"] == 100

    claimed = client.post(f"/challenges/{challenge_id}/claim", headers=HEADERS)
    assert claimed.status_code == 200
    assert claimed.json()["xp_gained"] == 150
    assert claimed.json()["xp"]["total_xp"] == 70 + 150
    assert claimed.json()["xp"]["level"] == 2

    again = client.post(f"/challenges/{challenge_id}/claim", headers=HEADERS)
    assert again.status_code == 409
    assert again.json()["detail"]["code"] == "challenge.already_claimed"

    with Session(engine) as session:
        events = session.exec(select(XPEvent).where(XPEvent.user_id == "user-1")).all()
        assert sum(event.xp_amount for event in events) == 220


def test_initialize_challenges(client, engine, make_challenge):
    _seed_challenge(engine, make_challenge, challenge_type=ChallengeType.DAILY)
    _seed_challenge(engine, make_challenge, challenge_type=ChallengeType.WEEKLY)

    response = client.post("/challenges/initialize", headers=HEADERS)

    assert response.json() == {"ok": True, "initialized": 2}


def test_achievements_listing_and_evaluation(client, engine, make_title, make_achievement):
    title_id = _seed_title(engine, make_title)
    with Session(engine) as session:
        make_achievement(session, "explorer", RequirementType.GENRES_EXPLORED, 1, xp_reward=80)
        session.commit()

    listing = client.get("/achievements", headers=HEADERS).json()
    assert listing["total_count"] == 1
    assert listing["unlocked_count"] == 0
    assert listing["achievements"][0]["rarity"] == "rare"

    review = client.post(f"/titles/{title_id}/reviews", json={"rating": 4}, headers=HEADERS)
    assert review.json()["unlocked_achievements"] == ["explorer"]

    evaluated = client.post("/achievements/evaluate", headers=HEADERS).json()
    assert evaluated == {"ok": True, "unlocked": []}

    listing = client.get("/achievements", headers=HEADERS).json()
    assert listing["unlocked_count"] == 1
    assert listing["achievements"][0]["progress"] == 1
    assert listing["achievements"][0]["unlocked_at"] is not None


def test_profile_completion_via_api(client):
    first = client.put(
        "/profile", json={"display_name": "Ana", "username": "ana"}, headers=HEADERS
    ).json()
    second = client.put("/profile", json={"display_name": "Ana C."}, headers=HEADERS).json()

    assert first["profile"]["completed"] is True
    assert first["xp_gained"] == 100
    assert second["xp_gained"] == 0
    assert second["xp"]["total_xp"] == 100


def test_leaderboard_endpoint(client, engine, make_title):
    title_id = _seed_title(engine, make_title)
    client.post(f"/titles/{title_id}/reviews", json={"rating": 5}, headers=HEADERS)
    client.post(
        f"/titles/{title_id}/reviews", json={"rating": 3}, headers={"X-User-Id": "user-2"}
    )
    client.put("/profile", json={"display_name": "Bia", "username": "bia"}, headers={"X-User-Id": "user-2"})

    body = client.get("/leaderboard", headers=HEADERS).json()

    assert [entry["display_name"] for entry in body["entries"]] == ["Bia", "Usuário"]
    assert body["me"]["position"] == 2
    assert body["stats"]["total_reviews"] == 2
    assert body["stats"]["average_rating"] == "4.0"
    assert len(body["ranks"]) == 4


def test_deleting_own_review(client, engine, make_title):
    title_id = _seed_title(engine, make_title)
    review_id = client.post(
        f"/titles/{title_id}/reviews", json={"rating": 5}, headers=HEADERS
    ).json()["review"]["id"]

    other = client.delete(f"/reviews/{review_id}", headers={"X-User-Id": "user-2"})
    mine = client.delete(f"/reviews/{review_id}", headers=HEADERS)

    assert other.status_code == 404
    assert mine.status_code == 200
    assert client.get(f"/titles/{title_id}/rating").json()["reviews_count"] == 0


def test_unreachable_database_is_reported_as_retryable(client):
    def unavailable_session():
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))
        yield  # pragma: no cover

    client.app.dependency_overrides[get_session] = unavailable_session

    response = client.get("/me/xp", headers=HEADERS)

    assert response.status_code == 503
    detail = response.json()["detail"]
    assert detail["code"] == "database.unavailable"
    assert detail["retryable"] is True
