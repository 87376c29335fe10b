import threading
from datetime import datetime, timedelta

import pytest
from sqlmodel import Session, select

from mycine.core.challenges import (
    claim_challenge,
    create_challenge,
    delete_challenge,
    increment_progress,
    initialize_user_challenges,
    list_user_challenges,
    period_start,
    reset_expired_progress,
    summarize_challenges,
    update_challenge,
)
from mycine.core.errors import ConflictError, NotFoundError, XPValidationError
from mycine.core.xp import get_user_xp
from mycine.models.challenges import Challenge, ChallengeProgress, ChallengeStatus, ChallengeType
from mycine.models.xp import XPEvent, XPEventType

# A Monday.
MONDAY = datetime(2026, 10, 19, 10, 0)


def _xp_events(session, user_id):
    return session.exec(select(XPEvent).where(XPEvent.user_id == user_id)).all()


def test_period_start_uses_midnight_and_monday():
    wednesday = datetime(2026, 10, 21, 15, 30)

    assert period_start(ChallengeType.DAILY, wednesday) == datetime(2026, 10, 21)
    assert period_start(ChallengeType.WEEKLY, wednesday) == datetime(2026, 10, 19)
    assert period_start(ChallengeType.WEEKLY, MONDAY) == datetime(2026, 10, 19)
    assert period_start(ChallengeType.UNIQUE, wednesday) is None


def test_increment_creates_progress_lazily(session, make_challenge):
    challenge = make_challenge(session, ChallengeType.UNIQUE, target_value=5)

    views = list_user_challenges(session, "user-1", now=MONDAY)
    assert views[0].current_progress == 0
    assert views[0].status == ChallengeStatus.IN_PROGRESS
    assert session.exec(select(ChallengeProgress)).all() == []

    rows = increment_progress(session, "user-1", challenge.id, now=MONDAY)

    assert rows[0].current_progress == 1
    assert rows[0].status == ChallengeStatus.IN_PROGRESS


def test_crossing_target_completes_and_clamps_without_xp(session, make_challenge):
    challenge = make_challenge(session, ChallengeType.UNIQUE, target_value=5, xp_reward=100)

    increment_progress(session, "user-1", challenge.id, 4, now=MONDAY)
    rows = increment_progress(session, "user-1", challenge.id, 2, now=MONDAY)

    assert rows[0].current_progress == 5
    assert rows[0].status == ChallengeStatus.COMPLETED
    assert rows[0].completed_at == MONDAY
    assert _xp_events(session, "user-1") == []
    assert get_user_xp(session, "user-1") is None


def test_reaching_target_exactly_completes(session, make_challenge):
    challenge = make_challenge(session, ChallengeType.UNIQUE, target_value=3)

    rows = increment_progress(session, "user-1", challenge.id, 3, now=MONDAY)

    assert rows[0].current_progress == 3
    assert rows[0].status == ChallengeStatus.COMPLETED


def test_completed_rows_stop_counting(session, make_challenge):
    challenge = make_challenge(session, ChallengeType.UNIQUE, target_value=2)

    increment_progress(session, "user-1", challenge.id, 2, now=MONDAY)
    rows = increment_progress(session, "user-1", challenge.id, 5, now=MONDAY)

    assert rows[0].current_progress == 2
    assert rows[0].status == ChallengeStatus.COMPLETED


def test_increment_by_type_only_touches_open_challenges(session, make_challenge):
    daily = make_challenge(session, ChallengeType.DAILY, target_value=3)
    make_challenge(session, ChallengeType.DAILY, target_value=3, is_active=False)
    make_challenge(
        session,
        ChallengeType.DAILY,
        target_value=3,
        end_date=MONDAY - timedelta(days=1),
    )
    make_challenge(session, ChallengeType.WEEKLY, target_value=3)

    rows = increment_progress(session, "user-1", ChallengeType.DAILY, now=MONDAY)

    assert [row.challenge_id for row in rows] == [daily.id]
    assert len(session.exec(select(ChallengeProgress)).all()) == 1


def test_increment_rejects_bad_targets(session, make_challenge):
    closed = make_challenge(session, ChallengeType.UNIQUE, is_active=False)

    with pytest.raises(XPValidationError):
        increment_progress(session, "user-1", "monthly", now=MONDAY)
    with pytest.raises(XPValidationError):
        increment_progress(session, "user-1", ChallengeType.DAILY, -1, now=MONDAY)
    with pytest.raises(NotFoundError):
        increment_progress(session, "user-1", 999, now=MONDAY)
    with pytest.raises(ConflictError) as excinfo:
        increment_progress(session, "user-1", closed.id, now=MONDAY)

    assert excinfo.value.code == "challenge.closed"


def test_claim_grants_reward_once(session, make_challenge):
    challenge = make_challenge(session, ChallengeType.UNIQUE, target_value=1, xp_reward=120)
    increment_progress(session, "user-1", challenge.id, now=MONDAY)

    progress, event = claim_challenge(session, "user-1", challenge.id, now=MONDAY)

    assert progress.status == ChallengeStatus.CLAIMED
    assert progress.claimed_at == MONDAY
    assert event.event_type == XPEventType.CHALLENGE_COMPLETE
    assert event.xp_amount == 120
    assert event.reference_id == str(challenge.id)
    assert get_user_xp(session, "user-1").total_xp == 120

    with pytest.raises(ConflictError) as excinfo:
        claim_challenge(session, "user-1", challenge.id, now=MONDAY)

    assert excinfo.value.code == "challenge.already_claimed"
    assert len(_xp_events(session, "user-1")) == 1


def test_claim_requires_completion(session, make_challenge):
    challenge = make_challenge(session, ChallengeType.UNIQUE, target_value=5)
    increment_progress(session, "user-1", challenge.id, now=MONDAY)

    with pytest.raises(ConflictError) as excinfo:
        claim_challenge(session, "user-1", challenge.id, now=MONDAY)
    with pytest.raises(ConflictError):
        claim_challenge(session, "user-2", challenge.id, now=MONDAY)
    with pytest.raises(NotFoundError):
        claim_challenge(session, "user-1", 999, now=MONDAY)

    assert excinfo.value.code == "challenge.not_completed"


def test_daily_progress_resets_on_the_next_day(session, make_challenge):
    challenge = make_challenge(session, ChallengeType.DAILY, target_value=2)
    increment_progress(session, "user-1", challenge.id, 2, now=MONDAY)
    tuesday = MONDAY + timedelta(days=1)

    # Reading is side-effect free but already reports the new period.
    view = list_user_challenges(session, "user-1", now=tuesday)[0]
    assert view.current_progress == 0
    assert view.status == ChallengeStatus.IN_PROGRESS
    stored = session.exec(select(ChallengeProgress)).one()
    assert stored.status == ChallengeStatus.COMPLETED

    rows = increment_progress(session, "user-1", challenge.id, now=tuesday)

    assert rows[0].current_progress == 1
    assert rows[0].status == ChallengeStatus.IN_PROGRESS
    assert rows[0].completed_at is None
    assert rows[0].last_reset_at == datetime(2026, 10, 20)


def test_weekly_progress_survives_within_the_week(session, make_challenge):
    challenge = make_challenge(session, ChallengeType.WEEKLY, target_value=10)
    increment_progress(session, "user-1", challenge.id, 3, now=MONDAY)

    sunday = MONDAY + timedelta(days=6, hours=12)
    assert reset_expired_progress(session, "user-1", sunday) == 0
    rows = increment_progress(session, "user-1", challenge.id, now=sunday)
    assert rows[0].current_progress == 4

    next_monday = MONDAY + timedelta(days=7)
    assert reset_expired_progress(session, "user-1", next_monday) == 1


def test_unique_challenges_never_reset(session, make_challenge):
    challenge = make_challenge(session, ChallengeType.UNIQUE, target_value=2)
    increment_progress(session, "user-1", challenge.id, 2, now=MONDAY)

    later = MONDAY + timedelta(days=90)

    assert reset_expired_progress(session, "user-1", later) == 0
    view = list_user_challenges(session, "user-1", now=later)[0]
    assert view.status == ChallengeStatus.COMPLETED


def test_daily_challenge_can_be_claimed_each_day(session, make_challenge):
    challenge = make_challenge(session, ChallengeType.DAILY, target_value=1, xp_reward=30)
    tuesday = MONDAY + timedelta(days=1)

    for day in (MONDAY, tuesday):
        increment_progress(session, "user-1", challenge.id, now=day)
        claim_challenge(session, "user-1", challenge.id, now=day)

    references = sorted(event.reference_id for event in _xp_events(session, "user-1"))
    assert references == [f"{challenge.id}:2026-10-19", f"{challenge.id}:2026-10-20"]
    assert get_user_xp(session, "user-1").total_xp == 60


def test_initialize_creates_rows_for_open_challenges(session, make_challenge):
    make_challenge(session, ChallengeType.DAILY)
    make_challenge(session, ChallengeType.UNIQUE)
    make_challenge(session, ChallengeType.WEEKLY, is_active=False)

    rows = initialize_user_challenges(session, "user-1", now=MONDAY)
    again = initialize_user_challenges(session, "user-1", now=MONDAY)

    assert len(rows) == 2
    assert {row.id for row in again} == {row.id for row in rows}


def test_summarize_challenges_counts_statuses(session, make_challenge):
    done = make_challenge(session, ChallengeType.UNIQUE, target_value=1, xp_reward=50)
    make_challenge(session, ChallengeType.UNIQUE, target_value=4, xp_reward=25)
    increment_progress(session, "user-1", done.id, now=MONDAY)

    summary = summarize_challenges(list_user_challenges(session, "user-1", now=MONDAY))

    assert summary.total == 2
    assert summary.completed == 1
    assert summary.in_progress == 1
    assert summary.claimed == 0
    assert summary.available_xp == 75


def test_create_challenge_validates_definition(session):
    with pytest.raises(XPValidationError):
        create_challenge(session, name="Zero", challenge_type=ChallengeType.DAILY, target_value=0)
    with pytest.raises(XPValidationError):
        create_challenge(
            session,
            name="Backwards",
            challenge_type=ChallengeType.DAILY,
            target_value=1,
            start_date=MONDAY,
            end_date=MONDAY - timedelta(days=1),
        )

    challenge = create_challenge(
        session,
        name="  Maratona  ",
        challenge_type="weekly",
        target_value=5,
        xp_reward=150,
    )
    assert challenge.id is not None
    assert challenge.name == "Maratona"
    assert challenge.type == ChallengeType.WEEKLY


def test_type_is_locked_once_progress_exists(session, make_challenge):
    challenge = make_challenge(session, ChallengeType.DAILY, target_value=3)

    update_challenge(session, challenge.id, type=ChallengeType.WEEKLY, xp_reward=70)
    assert challenge.type == ChallengeType.WEEKLY
    assert challenge.xp_reward == 70

    increment_progress(session, "user-1", challenge.id, now=MONDAY)

    with pytest.raises(ConflictError) as excinfo:
        update_challenge(session, challenge.id, type=ChallengeType.UNIQUE)
    assert excinfo.value.code == "challenge.type_locked"

    updated = update_challenge(session, challenge.id, name="Renamed")
    assert updated.name == "Renamed"

    with pytest.raises(XPValidationError):
        update_challenge(session, challenge.id, owner="someone")


def test_delete_deactivates_challenges_with_progress(session, make_challenge):
    used = make_challenge(session, ChallengeType.UNIQUE)
    unused = make_challenge(session, ChallengeType.UNIQUE)
    increment_progress(session, "user-1", used.id, now=MONDAY)

    assert delete_challenge(session, used.id) is False
    assert delete_challenge(session, unused.id) is True
    session.flush()

    assert session.get(Challenge, used.id).is_active is False
    assert session.get(Challenge, unused.id) is None


def test_update_rejects_null_for_required_fields(session, make_challenge):
    challenge = make_challenge(session, ChallengeType.DAILY, target_value=3, xp_reward=40)

    for field in ("name", "target_value", "xp_reward", "is_active"):
        with pytest.raises(XPValidationError) as excinfo:
            update_challenge(session, challenge.id, **{field: None})
        assert excinfo.value.code == "challenge.required_fields"

    updated = update_challenge(session, challenge.id, description=None, end_date=None)
    session.flush()
    assert updated.target_value == 3
    assert updated.xp_reward == 40


def test_concurrent_increments_are_not_lost(file_engine, make_challenge):
    with Session(file_engine) as setup:
        challenge_id = make_challenge(setup, ChallengeType.UNIQUE, target_value=5).id
        initialize_user_challenges(setup, "user-1", now=MONDAY)
        setup.commit()

    first_incremented = threading.Event()
    release_first = threading.Event()
    errors = []

    def first_writer():
        try:
            with Session(file_engine) as first:
                increment_progress(first, "user-1", challenge_id, now=MONDAY)
                first_incremented.set()
                release_first.wait(5)
                first.commit()
        except Exception as exc:
            errors.append(exc)
            first_incremented.set()

    thread = threading.Thread(target=first_writer)
    thread.start()
    assert first_incremented.wait(5)

    # The second writer starts while the first is still uncommitted and waits
    # on the database lock until the timer lets the first one commit.
    timer = threading.Timer(0.2, release_first.set)
    timer.start()
    with Session(file_engine) as second:
        rows = increment_progress(second, "user-1", challenge_id, now=MONDAY)
        second.commit()
        assert rows[0].current_progress == 2
    thread.join(5)
    timer.cancel()

    assert errors == []
    with Session(file_engine) as check:
        stored = check.exec(
            select(ChallengeProgress).where(ChallengeProgress.challenge_id == challenge_id)
        ).one()
        assert stored.current_progress == 2
