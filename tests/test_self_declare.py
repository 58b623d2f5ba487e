"""
Self-declared action logging: daily caps, idempotency and the counter
compare-and-swap.
"""
from datetime import datetime

import pytest
from sqlalchemy import func, select, update

from playearth.core.errors import (
    Conflict,
    DailyActionCapReached,
    DailyPointsCapReached,
    DuplicateRequest,
    NotFound,
)
from playearth.models.action import ActionLog
from playearth.models.points_ledger import PointsLedgerEntry
from playearth.models.profile import Profile
from playearth.models.self_declare_limit import SelfDeclareLimit
from playearth.services.self_declare import (
    DAILY_ACTION_CAP,
    DAILY_POINTS_CAP,
    SelfDeclareService,
    _round_half_up,
    confidence_multiplier,
    self_declared_points,
)


def _count(db, model):
    return db.execute(select(func.count()).select_from(model)).scalar()


@pytest.fixture
def service(db_session, clock, action_types):
    return SelfDeclareService(db_session, clock)


class TestPointFormula:
    @pytest.mark.parametrize(
        "confidence,expected",
        [(1.0, 1.0), (0.8, 1.0), (0.79, 0.6), (0.4, 0.6), (0.39, 0.3), (0.0, 0.3)],
    )
    def test_confidence_multiplier(self, confidence, expected):
        assert confidence_multiplier(confidence) == expected

    def test_rounds_half_up(self):
        assert _round_half_up(0.5) == 1
        assert _round_half_up(2.5) == 3
        assert _round_half_up(1.49) == 1

    def test_per_action_ceiling(self):
        # round(30 * 1.0 * 0.3) = 9, held to 3
        assert self_declared_points(30, 0.85) == 3
        assert self_declared_points(10, 0.85) == 3
        assert self_declared_points(10, 0.5) == 2
        assert self_declared_points(10, 0.1) == 1
        assert self_declared_points(1, 0.85) == 0


class TestLogAction:
    def test_first_action_of_the_day(self, service, db_session):
        result = service.log_action("user-1", "repaired-item", "req-1")

        assert result.points_awarded == 3
        assert result.daily_points_remaining == 7
        assert result.daily_actions_remaining == 4

        log = db_session.get(ActionLog, result.action_log_id)
        assert log.source == "self_declared"
        assert log.credits_earned == 3
        assert log.confidence == pytest.approx(0.85)

        entry = db_session.execute(select(PointsLedgerEntry)).scalar_one()
        assert entry.points == 3
        assert entry.action_log_id == log.id
        assert entry.source == "self_declared"
        assert db_session.get(Profile, "user-1").points == 3

    def test_zero_confidence_falls_back_to_default(self, service, db_session):
        result = service.log_action("user-1", "refill-bottle", "req-1", confidence=0)
        assert result.points_awarded == 3
        assert db_session.get(ActionLog, result.action_log_id).confidence == pytest.approx(0.85)

    def test_low_confidence_scales_points_down(self, service, db_session):
        result = service.log_action("user-1", "repaired-item", "req-1", confidence=0.2)
        # round(30 * 0.3 * 0.3) = 3
        assert result.points_awarded == 3
        result = service.log_action("user-1", "refill-bottle", "req-2", confidence=0.2)
        # round(10 * 0.3 * 0.3) = 1
        assert result.points_awarded == 1

    def test_sixth_action_rejected_regardless_of_points_left(self, service, db_session):
        for i in range(DAILY_ACTION_CAP):
            result = service.log_action("user-1", "tiny-step", f"req-{i}")
            assert result.points_awarded == 0

        with pytest.raises(DailyActionCapReached) as exc:
            service.log_action("user-1", "refill-bottle", "req-6")

        assert "5 per day" in exc.value.message
        usage = service.usage("user-1")
        assert usage.actions_count == DAILY_ACTION_CAP
        assert usage.points_remaining == DAILY_POINTS_CAP
        assert _count(db_session, ActionLog) == DAILY_ACTION_CAP

    def test_points_clamped_at_daily_cap(self, service, db_session):
        awarded = [service.log_action("user-1", "repaired-item", f"req-{i}").points_awarded for i in range(4)]
        # 3 + 3 + 3, then min(3, 10 - 9)
        assert awarded == [3, 3, 3, 1]
        assert service.usage("user-1").points_used == DAILY_POINTS_CAP

        with pytest.raises(DailyPointsCapReached):
            service.log_action("user-1", "repaired-item", "req-5")

        usage = service.usage("user-1")
        assert usage.actions_count == 4
        assert usage.points_used == DAILY_POINTS_CAP
        assert db_session.get(Profile, "user-1").points == DAILY_POINTS_CAP

    def test_zero_point_action_still_counts(self, service, db_session):
        service.log_action("user-1", "refill-bottle", "req-1")
        result = service.log_action("user-1", "tiny-step", "req-2")

        assert result.points_awarded == 0
        assert result.daily_actions_remaining == 3
        assert service.usage("user-1").points_used == 3
        # no ledger entry for a zero award
        assert _count(db_session, PointsLedgerEntry) == 1

    def test_duplicate_request_changes_nothing(self, service, db_session):
        service.log_action("user-1", "refill-bottle", "req-1")
        before = service.usage("user-1")

        with pytest.raises(DuplicateRequest):
            service.log_action("user-1", "refill-bottle", "req-1")

        assert service.usage("user-1") == before
        assert _count(db_session, ActionLog) == 1
        assert _count(db_session, PointsLedgerEntry) == 1

    def test_unknown_action_type_writes_nothing(self, service, db_session):
        with pytest.raises(NotFound):
            service.log_action("user-1", "no-such-action", "req-1")
        assert _count(db_session, ActionLog) == 0
        assert _count(db_session, SelfDeclareLimit) == 0

    def test_caps_reset_on_the_next_utc_day(self, service, clock):
        for i in range(DAILY_ACTION_CAP):
            service.log_action("user-1", "tiny-step", f"day1-{i}")
        with pytest.raises(DailyActionCapReached):
            service.log_action("user-1", "repaired-item", "day1-extra")

        clock.advance(days=1)
        result = service.log_action("user-1", "repaired-item", "day2-0")

        assert result.points_awarded == 3
        assert result.daily_actions_remaining == 4

    def test_caps_are_per_user(self, service):
        for i in range(DAILY_ACTION_CAP):
            service.log_action("user-1", "tiny-step", f"u1-{i}")
        result = service.log_action("user-2", "refill-bottle", "u2-0")
        assert result.points_awarded == 3

    def test_counter_timestamps_follow_the_clock(self, service, db_session, clock):
        service.log_action("user-1", "tiny-step", "req-1")
        counter = db_session.execute(select(SelfDeclareLimit)).scalar_one()
        assert counter.updated_at == datetime(2025, 6, 15, 12, 0)

        clock.advance(hours=1)
        service.log_action("user-1", "tiny-step", "req-2")
        db_session.expire_all()
        counter = db_session.execute(select(SelfDeclareLimit)).scalar_one()
        assert counter.updated_at == datetime(2025, 6, 15, 13, 0)


class TestCounterRace:
    def _bump_counter(self, db, user_id):
        db.execute(
            update(SelfDeclareLimit)
            .where(SelfDeclareLimit.user_id == user_id)
            .values(daily_actions_count=SelfDeclareLimit.daily_actions_count + 1)
            .execution_options(synchronize_session=False)
        )

    def test_moved_counter_is_reevaluated(self, service, db_session, monkeypatch):
        service.log_action("user-1", "refill-bottle", "req-1")
        real_counter = service._counter
        calls = []

        def racing_counter(user_id, day):
            row = real_counter(user_id, day)
            calls.append(day)
            if len(calls) == 1:
                # another request lands between this read and the write
                self._bump_counter(db_session, user_id)
            return row

        monkeypatch.setattr(service, "_counter", racing_counter)
        result = service.log_action("user-1", "refill-bottle", "req-2")

        assert len(calls) == 2
        assert result.points_awarded == 3
        assert result.daily_actions_remaining == 3
        assert _count(db_session, ActionLog) == 2
        assert _count(db_session, PointsLedgerEntry) == 2

    def test_gives_up_after_repeated_moves(self, service, db_session, monkeypatch):
        service.log_action("user-1", "refill-bottle", "req-1")
        real_counter = service._counter

        def always_racing(user_id, day):
            row = real_counter(user_id, day)
            self._bump_counter(db_session, user_id)
            return row

        monkeypatch.setattr(service, "_counter", always_racing)
        with pytest.raises(Conflict):
            service.log_action("user-1", "refill-bottle", "req-2")

        monkeypatch.undo()
        usage = service.usage("user-1")
        assert (usage.actions_count, usage.points_used) == (1, 3)
        assert _count(db_session, ActionLog) == 1
        assert db_session.get(Profile, "user-1").points == 3

    def test_duplicate_key_caught_by_unique_constraint(self, service, db_session, monkeypatch):
        service.log_action("user-1", "refill-bottle", "req-1")
        # a concurrent retry inserted the key after this request checked for it
        monkeypatch.setattr(service, "_already_logged", lambda client_request_id: False)

        with pytest.raises(DuplicateRequest):
            service.log_action("user-1", "refill-bottle", "req-1")

        usage = service.usage("user-1")
        assert (usage.actions_count, usage.points_used) == (1, 3)
        assert _count(db_session, ActionLog) == 1
        assert _count(db_session, PointsLedgerEntry) == 1
        assert db_session.get(Profile, "user-1").points == 3


class TestActionsApi:
    def test_requires_bearer_token(self, client, action_types):
        r = client.post("/api/actions/log", json={"actionTypeId": "refill-bottle", "clientRequestId": "r1"})
        assert r.status_code == 401
        assert r.json() == {"error": "Unauthorized"}

    def test_rejects_invalid_token(self, client, action_types):
        r = client.post(
            "/api/actions/log",
            json={"actionTypeId": "refill-bottle", "clientRequestId": "r1"},
            headers={"Authorization": "Bearer not-a-jwt"},
        )
        assert r.status_code == 401
        assert r.json() == {"error": "Invalid session"}

    def test_missing_fields(self, client, auth_headers, action_types):
        r = client.post("/api/actions/log", json={"actionTypeId": "refill-bottle"}, headers=auth_headers())
        assert r.status_code == 400
        assert r.json() == {"error": "Missing required fields: clientRequestId"}

    def test_out_of_range_confidence(self, client, auth_headers, action_types):
        r = client.post(
            "/api/actions/log",
            json={"actionTypeId": "refill-bottle", "clientRequestId": "r1", "confidence": 1.5},
            headers=auth_headers(),
        )
        assert r.status_code == 400
        assert r.json()["error"].startswith("Invalid request")

    def test_unknown_action_type(self, client, auth_headers, action_types):
        r = client.post(
            "/api/actions/log",
            json={"actionTypeId": "nope", "clientRequestId": "r1"},
            headers=auth_headers(),
        )
        assert r.status_code == 404
        assert r.json() == {"error": "Action type not found"}

    def test_log_then_duplicate(self, client, auth_headers, action_types):
        body = {"actionTypeId": "refill-bottle", "clientRequestId": "r1", "note": "bottle again"}
        r = client.post("/api/actions/log", json=body, headers=auth_headers())
        assert r.status_code == 200
        assert r.json() == {
            "success": True,
            "pointsEarned": 3,
            "dailyPointsRemaining": 7,
            "dailyActionsRemaining": 4,
        }

        again = client.post("/api/actions/log", json=body, headers=auth_headers())
        assert again.status_code == 400
        assert again.json() == {"error": "Duplicate action log"}

    def test_cap_reached_message(self, client, auth_headers, action_types):
        for i in range(DAILY_ACTION_CAP):
            client.post(
                "/api/actions/log",
                json={"actionTypeId": "tiny-step", "clientRequestId": f"r{i}"},
                headers=auth_headers(),
            )
        r = client.post(
            "/api/actions/log",
            json={"actionTypeId": "tiny-step", "clientRequestId": "r-last"},
            headers=auth_headers(),
        )
        assert r.status_code == 400
        assert r.json() == {"error": "Daily self-declared action limit reached (5 per day)"}

    def test_my_actions_newest_first(self, client, auth_headers, action_types, clock):
        client.post("/api/actions/log", json={"actionTypeId": "tiny-step", "clientRequestId": "a"}, headers=auth_headers())
        clock.advance(minutes=5)
        client.post("/api/actions/log", json={"actionTypeId": "refill-bottle", "clientRequestId": "b"}, headers=auth_headers())
        client.post(
            "/api/actions/log",
            json={"actionTypeId": "refill-bottle", "clientRequestId": "c"},
            headers=auth_headers("someone-else"),
        )

        r = client.get("/api/actions/my", headers=auth_headers())
        assert r.status_code == 200
        items = r.json()
        assert [i["client_request_id"] for i in items] == ["b", "a"]
        assert items[0]["action_types"]["title"] == "Refill Water Bottle"
        assert items[0]["credits_earned"] == 3

    def test_action_type_catalog_hides_inactive(self, client, action_types):
        r = client.get("/api/action-types")
        assert r.status_code == 200
        ids = {a["id"] for a in r.json()}
        assert ids == {"repaired-item", "refill-bottle", "tiny-step"}
