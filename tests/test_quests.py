from sqlalchemy import select

from playearth.models.points_ledger import PointsLedgerEntry
from playearth.models.profile import Profile
from playearth.models.quest import GpsSession, ProofSubmission, QuestParticipant, VideoSubmission


def _join(client, auth_headers, quest_id, user_id="user-1"):
    return client.post(f"/api/quests/{quest_id}/join", headers=auth_headers(user_id))


class TestJoin:
    def test_join_and_list(self, client, auth_headers, quests):
        assert _join(client, auth_headers, "park-cleanup").json() == {"success": True}

        items = client.get("/api/quests/my", headers=auth_headers()).json()
        assert len(items) == 1
        assert items[0]["quest_id"] == "park-cleanup"
        assert items[0]["completed"] is False
        assert items[0]["quests"]["title"] == "Local Park Cleanup"

    def test_join_twice(self, client, auth_headers, quests):
        _join(client, auth_headers, "park-cleanup")
        r = _join(client, auth_headers, "park-cleanup")
        assert r.status_code == 400
        assert r.json() == {"error": "Already joined this quest"}

    def test_unknown_quest(self, client, auth_headers, quests):
        r = _join(client, auth_headers, "missing")
        assert r.status_code == 404
        assert r.json() == {"error": "Quest not found"}

    def test_requires_auth(self, client, quests):
        assert client.post("/api/quests/park-cleanup/join").status_code == 401
        assert client.get("/api/quests/my").status_code == 401


class TestProof:
    def test_must_join_first(self, client, auth_headers, quests):
        r = client.post(
            "/api/quests/park-cleanup/submit-proof",
            json={"proofPath": "proofs/user-1/a.jpg"},
            headers=auth_headers(),
        )
        assert r.status_code == 400
        assert r.json() == {"error": "You must join the quest first"}

    def test_records_whether_todays_code_matched(self, client, auth_headers, quests, db_session):
        _join(client, auth_headers, "park-cleanup")
        good = client.post(
            "/api/quests/park-cleanup/submit-proof",
            json={"proofPath": "proofs/user-1/a.jpg", "proofType": "photo", "code": "meadow-47"},
            headers=auth_headers(),
        )
        stale = client.post(
            "/api/quests/park-cleanup/submit-proof",
            json={"proofPath": "proofs/user-1/b.jpg", "proofType": "photo", "code": "PINE-59"},
            headers=auth_headers(),
        )
        assert good.json()["codeValid"] is True
        assert stale.json()["codeValid"] is False

        rows = db_session.execute(select(ProofSubmission).order_by(ProofSubmission.id)).scalars().all()
        assert [r.daily_code for r in rows] == ["MEADOW-47", "PINE-59"]
        assert all(r.status == "pending" for r in rows)
        # proofs wait for review; nothing is awarded yet
        assert db_session.execute(select(PointsLedgerEntry)).first() is None


def _submit_video(client, auth_headers, body):
    return client.post("/api/quests/compost-setup/submit-video", json=body, headers=auth_headers())


class TestVideo:
    def test_path_required(self, client, auth_headers, quests):
        _join(client, auth_headers, "compost-setup")
        r = _submit_video(client, auth_headers, {"notes": "bin in the yard"})
        assert r.status_code == 400
        assert r.json() == {"error": "Video path is required"}

    def test_must_join_first(self, client, auth_headers, quests, db_session):
        r = _submit_video(client, auth_headers, {"videoPath": "videos/user-1/a.mp4"})
        assert r.status_code == 400
        assert r.json() == {"error": "You must join the quest first"}
        assert db_session.execute(select(VideoSubmission)).first() is None

    def test_create_then_resubmit(self, client, auth_headers, quests, db_session, clock):
        _join(client, auth_headers, "compost-setup")
        first = _submit_video(client, auth_headers, {"videoPath": "videos/user-1/a.mp4", "notes": "take one"})
        assert first.json() == {"success": True, "message": "Video submitted for review"}

        row = db_session.execute(select(VideoSubmission)).scalar_one()
        row.status = "rejected"
        db_session.commit()

        clock.advance(minutes=10)
        again = _submit_video(client, auth_headers, {"videoPath": "videos/user-1/b.mp4"})
        assert again.json() == {"success": True, "message": "Submission updated"}

        row = db_session.execute(select(VideoSubmission)).scalar_one()
        assert row.video_path == "videos/user-1/b.mp4"
        assert row.notes is None
        assert row.status == "pending"
        assert row.updated_at > row.created_at
        # videos wait for review; nothing is awarded yet
        assert db_session.execute(select(PointsLedgerEntry)).first() is None

    def test_approved_video_is_final(self, client, auth_headers, quests, db_session):
        _join(client, auth_headers, "compost-setup")
        _submit_video(client, auth_headers, {"videoPath": "videos/user-1/a.mp4"})
        row = db_session.execute(select(VideoSubmission)).scalar_one()
        row.status = "approved"
        db_session.commit()

        r = _submit_video(client, auth_headers, {"videoPath": "videos/user-1/b.mp4"})
        assert r.status_code == 400
        assert r.json() == {"error": "Quest already completed"}
        row = db_session.execute(select(VideoSubmission)).scalar_one()
        assert (row.video_path, row.status) == ("videos/user-1/a.mp4", "approved")


class TestGpsSession:
    def test_too_short(self, client, auth_headers, quests):
        _join(client, auth_headers, "nature-walk")
        r = client.post(
            "/api/quests/nature-walk/gps-session",
            json={"duration_sec": 600, "distance_m": 800},
            headers=auth_headers(),
        )
        assert r.status_code == 400
        assert r.json() == {"error": "Minimum duration not met. Required: 15 minutes"}

    def test_completes_quest_and_awards_points(self, client, auth_headers, quests, db_session):
        _join(client, auth_headers, "nature-walk")
        r = client.post(
            "/api/quests/nature-walk/gps-session",
            json={
                "duration_sec": 1200,
                "distance_m": 1500.5,
                "start_time": "2025-06-15T11:00:00Z",
                "end_time": "2025-06-15T11:20:00Z",
            },
            headers=auth_headers(),
        )
        assert r.json() == {"success": True, "pointsEarned": 50}

        session = db_session.execute(select(GpsSession)).scalar_one()
        assert session.status == "approved"
        participation = db_session.execute(select(QuestParticipant)).scalar_one()
        assert participation.completed is True
        assert participation.progress == 100
        assert db_session.get(Profile, "user-1").points == 50
        entry = db_session.execute(select(PointsLedgerEntry)).scalar_one()
        assert (entry.source, entry.source_id) == ("gps_session", "nature-walk")


class TestQuiz:
    def test_complete_once(self, client, auth_headers, quests, db_session):
        _join(client, auth_headers, "energy-quiz")
        first = client.post(
            "/api/quests/energy-quiz/complete-quiz", json={"score": 4, "total": 5}, headers=auth_headers()
        )
        again = client.post(
            "/api/quests/energy-quiz/complete-quiz", json={"score": 5, "total": 5}, headers=auth_headers()
        )

        assert first.json() == {"success": True, "pointsEarned": 250}
        assert again.status_code == 400
        assert again.json() == {"error": "Quiz already completed"}
        assert db_session.get(Profile, "user-1").points == 250

    def test_must_join_first(self, client, auth_headers, quests):
        r = client.post(
            "/api/quests/energy-quiz/complete-quiz", json={"score": 1, "total": 5}, headers=auth_headers()
        )
        assert r.status_code == 400
