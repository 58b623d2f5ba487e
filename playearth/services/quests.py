from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from playearth.core.clock import Clock, naive_utc, utc_today
from playearth.core.errors import NotFound, ValidationError
from playearth.models.quest import (
    GpsSession,
    ProofSubmission,
    Quest,
    QuestParticipant,
    QuizCompletion,
    VideoSubmission,
)
from playearth.services.points import award_points
from playearth.services.todays_code import verify_code

logger = logging.getLogger(__name__)


DEFAULT_MIN_GPS_DURATION_SEC = 600


class QuestService:
    def __init__(self, db: Session, clock: Clock) -> None:
        self.db = db
        self.clock = clock

    def _quest(self, quest_id: str) -> Quest:
        quest = self.db.get(Quest, quest_id)
        if quest is None:
            raise NotFound("Quest not found")
        return quest

    def _participation(self, user_id: str, quest_id: str) -> Optional[QuestParticipant]:
        return self.db.execute(
            select(QuestParticipant).where(QuestParticipant.user_id == user_id, QuestParticipant.quest_id == quest_id)
        ).scalar_one_or_none()

    def _require_participation(self, user_id: str, quest_id: str) -> QuestParticipant:
        participation = self._participation(user_id, quest_id)
        if participation is None:
            raise ValidationError("You must join the quest first")
        return participation

    def join(self, user_id: str, quest_id: str) -> None:
        self._quest(quest_id)
        if self._participation(user_id, quest_id) is not None:
            raise ValidationError("Already joined this quest")
        self.db.add(QuestParticipant(user_id=user_id, quest_id=quest_id, joined_at=naive_utc(self.clock.now())))
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ValidationError("Already joined this quest")
        logger.info("quests.join user=%s quest=%s", user_id, quest_id)

    def my_quests(self, user_id: str) -> list[QuestParticipant]:
        return list(
            self.db.execute(
                select(QuestParticipant)
                .where(QuestParticipant.user_id == user_id)
                .order_by(QuestParticipant.joined_at.desc())
            ).scalars()
        )

    def submit_proof(
        self,
        user_id: str,
        quest_id: str,
        proof_path: str,
        proof_type: Optional[str],
        notes: Optional[str],
        daily_code: Optional[str],
    ) -> ProofSubmission:
        self._require_participation(user_id, quest_id)
        submission = ProofSubmission(
            user_id=user_id,
            quest_id=quest_id,
            proof_path=proof_path,
            proof_type=proof_type,
            notes=notes or None,
            daily_code=daily_code.strip().upper() if daily_code else None,
            daily_code_valid=verify_code(daily_code, utc_today(self.clock)) if daily_code else None,
            status="pending",
            created_at=naive_utc(self.clock.now()),
        )
        self.db.add(submission)
        self.db.commit()
        logger.info("quests.proof user=%s quest=%s code_valid=%s", user_id, quest_id, submission.daily_code_valid)
        return submission

    def submit_video(
        self, user_id: str, quest_id: str, video_path: Optional[str], notes: Optional[str]
    ) -> tuple[VideoSubmission, bool]:
        """Store a video for review. Returns the submission and whether it was newly created."""
        if not video_path:
            raise ValidationError("Video path is required")
        self._require_participation(user_id, quest_id)

        now = naive_utc(self.clock.now())
        submission = self.db.execute(
            select(VideoSubmission).where(VideoSubmission.user_id == user_id, VideoSubmission.quest_id == quest_id)
        ).scalar_one_or_none()
        created = submission is None
        if created:
            submission = VideoSubmission(user_id=user_id, quest_id=quest_id, created_at=now)
            self.db.add(submission)
        elif submission.status == "approved":
            raise ValidationError("Quest already completed")

        submission.video_path = video_path
        submission.notes = notes or None
        submission.status = "pending"
        submission.updated_at = now
        try:
            self.db.commit()
        except IntegrityError:
            # a parallel first submission won; resubmit against its row
            self.db.rollback()
            return self.submit_video(user_id, quest_id, video_path, notes)
        logger.info("quests.video user=%s quest=%s created=%s", user_id, quest_id, created)
        return submission, created

    def record_gps_session(
        self,
        user_id: str,
        quest_id: str,
        duration_sec: int,
        distance_m: float,
        start_time: Optional[datetime],
        end_time: Optional[datetime],
    ) -> int:
        quest = self._quest(quest_id)
        min_duration = quest.min_duration_sec or DEFAULT_MIN_GPS_DURATION_SEC
        if duration_sec < min_duration:
            raise ValidationError(f"Minimum duration not met. Required: {min_duration // 60} minutes")
        participation = self._require_participation(user_id, quest_id)

        self.db.add(
            GpsSession(
                user_id=user_id,
                quest_id=quest_id,
                duration_sec=duration_sec,
                distance_m=distance_m or 0,
                start_time=naive_utc(start_time) if start_time else None,
                end_time=naive_utc(end_time) if end_time else None,
                status="approved",
            )
        )
        award_points(self.db, user_id, quest.points, "gps_session", f"GPS session: {quest.title}", source_id=quest_id)
        participation.completed = True
        participation.progress = 100
        self.db.commit()
        return quest.points

    def complete_quiz(self, user_id: str, quest_id: str, score: int, total: int) -> int:
        quest = self._quest(quest_id)
        participation = self._require_participation(user_id, quest_id)
        if participation.completed:
            raise ValidationError("Quiz already completed")

        self.db.add(QuizCompletion(user_id=user_id, quest_id=quest_id, score=score, total_questions=total))
        award_points(self.db, user_id, quest.points, "quiz", f"Quiz: {quest.title}", source_id=quest_id)
        participation.completed = True
        participation.progress = 100
        self.db.commit()
        return quest.points
