from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from playearth.deps.auth import CurrentUser, get_current_user
from playearth.deps.services import get_quest_service
from playearth.schemas.quests import (
    GpsSessionRequest,
    ProofSubmissionRequest,
    QuizCompletionRequest,
    VideoSubmissionRequest,
)
from playearth.services.quests import QuestService


router = APIRouter(prefix="/api/quests", tags=["quests"])


@router.post("/{quest_id}/join")
def join_quest(
    quest_id: str,
    current: CurrentUser = Depends(get_current_user),
    quests: QuestService = Depends(get_quest_service),
) -> JSONResponse:
    quests.join(current.id, quest_id)
    return JSONResponse({"success": True})


@router.get("/my")
def my_quests(
    current: CurrentUser = Depends(get_current_user),
    quests: QuestService = Depends(get_quest_service),
) -> JSONResponse:
    items = []
    for p in quests.my_quests(current.id):
        q = p.quest
        items.append(
            {
                "quest_id": p.quest_id,
                "progress": p.progress,
                "completed": p.completed,
                "joined_at": p.joined_at.isoformat(),
                "quests": {
                    "title": q.title,
                    "description": q.description,
                    "verification_type": q.verification_type,
                    "points": q.points,
                },
            }
        )
    return JSONResponse(items)


@router.post("/{quest_id}/submit-proof")
def submit_proof(
    quest_id: str,
    body: ProofSubmissionRequest,
    current: CurrentUser = Depends(get_current_user),
    quests: QuestService = Depends(get_quest_service),
) -> JSONResponse:
    submission = quests.submit_proof(
        current.id, quest_id, body.proof_path, body.proof_type, body.notes, body.code
    )
    return JSONResponse(
        {"success": True, "submissionId": submission.id, "codeValid": submission.daily_code_valid}
    )


@router.post("/{quest_id}/submit-video")
def submit_video(
    quest_id: str,
    body: VideoSubmissionRequest,
    current: CurrentUser = Depends(get_current_user),
    quests: QuestService = Depends(get_quest_service),
) -> JSONResponse:
    _, created = quests.submit_video(current.id, quest_id, body.video_path, body.notes)
    message = "Video submitted for review" if created else "Submission updated"
    return JSONResponse({"success": True, "message": message})


@router.post("/{quest_id}/gps-session")
def gps_session(
    quest_id: str,
    body: GpsSessionRequest,
    current: CurrentUser = Depends(get_current_user),
    quests: QuestService = Depends(get_quest_service),
) -> JSONResponse:
    points = quests.record_gps_session(
        current.id, quest_id, body.duration_sec, body.distance_m, body.start_time, body.end_time
    )
    return JSONResponse({"success": True, "pointsEarned": points})


@router.post("/{quest_id}/complete-quiz")
def complete_quiz(
    quest_id: str,
    body: QuizCompletionRequest,
    current: CurrentUser = Depends(get_current_user),
    quests: QuestService = Depends(get_quest_service),
) -> JSONResponse:
    points = quests.complete_quiz(current.id, quest_id, body.score, body.total)
    return JSONResponse({"success": True, "pointsEarned": points})
