from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ProofSubmissionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    proof_path: str = Field(alias="proofPath", min_length=1, max_length=1024)
    proof_type: Optional[str] = Field(default=None, alias="proofType", max_length=16)
    notes: Optional[str] = Field(default=None, max_length=2000)
    # the daily code shown in the photo or video
    code: Optional[str] = Field(default=None, max_length=16)


class GpsSessionRequest(BaseModel):
    duration_sec: int = Field(ge=0)
    distance_m: float = 0
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None


class QuizCompletionRequest(BaseModel):
    score: int = Field(ge=0)
    total: int = Field(ge=1)


class VideoSubmissionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    video_path: Optional[str] = Field(default=None, alias="videoPath", max_length=1024)
    notes: Optional[str] = Field(default=None, max_length=2000)
