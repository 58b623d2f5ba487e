from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class LogActionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    action_type_id: str = Field(alias="actionTypeId", min_length=1, max_length=64)
    client_request_id: str = Field(alias="clientRequestId", min_length=1, max_length=128)
    note: Optional[str] = Field(default=None, max_length=1000)
    confidence: Optional[float] = Field(default=None, ge=0, le=1)


class ActionTypeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    category: Optional[str] = None
    icon: Optional[str] = None
    base_reward_credits: int


class ActionLogOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    action_type_id: str
    note: Optional[str] = None
    confidence: float
    credits_earned: int
    client_request_id: str
    source: str
    created_at: datetime
    action_types: Optional[dict] = None
