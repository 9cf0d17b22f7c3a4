# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""Pydantic request / response models for the chat, progress and assessment endpoints."""

from typing import Any, List, Optional, Union

from pydantic import BaseModel

Number = Union[int, float]


# -- Requests --------------------------------------------------------------
# Context fields mirror what the dashboard already holds client-side; all of
# them are optional so an anonymous caller can chat with just a message.


class ChatRequest(BaseModel):
    message: Optional[str] = None
    mode: str = "general"
    profile: Optional[dict[str, Any]] = None
    progress: Optional[dict[str, Any]] = None
    goals: Optional[List[Any]] = None
    recentChat: Optional[List[Any]] = None
    computed: Optional[dict[str, Any]] = None
    context: Optional[str] = None


class ProgressUpdate(BaseModel):
    itemCount: Number
    milestone: Optional[str] = None
    notes: Optional[str] = None


class AssessmentRequest(BaseModel):
    currentItems: Number
    lifestyle: Optional[str] = None
    motivation: Optional[str] = None
    challenges: Optional[List[Any]] = None


# -- Responses -------------------------------------------------------------


class ChatResponse(BaseModel):
    response: str
    userId: str
    timestamp: str
    context: str
    fallback: bool = False


class ProgressUpdateResponse(BaseModel):
    success: bool = True
    progress: dict[str, Any]
    latestMilestone: dict[str, Any]
    message: str


class AssessmentResponse(BaseModel):
    profile: dict[str, Any]
    recommendations: List[str]
    phase: str
    nextSteps: List[str]
    estimatedTimeframe: str
