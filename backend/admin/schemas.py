# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""Pydantic response models for the admin endpoints."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


# -- Progress summary ------------------------------------------------------


class ProgressSummary(BaseModel):
    totalTrackedUsers: int
    profileCount: int
    totalMilestones: int
    totalItemsReduced: float
    activeUsers: int
    phaseDistribution: dict[str, int]
    generatedAt: str


class ProgressSummaryResponse(BaseModel):
    summary: ProgressSummary
    storedVaults: int


# -- Audit log responses ---------------------------------------------------


class AuditLogRow(BaseModel):
    id: int
    actor_email: Optional[str] = None
    action: str
    detail: Optional[str] = None
    request_ip: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class AuditLogListResponse(BaseModel):
    logs: List[AuditLogRow]
