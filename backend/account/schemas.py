# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""Pydantic request / response models for the account endpoints."""

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict

from auth.schemas import UserInfo


# -- Requests --------------------------------------------------------------


class VaultDocument(BaseModel):
    """
    The decrypted vault as the client edits it.  Unknown keys are kept so
    newer dashboards can store extra sections without a server change.
    """

    model_config = ConfigDict(extra="allow")

    profile: Optional[dict[str, Any]] = None
    progress: Optional[dict[str, Any]] = None
    goals: List[Any] = []
    decisions: List[Any] = []
    stories: List[Any] = []
    conversationHistory: List[Any] = []


class VaultUpdateRequest(BaseModel):
    vault: VaultDocument


class DeleteAccountRequest(BaseModel):
    password: Optional[str] = None


# -- Responses -------------------------------------------------------------


class AccountResponse(BaseModel):
    user: UserInfo
    vault: dict[str, Any]


class VaultResponse(BaseModel):
    vault: dict[str, Any]
