# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""Pydantic request / response models for the auth endpoints."""

from typing import Any, Optional

from pydantic import BaseModel


# -- Requests --------------------------------------------------------------


class RegisterRequest(BaseModel):
    email: str
    password: str
    name: Optional[str] = None


class LoginRequest(BaseModel):
    email: str
    password: str


# -- Responses -------------------------------------------------------------


class UserInfo(BaseModel):
    id: str
    email: str
    name: Optional[str] = None
    role: str
    createdAt: Optional[str] = None
    lastLoginAt: Optional[str] = None


class AuthResponse(BaseModel):
    token: str
    user: UserInfo
    vault: dict[str, Any]


class SuccessResponse(BaseModel):
    success: bool = True
