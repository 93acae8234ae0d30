# src/gateway_dashboard/schemas.py

from typing import Literal, Optional

from pydantic import BaseModel


class LoginRequest(BaseModel):
    username: str
    password: str
    routerIp: Optional[str] = None


class LoginResponse(BaseModel):
    """
    What the login route hands back to the client. The client keeps the
    token; the server forgets it as soon as the response is sent.
    """
    success: bool
    token: Optional[str] = None
    expiration: Optional[int] = None
    routerIp: Optional[str] = None
    username: Optional[str] = None
    error: Optional[str] = None


class HealthStatus(BaseModel):
    status: Literal["online", "offline", "error"]
    ip: str
    message: Optional[str] = None


class SuccessResponse(BaseModel):
    success: bool = True
