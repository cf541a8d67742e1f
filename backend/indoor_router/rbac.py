from __future__ import annotations

from collections.abc import Callable
from typing import Literal

from fastapi import HTTPException, Request

from .settings import settings

Role = Literal["public", "responder", "admin"]

_RANK: dict[str, int] = {"public": 0, "responder": 1, "admin": 2}


def _bearer_or_header_token(request: Request) -> str | None:
    auth = request.headers.get("authorization", "").strip()
    if auth.lower().startswith("bearer "):
        token = auth[7:].strip()
        if token:
            return token
    token = request.headers.get("x-api-token", "").strip()
    return token or None


def resolve_role(token: str | None) -> Role:
    if token is None:
        return "public"
    if settings.rbac_admin_token and token == settings.rbac_admin_token:
        return "admin"
    if settings.rbac_responder_token and token == settings.rbac_responder_token:
        return "responder"
    raise HTTPException(status_code=401, detail="invalid api token")


def require_role(request: Request, required: Role) -> Role:
    """Return the caller's role, or raise 401/403 when it is below ``required``."""
    if not settings.rbac_enabled:
        return "admin"
    if required == "public":
        return "public"

    token = _bearer_or_header_token(request)
    if token is None:
        raise HTTPException(status_code=401, detail="missing api token")
    actual = resolve_role(token)
    if _RANK[actual] < _RANK[required]:
        raise HTTPException(status_code=403, detail=f"{required} role required")
    return actual


def role_dependency(required: Role) -> Callable[[Request], Role]:
    def _dependency(request: Request) -> Role:
        return require_role(request, required)

    return _dependency
