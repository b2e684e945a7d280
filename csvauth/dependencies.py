"""Auth dependency helpers for the FastAPI glue."""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request, Response

from csvauth.config import AuthConfig
from csvauth.constants import AuthErrorDetails
from csvauth.context import RequestInfo, SessionContext
from csvauth.interfaces.context_store import ContextStore
from csvauth.schemas import AuthUser
from csvauth.services.auth_service import AuthService
from csvauth.stores.memory_store import MemoryContextStore

_config: AuthConfig | None = None
_auth_service: AuthService | None = None
_context_store = MemoryContextStore()


def get_config() -> AuthConfig:
    global _config
    if _config is None:
        _config = AuthConfig()
    return _config


def get_auth_service(config: AuthConfig = Depends(get_config)) -> AuthService:
    global _auth_service
    if _auth_service is None:
        _auth_service = AuthService.from_config(config)
    return _auth_service


def get_context_store() -> ContextStore:
    return _context_store


def _valid_ip(value: str) -> bool:
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True


def client_ip(request: Request) -> str:
    """First valid X-Forwarded-For entry, then Client-IP, then the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if _valid_ip(first):
            return first
    client_header = request.headers.get("client-ip", "").strip()
    if client_header and _valid_ip(client_header):
        return client_header
    return request.client.host if request.client else "0.0.0.0"


def get_request_info(request: Request) -> RequestInfo:
    return RequestInfo(
        ip_address=client_ip(request),
        user_agent=request.headers.get("user-agent", ""),
    )


@dataclass
class ContextHandle:
    """Cookie id plus the context it points at, for one request."""

    context_id: str
    context: SessionContext


def get_session_context(
    request: Request,
    config: AuthConfig = Depends(get_config),
    store: ContextStore = Depends(get_context_store),
) -> ContextHandle:
    context_id, context = store.load(request.cookies.get(config.SESSION_COOKIE_NAME))
    return ContextHandle(context_id=context_id, context=context)


def persist_context(
    response: Response,
    handle: ContextHandle,
    store: ContextStore,
    config: AuthConfig,
) -> None:
    store.save(handle.context_id, handle.context)
    set_cookie(response, config, config.SESSION_COOKIE_NAME, handle.context_id)


def require_csrf(
    request: Request,
    handle: ContextHandle = Depends(get_session_context),
    config: AuthConfig = Depends(get_config),
    auth_service: AuthService = Depends(get_auth_service),
) -> None:
    """
    CSRF validation for state-changing requests.

    Rules:
    - GET/HEAD/OPTIONS are exempt
    - Everything else, login and registration included, must send the
      header matching the context token issued by ``GET /csrf``
    """
    if request.method.upper() in {"GET", "HEAD", "OPTIONS"}:
        return

    if not auth_service.verify_csrf_token(handle.context, request.headers.get(config.CSRF_HEADER_NAME)):
        raise HTTPException(status_code=403, detail=str(AuthErrorDetails.CSRF_INVALID))


def get_current_user(
    handle: ContextHandle = Depends(get_session_context),
    auth_service: AuthService = Depends(get_auth_service),
) -> AuthUser:
    user = auth_service.get_current_user(handle.context)
    if user is None:
        raise HTTPException(status_code=401, detail=str(AuthErrorDetails.NOT_AUTHENTICATED))
    return user


def set_cookie(
    response: Response,
    config: AuthConfig,
    key: str,
    value: str,
    max_age: int | None = None,
) -> None:
    response.set_cookie(
        key=key,
        value=value,
        max_age=max_age,
        httponly=config.COOKIE_HTTP_ONLY,
        secure=config.COOKIE_SECURE,
        samesite=config.COOKIE_SAMESITE.lower(),
    )
