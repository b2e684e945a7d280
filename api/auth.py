"""Auth API routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response, status

from csvauth.config import AuthConfig
from csvauth.dependencies import (
    ContextHandle,
    get_auth_service,
    get_config,
    get_context_store,
    get_current_user,
    get_request_info,
    get_session_context,
    persist_context,
    require_csrf,
)
from csvauth.context import RequestInfo
from csvauth.interfaces.context_store import ContextStore
from csvauth.schemas import (
    ApiResponse,
    AuthResult,
    AuthUser,
    ChangePasswordRequest,
    LoginRequest,
    RegisterRequest,
    VerifyEmailRequest,
)
from csvauth.services.auth_service import AuthService

router = APIRouter()


def _raise_for(result: AuthResult) -> None:
    if not result.success:
        raise HTTPException(
            status_code=result.status_code,
            detail={"message": result.error, "errors": result.errors},
        )


@router.get("/csrf", response_model=ApiResponse, status_code=status.HTTP_200_OK)
def csrf_token(
    response: Response,
    handle: ContextHandle = Depends(get_session_context),
    config: AuthConfig = Depends(get_config),
    store: ContextStore = Depends(get_context_store),
    auth_service: AuthService = Depends(get_auth_service),
) -> ApiResponse:
    token = auth_service.generate_csrf_token(handle.context)
    persist_context(response, handle, store, config)
    return ApiResponse(success=True, message="CSRF token issued", data={"csrf_token": token})


@router.post("/register", response_model=ApiResponse, status_code=status.HTTP_201_CREATED)
def register(
    payload: RegisterRequest,
    _: None = Depends(require_csrf),
    request_info: RequestInfo = Depends(get_request_info),
    auth_service: AuthService = Depends(get_auth_service),
) -> ApiResponse:
    result = auth_service.register(payload.username, payload.email, payload.password, request_info)
    _raise_for(result)
    message = "Registration successful"
    if result.data.get("requires_verification"):
        message = "Registration successful. Please verify your email address."
    return ApiResponse(success=True, message=message, data={"user_id": result.data["user_id"]})


@router.post("/login", response_model=ApiResponse, status_code=status.HTTP_200_OK)
def login(
    payload: LoginRequest,
    response: Response,
    _: None = Depends(require_csrf),
    handle: ContextHandle = Depends(get_session_context),
    request_info: RequestInfo = Depends(get_request_info),
    config: AuthConfig = Depends(get_config),
    store: ContextStore = Depends(get_context_store),
    auth_service: AuthService = Depends(get_auth_service),
) -> ApiResponse:
    result = auth_service.login(
        payload.username_or_email,
        payload.password,
        remember_me=payload.remember_me,
        context=handle.context,
        request=request_info,
    )
    _raise_for(result)

    # New cookie id on every successful login.
    handle.context_id = store.rotate(handle.context_id)
    csrf = auth_service.generate_csrf_token(handle.context)
    persist_context(response, handle, store, config)
    return ApiResponse(
        success=True,
        message="Login successful",
        data={"user": result.user.model_dump() if result.user else None, "csrf_token": csrf},
    )


@router.post("/logout", response_model=ApiResponse, status_code=status.HTTP_200_OK)
def logout(
    response: Response,
    _: None = Depends(require_csrf),
    handle: ContextHandle = Depends(get_session_context),
    request_info: RequestInfo = Depends(get_request_info),
    config: AuthConfig = Depends(get_config),
    store: ContextStore = Depends(get_context_store),
    auth_service: AuthService = Depends(get_auth_service),
) -> ApiResponse:
    result = auth_service.logout(handle.context, request_info)
    _raise_for(result)
    store.discard(handle.context_id)
    response.delete_cookie(config.SESSION_COOKIE_NAME)
    return ApiResponse(success=True, message="Logged out", data={})


@router.get("/me", response_model=ApiResponse, status_code=status.HTTP_200_OK)
def me(current_user: AuthUser = Depends(get_current_user)) -> ApiResponse:
    return ApiResponse(success=True, message="User retrieved", data={"user": current_user.model_dump()})


@router.post("/password", response_model=ApiResponse, status_code=status.HTTP_200_OK)
def change_password(
    payload: ChangePasswordRequest,
    _: None = Depends(require_csrf),
    current_user: AuthUser = Depends(get_current_user),
    request_info: RequestInfo = Depends(get_request_info),
    auth_service: AuthService = Depends(get_auth_service),
) -> ApiResponse:
    result = auth_service.change_password(
        current_user.id,
        payload.current_password,
        payload.new_password,
        request_info,
    )
    _raise_for(result)
    return ApiResponse(success=True, message="Password changed", data={})


@router.get("/stats", response_model=ApiResponse, status_code=status.HTTP_200_OK)
def stats(
    current_user: AuthUser = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
) -> ApiResponse:
    user_stats = auth_service.get_user_stats(current_user.id)
    if user_stats is None:
        raise HTTPException(status_code=404, detail="User not found")
    return ApiResponse(success=True, message="Stats retrieved", data=user_stats.model_dump())


@router.post("/verify-email", response_model=ApiResponse, status_code=status.HTTP_200_OK)
def verify_email(
    payload: VerifyEmailRequest,
    _: None = Depends(require_csrf),
    request_info: RequestInfo = Depends(get_request_info),
    auth_service: AuthService = Depends(get_auth_service),
) -> ApiResponse:
    result = auth_service.verify_email(payload.token, request_info)
    _raise_for(result)
    return ApiResponse(success=True, message="Email verified", data={})
