"""Authentication API router."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from app.api.contracts import (
    ApiErrorResponse,
    AuthMeResponse,
    AuthSessionResponse,
    MessageResponse,
)
from app.auth.cookies import REFRESH_TOKEN_COOKIE, SessionCookies
from app.auth.models import (
    AuthSession,
    ForgotPasswordRequest,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    ResetPasswordRequest,
    UpdateDetailsRequest,
    UpdatePasswordRequest,
    User,
)
from app.auth.permissions import current_user
from app.auth.service import AuthService

_UNAUTHORIZED = {401: {"model": ApiErrorResponse}}


def create_auth_router(
    service: AuthService, cookies: SessionCookies, *, api_prefix: str
) -> APIRouter:
    """Build authentication router mounted under ``{api_prefix}/auth``."""
    router = APIRouter(prefix=f"{api_prefix}/auth", tags=["auth"])

    def _session_response(response: Response, session: AuthSession) -> AuthSessionResponse:
        cookies.set_session(response, session)
        return AuthSessionResponse(**session.model_dump())

    @router.post(
        "/register",
        status_code=201,
        response_model=AuthSessionResponse,
        responses={400: {"model": ApiErrorResponse}, 500: {"model": ApiErrorResponse}},
    )
    def register(req: RegisterRequest, response: Response) -> AuthSessionResponse:
        """Create account, send verification email and start a session."""
        return _session_response(response, service.register(req))

    @router.get(
        "/verify-email/{token}",
        response_model=MessageResponse,
        responses={400: {"model": ApiErrorResponse}},
    )
    def verify_email(token: str) -> MessageResponse:
        service.verify_email(token)
        return MessageResponse(status="ok", message="Email verified successfully")

    @router.post("/login", response_model=AuthSessionResponse, responses=_UNAUTHORIZED)
    def login(req: LoginRequest, response: Response) -> AuthSessionResponse:
        """Authenticate user and return token pair."""
        return _session_response(response, service.login(req.email, req.password))

    @router.post(
        "/refresh-token", response_model=AuthSessionResponse, responses=_UNAUTHORIZED
    )
    def refresh_token(
        request: Request,
        response: Response,
        req: RefreshRequest | None = None,
    ) -> AuthSessionResponse:
        """Rotate refresh token taken from the body or the cookie."""
        presented = (req.refresh_token if req else None) or request.cookies.get(
            REFRESH_TOKEN_COOKIE, ""
        )
        return _session_response(response, service.refresh(presented))

    @router.post("/logout", response_model=MessageResponse, responses=_UNAUTHORIZED)
    def logout(response: Response, user: User = Depends(current_user)) -> MessageResponse:
        """Invalidate the stored refresh token and expire both cookies."""
        service.logout(user)
        cookies.clear(response)
        return MessageResponse(status="ok", message="Successfully logged out")

    @router.get("/me", response_model=AuthMeResponse, responses=_UNAUTHORIZED)
    def me(user: User = Depends(current_user)) -> AuthMeResponse:
        """Return current authenticated user."""
        return AuthMeResponse(user=user.to_public())

    @router.put(
        "/updatepassword",
        response_model=AuthSessionResponse,
        responses={400: {"model": ApiErrorResponse}, **_UNAUTHORIZED},
    )
    def update_password(
        req: UpdatePasswordRequest,
        response: Response,
        user: User = Depends(current_user),
    ) -> AuthSessionResponse:
        session = service.update_password(user, req.current_password, req.new_password)
        return _session_response(response, session)

    @router.put(
        "/updatedetails",
        response_model=AuthMeResponse,
        responses={400: {"model": ApiErrorResponse}, **_UNAUTHORIZED},
    )
    def update_details(
        req: UpdateDetailsRequest, user: User = Depends(current_user)
    ) -> AuthMeResponse:
        updated = service.update_details(user, name=req.name, email=req.email)
        return AuthMeResponse(user=updated.to_public())

    @router.post(
        "/forgotpassword",
        response_model=MessageResponse,
        responses={404: {"model": ApiErrorResponse}, 500: {"model": ApiErrorResponse}},
    )
    def forgot_password(req: ForgotPasswordRequest) -> MessageResponse:
        service.forgot_password(req.email)
        return MessageResponse(status="ok", message="Email sent")

    @router.put(
        "/resetpassword/{token}",
        response_model=AuthSessionResponse,
        responses={400: {"model": ApiErrorResponse}},
    )
    def reset_password(
        token: str, req: ResetPasswordRequest, response: Response
    ) -> AuthSessionResponse:
        """Set a new password using an emailed reset token."""
        return _session_response(response, service.reset_password(token, req.password))

    return router
