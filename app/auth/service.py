"""Authentication service: registration, login, rotation and request auth."""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from typing import Callable

from app.api.errors import (
    ApiErrorCode,
    AuthenticationError,
    InternalError,
    InvalidRefreshToken,
    NotFoundError,
    ValidationError,
)
from app.auth.credentials import (
    apply_password,
    changed_password_after,
    issue_one_time_token,
    normalize_email,
    password_strength_errors,
)
from app.auth.lockout import AccountLockoutGuard
from app.auth.models import AuthSession, RegisterRequest, User
from app.auth.repository import DuplicateEmailError, UserRepository
from app.auth.tokens import TokenIssuer
from app.core.config import AuthConfig
from app.core.email import EmailDeliveryError, Mailer
from app.core.security import TokenError, TokenExpiredError, hash_token, verify_password

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthenticationResult:
    """Outcome of request authentication.

    ``renewed_session`` is set when the access token was missing or expired
    and the refresh cookie was rotated to let the request through.
    """

    user: User
    renewed_session: AuthSession | None = None


class AuthService:
    """Authentication domain service."""

    def __init__(
        self,
        repo: UserRepository,
        config: AuthConfig,
        *,
        issuer: TokenIssuer,
        lockout: AccountLockoutGuard,
        mailer: Mailer,
        links_base_url: str,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize service dependencies."""
        self._repo = repo
        self._config = config
        self._issuer = issuer
        self._lockout = lockout
        self._mailer = mailer
        self._links_base_url = links_base_url.rstrip("/")
        self._clock = clock

    def _now(self) -> int:
        return int(self._clock())

    def bootstrap_admin_user(self) -> None:
        """Ensure bootstrap admin user exists when configured."""
        email = normalize_email(self._config.admin_email)
        if not email or not self._config.admin_password:
            return
        if self._repo.get_by_email(email) is not None:
            return

        now = self._now()
        admin = User(
            user_id=uuid.uuid4().hex,
            email=email,
            name="Administrator",
            password_hash="",
            role="admin",
            is_email_verified=True,
            created_at=now,
        )
        apply_password(admin, self._config.admin_password, now=now, is_new=True)
        try:
            self._repo.insert(admin)
        except DuplicateEmailError:
            return
        LOGGER.info("admin_bootstrapped", extra={"user_id": admin.user_id})

    @staticmethod
    def _check_password_strength(password: str) -> None:
        missing = password_strength_errors(password)
        if missing:
            raise ValidationError("Password must contain " + ", ".join(missing))

    def _issue_session(
        self, user: User, *, expected_refresh_hash: str | None = None
    ) -> AuthSession:
        """Issue fresh access and refresh tokens for given user."""
        access_token = self._issuer.issue_access_token(user)
        refresh_token = self._issuer.issue_refresh_token(
            user, expected_hash=expected_refresh_hash
        )
        return AuthSession(
            access_token=access_token,
            refresh_token=refresh_token,
            token_type="bearer",
            expires_in=self._config.access_token_ttl_seconds,
            refresh_expires_in=self._config.refresh_token_ttl_seconds,
            user=user.to_public(),
        )

    def register(self, req: RegisterRequest) -> AuthSession:
        """Create an unverified account, mail its verification link, sign in."""
        self._check_password_strength(req.password)
        now = self._now()
        user = User(
            user_id=uuid.uuid4().hex,
            email=normalize_email(req.email),
            name=req.name,
            password_hash="",
            role=req.role,
            created_at=now,
        )
        apply_password(user, req.password, now=now, is_new=True)
        verification = issue_one_time_token(
            ttl_seconds=self._config.email_verification_ttl_seconds, now=now
        )
        user.email_verification_token_hash = verification.token_hash
        user.email_verification_expires_at = verification.expires_at

        try:
            self._repo.insert(user)
        except DuplicateEmailError as exc:
            raise ValidationError(
                "An account with this email already exists",
                error_code=ApiErrorCode.AUTH_EMAIL_TAKEN,
            ) from exc

        verification_url = (
            f"{self._links_base_url}/auth/verify-email/{verification.plaintext}"
        )
        try:
            self._mailer.send(
                user.email,
                "Email Verification",
                "Please verify your email by clicking on the following link: "
                f'<a href="{verification_url}">Verify Email</a>',
            )
        except EmailDeliveryError as exc:
            user.email_verification_token_hash = None
            user.email_verification_expires_at = None
            self._repo.save(user)
            raise InternalError(
                "Email could not be sent",
                error_code=ApiErrorCode.EMAIL_DELIVERY_FAILED,
            ) from exc

        LOGGER.info("user_registered", extra={"user_id": user.user_id})
        return self._issue_session(user)

    def verify_email(self, token: str) -> User:
        """Mark the owner of an unexpired verification token as verified."""
        user = self._repo.find_by_email_verification_token_hash(
            hash_token(token), self._now()
        )
        if user is None or user.is_email_verified:
            raise ValidationError("Invalid token or email already verified")
        user.is_email_verified = True
        user.email_verification_token_hash = None
        user.email_verification_expires_at = None
        user.updated_at = self._now()
        self._repo.save(user)
        LOGGER.info("email_verified", extra={"user_id": user.user_id})
        return user

    def login(self, email: str, password: str) -> AuthSession:
        """Authenticate credentials and issue access/refresh token pair."""
        user = self._repo.get_by_email(normalize_email(email))
        if user is None:
            LOGGER.info("login_failed")
            raise AuthenticationError(
                "Invalid credentials", error_code=ApiErrorCode.AUTH_INVALID_CREDENTIALS
            )

        if self._lockout.is_locked(user):
            minutes = self._lockout.minutes_remaining(user)
            raise AuthenticationError(
                f"Account locked. Try again in {minutes} minutes.",
                error_code=ApiErrorCode.AUTH_ACCOUNT_LOCKED,
            )

        if not verify_password(password, user.password_hash):
            self._lockout.record_failed_attempt(user)
            LOGGER.info("login_failed", extra={"user_id": user.user_id})
            raise AuthenticationError(
                "Invalid credentials", error_code=ApiErrorCode.AUTH_INVALID_CREDENTIALS
            )
        if not user.is_active:
            raise AuthenticationError(
                "Your account has been deactivated",
                error_code=ApiErrorCode.AUTH_ACCOUNT_INACTIVE,
            )
        if not user.is_email_verified:
            raise AuthenticationError(
                "Please verify your email before logging in",
                error_code=ApiErrorCode.AUTH_EMAIL_NOT_VERIFIED,
            )

        self._lockout.record_success(user)
        user.last_login_at = self._now()
        session = self._issue_session(user)
        LOGGER.info("login_succeeded", extra={"user_id": user.user_id})
        return session

    def _rotate(self, refresh_token: str) -> tuple[User, AuthSession]:
        if not refresh_token:
            raise InvalidRefreshToken("No refresh token provided")
        token_hash = hash_token(refresh_token)
        user = self._repo.find_by_refresh_token_hash(token_hash, self._now())
        if user is None:
            LOGGER.warning("refresh_rejected")
            raise InvalidRefreshToken()
        if not user.is_active:
            LOGGER.warning("refresh_rejected", extra={"user_id": user.user_id})
            raise InvalidRefreshToken("User account is deactivated")
        try:
            session = self._issue_session(user, expected_refresh_hash=token_hash)
        except InvalidRefreshToken:
            LOGGER.warning("refresh_rejected", extra={"user_id": user.user_id})
            raise
        LOGGER.info("refresh_rotated", extra={"user_id": user.user_id})
        return user, session

    def refresh(self, refresh_token: str | None) -> AuthSession:
        """Exchange a refresh token for a new pair; the presented one dies."""
        _, session = self._rotate(refresh_token or "")
        return session

    def authenticate(
        self, *, access_token: str, refresh_token: str
    ) -> AuthenticationResult:
        """Resolve the user behind a request's credentials.

        Missing or expired access tokens fall through to refresh rotation
        when a refresh token is present. Forged or malformed access tokens
        never do.
        """
        if not access_token:
            if refresh_token:
                return self._renew(refresh_token)
            raise AuthenticationError(
                "Not authorized to access this route - No token",
                error_code=ApiErrorCode.AUTH_MISSING_TOKEN,
            )

        try:
            claims = self._issuer.verify_access_token(access_token)
        except TokenExpiredError:
            if refresh_token:
                return self._renew(refresh_token)
            raise AuthenticationError(
                "Access token expired", error_code=ApiErrorCode.AUTH_TOKEN_EXPIRED
            )
        except TokenError as exc:
            raise AuthenticationError(
                "Not authorized, invalid token", clear_session=True
            ) from exc

        user = self._repo.get_by_id(str(claims.get("sub") or ""))
        if user is None:
            raise AuthenticationError(
                "User not found with this token", clear_session=True
            )
        if not user.is_active:
            raise AuthenticationError(
                "User account is deactivated",
                error_code=ApiErrorCode.AUTH_ACCOUNT_INACTIVE,
            )
        if changed_password_after(user, int(claims.get("iat") or 0)):
            raise AuthenticationError(
                "User recently changed password. Please log in again",
                error_code=ApiErrorCode.AUTH_PASSWORD_CHANGED,
            )
        return AuthenticationResult(user=user)

    def _renew(self, refresh_token: str) -> AuthenticationResult:
        user, session = self._rotate(refresh_token)
        LOGGER.info("session_renewed", extra={"user_id": user.user_id})
        return AuthenticationResult(user=user, renewed_session=session)

    def logout(self, user: User) -> None:
        """Forget the server-side refresh token."""
        user.refresh_token_hash = None
        user.refresh_token_expires_at = None
        user.updated_at = self._now()
        self._repo.set_refresh_token(
            user.user_id, token_hash=None, expires_at=None, updated_at=user.updated_at
        )
        LOGGER.info("logout", extra={"user_id": user.user_id})

    def update_password(
        self, user: User, current_password: str, new_password: str
    ) -> AuthSession:
        """Change password and rotate the session; older tokens stop working."""
        if not verify_password(current_password, user.password_hash):
            raise AuthenticationError(
                "Password is incorrect",
                error_code=ApiErrorCode.AUTH_INVALID_CREDENTIALS,
            )
        self._check_password_strength(new_password)
        apply_password(user, new_password, now=self._now(), is_new=False)
        session = self._issue_session(user)
        LOGGER.info("password_changed", extra={"user_id": user.user_id})
        return session

    def update_details(
        self, user: User, *, name: str | None, email: str | None
    ) -> User:
        if name is not None:
            user.name = name.strip() or user.name
        if email is not None:
            user.email = normalize_email(email)
        user.updated_at = self._now()
        try:
            self._repo.save(user)
        except DuplicateEmailError as exc:
            raise ValidationError(
                "An account with this email already exists",
                error_code=ApiErrorCode.AUTH_EMAIL_TAKEN,
            ) from exc
        return user

    def forgot_password(self, email: str) -> None:
        """Store a single-use reset token and mail its plaintext link."""
        user = self._repo.get_by_email(normalize_email(email))
        if user is None:
            raise NotFoundError("There is no user with that email")

        now = self._now()
        reset = issue_one_time_token(
            ttl_seconds=self._config.password_reset_ttl_seconds, now=now
        )
        user.password_reset_token_hash = reset.token_hash
        user.password_reset_expires_at = reset.expires_at
        user.updated_at = now
        self._repo.save(user)

        reset_url = f"{self._links_base_url}/auth/resetpassword/{reset.plaintext}"
        try:
            self._mailer.send(
                user.email,
                "Password reset token",
                "You are receiving this email because you (or someone else) "
                "has requested the reset of a password. Please make a PUT "
                f"request to: {reset_url}",
            )
        except EmailDeliveryError as exc:
            user.password_reset_token_hash = None
            user.password_reset_expires_at = None
            self._repo.save(user)
            raise InternalError(
                "Email could not be sent",
                error_code=ApiErrorCode.EMAIL_DELIVERY_FAILED,
            ) from exc
        LOGGER.info("password_reset_requested", extra={"user_id": user.user_id})

    def reset_password(self, token: str, password: str) -> AuthSession:
        """Consume a reset token, set the new password and sign in."""
        user = self._repo.find_by_password_reset_token_hash(
            hash_token(token), self._now()
        )
        if user is None:
            raise ValidationError("Invalid token")
        self._check_password_strength(password)

        apply_password(user, password, now=self._now(), is_new=False)
        user.password_reset_token_hash = None
        user.password_reset_expires_at = None
        user.failed_login_attempts = 0
        user.account_locked_until = None
        session = self._issue_session(user)
        LOGGER.info("password_changed", extra={"user_id": user.user_id})
        return session
