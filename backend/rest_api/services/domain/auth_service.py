"""
Auth Service - staff and customer accounts, login and token issuance.
"""

from __future__ import annotations

from sqlalchemy import select

from rest_api.models import User, utcnow
from rest_api.services.base_service import BaseService
from rest_api.services.mappers import user_to_output
from shared.config.constants import Roles
from shared.config.logging import auth_logger as logger, mask_email
from shared.infrastructure.db import safe_commit, translate_store_errors
from shared.security.auth import sign_user_token
from shared.security.password import hash_password, verify_password
from shared.utils.exceptions import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from shared.utils.schemas import AuthResponse, UserOutput

INVALID_CREDENTIALS = "Invalid credentials"


def _normalize_email(email: str | None) -> str | None:
    return email.strip().lower() if email else None


class AuthService(BaseService):
    """Account creation and credential checks."""

    def _issue(self, user: User) -> AuthResponse:
        token = sign_user_token(user.id, user.role, username=user.username, email=user.email)
        return AuthResponse(token=token, user=user_to_output(user))

    def register_staff(
        self,
        username: str,
        password: str,
        role: str,
        email: str | None = None,
        full_name: str | None = None,
    ) -> UserOutput:
        """
        Create a kitchen, waiter or admin account.

        Raises:
            ValidationError: role is not a staff role.
            ConflictError: username or email already taken.
        """
        if role not in Roles.STAFF:
            raise ValidationError(f"Invalid role '{role}'", role=role)
        username = username.strip()
        email = _normalize_email(email)

        with translate_store_errors("register staff", self._db):
            if self._db.scalar(select(User.id).where(User.username == username)) is not None:
                raise ConflictError("Username already exists", username=username)
            if email and self._db.scalar(select(User.id).where(User.email == email)) is not None:
                raise ConflictError("Email already registered", email=mask_email(email))

            user = User(
                username=username,
                email=email,
                password_hash=hash_password(password),
                role=role,
                full_name=full_name,
            )
            self._db.add(user)
            safe_commit(self._db)
            self._db.refresh(user)

        logger.info("Staff user registered", user_id=user.id, username=username, role=role)
        return user_to_output(user)

    def register_customer(
        self,
        email: str,
        password: str,
        full_name: str | None = None,
    ) -> AuthResponse:
        """Create a customer account and log it in."""
        email = _normalize_email(email)
        if not email:
            raise ValidationError("email is required")

        with translate_store_errors("register customer", self._db):
            if self._db.scalar(select(User.id).where(User.email == email)) is not None:
                raise ConflictError("Email already registered", email=mask_email(email))

            user = User(
                email=email,
                password_hash=hash_password(password),
                role=Roles.CUSTOMER,
                full_name=full_name,
                last_login=utcnow(),
            )
            self._db.add(user)
            safe_commit(self._db)
            self._db.refresh(user)

        logger.info("Customer registered", user_id=user.id, email=mask_email(email))
        return self._issue(user)

    def login(
        self,
        password: str,
        username: str | None = None,
        email: str | None = None,
    ) -> AuthResponse:
        """
        Staff log in by username, customers by email.

        Raises:
            ValidationError: neither username nor email given.
            AuthenticationError: unknown user or wrong password.
        """
        if not username and not email:
            raise ValidationError("username or email is required")

        if username:
            stmt = select(User).where(User.username == username.strip())
            identity = username
        else:
            stmt = select(User).where(User.email == _normalize_email(email))
            identity = mask_email(email)

        with translate_store_errors("login"):
            user = self._db.scalar(stmt)

        if user is None or not verify_password(password, user.password_hash):
            logger.warning("LOGIN_FAILED", identity=identity)
            raise AuthenticationError(INVALID_CREDENTIALS)

        user.last_login = utcnow()
        with translate_store_errors("record login", self._db):
            safe_commit(self._db)
            self._db.refresh(user)

        logger.info("LOGIN_SUCCESS", user_id=user.id, role=user.role)
        return self._issue(user)

    def get_user(self, user_id: int) -> UserOutput:
        with translate_store_errors("get user"):
            user = self._db.get(User, user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user_to_output(user)

    def list_users(self) -> list[UserOutput]:
        with translate_store_errors("list users"):
            users = self._db.execute(select(User).order_by(User.id)).scalars().all()
        return [user_to_output(u) for u in users]
