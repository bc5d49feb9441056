"""Email/password authentication gated by a one-time access key.

Sign-up issues an access key for the email and leaves the user signed out.
The first sign-in must present that key; once it succeeds the email is
marked validated and later sign-ins only need the password.
"""

from __future__ import annotations

import logging
import secrets
import time
from collections.abc import Callable

from passlib.context import CryptContext

from core.errors import (
    AccessNotProvisionedError,
    EmailAlreadyInUseError,
    InvalidAccessKeyError,
    InvalidCredentialsError,
    InvalidEmailError,
    WeakPasswordError,
)
from core.models import AccessGrant, AccessInfo, User
from core.store import RemoteStore

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"])

AuthListener = Callable[[User | None], None]


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return pwd_context.verify(password, password_hash)
    except ValueError:
        # unknown or corrupted hash
        return False


def generate_access_key() -> str:
    """32 hex characters."""
    return secrets.token_hex(16)


def _now_ms() -> int:
    return int(time.time() * 1000)


def _normalize_email(email: str) -> str:
    email = (email or "").strip()
    local, sep, domain = email.partition("@")
    if not sep or not local or not domain or "@" in domain or " " in email:
        raise InvalidEmailError()
    return email


class AuthService:
    def __init__(self, store: RemoteStore, min_password_length: int = 6) -> None:
        self.store = store
        self.min_password_length = min_password_length
        self._user: User | None = None
        self._listeners: list[AuthListener] = []

    # ── Auth state ─────────────────────────────────────────────

    def current_user(self) -> User | None:
        return self._user

    def on_auth_change(self, callback: AuthListener) -> Callable[[], None]:
        """Register *callback*; it fires now and on every change."""
        self._listeners.append(callback)
        callback(self._user)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _set_user(self, user: User | None) -> None:
        self._user = user
        for listener in list(self._listeners):
            try:
                listener(user)
            except Exception:
                logger.exception("Auth listener raised")

    # ── Access keys ────────────────────────────────────────────

    def access_info(self, email: str) -> AccessInfo | None:
        return AccessInfo.from_dict(self.store.get_access_info(email))

    def requires_access_key(self, email: str) -> bool:
        info = self.access_info(email)
        return not (info and info.is_validated)

    def _mark_validated(self, email: str, uid: str) -> None:
        info = self.access_info(email) or AccessInfo(email=email)
        info.validated = True
        info.once_logged = True
        info.validated_at = _now_ms()
        info.uid = uid or info.uid
        self.store.set_access_info(email, info.to_dict())

    # ── Flows ──────────────────────────────────────────────────

    def sign_up(self, email: str, password: str) -> AccessGrant:
        """Create an account and issue its access key. The user stays signed out."""
        email = _normalize_email(email)
        if len(password or "") < self.min_password_length:
            raise WeakPasswordError(
                f"Password should be at least {self.min_password_length} characters long."
            )
        if self.store.get_account(email) is not None:
            raise EmailAlreadyInUseError()

        user = User(id=secrets.token_urlsafe(21), email=email)
        self.store.set_account(email, {
            "uid": user.id,
            "email": email,
            "passwordHash": hash_password(password),
            "createdAt": _now_ms(),
        })
        key = generate_access_key()
        info = AccessInfo(key=key, email=email, uid=user.id, created_at=_now_ms())
        self.store.set_access_info(email, info.to_dict())
        logger.info("Created account for %s", email)
        return AccessGrant(email=email, key=key, user=user)

    def authenticate(self, email: str, password: str, access_key: str | None = None) -> User:
        """Check credentials without changing the signed-in user."""
        email = _normalize_email(email)
        info = self.access_info(email)
        validated = bool(info and info.is_validated)
        if not validated:
            if not info or not info.key:
                raise AccessNotProvisionedError()
            if not access_key or not secrets.compare_digest(access_key.encode(), info.key.encode()):
                raise InvalidAccessKeyError()

        account = self.store.get_account(email)
        if not account or not verify_password(password or "", str(account.get("passwordHash", ""))):
            raise InvalidCredentialsError()

        user = User(id=str(account.get("uid", "")), email=str(account.get("email", email)))
        if not validated:
            self._mark_validated(email, user.id)
            logger.info("Access key validated for %s", email)
        return user

    def sign_in(self, email: str, password: str, access_key: str | None = None) -> User:
        user = self.authenticate(email, password, access_key)
        self._set_user(user)
        logger.info("Signed in %s", user.email)
        return user

    def sign_out(self) -> None:
        if self._user is not None:
            logger.info("Signed out %s", self._user.email)
        self._set_user(None)
