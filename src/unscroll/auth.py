"""Accounts and session tokens."""

import hashlib
import logging
import re
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt

from .constants import DEFAULT_SESSION_TTL_HOURS, SESSIONS_COLLECTION, USERS_COLLECTION
from .errors import InvalidInputError, ProviderUnavailableError, UnauthenticatedError
from .formatting import parse_iso_date, utc_now_iso
from .models import CurrentUser, UserProfile
from .store import DocumentStore

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MIN_USERNAME_LENGTH = 3
MIN_PASSWORD_LENGTH = 6
# bcrypt only looks at the first 72 bytes
MAX_PASSWORD_BYTES = 72
BCRYPT_ROUNDS = 12
DEMO_USERNAME = "demo"


def hash_password(password: str) -> str:
    """bcrypt hash with an embedded salt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    secret = password.encode("utf-8")
    if not password_hash or len(secret) > MAX_PASSWORD_BYTES:
        return False
    try:
        return bcrypt.checkpw(secret, password_hash.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is not a bcrypt hash")
        return False


def _session_id(token: str) -> str:
    """Sessions are stored under a digest so the store never holds raw tokens."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class AuthService:
    """Registers users and issues, verifies and revokes session tokens."""

    def __init__(
        self,
        store: DocumentStore,
        session_ttl_hours: int = DEFAULT_SESSION_TTL_HOURS,
        demo_email: Optional[str] = None,
        demo_password: Optional[str] = None,
    ):
        self.store = store
        self.session_ttl = timedelta(hours=session_ttl_hours)
        self.demo_email = demo_email
        self.demo_password = demo_password

    @classmethod
    def from_settings(cls, store: DocumentStore, settings) -> "AuthService":
        return cls(
            store,
            session_ttl_hours=settings.session_ttl_hours,
            demo_email=settings.demo_email,
            demo_password=settings.demo_password,
        )

    def _find_user(self, field: str, value: str) -> Optional[dict]:
        matches = self.store.query(USERS_COLLECTION, where=[(field, value)], limit=1)
        return matches[0] if matches else None

    def register(self, email: str, username: str, password: str, is_demo: bool = False) -> UserProfile:
        """Create an account; email and username must be unused."""
        email = (email or "").strip().lower()
        username = (username or "").strip()
        if not EMAIL_PATTERN.match(email):
            raise InvalidInputError("Invalid email address")
        if len(username) < MIN_USERNAME_LENGTH:
            raise InvalidInputError(f"Username must be at least {MIN_USERNAME_LENGTH} characters")
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise InvalidInputError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise InvalidInputError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
        if self._find_user("username", username):
            raise InvalidInputError("Username is already taken")
        if self._find_user("email", email):
            raise InvalidInputError("Email is already registered")

        doc = self.store.create(
            USERS_COLLECTION,
            {
                "email": email,
                "username": username,
                "is_demo": is_demo,
                "created_at": utc_now_iso(),
                "password_hash": hash_password(password),
            },
        )
        logger.info(f"Registered user {username} ({doc['id']})")
        return UserProfile.model_validate(doc)

    def login(self, email: str, password: str) -> str:
        """Check credentials and return a new opaque session token."""
        user = self._find_user("email", (email or "").strip().lower())
        if not user or not verify_password(password or "", user.get("password_hash", "")):
            raise UnauthenticatedError("Invalid email or password")

        token = secrets.token_urlsafe(32)
        now = datetime.now(timezone.utc)
        self.store.set(
            SESSIONS_COLLECTION,
            _session_id(token),
            {
                "user_id": user["id"],
                "created_at": now.isoformat(),
                "expires_at": (now + self.session_ttl).isoformat(),
            },
        )
        logger.debug(f"Session created for user {user['id']}")
        return token

    def verify(self, token: Optional[str]) -> CurrentUser:
        """Resolve a session token to its user."""
        if not token:
            raise UnauthenticatedError("You must be logged in")

        session_id = _session_id(token)
        session = self.store.get(SESSIONS_COLLECTION, session_id)
        if not session:
            raise UnauthenticatedError("Session not found")
        if parse_iso_date(session["expires_at"]) <= datetime.now(timezone.utc):
            self.store.delete(SESSIONS_COLLECTION, session_id)
            raise UnauthenticatedError("Session expired")

        user = self.store.get(USERS_COLLECTION, session["user_id"])
        if not user:
            raise UnauthenticatedError("User no longer exists")
        return CurrentUser(
            id=user["id"],
            email=user.get("email"),
            username=user.get("username"),
            is_demo=user.get("is_demo", False),
        )

    def logout(self, token: str) -> bool:
        """Revoke a session token."""
        return self.store.delete(SESSIONS_COLLECTION, _session_id(token))

    def demo_login(self) -> str:
        """Log into the shared demo account, creating it on first use."""
        if not self.demo_email or not self.demo_password:
            raise ProviderUnavailableError("Demo mode is not configured")

        user = self._find_user("email", self.demo_email.lower())
        if user is None:
            self.register(self.demo_email, DEMO_USERNAME, self.demo_password, is_demo=True)
        elif not verify_password(self.demo_password, user.get("password_hash", "")):
            # Configured demo password changed since the account was created
            self.store.update(USERS_COLLECTION, user["id"], {"password_hash": hash_password(self.demo_password)})
        return self.login(self.demo_email, self.demo_password)
