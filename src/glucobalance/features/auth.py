"""Account registration, login and the current session (critical module)."""
from __future__ import annotations

import hashlib
import hmac
import logging
import re
import secrets
from functools import lru_cache
from typing import Any, Dict, List, Optional

from core.errors import validate_error_type
from core.storage import LocalStore, get_local_store

from .database import HealthDatabase

CURRENT_USER_KEY = "glucobalance-current-user"
PBKDF2_ITERATIONS = 200_000

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_NAME_RE = re.compile(r"^[A-Za-z\s'-]+$")

logger = logging.getLogger("glucobalance.auth")


class AuthError(Exception):
    def __init__(self, message: str, error_type: str) -> None:
        super().__init__(message)
        self.error_type = validate_error_type(error_type)


def hash_password(password: str, salt: str | None = None) -> str:
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), salt.encode("utf-8"),
        PBKDF2_ITERATIONS,
    )
    return f"{salt}${digest.hex()}"


def verify_password(password: str, stored: str) -> bool:
    salt, _, _ = stored.partition("$")
    return hmac.compare_digest(hash_password(password, salt), stored)


def validate_registration(data: Dict[str, Any]) -> List[str]:
    errors: List[str] = []
    name = (data.get("name") or "").strip()
    if not name:
        errors.append("Name is required")
    elif len(name) < 2:
        errors.append("Name must be at least 2 characters long")
    elif len(name) > 50:
        errors.append("Name must be less than 50 characters")
    elif not _NAME_RE.match(name):
        errors.append(
            "Name can only contain letters, spaces, hyphens, and apostrophes"
        )
    email = (data.get("email") or "").strip()
    if not email:
        errors.append("Email address is required")
    elif len(email) > 254:
        errors.append("Email address is too long")
    elif not _EMAIL_RE.match(email):
        errors.append("Please enter a valid email address")
    age = data.get("age")
    try:
        age_val = int(age) if age is not None else None
    except (TypeError, ValueError):
        age_val = -1
    if age_val is None:
        errors.append("Age is required")
    elif not 18 <= age_val <= 120:
        errors.append("Age must be between 18 and 120")
    if len(data.get("password") or "") < 8:
        errors.append("Password must be at least 8 characters long")
    return errors


def _public(user: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in user.items() if k != "password_hash"}


class AuthService:
    def __init__(
        self,
        db: HealthDatabase | None = None,
        store: LocalStore | None = None,
    ) -> None:
        self._store = store if store is not None else get_local_store()
        self._db = db if db is not None else HealthDatabase(self._store)

    def register(self, data: Dict[str, Any]) -> Dict[str, Any]:
        errors = validate_registration(data)
        if errors:
            raise AuthError(", ".join(errors), "auth-invalid-input")
        email = data["email"].strip().lower()
        if self._db.find_user_by_email(email):
            raise AuthError(
                "User with this email already exists", "auth-user-exists"
            )
        user = self._db.create_user(
            {
                "name": data["name"].strip(),
                "email": email,
                "age": int(data["age"]),
                "gender": data.get("gender"),
                "password_hash": hash_password(data["password"]),
                "preferences": {
                    "dietary": {"cuisine": "general", "restrictions": []},
                    "language": "en",
                },
            }
        )
        logger.info("registered user %s", user["id"])
        return self._start_session(user)

    def login(self, email: str, password: str) -> Dict[str, Any]:
        if not email or not email.strip():
            raise AuthError("Email is required", "auth-invalid-input")
        user = self._db.find_user_by_email(email)
        if user is None or not verify_password(
            password or "", user.get("password_hash", "$")
        ):
            raise AuthError(
                "Invalid email or password", "auth-invalid-credentials"
            )
        return self._start_session(user)

    def logout(self) -> None:
        self._store.remove_item(CURRENT_USER_KEY)

    def current_user(self) -> Optional[Dict[str, Any]]:
        user = self._store.get_json(CURRENT_USER_KEY)
        return user if isinstance(user, dict) and user.get("id") else None

    def current_user_id(self, default: str = "demo-user") -> str:
        user = self.current_user()
        return user["id"] if user else default

    def _start_session(self, user: Dict[str, Any]) -> Dict[str, Any]:
        public = _public(user)
        self._store.set_json(CURRENT_USER_KEY, public)
        return public


@lru_cache(maxsize=1)
def get_auth() -> AuthService:
    return AuthService()
