from dataclasses import dataclass
from datetime import datetime, timezone, timedelta
from typing import Any, Union, Optional, Dict
import uuid

from jose import JWTError, jwt

# =====================================================
# Application Settings
# =====================================================
from assignment_engine.core.config import settings


# =====================================================
# Token Type / Role Constants
# =====================================================
TOKEN_TYPE_ACCESS = "access"

ROLE_STUDENT = "student"
ROLE_TEACHER = "teacher"
ROLE_ADMIN = "admin"

VALID_ROLES = {ROLE_STUDENT, ROLE_TEACHER, ROLE_ADMIN}


# =====================================================
# JWT Creation
# =====================================================
def create_access_token(
    subject: Union[str, Any],
    role: str = ROLE_STUDENT,
    expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create a JWT access token.

    Production tokens come from the auth service; this mirrors its
    payload so internal tools and tests can mint compatible tokens.
    """
    now = datetime.now(timezone.utc)

    if expires_delta:
        expire = now + expires_delta
    else:
        expire = now + timedelta(
            minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES
        )

    to_encode = {
        "exp": expire,
        "sub": str(subject),
        "role": role,
        "type": TOKEN_TYPE_ACCESS,
        "iat": now,
        "jti": str(uuid.uuid4())
    }

    return jwt.encode(
        to_encode,
        settings.SECRET_KEY,
        algorithm=settings.ALGORITHM
    )


# =====================================================
# Token Verification
# =====================================================
def verify_token(
    token: str,
    token_type: str = TOKEN_TYPE_ACCESS
) -> Optional[Dict[str, Any]]:
    """
    Verify a JWT token and return its payload if valid.
    """
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM]
        )

        if payload.get("type") != token_type:
            return None

        exp = payload.get("exp")
        if exp and datetime.now(timezone.utc).timestamp() > exp:
            return None

        return payload

    except JWTError:
        return None


def verify_access_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Verify an access token and return (subject, role) claims.

    Returns None when the token is invalid, expired, or carries an
    unknown role.
    """
    payload = verify_token(token, TOKEN_TYPE_ACCESS)
    if not payload or not payload.get("sub"):
        return None

    role = payload.get("role", ROLE_STUDENT)
    if role not in VALID_ROLES:
        return None

    return {"sub": payload["sub"], "role": role}


# =====================================================
# Authenticated Principal
# =====================================================
@dataclass(frozen=True)
class Principal:
    """Identity supplied by the auth service for the current request."""
    user_id: uuid.UUID
    role: str = ROLE_STUDENT

    @property
    def is_staff(self) -> bool:
        return self.role in (ROLE_TEACHER, ROLE_ADMIN)

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def can_read_student(self, student_id: uuid.UUID) -> bool:
        return self.is_staff or self.user_id == student_id
