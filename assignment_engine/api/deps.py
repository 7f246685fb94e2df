from fastapi import HTTPException, Depends, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import uuid
import logging

from assignment_engine.core.security import Principal, verify_access_token

logger = logging.getLogger(__name__)

# Security scheme for Swagger UI
security = HTTPBearer()


# =====================================================
# Get Current Principal
# =====================================================
async def get_current_principal(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Principal:
    """
    Dependency that validates the bearer token and returns the caller.

    Raises:
        HTTPException 401: If token is invalid or missing
    """
    claims = verify_access_token(credentials.credentials)
    if not claims:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"}
        )

    try:
        user_id = uuid.UUID(claims["sub"])
    except ValueError:
        logger.warning(f"Rejected token with malformed subject: {claims['sub']!r}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"}
        )

    return Principal(user_id=user_id, role=claims["role"])


async def require_admin(
    principal: Principal = Depends(get_current_principal)
) -> Principal:
    """
    Dependency that ensures the caller is an administrator.

    Builds on get_current_principal, adds role check.
    """
    if not principal.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Administrator role required"
        )
    return principal
