"""FastAPI dependencies for authentication.

Provides dependency injection for:
- Bearer token extraction
- Current caller resolution from the JWT
"""

from typing import Annotated
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from jose import JWTError

from ecclesia.auth.schemas import CallerResponse
from ecclesia.auth.security import decode_access_token
from ecclesia.core.context import set_user_id


def get_token_from_header(request: Request) -> str | None:
    """Extract Bearer token from Authorization header.

    Args:
        request: FastAPI request

    Returns:
        Token string or None if not present
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None

    expected_parts = 2
    parts = auth_header.split()
    if len(parts) != expected_parts or parts[0].lower() != "bearer":
        return None

    return parts[1]


def _caller_from_payload(payload: dict) -> CallerResponse:
    try:
        caller_id = UUID(str(payload["sub"]))
    except ValueError as e:
        msg = "Token subject is not a valid id"
        raise JWTError(msg) from e

    set_user_id(caller_id)

    return CallerResponse(
        id=caller_id,
        email=payload.get("email"),
        name=payload.get("name"),
    )


async def get_current_user(
    token: Annotated[str | None, Depends(get_token_from_header)],
) -> CallerResponse:
    """Get the authenticated caller from the JWT.

    Raises:
        HTTPException(401): If token is missing, invalid, or expired
    """
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Access token not provided",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return _caller_from_payload(decode_access_token(token))
    except JWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


# ==============================================================================
# Type Aliases for Cleaner Code
# ==============================================================================

CurrentUser = Annotated[CallerResponse, Depends(get_current_user)]
