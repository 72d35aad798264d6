"""FastAPI dependencies for the Hearth API.

Provides:
- Database session dependency
- Auth gate (Bearer JWT -> user -> household)
- Household scope for routers
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from .db import get_db
from .models import User
from .scoping import HouseholdScope
from .settings import settings

logger = logging.getLogger("hearth.auth")


@dataclass(frozen=True)
class AuthContext:
    user_id: str
    household_id: str
    email: str


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_token(token: str) -> str:
    """Verify an HS256 token signed with the shared secret and return its email claim."""
    try:
        payload = jwt.decode(
            token,
            settings.auth_secret,
            algorithms=[settings.auth_algorithm],
            options={"verify_aud": False},
        )
    except JWTError as e:
        logger.warning(f"Token verification failed: {e}")
        raise _unauthorized("Invalid or expired token")

    email = payload.get("email")
    if not email or not isinstance(email, str):
        raise _unauthorized("Invalid token: missing email")
    return email


def get_auth(
    db: Session = Depends(get_db),
    authorization: Optional[str] = Header(None),
) -> AuthContext:
    """Resolve the caller from the Authorization header.

    Fails closed:
    - missing / non-Bearer header -> 401
    - bad signature, expired, no email claim -> 401
    - unknown user -> 401
    - user without a household -> 403
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise _unauthorized("Missing or invalid authorization header")

    token = authorization[len("Bearer "):].strip()
    if not token:
        raise _unauthorized("Missing or invalid authorization header")

    email = decode_token(token)

    user = db.query(User).filter(User.email == email).first()
    if not user:
        raise _unauthorized("User not found")

    if not user.household_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User not associated with a household",
        )

    return AuthContext(user_id=user.id, household_id=user.household_id, email=user.email)


def get_scope(
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth),
) -> HouseholdScope:
    return HouseholdScope(db, auth.household_id)
