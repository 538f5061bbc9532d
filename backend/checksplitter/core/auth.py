import logging
from datetime import datetime, timezone

import httpx
import jwt as pyjwt
from jwt import PyJWK
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from checksplitter.core.config import settings
from checksplitter.core.database import get_db
from checksplitter.models.user import AppUser

logger = logging.getLogger(__name__)

security = HTTPBearer()

_jwks_cache: list | None = None


async def _get_jwks(force_refresh: bool = False) -> list:
    global _jwks_cache
    if _jwks_cache is not None and not force_refresh:
        return _jwks_cache
    async with httpx.AsyncClient() as client:
        resp = await client.get(settings.firebase_jwks_url)
        resp.raise_for_status()
        keys = resp.json().get("keys", [])
        _jwks_cache = [PyJWK(k) for k in keys]
        return _jwks_cache


def _find_key(jwks: list, kid: str | None) -> PyJWK | None:
    return next((k for k in jwks if k.key_id == kid), None)


async def verify_firebase_token(token: str) -> dict:
    """Verify a Firebase ID token and return its claims."""
    header = pyjwt.get_unverified_header(token)
    kid = header.get("kid")

    key = _find_key(await _get_jwks(), kid)
    if key is None:
        # Google rotates the securetoken keys; a new kid means the cache is stale.
        logger.info(f"Unknown signing key {kid}, refreshing JWKS")
        key = _find_key(await _get_jwks(force_refresh=True), kid)
    if key is None:
        raise pyjwt.InvalidTokenError("No matching key found")

    return pyjwt.decode(
        token,
        key,
        algorithms=["RS256"],
        audience=settings.firebase_project_id,
        issuer=f"https://securetoken.google.com/{settings.firebase_project_id}",
    )


async def get_or_create_user(db: AsyncSession, claims: dict) -> AppUser | None:
    """
    Find the AppUser for a verified token, creating one on first login.

    Users are matched by firebase_uid. An existing row with the same email is
    only used when Firebase has verified that email, and its firebase_uid is
    left as it is.
    """
    firebase_uid = claims.get("sub") or claims.get("user_id")
    email = claims.get("email")

    result = await db.execute(select(AppUser).where(AppUser.firebase_uid == firebase_uid))
    user = result.scalars().first()

    if user is None and email:
        result = await db.execute(select(AppUser).where(AppUser.email == email))
        by_email = result.scalars().first()
        if by_email is not None:
            if not claims.get("email_verified"):
                logger.warning(f"Firebase uid {firebase_uid} claims unverified email of an existing user")
                return None
            user = by_email

    now = datetime.now(timezone.utc)
    if user is None:
        if not email:
            return None
        user = AppUser(
            firebase_uid=firebase_uid,
            email=email,
            display_name=claims.get("name") or email,
            avatar_url=claims.get("picture"),
            created_at=now,
            last_login_at=now,
        )
        db.add(user)
        logger.info(f"Created user for firebase uid {firebase_uid}")
    else:
        user.last_login_at = now

    await db.commit()
    await db.refresh(user)
    return user


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> AppUser:
    try:
        claims = await verify_firebase_token(credentials.credentials)
    except pyjwt.InvalidTokenError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid Firebase token")

    if not claims.get("sub"):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid Firebase token")

    user = await get_or_create_user(db, claims)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")

    return user
