from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from checksplitter.core.auth import get_current_user
from checksplitter.core.database import get_db
from checksplitter.models.user import AppUser

router = APIRouter(prefix="/api/auth", tags=["auth"])


class ProfileUpdateRequest(BaseModel):
    display_name: str = Field(min_length=1)


def _profile(user: AppUser) -> dict:
    return {
        "id": str(user.id),
        "firebase_uid": user.firebase_uid,
        "email": user.email,
        "display_name": user.display_name,
        "avatar_url": user.avatar_url,
        "last_login_at": user.last_login_at,
    }


@router.get("/me")
async def get_me(user: AppUser = Depends(get_current_user)):
    """The signed-in user; created on first request with a valid Firebase token."""
    return _profile(user)


@router.patch("/me")
async def update_profile(
    body: ProfileUpdateRequest,
    user: AppUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user.display_name = body.display_name
    await db.commit()
    return _profile(user)
