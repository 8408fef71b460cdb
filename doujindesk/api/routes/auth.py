"""
Staff authentication endpoints.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from doujindesk.db.session import get_db
from doujindesk.schemas.user import UserCreate, UserResponse, UserLogin, Token
from doujindesk.services.auth_service import register_user, authenticate_user

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(user_data: UserCreate, db: AsyncSession = Depends(get_db)):
    """Register a staff account. The first account on a fresh install is the admin."""
    return await register_user(db, user_data)


@router.post("/login", response_model=Token)
async def login(login_data: UserLogin, db: AsyncSession = Depends(get_db)):
    token = await authenticate_user(db, login_data)
    return Token(access_token=token)
