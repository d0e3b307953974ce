from fastapi import APIRouter, Depends, status
from sqlmodel.ext.asyncio.session import AsyncSession

from taskboard.database import get_db
from taskboard.deps import AuthServiceDep, CurrentUser
from taskboard.models import Claims, LoginRequest, RegisterResponse, Token, UserCreate

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post(
    "/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED
)
async def register(
    user_data: UserCreate, auth: AuthServiceDep, db: AsyncSession = Depends(get_db)
):
    """Register a new user"""
    return await auth.register(user_data, db)


@router.post("/login", response_model=Token)
async def login(
    credentials: LoginRequest, auth: AuthServiceDep, db: AsyncSession = Depends(get_db)
):
    """Exchange username-or-email and password for an access token"""
    return await auth.login(credentials.username_or_email, credentials.password, db)


@router.get("/me", response_model=Claims)
async def me(user: CurrentUser):
    return user
