# app/api/routes/auth.py
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from app.schemas.user import RegisterRequest, LoginRequest, LoginResponse, MessageOnlyResponse
from app.crud.user import UserCRUD
from app.database import get_db
from app.security import create_access_token

logger = logging.getLogger(__name__)

router = APIRouter()

@router.post(
    "/register",
    response_model=MessageOnlyResponse,
    summary="Регистрация нового пользователя"
)
async def register_user(
    user_data: RegisterRequest,
    db: AsyncSession = Depends(get_db)
):
    """
    Регистрация пользователя.

    - **username**: уникальное имя
    - **password**: пароль (хранится только хеш)
    - **email**, **phoneNumber**: необязательны, уникальны, видны только владельцу
    """
    try:
        user_crud = UserCRUD(db)
        await user_crud.create_user(user_data)
        return MessageOnlyResponse(message="User created!")
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    except Exception as e:
        logger.error(f"Register error: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error creating user"
        )

@router.post(
    "/login",
    response_model=LoginResponse,
    summary="Вход, выдача JWT"
)
async def login(
    credentials: LoginRequest,
    db: AsyncSession = Depends(get_db)
):
    user_crud = UserCRUD(db)
    try:
        user = await user_crud.authenticate(credentials.username, credentials.password)
    except Exception as e:
        logger.error(f"Login error: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error logging in"
        )

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials"
        )

    token = create_access_token(user.user_id, user.username)
    logger.info(f"Login successful: {user.username}")
    return LoginResponse(token=token, username=user.username)
