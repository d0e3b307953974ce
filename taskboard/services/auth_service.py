import logging

from sqlmodel.ext.asyncio.session import AsyncSession

from taskboard.core.exceptions import Unauthenticated
from taskboard.core.security import create_access_token, verify_password
from taskboard.models import RegisterResponse, Token, User, UserCreate
from taskboard.services.user_service import UserService

logger = logging.getLogger(__name__)

# One message for every credential failure so callers cannot probe for users
INVALID_CREDENTIALS = "Invalid credentials"


class AuthService:
    def __init__(self, user_service: UserService):
        self.user_service = user_service

    async def verify(self, identifier: str, password: str, db: AsyncSession) -> User:
        """
        Check a username-or-email and password pair.

        Returns the full ``User`` row, hash included. It must not be
        serialized as is.
        """
        user = await self.user_service.find_by_username_or_email(identifier, db)
        if user is None:
            logger.warning(f"Login failed, user not found: {identifier}")
            raise Unauthenticated(INVALID_CREDENTIALS)

        if not await verify_password(password, user.password_hash):
            logger.warning(f"Login failed, wrong password for: {identifier}")
            raise Unauthenticated(INVALID_CREDENTIALS)

        logger.info(f"User validated: {identifier} (ID: {user.id})")
        return user

    def issue_claims(self, user: User) -> Token:
        token, expires_in = create_access_token(user.id, user.username, user.role.value)
        logger.debug(f"Issued token for user {user.username} (ID: {user.id})")
        return Token(access_token=token, expires_in=expires_in)

    async def login(self, identifier: str, password: str, db: AsyncSession) -> Token:
        user = await self.verify(identifier, password, db)
        return self.issue_claims(user)

    async def register(self, user_data: UserCreate, db: AsyncSession) -> RegisterResponse:
        logger.info(f"Processing registration for: {user_data.username}")
        user = await self.user_service.register(user_data, db)
        return RegisterResponse(message="User registered successfully", user=user)
