import logging

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from typing_extensions import Annotated

from taskboard.core.exceptions import Forbidden, Unauthenticated
from taskboard.core.policy import has_role
from taskboard.core.security import decode_access_token
from taskboard.models import Claims, Role
from taskboard.services.auth_service import AuthService
from taskboard.services.user_service import UserService

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> Claims:
    if credentials is None:
        raise Unauthenticated("Missing bearer token")
    return decode_access_token(credentials.credentials)


CurrentUser = Annotated[Claims, Depends(get_current_user)]


def require_role(required: Role):
    """Dependency factory gating an endpoint on the role hierarchy."""

    async def checker(user: CurrentUser) -> Claims:
        if not has_role(user.role, required):
            logger.warning(
                f"User {user.id} with role {user.role.value} denied access. "
                f"Required roles: {required.value}"
            )
            raise Forbidden(f"Access denied. Required roles: {required.value}")
        return user

    return checker


AdminUser = Annotated[Claims, Depends(require_role(Role.ADMIN))]


def get_user_service(request: Request) -> UserService:
    return request.app.state.user_service


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


UserServiceDep = Annotated[UserService, Depends(get_user_service)]
AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]
