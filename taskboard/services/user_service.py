import logging
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from taskboard.cache.decorators import read_through, write_through
from taskboard.cache.layer import EntityCache
from taskboard.core.exceptions import Conflict, NotFound
from taskboard.core.policy import assert_not_last_admin
from taskboard.core.security import hash_password
from taskboard.models import Role, User, UserCreate, UserPage, UserRead
from taskboard.query.composer import (
    USER_QUERY,
    build_filter,
    build_spec,
    filters_meta,
    page_meta,
    paginate,
)

logger = logging.getLogger(__name__)

USER_NOT_FOUND = "User not found"


def role_lock_query(user_id: int):
    """Select the target user and every admin, locked ``FOR UPDATE`` in id order."""
    return (
        select(User)
        .where(or_(User.id == user_id, User.role == Role.ADMIN))
        .order_by(User.id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )


class UserService:
    """
    Account operations.

    Owns the entity cache for users. Cached values are ``UserRead``
    snapshots, so a password hash is never held in the cache.
    """

    def __init__(self, cache: Optional[EntityCache] = None):
        self.cache = cache if cache is not None else EntityCache(namespace="user")

    async def register(self, user_data: UserCreate, db: AsyncSession) -> UserRead:
        # Uniqueness checks come first so a duplicate never pays for bcrypt
        if await self._exists(User.username == user_data.username, db):
            raise Conflict("Username already exists")
        if await self._exists(User.email == user_data.email, db):
            raise Conflict("Email already exists")

        user = User(
            username=user_data.username,
            email=user_data.email,
            password_hash=await hash_password(user_data.password),
            role=Role.USER,
        )
        db.add(user)
        try:
            await db.commit()
        except IntegrityError:
            # Lost a race with a concurrent registration
            await db.rollback()
            logger.warning(f"Unique constraint hit registering {user_data.username}")
            raise Conflict("Username or email already exists")
        await db.refresh(user)

        logger.info(f"User registered: {user.username} (ID: {user.id})")
        return UserRead.model_validate(user)

    async def _exists(self, condition, db: AsyncSession) -> bool:
        result = await db.exec(select(User.id).where(condition).limit(1))
        return result.first() is not None

    async def find_by_username_or_email(
        self, identifier: str, db: AsyncSession
    ) -> Optional[User]:
        """
        Full row including the hash. Internal use only.

        Usernames match exactly; emails are stored lowercased, so the email
        branch compares case-insensitively.
        """
        result = await db.exec(
            select(User).where(
                or_(User.username == identifier, User.email == identifier.lower())
            )
        )
        return result.first()

    @read_through(lambda user_id, *_, **__: user_id)
    async def _load_user(self, user_id: int, db: AsyncSession) -> Optional[UserRead]:
        user = await db.get(User, user_id)
        if user is None:
            return None
        return UserRead.model_validate(user)

    async def get_by_id(self, user_id: int, db: AsyncSession) -> UserRead:
        user = await self._load_user(user_id, db)
        if user is None:
            raise NotFound(USER_NOT_FOUND)
        return user

    async def list_paged(self, raw: Mapping[str, Any], db: AsyncSession) -> UserPage:
        spec = build_spec(raw, USER_QUERY)
        where = build_filter(spec, USER_QUERY)
        users, total = await paginate(db, USER_QUERY, spec, where)
        return UserPage(
            users=[UserRead.model_validate(user) for user in users],
            pagination=page_meta(spec.page, spec.limit, total),
            filters=filters_meta(spec),
        )

    @write_through(lambda user_id, *_, **__: user_id)
    async def update_role(self, user_id: int, new_role: Role, db: AsyncSession) -> UserRead:
        """
        Change a user's role without ever leaving the system admin-less.

        The admin count and the role write share one transaction. The target
        row and all admin rows are locked by a single statement in id order,
        so concurrent role changes queue behind each other instead of
        deadlocking, and each one counts the admins the previous left behind.
        """
        new_role = Role(new_role)
        # Raises NotFound before any write is attempted
        await self.get_by_id(user_id, db)

        try:
            rows = (await db.exec(role_lock_query(user_id))).all()
            user = next((row for row in rows if row.id == user_id), None)
            if user is None:
                raise NotFound(USER_NOT_FOUND)

            admin_count = sum(1 for row in rows if row.role == Role.ADMIN)
            assert_not_last_admin(admin_count, user, new_role)

            user.role = new_role
            user.updated_at = datetime.now(timezone.utc)
            db.add(user)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        await db.refresh(user)
        logger.info(f"Role of user {user_id} set to {new_role.value}")
        return UserRead.model_validate(user)

    async def ensure_admin(
        self, username: str, email: str, password: str, db: AsyncSession
    ) -> UserRead:
        """Create the bootstrap admin unless a user with that email exists."""
        email = email.lower()
        result = await db.exec(select(User).where(User.email == email))
        existing = result.first()
        if existing is not None:
            logger.info(f"Admin user already exists: {existing.email}")
            return UserRead.model_validate(existing)

        user = User(
            username=username,
            email=email,
            password_hash=await hash_password(password),
            role=Role.ADMIN,
        )
        db.add(user)
        await db.commit()
        await db.refresh(user)
        logger.info(f"Admin user created: {user.email}")
        return UserRead.model_validate(user)

    def clear_cache(self, user_id: int) -> None:
        self.cache.invalidate(user_id)

    def clear_all_cache(self) -> None:
        self.cache.invalidate_all()
