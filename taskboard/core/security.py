import logging
import time

import bcrypt
import jwt
from fastapi.concurrency import run_in_threadpool

from taskboard.core.config import get_settings
from taskboard.core.exceptions import Unauthenticated
from taskboard.models import Claims

logger = logging.getLogger(__name__)


def _hash(plain: str, rounds: int) -> str:
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds)).decode("utf-8")


def _check(plain: str, digest: str) -> bool:
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), digest.encode("utf-8"))
    except ValueError:
        # Malformed stored digest
        logger.error("Stored password hash is not a valid bcrypt digest")
        return False


async def hash_password(plain: str) -> str:
    """bcrypt is deliberately slow, keep it off the event loop."""
    return await run_in_threadpool(_hash, plain, get_settings().bcrypt_rounds)


async def verify_password(plain: str, digest: str) -> bool:
    return await run_in_threadpool(_check, plain, digest)


def create_access_token(user_id: int, username: str, role: str) -> tuple[str, int]:
    """
    Sign identity claims for a user.

    Returns:
        (token, lifetime in seconds)
    """
    settings = get_settings()
    issued_at = int(time.time())
    payload = {
        # PyJWT requires a string subject
        "sub": str(user_id),
        "username": username,
        "role": role,
        "iat": issued_at,
        "exp": issued_at + settings.jwt_expires_in_seconds,
    }
    token = jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)
    return token, settings.jwt_expires_in_seconds


def decode_access_token(token: str) -> Claims:
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["sub", "exp", "iat"]},
        )
    except jwt.ExpiredSignatureError:
        raise Unauthenticated("Token has expired")
    except jwt.InvalidTokenError as e:
        logger.warning(f"Rejected access token: {e}")
        raise Unauthenticated("Invalid token")

    try:
        return Claims(
            id=int(payload["sub"]),
            username=payload["username"],
            role=payload["role"],
            iat=payload.get("iat"),
            exp=payload.get("exp"),
        )
    except (KeyError, ValueError) as e:
        logger.warning(f"Access token carries malformed claims: {e}")
        raise Unauthenticated("Invalid token")
