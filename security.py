"""
Passwords, session tokens and the authorization predicates used by every
protected endpoint.
"""

import logging
from datetime import timedelta

import jwt
from passlib.context import CryptContext

from database import USERS, utcnow
from errors import NotAuthorizedError, UnauthenticatedError

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    if not hashed:
        return False
    return pwd_context.verify(password, hashed)


def create_token(user: dict, secret: str, expires_minutes: int) -> str:
    now = utcnow()
    payload = {
        "sub": str(user["_id"]),
        "role": user.get("role"),
        "iat": now,
        "exp": now + timedelta(minutes=expires_minutes),
    }
    return jwt.encode(payload, secret, algorithm=JWT_ALGORITHM)


def decode_token(token: str, secret: str) -> dict:
    try:
        return jwt.decode(token, secret, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise UnauthenticatedError("Token has expired")
    except jwt.InvalidTokenError:
        raise UnauthenticatedError("Token is not valid")


def extract_token(authorization: str = None, x_auth_token: str = None):
    if authorization:
        scheme, _, value = authorization.partition(" ")
        if scheme.lower() == "bearer" and value.strip():
            return value.strip()
    if x_auth_token:
        return x_auth_token.strip()
    return None


def resolve_session(database, token: str, secret: str) -> dict:
    """Turn a presented token into the live user document."""
    if not token:
        raise UnauthenticatedError("No token, authorization denied")
    claims = decode_token(token, secret)
    user = database.get_document(USERS, claims.get("sub"))
    if user is None:
        raise UnauthenticatedError("User no longer exists")
    if not user.get("is_active", True):
        raise NotAuthorizedError("Account is deactivated")
    return user


# Authorization predicates. Pure functions of (caller, resource).

def has_role(user: dict, *roles: str) -> bool:
    return user is not None and user.get("role") in roles


def is_owner(user: dict, owner_id) -> bool:
    return user is not None and owner_id is not None and str(user.get("_id")) == str(owner_id)


def can_manage(user: dict, owner_id) -> bool:
    return is_owner(user, owner_id) or has_role(user, "admin")


def require_role(user: dict, *roles: str):
    if not has_role(user, *roles):
        raise NotAuthorizedError(f"User role {user.get('role')} is not authorized to access this route")


def require_owner_or_admin(user: dict, owner_id, message: str = None):
    if not can_manage(user, owner_id):
        raise NotAuthorizedError(message)
