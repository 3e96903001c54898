import time
from typing import Optional

import jwt
from passlib.context import CryptContext

from . import models

# Use pbkdf2_sha256 as default to avoid bcrypt 72-byte limitation in some envs
pwd_context = CryptContext(schemes=["pbkdf2_sha256", "bcrypt"], deprecated="auto")

ALGORITHM = "HS256"
EXP_SECONDS = 60 * 60 * 24  # 1 day
MIN_PASSWORD_LENGTH = 6


def create_access_token(user: models.User, secret: str, expires_in: Optional[int] = None) -> str:
    now = int(time.time())
    exp = now + (expires_in or EXP_SECONDS)
    payload = {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "phone": user.phone,
        "role": user.role,
        "iat": now,
        "exp": exp,
    }
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def decode_access_token(token: str, secret: str) -> dict:
    """Verify signature and expiry; raises ``jwt.ExpiredSignatureError`` or ``jwt.InvalidTokenError``."""
    return jwt.decode(token, secret, algorithms=[ALGORITHM])


def token_matches_user(payload: dict, user: models.User) -> bool:
    """A token is only honoured while the identity it was issued for is unchanged."""
    return (
        payload.get("id") == user.id
        and payload.get("name") == user.name
        and payload.get("email") == user.email
        and payload.get("phone") == user.phone
    )


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: Optional[str]) -> bool:
    if not hashed:
        return False
    return pwd_context.verify(plain, hashed)
