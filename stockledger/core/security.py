from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import bcrypt
from jose import JWTError, jwt

from stockledger.core.config import settings

ALGORITHM = "HS256"
TOKEN_ISSUER = "stockledger"


class TokenValidationError(ValueError):
    pass


@dataclass(frozen=True)
class AccessClaims:
    user_id: str
    role: str
    token_id: str
    expires_at: datetime


def hash_password(password: str) -> str:
    # bcrypt only reads the first 72 bytes of the encoded password.
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))


def create_access_token(user_id: str, role: str, *, expires_delta: timedelta | None = None) -> str:
    """Signs a bearer token carrying the role it was issued for."""
    now = datetime.now(timezone.utc)
    lifetime = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    payload = {
        "iss": TOKEN_ISSUER,
        "sub": user_id,
        "role": role,
        "type": "access",
        "jti": str(uuid4()),
        "iat": int(now.timestamp()),
        "exp": int((now + lifetime).timestamp()),
    }
    return jwt.encode(payload, settings.secret_key, algorithm=ALGORITHM)


def decode_access_token(token: str) -> AccessClaims:
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM], issuer=TOKEN_ISSUER)
    except JWTError as exc:
        raise TokenValidationError("Invalid token") from exc

    if payload.get("type") != "access":
        raise TokenValidationError("Invalid token type")

    subject = payload.get("sub")
    role = payload.get("role")
    token_id = payload.get("jti")
    if not subject or not role or not token_id:
        raise TokenValidationError("Incomplete token claims")

    return AccessClaims(
        user_id=subject,
        role=role,
        token_id=token_id,
        expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
    )
