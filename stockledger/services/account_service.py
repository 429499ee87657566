import re
from datetime import datetime, timezone

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from stockledger.core.errors import AuthenticationError, DuplicateResourceError
from stockledger.core.id_utils import generate_short_token
from stockledger.core.observability import log_event
from stockledger.core.permissions import ADMIN_ROLE, STAFF_ROLE
from stockledger.core.security import hash_password, verify_password
from stockledger.models.user import User

USERNAME_MAX_LENGTH = 30
_USERNAME_UNSAFE = re.compile(r"[^a-z0-9_]+")


def username_base(seed: str) -> str:
    """`"Jo.Doe+stock"` -> `"jo_doe_stock"`; falls back to `"user"`."""
    collapsed = _USERNAME_UNSAFE.sub("_", seed.strip().lower()).strip("_")
    collapsed = re.sub(r"_{2,}", "_", collapsed)
    return collapsed[:USERNAME_MAX_LENGTH] or "user"


def _username_taken(db: Session, username: str) -> bool:
    stmt = select(User.id).where(func.lower(User.username) == username.lower())
    return db.execute(stmt).first() is not None


def _available_username(db: Session, seed: str) -> str:
    base = username_base(seed)
    candidate = base
    while _username_taken(db, candidate):
        candidate = f"{base[:USERNAME_MAX_LENGTH - 7]}_{generate_short_token(6)}"
    return candidate


def find_by_identifier(db: Session, identifier: str) -> User | None:
    needle = identifier.strip().lower()
    return db.execute(
        select(User).where(or_(func.lower(User.email) == needle, func.lower(User.username) == needle))
    ).scalar_one_or_none()


def register_account(
    db: Session,
    *,
    email: str,
    full_name: str,
    password: str,
    username: str | None = None,
) -> User:
    """Creates a user. The first account bootstraps the store as admin."""
    email = email.strip().lower()
    if db.execute(select(User.id).where(func.lower(User.email) == email)).first():
        raise DuplicateResourceError("Email already registered", details={"email": email})
    if username and _username_taken(db, username):
        raise DuplicateResourceError("Username already taken", details={"username": username})

    role = STAFF_ROLE if db.execute(select(User.id).limit(1)).first() else ADMIN_ROLE
    user = User(
        email=email,
        username=username or _available_username(db, email.split("@")[0]),
        full_name=full_name,
        hashed_password=hash_password(password),
        role=role,
    )
    db.add(user)
    db.commit()
    log_event("auth.registered", user_id=user.id, role=role)
    return user


def authenticate(db: Session, *, identifier: str, password: str) -> User:
    user = find_by_identifier(db, identifier)
    if user is None or not verify_password(password, user.hashed_password):
        raise AuthenticationError("Invalid credentials")
    if not user.is_active:
        raise AuthenticationError("User is inactive")

    user.last_login_at = datetime.now(timezone.utc)
    db.commit()
    return user
