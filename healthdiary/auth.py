"""
Session tokens, password hashing and the ownership policy.

Every route that reads or mutates a user-owned row goes through `authorize`,
so the ownership rule lives in one place instead of in each handler.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from healthdiary.config import get_settings
from healthdiary.db import get_db
from healthdiary.models import User

ALGORITHM = "HS256"

bearer_scheme = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed hash in the database
        return False


def create_token(user: User) -> str:
    settings = get_settings()
    payload = {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "exp": datetime.now(timezone.utc) + timedelta(hours=settings.token_expire_hours),
    }
    return jwt.encode(payload, settings.secret_key, algorithm=ALGORITHM)


def decode_token(token: str) -> dict:
    return jwt.decode(token, get_settings().secret_key, algorithms=[ALGORITHM])


def get_token_payload(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> dict:
    """Verify the bearer token and return its claims."""
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=401, detail="Not authorized")

    try:
        payload = decode_token(credentials.credentials)
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Not authorized")

    if "id" not in payload:
        raise HTTPException(status_code=401, detail="Not authorized")
    return payload


def get_current_user(
    payload: dict = Depends(get_token_payload),
    db: Session = Depends(get_db),
) -> User:
    user = db.query(User).filter(User.id == payload["id"]).first()
    if not user:
        raise HTTPException(status_code=401, detail="Not authorized")
    return user


def authorize(owner_id: Optional[str], user: User) -> None:
    """Raise 403 unless `user` owns the resource. Unowned (template) rows are never writable."""
    if owner_id is None or str(owner_id) != str(user.id):
        raise HTTPException(status_code=403, detail="No permission to access this resource")


def ensure_subject(declared_user_id: Optional[str], user: User) -> None:
    """A userId supplied by the client must match the token subject."""
    if declared_user_id is not None and str(declared_user_id) != str(user.id):
        raise HTTPException(status_code=403, detail="No permission to access this resource")
