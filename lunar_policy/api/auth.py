"""
Facilitator authentication and game ownership.

Facilitators sign in with email and password (bcrypt, truncated to its 72-byte limit) and
receive a bearer JWT scoped to the facilitator role. Games belong to the facilitator who
created them: only that facilitator may change or delete one, while the dashboard stays
readable by anyone holding the game id.
"""

import bcrypt
import os
import re
from datetime import datetime, timedelta, timezone
from typing import Any
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from .database import get_db
from .models import Facilitator, Game

USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_]{2,32}$")

SECRET_KEY = os.environ.get("JWT_SECRET", "change-me-in-production-use-env")
ALGORITHM = "HS256"
TOKEN_SCOPE = "facilitator"
ACCESS_TOKEN_EXPIRE_HOURS = 12  # one session of play

BCRYPT_MAX_BYTES = 72
BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "10"))
security = HTTPBearer(auto_error=False)


def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("ascii")


def verify_password(plain: str, hashed: str) -> bool:
    return bcrypt.checkpw(_password_bytes(plain), hashed.encode("ascii"))


def validate_username(username: str) -> bool:
    return bool(USERNAME_PATTERN.match(username))


def create_access_token(facilitator: Facilitator) -> str:
    now = datetime.now(timezone.utc)
    claims = {
        "sub": facilitator.id,
        "username": facilitator.username,
        "scope": TOKEN_SCOPE,
        "iat": now,
        "exp": now + timedelta(hours=ACCESS_TOKEN_EXPIRE_HOURS),
    }
    return jwt.encode(claims, SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> dict[str, Any] | None:
    """Claims of a valid, unexpired facilitator token; None for anything else."""
    try:
        claims = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None
    if claims.get("scope") != TOKEN_SCOPE or not claims.get("sub"):
        return None
    return claims


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_facilitator(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: Session = Depends(get_db),
) -> Facilitator:
    if not credentials:
        raise _unauthorized("Not authenticated")
    claims = decode_token(credentials.credentials)
    if claims is None:
        raise _unauthorized("Invalid or expired token")
    facilitator = db.query(Facilitator).filter(Facilitator.id == claims["sub"]).first()
    if not facilitator:
        raise _unauthorized("Facilitator not found")
    return facilitator


def require_game_owner(
    game_id: str,
    facilitator: Facilitator = Depends(get_current_facilitator),
    db: Session = Depends(get_db),
) -> Game:
    """The game row, if the caller created it. 404 for an unknown game, 403 for someone else's."""
    game = db.query(Game).filter(Game.id == game_id).first()
    if not game:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Game {game_id} not found")
    if game.created_by != facilitator.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the facilitator who created this game can change it",
        )
    return game
