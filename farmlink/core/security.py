from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException
from fastapi.security import OAuth2PasswordBearer
from jose import jwt, JWTError
from passlib.hash import pbkdf2_sha256 as hasher

from farmlink.core.config import settings
from farmlink.deps import get_repo

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token")


def hash_password(password: str) -> str:
    return hasher.hash(password or "")


def verify_password(password: str, hashed: str) -> bool:
    try:
        return hasher.verify(password or "", hashed)
    except (ValueError, TypeError):
        # empty/legacy/invalid hash formats
        return False


def create_access_token(data: Dict[str, Any], minutes: Optional[int] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + timedelta(minutes=minutes or settings.access_ttl_min)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_alg)


def decode_token(token: str) -> Dict[str, Any]:
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_alg])
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token")


async def get_current_user(token: str = Depends(oauth2_scheme), repo=Depends(get_repo)):
    data = decode_token(token)
    user = await repo.find_user(data.get("sub"))
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return user


def require_roles(*roles: str):
    async def checker(user=Depends(get_current_user)):
        if user.get("role") not in roles:
            raise HTTPException(
                status_code=403,
                detail=f"Role '{user.get('role')}' is not allowed to access this resource",
            )
        return user
    return checker
