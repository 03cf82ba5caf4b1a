from fastapi import HTTPException, status, Request
from jose import JWTError, jwt
from database.db import SessionLocal
from typing import Optional
import hmac
import os

ALGORITHM = "HS256"
SECRET_KEY = os.getenv("NEXTAUTH_SECRET")
EXPECTED_AUD = os.getenv("EXPECTED_AUD")  # Optional: enforce the audience claim
AUTH_COOKIE = "ronbun_auth_token"

if not SECRET_KEY:
    raise ValueError("CRITICAL: NEXTAUTH_SECRET is not set in environment variables. Authentication cannot proceed.")


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _bearer_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header.split(" ", 1)[1].strip() or None
    return None


def _decode_user_id(token: str) -> Optional[str]:
    opts = {"verify_aud": bool(EXPECTED_AUD)}
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM], audience=EXPECTED_AUD, options=opts)
    except JWTError:
        return None
    user_id = payload.get("sub")
    return str(user_id) if user_id else None


async def get_current_user(request: Request) -> str:
    """Returns the identity-provider user id carried by the session token."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    token = request.cookies.get(AUTH_COOKIE) or _bearer_token(request)
    if not token:
        raise credentials_exception

    user_id = _decode_user_id(token)
    if user_id is None:
        raise credentials_exception
    return user_id


async def get_optional_user(request: Request) -> Optional[str]:
    token = request.cookies.get(AUTH_COOKIE) or _bearer_token(request)
    if not token:
        return None
    return _decode_user_id(token)


async def verify_cron_secret(request: Request) -> None:
    expected = os.getenv("CRON_SECRET")
    provided = _bearer_token(request) or request.headers.get("x-cron-secret") or ""
    if not expected or not hmac.compare_digest(provided.encode(), expected.encode()):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
