# Bearer token verification. Tokens are issued by the auth service.
from jose import jwt, JWTError
from fastapi import Header, HTTPException

from lms_progress.config import JWT_SECRET_KEY, JWT_ALGORITHM


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid or Expired Token")


def verify_token(authorization: str = Header(None)) -> dict:
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Unauthorized")

    payload = decode_token(authorization.split(" ", 1)[1])
    if not payload.get("sub"):
        raise HTTPException(status_code=401, detail="Token has no subject")
    return payload  # Contains sub (user id) and role
