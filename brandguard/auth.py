import hmac
from typing import Optional

from fastapi import Header, HTTPException, status

from brandguard.config import settings


def require_worker_token(authorization: Optional[str] = Header(default=None)) -> None:
    expected = settings.WORKER_TRIGGER_TOKEN
    if not expected:
        return
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not hmac.compare_digest(token.strip(), expected):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid worker token")
