import secrets
from typing import Optional

from fastapi import Header, HTTPException, status

from .config import ADMIN_TOKEN


async def require_admin(x_admin_token: Optional[str] = Header(default=None)) -> str:
    """Require the admin token on /admin endpoints."""
    if not x_admin_token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated"
        )
    if not secrets.compare_digest(x_admin_token, ADMIN_TOKEN):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    return x_admin_token
