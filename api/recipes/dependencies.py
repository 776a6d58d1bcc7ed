"""
Request identity for recipe mutations.

Tokens are verified upstream (gateway); this service only reads the user id
the gateway forwards in `X-User-Id`.
"""

from __future__ import annotations

from fastapi import Header, HTTPException, status


def _extract_user_id(raw: str | None) -> str:
    user_id = (raw or "").strip()
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header.",
        )
    if len(user_id) > 64:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid X-User-Id header.",
        )
    return user_id


async def get_current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    return _extract_user_id(x_user_id)


async def get_optional_user_id(x_user_id: str | None = Header(default=None)) -> str | None:
    if not (x_user_id or "").strip():
        return None
    return _extract_user_id(x_user_id)
