"""Signed session tokens for observers (teaching assistants).

Observers have no account with the auth provider; they sign in with the
academy code and a class TA key and receive a short-lived HS256 token scoped
to that class.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from academy.core.config import get_settings

OBSERVER_KIND = "observer"


def issue_observer_token(teacher_id: str, class_id: str, class_name: str) -> str:
    settings = get_settings()
    now = datetime.now(timezone.utc)
    claims = {
        "sub": f"observer:{class_id}",
        "kind": OBSERVER_KIND,
        "teacher_id": teacher_id,
        "class_id": class_id,
        "name": class_name,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=settings.observer_token_ttl_minutes)).timestamp()),
    }
    return jwt.encode(claims, settings.session_secret, algorithm=settings.session_algorithm)


def decode_observer_token(token: str) -> Optional[Dict[str, Any]]:
    """Return observer claims, or None when ``token`` is not one of ours."""
    settings = get_settings()
    try:
        claims = jwt.decode(token, settings.session_secret, algorithms=[settings.session_algorithm])
    except JWTError:
        return None
    if claims.get("kind") != OBSERVER_KIND or not claims.get("class_id"):
        return None
    return claims
