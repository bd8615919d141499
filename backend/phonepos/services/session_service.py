# Overview: Bearer session tokens and the per-request actor context.

"""
Sessions

- login hands the client a random 256-bit token exactly once
- only sha256(token) is stored, so a leaked table cannot be replayed
- a session dies at expires_at (SESSION_TTL_HOURS after login), on logout,
  or when its user is deactivated
"""

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, User
from phonepos.time_utils import utcnow


@dataclass(frozen=True)
class ActorContext:
    """
    Who is performing a workflow.

    Passed explicitly into every transactional service call; services use it
    for user_id attribution and the user_name snapshots written to ledger,
    sale and purchase rows.
    """
    user_id: int | None
    display_name: str
    role: str | None = None

    @classmethod
    def for_user(cls, user: User, role: str | None = None) -> "ActorContext":
        return cls(user_id=user.id, display_name=user.display_name, role=role)

    @classmethod
    def system(cls) -> "ActorContext":
        """Actor for CLI and maintenance jobs."""
        return cls(user_id=None, display_name="System", role=None)


@dataclass
class SessionContext:
    user: User
    session: SessionToken


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _live_session(token: str) -> SessionToken | None:
    return (
        db.session.query(SessionToken)
        .filter_by(token_hash=hash_token(token), is_revoked=False)
        .first()
    )


def _revoke(session: SessionToken, when) -> None:
    session.is_revoked = True
    session.revoked_at = when


def create_session(
    user_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[SessionToken, str]:
    """Open a session; returns (row, plaintext token). The token is not recoverable later."""
    user = db.session.get(User, user_id)
    if user is None:
        raise ValueError("User not found")
    if not user.is_active:
        raise ValueError("User account is deactivated")

    token = secrets.token_hex(32)
    now = utcnow()
    ttl = timedelta(hours=current_app.config.get("SESSION_TTL_HOURS", 24))

    session = SessionToken(
        user_id=user.id,
        token_hash=hash_token(token),
        created_at=now,
        last_used_at=now,
        expires_at=now + ttl,
        user_agent=(user_agent or "")[:512] or None,
        ip_address=ip_address,
        is_revoked=False,
    )
    db.session.add(session)
    db.session.commit()
    return session, token


def validate_session(token: str) -> SessionContext | None:
    """
    Resolve a token to its user, or None.

    A live token whose user has been deactivated is revoked on sight.
    """
    session = _live_session(token)
    if session is None:
        return None

    now = utcnow()
    if session.expires_at < now:
        return None

    user = session.user
    if user is None or not user.is_active:
        _revoke(session, now)
        db.session.commit()
        return None

    session.last_used_at = now
    db.session.commit()
    return SessionContext(user=user, session=session)


def revoke_session(token: str) -> bool:
    """Logout. False when the token is unknown or already revoked."""
    session = _live_session(token)
    if session is None:
        return False

    _revoke(session, utcnow())
    db.session.commit()
    return True


def revoke_all_user_sessions(user_id: int) -> int:
    """Revoke every live session of a user; the caller commits."""
    now = utcnow()
    sessions = db.session.query(SessionToken).filter_by(user_id=user_id, is_revoked=False).all()
    for session in sessions:
        _revoke(session, now)
    return len(sessions)
