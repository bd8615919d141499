# Overview: Staff administration on top of auth_service: listing, status, profiles.

from __future__ import annotations

import logging

from sqlalchemy import func

from ..extensions import db
from ..models import Role, User, UserProfile, UserRole
from ..validation import ConflictError, ModelValidationPolicy, NotFoundError, ValidationError, validate_payload
from .session_service import ActorContext, revoke_all_user_sessions

logger = logging.getLogger(__name__)

DEFAULT_ROLE = "viewer"

PROFILE_POLICY = ModelValidationPolicy(
    writable_fields={
        "first_name",
        "last_name",
        "phone",
        "address",
        "date_of_birth",
        "hire_date",
        "department",
        "salary_cents",
        "emergency_contact",
        "notes",
        "is_active",
    },
    required_on_create=set(),
)


def _get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


def serialize_user(user: User) -> dict:
    """User with profile and role, the shape the admin screens consume."""
    data = user.to_dict()
    data["profile"] = user.profile.to_dict() if user.profile else None
    data["role"] = user.user_role.role.name if user.user_role else DEFAULT_ROLE
    return data


def list_users() -> list[dict]:
    users = db.session.query(User).order_by(User.id.asc()).all()
    return [serialize_user(u) for u in users]


def set_user_active(user_id: int, is_active: bool, actor: ActorContext) -> User:
    """
    Activate or deactivate an account.

    Deactivation revokes every open session and is refused for the caller's
    own account.
    """
    user = _get_user(user_id)
    if not is_active and actor.user_id == user.id:
        raise ValidationError("Cannot deactivate your own account")

    user.is_active = bool(is_active)
    if user.profile is not None:
        user.profile.is_active = user.is_active
    if not user.is_active:
        revoke_all_user_sessions(user.id)

    db.session.commit()
    logger.info("User %s %s by %s", user.id, "activated" if user.is_active else "deactivated", actor.display_name)
    return user


def deactivate_user(user_id: int, actor: ActorContext) -> User:
    """Soft delete; accounts are never removed so attribution survives."""
    return set_user_active(user_id, False, actor)


def create_profile(user_id: int, data: dict, actor: ActorContext) -> UserProfile:
    user = _get_user(user_id)
    if user.profile is not None:
        raise ConflictError("User profile already exists")

    patch = validate_payload(model=UserProfile, payload=data, policy=PROFILE_POLICY, partial=False)
    if patch.get("is_active") is None:
        patch["is_active"] = True

    profile = UserProfile(user_id=user.id, created_by_user_id=actor.user_id, **patch)
    db.session.add(profile)
    db.session.commit()
    return profile


def update_profile(user_id: int, data: dict) -> UserProfile:
    user = _get_user(user_id)
    if user.profile is None:
        raise NotFoundError("User profile not found")

    patch = validate_payload(model=UserProfile, payload=data, policy=PROFILE_POLICY, partial=True)
    for key, value in patch.items():
        setattr(user.profile, key, value)
    db.session.commit()
    return user.profile


def get_user_stats() -> dict:
    total = db.session.query(func.count(User.id)).scalar()
    active = db.session.query(func.count(User.id)).filter(User.is_active.is_(True)).scalar()

    rows = (
        db.session.query(Role.name, func.count(UserRole.id))
        .join(UserRole, UserRole.role_id == Role.id)
        .join(User, User.id == UserRole.user_id)
        .filter(User.is_active.is_(True))
        .group_by(Role.name)
        .all()
    )

    return {
        "total_users": total,
        "active_users": active,
        "inactive_users": total - active,
        "role_distribution": {name: count for name, count in rows},
    }
