# Overview: Password hashing, user creation, login and role assignment.

"""
Staff accounts.

Passwords are bcrypt-hashed (cost BCRYPT_ROUNDS) and must pass
PASSWORD_RULES. Tokens issued after login live in session_service.
"""

import logging
import re

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import User, Role, UserRole
from ..permissions import ROLE_DESCRIPTIONS
from ..validation import ConflictError, NotFoundError, ValidationError, coerce_optional_str
from phonepos.time_utils import utcnow

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8

PASSWORD_RULES = (
    (r"[A-Z]", "an uppercase letter"),
    (r"[a-z]", "a lowercase letter"),
    (r"\d", "a digit"),
    (r"[!@#$%^&*(),.'\":{}|<>?_\-+=/\\\[\];~`]", "a special character"),
)


class PasswordValidationError(ValidationError):
    pass


def validate_password_strength(password: str) -> None:
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
        )
    for pattern, label in PASSWORD_RULES:
        if not re.search(pattern, password):
            raise PasswordValidationError(f"Password must contain {label}")


def hash_password(password: str) -> str:
    validate_password_strength(password)
    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Constant-time check; a corrupt stored hash counts as a mismatch."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def _role_by_name(role_name: str) -> Role | None:
    return db.session.query(Role).filter_by(name=role_name).first()


def create_user(
    username: str,
    email: str,
    password: str,
    role_name: str = "cashier",
    name: str | None = None,
    assigned_by_user_id: int | None = None,
) -> User:
    """
    Create an active account holding one role.

    Raises:
        ValidationError: missing username/email, or a weak password
        ConflictError: username or email already taken
        NotFoundError: unknown role
    """
    username = coerce_optional_str(username, "username") or ""
    email = (coerce_optional_str(email, "email") or "").lower()
    name = coerce_optional_str(name, "name")
    if not username or not email:
        raise ValidationError("username and email are required")

    taken = db.session.query(User.id).filter(
        db.or_(User.username == username, User.email == email)
    ).first()
    if taken is not None:
        raise ConflictError("Username or email already exists")

    role = _role_by_name(role_name)
    if role is None:
        raise NotFoundError(f"Role {role_name} not found")

    user = User(
        username=username,
        email=email,
        name=name,
        password_hash=hash_password(password),
        is_active=True,
    )
    db.session.add(user)
    db.session.flush()
    db.session.add(UserRole(user_id=user.id, role_id=role.id, assigned_by_user_id=assigned_by_user_id))
    db.session.commit()

    logger.info("User created: %s (%s)", username, role_name)
    return user


def authenticate(login: str, password: str) -> User | None:
    """
    Check credentials; login may be the username or the email.

    Deactivated accounts never authenticate. Stamps last_login_at on success.
    """
    login = (login or "").strip()
    user = db.session.query(User).filter(
        db.or_(User.username == login, User.email == login.lower()),
        User.is_active.is_(True),
    ).first()

    if user is None or not verify_password(password, user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def assign_role(user_id: int, role_name: str, assigned_by_user_id: int | None = None) -> UserRole:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")

    role = _role_by_name(role_name)
    if role is None:
        raise ValidationError(f"Invalid role: {role_name}")

    user_role = user.user_role
    if user_role is None:
        user_role = UserRole(user_id=user.id, role_id=role.id)
        db.session.add(user_role)
    user_role.role_id = role.id
    user_role.assigned_by_user_id = assigned_by_user_id
    user_role.assigned_at = utcnow()

    db.session.commit()
    logger.info("Role %s assigned to user %s", role_name, user_id)
    return user_role


def create_default_roles() -> int:
    """Seed admin, manager, cashier and viewer; returns how many were new."""
    existing = {name for (name,) in db.session.query(Role.name).all()}
    missing = [name for name in ROLE_DESCRIPTIONS if name not in existing]
    for name in missing:
        db.session.add(Role(name=name, description=ROLE_DESCRIPTIONS[name]))
    db.session.commit()
    return len(missing)
