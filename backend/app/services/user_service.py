# Overview: Service-layer operations for the user directory; registration, login and activation.

"""
User Directory

Read-only input to the order engine: lookup_user() supplies role (pricing and
permissions) and the activation flag. Registration, password login and
wholesale activation live here too.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor from BCRYPT_ROUNDS)
- Minimum 8 characters, must contain a letter and a digit
- Emails are matched case-insensitively and stored lower-cased
- Wholesale accounts are created inactive and cannot log in until activated
"""

from __future__ import annotations

import logging
import uuid

import bcrypt
from flask import current_app

from ..errors import NotFoundError, PermissionDeniedError, ValidationError
from ..extensions import db
from ..models import User, UserRole
from app.time_utils import utcnow
from . import audit_service, notification_service


logger = logging.getLogger(__name__)

SELF_SERVICE_ROLES = (UserRole.PUBLIC, UserRole.WHOLESALE)


class AuthenticationError(Exception):
    """Raised when login fails; message is safe to show to the caller."""


def validate_password_strength(password: str) -> None:
    if not password or len(password) < 8:
        raise ValidationError("Password must be at least 8 characters")
    if not any(c.isalpha() for c in password) or not any(c.isdigit() for c in password):
        raise ValidationError("Password must contain at least one letter and one digit")


def hash_password(password: str) -> str:
    validate_password_strength(password)
    rounds = int(current_app.config.get("BCRYPT_ROUNDS", 12))
    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds))
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed hash in storage
        return False


def lookup_user(user_id: str) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} not found", details={"user_id": user_id})
    return user


def get_user_by_email(email: str) -> User | None:
    if not email:
        return None
    return db.session.query(User).filter(db.func.lower(User.email) == email.strip().lower()).first()


def create_user(
    *,
    name: str,
    email: str,
    password: str,
    role: UserRole,
    phone: str | None = None,
    is_active: bool | None = None,
    user_id: str | None = None,
    loyalty_points: int = 0,
) -> User:
    """
    Create an account. is_active defaults to False for Wholesale, True otherwise.

    Used by self-service registration and by the seeding CLI (staff accounts).
    """
    role = UserRole(role)
    if not name or not name.strip():
        raise ValidationError("name is required")
    if not email or "@" not in email:
        raise ValidationError("A valid email is required")
    if get_user_by_email(email) is not None:
        raise ValidationError("Email already registered", details={"email": email})

    if is_active is None:
        is_active = role != UserRole.WHOLESALE

    user = User(
        id=user_id or f"u-{uuid.uuid4().hex[:12]}",
        name=name.strip(),
        email=email.strip().lower(),
        phone=phone,
        password_hash=hash_password(password),
        role=role.value,
        is_active=is_active,
        loyalty_points=loyalty_points if role == UserRole.WHOLESALE else 0,
    )
    db.session.add(user)
    db.session.commit()
    return user


def register_user(*, name: str, email: str, password: str, role: UserRole, phone: str | None = None) -> User:
    """Self-service registration (Public or Wholesale only)."""
    role = UserRole(role)
    if role not in SELF_SERVICE_ROLES:
        raise PermissionDeniedError(f"Cannot self-register as {role.value}")

    user = create_user(name=name, email=email, password=password, role=role, phone=phone)

    audit_service.append_entry(
        action="REGISTER",
        performed_by=audit_service.SYSTEM_ACTOR,
        target_id=user.id,
        details=f"New {role.value} user registered",
    )
    if role == UserRole.WHOLESALE:
        notification_service.notify(user.id, "Account created. Awaiting Admin verification.")
    return user


def authenticate(email: str, password: str) -> User:
    """
    Return the user for valid credentials.

    Raises AuthenticationError for unknown email, bad password or an
    account still pending verification.
    """
    user = get_user_by_email(email)
    if user is None or not verify_password(password or "", user.password_hash):
        raise AuthenticationError("Invalid email or password")
    if not user.is_active:
        raise AuthenticationError("Account pending verification. Please contact Admin.")

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def activate_user(user_id: str, *, admin: User | None = None) -> User:
    """Admin verification of a (wholesale) account."""
    if admin is not None and admin.role != UserRole.ADMIN.value:
        raise PermissionDeniedError("Only admins can activate accounts")

    user = lookup_user(user_id)
    if user.is_active:
        return user

    user.is_active = True
    db.session.commit()

    audit_service.append_entry(
        action="ACTIVATE_USER",
        performed_by=admin.email if admin else audit_service.SYSTEM_ACTOR,
        target_id=user.id,
        details=f"{user.role} account activated",
    )
    notification_service.notify(user.id, "Your account has been verified. You can now log in.")
    return user


def list_users(*, role: UserRole | None = None, pending_only: bool = False) -> list[User]:
    q = db.session.query(User)
    if role is not None:
        q = q.filter(User.role == UserRole(role).value)
    if pending_only:
        q = q.filter(User.is_active.is_(False))
    return q.order_by(User.created_at.asc(), User.id.asc()).all()
