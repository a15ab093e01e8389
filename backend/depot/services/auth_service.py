# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Account and credential handling.

WHY: Every inventory movement and order transition is attributed to a
user, so every actor needs an account with a role. Passwords are hashed
with bcrypt and must meet a minimum strength.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost from BCRYPT_ROUNDS, 12 by default)
- Minimum 8 characters with upper, lower, digit and special character
- Session tokens managed separately (see session_service.py)
"""

import re

import bcrypt
from flask import current_app

from ..errors import ConflictError, ValidationError
from ..extensions import db
from ..models import Role, User


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""
    pass


EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if not password or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>?_\-]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    validate_password_strength(password)
    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt(rounds=rounds))
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt comparison. Malformed hashes never verify."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def normalize_email(email: str | None) -> str:
    value = (email or "").strip().lower()
    if not EMAIL_PATTERN.match(value):
        raise ValidationError("A valid email address is required")
    return value


def create_user(*, email: str, password: str, full_name: str, role: Role) -> User:
    """
    Create a user. Does not commit; callers own the transaction.

    Raises:
        ValidationError / PasswordValidationError: bad input
        ConflictError: email already registered
    """
    email = normalize_email(email)
    full_name = (full_name or "").strip()
    if not full_name:
        raise ValidationError("full_name is required")
    if not isinstance(role, Role):
        try:
            role = Role(str(role).upper())
        except ValueError:
            raise ValidationError(f"Unknown role: {role}")

    if db.session.query(User.id).filter(User.email == email).first():
        raise ConflictError("Email already exists")

    user = User(
        email=email,
        full_name=full_name,
        password_hash=hash_password(password),
        role=role,
        is_active=True,
    )
    db.session.add(user)
    db.session.flush()
    return user


def authenticate(email: str, password: str) -> User | None:
    """
    Return the active user matching the credentials, else None.
    """
    try:
        email = normalize_email(email)
    except ValidationError:
        return None

    user = db.session.query(User).filter(User.email == email, User.is_active.is_(True)).first()
    if not user:
        return None
    if not verify_password(password or "", user.password_hash):
        return None
    return user
