"""
Password hashing and session tokens.
"""
import secrets

from werkzeug.security import check_password_hash, generate_password_hash

from exam_portal.config import settings


def hash_password(password: str) -> str:
    """Salted hash in werkzeug's `method$salt$hash` format"""
    return generate_password_hash(password, method=settings.password_hash_method)


def verify_password(password: str, password_hash: str) -> bool:
    return check_password_hash(password_hash, password)


def new_token() -> str:
    return secrets.token_urlsafe(24)
