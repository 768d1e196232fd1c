# application/auth_utils.py
import logging
import re

import bcrypt

from application.errors import ValidationError
from application.models import db, User

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')


# ───────────────────────────────────────────────────────────
def validate_email(email):
    return bool(email) and EMAIL_PATTERN.match(email) is not None


# ───────────────────────────────────────────────────────────
def hash_password(password):
    return bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt()).decode('utf-8')


# ───────────────────────────────────────────────────────────
def parse_credentials(payload):
    payload = payload or {}
    email = payload.get('email')
    password = payload.get('password')

    errors = {}
    if not isinstance(email, str) or not email.strip():
        errors['email'] = 'The email field is required.'
    elif not validate_email(email.strip()):
        errors['email'] = 'The email must be a valid email address.'
    if not isinstance(password, str) or not password:
        errors['password'] = 'The password field is required.'

    if errors:
        raise ValidationError('The given data was invalid.', errors=errors)
    return email.strip(), password


# ───────────────────────────────────────────────────────────
def authenticate_user(email, password):
    """Return the User whose stored bcrypt hash matches, or None."""
    user = db.session.query(User).filter_by(Email=email).first()
    if not user:
        logger.info("[AUTH] no user for %s", email)
        return None

    # Accounts without a password set cannot log in
    if not user.Password:
        logger.info("[AUTH] user %s has no password set", user.UserId)
        return None

    try:
        if bcrypt.checkpw(password.encode('utf-8'), user.Password.encode('utf-8')):
            return user
    except ValueError as e:
        # stored value is not a bcrypt hash
        logger.error("[AUTH] bcrypt error for user %s: %s", user.UserId, e)
        return None

    logger.info("[AUTH] password verification failed for user %s", user.UserId)
    return None
