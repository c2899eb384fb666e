"""
Access gate: password hashing, JWT issue/verify, and route decorators that
put the calling user on ``g.user`` (or None for anonymous readers).
"""
from datetime import datetime, timedelta, timezone
from functools import wraps

import jwt
import structlog
from flask import current_app, g, request
from werkzeug.security import check_password_hash, generate_password_hash

from database import get_db
from errors import ForbiddenError, UnauthorizedError

logger = structlog.get_logger(__name__)

ADMIN_ROLES = ('admin', 'super_admin')
ROLES = ('user', 'moderator', 'admin', 'super_admin')
MODERATOR_ROLES = ('moderator', *ADMIN_ROLES)

PUBLIC_USER_FIELDS = 'id, name, email, role, bio, profile_image, is_active, created_at, last_login'


def hash_password(password):
    return generate_password_hash(password)


def verify_password(password_hash, password):
    return check_password_hash(password_hash, password)


def create_access_token(user_id, expires_delta=None):
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(days=current_app.config['JWT_EXPIRE_DAYS']))
    payload = {'sub': str(user_id), 'exp': expire, 'iat': datetime.now(timezone.utc)}
    return jwt.encode(payload, current_app.config['JWT_SECRET'],
                      algorithm=current_app.config['JWT_ALGORITHM'])


def decode_token(token):
    """Returns the user id in the token, or None if it is invalid or expired."""
    try:
        payload = jwt.decode(token, current_app.config['JWT_SECRET'],
                             algorithms=[current_app.config['JWT_ALGORITHM']])
        return int(payload['sub'])
    except (jwt.PyJWTError, KeyError, ValueError):
        return None


def public_user(row):
    if row is None:
        return None
    user = dict(row)
    user.pop('password_hash', None)
    if 'is_active' in user:
        user['is_active'] = bool(user['is_active'])
    return user


def _bearer_token():
    header = request.headers.get('Authorization', '')
    if header.startswith('Bearer '):
        return header[len('Bearer '):].strip() or None
    return None


def load_user_from_request():
    """
    (user, reason). user is None for anonymous callers; reason says why a
    supplied token was rejected.
    """
    token = _bearer_token()
    if token is None:
        return None, 'Access token required'
    user_id = decode_token(token)
    if user_id is None:
        return None, 'Invalid or expired token'
    row = get_db().execute(f'SELECT {PUBLIC_USER_FIELDS} FROM users WHERE id = ?',
                           (user_id,)).fetchone()
    if row is None:
        return None, 'User not found'
    if not row['is_active']:
        return None, 'Account is deactivated'
    return public_user(row), None


def token_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        user, reason = load_user_from_request()
        if user is None:
            logger.info('auth_rejected', path=request.path, reason=reason)
            raise UnauthorizedError(reason)
        g.user = user
        return view(*args, **kwargs)
    return wrapper


def optional_auth(view):
    """Attaches the user when a valid token is sent, otherwise g.user = None."""
    @wraps(view)
    def wrapper(*args, **kwargs):
        g.user, _ = load_user_from_request()
        return view(*args, **kwargs)
    return wrapper


def admin_required(view):
    @token_required
    @wraps(view)
    def wrapper(*args, **kwargs):
        if g.user['role'] not in ADMIN_ROLES:
            raise ForbiddenError('Admin access required')
        return view(*args, **kwargs)
    return wrapper


def is_admin(user):
    return user is not None and user.get('role') in ADMIN_ROLES


def can_moderate(user):
    """Moderators and admins may approve or hide comments."""
    return user is not None and user.get('role') in MODERATOR_ROLES
