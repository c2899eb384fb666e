import re
import sqlite3

import structlog
from flask import Blueprint, g, jsonify, request

from auth import (PUBLIC_USER_FIELDS, create_access_token, hash_password, public_user,
                  token_required, verify_password)
from database import get_db, transaction, utcnow
from errors import ConflictError, UnauthorizedError, ValidationError
from http_utils import get_payload
from uploads import save_image

logger = structlog.get_logger(__name__)

auth_bp = Blueprint('auth', __name__)

EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')


def validate_profile(data, require_all=True):
    errors = []
    name = (data.get('name') or '').strip()
    if require_all or 'name' in data:
        if not 2 <= len(name) <= 50:
            errors.append({'field': 'name', 'message': 'Name must be between 2 and 50 characters'})
    if require_all:
        if not EMAIL_RE.match((data.get('email') or '').strip()):
            errors.append({'field': 'email', 'message': 'Please provide a valid email'})
        if len(data.get('password') or '') < 6:
            errors.append({'field': 'password',
                           'message': 'Password must be at least 6 characters long'})
    if len(data.get('bio') or '') > 500:
        errors.append({'field': 'bio', 'message': 'Bio cannot exceed 500 characters'})
    if errors:
        raise ValidationError(errors)


def create_user(db, name, email, password, role='user', profile_image=''):
    """Inserts a user and returns its public row. Duplicate email -> ConflictError."""
    try:
        with transaction(db):
            cur = db.execute(
                'INSERT INTO users (name, email, password_hash, role, profile_image, created_at) '
                'VALUES (?, ?, ?, ?, ?, ?)',
                (name.strip(), email.strip().lower(), hash_password(password), role,
                 profile_image or '', utcnow()),
            )
    except sqlite3.IntegrityError as e:
        raise ConflictError('User with this email already exists') from e
    logger.info('user_created', user_id=cur.lastrowid, role=role)
    return public_user(db.execute(f'SELECT {PUBLIC_USER_FIELDS} FROM users WHERE id = ?',
                                  (cur.lastrowid,)).fetchone())


@auth_bp.route('/auth/signup', methods=['POST'])
def signup():
    data = get_payload()
    validate_profile(data)
    profile_image = save_image(request.files.get('profileImage'), 'profiles', 'profileImage')
    user = create_user(get_db(), data['name'], data['email'], data['password'],
                       profile_image=profile_image)
    return jsonify({'message': 'User created successfully',
                    'token': create_access_token(user['id']), 'user': user}), 201


@auth_bp.route('/auth/login', methods=['POST'])
def login():
    data = get_payload()
    email = (data.get('email') or '').strip().lower()
    password = data.get('password') or ''
    if not email or not password:
        raise ValidationError([{'field': f, 'message': f'{f.capitalize()} is required'}
                               for f in ('email', 'password') if not data.get(f)])

    db = get_db()
    row = db.execute('SELECT * FROM users WHERE email = ?', (email,)).fetchone()
    if row is None or not verify_password(row['password_hash'], password):
        logger.info('login_failed', email=email)
        raise UnauthorizedError('Invalid email or password')
    if not row['is_active']:
        raise UnauthorizedError('Account is deactivated')

    now = utcnow()
    db.execute('UPDATE users SET last_login = ? WHERE id = ?', (now, row['id']))
    user = public_user(row)
    user['last_login'] = now
    return jsonify({'message': 'Login successful',
                    'token': create_access_token(row['id']), 'user': user})


@auth_bp.route('/auth/me', methods=['GET'])
@token_required
def me():
    return jsonify({'user': g.user})


@auth_bp.route('/auth/profile', methods=['PUT'])
@token_required
def update_profile():
    data = get_payload()
    validate_profile(data, require_all=False)

    changes = {}
    if data.get('name') is not None:
        changes['name'] = data['name'].strip()
    if data.get('bio') is not None:
        changes['bio'] = data['bio'].strip()
    image = save_image(request.files.get('profileImage'), 'profiles', 'profileImage')
    if image:
        changes['profile_image'] = image

    db = get_db()
    if changes:
        assignments = ', '.join(f'{col} = ?' for col in changes)
        with transaction(db):
            db.execute(f'UPDATE users SET {assignments} WHERE id = ?',
                       [*changes.values(), g.user['id']])
    user = public_user(db.execute(f'SELECT {PUBLIC_USER_FIELDS} FROM users WHERE id = ?',
                                  (g.user['id'],)).fetchone())
    return jsonify({'message': 'Profile updated successfully', 'user': user})


@auth_bp.route('/auth/logout', methods=['POST'])
@token_required
def logout():
    # Tokens are stateless; the client drops its copy.
    return jsonify({'message': 'Logout successful'})
