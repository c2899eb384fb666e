import structlog
from flask import Blueprint, g, jsonify, request

from auth import ROLES, admin_required, public_user, PUBLIC_USER_FIELDS
from database import get_db, transaction
from errors import ForbiddenError, NotFoundError, ValidationError
from http_utils import int_arg, parse_bool
from post_manager import PostManager
from post_queries import LIST_COLUMNS, expand_post, expand_posts, paginated
from routes.auth_bp import create_user, validate_profile
from routes.comments_bp import remove_comments, serialize

admin_bp = Blueprint('admin', __name__)
logger = structlog.get_logger(__name__)

BULK_ACTIONS = ('activate', 'deactivate', 'delete')


# --- STATS & METRICS ---

@admin_bp.route('/admin/dashboard-metrics')
@admin_required
def get_dashboard_metrics():
    db = get_db()
    posts = db.execute('''
        SELECT COUNT(*) AS total,
               COALESCE(SUM(status = 'published'), 0) AS published,
               COALESCE(SUM(status = 'draft'), 0) AS drafts,
               COALESCE(SUM(view_count), 0) AS views,
               COALESCE(SUM(like_count), 0) AS likes
        FROM posts
    ''').fetchone()
    stats = {
        "total_posts": posts['total'],
        "published_posts": posts['published'],
        "draft_posts": posts['drafts'],
        "total_views": posts['views'],
        "total_likes": posts['likes'],
        "total_comments": db.execute('SELECT COUNT(*) FROM comments').fetchone()[0],
        "total_users": db.execute('SELECT COUNT(*) FROM users').fetchone()[0],
        "active_users": db.execute('SELECT COUNT(*) FROM users WHERE is_active = 1').fetchone()[0],
        "total_tags": db.execute('SELECT COUNT(*) FROM tags').fetchone()[0],
    }
    return jsonify(stats)


@admin_bp.route('/admin/tag-insights')
@admin_required
def get_tag_insights():
    """Tag usage with the views/likes their published posts collected."""
    db = get_db()
    rows = db.execute('''
        SELECT t.id, t.name, t.slug, t.color, t.post_count,
               COALESCE(SUM(p.view_count), 0) AS total_views,
               COALESCE(SUM(p.like_count), 0) AS total_likes
        FROM tags t
        LEFT JOIN post_tags pt ON pt.tag_id = t.id
        LEFT JOIN posts p ON p.id = pt.post_id AND p.status = 'published'
        GROUP BY t.id
        ORDER BY t.post_count DESC, t.name ASC
        LIMIT 20
    ''').fetchall()
    unused = db.execute('SELECT COUNT(*) FROM tags WHERE post_count = 0').fetchone()[0]
    return jsonify({'tags': [dict(r) for r in rows], 'unused_tags': unused})


# --- DATA FETCHING ROUTES ---

@admin_bp.route('/admin/top-posts')
@admin_required
def get_top_posts():
    sort = request.args.get('sort', 'views')
    order = {'views': 'p.view_count', 'likes': 'p.like_count',
             'comments': 'p.comment_count'}.get(sort)
    if order is None:
        raise ValidationError.single('sort', 'Sort must be views, likes or comments')
    db = get_db()
    rows = db.execute(
        f"SELECT {LIST_COLUMNS} FROM posts p WHERE p.status = 'published' "
        f"ORDER BY {order} DESC, p.id DESC LIMIT ?",
        (int_arg('limit', 10, maximum=50),),
    ).fetchall()
    return jsonify({'posts': expand_posts(db, rows)})


@admin_bp.route('/admin/recent-comments')
@admin_required
def get_recent_comments():
    db = get_db()
    rows = db.execute('''
        SELECT c.id, c.content, c.created_at, c.is_approved,
               u.name AS author_name, p.id AS post_id, p.title AS post_title
        FROM comments c
        JOIN users u ON u.id = c.author_id
        JOIN posts p ON p.id = c.post_id
        ORDER BY c.id DESC LIMIT ?
    ''', (int_arg('limit', 10, maximum=50),)).fetchall()
    return jsonify({'comments': [dict(r) for r in rows]})


@admin_bp.route('/admin/posts')
@admin_required
def get_all_posts():
    """Every post regardless of status, for general management."""
    status = request.args.get('status', 'all')
    if status not in ('all', 'draft', 'published'):
        raise ValidationError.single('status', 'Status must be all, draft or published')
    page = int_arg('page', 1)
    limit = int_arg('limit', 10, maximum=100)

    where, params = '', []
    if status != 'all':
        where, params = 'WHERE p.status = ?', [status]

    db = get_db()
    total = db.execute(f'SELECT COUNT(*) FROM posts p {where}', params).fetchone()[0]
    rows = db.execute(
        f'SELECT {LIST_COLUMNS} FROM posts p {where} ORDER BY p.id DESC LIMIT ? OFFSET ?',
        params + [limit, (page - 1) * limit],
    ).fetchall()
    return jsonify(paginated(expand_posts(db, rows, include_email=True), total, page, limit))


@admin_bp.route('/admin/posts/<int:post_id>')
@admin_required
def get_post_detail(post_id):
    """Any status, author email included; no view is counted."""
    db = get_db()
    row = db.execute('SELECT * FROM posts WHERE id = ?', (post_id,)).fetchone()
    if row is None:
        raise NotFoundError('Post not found')
    return jsonify({'post': expand_post(db, row, include_email=True)})


@admin_bp.route('/admin/comments')
@admin_required
def get_all_comments():
    """Every comment including hidden ones; ?approved=true|false filters."""
    approved = parse_bool(request.args.get('approved'))
    where, params = '', []
    if approved is not None:
        where, params = 'WHERE c.is_approved = ?', [int(approved)]
    page = int_arg('page', 1)
    limit = int_arg('limit', 20, maximum=100)

    db = get_db()
    total = db.execute(f'SELECT COUNT(*) FROM comments c {where}', params).fetchone()[0]
    rows = db.execute(
        f'SELECT c.id, c.post_id, c.parent_id, c.content, c.like_count, c.is_approved, '
        f'c.created_at, c.updated_at, p.title AS post_title, '
        f'u.id AS author_id, u.name AS author_name, u.profile_image AS author_image '
        f'FROM comments c JOIN users u ON u.id = c.author_id JOIN posts p ON p.id = c.post_id '
        f'{where} ORDER BY c.id DESC LIMIT ? OFFSET ?',
        params + [limit, (page - 1) * limit],
    ).fetchall()
    return jsonify(paginated([serialize(r) for r in rows], total, page, limit, key='comments'))


@admin_bp.route('/admin/users')
@admin_required
def get_users():
    role = request.args.get('role', 'all')
    if role != 'all' and role not in ROLES:
        raise ValidationError.single('role', 'Invalid role')
    page = int_arg('page', 1)
    limit = int_arg('limit', 20, maximum=100)

    where, params = '', []
    if role != 'all':
        where, params = 'WHERE role = ?', [role]

    db = get_db()
    total = db.execute(f'SELECT COUNT(*) FROM users {where}', params).fetchone()[0]
    rows = db.execute(
        f'SELECT {PUBLIC_USER_FIELDS}, '
        f'(SELECT COUNT(*) FROM posts WHERE author_id = users.id) AS post_count '
        f'FROM users {where} ORDER BY id DESC LIMIT ? OFFSET ?',
        params + [limit, (page - 1) * limit],
    ).fetchall()
    return jsonify(paginated([public_user(r) for r in rows], total, page, limit, key='users'))


# --- ACTION ROUTES ---

def _target_user(db, user_id):
    row = db.execute(f'SELECT {PUBLIC_USER_FIELDS} FROM users WHERE id = ?',
                     (user_id,)).fetchone()
    if row is None:
        raise NotFoundError('User not found')
    if row['id'] == g.user['id']:
        raise ForbiddenError('You cannot change your own account here')
    if row['role'] == 'super_admin' and g.user['role'] != 'super_admin':
        raise ForbiddenError('Only a super admin can modify another super admin')
    return row


@admin_bp.route('/admin/users/<int:user_id>/status', methods=['PUT'])
@admin_required
def set_user_status(user_id):
    data = request.get_json(silent=True) or {}
    is_active = parse_bool(data.get('isActive', data.get('is_active')))
    if is_active is None:
        raise ValidationError.single('isActive', 'isActive must be a boolean')

    db = get_db()
    with transaction(db):
        _target_user(db, user_id)
        db.execute('UPDATE users SET is_active = ? WHERE id = ?', (int(is_active), user_id))
    return jsonify({"message": f"User {'activated' if is_active else 'deactivated'}",
                    "user": public_user(db.execute(f'SELECT {PUBLIC_USER_FIELDS} FROM users '
                                                   'WHERE id = ?', (user_id,)).fetchone())})


@admin_bp.route('/admin/users/<int:user_id>/role', methods=['PUT'])
@admin_required
def set_user_role(user_id):
    data = request.get_json(silent=True) or {}
    role = data.get('role')
    if role not in ('user', 'moderator', 'admin'):
        raise ValidationError.single('role', 'Role must be user, moderator or admin')

    db = get_db()
    with transaction(db):
        _target_user(db, user_id)
        db.execute('UPDATE users SET role = ? WHERE id = ?', (role, user_id))
    return jsonify({"message": "User role updated",
                    "user": public_user(db.execute(f'SELECT {PUBLIC_USER_FIELDS} FROM users '
                                                   'WHERE id = ?', (user_id,)).fetchone())})


@admin_bp.route('/admin/users', methods=['POST'])
@admin_required
def create_user_account():
    """Accounts made here skip signup and may start as moderator or admin."""
    data = request.get_json(silent=True) or {}
    validate_profile(data)
    role = data.get('role') or 'user'
    if role not in ('user', 'moderator', 'admin'):
        raise ValidationError.single('role', 'Role must be user, moderator or admin')
    user = create_user(get_db(), data['name'], data['email'], data['password'], role=role)
    return jsonify({"message": "User created successfully", "user": user}), 201


def _delete_account(db, user_id):
    """Removes the user's posts (releasing their tags), comments, then the user."""
    manager = PostManager(db)
    for row in db.execute('SELECT id FROM posts WHERE author_id = ?', (user_id,)).fetchall():
        manager.delete(row['id'], user_id)
    removed = remove_comments(db, 'author_id = ?', (user_id,))
    db.execute('DELETE FROM users WHERE id = ?', (user_id,))
    logger.info('user_deleted', user_id=user_id, by=g.user['id'], comments=removed)


@admin_bp.route('/admin/users/<int:user_id>', methods=['DELETE'])
@admin_required
def delete_user(user_id):
    db = get_db()
    with transaction(db):
        _target_user(db, user_id)
        _delete_account(db, user_id)
    return jsonify({"message": "User deleted successfully"})


@admin_bp.route('/admin/users/bulk-action', methods=['POST'])
@admin_required
def bulk_user_action():
    """All-or-nothing: one refused user cancels the whole batch."""
    data = request.get_json(silent=True) or {}
    action = data.get('action')
    if action not in BULK_ACTIONS:
        raise ValidationError.single('action', 'Action must be activate, deactivate or delete')
    user_ids = data.get('userIds', data.get('user_ids'))
    if (not isinstance(user_ids, list) or not user_ids
            or not all(isinstance(i, int) and not isinstance(i, bool) for i in user_ids)):
        raise ValidationError.single('userIds', 'userIds must be a non-empty list of ids')

    db = get_db()
    user_ids = list(dict.fromkeys(user_ids))
    with transaction(db):
        for user_id in user_ids:
            _target_user(db, user_id)
        for user_id in user_ids:
            if action == 'delete':
                _delete_account(db, user_id)
            else:
                db.execute('UPDATE users SET is_active = ? WHERE id = ?',
                           (int(action == 'activate'), user_id))
    return jsonify({"message": f"Bulk {action} completed", "affected": len(user_ids)})
