from collections import Counter

from flask import Blueprint, current_app, g, jsonify, request

from auth import can_moderate, is_admin, token_required
from database import get_db, increment, transaction, utcnow
from errors import ForbiddenError, NotFoundError, ServiceUnavailableError, ValidationError
from http_utils import get_payload, int_arg, parse_bool
from post_queries import paginated
from text_utils import clean_text

comments_bp = Blueprint('comments', __name__)

COMMENT_MAX = 1000

COMMENT_QUERY = '''
    SELECT c.id, c.post_id, c.parent_id, c.content, c.like_count, c.is_approved,
           c.created_at, c.updated_at,
           u.id AS author_id, u.name AS author_name, u.profile_image AS author_image
    FROM comments c JOIN users u ON u.id = c.author_id
'''


def serialize(row):
    comment = dict(row)
    comment['is_approved'] = bool(comment['is_approved'])
    comment['author'] = {'id': comment.pop('author_id'), 'name': comment.pop('author_name'),
                         'profile_image': comment.pop('author_image')}
    return comment


def comment_content(data):
    content = data.get('content')
    if content is not None and not isinstance(content, str):
        raise ValidationError.single('content', 'content must be a string')
    content = clean_text((content or '').strip())
    if not 1 <= len(content) <= COMMENT_MAX:
        raise ValidationError.single('content', 'Comment must be between 1 and 1000 characters')
    return content


def get_comment(db, comment_id):
    row = db.execute(COMMENT_QUERY + ' WHERE c.id = ?', (comment_id,)).fetchone()
    if row is None:
        raise NotFoundError('Comment not found')
    return row


def published_post(db, post_id):
    post = db.execute('SELECT id, title, status FROM posts WHERE id = ?', (post_id,)).fetchone()
    if post is None or post['status'] != 'published':
        raise NotFoundError('Post not found')
    return post


def insert_comment(db, post_id, content, parent_id=None):
    """Adds a comment and bumps the post's comment_count. Call inside transaction()."""
    now = utcnow()
    cur = db.execute(
        'INSERT INTO comments (post_id, parent_id, author_id, content, created_at, updated_at) '
        'VALUES (?, ?, ?, ?, ?, ?)',
        (post_id, parent_id, g.user['id'], content, now, now),
    )
    increment(db, 'posts', 'comment_count', post_id, 1)
    return cur.lastrowid


def remove_comments(db, where, params=()):
    """
    Deletes the comments matching `where` together with their replies and
    takes them off each post's comment_count. Call inside transaction().
    Returns the number of rows removed.
    """
    rows = db.execute(
        f'SELECT id, post_id FROM comments WHERE {where} '
        f'OR parent_id IN (SELECT id FROM comments WHERE {where})',
        (*params, *params),
    ).fetchall()
    if not rows:
        return 0
    for post_id, removed in Counter(r['post_id'] for r in rows).items():
        increment(db, 'posts', 'comment_count', post_id, -removed)
    ids = [r['id'] for r in rows]
    db.execute(f"DELETE FROM comments WHERE id IN ({', '.join('?' * len(ids))})", ids)
    return len(ids)


@comments_bp.route('/comments/<int:post_id>', methods=['GET'])
def list_comments(post_id):
    """Approved top-level comments, newest first, each with its approved replies."""
    db = get_db()
    page = int_arg('page', 1)
    limit = int_arg('limit', 20, maximum=100)
    published_post(db, post_id)

    total = db.execute('SELECT COUNT(*) FROM comments '
                       'WHERE post_id = ? AND parent_id IS NULL AND is_approved = 1',
                       (post_id,)).fetchone()[0]
    rows = db.execute(
        COMMENT_QUERY + ' WHERE c.post_id = ? AND c.parent_id IS NULL AND c.is_approved = 1 '
                        'ORDER BY c.id DESC LIMIT ? OFFSET ?',
        (post_id, limit, (page - 1) * limit),
    ).fetchall()
    comments = [serialize(r) for r in rows]

    by_id = {c['id']: c for c in comments}
    for c in comments:
        c['replies'] = []
    if by_id:
        replies = db.execute(
            COMMENT_QUERY + f" WHERE c.parent_id IN ({', '.join('?' * len(by_id))}) "
                            "AND c.is_approved = 1 ORDER BY c.id ASC",
            list(by_id),
        ).fetchall()
        for r in replies:
            by_id[r['parent_id']]['replies'].append(serialize(r))

    return jsonify(paginated(comments, total, page, limit, key='comments'))


@comments_bp.route('/comments/<int:post_id>', methods=['POST'])
@token_required
def add_comment(post_id):
    content = comment_content(get_payload())
    db = get_db()
    with transaction(db):
        published_post(db, post_id)
        comment_id = insert_comment(db, post_id, content)

    return jsonify({'message': 'Comment added successfully',
                    'comment': serialize(get_comment(db, comment_id))}), 201


@comments_bp.route('/comments/<int:comment_id>/reply', methods=['POST'])
@token_required
def reply_to_comment(comment_id):
    """Replies are kept one level deep; answering a reply attaches to its parent."""
    content = comment_content(get_payload())
    db = get_db()
    with transaction(db):
        parent = get_comment(db, comment_id)
        published_post(db, parent['post_id'])
        reply_id = insert_comment(db, parent['post_id'], content,
                                  parent_id=parent['parent_id'] or parent['id'])

    return jsonify({'message': 'Reply added successfully',
                    'comment': serialize(get_comment(db, reply_id))}), 201


@comments_bp.route('/comments/<int:comment_id>', methods=['PUT'])
@token_required
def update_comment(comment_id):
    content = comment_content(get_payload())
    db = get_db()
    with transaction(db):
        row = get_comment(db, comment_id)
        if row['author_id'] != g.user['id']:
            raise ForbiddenError('You can only edit your own comments')
        db.execute('UPDATE comments SET content = ?, updated_at = ? WHERE id = ?',
                   (content, utcnow(), comment_id))
    return jsonify({'message': 'Comment updated successfully',
                    'comment': serialize(get_comment(db, comment_id))})


@comments_bp.route('/comments/<int:comment_id>', methods=['DELETE'])
@token_required
def delete_comment(comment_id):
    """Authors can remove their own comments, admins any comment. Replies go with it."""
    db = get_db()
    with transaction(db):
        row = get_comment(db, comment_id)
        if row['author_id'] != g.user['id'] and not is_admin(g.user):
            raise ForbiddenError('You can only delete your own comments')
        remove_comments(db, 'id = ?', (comment_id,))
    return jsonify({'message': 'Comment deleted successfully'})


@comments_bp.route('/comments/<int:comment_id>/approve', methods=['PUT'])
@token_required
def approve_comment(comment_id):
    """Hidden comments stay counted in comment_count; they only drop out of listings."""
    if not can_moderate(g.user):
        raise ForbiddenError('Moderator access required')
    data = get_payload()
    is_approved = parse_bool(data.get('isApproved', data.get('is_approved')))
    if is_approved is None:
        raise ValidationError.single('isApproved', 'isApproved must be a boolean')

    db = get_db()
    with transaction(db):
        get_comment(db, comment_id)
        db.execute('UPDATE comments SET is_approved = ?, updated_at = ? WHERE id = ?',
                   (int(is_approved), utcnow(), comment_id))
    return jsonify({'message': f"Comment {'approved' if is_approved else 'hidden'}",
                    'comment': serialize(get_comment(db, comment_id))})


@comments_bp.route('/comments/<int:comment_id>/like', methods=['POST'])
@token_required
def like_comment(comment_id):
    db = get_db()
    with transaction(db):
        get_comment(db, comment_id)
        increment(db, 'comments', 'like_count', comment_id, 1)
        like_count = db.execute('SELECT like_count FROM comments WHERE id = ?',
                                (comment_id,)).fetchone()[0]
    return jsonify({'message': 'Comment liked successfully', 'like_count': like_count})


@comments_bp.route('/comments/<int:comment_id>/generate-ai-reply', methods=['POST'])
@token_required
def generate_ai_reply(comment_id):
    """Drafts a reply for the post's author; nothing is saved."""
    db = get_db()
    comment = get_comment(db, comment_id)
    post = db.execute('SELECT title, author_id FROM posts WHERE id = ?',
                      (comment['post_id'],)).fetchone()
    if post['author_id'] != g.user['id'] and not is_admin(g.user):
        raise ForbiddenError('Only the post author can draft replies')

    tone = (request.get_json(silent=True) or {}).get('tone') or 'friendly'
    if not isinstance(tone, str):
        raise ValidationError.single('tone', 'tone must be a string')

    ai = current_app.extensions['ai_service']
    if not ai.is_available():
        raise ServiceUnavailableError()
    reply = ai.reply(comment['content'], post['title'], tone.strip())
    return jsonify({'message': 'Reply generated successfully', 'generated_reply': reply})
