from flask import Blueprint, current_app, g, jsonify, request

from auth import is_admin, optional_auth, token_required
from database import get_db
from errors import NotFoundError, ServiceUnavailableError, ValidationError
from http_utils import get_payload, int_arg, parse_bool
from post_manager import PostManager
from post_queries import expand_post, find_post, list_posts, recent_posts, SORT_OPTIONS
from uploads import save_image

posts_bp = Blueprint('posts', __name__)


# --- HELPER FUNCTIONS ---

def post_fields(data):
    """
    Maps the client's field names onto PostManager keyword arguments.
    Values are passed through as sent; PostManager rejects wrong types.
    """
    return {
        'title': data.get('title'),
        'content': data.get('content'),
        'excerpt': data.get('excerpt'),
        'tags': data.get('tags'),
        'status': data.get('status') or None,
        'seo_title': data.get('seoTitle', data.get('seo_title')),
        'seo_description': data.get('seoDescription', data.get('seo_description')),
        'featured': parse_bool(data.get('featured')),
        # Path returned earlier by /upload/post-cover; an empty value keeps the current one
        'cover_image': data.get('coverImage', data.get('cover_image')) or None,
    }


def attach_cover(fields):
    """A file uploaded with the form wins over a cover path string."""
    uploaded = save_image(request.files.get('coverImage'), 'posts', 'coverImage')
    if uploaded:
        fields['cover_image'] = uploaded
    return fields


# --- MAIN POST ROUTES ---

@posts_bp.route('/posts', methods=['GET'])
@optional_auth
def get_posts():
    """Published feed with tag filter, search and sort."""
    sort = request.args.get('sort', 'newest')
    if sort not in SORT_OPTIONS:
        raise ValidationError.single('sort', 'Invalid sort option')
    result = list_posts(
        get_db(),
        page=int_arg('page', 1),
        limit=int_arg('limit', 10, maximum=50),
        tag=(request.args.get('tag') or '').strip() or None,
        search=(request.args.get('search') or '').strip() or None,
        sort=sort,
    )
    return jsonify(result)


@posts_bp.route('/posts/recent', methods=['GET'])
def get_recent_posts():
    return jsonify({'posts': recent_posts(get_db(), limit=int_arg('limit', 5, maximum=50))})


@posts_bp.route('/posts/<post_ref>', methods=['GET'])
@optional_auth
def get_post(post_ref):
    """Single post by id or slug. Drafts are only visible to their author and admins."""
    db = get_db()
    row = find_post(db, post_ref)

    if row['status'] != 'published':
        user = g.user
        if not (is_admin(user) or (user and user['id'] == row['author_id'])):
            raise NotFoundError('Post not found')
        return jsonify({'post': expand_post(db, row, include_email=True)})

    PostManager(db).record_view(row['id'])
    return jsonify({'post': expand_post(db, find_post(db, row['id']), include_email=True)})


@posts_bp.route('/posts', methods=['POST'])
@token_required
def create_post():
    fields = post_fields(get_payload())
    attach_cover(fields)
    fields['featured'] = bool(fields['featured'])

    post = PostManager(get_db()).create(g.user['id'], **fields)
    return jsonify({'message': 'Post created successfully', 'post': post}), 201


@posts_bp.route('/posts/<int:post_id>', methods=['PUT'])
@token_required
def update_post(post_id):
    fields = post_fields(get_payload())
    attach_cover(fields)

    post = PostManager(get_db()).update(post_id, g.user['id'], **fields)
    return jsonify({'message': 'Post updated successfully', 'post': post})


@posts_bp.route('/posts/<int:post_id>', methods=['DELETE'])
@token_required
def delete_post(post_id):
    PostManager(get_db()).delete(post_id, g.user['id'])
    return jsonify({'message': 'Post deleted successfully'})


# --- ENGAGEMENT ---

@posts_bp.route('/posts/<int:post_id>/like', methods=['POST'])
@token_required
def like_post(post_id):
    """Every call counts; likes are not tracked per user."""
    like_count = PostManager(get_db()).like(post_id)
    return jsonify({'message': 'Post liked successfully', 'like_count': like_count})


@posts_bp.route('/posts/<int:post_id>/summarize', methods=['POST'])
@optional_auth
def summarize_post(post_id):
    row = find_post(get_db(), post_id)
    if row['status'] != 'published':
        raise NotFoundError('Post not found')

    ai = current_app.extensions['ai_service']
    if not ai.is_available():
        raise ServiceUnavailableError()
    summary = ai.summarize(row['content'])
    return jsonify({'message': 'Summary generated successfully', 'summary': summary})
