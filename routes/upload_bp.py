from flask import Blueprint, g, jsonify, request

from auth import token_required
from database import get_db
from errors import ValidationError
from uploads import allowed_file, save_image

upload_bp = Blueprint('upload', __name__)

MAX_IMAGES = 10


def _required_image(field, kind):
    path = save_image(request.files.get(field), kind, field)
    if path is None:
        raise ValidationError.single(field, 'No file uploaded')
    return path


@upload_bp.route('/upload/post-cover', methods=['POST'])
@token_required
def upload_post_cover():
    """Stores a cover image; the returned path is sent back with the post form."""
    path = _required_image('coverImage', 'posts')
    return jsonify({'message': 'Cover image uploaded successfully', 'url': path}), 201


@upload_bp.route('/upload/profile', methods=['POST'])
@token_required
def upload_profile_image():
    path = _required_image('profileImage', 'profiles')
    db = get_db()
    db.execute('UPDATE users SET profile_image = ? WHERE id = ?', (path, g.user['id']))
    return jsonify({'message': 'Profile image uploaded successfully', 'url': path}), 201


@upload_bp.route('/upload/multiple', methods=['POST'])
@token_required
def upload_multiple_images():
    """Inline images for the editor. Every file is checked before any is stored."""
    files = [f for f in request.files.getlist('images') if f.filename]
    if not files:
        raise ValidationError.single('images', 'No files uploaded')
    if len(files) > MAX_IMAGES:
        raise ValidationError.single('images', f'At most {MAX_IMAGES} images per upload')
    if not all(allowed_file(f.filename) for f in files):
        raise ValidationError.single('images', 'Invalid file type (Images only)')

    urls = [save_image(f, 'posts', 'images') for f in files]
    return jsonify({'message': 'Images uploaded successfully', 'urls': urls}), 201
