from flask import Blueprint, jsonify, request

from database import get_db
from errors import ValidationError
from http_utils import int_arg
from tag_ledger import TagLedger

tags_bp = Blueprint('tags', __name__)


@tags_bp.route('/tags', methods=['GET'])
def get_tags():
    """All tags, most used first (or alphabetical with ?sort=name)."""
    sort = request.args.get('sort', 'popular')
    if sort not in ('popular', 'name'):
        raise ValidationError.single('sort', 'Sort must be popular or name')
    limit = int_arg('limit', None, maximum=200)
    return jsonify({'tags': TagLedger(get_db()).list_tags(sort=sort, limit=limit)})


@tags_bp.route('/tags/<slug>', methods=['GET'])
def get_tag(slug):
    return jsonify({'tag': TagLedger(get_db()).get_by_slug(slug)})
