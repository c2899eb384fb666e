from flask import Blueprint, current_app, jsonify, request

from auth import token_required
from errors import ServiceUnavailableError, ValidationError

"""
-----------------------Over here in this file all the AI writing helpers for the
post editor are exposed. The heavy lifting lives in ai_service.AIService.

"""

ai_bp = Blueprint('ai', __name__)#Blueprint registered here to be registered in app.py


def _ai():
    """Returns the configured AIService or raises 503 when no API key is set."""
    ai = current_app.extensions['ai_service']
    if not ai.is_available():
        raise ServiceUnavailableError()
    return ai


def _body():
    return request.get_json(silent=True) or {}


def _require_text(data, field, minimum, message):
    value = data.get(field)
    if value is not None and not isinstance(value, str):
        raise ValidationError.single(field, f'{field} must be a string')
    value = (value or '').strip()
    if len(value) < minimum:
        raise ValidationError.single(field, message)
    return value


@ai_bp.route('/posts/generate-ai', methods=['POST'])
@token_required
def generate_post():
    data = _body()
    title = _require_text(data, 'title', 3,
                          'Title is required and must be between 3-200 characters')
    if len(title) > 200:
        raise ValidationError.single('title', 'Title is required and must be between 3-200 characters')
    keywords = data.get('keywords') or []
    if not isinstance(keywords, list):
        raise ValidationError.single('keywords', 'Keywords must be a list')
    tone = _require_text(data, 'tone', 0, 'Tone must be text') or 'informative'

    ai = _ai()
    content = ai.generate(title, tone, [str(k) for k in keywords])
    # Generate meta description
    seo_description = ai.meta_description(title, content)

    return jsonify({
        'message': 'Blog post generated successfully',
        'generated_content': {
            'title': title,
            'content': content,
            'seo_description': seo_description,
        },
    })


@ai_bp.route('/posts/generate-content', methods=['POST'])
@token_required
def generate_content():
    prompt = _require_text(_body(), 'prompt', 3, 'Prompt is required')
    content = _ai().generate(prompt, 'informative', [])
    return jsonify({'message': 'Content generated successfully', 'data': {'content': content}})


@ai_bp.route('/posts/improve-title', methods=['POST'])
@token_required
def improve_title():
    title = _require_text(_body(), 'title', 3, 'Title is required')
    alternatives = _ai().seo_titles(title, 3)
    # Return the first improved title as the main suggestion
    improved = alternatives[0] if alternatives else title
    return jsonify({'message': 'Title improved successfully',
                    'data': {'title': improved, 'alternatives': alternatives}})


@ai_bp.route('/posts/generate-excerpt', methods=['POST'])
@token_required
def generate_excerpt():
    content = _require_text(_body(), 'content', 10, 'Content is required')
    excerpt = _ai().summarize(content, 200)
    return jsonify({'message': 'Excerpt generated successfully', 'data': {'excerpt': excerpt}})


@ai_bp.route('/posts/ai-status', methods=['GET'])
def ai_status():
    available = current_app.extensions['ai_service'].is_available()
    return jsonify({
        'ai_service': {
            'available': available,
            'status': 'ready' if available else 'unavailable',
            'message': 'AI service is ready' if available else 'AI service is not configured',
        }
    })
