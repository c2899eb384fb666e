"""
Error taxonomy for the blog API and the JSON handlers that turn each
error into its HTTP status.

Request handlers raise these; nothing in the core catches them to log and
carry on.
"""
import sqlite3

import structlog
from flask import jsonify
from werkzeug.exceptions import HTTPException

logger = structlog.get_logger(__name__)


class BlogError(Exception):
    status_code = 500
    message = 'Internal server error'

    def __init__(self, message=None):
        super().__init__(message or self.message)
        self.message = message or self.message

    def to_dict(self):
        return {'message': self.message}


class ValidationError(BlogError):
    """Malformed or out-of-range input, reported per field."""
    status_code = 400
    message = 'Validation failed'

    def __init__(self, errors, message=None):
        super().__init__(message)
        # list of {"field": ..., "message": ...}
        self.errors = list(errors)

    @classmethod
    def single(cls, field, message):
        return cls([{'field': field, 'message': message}])

    def to_dict(self):
        return {'message': self.message, 'errors': self.errors}


class UnauthorizedError(BlogError):
    status_code = 401
    message = 'Authentication required'


class ForbiddenError(BlogError):
    status_code = 403
    message = 'Access denied'


class NotFoundError(BlogError):
    status_code = 404
    message = 'Not found'


class ConflictError(BlogError):
    status_code = 409
    message = 'Resource already exists'


class StoreUnavailableError(BlogError):
    """The database could not be reached or timed out. Callers may retry."""
    status_code = 503
    message = 'Database unavailable, please retry'


class ServiceUnavailableError(BlogError):
    """The AI collaborator is not configured or did not answer."""
    status_code = 503
    message = 'AI service is not available at the moment'


def register_error_handlers(app):

    @app.errorhandler(BlogError)
    def handle_blog_error(error):
        if isinstance(error, StoreUnavailableError):
            logger.error('store_unavailable', error=str(error.__cause__ or error))
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(sqlite3.OperationalError)
    def handle_operational_error(error):
        logger.error('store_unavailable', error=str(error))
        return jsonify(StoreUnavailableError().to_dict()), StoreUnavailableError.status_code

    @app.errorhandler(404)
    def handle_not_found(error):
        return jsonify({'message': 'Route not found'}), 404

    @app.errorhandler(405)
    def handle_method_not_allowed(error):
        return jsonify({'message': 'Method not allowed'}), 405

    @app.errorhandler(413)
    def handle_too_large(error):
        return jsonify({'message': 'File too large'}), 413

    @app.errorhandler(Exception)
    def handle_unexpected(error):
        if isinstance(error, HTTPException):
            return jsonify({'message': error.description}), error.code
        logger.exception('unhandled_error', error=str(error))
        body = {'message': 'Something went wrong', 'error': 'Internal server error'}
        # Internal detail is only shown outside production
        if app.config.get('DEBUG') or app.config.get('ENV') != 'production':
            body['error'] = str(error)
        return jsonify(body), 500
