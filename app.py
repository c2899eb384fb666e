import os

import structlog
from flask import Flask, jsonify, send_from_directory

import database
from ai_service import AIService
from config import Config
from errors import register_error_handlers
from logging_config import configure_logging
from routes.admin_bp import admin_bp
from routes.ai_bp import ai_bp
from routes.auth_bp import auth_bp
from routes.comments_bp import comments_bp
from routes.posts_bp import posts_bp
from routes.tags_bp import tags_bp
from routes.upload_bp import upload_bp

#Here the blueprints would be imported from other modules so they can be registered

logger = structlog.get_logger(__name__)


def create_app(config_class=Config, **overrides):
    app = Flask(__name__)# Creates the central application object and flask app is initialized.
    app.config.from_object(config_class)
    app.config.update(overrides)

    configure_logging(app.config['LOG_LEVEL'], app.config['JSON_LOGS'],
                      colors=not app.config['TESTING'])

    """ Here we are registering blueprints
    # We enroll blueprints in an effort of decoupling various functional areas of the application.
    All of them live under the '/api' url prefix that the browser client calls.
    """
    app.register_blueprint(auth_bp, url_prefix='/api')
    app.register_blueprint(posts_bp, url_prefix='/api')#Handles posting, reading and liking logic
    # AI writing helpers for the editor: drafts, titles, excerpts via Gemini API.
    app.register_blueprint(ai_bp, url_prefix='/api')
    app.register_blueprint(tags_bp, url_prefix='/api')
    app.register_blueprint(comments_bp, url_prefix='/api')
    app.register_blueprint(upload_bp, url_prefix='/api')
    app.register_blueprint(admin_bp, url_prefix='/api')#Dashboard and user management

    register_error_handlers(app)
    app.extensions['ai_service'] = AIService.from_config(app.config)

    """
    Over here database is initialized and it
    ensures the SQLite schema (users, posts, tags, comments) exists
    before the server starts accepting requests.
    """
    database.init_app(app)

    @app.route('/uploads/<path:filename>')
    def uploaded_file(filename):
        return send_from_directory(os.path.abspath(app.config['UPLOAD_FOLDER']), filename)

    @app.route('/api/health')
    def health():
        return jsonify({'status': 'OK', 'ai_available': app.extensions['ai_service'].is_available()})

    logger.info('app_created', env=app.config['ENV'], db=app.config['DB_PATH'])
    return app


if __name__ == '__main__':

    """ Over here server is started
    Debug mode follows FLASK_DEBUG; it should stay off in a production environment.
    """
    app = create_app()
    app.run(host="0.0.0.0", port=int(os.getenv('PORT', '5000')), debug=app.config['DEBUG'])
