import os
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name, default=False):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


#Over here all the configurations are added within this class
class Config:
    ENV = os.getenv('FLASK_ENV', 'production')
    DEBUG = _env_bool('FLASK_DEBUG')
    TESTING = False

    SECRET_KEY = os.getenv('SECRET_KEY', 'change-me')
    JWT_SECRET = os.getenv('JWT_SECRET', SECRET_KEY)
    JWT_ALGORITHM = 'HS256'
    JWT_EXPIRE_DAYS = int(os.getenv('JWT_EXPIRE_DAYS', '7'))

    DB_PATH = os.getenv('DB_PATH', 'blog.db')
    # Seconds sqlite waits on a locked database before giving up
    DB_TIMEOUT = float(os.getenv('DB_TIMEOUT', '30'))

    UPLOAD_FOLDER = os.getenv('UPLOAD_FOLDER', 'uploads')
    MAX_CONTENT_LENGTH = 5 * 1024 * 1024
    ALLOWED_EXTENSIONS = {'png', 'jpg', 'jpeg', 'gif', 'webp'}

    GEMINI_API_KEY = os.getenv('GEMINI_API_KEY')
    GEMINI_MODEL = os.getenv('GEMINI_MODEL', 'gemini-1.5-flash')

    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
    JSON_LOGS = _env_bool('JSON_LOGS', ENV == 'production')


class TestConfig(Config):
    ENV = 'testing'
    TESTING = True
    SECRET_KEY = 'test-secret'
    JWT_SECRET = 'test-secret'
    DB_PATH = 'test-blog.db'
    UPLOAD_FOLDER = 'test-uploads'
    GEMINI_API_KEY = None
    JSON_LOGS = False
