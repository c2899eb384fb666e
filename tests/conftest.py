"""
Test fixtures for the blog API.

Every test gets its own SQLite file under tmp_path, so tests never share
state and the concurrency tests can open extra connections to the same DB.
"""
import pytest

from app import create_app
from config import TestConfig
from database import connect, init_db, utcnow
from auth import create_access_token, hash_password


class FakeAI:
    """Stands in for AIService so no request leaves the test process."""

    def __init__(self, available=True):
        self.available = available
        self.calls = []

    def is_available(self):
        return self.available

    def summarize(self, text, max_length=300):
        self.calls.append(('summarize', text, max_length))
        return 'A short summary.'

    def generate(self, title, tone='informative', keywords=()):
        self.calls.append(('generate', title, tone, list(keywords)))
        return f'Generated body about {title}.'

    def meta_description(self, title, content):
        return f'Meta for {title}'

    def seo_titles(self, title, count=3):
        return [f'{title}: The Guide', f'Why {title} Matters'][:count]

    def reply(self, comment, post_title, tone='friendly'):
        self.calls.append(('reply', comment, post_title, tone))
        return f'Thanks for reading {post_title}!'


def insert_user(db, name='Author', email=None, role='user', is_active=True):
    email = email or f'{name.lower().replace(" ", ".")}@example.com'
    cur = db.execute(
        'INSERT INTO users (name, email, password_hash, role, is_active, created_at) '
        'VALUES (?, ?, ?, ?, ?, ?)',
        (name, email, hash_password('secret123'), role, int(is_active), utcnow()),
    )
    return cur.lastrowid


@pytest.fixture
def db_path(tmp_path):
    path = str(tmp_path / 'core.db')
    init_db(path)
    return path


@pytest.fixture
def db(db_path):
    conn = connect(db_path)
    yield conn
    conn.close()


@pytest.fixture
def author_id(db):
    return insert_user(db, 'Alice')


@pytest.fixture
def other_id(db):
    return insert_user(db, 'Bob')


@pytest.fixture
def app(tmp_path):
    app = create_app(
        TestConfig,
        DB_PATH=str(tmp_path / 'api.db'),
        UPLOAD_FOLDER=str(tmp_path / 'uploads'),
    )
    app.extensions['ai_service'] = FakeAI()
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    """Creates a user directly in the DB and returns (user_id, auth headers)."""
    def _make(name='Alice', role='user', is_active=True):
        with app.app_context():
            conn = connect(app.config['DB_PATH'])
            try:
                user_id = insert_user(conn, name, role=role, is_active=is_active)
            finally:
                conn.close()
            token = create_access_token(user_id)
        return user_id, {'Authorization': f'Bearer {token}'}
    return _make


@pytest.fixture
def alice(make_user):
    return make_user('Alice')


@pytest.fixture
def bob(make_user):
    return make_user('Bob')


@pytest.fixture
def admin(make_user):
    return make_user('Root', role='admin')


@pytest.fixture
def create_post(client, alice):
    """Creates a post through the API as Alice (by default) and returns its JSON."""
    def _create(headers=None, **fields):
        data = {
            'title': 'Hello World',
            'content': 'This is the body of the post.',
            'status': 'published',
        }
        data.update(fields)
        resp = client.post('/api/posts', json=data, headers=headers or alice[1])
        assert resp.status_code == 201, resp.get_json()
        return resp.get_json()['post']
    return _create
