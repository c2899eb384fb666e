import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone

from flask import current_app, g

from errors import StoreUnavailableError


SCHEMA = [
    # 1. USERS TABLE
    # Authors, readers and admins. Email is stored lower-cased.
    '''CREATE TABLE IF NOT EXISTS users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        email TEXT NOT NULL UNIQUE,
        password_hash TEXT NOT NULL,
        role TEXT NOT NULL DEFAULT 'user',
        bio TEXT DEFAULT '',
        profile_image TEXT DEFAULT '',
        is_active INTEGER NOT NULL DEFAULT 1,
        created_at TEXT NOT NULL,
        last_login TEXT
    )''',

    # 2. POSTS TABLE
    # Counters are only ever changed with "col = col + ?" updates.
    '''CREATE TABLE IF NOT EXISTS posts (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        title TEXT NOT NULL,
        slug TEXT NOT NULL UNIQUE,
        content TEXT NOT NULL,
        excerpt TEXT DEFAULT '',
        cover_image TEXT DEFAULT '',
        status TEXT NOT NULL DEFAULT 'draft' CHECK (status IN ('draft', 'published')),
        featured INTEGER NOT NULL DEFAULT 0,
        seo_title TEXT DEFAULT '',
        seo_description TEXT DEFAULT '',
        view_count INTEGER NOT NULL DEFAULT 0 CHECK (view_count >= 0),
        like_count INTEGER NOT NULL DEFAULT 0 CHECK (like_count >= 0),
        comment_count INTEGER NOT NULL DEFAULT 0 CHECK (comment_count >= 0),
        reading_time INTEGER NOT NULL DEFAULT 1,
        author_id INTEGER NOT NULL REFERENCES users(id),
        published_at TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )''',

    # 3. TAGS TABLE
    # post_count mirrors the number of post_tags rows pointing at the tag.
    '''CREATE TABLE IF NOT EXISTS tags (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL UNIQUE,
        slug TEXT NOT NULL UNIQUE,
        color TEXT NOT NULL DEFAULT '#6366f1',
        post_count INTEGER NOT NULL DEFAULT 0 CHECK (post_count >= 0),
        created_at TEXT NOT NULL
    )''',

    # 4. POST <-> TAG MEMBERSHIP
    '''CREATE TABLE IF NOT EXISTS post_tags (
        post_id INTEGER NOT NULL REFERENCES posts(id) ON DELETE CASCADE,
        tag_id INTEGER NOT NULL REFERENCES tags(id),
        PRIMARY KEY (post_id, tag_id)
    )''',

    # 5. COMMENTS TABLE
    '''CREATE TABLE IF NOT EXISTS comments (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        post_id INTEGER NOT NULL REFERENCES posts(id) ON DELETE CASCADE,
        parent_id INTEGER REFERENCES comments(id) ON DELETE CASCADE,
        author_id INTEGER NOT NULL REFERENCES users(id),
        content TEXT NOT NULL,
        like_count INTEGER NOT NULL DEFAULT 0 CHECK (like_count >= 0),
        is_approved INTEGER NOT NULL DEFAULT 1,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )''',

    'CREATE INDEX IF NOT EXISTS idx_posts_status_published ON posts (status, published_at)',
    'CREATE INDEX IF NOT EXISTS idx_post_tags_tag ON post_tags (tag_id)',
    'CREATE INDEX IF NOT EXISTS idx_comments_post ON comments (post_id)',
    'CREATE INDEX IF NOT EXISTS idx_comments_parent ON comments (parent_id)',
]

# Columns that may be moved with increment(); keeps table/column names out of
# caller-controlled input.
COUNTERS = {
    'posts': {'view_count', 'like_count', 'comment_count'},
    'tags': {'post_count'},
    'comments': {'like_count'},
}


def utcnow():
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def connect(path, timeout=30):
    """
    Opens a connection in autocommit mode. Writes are grouped explicitly
    with transaction() so the write lock is taken up front.
    """
    try:
        conn = sqlite3.connect(path, timeout=timeout, check_same_thread=False,
                               isolation_level=None)
        conn.row_factory = sqlite3.Row
        conn.execute('PRAGMA foreign_keys = ON')
    except sqlite3.Error as e:
        raise StoreUnavailableError() from e
    return conn


def get_db():
    """
    Opens a new database connection if there is none yet for the
    current application context.
    """
    if 'db' not in g:
        g.db = connect(current_app.config['DB_PATH'], current_app.config['DB_TIMEOUT'])
    return g.db


def close_db(exception=None):
    db = g.pop('db', None)
    if db is not None:
        db.close()


@contextmanager
def transaction(db):
    """
    BEGIN IMMEDIATE ... COMMIT around the block, rolled back on any error.
    Nested use joins the outer transaction.
    """
    if db.in_transaction:
        yield db
        return
    try:
        db.execute('BEGIN IMMEDIATE')
    except sqlite3.OperationalError as e:
        raise StoreUnavailableError() from e
    try:
        yield db
    except sqlite3.OperationalError as e:
        db.rollback()
        raise StoreUnavailableError() from e
    except BaseException:
        db.rollback()
        raise
    else:
        db.commit()


def increment(db, table, column, row_id, delta=1):
    """
    Atomic delta on one counter. Never drops below zero.
    Returns the number of rows touched (0 if row_id does not exist).
    """
    if column not in COUNTERS.get(table, ()):
        raise ValueError(f"{table}.{column} is not a counter")
    cur = db.execute(
        f'UPDATE {table} SET {column} = MAX(0, {column} + ?) WHERE id = ?',
        (delta, row_id),
    )
    return cur.rowcount


def init_db(path, timeout=30):
    """
    Initializes the database with the required schema.
    Safe to run on every startup.
    """
    conn = connect(path, timeout)
    try:
        for statement in SCHEMA:
            conn.execute(statement)
    finally:
        conn.close()


def init_app(app):
    app.teardown_appcontext(close_db)
    init_db(app.config['DB_PATH'], app.config['DB_TIMEOUT'])
