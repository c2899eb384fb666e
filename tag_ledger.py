"""
Tag Ledger: turns free-text tag names into tag ids and keeps every
tag's post_count equal to the number of posts that reference it.

This is the only module that writes tags.post_count. Each change is an
atomic ``post_count = post_count + ?`` update scoped to a single tag, so two
posts gaining or losing the same tag at the same time never lose an update.
"""
import sqlite3

import structlog

from database import increment, transaction, utcnow
from errors import NotFoundError
from text_utils import slugify, unique_slug

logger = structlog.get_logger(__name__)

DEFAULT_COLOR = '#6366f1'


def normalize_names(names):
    """
    Accepts a list of names or a comma separated string.
    Returns the trimmed, lower-cased, de-duplicated names in input order.
    """
    if names is None:
        return []
    if isinstance(names, str):
        names = names.split(',')
    seen = []
    for name in names:
        name = (name or '').strip().lower()
        if name and name not in seen:
            seen.append(name)
    return seen


class TagLedger:

    def __init__(self, db):
        self.db = db

    def resolve_tags(self, names):
        """Returns the set of tag ids for names, creating missing tags with post_count 0."""
        tag_ids = set()
        with transaction(self.db):
            for name in normalize_names(names):
                tag_ids.add(self._get_or_create(name))
        return tag_ids

    def _get_or_create(self, name):
        row = self.db.execute('SELECT id FROM tags WHERE name = ?', (name,)).fetchone()
        if row is not None:
            return row['id']
        slug = unique_slug(self.db, 'tags', slugify(name))
        try:
            cur = self.db.execute(
                'INSERT INTO tags (name, slug, color, post_count, created_at) VALUES (?, ?, ?, 0, ?)',
                (name, slug, DEFAULT_COLOR, utcnow()),
            )
        except sqlite3.IntegrityError:
            # Another writer created it between our lookup and insert
            row = self.db.execute('SELECT id FROM tags WHERE name = ?', (name,)).fetchone()
            if row is None:
                raise
            return row['id']
        logger.info('tag_created', tag=name, slug=slug)
        return cur.lastrowid

    def apply_membership_change(self, old_tag_ids, new_tag_ids):
        old_tag_ids = set(old_tag_ids or ())
        new_tag_ids = set(new_tag_ids or ())
        removed = old_tag_ids - new_tag_ids
        added = new_tag_ids - old_tag_ids
        if not removed and not added:
            return
        with transaction(self.db):
            for tag_id in sorted(removed):
                increment(self.db, 'tags', 'post_count', tag_id, -1)
            for tag_id in sorted(added):
                increment(self.db, 'tags', 'post_count', tag_id, 1)
        logger.debug('tag_counts_adjusted', added=sorted(added), removed=sorted(removed))

    def release_all(self, tag_ids):
        self.apply_membership_change(tag_ids, set())

    # --- READ HELPERS ---

    def list_tags(self, sort='popular', limit=None):
        order = 'name ASC' if sort == 'name' else 'post_count DESC, name ASC'
        query = f'SELECT id, name, slug, color, post_count FROM tags ORDER BY {order}'
        params = ()
        if limit:
            query += ' LIMIT ?'
            params = (limit,)
        return [dict(row) for row in self.db.execute(query, params).fetchall()]

    def get_by_slug(self, slug):
        row = self.db.execute(
            'SELECT id, name, slug, color, post_count FROM tags WHERE slug = ?', (slug,)
        ).fetchone()
        if row is None:
            raise NotFoundError('Tag not found')
        return dict(row)

    def tags_for_post(self, post_id):
        rows = self.db.execute(
            '''SELECT t.id, t.name, t.slug, t.color FROM tags t
               JOIN post_tags pt ON pt.tag_id = t.id
               WHERE pt.post_id = ? ORDER BY t.name''',
            (post_id,),
        ).fetchall()
        return [dict(row) for row in rows]
