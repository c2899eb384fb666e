"""
Post Lifecycle Manager.

The only code that creates, edits or deletes posts. Ownership is checked
here and every change to a post's tag set goes through the TagLedger, which
keeps tag post counts in step with post_tags.

Each operation runs as one sqlite transaction. On delete the tag counts are
released before the post row is removed.
"""
import structlog

from database import increment, transaction, utcnow
from errors import ForbiddenError, NotFoundError, ValidationError
from post_queries import expand_post
from tag_ledger import TagLedger
from text_utils import clean_text, reading_time, slugify, unique_slug

logger = structlog.get_logger(__name__)

STATUSES = ('draft', 'published')
TITLE_MIN, TITLE_MAX = 3, 200
CONTENT_MIN = 10

# Plain columns update() copies straight from the caller
EDITABLE = ('excerpt', 'seo_title', 'seo_description', 'cover_image')
TEXT_FIELDS = ('title', 'content', 'status', *EDITABLE)


def sanitize_fields(fields):
    """
    Sanitizes the text fields the way they will be stored. Returns
    (cleaned, errors); non-string values are reported as field errors.
    """
    cleaned, errors = dict(fields), []
    for name in TEXT_FIELDS:
        value = fields.get(name)
        if value is None:
            continue
        if not isinstance(value, str):
            errors.append({'field': name, 'message': f'{name} must be a string'})
            continue
        value = value.strip()
        if name in ('title', 'content'):
            value = clean_text(value)
        cleaned[name] = value

    tags = fields.get('tags')
    if tags is not None:
        if isinstance(tags, (list, tuple, set)) and all(isinstance(t, str) for t in tags):
            cleaned['tags'] = list(tags)
        elif not isinstance(tags, str):
            errors.append({'field': 'tags',
                           'message': 'Tags must be a list of names or a comma separated string'})
    return cleaned, errors


def validate_post(title=None, content=None, status=None, partial=False):
    """
    Returns the list of field errors. With partial=True, fields passed as
    None are skipped instead of reported missing. Pass values that have
    already been through sanitize_fields().
    """
    errors = []
    if title is not None or not partial:
        if not TITLE_MIN <= len((title or '').strip()) <= TITLE_MAX:
            errors.append({'field': 'title',
                           'message': 'Title must be between 3 and 200 characters'})
    if content is not None or not partial:
        if len((content or '').strip()) < CONTENT_MIN:
            errors.append({'field': 'content',
                           'message': 'Content must be at least 10 characters long'})
    if status is not None and status not in STATUSES:
        errors.append({'field': 'status',
                       'message': 'Status must be either draft or published'})
    return errors


def clean_and_validate(fields, partial=False):
    cleaned, errors = sanitize_fields(fields)
    if errors:
        raise ValidationError(errors)
    errors = validate_post(cleaned.get('title'), cleaned.get('content'),
                           cleaned.get('status'), partial=partial)
    if errors:
        raise ValidationError(errors)
    return cleaned


class PostManager:

    def __init__(self, db, ledger=None):
        self.db = db
        self.ledger = ledger or TagLedger(db)

    def _get_row(self, post_id):
        row = self.db.execute('SELECT * FROM posts WHERE id = ?', (post_id,)).fetchone()
        if row is None:
            raise NotFoundError('Post not found')
        return row

    def _owned_row(self, post_id, requester_id, action):
        row = self._get_row(post_id)
        if row['author_id'] != requester_id:
            raise ForbiddenError(f'You can only {action} your own posts')
        return row

    def tag_ids(self, post_id):
        return {r['tag_id'] for r in self.db.execute(
            'SELECT tag_id FROM post_tags WHERE post_id = ?', (post_id,)).fetchall()}

    def get(self, post_id):
        return expand_post(self.db, self._get_row(post_id))

    def create(self, author_id, title, content, excerpt=None, tags=None, status=None,
               cover_image=None, seo_title=None, seo_description=None, featured=False):
        fields = clean_and_validate({
            'title': title, 'content': content, 'excerpt': excerpt, 'tags': tags,
            'status': status or 'draft', 'cover_image': cover_image,
            'seo_title': seo_title, 'seo_description': seo_description,
        })
        title, content, status = fields['title'], fields['content'], fields['status']
        now = utcnow()

        with transaction(self.db):
            tag_ids = self.ledger.resolve_tags(fields['tags'])
            self.ledger.apply_membership_change(set(), tag_ids)

            cur = self.db.execute(
                '''INSERT INTO posts (title, slug, content, excerpt, cover_image, status, featured,
                       seo_title, seo_description, view_count, like_count, comment_count,
                       reading_time, author_id, published_at, created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, 0, 0, 0, ?, ?, ?, ?, ?)''',
                (title, unique_slug(self.db, 'posts', slugify(title)), content,
                 fields['excerpt'] or '', fields['cover_image'] or '', status,
                 int(bool(featured)), fields['seo_title'] or '', fields['seo_description'] or '',
                 reading_time(content), author_id,
                 now if status == 'published' else None, now, now),
            )
            post_id = cur.lastrowid
            self.db.executemany('INSERT INTO post_tags (post_id, tag_id) VALUES (?, ?)',
                                [(post_id, t) for t in sorted(tag_ids)])

        logger.info('post_created', post_id=post_id, author_id=author_id,
                    status=status, tags=len(tag_ids))
        return self.get(post_id)

    def update(self, post_id, requester_id, **fields):
        """
        Only supplied (non-None) fields change. tags=None keeps the current
        tag set; featured is left alone unless explicitly given.

        Lookup and ownership are checked before the fields are validated.
        """
        unknown = set(fields) - {'title', 'content', 'status', 'tags', 'featured', *EDITABLE}
        if unknown:
            raise TypeError(f"unexpected fields: {', '.join(sorted(unknown))}")

        with transaction(self.db):
            row = self._owned_row(post_id, requester_id, 'edit')
            fields = clean_and_validate(fields, partial=True)
            changes = {}

            if fields.get('title') is not None:
                changes['title'] = fields['title']
                if fields['title'] != row['title']:
                    changes['slug'] = unique_slug(self.db, 'posts', slugify(fields['title']),
                                                  exclude_id=post_id)
            if fields.get('content') is not None:
                changes['content'] = fields['content']
                changes['reading_time'] = reading_time(fields['content'])
            if fields.get('status') is not None:
                changes['status'] = fields['status']
                if fields['status'] == 'published' and row['published_at'] is None:
                    changes['published_at'] = utcnow()
            if fields.get('featured') is not None:
                changes['featured'] = int(bool(fields['featured']))
            for name in EDITABLE:
                if fields.get(name) is not None:
                    changes[name] = fields[name]

            # Old membership must be read before post_tags is rewritten
            if fields.get('tags') is not None:
                old_tags = self.tag_ids(post_id)
                new_tags = self.ledger.resolve_tags(fields['tags'])
                self.ledger.apply_membership_change(old_tags, new_tags)
                if old_tags != new_tags:
                    self.db.execute('DELETE FROM post_tags WHERE post_id = ?', (post_id,))
                    self.db.executemany('INSERT INTO post_tags (post_id, tag_id) VALUES (?, ?)',
                                        [(post_id, t) for t in sorted(new_tags)])

            changes['updated_at'] = utcnow()
            assignments = ', '.join(f'{col} = ?' for col in changes)
            self.db.execute(f'UPDATE posts SET {assignments} WHERE id = ?',
                            [*changes.values(), post_id])

        logger.info('post_updated', post_id=post_id, fields=sorted(k for k, v in fields.items()
                                                                   if v is not None))
        return self.get(post_id)

    def delete(self, post_id, requester_id):
        with transaction(self.db):
            self._owned_row(post_id, requester_id, 'delete')
            tag_ids = self.tag_ids(post_id)
            self.ledger.release_all(tag_ids)
            self.db.execute('DELETE FROM post_tags WHERE post_id = ?', (post_id,))
            self.db.execute('DELETE FROM comments WHERE post_id = ?', (post_id,))
            self.db.execute('DELETE FROM posts WHERE id = ?', (post_id,))
        logger.info('post_deleted', post_id=post_id, released_tags=len(tag_ids))

    def record_view(self, post_id):
        """Counts one view for a published post; drafts are returned unchanged."""
        with transaction(self.db):
            self.db.execute(
                "UPDATE posts SET view_count = view_count + 1 "
                "WHERE id = ? AND status = 'published'",
                (post_id,),
            )
            post = self.get(post_id)
        return post

    def like(self, post_id):
        """No per-user dedup: every call adds one like. Returns the new count."""
        with transaction(self.db):
            row = self._get_row(post_id)
            if row['status'] != 'published':
                raise NotFoundError('Post not found')
            increment(self.db, 'posts', 'like_count', post_id, 1)
            count = self.db.execute('SELECT like_count FROM posts WHERE id = ?',
                                    (post_id,)).fetchone()[0]
        return count
