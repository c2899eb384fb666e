"""Read side for posts: lookup, listing with filters and pagination, and
expanding author/tag references for display."""
import math

from errors import NotFoundError

LIST_COLUMNS = '''p.id, p.title, p.slug, p.excerpt, p.cover_image, p.status, p.featured,
    p.seo_title, p.seo_description, p.view_count, p.like_count, p.comment_count,
    p.reading_time, p.author_id, p.published_at, p.created_at, p.updated_at'''

SORT_OPTIONS = {
    'newest': 'p.published_at DESC, p.id DESC',
    'oldest': 'p.published_at ASC, p.id ASC',
    'popular': 'p.view_count DESC, p.published_at DESC',
    'trending': 'p.like_count DESC, p.view_count DESC, p.published_at DESC',
}


def expand_posts(db, rows, include_email=False):
    """Replaces author_id with an author object and attaches each post's tags."""
    posts = [dict(row) for row in rows]
    if not posts:
        return posts

    post_ids = [p['id'] for p in posts]
    author_ids = sorted({p['author_id'] for p in posts})

    author_cols = 'id, name, profile_image' + (', email' if include_email else '')
    authors = {
        row['id']: dict(row) for row in db.execute(
            f"SELECT {author_cols} FROM users WHERE id IN ({','.join('?' * len(author_ids))})",
            author_ids,
        ).fetchall()
    }

    tags = {pid: [] for pid in post_ids}
    for row in db.execute(
        f'''SELECT pt.post_id, t.id, t.name, t.slug, t.color
            FROM post_tags pt JOIN tags t ON t.id = pt.tag_id
            WHERE pt.post_id IN ({','.join('?' * len(post_ids))})
            ORDER BY t.name''',
        post_ids,
    ).fetchall():
        tags[row['post_id']].append({'id': row['id'], 'name': row['name'],
                                     'slug': row['slug'], 'color': row['color']})

    for post in posts:
        post['featured'] = bool(post['featured'])
        post['author'] = authors.get(post.pop('author_id'))
        post['tags'] = tags[post['id']]
    return posts


def expand_post(db, row, include_email=False):
    return expand_posts(db, [row], include_email=include_email)[0]


def find_post(db, id_or_slug):
    """Looks a post up by numeric id first, then by slug. Returns the raw row."""
    row = None
    key = str(id_or_slug)
    if key.isdigit():
        row = db.execute('SELECT * FROM posts WHERE id = ?', (int(key),)).fetchone()
    if row is None:
        row = db.execute('SELECT * FROM posts WHERE slug = ?', (key,)).fetchone()
    if row is None:
        raise NotFoundError('Post not found')
    return row


def list_posts(db, page=1, limit=10, tag=None, search=None, sort='newest'):
    """Published posts for the public feed. Content is left out of list items."""
    offset = (page - 1) * limit
    where = ["p.status = 'published'"]
    params = []
    joins = ''

    if tag:
        tag_row = db.execute('SELECT id FROM tags WHERE slug = ?', (tag,)).fetchone()
        if tag_row is None:
            return paginated([], 0, page, limit)
        joins = 'JOIN post_tags pt ON pt.post_id = p.id'
        where.append('pt.tag_id = ?')
        params.append(tag_row['id'])

    if search:
        pattern = '%' + search.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_') + '%'
        where.append("(p.title LIKE ? ESCAPE '\\' OR p.excerpt LIKE ? ESCAPE '\\' "
                     "OR p.content LIKE ? ESCAPE '\\')")
        params.extend([pattern, pattern, pattern])

    where_sql = ' AND '.join(where)
    total = db.execute(
        f'SELECT COUNT(*) FROM posts p {joins} WHERE {where_sql}', params
    ).fetchone()[0]

    rows = db.execute(
        f'''SELECT {LIST_COLUMNS} FROM posts p {joins} WHERE {where_sql}
            ORDER BY {SORT_OPTIONS.get(sort, SORT_OPTIONS['newest'])}
            LIMIT ? OFFSET ?''',
        params + [limit, offset],
    ).fetchall()
    return paginated(expand_posts(db, rows), total, page, limit, key='posts')


def recent_posts(db, limit=5):
    rows = db.execute(
        f'''SELECT {LIST_COLUMNS} FROM posts p WHERE p.status = 'published'
            ORDER BY p.published_at DESC, p.id DESC LIMIT ?''',
        (limit,),
    ).fetchall()
    return expand_posts(db, rows)


def paginated(items, total, page, limit, key='posts'):
    total_pages = math.ceil(total / limit) if limit else 0
    return {
        key: items,
        'total': total,
        'current_page': page,
        'total_pages': total_pages,
        'has_next_page': page < total_pages,
        'has_prev_page': page > 1,
    }
