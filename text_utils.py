import math
import re


def clean_markdown_logic(text):
    """
    Removes Markdown symbols (*, **, ##).
    Removes hashtags from the end of the text.
    """
    if not text: return ""

    #Removes Markdown bold/italic/headers
    text = re.sub(r'\*\*|__|\*|`', '', text)
    text = re.sub(r'^\s*#+\s+', '', text, flags=re.MULTILINE)

    # Removes hashtags from the END of the content
    text = re.sub(r'(\s*#\w+)+\s*$', '', text)

    return text.strip()


def clean_text(text):
    """
    Sanitizes input but ALLOWS basic HTML formatting (bold, italic, lists).
    """
    if not text: return ""

    #Remove dangerous tags: script and style blocks entirely
    text = re.sub(r'<script.*?>.*?</script>', '', text, flags=re.DOTALL | re.IGNORECASE)
    text = re.sub(r'<style.*?>.*?</style>', '', text, flags=re.DOTALL | re.IGNORECASE)
    text = re.sub(r'<(iframe|object|embed)\b.*?>', '', text, flags=re.DOTALL | re.IGNORECASE)

    #Removes event handlers (e.g. onclick="...") and javascript: urls
    text = re.sub(r'\son\w+\s*=\s*("[^"]*"|\'[^\']*\')', '', text, flags=re.IGNORECASE)
    text = re.sub(r'javascript:', '', text, flags=re.IGNORECASE)

    return text.strip()


def strip_html(text):
    if not text: return ""
    return " ".join(re.sub(r'<[^>]+>', ' ', text).split())


def slugify(value):
    """'Hello, World!' -> 'hello-world'. Falls back to 'item' for symbol-only input."""
    value = re.sub(r'[^\w\s-]', '', (value or '').lower())
    value = re.sub(r'[\s_-]+', '-', value).strip('-')
    return value or 'item'


def unique_slug(db, table, base, exclude_id=None):
    """First free slug of base, base-2, base-3, ... in the given table."""
    slug = base
    n = 2
    while True:
        row = db.execute(f'SELECT id FROM {table} WHERE slug = ?', (slug,)).fetchone()
        if row is None or (exclude_id is not None and row['id'] == exclude_id):
            return slug
        slug = f'{base}-{n}'
        n += 1


def reading_time(content, words_per_minute=200):
    words = len(strip_html(content).split())
    return max(1, math.ceil(words / words_per_minute))
