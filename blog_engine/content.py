"""
Content derivation for posts: Markdown rendering, sanitizing, excerpts,
read time and slugs.
"""
import math
import re

import bleach
import markdown
from django.utils.text import slugify

from .conf import blog_settings

TAG_RE = re.compile(r"<[^>]*>")
MARKDOWN_EXTENSIONS = ["extra", "sane_lists"]


def sanitize_html(html):
    """Clean post HTML down to the configured allow-list."""
    if not html:
        return ""
    return bleach.clean(
        html,
        tags=set(blog_settings.ALLOWED_HTML_TAGS),
        attributes=blog_settings.ALLOWED_HTML_ATTRIBUTES,
        strip=True,
    )


def render_content(text, is_markdown=False):
    """Convert Markdown to HTML when flagged, then sanitize."""
    if is_markdown and text:
        text = markdown.markdown(text, extensions=MARKDOWN_EXTENSIONS)
    return sanitize_html(text)


def sanitize_text(text):
    """Strip all markup, used for comment bodies."""
    if not text:
        return ""
    return bleach.clean(text, tags=set(), strip=True).strip()


def strip_tags(html):
    return TAG_RE.sub("", html or "")


def make_excerpt(html, length=None):
    """Return the first ``length`` characters of tag-stripped content."""
    if length is None:
        length = blog_settings.EXCERPT_LENGTH
    plain = strip_tags(html)
    if len(plain) > length:
        return plain[:length] + "..."
    return plain


def estimate_read_time(html):
    """Minutes to read, rounded up, counting whitespace-separated words."""
    words = (html or "").split()
    return math.ceil(len(words) / blog_settings.WORDS_PER_MINUTE)


def base_slug(title):
    slug = slugify(title or "")[:blog_settings.SLUG_MAX_LENGTH].strip("-")
    return slug or "post"


def unique_slug(title, queryset, exclude_pk=None):
    """
    Slugify ``title`` and append ``-1``, ``-2``, ... until unused.

    ``queryset`` is the set of posts to check against.
    """
    base = base_slug(title)
    taken = queryset
    if exclude_pk is not None:
        taken = taken.exclude(pk=exclude_pk)

    slug = base
    counter = 1
    while taken.filter(slug__iexact=slug).exists():
        suffix = f"-{counter}"
        slug = f"{base[:blog_settings.SLUG_MAX_LENGTH - len(suffix)]}{suffix}"
        counter += 1
    return slug
