"""
Configuration settings for django-blog-engine.

Override these in your Django settings.py:

    BLOG_ENGINE = {
        'POSTS_PER_PAGE': 20,
        'DEFAULT_COMMENT_STATUS': 'pending',
        'MEDIA_BACKEND': 'myproject.media.S3MediaBackend',
        ...
    }
"""
from django.conf import settings

DEFAULTS = {
    # Posts
    "TITLE_MAX_LENGTH": 200,
    "EXCERPT_MAX_LENGTH": 500,
    "EXCERPT_LENGTH": 150,
    "TAG_MAX_LENGTH": 50,
    "CATEGORY_MAX_LENGTH": 100,
    "WORDS_PER_MINUTE": 200,
    "SLUG_MAX_LENGTH": 255,

    # SEO
    "META_TITLE_MAX_LENGTH": 60,
    "META_DESCRIPTION_MAX_LENGTH": 160,
    "IMAGE_ALT_MAX_LENGTH": 200,

    # Sanitizing
    "ALLOWED_HTML_TAGS": [
        "a", "abbr", "b", "blockquote", "br", "code", "div", "em",
        "figcaption", "figure", "h1", "h2", "h3", "h4", "h5", "h6", "hr",
        "i", "img", "li", "ol", "p", "pre", "s", "span", "strong", "sub",
        "sup", "table", "tbody", "td", "th", "thead", "tr", "u", "ul",
    ],
    "ALLOWED_HTML_ATTRIBUTES": {
        "a": ["href", "title", "rel", "target"],
        "img": ["src", "alt", "title", "width", "height"],
        "code": ["class"],
        "pre": ["class"],
        "span": ["class"],
        "div": ["class"],
        "td": ["colspan", "rowspan"],
        "th": ["colspan", "rowspan"],
    },

    # Comments
    "COMMENT_MAX_LENGTH": 1000,
    "DEFAULT_COMMENT_STATUS": "approved",

    # Pagination
    "POSTS_PER_PAGE": 10,
    "COMMENTS_PER_PAGE": 20,
    "MAX_PAGE_SIZE": 100,

    # Media
    "MEDIA_BACKEND": "blog_engine.media.StorageMediaBackend",
    "MEDIA_FOLDER": "blog-cms",
    "MEDIA_MAX_SIZE_MB": 5,
    "MEDIA_MAX_FILES": 10,
    "MEDIA_FETCH_TIMEOUT": 10,
    "ALLOWED_IMAGE_TYPES": ["image/jpeg", "image/png", "image/gif", "image/webp"],
}


class BlogEngineSettings:
    """
    Lazy settings object that reads from Django settings.

    Access via: from blog_engine.conf import blog_settings
    """

    def __getattr__(self, name):
        if name not in DEFAULTS:
            raise AttributeError(f"Invalid blog_engine setting: {name}")

        user_settings = getattr(settings, "BLOG_ENGINE", {})
        return user_settings.get(name, DEFAULTS[name])

    @property
    def MEDIA_MAX_SIZE_BYTES(self):
        """Return the upload size limit in bytes."""
        return self.MEDIA_MAX_SIZE_MB * 1024 * 1024


blog_settings = BlogEngineSettings()
