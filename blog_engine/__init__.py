"""
django-blog-engine - A JSON blog CMS backend for Django.

Features:
- Posts with unique slugs, derived excerpts and read time
- Draft / published / archived lifecycle with a write-once publish date
- Threaded comments with moderation and cascade delete
- Like ledgers for posts and comments
- Pluggable image storage backend
"""

__version__ = "0.1.0"
__author__ = "Nestor Wheelock"
