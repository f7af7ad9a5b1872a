"""
Models for django-blog-engine.

All models are importable from blog_engine.models:

    from blog_engine.models import Post, Category, Tag, Comment, PostLike
"""
from .likes import PostLike, CommentLike
from .posts import Category, Tag, Post
from .comments import Comment

__all__ = [
    # Posts
    "Category",
    "Tag",
    "Post",
    # Comments
    "Comment",
    # Likes
    "PostLike",
    "CommentLike",
]
