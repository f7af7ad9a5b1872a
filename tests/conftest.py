"""
Shared fixtures for django-blog-engine tests.
"""
import pytest
from django.contrib.auth import get_user_model

from blog_engine.models import Comment, Post

User = get_user_model()


@pytest.fixture
def author(db):
    """Create the user who writes posts."""
    return User.objects.create_user(
        username="author",
        email="author@example.com",
        password="testpass123",
    )


@pytest.fixture
def reader(db):
    """Create a second, unrelated user."""
    return User.objects.create_user(
        username="reader",
        email="reader@example.com",
        password="testpass123",
    )


@pytest.fixture
def make_post(db, author):
    """Factory creating posts through the post store."""

    def _make_post(title="Test Post", content="<p>This is a test post body.</p>", **fields):
        fields.setdefault("author", author)
        return Post.objects.create_post(title=title, content=content, **fields)

    return _make_post


@pytest.fixture
def draft_post(make_post):
    return make_post(title="Draft Post")


@pytest.fixture
def published_post(make_post):
    return make_post(title="Published Post", status=Post.STATUS_PUBLISHED)


@pytest.fixture
def make_comment(db, reader):
    """Factory creating comments through the comment store."""

    def _make_comment(post, content="Great post!", parent=None, author=None):
        return Comment.objects.create_comment(
            author=author or reader,
            post=post,
            content=content,
            parent=parent,
        )

    return _make_comment


@pytest.fixture
def author_client(client, author):
    client.force_login(author)
    return client


@pytest.fixture
def reader_client(client, reader):
    client.force_login(reader)
    return client
