"""
Tests for the shared capability checks.
"""
import pytest
from django.contrib.auth.models import AnonymousUser

from blog_engine.exceptions import AuthenticationRequired, PermissionDenied
from blog_engine.permissions import can, ensure_can, is_admin


def test_owner_and_admin_can_update(draft_post, author, reader, admin_user):
    assert can(author, draft_post, "update")
    assert can(admin_user, draft_post, "delete")
    assert not can(reader, draft_post, "update")


def test_same_rules_for_comments(published_post, make_comment, author, reader):
    comment = make_comment(published_post)
    assert can(reader, comment, "delete")
    assert not can(author, comment, "delete")


def test_view_rules(draft_post, published_post, author, reader):
    anonymous = AnonymousUser()
    assert can(anonymous, published_post, "view")
    assert not can(anonymous, draft_post, "view")
    assert not can(reader, draft_post, "view")
    assert can(author, draft_post, "view")


def test_admin_actions(author, admin_user):
    assert is_admin(admin_user)
    assert not is_admin(author)
    assert can(admin_user, None, "moderate")
    assert not can(author, None, "view_all")


def test_ensure_can_distinguishes_anonymous(draft_post, reader):
    with pytest.raises(AuthenticationRequired):
        ensure_can(AnonymousUser(), draft_post, "update")
    with pytest.raises(PermissionDenied):
        ensure_can(reader, draft_post, "update")


def test_unknown_action():
    with pytest.raises(ValueError):
        can(None, None, "fly")
