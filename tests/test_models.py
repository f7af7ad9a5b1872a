"""
Tests for django-blog-engine models.
"""
from datetime import timedelta
from unittest import mock

import pytest
from django.contrib.auth import get_user_model
from django.utils import timezone

from blog_engine.exceptions import (
    BusinessRuleViolation,
    NotFound,
    PermissionDenied,
    ValidationFailed,
)
from blog_engine.models import (
    Category,
    Comment,
    CommentLike,
    Post,
    PostLike,
    Tag,
)

User = get_user_model()


class TestTaxonomy:
    """Tests for Category and Tag models."""

    def test_create_category(self, db):
        cat = Category.objects.create(name="My Category")
        assert cat.slug == "my-category"

    def test_tag_is_lowercased(self, db):
        tag = Tag.objects.create(name="  Django ")
        assert tag.name == "django"
        assert tag.slug == "django"

    def test_post_taxonomy(self, make_post):
        post = make_post(tags=["Python", "python", "Web"], categories=["Tutorials"])
        assert sorted(post.tags.values_list("name", flat=True)) == ["python", "web"]
        assert list(post.categories.values_list("name", flat=True)) == ["Tutorials"]


class TestPost:
    """Tests for the post store."""

    def test_create_post(self, author):
        post = Post.objects.create_post(
            author=author,
            title="Hello World",
            content="<p>My first post!</p>",
        )
        assert post.slug == "hello-world"
        assert post.status == Post.STATUS_DRAFT
        assert post.published_at is None
        assert not post.is_published

    def test_duplicate_titles_get_numbered_slugs(self, make_post):
        first = make_post(title="Hello World")
        second = make_post(title="Hello World")
        third = make_post(title="hello world!")
        assert first.slug == "hello-world"
        assert second.slug == "hello-world-1"
        assert third.slug == "hello-world-2"

    def test_slug_is_lowercase(self, make_post):
        post = make_post(title="Django AND Python")
        assert post.slug == "django-and-python"

    def test_content_is_sanitized(self, make_post):
        post = make_post(content='<p onclick="x()">Hi</p><script>alert(1)</script>')
        assert "<script>" not in post.content
        assert "onclick" not in post.content
        assert "<p>Hi</p>" in post.content

    def test_markdown_content_rendered(self, make_post):
        post = make_post(content="## Intro\n\n- one\n- two", is_markdown=True)
        assert post.is_markdown
        assert "<h2>Intro</h2>" in post.content
        assert "<li>one</li>" in post.content
        assert post.excerpt.startswith("Intro")

    def test_markdown_update_rendered(self, draft_post, author):
        draft_post.apply_update(author, {"content": "Plain *emphasis*", "is_markdown": True})
        assert draft_post.content == "<p>Plain <em>emphasis</em></p>"

    def test_is_scheduled(self, make_post):
        future = make_post(title="Later", scheduled_at=timezone.now() + timedelta(days=1))
        past = make_post(title="Earlier", scheduled_at=timezone.now() - timedelta(days=1))
        assert future.as_dict()["isScheduled"] is True
        assert past.as_dict()["isScheduled"] is False

    def test_excerpt_derived_from_content(self, make_post):
        post = make_post(content="<p>" + "a" * 200 + "</p>")
        assert post.excerpt == "a" * 150 + "..."

    def test_manual_excerpt_kept(self, make_post):
        post = make_post(excerpt="Short summary")
        assert post.excerpt == "Short summary"

    def test_read_time(self, make_post):
        post = make_post(content=" ".join(["word"] * 401))
        assert post.read_time == 3

    def test_created_published_sets_published_at(self, published_post):
        assert published_post.published_at is not None

    def test_published_at_set_once(self, draft_post, author):
        draft_post.apply_update(author, {"status": Post.STATUS_PUBLISHED})
        first_published = draft_post.published_at
        assert first_published is not None

        draft_post.apply_update(author, {"status": Post.STATUS_ARCHIVED})
        draft_post.apply_update(author, {"status": Post.STATUS_PUBLISHED})
        draft_post.refresh_from_db()
        assert draft_post.published_at == first_published

    def test_update_title_regenerates_slug(self, make_post, author):
        make_post(title="Taken")
        post = make_post(title="Original")
        post.apply_update(author, {"title": "Taken"})
        assert post.slug == "taken-1"

    def test_update_without_title_keeps_slug(self, make_post, author):
        post = make_post(title="Stable")
        post.apply_update(author, {"content": "<p>new body here</p>"})
        assert post.slug == "stable"
        assert post.read_time == 1

    def test_update_by_other_user_denied(self, draft_post, reader):
        with pytest.raises(PermissionDenied):
            draft_post.apply_update(reader, {"title": "Hijacked"})

    def test_update_by_admin_allowed(self, draft_post, admin_user):
        draft_post.apply_update(admin_user, {"title": "Edited by admin"})
        assert draft_post.slug == "edited-by-admin"

    def test_slug_retry_after_collision(self, make_post, author):
        make_post(title="Race")
        post = Post(author=author, title="Race", content="<p>x</p>")
        with mock.patch("blog_engine.models.posts.unique_slug", side_effect=["race", "race-1"]):
            post.save_with_unique_slug(regenerate=True)
        assert post.slug == "race-1"

    def test_slug_collision_after_retry_raises(self, make_post, author):
        make_post(title="Race")
        post = Post(author=author, title="Race", content="<p>x</p>")
        with mock.patch("blog_engine.models.posts.unique_slug", return_value="race"):
            with pytest.raises(BusinessRuleViolation):
                post.save_with_unique_slug(regenerate=True)
        assert Post.objects.filter(slug="race").count() == 1

    def test_increment_view_count(self, published_post, reader):
        assert published_post.increment_view_count(reader)
        published_post.refresh_from_db()
        assert published_post.view_count == 1

    def test_author_views_not_counted(self, published_post, author):
        assert not published_post.increment_view_count(author)
        published_post.refresh_from_db()
        assert published_post.view_count == 0

    def test_visible_to_hides_unpublished_from_readers(self, make_post, reader, admin_user):
        live = make_post(title="Live", status=Post.STATUS_PUBLISHED)
        make_post(title="Draft")
        future = make_post(title="Future", status=Post.STATUS_PUBLISHED)
        Post.objects.filter(pk=future.pk).update(published_at=timezone.now() + timedelta(days=1))

        assert list(Post.objects.visible_to(reader)) == [live]
        assert list(Post.objects.visible_to(None)) == [live]
        assert Post.objects.visible_to(admin_user).count() == 3
        assert Post.objects.visible_to(admin_user, status=Post.STATUS_DRAFT).count() == 1

    def test_search_filters(self, make_post):
        django_post = make_post(
            title="Django tips",
            status=Post.STATUS_PUBLISHED,
            tags=["django"],
            categories=["Web"],
        )
        make_post(
            title="Gardening",
            content="<p>Tomatoes</p>",
            status=Post.STATUS_PUBLISHED,
            tags=["garden"],
            categories=["Life"],
        )
        live = Post.objects.live()
        assert list(live.search(tags=["Django"])) == [django_post]
        assert list(live.search(categories=["Web"])) == [django_post]
        assert list(live.search(text="tips")) == [django_post]
        assert [p.title for p in live.search(sort="title", order="asc")] == ["Django tips", "Gardening"]

    def test_categories_lists_live_posts_only(self, make_post):
        make_post(title="A", status=Post.STATUS_PUBLISHED, categories=["Web"])
        make_post(title="B", categories=["Hidden"])
        assert Post.objects.categories() == ["Web"]

    def test_popular_orders_by_views(self, make_post):
        quiet = make_post(title="Quiet", status=Post.STATUS_PUBLISHED)
        busy = make_post(title="Busy", status=Post.STATUS_PUBLISHED)
        Post.objects.filter(pk=busy.pk).update(view_count=10)
        assert list(Post.objects.popular()) == [busy, quiet]

    def test_delete_post_removes_comments_and_images(self, make_post, author, make_comment):
        post = make_post(
            status=Post.STATUS_PUBLISHED,
            featured_image_public_id="blog-cms/featured.png",
            images=[{"url": "http://x/a.png", "publicId": "blog-cms/a.png"}],
        )
        make_comment(post)
        backend = mock.Mock()
        with mock.patch("blog_engine.media.get_media_backend", return_value=backend):
            post.delete_post(author)

        assert not Post.objects.filter(pk=post.pk).exists()
        assert Comment.objects.count() == 0
        assert [c.args[0] for c in backend.delete.call_args_list] == [
            "blog-cms/featured.png",
            "blog-cms/a.png",
        ]

    def test_delete_post_survives_image_failure(self, make_post, author):
        post = make_post(featured_image_public_id="blog-cms/featured.png")
        backend = mock.Mock()
        backend.delete.side_effect = RuntimeError("media service down")
        with mock.patch("blog_engine.media.get_media_backend", return_value=backend):
            post.delete_post(author)
        assert not Post.objects.filter(pk=post.pk).exists()

    def test_delete_post_denied_for_other_user(self, draft_post, reader):
        with pytest.raises(PermissionDenied):
            draft_post.delete_post(reader)
        assert Post.objects.filter(pk=draft_post.pk).exists()


class TestPostLikes:
    """Tests for the post like ledger."""

    def test_toggle_like_is_its_own_inverse(self, published_post, reader):
        assert published_post.toggle_like(reader) == (True, 1)
        assert published_post.is_liked_by(reader)
        assert published_post.toggle_like(reader) == (False, 0)
        assert not published_post.is_liked_by(reader)
        assert PostLike.objects.count() == 0

    def test_likes_from_several_users(self, published_post, reader, author):
        published_post.toggle_like(reader)
        assert published_post.toggle_like(author) == (True, 2)
        assert list(published_post.likes.values_list("user", flat=True)) == [reader.pk, author.pk]

    def test_cannot_like_unpublished(self, draft_post, reader):
        with pytest.raises(BusinessRuleViolation):
            draft_post.toggle_like(reader)

    def test_like_inserted_concurrently_is_kept(self, published_post, reader):
        # Row committed by another request after this one found nothing to remove
        PostLike.objects.create(post=published_post, user=reader)
        with mock.patch("django.db.models.query.QuerySet.delete", return_value=(0, {})):
            assert published_post.toggle_like(reader) == (True, 1)


class TestComment:
    """Tests for the comment store."""

    def test_create_comment(self, published_post, make_comment):
        comment = make_comment(published_post, "<b>Great</b> post!")
        assert comment.content == "Great post!"
        assert comment.status == Comment.STATUS_APPROVED
        assert not comment.is_reply

    def test_cannot_comment_on_draft(self, draft_post, make_comment):
        with pytest.raises(BusinessRuleViolation):
            make_comment(draft_post)
        assert Comment.objects.count() == 0

    def test_reply_appended_to_parent(self, published_post, make_comment):
        parent = make_comment(published_post, "Parent comment")
        first = make_comment(published_post, "Reply 1", parent=parent)
        second = make_comment(published_post, "Reply 2", parent=parent)
        parent.refresh_from_db()

        assert parent.reply_ids == [first.pk, second.pk]
        assert second.thread_depth == 1
        assert [r.pk for r in parent.resolved_replies()] == [first.pk, second.pk]

    def test_reply_to_other_post_rejected(self, make_post, make_comment):
        post_a = make_post(title="A", status=Post.STATUS_PUBLISHED)
        post_b = make_post(title="B", status=Post.STATUS_PUBLISHED)
        parent = make_comment(post_a)

        with pytest.raises(BusinessRuleViolation):
            make_comment(post_b, "Wrong thread", parent=parent)
        assert Comment.objects.count() == 1
        parent.refresh_from_db()
        assert parent.reply_ids == []

    def test_reply_to_missing_parent(self, published_post, make_comment):
        ghost = Comment(pk=9999, post=published_post)
        with pytest.raises(NotFound):
            make_comment(published_post, parent=ghost)

    def test_edit_comment(self, published_post, make_comment, reader):
        comment = make_comment(published_post, "Original")
        comment.edit(reader, "Updated content")

        assert comment.content == "Updated content"
        assert comment.is_edited
        assert comment.edited_at is not None

    def test_edit_by_other_user_denied(self, published_post, make_comment, author):
        comment = make_comment(published_post)
        with pytest.raises(PermissionDenied):
            comment.edit(author, "Nope")

    def test_delete_thread_removes_subtree(self, published_post, make_comment, reader):
        root = make_comment(published_post, "Root")
        reply = make_comment(published_post, "Reply", parent=root)
        nested = make_comment(published_post, "Nested", parent=reply)
        make_comment(published_post, "Nested 2", parent=reply)
        make_comment(published_post, "Deep", parent=nested)
        other = make_comment(published_post, "Unrelated")

        assert root.delete_thread(reader) == 5
        assert list(Comment.objects.all()) == [other]

    def test_delete_reply_detaches_from_parent(self, published_post, make_comment, reader):
        root = make_comment(published_post, "Root")
        keep = make_comment(published_post, "Keep", parent=root)
        drop = make_comment(published_post, "Drop", parent=root)
        make_comment(published_post, "Drop child", parent=drop)

        assert drop.delete_thread(reader) == 2
        root.refresh_from_db()
        assert root.reply_ids == [keep.pk]
        assert Comment.objects.count() == 2

    def test_reply_removed_with_its_author(self, published_post, make_comment, author, reader):
        root = make_comment(published_post, "Root", author=author)
        make_comment(published_post, "Reply", parent=root)

        reader.delete()

        root.refresh_from_db()
        assert root.reply_ids == []
        assert root.delete_thread(author) == 1
        assert Comment.objects.count() == 0

    def test_bulk_delete_detaches_reply(self, published_post, make_comment):
        root = make_comment(published_post, "Root")
        keep = make_comment(published_post, "Keep", parent=root)
        drop = make_comment(published_post, "Drop", parent=root)

        Comment.objects.filter(pk=drop.pk).delete()

        root.refresh_from_db()
        assert root.reply_ids == [keep.pk]

    def test_delete_thread_counts_existing_rows_only(self, published_post, make_comment, reader):
        root = make_comment(published_post, "Root")
        Comment.objects.filter(pk=root.pk).update(reply_ids=[9999])
        root.refresh_from_db()

        assert root.delete_thread(reader) == 1

    def test_admin_can_delete_any_comment(self, published_post, make_comment, admin_user):
        comment = make_comment(published_post)
        assert comment.delete_thread(admin_user) == 1

    def test_comment_like_requires_approval(self, published_post, make_comment, author, admin_user):
        comment = make_comment(published_post)
        assert comment.toggle_like(author) == (True, 1)
        assert comment.toggle_like(author) == (False, 0)
        assert CommentLike.objects.count() == 0

        comment.moderate(admin_user, Comment.STATUS_PENDING)
        with pytest.raises(BusinessRuleViolation):
            comment.toggle_like(author)

    def test_moderate_admin_only(self, published_post, make_comment, reader):
        comment = make_comment(published_post)
        with pytest.raises(PermissionDenied):
            comment.moderate(reader, Comment.STATUS_SPAM)

    def test_moderate_rejects_unknown_status(self, published_post, make_comment, admin_user):
        comment = make_comment(published_post)
        with pytest.raises(ValidationFailed):
            comment.moderate(admin_user, "deleted")

    def test_for_post_filters_and_orders(self, published_post, make_comment, admin_user):
        first = make_comment(published_post, "First")
        second = make_comment(published_post, "Second")
        reply = make_comment(published_post, "Reply", parent=first)
        pending = make_comment(published_post, "Pending")
        pending.moderate(admin_user, Comment.STATUS_PENDING)
        spam = make_comment(published_post, "Spam")
        spam.moderate(admin_user, Comment.STATUS_SPAM)

        assert list(Comment.objects.for_post(published_post, sort="oldest")) == [first, second]
        assert list(Comment.objects.for_post(published_post)) == [second, first]
        assert list(Comment.objects.for_post(published_post, include_all=True, sort="oldest")) == [
            first,
            second,
            pending,
        ]
        assert reply in Comment.objects.for_post(published_post, include_replies=True)

    def test_stats(self, published_post, make_comment, admin_user):
        make_comment(published_post)
        spam = make_comment(published_post)
        spam.moderate(admin_user, Comment.STATUS_SPAM)

        stats = Comment.objects.stats(published_post)
        assert stats == {"total": 2, "pending": 0, "approved": 1, "rejected": 0, "spam": 1}


class TestScenario:
    """End-to-end walk through the post and comment lifecycle."""

    def test_hello_world(self, author, reader):
        first = Post.objects.create_post(author=author, title="Hello World", content="<p>Hi</p>")
        second = Post.objects.create_post(author=author, title="Hello World", content="<p>Hi</p>")
        assert first.slug == "hello-world"
        assert second.slug == "hello-world-1"

        first.apply_update(author, {"status": Post.STATUS_PUBLISHED})
        assert first.published_at is not None

        assert first.toggle_like(reader) == (True, 1)
        assert first.is_liked_by(reader)
        assert first.toggle_like(reader) == (False, 0)

        c1 = Comment.objects.create_comment(author=reader, post=first, content="C1")
        Comment.objects.create_comment(author=author, post=first, content="R1", parent=c1)

        assert c1.delete_thread(reader) == 2
        assert list(Comment.objects.for_post(first)) == []
        assert Comment.objects.filter(post=first).count() == 0
