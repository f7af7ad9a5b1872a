"""
Comment model and comment store operations for django-blog-engine.
"""
import logging

from django.conf import settings
from django.db import models, transaction
from django.utils import timezone

from ..conf import blog_settings
from ..content import sanitize_text
from ..exceptions import BusinessRuleViolation, NotFound, ValidationFailed
from ..permissions import ensure_can
from .likes import CommentLike
from .posts import author_summary, isoformat

logger = logging.getLogger(__name__)


class CommentQuerySet(models.QuerySet):
    def with_status(self, include_all=False):
        if include_all:
            return self.filter(status__in=[Comment.STATUS_PENDING, Comment.STATUS_APPROVED])
        return self.filter(status=Comment.STATUS_APPROVED)


class CommentManager(models.Manager.from_queryset(CommentQuerySet)):
    def create_comment(self, author, post, content, parent=None,
                       ip_address=None, user_agent=""):
        """
        Add a comment, or a reply when ``parent`` is given.

        The post must be published and the parent must belong to the same
        post. The new comment is appended to the parent's reply list.
        """
        ensure_can(author, post, "comment")
        if not post.is_published:
            raise BusinessRuleViolation("Cannot comment on unpublished posts")

        with transaction.atomic():
            if parent is not None:
                # Lock the parent row so concurrent replies append in order
                try:
                    parent = self.select_for_update().get(pk=parent.pk)
                except Comment.DoesNotExist:
                    raise NotFound("Parent comment not found") from None
                if parent.post_id != post.pk:
                    raise BusinessRuleViolation("Parent comment does not belong to this post")

            comment = self.create(
                post=post,
                author=author,
                parent=parent,
                content=sanitize_text(content),
                status=blog_settings.DEFAULT_COMMENT_STATUS,
                ip_address=ip_address or None,
                user_agent=user_agent or "",
            )

            if parent is not None:
                parent.reply_ids = list(parent.reply_ids) + [comment.pk]
                parent.save(update_fields=["reply_ids", "updated_at"])

        return comment

    def for_post(self, post, include_all=False, include_replies=False, sort="newest"):
        """
        Comments on ``post`` visible under the chosen moderation filter.

        Top-level comments only unless ``include_replies``. Ordered newest
        first unless ``sort`` is "oldest".
        """
        qs = self.filter(post=post).with_status(include_all).select_related("author")
        if not include_replies:
            qs = qs.filter(parent__isnull=True)
        order = "created_at" if sort == "oldest" else "-created_at"
        return qs.order_by(order, "pk" if sort == "oldest" else "-pk")

    def stats(self, post):
        """Comment counts per status, plus the total."""
        result = {"total": 0}
        for status, _ in Comment.STATUS_CHOICES:
            result[status] = 0
        rows = self.filter(post=post).values("status").annotate(count=models.Count("pk"))
        for row in rows:
            result[row["status"]] = row["count"]
            result["total"] += row["count"]
        return result


class Comment(models.Model):
    """
    Comment on a post.

    Supports:
    - Threaded replies via parent field, with an ordered ``reply_ids`` list
    - Moderation workflow
    - Edit tracking
    """

    STATUS_PENDING = "pending"
    STATUS_APPROVED = "approved"
    STATUS_REJECTED = "rejected"
    STATUS_SPAM = "spam"
    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_APPROVED, "Approved"),
        (STATUS_REJECTED, "Rejected"),
        (STATUS_SPAM, "Spam"),
    ]

    post = models.ForeignKey(
        "blog_engine.Post",
        on_delete=models.CASCADE,
        related_name="comments",
    )
    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="blog_comments",
    )
    parent = models.ForeignKey(
        "self",
        null=True,
        blank=True,
        on_delete=models.CASCADE,
        related_name="replies",
    )
    reply_ids = models.JSONField(
        default=list,
        blank=True,
        help_text="Ordered primary keys of direct replies",
    )
    content = models.TextField(max_length=blog_settings.COMMENT_MAX_LENGTH)
    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default=STATUS_APPROVED,
        db_index=True,
    )
    is_edited = models.BooleanField(default=False)
    edited_at = models.DateTimeField(null=True, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = CommentManager()

    class Meta:
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["post", "status", "created_at"]),
        ]

    def __str__(self):
        return f"Comment by {self.author} on {self.post}"

    @property
    def preview(self):
        """Return truncated body for admin display."""
        if len(self.content) > 100:
            return self.content[:100] + "..."
        return self.content

    @property
    def is_reply(self):
        return self.parent_id is not None

    @property
    def is_approved(self):
        return self.status == self.STATUS_APPROVED

    @property
    def thread_depth(self):
        """Calculate nesting depth of this comment."""
        depth = 0
        current = self.parent
        while current:
            depth += 1
            current = current.parent
        return depth

    def subtree_ids(self):
        """Primary keys of every comment transitively replying to this one."""
        found = []
        frontier = [self.pk]
        while frontier:
            children = list(
                Comment.objects.filter(parent_id__in=frontier).values_list("pk", flat=True)
            )
            listed = [
                pk
                for reply_ids in Comment.objects.filter(pk__in=frontier).values_list(
                    "reply_ids", flat=True
                )
                for pk in reply_ids
            ]
            frontier = [pk for pk in dict.fromkeys(children + listed) if pk not in found]
            found.extend(frontier)
        return found

    def resolved_replies(self, include_all=False):
        """Direct replies in ``reply_ids`` order, filtered by moderation status."""
        if not self.reply_ids:
            return []
        replies = Comment.objects.filter(pk__in=self.reply_ids).with_status(include_all)
        by_pk = {reply.pk: reply for reply in replies.select_related("author")}
        return [by_pk[pk] for pk in self.reply_ids if pk in by_pk]

    def edit(self, actor, content):
        """Replace the body and mark the comment edited."""
        ensure_can(actor, self, "update")
        self.content = sanitize_text(content)
        self.is_edited = True
        self.edited_at = timezone.now()
        self.save(update_fields=["content", "is_edited", "edited_at", "updated_at"])
        return self

    def delete_thread(self, actor):
        """
        Delete this comment and its entire reply subtree.

        Replies are never promoted. The comment's id is removed from its
        parent's reply list. Returns the number of comments deleted.
        """
        ensure_can(actor, self, "delete")

        with transaction.atomic():
            doomed = [self.pk] + self.subtree_ids()

            if self.parent_id is not None:
                parent = Comment.objects.select_for_update().filter(pk=self.parent_id).first()
                if parent is not None:
                    parent.reply_ids = [pk for pk in parent.reply_ids if pk != self.pk]
                    parent.save(update_fields=["reply_ids", "updated_at"])

            _, per_model = Comment.objects.filter(pk__in=doomed).delete()
            deleted = per_model.get(Comment._meta.label, 0)

        logger.info("Deleted comment %s with %d replies", self.pk, max(deleted - 1, 0))
        return deleted

    def toggle_like(self, user):
        """Toggle ``user``'s like. Returns (is_liked, likes_count)."""
        ensure_can(user, self, "like")
        if not self.is_approved:
            raise BusinessRuleViolation("Cannot like unapproved comments")
        return CommentLike.toggle(self, user)

    def is_liked_by(self, user):
        return CommentLike.is_liked_by(self, user)

    def moderate(self, actor, status):
        """Overwrite the moderation status. Administrators only."""
        ensure_can(actor, self, "moderate")
        if status not in dict(self.STATUS_CHOICES):
            raise ValidationFailed(
                [{"field": "status", "message": "Status must be pending, approved, rejected, or spam"}],
            )
        self.status = status
        self.save(update_fields=["status", "updated_at"])
        logger.info("Comment %s moderated to %s by user %s", self.pk, status, actor.pk)
        return self

    def as_dict(self, viewer=None, include_all=False, with_replies=True):
        """Denormalized view of the comment as seen by ``viewer``."""
        data = {
            "id": self.pk,
            "content": self.content,
            "author": author_summary(self.author),
            "post": self.post_id,
            "parentComment": self.parent_id,
            "status": self.status,
            "likesCount": self.likes.count(),
            "isLiked": self.is_liked_by(viewer),
            "isEdited": self.is_edited,
            "editedAt": isoformat(self.edited_at),
            "createdAt": isoformat(self.created_at),
            "updatedAt": isoformat(self.updated_at),
        }
        if with_replies:
            data["replies"] = [
                reply.as_dict(viewer, include_all=include_all, with_replies=False)
                for reply in self.resolved_replies(include_all)
            ]
        return data
