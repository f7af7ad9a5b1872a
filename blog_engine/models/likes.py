"""
Like ledgers for posts and comments.
"""
from django.conf import settings
from django.db import IntegrityError, models, transaction


class LikeBase(models.Model):
    """
    One row per (target, user) recording who liked what.

    Subclasses set ``target_field`` to the name of their foreign key.
    Rows are kept in insertion order.
    """

    target_field = None

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        abstract = True
        ordering = ["created_at", "pk"]

    @classmethod
    def toggle(cls, target, user):
        """
        Add the user's like if absent, remove it if present.

        Calling twice with the same user restores the original ledger.

        Returns (is_liked, likes_count)
        """
        lookup = {cls.target_field: target, "user": user}
        with transaction.atomic():
            deleted, _ = cls.objects.filter(**lookup).delete()
            if not deleted:
                try:
                    with transaction.atomic():
                        cls.objects.create(**lookup)
                except IntegrityError:
                    # Created by a concurrent toggle; the like stands.
                    pass
            count = cls.objects.filter(**{cls.target_field: target}).count()
        return not deleted, count

    @classmethod
    def is_liked_by(cls, target, user):
        if user is None or not user.is_authenticated:
            return False
        return cls.objects.filter(**{cls.target_field: target, "user": user}).exists()


class PostLike(LikeBase):
    target_field = "post"

    post = models.ForeignKey(
        "blog_engine.Post",
        on_delete=models.CASCADE,
        related_name="likes",
    )

    class Meta(LikeBase.Meta):
        constraints = [
            models.UniqueConstraint(fields=["post", "user"], name="unique_post_like"),
        ]

    def __str__(self):
        return f"{self.user} likes {self.post}"


class CommentLike(LikeBase):
    target_field = "comment"

    comment = models.ForeignKey(
        "blog_engine.Comment",
        on_delete=models.CASCADE,
        related_name="likes",
    )

    class Meta(LikeBase.Meta):
        constraints = [
            models.UniqueConstraint(fields=["comment", "user"], name="unique_comment_like"),
        ]

    def __str__(self):
        return f"{self.user} likes comment {self.comment_id}"
