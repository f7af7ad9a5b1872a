"""
Post, Category, and Tag models for django-blog-engine.
"""
import logging

from django.conf import settings
from django.db import IntegrityError, models, transaction
from django.db.models import Count, Q
from django.utils import timezone
from django.utils.text import slugify

from ..conf import blog_settings
from ..content import (
    estimate_read_time,
    make_excerpt,
    render_content,
    unique_slug,
)
from ..exceptions import BusinessRuleViolation
from ..permissions import ensure_can, is_admin, is_owner
from .likes import PostLike

logger = logging.getLogger(__name__)

SORT_FIELDS = {
    "publishedAt": "published_at",
    "createdAt": "created_at",
    "views": "view_count",
    "title": "title",
    "readTime": "read_time",
}


class Category(models.Model):
    """Category a post can be filed under. A post may have several."""

    name = models.CharField(max_length=blog_settings.CATEGORY_MAX_LENGTH, unique=True)
    slug = models.SlugField(max_length=blog_settings.CATEGORY_MAX_LENGTH, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["name"]
        verbose_name_plural = "Categories"

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = slugify(self.name)[:blog_settings.CATEGORY_MAX_LENGTH]
        super().save(*args, **kwargs)


class Tag(models.Model):
    """
    Flat, lowercase tag for posts.
    """

    name = models.CharField(max_length=blog_settings.TAG_MAX_LENGTH, unique=True)
    slug = models.SlugField(max_length=blog_settings.TAG_MAX_LENGTH, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        self.name = self.name.strip().lower()
        if not self.slug:
            self.slug = slugify(self.name)[:blog_settings.TAG_MAX_LENGTH]
        super().save(*args, **kwargs)


class PostQuerySet(models.QuerySet):
    def live(self):
        """Published posts whose publish time has passed."""
        return self.filter(
            status=Post.STATUS_PUBLISHED,
            published_at__lte=timezone.now(),
        )

    def visible_to(self, user, status=None):
        """
        Restrict to what ``user`` may list.

        Administrators see every status, optionally narrowed by ``status``.
        Everyone else only sees live posts.
        """
        if is_admin(user):
            if status:
                return self.filter(status=status)
            return self
        return self.live()

    def search(self, author=None, tags=None, categories=None, text=None,
               sort="publishedAt", order="desc"):
        qs = self
        if author:
            qs = qs.filter(author_id=author)
        if tags:
            qs = qs.filter(tags__name__in=[tag.strip().lower() for tag in tags])
        if categories:
            qs = qs.filter(categories__name__in=[c.strip() for c in categories])
        if text:
            qs = qs.filter(
                Q(title__icontains=text)
                | Q(content__icontains=text)
                | Q(tags__name__icontains=text)
            )
        if tags or categories or text:
            qs = qs.distinct()

        field = SORT_FIELDS.get(sort, "published_at")
        prefix = "" if order == "asc" else "-"
        return qs.order_by(f"{prefix}{field}", "-pk")

    def with_counts(self):
        return self.select_related("author").prefetch_related("tags", "categories").annotate(
            likes_total=Count("likes", distinct=True),
            comments_total=Count("comments", distinct=True),
        )


class PostManager(models.Manager.from_queryset(PostQuerySet)):
    def create_post(self, author, tags=None, categories=None, **fields):
        """
        Create a post owned by ``author``.

        Content is sanitized, the slug is made unique, read time and
        excerpt are derived. A slug lost to a concurrent writer is
        recomputed once before giving up.
        """
        post = self.model(author=author, **fields)
        post.content = render_content(post.content, post.is_markdown)
        post.derive_content_fields(excerpt_supplied=bool(post.excerpt))
        if post.is_published:
            post.published_at = timezone.now()

        with transaction.atomic():
            post.save_with_unique_slug(regenerate=True)
            post.set_taxonomy(tags=tags, categories=categories)

        logger.info("Post %s created by user %s", post.slug, author.pk)
        return post

    def popular(self, limit=10):
        return self.live().order_by("-view_count", "-published_at")[:limit]

    def recent(self, limit=10):
        return self.live().order_by("-published_at")[:limit]

    def categories(self):
        """Names of categories used by live posts."""
        return list(
            Category.objects.filter(posts__in=self.live())
            .distinct()
            .order_by("name")
            .values_list("name", flat=True)
        )


class Post(models.Model):
    """
    Blog post / article.

    Lifecycle:
    - created as a draft by its author
    - edited by the owner or an administrator
    - published, stamping ``published_at`` exactly once
    - deleted together with its comments, likes and stored images
    """

    STATUS_DRAFT = "draft"
    STATUS_PUBLISHED = "published"
    STATUS_ARCHIVED = "archived"
    STATUS_CHOICES = [
        (STATUS_DRAFT, "Draft"),
        (STATUS_PUBLISHED, "Published"),
        (STATUS_ARCHIVED, "Archived"),
    ]

    # Content
    title = models.CharField(max_length=blog_settings.TITLE_MAX_LENGTH)
    slug = models.SlugField(max_length=blog_settings.SLUG_MAX_LENGTH, unique=True)
    content = models.TextField(help_text="Sanitized HTML body")
    is_markdown = models.BooleanField(
        default=False,
        help_text="Content was submitted as Markdown and rendered to HTML",
    )
    excerpt = models.TextField(
        max_length=blog_settings.EXCERPT_MAX_LENGTH,
        blank=True,
        help_text="Optional manual excerpt. Auto-generated if blank.",
    )

    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="blog_posts",
    )

    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default=STATUS_DRAFT,
        db_index=True,
    )

    # Taxonomy
    tags = models.ManyToManyField(Tag, related_name="posts", blank=True)
    categories = models.ManyToManyField(Category, related_name="posts", blank=True)

    # Images held by the media service
    featured_image_url = models.URLField(max_length=500, blank=True)
    featured_image_public_id = models.CharField(max_length=255, blank=True)
    featured_image_alt = models.CharField(max_length=blog_settings.IMAGE_ALT_MAX_LENGTH, blank=True)
    images = models.JSONField(
        default=list,
        blank=True,
        help_text="List of {url, publicId, alt, caption} embedded in the body",
    )

    # SEO
    seo_meta_title = models.CharField(max_length=blog_settings.META_TITLE_MAX_LENGTH, blank=True)
    seo_meta_description = models.CharField(
        max_length=blog_settings.META_DESCRIPTION_MAX_LENGTH,
        blank=True,
    )
    seo_keywords = models.JSONField(default=list, blank=True)

    # Derived
    read_time = models.PositiveIntegerField(default=0, help_text="Minutes")
    view_count = models.PositiveIntegerField(default=0, db_index=True)

    # Publishing
    published_at = models.DateTimeField(
        null=True,
        blank=True,
        db_index=True,
        help_text="Set on the first transition into published, never changed after",
    )
    scheduled_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Informational only, nothing publishes on schedule",
    )

    # Timestamps
    last_modified = models.DateTimeField(default=timezone.now)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = PostManager()

    class Meta:
        ordering = ["-published_at", "-created_at"]
        indexes = [
            models.Index(fields=["author", "status"]),
            models.Index(fields=["status", "-published_at"]),
        ]

    def __str__(self):
        return self.title

    @property
    def is_published(self):
        return self.status == self.STATUS_PUBLISHED

    @property
    def is_scheduled(self):
        """Check if post carries a future schedule timestamp."""
        return bool(self.scheduled_at and self.scheduled_at > timezone.now())

    @property
    def image_public_ids(self):
        """External identifiers of every image attached to this post."""
        ids = []
        if self.featured_image_public_id:
            ids.append(self.featured_image_public_id)
        for image in self.images or []:
            if image.get("publicId"):
                ids.append(image["publicId"])
        return ids

    def derive_content_fields(self, excerpt_supplied=False):
        """Recompute read time and, when none was given, the excerpt."""
        self.read_time = estimate_read_time(self.content)
        self.last_modified = timezone.now()
        if not excerpt_supplied and not self.excerpt:
            self.excerpt = make_excerpt(self.content)

    def set_taxonomy(self, tags=None, categories=None):
        """Replace tags and/or categories; None leaves them untouched."""
        if tags is not None:
            names = []
            for name in tags:
                name = name.strip().lower()
                if name and name not in names:
                    names.append(name)
            self.tags.set([Tag.objects.get_or_create(name=name)[0] for name in names])
        if categories is not None:
            names = []
            for name in categories:
                name = name.strip()
                if name and name not in names:
                    names.append(name)
            self.categories.set([Category.objects.get_or_create(name=name)[0] for name in names])

    def save_with_unique_slug(self, regenerate=False):
        """
        Save, retrying once with a fresh slug on a unique-index collision.
        """
        if regenerate or not self.slug:
            self.slug = unique_slug(self.title, Post.objects.all(), exclude_pk=self.pk)
        try:
            with transaction.atomic():
                self.save()
            return
        except IntegrityError:
            logger.warning("Slug %s collided on save, retrying", self.slug)

        self.slug = unique_slug(self.title, Post.objects.all(), exclude_pk=self.pk)
        try:
            with transaction.atomic():
                self.save()
        except IntegrityError as exc:
            raise BusinessRuleViolation(
                "A post with the same slug was saved concurrently, please retry"
            ) from exc

    def apply_update(self, actor, fields):
        """
        Apply a partial update from ``actor``.

        Only fields present in ``fields`` change, and only their derived
        values are recomputed.
        """
        ensure_can(actor, self, "update")

        fields = dict(fields)
        tags = fields.pop("tags", None)
        categories = fields.pop("categories", None)
        title_changed = "title" in fields and fields["title"] != self.title
        content_changed = "content" in fields
        excerpt_supplied = bool(fields.get("excerpt"))

        for name, value in fields.items():
            setattr(self, name, value)

        if content_changed:
            self.content = render_content(self.content, self.is_markdown)
            self.derive_content_fields(excerpt_supplied=excerpt_supplied)

        if self.is_published and self.published_at is None:
            self.published_at = timezone.now()

        with transaction.atomic():
            self.save_with_unique_slug(regenerate=title_changed)
            self.set_taxonomy(tags=tags, categories=categories)
        return self

    def increment_view_count(self, viewer=None):
        """
        Increment view count atomically.

        Views by the author and views of unpublished posts are not counted.
        """
        if not self.is_published or is_owner(viewer, self):
            return False
        Post.objects.filter(pk=self.pk).update(view_count=models.F("view_count") + 1)
        self.view_count += 1
        return True

    def toggle_like(self, user):
        """Toggle ``user``'s like. Returns (is_liked, likes_count)."""
        ensure_can(user, self, "like")
        if not self.is_published:
            raise BusinessRuleViolation("Cannot like unpublished posts")
        return PostLike.toggle(self, user)

    def is_liked_by(self, user):
        return PostLike.is_liked_by(self, user)

    def delete_post(self, actor):
        """
        Delete the post, its comments and likes, then its stored images.

        Image deletion is best effort: failures are logged and the post
        stays deleted.
        """
        from ..media import get_media_backend

        ensure_can(actor, self, "delete")
        public_ids = self.image_public_ids
        slug = self.slug
        self.delete()
        logger.info("Post %s deleted by user %s", slug, actor.pk)

        if not public_ids:
            return
        backend = get_media_backend()
        for public_id in public_ids:
            try:
                backend.delete(public_id)
            except Exception:
                logger.exception("Failed to delete image %s for post %s", public_id, slug)

    def as_dict(self, viewer=None):
        """Denormalized view of the post as seen by ``viewer``."""
        likes_count = getattr(self, "likes_total", None)
        if likes_count is None:
            likes_count = self.likes.count()
        comments_count = getattr(self, "comments_total", None)
        if comments_count is None:
            comments_count = self.comments.count()

        return {
            "id": self.pk,
            "title": self.title,
            "slug": self.slug,
            "content": self.content,
            "isMarkdown": self.is_markdown,
            "excerpt": self.excerpt,
            "author": author_summary(self.author),
            "status": self.status,
            "tags": [tag.name for tag in self.tags.all()],
            "categories": [category.name for category in self.categories.all()],
            "featuredImage": {
                "url": self.featured_image_url,
                "publicId": self.featured_image_public_id,
                "alt": self.featured_image_alt,
            },
            "images": self.images,
            "seo": {
                "metaTitle": self.seo_meta_title,
                "metaDescription": self.seo_meta_description,
                "keywords": self.seo_keywords,
            },
            "readTime": self.read_time,
            "views": self.view_count,
            "likesCount": likes_count,
            "isLiked": self.is_liked_by(viewer),
            "commentsCount": comments_count,
            "publishedAt": isoformat(self.published_at),
            "scheduledAt": isoformat(self.scheduled_at),
            "isScheduled": self.is_scheduled,
            "lastModified": isoformat(self.last_modified),
            "createdAt": isoformat(self.created_at),
            "updatedAt": isoformat(self.updated_at),
        }


def author_summary(user):
    return {
        "id": user.pk,
        "username": user.get_username(),
        "firstName": getattr(user, "first_name", ""),
        "lastName": getattr(user, "last_name", ""),
    }


def isoformat(value):
    return value.isoformat() if value else None
