"""
Django admin configuration for blog_engine.
"""
from django.contrib import admin
from django.utils import timezone

from .content import render_content
from .models import (
    Category,
    Tag,
    Post,
    Comment,
    PostLike,
    CommentLike,
)


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ["name", "slug", "created_at"]
    search_fields = ["name", "slug"]
    prepopulated_fields = {"slug": ("name",)}


@admin.register(Tag)
class TagAdmin(admin.ModelAdmin):
    list_display = ["name", "slug", "created_at"]
    search_fields = ["name", "slug"]
    prepopulated_fields = {"slug": ("name",)}
    readonly_fields = ["created_at"]


@admin.register(Post)
class PostAdmin(admin.ModelAdmin):
    list_display = [
        "title_preview",
        "author",
        "status",
        "view_count",
        "read_time",
        "published_at",
        "created_at",
    ]
    list_filter = ["status", "categories", "created_at"]
    search_fields = ["title", "content", "author__username"]
    raw_id_fields = ["author"]
    filter_horizontal = ["tags", "categories"]
    date_hierarchy = "created_at"
    readonly_fields = [
        "slug",
        "read_time",
        "view_count",
        "published_at",
        "last_modified",
        "created_at",
        "updated_at",
    ]

    fieldsets = (
        (None, {
            "fields": ("title", "slug", "content", "is_markdown", "excerpt", "author")
        }),
        ("Taxonomy", {
            "fields": ("tags", "categories")
        }),
        ("Status", {
            "fields": ("status", "scheduled_at", "published_at")
        }),
        ("Images", {
            "fields": (
                "featured_image_url",
                "featured_image_public_id",
                "featured_image_alt",
                "images",
            ),
            "classes": ("collapse",),
        }),
        ("SEO", {
            "fields": ("seo_meta_title", "seo_meta_description", "seo_keywords"),
            "classes": ("collapse",),
        }),
        ("Metadata", {
            "fields": ("read_time", "view_count", "last_modified", "created_at", "updated_at"),
            "classes": ("collapse",),
        }),
    )

    actions = ["publish_posts", "archive_posts"]

    def save_model(self, request, obj, form, change):
        """Run the same derivations as the API before saving."""
        if not change or "content" in form.changed_data:
            obj.content = render_content(obj.content, obj.is_markdown)
            obj.derive_content_fields(excerpt_supplied=bool(obj.excerpt))
        if obj.is_published and obj.published_at is None:
            obj.published_at = timezone.now()
        obj.save_with_unique_slug(regenerate=not change or "title" in form.changed_data)

    def title_preview(self, obj):
        """Truncated title for list display."""
        return obj.title[:60] + "..." if len(obj.title) > 60 else obj.title

    title_preview.short_description = "Title"

    @admin.action(description="Publish selected posts")
    def publish_posts(self, request, queryset):
        for post in queryset:
            post.apply_update(request.user, {"status": Post.STATUS_PUBLISHED})
        self.message_user(request, f"{queryset.count()} posts published.")

    @admin.action(description="Archive selected posts")
    def archive_posts(self, request, queryset):
        for post in queryset:
            post.apply_update(request.user, {"status": Post.STATUS_ARCHIVED})
        self.message_user(request, f"{queryset.count()} posts archived.")


@admin.register(Comment)
class CommentAdmin(admin.ModelAdmin):
    list_display = [
        "preview",
        "author",
        "post",
        "status",
        "is_edited",
        "created_at",
    ]
    list_filter = ["status", "is_edited", "created_at"]
    search_fields = ["content", "author__username", "post__title"]
    raw_id_fields = ["post", "author", "parent"]
    readonly_fields = ["reply_ids", "edited_at", "ip_address", "user_agent", "created_at", "updated_at"]
    actions = ["approve_comments", "reject_comments", "mark_spam"]

    def _moderate(self, request, queryset, status):
        count = 0
        for comment in queryset:
            comment.moderate(request.user, status)
            count += 1
        return count

    @admin.action(description="Approve selected comments")
    def approve_comments(self, request, queryset):
        count = self._moderate(request, queryset, Comment.STATUS_APPROVED)
        self.message_user(request, f"{count} comments approved.")

    @admin.action(description="Reject selected comments")
    def reject_comments(self, request, queryset):
        count = self._moderate(request, queryset, Comment.STATUS_REJECTED)
        self.message_user(request, f"{count} comments rejected.")

    @admin.action(description="Mark selected comments as spam")
    def mark_spam(self, request, queryset):
        count = self._moderate(request, queryset, Comment.STATUS_SPAM)
        self.message_user(request, f"{count} comments marked as spam.")


@admin.register(PostLike)
class PostLikeAdmin(admin.ModelAdmin):
    list_display = ["user", "post", "created_at"]
    search_fields = ["user__username", "post__title"]
    raw_id_fields = ["user", "post"]


@admin.register(CommentLike)
class CommentLikeAdmin(admin.ModelAdmin):
    list_display = ["user", "comment", "created_at"]
    search_fields = ["user__username"]
    raw_id_fields = ["user", "comment"]
