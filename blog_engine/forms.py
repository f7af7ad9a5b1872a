"""
Request validation for the JSON API.

Forms are bound to the decoded JSON body. ``cleaned_fields()`` returns
model field names for the keys the client actually sent, so partial
updates touch nothing else.
"""
from django import forms
from django.core.exceptions import ValidationError
from django.core.validators import URLValidator

from .conf import blog_settings
from .models import Comment, Post


class StringListField(forms.Field):
    """A JSON array of strings, each no longer than ``item_max_length``."""

    def __init__(self, *args, item_max_length=None, item_label="Item", **kwargs):
        self.item_max_length = item_max_length
        self.item_label = item_label
        super().__init__(*args, **kwargs)

    def to_python(self, value):
        if value in self.empty_values:
            return []
        if isinstance(value, str):
            value = [part for part in value.split(",")]
        if not isinstance(value, (list, tuple)):
            raise ValidationError(f"{self.label or 'Value'} must be an array")
        items = []
        for item in value:
            if not isinstance(item, str):
                raise ValidationError(f"{self.item_label} must be a string")
            item = item.strip()
            if self.item_max_length and len(item) > self.item_max_length:
                raise ValidationError(
                    f"Each {self.item_label.lower()} cannot exceed {self.item_max_length} characters"
                )
            if item:
                items.append(item)
        return items


class ObjectField(forms.Field):
    """A JSON object."""

    def to_python(self, value):
        if value in self.empty_values:
            return {}
        if not isinstance(value, dict):
            raise ValidationError("Must be an object")
        return value


class JSONBooleanField(forms.Field):
    """A JSON boolean. Strings such as "true" are not accepted."""

    def to_python(self, value):
        if value is None or value == "":
            return False
        if not isinstance(value, bool):
            raise ValidationError(f"{self.label or 'Value'} must be a boolean")
        return value


class PostCreateForm(forms.Form):
    # body key -> model field, for simple fields
    FIELD_MAP = {
        "title": "title",
        "content": "content",
        "isMarkdown": "is_markdown",
        "excerpt": "excerpt",
        "status": "status",
        "scheduledAt": "scheduled_at",
        "tags": "tags",
        "categories": "categories",
    }

    title = forms.CharField(
        max_length=blog_settings.TITLE_MAX_LENGTH,
        error_messages={
            "required": "Title is required",
            "max_length": f"Title cannot exceed {blog_settings.TITLE_MAX_LENGTH} characters",
        },
    )
    content = forms.CharField(
        strip=False,
        error_messages={"required": "Content is required"},
    )
    isMarkdown = JSONBooleanField(required=False, label="isMarkdown")
    excerpt = forms.CharField(
        required=False,
        max_length=blog_settings.EXCERPT_MAX_LENGTH,
        error_messages={
            "max_length": f"Excerpt cannot exceed {blog_settings.EXCERPT_MAX_LENGTH} characters",
        },
    )
    status = forms.ChoiceField(
        required=False,
        choices=Post.STATUS_CHOICES,
        error_messages={"invalid_choice": "Status must be draft, published, or archived"},
    )
    tags = StringListField(
        required=False,
        item_max_length=blog_settings.TAG_MAX_LENGTH,
        item_label="Tag",
    )
    categories = StringListField(
        required=False,
        item_max_length=blog_settings.CATEGORY_MAX_LENGTH,
        item_label="Category",
    )
    scheduledAt = forms.DateTimeField(
        required=False,
        error_messages={"invalid": "Scheduled date must be a valid ISO 8601 date"},
    )
    seo = ObjectField(required=False)
    featuredImage = ObjectField(required=False)
    images = forms.JSONField(required=False)

    def __init__(self, data=None, **kwargs):
        super().__init__(data=data, **kwargs)
        self.sent = set((data or {}).keys())

    def clean_seo(self):
        seo = self.cleaned_data["seo"]
        errors = []
        meta_title = seo.get("metaTitle") or ""
        meta_description = seo.get("metaDescription") or ""
        if len(meta_title) > blog_settings.META_TITLE_MAX_LENGTH:
            errors.append(
                f"Meta title cannot exceed {blog_settings.META_TITLE_MAX_LENGTH} characters"
            )
        if len(meta_description) > blog_settings.META_DESCRIPTION_MAX_LENGTH:
            errors.append(
                f"Meta description cannot exceed {blog_settings.META_DESCRIPTION_MAX_LENGTH} characters"
            )
        keywords = seo.get("keywords") or []
        if not isinstance(keywords, list) or not all(isinstance(k, str) for k in keywords):
            errors.append("Keywords must be an array of strings")
        if errors:
            raise ValidationError(errors)
        return seo

    def clean_featuredImage(self):
        image = self.cleaned_data["featuredImage"]
        errors = []
        url = image.get("url") or ""
        if url:
            try:
                URLValidator()(url)
            except ValidationError:
                errors.append("Featured image URL must be valid")
        if len((image.get("alt") or "").strip()) > blog_settings.IMAGE_ALT_MAX_LENGTH:
            errors.append(
                f"Featured image alt text cannot exceed {blog_settings.IMAGE_ALT_MAX_LENGTH} characters"
            )
        if errors:
            raise ValidationError(errors)
        return image

    def clean_images(self):
        images = self.cleaned_data["images"] or []
        if not isinstance(images, list):
            raise ValidationError("Images must be an array")
        cleaned = []
        for image in images:
            if not isinstance(image, dict) or not image.get("url") or not image.get("publicId"):
                raise ValidationError("Each image needs a url and a publicId")
            cleaned.append({
                "url": image["url"],
                "publicId": image["publicId"],
                "alt": image.get("alt", ""),
                "caption": image.get("caption", ""),
            })
        return cleaned

    def cleaned_fields(self):
        """Model-ready values for every key present in the request body."""
        data = self.cleaned_data
        fields = {}
        for key, name in self.FIELD_MAP.items():
            if key in self.sent:
                fields[name] = data[key]
        if "status" in fields and not fields["status"]:
            fields.pop("status")

        if "seo" in self.sent:
            seo = data["seo"]
            fields["seo_meta_title"] = seo.get("metaTitle") or ""
            fields["seo_meta_description"] = seo.get("metaDescription") or ""
            fields["seo_keywords"] = [k.strip().lower() for k in seo.get("keywords") or []]

        if "featuredImage" in self.sent:
            image = data["featuredImage"]
            fields["featured_image_url"] = image.get("url") or ""
            fields["featured_image_public_id"] = image.get("publicId") or ""
            fields["featured_image_alt"] = (image.get("alt") or "").strip()

        if "images" in self.sent:
            fields["images"] = data["images"]
        return fields


class PostUpdateForm(PostCreateForm):
    """Every field optional, but title and content cannot be blanked."""

    def __init__(self, data=None, **kwargs):
        super().__init__(data=data, **kwargs)
        for name, field in self.fields.items():
            if name not in self.sent:
                field.required = False
        self.fields["title"].error_messages["required"] = "Title cannot be empty"
        self.fields["content"].error_messages["required"] = "Content cannot be empty"


class CommentCreateForm(forms.Form):
    content = forms.CharField(
        max_length=blog_settings.COMMENT_MAX_LENGTH,
        error_messages={
            "required": "Comment content is required",
            "max_length": f"Comment cannot exceed {blog_settings.COMMENT_MAX_LENGTH} characters",
        },
    )
    postId = forms.IntegerField(
        error_messages={
            "required": "Post ID is required",
            "invalid": "Invalid post ID",
        },
    )
    parentCommentId = forms.IntegerField(
        required=False,
        error_messages={"invalid": "Invalid parent comment ID"},
    )


class CommentUpdateForm(forms.Form):
    content = forms.CharField(
        max_length=blog_settings.COMMENT_MAX_LENGTH,
        error_messages={
            "required": "Comment content is required",
            "max_length": f"Comment cannot exceed {blog_settings.COMMENT_MAX_LENGTH} characters",
        },
    )


class ModerateForm(forms.Form):
    status = forms.ChoiceField(
        choices=Comment.STATUS_CHOICES,
        error_messages={
            "required": "Status must be pending, approved, rejected, or spam",
            "invalid_choice": "Status must be pending, approved, rejected, or spam",
        },
    )


class ImageUrlForm(forms.Form):
    imageUrl = forms.URLField(
        error_messages={
            "required": "Image URL is required",
            "invalid": "Image URL must be valid",
        },
    )
    alt = forms.CharField(required=False, max_length=blog_settings.IMAGE_ALT_MAX_LENGTH)
    caption = forms.CharField(required=False)


class ListQueryForm(forms.Form):
    """Paging parameters shared by the list endpoints."""

    page = forms.IntegerField(
        required=False,
        min_value=1,
        error_messages={
            "invalid": "Page must be a positive integer",
            "min_value": "Page must be a positive integer",
        },
    )
    limit = forms.IntegerField(
        required=False,
        min_value=1,
        error_messages={
            "invalid": "Limit must be a positive integer",
            "min_value": "Limit must be a positive integer",
        },
    )


class PostListQueryForm(ListQueryForm):
    author = forms.IntegerField(
        required=False,
        min_value=1,
        error_messages={
            "invalid": "Author must be a valid user ID",
            "min_value": "Author must be a valid user ID",
        },
    )
