"""
JSON API views for django-blog-engine.

Every response has the shape ``{"message", "success", "data"?}``; errors
add ``"errors"`` for per-field validation failures.
"""
import json
import logging
import math

from django.http import JsonResponse
from django.utils import timezone
from django.utils.decorators import method_decorator
from django.views import View
from django.views.decorators.csrf import csrf_exempt

from .conf import blog_settings
from .exceptions import (
    AuthenticationRequired,
    BlogEngineError,
    NotFound,
    PermissionDenied,
    ValidationFailed,
)
from .forms import (
    CommentCreateForm,
    CommentUpdateForm,
    ImageUrlForm,
    ListQueryForm,
    ModerateForm,
    PostCreateForm,
    PostListQueryForm,
    PostUpdateForm,
)
from .media import get_media_backend
from .models import Comment, Post
from .permissions import can, ensure_can, is_admin

logger = logging.getLogger(__name__)


def api_response(message, data=None, status=200):
    body = {"message": message, "success": True}
    if data is not None:
        body["data"] = data
    return JsonResponse(body, status=status)


def error_response(exc):
    body = {"message": exc.message, "success": False}
    if getattr(exc, "errors", None):
        body["errors"] = exc.errors
    return JsonResponse(body, status=exc.status_code)


def parse_int(value, default, minimum=1, maximum=None):
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    number = max(number, minimum)
    if maximum is not None:
        number = min(number, maximum)
    return number


def parse_list(value):
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def paginate(queryset, query, default_limit):
    """Slice ``queryset`` by the validated ``page``/``limit`` of a ``ListQueryForm``."""
    page = query.get("page") or 1
    limit = min(query.get("limit") or default_limit, blog_settings.MAX_PAGE_SIZE)
    total = queryset.count()
    offset = (page - 1) * limit
    items = list(queryset[offset:offset + limit])
    pagination = {
        "current": page,
        "pages": math.ceil(total / limit),
        "total": total,
        "limit": limit,
    }
    return items, pagination


def client_ip(request):
    forwarded = request.META.get("HTTP_X_FORWARDED_FOR", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.META.get("REMOTE_ADDR")


@method_decorator(csrf_exempt, name="dispatch")
class APIView(View):
    """
    Base view translating blog_engine errors into JSON responses.

    Unexpected exceptions are logged and reported as a generic failure.
    """

    failure_message = "Request failed"

    def dispatch(self, request, *args, **kwargs):
        try:
            return super().dispatch(request, *args, **kwargs)
        except BlogEngineError as exc:
            return error_response(exc)
        except Exception:
            logger.exception("Unhandled error in %s", type(self).__name__)
            return JsonResponse({"message": self.failure_message, "success": False}, status=500)

    def http_method_not_allowed(self, request, *args, **kwargs):
        return JsonResponse({"message": "Method not allowed", "success": False}, status=405)

    @property
    def user(self):
        user = self.request.user
        return user if user.is_authenticated else None

    def require_user(self):
        if self.user is None:
            raise AuthenticationRequired()
        return self.user

    def json_body(self):
        if not self.request.body:
            return {}
        try:
            body = json.loads(self.request.body)
        except (TypeError, ValueError):
            raise ValidationFailed(message="Request body must be valid JSON") from None
        if not isinstance(body, dict):
            raise ValidationFailed(message="Request body must be a JSON object")
        return body

    def validate(self, form):
        if not form.is_valid():
            raise ValidationFailed.from_form(form)
        return form


def get_post(pk):
    try:
        return Post.objects.select_related("author").get(pk=pk)
    except Post.DoesNotExist:
        raise NotFound("Post not found") from None


def get_comment(pk):
    try:
        return Comment.objects.select_related("author", "post").get(pk=pk)
    except Comment.DoesNotExist:
        raise NotFound("Comment not found") from None


class PostListView(APIView):
    """List posts, create a post."""

    failure_message = "Failed to retrieve posts"

    def get(self, request):
        params = request.GET
        query = self.validate(PostListQueryForm(params)).cleaned_data
        categories = parse_list(params.get("categories")) or parse_list(params.get("category"))
        qs = (
            Post.objects.visible_to(self.user, status=params.get("status"))
            .search(
                author=query["author"],
                tags=parse_list(params.get("tags")),
                categories=categories,
                text=params.get("search", "").strip(),
                sort=params.get("sort", "publishedAt"),
                order=params.get("order", "desc"),
            )
            .with_counts()
        )
        posts, pagination = paginate(qs, query, blog_settings.POSTS_PER_PAGE)
        return api_response(
            "Posts retrieved successfully",
            {"posts": [post.as_dict(self.user) for post in posts], "pagination": pagination},
        )

    def post(self, request):
        self.failure_message = "Failed to create blog post"
        user = self.require_user()
        ensure_can(user, None, "create")
        form = self.validate(PostCreateForm(self.json_body()))
        post = Post.objects.create_post(user, **form.cleaned_fields())
        return api_response("Blog post created successfully", {"post": post.as_dict(user)}, status=201)


class PopularPostsView(APIView):
    failure_message = "Failed to retrieve popular posts"

    def get(self, request):
        limit = parse_int(request.GET.get("limit"), 10, maximum=blog_settings.MAX_PAGE_SIZE)
        posts = Post.objects.popular(limit)
        return api_response(
            "Popular posts retrieved successfully",
            {"posts": [post.as_dict(self.user) for post in posts]},
        )


class RecentPostsView(APIView):
    failure_message = "Failed to retrieve recent posts"

    def get(self, request):
        limit = parse_int(request.GET.get("limit"), 10, maximum=blog_settings.MAX_PAGE_SIZE)
        posts = Post.objects.recent(limit)
        return api_response(
            "Recent posts retrieved successfully",
            {"posts": [post.as_dict(self.user) for post in posts]},
        )


class CategoryListView(APIView):
    failure_message = "Failed to retrieve categories"

    def get(self, request):
        return api_response(
            "Categories retrieved successfully",
            {"categories": Post.objects.categories()},
        )


class PostDetailBySlugView(APIView):
    """Single post by slug. Counts a view for readers other than the author."""

    failure_message = "Failed to retrieve post"

    def get(self, request, slug):
        post = Post.objects.select_related("author").filter(slug=slug.lower()).first()
        if post is None:
            raise NotFound("Post not found")
        if not can(self.user, post, "view"):
            raise PermissionDenied()
        post.increment_view_count(self.user)
        return api_response("Post retrieved successfully", {"post": post.as_dict(self.user)})


class PostDetailView(APIView):
    """Update or delete a post by id."""

    def put(self, request, pk):
        self.failure_message = "Failed to update post"
        user = self.require_user()
        post = get_post(pk)
        ensure_can(user, post, "update")
        form = self.validate(PostUpdateForm(self.json_body()))
        post.apply_update(user, form.cleaned_fields())
        return api_response("Post updated successfully", {"post": post.as_dict(user)})

    def delete(self, request, pk):
        self.failure_message = "Failed to delete post"
        user = self.require_user()
        get_post(pk).delete_post(user)
        return api_response("Post deleted successfully")


class PostLikeView(APIView):
    failure_message = "Failed to toggle like"

    def post(self, request, pk):
        user = self.require_user()
        is_liked, likes_count = get_post(pk).toggle_like(user)
        return api_response(
            "Like toggled successfully",
            {"likesCount": likes_count, "isLiked": is_liked},
        )


class ImageUploadView(APIView):
    failure_message = "Failed to upload image"

    def post(self, request):
        user = self.require_user()
        ensure_can(user, None, "upload")
        file_obj = request.FILES.get("image")
        if file_obj is None:
            raise ValidationFailed(message="No image file provided")
        image = get_media_backend().upload(file_obj)
        return api_response("Image uploaded successfully", {"image": image})


class MultipleImageUploadView(APIView):
    failure_message = "Failed to upload images"

    def post(self, request):
        user = self.require_user()
        ensure_can(user, None, "upload")
        files = request.FILES.getlist("images")
        if not files:
            raise ValidationFailed(message="No image files provided")
        if len(files) > blog_settings.MEDIA_MAX_FILES:
            raise ValidationFailed(
                message=f"At most {blog_settings.MEDIA_MAX_FILES} images can be uploaded at once"
            )
        backend = get_media_backend()
        images = [backend.upload(file_obj, field="images") for file_obj in files]
        return api_response("Images uploaded successfully", {"images": images})


class ImageFromUrlView(APIView):
    failure_message = "Failed to upload image"

    def post(self, request):
        user = self.require_user()
        ensure_can(user, None, "upload")
        form = self.validate(ImageUrlForm(self.json_body()))
        image = get_media_backend().upload_from_url(form.cleaned_data["imageUrl"])
        image["alt"] = form.cleaned_data["alt"]
        image["caption"] = form.cleaned_data["caption"]
        return api_response("Image uploaded successfully", {"image": image})


class ImageDeleteView(APIView):
    failure_message = "Failed to delete image"

    def delete(self, request, public_id):
        user = self.require_user()
        ensure_can(user, None, "upload")
        if not get_media_backend().delete(public_id):
            raise NotFound("Image not found")
        return api_response("Image deleted successfully")


class PostCommentsView(APIView):
    """Comments for a post, top-level first with resolved replies."""

    failure_message = "Failed to retrieve comments"

    def get(self, request, post_id):
        post = get_post(post_id)
        if not can(self.user, post, "view"):
            raise PermissionDenied()
        params = request.GET
        query = self.validate(ListQueryForm(params)).cleaned_data
        include_all = params.get("includeAll") == "true" and is_admin(self.user)
        include_replies = params.get("includeReplies") == "true"
        sort = "oldest" if params.get("sort") == "oldest" else "newest"

        qs = Comment.objects.for_post(
            post,
            include_all=include_all,
            include_replies=include_replies,
            sort=sort,
        )
        comments, pagination = paginate(qs, query, blog_settings.COMMENTS_PER_PAGE)
        return api_response(
            "Comments retrieved successfully",
            {
                "comments": [
                    comment.as_dict(self.user, include_all=include_all, with_replies=not include_replies)
                    for comment in comments
                ],
                "pagination": pagination,
            },
        )


class CommentStatsView(APIView):
    failure_message = "Failed to retrieve comment statistics"

    def get(self, request, post_id):
        self.require_user()
        post = get_post(post_id)
        return api_response(
            "Comment statistics retrieved successfully",
            {"stats": Comment.objects.stats(post)},
        )


class CommentCreateView(APIView):
    failure_message = "Failed to create comment"

    def post(self, request):
        user = self.require_user()
        form = self.validate(CommentCreateForm(self.json_body()))
        post = get_post(form.cleaned_data["postId"])

        parent = None
        parent_id = form.cleaned_data.get("parentCommentId")
        if parent_id:
            parent = Comment.objects.filter(pk=parent_id).first()
            if parent is None:
                raise NotFound("Parent comment not found")

        comment = Comment.objects.create_comment(
            author=user,
            post=post,
            content=form.cleaned_data["content"],
            parent=parent,
            ip_address=client_ip(request),
            user_agent=request.META.get("HTTP_USER_AGENT", ""),
        )
        return api_response(
            "Comment created successfully",
            {"comment": comment.as_dict(user)},
            status=201,
        )


class CommentDetailView(APIView):
    def put(self, request, pk):
        self.failure_message = "Failed to update comment"
        user = self.require_user()
        comment = get_comment(pk)
        ensure_can(user, comment, "update")
        form = self.validate(CommentUpdateForm(self.json_body()))
        comment.edit(user, form.cleaned_data["content"])
        return api_response("Comment updated successfully", {"comment": comment.as_dict(user)})

    def delete(self, request, pk):
        self.failure_message = "Failed to delete comment"
        user = self.require_user()
        deleted = get_comment(pk).delete_thread(user)
        return api_response("Comment deleted successfully", {"deleted": deleted})


class CommentLikeView(APIView):
    failure_message = "Failed to toggle like"

    def post(self, request, pk):
        user = self.require_user()
        is_liked, likes_count = get_comment(pk).toggle_like(user)
        return api_response(
            "Like toggled successfully",
            {"likesCount": likes_count, "isLiked": is_liked},
        )


class CommentModerateView(APIView):
    failure_message = "Failed to moderate comment"

    def put(self, request, pk):
        user = self.require_user()
        ensure_can(user, None, "moderate")
        form = self.validate(ModerateForm(self.json_body()))
        comment = get_comment(pk).moderate(user, form.cleaned_data["status"])
        return api_response(
            "Comment moderated successfully",
            {"comment": comment.as_dict(user, include_all=True)},
        )


class HealthView(APIView):
    def get(self, request):
        return api_response(
            "Blog service is running",
            {"timestamp": timezone.now().isoformat()},
        )
