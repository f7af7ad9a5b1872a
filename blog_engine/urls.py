"""
URL configuration for django-blog-engine.

Include in your project urls.py:

    path('api/', include('blog_engine.urls')),
"""
from django.urls import path

from . import views

app_name = "blog_engine"

urlpatterns = [
    # Posts
    path("posts/", views.PostListView.as_view(), name="post_list"),
    path("posts/popular/", views.PopularPostsView.as_view(), name="post_popular"),
    path("posts/recent/", views.RecentPostsView.as_view(), name="post_recent"),
    path("posts/categories/", views.CategoryListView.as_view(), name="post_categories"),
    path("posts/slug/<slug:slug>/", views.PostDetailBySlugView.as_view(), name="post_detail_slug"),
    path("posts/<int:pk>/", views.PostDetailView.as_view(), name="post_detail"),
    path("posts/<int:pk>/like/", views.PostLikeView.as_view(), name="post_like"),

    # Images
    path("posts/images/upload/", views.ImageUploadView.as_view(), name="image_upload"),
    path(
        "posts/images/upload-multiple/",
        views.MultipleImageUploadView.as_view(),
        name="image_upload_multiple",
    ),
    path("posts/images/upload-url/", views.ImageFromUrlView.as_view(), name="image_upload_url"),
    path("posts/images/<path:public_id>/", views.ImageDeleteView.as_view(), name="image_delete"),

    # Comments
    path("comments/", views.CommentCreateView.as_view(), name="comment_create"),
    path("comments/post/<int:post_id>/", views.PostCommentsView.as_view(), name="comment_list"),
    path(
        "comments/post/<int:post_id>/stats/",
        views.CommentStatsView.as_view(),
        name="comment_stats",
    ),
    path("comments/<int:pk>/", views.CommentDetailView.as_view(), name="comment_detail"),
    path("comments/<int:pk>/like/", views.CommentLikeView.as_view(), name="comment_like"),
    path("comments/<int:pk>/moderate/", views.CommentModerateView.as_view(), name="comment_moderate"),

    # Health
    path("health/", views.HealthView.as_view(), name="health"),
]
