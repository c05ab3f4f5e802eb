"""
Social App URL Configuration
"""
from django.urls import path
from .views import (
    TimelineView,
    TrendingView,
    UserPostsView,
    PostCreateView,
    PostDetailView,
    PostShareView,
    ThreadView,
    CommentDetailView,
    CommentHideView,
    CommentExpandView,
    CommentHistoryView,
    PostReactionView,
    CommentReactionView,
    FollowView,
    FollowersView,
    FollowingView,
    FollowStatsView,
    SuggestedUsersView,
    MockAuthView,
    WhoAmIView
)

urlpatterns = [
    # Feeds
    path('feed/', TimelineView.as_view(), name='feed'),
    path('trending/', TrendingView.as_view(), name='trending'),

    # Posts
    path('posts/', PostCreateView.as_view(), name='post-create'),
    path('posts/<int:post_id>/', PostDetailView.as_view(), name='post-detail'),
    path('posts/<int:post_id>/share/', PostShareView.as_view(), name='post-share'),
    path('posts/<int:post_id>/comments/', ThreadView.as_view(), name='post-thread'),
    path('posts/<int:target_id>/reactions/', PostReactionView.as_view(), name='post-reactions'),

    # Comments
    path('comments/<int:comment_id>/', CommentDetailView.as_view(), name='comment-detail'),
    path('comments/<int:comment_id>/hide/', CommentHideView.as_view(), name='comment-hide'),
    path('comments/<int:comment_id>/thread/', CommentExpandView.as_view(), name='comment-expand'),
    path('comments/<int:comment_id>/history/', CommentHistoryView.as_view(), name='comment-history'),
    path('comments/<int:target_id>/reactions/', CommentReactionView.as_view(), name='comment-reactions'),

    # Users & follow graph
    path('users/suggested/', SuggestedUsersView.as_view(), name='user-suggestions'),
    path('users/<int:user_id>/posts/', UserPostsView.as_view(), name='user-posts'),
    path('users/<int:user_id>/follow/', FollowView.as_view(), name='user-follow'),
    path('users/<int:user_id>/followers/', FollowersView.as_view(), name='user-followers'),
    path('users/<int:user_id>/following/', FollowingView.as_view(), name='user-following'),
    path('users/<int:user_id>/follow-stats/', FollowStatsView.as_view(), name='user-follow-stats'),

    # Auth (development)
    path('auth/mock-login/', MockAuthView.as_view(), name='mock-login'),
    path('auth/whoami/', WhoAmIView.as_view(), name='whoami'),
]
