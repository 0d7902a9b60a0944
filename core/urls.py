from django.urls import path
from rest_framework_simplejwt.views import TokenRefreshView

from . import views

urlpatterns = [
    # Auth
    path('auth/register/', views.RegisterView.as_view(), name='register'),
    path('auth/login/', views.LoginView.as_view(), name='login'),
    path('auth/logout/', views.LogoutView.as_view(), name='logout'),
    path('auth/token/refresh/', TokenRefreshView.as_view(), name='token_refresh'),
    path('auth/me/', views.me, name='me'),

    # Projects
    path('projects/', views.ProjectListCreateView.as_view(), name='project-list'),
    path('projects/<int:project_id>/', views.ProjectDetailView.as_view(), name='project-detail'),

    # Proposals
    path('projects/<int:project_id>/proposals/', views.ProjectProposalsView.as_view(), name='project-proposals'),
    path('proposals/mine/', views.my_proposals, name='my-proposals'),
    path('proposals/<int:proposal_id>/accept/', views.accept_proposal, name='accept-proposal'),
    path('proposals/<int:proposal_id>/reject/', views.reject_proposal, name='reject-proposal'),

    # Users, search and reviews
    path('users/profile/', views.ProfileUpdateView.as_view(), name='profile-update'),
    path('users/<int:user_id>/', views.user_detail, name='user-detail'),
    path('search/freelancers/', views.search_freelancers, name='search-freelancers'),
    path('reviews/', views.create_review, name='create-review'),

    # Notifications
    path('notifications/', views.NotificationListView.as_view(), name='notification-list'),
    path('notifications/read-all/', views.mark_all_notifications_read, name='notifications-read-all'),
    path('notifications/<int:notification_id>/read/', views.mark_notification_read, name='notification-read'),
]
