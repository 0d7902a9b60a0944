from django.urls import path

from .views import ProjectMessagesView, conversations

urlpatterns = [
    path('projects/<int:project_id>/messages/', ProjectMessagesView.as_view(), name='project-messages'),
    path('conversations/', conversations, name='conversations'),
]
