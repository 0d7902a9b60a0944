from django.urls import path

from . import views

urlpatterns = [
    path('projects/<int:project_id>/milestones/', views.ProjectMilestonesView.as_view(), name='project-milestones'),
    path('milestones/<int:milestone_id>/submit/', views.submit_milestone, name='submit-milestone'),
    path('milestones/<int:milestone_id>/approve/', views.approve_milestone, name='approve-milestone'),
    path('milestones/<int:milestone_id>/reject/', views.reject_milestone, name='reject-milestone'),
    path('milestones/<int:milestone_id>/payment-intent/', views.create_payment_intent, name='milestone-payment-intent'),
    path('milestones/<int:milestone_id>/confirm-payment/', views.confirm_payment, name='milestone-confirm-payment'),

    path('finance/webhooks/razorpay/', views.razorpay_webhook, name='razorpay-webhook'),
]
