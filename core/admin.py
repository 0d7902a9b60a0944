from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import Milestone, Notification, Project, Proposal, Review, User


class UserAdmin(BaseUserAdmin):
    list_display = ('username', 'email', 'role', 'is_email_verified', 'is_active')
    list_filter = ('role', 'is_active', 'is_email_verified')
    fieldsets = BaseUserAdmin.fieldsets + (
        ('Marketplace', {'fields': (
            'role', 'bio', 'location', 'avatar', 'skills', 'portfolio_links', 'hourly_rate',
            'total_earnings', 'total_spent', 'rating', 'review_count', 'is_email_verified',
        )}),
    )
    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        (None, {'fields': ('email', 'role')}),
    )
    search_fields = ('username', 'email', 'first_name', 'last_name')
    ordering = ('username',)


admin.site.register(User, UserAdmin)


class ProjectAdmin(admin.ModelAdmin):
    list_display = ['title', 'id', 'client', 'freelancer', 'status', 'budget', 'created_at']
    list_filter = ['status', 'budget_type', 'category']
    search_fields = ['title', 'client__username']


admin.site.register(Project, ProjectAdmin)


class ProposalAdmin(admin.ModelAdmin):
    list_display = ['id', 'freelancer', 'project', 'status', 'proposed_budget', 'created_at']
    list_filter = ['status']
    search_fields = ['freelancer__username', 'project__title']


admin.site.register(Proposal, ProposalAdmin)


class MilestoneAdmin(admin.ModelAdmin):
    list_display = ['id', 'title', 'project', 'amount', 'status', 'due_date', 'approved_at', 'paid_at']
    list_filter = ['status']
    readonly_fields = ['payment_intent_id']


admin.site.register(Milestone, MilestoneAdmin)
admin.site.register(Notification)
admin.site.register(Review)
