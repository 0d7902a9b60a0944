from django.contrib import admin

from .models import ConversationRollup, Message


class MessageAdmin(admin.ModelAdmin):
    list_display = ['id', 'project', 'sender', 'receiver', 'is_read', 'created_at']
    list_filter = ['is_read']
    search_fields = ['content', 'sender__username', 'receiver__username']


admin.site.register(Message, MessageAdmin)
admin.site.register(ConversationRollup)
