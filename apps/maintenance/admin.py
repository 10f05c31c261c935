from django.contrib import admin
from .models import ServiceRequest, ServiceRequestMessage


class MessageInline(admin.TabularInline):
    model = ServiceRequestMessage
    extra = 0
    readonly_fields = ['sender', 'content', 'created_at']


@admin.register(ServiceRequest)
class ServiceRequestAdmin(admin.ModelAdmin):
    list_display = ['title', 'category', 'status', 'user', 'assigned_to', 'created_at']
    list_filter = ['status', 'category']
    search_fields = ['title', 'description', 'user__email']
    raw_id_fields = ['user', 'assigned_to']
    inlines = [MessageInline]
