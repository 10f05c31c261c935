from django.contrib import admin
from django.contrib.auth.admin import UserAdmin
from .models import User


@admin.register(User)
class StayEaseUserAdmin(UserAdmin):
    list_display = ['email', 'full_name', 'role', 'status', 'apartment_id', 'date_joined']
    list_filter = ['role', 'status']
    search_fields = ['email', 'full_name', 'phone']
    ordering = ['-date_joined']
    fieldsets = UserAdmin.fieldsets + (
        ('StayEase', {
            'fields': (
                'org_id', 'full_name', 'phone', 'avatar_url', 'role', 'status',
                'apartment_id', 'move_in_date', 'lease_start_date', 'lease_end_date',
                'monthly_rent', 'deposit_amount',
            )
        }),
    )
