from django.contrib import admin
from .models import Apartment


@admin.register(Apartment)
class ApartmentAdmin(admin.ModelAdmin):
    list_display = ['apartment_number', 'building', 'floor', 'rent_price', 'status']
    list_filter = ['status', 'building']
    search_fields = ['apartment_number', 'building', 'description']
