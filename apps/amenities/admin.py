from django.contrib import admin
from .models import Amenity


@admin.register(Amenity)
class AmenityAdmin(admin.ModelAdmin):
    list_display = ['name', 'amenity_type', 'status', 'pricing_type', 'price_amount', 'booking_required']
    list_filter = ['amenity_type', 'status', 'pricing_type']
    search_fields = ['name', 'description', 'location']
