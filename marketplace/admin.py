"""
Django admin configuration for marketplace accounts, plots and bookings.
"""

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.utils.translation import gettext_lazy as _

from .models import Booking, Plot, PlotDocument, PlotImage, User, UserDocument


class UserDocumentInline(admin.TabularInline):
    model = UserDocument
    extra = 0
    fields = ['name', 'file', 'uploaded_at']
    readonly_fields = ['uploaded_at']


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """
    Admin interface for marketplace accounts.

    Extends Django's UserAdmin with role and verification fields.
    ``is_verified`` is derived from the verification status on save, so it
    is shown read-only.
    """

    list_display = [
        'email',
        'name',
        'role',
        'verification_status',
        'is_verified',
        'is_active',
        'created_at',
    ]

    list_filter = [
        'role',
        'verification_status',
        'is_staff',
        'is_active',
        'created_at',
    ]

    search_fields = [
        'email',
        'username',
        'name',
        'phone_number',
    ]

    ordering = ['-created_at']

    fieldsets = (
        (None, {
            'fields': ('username', 'password')
        }),
        (_('Contact'), {
            'fields': ('name', 'email', 'phone_number', 'address')
        }),
        (_('Role & Verification'), {
            'fields': ('role', 'verification_status', 'is_verified', 'rejection_reason')
        }),
        (_('Permissions'), {
            'fields': (
                'is_active',
                'is_staff',
                'is_superuser',
                'groups',
                'user_permissions',
            ),
            'classes': ('collapse',),
        }),
        (_('Important Dates'), {
            'fields': ('last_login', 'date_joined', 'created_at', 'updated_at'),
            'classes': ('collapse',),
        }),
    )

    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': (
                'username',
                'email',
                'name',
                'password1',
                'password2',
                'role',
            ),
        }),
    )

    readonly_fields = ['is_verified', 'created_at', 'updated_at', 'last_login', 'date_joined']

    inlines = [UserDocumentInline]

    date_hierarchy = 'created_at'

    list_per_page = 25


class PlotImageInline(admin.TabularInline):
    model = PlotImage
    extra = 0
    fields = ['image', 'uploaded_at']
    readonly_fields = ['uploaded_at']


class PlotDocumentInline(admin.TabularInline):
    model = PlotDocument
    extra = 0
    fields = ['name', 'file', 'document_type', 'uploaded_at']
    readonly_fields = ['uploaded_at']


@admin.register(Plot)
class PlotAdmin(admin.ModelAdmin):
    """
    Admin interface for plot listings.

    Availability is maintained by booking approval and completion, so it is
    read-only here; use the ``reconcile_availability`` command to repair it.
    """

    list_display = [
        'title',
        'owner',
        'city',
        'soil_type',
        'size_value',
        'size_unit',
        'verification_status',
        'is_available',
        'created_at',
    ]

    list_filter = [
        'verification_status',
        'is_available',
        'soil_type',
        'water_availability',
        'created_at',
    ]

    search_fields = [
        'title',
        'description',
        'city',
        'postal_code',
        'owner__email',
    ]

    readonly_fields = ['is_available', 'created_at', 'updated_at']

    ordering = ['-created_at']

    date_hierarchy = 'created_at'

    list_per_page = 25

    inlines = [PlotImageInline, PlotDocumentInline]

    fieldsets = (
        (None, {
            'fields': ('owner', 'title', 'description', 'amenities')
        }),
        (_('Location'), {
            'fields': ('address', 'city', 'state', 'postal_code', 'latitude', 'longitude')
        }),
        (_('Land'), {
            'fields': ('size_value', 'size_unit', 'soil_type', 'water_availability')
        }),
        (_('Status'), {
            'fields': ('is_available', 'verification_status', 'rejection_reason')
        }),
        (_('Timestamps'), {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',),
        }),
    )


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    """
    Admin interface for bookings.

    Status changes go through the API so the plot's availability stays in
    step; the admin only displays them.
    """

    list_display = [
        'id',
        'plot',
        'gardener',
        'landowner',
        'start_date',
        'end_date',
        'status',
        'created_at',
    ]

    list_filter = [
        'status',
        'start_date',
        'created_at',
    ]

    search_fields = [
        'plot__title',
        'gardener__email',
        'landowner__email',
        'message',
    ]

    readonly_fields = [
        'plot', 'gardener', 'landowner', 'status', 'rejection_reason',
        'created_at', 'updated_at',
    ]

    ordering = ['-created_at']

    date_hierarchy = 'created_at'

    list_per_page = 25

    fieldsets = (
        (None, {
            'fields': ('plot', 'gardener', 'landowner')
        }),
        (_('Request'), {
            'fields': ('start_date', 'end_date', 'message')
        }),
        (_('Status'), {
            'fields': ('status', 'rejection_reason')
        }),
        (_('Timestamps'), {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',),
        }),
    )

    def has_add_permission(self, request):
        return False
