from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from .models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ['username', 'email', 'role', 'email_verified', 'is_staff']
    list_filter = ['role', 'email_verified', 'is_staff']
    fieldsets = BaseUserAdmin.fieldsets + (
        ('Portal', {'fields': ('role', 'email_verified')}),
    )
