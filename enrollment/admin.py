from django.contrib import admin
from .models import Student, RegistrationSequence


@admin.register(Student)
class StudentAdmin(admin.ModelAdmin):
    list_display = ['registration_number', 'full_name', 'cnic', 'course', 'status', 'payment_status', 'created_at']
    list_filter = ['status', 'payment_status', 'course__campus', 'class_preference']
    search_fields = ['registration_number', 'full_name', 'cnic', 'user__email']
    raw_id_fields = ['user', 'course']
    # Status and seats change only through EnrollmentService
    readonly_fields = ['registration_number', 'status', 'batch_number', 'roll_number', 'campus', 'enrolled_at']


@admin.register(RegistrationSequence)
class RegistrationSequenceAdmin(admin.ModelAdmin):
    list_display = ['year', 'last_issued']
    readonly_fields = ['year', 'last_issued']
