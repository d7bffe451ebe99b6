from django import forms
from django.contrib import admin, messages
from django.db import transaction
from .models import Course
from .serializers import cap_below_held_seats_message


class CourseAdminForm(forms.ModelForm):

    class Meta:
        model = Course
        exclude = ['enrolled_students']

    def clean_max_students(self):
        value = self.cleaned_data['max_students']
        if self.instance.pk:
            held = Course.objects.filter(pk=self.instance.pk).values_list('enrolled_students', flat=True).first() or 0
            if value < held:
                raise forms.ValidationError(cap_below_held_seats_message(held))
        return value


@admin.register(Course)
class CourseAdmin(admin.ModelAdmin):
    form = CourseAdminForm
    list_display = ['code', 'name', 'campus', 'city', 'max_students', 'enrolled_students', 'status']
    list_filter = ['status', 'campus', 'city']
    search_fields = ['code', 'name']
    readonly_fields = ['enrolled_students']

    def save_model(self, request, obj, form, change):
        if not change:
            super().save_model(request, obj, form, change)
            return

        changed = [field for field in form.changed_data if field != 'max_students']
        with transaction.atomic():
            if 'max_students' in form.changed_data and not Course.objects.set_max_students(obj.pk, obj.max_students):
                # Seats were reserved after the form was validated
                self.message_user(
                    request,
                    f"Seat cap of {obj.code} was not changed: more seats are held than {obj.max_students}.",
                    level=messages.ERROR,
                )
            # Seat columns are left to the ledger
            obj.save(update_fields=[*changed, 'updated_at'])
        obj.refresh_from_db(fields=['max_students', 'enrolled_students'])
