from django.db import transaction
from rest_framework import serializers
from .models import Course


def cap_below_held_seats_message(held):
    return f"Cannot go below the {held} seats already held."


class CourseSerializer(serializers.ModelSerializer):
    available_seats = serializers.IntegerField(read_only=True)
    is_full = serializers.BooleanField(read_only=True)
    display_status = serializers.CharField(read_only=True)

    class Meta:
        model = Course
        fields = ['id', 'code', 'name', 'description', 'duration', 'fees', 'instructor',
                  'campus', 'city', 'schedule', 'max_students', 'enrolled_students',
                  'available_seats', 'is_full', 'status', 'display_status', 'created_at']
        read_only_fields = ['enrolled_students', 'created_at']

    def validate_code(self, value):
        return value.strip().upper()

    def validate_max_students(self, value):
        if value < 1:
            raise serializers.ValidationError("A course needs at least one seat.")
        # Early answer only; update() re-checks against the live counter
        if self.instance and value < self.instance.enrolled_students:
            raise serializers.ValidationError(cap_below_held_seats_message(self.instance.enrolled_students))
        return value

    def update(self, instance, validated_data):
        validated_data = dict(validated_data)
        max_students = validated_data.pop('max_students', None)

        with transaction.atomic():
            if max_students is not None and not Course.objects.set_max_students(instance.pk, max_students):
                # A reservation landed after validation
                instance.refresh_from_db(fields=['enrolled_students'])
                raise serializers.ValidationError(
                    {'max_students': [cap_below_held_seats_message(instance.enrolled_students)]}
                )

            for attr, value in validated_data.items():
                setattr(instance, attr, value)
            # Never write back the seat columns read before the edit
            instance.save(update_fields=[*validated_data, 'updated_at'])

        instance.refresh_from_db(fields=['max_students', 'enrolled_students'])
        return instance
