from rest_framework import serializers
from .models import Student

PERSONAL_FIELDS = [
    'full_name', 'father_name', 'cnic', 'father_cnic', 'date_of_birth', 'gender',
    'phone', 'address', 'city', 'country',
    'last_qualification', 'computer_proficiency', 'has_laptop',
    'class_preference', 'profile_picture',
]


class EnrollmentDetailSerializer(serializers.Serializer):
    batch_number = serializers.CharField(max_length=50)
    roll_number = serializers.CharField(max_length=50)
    campus = serializers.CharField(min_length=2, max_length=100)
    enrolled_at = serializers.DateTimeField(read_only=True)


class StudentSerializer(serializers.ModelSerializer):
    course_code = serializers.CharField(source='course.code', read_only=True)
    course_name = serializers.CharField(source='course.name', read_only=True)
    email = serializers.EmailField(source='user.email', read_only=True)
    enrollment = EnrollmentDetailSerializer(read_only=True, allow_null=True)

    class Meta:
        model = Student
        fields = ['id', 'registration_number', 'user', 'email'] + PERSONAL_FIELDS + [
            'course', 'course_code', 'course_name', 'status', 'enrollment',
            'total_fees', 'paid_amount', 'payment_status', 'uploaded_at',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields


class RegistrationSubmitSerializer(serializers.ModelSerializer):
    """Applicant input for a new registration. Uniqueness is checked by the service."""
    # Resolved by the seat ledger so a missing course maps to CourseNotFound
    course = serializers.IntegerField()

    class Meta:
        model = Student
        fields = PERSONAL_FIELDS + ['course']
        extra_kwargs = {'cnic': {'validators': []}}


class RegistrationUpdateSerializer(serializers.ModelSerializer):

    class Meta:
        model = Student
        fields = PERSONAL_FIELDS
        extra_kwargs = {'cnic': {'validators': []}}


class StatusChangeSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Student.Status.choices)
    enrollment = EnrollmentDetailSerializer(required=False)


class PaymentInfoSerializer(serializers.Serializer):
    total_fees = serializers.IntegerField(min_value=0, required=False)
    paid_amount = serializers.IntegerField(min_value=0, required=False)
    payment_status = serializers.ChoiceField(choices=Student.PaymentStatus.choices, required=False)


class RegistrationStatusSerializer(serializers.ModelSerializer):
    course_code = serializers.CharField(source='course.code', read_only=True)
    course_name = serializers.CharField(source='course.name', read_only=True)

    class Meta:
        model = Student
        fields = ['registration_number', 'full_name', 'status', 'course_code', 'course_name']
