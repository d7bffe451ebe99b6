from django.db import models
from django.db.models import Q
from django.conf import settings


class StudentQuerySet(models.QuerySet):

    def find_by_applicant_or_national_id(self, applicant_id, cnic):
        """Registrations owned by the account or carrying the same national ID."""
        return self.filter(Q(user_id=applicant_id) | Q(cnic=cnic))

    def update_status(self, student_id, old_status, new_status, **fields):
        """
        Write the new status only if the stored status is still ``old_status``.
        Returns True when the row matched.
        """
        updated = self.filter(pk=student_id, status=old_status).update(status=new_status, **fields)
        return updated == 1


class Student(models.Model):
    """
    An applicant's registration for exactly one course.

    The seat held against ``course`` counts from creation until the
    registration is rejected or deleted.
    """

    class Status(models.TextChoices):
        PENDING = 'pending', 'Pending'
        APPROVED = 'approved', 'Approved'
        REJECTED = 'rejected', 'Rejected'
        ENROLLED = 'enrolled', 'Enrolled'

    class Gender(models.TextChoices):
        MALE = 'Male', 'Male'
        FEMALE = 'Female', 'Female'
        OTHER = 'Other', 'Other'

    class Proficiency(models.TextChoices):
        BEGINNER = 'Beginner', 'Beginner'
        INTERMEDIATE = 'Intermediate', 'Intermediate'
        ADVANCED = 'Advanced', 'Advanced'

    class ClassPreference(models.TextChoices):
        MORNING = 'Morning', 'Morning'
        EVENING = 'Evening', 'Evening'
        WEEKEND = 'Weekend', 'Weekend'

    class PaymentStatus(models.TextChoices):
        PENDING = 'pending', 'Pending'
        PARTIAL = 'partial', 'Partial'
        PAID = 'paid', 'Paid'

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='registration'
    )
    registration_number = models.CharField(max_length=20, unique=True, editable=False)

    # Personal info
    full_name = models.CharField(max_length=100)
    father_name = models.CharField(max_length=100)
    cnic = models.CharField(max_length=13, unique=True, help_text="National ID, 13 digits")
    father_cnic = models.CharField(max_length=13, blank=True)
    date_of_birth = models.DateField()
    gender = models.CharField(max_length=10, choices=Gender.choices)
    phone = models.CharField(max_length=15)
    address = models.CharField(max_length=500)
    city = models.CharField(max_length=50)
    country = models.CharField(max_length=50)

    # Educational background
    last_qualification = models.CharField(max_length=100)
    computer_proficiency = models.CharField(max_length=20, choices=Proficiency.choices)
    has_laptop = models.BooleanField(default=False)

    # Course selection, fixed at creation
    course = models.ForeignKey(
        'courses.Course',
        on_delete=models.PROTECT,
        related_name='registrations'
    )
    class_preference = models.CharField(max_length=10, choices=ClassPreference.choices)

    # Documents are stored by the upload service; only the URL is kept here
    profile_picture = models.URLField(max_length=500, blank=True)
    uploaded_at = models.DateTimeField(null=True, blank=True)

    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)

    # Set on transition to enrolled
    batch_number = models.CharField(max_length=50, blank=True)
    roll_number = models.CharField(max_length=50, blank=True)
    campus = models.CharField(max_length=100, blank=True)
    enrolled_at = models.DateTimeField(null=True, blank=True)

    total_fees = models.PositiveIntegerField(default=0)
    paid_amount = models.PositiveIntegerField(default=0)
    payment_status = models.CharField(max_length=10, choices=PaymentStatus.choices, default=PaymentStatus.PENDING)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = StudentQuerySet.as_manager()

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status'], name='student_status_idx'),
            models.Index(fields=['course', 'status'], name='student_course_status_idx'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=~Q(status='enrolled') | (
                    ~Q(batch_number='') & ~Q(roll_number='') & ~Q(campus='') & Q(enrolled_at__isnull=False)
                ),
                name='student_enrolled_has_enrollment',
            ),
        ]

    def __str__(self):
        return f"{self.registration_number} - {self.full_name}"

    @property
    def holds_seat(self):
        return self.status != self.Status.REJECTED

    @property
    def enrollment(self):
        """Enrollment detail, present only once the student is enrolled."""
        if self.status != self.Status.ENROLLED:
            return None
        return {
            'batch_number': self.batch_number,
            'roll_number': self.roll_number,
            'campus': self.campus,
            'enrolled_at': self.enrolled_at,
        }


class RegistrationSequence(models.Model):
    """Last registration sequence number issued in a calendar year."""
    year = models.PositiveIntegerField(unique=True)
    last_issued = models.PositiveIntegerField(default=0)

    def __str__(self):
        return f"{self.year}: {self.last_issued}"
