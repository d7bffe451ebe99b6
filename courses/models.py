from django.db import models
from django.db.models import F, Q
from django.utils import timezone


class CourseQuerySet(models.QuerySet):
    """
    Storage-level operations on the seat counters.

    Every mutation of ``enrolled_students`` goes through one of the two
    conditional UPDATE statements below, so the check and the write happen in
    a single statement on the database side.
    """

    def conditional_increment_enrolled(self, course_id):
        """
        Increment ``enrolled_students`` by one only if the course is active and
        below its cap. Returns True when a row matched.
        """
        updated = self.filter(
            pk=course_id,
            status=Course.Status.ACTIVE,
            enrolled_students__lt=F('max_students'),
        ).update(
            enrolled_students=F('enrolled_students') + 1,
            updated_at=timezone.now(),
        )
        return updated == 1

    def decrement_enrolled(self, course_id):
        """Decrement ``enrolled_students`` floored at zero. Returns True when a row changed."""
        updated = self.filter(
            pk=course_id,
            enrolled_students__gt=0,
        ).update(
            enrolled_students=F('enrolled_students') - 1,
            updated_at=timezone.now(),
        )
        return updated == 1

    def set_max_students(self, course_id, max_students):
        """
        Change the cap only if the seats already held still fit under it.
        Returns False when the course is missing or holds more seats.
        """
        updated = self.filter(
            pk=course_id,
            enrolled_students__lte=max_students,
        ).update(
            max_students=max_students,
            updated_at=timezone.now(),
        )
        return updated == 1


class Course(models.Model):
    class Status(models.TextChoices):
        ACTIVE = 'active', 'Active'
        INACTIVE = 'inactive', 'Inactive'
        FULL = 'full', 'Full'

    code = models.CharField(max_length=20, unique=True)
    name = models.CharField(max_length=200)
    description = models.TextField()
    duration = models.CharField(max_length=50, help_text="e.g., 6 months")
    fees = models.PositiveIntegerField(default=0)
    instructor = models.CharField(max_length=100, blank=True)
    campus = models.CharField(max_length=100)
    city = models.CharField(max_length=100)
    schedule = models.CharField(max_length=100, blank=True, help_text="e.g., Mon/Wed 10:00-12:00")

    max_students = models.PositiveIntegerField()
    # Mutated only through CourseQuerySet conditional updates
    enrolled_students = models.PositiveIntegerField(default=0)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.ACTIVE)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = CourseQuerySet.as_manager()

    class Meta:
        ordering = ['name']
        indexes = [
            models.Index(fields=['status'], name='course_status_idx'),
            models.Index(fields=['campus', 'city'], name='course_campus_city_idx'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(max_students__gte=1),
                name='course_max_students_positive',
            ),
            models.CheckConstraint(
                condition=Q(enrolled_students__lte=F('max_students')),
                name='course_enrolled_not_exceed_max',
            ),
        ]

    def __str__(self):
        return f"{self.code} - {self.name}"

    def save(self, *args, **kwargs):
        if self.code:
            self.code = self.code.strip().upper()
        super().save(*args, **kwargs)

    @property
    def available_seats(self):
        return max(0, self.max_students - self.enrolled_students)

    @property
    def is_full(self):
        return self.enrolled_students >= self.max_students

    @property
    def display_status(self):
        """Status for listings; an active course without seats shows as full."""
        if self.status == self.Status.ACTIVE and self.is_full:
            return self.Status.FULL
        return self.status
