"""
Entry point used by the API layer for everything that changes a registration.

Submitting a registration crosses two transactions: the seat reservation
commits on its own so the course row is locked only for one statement, and
the registration number plus the student row commit together afterwards.
When the second part fails the seat is handed back (compensating release).
"""
import logging

from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone

from .exceptions import (
    DuplicateApplication,
    InvalidRegistration,
    InvalidTransition,
    NotFound,
    RegistrationLocked,
    StorageUnavailable,
)
from .ledger import CourseCapacityLedger
from .lifecycle import RegistrationLifecycle
from .models import Student
from .sequence import SequenceAllocator
from .signals import notify_registration_submitted

logger = logging.getLogger(__name__)

# Applicant-owned fields, editable while the registration is pending
PROFILE_FIELDS = (
    'full_name', 'father_name', 'cnic', 'father_cnic', 'date_of_birth', 'gender',
    'phone', 'address', 'city', 'country',
    'last_qualification', 'computer_proficiency', 'has_laptop',
    'class_preference', 'profile_picture',
)

PAYMENT_FIELDS = ('total_fees', 'paid_amount', 'payment_status')


class EnrollmentService:

    def __init__(self, ledger=None, allocator=None, lifecycle=None):
        self.ledger = ledger or CourseCapacityLedger()
        self.allocator = allocator or SequenceAllocator()
        self.lifecycle = lifecycle or RegistrationLifecycle(ledger=self.ledger)

    def submit(self, applicant_id, course_id, personal_data):
        """
        Register an applicant for a course.

        Raises DuplicateApplication, CourseNotFound, CourseInactive, CourseFull,
        InvalidRegistration or StorageUnavailable. The seat is handed back
        whenever the registration itself cannot be saved. A retried submission
        is caught by the duplicate check before it can reserve a second seat.
        """
        cnic = personal_data.get('cnic')
        if self._is_duplicate(applicant_id, cnic):
            raise DuplicateApplication()

        reservation = self.ledger.try_reserve_seat(course_id)

        try:
            student = self._create_student(applicant_id, reservation.course_id, personal_data)
        except IntegrityError as e:
            # Lost a race against a concurrent submission for the same account or CNIC
            self._compensate(reservation, applicant_id)
            if self._is_duplicate(applicant_id, cnic):
                raise DuplicateApplication() from e
            # Constraint violated by the input itself; retrying would fail the same way
            logger.warning(f"Registration for applicant {applicant_id} rejected by the database: {e}")
            raise InvalidRegistration() from e
        except StorageUnavailable:
            self._compensate(reservation, applicant_id)
            raise
        except DatabaseError as e:
            self._compensate(reservation, applicant_id)
            raise StorageUnavailable('Registration could not be saved') from e
        except Exception:
            # Bad field values surface from model field prep, not from the database
            self._compensate(reservation, applicant_id)
            raise

        transaction.on_commit(lambda: notify_registration_submitted(student.pk))
        logger.info(f"Registration {student.registration_number} submitted for course {course_id}")
        return student

    def change_status(self, student_id, new_status, enrollment_detail=None):
        if new_status not in Student.Status.values:
            raise InvalidTransition(f"Unknown status '{new_status}'")
        return self.lifecycle.transition(student_id, new_status, enrollment_detail)

    def update_registration(self, applicant_id, changes):
        """Apply the owner's profile edits; only allowed while pending."""
        try:
            with transaction.atomic():
                student = Student.objects.select_for_update().filter(user_id=applicant_id).first()
                if student is None:
                    raise NotFound()
                if student.status != Student.Status.PENDING:
                    raise RegistrationLocked()

                for field, value in changes.items():
                    if field in PROFILE_FIELDS:
                        setattr(student, field, value)
                if 'profile_picture' in changes:
                    student.uploaded_at = timezone.now()
                student.save()
        except IntegrityError as e:
            raise DuplicateApplication('Another registration already uses this CNIC') from e
        except DatabaseError as e:
            raise StorageUnavailable() from e
        return student

    def attach_payment_info(self, student_id, **payment):
        """Record fees and payments. Independent of the status lifecycle."""
        fields = {field: payment[field] for field in PAYMENT_FIELDS if payment.get(field) is not None}
        try:
            if fields:
                updated = Student.objects.filter(pk=student_id).update(updated_at=timezone.now(), **fields)
            else:
                updated = Student.objects.filter(pk=student_id).count()
            if not updated:
                raise NotFound()
            return Student.objects.get(pk=student_id)
        except DatabaseError as e:
            raise StorageUnavailable() from e

    def withdraw(self, student_id):
        """Delete a registration, handing its seat back unless it was already rejected."""
        try:
            with transaction.atomic():
                student = Student.objects.select_for_update().filter(pk=student_id).first()
                if student is None:
                    raise NotFound()
                holds_seat = student.holds_seat
                course_id = student.course_id
                registration_number = student.registration_number
                student.delete()
                if holds_seat:
                    self.ledger.release_seat(course_id)
        except DatabaseError as e:
            raise StorageUnavailable() from e
        logger.info(f"Registration {registration_number} withdrawn")

    def _is_duplicate(self, applicant_id, cnic):
        try:
            return Student.objects.find_by_applicant_or_national_id(applicant_id, cnic).exists()
        except DatabaseError as e:
            raise StorageUnavailable() from e

    def _create_student(self, applicant_id, course_id, personal_data):
        fields = {field: personal_data[field] for field in PROFILE_FIELDS if field in personal_data}
        if fields.get('profile_picture'):
            fields['uploaded_at'] = timezone.now()

        with transaction.atomic():
            year = timezone.localdate().year
            sequence = self.allocator.next(year)
            return Student.objects.create(
                user_id=applicant_id,
                course_id=course_id,
                registration_number=self.allocator.registration_number(year, sequence),
                status=Student.Status.PENDING,
                **fields,
            )

    def _compensate(self, reservation, applicant_id):
        try:
            released = self.ledger.release_seat(reservation.course_id)
        except StorageUnavailable:
            logger.error(
                f"consistency risk: seat in course {reservation.course_id} reserved for "
                f"applicant {applicant_id} could not be released after a failed registration; "
                f"the course may be over-counted until reconcile_seats runs"
            )
            raise
        if not released:
            logger.warning(
                f"Compensating release for applicant {applicant_id} found course "
                f"{reservation.course_id} already at zero"
            )
