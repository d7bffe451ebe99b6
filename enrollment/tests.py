from concurrent.futures import ThreadPoolExecutor
from datetime import date
from io import StringIO
from unittest import mock, skipUnless

from django.contrib.auth import get_user_model
from django.core import mail
from django.core.exceptions import ValidationError
from django.core.management import call_command
from django.db import IntegrityError, OperationalError, connection, transaction
from django.db.models import F
from django.test import TestCase, TransactionTestCase
from django.utils import timezone
from rest_framework.test import APIClient

from courses.models import Course
from enrollment.exceptions import (
    CourseFull, CourseInactive, CourseNotFound, DuplicateApplication,
    InvalidRegistration, InvalidTransition, NotFound, RegistrationLocked, StorageUnavailable,
)
from enrollment.ledger import CourseCapacityLedger
from enrollment.lifecycle import TRANSITIONS
from enrollment.models import RegistrationSequence, Student
from enrollment.sequence import SequenceAllocator
from enrollment.services import EnrollmentService
from enrollment.signals import status_changed

User = get_user_model()

ENROLLMENT_DETAIL = {'batch_number': 'B-11', 'roll_number': 'WMA-042', 'campus': 'Bahadurabad'}


def make_course(code='WMA01', max_students=30, enrolled_students=0, status=Course.Status.ACTIVE):
    return Course.objects.create(
        code=code,
        name='Web and Mobile App Development',
        description='Full stack web and mobile development',
        duration='12 months',
        campus='Bahadurabad',
        city='Karachi',
        max_students=max_students,
        enrolled_students=enrolled_students,
        status=status,
    )


def make_applicant(username):
    return User.objects.create_user(
        username=username,
        email=f'{username}@test.com',
        password='testpass123',
        role='STUDENT'
    )


def personal_data(cnic='4210112345671', **overrides):
    data = {
        'full_name': 'Ayesha Khan',
        'father_name': 'Imran Khan',
        'cnic': cnic,
        'date_of_birth': date(2001, 5, 17),
        'gender': 'Female',
        'phone': '03001234567',
        'address': '12 Main Boulevard, Gulshan',
        'city': 'Karachi',
        'country': 'Pakistan',
        'last_qualification': 'Intermediate',
        'computer_proficiency': 'Beginner',
        'has_laptop': True,
        'class_preference': 'Morning',
        'profile_picture': 'https://res.cloudinary.com/demo/image/upload/ayesha.jpg',
    }
    data.update(overrides)
    return data


class SequenceAllocatorTestCase(TestCase):
    """Test cases for per-year registration numbers"""

    def setUp(self):
        self.allocator = SequenceAllocator()

    def test_numbers_increase_within_a_year(self):
        numbers = [self.allocator.next(2026) for _ in range(5)]
        self.assertEqual(numbers, [1, 2, 3, 4, 5])
        self.assertEqual(RegistrationSequence.objects.get(year=2026).last_issued, 5)

    def test_years_have_independent_counters(self):
        self.allocator.next(2025)
        self.allocator.next(2025)
        self.assertEqual(self.allocator.next(2026), 1)
        self.assertEqual(self.allocator.next(2025), 3)

    def test_counter_created_lazily(self):
        self.assertFalse(RegistrationSequence.objects.filter(year=2030).exists())
        self.allocator.next(2030)
        self.assertTrue(RegistrationSequence.objects.filter(year=2030).exists())

    def test_registration_number_format(self):
        self.assertEqual(self.allocator.registration_number(2026, 7), 'SMIT20260007')
        self.assertEqual(self.allocator.registration_number(2026, 12345), 'SMIT202612345')

    def test_storage_failure_raises_storage_unavailable(self):
        with mock.patch.object(
            RegistrationSequence.objects, 'get_or_create',
            side_effect=OperationalError('could not connect to server')
        ):
            with self.assertRaises(StorageUnavailable):
                self.allocator.next(2026)


class CourseCapacityLedgerTestCase(TestCase):
    """Test cases for atomic seat accounting"""

    def setUp(self):
        self.ledger = CourseCapacityLedger()

    def test_reserve_increments_counter(self):
        course = make_course(max_students=3)
        reservation = self.ledger.try_reserve_seat(course.id)

        self.assertEqual(reservation.course_id, course.id)
        course.refresh_from_db()
        self.assertEqual(course.enrolled_students, 1)

    def test_only_remaining_seats_are_granted(self):
        """N attempts against K remaining seats: exactly K succeed"""
        course = make_course(max_students=5, enrolled_students=2)
        granted, refused = 0, 0
        for _ in range(7):
            try:
                self.ledger.try_reserve_seat(course.id)
                granted += 1
            except CourseFull:
                refused += 1

        self.assertEqual(granted, 3)
        self.assertEqual(refused, 4)
        course.refresh_from_db()
        self.assertEqual(course.enrolled_students, 5)

    def test_inactive_course_refused(self):
        course = make_course(status=Course.Status.INACTIVE)
        with self.assertRaises(CourseInactive):
            self.ledger.try_reserve_seat(course.id)
        course.refresh_from_db()
        self.assertEqual(course.enrolled_students, 0)

    def test_course_marked_full_by_status_is_refused_as_inactive(self):
        course = make_course(status=Course.Status.FULL)
        with self.assertRaises(CourseInactive):
            self.ledger.try_reserve_seat(course.id)

    def test_inactive_wins_over_full(self):
        course = make_course(max_students=1, enrolled_students=1, status=Course.Status.INACTIVE)
        with self.assertRaises(CourseInactive):
            self.ledger.try_reserve_seat(course.id)

    def test_unknown_course(self):
        with self.assertRaises(CourseNotFound):
            self.ledger.try_reserve_seat(999999)

    def test_release_decrements_counter(self):
        course = make_course(max_students=3, enrolled_students=2)
        self.assertTrue(self.ledger.release_seat(course.id))
        course.refresh_from_db()
        self.assertEqual(course.enrolled_students, 1)

    def test_release_at_zero_is_noop(self):
        course = make_course(max_students=3)
        self.assertFalse(self.ledger.release_seat(course.id))
        self.assertFalse(self.ledger.release_seat(course.id))
        course.refresh_from_db()
        self.assertEqual(course.enrolled_students, 0)

    def test_available_seats_is_read_only(self):
        course = make_course(max_students=4, enrolled_students=1)
        self.assertEqual(self.ledger.available_seats(course.id), 3)
        self.assertEqual(self.ledger.available_seats(course.id), 3)
        course.refresh_from_db()
        self.assertEqual(course.enrolled_students, 1)

    def test_available_seats_unknown_course(self):
        with self.assertRaises(CourseNotFound):
            self.ledger.available_seats(999999)

    def test_database_rejects_counter_above_cap(self):
        course = make_course(max_students=2, enrolled_students=2)
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                Course.objects.filter(pk=course.pk).update(enrolled_students=F('max_students') + 1)

    def test_storage_failure_raises_storage_unavailable(self):
        course = make_course()
        with mock.patch.object(
            Course.objects, 'conditional_increment_enrolled',
            side_effect=OperationalError('server closed the connection')
        ):
            with self.assertRaises(StorageUnavailable):
                self.ledger.try_reserve_seat(course.id)


class RegistrationLifecycleTestCase(TestCase):
    """Test cases for the registration status state machine"""

    def setUp(self):
        self.course = make_course(max_students=10)
        self.service = EnrollmentService()
        self.lifecycle = self.service.lifecycle
        self.applicant = make_applicant('applicant')
        self.student = self.service.submit(self.applicant.id, self.course.id, personal_data())

    def assertSeats(self, expected):
        self.course.refresh_from_db()
        self.assertEqual(self.course.enrolled_students, expected)

    def test_transition_table(self):
        self.assertEqual(len(TRANSITIONS), 5)
        self.assertTrue(TRANSITIONS[('pending', 'rejected')].releases_seat)
        self.assertTrue(TRANSITIONS[('approved', 'rejected')].releases_seat)
        self.assertTrue(TRANSITIONS[('approved', 'enrolled')].requires_enrollment)
        self.assertTrue(TRANSITIONS[('pending', 'enrolled')].requires_enrollment)
        self.assertNotIn(('rejected', 'pending'), TRANSITIONS)

    def test_pending_to_approved_keeps_seat(self):
        student = self.lifecycle.transition(self.student.id, 'approved')
        self.assertEqual(student.status, 'approved')
        self.assertIsNone(student.enrollment)
        self.assertSeats(1)

    def test_pending_to_rejected_releases_seat(self):
        student = self.lifecycle.transition(self.student.id, 'rejected')
        self.assertEqual(student.status, 'rejected')
        self.assertIsNone(student.enrollment)
        self.assertSeats(0)

    def test_approved_to_rejected_releases_seat(self):
        self.lifecycle.transition(self.student.id, 'approved')
        student = self.lifecycle.transition(self.student.id, 'rejected')
        self.assertEqual(student.status, 'rejected')
        self.assertSeats(0)

    def test_approved_to_enrolled_populates_enrollment(self):
        self.lifecycle.transition(self.student.id, 'approved')
        before = timezone.now()
        student = self.lifecycle.transition(self.student.id, 'enrolled', ENROLLMENT_DETAIL)

        self.assertEqual(student.status, 'enrolled')
        self.assertEqual(student.batch_number, 'B-11')
        self.assertEqual(student.roll_number, 'WMA-042')
        self.assertEqual(student.campus, 'Bahadurabad')
        self.assertGreaterEqual(student.enrolled_at, before)
        self.assertSeats(1)

    def test_pending_to_enrolled_fast_path(self):
        student = self.lifecycle.transition(self.student.id, 'enrolled', ENROLLMENT_DETAIL)
        self.assertEqual(student.status, 'enrolled')
        self.assertIsNotNone(student.enrollment)
        self.assertSeats(1)

    def test_enroll_without_detail_is_invalid(self):
        with self.assertRaises(InvalidTransition):
            self.lifecycle.transition(self.student.id, 'enrolled')
        with self.assertRaises(InvalidTransition):
            self.lifecycle.transition(self.student.id, 'enrolled', {'batch_number': 'B-11', 'campus': ''})

        self.student.refresh_from_db()
        self.assertEqual(self.student.status, 'pending')

    def test_rejected_is_terminal(self):
        self.lifecycle.transition(self.student.id, 'rejected')
        self.assertSeats(0)

        for target in ('pending', 'approved', 'rejected', 'enrolled'):
            with self.assertRaises(InvalidTransition):
                self.lifecycle.transition(self.student.id, target, ENROLLMENT_DETAIL)

        self.student.refresh_from_db()
        self.assertEqual(self.student.status, 'rejected')
        self.assertIsNone(self.student.enrollment)
        self.assertEqual(self.student.batch_number, '')
        self.assertSeats(0)

    def test_enrolled_is_terminal(self):
        self.lifecycle.transition(self.student.id, 'enrolled', ENROLLMENT_DETAIL)

        for target in ('pending', 'approved', 'rejected'):
            with self.assertRaises(InvalidTransition):
                self.lifecycle.transition(self.student.id, target)

        self.student.refresh_from_db()
        self.assertEqual(self.student.status, 'enrolled')
        self.assertEqual(self.student.roll_number, 'WMA-042')
        self.assertSeats(1)

    def test_same_status_is_invalid(self):
        with self.assertRaises(InvalidTransition):
            self.lifecycle.transition(self.student.id, 'pending')

    def test_unknown_student(self):
        with self.assertRaises(NotFound):
            self.lifecycle.transition(999999, 'approved')

    def test_failed_release_leaves_status_unchanged(self):
        with mock.patch.object(self.lifecycle.ledger, 'release_seat', side_effect=StorageUnavailable()):
            with self.assertRaises(StorageUnavailable):
                self.lifecycle.transition(self.student.id, 'rejected')

        self.student.refresh_from_db()
        self.assertEqual(self.student.status, 'pending')
        self.assertSeats(1)

    def test_status_change_notifies_after_commit(self):
        mail.outbox.clear()
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            self.lifecycle.transition(self.student.id, 'approved')

        self.assertEqual(len(callbacks), 1)
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn('APPROVED', mail.outbox[0].subject)
        self.assertEqual(mail.outbox[0].to, ['applicant@test.com'])

    def test_enrolled_notification_includes_roll_number(self):
        mail.outbox.clear()
        with self.captureOnCommitCallbacks(execute=True):
            self.lifecycle.transition(self.student.id, 'enrolled', ENROLLMENT_DETAIL)

        self.assertIn('WMA-042', mail.outbox[0].body)

    def test_no_notification_for_invalid_transition(self):
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            with self.assertRaises(InvalidTransition):
                self.lifecycle.transition(self.student.id, 'pending')
        self.assertEqual(callbacks, [])

    def test_notification_failure_does_not_block_transition(self):
        def broken_receiver(sender, **kwargs):
            raise ConnectionError('broker down')

        status_changed.connect(broken_receiver, weak=False)
        self.addCleanup(status_changed.disconnect, broken_receiver)

        with self.assertLogs('enrollment.signals', level='WARNING') as logs:
            with self.captureOnCommitCallbacks(execute=True):
                student = self.lifecycle.transition(self.student.id, 'approved')

        self.assertEqual(student.status, 'approved')
        self.assertTrue(any('broker down' in line for line in logs.output))
        self.student.refresh_from_db()
        self.assertEqual(self.student.status, 'approved')


class EnrollmentServiceTestCase(TestCase):
    """Test cases for submitting and managing registrations"""

    def setUp(self):
        self.service = EnrollmentService()
        self.course = make_course(max_students=2)
        self.applicant_a = make_applicant('applicant_a')
        self.applicant_b = make_applicant('applicant_b')
        self.year = timezone.localdate().year

    def assertSeats(self, expected, course=None):
        course = course or self.course
        course.refresh_from_db()
        self.assertEqual(course.enrolled_students, expected)

    def test_submit_creates_pending_registration(self):
        student = self.service.submit(self.applicant_a.id, self.course.id, personal_data())

        self.assertEqual(student.status, 'pending')
        self.assertEqual(student.registration_number, f'SMIT{self.year}0001')
        self.assertEqual(student.course_id, self.course.id)
        self.assertEqual(student.user_id, self.applicant_a.id)
        self.assertIsNone(student.enrollment)
        self.assertIsNotNone(student.uploaded_at)
        self.assertSeats(1)

    def test_registration_numbers_are_distinct(self):
        course = make_course(code='PY01', max_students=10)
        numbers = set()
        for i in range(5):
            applicant = make_applicant(f'bulk{i}')
            student = self.service.submit(applicant.id, course.id, personal_data(cnic=f'421010000000{i}'))
            numbers.add(student.registration_number)

        self.assertEqual(len(numbers), 5)
        self.assertIn(f'SMIT{self.year}0005', numbers)

    def test_numbers_are_not_reused_after_rejection(self):
        first = self.service.submit(self.applicant_a.id, self.course.id, personal_data())
        self.service.change_status(first.id, 'rejected')
        second = self.service.submit(self.applicant_b.id, self.course.id, personal_data(cnic='4210199999999'))
        self.assertNotEqual(first.registration_number, second.registration_number)

    def test_duplicate_applicant_rejected_without_consuming_seat(self):
        self.service.submit(self.applicant_a.id, self.course.id, personal_data())
        with self.assertRaises(DuplicateApplication):
            self.service.submit(self.applicant_a.id, self.course.id, personal_data(cnic='4210199999999'))
        self.assertSeats(1)

    def test_duplicate_national_id_rejected_without_consuming_seat(self):
        self.service.submit(self.applicant_a.id, self.course.id, personal_data())
        with self.assertRaises(DuplicateApplication):
            self.service.submit(self.applicant_b.id, self.course.id, personal_data())
        self.assertSeats(1)
        self.assertEqual(Student.objects.count(), 1)

    def test_retry_after_success_does_not_reserve_second_seat(self):
        self.service.submit(self.applicant_a.id, self.course.id, personal_data())
        with self.assertRaises(DuplicateApplication):
            self.service.submit(self.applicant_a.id, self.course.id, personal_data())
        self.assertSeats(1)

    def test_last_seat_goes_to_one_applicant(self):
        course = make_course(code='GD01', max_students=1)
        winner = self.service.submit(self.applicant_a.id, course.id, personal_data())

        with self.assertRaises(CourseFull):
            self.service.submit(self.applicant_b.id, course.id, personal_data(cnic='4210199999999'))

        self.assertEqual(winner.status, 'pending')
        self.assertSeats(1, course)
        self.assertFalse(Student.objects.filter(user=self.applicant_b).exists())

    def test_course_errors_propagate_unchanged(self):
        inactive = make_course(code='DM01', status=Course.Status.INACTIVE)
        with self.assertRaises(CourseInactive):
            self.service.submit(self.applicant_a.id, inactive.id, personal_data())
        with self.assertRaises(CourseNotFound):
            self.service.submit(self.applicant_a.id, 999999, personal_data())
        self.assertFalse(Student.objects.exists())

    def test_failed_write_releases_reserved_seat(self):
        with mock.patch.object(Student.objects, 'create', side_effect=OperationalError('disk I/O error')):
            with self.assertRaises(StorageUnavailable):
                self.service.submit(self.applicant_a.id, self.course.id, personal_data())

        self.assertSeats(0)
        self.assertFalse(Student.objects.exists())

    def test_invalid_field_value_releases_reserved_seat(self):
        with self.assertRaises(ValidationError):
            self.service.submit(self.applicant_a.id, self.course.id, personal_data(date_of_birth='not-a-date'))

        self.assertSeats(0)
        self.assertFalse(Student.objects.exists())

    def test_constraint_violation_is_not_retryable(self):
        with mock.patch.object(
            Student.objects, 'create',
            side_effect=IntegrityError('NOT NULL constraint failed: enrollment_student.full_name')
        ):
            with self.assertRaises(InvalidRegistration) as ctx:
                self.service.submit(self.applicant_a.id, self.course.id, personal_data())

        self.assertFalse(ctx.exception.retryable)
        self.assertEqual(ctx.exception.status_code, 400)
        self.assertSeats(0)

    def test_failed_sequence_releases_reserved_seat(self):
        with mock.patch.object(self.service.allocator, 'next', side_effect=StorageUnavailable()):
            with self.assertRaises(StorageUnavailable):
                self.service.submit(self.applicant_a.id, self.course.id, personal_data())

        self.assertSeats(0)
        self.assertFalse(Student.objects.exists())

    def test_failed_compensation_escalates_and_logs_consistency_risk(self):
        with mock.patch.object(Student.objects, 'create', side_effect=OperationalError('disk I/O error')), \
                mock.patch.object(self.service.ledger, 'release_seat', side_effect=StorageUnavailable()):
            with self.assertLogs('enrollment.services', level='ERROR') as logs:
                with self.assertRaises(StorageUnavailable):
                    self.service.submit(self.applicant_a.id, self.course.id, personal_data())

        self.assertIn('consistency risk', logs.output[0])
        # The seat stays counted until an operator reconciles it
        self.assertSeats(1)

    def test_lost_race_on_national_id_is_duplicate(self):
        """A concurrent submission with the same CNIC committed after our pre-check"""
        make_registration = Student.objects.create
        other = make_applicant('applicant_c')
        existing = make_registration(
            user=other, course=self.course, registration_number='SMIT20260999',
            **personal_data()
        )
        self.course.enrolled_students = 1
        self.course.save()

        with mock.patch.object(
            Student.objects, 'find_by_applicant_or_national_id',
            side_effect=[Student.objects.none(), Student.objects.filter(pk=existing.pk)]
        ):
            with self.assertRaises(DuplicateApplication):
                self.service.submit(self.applicant_a.id, self.course.id, personal_data())

        self.assertSeats(1)

    def test_submit_then_enroll_round_trip(self):
        student = self.service.submit(self.applicant_a.id, self.course.id, personal_data())
        student = self.service.change_status(student.id, 'enrolled', ENROLLMENT_DETAIL)

        self.assertEqual(student.status, 'enrolled')
        enrollment = dict(student.enrollment)
        self.assertIsNotNone(enrollment.pop('enrolled_at'))
        self.assertEqual(enrollment, ENROLLMENT_DETAIL)

    def test_reject_pending_frees_seat(self):
        course = make_course(code='AIC01', max_students=5)
        student = self.service.submit(self.applicant_a.id, course.id, personal_data())
        self.assertSeats(1, course)

        student = self.service.change_status(student.id, 'rejected')

        self.assertEqual(student.status, 'rejected')
        self.assertSeats(0, course)

    def test_change_status_rejects_unknown_status(self):
        student = self.service.submit(self.applicant_a.id, self.course.id, personal_data())
        with self.assertRaises(InvalidTransition):
            self.service.change_status(student.id, 'graduated')

    def test_submit_sends_confirmation_after_commit(self):
        mail.outbox.clear()
        with self.captureOnCommitCallbacks(execute=True):
            student = self.service.submit(self.applicant_a.id, self.course.id, personal_data())

        self.assertEqual(len(mail.outbox), 1)
        self.assertIn(student.registration_number, mail.outbox[0].body)

    def test_update_registration_while_pending(self):
        self.service.submit(self.applicant_a.id, self.course.id, personal_data())
        student = self.service.update_registration(
            self.applicant_a.id, {'phone': '03111111111', 'city': 'Hyderabad', 'status': 'enrolled'}
        )

        self.assertEqual(student.phone, '03111111111')
        self.assertEqual(student.city, 'Hyderabad')
        self.assertEqual(student.status, 'pending')

    def test_update_registration_locked_after_review(self):
        student = self.service.submit(self.applicant_a.id, self.course.id, personal_data())
        self.service.change_status(student.id, 'approved')

        with self.assertRaises(RegistrationLocked):
            self.service.update_registration(self.applicant_a.id, {'phone': '03111111111'})

    def test_update_registration_national_id_collision(self):
        self.service.submit(self.applicant_a.id, self.course.id, personal_data())
        self.service.submit(self.applicant_b.id, self.course.id, personal_data(cnic='4210199999999'))

        with self.assertRaises(DuplicateApplication):
            self.service.update_registration(self.applicant_b.id, {'cnic': '4210112345671'})

    def test_update_registration_without_registration(self):
        with self.assertRaises(NotFound):
            self.service.update_registration(self.applicant_a.id, {'phone': '03111111111'})

    def test_payment_info_is_independent_of_status(self):
        student = self.service.submit(self.applicant_a.id, self.course.id, personal_data())
        self.service.change_status(student.id, 'enrolled', ENROLLMENT_DETAIL)

        student = self.service.attach_payment_info(
            student.id, total_fees=5000, paid_amount=2000, payment_status='partial'
        )

        self.assertEqual(student.status, 'enrolled')
        self.assertEqual(student.paid_amount, 2000)
        self.assertEqual(student.payment_status, 'partial')
        self.assertSeats(1)

    def test_payment_info_unknown_student(self):
        with self.assertRaises(NotFound):
            self.service.attach_payment_info(999999, paid_amount=100)

    def test_withdraw_releases_seat(self):
        student = self.service.submit(self.applicant_a.id, self.course.id, personal_data())
        self.service.withdraw(student.id)

        self.assertFalse(Student.objects.filter(pk=student.id).exists())
        self.assertSeats(0)

    def test_withdraw_rejected_does_not_release_twice(self):
        self.service.submit(self.applicant_b.id, self.course.id, personal_data(cnic='4210199999999'))
        student = self.service.submit(self.applicant_a.id, self.course.id, personal_data())
        self.service.change_status(student.id, 'rejected')
        self.assertSeats(1)

        self.service.withdraw(student.id)
        self.assertSeats(1)

    def test_withdraw_unknown_student(self):
        with self.assertRaises(NotFound):
            self.service.withdraw(999999)

    def test_enrolled_students_stays_within_bounds(self):
        course = make_course(code='CCN01', max_students=2)
        applicants = [make_applicant(f'bound{i}') for i in range(4)]
        students = []
        for i, applicant in enumerate(applicants):
            try:
                students.append(self.service.submit(applicant.id, course.id, personal_data(cnic=f'421020000000{i}')))
            except CourseFull:
                pass
            course.refresh_from_db()
            self.assertTrue(0 <= course.enrolled_students <= course.max_students)

        for student in students:
            self.service.change_status(student.id, 'rejected')
            course.refresh_from_db()
            self.assertTrue(0 <= course.enrolled_students <= course.max_students)
        self.assertSeats(0, course)


class ReconcileSeatsCommandTestCase(TestCase):
    """Test cases for the reconcile_seats management command"""

    def setUp(self):
        self.service = EnrollmentService()
        self.course = make_course(max_students=5)
        for i in range(2):
            applicant = make_applicant(f'reconcile{i}')
            self.service.submit(applicant.id, self.course.id, personal_data(cnic=f'421030000000{i}'))
        # Simulate a seat left behind by a failed compensating release
        Course.objects.filter(pk=self.course.pk).update(enrolled_students=4)

    def test_dry_run_reports_without_fixing(self):
        out = StringIO()
        call_command('reconcile_seats', '--dry-run', stdout=out)

        self.assertIn('WMA01', out.getvalue())
        self.course.refresh_from_db()
        self.assertEqual(self.course.enrolled_students, 4)

    def test_reconcile_fixes_counter(self):
        out = StringIO()
        call_command('reconcile_seats', stdout=out)

        self.assertIn('Reconciled 1 course(s)', out.getvalue())
        self.course.refresh_from_db()
        self.assertEqual(self.course.enrolled_students, 2)

    def test_rejected_registrations_do_not_count(self):
        student = Student.objects.first()
        self.service.change_status(student.id, 'rejected')
        call_command('reconcile_seats', '--course', 'wma01', stdout=StringIO())

        self.course.refresh_from_db()
        self.assertEqual(self.course.enrolled_students, 1)

    def test_nothing_to_do(self):
        call_command('reconcile_seats', stdout=StringIO())
        out = StringIO()
        call_command('reconcile_seats', stdout=out)
        self.assertIn('All seat counters match', out.getvalue())


class RegistrationAPITestCase(TestCase):
    """Test cases for the registration endpoints"""

    def setUp(self):
        self.client = APIClient()
        self.course = make_course(max_students=1)
        self.applicant = make_applicant('applicant')
        self.other = make_applicant('other')
        self.admin = User.objects.create_user(username='admin', password='testpass123', role='ADMIN')

    def payload(self, cnic='4210112345671'):
        data = personal_data(cnic=cnic)
        data['date_of_birth'] = data['date_of_birth'].isoformat()
        data['course'] = self.course.id
        return data

    def submit(self, username='applicant', cnic='4210112345671'):
        self.client.login(username=username, password='testpass123')
        return self.client.post('/api/registrations/', self.payload(cnic), format='json')

    def test_submit_registration(self):
        response = self.submit()

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()['student']['status'], 'pending')
        self.assertTrue(response.json()['registration_number'].startswith('SMIT'))
        self.course.refresh_from_db()
        self.assertEqual(self.course.enrolled_students, 1)

    def test_submit_requires_login(self):
        response = self.client.post('/api/registrations/', self.payload(), format='json')
        self.assertIn(response.status_code, (401, 403))

    def test_submit_duplicate(self):
        self.submit()
        response = self.submit()

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()['code'], 'duplicate_application')

    def test_submit_course_full(self):
        self.submit()
        self.client.logout()
        response = self.submit(username='other', cnic='4210199999999')

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()['code'], 'course_full')

    def test_submit_unknown_course(self):
        self.client.login(username='applicant', password='testpass123')
        data = self.payload()
        data['course'] = 999999
        response = self.client.post('/api/registrations/', data, format='json')

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['code'], 'course_not_found')

    def test_submit_invalid_choice(self):
        self.client.login(username='applicant', password='testpass123')
        data = self.payload()
        data['gender'] = 'Unknown'
        response = self.client.post('/api/registrations/', data, format='json')

        self.assertEqual(response.status_code, 400)
        self.assertIn('gender', response.json())

    def test_my_registration_and_status(self):
        self.submit()

        response = self.client.get('/api/registrations/my/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['student']['cnic'], '4210112345671')

        response = self.client.get('/api/registrations/status/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['status'], 'pending')
        self.assertEqual(response.json()['course_code'], 'WMA01')

    def test_my_registration_missing(self):
        self.client.login(username='applicant', password='testpass123')
        response = self.client.get('/api/registrations/my/')
        self.assertEqual(response.status_code, 404)

    def test_update_registration(self):
        self.submit()
        response = self.client.put('/api/registrations/my/', {'city': 'Lahore'}, format='json')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['student']['city'], 'Lahore')

    def test_update_registration_after_approval(self):
        self.submit()
        student = Student.objects.get(user=self.applicant)
        EnrollmentService().change_status(student.id, 'approved')

        response = self.client.put('/api/registrations/my/', {'city': 'Lahore'}, format='json')
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()['code'], 'registration_locked')

    def test_withdraw_registration(self):
        self.submit()
        response = self.client.delete('/api/registrations/my/')

        self.assertEqual(response.status_code, 204)
        self.course.refresh_from_db()
        self.assertEqual(self.course.enrolled_students, 0)


class AdminStudentAPITestCase(TestCase):
    """Test cases for the admin registration endpoints"""

    def setUp(self):
        self.client = APIClient()
        self.course = make_course(max_students=10)
        self.admin = User.objects.create_user(username='admin', password='testpass123', role='ADMIN')
        self.applicant = make_applicant('applicant')
        self.student = EnrollmentService().submit(self.applicant.id, self.course.id, personal_data())

    def test_status_change_requires_admin(self):
        self.client.login(username='applicant', password='testpass123')
        response = self.client.put(
            f'/api/admin/students/{self.student.id}/status/', {'status': 'approved'}, format='json'
        )
        self.assertEqual(response.status_code, 403)

    def test_enroll_student(self):
        self.client.login(username='admin', password='testpass123')
        response = self.client.put(
            f'/api/admin/students/{self.student.id}/status/',
            {'status': 'enrolled', 'enrollment': ENROLLMENT_DETAIL},
            format='json'
        )

        self.assertEqual(response.status_code, 200)
        enrollment = response.json()['student']['enrollment']
        self.assertEqual(enrollment['roll_number'], 'WMA-042')
        self.assertIsNotNone(enrollment['enrolled_at'])

    def test_invalid_transition(self):
        self.client.login(username='admin', password='testpass123')
        self.client.put(f'/api/admin/students/{self.student.id}/status/', {'status': 'rejected'}, format='json')
        response = self.client.put(
            f'/api/admin/students/{self.student.id}/status/', {'status': 'approved'}, format='json'
        )

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()['code'], 'invalid_transition')

    def test_unknown_student(self):
        self.client.login(username='admin', password='testpass123')
        response = self.client.put('/api/admin/students/999999/status/', {'status': 'approved'}, format='json')
        self.assertEqual(response.status_code, 404)

    def test_list_and_filter(self):
        other = make_applicant('other')
        second = EnrollmentService().submit(
            other.id, self.course.id, personal_data(cnic='4210199999999', full_name='Bilal Ahmed')
        )
        EnrollmentService().change_status(second.id, 'approved')
        self.client.login(username='admin', password='testpass123')

        response = self.client.get('/api/admin/students/')
        self.assertEqual(response.json()['count'], 2)

        response = self.client.get('/api/admin/students/', {'status': 'approved'})
        self.assertEqual(response.json()['count'], 1)
        self.assertEqual(response.json()['results'][0]['full_name'], 'Bilal Ahmed')

        response = self.client.get('/api/admin/students/', {'search': self.student.registration_number})
        self.assertEqual(response.json()['count'], 1)

    def test_student_detail(self):
        self.client.login(username='admin', password='testpass123')
        response = self.client.get(f'/api/admin/students/{self.student.id}/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['registration_number'], self.student.registration_number)

    def test_payment_update(self):
        self.client.login(username='admin', password='testpass123')
        response = self.client.put(
            f'/api/admin/students/{self.student.id}/payment/',
            {'total_fees': 3000, 'paid_amount': 3000, 'payment_status': 'paid'},
            format='json'
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['student']['payment_status'], 'paid')
        self.assertEqual(response.json()['student']['status'], 'pending')


@skipUnless(connection.vendor == 'postgresql', 'Concurrent writers need PostgreSQL row locking; run with DB_ENGINE=postgresql')
class ConcurrentRegistrationTestCase(TransactionTestCase):
    """Races between separate database connections, one per thread"""

    def run_concurrently(self, func, args_list):
        def wrapper(args):
            try:
                return func(*args)
            except Exception as e:
                return e
            finally:
                connection.close()

        with ThreadPoolExecutor(max_workers=len(args_list)) as pool:
            return list(pool.map(wrapper, args_list))

    def test_racing_reservations_never_overfill(self):
        course = make_course(max_students=5, enrolled_students=2)
        ledger = CourseCapacityLedger()

        results = self.run_concurrently(ledger.try_reserve_seat, [(course.id,)] * 12)

        granted = [r for r in results if not isinstance(r, Exception)]
        refused = [r for r in results if isinstance(r, CourseFull)]
        self.assertEqual(len(granted), 3)
        self.assertEqual(len(refused), 9)
        course.refresh_from_db()
        self.assertEqual(course.enrolled_students, 5)

    def test_two_applicants_race_for_last_seat(self):
        course = make_course(max_students=1)
        applicant_a = make_applicant('racer_a')
        applicant_b = make_applicant('racer_b')
        service = EnrollmentService()

        results = self.run_concurrently(service.submit, [
            (applicant_a.id, course.id, personal_data(cnic='4210100000001')),
            (applicant_b.id, course.id, personal_data(cnic='4210100000002')),
        ])

        students = [r for r in results if isinstance(r, Student)]
        full = [r for r in results if isinstance(r, CourseFull)]
        self.assertEqual(len(students), 1)
        self.assertEqual(len(full), 1)
        self.assertEqual(students[0].status, 'pending')
        course.refresh_from_db()
        self.assertEqual(course.enrolled_students, 1)

    def test_concurrent_submissions_get_distinct_numbers(self):
        course = make_course(max_students=50)
        applicants = [make_applicant(f'parallel{i}') for i in range(10)]
        service = EnrollmentService()

        results = self.run_concurrently(service.submit, [
            (applicant.id, course.id, personal_data(cnic=f'42104000000{i:02d}'))
            for i, applicant in enumerate(applicants)
        ])

        numbers = [r.registration_number for r in results if isinstance(r, Student)]
        self.assertEqual(len(numbers), 10)
        self.assertEqual(len(set(numbers)), 10)
        course.refresh_from_db()
        self.assertEqual(course.enrolled_students, 10)

    def test_concurrent_duplicate_submissions_hold_one_seat(self):
        course = make_course(max_students=10)
        applicant = make_applicant('double_click')
        service = EnrollmentService()

        results = self.run_concurrently(service.submit, [
            (applicant.id, course.id, personal_data()) for _ in range(4)
        ])

        students = [r for r in results if isinstance(r, Student)]
        self.assertEqual(len(students), 1)
        self.assertTrue(all(isinstance(r, DuplicateApplication) for r in results if r not in students))
        course.refresh_from_db()
        self.assertEqual(course.enrolled_students, 1)

    def test_concurrent_rejections_release_once(self):
        course = make_course(max_students=3)
        applicant = make_applicant('double_reject')
        service = EnrollmentService()
        student = service.submit(applicant.id, course.id, personal_data())

        results = self.run_concurrently(service.change_status, [(student.id, 'rejected')] * 4)

        self.assertEqual(len([r for r in results if isinstance(r, Student)]), 1)
        self.assertEqual(len([r for r in results if isinstance(r, InvalidTransition)]), 3)
        course.refresh_from_db()
        self.assertEqual(course.enrolled_students, 0)
