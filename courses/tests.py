from io import StringIO

from django.contrib import admin
from django.contrib.auth import get_user_model
from django.contrib.messages import get_messages
from django.contrib.messages.storage.fallback import FallbackStorage
from django.core.management import call_command
from django.test import RequestFactory, TestCase
from rest_framework import serializers
from rest_framework.test import APIClient

from courses.admin import CourseAdmin, CourseAdminForm
from courses.models import Course
from courses.serializers import CourseSerializer
from enrollment.models import Student
from enrollment.services import EnrollmentService
from enrollment.tests import make_applicant, make_course, personal_data

User = get_user_model()


class CourseModelTestCase(TestCase):
    """Test cases for derived seat fields"""

    def test_code_is_normalized(self):
        course = make_course(code='  wma05 ')
        self.assertEqual(course.code, 'WMA05')

    def test_available_seats_and_full(self):
        course = make_course(max_students=3, enrolled_students=1)
        self.assertEqual(course.available_seats, 2)
        self.assertFalse(course.is_full)

        course = make_course(code='GD01', max_students=2, enrolled_students=2)
        self.assertEqual(course.available_seats, 0)
        self.assertTrue(course.is_full)

    def test_display_status(self):
        self.assertEqual(make_course(code='A1', max_students=1, enrolled_students=1).display_status, 'full')
        self.assertEqual(make_course(code='A2', max_students=2, enrolled_students=1).display_status, 'active')
        self.assertEqual(
            make_course(code='A3', max_students=1, enrolled_students=1, status=Course.Status.INACTIVE).display_status,
            'inactive'
        )

    def test_conditional_increment_respects_cap(self):
        course = make_course(max_students=1)
        self.assertTrue(Course.objects.conditional_increment_enrolled(course.id))
        self.assertFalse(Course.objects.conditional_increment_enrolled(course.id))
        course.refresh_from_db()
        self.assertEqual(course.enrolled_students, 1)

    def test_decrement_floors_at_zero(self):
        course = make_course(max_students=1, enrolled_students=1)
        self.assertTrue(Course.objects.decrement_enrolled(course.id))
        self.assertFalse(Course.objects.decrement_enrolled(course.id))
        course.refresh_from_db()
        self.assertEqual(course.enrolled_students, 0)


class CourseAPITestCase(TestCase):
    """Test cases for the course catalogue API"""

    def setUp(self):
        self.client = APIClient()
        self.admin = User.objects.create_user(username='admin', password='testpass123', role='ADMIN')
        self.student = make_applicant('student')
        self.course = make_course(max_students=2)

    def course_payload(self, **overrides):
        data = {
            'code': 'py02',
            'name': 'Python Programming',
            'description': 'Python from scratch',
            'duration': '6 months',
            'fees': 1000,
            'campus': 'Gulshan',
            'city': 'Karachi',
            'max_students': 40,
        }
        data.update(overrides)
        return data

    def test_list_is_public(self):
        response = self.client.get('/api/courses/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['count'], 1)
        self.assertEqual(response.json()['results'][0]['available_seats'], 2)

    def test_filter_by_status(self):
        make_course(code='DM01', status=Course.Status.INACTIVE)
        response = self.client.get('/api/courses/', {'status': 'inactive'})
        self.assertEqual(response.json()['count'], 1)
        self.assertEqual(response.json()['results'][0]['code'], 'DM01')

    def test_student_cannot_create(self):
        self.client.login(username='student', password='testpass123')
        response = self.client.post('/api/courses/', self.course_payload(), format='json')
        self.assertEqual(response.status_code, 403)

    def test_admin_creates_course(self):
        self.client.login(username='admin', password='testpass123')
        response = self.client.post('/api/courses/', self.course_payload(enrolled_students=10), format='json')

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()['code'], 'PY02')
        # Seat counter is not writable through the API
        self.assertEqual(response.json()['enrolled_students'], 0)

    def test_admin_cannot_cap_below_held_seats(self):
        other = make_applicant('other')
        EnrollmentService().submit(self.student.id, self.course.id, personal_data())
        EnrollmentService().submit(other.id, self.course.id, personal_data(cnic='4210199999999'))
        self.client.login(username='admin', password='testpass123')

        response = self.client.patch(f'/api/courses/{self.course.id}/', {'max_students': 1}, format='json')
        self.assertEqual(response.status_code, 400)
        self.assertIn('max_students', response.json())

        response = self.client.patch(f'/api/courses/{self.course.id}/', {'max_students': 3}, format='json')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['available_seats'], 1)

    def test_course_with_registrations_cannot_be_deleted(self):
        EnrollmentService().submit(self.student.id, self.course.id, personal_data())
        self.client.login(username='admin', password='testpass123')

        response = self.client.delete(f'/api/courses/{self.course.id}/')

        self.assertEqual(response.status_code, 409)
        self.assertTrue(Course.objects.filter(pk=self.course.id).exists())
        self.assertEqual(Student.objects.count(), 1)

    def test_unused_course_can_be_deleted(self):
        self.client.login(username='admin', password='testpass123')
        response = self.client.delete(f'/api/courses/{self.course.id}/')
        self.assertEqual(response.status_code, 204)


class CourseCapChangeTestCase(TestCase):
    """Test cases for lowering a course cap while seats are being reserved"""

    def setUp(self):
        self.course = make_course(max_students=3)

    def admin_form_data(self, **overrides):
        data = {
            'code': self.course.code,
            'name': self.course.name,
            'description': self.course.description,
            'duration': self.course.duration,
            'fees': self.course.fees,
            'instructor': '',
            'campus': self.course.campus,
            'city': self.course.city,
            'schedule': '',
            'max_students': self.course.max_students,
            'status': self.course.status,
        }
        data.update(overrides)
        return data

    def test_set_max_students_refuses_cap_below_held_seats(self):
        Course.objects.filter(pk=self.course.pk).update(enrolled_students=2)

        self.assertFalse(Course.objects.set_max_students(self.course.id, 1))
        self.assertTrue(Course.objects.set_max_students(self.course.id, 2))
        self.course.refresh_from_db()
        self.assertEqual(self.course.max_students, 2)

    def test_reservation_between_validation_and_save(self):
        serializer = CourseSerializer(self.course, data={'max_students': 1, 'name': 'Renamed'}, partial=True)
        self.assertTrue(serializer.is_valid())

        Course.objects.conditional_increment_enrolled(self.course.id)
        Course.objects.conditional_increment_enrolled(self.course.id)

        with self.assertRaises(serializers.ValidationError) as ctx:
            serializer.save()

        self.assertIn('max_students', ctx.exception.detail)
        self.course.refresh_from_db()
        self.assertEqual(self.course.max_students, 3)
        self.assertEqual(self.course.enrolled_students, 2)
        self.assertEqual(self.course.name, 'Web and Mobile App Development')

    def test_admin_form_rejects_cap_below_held_seats(self):
        Course.objects.filter(pk=self.course.pk).update(enrolled_students=2)

        form = CourseAdminForm(data=self.admin_form_data(max_students=1), instance=self.course)

        self.assertFalse(form.is_valid())
        self.assertIn('max_students', form.errors)

    def test_admin_save_keeps_live_seat_counter(self):
        form = CourseAdminForm(data=self.admin_form_data(name='Web Development'), instance=self.course)
        self.assertTrue(form.is_valid())
        obj = form.save(commit=False)

        # Seats reserved while the admin page was open
        Course.objects.conditional_increment_enrolled(self.course.id)
        Course.objects.conditional_increment_enrolled(self.course.id)
        CourseAdmin(Course, admin.site).save_model(None, obj, form, change=True)

        self.course.refresh_from_db()
        self.assertEqual(self.course.name, 'Web Development')
        self.assertEqual(self.course.enrolled_students, 2)

    def test_admin_cap_change_refused_after_late_reservation(self):
        form = CourseAdminForm(data=self.admin_form_data(max_students=2), instance=self.course)
        self.assertTrue(form.is_valid())
        obj = form.save(commit=False)

        for _ in range(3):
            Course.objects.conditional_increment_enrolled(self.course.id)

        request = RequestFactory().post('/admin/courses/course/')
        request.session = {}
        request._messages = FallbackStorage(request)
        CourseAdmin(Course, admin.site).save_model(request, obj, form, change=True)

        self.course.refresh_from_db()
        self.assertEqual(self.course.max_students, 3)
        self.assertEqual(self.course.enrolled_students, 3)
        self.assertIn('was not changed', str(list(get_messages(request))[0]))


class SeedCoursesCommandTestCase(TestCase):

    def test_seed_is_idempotent(self):
        call_command('seed_courses', '--seats', '5', stdout=StringIO())
        count = Course.objects.count()
        call_command('seed_courses', stdout=StringIO())

        self.assertGreater(count, 0)
        self.assertEqual(Course.objects.count(), count)
        self.assertTrue(all(course.max_students == 5 for course in Course.objects.all()))
