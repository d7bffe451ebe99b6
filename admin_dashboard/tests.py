from unittest import mock

from django.test import TestCase
from django.urls import reverse
from rest_framework.test import APIClient

from users.models import User
from enrollment.services import EnrollmentService
from enrollment.tests import make_applicant, make_course, personal_data
from admin_dashboard.utils import (
    check_database_health,
    get_status_counts,
    get_registration_trends,
    get_course_stats,
    get_seat_utilization
)

CELERY_HEALTHY = {'status': True, 'queue_depth': 0, 'message': 'Task queue is healthy'}


class AdminDashboardViewTests(TestCase):
    """Test cases for admin dashboard views"""

    def setUp(self):
        """Set up test data"""
        self.client = APIClient()

        self.admin_user = User.objects.create_user(
            username='admin',
            password='testpass123',
            role='ADMIN'
        )

        self.student_user = User.objects.create_user(
            username='student',
            password='testpass123',
            role='STUDENT'
        )

    def test_admin_dashboard_requires_login(self):
        """Test that dashboard requires authentication"""
        response = self.client.get(reverse('admin-dashboard'))
        self.assertIn(response.status_code, (401, 403))

    def test_admin_dashboard_requires_admin_role(self):
        """Test that only admin users can access dashboard"""
        self.client.login(username='student', password='testpass123')
        response = self.client.get(reverse('admin-dashboard'))
        self.assertEqual(response.status_code, 403)

    @mock.patch('admin_dashboard.views.check_celery_health', return_value=CELERY_HEALTHY)
    def test_dashboard_payload(self, _celery_health):
        """Test that dashboard provides the expected sections"""
        self.client.login(username='admin', password='testpass123')
        response = self.client.get(reverse('admin-dashboard'))

        self.assertEqual(response.status_code, 200)
        for key in ('stats', 'course_stats', 'analytics', 'system_health', 'recent_applications'):
            self.assertIn(key, response.json())
        self.assertTrue(response.json()['system_health']['database']['status'])


class UtilityFunctionsTests(TestCase):
    """Test cases for utility functions"""

    def setUp(self):
        """Set up test data"""
        self.course = make_course(max_students=30)
        service = EnrollmentService()

        students = []
        for i in range(5):
            applicant = make_applicant(f'student{i}')
            students.append(service.submit(applicant.id, self.course.id, personal_data(cnic=f'421050000000{i}')))

        service.change_status(students[0].id, 'approved')
        service.change_status(students[1].id, 'rejected')

    def test_database_health_check(self):
        """Test database health check function"""
        result = check_database_health()
        self.assertTrue(result['status'])
        self.assertIsNotNone(result['response_time'])
        self.assertIn('healthy', result['message'].lower())

    def test_get_status_counts(self):
        counts = get_status_counts()
        self.assertEqual(counts['pending'], 3)
        self.assertEqual(counts['approved'], 1)
        self.assertEqual(counts['rejected'], 1)
        self.assertEqual(counts['enrolled'], 0)
        self.assertEqual(counts['total'], 5)

    def test_get_registration_trends(self):
        """Test registration trends function"""
        trends = get_registration_trends(days=30)
        self.assertIsInstance(trends, list)
        # Should have at least today's registrations
        self.assertGreaterEqual(len(trends), 1)
        self.assertEqual(sum(day['count'] for day in trends), 5)

    def test_get_course_stats(self):
        stats = get_course_stats()
        self.assertEqual(len(stats), 1)
        self.assertEqual(stats[0]['code'], 'WMA01')
        self.assertEqual(stats[0]['enrolled_students'], 4)
        self.assertEqual(stats[0]['available_seats'], 26)

    def test_get_seat_utilization(self):
        """Test seat utilization function"""
        utilization = get_seat_utilization()

        self.assertEqual(utilization['total_seats'], 30)
        # The rejected registration gave its seat back
        self.assertEqual(utilization['filled_seats'], 4)
        expected_percentage = round((4 / 30) * 100, 2)
        self.assertEqual(utilization['utilization_percentage'], expected_percentage)
