from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework.test import APIClient

User = get_user_model()


class UserAPITestCase(TestCase):
    """Test cases for account registration and profile"""

    def setUp(self):
        self.client = APIClient()

    def test_register_creates_student_account(self):
        response = self.client.post('/api/users/register/', {
            'username': 'newapplicant',
            'email': 'newapplicant@test.com',
            'password': 'a-long-password',
            'role': 'ADMIN',
        }, format='json')

        self.assertEqual(response.status_code, 201)
        user = User.objects.get(username='newapplicant')
        self.assertEqual(user.role, 'STUDENT')
        self.assertFalse(user.is_portal_admin)
        self.assertTrue(user.check_password('a-long-password'))

    def test_profile_requires_login(self):
        response = self.client.get('/api/users/profile/')
        self.assertIn(response.status_code, (401, 403))

    def test_profile_role_is_read_only(self):
        User.objects.create_user(username='student', password='testpass123', role='STUDENT')
        self.client.login(username='student', password='testpass123')

        response = self.client.patch('/api/users/profile/', {'role': 'ADMIN', 'first_name': 'Sara'}, format='json')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['role'], 'STUDENT')
        self.assertEqual(response.json()['first_name'], 'Sara')
