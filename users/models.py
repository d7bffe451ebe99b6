from django.contrib.auth.models import AbstractUser
from django.db import models

class User(AbstractUser):
    class Role(models.TextChoices):
        STUDENT = 'STUDENT', 'Student'
        ADMIN = 'ADMIN', 'Admin'
        SUPER_ADMIN = 'SUPER_ADMIN', 'Super Admin'

    role = models.CharField(max_length=50, choices=Role.choices, default=Role.STUDENT)
    email_verified = models.BooleanField(default=False)

    @property
    def is_portal_admin(self):
        return self.role in (self.Role.ADMIN, self.Role.SUPER_ADMIN)

    def __str__(self):
        return f"{self.username} ({self.role})"
