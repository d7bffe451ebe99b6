"""
Errors raised by the registration core.

Each error carries a stable ``code`` for API clients and the HTTP status the
views answer with. Only ``StorageUnavailable`` is worth retrying; every other
error is permanent for the given input.
"""
from rest_framework import status


class EnrollmentError(Exception):
    code = 'enrollment_error'
    status_code = status.HTTP_400_BAD_REQUEST
    retryable = False
    default_message = 'Registration request failed'

    def __init__(self, message=None):
        super().__init__(message or self.default_message)


class DuplicateApplication(EnrollmentError):
    code = 'duplicate_application'
    status_code = status.HTTP_409_CONFLICT
    default_message = 'Student with this CNIC or user already exists'


class CourseNotFound(EnrollmentError):
    code = 'course_not_found'
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = 'Selected course not found'


class CourseInactive(EnrollmentError):
    code = 'course_inactive'
    status_code = status.HTTP_409_CONFLICT
    default_message = 'Selected course is not active'


class CourseFull(EnrollmentError):
    code = 'course_full'
    status_code = status.HTTP_409_CONFLICT
    default_message = 'Selected course is full'


class InvalidTransition(EnrollmentError):
    code = 'invalid_transition'
    status_code = status.HTTP_409_CONFLICT
    default_message = 'Status change is not allowed'


class RegistrationLocked(EnrollmentError):
    code = 'registration_locked'
    status_code = status.HTTP_409_CONFLICT
    default_message = 'Cannot update registration after it has been reviewed'


class NotFound(EnrollmentError):
    code = 'not_found'
    status_code = status.HTTP_404_NOT_FOUND
    default_message = 'Registration not found'


class StorageUnavailable(EnrollmentError):
    code = 'storage_unavailable'
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    retryable = True
    default_message = 'Registration storage is unavailable, please retry'


class InvalidRegistration(EnrollmentError):
    code = 'invalid_registration'
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = 'Registration data was rejected by the database'
