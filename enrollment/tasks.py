from celery import shared_task
from django.core.mail import send_mail
from django.conf import settings
import logging

logger = logging.getLogger(__name__)


STATUS_MESSAGES = {
    'approved': 'Your application has been approved. Enrollment details will follow shortly.',
    'rejected': 'Unfortunately your application was not accepted this time.',
    'enrolled': 'Congratulations! You are now enrolled.',
    'pending': 'Your application is under review.',
}


@shared_task
def send_status_update(student_id, old_status, new_status):
    """
    E-mail the applicant after their registration status changed.

    Args:
        student_id (int): The registration whose status changed.
        old_status (str): Status before the change.
        new_status (str): Status after the change.

    Returns:
        str: Status message indicating the result of the operation.
    """
    from .models import Student

    try:
        student = Student.objects.select_related('user', 'course').get(pk=student_id)
    except Student.DoesNotExist:
        logger.warning(f"Status update for missing registration {student_id} skipped")
        return f"Registration {student_id} not found."

    if not student.user.email:
        return f"Registration {student.registration_number} has no e-mail address."

    lines = [
        f'Dear {student.full_name},\n',
        f'The status of your registration {student.registration_number} for '
        f'{student.course.code} - {student.course.name} changed from {old_status} to {new_status}.\n',
        STATUS_MESSAGES.get(new_status, ''),
    ]
    if student.enrollment:
        lines.append(
            f'\nBatch: {student.batch_number}\n'
            f'Roll Number: {student.roll_number}\n'
            f'Campus: {student.campus}'
        )
    lines.append(
        f'\nYou can check your registration at: {settings.PORTAL_URL}/api/registrations/my/\n\n'
        f'Best regards,\nRegistration Office'
    )

    send_mail(
        subject=f'Registration Status Update - {new_status.upper()}',
        message='\n'.join(lines),
        from_email=settings.DEFAULT_FROM_EMAIL,
        recipient_list=[student.user.email],
        fail_silently=True,
    )
    logger.info(f"Sent status update ({new_status}) for {student.registration_number}")
    return f"Notified {student.registration_number} about {new_status}."


@shared_task
def send_registration_confirmation(student_id):
    """E-mail the applicant their registration number right after submission."""
    from .models import Student

    try:
        student = Student.objects.select_related('user', 'course').get(pk=student_id)
    except Student.DoesNotExist:
        logger.warning(f"Confirmation for missing registration {student_id} skipped")
        return f"Registration {student_id} not found."

    if not student.user.email:
        return f"Registration {student.registration_number} has no e-mail address."

    send_mail(
        subject='Registration Confirmation',
        message=(
            f'Dear {student.full_name},\n\n'
            f'Thank you for registering for {student.course.code} - {student.course.name}.\n\n'
            f'Registration Number: {student.registration_number}\n'
            f'Status: {student.get_status_display()}\n\n'
            f'Keep this number for all future correspondence.\n\n'
            f'Best regards,\nRegistration Office'
        ),
        from_email=settings.DEFAULT_FROM_EMAIL,
        recipient_list=[student.user.email],
        fail_silently=True,
    )
    logger.info(f"Sent registration confirmation for {student.registration_number}")
    return f"Confirmed {student.registration_number}."
