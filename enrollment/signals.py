"""
Notification hooks.

Signals are sent after the owning transaction commits and with
``send_robust``, so a failing receiver is logged and never reaches the caller.
"""
import logging

from django.dispatch import Signal, receiver

logger = logging.getLogger(__name__)

# Sent with student_id, old_status, new_status
status_changed = Signal()
# Sent with student_id
registration_submitted = Signal()


def _log_failures(signal_name, responses):
    for handler, response in responses:
        if isinstance(response, Exception):
            logger.warning(f"{signal_name} receiver {getattr(handler, '__name__', handler)} failed: {response}")


def notify_status_changed(student_id, old_status, new_status):
    from .models import Student
    responses = status_changed.send_robust(
        sender=Student,
        student_id=student_id,
        old_status=old_status,
        new_status=new_status,
    )
    _log_failures('status_changed', responses)


def notify_registration_submitted(student_id):
    from .models import Student
    responses = registration_submitted.send_robust(sender=Student, student_id=student_id)
    _log_failures('registration_submitted', responses)


@receiver(status_changed)
def queue_status_update_email(sender, student_id, old_status, new_status, **kwargs):
    from .tasks import send_status_update
    send_status_update.delay(student_id, old_status, new_status)


@receiver(registration_submitted)
def queue_registration_confirmation(sender, student_id, **kwargs):
    from .tasks import send_registration_confirmation
    send_registration_confirmation.delay(student_id)
