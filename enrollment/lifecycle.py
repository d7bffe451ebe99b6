import logging
from dataclasses import dataclass

from django.db import DatabaseError, transaction
from django.utils import timezone

from .exceptions import InvalidTransition, NotFound, StorageUnavailable
from .ledger import CourseCapacityLedger
from .models import Student
from .signals import notify_status_changed

logger = logging.getLogger(__name__)

Status = Student.Status

ENROLLMENT_FIELDS = ('batch_number', 'roll_number', 'campus')


@dataclass(frozen=True)
class Transition:
    releases_seat: bool = False
    requires_enrollment: bool = False


# Every allowed status change. Anything missing here is an invalid transition,
# which makes rejected and enrolled terminal.
TRANSITIONS = {
    (Status.PENDING, Status.APPROVED): Transition(),
    (Status.PENDING, Status.REJECTED): Transition(releases_seat=True),
    (Status.PENDING, Status.ENROLLED): Transition(requires_enrollment=True),
    (Status.APPROVED, Status.REJECTED): Transition(releases_seat=True),
    (Status.APPROVED, Status.ENROLLED): Transition(requires_enrollment=True),
}


def clean_enrollment_detail(detail):
    if not detail:
        raise InvalidTransition('Enrollment detail is required to enroll a student')
    missing = [field for field in ENROLLMENT_FIELDS if not str(detail.get(field) or '').strip()]
    if missing:
        raise InvalidTransition(f"Enrollment detail is missing: {', '.join(missing)}")
    return {field: str(detail[field]).strip() for field in ENROLLMENT_FIELDS}


class RegistrationLifecycle:
    """
    Status state machine of a single registration.

    The status write and any seat release share one transaction, and the
    student row is locked before the precondition is checked, so a transition
    is never decided on a stale status.
    """

    def __init__(self, ledger=None):
        self.ledger = ledger or CourseCapacityLedger()

    def transition(self, student_id, new_status, enrollment_detail=None):
        try:
            with transaction.atomic():
                student = Student.objects.select_for_update().filter(pk=student_id).first()
                if student is None:
                    raise NotFound()

                old_status = student.status
                rule = TRANSITIONS.get((old_status, new_status))
                if rule is None:
                    raise InvalidTransition(f"Cannot change status from {old_status} to {new_status}")

                fields = {'updated_at': timezone.now()}
                if rule.requires_enrollment:
                    fields.update(clean_enrollment_detail(enrollment_detail))
                    fields['enrolled_at'] = timezone.now()

                if not Student.objects.update_status(student.pk, old_status, new_status, **fields):
                    raise InvalidTransition('Registration status changed while it was being updated')

                if rule.releases_seat:
                    self.ledger.release_seat(student.course_id)

                transaction.on_commit(
                    lambda: notify_status_changed(student.pk, old_status, new_status)
                )
        except DatabaseError as e:
            raise StorageUnavailable('Status change could not be completed') from e

        logger.info(f"Registration {student.registration_number} moved from {old_status} to {new_status}")
        student.refresh_from_db()
        return student
