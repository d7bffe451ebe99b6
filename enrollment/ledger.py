import logging
from dataclasses import dataclass

from django.db import DatabaseError

from courses.models import Course
from .exceptions import CourseFull, CourseInactive, CourseNotFound, StorageUnavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Reservation:
    course_id: int


class CourseCapacityLedger:
    """
    Owns the ``enrolled_students`` counter of every course.

    A reservation is a single conditional UPDATE ("increment if active and
    below the cap"); nothing here reads the counter and then writes it back.
    """

    def try_reserve_seat(self, course_id):
        try:
            if Course.objects.conditional_increment_enrolled(course_id):
                logger.info(f"Seat reserved in course {course_id}")
                return Reservation(course_id=course_id)

            # The update matched nothing; look at the row only to name the reason
            course = Course.objects.filter(pk=course_id).only('status', 'max_students', 'enrolled_students').first()
        except DatabaseError as e:
            raise StorageUnavailable('Seat reservation could not be completed') from e

        if course is None:
            raise CourseNotFound()
        if course.status != Course.Status.ACTIVE:
            logger.warning(f"Reservation refused: course {course_id} is {course.status}")
            raise CourseInactive()
        logger.warning(f"Reservation refused: course {course_id} is full")
        raise CourseFull()

    def release_seat(self, course_id):
        """Give a seat back. Releasing from an empty course is a no-op."""
        try:
            released = Course.objects.decrement_enrolled(course_id)
        except DatabaseError as e:
            raise StorageUnavailable('Seat release could not be completed') from e
        if released:
            logger.info(f"Seat released in course {course_id}")
        else:
            logger.info(f"Seat release in course {course_id} had nothing to release")
        return released

    def available_seats(self, course_id):
        """Point-in-time, advisory seat count for display. Never reserve based on it."""
        try:
            course = Course.objects.filter(pk=course_id).only('max_students', 'enrolled_students').first()
        except DatabaseError as e:
            raise StorageUnavailable() from e
        if course is None:
            raise CourseNotFound()
        return course.available_seats
