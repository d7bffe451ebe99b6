from django.db import connection
from django.utils import timezone
from datetime import timedelta
import redis
from django.conf import settings


def check_database_health():
    """
    Check database connectivity and response time.
    Returns: dict with 'status' (bool) and 'response_time' (float in ms)
    """
    try:
        start_time = timezone.now()
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        end_time = timezone.now()
        response_time = (end_time - start_time).total_seconds() * 1000
        return {
            'status': True,
            'response_time': round(response_time, 2),
            'message': 'Database is healthy'
        }
    except Exception as e:
        return {
            'status': False,
            'response_time': None,
            'message': f'Database error: {str(e)}'
        }


def check_celery_health():
    """
    Check the Redis broker behind the notification tasks and its queue depth.
    Returns: dict with 'status' (bool) and 'queue_depth' (int)
    """
    try:
        r = redis.from_url(settings.CELERY_BROKER_URL, socket_connect_timeout=2)
        r.ping()

        # Default queue is 'celery'
        queue_depth = r.llen('celery')

        return {
            'status': True,
            'queue_depth': queue_depth,
            'message': 'Task queue is healthy'
        }
    except Exception as e:
        return {
            'status': False,
            'queue_depth': None,
            'message': f'Task queue error: {str(e)}'
        }


def get_status_counts():
    """
    Count registrations per lifecycle status.
    Returns: dict keyed by every status value, including zero counts
    """
    from enrollment.models import Student
    from django.db.models import Count

    counts = {value: 0 for value in Student.Status.values}
    for row in Student.objects.values('status').annotate(count=Count('id')):
        counts[row['status']] = row['count']
    counts['total'] = sum(counts.values())
    return counts


def get_registration_trends(days=30):
    """
    Get daily registration counts for the last N days.
    Returns: list of dicts with 'date' and 'count'
    """
    from enrollment.models import Student
    from django.db.models import Count
    from django.db.models.functions import TruncDate

    start_date = timezone.now() - timedelta(days=days)

    trends = (
        Student.objects
        .filter(created_at__gte=start_date)
        .annotate(date=TruncDate('created_at'))
        .values('date')
        .annotate(count=Count('id'))
        .order_by('date')
    )

    return list(trends)


def get_course_stats():
    """
    Seat statistics per course, read from the capacity counters.
    Returns: list of dicts with 'code', 'name', 'max_students', 'enrolled_students', 'available_seats'
    """
    from courses.models import Course

    return [
        {
            'code': course.code,
            'name': course.name,
            'max_students': course.max_students,
            'enrolled_students': course.enrolled_students,
            'available_seats': course.available_seats,
            'status': course.display_status,
        }
        for course in Course.objects.order_by('code')
    ]


def get_seat_utilization():
    """
    Calculate seat utilization across all courses.
    Returns: dict with 'total_seats', 'filled_seats', 'utilization_percentage'
    """
    from courses.models import Course
    from django.db.models import Sum

    totals = Course.objects.aggregate(
        total_capacity=Sum('max_students'),
        total_enrolled=Sum('enrolled_students')
    )

    total_seats = totals['total_capacity'] or 0
    filled_seats = totals['total_enrolled'] or 0
    utilization = (filled_seats / total_seats * 100) if total_seats > 0 else 0

    return {
        'total_seats': total_seats,
        'filled_seats': filled_seats,
        'utilization_percentage': round(utilization, 2)
    }
