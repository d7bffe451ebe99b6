from rest_framework import views
from rest_framework.response import Response

from enrollment.models import Student
from enrollment.serializers import RegistrationStatusSerializer
from users.permissions import IsPortalAdmin
from .utils import (
    check_database_health,
    check_celery_health,
    get_status_counts,
    get_registration_trends,
    get_course_stats,
    get_seat_utilization
)


class AdminDashboardView(views.APIView):
    """
    Admin dashboard with registration statistics, seat usage and system health.
    Only accessible to users with an admin role.
    """
    permission_classes = [IsPortalAdmin]

    def get(self, request):
        recent_applications = (
            Student.objects
            .select_related('course')
            .order_by('-created_at')[:5]
        )

        return Response({
            'stats': get_status_counts(),
            'course_stats': get_course_stats(),
            'analytics': {
                'registration_trends': get_registration_trends(days=30),
                'seat_utilization': get_seat_utilization(),
            },
            'system_health': {
                'database': check_database_health(),
                'celery': check_celery_health(),
            },
            'recent_applications': RegistrationStatusSerializer(recent_applications, many=True).data,
        })
