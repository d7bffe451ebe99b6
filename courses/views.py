import logging

from django.db.models import ProtectedError
from rest_framework import viewsets, status
from rest_framework.response import Response
from users.permissions import IsAdminOrReadOnly
from .models import Course
from .serializers import CourseSerializer

logger = logging.getLogger(__name__)


class CourseViewSet(viewsets.ModelViewSet):
    """
    Course catalogue. Anyone may browse; only portal admins may change it.
    Seat counters are read-only here and change only through registrations.
    """
    serializer_class = CourseSerializer
    permission_classes = [IsAdminOrReadOnly]

    def get_queryset(self):
        queryset = Course.objects.all()
        for field in ('status', 'campus', 'city'):
            value = self.request.query_params.get(field)
            if value:
                queryset = queryset.filter(**{field: value})
        return queryset

    def perform_create(self, serializer):
        course = serializer.save()
        logger.info(f"Course {course.code} created by {self.request.user.username} with {course.max_students} seats")

    def destroy(self, request, *args, **kwargs):
        course = self.get_object()
        try:
            course.delete()
        except ProtectedError:
            logger.warning(f"Refused to delete course {course.code}: registrations still reference it")
            return Response(
                {'error': 'Course has registrations and cannot be deleted', 'code': 'course_in_use'},
                status=status.HTTP_409_CONFLICT,
            )
        logger.info(f"Course {course.code} deleted by {request.user.username}")
        return Response(status=status.HTTP_204_NO_CONTENT)
