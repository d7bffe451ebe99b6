from django.db.models import Q
from rest_framework import generics, permissions, status, views
from rest_framework.response import Response
from users.permissions import IsPortalAdmin
from .exceptions import EnrollmentError
from .models import Student
from .serializers import (
    PaymentInfoSerializer,
    RegistrationStatusSerializer,
    RegistrationSubmitSerializer,
    RegistrationUpdateSerializer,
    StatusChangeSerializer,
    StudentSerializer,
)
from .services import EnrollmentService


def error_response(error):
    return Response({'error': str(error), 'code': error.code}, status=error.status_code)


def registration_for(user):
    return Student.objects.select_related('course', 'user').filter(user=user).first()


class RegistrationView(views.APIView):
    """
    Applicant-facing registration.

    POST submits a new registration (reserves a seat, assigns the
    registration number). GET returns the caller's registration; PUT edits it
    while it is still pending; DELETE withdraws it and frees the seat.
    """
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        serializer = RegistrationSubmitSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        personal_data = dict(serializer.validated_data)
        course_id = personal_data.pop('course')

        try:
            student = EnrollmentService().submit(request.user.id, course_id, personal_data)
        except EnrollmentError as e:
            return error_response(e)

        student = Student.objects.select_related('course', 'user').get(pk=student.pk)
        return Response({
            'message': 'Registration submitted successfully',
            'student': StudentSerializer(student).data,
            'registration_number': student.registration_number,
        }, status=status.HTTP_201_CREATED)

    def get(self, request):
        student = registration_for(request.user)
        if student is None:
            return Response({'error': 'No registration found', 'code': 'not_found'}, status=status.HTTP_404_NOT_FOUND)
        return Response({'student': StudentSerializer(student).data})

    def put(self, request):
        serializer = RegistrationUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        try:
            EnrollmentService().update_registration(request.user.id, serializer.validated_data)
        except EnrollmentError as e:
            return error_response(e)

        return Response({
            'message': 'Registration updated successfully',
            'student': StudentSerializer(registration_for(request.user)).data,
        })

    def delete(self, request):
        student = registration_for(request.user)
        if student is None:
            return Response({'error': 'No registration found', 'code': 'not_found'}, status=status.HTTP_404_NOT_FOUND)
        try:
            EnrollmentService().withdraw(student.pk)
        except EnrollmentError as e:
            return error_response(e)
        return Response(status=status.HTTP_204_NO_CONTENT)


class RegistrationStatusView(views.APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        student = registration_for(request.user)
        if student is None:
            return Response({'error': 'No registration found', 'code': 'not_found'}, status=status.HTTP_404_NOT_FOUND)
        return Response(RegistrationStatusSerializer(student).data)


class StudentListView(generics.ListAPIView):
    """Admin list of registrations, filterable by status, course and free text."""
    serializer_class = StudentSerializer
    permission_classes = [IsPortalAdmin]

    def get_queryset(self):
        queryset = Student.objects.select_related('course', 'user')
        params = self.request.query_params

        if params.get('status'):
            queryset = queryset.filter(status=params['status'])
        if params.get('course'):
            queryset = queryset.filter(course_id=params['course'])
        search = params.get('search', '').strip()
        if search:
            queryset = queryset.filter(
                Q(full_name__icontains=search) |
                Q(cnic__icontains=search) |
                Q(registration_number__icontains=search)
            )
        return queryset


class StudentDetailView(generics.RetrieveAPIView):
    queryset = Student.objects.select_related('course', 'user')
    serializer_class = StudentSerializer
    permission_classes = [IsPortalAdmin]


class StudentStatusView(views.APIView):
    """Admin status change; the only way a registration moves through its lifecycle."""
    permission_classes = [IsPortalAdmin]

    def put(self, request, pk):
        serializer = StatusChangeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            student = EnrollmentService().change_status(
                pk,
                serializer.validated_data['status'],
                serializer.validated_data.get('enrollment'),
            )
        except EnrollmentError as e:
            return error_response(e)

        return Response({
            'message': 'Student status updated successfully',
            'student': StudentSerializer(student).data,
        })


class StudentPaymentView(views.APIView):
    permission_classes = [IsPortalAdmin]

    def put(self, request, pk):
        serializer = PaymentInfoSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            student = EnrollmentService().attach_payment_info(pk, **serializer.validated_data)
        except EnrollmentError as e:
            return error_response(e)

        return Response({
            'message': 'Payment information updated successfully',
            'student': StudentSerializer(student).data,
        })
