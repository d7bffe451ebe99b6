from django.urls import path
from .views import (
    RegistrationView, RegistrationStatusView,
    StudentListView, StudentDetailView, StudentStatusView, StudentPaymentView,
)

urlpatterns = [
    path('registrations/', RegistrationView.as_view(), name='registration'),
    path('registrations/my/', RegistrationView.as_view(), name='my-registration'),
    path('registrations/status/', RegistrationStatusView.as_view(), name='registration-status'),
    path('admin/students/', StudentListView.as_view(), name='admin-students'),
    path('admin/students/<int:pk>/', StudentDetailView.as_view(), name='admin-student-detail'),
    path('admin/students/<int:pk>/status/', StudentStatusView.as_view(), name='admin-student-status'),
    path('admin/students/<int:pk>/payment/', StudentPaymentView.as_view(), name='admin-student-payment'),
]
