"""
URL configuration for the GreenSpace marketplace.
"""
from django.conf import settings
from django.conf.urls.static import static
from django.contrib import admin
from django.urls import path
from rest_framework_simplejwt.views import (
    TokenBlacklistView,
    TokenRefreshView,
)
from marketplace.views import (
    AdminBookingListView,
    AdminPlotDetailView,
    AdminPlotListView,
    AdminPlotVerifyView,
    AdminStatsView,
    AdminUserDetailView,
    AdminUserListView,
    AdminUserVerifyView,
    BookingApproveView,
    BookingCompleteView,
    BookingCreateView,
    BookingDetailView,
    BookingRejectView,
    GardenerBookingsView,
    LandownerBookingsView,
    LoginView,
    MyPlotsView,
    PlotDetailView,
    PlotDocumentUploadView,
    PlotListCreateView,
    UserDocumentUploadView,
    UserProfileView,
    UserRegistrationView,
)


urlpatterns = [
    path('admin/', admin.site.urls),

    # Authentication endpoints
    path('api/auth/register/', UserRegistrationView.as_view(), name='user_register'),
    path('api/auth/login/', LoginView.as_view(), name='user_login'),
    path('api/auth/token/refresh/', TokenRefreshView.as_view(), name='token_refresh'),
    path('api/auth/logout/', TokenBlacklistView.as_view(), name='user_logout'),
    path('api/auth/profile/', UserProfileView.as_view(), name='user_profile'),
    path('api/auth/upload-documents/', UserDocumentUploadView.as_view(), name='user_upload_documents'),

    # Plot endpoints
    path('api/plots/', PlotListCreateView.as_view(), name='plot_list'),
    path('api/plots/my-plots/', MyPlotsView.as_view(), name='my_plots'),
    path('api/plots/<int:pk>/', PlotDetailView.as_view(), name='plot_detail'),
    path('api/plots/<int:pk>/upload-documents/', PlotDocumentUploadView.as_view(), name='plot_upload_documents'),

    # Booking endpoints
    path('api/bookings/', BookingCreateView.as_view(), name='booking_create'),
    path('api/bookings/gardener/', GardenerBookingsView.as_view(), name='gardener_bookings'),
    path('api/bookings/landowner/', LandownerBookingsView.as_view(), name='landowner_bookings'),
    path('api/bookings/<int:pk>/', BookingDetailView.as_view(), name='booking_detail'),
    path('api/bookings/<int:pk>/approve/', BookingApproveView.as_view(), name='booking_approve'),
    path('api/bookings/<int:pk>/reject/', BookingRejectView.as_view(), name='booking_reject'),
    path('api/bookings/<int:pk>/complete/', BookingCompleteView.as_view(), name='booking_complete'),

    # Admin console endpoints
    path('api/admin/users/', AdminUserListView.as_view(), name='admin_users'),
    path('api/admin/users/<int:pk>/', AdminUserDetailView.as_view(), name='admin_user_detail'),
    path('api/admin/users/<int:pk>/verify/', AdminUserVerifyView.as_view(), name='admin_user_verify'),
    path('api/admin/plots/', AdminPlotListView.as_view(), name='admin_plots'),
    path('api/admin/plots/<int:pk>/', AdminPlotDetailView.as_view(), name='admin_plot_detail'),
    path('api/admin/plots/<int:pk>/verify/', AdminPlotVerifyView.as_view(), name='admin_plot_verify'),
    path('api/admin/bookings/', AdminBookingListView.as_view(), name='admin_bookings'),
    path('api/admin/stats/', AdminStatsView.as_view(), name='admin_stats'),
]

if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
