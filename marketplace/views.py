"""
API views for the GreenSpace plot marketplace.
"""

import json
import logging
from decimal import Decimal, InvalidOperation

from django.contrib.auth import authenticate, get_user_model
from django.db import IntegrityError
from rest_framework import generics, status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView
from rest_framework_simplejwt.tokens import RefreshToken

from .exceptions import NotFound, ValidationError
from .models import Plot, Role, SoilType, VerificationStatus, WaterAvailability
from .permissions import IsAdmin, IsGardener, IsLandowner
from .serializers import (
    AdminUserSerializer,
    BookingCreateSerializer,
    BookingRejectSerializer,
    BookingSerializer,
    DocumentUploadSerializer,
    LoginSerializer,
    PlotDocumentUploadSerializer,
    PlotSerializer,
    UserProfileSerializer,
    UserProfileUpdateSerializer,
    UserRegistrationSerializer,
    VerificationDecisionSerializer,
)
from .services import booking_service, listing_service

User = get_user_model()
logger = logging.getLogger(__name__)


def get_client_ip(request):
    """
    Get client IP address from request.
    Handles proxy headers for accurate IP detection.
    """
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        return x_forwarded_for.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR')


def issue_tokens(user):
    refresh = RefreshToken.for_user(user)
    return {'access': str(refresh.access_token), 'refresh': str(refresh)}


# ============================================================================
# Authentication & Profile Views
# ============================================================================

class UserRegistrationView(generics.CreateAPIView):
    """
    API endpoint for gardener and landowner registration.

    POST /api/auth/register/
    Request body:
    {
        "name": "Asha Patil",
        "email": "asha@example.com",
        "password": "GreenThumb#2024",
        "role": "gardener",
        "phone_number": "+91 98765 43210",
        "address": "Pune"
    }

    Success response (201):
    {
        "message": "Registration successful",
        "access": "<jwt_access_token>",
        "refresh": "<jwt_refresh_token>",
        "user": {...}
    }

    Error responses:
    - 400: Validation error, duplicate email, or role other than gardener/landowner
    - 429: Too many registration attempts
    """
    serializer_class = UserRegistrationSerializer
    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = 'register'

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            user = serializer.save()
        except IntegrityError:
            # Concurrent registration with the same email
            return Response(
                {'email': ['A user with that email already exists.']},
                status=status.HTTP_400_BAD_REQUEST
            )

        logger.info(
            f"New {user.role} registered. Email: {user.email}, IP: {get_client_ip(request)}"
        )

        return Response({
            'message': 'Registration successful',
            **issue_tokens(user),
            'user': UserProfileSerializer(user, context={'request': request}).data,
        }, status=status.HTTP_201_CREATED)


class LoginView(APIView):
    """
    API endpoint for login with JWT token generation.

    Security features:
    - Rate limiting (login scope)
    - One generic error for unknown email, wrong password and inactive account
    - Failed login attempts logged with client IP

    POST /api/auth/login/
    Request body: {"email": "user@example.com", "password": "..."}

    Success response (200):
    {
        "access": "<jwt_access_token>",
        "refresh": "<jwt_refresh_token>",
        "user": {"id": 1, "name": "...", "email": "...", "role": "gardener", ...}
    }

    Error response (401): {"detail": "Invalid credentials"}
    """
    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = 'login'

    def post(self, request, *args, **kwargs):
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        email = serializer.validated_data['email'].strip().lower()
        password = serializer.validated_data['password']
        client_ip = get_client_ip(request)

        user = authenticate(request, email=email, password=password)
        if user is None:
            logger.warning(f"Failed login attempt. Email: {email}, IP: {client_ip}")
            return Response(
                {'detail': 'Invalid credentials'},
                status=status.HTTP_401_UNAUTHORIZED
            )

        logger.info(f"Successful login. Email: {email}, IP: {client_ip}")

        return Response({
            **issue_tokens(user),
            'user': UserProfileSerializer(user, context={'request': request}).data,
        }, status=status.HTTP_200_OK)


class UserProfileView(APIView):
    """
    Retrieve or update the authenticated user's own profile.

    GET /api/auth/profile/
    PUT/PATCH /api/auth/profile/  {"name": "...", "phone_number": "...", "address": "..."}

    Role, email and verification fields cannot be changed here.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, *args, **kwargs):
        serializer = UserProfileSerializer(request.user, context={'request': request})
        return Response({'user': serializer.data}, status=status.HTTP_200_OK)

    def put(self, request, *args, **kwargs):
        return self._update_profile(request, partial=False)

    def patch(self, request, *args, **kwargs):
        return self._update_profile(request, partial=True)

    def _update_profile(self, request, partial=False):
        user = request.user
        serializer = UserProfileUpdateSerializer(
            user,
            data=request.data,
            partial=partial,
            context={'request': request}
        )

        if not serializer.is_valid():
            logger.warning(
                f"Profile update validation failed. "
                f"User ID: {user.id}, Errors: {serializer.errors}"
            )
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        serializer.save()
        logger.info(f"Profile updated. User ID: {user.id}, Email: {user.email}, Partial: {partial}")

        return Response({
            'message': 'Profile updated successfully',
            'user': UserProfileSerializer(user, context={'request': request}).data,
        }, status=status.HTTP_200_OK)


class UserDocumentUploadView(APIView):
    """
    Upload identity or address documents for account verification.

    POST /api/auth/upload-documents/  (multipart, field "documents", 1-5 files)

    New documents are added to the ones already on file.
    """
    permission_classes = [IsAuthenticated]

    def post(self, request, *args, **kwargs):
        serializer = DocumentUploadSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        listing_service.add_user_documents(request.user, serializer.validated_data['documents'])

        return Response({
            'message': 'Documents uploaded successfully',
            'user': UserProfileSerializer(request.user, context={'request': request}).data,
        }, status=status.HTTP_200_OK)


# ============================================================================
# Plot Views
# ============================================================================

def _parse_size_filter(request, name):
    raw = request.query_params.get(name)
    if raw in (None, ''):
        return None
    try:
        value = Decimal(raw)
    except InvalidOperation:
        raise ValidationError(f'{name} must be a number.')
    if not value.is_finite():
        raise ValidationError(f'{name} must be a number.')
    return value


def _parse_plot_payload(request):
    """
    Extract plot fields from a JSON body or a multipart form.

    Multipart requests carry the listing as a JSON string in ``plotData``
    and the photos as repeated ``images`` files.
    """
    if 'plotData' not in request.data:
        return request.data

    try:
        payload = json.loads(request.data['plotData'])
    except (TypeError, ValueError):
        raise ValidationError('plotData must be a valid JSON object.')
    if not isinstance(payload, dict):
        raise ValidationError('plotData must be a valid JSON object.')

    images = request.FILES.getlist('images')
    if images:
        payload['images'] = images
    return payload


class PlotListCreateView(APIView):
    """
    Browse bookable plots or list a new one.

    GET /api/plots/  (public)
    Query parameters:
    - city: Case-insensitive substring match
    - soil_type: clay, sandy, loamy, silt, chalky, peaty
    - water_availability: available, limited, not-available
    - min_size / max_size: Bounds on size value

    Only plots that are available and approved are listed, newest first.

    POST /api/plots/  (landowner)
    JSON body, or multipart with "plotData" (JSON string) and up to 10 "images".

    Success response (201): {"message": "Plot listed successfully", "plot": {...}}
    """

    def get_permissions(self):
        if self.request.method == 'GET':
            return [AllowAny()]
        return [IsAuthenticated(), IsLandowner()]

    def get(self, request, *args, **kwargs):
        queryset = Plot.objects.filter(
            is_available=True,
            verification_status=VerificationStatus.APPROVED,
        ).select_related('owner').prefetch_related('images', 'documents')

        city = request.query_params.get('city', '').strip()
        if city:
            queryset = queryset.filter(city__icontains=city)

        soil_type = request.query_params.get('soil_type')
        if soil_type:
            if soil_type not in SoilType.values:
                raise ValidationError(f'Invalid soil_type "{soil_type}".')
            queryset = queryset.filter(soil_type=soil_type)

        water = request.query_params.get('water_availability')
        if water:
            if water not in WaterAvailability.values:
                raise ValidationError(f'Invalid water_availability "{water}".')
            queryset = queryset.filter(water_availability=water)

        min_size = _parse_size_filter(request, 'min_size')
        if min_size is not None:
            queryset = queryset.filter(size_value__gte=min_size)

        max_size = _parse_size_filter(request, 'max_size')
        if max_size is not None:
            queryset = queryset.filter(size_value__lte=max_size)

        queryset = queryset.order_by('-created_at', '-id')
        serializer = PlotSerializer(queryset, many=True, context={'request': request})
        return Response({'plots': serializer.data}, status=status.HTTP_200_OK)

    def post(self, request, *args, **kwargs):
        serializer = PlotSerializer(
            data=_parse_plot_payload(request),
            context={'request': request}
        )
        serializer.is_valid(raise_exception=True)
        plot = serializer.save(owner=request.user)

        logger.info(
            f"Plot listed. Plot ID: {plot.id}, Owner: {request.user.email}, "
            f"Images: {plot.images.count()}, IP: {get_client_ip(request)}"
        )

        return Response({
            'message': 'Plot listed successfully',
            'plot': PlotSerializer(plot, context={'request': request}).data,
        }, status=status.HTTP_201_CREATED)


class MyPlotsView(APIView):
    """Every plot owned by the authenticated landowner, whatever its status."""
    permission_classes = [IsAuthenticated, IsLandowner]

    def get(self, request, *args, **kwargs):
        queryset = Plot.objects.filter(owner=request.user).prefetch_related(
            'images', 'documents'
        ).select_related('owner').order_by('-created_at', '-id')
        serializer = PlotSerializer(queryset, many=True, context={'request': request})
        return Response({'plots': serializer.data}, status=status.HTTP_200_OK)


class PlotDetailView(APIView):
    """
    GET /api/plots/<id>/  (public)
    PUT/PATCH /api/plots/<id>/  (owning landowner)
    DELETE /api/plots/<id>/  (owning landowner; refused once the plot has bookings)

    Updates and deletes look the plot up among the caller's own plots, so
    another landowner's plot answers 404.
    """

    def get_permissions(self):
        if self.request.method == 'GET':
            return [AllowAny()]
        return [IsAuthenticated(), IsLandowner()]

    def get_owned_plot(self, request, pk):
        try:
            return Plot.objects.get(pk=pk, owner=request.user)
        except Plot.DoesNotExist:
            raise NotFound('Plot not found.')

    def get(self, request, pk, *args, **kwargs):
        try:
            plot = Plot.objects.select_related('owner').get(pk=pk)
        except Plot.DoesNotExist:
            raise NotFound('Plot not found.')
        serializer = PlotSerializer(plot, context={'request': request})
        return Response({'plot': serializer.data}, status=status.HTTP_200_OK)

    def put(self, request, pk, *args, **kwargs):
        return self._update_plot(request, pk, partial=False)

    def patch(self, request, pk, *args, **kwargs):
        return self._update_plot(request, pk, partial=True)

    def _update_plot(self, request, pk, partial):
        plot = self.get_owned_plot(request, pk)
        serializer = PlotSerializer(
            plot,
            data=_parse_plot_payload(request),
            partial=partial,
            context={'request': request}
        )
        serializer.is_valid(raise_exception=True)
        plot = serializer.save()

        logger.info(f"Plot updated. Plot ID: {plot.id}, Owner: {request.user.email}")

        return Response({
            'message': 'Plot updated successfully',
            'plot': PlotSerializer(plot, context={'request': request}).data,
        }, status=status.HTTP_200_OK)

    def delete(self, request, pk, *args, **kwargs):
        plot = self.get_owned_plot(request, pk)
        listing_service.delete_plot(plot, request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)


class PlotDocumentUploadView(APIView):
    """
    Upload ownership documents for a plot, replacing any previous ones.

    POST /api/plots/<id>/upload-documents/
    Multipart fields: "documents" (1-5 files), "type" (ownership, bill, other)
    """
    permission_classes = [IsAuthenticated, IsLandowner]

    def post(self, request, pk, *args, **kwargs):
        try:
            plot = Plot.objects.get(pk=pk, owner=request.user)
        except Plot.DoesNotExist:
            raise NotFound('Plot not found.')

        serializer = PlotDocumentUploadSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        listing_service.replace_plot_documents(
            plot,
            serializer.validated_data['documents'],
            serializer.validated_data['type'],
        )

        return Response({
            'message': 'Documents uploaded successfully',
            'plot': PlotSerializer(plot, context={'request': request}).data,
        }, status=status.HTTP_200_OK)


# ============================================================================
# Booking Views
# ============================================================================

class BookingCreateView(APIView):
    """
    API endpoint for gardeners to request a plot.

    POST /api/bookings/
    Request body:
    {
        "plot_id": 1,
        "start_date": "2024-03-01",
        "end_date": "2024-06-01",
        "message": "Hoping to grow tomatoes"
    }

    Success response (201): {"message": "Booking request sent successfully", "booking": {...}}

    Error responses:
    - 400: Missing fields or end_date not after start_date
    - 401: Missing, invalid, or expired JWT token
    - 403: Caller is not a gardener
    - 404: Plot does not exist
    - 409: Plot is unavailable or not verified
    """
    permission_classes = [IsAuthenticated, IsGardener]

    def post(self, request, *args, **kwargs):
        serializer = BookingCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        booking = booking_service.create_booking(
            request.user,
            data['plot_id'],
            data['start_date'],
            data['end_date'],
            data['message'],
        )

        return Response({
            'message': 'Booking request sent successfully',
            'booking': BookingSerializer(booking, context={'request': request}).data,
        }, status=status.HTTP_201_CREATED)


class GardenerBookingsView(APIView):
    """Bookings made by the authenticated gardener, newest first."""
    permission_classes = [IsAuthenticated, IsGardener]

    def get(self, request, *args, **kwargs):
        bookings = booking_service.list_bookings(request.user)
        serializer = BookingSerializer(bookings, many=True, context={'request': request})
        return Response({'bookings': serializer.data}, status=status.HTTP_200_OK)


class LandownerBookingsView(APIView):
    """Bookings on the authenticated landowner's plots, newest first."""
    permission_classes = [IsAuthenticated, IsLandowner]

    def get(self, request, *args, **kwargs):
        bookings = booking_service.list_bookings(request.user)
        serializer = BookingSerializer(bookings, many=True, context={'request': request})
        return Response({'bookings': serializer.data}, status=status.HTTP_200_OK)


class BookingDetailView(APIView):
    """
    GET /api/bookings/<id>/     Booking details (gardener, landowner or admin)
    DELETE /api/bookings/<id>/  Cancel a pending booking (its gardener or an admin)
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, pk, *args, **kwargs):
        booking = booking_service.get_booking(pk, request.user)
        serializer = BookingSerializer(booking, context={'request': request})
        return Response({'booking': serializer.data}, status=status.HTTP_200_OK)

    def delete(self, request, pk, *args, **kwargs):
        booking = booking_service.cancel_booking(pk, request.user)

        logger.info(
            f"Booking cancelled. Booking ID: {pk}, "
            f"User: {request.user.email} (ID: {request.user.id}), IP: {get_client_ip(request)}"
        )

        return Response({
            'message': 'Booking cancelled successfully',
            'booking': BookingSerializer(booking, context={'request': request}).data,
        }, status=status.HTTP_200_OK)


class BookingApproveView(APIView):
    """
    PUT /api/bookings/<id>/approve/

    Approves a pending booking on one of the caller's plots and marks the
    plot unavailable. Answers 409 if the booking is not pending or the plot
    already has an approved booking.
    """
    permission_classes = [IsAuthenticated, IsLandowner]

    def put(self, request, pk, *args, **kwargs):
        booking = booking_service.approve_booking(pk, request.user)
        return Response({
            'message': 'Booking approved successfully',
            'booking': BookingSerializer(booking, context={'request': request}).data,
        }, status=status.HTTP_200_OK)


class BookingRejectView(APIView):
    """PUT /api/bookings/<id>/reject/  {"rejection_reason": "..."}"""
    permission_classes = [IsAuthenticated, IsLandowner]

    def put(self, request, pk, *args, **kwargs):
        serializer = BookingRejectSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        booking = booking_service.reject_booking(
            pk, request.user, serializer.validated_data['rejection_reason']
        )
        return Response({
            'message': 'Booking rejected',
            'booking': BookingSerializer(booking, context={'request': request}).data,
        }, status=status.HTTP_200_OK)


class BookingCompleteView(APIView):
    """PUT /api/bookings/<id>/complete/  Completes an approved booking and frees the plot."""
    permission_classes = [IsAuthenticated, IsLandowner]

    def put(self, request, pk, *args, **kwargs):
        booking = booking_service.complete_booking(pk, request.user)
        return Response({
            'message': 'Booking marked as completed',
            'booking': BookingSerializer(booking, context={'request': request}).data,
        }, status=status.HTTP_200_OK)


# ============================================================================
# Admin Views
# ============================================================================

def _choice_filter(request, name, choices):
    value = request.query_params.get(name)
    if not value:
        return None
    if value not in choices:
        raise ValidationError(f'Invalid {name} "{value}".')
    return value


class AdminUserListView(APIView):
    """
    GET /api/admin/users/?role=landowner&verification_status=pending

    All accounts, newest first.
    """
    permission_classes = [IsAuthenticated, IsAdmin]

    def get(self, request, *args, **kwargs):
        queryset = User.objects.prefetch_related('documents').order_by('-created_at', '-id')

        role = _choice_filter(request, 'role', Role.values)
        if role:
            queryset = queryset.filter(role=role)

        verification = _choice_filter(request, 'verification_status', VerificationStatus.values)
        if verification:
            queryset = queryset.filter(verification_status=verification)

        serializer = AdminUserSerializer(queryset, many=True, context={'request': request})
        return Response({'users': serializer.data}, status=status.HTTP_200_OK)


class AdminUserDetailView(APIView):
    permission_classes = [IsAuthenticated, IsAdmin]

    def get(self, request, pk, *args, **kwargs):
        try:
            user = User.objects.get(pk=pk)
        except User.DoesNotExist:
            raise NotFound(f'User with ID {pk} does not exist.')
        serializer = AdminUserSerializer(user, context={'request': request})
        return Response({'user': serializer.data}, status=status.HTTP_200_OK)


class AdminUserVerifyView(APIView):
    """
    PUT /api/admin/users/<id>/verify/
    Request body: {"verification_status": "approved" | "rejected" | "pending", "rejection_reason": "..."}
    """
    permission_classes = [IsAuthenticated, IsAdmin]

    def put(self, request, pk, *args, **kwargs):
        serializer = VerificationDecisionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        user = listing_service.verify_user(
            pk,
            request.user,
            serializer.validated_data['verification_status'],
            serializer.validated_data['rejection_reason'],
        )
        return Response({
            'message': f'User verification set to {user.verification_status}',
            'user': AdminUserSerializer(user, context={'request': request}).data,
        }, status=status.HTTP_200_OK)


class AdminPlotListView(APIView):
    """GET /api/admin/plots/?verification_status=pending  Every plot, newest first."""
    permission_classes = [IsAuthenticated, IsAdmin]

    def get(self, request, *args, **kwargs):
        queryset = Plot.objects.select_related('owner').prefetch_related(
            'images', 'documents'
        ).order_by('-created_at', '-id')

        verification = _choice_filter(request, 'verification_status', VerificationStatus.values)
        if verification:
            queryset = queryset.filter(verification_status=verification)

        serializer = PlotSerializer(queryset, many=True, context={'request': request})
        return Response({'plots': serializer.data}, status=status.HTTP_200_OK)


class AdminPlotDetailView(APIView):
    permission_classes = [IsAuthenticated, IsAdmin]

    def get(self, request, pk, *args, **kwargs):
        try:
            plot = Plot.objects.select_related('owner').get(pk=pk)
        except Plot.DoesNotExist:
            raise NotFound(f'Plot with ID {pk} does not exist.')
        serializer = PlotSerializer(plot, context={'request': request})
        return Response({'plot': serializer.data}, status=status.HTTP_200_OK)


class AdminPlotVerifyView(APIView):
    """
    PUT /api/admin/plots/<id>/verify/

    Rejecting a plot takes it off the market. Approving it clears the
    rejection reason and makes it available again unless a booking for it
    is currently approved.
    """
    permission_classes = [IsAuthenticated, IsAdmin]

    def put(self, request, pk, *args, **kwargs):
        serializer = VerificationDecisionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        plot = listing_service.verify_plot(
            pk,
            request.user,
            serializer.validated_data['verification_status'],
            serializer.validated_data['rejection_reason'],
        )
        return Response({
            'message': f'Plot verification set to {plot.verification_status}',
            'plot': PlotSerializer(plot, context={'request': request}).data,
        }, status=status.HTTP_200_OK)


class AdminBookingListView(APIView):
    """GET /api/admin/bookings/  Every booking, newest first."""
    permission_classes = [IsAuthenticated, IsAdmin]

    def get(self, request, *args, **kwargs):
        bookings = booking_service.list_bookings(request.user)
        serializer = BookingSerializer(bookings, many=True, context={'request': request})
        return Response({'bookings': serializer.data}, status=status.HTTP_200_OK)


class AdminStatsView(APIView):
    """
    GET /api/admin/stats/

    Success response (200):
    {
        "users": {"total": 12, "gardeners": 7, "landowners": 4, "pending_verifications": 3},
        "plots": {"total": 9, "available": 5, "pending": 2},
        "bookings": {"total": 20, "active": 4, "pending": 6}
    }
    """
    permission_classes = [IsAuthenticated, IsAdmin]

    def get(self, request, *args, **kwargs):
        return Response(listing_service.marketplace_stats(), status=status.HTTP_200_OK)
