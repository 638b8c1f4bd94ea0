"""
Object builders shared by the test modules.
"""

from datetime import date
from decimal import Decimal
from io import BytesIO

from django.contrib.auth import get_user_model
from django.core.files.uploadedfile import SimpleUploadedFile
from PIL import Image
from rest_framework_simplejwt.tokens import RefreshToken

from marketplace.models import Booking, BookingStatus, Plot, VerificationStatus

User = get_user_model()

TEST_PASSWORD = 'GreenThumb#2024'


def create_user(email, role, **extra):
    extra.setdefault('name', email.split('@')[0].title())
    return User.objects.create_user(
        username=email,
        email=email,
        password=TEST_PASSWORD,
        role=role,
        **extra
    )


def create_plot(owner, **extra):
    """Approved, available plot unless overridden."""
    fields = {
        'title': 'Sunny Allotment',
        'description': 'South-facing plot with rich soil.',
        'address': '12 Orchard Lane',
        'city': 'Pune',
        'state': 'MH',
        'postal_code': '411001',
        'size_value': Decimal('500.00'),
        'soil_type': 'loamy',
        'water_availability': 'available',
        'verification_status': VerificationStatus.APPROVED,
    }
    fields.update(extra)
    return Plot.objects.create(owner=owner, **fields)


def create_booking(plot, gardener, status=BookingStatus.PENDING, **extra):
    """Insert a booking row directly, bypassing the booking engine."""
    fields = {
        'start_date': date(2024, 3, 1),
        'end_date': date(2024, 6, 1),
        'message': 'Hoping to grow tomatoes.',
    }
    fields.update(extra)
    booking = Booking.objects.create(
        plot=plot,
        gardener=gardener,
        landowner=plot.owner,
        **fields
    )
    if status != BookingStatus.PENDING:
        # Direct update skips transition validation
        Booking.objects.filter(pk=booking.pk).update(status=status)
        booking.refresh_from_db()
    return booking


def bearer(user):
    return f'Bearer {RefreshToken.for_user(user).access_token}'


def create_test_image(filename='plot.jpg', size=(100, 100), format='JPEG'):
    """Create a small in-memory image upload."""
    file = BytesIO()
    image = Image.new('RGB', size, color='green')
    image.save(file, format)
    file.seek(0)
    return SimpleUploadedFile(
        filename,
        file.read(),
        content_type=f'image/{format.lower()}'
    )


def create_test_document(filename='deed.pdf', content=b'%PDF-1.4 test document'):
    return SimpleUploadedFile(filename, content, content_type='application/pdf')
