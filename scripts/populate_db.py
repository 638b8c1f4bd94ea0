import os
import sys
import django
import random
from decimal import Decimal
from datetime import timedelta
from django.utils import timezone
from faker import Faker

# Add project root to Python path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Set up Django environment
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'greenspace.settings')
django.setup()

from marketplace.exceptions import InvalidState
from marketplace.models import (
    User, Plot, Role, VerificationStatus, SizeUnit, SoilType, WaterAvailability
)
from marketplace.services import booking_service

fake = Faker()

AMENITIES = [
    'Fenced', 'Tool shed', 'Compost bins', 'Parking', 'Greenhouse',
    'Rainwater tank', 'Drip irrigation', 'Shade net',
]


def fake_phone():
    return f'+91 {random.randint(7000000000, 9999999999)}'


def create_users(num_gardeners=10, num_landowners=5):
    print(f"Creating {num_gardeners} gardeners and {num_landowners} landowners...")

    gardeners = []
    landowners = []

    for _ in range(num_gardeners):
        email = fake.unique.email()
        user = User.objects.create_user(
            username=email,
            email=email,
            password='password123',
            name=fake.name(),
            phone_number=fake_phone(),
            address=fake.address(),
            role=Role.GARDENER,
            verification_status=random.choice(VerificationStatus.values),
        )
        gardeners.append(user)

    for _ in range(num_landowners):
        email = fake.unique.email()
        user = User.objects.create_user(
            username=email,
            email=email,
            password='password123',
            name=fake.name(),
            phone_number=fake_phone(),
            address=fake.address(),
            role=Role.LANDOWNER,
            verification_status=random.choice(VerificationStatus.values),
        )
        landowners.append(user)

    print(f"Created {len(gardeners)} gardeners and {len(landowners)} landowners.")
    return gardeners, landowners


def create_plots(landowners):
    print("Creating plots...")
    plots = []

    for landowner in landowners:
        # Each landowner lists 1-3 plots
        for _ in range(random.randint(1, 3)):
            status = random.choice(
                [VerificationStatus.APPROVED] * 3
                + [VerificationStatus.PENDING, VerificationStatus.REJECTED]
            )
            plot = Plot.objects.create(
                owner=landowner,
                title=f"{random.choice(['Sunny', 'Quiet', 'Riverside', 'Hillside'])} "
                      f"{random.choice(['Garden Plot', 'Allotment', 'Orchard Corner', 'Backyard'])}",
                description=fake.paragraph(),
                address=fake.street_address(),
                city=fake.city(),
                state=fake.state_abbr(),
                postal_code=fake.postcode(),
                latitude=Decimal(str(fake.latitude())).quantize(Decimal('0.000001')),
                longitude=Decimal(str(fake.longitude())).quantize(Decimal('0.000001')),
                size_value=Decimal(random.uniform(100.0, 5000.0)).quantize(Decimal('0.01')),
                size_unit=random.choice(SizeUnit.values),
                soil_type=random.choice(SoilType.values),
                water_availability=random.choice(WaterAvailability.values),
                amenities=random.sample(AMENITIES, random.randint(0, 4)),
                verification_status=status,
                is_available=status != VerificationStatus.REJECTED,
                rejection_reason=fake.sentence() if status == VerificationStatus.REJECTED else '',
            )
            plots.append(plot)

    print(f"Created {len(plots)} plots.")
    return plots


def create_bookings(gardeners, plots):
    """
    Drive bookings through the booking engine so plot availability stays
    consistent with booking status.
    """
    print("Creating bookings...")
    bookings = []

    for gardener in gardeners:
        # Each gardener requests 0-3 plots
        for _ in range(random.randint(0, 3)):
            plot = random.choice(plots)
            start = timezone.now().date() + timedelta(days=random.randint(-60, 60))
            end = start + timedelta(days=random.randint(30, 180))

            try:
                booking = booking_service.create_booking(
                    gardener, plot.pk, start, end, fake.sentence()
                )
            except InvalidState:
                continue

            outcome = random.choice(['pending', 'approved', 'rejected', 'completed', 'cancelled'])
            try:
                if outcome in ('approved', 'completed'):
                    booking = booking_service.approve_booking(booking.pk, plot.owner)
                if outcome == 'completed':
                    booking = booking_service.complete_booking(booking.pk, plot.owner)
                elif outcome == 'rejected':
                    booking = booking_service.reject_booking(
                        booking.pk, plot.owner, 'Plot reserved for another season'
                    )
                elif outcome == 'cancelled':
                    booking = booking_service.cancel_booking(booking.pk, gardener)
            except InvalidState:
                # Another booking on the plot was approved first
                pass

            bookings.append(booking)

    print(f"Created {len(bookings)} bookings.")
    return bookings


def main():
    print("Starting database population...")

    gardeners, landowners = create_users(num_gardeners=20, num_landowners=8)

    plots = create_plots(landowners)

    create_bookings(gardeners, plots)

    print("Database population completed successfully!")


if __name__ == '__main__':
    main()
