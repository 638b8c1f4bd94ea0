"""
Listing and account operations that touch more than one row.

Plot availability rules live here alongside the admin verification
decisions that affect it:

- ``is_available`` is cleared when a booking is approved or the listing is
  rejected by an admin.
- It is set again when the approved booking completes, or when an admin
  re-approves a listing that has no approved booking.
"""

import logging

from django.db import transaction
from django.db.models import Count, Q

from marketplace.exceptions import InvalidState, NotFound
from marketplace.models import (
    Booking,
    BookingStatus,
    Plot,
    PlotDocument,
    Role,
    User,
    UserDocument,
    VerificationStatus,
)

logger = logging.getLogger(__name__)


def expected_availability(plot):
    """
    Availability derived from current state rather than the stored flag.

    A plot is available when its listing has not been rejected and it holds
    no approved booking.
    """
    if plot.verification_status == VerificationStatus.REJECTED:
        return False
    return not plot.has_approved_booking()


def verify_plot(plot_id, admin, verification_status, rejection_reason=''):
    """
    Record an admin verification decision on a plot.

    - rejected: reason stored, plot taken off the market
    - approved: reason cleared, availability recomputed
    - pending: reason cleared, availability untouched

    Raises:
        NotFound: Plot does not exist
    """
    with transaction.atomic():
        try:
            plot = Plot.objects.select_for_update().get(pk=plot_id)
        except Plot.DoesNotExist:
            raise NotFound(f'Plot with ID {plot_id} does not exist.')

        plot.verification_status = verification_status
        if verification_status == VerificationStatus.REJECTED:
            plot.rejection_reason = rejection_reason or ''
            plot.is_available = False
        else:
            plot.rejection_reason = ''
            if verification_status == VerificationStatus.APPROVED:
                plot.is_available = expected_availability(plot)

        plot.save(update_fields=[
            'verification_status', 'rejection_reason', 'is_available', 'updated_at'
        ])

    logger.info(
        f'Admin {admin.email} set plot {plot.pk} verification to {verification_status} '
        f'(available={plot.is_available})'
    )
    return plot


def verify_user(user_id, admin, verification_status, rejection_reason=''):
    """
    Record an admin verification decision on a user account.

    ``is_verified`` follows the status through ``User.save``. The rejection
    reason is kept only while the account is rejected.

    Raises:
        NotFound: User does not exist
    """
    try:
        user = User.objects.get(pk=user_id)
    except User.DoesNotExist:
        raise NotFound(f'User with ID {user_id} does not exist.')

    user.verification_status = verification_status
    if verification_status == VerificationStatus.REJECTED:
        user.rejection_reason = rejection_reason or ''
    else:
        user.rejection_reason = ''
    user.save(update_fields=['verification_status', 'rejection_reason', 'updated_at'])

    logger.info(f'Admin {admin.email} set user {user.email} verification to {verification_status}')
    return user


def delete_plot(plot, owner):
    """
    Delete a landowner's plot.

    Bookings keep a protected reference to their plot, so a plot that was
    ever booked cannot be removed.

    Raises:
        InvalidState: The plot has bookings
    """
    if plot.bookings.exists():
        raise InvalidState('Plots with bookings cannot be deleted.')

    plot_id = plot.pk
    plot.delete()
    logger.info(f'Plot {plot_id} deleted by {owner.email}')


def replace_plot_documents(plot, files, document_type):
    """Replace every document attached to ``plot`` with ``files``."""
    with transaction.atomic():
        plot.documents.all().delete()
        documents = [
            PlotDocument.objects.create(
                plot=plot,
                name=upload.name,
                file=upload,
                document_type=document_type,
            )
            for upload in files
        ]

    logger.info(f'Plot {plot.pk} documents replaced ({len(documents)} files, type={document_type})')
    return documents


def add_user_documents(user, files):
    """Append verification documents to ``user``'s existing documents."""
    documents = [
        UserDocument.objects.create(user=user, name=upload.name, file=upload)
        for upload in files
    ]
    logger.info(f'User {user.email} uploaded {len(documents)} verification documents')
    return documents


def marketplace_stats():
    """
    Headline counts for the admin dashboard.

    Returns:
        dict: users, plots and bookings sections
    """
    users = User.objects.aggregate(
        total=Count('id'),
        gardeners=Count('id', filter=Q(role=Role.GARDENER)),
        landowners=Count('id', filter=Q(role=Role.LANDOWNER)),
        pending_verifications=Count(
            'id', filter=Q(verification_status=VerificationStatus.PENDING)
        ),
    )
    plots = Plot.objects.aggregate(
        total=Count('id'),
        available=Count(
            'id',
            filter=Q(is_available=True, verification_status=VerificationStatus.APPROVED),
        ),
        pending=Count('id', filter=Q(verification_status=VerificationStatus.PENDING)),
    )
    bookings = Booking.objects.aggregate(
        total=Count('id'),
        active=Count('id', filter=Q(status=BookingStatus.APPROVED)),
        pending=Count('id', filter=Q(status=BookingStatus.PENDING)),
    )
    return {'users': users, 'plots': plots, 'bookings': bookings}
