"""
Booking engine.

Creates booking requests and moves them through their status machine:

    pending -> approved | rejected | cancelled
    approved -> completed

Checks run in a fixed order for every transition: role, existence,
ownership, then current status. Transitions that change a plot's
``is_available`` flag lock the booking row and the plot row and write both
inside one transaction, so the flag and the booking statuses never disagree.
"""

import logging

from django.db import IntegrityError, OperationalError, transaction

from marketplace.exceptions import Forbidden, InvalidState, NotFound, ValidationError
from marketplace.models import Booking, BookingStatus, Plot, Role, VerificationStatus
from marketplace.permissions import (
    authorize,
    can_cancel_booking,
    can_view_booking,
    is_booking_landowner,
)

logger = logging.getLogger(__name__)


def _lock_booking(booking_id):
    try:
        return Booking.objects.select_for_update().get(pk=booking_id)
    except Booking.DoesNotExist:
        raise NotFound(f'Booking with ID {booking_id} does not exist.')


def _lock_plot(plot_id):
    try:
        return Plot.objects.select_for_update().get(pk=plot_id)
    except Plot.DoesNotExist:
        raise NotFound(f'Plot with ID {plot_id} does not exist.')


def _ensure_booking_landowner(user, booking):
    if not is_booking_landowner(user, booking):
        logger.warning(
            f'Landowner {user.email} attempted to modify booking {booking.pk} '
            f'on a plot they do not own'
        )
        raise Forbidden('You can only manage bookings for your own plots.')


def _ensure_transition(booking, new_status):
    is_valid, error_message = booking.can_transition_to(new_status)
    if not is_valid:
        logger.warning(
            f'Rejected transition of booking {booking.pk} '
            f'from {booking.status} to {new_status}: {error_message}'
        )
        raise InvalidState(error_message)


def _is_lock_conflict(exc):
    # SQLite reports a writer it could not wait for as "database is locked"
    # or, for shared-cache connections, "database table is locked"
    return 'locked' in str(exc)


def create_booking(gardener, plot_id, start_date, end_date, message=''):
    """
    Create a pending booking request for a plot.

    The plot row is locked while its availability and verification are
    checked, so a concurrent approval cannot slip in between the check and
    the insert. The booking's landowner is copied from the plot's owner.

    Args:
        gardener: Requesting user; must have the gardener role
        plot_id: Primary key of the plot to book
        start_date: First day of the booking
        end_date: Last day of the booking; must be after start_date
        message: Optional note for the landowner

    Returns:
        Booking: The new booking in ``pending`` status

    Raises:
        Forbidden: Caller is not a gardener
        NotFound: Plot does not exist
        InvalidState: Plot is unavailable or not verified
        ValidationError: Dates are missing or end_date <= start_date
    """
    authorize(gardener, [Role.GARDENER], 'Only gardeners can request bookings.')

    with transaction.atomic():
        plot = _lock_plot(plot_id)

        if not plot.is_available:
            logger.warning(
                f'Booking request by {gardener.email} refused: plot {plot.pk} is not available'
            )
            raise InvalidState('This plot is not available for booking.')

        if plot.verification_status != VerificationStatus.APPROVED:
            logger.warning(
                f'Booking request by {gardener.email} refused: plot {plot.pk} is '
                f'{plot.verification_status}, not approved'
            )
            raise InvalidState('This plot has not been verified yet.')

        if start_date is None or end_date is None:
            raise ValidationError('Start date and end date are required.')

        if end_date <= start_date:
            raise ValidationError('End date must be after start date.')

        booking = Booking.objects.create(
            plot=plot,
            gardener=gardener,
            landowner_id=plot.owner_id,
            start_date=start_date,
            end_date=end_date,
            message=message or '',
            status=BookingStatus.PENDING,
        )

    logger.info(
        f'Booking {booking.pk} requested by {gardener.email} for plot {plot.pk} '
        f'({start_date} to {end_date})'
    )
    return booking


def approve_booking(booking_id, landowner):
    """
    Approve a pending booking and take its plot off the market.

    Both rows are locked before anything is checked. The approval is refused
    when the plot already holds another approved booking or has been marked
    unavailable, even if the booking itself is still pending. The partial
    unique constraint on approved bookings backs this up at the database
    level; a violation, or a writer lock SQLite could not obtain, is reported
    as InvalidState.

    Raises:
        Forbidden: Caller is not a landowner, or not this booking's landowner
        NotFound: Booking does not exist
        InvalidState: Booking is not pending, or the plot is already taken
    """
    authorize(landowner, [Role.LANDOWNER], 'Only landowners can approve bookings.')

    try:
        with transaction.atomic():
            booking = _lock_booking(booking_id)
            _ensure_booking_landowner(landowner, booking)
            _ensure_transition(booking, BookingStatus.APPROVED)

            plot = _lock_plot(booking.plot_id)
            if plot.has_approved_booking(exclude_booking_id=booking.pk):
                raise InvalidState('This plot already has an approved booking.')
            if not plot.is_available:
                raise InvalidState('This plot is no longer available.')

            booking.status = BookingStatus.APPROVED
            booking.save(update_fields=['status', 'updated_at'])

            plot.is_available = False
            plot.save(update_fields=['is_available', 'updated_at'])
    except IntegrityError:
        logger.warning(
            f'Concurrent approval detected for booking {booking_id}; '
            f'plot already has an approved booking'
        )
        raise InvalidState('This plot already has an approved booking.')
    except OperationalError as exc:
        if not _is_lock_conflict(exc):
            raise
        logger.warning(f'Approval of booking {booking_id} lost a lock race: {exc}')
        raise InvalidState('This plot is being updated by another request. Please try again.')

    logger.info(f'Booking {booking.pk} approved by {landowner.email}; plot {plot.pk} unavailable')
    return booking


def reject_booking(booking_id, landowner, reason=''):
    """
    Reject a pending booking. The plot's availability is left untouched.

    Raises:
        Forbidden: Caller is not a landowner, or not this booking's landowner
        NotFound: Booking does not exist
        InvalidState: Booking is not pending
    """
    authorize(landowner, [Role.LANDOWNER], 'Only landowners can reject bookings.')

    with transaction.atomic():
        booking = _lock_booking(booking_id)
        _ensure_booking_landowner(landowner, booking)
        _ensure_transition(booking, BookingStatus.REJECTED)

        booking.status = BookingStatus.REJECTED
        booking.rejection_reason = reason or ''
        booking.save(update_fields=['status', 'rejection_reason', 'updated_at'])

    logger.info(f'Booking {booking.pk} rejected by {landowner.email}')
    return booking


def complete_booking(booking_id, landowner):
    """
    Mark an approved booking as completed and put its plot back on the market.

    The plot becomes available again unless an admin has rejected the
    listing in the meantime.

    Raises:
        Forbidden: Caller is not a landowner, or not this booking's landowner
        NotFound: Booking does not exist
        InvalidState: Booking is not approved
    """
    authorize(landowner, [Role.LANDOWNER], 'Only landowners can complete bookings.')

    try:
        with transaction.atomic():
            booking = _lock_booking(booking_id)
            _ensure_booking_landowner(landowner, booking)
            _ensure_transition(booking, BookingStatus.COMPLETED)

            plot = _lock_plot(booking.plot_id)

            booking.status = BookingStatus.COMPLETED
            booking.save(update_fields=['status', 'updated_at'])

            plot.is_available = plot.verification_status != VerificationStatus.REJECTED
            plot.save(update_fields=['is_available', 'updated_at'])
    except OperationalError as exc:
        if not _is_lock_conflict(exc):
            raise
        logger.warning(f'Completion of booking {booking_id} lost a lock race: {exc}')
        raise InvalidState('This plot is being updated by another request. Please try again.')

    logger.info(f'Booking {booking.pk} completed by {landowner.email}; plot {plot.pk} released')
    return booking


def cancel_booking(booking_id, user):
    """
    Cancel a pending booking.

    Allowed for the gardener who made the booking and for admins. Approved
    bookings cannot be cancelled; the plot's availability never changes here.

    Raises:
        Forbidden: Caller is a landowner, or a gardener who does not own the booking
        NotFound: Booking does not exist
        InvalidState: Booking is not pending
    """
    authorize(
        user,
        [Role.GARDENER, Role.ADMIN],
        'Only the gardener who made the booking or an admin can cancel it.'
    )

    with transaction.atomic():
        booking = _lock_booking(booking_id)
        if not can_cancel_booking(user, booking):
            logger.warning(f'User {user.email} attempted to cancel booking {booking.pk}')
            raise Forbidden('You can only cancel your own bookings.')
        _ensure_transition(booking, BookingStatus.CANCELLED)

        booking.status = BookingStatus.CANCELLED
        booking.save(update_fields=['status', 'updated_at'])

    logger.info(f'Booking {booking.pk} cancelled by {user.email}')
    return booking


def get_booking(booking_id, user):
    """
    Fetch a booking visible to ``user``.

    Raises:
        NotFound: Booking does not exist
        Forbidden: Caller is neither party to the booking nor an admin
    """
    try:
        booking = Booking.objects.select_related(
            'plot', 'gardener', 'landowner'
        ).get(pk=booking_id)
    except Booking.DoesNotExist:
        raise NotFound(f'Booking with ID {booking_id} does not exist.')

    if not can_view_booking(user, booking):
        raise Forbidden('You do not have permission to view this booking.')

    return booking


def list_bookings(user):
    """
    Bookings visible to ``user``, newest first.

    - gardener: bookings they made
    - landowner: bookings on their plots
    - admin: every booking
    """
    queryset = Booking.objects.select_related('plot', 'gardener', 'landowner')

    role = Role(user.role)
    if role == Role.GARDENER:
        queryset = queryset.filter(gardener=user)
    elif role == Role.LANDOWNER:
        queryset = queryset.filter(landowner=user)
    elif role == Role.ADMIN:
        pass
    else:
        raise ValueError(f'Unhandled role: {role}')

    return queryset.order_by('-created_at', '-id')
