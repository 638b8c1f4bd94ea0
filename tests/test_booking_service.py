"""
Tests for the booking engine.

Test Coverage:
- CreateBooking preconditions (role, plot existence, availability, dates)
- Approve / Reject / Complete / Cancel transitions and their error ordering
- Plot availability coupling for approve and complete
- Get and ListBookings visibility per role
- At most one approved booking per plot, sequentially and under threads
- Refused operations logged at WARNING
"""

import threading
from datetime import date
from unittest import mock

import pytest
from django.db import OperationalError, connection
from django.test import TestCase, TransactionTestCase
from rest_framework import status
from rest_framework.test import APIClient

from marketplace.exceptions import Forbidden, InvalidState, NotFound, ValidationError
from marketplace.models import Booking, BookingStatus, Plot, Role, VerificationStatus
from marketplace.services import booking_service

from helpers import bearer, create_booking, create_plot, create_user

START = date(2024, 3, 1)
END = date(2024, 6, 1)


# ============================================================================
# CreateBooking
# ============================================================================

@pytest.mark.django_db
class TestCreateBooking:

    def test_gardener_creates_pending_booking(self, gardener, landowner, plot):
        booking = booking_service.create_booking(
            gardener, plot.id, START, END, 'Hoping to grow tomatoes.'
        )

        assert booking.status == BookingStatus.PENDING
        assert booking.gardener == gardener
        assert booking.landowner == landowner
        assert booking.plot == plot
        assert booking.message == 'Hoping to grow tomatoes.'

    def test_create_does_not_change_plot_availability(self, gardener, plot):
        booking_service.create_booking(gardener, plot.id, START, END)

        plot.refresh_from_db()
        assert plot.is_available is True

    def test_landowner_snapshot_is_plot_owner(self, gardener, plot):
        booking = booking_service.create_booking(gardener, plot.id, START, END)
        assert booking.landowner_id == plot.owner_id

    @pytest.mark.parametrize('role', [Role.LANDOWNER, Role.ADMIN])
    def test_non_gardener_is_forbidden(self, role, plot):
        caller = create_user(f'{role}.caller@example.com', role)

        with pytest.raises(Forbidden):
            booking_service.create_booking(caller, plot.id, START, END)

        assert Booking.objects.count() == 0

    def test_role_check_precedes_plot_lookup(self, landowner):
        with pytest.raises(Forbidden):
            booking_service.create_booking(landowner, 99999, START, END)

    def test_missing_plot_raises_not_found(self, gardener):
        with pytest.raises(NotFound):
            booking_service.create_booking(gardener, 99999, START, END)

    def test_unavailable_plot_raises_invalid_state(self, gardener, plot):
        Plot.objects.filter(pk=plot.pk).update(is_available=False)

        with pytest.raises(InvalidState):
            booking_service.create_booking(gardener, plot.id, START, END)

    @pytest.mark.parametrize(
        'verification', [VerificationStatus.PENDING, VerificationStatus.REJECTED]
    )
    def test_unverified_plot_raises_invalid_state(self, verification, gardener, landowner):
        unverified = create_plot(landowner, verification_status=verification)

        with pytest.raises(InvalidState):
            booking_service.create_booking(gardener, unverified.id, START, END)

    def test_end_before_start_raises_validation_error(self, gardener, plot):
        with pytest.raises(ValidationError):
            booking_service.create_booking(gardener, plot.id, END, START)

    def test_same_day_range_raises_validation_error(self, gardener, plot):
        with pytest.raises(ValidationError):
            booking_service.create_booking(gardener, plot.id, START, START)

    def test_missing_dates_raise_validation_error(self, gardener, plot):
        with pytest.raises(ValidationError):
            booking_service.create_booking(gardener, plot.id, None, END)

    def test_past_dates_are_accepted(self, gardener, plot):
        booking = booking_service.create_booking(
            gardener, plot.id, date(2020, 1, 1), date(2020, 2, 1)
        )
        assert booking.status == BookingStatus.PENDING

    def test_multiple_pending_requests_for_same_plot_allowed(
        self, gardener, other_gardener, plot
    ):
        booking_service.create_booking(gardener, plot.id, START, END)
        booking_service.create_booking(other_gardener, plot.id, START, END)

        assert plot.bookings.filter(status=BookingStatus.PENDING).count() == 2


# ============================================================================
# Approve
# ============================================================================

@pytest.mark.django_db
class TestApproveBooking:

    def test_landowner_approves_pending_booking(self, gardener, landowner, plot):
        booking = create_booking(plot, gardener)

        approved = booking_service.approve_booking(booking.id, landowner)

        assert approved.status == BookingStatus.APPROVED
        plot.refresh_from_db()
        assert plot.is_available is False

    def test_gardener_is_forbidden(self, gardener, plot):
        booking = create_booking(plot, gardener)

        with pytest.raises(Forbidden):
            booking_service.approve_booking(booking.id, gardener)

    def test_admin_is_forbidden(self, gardener, marketplace_admin, plot):
        booking = create_booking(plot, gardener)

        with pytest.raises(Forbidden):
            booking_service.approve_booking(booking.id, marketplace_admin)

        booking.refresh_from_db()
        assert booking.status == BookingStatus.PENDING

    def test_other_landowner_is_forbidden(self, gardener, other_landowner, plot):
        booking = create_booking(plot, gardener)

        with pytest.raises(Forbidden):
            booking_service.approve_booking(booking.id, other_landowner)

        booking.refresh_from_db()
        plot.refresh_from_db()
        assert booking.status == BookingStatus.PENDING
        assert plot.is_available is True

    def test_missing_booking_raises_not_found(self, landowner):
        with pytest.raises(NotFound):
            booking_service.approve_booking(99999, landowner)

    def test_role_check_precedes_lookup(self, gardener):
        with pytest.raises(Forbidden):
            booking_service.approve_booking(99999, gardener)

    def test_ownership_check_precedes_status_check(self, gardener, other_landowner, plot):
        booking = create_booking(plot, gardener, status=BookingStatus.REJECTED)

        with pytest.raises(Forbidden):
            booking_service.approve_booking(booking.id, other_landowner)

    @pytest.mark.parametrize('current', [
        BookingStatus.APPROVED,
        BookingStatus.REJECTED,
        BookingStatus.COMPLETED,
        BookingStatus.CANCELLED,
    ])
    def test_non_pending_booking_raises_invalid_state(self, current, gardener, landowner, plot):
        booking = create_booking(plot, gardener, status=current)

        with pytest.raises(InvalidState):
            booking_service.approve_booking(booking.id, landowner)

        booking.refresh_from_db()
        assert booking.status == current

    def test_second_approval_on_same_plot_fails(
        self, gardener, other_gardener, landowner, plot
    ):
        first = create_booking(plot, gardener)
        second = create_booking(plot, other_gardener)

        booking_service.approve_booking(first.id, landowner)
        with pytest.raises(InvalidState):
            booking_service.approve_booking(second.id, landowner)

        second.refresh_from_db()
        assert second.status == BookingStatus.PENDING
        assert plot.bookings.filter(status=BookingStatus.APPROVED).count() == 1

    def test_stale_availability_flag_does_not_allow_second_approval(
        self, gardener, other_gardener, landowner, plot
    ):
        create_booking(plot, gardener, status=BookingStatus.APPROVED)
        # Flag drifted: still True although a booking is approved
        Plot.objects.filter(pk=plot.pk).update(is_available=True)
        pending = create_booking(plot, other_gardener)

        with pytest.raises(InvalidState):
            booking_service.approve_booking(pending.id, landowner)

        assert plot.bookings.filter(status=BookingStatus.APPROVED).count() == 1

    def test_unavailable_plot_blocks_approval(self, gardener, landowner, plot):
        booking = create_booking(plot, gardener)
        Plot.objects.filter(pk=plot.pk).update(is_available=False)

        with pytest.raises(InvalidState):
            booking_service.approve_booking(booking.id, landowner)

        booking.refresh_from_db()
        assert booking.status == BookingStatus.PENDING

    def test_database_constraint_violation_reported_as_invalid_state(
        self, gardener, other_gardener, landowner, plot
    ):
        create_booking(plot, gardener, status=BookingStatus.APPROVED)
        Plot.objects.filter(pk=plot.pk).update(is_available=True)
        pending = create_booking(plot, other_gardener)

        # Skip the application-level check so the unique constraint fires
        with mock.patch.object(Plot, 'has_approved_booking', return_value=False):
            with pytest.raises(InvalidState):
                booking_service.approve_booking(pending.id, landowner)

        pending.refresh_from_db()
        plot.refresh_from_db()
        assert pending.status == BookingStatus.PENDING
        assert plot.is_available is True

    def test_lock_conflict_reported_as_invalid_state(self, gardener, landowner, plot):
        booking = create_booking(plot, gardener)

        with mock.patch.object(
            Plot, 'has_approved_booking', side_effect=OperationalError('database is locked')
        ):
            with pytest.raises(InvalidState):
                booking_service.approve_booking(booking.id, landowner)

        booking.refresh_from_db()
        plot.refresh_from_db()
        assert booking.status == BookingStatus.PENDING
        assert plot.is_available is True

    def test_other_database_errors_propagate(self, gardener, landowner, plot):
        booking = create_booking(plot, gardener)

        with mock.patch.object(
            Plot, 'has_approved_booking', side_effect=OperationalError('disk I/O error')
        ):
            with pytest.raises(OperationalError):
                booking_service.approve_booking(booking.id, landowner)


# ============================================================================
# Reject
# ============================================================================

@pytest.mark.django_db
class TestRejectBooking:

    def test_landowner_rejects_with_reason(self, gardener, landowner, plot):
        booking = create_booking(plot, gardener)

        rejected = booking_service.reject_booking(booking.id, landowner, 'Plot is resting')

        assert rejected.status == BookingStatus.REJECTED
        assert rejected.rejection_reason == 'Plot is resting'

    def test_reject_leaves_plot_available(self, gardener, landowner, plot):
        booking = create_booking(plot, gardener)

        booking_service.reject_booking(booking.id, landowner)

        plot.refresh_from_db()
        assert plot.is_available is True

    def test_approved_booking_cannot_be_rejected(self, gardener, landowner, plot):
        booking = create_booking(plot, gardener)
        booking_service.approve_booking(booking.id, landowner)

        with pytest.raises(InvalidState):
            booking_service.reject_booking(booking.id, landowner)

    def test_other_landowner_is_forbidden(self, gardener, other_landowner, plot):
        booking = create_booking(plot, gardener)

        with pytest.raises(Forbidden):
            booking_service.reject_booking(booking.id, other_landowner)

    def test_gardener_is_forbidden(self, gardener, plot):
        booking = create_booking(plot, gardener)

        with pytest.raises(Forbidden):
            booking_service.reject_booking(booking.id, gardener)


# ============================================================================
# Complete
# ============================================================================

@pytest.mark.django_db
class TestCompleteBooking:

    def test_complete_releases_plot(self, gardener, landowner, plot):
        booking = create_booking(plot, gardener)
        booking_service.approve_booking(booking.id, landowner)

        completed = booking_service.complete_booking(booking.id, landowner)

        assert completed.status == BookingStatus.COMPLETED
        plot.refresh_from_db()
        assert plot.is_available is True

    @pytest.mark.parametrize('current', [
        BookingStatus.PENDING,
        BookingStatus.REJECTED,
        BookingStatus.CANCELLED,
        BookingStatus.COMPLETED,
    ])
    def test_only_approved_bookings_complete(self, current, gardener, landowner, plot):
        booking = create_booking(plot, gardener, status=current)

        with pytest.raises(InvalidState):
            booking_service.complete_booking(booking.id, landowner)

        booking.refresh_from_db()
        assert booking.status == current

    def test_complete_keeps_admin_rejected_plot_unavailable(self, gardener, landowner, plot):
        booking = create_booking(plot, gardener)
        booking_service.approve_booking(booking.id, landowner)
        Plot.objects.filter(pk=plot.pk).update(verification_status=VerificationStatus.REJECTED)

        booking_service.complete_booking(booking.id, landowner)

        plot.refresh_from_db()
        assert plot.is_available is False

    def test_other_landowner_is_forbidden(self, gardener, landowner, other_landowner, plot):
        booking = create_booking(plot, gardener)
        booking_service.approve_booking(booking.id, landowner)

        with pytest.raises(Forbidden):
            booking_service.complete_booking(booking.id, other_landowner)

        plot.refresh_from_db()
        assert plot.is_available is False

    def test_lock_conflict_reported_as_invalid_state(self, gardener, landowner, plot):
        booking = create_booking(plot, gardener)
        booking_service.approve_booking(booking.id, landowner)

        with mock.patch.object(Plot, 'save', side_effect=OperationalError('database is locked')):
            with pytest.raises(InvalidState):
                booking_service.complete_booking(booking.id, landowner)

        booking.refresh_from_db()
        assert booking.status == BookingStatus.APPROVED


# ============================================================================
# Cancel
# ============================================================================

@pytest.mark.django_db
class TestCancelBooking:

    def test_gardener_cancels_pending_booking(self, gardener, plot):
        booking = create_booking(plot, gardener)

        cancelled = booking_service.cancel_booking(booking.id, gardener)

        assert cancelled.status == BookingStatus.CANCELLED
        plot.refresh_from_db()
        assert plot.is_available is True

    def test_admin_can_cancel(self, gardener, marketplace_admin, plot):
        booking = create_booking(plot, gardener)

        cancelled = booking_service.cancel_booking(booking.id, marketplace_admin)

        assert cancelled.status == BookingStatus.CANCELLED

    def test_approved_booking_cannot_be_cancelled(self, gardener, landowner, plot):
        booking = create_booking(plot, gardener)
        booking_service.approve_booking(booking.id, landowner)

        with pytest.raises(InvalidState):
            booking_service.cancel_booking(booking.id, gardener)

        booking.refresh_from_db()
        plot.refresh_from_db()
        assert booking.status == BookingStatus.APPROVED
        assert plot.is_available is False

    @pytest.mark.parametrize('current', [
        BookingStatus.REJECTED,
        BookingStatus.COMPLETED,
        BookingStatus.CANCELLED,
    ])
    def test_terminal_booking_cannot_be_cancelled(self, current, gardener, plot):
        booking = create_booking(plot, gardener, status=current)

        with pytest.raises(InvalidState):
            booking_service.cancel_booking(booking.id, gardener)

    def test_other_gardener_is_forbidden(self, gardener, other_gardener, plot):
        booking = create_booking(plot, gardener)

        with pytest.raises(Forbidden):
            booking_service.cancel_booking(booking.id, other_gardener)

    def test_landowner_is_forbidden(self, gardener, landowner, plot):
        booking = create_booking(plot, gardener)

        with pytest.raises(Forbidden):
            booking_service.cancel_booking(booking.id, landowner)

    def test_missing_booking_raises_not_found(self, gardener):
        with pytest.raises(NotFound):
            booking_service.cancel_booking(99999, gardener)


# ============================================================================
# Get / List
# ============================================================================

@pytest.mark.django_db
class TestBookingVisibility:

    def test_parties_and_admin_can_get_booking(
        self, gardener, landowner, marketplace_admin, plot
    ):
        booking = create_booking(plot, gardener)

        for caller in (gardener, landowner, marketplace_admin):
            assert booking_service.get_booking(booking.id, caller).id == booking.id

    def test_unrelated_users_are_forbidden(self, gardener, other_gardener, other_landowner, plot):
        booking = create_booking(plot, gardener)

        for caller in (other_gardener, other_landowner):
            with pytest.raises(Forbidden):
                booking_service.get_booking(booking.id, caller)

    def test_get_missing_booking_raises_not_found(self, gardener):
        with pytest.raises(NotFound):
            booking_service.get_booking(99999, gardener)

    def test_list_is_dispatched_by_role(
        self, gardener, other_gardener, landowner, other_landowner, marketplace_admin, plot
    ):
        other_plot = create_plot(other_landowner, title='Shady Corner')
        mine = create_booking(plot, gardener)
        theirs = create_booking(other_plot, other_gardener)

        assert list(booking_service.list_bookings(gardener)) == [mine]
        assert list(booking_service.list_bookings(other_gardener)) == [theirs]
        assert list(booking_service.list_bookings(landowner)) == [mine]
        assert list(booking_service.list_bookings(other_landowner)) == [theirs]
        assert set(booking_service.list_bookings(marketplace_admin)) == {mine, theirs}

    def test_list_is_newest_first(self, gardener, plot):
        first = create_booking(plot, gardener)
        second = create_booking(plot, gardener)

        assert list(booking_service.list_bookings(gardener)) == [second, first]


# ============================================================================
# End-to-end scenario
# ============================================================================

@pytest.mark.django_db
def test_booking_lifecycle_on_one_plot(gardener, other_gardener, landowner, plot):
    """Two requests on one plot: one is approved and completed, the other is refused."""
    b1 = booking_service.create_booking(gardener, plot.id, START, END)
    assert b1.status == BookingStatus.PENDING

    booking_service.approve_booking(b1.id, landowner)
    plot.refresh_from_db()
    assert plot.is_available is False

    with pytest.raises(InvalidState):
        booking_service.create_booking(other_gardener, plot.id, START, END)

    booking_service.complete_booking(b1.id, landowner)
    plot.refresh_from_db()
    assert plot.is_available is True

    b2 = booking_service.create_booking(other_gardener, plot.id, date(2024, 7, 1), date(2024, 9, 1))
    booking_service.approve_booking(b2.id, landowner)
    plot.refresh_from_db()
    assert plot.is_available is False


# ============================================================================
# Concurrency
# ============================================================================

class ConcurrentApprovalTests(TransactionTestCase):
    """Two approvals racing for the same plot."""

    def setUp(self):
        self.landowner = create_user('race.landowner@example.com', Role.LANDOWNER)
        self.plot = create_plot(self.landowner)
        self.bookings = [
            create_booking(self.plot, create_user(f'race{i}@example.com', Role.GARDENER))
            for i in range(2)
        ]

    def _race(self, target):
        results = []
        barrier = threading.Barrier(len(self.bookings))

        def run(booking_id):
            try:
                barrier.wait(timeout=5)
                results.append(target(booking_id))
            except Exception as e:
                results.append(type(e).__name__)
            finally:
                connection.close()

        threads = [
            threading.Thread(target=run, args=(booking.id,))
            for booking in self.bookings
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        return results

    def _assert_single_approval(self):
        approved = Booking.objects.filter(plot=self.plot, status=BookingStatus.APPROVED)
        self.assertEqual(approved.count(), 1)
        self.assertEqual(
            Booking.objects.filter(plot=self.plot, status=BookingStatus.PENDING).count(), 1
        )

        self.plot.refresh_from_db()
        self.assertFalse(self.plot.is_available)

    def test_exactly_one_concurrent_approval_wins(self):
        def approve(booking_id):
            booking_service.approve_booking(booking_id, self.landowner)
            return 'approved'

        results = self._race(approve)

        self.assertEqual(results.count('approved'), 1)
        self.assertEqual(sorted(results), ['InvalidState', 'approved'])
        self._assert_single_approval()

    def test_losing_approval_over_http_gets_conflict(self):
        token = bearer(self.landowner)

        def approve(booking_id):
            client = APIClient()
            client.credentials(HTTP_AUTHORIZATION=token)
            return client.put(f'/api/bookings/{booking_id}/approve/').status_code

        results = self._race(approve)

        self.assertEqual(sorted(results), [status.HTTP_200_OK, status.HTTP_409_CONFLICT])
        self._assert_single_approval()


# ============================================================================
# Logging
# ============================================================================

class RefusalLoggingTests(TestCase):
    """Refused operations are logged at WARNING."""

    logger_name = 'marketplace.services.booking_service'

    def setUp(self):
        self.landowner = create_user('landowner@example.com', Role.LANDOWNER)
        self.gardener = create_user('gardener@example.com', Role.GARDENER)
        self.plot = create_plot(self.landowner)

    def test_refused_transition_logs_warning(self):
        booking = create_booking(self.plot, self.gardener, status=BookingStatus.REJECTED)

        with self.assertLogs(self.logger_name, level='WARNING') as logs:
            with self.assertRaises(InvalidState):
                booking_service.approve_booking(booking.id, self.landowner)

        self.assertIn(f'Rejected transition of booking {booking.id}', logs.output[0])
        self.assertTrue(logs.output[0].startswith('WARNING:'))

    def test_unavailable_plot_request_logs_warning(self):
        Plot.objects.filter(pk=self.plot.pk).update(is_available=False)

        with self.assertLogs(self.logger_name, level='WARNING') as logs:
            with self.assertRaises(InvalidState):
                booking_service.create_booking(self.gardener, self.plot.id, START, END)

        self.assertIn(f'plot {self.plot.id} is not available', logs.output[0])

    def test_unverified_plot_request_logs_warning(self):
        unverified = create_plot(self.landowner, verification_status=VerificationStatus.PENDING)

        with self.assertLogs(self.logger_name, level='WARNING') as logs:
            with self.assertRaises(InvalidState):
                booking_service.create_booking(self.gardener, unverified.id, START, END)

        self.assertIn(f'plot {unverified.id} is pending, not approved', logs.output[0])

    def test_lock_conflict_logs_warning(self):
        booking = create_booking(self.plot, self.gardener)

        with mock.patch.object(
            Plot, 'has_approved_booking', side_effect=OperationalError('database is locked')
        ):
            with self.assertLogs(self.logger_name, level='WARNING') as logs:
                with self.assertRaises(InvalidState):
                    booking_service.approve_booking(booking.id, self.landowner)

        self.assertIn(f'Approval of booking {booking.id} lost a lock race', logs.output[0])
