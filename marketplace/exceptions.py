"""
Domain errors raised by the marketplace services.

They derive from DRF's APIException, so a view can let them propagate and
DRF renders ``{"detail": "<message>"}`` with the matching status code.
"""

from rest_framework import status
from rest_framework.exceptions import APIException


class MarketplaceError(APIException):
    """Base class for marketplace operation errors."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'The request could not be completed.'
    default_code = 'marketplace_error'


class NotFound(MarketplaceError):
    """Referenced plot, booking or user does not exist."""

    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Not found.'
    default_code = 'not_found'


class Forbidden(MarketplaceError):
    """Role or ownership check failed."""

    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'You do not have permission to perform this action.'
    default_code = 'forbidden'


class InvalidState(MarketplaceError):
    """Operation is not valid for the resource's current status."""

    status_code = status.HTTP_409_CONFLICT
    default_detail = 'This operation is not allowed in the current state.'
    default_code = 'invalid_state'


class ValidationError(MarketplaceError):
    """Malformed input, e.g. an end date before the start date."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Invalid input.'
    default_code = 'invalid'
