"""
Field validators for users, plots and uploaded files.
"""

import re
from django.core.exceptions import ValidationError


MAX_IMAGE_SIZE = 5 * 1024 * 1024
MAX_DOCUMENT_SIZE = 10 * 1024 * 1024

IMAGE_EXTENSIONS = ['jpg', 'jpeg', 'png', 'webp']
IMAGE_CONTENT_TYPES = ['image/jpeg', 'image/png', 'image/webp']

DOCUMENT_EXTENSIONS = ['pdf', 'jpg', 'jpeg', 'png']
DOCUMENT_CONTENT_TYPES = ['application/pdf', 'image/jpeg', 'image/png']


def validate_phone_number(value):
    """
    Validate phone number format.

    Accepts international formats with optional country codes, spaces, dashes, and parentheses.
    Requires at least 10 digits.

    Valid formats:
    - +91 98765 43210
    - +1 (234) 567-8900
    - 234-567-8900

    Raises:
        ValidationError: If phone number format is invalid
    """
    if not value:  # Empty string is allowed (optional field)
        return

    if not re.match(r'^[\d\s\-\+\(\)]+$', value):
        raise ValidationError(
            'Phone number can only contain digits, spaces, dashes, parentheses, and plus sign.',
            code='invalid_phone_chars'
        )

    digits = re.sub(r'\D', '', value)

    if len(digits) < 10 or len(digits) > 15:
        raise ValidationError(
            'Phone number must contain between 10 and 15 digits.',
            code='phone_length'
        )

    # Reject placeholders like 0000000000
    if len(set(digits)) == 1:
        raise ValidationError(
            'Phone number cannot be all the same digit.',
            code='invalid_phone_pattern'
        )


def validate_postal_code(value):
    """
    Validate a postal code (PIN/ZIP style).

    Allows letters, digits, single spaces and dashes, 3 to 10 characters.
    """
    if not value or not value.strip():
        raise ValidationError('Postal code is required.', code='postal_code_required')

    if not re.match(r'^[A-Za-z0-9][A-Za-z0-9 \-]{1,8}[A-Za-z0-9]$', value.strip()):
        raise ValidationError(
            'Postal code must be 3-10 letters or digits (spaces and dashes allowed).',
            code='invalid_postal_code'
        )


def _validate_upload(upload, max_size, extensions, content_types, label):
    if upload.size > max_size:
        raise ValidationError(
            f'{label} file size cannot exceed {max_size // (1024 * 1024)}MB. '
            f'Current size: {upload.size / (1024 * 1024):.2f}MB',
            code=f'{label.lower()}_too_large'
        )

    file_name = upload.name.lower()
    if not any(file_name.endswith(f'.{ext}') for ext in extensions):
        raise ValidationError(
            f'Invalid {label.lower()} format. Allowed formats: {", ".join(extensions)}',
            code=f'invalid_{label.lower()}_format'
        )

    content_type = getattr(upload, 'content_type', None)
    if content_type and content_type not in content_types:
        raise ValidationError(
            f'Invalid {label.lower()} content type: {content_type}',
            code='invalid_content_type'
        )


def validate_plot_image(image):
    """
    Validate a plot image upload.

    Checks:
    - File size (max 5MB)
    - File format (jpg, jpeg, png, webp)
    - MIME type when the upload carries one
    """
    if not image:
        return
    _validate_upload(image, MAX_IMAGE_SIZE, IMAGE_EXTENSIONS, IMAGE_CONTENT_TYPES, 'Image')


def validate_document_file(document):
    """Validate an ownership/bill document upload (pdf, jpg, png; max 10MB)."""
    if not document:
        return
    _validate_upload(
        document, MAX_DOCUMENT_SIZE, DOCUMENT_EXTENSIONS, DOCUMENT_CONTENT_TYPES, 'Document'
    )
