"""
Models for the GreenSpace plot marketplace: users, plots and bookings.
"""

from django.contrib.auth.models import AbstractUser, UserManager
from django.core.exceptions import ValidationError
from django.db import models
from django.utils.translation import gettext_lazy as _

from .validators import (
    validate_document_file,
    validate_phone_number,
    validate_plot_image,
    validate_postal_code,
)


class Role(models.TextChoices):
    """Closed set of account roles. Every role-based branch handles all three."""

    GARDENER = 'gardener', _('Gardener')
    LANDOWNER = 'landowner', _('Landowner')
    ADMIN = 'admin', _('Admin')


class VerificationStatus(models.TextChoices):
    PENDING = 'pending', _('Pending')
    APPROVED = 'approved', _('Approved')
    REJECTED = 'rejected', _('Rejected')


class SizeUnit(models.TextChoices):
    SQFT = 'sqft', _('Square feet')
    SQM = 'sqm', _('Square metres')
    ACRES = 'acres', _('Acres')


class SoilType(models.TextChoices):
    CLAY = 'clay', _('Clay')
    SANDY = 'sandy', _('Sandy')
    LOAMY = 'loamy', _('Loamy')
    SILT = 'silt', _('Silt')
    CHALKY = 'chalky', _('Chalky')
    PEATY = 'peaty', _('Peaty')


class WaterAvailability(models.TextChoices):
    AVAILABLE = 'available', _('Available')
    LIMITED = 'limited', _('Limited')
    NOT_AVAILABLE = 'not-available', _('Not available')


class DocumentType(models.TextChoices):
    OWNERSHIP = 'ownership', _('Ownership proof')
    BILL = 'bill', _('Utility bill')
    OTHER = 'other', _('Other')


class BookingStatus(models.TextChoices):
    PENDING = 'pending', _('Pending')
    APPROVED = 'approved', _('Approved')
    REJECTED = 'rejected', _('Rejected')
    COMPLETED = 'completed', _('Completed')
    CANCELLED = 'cancelled', _('Cancelled')


def user_document_upload_path(instance, filename):
    """Path format: users/{user_id}/documents/{filename}"""
    return f'users/{instance.user_id}/documents/{filename}'


def plot_image_upload_path(instance, filename):
    """Path format: plots/{plot_id}/images/{filename}"""
    return f'plots/{instance.plot_id}/images/{filename}'


def plot_document_upload_path(instance, filename):
    """Path format: plots/{plot_id}/documents/{filename}"""
    return f'plots/{instance.plot_id}/documents/{filename}'


class MarketplaceUserManager(UserManager):
    """User manager that makes superusers marketplace admins."""

    def create_superuser(self, username, email=None, password=None, **extra_fields):
        extra_fields.setdefault('role', Role.ADMIN)
        extra_fields.setdefault('verification_status', VerificationStatus.APPROVED)
        return super().create_superuser(username, email, password, **extra_fields)


class User(AbstractUser):
    """
    Marketplace account extending Django's AbstractUser.

    Additional fields:
    - name: Display name
    - email: Required, unique email address (stored lowercase)
    - phone_number / address: Optional contact details shared with the other party
    - role: gardener, landowner or admin
    - verification_status: Admin verification decision
    - is_verified: Derived from verification_status on every save
    - rejection_reason: Admin's reason when verification is rejected
    """

    email = models.EmailField(
        _('email address'),
        unique=True,
        blank=False,
        null=False,
        error_messages={
            'unique': _('A user with that email already exists.'),
        },
        help_text=_('Required. Enter a valid email address.')
    )

    name = models.CharField(
        _('name'),
        max_length=150,
        blank=True,
        default='',
    )

    phone_number = models.CharField(
        _('phone number'),
        max_length=20,
        blank=True,
        default='',
        validators=[validate_phone_number],
        help_text=_('Optional. Enter phone number in international format.')
    )

    address = models.TextField(
        _('address'),
        blank=True,
        default='',
    )

    role = models.CharField(
        _('role'),
        max_length=10,
        choices=Role.choices,
        blank=False,
        null=False,
        help_text=_('Required. Gardener, landowner or admin.')
    )

    verification_status = models.CharField(
        _('verification status'),
        max_length=10,
        choices=VerificationStatus.choices,
        default=VerificationStatus.PENDING,
    )

    is_verified = models.BooleanField(
        _('verified'),
        default=False,
        help_text=_('Derived from verification status; true only when approved.')
    )

    rejection_reason = models.TextField(
        _('rejection reason'),
        blank=True,
        default='',
    )

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)
    updated_at = models.DateTimeField(_('updated at'), auto_now=True)

    objects = MarketplaceUserManager()

    class Meta:
        verbose_name = _('user')
        verbose_name_plural = _('users')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['role'], name='user_role_idx'),
            models.Index(fields=['verification_status'], name='user_verification_idx'),
        ]

    def __str__(self):
        return self.email or self.username

    def is_gardener(self):
        return self.role == Role.GARDENER

    def is_landowner(self):
        return self.role == Role.LANDOWNER

    def is_admin(self):
        return self.role == Role.ADMIN

    def clean(self):
        """
        Validate model fields.

        Ensures:
        - Email is provided and lowercase for case-insensitive uniqueness
        - Role is provided

        Raises:
            ValidationError: If validation fails
        """
        super().clean()

        if self.email:
            self.email = self.email.lower()

        if not self.email:
            raise ValidationError({
                'email': _('Email address is required.')
            })

        if not self.role:
            raise ValidationError({
                'role': _('Role is required.')
            })

    def save(self, *args, **kwargs):
        if self.email:
            self.email = self.email.lower()

        self.is_verified = self.verification_status == VerificationStatus.APPROVED
        update_fields = kwargs.get('update_fields')
        if update_fields is not None and 'verification_status' in update_fields:
            kwargs['update_fields'] = set(update_fields) | {'is_verified'}

        # Creation skips full_clean so duplicate emails surface as IntegrityError
        if self.pk is not None:
            self.full_clean()

        super().save(*args, **kwargs)


class UserDocument(models.Model):
    """Identity or address proof uploaded by a user for verification."""

    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='documents',
    )
    name = models.CharField(_('name'), max_length=255)
    file = models.FileField(
        _('file'),
        upload_to=user_document_upload_path,
        validators=[validate_document_file],
    )
    uploaded_at = models.DateTimeField(_('uploaded at'), auto_now_add=True)

    class Meta:
        ordering = ['uploaded_at', 'id']

    def __str__(self):
        return self.name


class Plot(models.Model):
    """
    Land parcel listed by a landowner.

    ``is_available`` is owned by the booking engine: approving a booking
    clears it, completing the booking restores it. Admin rejection of the
    listing also clears it.
    """

    owner = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='plots',
        help_text=_('Landowner listing this plot')
    )

    title = models.CharField(_('title'), max_length=200)
    description = models.TextField(_('description'))

    address = models.CharField(_('address'), max_length=300)
    city = models.CharField(_('city'), max_length=100)
    state = models.CharField(_('state'), max_length=100)
    postal_code = models.CharField(
        _('postal code'),
        max_length=10,
        validators=[validate_postal_code],
    )
    latitude = models.DecimalField(
        _('latitude'), max_digits=9, decimal_places=6, null=True, blank=True
    )
    longitude = models.DecimalField(
        _('longitude'), max_digits=9, decimal_places=6, null=True, blank=True
    )

    size_value = models.DecimalField(_('size'), max_digits=12, decimal_places=2)
    size_unit = models.CharField(
        _('size unit'),
        max_length=5,
        choices=SizeUnit.choices,
        default=SizeUnit.SQFT,
    )

    soil_type = models.CharField(_('soil type'), max_length=10, choices=SoilType.choices)
    water_availability = models.CharField(
        _('water availability'),
        max_length=15,
        choices=WaterAvailability.choices,
    )
    amenities = models.JSONField(_('amenities'), default=list, blank=True)

    is_available = models.BooleanField(
        _('available'),
        default=True,
        help_text=_('Whether the plot can accept new booking requests')
    )
    verification_status = models.CharField(
        _('verification status'),
        max_length=10,
        choices=VerificationStatus.choices,
        default=VerificationStatus.PENDING,
    )
    rejection_reason = models.TextField(_('rejection reason'), blank=True, default='')

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)
    updated_at = models.DateTimeField(_('updated at'), auto_now=True)

    class Meta:
        verbose_name = _('plot')
        verbose_name_plural = _('plots')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['owner'], name='plot_owner_idx'),
            models.Index(fields=['city'], name='plot_city_idx'),
            models.Index(
                fields=['is_available', 'verification_status'],
                name='plot_listing_idx'
            ),
        ]

    def __str__(self):
        return self.title

    def is_bookable(self):
        """A plot accepts booking requests only when available and approved."""
        return self.is_available and self.verification_status == VerificationStatus.APPROVED

    def has_approved_booking(self, exclude_booking_id=None):
        qs = self.bookings.filter(status=BookingStatus.APPROVED)
        if exclude_booking_id is not None:
            qs = qs.exclude(pk=exclude_booking_id)
        return qs.exists()

    def clean(self):
        """
        Validate model fields.

        Ensures:
        - Owner is a landowner
        - Title and description are not blank
        - Size is positive
        - Coordinates are given as a complete, in-range pair
        - Amenities is a list of strings
        """
        super().clean()

        if self.owner_id and not self.owner.is_landowner():
            raise ValidationError({
                'owner': _('Only landowners can list plots.')
            })

        if not self.title or not self.title.strip():
            raise ValidationError({'title': _('Title cannot be empty.')})

        if not self.description or not self.description.strip():
            raise ValidationError({'description': _('Description cannot be empty.')})

        if self.size_value is not None and self.size_value <= 0:
            raise ValidationError({'size_value': _('Size must be greater than 0.')})

        if (self.latitude is None) != (self.longitude is None):
            raise ValidationError({
                'latitude': _('Latitude and longitude must be provided together.')
            })
        if self.latitude is not None and not -90 <= self.latitude <= 90:
            raise ValidationError({'latitude': _('Latitude must be between -90 and 90.')})
        if self.longitude is not None and not -180 <= self.longitude <= 180:
            raise ValidationError({'longitude': _('Longitude must be between -180 and 180.')})

        if not isinstance(self.amenities, list) or not all(
            isinstance(item, str) for item in self.amenities
        ):
            raise ValidationError({'amenities': _('Amenities must be a list of strings.')})

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)


class PlotImage(models.Model):
    plot = models.ForeignKey(Plot, on_delete=models.CASCADE, related_name='images')
    image = models.ImageField(
        _('image'),
        upload_to=plot_image_upload_path,
        validators=[validate_plot_image],
    )
    uploaded_at = models.DateTimeField(_('uploaded at'), auto_now_add=True)

    class Meta:
        ordering = ['uploaded_at', 'id']

    def __str__(self):
        return f'Image for {self.plot}'


class PlotDocument(models.Model):
    """Ownership proof, utility bill or other document attached to a plot."""

    plot = models.ForeignKey(Plot, on_delete=models.CASCADE, related_name='documents')
    name = models.CharField(_('name'), max_length=255)
    file = models.FileField(
        _('file'),
        upload_to=plot_document_upload_path,
        validators=[validate_document_file],
    )
    document_type = models.CharField(
        _('document type'),
        max_length=10,
        choices=DocumentType.choices,
        default=DocumentType.OTHER,
    )
    uploaded_at = models.DateTimeField(_('uploaded at'), auto_now_add=True)

    class Meta:
        ordering = ['uploaded_at', 'id']

    def __str__(self):
        return self.name


class Booking(models.Model):
    """
    A gardener's request to cultivate a plot between two dates.

    ``landowner`` is a snapshot of ``plot.owner`` taken at creation time and
    is not updated if the plot later changes hands.

    Status transitions:
    - pending -> approved, rejected, cancelled
    - approved -> completed
    - rejected, completed, cancelled are terminal
    """

    TRANSITIONS = {
        BookingStatus.PENDING: {
            BookingStatus.APPROVED,
            BookingStatus.REJECTED,
            BookingStatus.CANCELLED,
        },
        BookingStatus.APPROVED: {BookingStatus.COMPLETED},
        BookingStatus.REJECTED: set(),
        BookingStatus.COMPLETED: set(),
        BookingStatus.CANCELLED: set(),
    }

    plot = models.ForeignKey(
        Plot,
        on_delete=models.PROTECT,
        related_name='bookings',
    )
    gardener = models.ForeignKey(
        User,
        on_delete=models.PROTECT,
        related_name='gardener_bookings',
    )
    landowner = models.ForeignKey(
        User,
        on_delete=models.PROTECT,
        related_name='landowner_bookings',
    )

    start_date = models.DateField(_('start date'))
    end_date = models.DateField(_('end date'))
    message = models.TextField(_('message'), blank=True, default='')

    status = models.CharField(
        _('status'),
        max_length=10,
        choices=BookingStatus.choices,
        default=BookingStatus.PENDING,
    )
    rejection_reason = models.TextField(_('rejection reason'), blank=True, default='')

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)
    updated_at = models.DateTimeField(_('updated at'), auto_now=True)

    class Meta:
        verbose_name = _('booking')
        verbose_name_plural = _('bookings')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['gardener'], name='booking_gardener_idx'),
            models.Index(fields=['landowner'], name='booking_landowner_idx'),
            models.Index(fields=['plot', 'status'], name='booking_plot_status_idx'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['plot'],
                condition=models.Q(status='approved'),
                name='unique_approved_booking_per_plot',
            ),
        ]

    def __str__(self):
        return f'Booking #{self.pk} of {self.plot_id} by {self.gardener_id} ({self.status})'

    def is_terminal(self):
        return not self.TRANSITIONS[BookingStatus(self.status)]

    def can_transition_to(self, new_status):
        """
        Check whether the booking may move from its current status to ``new_status``.

        Returns:
            tuple: (is_valid: bool, error_message: str or None)
        """
        if new_status not in BookingStatus.values:
            return False, f'Unknown booking status "{new_status}".'

        current_status = BookingStatus(self.status)
        new_status = BookingStatus(new_status)
        allowed = self.TRANSITIONS[current_status]

        if new_status in allowed:
            return True, None

        if not allowed:
            return False, f'Cannot modify a {current_status.value} booking.'

        if current_status == BookingStatus.APPROVED and new_status == BookingStatus.CANCELLED:
            return False, 'Approved bookings cannot be cancelled.'

        if new_status == BookingStatus.COMPLETED:
            return False, 'Only approved bookings can be completed.'

        return False, (
            f'Invalid status transition from {current_status.value} to {new_status.value}.'
        )

    def clean(self):
        """
        Validate dates, participants and status transitions.

        Raises:
            ValidationError: If validation fails
        """
        super().clean()

        if self.start_date and self.end_date and self.end_date <= self.start_date:
            raise ValidationError({
                'end_date': _('End date must be after start date.')
            })

        if self.gardener_id and not self.gardener.is_gardener():
            raise ValidationError({
                'gardener': _('Only gardeners can book plots.')
            })

        if self.landowner_id and not self.landowner.is_landowner():
            raise ValidationError({
                'landowner': _('Booking landowner must have the landowner role.')
            })

        if self.pk is None:
            if self.plot_id and self.landowner_id and self.plot.owner_id != self.landowner_id:
                raise ValidationError({
                    'landowner': _('Booking landowner must be the plot owner.')
                })
            return

        try:
            old_status = Booking.objects.values_list('status', flat=True).get(pk=self.pk)
        except Booking.DoesNotExist:
            return

        if old_status != self.status:
            stored = Booking(status=old_status)
            is_valid, error_message = stored.can_transition_to(self.status)
            if not is_valid:
                raise ValidationError({'status': error_message})

    def save(self, *args, **kwargs):
        # One approved booking per plot: the partial unique constraint holds on
        # SQLite and PostgreSQL. MySQL ignores conditional constraints (models.W036),
        # so there only the row locks in booking_service guard it.
        self.full_clean(validate_constraints=False)
        super().save(*args, **kwargs)
