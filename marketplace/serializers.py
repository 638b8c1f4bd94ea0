"""
Serializers for accounts, plot listings, bookings and admin decisions.
"""

from decimal import Decimal

from rest_framework import serializers
from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction

from .models import (
    Booking,
    DocumentType,
    Plot,
    PlotDocument,
    PlotImage,
    Role,
    SizeUnit,
    SoilType,
    UserDocument,
    VerificationStatus,
    WaterAvailability,
)
from .validators import (
    validate_document_file,
    validate_phone_number,
    validate_plot_image,
    validate_postal_code,
)

User = get_user_model()

MAX_IMAGES_PER_UPLOAD = 10
MAX_DOCUMENTS_PER_UPLOAD = 5


def _file_url(serializer, field_file):
    """Absolute URL for a stored file when a request is available, relative otherwise."""
    if not field_file:
        return None
    request = serializer.context.get('request')
    if request is not None:
        return request.build_absolute_uri(field_file.url)
    return field_file.url


def _raise_model_errors(error):
    """Re-raise a model ``full_clean`` failure as a DRF 400."""
    if hasattr(error, 'message_dict'):
        raise serializers.ValidationError(error.message_dict)
    raise serializers.ValidationError(error.messages)


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------

class UserDocumentSerializer(serializers.ModelSerializer):
    url = serializers.SerializerMethodField()

    class Meta:
        model = UserDocument
        fields = ['id', 'name', 'url', 'uploaded_at']
        read_only_fields = fields

    def get_url(self, obj):
        return _file_url(self, obj.file)


class UserRegistrationSerializer(serializers.ModelSerializer):
    """
    Serializer for account registration.

    Fields:
    - name: Required display name
    - email: Required, unique (case-insensitive), stored lowercase
    - password: Required, checked by Django's password validators
    - role: Required, 'gardener' or 'landowner'; admins cannot self-register
    - phone_number, address: Optional contact details

    New accounts always start with verification status 'pending'.
    """

    password = serializers.CharField(
        write_only=True,
        required=True,
        style={'input_type': 'password'}
    )
    role = serializers.ChoiceField(
        choices=[Role.GARDENER, Role.LANDOWNER],
        error_messages={
            'invalid_choice': 'Role must be one of: gardener, landowner.'
        }
    )

    class Meta:
        model = User
        fields = [
            'id', 'name', 'email', 'password', 'role', 'phone_number', 'address',
            'verification_status', 'is_verified', 'created_at'
        ]
        read_only_fields = ['id', 'verification_status', 'is_verified', 'created_at']
        extra_kwargs = {
            'name': {'required': True, 'allow_blank': False},
            'email': {'required': True, 'validators': []},
        }

    def validate_email(self, value):
        value = value.strip().lower()

        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError('A user with that email already exists.')

        return value

    def validate_password(self, value):
        try:
            validate_password(value)
        except DjangoValidationError as e:
            raise serializers.ValidationError(list(e.messages))
        return value

    def validate_name(self, value):
        if not value.strip():
            raise serializers.ValidationError('Name cannot be empty.')
        return value.strip()

    def create(self, validated_data):
        """
        Create the account with a hashed password.

        The username is derived from the email, since AbstractUser requires
        one but authentication is by email.
        """
        password = validated_data.pop('password')
        email = validated_data['email']

        with transaction.atomic():
            user = User.objects.create_user(
                username=email[:150],
                password=password,
                verification_status=VerificationStatus.PENDING,
                **validated_data
            )
        return user


class LoginSerializer(serializers.Serializer):
    """
    Email and password for login.

    Minimal validation to avoid leaking which emails exist; the view does
    the actual authentication.
    """

    email = serializers.EmailField(required=True)
    password = serializers.CharField(
        required=True,
        write_only=True,
        style={'input_type': 'password'}
    )


class UserProfileSerializer(serializers.ModelSerializer):
    """
    Read-only view of an account.

    Excludes password, permission flags and other Django internals.
    """

    documents = UserDocumentSerializer(many=True, read_only=True)

    class Meta:
        model = User
        fields = [
            'id',
            'name',
            'email',
            'role',
            'phone_number',
            'address',
            'verification_status',
            'is_verified',
            'rejection_reason',
            'documents',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields


class UserProfileUpdateSerializer(serializers.ModelSerializer):
    """
    Profile update (PUT/PATCH).

    Only name, phone_number and address are writable. Anything else in the
    request body is ignored because it is not a declared field.
    """

    class Meta:
        model = User
        fields = ['name', 'phone_number', 'address']
        extra_kwargs = {
            'name': {'required': False},
            'phone_number': {'required': False, 'validators': [validate_phone_number]},
            'address': {'required': False},
        }

    def validate_name(self, value):
        if not value or not value.strip():
            raise serializers.ValidationError('Name cannot be empty.')
        return value.strip()

    def update(self, instance, validated_data):
        for attr, value in validated_data.items():
            setattr(instance, attr, value)

        if validated_data:
            try:
                instance.save(update_fields=list(validated_data) + ['updated_at'])
            except DjangoValidationError as e:
                _raise_model_errors(e)

        return instance


class DocumentUploadSerializer(serializers.Serializer):
    """Multipart upload of 1-5 verification documents (pdf, jpg, png; 10MB each)."""

    documents = serializers.ListField(
        child=serializers.FileField(validators=[validate_document_file]),
        allow_empty=False,
        max_length=MAX_DOCUMENTS_PER_UPLOAD,
        error_messages={
            'empty': 'At least one document is required.',
            'max_length': f'Maximum {MAX_DOCUMENTS_PER_UPLOAD} documents allowed per upload.',
        }
    )


class PlotDocumentUploadSerializer(DocumentUploadSerializer):
    type = serializers.ChoiceField(
        choices=DocumentType.choices,
        default=DocumentType.OTHER,
    )


# ---------------------------------------------------------------------------
# Plots
# ---------------------------------------------------------------------------

class CoordinatesSerializer(serializers.Serializer):
    lat = serializers.DecimalField(
        source='latitude',
        max_digits=9,
        decimal_places=6,
        min_value=Decimal('-90'),
        max_value=Decimal('90'),
        coerce_to_string=False,
    )
    lng = serializers.DecimalField(
        source='longitude',
        max_digits=9,
        decimal_places=6,
        min_value=Decimal('-180'),
        max_value=Decimal('180'),
        coerce_to_string=False,
    )


class PlotLocationSerializer(serializers.Serializer):
    """
    Nested ``location`` block, stored as flat columns on Plot.

    Example:
    {
        "address": "12 Orchard Lane",
        "city": "Pune",
        "state": "MH",
        "postal_code": "411001",
        "coordinates": {"lat": 18.52, "lng": 73.85}
    }
    """

    address = serializers.CharField(max_length=300)
    city = serializers.CharField(max_length=100)
    state = serializers.CharField(max_length=100)
    postal_code = serializers.CharField(max_length=10, validators=[validate_postal_code])
    coordinates = CoordinatesSerializer(source='*', required=False)

    def to_representation(self, instance):
        data = super().to_representation(instance)
        if instance.latitude is None and instance.longitude is None:
            data['coordinates'] = None
        return data


class PlotSizeSerializer(serializers.Serializer):
    value = serializers.DecimalField(
        source='size_value',
        max_digits=12,
        decimal_places=2,
        coerce_to_string=False,
    )
    unit = serializers.ChoiceField(
        source='size_unit',
        choices=SizeUnit.choices,
        default=SizeUnit.SQFT,
    )

    def validate_value(self, value):
        if value <= 0:
            raise serializers.ValidationError('Size must be greater than 0.')
        return value


class PlotImageSerializer(serializers.ModelSerializer):
    url = serializers.SerializerMethodField()

    class Meta:
        model = PlotImage
        fields = ['id', 'url', 'uploaded_at']
        read_only_fields = fields

    def get_url(self, obj):
        return _file_url(self, obj.image)


class PlotDocumentSerializer(serializers.ModelSerializer):
    url = serializers.SerializerMethodField()
    type = serializers.CharField(source='document_type', read_only=True)

    class Meta:
        model = PlotDocument
        fields = ['id', 'name', 'url', 'type', 'uploaded_at']
        read_only_fields = fields

    def get_url(self, obj):
        return _file_url(self, obj.file)


class PlotOwnerSerializer(serializers.ModelSerializer):
    """Owner contact details shown on a listing."""

    class Meta:
        model = User
        fields = ['id', 'name', 'email', 'phone_number']
        read_only_fields = fields


class PlotSerializer(serializers.ModelSerializer):
    """
    Serializer for creating, updating and displaying plot listings.

    Fields:
    - title, description: Required, non-blank
    - location: Nested address block with optional coordinates
    - size: Nested {value, unit}; value must be positive
    - soil_type, water_availability: Choice fields
    - amenities: List of strings
    - images: Write-only list of up to 10 image files (JPEG, PNG, WebP, 5MB each);
      returned as a list of {id, url, uploaded_at}

    Read-only fields:
    - owner: Set from the authenticated landowner
    - is_available: Changed only by booking approval/completion and admin rejection
    - verification_status, rejection_reason: Changed only by admins
    """

    location = PlotLocationSerializer(source='*')
    size = PlotSizeSerializer(source='*')
    soil_type = serializers.ChoiceField(choices=SoilType.choices)
    water_availability = serializers.ChoiceField(choices=WaterAvailability.choices)
    amenities = serializers.ListField(
        child=serializers.CharField(max_length=100),
        required=False,
    )
    images = serializers.ListField(
        child=serializers.ImageField(validators=[validate_plot_image]),
        write_only=True,
        required=False,
        max_length=MAX_IMAGES_PER_UPLOAD,
        error_messages={
            'max_length': f'Maximum {MAX_IMAGES_PER_UPLOAD} images allowed per upload.',
        }
    )
    images_data = PlotImageSerializer(source='images', many=True, read_only=True)
    documents = PlotDocumentSerializer(many=True, read_only=True)
    owner = PlotOwnerSerializer(read_only=True)

    class Meta:
        model = Plot
        fields = [
            'id',
            'owner',
            'title',
            'description',
            'location',
            'size',
            'soil_type',
            'water_availability',
            'amenities',
            'images',
            'images_data',
            'documents',
            'is_available',
            'verification_status',
            'rejection_reason',
            'created_at',
            'updated_at',
        ]
        read_only_fields = [
            'id', 'owner', 'is_available', 'verification_status', 'rejection_reason',
            'created_at', 'updated_at',
        ]

    def validate_title(self, value):
        if not value or not value.strip():
            raise serializers.ValidationError('Title cannot be empty.')
        return value.strip()

    def validate_description(self, value):
        if not value or not value.strip():
            raise serializers.ValidationError('Description cannot be empty.')
        return value.strip()

    def validate_amenities(self, value):
        return [item.strip() for item in value if item.strip()]

    def create(self, validated_data):
        """
        Create the plot and its images in one transaction.

        ``owner`` is passed in through ``serializer.save(owner=...)``.
        """
        images = validated_data.pop('images', [])

        try:
            with transaction.atomic():
                plot = Plot.objects.create(**validated_data)
                for image in images:
                    PlotImage.objects.create(plot=plot, image=image)
        except DjangoValidationError as e:
            _raise_model_errors(e)

        return plot

    def update(self, instance, validated_data):
        """Update listing details; any uploaded images are appended."""
        images = validated_data.pop('images', [])

        for attr, value in validated_data.items():
            setattr(instance, attr, value)

        try:
            with transaction.atomic():
                instance.save()
                for image in images:
                    PlotImage.objects.create(plot=instance, image=image)
        except DjangoValidationError as e:
            _raise_model_errors(e)

        return instance

    def to_representation(self, instance):
        data = super().to_representation(instance)
        data.pop('images', None)
        data['images'] = data.pop('images_data', [])
        return data


class PlotSummarySerializer(serializers.ModelSerializer):
    """Compact plot reference embedded in bookings."""

    class Meta:
        model = Plot
        fields = ['id', 'title', 'city', 'is_available', 'verification_status']
        read_only_fields = fields


# ---------------------------------------------------------------------------
# Bookings
# ---------------------------------------------------------------------------

class BookingPartySerializer(serializers.ModelSerializer):
    """Contact details of the gardener or landowner on a booking."""

    class Meta:
        model = User
        fields = ['id', 'name', 'email', 'phone_number']
        read_only_fields = fields


class BookingCreateSerializer(serializers.Serializer):
    """
    Input for a booking request.

    Request body:
    {
        "plot_id": 3,
        "start_date": "2024-03-01",
        "end_date": "2024-06-01",
        "message": "I'd like to grow vegetables."
    }
    """

    plot_id = serializers.IntegerField(min_value=1)
    start_date = serializers.DateField()
    end_date = serializers.DateField()
    message = serializers.CharField(required=False, allow_blank=True, default='')

    def validate(self, attrs):
        if attrs['end_date'] <= attrs['start_date']:
            raise serializers.ValidationError({
                'end_date': 'End date must be after start date.'
            })
        return attrs


class BookingSerializer(serializers.ModelSerializer):
    """Booking with its plot and both parties."""

    plot = PlotSummarySerializer(read_only=True)
    gardener = BookingPartySerializer(read_only=True)
    landowner = BookingPartySerializer(read_only=True)

    class Meta:
        model = Booking
        fields = [
            'id',
            'plot',
            'gardener',
            'landowner',
            'start_date',
            'end_date',
            'message',
            'status',
            'rejection_reason',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields


class BookingRejectSerializer(serializers.Serializer):
    rejection_reason = serializers.CharField(required=False, allow_blank=True, default='')


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------

class AdminUserSerializer(UserProfileSerializer):
    """Account as seen from the admin console, including activity flags."""

    class Meta(UserProfileSerializer.Meta):
        fields = UserProfileSerializer.Meta.fields + ['is_active', 'last_login']
        read_only_fields = fields


class VerificationDecisionSerializer(serializers.Serializer):
    """
    Admin verification decision for a user or a plot.

    Request body:
    {
        "verification_status": "rejected",
        "rejection_reason": "Ownership document is unreadable"
    }
    """

    verification_status = serializers.ChoiceField(choices=VerificationStatus.choices)
    rejection_reason = serializers.CharField(required=False, allow_blank=True, default='')
