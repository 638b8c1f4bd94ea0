"""
Test suite for the marketplace User model and email authentication backend.
"""

from django.contrib.auth import authenticate, get_user_model
from django.core.exceptions import ValidationError
from django.core.management import call_command
from django.db import IntegrityError, transaction
from django.test import TestCase

from marketplace.models import Role, VerificationStatus

User = get_user_model()


class UserModelEmailTests(TestCase):
    """Test email validation and constraints."""

    def test_email_required(self):
        """A user without email fails validation."""
        user = User(username='noemail', role=Role.GARDENER)
        user.set_password('GreenThumb#2024')
        with self.assertRaises(ValidationError):
            user.full_clean()

    def test_invalid_email_format(self):
        for email in ['invalidemail.com', 'invalid@@email.com', 'user@', '@example.com']:
            with self.subTest(email=email):
                user = User(username=f'u-{email}', email=email, role=Role.GARDENER)
                user.set_password('GreenThumb#2024')
                with self.assertRaises(ValidationError):
                    user.full_clean()

    def test_email_is_stored_lowercase(self):
        user = User.objects.create_user(
            username='mixed', email='Mixed.Case@Example.COM', password='GreenThumb#2024',
            role=Role.GARDENER
        )
        user.refresh_from_db()
        self.assertEqual(user.email, 'mixed.case@example.com')

    def test_duplicate_email_case_insensitive(self):
        User.objects.create_user(
            username='first', email='asha@example.com', password='GreenThumb#2024',
            role=Role.GARDENER
        )
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                User.objects.create_user(
                    username='second', email='ASHA@example.com', password='GreenThumb#2024',
                    role=Role.LANDOWNER
                )

    def test_str_returns_email(self):
        user = User.objects.create_user(
            username='str', email='str@example.com', password='GreenThumb#2024',
            role=Role.GARDENER
        )
        self.assertEqual(str(user), 'str@example.com')


class UserModelRoleAndVerificationTests(TestCase):

    def _user(self, role, **extra):
        return User.objects.create_user(
            username=f'{role}-user',
            email=f'{role}@example.com',
            password='GreenThumb#2024',
            role=role,
            **extra
        )

    def test_role_helpers(self):
        gardener = self._user(Role.GARDENER)
        landowner = self._user(Role.LANDOWNER)
        admin = self._user(Role.ADMIN)

        self.assertTrue(gardener.is_gardener())
        self.assertFalse(gardener.is_landowner())
        self.assertTrue(landowner.is_landowner())
        self.assertTrue(admin.is_admin())
        self.assertFalse(admin.is_gardener())

    def test_invalid_role_rejected(self):
        user = self._user(Role.GARDENER)
        user.role = 'superhero'
        with self.assertRaises(ValidationError):
            user.save()

    def test_new_users_start_pending_and_unverified(self):
        user = self._user(Role.GARDENER)
        self.assertEqual(user.verification_status, VerificationStatus.PENDING)
        self.assertFalse(user.is_verified)

    def test_is_verified_follows_verification_status(self):
        user = self._user(Role.LANDOWNER)

        user.verification_status = VerificationStatus.APPROVED
        user.save()
        user.refresh_from_db()
        self.assertTrue(user.is_verified)

        user.verification_status = VerificationStatus.REJECTED
        user.save(update_fields=['verification_status'])
        user.refresh_from_db()
        self.assertFalse(user.is_verified)

    def test_is_verified_cannot_be_set_directly(self):
        user = self._user(Role.GARDENER)
        user.is_verified = True
        user.save()
        user.refresh_from_db()
        self.assertFalse(user.is_verified)

    def test_invalid_phone_number_rejected_on_update(self):
        user = self._user(Role.GARDENER)
        for phone in ['12345', 'call-me-maybe', '0000000000']:
            with self.subTest(phone=phone):
                user.phone_number = phone
                with self.assertRaises(ValidationError):
                    user.save()

    def test_valid_phone_number_accepted(self):
        user = self._user(Role.GARDENER)
        user.phone_number = '+91 98765 43210'
        user.save()
        user.refresh_from_db()
        self.assertEqual(user.phone_number, '+91 98765 43210')

    def test_createsuperuser_is_marketplace_admin(self):
        call_command(
            'createsuperuser',
            interactive=False,
            username='root',
            email='root@example.com',
            verbosity=0,
        )
        user = User.objects.get(username='root')
        self.assertEqual(user.role, Role.ADMIN)
        self.assertTrue(user.is_verified)


class EmailBackendTests(TestCase):

    def setUp(self):
        self.user = User.objects.create_user(
            username='login', email='login@example.com', password='GreenThumb#2024',
            role=Role.GARDENER
        )

    def test_authenticate_with_email(self):
        user = authenticate(email='login@example.com', password='GreenThumb#2024')
        self.assertEqual(user, self.user)

    def test_authenticate_is_case_insensitive(self):
        user = authenticate(email='  LOGIN@Example.com ', password='GreenThumb#2024')
        self.assertEqual(user, self.user)

    def test_wrong_password_fails(self):
        self.assertIsNone(authenticate(email='login@example.com', password='wrong'))

    def test_unknown_email_fails(self):
        self.assertIsNone(authenticate(email='ghost@example.com', password='GreenThumb#2024'))

    def test_inactive_user_fails(self):
        self.user.is_active = False
        self.user.save()
        self.assertIsNone(authenticate(email='login@example.com', password='GreenThumb#2024'))
