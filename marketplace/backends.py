"""
Email authentication backend for marketplace accounts.
"""

from django.contrib.auth import get_user_model
from django.contrib.auth.backends import ModelBackend

User = get_user_model()


class EmailBackend(ModelBackend):
    """
    Authenticate gardeners, landowners and admins by email address.

    Emails are stored lowercase, so the lookup normalises the submitted
    address the same way. Inactive accounts are refused here rather than in
    the login view, which keeps the view's error message identical for every
    failure.
    """

    def authenticate(self, request, username=None, password=None, email=None, **kwargs):
        """
        Args:
            request: HTTP request object
            username: Email address when called through the admin login form
            password: Raw password
            email: Email address when called from the API login view

        Returns:
            User if the credentials match an active account, otherwise None
        """
        email = email if email is not None else username
        if not email or password is None:
            return None

        try:
            user = User.objects.get(email=email.strip().lower())
        except User.DoesNotExist:
            # Hash anyway so unknown emails take as long as wrong passwords
            User().set_password(password)
            return None

        if user.check_password(password) and self.user_can_authenticate(user):
            return user
        return None

    def get_user(self, user_id):
        try:
            user = User.objects.get(pk=user_id)
        except User.DoesNotExist:
            return None
        return user if self.user_can_authenticate(user) else None
