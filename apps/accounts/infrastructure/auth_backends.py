from __future__ import annotations

from django.contrib.auth import get_user_model
from django.contrib.auth.backends import ModelBackend
from django.db.models import Q


class EmailBackend(ModelBackend):
    """
    Authenticate by email address, case-insensitively.

    Accounts created before usernames were pinned to the email still match on
    the username column.
    """

    def authenticate(self, request, username=None, password=None, email=None, **kwargs):
        UserModel = get_user_model()
        identifier = email or username or kwargs.get(UserModel.USERNAME_FIELD)
        if identifier is None or password is None:
            return None

        identifier = str(identifier).strip()
        if not identifier:
            return None

        query = Q(email__iexact=identifier) | Q(**{f"{UserModel.USERNAME_FIELD}__iexact": identifier})
        user = UserModel._default_manager.filter(query).order_by("id").first()
        if user is None:
            # Timing parity with the wrong-password path.
            UserModel().set_password(password)
            return None

        if user.check_password(password) and self.user_can_authenticate(user):
            return user
        return None
