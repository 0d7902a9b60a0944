"""Identity & access boundary used by the workflow services and consumers."""
import logging

from django.contrib.auth import get_user_model
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.settings import api_settings
from rest_framework_simplejwt.tokens import AccessToken

from .exceptions import Forbidden, Unauthorized

logger = logging.getLogger(__name__)


def authenticate(credential):
    """Resolve a bearer access token to an active user.

    Raises Unauthorized on a missing, malformed or expired token, or when the
    user behind it no longer exists.
    """
    if not credential:
        raise Unauthorized('Access token required.')
    if credential.startswith('Bearer '):
        credential = credential[len('Bearer '):]

    try:
        token = AccessToken(credential)
    except TokenError as e:
        logger.info(f"Rejected access token: {e}")
        raise Unauthorized('Invalid or expired token.')

    User = get_user_model()
    try:
        user = User.objects.get(**{api_settings.USER_ID_FIELD: token[api_settings.USER_ID_CLAIM]})
    except (User.DoesNotExist, KeyError):
        raise Unauthorized('Invalid or expired token.')

    if not user.is_active:
        raise Unauthorized('User account is disabled.')
    return user


def authorize(principal, *roles, message=None):
    if principal is None or not getattr(principal, 'is_authenticated', False):
        raise Unauthorized()
    if roles and principal.role not in roles:
        raise Forbidden(message or f"Only {' or '.join(roles)} users can perform this action.")
    return principal
