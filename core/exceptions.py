import logging

from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class WorkflowError(APIException):
    """Base class for failures raised by the workflow services."""


class Unauthorized(WorkflowError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = 'Authentication credentials were not provided or are invalid.'
    default_code = 'unauthorized'


class Forbidden(WorkflowError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'You do not have permission to perform this action.'
    default_code = 'forbidden'


class NotFound(WorkflowError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Not found.'
    default_code = 'not_found'


class InvalidState(WorkflowError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'This operation is not allowed in the current state.'
    default_code = 'invalid_state'


class Conflict(WorkflowError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'The resource was modified concurrently.'
    default_code = 'conflict'


class UpstreamFailure(WorkflowError):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = 'An upstream service is unavailable.'
    default_code = 'upstream_failure'


def _first_message(detail):
    if isinstance(detail, list):
        return _first_message(detail[0]) if detail else ''
    if isinstance(detail, dict):
        for key, value in detail.items():
            message = _first_message(value)
            return message if key == 'non_field_errors' else f"{key}: {message}"
        return ''
    return str(detail)


def api_exception_handler(exc, context):
    """Render every API failure as {"error": "<reason>"} with optional details."""
    response = exception_handler(exc, context)
    if response is None:
        return None

    detail = response.data.get('detail') if isinstance(response.data, dict) else None
    if detail is not None and len(response.data) == 1:
        body = {'error': str(detail)}
    else:
        body = {'error': _first_message(response.data), 'details': response.data}

    if response.status_code >= 500:
        view = context.get('view')
        logger.error(f"{type(exc).__name__} in {type(view).__name__ if view else 'unknown view'}: {body['error']}")

    response.data = body
    return response
