"""
Error taxonomy for swap negotiation and settlement.

Every failure the swap core can raise derives from SwapError and carries a
machine-readable code plus the HTTP status the API layer should answer with.

- SwapValidationError: malformed input or an action that is illegal in the
  request's current state. Recoverable, user-facing.
- SwapNotFoundError: a referenced book, user or request does not exist.
  It is also a SwapValidationError, so "missing book" on create is both.
- SwapPermissionError: the actor may not perform this action on this request.
- SwapConflictError: a race for a shared resource was lost. The caller should
  refresh and retry.
- InvariantViolationError: defensive re-validation failed inside the
  ownership transfer. Fatal, never auto-repaired.
"""

import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class SwapError(Exception):
    """Base exception for all swap core errors."""

    default_message = 'Swap operation failed.'
    code = 'swap_error'
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message=None, code=None):
        self.message = message or self.default_message
        if code is not None:
            self.code = code
        super().__init__(self.message)

    def to_response(self):
        """Return the REST error envelope for this error."""
        return {'detail': self.message, 'code': self.code}


class SwapValidationError(SwapError):
    default_message = 'Invalid swap request.'
    code = 'validation_error'
    status_code = status.HTTP_400_BAD_REQUEST


class SwapNotFoundError(SwapValidationError):
    default_message = 'Resource not found.'
    code = 'not_found'
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, resource_type, resource_id):
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(f'{resource_type} with ID {resource_id} does not exist.')


class SwapPermissionError(SwapError):
    default_message = 'You do not have permission to perform this action.'
    code = 'permission_denied'
    status_code = status.HTTP_403_FORBIDDEN


class SwapConflictError(SwapError):
    default_message = 'The swap request was modified concurrently. Refresh and try again.'
    code = 'conflict'
    status_code = status.HTTP_409_CONFLICT


class InvariantViolationError(SwapError):
    default_message = 'Swap data is inconsistent and requires manual reconciliation.'
    code = 'invariant_violation'
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


def api_exception_handler(exc, context):
    """
    DRF exception handler that renders SwapError subclasses.

    Anything that is not a SwapError falls through to DRF's default handler.
    """
    if isinstance(exc, SwapError):
        view = context.get('view')
        view_name = type(view).__name__ if view is not None else 'unknown'
        if isinstance(exc, InvariantViolationError):
            logger.critical(f"Invariant violation surfaced through {view_name}: {exc.message}")
            # Internal details stay in the logs
            return Response(
                {'detail': InvariantViolationError.default_message, 'code': exc.code},
                status=exc.status_code,
            )
        return Response(exc.to_response(), status=exc.status_code)

    return exception_handler(exc, context)
