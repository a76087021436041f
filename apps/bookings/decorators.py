"""
JSON API view decorators.

customer_required    — 401 JSON for anonymous callers instead of a login redirect
engine_errors_as_json — turns BookingEngineError into {'success': False, 'message': ...}
                        with the status code the exception carries
"""
import logging
from functools import wraps

from django.http import JsonResponse

from .exceptions import BookingEngineError

logger = logging.getLogger(__name__)


def customer_required(view_func):
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        if not request.user.is_authenticated:
            return JsonResponse({'success': False, 'message': 'Please sign in.'}, status=401)
        return view_func(request, *args, **kwargs)
    return wrapper


def engine_errors_as_json(view_func):
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        try:
            return view_func(request, *args, **kwargs)
        except BookingEngineError as exc:
            logger.info('%s %s rejected: %s: %s',
                        request.method, request.path, type(exc).__name__, exc)
            return JsonResponse(
                {'success': False, 'error': type(exc).__name__, 'message': str(exc)},
                status=exc.status_code,
            )
    return wrapper
