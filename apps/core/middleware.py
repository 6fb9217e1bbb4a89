import traceback
import logging
from django.http import JsonResponse
from django.conf import settings

logger = logging.getLogger(__name__)


class ErrorHandlingMiddleware:
    """Log uncaught exceptions and answer with JSON instead of an HTML page"""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        return self.get_response(request)

    def process_exception(self, request, exception):
        user = getattr(request, 'user', None)
        logger.error(
            f"Exception in request to {request.path}",
            extra={
                'request_path': request.path,
                'request_method': request.method,
                'user_id': user.id if user is not None and user.is_authenticated else None,
                'exception_type': type(exception).__name__,
                'exception_message': str(exception)
            },
            exc_info=True
        )

        error_response = {
            'error': "Une erreur interne est survenue",
            'type': type(exception).__name__,
        }
        if settings.DEBUG:
            error_response['detail'] = traceback.format_exc()

        return JsonResponse(error_response, status=500)
