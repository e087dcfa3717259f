import logging

from django.http import JsonResponse

logger = logging.getLogger(__name__)


class ApiExceptionMiddleware:
    """Turns unexpected errors under /api/ into a generic JSON 500."""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        return self.get_response(request)

    def process_exception(self, request, exception):
        if not request.path.startswith('/api/'):
            return None
        logger.exception('Erro inesperado em %s %s', request.method, request.path)
        return JsonResponse({'detail': 'Erro interno. Tente novamente.'}, status=500)
