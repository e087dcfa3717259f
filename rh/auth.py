import logging

import requests
from django.conf import settings
from django.utils.functional import SimpleLazyObject

from .models import UserProfile

logger = logging.getLogger(__name__)


class UpstreamError(Exception):
    """O provedor de identidade falhou ou respondeu algo inesperado."""


def _service_url(path):
    if not settings.USERS_SERVICE_API_URL:
        raise UpstreamError('USERS_SERVICE_API_URL não configurada')
    return f"{settings.USERS_SERVICE_API_URL}{path}"


def _service_headers(token=None):
    headers = {'x-api-key': settings.USERS_SERVICE_API_KEY}
    if token:
        headers['Authorization'] = f'Bearer {token}'
    return headers


def _call(method, path, token=None, **kwargs):
    try:
        resp = requests.request(
            method,
            _service_url(path),
            headers=_service_headers(token),
            timeout=settings.USERS_SERVICE_TIMEOUT,
            **kwargs,
        )
    except requests.RequestException as e:
        logger.warning('Provedor de identidade indisponível (%s %s): %s', method, path, e)
        raise UpstreamError(str(e)) from e
    return resp


def get_oauth_redirect_url(provider='google'):
    resp = _call('GET', f'/oauth/{provider}/redirect_url')
    if resp.status_code != 200:
        raise UpstreamError(f'redirect_url: HTTP {resp.status_code}')
    return resp.json().get('redirect_url')


def exchange_code(code):
    resp = _call('POST', '/sessions', json={'code': code})
    if resp.status_code not in (200, 201):
        raise UpstreamError(f'sessions: HTTP {resp.status_code}')
    token = resp.json().get('session_token')
    if not token:
        raise UpstreamError('sessions: resposta sem session_token')
    return token


def fetch_user(token):
    """Usuário externo dono do token, ou None se o token não vale mais."""
    resp = _call('GET', '/users/me', token=token)
    if resp.status_code in (401, 403, 404):
        return None
    if resp.status_code != 200:
        raise UpstreamError(f'users/me: HTTP {resp.status_code}')
    user = resp.json()
    if not isinstance(user, dict) or not user.get('id'):
        return None
    return user


def delete_session(token):
    if not token:
        return
    try:
        _call('DELETE', '/sessions', token=token)
    except UpstreamError:
        logger.warning('Não foi possível encerrar a sessão no provedor de identidade')


def get_session(token):
    if not token:
        return None
    try:
        user = fetch_user(token)
    except UpstreamError:
        return None
    if not user:
        return None
    return {'user': user, 'token': token}


def token_from_request(request):
    auth_header = request.META.get('HTTP_AUTHORIZATION', '')
    if auth_header.lower().startswith('bearer '):
        token = auth_header[7:].strip()
        if token:
            return token
    return request.COOKIES.get(settings.RH_SESSION_COOKIE)


def get_profile(user_ctx):
    if not user_ctx:
        return None
    return (
        UserProfile.objects.select_related('department', 'manager')
        .filter(external_id=str(user_ctx['user']['id']))
        .first()
    )


class SessionAuthMiddleware:
    """Attaches request.user_ctx = {user, token} when the session token is valid.

    The identity provider is only called when a view actually reads user_ctx.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        token = token_from_request(request)
        request.user_ctx = SimpleLazyObject(lambda: get_session(token))
        return self.get_response(request)
