# tests/test_settings.py

from config import settings as project_settings


def test_no_django_session_settings_without_sessions_app():
    assert 'django.contrib.sessions' not in project_settings.INSTALLED_APPS
    for name in ('SESSION_COOKIE_NAME', 'SESSION_COOKIE_SECURE', 'SESSION_COOKIE_SAMESITE'):
        assert not hasattr(project_settings, name), name


def test_identity_session_cookie_is_configured():
    assert project_settings.RH_SESSION_COOKIE
    assert project_settings.RH_SESSION_MAX_AGE > 0
