# tests/conftest.py

import datetime

import pytest
from django.utils import timezone

from rh.models import Department, Role, Task, TaskStatus, UserProfile


@pytest.fixture(autouse=True)
def memory_storage(settings):
    settings.STORAGES = {
        **settings.STORAGES,
        'default': {'BACKEND': 'django.core.files.storage.InMemoryStorage'},
    }


@pytest.fixture()
def today():
    return timezone.localdate()


@pytest.fixture()
def make_department(db):
    counter = {'n': 0}

    def _make(name=None):
        counter['n'] += 1
        n = counter['n']
        return Department.objects.create(code=f"DEP{n:02d}", name=name or f"Departamento {n}")

    return _make


@pytest.fixture()
def make_profile(db):
    counter = {'n': 0}

    def _make(role=Role.ANALISTA, department=None, manager=None, name=None):
        counter['n'] += 1
        n = counter['n']
        return UserProfile.objects.create(
            external_id=f"ext-{n}",
            name=name or f"Pessoa {n}",
            role=role,
            department=department,
            manager=manager,
        )

    return _make


@pytest.fixture()
def make_task(db):
    def _make(creator, assignee=None, status=TaskStatus.ABERTA, deadline=None, title='Tarefa', **extra):
        return Task.objects.create(
            title=title,
            creator=creator,
            assignee=assignee,
            status=status,
            deadline=deadline,
            **extra,
        )

    return _make


@pytest.fixture()
def auth_as(client, monkeypatch):
    """Logs the test client in as ``profile``; the token is the profile's external id."""
    known = set()

    def fake_fetch_user(token):
        if token in known:
            return {'id': token, 'email': f"{token}@example.com", 'name': token}
        return None

    monkeypatch.setattr('rh.auth.fetch_user', fake_fetch_user)

    def _login(profile_or_external_id):
        external_id = getattr(profile_or_external_id, 'external_id', profile_or_external_id)
        known.add(external_id)
        client.defaults['HTTP_AUTHORIZATION'] = f"Bearer {external_id}"
        return client

    return _login


@pytest.fixture()
def yesterday(today):
    return today - datetime.timedelta(days=1)


@pytest.fixture()
def next_week(today):
    return today + datetime.timedelta(days=7)
