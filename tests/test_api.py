# tests/test_api.py

import json

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile

from rh import assistant
from rh.models import Position, Role, Task, TaskChangeLog, TaskStatus, UserProfile

from .fakes import FakeAPIError, FakeOpenAI

pytestmark = pytest.mark.django_db


def _post(client, url, data):
    return client.post(url, data=json.dumps(data), content_type='application/json')


def _put(client, url, data):
    return client.put(url, data=json.dumps(data), content_type='application/json')


@pytest.fixture()
def team(make_department, make_profile):
    dept = make_department()
    ceo = make_profile(Role.C_LEVEL, department=dept)
    coord = make_profile(Role.COORDENACAO, department=dept, manager=ceo)
    ana = make_profile(Role.ANALISTA, department=dept, manager=coord)
    estag = make_profile(Role.ESTAGIARIO, department=dept, manager=coord)
    return {'dept': dept, 'ceo': ceo, 'coord': coord, 'ana': ana, 'estag': estag}


def test_health(client):
    assert client.get('/api/health').json()['ok'] is True


def test_unauthenticated_requests_get_401(client, auth_as):
    assert client.get('/api/tasks').status_code == 401
    client.defaults['HTTP_AUTHORIZATION'] = 'Bearer desconhecido'
    assert client.get('/api/users/me').status_code == 401


def test_me_without_profile_reports_first_user(auth_as):
    client = auth_as('google-42')
    body = client.get('/api/users/me').json()
    assert body['user']['id'] == 'google-42'
    assert body['profile'] is None
    assert body['is_first_user'] is True


def test_onboarding_first_profile(auth_as, make_department):
    dept = make_department()
    client = auth_as('google-1')
    resp = _post(client, '/api/profiles', {'name': 'Fundadora', 'role': 'estagiario', 'department_id': dept.id})
    assert resp.status_code == 201
    assert resp.json()['role'] == Role.C_LEVEL
    assert client.get('/api/users/me').json()['profile']['external_id'] == 'google-1'


def test_admin_routes_require_admin_role(auth_as, team):
    client = auth_as(team['ana'])
    assert client.get('/api/admin/users').status_code == 403
    assert _post(client, '/api/departments', {'code': 'X', 'name': 'X'}).status_code == 403
    assert client.get('/api/departments').status_code == 200


def test_admin_manages_positions(auth_as, team):
    client = auth_as(team['ceo'])
    resp = _post(client, '/api/positions', {'name': 'Analista de Dados', 'role': 'analista'})
    assert resp.status_code == 201
    position_id = resp.json()['id']

    dup = _post(client, '/api/positions', {'name': 'Analista de Dados', 'role': 'analista'})
    assert dup.status_code == 400

    assert _put(client, f'/api/positions/{position_id}', {'is_active': False}).status_code == 200
    assert Position.objects.get(id=position_id).inactivated_at is not None
    assert client.get('/api/positions/by-role/analista').json() == []
    assert client.get('/api/positions/by-role/rei').status_code == 400


def test_admin_creates_and_edits_users(auth_as, team):
    client = auth_as(team['ceo'])
    resp = _post(client, '/api/admin/users', {'name': 'Novo', 'role': 'auxiliar', 'department_id': team['dept'].id})
    assert resp.status_code == 201
    new_id = resp.json()['id']

    assert _put(client, f'/api/admin/users/{new_id}', {'manager_id': team['coord'].id}).status_code == 200
    assert UserProfile.objects.get(id=new_id).manager_id == team['coord'].id
    assert _put(client, f'/api/admin/users/{team["ceo"].id}', {'manager_id': team['ana'].id}).status_code == 400


def test_listing_sweeps_overdue_tasks(auth_as, team, make_task, yesterday):
    task = make_task(team['ana'], assignee=team['ana'], deadline=yesterday)
    client = auth_as(team['ana'])
    rows = client.get('/api/tasks').json()
    assert [(r['id'], r['status']) for r in rows] == [(task.id, TaskStatus.NAO_ENTREGUE)]
    assert rows[0]['assignee_name'] == team['ana'].name


def test_task_create_update_flow(auth_as, team):
    client = auth_as(team['coord'])
    resp = _post(client, '/api/tasks', {'title': 'Inventário', 'importance': 'alta'})
    assert resp.status_code == 201
    task_id = resp.json()['id']

    blocked = _put(client, f'/api/tasks/{task_id}', {'status': 'em_andamento'})
    assert blocked.status_code == 400
    assert 'sem responsável' in blocked.json()['detail']

    ok = _put(client, f'/api/tasks/{task_id}', {
        'status': 'em_andamento', 'assignee_id': team['ana'].id, 'comment': 'Começando',
    })
    assert ok.status_code == 200
    assert ok.json()['status'] == 'em_andamento'
    assert ok.json()['update_id'] is not None

    changes = client.get(f'/api/tasks/{task_id}/changes').json()
    assert {c['field_name'] for c in changes} == {'created', 'status', 'assignee_id'}

    updates = client.get(f'/api/tasks/{task_id}/updates').json()
    assert [u['comment'] for u in updates] == ['Começando']
    assert updates[0]['status_before'] == 'aberta'


def test_invisible_task_is_not_found(auth_as, team, make_task):
    hidden = make_task(team['coord'], assignee=team['coord'], status=TaskStatus.EM_ANDAMENTO)
    client = auth_as(team['estag'])
    assert client.get(f'/api/tasks/{hidden.id}').status_code == 404
    assert _put(client, f'/api/tasks/{hidden.id}', {'title': 'hack'}).status_code == 404
    assert Task.objects.get(id=hidden.id).title == 'Tarefa'
    assert not TaskChangeLog.objects.filter(task=hidden).exists()


def test_upload_and_download_attachment(auth_as, team):
    client = auth_as(team['ana'])
    task_id = _post(client, '/api/tasks', {'title': 'Contrato', 'assignee_id': team['ana'].id}).json()['id']
    update_id = _put(client, f'/api/tasks/{task_id}', {'comment': 'anexo o contrato'}).json()['update_id']

    resp = client.post(f'/api/tasks/{task_id}/attachments', data={
        'update_id': str(update_id),
        'file': [
            SimpleUploadedFile('contrato.txt', b'clausulas', content_type='text/plain'),
            SimpleUploadedFile('enorme.bin', b'x' * (10 * 1024 * 1024 + 1)),
        ],
    })
    assert resp.status_code == 201
    ok, rejected = resp.json()['results']
    assert ok['ok'] is True
    assert rejected['rejected'] is True

    download = client.get(f'/api/attachments/{ok["id"]}')
    assert download.status_code == 200
    assert download.content == b'clausulas'
    assert download['Content-Type'] == 'text/plain'
    assert 'contrato.txt' in download['Content-Disposition']

    listed = client.get(f'/api/tasks/{task_id}/updates').json()
    assert [a['filename'] for a in listed[0]['attachments']] == ['contrato.txt']


def test_upload_rejects_foreign_update(auth_as, team):
    client = auth_as(team['ana'])
    a = _post(client, '/api/tasks', {'title': 'A'}).json()['id']
    b = _post(client, '/api/tasks', {'title': 'B'}).json()['id']
    update_id = _put(client, f'/api/tasks/{a}', {'comment': 'x'}).json()['update_id']

    resp = client.post(f'/api/tasks/{b}/attachments', data={
        'update_id': str(update_id),
        'file': SimpleUploadedFile('a.txt', b'a'),
    })
    assert resp.status_code == 404


def test_only_oversize_files_give_400(auth_as, team):
    client = auth_as(team['ana'])
    task_id = _post(client, '/api/tasks', {'title': 'Pesado'}).json()['id']
    update_id = _put(client, f'/api/tasks/{task_id}', {'comment': 'x'}).json()['update_id']
    resp = client.post(f'/api/tasks/{task_id}/attachments', data={
        'update_id': str(update_id),
        'file': SimpleUploadedFile('enorme.bin', b'x' * (10 * 1024 * 1024 + 1)),
    })
    assert resp.status_code == 400


def test_sessions_sets_cookie(client, monkeypatch, settings):
    monkeypatch.setattr('rh.api.exchange_code', lambda code: 'tok-123')
    resp = _post(client, '/api/sessions', {'code': 'abc'})
    assert resp.status_code == 200
    assert resp.cookies[settings.RH_SESSION_COOKIE].value == 'tok-123'
    assert _post(client, '/api/sessions', {}).status_code == 400


def test_team_analytics(auth_as, team, make_task):
    make_task(team['coord'], assignee=team['ana'], status=TaskStatus.CONCLUIDA)
    client = auth_as(team['coord'])
    body = client.get('/api/analytics/team').json()
    assert {m['id'] for m in body['team']} == {team['ana'].id, team['estag'].id}
    assert body['stats'][0]['completed_tasks'] == 1


def test_projects_with_statistics(auth_as, team, make_task):
    client = auth_as(team['ceo'])
    project_id = _post(client, '/api/projects', {
        'name': 'Expansão', 'start_date': '2030-01-01', 'end_date': '2030-12-31',
    }).json()['id']
    make_task(team['ceo'], assignee=team['ana'], project_id=project_id)

    [row] = client.get('/api/projects').json()
    assert row['total_tasks'] == 1
    assert row['open_tasks'] == 1
    assert [p['id'] for p in client.get('/api/projects/active').json()] == [project_id]

    ana = auth_as(team['ana'])
    assert [p['id'] for p in ana.get('/api/projects/user').json()] == [project_id]
    assert len(ana.get(f'/api/projects/{project_id}/tasks').json()) == 1


def test_assistant_chat_endpoint_reports_friendly_error(auth_as, team, monkeypatch, settings):
    settings.OPENAI_API_KEY = 'sk-test'
    fake = FakeOpenAI(error=FakeAPIError(status_code=401))
    monkeypatch.setattr(assistant, '_get_client', lambda: fake)

    client = auth_as(team['ana'])
    resp = _post(client, '/api/assistant/chat', {'messages': [{'role': 'user', 'content': 'oi'}]})
    assert resp.status_code == 500
    assert resp.json()['message'].startswith('Erro de autenticação')


def test_wrong_types_in_task_edit_are_validation_errors(auth_as, team):
    client = auth_as(team['ana'])
    task_id = _post(client, '/api/tasks', {'title': 'Tipos'}).json()['id']

    assert _post(client, '/api/tasks', {'title': 5}).status_code == 400

    resp = _put(client, f'/api/tasks/{task_id}', {'title': 5})
    assert resp.status_code == 400
    assert resp.json()['detail'] == 'O título é obrigatório'

    resp = _put(client, f'/api/tasks/{task_id}', {'comment': 5, 'title': 'novo'})
    assert resp.status_code == 400
    assert Task.objects.get(id=task_id).title == 'Tipos'


def test_non_numeric_position_on_onboarding_is_rejected(auth_as, make_department):
    dept = make_department()
    client = auth_as('google-9')
    resp = _post(client, '/api/profiles', {
        'name': 'Nova', 'role': 'analista', 'department_id': dept.id, 'position_id': 'abc',
    })
    assert resp.status_code == 400
    assert not UserProfile.objects.exists()

    resp = _post(client, '/api/profiles', {'name': 7, 'role': 'analista', 'department_id': dept.id})
    assert resp.status_code == 400


def test_sessions_rejects_non_string_code(client):
    assert _post(client, '/api/sessions', {'code': 5}).status_code == 400


def test_active_projects_exclude_closed_ones(auth_as, team):
    client = auth_as(team['ceo'])
    open_id = _post(client, '/api/projects', {
        'name': 'Aberto', 'start_date': '2030-01-01', 'end_date': '2030-12-31',
    }).json()['id']
    _post(client, '/api/projects', {
        'name': 'Fechado', 'start_date': '2029-01-01', 'end_date': '2029-12-31', 'status': 'encerrado',
    })
    assert [p['id'] for p in client.get('/api/projects/active').json()] == [open_id]
