# tests/test_org.py

import pytest
from django.core.exceptions import ValidationError

from rh import org
from rh.models import Role, Task, TaskStatus

pytestmark = pytest.mark.django_db


def test_next_sequential_code():
    assert org.next_sequential_code('CRG', []) == 'CRG0001'
    assert org.next_sequential_code('CRG', ['CRG0001', 'CRG0007', 'XYZ9999']) == 'CRG0008'


def test_first_profile_becomes_c_level(make_department):
    dept = make_department()
    first = org.create_profile('google-1', {'name': 'Primeira', 'role': 'analista', 'department_id': dept.id})
    second = org.create_profile('google-2', {'name': 'Segunda', 'role': 'analista', 'department_id': dept.id})
    assert first.role == Role.C_LEVEL
    assert second.role == Role.ANALISTA


def test_profile_requires_department(make_department):
    with pytest.raises(ValidationError):
        org.create_profile('google-1', {'name': 'Sem depto', 'role': 'analista'})


def test_profile_cannot_be_created_twice(make_department):
    dept = make_department()
    data = {'name': 'Repetida', 'role': 'analista', 'department_id': dept.id}
    org.create_profile('google-1', data)
    with pytest.raises(ValidationError):
        org.create_profile('google-1', data)


def test_profile_takes_position_name(make_department):
    dept = make_department()
    position = org.create_position({'name': 'Analista Fiscal', 'role': 'analista'})
    profile = org.create_profile('google-1', {
        'name': 'Com cargo', 'role': 'analista', 'department_id': dept.id, 'position_id': position.id,
    })
    assert profile.position == 'Analista Fiscal'


def test_admin_users_get_sequential_external_ids(make_department):
    dept = make_department()
    a = org.create_user({'name': 'A', 'role': 'auxiliar', 'department_id': dept.id})
    b = org.create_user({'name': 'B', 'role': 'auxiliar', 'department_id': dept.id})
    assert (a.external_id, b.external_id) == ('USR0001', 'USR0002')


def test_manager_cycle_is_rejected(make_profile):
    top = make_profile(Role.GERENCIA)
    mid = make_profile(Role.COORDENACAO, manager=top)
    low = make_profile(Role.ANALISTA, manager=mid)
    with pytest.raises(ValidationError):
        org.update_user(top, {'manager_id': low.id})
    with pytest.raises(ValidationError):
        org.update_user(top, {'manager_id': top.id})


def test_duplicate_position_name_and_role():
    org.create_position({'name': 'Auxiliar Administrativo', 'role': 'auxiliar'})
    with pytest.raises(ValidationError) as exc:
        org.create_position({'name': 'Auxiliar Administrativo', 'role': 'auxiliar'})
    assert org.DUPLICATE_POSITION_MESSAGE in exc.value.messages
    other_level = org.create_position({'name': 'Auxiliar Administrativo', 'role': 'assistente'})
    assert other_level.code == 'CRG0002'


def test_position_inactivation_is_stamped_once():
    position = org.create_position({'name': 'Supervisor de Loja', 'role': 'supervisao'})
    assert position.inactivated_at is None

    org.update_position(position, {'is_active': False})
    position.refresh_from_db()
    stamped = position.inactivated_at
    assert stamped is not None

    org.update_position(position, {'is_active': False})
    position.refresh_from_db()
    assert position.inactivated_at == stamped

    org.update_position(position, {'is_active': True})
    position.refresh_from_db()
    assert position.is_active is True
    assert position.inactivated_at == stamped


def test_project_status_is_validated():
    project = org.create_project({'name': 'Implantação', 'start_date': '2030-01-01', 'end_date': '2030-06-30'})
    assert project.status == 'em_andamento'
    with pytest.raises(ValidationError):
        org.update_project(project, {'status': 'cancelado'})


def test_team_rollup_counts_per_assignee(make_profile, make_task, today, yesterday):
    boss = make_profile(Role.SUPERVISAO)
    ana = make_profile(Role.ANALISTA, manager=boss)
    make_task(boss, assignee=ana, status=TaskStatus.CONCLUIDA, deadline=yesterday)
    make_task(boss, assignee=ana, deadline=yesterday)
    make_task(boss, assignee=ana, status=TaskStatus.EM_ANDAMENTO)

    team, stats = org.team_rollup(boss, today=today)
    assert [m.id for m in team] == [ana.id]
    assert stats == [{
        'assignee_id': ana.id,
        'total_tasks': 3,
        'completed_tasks': 1,
        'in_progress_tasks': 1,
        'open_tasks': 1,
        'overdue_tasks': 1,
    }]


def test_status_counts(make_profile, make_task):
    me = make_profile(Role.ANALISTA)
    make_task(me, status=TaskStatus.NAO_ENTREGUE)
    make_task(me, status=TaskStatus.ABERTA)
    counts = org.status_counts(Task.objects.all())
    assert counts['total_tasks'] == 2
    assert counts['not_delivered_tasks'] == 1
    assert counts['completed_tasks'] == 0
