"""Quais tarefas cada perfil pode ver.

A visibilidade é uma tabela fixa por nível (``Role``), não um ACL genérico:

- c-level: todas as tarefas;
- gerencia: tarefas cujo responsável ou criador é do mesmo departamento,
  além das próprias;
- coordenacao / supervisao: tarefas do próprio perfil e dos subordinados
  diretos (um nível só);
- analista / assistente / auxiliar: as próprias, mais as tarefas ainda
  ``aberta`` atribuídas a colegas com o mesmo gestor;
- estagiario (e qualquer nível desconhecido): apenas as próprias.

``build_scope`` faz as consultas de equipe; ``task_filter`` e
``is_visible`` são funções puras sobre o ``VisibilityScope`` resultante.
"""
from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, Optional

from django.db.models import F, Q

from .lifecycle import sweep_overdue
from .models import OPERATIONAL_ROLES, TEAM_LEAD_ROLES, Role, Task, TaskStatus, UserProfile


@dataclass(frozen=True)
class VisibilityScope:
    role: Optional[Role]
    profile_id: int
    department_id: Optional[int] = None
    manager_id: Optional[int] = None
    report_ids: FrozenSet[int] = frozenset()
    peer_ids: FrozenSet[int] = frozenset()


def build_scope(profile: UserProfile) -> VisibilityScope:
    role = Role.parse(profile.role)
    report_ids = frozenset()
    peer_ids = frozenset()

    if role in TEAM_LEAD_ROLES:
        report_ids = frozenset(
            UserProfile.objects.filter(manager_id=profile.id).values_list('id', flat=True)
        )
    elif role in OPERATIONAL_ROLES and profile.manager_id is not None:
        peer_ids = frozenset(
            UserProfile.objects.filter(manager_id=profile.manager_id).values_list('id', flat=True)
        )

    return VisibilityScope(
        role=role,
        profile_id=profile.id,
        department_id=profile.department_id,
        manager_id=profile.manager_id,
        report_ids=report_ids,
        peer_ids=peer_ids,
    )


# ----- predicados SQL -----

def _own_q(scope):
    return Q(assignee_id=scope.profile_id) | Q(creator_id=scope.profile_id)


def _all_q(scope):
    return Q()


def _department_q(scope):
    q = _own_q(scope)
    if scope.department_id is not None:
        q |= Q(assignee__department_id=scope.department_id) | Q(creator__department_id=scope.department_id)
    return q


def _team_q(scope):
    ids = scope.report_ids | {scope.profile_id}
    return Q(assignee_id__in=ids) | Q(creator_id__in=ids)


def _peers_open_q(scope):
    ids = scope.peer_ids | {scope.profile_id}
    return _own_q(scope) | Q(assignee_id__in=ids, status=TaskStatus.ABERTA)


_FILTERS: Dict[Role, Callable[[VisibilityScope], Q]] = {
    Role.C_LEVEL: _all_q,
    Role.GERENCIA: _department_q,
    Role.COORDENACAO: _team_q,
    Role.SUPERVISAO: _team_q,
    Role.ANALISTA: _peers_open_q,
    Role.ASSISTENTE: _peers_open_q,
    Role.AUXILIAR: _peers_open_q,
    Role.ESTAGIARIO: _own_q,
}


def task_filter(scope: VisibilityScope) -> Q:
    rule = _FILTERS.get(scope.role, _own_q)
    return rule(scope)


# ----- filtro em memória -----

def _is_own(scope, task):
    return scope.profile_id in (task.assignee_id, task.creator_id)


def _department_of(profile):
    return profile.department_id if profile is not None else None


def _sees_all(scope, task):
    return True


def _sees_department(scope, task):
    if _is_own(scope, task):
        return True
    if scope.department_id is None:
        return False
    return scope.department_id in (
        _department_of(task.assignee if task.assignee_id else None),
        _department_of(task.creator),
    )


def _sees_team(scope, task):
    ids = scope.report_ids | {scope.profile_id}
    return task.assignee_id in ids or task.creator_id in ids


def _sees_peers_open(scope, task):
    if _is_own(scope, task):
        return True
    ids = scope.peer_ids | {scope.profile_id}
    return task.assignee_id in ids and task.status == TaskStatus.ABERTA


_CHECKS = {
    Role.C_LEVEL: _sees_all,
    Role.GERENCIA: _sees_department,
    Role.COORDENACAO: _sees_team,
    Role.SUPERVISAO: _sees_team,
    Role.ANALISTA: _sees_peers_open,
    Role.ASSISTENTE: _sees_peers_open,
    Role.AUXILIAR: _sees_peers_open,
    Role.ESTAGIARIO: _is_own,
}


def is_visible(scope: VisibilityScope, task: Task) -> bool:
    """Equivalente em memória de ``task_filter``.

    Para gerência, ``task.assignee`` e ``task.creator`` são lidos; use
    ``select_related`` para evitar consultas extras.
    """
    check = _CHECKS.get(scope.role, _is_own)
    return check(scope, task)


def visible_tasks(profile: UserProfile):
    """Aplica a varredura de atrasadas e devolve as tarefas visíveis ao perfil."""
    sweep_overdue()
    scope = build_scope(profile)
    return (
        Task.objects.select_related('assignee', 'creator', 'project')
        .filter(task_filter(scope))
        .order_by(F('deadline').asc(nulls_first=True), '-created_at', '-id')
    )
