"""Cadastros da organização: perfis, departamentos, cargos e projetos."""
import logging
import re

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Count, Q
from django.utils import timezone
from django.utils.dateparse import parse_date

from .models import Department, Position, Project, ProjectStatus, Role, Task, TaskStatus, UserProfile

logger = logging.getLogger(__name__)

DUPLICATE_POSITION_MESSAGE = 'Já existe um cargo com este nome para este nível'


def next_sequential_code(prefix, existing):
    """``CRG`` + ['CRG0001', 'CRG0007'] -> 'CRG0008'."""
    pattern = re.compile(rf'^{re.escape(prefix)}(\d+)$')
    numbers = [int(m.group(1)) for m in map(pattern.match, existing) if m]
    return f"{prefix}{(max(numbers, default=0) + 1):04d}"


def _text(data, key):
    value = data.get(key)
    if value is None:
        return ''
    if not isinstance(value, str):
        raise ValidationError(f'Campo "{key}" inválido')
    return value.strip()


def _role(value):
    role = Role.parse(value)
    if role is None:
        raise ValidationError('Nível inválido')
    return role


def _optional_id(model, value, message):
    if value in (None, ''):
        return None
    try:
        pk = int(value)
    except (TypeError, ValueError):
        raise ValidationError(message)
    if not model.objects.filter(pk=pk).exists():
        raise ValidationError(message)
    return pk


def _date(value, message):
    parsed = None
    if value:
        try:
            parsed = parse_date(str(value)[:10])
        except ValueError:
            parsed = None
    if parsed is None:
        raise ValidationError(message)
    return parsed


def check_manager(profile_id, manager_id):
    """Recusa gestores que fechariam um ciclo na hierarquia."""
    if manager_id is None or profile_id is None:
        return
    seen = set()
    current = manager_id
    while current is not None and current not in seen:
        if current == profile_id:
            raise ValidationError('Gestor inválido: a hierarquia não pode formar ciclos')
        seen.add(current)
        current = UserProfile.objects.filter(pk=current).values_list('manager_id', flat=True).first()


# ----- Perfis -----

def create_profile(external_id, data):
    """Onboarding do usuário autenticado.

    O primeiro perfil do sistema vira c-level independentemente do nível
    enviado. A contagem e o insert não são serializados: dois primeiros
    cadastros simultâneos podem ambos virar c-level.
    """
    name = _text(data, 'name')
    if not name or not data.get('role') or not data.get('department_id'):
        raise ValidationError('Nome, nível e departamento são obrigatórios')
    role = _role(data.get('role'))
    department_id = _optional_id(Department, data.get('department_id'), 'Departamento não encontrado')
    manager_id = _optional_id(UserProfile, data.get('manager_id'), 'Gestor não encontrado')

    position_id = _optional_id(Position, data.get('position_id'), 'Cargo não encontrado')
    position_name = None
    if position_id is not None:
        position_name = Position.objects.filter(pk=position_id).values_list('name', flat=True).first()

    if UserProfile.objects.filter(external_id=external_id).exists():
        raise ValidationError('Perfil já cadastrado para este usuário')

    is_first = not UserProfile.objects.exists()
    now = timezone.now()
    profile = UserProfile.objects.create(
        external_id=external_id,
        name=name,
        role=Role.C_LEVEL if is_first else role,
        position=position_name,
        department_id=department_id,
        manager_id=manager_id,
        created_at=now,
        updated_at=now,
    )
    if is_first:
        logger.info('Primeiro perfil do sistema (%s) criado como c-level', profile.id)
    return profile


def create_user(data):
    """Cadastro administrativo; o ID externo é gerado como USRnnnn."""
    name = _text(data, 'name')
    if not name or not data.get('role') or not data.get('department_id'):
        raise ValidationError('Nome, nível e departamento são obrigatórios')
    role = _role(data.get('role'))
    department_id = _optional_id(Department, data.get('department_id'), 'Departamento não encontrado')
    manager_id = _optional_id(UserProfile, data.get('manager_id'), 'Gestor não encontrado')

    with transaction.atomic():
        existing = UserProfile.objects.filter(external_id__startswith='USR').values_list('external_id', flat=True)
        now = timezone.now()
        return UserProfile.objects.create(
            external_id=next_sequential_code('USR', existing),
            name=name,
            role=role,
            position=_text(data, 'position') or None,
            department_id=department_id,
            manager_id=manager_id,
            created_at=now,
            updated_at=now,
        )


def update_user(profile, data):
    changed = []
    if 'name' in data:
        name = _text(data, 'name')
        if not name:
            raise ValidationError('Campo "name" não pode ficar vazio')
        profile.name = name
        changed.append('name')
    if 'role' in data:
        profile.role = _role(data.get('role'))
        changed.append('role')
    if 'position' in data:
        profile.position = _text(data, 'position') or None
        changed.append('position')
    if 'department_id' in data:
        profile.department_id = _optional_id(Department, data.get('department_id'), 'Departamento não encontrado')
        changed.append('department')
    if 'manager_id' in data:
        manager_id = _optional_id(UserProfile, data.get('manager_id'), 'Gestor não encontrado')
        check_manager(profile.id, manager_id)
        profile.manager_id = manager_id
        changed.append('manager')

    if changed:
        profile.updated_at = timezone.now()
        profile.save(update_fields=changed + ['updated_at'])
    return changed


# ----- Departamentos -----

def create_department(data):
    code = _text(data, 'code')
    name = _text(data, 'name')
    if not code or not name:
        raise ValidationError('Código e nome são obrigatórios')
    if Department.objects.filter(code=code).exists():
        raise ValidationError('Já existe um departamento com este código')
    now = timezone.now()
    return Department.objects.create(
        code=code,
        name=name,
        manager_id=_optional_id(UserProfile, data.get('manager_id'), 'Gestor não encontrado'),
        phone=_text(data, 'phone') or None,
        created_at=now,
        updated_at=now,
    )


def update_department(dept, data):
    changed = []
    for f in ('code', 'name'):
        if f in data:
            value = _text(data, f)
            if not value:
                raise ValidationError(f'Campo "{f}" não pode ficar vazio')
            setattr(dept, f, value)
            changed.append(f)
    if 'code' in changed and Department.objects.filter(code=dept.code).exclude(pk=dept.pk).exists():
        raise ValidationError('Já existe um departamento com este código')
    if 'manager_id' in data:
        dept.manager_id = _optional_id(UserProfile, data.get('manager_id'), 'Gestor não encontrado')
        changed.append('manager')
    if 'phone' in data:
        dept.phone = _text(data, 'phone') or None
        changed.append('phone')

    if changed:
        dept.updated_at = timezone.now()
        dept.save(update_fields=changed + ['updated_at'])
    return changed


# ----- Cargos -----

def create_position(data):
    name = _text(data, 'name')
    if not name or not data.get('role'):
        raise ValidationError('Nome e nível são obrigatórios')
    role = _role(data.get('role'))
    if Position.objects.filter(name=name, role=role).exists():
        raise ValidationError(DUPLICATE_POSITION_MESSAGE)

    is_active = bool(data.get('is_active', True))
    with transaction.atomic():
        existing = Position.objects.filter(code__startswith='CRG').values_list('code', flat=True)
        now = timezone.now()
        return Position.objects.create(
            code=next_sequential_code('CRG', existing),
            name=name,
            role=role,
            is_active=is_active,
            inactivated_at=None if is_active else now,
            created_at=now,
            updated_at=now,
        )


def update_position(position, data):
    """``inactivated_at`` é gravado só na transição ativo -> inativo e nunca limpo."""
    changed = []
    if 'name' in data:
        name = _text(data, 'name')
        if not name:
            raise ValidationError('Campo "name" não pode ficar vazio')
        position.name = name
        changed.append('name')
    if 'role' in data:
        position.role = _role(data.get('role'))
        changed.append('role')
    if changed and Position.objects.filter(name=position.name, role=position.role).exclude(pk=position.pk).exists():
        raise ValidationError(DUPLICATE_POSITION_MESSAGE)

    if 'is_active' in data:
        is_active = bool(data.get('is_active'))
        if position.is_active and not is_active:
            position.inactivated_at = timezone.now()
            changed.append('inactivated_at')
        position.is_active = is_active
        changed.append('is_active')

    if changed:
        position.updated_at = timezone.now()
        position.save(update_fields=changed + ['updated_at'])
    return changed


# ----- Projetos -----

def _project_status(value):
    if value in (None, ''):
        return ProjectStatus.EM_ANDAMENTO
    if value not in ProjectStatus.values:
        raise ValidationError('Status de projeto inválido')
    return value


def create_project(data):
    name = _text(data, 'name')
    if not name or not data.get('start_date') or not data.get('end_date'):
        raise ValidationError('Nome, data de início e data de término são obrigatórios')
    now = timezone.now()
    return Project.objects.create(
        name=name,
        start_date=_date(data.get('start_date'), 'Data de início inválida'),
        end_date=_date(data.get('end_date'), 'Data de término inválida'),
        status=_project_status(data.get('status')),
        created_at=now,
        updated_at=now,
    )


def update_project(project, data):
    changed = []
    if 'name' in data:
        name = _text(data, 'name')
        if not name:
            raise ValidationError('Campo "name" não pode ficar vazio')
        project.name = name
        changed.append('name')
    if 'start_date' in data:
        project.start_date = _date(data.get('start_date'), 'Data de início inválida')
        changed.append('start_date')
    if 'end_date' in data:
        project.end_date = _date(data.get('end_date'), 'Data de término inválida')
        changed.append('end_date')
    if 'status' in data:
        project.status = _project_status(data.get('status'))
        changed.append('status')

    if changed:
        project.updated_at = timezone.now()
        project.save(update_fields=changed + ['updated_at'])
    return changed


# ----- Estatísticas -----

def status_counts(tasks):
    counts = tasks.aggregate(
        total_tasks=Count('id'),
        completed_tasks=Count('id', filter=Q(status=TaskStatus.CONCLUIDA)),
        in_progress_tasks=Count('id', filter=Q(status=TaskStatus.EM_ANDAMENTO)),
        open_tasks=Count('id', filter=Q(status=TaskStatus.ABERTA)),
        not_delivered_tasks=Count('id', filter=Q(status=TaskStatus.NAO_ENTREGUE)),
    )
    return {k: v or 0 for k, v in counts.items()}


def team_rollup(profile, today=None):
    """Subordinados diretos e contagem de tarefas por responsável."""
    today = today or timezone.localdate()
    team = list(UserProfile.objects.filter(manager_id=profile.id).order_by('name'))
    if not team:
        return team, []

    stats = list(
        Task.objects.filter(assignee_id__in=[m.id for m in team])
        .values('assignee_id')
        .annotate(
            total_tasks=Count('id'),
            completed_tasks=Count('id', filter=Q(status=TaskStatus.CONCLUIDA)),
            in_progress_tasks=Count('id', filter=Q(status=TaskStatus.EM_ANDAMENTO)),
            open_tasks=Count('id', filter=Q(status=TaskStatus.ABERTA)),
            overdue_tasks=Count('id', filter=Q(deadline__lt=today) & ~Q(status=TaskStatus.CONCLUIDA)),
        )
        .order_by('assignee_id')
    )
    return team, stats
