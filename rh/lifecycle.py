"""Ciclo de vida das tarefas: criação, atualização, histórico e varredura de atrasadas.

Fluxo de status::

    aberta -> em_andamento -> concluida
    aberta | em_andamento -> nao_entregue   (manual ou pela varredura)

A única transição bloqueada é entrar em ``em_andamento`` sem responsável.
"""
import datetime
import logging

from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone
from django.utils.dateparse import parse_date

from .models import Importance, Project, Task, TaskChangeLog, TaskStatus, TaskUpdate, UserProfile

logger = logging.getLogger(__name__)

NO_ASSIGNEE_MESSAGE = 'Não é possível iniciar uma tarefa sem responsável atribuído'
TITLE_REQUIRED_MESSAGE = 'O título é obrigatório'

# Ordem em que as alterações aparecem no log.
TRACKED_FIELDS = ('status', 'title', 'description', 'assignee_id', 'deadline', 'importance', 'notes')


def sweep_overdue(today=None):
    """Marca como ``nao_entregue`` as tarefas abertas/em andamento com prazo vencido.

    Idempotente: uma segunda execução no mesmo dia não encontra mais linhas.
    ``completed_at`` não é tocado.
    """
    today = today or timezone.localdate()
    changed = Task.objects.filter(
        status__in=[TaskStatus.ABERTA, TaskStatus.EM_ANDAMENTO],
        deadline__isnull=False,
        deadline__lt=today,
    ).update(status=TaskStatus.NAO_ENTREGUE, updated_at=timezone.now())
    if changed:
        logger.info('Varredura de atrasadas: %s tarefa(s) marcadas como nao_entregue', changed)
    return changed


def _log_value(value):
    if value is None or value == '':
        return None
    if isinstance(value, datetime.date):
        return value.isoformat()
    return str(value)


def _blank_to_none(value):
    if isinstance(value, str):
        value = value.strip()
    return value if value not in ('', None) else None


def _clean_text(value, message):
    if value is None:
        return ''
    if not isinstance(value, str):
        raise ValidationError(message)
    return value.strip()


def _clean_date(value):
    value = _blank_to_none(value)
    if value is None or isinstance(value, datetime.date):
        return value
    try:
        parsed = parse_date(str(value)[:10])
    except ValueError:
        parsed = None
    if parsed is None:
        raise ValidationError('Prazo inválido (use AAAA-MM-DD)')
    return parsed


def _clean_fk(model, value, message):
    value = _blank_to_none(value)
    if value is None:
        return None
    try:
        pk = int(value)
    except (TypeError, ValueError):
        raise ValidationError(message)
    if not model.objects.filter(pk=pk).exists():
        raise ValidationError(message)
    return pk


def _clean_choice(choices, value, message):
    value = _blank_to_none(value)
    if value is not None and value not in choices.values:
        raise ValidationError(message)
    return value


def _record_change(task, author, field, old, new, now):
    TaskChangeLog.objects.create(
        task=task,
        author=author,
        field_name=field,
        old_value=_log_value(old),
        new_value=_log_value(new),
        created_at=now,
    )


def create_task(creator, data):
    title = _clean_text(data.get('title'), TITLE_REQUIRED_MESSAGE)
    if not title:
        raise ValidationError(TITLE_REQUIRED_MESSAGE)

    importance = _clean_choice(Importance, data.get('importance'), 'Importância inválida') or Importance.MEDIA
    assignee_id = _clean_fk(UserProfile, data.get('assignee_id'), 'Responsável não encontrado')
    project_id = _clean_fk(Project, data.get('project_id'), 'Projeto não encontrado')
    deadline = _clean_date(data.get('deadline'))

    now = timezone.now()
    with transaction.atomic():
        task = Task.objects.create(
            title=title,
            description=_blank_to_none(data.get('description')),
            status=TaskStatus.ABERTA,
            deadline=deadline,
            assignee_id=assignee_id,
            creator=creator,
            importance=importance,
            notes=_blank_to_none(data.get('notes')),
            project_id=project_id,
            created_at=now,
            updated_at=now,
        )
        _record_change(task, creator, 'created', None, 'Task created', now)

    logger.info('Tarefa %s criada por perfil %s', task.id, creator.id)
    return task


def _requested_changes(task, data):
    """Valida a entrada e devolve ``{campo: novo_valor}`` só para o que mudou."""
    wanted = {}

    status = _clean_choice(TaskStatus, data.get('status'), 'Status inválido')
    if status is not None:
        wanted['status'] = status

    if 'title' in data:
        title = _clean_text(data.get('title'), TITLE_REQUIRED_MESSAGE)
        if not title:
            raise ValidationError(TITLE_REQUIRED_MESSAGE)
        wanted['title'] = title

    for field in ('description', 'notes'):
        if field in data:
            wanted[field] = _blank_to_none(data.get(field))

    if 'assignee_id' in data:
        wanted['assignee_id'] = _clean_fk(UserProfile, data.get('assignee_id'), 'Responsável não encontrado')

    if 'deadline' in data:
        wanted['deadline'] = _clean_date(data.get('deadline'))

    importance = _clean_choice(Importance, data.get('importance'), 'Importância inválida')
    if importance is not None:
        wanted['importance'] = importance

    return {
        field: wanted[field]
        for field in TRACKED_FIELDS
        if field in wanted and wanted[field] != getattr(task, field)
    }


def update_task(task, author, data):
    """Aplica uma edição parcial na tarefa.

    Cada campo efetivamente alterado gera uma linha em ``TaskChangeLog``.
    Um ``TaskUpdate`` só é criado quando ``comment`` é enviado; ele é
    devolvido para que anexos possam ser associados a ele.
    """
    changes = _requested_changes(task, data)

    final_status = changes.get('status', task.status)
    final_assignee = changes['assignee_id'] if 'assignee_id' in changes else task.assignee_id
    if final_status == TaskStatus.EM_ANDAMENTO and final_assignee is None:
        raise ValidationError(NO_ASSIGNEE_MESSAGE)

    comment = _clean_text(data.get('comment'), 'Comentário inválido')
    old_status = task.status
    now = timezone.now()

    with transaction.atomic():
        old_values = {field: getattr(task, field) for field in changes}
        for field, value in changes.items():
            setattr(task, field, value)
        if final_status == TaskStatus.CONCLUIDA:
            task.completed_at = now
        task.updated_at = now
        task.save()

        for field, value in changes.items():
            _record_change(task, author, field, old_values[field], value, now)

        update = None
        if comment:
            update = TaskUpdate.objects.create(
                task=task,
                author=author,
                comment=comment,
                status_before=old_status,
                status_after=final_status,
                created_at=now,
            )

    if changes:
        logger.info('Tarefa %s atualizada por perfil %s: %s', task.id, author.id, ', '.join(changes))
    return update


def task_history(task):
    return (
        TaskUpdate.objects.filter(task=task)
        .select_related('author')
        .prefetch_related('attachments')
        .order_by('-created_at', '-id')
    )


def task_changes(task):
    return TaskChangeLog.objects.filter(task=task).select_related('author').order_by('-created_at', '-id')
