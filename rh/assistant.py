"""Assistente de produtividade (chat) sobre as tarefas do usuário.

O modelo de linguagem é um serviço externo acessado pelo SDK ``openai``;
aqui só montamos o prompt, chamamos uma vez (sem retry) e persistimos a
conversa em ``AssistantMessage``.
"""
import logging

import openai
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db.models import Q
from django.utils import timezone
from openai import OpenAI

from .models import AssistantMessage, Project, Task, TaskStatus

logger = logging.getLogger(__name__)

ASSISTANT_NAME = 'RHProdutivoFlow'
GENERIC_FAILURE = 'Desculpe, não consegui processar sua solicitação no momento. Por favor, tente novamente.'
NOT_CONFIGURED = 'Desculpe, o assistente não está configurado corretamente. Por favor, entre em contato com o administrador.'
ALERT_MARKER = 'tarefas atrasadas'

_client = None


class AssistantError(Exception):
    def __init__(self, user_message, status=500):
        super().__init__(user_message)
        self.user_message = user_message
        self.status = status


def _get_client():
    global _client
    if _client is None:
        _client = OpenAI(
            api_key=settings.OPENAI_API_KEY,
            base_url=settings.OPENAI_BASE_URL,
            timeout=settings.OPENAI_TIMEOUT,
            max_retries=0,
        )
    return _client


def friendly_error_message(err):
    code = getattr(err, 'code', None)
    status = getattr(err, 'status_code', None)
    if isinstance(err, openai.AuthenticationError) or status == 401:
        return 'Erro de autenticação com a API do OpenAI. Por favor, verifique a configuração da chave.'
    if code == 'insufficient_quota':
        return 'Cota da API do OpenAI excedida. Por favor, entre em contato com o administrador.'
    if isinstance(err, openai.RateLimitError) or status == 429:
        return 'Limite de requisições atingido. Por favor, tente novamente em alguns instantes.'
    return GENERIC_FAILURE


def _br_date(d):
    return d.strftime('%d/%m/%Y') if d else ''


def _own_tasks(profile):
    return (
        Task.objects.select_related('assignee', 'project')
        .filter(Q(assignee=profile) | Q(creator=profile))
        .order_by('deadline', '-created_at')
    )


def _own_projects(profile):
    return (
        Project.objects.filter(Q(tasks__assignee=profile) | Q(tasks__creator=profile))
        .distinct()
        .order_by('-created_at')
    )


def _task_line(task, today):
    line = f"- [{task.status}] {task.title} (Importância: {task.importance})"
    if task.deadline:
        line += f" - Prazo: {_br_date(task.deadline)}"
        days_left = (task.deadline - today).days
        if days_left < 0:
            line += ' (ATRASADO)'
        elif days_left <= 2:
            line += ' (URGENTE)'
    if task.project_id:
        line += f" - Projeto: {task.project.name}"
    return line


def build_system_prompt(profile, tasks, projects, today):
    tasks = list(tasks)
    projects = list(projects)

    def count(status):
        return sum(1 for t in tasks if t.status == status)

    overdue = sum(1 for t in tasks if t.deadline and t.deadline < today)
    due_soon = sum(1 for t in tasks if t.deadline and 0 <= (t.deadline - today).days <= 2)

    department = profile.department.name if profile.department_id else 'Não especificado'
    task_lines = '\n'.join(_task_line(t, today) for t in tasks)
    project_lines = '\n'.join(
        f"- {p.name} ({_br_date(p.start_date)} - {_br_date(p.end_date)})" for p in projects
    )

    return f"""Você é {ASSISTANT_NAME}, um assistente virtual inteligente especializado em acompanhar tarefas, projetos e usuários.

IDENTIDADE:
- Nome: {ASSISTANT_NAME}
- Objetivo: Aumentar a produtividade, alertar sobre prazos, organizar prioridades e orientar o usuário
- Personalidade: Amigável, profissional, motivador e proativo

COMPORTAMENTO:
- Organize informações (listas, checklists, prioridades)
- Classifique a urgência das tarefas
- Avise quando uma tarefa está perto do prazo ou atrasada
- Sugira a próxima melhor ação do usuário
- Responda com objetividade e simplicidade

CLASSIFICAÇÃO DE TAREFAS:
- Importância: Alta, Média, Baixa
- Status: Aberta, Em andamento, Não entregue, Concluída
- Deadline: com data ou sem data

INFORMAÇÕES DO USUÁRIO:
Nome: {profile.name}
Cargo: {profile.position or profile.role}
Departamento: {department}

TAREFAS ATUAIS ({len(tasks)} tarefas):
{task_lines}

PROJETOS ATIVOS ({len(projects)} projetos):
{project_lines}

ESTATÍSTICAS:
- Total de tarefas: {len(tasks)}
- Concluídas: {count(TaskStatus.CONCLUIDA)}
- Em andamento: {count(TaskStatus.EM_ANDAMENTO)}
- Abertas: {count(TaskStatus.ABERTA)}
- Não entregues: {count(TaskStatus.NAO_ENTREGUE)}
- Atrasadas: {overdue}
- Próximas do prazo (48h): {due_soon}

INSTRUÇÕES:
1. Sempre analise o contexto das tarefas antes de responder
2. Identifique tarefas urgentes, atrasadas ou próximas do prazo
3. Sugira prioridades baseadas em importância, urgência e prazos
4. Sempre termine com uma próxima ação recomendada"""


def _clean_messages(messages):
    if not isinstance(messages, list) or not messages:
        raise ValidationError('A lista de mensagens é obrigatória')
    cleaned = []
    for m in messages:
        if not isinstance(m, dict) or m.get('role') not in ('user', 'assistant') or not isinstance(m.get('content'), str):
            raise ValidationError('Mensagem inválida')
        cleaned.append({'role': m['role'], 'content': m['content']})
    return cleaned


def chat(profile, messages, today=None):
    messages = _clean_messages(messages)
    if not settings.OPENAI_API_KEY:
        logger.error('OPENAI_API_KEY não configurada')
        raise AssistantError(NOT_CONFIGURED)

    today = today or timezone.localdate()
    system_prompt = build_system_prompt(profile, _own_tasks(profile), _own_projects(profile), today)

    try:
        completion = _get_client().chat.completions.create(
            model=settings.OPENAI_MODEL,
            messages=[{'role': 'system', 'content': system_prompt}, *messages],
            temperature=settings.ASSISTANT_TEMPERATURE,
            max_tokens=settings.ASSISTANT_MAX_TOKENS,
        )
    except Exception as e:
        logger.error('Falha no chat completion para perfil %s: %s', profile.id, e)
        raise AssistantError(friendly_error_message(e)) from e

    reply = completion.choices[0].message.content

    now = timezone.now()
    last = messages[-1]
    if last['role'] == 'user':
        AssistantMessage.objects.create(profile=profile, role='user', content=last['content'], created_at=now, updated_at=now)
    if reply:
        AssistantMessage.objects.create(profile=profile, role='assistant', content=reply, created_at=now, updated_at=now)
    return reply


def _overdue_alert_text(profile, tasks, today):
    lines = []
    for t in tasks:
        days = (today - t.deadline).days
        line = f"• {t.title} - Prazo: {_br_date(t.deadline)} ({days} {'dia' if days == 1 else 'dias'} atrasada)"
        if t.project_id:
            line += f" - Projeto: {t.project.name}"
        lines.append(line)

    n = len(tasks)
    if n > 3:
        tips = ('- Priorize as tarefas mais antigas primeiro\n'
                '- Considere renegociar prazos se necessário\n'
                '- Atualize o status de cada tarefa para manter a transparência')
    else:
        tips = ('- Foque em concluir essas tarefas o mais rápido possível\n'
                '- Atualize o progresso de cada uma\n'
                '- Se necessário, solicite suporte da sua equipe')

    return (
        f"⚠️ **ALERTA DE TAREFAS ATRASADAS** ⚠️\n\n"
        f"Olá, {profile.name}!\n\n"
        f"Identifiquei que você tem {n} {'tarefa atrasada' if n == 1 else 'tarefas atrasadas'} "
        f"que {'precisa' if n == 1 else 'precisam'} da sua atenção:\n\n"
        + '\n'.join(lines)
        + f"\n\n🎯 **Recomendações:**\n{tips}\n\n"
        "Como posso ajudar você a organizar essas tarefas?"
    )


def check_overdue_alert(profile, today=None):
    """Gera no máximo um alerta de tarefas atrasadas por dia para o perfil."""
    today = today or timezone.localdate()

    already_sent = AssistantMessage.objects.filter(
        profile=profile,
        role='assistant',
        content__icontains=ALERT_MARKER,
        created_at__date=today,
    ).exists()
    if already_sent:
        return {'alert_sent': False, 'reason': 'already_sent_today'}

    overdue = list(
        _own_tasks(profile).filter(
            status__in=[TaskStatus.ABERTA, TaskStatus.EM_ANDAMENTO, TaskStatus.NAO_ENTREGUE],
            deadline__isnull=False,
            deadline__lt=today,
        ).order_by('deadline')
    )
    if not overdue:
        return {'alert_sent': False, 'reason': 'no_overdue_tasks'}

    message = _overdue_alert_text(profile, overdue, today)
    now = timezone.now()
    AssistantMessage.objects.create(profile=profile, role='assistant', content=message, created_at=now, updated_at=now)
    return {'alert_sent': True, 'overdue_count': len(overdue), 'message': message}


def history(profile):
    return AssistantMessage.objects.filter(profile=profile).order_by('created_at', 'id')
