import json
import logging

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db.models import F
from django.http import HttpResponse, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from . import assistant, attachments, lifecycle, org
from .auth import UpstreamError, delete_session, exchange_code, get_oauth_redirect_url, get_profile, get_session, token_from_request
from .models import Department, Position, Project, ProjectStatus, Role, Task, TaskAttachment, TaskStatus, TaskUpdate, UserProfile
from .visibility import build_scope, is_visible, visible_tasks

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ('id', 'external_id', 'name', 'role', 'position', 'department_id', 'manager_id', 'created_at', 'updated_at')
DEPARTMENT_FIELDS = ('id', 'code', 'name', 'manager_id', 'phone', 'created_at', 'updated_at')
POSITION_FIELDS = ('id', 'code', 'name', 'role', 'is_active', 'inactivated_at', 'created_at', 'updated_at')
PROJECT_FIELDS = ('id', 'name', 'start_date', 'end_date', 'status', 'created_at', 'updated_at')
TASK_FIELDS = (
    'id', 'title', 'description', 'status', 'deadline', 'assignee_id', 'creator_id',
    'importance', 'notes', 'completed_at', 'project_id', 'created_at', 'updated_at',
)


def _resolve_user_ctx(request):
    if not hasattr(request, 'user_ctx'):
        request.user_ctx = get_session(token_from_request(request))
    return request.user_ctx


def _auth_required(request):
    if not _resolve_user_ctx(request):
        return JsonResponse({'detail': 'Não autenticado'}, status=401)
    return None


def _profile_required(request):
    guard = _auth_required(request)
    if guard:
        return guard
    request.profile = get_profile(request.user_ctx)
    if not request.profile:
        return JsonResponse({'detail': 'Perfil não encontrado'}, status=404)
    return None


def _admin_required(request):
    guard = _profile_required(request)
    if guard:
        return guard
    if not request.profile.is_admin:
        return JsonResponse({'detail': 'Acesso negado'}, status=403)
    return None


def _json_body(request):
    try:
        raw = request.body.decode('utf-8') if request.body else '{}'
        data = json.loads(raw or '{}')
        return data if isinstance(data, dict) else {}
    except (UnicodeDecodeError, ValueError):
        return None


def _invalid(e):
    return JsonResponse({'detail': '; '.join(e.messages)}, status=400)


def _task_rows(qs):
    return list(qs.values(
        *TASK_FIELDS,
        assignee_name=F('assignee__name'),
        creator_name=F('creator__name'),
        project_name=F('project__name'),
    ))


def _visible_task_or_404(request, task_id):
    task = Task.objects.select_related('assignee', 'creator', 'project').filter(id=task_id).first()
    if not task or not is_visible(build_scope(request.profile), task):
        return None, JsonResponse({'detail': 'Tarefa não encontrada'}, status=404)
    return task, None


@require_GET
def api_health(request):
    return JsonResponse({'ok': True, 'service': 'rh-produtivo'})


# -------- Sessão --------
@require_GET
def api_oauth_redirect_url(request):
    try:
        url = get_oauth_redirect_url('google')
    except UpstreamError:
        return JsonResponse({'detail': 'Provedor de identidade indisponível'}, status=502)
    return JsonResponse({'redirectUrl': url})


@csrf_exempt
@require_POST
def api_sessions(request):
    data = _json_body(request)
    if data is None:
        return JsonResponse({'detail': 'JSON inválido'}, status=400)
    code = data.get('code')
    code = code.strip() if isinstance(code, str) else ''
    if not code:
        return JsonResponse({'detail': 'Código de autorização não informado'}, status=400)

    try:
        token = exchange_code(code)
    except UpstreamError:
        return JsonResponse({'detail': 'Falha ao autenticar'}, status=502)

    resp = JsonResponse({'success': True})
    resp.set_cookie(
        settings.RH_SESSION_COOKIE, token,
        httponly=True, secure=True, samesite='None', path='/', max_age=settings.RH_SESSION_MAX_AGE,
    )
    return resp


@require_GET
def api_logout(request):
    delete_session(token_from_request(request))
    resp = JsonResponse({'success': True})
    resp.delete_cookie(settings.RH_SESSION_COOKIE, path='/', samesite='None')
    return resp


@require_GET
def api_me(request):
    guard = _auth_required(request)
    if guard:
        return guard

    profile = get_profile(request.user_ctx)
    profile_data = None
    if profile:
        profile_data = {f: getattr(profile, f) for f in PROFILE_FIELDS}
        profile_data['department_name'] = profile.department.name if profile.department_id else None

    return JsonResponse({
        'user': dict(request.user_ctx['user']),
        'profile': profile_data,
        'is_first_user': not UserProfile.objects.exists(),
    })


# -------- Perfis --------
@csrf_exempt
@require_http_methods(['GET', 'POST'])
def api_profiles(request):
    guard = _auth_required(request)
    if guard:
        return guard

    if request.method == 'GET':
        items = list(UserProfile.objects.order_by('name').values(*PROFILE_FIELDS, department_name=F('department__name')))
        return JsonResponse(items, safe=False)

    data = _json_body(request)
    if data is None:
        return JsonResponse({'detail': 'JSON inválido'}, status=400)

    try:
        profile = org.create_profile(str(request.user_ctx['user']['id']), data)
    except ValidationError as e:
        return _invalid(e)
    return JsonResponse({'id': profile.id, 'role': profile.role, 'detail': 'Perfil criado com sucesso'}, status=201)


@csrf_exempt
@require_http_methods(['GET', 'POST'])
def api_admin_users(request):
    guard = _admin_required(request)
    if guard:
        return guard

    if request.method == 'GET':
        items = list(UserProfile.objects.order_by('-created_at').values(
            *PROFILE_FIELDS,
            department_name=F('department__name'),
            manager_name=F('manager__name'),
        ))
        return JsonResponse(items, safe=False)

    data = _json_body(request)
    if data is None:
        return JsonResponse({'detail': 'JSON inválido'}, status=400)

    try:
        profile = org.create_user(data)
    except ValidationError as e:
        return _invalid(e)
    return JsonResponse({'id': profile.id, 'external_id': profile.external_id, 'detail': 'Usuário criado com sucesso'}, status=201)


@csrf_exempt
@require_http_methods(['PUT', 'PATCH'])
def api_admin_user_detail(request, profile_id):
    guard = _admin_required(request)
    if guard:
        return guard

    obj = UserProfile.objects.filter(id=profile_id).first()
    if not obj:
        return JsonResponse({'detail': 'Usuário não encontrado'}, status=404)

    data = _json_body(request)
    if data is None:
        return JsonResponse({'detail': 'JSON inválido'}, status=400)

    try:
        changed = org.update_user(obj, data)
    except ValidationError as e:
        return _invalid(e)
    if not changed:
        return JsonResponse({'detail': 'Nada para atualizar'})
    return JsonResponse({'detail': 'Usuário atualizado com sucesso'})


# -------- Departamentos --------
@csrf_exempt
@require_http_methods(['GET', 'POST'])
def api_departments(request):
    if request.method == 'GET':
        guard = _auth_required(request)
        if guard:
            return guard
        items = list(Department.objects.order_by('name').values(*DEPARTMENT_FIELDS, manager_name=F('manager__name')))
        return JsonResponse(items, safe=False)

    guard = _admin_required(request)
    if guard:
        return guard

    data = _json_body(request)
    if data is None:
        return JsonResponse({'detail': 'JSON inválido'}, status=400)

    try:
        dept = org.create_department(data)
    except ValidationError as e:
        return _invalid(e)
    return JsonResponse({'id': dept.id, 'detail': 'Departamento criado com sucesso'}, status=201)


@csrf_exempt
@require_http_methods(['PUT', 'PATCH'])
def api_department_detail(request, department_id):
    guard = _admin_required(request)
    if guard:
        return guard

    dept = Department.objects.filter(id=department_id).first()
    if not dept:
        return JsonResponse({'detail': 'Departamento não encontrado'}, status=404)

    data = _json_body(request)
    if data is None:
        return JsonResponse({'detail': 'JSON inválido'}, status=400)

    try:
        changed = org.update_department(dept, data)
    except ValidationError as e:
        return _invalid(e)
    if not changed:
        return JsonResponse({'detail': 'Nada para atualizar'})
    return JsonResponse({'detail': 'Departamento atualizado com sucesso'})


# -------- Cargos --------
@csrf_exempt
@require_http_methods(['GET', 'POST'])
def api_positions(request):
    if request.method == 'GET':
        guard = _auth_required(request)
        if guard:
            return guard
        items = list(Position.objects.order_by('role', 'name').values(*POSITION_FIELDS))
        return JsonResponse(items, safe=False)

    guard = _admin_required(request)
    if guard:
        return guard

    data = _json_body(request)
    if data is None:
        return JsonResponse({'detail': 'JSON inválido'}, status=400)

    try:
        position = org.create_position(data)
    except ValidationError as e:
        return _invalid(e)
    return JsonResponse({'id': position.id, 'code': position.code, 'detail': 'Cargo criado com sucesso'}, status=201)


@require_GET
def api_positions_by_role(request, role):
    guard = _auth_required(request)
    if guard:
        return guard
    if Role.parse(role) is None:
        return JsonResponse({'detail': 'Nível inválido'}, status=400)
    items = list(Position.objects.filter(role=role, is_active=True).order_by('name').values(*POSITION_FIELDS))
    return JsonResponse(items, safe=False)


@csrf_exempt
@require_http_methods(['PUT', 'PATCH'])
def api_position_detail(request, position_id):
    guard = _admin_required(request)
    if guard:
        return guard

    position = Position.objects.filter(id=position_id).first()
    if not position:
        return JsonResponse({'detail': 'Cargo não encontrado'}, status=404)

    data = _json_body(request)
    if data is None:
        return JsonResponse({'detail': 'JSON inválido'}, status=400)

    try:
        changed = org.update_position(position, data)
    except ValidationError as e:
        return _invalid(e)
    if not changed:
        return JsonResponse({'detail': 'Nada para atualizar'})
    return JsonResponse({'detail': 'Cargo atualizado com sucesso'})


# -------- Projetos --------
def _project_rows(projects, tasks_for):
    rows = []
    for p in projects:
        row = {f: getattr(p, f) for f in PROJECT_FIELDS}
        row.update(org.status_counts(tasks_for(p)))
        rows.append(row)
    return rows


@csrf_exempt
@require_http_methods(['GET', 'POST'])
def api_projects(request):
    if request.method == 'GET':
        guard = _auth_required(request)
        if guard:
            return guard
        projects = Project.objects.order_by('-created_at')
        return JsonResponse(_project_rows(projects, lambda p: Task.objects.filter(project=p)), safe=False)

    guard = _admin_required(request)
    if guard:
        return guard

    data = _json_body(request)
    if data is None:
        return JsonResponse({'detail': 'JSON inválido'}, status=400)

    try:
        project = org.create_project(data)
    except ValidationError as e:
        return _invalid(e)
    return JsonResponse({'id': project.id, 'detail': 'Projeto criado com sucesso'}, status=201)


@require_GET
def api_projects_active(request):
    guard = _auth_required(request)
    if guard:
        return guard
    items = list(Project.objects.filter(status=ProjectStatus.EM_ANDAMENTO).order_by('-created_at').values(*PROJECT_FIELDS))
    return JsonResponse(items, safe=False)


@require_GET
def api_projects_user(request):
    guard = _profile_required(request)
    if guard:
        return guard

    profile = request.profile
    projects = Project.objects.filter(tasks__assignee=profile).distinct().order_by('-created_at')
    rows = _project_rows(projects, lambda p: Task.objects.filter(project=p, assignee=profile))
    return JsonResponse(rows, safe=False)


@csrf_exempt
@require_http_methods(['PUT', 'PATCH'])
def api_project_detail(request, project_id):
    guard = _admin_required(request)
    if guard:
        return guard

    project = Project.objects.filter(id=project_id).first()
    if not project:
        return JsonResponse({'detail': 'Projeto não encontrado'}, status=404)

    data = _json_body(request)
    if data is None:
        return JsonResponse({'detail': 'JSON inválido'}, status=400)

    try:
        changed = org.update_project(project, data)
    except ValidationError as e:
        return _invalid(e)
    if not changed:
        return JsonResponse({'detail': 'Nada para atualizar'})
    return JsonResponse({'detail': 'Projeto atualizado com sucesso'})


@require_GET
def api_project_tasks(request, project_id):
    guard = _profile_required(request)
    if guard:
        return guard

    if not Project.objects.filter(id=project_id).exists():
        return JsonResponse({'detail': 'Projeto não encontrado'}, status=404)
    return JsonResponse(_task_rows(visible_tasks(request.profile).filter(project_id=project_id)), safe=False)


# -------- Tarefas --------
@csrf_exempt
@require_http_methods(['GET', 'POST'])
def api_tasks(request):
    guard = _profile_required(request)
    if guard:
        return guard

    if request.method == 'GET':
        tasks = visible_tasks(request.profile)
        status = (request.GET.get('status') or '').strip()
        if status:
            if status not in TaskStatus.values:
                return JsonResponse({'detail': 'Status inválido'}, status=400)
            tasks = tasks.filter(status=status)
        project_id = (request.GET.get('project') or '').strip()
        if project_id:
            tasks = tasks.filter(project_id=project_id)
        return JsonResponse(_task_rows(tasks), safe=False)

    data = _json_body(request)
    if data is None:
        return JsonResponse({'detail': 'JSON inválido'}, status=400)

    try:
        task = lifecycle.create_task(request.profile, data)
    except ValidationError as e:
        return _invalid(e)
    return JsonResponse({'id': task.id, 'detail': 'Tarefa criada com sucesso'}, status=201)


@csrf_exempt
@require_http_methods(['GET', 'PUT', 'PATCH'])
def api_task_detail(request, task_id):
    guard = _profile_required(request)
    if guard:
        return guard

    task, not_found = _visible_task_or_404(request, task_id)
    if not_found:
        return not_found

    if request.method == 'GET':
        return JsonResponse(_task_rows(Task.objects.filter(id=task.id))[0])

    data = _json_body(request)
    if data is None:
        return JsonResponse({'detail': 'JSON inválido'}, status=400)

    try:
        update = lifecycle.update_task(task, request.profile, data)
    except ValidationError as e:
        return _invalid(e)
    return JsonResponse({
        'success': True,
        'status': task.status,
        'update_id': update.id if update else None,
    })


@require_GET
def api_task_updates(request, task_id):
    guard = _profile_required(request)
    if guard:
        return guard

    task, not_found = _visible_task_or_404(request, task_id)
    if not_found:
        return not_found

    items = []
    for u in lifecycle.task_history(task):
        items.append({
            'id': u.id,
            'task_id': u.task_id,
            'user_id': u.author_id,
            'user_name': u.author.name,
            'comment': u.comment,
            'status_before': u.status_before,
            'status_after': u.status_after,
            'created_at': u.created_at,
            'attachments': [
                {
                    'id': a.id,
                    'task_update_id': a.update_id,
                    'filename': a.filename,
                    'file_size': a.file_size,
                    'content_type': a.content_type,
                    'created_at': a.created_at,
                }
                for a in u.attachments.all()
            ],
        })
    return JsonResponse(items, safe=False)


@require_GET
def api_task_changes(request, task_id):
    guard = _profile_required(request)
    if guard:
        return guard

    task, not_found = _visible_task_or_404(request, task_id)
    if not_found:
        return not_found

    items = list(lifecycle.task_changes(task).values(
        'id', 'field_name', 'old_value', 'new_value', 'created_at',
        user_id=F('author_id'), user_name=F('author__name'),
    ))
    return JsonResponse(items, safe=False)


# -------- Anexos --------
@csrf_exempt
@require_POST
def api_task_attachments(request, task_id):
    guard = _profile_required(request)
    if guard:
        return guard

    task, not_found = _visible_task_or_404(request, task_id)
    if not_found:
        return not_found

    files = request.FILES.getlist('file')
    if not files:
        return JsonResponse({'detail': 'Nenhum arquivo enviado'}, status=400)
    update_id = (request.POST.get('update_id') or '').strip()
    if not update_id:
        return JsonResponse({'detail': 'update_id é obrigatório'}, status=400)

    update = TaskUpdate.objects.filter(id=update_id, task=task).first() if update_id.isdigit() else None
    if not update:
        return JsonResponse({'detail': 'Atualização não encontrada'}, status=404)

    results = attachments.store_attachments(update, files)
    if any(r['ok'] for r in results):
        status = 201
    elif all(r['rejected'] for r in results):
        status = 400
    else:
        status = 500
    return JsonResponse({'results': results}, status=status)


@require_GET
def api_attachment_download(request, attachment_id):
    guard = _profile_required(request)
    if guard:
        return guard

    att = TaskAttachment.objects.select_related('update').filter(id=attachment_id).first()
    if not att:
        return JsonResponse({'detail': 'Anexo não encontrado'}, status=404)
    task, not_found = _visible_task_or_404(request, att.update.task_id)
    if not_found:
        return JsonResponse({'detail': 'Anexo não encontrado'}, status=404)

    data = attachments.get_object(att.storage_key)
    if data is None:
        return JsonResponse({'detail': 'Arquivo não encontrado no storage'}, status=404)

    resp = HttpResponse(data, content_type=att.content_type or 'application/octet-stream')
    resp['Content-Disposition'] = f'attachment; filename="{att.filename}"'
    return resp


# -------- Indicadores --------
@require_GET
def api_team_analytics(request):
    guard = _profile_required(request)
    if guard:
        return guard

    team, stats = org.team_rollup(request.profile)
    team_rows = [{f: getattr(m, f) for f in PROFILE_FIELDS} for m in team]
    return JsonResponse({'team': team_rows, 'stats': stats})


# -------- Assistente --------
@require_GET
def api_assistant_messages(request):
    guard = _profile_required(request)
    if guard:
        return guard
    items = list(assistant.history(request.profile).values('role', 'content', 'created_at'))
    return JsonResponse(items, safe=False)


@require_GET
def api_assistant_check_overdue(request):
    guard = _profile_required(request)
    if guard:
        return guard
    return JsonResponse(assistant.check_overdue_alert(request.profile))


@csrf_exempt
@require_POST
def api_assistant_chat(request):
    guard = _profile_required(request)
    if guard:
        return guard

    data = _json_body(request)
    if data is None:
        return JsonResponse({'detail': 'JSON inválido'}, status=400)

    try:
        reply = assistant.chat(request.profile, data.get('messages'))
    except ValidationError as e:
        return _invalid(e)
    except assistant.AssistantError as e:
        return JsonResponse({'detail': 'Falha ao obter resposta do assistente', 'message': e.user_message}, status=e.status)
    return JsonResponse({'message': reply})
