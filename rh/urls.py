from django.urls import path

from . import api

urlpatterns = [
    path('api/health', api.api_health, name='api_health'),

    # Sessão
    path('api/oauth/google/redirect_url', api.api_oauth_redirect_url, name='api_oauth_redirect_url'),
    path('api/sessions', api.api_sessions, name='api_sessions'),
    path('api/logout', api.api_logout, name='api_logout'),
    path('api/users/me', api.api_me, name='api_me'),

    # Cadastros
    path('api/profiles', api.api_profiles, name='api_profiles'),
    path('api/admin/users', api.api_admin_users, name='api_admin_users'),
    path('api/admin/users/<int:profile_id>', api.api_admin_user_detail, name='api_admin_user_detail'),
    path('api/departments', api.api_departments, name='api_departments'),
    path('api/departments/<int:department_id>', api.api_department_detail, name='api_department_detail'),
    path('api/positions', api.api_positions, name='api_positions'),
    path('api/positions/by-role/<str:role>', api.api_positions_by_role, name='api_positions_by_role'),
    path('api/positions/<int:position_id>', api.api_position_detail, name='api_position_detail'),

    # Projetos
    path('api/projects', api.api_projects, name='api_projects'),
    path('api/projects/active', api.api_projects_active, name='api_projects_active'),
    path('api/projects/user', api.api_projects_user, name='api_projects_user'),
    path('api/projects/<int:project_id>', api.api_project_detail, name='api_project_detail'),
    path('api/projects/<int:project_id>/tasks', api.api_project_tasks, name='api_project_tasks'),

    # Tarefas
    path('api/tasks', api.api_tasks, name='api_tasks'),
    path('api/tasks/<int:task_id>', api.api_task_detail, name='api_task_detail'),
    path('api/tasks/<int:task_id>/updates', api.api_task_updates, name='api_task_updates'),
    path('api/tasks/<int:task_id>/changes', api.api_task_changes, name='api_task_changes'),
    path('api/tasks/<int:task_id>/attachments', api.api_task_attachments, name='api_task_attachments'),
    path('api/attachments/<int:attachment_id>', api.api_attachment_download, name='api_attachment_download'),

    # Indicadores e assistente
    path('api/analytics/team', api.api_team_analytics, name='api_team_analytics'),
    path('api/assistant/messages', api.api_assistant_messages, name='api_assistant_messages'),
    path('api/assistant/check-overdue-tasks', api.api_assistant_check_overdue, name='api_assistant_check_overdue'),
    path('api/assistant/chat', api.api_assistant_chat, name='api_assistant_chat'),
]
