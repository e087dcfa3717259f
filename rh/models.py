from django.db import models
from django.utils import timezone


class Role(models.TextChoices):
    """Níveis organizacionais, do mais alto para o mais baixo."""

    C_LEVEL = 'c-level', 'C-Level'
    GERENCIA = 'gerencia', 'Gerência'
    COORDENACAO = 'coordenacao', 'Coordenação'
    SUPERVISAO = 'supervisao', 'Supervisão'
    ANALISTA = 'analista', 'Analista'
    ASSISTENTE = 'assistente', 'Assistente'
    AUXILIAR = 'auxiliar', 'Auxiliar'
    ESTAGIARIO = 'estagiario', 'Estagiário'

    @classmethod
    def parse(cls, value):
        try:
            return cls(value)
        except ValueError:
            return None


ADMIN_ROLES = frozenset({Role.C_LEVEL, Role.GERENCIA})
TEAM_LEAD_ROLES = frozenset({Role.COORDENACAO, Role.SUPERVISAO})
OPERATIONAL_ROLES = frozenset({Role.ANALISTA, Role.ASSISTENTE, Role.AUXILIAR})


class TaskStatus(models.TextChoices):
    ABERTA = 'aberta', 'Aberta'
    EM_ANDAMENTO = 'em_andamento', 'Em andamento'
    CONCLUIDA = 'concluida', 'Concluída'
    NAO_ENTREGUE = 'nao_entregue', 'Não entregue'


class Importance(models.TextChoices):
    BAIXA = 'baixa', 'Baixa'
    MEDIA = 'media', 'Média'
    ALTA = 'alta', 'Alta'


class ProjectStatus(models.TextChoices):
    EM_ANDAMENTO = 'em_andamento', 'Em andamento'
    ENCERRADO = 'encerrado', 'Encerrado'


class Department(models.Model):
    code = models.CharField(max_length=40, unique=True)
    name = models.CharField(max_length=140)
    manager = models.ForeignKey('UserProfile', on_delete=models.SET_NULL, null=True, blank=True, related_name='managed_departments')
    phone = models.CharField(max_length=40, blank=True, null=True)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'departments'
        ordering = ['name']

    def __str__(self):
        return f"{self.code} - {self.name}"


class UserProfile(models.Model):
    external_id = models.CharField(max_length=120, unique=True, help_text='ID do usuário no provedor de identidade')
    name = models.CharField(max_length=180)
    role = models.CharField(max_length=20, choices=Role.choices)
    position = models.CharField(max_length=140, blank=True, null=True)
    department = models.ForeignKey(Department, on_delete=models.SET_NULL, null=True, blank=True, related_name='members')
    manager = models.ForeignKey('self', on_delete=models.SET_NULL, null=True, blank=True, related_name='direct_reports')
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'user_profiles'
        ordering = ['name']

    def __str__(self):
        return self.name

    @property
    def is_admin(self):
        return self.role in ADMIN_ROLES


class Position(models.Model):
    code = models.CharField(max_length=20, unique=True)
    name = models.CharField(max_length=140)
    role = models.CharField(max_length=20, choices=Role.choices)
    is_active = models.BooleanField(default=True)
    inactivated_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'positions'
        ordering = ['role', 'name']
        unique_together = ('name', 'role')

    def __str__(self):
        return f"{self.code} - {self.name}"


class Project(models.Model):
    name = models.CharField(max_length=180)
    start_date = models.DateField()
    end_date = models.DateField()
    status = models.CharField(max_length=20, choices=ProjectStatus.choices, default=ProjectStatus.EM_ANDAMENTO)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'projects'
        ordering = ['-created_at']

    def __str__(self):
        return self.name


class Task(models.Model):
    title = models.CharField(max_length=240)
    description = models.TextField(blank=True, null=True)
    status = models.CharField(max_length=20, choices=TaskStatus.choices, default=TaskStatus.ABERTA)
    deadline = models.DateField(null=True, blank=True)
    assignee = models.ForeignKey(UserProfile, on_delete=models.SET_NULL, null=True, blank=True, related_name='assigned_tasks')
    creator = models.ForeignKey(UserProfile, on_delete=models.PROTECT, related_name='created_tasks')
    importance = models.CharField(max_length=10, choices=Importance.choices, default=Importance.MEDIA)
    notes = models.TextField(blank=True, null=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    project = models.ForeignKey(Project, on_delete=models.SET_NULL, null=True, blank=True, related_name='tasks')
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'tasks'
        ordering = ['deadline', '-created_at']
        indexes = [
            models.Index(fields=['status', 'deadline'], name='tasks_status_deadline_idx'),
        ]

    def __str__(self):
        return self.title


class TaskUpdate(models.Model):
    task = models.ForeignKey(Task, on_delete=models.CASCADE, related_name='updates')
    author = models.ForeignKey(UserProfile, on_delete=models.PROTECT, related_name='task_updates')
    comment = models.TextField()
    status_before = models.CharField(max_length=20, blank=True, null=True)
    status_after = models.CharField(max_length=20, blank=True, null=True)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'task_updates'
        ordering = ['-created_at', '-id']


class TaskAttachment(models.Model):
    update = models.ForeignKey(TaskUpdate, on_delete=models.CASCADE, related_name='attachments')
    filename = models.CharField(max_length=255)
    file_size = models.PositiveBigIntegerField()
    content_type = models.CharField(max_length=140, blank=True, default='')
    storage_key = models.CharField(max_length=500)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'task_attachments'
        ordering = ['created_at', 'id']


class TaskChangeLog(models.Model):
    task = models.ForeignKey(Task, on_delete=models.CASCADE, related_name='change_log')
    author = models.ForeignKey(UserProfile, on_delete=models.PROTECT, related_name='task_changes')
    field_name = models.CharField(max_length=40)
    old_value = models.TextField(blank=True, null=True)
    new_value = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'task_change_log'
        ordering = ['-created_at', '-id']


class AssistantMessage(models.Model):
    ROLE_CHOICES = [
        ('user', 'Usuário'),
        ('assistant', 'Assistente'),
    ]

    profile = models.ForeignKey(UserProfile, on_delete=models.CASCADE, related_name='assistant_messages')
    role = models.CharField(max_length=10, choices=ROLE_CHOICES)
    content = models.TextField()
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'assistant_messages'
        ordering = ['created_at', 'id']
