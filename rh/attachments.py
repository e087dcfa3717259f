import logging
import time

from django.conf import settings
from django.core.files.base import ContentFile
from django.core.files.storage import default_storage
from django.utils import timezone

from .models import TaskAttachment

logger = logging.getLogger(__name__)

TOO_LARGE_MESSAGE = 'Só é possível subir documentos até 10MB de tamanho'


class AttachmentRejected(Exception):
    """Arquivo recusado antes de qualquer escrita no storage."""


def attachment_key(task_id, update_id, filename, now_ms=None):
    now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"task-attachments/{task_id}/{update_id}/{now_ms}-{filename}"


def put_object(key, data, content_type):
    content = ContentFile(data, name=key.rsplit('/', 1)[-1])
    # backends S3 usam este atributo como Content-Type do objeto
    content.content_type = content_type
    return default_storage.save(key, content)


def get_object(key):
    if not default_storage.exists(key):
        return None
    with default_storage.open(key, 'rb') as fh:
        return fh.read()


def validate_upload(f):
    if not f.name:
        raise AttachmentRejected('Arquivo sem nome')
    if f.size > settings.ATTACHMENT_MAX_BYTES:
        raise AttachmentRejected(TOO_LARGE_MESSAGE)


def store_attachment(update, f):
    validate_upload(f)
    content_type = f.content_type or 'application/octet-stream'
    key = attachment_key(update.task_id, update.id, f.name)
    stored_key = put_object(key, f.read(), content_type)
    now = timezone.now()
    return TaskAttachment.objects.create(
        update=update,
        filename=f.name,
        file_size=f.size,
        content_type=content_type,
        storage_key=stored_key,
        created_at=now,
        updated_at=now,
    )


def store_attachments(update, files):
    """Grava cada arquivo de forma independente.

    Devolve um resultado por arquivo; falha em um arquivo não desfaz os
    demais nem a atualização da tarefa.
    """
    results = []
    for f in files:
        try:
            att = store_attachment(update, f)
        except AttachmentRejected as e:
            results.append({'filename': f.name, 'ok': False, 'rejected': True, 'detail': str(e)})
            continue
        except Exception:
            logger.exception('Falha ao gravar anexo %r da atualização %s', f.name, update.id)
            results.append({'filename': f.name, 'ok': False, 'rejected': False, 'detail': 'Falha ao enviar anexo'})
            continue
        results.append({
            'filename': att.filename,
            'ok': True,
            'id': att.id,
            'file_size': att.file_size,
            'content_type': att.content_type,
        })
    return results
