import logging

from .models import ActivityLog

logger = logging.getLogger(__name__)


def client_ip(request):
    forwarded = request.META.get('HTTP_X_FORWARDED_FOR')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR')


def log_activity(user, action, instance=None, entity_type=None, entity_id=None,
                 old_values=None, new_values=None, request=None,
                 success=True, error_message=''):
    """
    Record a business operation in the activity log.

    ``instance`` may be given instead of ``entity_type``/``entity_id``; the
    model name and primary key are then used.
    """
    if instance is not None:
        entity_type = entity_type or instance._meta.model_name
        entity_id = entity_id or instance.pk

    entry = ActivityLog.objects.create(
        user=user if user is not None and user.is_authenticated else None,
        action=action,
        entity_type=entity_type or '',
        entity_id='' if entity_id is None else str(entity_id),
        old_values=old_values,
        new_values=new_values,
        ip_address=client_ip(request) if request is not None else None,
        user_agent=request.META.get('HTTP_USER_AGENT', '')[:255] if request is not None else '',
        success=success,
        error_message=error_message,
    )
    logger.info("%s %s#%s by %s", action, entry.entity_type, entry.entity_id,
                entry.user.username if entry.user else 'system')
    return entry
