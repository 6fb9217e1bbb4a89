import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db.models import ProtectedError
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.response import Response

from .activity import log_activity
from .utils import error_payload

logger = logging.getLogger(__name__)


class BusinessErrorMixin:
    """
    Answer model-level rule violations with a 400 instead of a server error.
    """

    def handle_exception(self, exc):
        if isinstance(exc, DjangoValidationError):
            logger.warning("%s rejected: %s", self.__class__.__name__, '; '.join(exc.messages))
            return Response(error_payload(exc), status=status.HTTP_400_BAD_REQUEST)
        if isinstance(exc, ProtectedError):
            logger.warning("%s delete refused, object still referenced", self.__class__.__name__)
            return Response(
                {'error': "Suppression impossible : cet élément est utilisé par d'autres documents."},
                status=status.HTTP_400_BAD_REQUEST
            )
        return super().handle_exception(exc)


class StatusActionMixin:
    """Adds ``POST <pk>/status/`` driven by the model's transition table"""

    @action(detail=True, methods=['post'], url_path='status', url_name='status')
    def change_status(self, request, pk=None):
        instance = self.get_object()
        new_status = request.data.get('status')
        if not new_status:
            return Response(
                {'error': "Le champ « status » est requis."},
                status=status.HTTP_400_BAD_REQUEST
            )

        old_status = instance.status
        instance.transition(new_status, user=request.user)
        log_activity(request.user, 'status_change', instance=instance, request=request,
                     old_values={'status': old_status}, new_values={'status': new_status})
        instance.refresh_from_db()
        return Response(self.get_serializer(instance).data)
