# services/scheduling-service/src/apps/api/views/reschedule_views.py
"""
Reschedule Request API Views

Student selection, instructor confirmation and rejection of the
options offered after a weather cancellation.
"""

import logging

from rest_framework import viewsets, filters
from rest_framework.decorators import action
from rest_framework.response import Response
from django_filters.rest_framework import DjangoFilterBackend

from apps.core.models import RescheduleRequest
from apps.core.services import (
    RescheduleOrchestrator,
    SchedulingServiceError,
)
from apps.api.serializers import (
    BookingSerializer,
    RescheduleRequestSerializer,
    RescheduleStatusSerializer,
    SelectOptionSerializer,
    RejectRescheduleSerializer,
)
from .errors import to_api_exception
from .filters import RescheduleRequestFilter
from .pagination import StandardResultsSetPagination

logger = logging.getLogger(__name__)


class RescheduleRequestViewSet(viewsets.ReadOnlyModelViewSet):
    """
    ViewSet for reschedule requests.

    Workflow transitions go through the orchestrator so expiry,
    notifications and events are handled in one place.
    """

    queryset = RescheduleRequest.objects.select_related('booking', 'student', 'new_booking')
    serializer_class = RescheduleRequestSerializer
    pagination_class = StandardResultsSetPagination
    filter_backends = [DjangoFilterBackend, filters.OrderingFilter]
    filterset_class = RescheduleRequestFilter
    ordering_fields = ['created_at', 'expires_at', 'status']
    ordering = ['-created_at']

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.orchestrator = RescheduleOrchestrator()

    @action(detail=True, methods=['get'])
    def status(self, request, pk=None):
        reschedule_request = self.get_object()
        return Response(RescheduleStatusSerializer(reschedule_request).data)

    @action(detail=True, methods=['post'])
    def select(self, request, pk=None):
        """Student picks one of the suggested options."""
        serializer = SelectOptionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            reschedule_request = self.orchestrator.select_option(
                pk,
                serializer.validated_data['option_index'],
            )
        except SchedulingServiceError as e:
            raise to_api_exception(e)

        return Response(RescheduleRequestSerializer(reschedule_request).data)

    @action(detail=True, methods=['post'])
    def confirm(self, request, pk=None):
        """Instructor confirms the selected option; books the new flight."""
        try:
            reschedule_request = self.orchestrator.confirm(pk)
        except SchedulingServiceError as e:
            logger.warning(f"Confirm failed for reschedule request {pk}: {e}")
            raise to_api_exception(e)

        return Response({
            'reschedule_request': RescheduleRequestSerializer(reschedule_request).data,
            'new_booking': BookingSerializer(reschedule_request.new_booking).data,
        })

    @action(detail=True, methods=['post'])
    def reject(self, request, pk=None):
        serializer = RejectRescheduleSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            reschedule_request = self.orchestrator.reject(
                pk,
                rejected_by=serializer.validated_data['rejected_by'],
                reason=serializer.validated_data['reason'],
            )
        except SchedulingServiceError as e:
            raise to_api_exception(e)

        return Response(RescheduleRequestSerializer(reschedule_request).data)
