import logging

from django.shortcuts import get_object_or_404
from rest_framework import permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from .exceptions import AllocationError, ReservationPersistenceError
from .models import Reservation
from .serializers import (
    AllocationRequestSerializer,
    OverrideSerializer,
    ReservationCreateSerializer,
    ReservationSerializer,
    StatusSerializer,
)
from .services import TableAllocationService

logger = logging.getLogger(__name__)


class SeatingAPIView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get_service(self):
        return TableAllocationService()


# ==============================================================================
# ALLOCATION & BOOKING
# ==============================================================================

class AllocationView(SeatingAPIView):
    """Preview which tables a party would get. Nothing is written."""

    def post(self, request):
        serializer = AllocationRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = self.get_service().find_best_allocation(
            data['restaurant'],
            data['reservation_date'],
            data['reservation_time'],
            data['duration'],
            data['party_size'],
        )
        return Response(result.as_dict())


class ReservationCreateView(SeatingAPIView):
    def post(self, request):
        serializer = ReservationCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            allocation, reservation = self.get_service().book(
                restaurant_id=data['restaurant'],
                reservation_date=data['reservation_date'],
                reservation_time=data['reservation_time'],
                duration=data['duration'],
                party_size=data['party_size'],
                customer_id=getattr(data.get('customer'), 'pk', None),
                guest_id=getattr(data.get('guest'), 'pk', None),
                notes=data.get('notes', ''),
                is_walk_in=data.get('is_walk_in', False),
                actor=request.user,
            )
        except AllocationError as exc:
            return Response({'error': str(exc)}, status=status.HTTP_409_CONFLICT)
        except ReservationPersistenceError as exc:
            return Response({'error': str(exc)}, status=status.HTTP_503_SERVICE_UNAVAILABLE)

        if reservation is None:
            return Response(
                {'error': allocation.error_message, 'allocation': allocation.as_dict()},
                status=status.HTTP_409_CONFLICT,
            )

        return Response(
            {
                'reservation': ReservationSerializer(reservation).data,
                'allocation': allocation.as_dict(),
            },
            status=status.HTTP_201_CREATED,
        )


# ==============================================================================
# MANAGER ACTIONS
# ==============================================================================

class AutoAllocateView(SeatingAPIView):
    permission_classes = [permissions.IsAdminUser]

    def post(self, request):
        summary = self.get_service().auto_allocate_pending_reservations(actor=request.user)
        return Response(summary.as_dict())


class OverrideView(SeatingAPIView):
    permission_classes = [permissions.IsAdminUser]

    def post(self, request, pk):
        serializer = OverrideSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        success = self.get_service().override_table_assignment(
            pk, serializer.validated_data['table_ids'], actor=request.user
        )
        code = status.HTTP_200_OK if success else status.HTTP_400_BAD_REQUEST
        return Response({'success': success}, status=code)


class ReservationStatusView(SeatingAPIView):
    def post(self, request, pk):
        get_object_or_404(Reservation, pk=pk)
        serializer = StatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        reservation = self.get_service().update_reservation_status(
            pk, serializer.validated_data['status'], actor=request.user
        )
        return Response(ReservationSerializer(reservation).data)
