# seating/serializers.py

from django.conf import settings
from rest_framework import serializers

from .models import Customer, Guest, Reservation, Table


# ==============================================================================
# Table Serializer
# ==============================================================================

class TableSerializer(serializers.ModelSerializer):
    class Meta:
        model = Table
        fields = ['id', 'table_number', 'capacity', 'is_joinable', 'is_available']
        read_only_fields = fields


# ==============================================================================
# Reservation Serializer
# ==============================================================================

class ReservationSerializer(serializers.ModelSerializer):
    """Read serializer for reservations, with their assigned tables nested."""

    tables = TableSerializer(many=True, read_only=True)
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    contact_name = serializers.SerializerMethodField(read_only=True)

    class Meta:
        model = Reservation
        fields = [
            'id',
            'restaurant',
            'customer',
            'guest',
            'contact_name',
            'reservation_date',
            'reservation_time',
            'duration',
            'party_size',
            'status',
            'status_display',
            'notes',
            'is_walk_in',
            'tables',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields

    def get_contact_name(self, obj):
        contact = obj.contact
        return str(contact) if contact else ""


# ==============================================================================
# Allocation Request Serializers
# ==============================================================================

class AllocationRequestSerializer(serializers.Serializer):
    """Slot and party size to find tables for."""

    restaurant = serializers.IntegerField(min_value=1)
    reservation_date = serializers.DateField()
    reservation_time = serializers.TimeField()
    duration = serializers.IntegerField(min_value=1, required=False)
    party_size = serializers.IntegerField(min_value=1)

    def validate(self, attrs):
        attrs.setdefault('duration', settings.SEATING['DEFAULT_DURATION_MINUTES'])
        return attrs


class ReservationCreateSerializer(AllocationRequestSerializer):
    customer = serializers.PrimaryKeyRelatedField(
        queryset=Customer.objects.all(), required=False, allow_null=True
    )
    guest = serializers.PrimaryKeyRelatedField(
        queryset=Guest.objects.all(), required=False, allow_null=True
    )
    notes = serializers.CharField(required=False, allow_blank=True, default='')
    is_walk_in = serializers.BooleanField(required=False, default=False)

    def validate(self, attrs):
        attrs = super().validate(attrs)
        if (attrs.get('customer') is None) == (attrs.get('guest') is None):
            raise serializers.ValidationError('Provide exactly one of customer or guest.')
        return attrs


# ==============================================================================
# Manager Action Serializers
# ==============================================================================

class OverrideSerializer(serializers.Serializer):
    table_ids = serializers.ListField(
        child=serializers.IntegerField(min_value=1), allow_empty=False
    )


class StatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Reservation.Status.choices)
