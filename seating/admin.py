# seating/admin.py
import logging

from django import forms
from django.contrib import admin, messages
from django.core.exceptions import ValidationError
from unfold.admin import ModelAdmin, TabularInline
from unfold.contrib.filters.admin import RangeDateFilter

from .models import (
    ActionType, Customer, Guest,
    Reservation, ReservationLog, ReservationTable,
    Restaurant, Table, TableJoin,
)
from .services import TableAllocationService

logger = logging.getLogger(__name__)


# =============================================================================
# === GLOBAL UTILITIES ========================================================
# =============================================================================

@admin.action(description="Mark selected tables as unavailable")
def mark_unavailable(modeladmin, request, queryset):
    queryset.update(is_available=False)

@admin.action(description="Mark selected tables as available")
def mark_available(modeladmin, request, queryset):
    queryset.update(is_available=True)


# =============================================================================
# === RESTAURANT & TABLE ADMIN ===============================================
# =============================================================================

class TableInline(TabularInline):
    model = Table
    extra = 1
    fields = ("table_number", "capacity", "is_joinable", "is_available")


@admin.register(Restaurant)
class RestaurantAdmin(ModelAdmin):
    list_display = ("name", "timezone", "table_count", "created_at")
    search_fields = ("name",)
    readonly_fields = ("created_at",)
    inlines = [TableInline]
    ordering = ("name",)

    @admin.display(description="Tables")
    def table_count(self, obj):
        return obj.tables.count()


@admin.register(Table)
class TableAdmin(ModelAdmin):
    list_display = ("table_number", "restaurant", "capacity", "is_joinable", "is_available")
    list_filter = ("restaurant", "is_joinable", "is_available")
    list_editable = ("is_available",)
    search_fields = ("table_number",)
    actions = [mark_available, mark_unavailable]


@admin.register(TableJoin)
class TableJoinAdmin(ModelAdmin):
    list_display = ("__str__", "primary_table", "joined_table", "total_capacity", "created_by", "created_at")
    list_filter = ("primary_table__restaurant",)
    readonly_fields = ("total_capacity", "created_by", "created_at")

    def save_model(self, request, obj, form, change):
        if not change:
            obj.created_by = request.user
        super().save_model(request, obj, form, change)


# =============================================================================
# === CUSTOMERS & GUESTS ======================================================
# =============================================================================

@admin.register(Customer)
class CustomerAdmin(ModelAdmin):
    list_display = ("full_name", "email", "phone_number", "created_at")
    search_fields = ("first_name", "last_name", "email", "phone_number")


@admin.register(Guest)
class GuestAdmin(ModelAdmin):
    list_display = ("full_name", "email", "phone_number", "is_active", "created_at")
    list_filter = ("is_active",)
    search_fields = ("first_name", "last_name", "email", "phone_number")


# =============================================================================
# === RESERVATION ADMIN =======================================================
# =============================================================================

class ReservationTableInline(TabularInline):
    """Assignments are shown only; changes go through `reassign_tables`."""
    model = ReservationTable
    extra = 0
    can_delete = False
    fields = ("table", "created_by", "created_at")
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class ReservationAdminForm(forms.ModelForm):
    reassign_tables = forms.ModelMultipleChoiceField(
        queryset=Table.objects.available(),
        required=False,
        help_text="Replace the assigned tables. Capacity and availability are checked and the change is logged.",
    )

    class Meta:
        model = Reservation
        exclude = ("tables",)


class ReservationLogInline(TabularInline):
    model = ReservationLog
    extra = 0
    can_delete = False
    readonly_fields = ("action_type", "details", "actor", "created_at")

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Reservation)
class ReservationAdmin(ModelAdmin):
    form = ReservationAdminForm
    list_display = (
        "id", "restaurant", "contact", "reservation_date", "reservation_time",
        "party_size", "status", "assigned_tables", "is_walk_in",
    )
    list_filter = (
        "status", "restaurant", "is_walk_in",
        ("reservation_date", RangeDateFilter),
    )
    list_filter_submit = True
    search_fields = ("customer__email", "guest__email", "guest__last_name", "customer__last_name")
    readonly_fields = ("created_by", "updated_by", "created_at", "updated_at")
    inlines = [ReservationTableInline, ReservationLogInline]
    ordering = ("-reservation_date", "reservation_time")
    actions = ["auto_allocate_pending", "cancel_reservations"]

    def save_model(self, request, obj, form, change):
        super().save_model(request, obj, form, change)
        tables = form.cleaned_data.get("reassign_tables")
        if not change or not tables:
            return
        ok = TableAllocationService().override_table_assignment(
            obj.pk, [t.pk for t in tables], actor=request.user
        )
        if not ok:
            self.message_user(
                request,
                "Tables were not reassigned: they must be available, in this restaurant and seat the party.",
                messages.ERROR,
            )

    @admin.display(description="Tables")
    def assigned_tables(self, obj):
        return ", ".join(str(t.table_number) for t in obj.tables.all()) or "-"

    @admin.action(description="Auto-allocate all pending reservations")
    def auto_allocate_pending(self, request, queryset):
        summary = TableAllocationService().auto_allocate_pending_reservations(actor=request.user)
        level = messages.WARNING if summary.failed else messages.SUCCESS
        self.message_user(request, summary.message, level)

    @admin.action(description="Cancel selected reservations")
    def cancel_reservations(self, request, queryset):
        service = TableAllocationService()
        for reservation in queryset:
            try:
                service.update_reservation_status(
                    reservation.pk, Reservation.Status.CANCELLED, actor=request.user
                )
            except ValidationError as exc:
                self.message_user(request, f"#{reservation.pk}: {exc}", messages.ERROR)
        self.message_user(request, "Selected reservations cancelled.")


@admin.register(ReservationLog)
class ReservationLogAdmin(ModelAdmin):
    list_display = ("created_at", "reservation", "action_type", "actor", "details")
    list_filter = ("action_type", "created_at")
    search_fields = ("details",)
    readonly_fields = ("reservation", "action_type", "details", "actor", "created_at")

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False


@admin.register(ActionType)
class ActionTypeAdmin(ModelAdmin):
    list_display = ("name", "description")
