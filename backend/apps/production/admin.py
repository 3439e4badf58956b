"""
Production admin configuration.
Records are changed only through the services, so admin is read-only.
"""
from django.contrib import admin
from apps.production.models import (
    Consultation,
    EscrowAccount,
    PriceAdjustment,
    ProductionOrder,
    ProductionProof,
    TimelineEvent,
)


class ReadOnlyAdminMixin:
    def has_add_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class ConsultationInline(ReadOnlyAdminMixin, admin.TabularInline):
    model = Consultation
    extra = 0
    fk_name = 'order'
    readonly_fields = ['status', 'requested_by', 'timeout_at', 'started_at', 'completed_at', 'waived_at', 'expired_at']
    fields = readonly_fields


class PriceAdjustmentInline(ReadOnlyAdminMixin, admin.TabularInline):
    model = PriceAdjustment
    extra = 0
    fk_name = 'order'
    readonly_fields = [
        'original_price', 'adjusted_price', 'adjustment_type', 'status',
        'top_up_amount', 'response_deadline', 'responded_at'
    ]
    fields = readonly_fields


class ProductionProofInline(ReadOnlyAdminMixin, admin.TabularInline):
    model = ProductionProof
    extra = 0
    fk_name = 'order'
    readonly_fields = ['version_number', 'status', 'proof_images', 'provider_notes', 'customer_feedback', 'reviewed_at', 'created_at']
    fields = readonly_fields


class TimelineEventInline(ReadOnlyAdminMixin, admin.TabularInline):
    model = TimelineEvent
    extra = 0
    fk_name = 'order'
    readonly_fields = ['event_type', 'description', 'actor', 'metadata', 'created_at']
    fields = readonly_fields


@admin.register(ProductionOrder)
class ProductionOrderAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ['id', 'customer', 'provider', 'status', 'final_price', 'currency', 'created_at']
    list_filter = ['status', 'consultation_required', 'price_adjustment_used', 'created_at']
    search_fields = ['id', 'title', 'customer__username', 'provider__username', 'tracking_number']
    readonly_fields = [
        'id', 'customer', 'provider', 'title', 'currency', 'status',
        'escrow_amount', 'final_price', 'consultation_required', 'consultation_waived',
        'consultation_waived_at', 'consultation_completed_at', 'price_adjustment_used',
        'tracking_number', 'shipping_carrier', 'cancellation_reason',
        'created_at', 'updated_at', 'order_received_at', 'proofs_submitted_at', 'shipped_at',
        'escrow_released_at', 'cancelled_at'
    ]
    inlines = [ConsultationInline, PriceAdjustmentInline, ProductionProofInline, TimelineEventInline]


@admin.register(EscrowAccount)
class EscrowAccountAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ['id', 'order', 'status', 'amount_held', 'amount_topped_up', 'amount_released', 'amount_refunded']
    list_filter = ['status']
    search_fields = ['order__id']
    readonly_fields = [
        'id', 'order', 'hold_token', 'amount_held', 'amount_topped_up',
        'amount_released', 'amount_refunded', 'platform_fee', 'status',
        'held_at', 'released_at', 'refunded_at'
    ]
