"""
Production serializers.
Read-only projections of orders and their sub-records, plus action inputs.
"""
from django.conf import settings
from django.contrib.auth import get_user_model
from rest_framework import serializers
from apps.production.models import (
    Consultation,
    EscrowAccount,
    PriceAdjustment,
    ProductionOrder,
    ProductionProof,
    TimelineEvent,
)
from apps.production.services.order_service import ProductionOrderService
from apps.production.services.price_adjustment_service import DECISIONS
from apps.production.services.timeline_service import TimelineService

User = get_user_model()


class TimelineEventSerializer(serializers.ModelSerializer):
    """Serializer for order timeline events."""
    actor_id = serializers.PrimaryKeyRelatedField(source='actor', read_only=True)

    class Meta:
        model = TimelineEvent
        fields = ['id', 'event_type', 'description', 'actor_id', 'metadata', 'created_at']
        read_only_fields = fields


class ConsultationSerializer(serializers.ModelSerializer):
    """Serializer for consultation records."""

    class Meta:
        model = Consultation
        fields = [
            'id', 'order', 'status', 'requested_by', 'notes', 'timeout_at',
            'started_at', 'completed_at', 'waived_at', 'expired_at', 'created_at'
        ]
        read_only_fields = fields


class PriceAdjustmentSerializer(serializers.ModelSerializer):
    """Serializer for price adjustment proposals."""
    adjustment_amount = serializers.IntegerField(read_only=True)

    class Meta:
        model = PriceAdjustment
        fields = [
            'id', 'order', 'original_price', 'adjusted_price', 'adjustment_amount',
            'adjustment_type', 'justification', 'status', 'response_deadline',
            'top_up_amount', 'responded_at', 'expired_at', 'created_at'
        ]
        read_only_fields = fields


class ProductionProofSerializer(serializers.ModelSerializer):
    """Serializer for proof versions."""

    class Meta:
        model = ProductionProof
        fields = [
            'id', 'order', 'version_number', 'status', 'proof_images', 'design_files',
            'provider_notes', 'customer_feedback', 'reviewed_at', 'created_at'
        ]
        read_only_fields = fields


class EscrowAccountSerializer(serializers.ModelSerializer):
    """Serializer for escrow account details."""
    remaining_balance = serializers.IntegerField(read_only=True)
    provider_payout = serializers.IntegerField(read_only=True)

    class Meta:
        model = EscrowAccount
        fields = [
            'id', 'amount_held', 'amount_topped_up', 'amount_released',
            'amount_refunded', 'platform_fee', 'provider_payout',
            'remaining_balance', 'status', 'held_at', 'released_at', 'refunded_at'
        ]
        read_only_fields = fields


class ProductionOrderListSerializer(serializers.ModelSerializer):
    """Serializer for order list view."""
    status_label = serializers.CharField(source='get_status_display', read_only=True)
    progress_percent = serializers.IntegerField(read_only=True)

    class Meta:
        model = ProductionOrder
        fields = [
            'id', 'title', 'customer', 'provider', 'status', 'status_label',
            'progress_percent', 'final_price', 'currency', 'created_at', 'updated_at'
        ]
        read_only_fields = fields


class ProductionOrderDetailSerializer(serializers.ModelSerializer):
    """
    Detailed order view with the active consultation, the pending price
    adjustment, escrow and the most recent timeline events.
    """
    status_label = serializers.CharField(source='get_status_display', read_only=True)
    progress_percent = serializers.IntegerField(read_only=True)
    escrow = EscrowAccountSerializer(read_only=True)
    active_consultation = serializers.SerializerMethodField()
    pending_price_adjustment = serializers.SerializerMethodField()
    latest_proof = serializers.SerializerMethodField()
    timeline = serializers.SerializerMethodField()

    class Meta:
        model = ProductionOrder
        fields = [
            'id', 'title', 'customer', 'provider', 'status', 'status_label',
            'progress_percent', 'escrow_amount', 'final_price', 'currency',
            'consultation_required', 'consultation_waived', 'consultation_completed_at',
            'price_adjustment_used', 'tracking_number', 'shipping_carrier',
            'cancellation_reason', 'created_at', 'updated_at', 'order_received_at',
            'proofs_submitted_at', 'shipped_at', 'escrow_released_at', 'cancelled_at',
            'escrow', 'active_consultation', 'pending_price_adjustment', 'latest_proof', 'timeline'
        ]
        read_only_fields = fields

    def get_active_consultation(self, obj):
        consultation = ProductionOrderService.active_consultation(obj)
        return ConsultationSerializer(consultation).data if consultation else None

    def get_pending_price_adjustment(self, obj):
        adjustment = ProductionOrderService.pending_adjustment(obj)
        return PriceAdjustmentSerializer(adjustment).data if adjustment else None

    def get_latest_proof(self, obj):
        proof = ProductionOrderService.proofs(obj).first()
        return ProductionProofSerializer(proof).data if proof else None

    def get_timeline(self, obj):
        limit = self.context.get('timeline_limit')
        return TimelineEventSerializer(TimelineService.recent(obj, limit), many=True).data


class CreateProductionOrderSerializer(serializers.Serializer):
    """Serializer for creating a production order (customer side)."""
    provider_id = serializers.PrimaryKeyRelatedField(queryset=User.objects.filter(is_active=True))
    escrow_amount = serializers.IntegerField(min_value=1, help_text="Minor units (e.g. cents)")
    consultation_required = serializers.BooleanField(default=False)
    title = serializers.CharField(max_length=200, required=False, allow_blank=True)
    currency = serializers.CharField(min_length=3, max_length=3, required=False)


class AdvanceOrderSerializer(serializers.Serializer):
    """Serializer for advancing an order; shipment fields apply when entering shipped."""
    tracking_number = serializers.CharField(max_length=100, required=False, allow_blank=True)
    shipping_carrier = serializers.CharField(max_length=100, required=False, allow_blank=True)


class CancelOrderSerializer(serializers.Serializer):
    """Serializer for cancelling orders."""
    reason = serializers.CharField(max_length=500)


class RequestConsultationSerializer(serializers.Serializer):
    """Serializer for requesting a consultation."""
    timeout_hours = serializers.IntegerField(
        min_value=1,
        max_value=24 * 30,
        required=False,
        help_text="Defaults to PRODUCTION_CONSULTATION_TIMEOUT_HOURS"
    )


class CompleteConsultationSerializer(serializers.Serializer):
    notes = serializers.CharField(max_length=2000, required=False, allow_blank=True)


class ProposePriceAdjustmentSerializer(serializers.Serializer):
    """Serializer for a provider's price adjustment proposal."""
    adjusted_price = serializers.IntegerField(min_value=1, help_text="Minor units (e.g. cents)")
    justification = serializers.CharField(max_length=2000, allow_blank=True)
    response_deadline = serializers.DateTimeField(required=False)


class ResolvePriceAdjustmentSerializer(serializers.Serializer):
    decision = serializers.ChoiceField(choices=DECISIONS)


class SubmitProofSerializer(serializers.Serializer):
    """Serializer for a provider's proof submission."""
    proof_images = serializers.ListField(
        child=serializers.URLField(max_length=500),
        min_length=1,
        max_length=20
    )
    design_files = serializers.ListField(
        child=serializers.URLField(max_length=500),
        required=False,
        max_length=20
    )
    notes = serializers.CharField(max_length=2000, required=False, allow_blank=True)


class ReviewProofSerializer(serializers.Serializer):
    feedback = serializers.CharField(max_length=2000, required=False, allow_blank=True)


class ProviderSummarySerializer(serializers.Serializer):
    """Provider order counts and payouts (minor units, net of platform fee)."""
    total_orders = serializers.IntegerField()
    active_orders = serializers.IntegerField()
    pending_proofs = serializers.IntegerField()
    completed_orders = serializers.IntegerField()
    total_earnings = serializers.IntegerField()
    pending_earnings = serializers.IntegerField()


def timeline_limit(request) -> int:
    """Parse ?limit= for timeline projections."""
    default = getattr(settings, 'PRODUCTION_TIMELINE_DEFAULT_LIMIT', 20)
    try:
        limit = int(request.query_params.get('limit', default))
    except (TypeError, ValueError):
        return default
    return max(1, min(limit, 200))
