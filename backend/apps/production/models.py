"""
Production models - custom order state machine, consultations, price
adjustments, escrow ledger and the append-only order timeline.
All money values are integer minor units (cents).
"""
import uuid
from django.conf import settings
from django.db import models
from django.utils import timezone


def default_currency():
    return getattr(settings, 'PRODUCTION_DEFAULT_CURRENCY', 'USD')


class ProductionOrder(models.Model):
    """
    Made-to-order service transaction.
    Status is only ever written through StateMachine.transition().
    """

    class Status(models.TextChoices):
        PENDING_CONSULTATION = 'pending_consultation', 'Awaiting Consultation'
        PENDING_ORDER_RECEIVED = 'pending_order_received', 'Pending Confirmation'
        ORDER_RECEIVED = 'order_received', 'Order Received'
        IN_PRODUCTION = 'in_production', 'In Production'
        PENDING_APPROVAL = 'pending_approval', 'Awaiting Approval'
        READY_FOR_DELIVERY = 'ready_for_delivery', 'Ready for Delivery'
        SHIPPED = 'shipped', 'Shipped'
        COMPLETED = 'completed', 'Completed'
        CANCELLED = 'cancelled', 'Cancelled'

    # Display only, never used for control flow
    PROGRESS = {
        Status.PENDING_CONSULTATION: 10,
        Status.PENDING_ORDER_RECEIVED: 20,
        Status.ORDER_RECEIVED: 40,
        Status.IN_PRODUCTION: 60,
        Status.PENDING_APPROVAL: 70,
        Status.READY_FOR_DELIVERY: 85,
        Status.SHIPPED: 90,
        Status.COMPLETED: 100,
        Status.CANCELLED: 0,
    }

    TERMINAL_STATUSES = (Status.COMPLETED, Status.CANCELLED)

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    # Parties
    customer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='production_purchases'
    )
    provider = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='production_sales'
    )

    title = models.CharField(max_length=200, blank=True)
    currency = models.CharField(max_length=3, default=default_currency)

    status = models.CharField(
        max_length=30,
        choices=Status.choices,
        default=Status.PENDING_ORDER_RECEIVED,
        db_index=True
    )

    # Money (minor units)
    escrow_amount = models.PositiveBigIntegerField(
        editable=False,
        help_text="Amount captured into escrow at creation"
    )
    final_price = models.PositiveBigIntegerField(
        help_text="Settle price; changes at most once via an approved adjustment"
    )

    # Consultation gate
    consultation_required = models.BooleanField(default=False)
    consultation_waived = models.BooleanField(default=False)
    consultation_waived_at = models.DateTimeField(null=True, blank=True)
    consultation_completed_at = models.DateTimeField(null=True, blank=True)

    # Price negotiation
    price_adjustment_used = models.BooleanField(default=False)

    # Shipment
    tracking_number = models.CharField(max_length=100, null=True, blank=True)
    shipping_carrier = models.CharField(max_length=100, null=True, blank=True)

    cancellation_reason = models.TextField(blank=True, max_length=1000)

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)
    order_received_at = models.DateTimeField(null=True, blank=True)
    proofs_submitted_at = models.DateTimeField(null=True, blank=True)
    shipped_at = models.DateTimeField(null=True, blank=True)
    escrow_released_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-created_at']
        verbose_name = 'Production Order'
        verbose_name_plural = 'Production Orders'
        indexes = [
            models.Index(fields=['customer', 'status', '-created_at'], name='prod_order_customer_idx'),
            models.Index(fields=['provider', 'status', '-created_at'], name='prod_order_provider_idx'),
        ]

    def __str__(self):
        return f"Production order {self.id} - {self.status}"

    @property
    def is_terminal(self):
        return self.status in self.TERMINAL_STATUSES

    @property
    def progress_percent(self):
        return self.PROGRESS.get(self.status, 0)

    def is_customer(self, user):
        return user is not None and self.customer_id == user.pk

    def is_provider(self, user):
        return user is not None and self.provider_id == user.pk

    def is_participant(self, user):
        return self.is_customer(user) or self.is_provider(user)

    def role_of(self, user):
        """Return 'customer', 'provider' or None for the given user."""
        if self.is_customer(user):
            return 'customer'
        if self.is_provider(user):
            return 'provider'
        return None


class Consultation(models.Model):
    """
    Consultation session gating order progression.
    At most one active (pending / in progress) consultation per order.
    """

    class Status(models.TextChoices):
        PENDING = 'pending', 'Pending'
        IN_PROGRESS = 'in_progress', 'In Progress'
        COMPLETED = 'completed', 'Completed'
        WAIVED = 'waived', 'Waived'
        EXPIRED = 'expired', 'Expired'

    class RequestedBy(models.TextChoices):
        CUSTOMER = 'customer', 'Customer'
        PROVIDER = 'provider', 'Provider'

    ACTIVE_STATUSES = (Status.PENDING, Status.IN_PROGRESS)

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.ForeignKey(
        ProductionOrder,
        on_delete=models.PROTECT,
        related_name='consultations'
    )
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True
    )
    requested_by = models.CharField(max_length=20, choices=RequestedBy.choices)
    requested_by_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )
    waived_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )
    notes = models.TextField(blank=True, max_length=2000)

    timeout_at = models.DateTimeField(db_index=True)
    started_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    waived_at = models.DateTimeField(null=True, blank=True)
    expired_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        verbose_name = 'Consultation'
        verbose_name_plural = 'Consultations'
        constraints = [
            models.UniqueConstraint(
                fields=['order'],
                condition=models.Q(status__in=['pending', 'in_progress']),
                name='one_active_consultation_per_order'
            ),
        ]

    def __str__(self):
        return f"Consultation for {self.order_id} - {self.status}"

    @property
    def is_active(self):
        return self.status in self.ACTIVE_STATUSES

    def is_overdue(self, now=None):
        return self.is_active and self.timeout_at <= (now or timezone.now())


class PriceAdjustment(models.Model):
    """
    Single-use price renegotiation proposed by the provider.
    Resolution (approve / reject / expire) is terminal.
    """

    class Status(models.TextChoices):
        PENDING = 'pending', 'Pending'
        APPROVED = 'approved', 'Approved'
        REJECTED = 'rejected', 'Rejected'
        EXPIRED = 'expired', 'Expired'

    class AdjustmentType(models.TextChoices):
        INCREASE = 'increase', 'Increase'
        DECREASE = 'decrease', 'Decrease'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.ForeignKey(
        ProductionOrder,
        on_delete=models.PROTECT,
        related_name='price_adjustments'
    )
    proposed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='+'
    )
    responded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )

    original_price = models.PositiveBigIntegerField()
    adjusted_price = models.PositiveBigIntegerField()
    adjustment_type = models.CharField(max_length=10, choices=AdjustmentType.choices)
    justification = models.TextField(max_length=2000)
    top_up_amount = models.PositiveBigIntegerField(
        default=0,
        help_text="Additional amount charged to the customer on approval"
    )

    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True
    )
    response_deadline = models.DateTimeField(db_index=True)
    responded_at = models.DateTimeField(null=True, blank=True)
    expired_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        verbose_name = 'Price Adjustment'
        verbose_name_plural = 'Price Adjustments'
        constraints = [
            models.UniqueConstraint(
                fields=['order'],
                condition=models.Q(status='pending'),
                name='one_pending_price_adjustment_per_order'
            ),
        ]

    def __str__(self):
        return f"Price adjustment {self.original_price} -> {self.adjusted_price} ({self.status})"

    @property
    def adjustment_amount(self):
        return abs(self.adjusted_price - self.original_price)

    @property
    def is_pending(self):
        return self.status == self.Status.PENDING


class ProductionProof(models.Model):
    """
    Versioned proof of work submitted by the provider for customer review.
    At most one proof per order awaits review at a time.
    """

    class Status(models.TextChoices):
        PENDING = 'pending', 'Awaiting Review'
        APPROVED = 'approved', 'Approved'
        REVISION_REQUESTED = 'revision_requested', 'Revision Requested'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.ForeignKey(
        ProductionOrder,
        on_delete=models.PROTECT,
        related_name='proofs'
    )
    version_number = models.PositiveIntegerField()
    submitted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='+'
    )
    reviewed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )

    # Lists of file URLs
    proof_images = models.JSONField(default=list)
    design_files = models.JSONField(default=list, blank=True)
    provider_notes = models.TextField(blank=True, max_length=2000)
    customer_feedback = models.TextField(blank=True, max_length=2000)

    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True
    )
    reviewed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-version_number']
        verbose_name = 'Production Proof'
        verbose_name_plural = 'Production Proofs'
        constraints = [
            models.UniqueConstraint(
                fields=['order', 'version_number'],
                name='unique_proof_version_per_order'
            ),
            models.UniqueConstraint(
                fields=['order'],
                condition=models.Q(status='pending'),
                name='one_pending_proof_per_order'
            ),
        ]

    def __str__(self):
        return f"Proof v{self.version_number} for {self.order_id} - {self.status}"

    @property
    def is_pending(self):
        return self.status == self.Status.PENDING


class TimelineEvent(models.Model):
    """
    Append-only audit record for a production order.
    Used for support and display, never for control flow.
    """

    class EventType(models.TextChoices):
        CREATED = 'created', 'Order Created'
        STATUS_CHANGED = 'status_changed', 'Status Changed'
        CANCELLED = 'cancelled', 'Order Cancelled'
        DELIVERY_CONFIRMED = 'delivery_confirmed', 'Delivery Confirmed'
        CONSULTATION_REQUESTED = 'consultation_requested', 'Consultation Requested'
        CONSULTATION_STARTED = 'consultation_started', 'Consultation Started'
        CONSULTATION_COMPLETED = 'consultation_completed', 'Consultation Completed'
        CONSULTATION_WAIVED = 'consultation_waived', 'Consultation Waived'
        CONSULTATION_EXPIRED = 'consultation_expired', 'Consultation Expired'
        PRICE_PROPOSED = 'price_adjustment_proposed', 'Price Adjustment Proposed'
        PRICE_APPROVED = 'price_adjustment_approved', 'Price Adjustment Approved'
        PRICE_REJECTED = 'price_adjustment_rejected', 'Price Adjustment Rejected'
        PRICE_EXPIRED = 'price_adjustment_expired', 'Price Adjustment Expired'
        PROOF_SUBMITTED = 'proof_submitted', 'Proof Submitted'
        PROOF_APPROVED = 'proof_approved', 'Proof Approved'
        PROOF_REVISION_REQUESTED = 'proof_revision_requested', 'Proof Revision Requested'
        ESCROW_HELD = 'escrow_held', 'Escrow Held'
        ESCROW_TOPPED_UP = 'escrow_topped_up', 'Escrow Topped Up'
        ESCROW_RELEASED = 'escrow_released', 'Escrow Released'
        ESCROW_REFUNDED = 'escrow_refunded', 'Escrow Refunded'

    order = models.ForeignKey(
        ProductionOrder,
        on_delete=models.PROTECT,
        related_name='timeline_events'
    )
    event_type = models.CharField(max_length=50, choices=EventType.choices, db_index=True)
    description = models.TextField()
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        help_text="User who caused the event (null for system)"
    )
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        ordering = ['created_at', 'id']
        verbose_name = 'Timeline Event'
        verbose_name_plural = 'Timeline Events'
        indexes = [
            models.Index(fields=['order', 'created_at', 'id'], name='prod_timeline_order_idx'),
        ]

    def __str__(self):
        return f"{self.order_id}: {self.event_type}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Timeline events are append-only")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError("Timeline events are append-only")


class EscrowAccount(models.Model):
    """
    Escrow ledger entry holding the customer's funds for an order.
    Funds are held until delivery is confirmed or the order is cancelled.
    """
    HOLDING = 'HOLDING'
    RELEASED = 'RELEASED'
    REFUNDED = 'REFUNDED'

    STATUS_CHOICES = [
        (HOLDING, 'Holding Funds'),
        (RELEASED, 'Released to Provider'),
        (REFUNDED, 'Refunded to Customer'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.OneToOneField(
        ProductionOrder,
        on_delete=models.PROTECT,
        related_name='escrow'
    )
    hold_token = models.CharField(
        max_length=255,
        help_text="Payment processor reference for the captured hold"
    )

    # Amounts (minor units)
    amount_held = models.PositiveBigIntegerField(
        help_text="Total amount held, including top-ups"
    )
    amount_topped_up = models.PositiveBigIntegerField(default=0)
    amount_released = models.PositiveBigIntegerField(
        default=0,
        help_text="Amount settled to the provider payout path"
    )
    amount_refunded = models.PositiveBigIntegerField(
        default=0,
        help_text="Amount returned to the customer"
    )
    platform_fee = models.PositiveBigIntegerField(
        default=0,
        help_text="Platform commission taken from the released amount"
    )

    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default=HOLDING,
        db_index=True
    )

    held_at = models.DateTimeField(auto_now_add=True)
    released_at = models.DateTimeField(null=True, blank=True)
    refunded_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        verbose_name = 'Escrow Account'
        verbose_name_plural = 'Escrow Accounts'

    def __str__(self):
        return f"Escrow for production order {self.order_id} - {self.status}"

    def remaining_balance(self):
        """Calculate remaining balance in escrow."""
        return self.amount_held - self.amount_released - self.amount_refunded

    @property
    def provider_payout(self):
        return self.amount_released - self.platform_fee
