import uuid

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models

import apps.production.models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='ProductionOrder',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('title', models.CharField(blank=True, max_length=200)),
                ('currency', models.CharField(default=apps.production.models.default_currency, max_length=3)),
                ('status', models.CharField(
                    choices=[
                        ('pending_consultation', 'Awaiting Consultation'),
                        ('pending_order_received', 'Pending Confirmation'),
                        ('order_received', 'Order Received'),
                        ('in_production', 'In Production'),
                        ('pending_approval', 'Awaiting Approval'),
                        ('ready_for_delivery', 'Ready for Delivery'),
                        ('shipped', 'Shipped'),
                        ('completed', 'Completed'),
                        ('cancelled', 'Cancelled'),
                    ],
                    db_index=True,
                    default='pending_order_received',
                    max_length=30,
                )),
                ('escrow_amount', models.PositiveBigIntegerField(editable=False, help_text='Amount captured into escrow at creation')),
                ('final_price', models.PositiveBigIntegerField(help_text='Settle price; changes at most once via an approved adjustment')),
                ('consultation_required', models.BooleanField(default=False)),
                ('consultation_waived', models.BooleanField(default=False)),
                ('consultation_waived_at', models.DateTimeField(blank=True, null=True)),
                ('consultation_completed_at', models.DateTimeField(blank=True, null=True)),
                ('price_adjustment_used', models.BooleanField(default=False)),
                ('tracking_number', models.CharField(blank=True, max_length=100, null=True)),
                ('shipping_carrier', models.CharField(blank=True, max_length=100, null=True)),
                ('cancellation_reason', models.TextField(blank=True, max_length=1000)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('order_received_at', models.DateTimeField(blank=True, null=True)),
                ('shipped_at', models.DateTimeField(blank=True, null=True)),
                ('escrow_released_at', models.DateTimeField(blank=True, null=True)),
                ('cancelled_at', models.DateTimeField(blank=True, null=True)),
                ('customer', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='production_purchases', to=settings.AUTH_USER_MODEL)),
                ('provider', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='production_sales', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Production Order',
                'verbose_name_plural': 'Production Orders',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['customer', 'status', '-created_at'], name='prod_order_customer_idx'),
                    models.Index(fields=['provider', 'status', '-created_at'], name='prod_order_provider_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Consultation',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('status', models.CharField(
                    choices=[
                        ('pending', 'Pending'),
                        ('in_progress', 'In Progress'),
                        ('completed', 'Completed'),
                        ('waived', 'Waived'),
                        ('expired', 'Expired'),
                    ],
                    db_index=True,
                    default='pending',
                    max_length=20,
                )),
                ('requested_by', models.CharField(choices=[('customer', 'Customer'), ('provider', 'Provider')], max_length=20)),
                ('notes', models.TextField(blank=True, max_length=2000)),
                ('timeout_at', models.DateTimeField(db_index=True)),
                ('started_at', models.DateTimeField(blank=True, null=True)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('waived_at', models.DateTimeField(blank=True, null=True)),
                ('expired_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('order', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='consultations', to='production.productionorder')),
                ('requested_by_user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('waived_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Consultation',
                'verbose_name_plural': 'Consultations',
                'ordering': ['-created_at'],
                'constraints': [
                    models.UniqueConstraint(
                        condition=models.Q(('status__in', ['pending', 'in_progress'])),
                        fields=('order',),
                        name='one_active_consultation_per_order',
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name='PriceAdjustment',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('original_price', models.PositiveBigIntegerField()),
                ('adjusted_price', models.PositiveBigIntegerField()),
                ('adjustment_type', models.CharField(choices=[('increase', 'Increase'), ('decrease', 'Decrease')], max_length=10)),
                ('justification', models.TextField(max_length=2000)),
                ('top_up_amount', models.PositiveBigIntegerField(default=0, help_text='Additional amount charged to the customer on approval')),
                ('status', models.CharField(
                    choices=[
                        ('pending', 'Pending'),
                        ('approved', 'Approved'),
                        ('rejected', 'Rejected'),
                        ('expired', 'Expired'),
                    ],
                    db_index=True,
                    default='pending',
                    max_length=20,
                )),
                ('response_deadline', models.DateTimeField(db_index=True)),
                ('responded_at', models.DateTimeField(blank=True, null=True)),
                ('expired_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('order', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='price_adjustments', to='production.productionorder')),
                ('proposed_by', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('responded_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Price Adjustment',
                'verbose_name_plural': 'Price Adjustments',
                'ordering': ['-created_at'],
                'constraints': [
                    models.UniqueConstraint(
                        condition=models.Q(('status', 'pending')),
                        fields=('order',),
                        name='one_pending_price_adjustment_per_order',
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name='TimelineEvent',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('event_type', models.CharField(
                    choices=[
                        ('created', 'Order Created'),
                        ('status_changed', 'Status Changed'),
                        ('cancelled', 'Order Cancelled'),
                        ('delivery_confirmed', 'Delivery Confirmed'),
                        ('consultation_requested', 'Consultation Requested'),
                        ('consultation_started', 'Consultation Started'),
                        ('consultation_completed', 'Consultation Completed'),
                        ('consultation_waived', 'Consultation Waived'),
                        ('consultation_expired', 'Consultation Expired'),
                        ('price_adjustment_proposed', 'Price Adjustment Proposed'),
                        ('price_adjustment_approved', 'Price Adjustment Approved'),
                        ('price_adjustment_rejected', 'Price Adjustment Rejected'),
                        ('price_adjustment_expired', 'Price Adjustment Expired'),
                        ('escrow_held', 'Escrow Held'),
                        ('escrow_topped_up', 'Escrow Topped Up'),
                        ('escrow_released', 'Escrow Released'),
                        ('escrow_refunded', 'Escrow Refunded'),
                    ],
                    db_index=True,
                    max_length=50,
                )),
                ('description', models.TextField()),
                ('metadata', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ('actor', models.ForeignKey(blank=True, help_text='User who caused the event (null for system)', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('order', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='timeline_events', to='production.productionorder')),
            ],
            options={
                'verbose_name': 'Timeline Event',
                'verbose_name_plural': 'Timeline Events',
                'ordering': ['created_at', 'id'],
                'indexes': [
                    models.Index(fields=['order', 'created_at', 'id'], name='prod_timeline_order_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='EscrowAccount',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('hold_token', models.CharField(help_text='Payment processor reference for the captured hold', max_length=255)),
                ('amount_held', models.PositiveBigIntegerField(help_text='Total amount held, including top-ups')),
                ('amount_topped_up', models.PositiveBigIntegerField(default=0)),
                ('amount_released', models.PositiveBigIntegerField(default=0, help_text='Amount settled to the provider payout path')),
                ('amount_refunded', models.PositiveBigIntegerField(default=0, help_text='Amount returned to the customer')),
                ('platform_fee', models.PositiveBigIntegerField(default=0, help_text='Platform commission taken from the released amount')),
                ('status', models.CharField(
                    choices=[
                        ('HOLDING', 'Holding Funds'),
                        ('RELEASED', 'Released to Provider'),
                        ('REFUNDED', 'Refunded to Customer'),
                    ],
                    db_index=True,
                    default='HOLDING',
                    max_length=20,
                )),
                ('held_at', models.DateTimeField(auto_now_add=True)),
                ('released_at', models.DateTimeField(blank=True, null=True)),
                ('refunded_at', models.DateTimeField(blank=True, null=True)),
                ('order', models.OneToOneField(on_delete=django.db.models.deletion.PROTECT, related_name='escrow', to='production.productionorder')),
            ],
            options={
                'verbose_name': 'Escrow Account',
                'verbose_name_plural': 'Escrow Accounts',
            },
        ),
    ]
