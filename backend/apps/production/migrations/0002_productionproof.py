import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ('production', '0001_initial'),
    ]

    operations = [
        migrations.AddField(
            model_name='productionorder',
            name='proofs_submitted_at',
            field=models.DateTimeField(blank=True, null=True),
        ),
        migrations.AlterField(
            model_name='timelineevent',
            name='event_type',
            field=models.CharField(
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
                    ('proof_submitted', 'Proof Submitted'),
                    ('proof_approved', 'Proof Approved'),
                    ('proof_revision_requested', 'Proof Revision Requested'),
                    ('escrow_held', 'Escrow Held'),
                    ('escrow_topped_up', 'Escrow Topped Up'),
                    ('escrow_released', 'Escrow Released'),
                    ('escrow_refunded', 'Escrow Refunded'),
                ],
                db_index=True,
                max_length=50,
            ),
        ),
        migrations.CreateModel(
            name='ProductionProof',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('version_number', models.PositiveIntegerField()),
                ('proof_images', models.JSONField(default=list)),
                ('design_files', models.JSONField(blank=True, default=list)),
                ('provider_notes', models.TextField(blank=True, max_length=2000)),
                ('customer_feedback', models.TextField(blank=True, max_length=2000)),
                ('status', models.CharField(
                    choices=[
                        ('pending', 'Awaiting Review'),
                        ('approved', 'Approved'),
                        ('revision_requested', 'Revision Requested'),
                    ],
                    db_index=True,
                    default='pending',
                    max_length=20,
                )),
                ('reviewed_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('order', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='proofs', to='production.productionorder')),
                ('reviewed_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('submitted_by', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='+', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Production Proof',
                'verbose_name_plural': 'Production Proofs',
                'ordering': ['-version_number'],
                'constraints': [
                    models.UniqueConstraint(fields=('order', 'version_number'), name='unique_proof_version_per_order'),
                    models.UniqueConstraint(
                        condition=models.Q(('status', 'pending')),
                        fields=('order',),
                        name='one_pending_proof_per_order',
                    ),
                ],
            },
        ),
    ]
