"""
Production order signals.
External notifiers connect here to turn status changes into user-facing messages.
"""
from django.dispatch import Signal

# Sent after commit with: order_id, from_status, to_status, actor_id, timestamp
production_status_changed = Signal()
