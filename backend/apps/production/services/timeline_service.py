"""
Timeline service - append-only event log per production order.
Every other component writes here; nothing reads it for control flow.
"""
from typing import Any, Dict, List, Optional
from django.conf import settings
from apps.production.models import ProductionOrder, TimelineEvent


class TimelineService:
    """Records and reads the audit timeline of a production order."""

    @staticmethod
    def record(
        order: ProductionOrder,
        event_type: str,
        description: str,
        actor=None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> TimelineEvent:
        """
        Append an event to the order timeline.

        Args:
            order: Order the event belongs to
            event_type: TimelineEvent.EventType value
            description: Human readable description
            actor: User who caused the event (None for system)
            metadata: JSON-serializable details

        Returns:
            Created TimelineEvent
        """
        return TimelineEvent.objects.create(
            order=order,
            event_type=event_type,
            description=description[:1000],
            actor=actor,
            metadata=metadata or {}
        )

    @staticmethod
    def recent(order: ProductionOrder, limit: Optional[int] = None) -> List[TimelineEvent]:
        """Return the most recent `limit` events, oldest first."""
        if limit is None:
            limit = getattr(settings, 'PRODUCTION_TIMELINE_DEFAULT_LIMIT', 20)
        events = list(
            TimelineEvent.objects.filter(order=order)
            .select_related('actor')
            .order_by('-created_at', '-id')[:max(limit, 0)]
        )
        events.reverse()
        return events
