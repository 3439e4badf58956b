"""
Deadline sweeper - periodic job that expires overdue consultations and
unanswered price adjustments. Run from cron through the
sweep_production_deadlines management command.
"""
import logging
import time
from django.conf import settings
from django.db import DatabaseError
from django.utils import timezone
from apps.production.exceptions import ProductionError
from apps.production.models import Consultation, PriceAdjustment
from apps.production.services.consultation_service import ConsultationService
from apps.production.services.price_adjustment_service import PriceAdjustmentService

logger = logging.getLogger(__name__)


class DeadlineSweeper:
    """
    Expires records one at a time, each under its order's lock.
    A record that keeps failing is reported and skipped; other orders continue.
    """

    @staticmethod
    def overdue_consultations(now):
        return Consultation.objects.filter(
            status__in=Consultation.ACTIVE_STATUSES,
            timeout_at__lte=now
        ).order_by('timeout_at')

    @staticmethod
    def overdue_adjustments(now):
        return PriceAdjustment.objects.filter(
            status=PriceAdjustment.Status.PENDING,
            response_deadline__lte=now
        ).order_by('response_deadline')

    @classmethod
    def run(cls, now=None) -> dict:
        """
        Expire everything overdue at `now`.

        Returns:
            dict with 'expired_consultations', 'expired_adjustments',
            'skipped' and 'failed' (ids that exhausted their retries)
        """
        now = now or timezone.now()
        result = {
            'expired_consultations': 0,
            'expired_adjustments': 0,
            'skipped': 0,
            'failed': [],
        }

        consultation_ids = list(cls.overdue_consultations(now).values_list('id', flat=True))
        for consultation_id in consultation_ids:
            outcome = cls._attempt(ConsultationService.expire, consultation_id, now)
            cls._tally(result, outcome, 'expired_consultations', consultation_id)

        adjustment_ids = list(cls.overdue_adjustments(now).values_list('id', flat=True))
        for adjustment_id in adjustment_ids:
            outcome = cls._attempt(PriceAdjustmentService.expire, adjustment_id, now)
            cls._tally(result, outcome, 'expired_adjustments', adjustment_id)

        logger.info(
            f"Deadline sweep: {result['expired_consultations']} consultations, "
            f"{result['expired_adjustments']} price adjustments expired, "
            f"{result['skipped']} skipped, {len(result['failed'])} failed"
        )
        return result

    @staticmethod
    def _tally(result, outcome, counter, record_id):
        if outcome == 'expired':
            result[counter] += 1
        elif outcome == 'skipped':
            result['skipped'] += 1
        else:
            result['failed'].append(str(record_id))

    @staticmethod
    def _attempt(expire, record_id, now) -> str:
        """
        Run one expiry with retries on transient database errors.
        Returns 'expired', 'skipped' or 'failed'.
        """
        max_attempts = getattr(settings, 'PRODUCTION_SWEEP_MAX_ATTEMPTS', 3)
        delay = getattr(settings, 'PRODUCTION_SWEEP_RETRY_DELAY_SECONDS', 1)

        for attempt in range(1, max_attempts + 1):
            try:
                expire(record_id, now=now)
                return 'expired'
            except ProductionError as e:
                # Resolved by a manual action that took the lock first
                logger.info(f"Sweep skipped {record_id}: {e}")
                return 'skipped'
            except DatabaseError as e:
                logger.warning(
                    f"Sweep attempt {attempt}/{max_attempts} failed for {record_id}: {e}"
                )
                if attempt < max_attempts and delay:
                    time.sleep(delay)

        logger.error(f"Sweep gave up on {record_id} after {max_attempts} attempts")
        return 'failed'
