"""
Production app configuration.
Handles custom order lifecycle, consultations, price adjustments and escrow.
"""
from django.apps import AppConfig


class ProductionConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.production'
    verbose_name = 'Production Orders'

    def ready(self):
        """Import signals when app is ready."""
        from apps.production import signals  # noqa: F401
