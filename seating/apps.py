# seating/apps.py

from django.apps import AppConfig
import logging


class SeatingConfig(AppConfig):
    """App configuration for the seating (table allocation) application."""

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'seating'
    verbose_name = "Seating & Table Allocation"

    def ready(self):
        """
        Import signal modules when Django app registry is fully loaded.
        Join capacities are kept in sync by receivers in seating.signals.
        """
        import seating.signals  # noqa: F401  # Import solely for side effects
        logging.getLogger(__name__).debug("seating.signals module loaded.")
