import logging
from django.db.models import F, Q
from django.db.models.signals import pre_save, post_save
from django.dispatch import receiver

from .models import Table, TableJoin

# -----------------------------------------------------------------------------
# Logger
# -----------------------------------------------------------------------------
logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Store previous Table capacity
# -----------------------------------------------------------------------------
@receiver(pre_save, sender=Table)
def store_previous_capacity(sender, instance, using, **kwargs):
    instance._previous_capacity = None
    if instance.pk:
        instance._previous_capacity = (
            Table.objects.using(using).filter(pk=instance.pk)
            .values_list("capacity", flat=True).first()
        )


# -----------------------------------------------------------------------------
# Keep precomputed join capacities in sync
# -----------------------------------------------------------------------------
@receiver(post_save, sender=Table)
def refresh_join_capacities(sender, instance, created, using, **kwargs):
    previous = getattr(instance, "_previous_capacity", None)
    if created or previous is None or previous == instance.capacity:
        return

    joins = TableJoin.objects.using(using).filter(
        Q(primary_table=instance) | Q(joined_table=instance)
    )
    updated = joins.update(total_capacity=F("total_capacity") + (instance.capacity - previous))
    if updated:
        logger.info(
            "Table %s capacity changed: %s → %s; refreshed %d join(s)",
            instance.table_number, previous, instance.capacity, updated,
        )
