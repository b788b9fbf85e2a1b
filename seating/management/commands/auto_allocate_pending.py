from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError

from seating.services import TableAllocationService


class Command(BaseCommand):
    help = 'Allocate tables to every pending reservation, oldest first'

    def add_arguments(self, parser):
        parser.add_argument('--actor', help='Username recorded as the actor in the audit log')

    def handle(self, *args, **options):
        actor = None
        if options.get('actor'):
            User = get_user_model()
            try:
                actor = User.objects.get(username=options['actor'])
            except User.DoesNotExist:
                raise CommandError(f"User '{options['actor']}' does not exist")

        summary = TableAllocationService().auto_allocate_pending_reservations(actor=actor)

        for detail in summary.allocated_reservations:
            self.stdout.write(f"  #{detail.reservation_id} (party {detail.party_size}): {detail.message}")
        for detail in summary.failed_reservations:
            self.stdout.write(self.style.WARNING(
                f"  #{detail.reservation_id} (party {detail.party_size}): {detail.message}"
            ))
        for detail in summary.skipped_reservations:
            self.stdout.write(f"  #{detail.reservation_id} skipped: {detail.message}")

        style = self.style.WARNING if summary.failed else self.style.SUCCESS
        self.stdout.write(style(summary.message))
