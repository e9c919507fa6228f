from django.conf import settings
from django.core.management.base import BaseCommand

from ops_core.models import OutboxEvent
from ops_core.services.outbox import dispatch_pending_events


class Command(BaseCommand):
    help = "Deliver pending outbox events into notifications and the activity log"

    def add_arguments(self, parser):
        parser.add_argument(
            "--limit",
            type=int,
            default=getattr(settings, "OUTBOX_SWEEP_BATCH", 200),
        )
        parser.add_argument(
            "--retry-failed",
            action="store_true",
            help="Move failed events back to pending before dispatching.",
        )

    def handle(self, *args, **options):
        if options["retry_failed"]:
            reset = OutboxEvent.objects.filter(status=OutboxEvent.Status.FAILED).update(
                status=OutboxEvent.Status.PENDING,
                attempts=0,
            )
            self.stdout.write(f"Requeued {reset} failed event(s)")

        delivered = dispatch_pending_events(options["limit"])
        self.stdout.write(self.style.SUCCESS(f"Delivered {delivered} event(s)"))
