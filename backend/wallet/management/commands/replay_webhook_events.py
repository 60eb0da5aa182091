"""Management command to replay failed Stripe webhook events."""
from __future__ import annotations

from typing import Iterable, Optional

from django.core.management.base import BaseCommand, CommandError

from wallet.models import WebhookEventLog
from wallet.tasks import process_stripe_event_async
from wallet.tasks_webhooks import HandlerResult


class Command(BaseCommand):
    help = "Replay failed Stripe webhook events through the normal processing pipeline."

    def add_arguments(self, parser) -> None:
        parser.add_argument(
            "--event-id",
            dest="event_ids",
            action="append",
            help="Replay only the specified Stripe event id. Can be supplied multiple times.",
        )
        parser.add_argument(
            "--limit",
            type=int,
            default=None,
            help="Maximum number of events to replay in this run.",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="List the events that would be replayed without applying them.",
        )

    def handle(self, *args, **options) -> None:
        event_ids: Optional[Iterable[str]] = options.get("event_ids")
        limit: Optional[int] = options.get("limit")
        dry_run: bool = options.get("dry_run")

        queryset = WebhookEventLog.objects.filter(
            status=WebhookEventLog.Status.FAILED,
            handled=False,
            payload__isnull=False,
        ).order_by("created_at")
        if event_ids:
            queryset = queryset.filter(event_id__in=list(event_ids))
        if limit is not None:
            queryset = queryset[:limit]

        entries = list(queryset)
        if not entries:
            self.stdout.write(self.style.WARNING("No failed webhook events matched the requested filters."))
            return

        succeeded = 0
        failed = 0

        for entry in entries:
            self.stdout.write(f"Replaying Stripe event {entry.event_id} ({entry.event_type})")
            if dry_run:
                continue

            payload = dict(entry.payload)
            payload.setdefault("id", entry.event_id)
            payload.setdefault("type", entry.event_type)

            result = process_stripe_event_async.run(payload)
            if result.get("status") in {HandlerResult.PROCESSED, HandlerResult.IGNORED}:
                succeeded += 1
            else:
                failed += 1
                self.stderr.write(f"  {entry.event_id}: {result.get('detail') or result.get('status')}")

        if dry_run:
            self.stdout.write(self.style.WARNING(f"Dry run complete. {len(entries)} events would be replayed."))
            return

        summary = f"Replay complete: {succeeded} succeeded, {failed} failed, {len(entries)} total."
        if failed:
            raise CommandError(summary)
        self.stdout.write(self.style.SUCCESS(summary))
