import logging

from django.core.management import BaseCommand
from django.db import transaction
from django.db.models import Count
from django.utils import timezone

from candidates.models import Candidate, StatusHistory

logger = logging.getLogger('candidates')


class Command(BaseCommand):
    help = 'Give candidates without a status history an initial entry for their current status.'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Report what would be seeded without writing anything.',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']
        candidates = Candidate.objects.filter(is_deleted=False).annotate(history_count=Count('status_history'))

        seeded = skipped = 0
        for candidate in candidates.iterator():
            if candidate.history_count:
                skipped += 1
                continue

            if not dry_run:
                self.seed(candidate)
            seeded += 1
            self.stdout.write(f"Seeded {candidate.name} ({candidate.candidate_id}) - status: {candidate.current_status}")

        prefix = "[dry run] " if dry_run else ""
        self.stdout.write(self.style.SUCCESS(
            f"{prefix}Seeded {seeded} candidates, skipped {skipped} with existing history."
        ))
        logger.info(f"{prefix}Status history seeding finished: {seeded} seeded, {skipped} skipped")

    def seed(self, candidate: Candidate) -> None:
        with transaction.atomic():
            # Another writer may have transitioned the candidate meanwhile.
            if StatusHistory.objects.filter(candidate=candidate).exists():
                return
            StatusHistory.objects.create(
                candidate=candidate,
                old_status=None,
                new_status=candidate.current_status,
                changed_at=candidate.date_created,
                changed_by="system",
                changed_by_name="System Migration",
                reason="Initial status - seeded from existing data",
                notes=f"Seeded on {timezone.now().isoformat()}. Original status: {candidate.current_status}",
                source="migration",
            )
