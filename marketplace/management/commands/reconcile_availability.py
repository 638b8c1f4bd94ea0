# Reconcile Plot Availability Management Command
from django.core.management.base import BaseCommand, CommandError
from django.db.models import Exists, OuterRef

from marketplace.models import Booking, BookingStatus, Plot, VerificationStatus


class Command(BaseCommand):
    help = (
        'Recomputes plot availability from booking state and repairs plots whose '
        'stored is_available flag has drifted.'
    )

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Report drifted plots without saving changes to the database.',
        )
        parser.add_argument(
            '--batch-size',
            type=int,
            default=1000,
            help='Batch size for bulk processing.',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']
        batch_size = options['batch_size']

        if batch_size < 1:
            raise CommandError('--batch-size must be a positive integer.')

        self.stdout.write('Reconciling plot availability...')

        approved_booking = Booking.objects.filter(
            plot=OuterRef('pk'), status=BookingStatus.APPROVED
        )
        plots = (
            Plot.objects
            .annotate(has_approved=Exists(approved_booking))
            .only('id', 'title', 'is_available', 'verification_status')
            .order_by('id')
            .iterator(chunk_size=batch_size)
        )

        updates = []
        count = 0
        fixed = 0

        for plot in plots:
            expected = (
                plot.verification_status != VerificationStatus.REJECTED
                and not plot.has_approved
            )

            if plot.is_available != expected:
                fixed += 1
                prefix = '[DRY-RUN] ' if dry_run else ''
                self.stdout.write(
                    f'  {prefix}Plot {plot.id} ({plot.title}): '
                    f'is_available {plot.is_available} -> {expected}'
                )
                plot.is_available = expected
                updates.append(plot)

            if len(updates) >= batch_size:
                if not dry_run:
                    Plot.objects.bulk_update(updates, ['is_available'])
                updates = []

            count += 1
            if count % 100 == 0:
                self.stdout.write(f'Processed {count} plots...')

        if updates and not dry_run:
            Plot.objects.bulk_update(updates, ['is_available'])

        self.stdout.write(f'Processed {count} plots total, {fixed} out of sync.')

        if dry_run:
            self.stdout.write(self.style.SUCCESS('Dry run completed. No changes saved.'))
        else:
            self.stdout.write(self.style.SUCCESS('Reconciliation completed successfully.'))
