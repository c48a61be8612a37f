import logging

from django.core.management.base import BaseCommand, CommandError

from django_css_pipeline.constants import JOB_TYPES
from django_css_pipeline.pipeline import DrainStatus, get_pipeline


logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Send queued CCSS/UCSS generation requests to the generation service'

    def add_arguments(self, parser):
        parser.add_argument(
            '--type',
            choices=[t.value for t in JOB_TYPES],
            default='ccss',
            help='Which queue to drain (default: ccss)'
        )
        parser.add_argument(
            '--continue',
            action='store_true',
            dest='continue_',
            help='Drain now: keep sending entries instead of stopping after the first one'
        )
        parser.add_argument(
            '--max-passes',
            type=int,
            default=50,
            help='Upper bound on re-invocations when a pass yields (default: 50)'
        )

    def handle(self, *args, **options):
        css_type = options['type']
        continue_ = options['continue_']
        max_passes = options['max_passes']
        if max_passes < 1:
            raise CommandError('--max-passes must be at least 1')

        pipeline = get_pipeline()
        processed = 0

        try:
            for passes in range(1, max_passes + 1):
                result = pipeline.drain(css_type, continue_)
                processed += result.processed

                if result.status is DrainStatus.QUOTA_EXHAUSTED:
                    self.stdout.write(
                        self.style.ERROR('Generation service quota exhausted, stopping')
                    )
                    break

                if result.status is DrainStatus.IN_FLIGHT:
                    self.stdout.write(
                        self.style.WARNING('Last request not done, use --continue to send anyway')
                    )
                    break

                if result.status is DrainStatus.LOCKED:
                    self.stdout.write(
                        self.style.WARNING('Another drain pass is running')
                    )
                    break

                if not result.yielded:
                    break

                self.stdout.write(f'Pass {passes}: {result.remaining} entries left')
                continue_ = True

        except Exception as e:
            logger.error(f'Failed to drain {css_type} queue', exc_info=True)
            raise CommandError(f'Failed to drain {css_type} queue: {str(e)}')

        self.stdout.write(
            self.style.SUCCESS(
                f'Complete! Processed: {processed}, Left in queue: {result.remaining}'
            )
        )
