from django.core.management.base import BaseCommand

from django_css_pipeline.constants import JOB_TYPES
from django_css_pipeline.pipeline import get_pipeline


class Command(BaseCommand):
    help = "Remove all pending CSS generation requests from the queue"

    def add_arguments(self, parser):
        parser.add_argument(
            "--type",
            choices=[t.value for t in JOB_TYPES],
            help="Only clear the queue of this type (default: both)",
        )
        parser.add_argument(
            "--no-confirm",
            action="store_true",
            help="Skip confirmation prompt and clear the queue immediately",
        )

    def handle(self, *args, **options):
        pipeline = get_pipeline()
        types = [options["type"]] if options["type"] else [t.value for t in JOB_TYPES]

        # Count existing entries
        counts = {css_type: len(pipeline.queue.load(css_type)) for css_type in types}
        total = sum(counts.values())

        if total == 0:
            self.stdout.write(
                self.style.SUCCESS("No queued CSS requests found to remove.")
            )
            return

        # Show confirmation unless --no-confirm is used
        if not options["no_confirm"]:
            self.stdout.write(
                f"This will remove {total} queued CSS requests."
            )
            confirm = input("Are you sure you want to continue? [y/N]: ")
            if confirm.lower() not in ["y", "yes"]:
                self.stdout.write(self.style.WARNING("Operation cancelled."))
                return

        for css_type in types:
            pipeline.clear_queue(css_type)

        self.stdout.write(
            self.style.SUCCESS(
                f"Queue cleared successfully. Removed {total} queued CSS requests."
            )
        )
