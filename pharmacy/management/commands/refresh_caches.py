from django.core.management.base import BaseCommand
from django.utils import timezone

from pharmacy.services.statistics import cache_key, default_range, get_statistics


class Command(BaseCommand):
    help = "Recompute and warm the cached statistics report for the default range."

    def handle(self, *args, **options):
        now = timezone.now()
        start, end = default_range()
        get_statistics(start, end, refresh=True)
        self.stdout.write(self.style.SUCCESS(f"Refreshed {cache_key(start, end)} at {now}"))
