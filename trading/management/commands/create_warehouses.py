"""
Management command to create the per-currency warehouses.
"""

from django.core.management.base import BaseCommand
from trading.models import Currency, Warehouse


class Command(BaseCommand):
    help = "Creates one warehouse per supported currency (UZS, USD)"

    def handle(self, *args, **options):
        for currency in Currency.values:
            warehouse, created = Warehouse.objects.get_or_create(
                currency=currency, defaults={"name": f"{currency} warehouse"}
            )
            if created:
                self.stdout.write(
                    self.style.SUCCESS(f"Successfully created warehouse: {warehouse}")
                )
            else:
                self.stdout.write(
                    self.style.WARNING(f"Warehouse already exists: {warehouse}")
                )

        self.stdout.write(self.style.SUCCESS("Warehouse initialization complete!"))
