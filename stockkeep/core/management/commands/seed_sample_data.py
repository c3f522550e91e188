"""
Management command to load a small demo catalogue
"""
from decimal import Decimal

from django.core.management.base import BaseCommand
from django.db import transaction

from stockkeep.catalog.models import Category, Product
from stockkeep.inventory.services import receive_stock
from stockkeep.parties.models import Supplier

CATEGORIES = [
    ('Fasteners', 'Screws, bolts, nuts and washers'),
    ('Hand Tools', 'Non-powered tools'),
    ('Power Tools', 'Corded and cordless tools'),
    ('Safety', 'Protective equipment'),
]

SUPPLIERS = [
    {'name': 'Northwind Hardware', 'contact_person': 'Alex Morgan', 'email': 'orders@northwind.example',
     'phone': '555-0100', 'lead_time_days': 7, 'performance_rating': Decimal('4.5')},
    {'name': 'Harbor Industrial Supply', 'contact_person': 'Riley Chen', 'email': 'sales@harbor.example',
     'phone': '555-0142', 'payment_terms': 'Net 45', 'performance_rating': Decimal('3.8')},
]

# sku, name, category, supplier, opening stock, min level, price, cost
PRODUCTS = [
    ('FST-M6-100', 'M6 hex bolt (box of 100)', 'Fasteners', 'Northwind Hardware', 120, 20, '12.50', '7.10'),
    ('FST-WSH-M6', 'M6 washer (box of 200)', 'Fasteners', 'Northwind Hardware', 8, 10, '6.75', '3.20'),
    ('HT-HAM-16', '16oz claw hammer', 'Hand Tools', 'Harbor Industrial Supply', 25, 5, '18.99', '9.40'),
    ('HT-SCR-SET', 'Screwdriver set, 12 piece', 'Hand Tools', 'Harbor Industrial Supply', 0, 4, '24.00', '13.75'),
    ('PT-DRL-18V', '18V cordless drill', 'Power Tools', 'Harbor Industrial Supply', 6, 3, '129.00', '82.00'),
    ('SAF-GLV-L', 'Work gloves, large', 'Safety', 'Northwind Hardware', 60, 15, '4.25', '1.90'),
]


class Command(BaseCommand):
    help = "Loads demo categories, suppliers and products with opening stock"

    def add_arguments(self, parser):
        parser.add_argument(
            '--clear',
            action='store_true',
            help='Delete the demo products, suppliers and categories before loading them again',
        )

    def handle(self, *args, **options):
        self.stdout.write(self.style.SUCCESS("=" * 80))
        self.stdout.write(self.style.SUCCESS("LOADING SAMPLE DATA"))
        self.stdout.write(self.style.SUCCESS("=" * 80))

        with transaction.atomic():
            if options['clear']:
                self.stdout.write(self.style.WARNING("Clearing existing sample data..."))
                Product.objects.filter(sku__in=[row[0] for row in PRODUCTS]).delete()
                Supplier.objects.filter(name__in=[row['name'] for row in SUPPLIERS]).delete()
                Category.objects.filter(name__in=[name for name, _ in CATEGORIES]).delete()

            categories = {}
            for name, description in CATEGORIES:
                categories[name], _ = Category.objects.get_or_create(
                    name=name, defaults={'description': description}
                )

            suppliers = {}
            for row in SUPPLIERS:
                fields = dict(row)
                name = fields.pop('name')
                suppliers[name], _ = Supplier.objects.get_or_create(name=name, defaults=fields)

            created_count = 0
            skipped_count = 0
            for sku, name, category, supplier, opening, min_level, price, cost in PRODUCTS:
                if Product.objects.filter(sku=sku).exists():
                    self.stdout.write(f"  - Skipped (already exists): {sku}")
                    skipped_count += 1
                    continue
                product = Product.objects.create(
                    sku=sku,
                    name=name,
                    category=categories[category],
                    supplier=suppliers[supplier],
                    min_stock_level=min_level,
                    price=Decimal(price),
                    cost=Decimal(cost),
                )
                if opening:
                    receive_stock(product, opening, notes='Opening stock')
                self.stdout.write(self.style.SUCCESS(f"  + Created: {sku} ({opening} on hand)"))
                created_count += 1

        self.stdout.write("")
        self.stdout.write(self.style.SUCCESS(f"Products created: {created_count}"))
        self.stdout.write(f"Products skipped: {skipped_count}")
