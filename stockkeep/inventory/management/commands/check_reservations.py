"""
Django management command to compare each product's reserved quantity with
the quantities held by open sales orders, and optionally repair drift
"""
from django.core.management.base import BaseCommand
from django.db import transaction
from django.db.models import Sum
from stockkeep.catalog.models import Product
from stockkeep.sales.models import SalesOrder, SalesOrderItem


class Command(BaseCommand):
    help = 'Check Product.reserved_quantity against open sales order lines'

    def add_arguments(self, parser):
        parser.add_argument(
            '--product-id',
            type=int,
            help='Check specific product ID only',
        )
        parser.add_argument(
            '--fix',
            action='store_true',
            help='Set reserved_quantity to the open-order total for every mismatched product',
        )

    def expected_reservations(self):
        rows = SalesOrderItem.objects.filter(
            sales_order__status__in=SalesOrder.OPEN_STATUSES
        ).values('product_id').annotate(total=Sum('quantity'))
        return {row['product_id']: row['total'] for row in rows}

    def handle(self, *args, **options):
        product_id = options.get('product_id')
        fix = options.get('fix', False)

        products = Product.objects.all().order_by('id')
        if product_id:
            products = products.filter(id=product_id)

        expected = self.expected_reservations()
        mismatches = []
        for product in products:
            wanted = expected.get(product.id, 0)
            if wanted != product.reserved_quantity:
                mismatches.append((product, wanted))

        self.stdout.write(f"Checked {products.count()} products")
        if not mismatches:
            self.stdout.write(self.style.SUCCESS("Reservations are in sync"))
            return

        for product, wanted in mismatches:
            self.stdout.write(self.style.WARNING(
                f"  {product.sku} (ID: {product.id}): reserved {product.reserved_quantity}, "
                f"open orders hold {wanted}"
            ))

        if not fix:
            self.stdout.write(self.style.WARNING(
                f"{len(mismatches)} products out of sync. Run with --fix to repair."
            ))
            return

        repaired = 0
        with transaction.atomic():
            for product, wanted in mismatches:
                locked = Product.objects.select_for_update().get(pk=product.pk)
                if wanted > locked.quantity:
                    self.stdout.write(self.style.ERROR(
                        f"  {locked.sku}: open orders hold {wanted} but only {locked.quantity} on hand; "
                        f"capping reservation at {locked.quantity}"
                    ))
                    wanted = locked.quantity
                locked.reserved_quantity = wanted
                locked.save(update_fields=['reserved_quantity', 'updated_at'])
                repaired += 1

        self.stdout.write(self.style.SUCCESS(f"Repaired {repaired} products"))
