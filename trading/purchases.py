import logging
from collections import defaultdict

from .balances import BalanceLedger
from .exceptions import NotFound, ValidationError
from .models import ZERO, Currency, Product, Purchase, PurchaseItem, Supplier
from .money import CENT, positive, to_money
from .stock import StockLedger
from .unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


class PurchaseService:
    """Receiving goods from suppliers.

    A purchase upserts products by (supplier, name, model, color, currency),
    puts the quantities on stock and books the batch value as supplier debt.
    Deleting a purchase undoes all three.
    """

    def __init__(self, stock=None, balances=None):
        self.stock = stock or StockLedger()
        self.balances = balances or BalanceLedger()

    def create_purchase(
        self, supplier_id, batch_no, items, paid_uzs=0, paid_usd=0, actor=None
    ):
        batch_no = (batch_no or "").strip()
        if not batch_no:
            raise ValidationError("batch_no is required.")
        if not items:
            raise ValidationError("A purchase needs at least one item.")
        lines = [self._clean_line(index, item) for index, item in enumerate(items)]
        paid = {
            Currency.UZS: to_money(paid_uzs or ZERO, "paid_uzs"),
            Currency.USD: to_money(paid_usd or ZERO, "paid_usd"),
        }
        if any(amount < 0 for amount in paid.values()):
            raise ValidationError("Paid amounts cannot be negative.")

        with UnitOfWork() as uow:
            supplier = Supplier.objects.filter(pk=supplier_id).first()
            if supplier is None:
                raise NotFound("Supplier not found.", supplier=supplier_id)

            totals = defaultdict(lambda: ZERO)
            purchase_items = []
            for line in lines:
                product, _ = Product.objects.get_or_create(
                    supplier=supplier,
                    name=line["name"],
                    model=line["model"],
                    color=line["color"],
                    warehouse_currency=line["currency"],
                    defaults={
                        "category": line["category"],
                        "unit": line["unit"],
                        "buy_price": line["buy_price"],
                        "sell_price": line["sell_price"],
                    },
                )
                product.category = line["category"] or product.category
                product.unit = line["unit"]
                product.buy_price = line["buy_price"]
                product.sell_price = line["sell_price"]
                product.is_active = True
                product.save(
                    update_fields=[
                        "category",
                        "unit",
                        "buy_price",
                        "sell_price",
                        "is_active",
                        "updated_at",
                    ]
                )
                self.stock.restock(uow, product.pk, line["qty"])

                row_total = (line["qty"] * line["buy_price"]).quantize(CENT)
                totals[line["currency"]] += row_total
                purchase_items.append(
                    PurchaseItem(
                        product=product,
                        name=line["name"],
                        model=line["model"],
                        unit=line["unit"],
                        currency=line["currency"],
                        qty=line["qty"],
                        buy_price=line["buy_price"],
                        sell_price=line["sell_price"],
                        row_total=row_total,
                    )
                )

            purchase = Purchase.objects.create(
                supplier=supplier,
                batch_no=batch_no,
                total_uzs=totals[Currency.UZS],
                total_usd=totals[Currency.USD],
                paid_uzs=paid[Currency.UZS],
                paid_usd=paid[Currency.USD],
                created_by=actor,
            )
            for item in purchase_items:
                item.purchase = purchase
            PurchaseItem.objects.bulk_create(purchase_items)

            for currency in Currency.values:
                if totals[currency] > 0:
                    self.balances.record_debt(
                        uow,
                        supplier,
                        currency,
                        totals[currency],
                        note=f"Batch {batch_no}",
                    )
                if paid[currency] > 0:
                    self.balances.record_payment(
                        uow,
                        supplier,
                        currency,
                        paid[currency],
                        note=f"Payment for batch {batch_no}",
                    )

        logger.info(
            "Purchase %s from %s: %s UZS, %s USD",
            batch_no,
            supplier,
            purchase.total_uzs,
            purchase.total_usd,
        )
        return purchase

    def delete_purchase(self, purchase_id):
        """Remove a purchase and reverse its stock and ledger effects.

        Fails with ``InsufficientStock`` when part of the batch has already
        been sold.
        """
        with UnitOfWork() as uow:
            purchase = (
                Purchase.objects.select_for_update()
                .select_related("supplier")
                .filter(pk=purchase_id)
                .first()
            )
            if purchase is None:
                raise NotFound("Purchase not found.", purchase=purchase_id)

            for item in purchase.items.all():
                self.stock.reserve_and_decrement(uow, item.product_id, item.qty)

            supplier = purchase.supplier
            for currency in Currency.values:
                suffix = currency.lower()
                total = getattr(purchase, f"total_{suffix}")
                paid = getattr(purchase, f"paid_{suffix}")
                if total > 0:
                    self.balances.record_payment(
                        uow,
                        supplier,
                        currency,
                        total,
                        note=f"Batch {purchase.batch_no} deleted",
                    )
                if paid > 0:
                    self.balances.record_debt(
                        uow,
                        supplier,
                        currency,
                        paid,
                        note=f"Payment for batch {purchase.batch_no} reversed",
                    )
            batch_no = purchase.batch_no
            purchase.delete()

        logger.info("Purchase %s (%s) deleted", purchase_id, batch_no)

    def _clean_line(self, index, item):
        name = (item.get("name") or "").strip()
        if not name:
            raise ValidationError("Item name is required.", line=index)
        currency = item.get("currency")
        if currency not in Currency.values:
            raise ValidationError("Unsupported currency.", line=index, currency=currency)
        unit = item.get("unit") or Product.Unit.DONA
        if unit not in Product.Unit.values:
            raise ValidationError("Unknown unit.", line=index, unit=unit)
        buy_price = to_money(item.get("buy_price"), "buy_price", line=index)
        sell_price = to_money(item.get("sell_price") or ZERO, "sell_price", line=index)
        if buy_price < 0 or sell_price < 0:
            raise ValidationError("Prices cannot be negative.", line=index)
        return {
            "name": name,
            "model": (item.get("model") or "").strip(),
            "color": (item.get("color") or "").strip(),
            "category": (item.get("category") or "").strip(),
            "unit": unit,
            "currency": currency,
            "qty": positive(item.get("qty"), "qty", line=index),
            "buy_price": buy_price,
            "sell_price": sell_price,
        }
