"""Order confirmation, counter sales and cancellation.

An order moves NEW -> CONFIRMED or NEW -> CANCELED exactly once. Confirming
decrements stock for every line, freezes the lines into a ``Sale`` and books
the customer's debt, all inside one unit of work. A counter sale does the same
without an order and can carry a discount and payments taken at the till.
"""

import logging
from collections import defaultdict
from decimal import Decimal

from django.conf import settings
from django.db.models import F
from django.utils import timezone

from .balances import BalanceLedger
from .events import (
    ORDER_CANCELED,
    ORDER_CONFIRMED,
    SALE_CANCELED,
    SALE_CREATED,
    get_event_publisher,
)
from .exceptions import InsufficientStock, InvalidState, NotFound, ValidationError
from .models import (
    ZERO,
    CashIn,
    Currency,
    CurrencyTotals,
    Customer,
    InvoiceCounter,
    Order,
    Product,
    Sale,
    SaleItem,
    Warehouse,
)
from .money import CENT, positive, to_money
from .returns import returned_quantities
from .stock import StockLedger
from .unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


def _trading_setting(name, default):
    return getattr(settings, "TRADING", {}).get(name, default)


class ConfirmationEngine:
    def __init__(self, stock=None, balances=None, publisher=None):
        self.stock = stock or StockLedger()
        self.balances = balances or BalanceLedger()
        self.publisher = publisher or get_event_publisher()

    def next_invoice_no(self, uow, year=None):
        """Allocate the next ``S-<year>-<000001>`` number.

        The counter row is bumped with a single UPDATE, which holds its row
        lock until the surrounding transaction ends, so two confirmations can
        never read the same value. A rolled back confirmation leaves a gap.
        """
        uow.ensure_active()
        year = year or timezone.localdate().year
        InvoiceCounter.objects.get_or_create(year=year)
        InvoiceCounter.objects.filter(year=year).update(last_value=F("last_value") + 1)
        value = InvoiceCounter.objects.values_list("last_value", flat=True).get(year=year)
        prefix = _trading_setting("INVOICE_PREFIX", "S")
        return f"{prefix}-{year}-{value:06d}"

    def confirm_order(self, order_id, actor):
        order = Order.objects.select_related("customer").filter(pk=order_id).first()
        if order is None:
            raise NotFound("Order not found.", order=order_id)
        if order.status != Order.Status.NEW:
            raise InvalidState(
                "Only NEW orders can be confirmed.", order=order.pk, status=order.status
            )
        items = list(order.items.all())

        with UnitOfWork(self.publisher) as uow:
            now = timezone.now()
            claimed = Order.objects.filter(pk=order.pk, status=Order.Status.NEW).update(
                status=Order.Status.CONFIRMED,
                confirmed_at=now,
                confirmed_by=actor,
                updated_at=now,
            )
            if not claimed:
                raise InvalidState("Order was already processed.", order=order.pk)

            products = {}
            for index, item in enumerate(items):
                try:
                    products[item.product_id] = self.stock.reserve_and_decrement(
                        uow, item.product_id, item.qty
                    )
                except (InsufficientStock, NotFound) as err:
                    raise type(err)(
                        err.message, code=err.code, line=index, **err.context
                    ) from err

            warehouses = self._resolve_warehouses({i.currency_snapshot for i in items})

            subtotals = defaultdict(lambda: ZERO)
            for item in items:
                subtotals[item.currency_snapshot] += item.subtotal

            sale = Sale(
                invoice_no=self.next_invoice_no(uow, timezone.localtime(now).year),
                order=order,
                sold_by=actor,
                customer=order.customer,
                customer_name=order.customer.name,
                customer_phone=order.customer.phone,
                customer_address=order.customer.address,
                sale_date=now,
                note=order.note,
            )
            for currency in Currency.values:
                subtotal = subtotals[currency]
                sale.set_totals(
                    currency,
                    CurrencyTotals(subtotal=subtotal, grand_total=subtotal, debt=subtotal),
                )
            sale.save()
            SaleItem.objects.bulk_create(
                [
                    SaleItem(
                        sale=sale,
                        product_id=item.product_id,
                        name_snapshot=item.name_snapshot,
                        unit_snapshot=item.unit_snapshot,
                        warehouse=warehouses[item.currency_snapshot],
                        currency=item.currency_snapshot,
                        qty=item.qty,
                        price=item.price_snapshot,
                        buy_price=products[item.product_id].buy_price,
                        subtotal=item.subtotal,
                    )
                    for item in items
                ]
            )

            for currency in Currency.values:
                debt = sale.totals_for(currency).debt
                if debt > 0:
                    self.balances.record_debt(
                        uow,
                        order.customer,
                        currency,
                        debt,
                        note=f"Sale {sale.invoice_no}",
                        date=now,
                    )

            uow.publish(
                ORDER_CONFIRMED,
                {"order_id": order.pk, "sale_id": sale.pk, "invoice_no": sale.invoice_no},
            )

        logger.info("Order %s confirmed as %s by %s", order.pk, sale.invoice_no, actor)
        return sale

    def create_direct_sale(
        self,
        items,
        actor,
        customer_id=None,
        customer_name="",
        customer_phone="",
        customer_address="",
        discounts=None,
        payments=None,
        note="",
        sale_date=None,
    ):
        """Sell over the counter, without an agent order.

        ``items`` are ``{"product", "qty", "price"}`` dicts; ``price`` falls back
        to the product's sell price. ``discounts`` maps a currency to the amount
        taken off that currency's subtotal. ``payments`` are
        ``{"currency", "amount", "method"}`` dicts received at the till, each
        kept as a ``CashIn``. Whatever stays unpaid is booked as customer debt.

        A name without ``customer_id`` registers a new customer. A sale with no
        customer at all must be paid in full.
        """
        if not items:
            raise ValidationError("A sale needs at least one item.")
        customer_name = (customer_name or "").strip()[:120]

        products = Product.objects.in_bulk(
            {item.get("product") for item in items if item.get("product") is not None}
        )
        lines = [
            self._direct_line(index, item, products) for index, item in enumerate(items)
        ]
        payments = [
            self._direct_payment(index, payment)
            for index, payment in enumerate(payments or [])
        ]
        totals = self._direct_totals(lines, discounts or {}, payments)
        if customer_id is None and not customer_name:
            for currency, currency_totals in totals.items():
                if currency_totals.debt > 0:
                    raise ValidationError(
                        "Walk-in sales must be paid in full.",
                        currency=currency,
                        debt=currency_totals.debt,
                    )
        sale_date = sale_date or timezone.now()

        with UnitOfWork(self.publisher) as uow:
            customer = None
            if customer_id is not None:
                customer = Customer.objects.filter(pk=customer_id).first()
                if customer is None:
                    raise NotFound("Customer not found.", customer=customer_id)
            elif customer_name:
                customer = Customer.objects.create(
                    name=customer_name,
                    phone=(customer_phone or "").replace(" ", "")[:30],
                    address=(customer_address or "").strip()[:250],
                )

            sold = {}
            for index, line in enumerate(lines):
                try:
                    sold[line.product_id] = self.stock.reserve_and_decrement(
                        uow, line.product_id, line.qty
                    )
                except (InsufficientStock, NotFound) as err:
                    raise type(err)(
                        err.message, code=err.code, line=index, **err.context
                    ) from err

            warehouses = self._resolve_warehouses({line.currency for line in lines})

            sale = Sale(
                invoice_no=self.next_invoice_no(uow, timezone.localtime(sale_date).year),
                sold_by=actor,
                customer=customer,
                customer_name=customer.name if customer else "",
                customer_phone=customer.phone if customer else "",
                customer_address=customer.address if customer else "",
                sale_date=sale_date,
                note=(note or "").strip()[:500],
            )
            for currency, currency_totals in totals.items():
                sale.set_totals(currency, currency_totals)
            sale.save()

            for line in lines:
                line.sale = sale
                line.warehouse = warehouses[line.currency]
                line.buy_price = sold[line.product_id].buy_price
            SaleItem.objects.bulk_create(lines)

            CashIn.objects.bulk_create(
                [
                    CashIn(
                        target_type=CashIn.Target.CUSTOMER,
                        customer=customer,
                        amount=amount,
                        currency=currency,
                        method=method,
                        payment_date=sale_date,
                        note=f"Sale {sale.invoice_no}",
                        recorded_by=actor,
                    )
                    for currency, amount, method in payments
                ]
            )

            if customer is not None:
                for currency, currency_totals in totals.items():
                    if currency_totals.debt > 0:
                        self.balances.record_debt(
                            uow,
                            customer,
                            currency,
                            currency_totals.debt,
                            note=f"Sale {sale.invoice_no}",
                            date=sale_date,
                        )

            uow.publish(
                SALE_CREATED,
                {
                    "sale_id": sale.pk,
                    "invoice_no": sale.invoice_no,
                    "customer_id": customer.pk if customer else None,
                },
            )

        logger.info(
            "Direct sale %s by %s (%s lines, %s payments)",
            sale.invoice_no,
            actor,
            len(lines),
            len(payments),
        )
        return sale

    def cancel_order(self, order_id, actor, reason=""):
        reason = self._reason(reason, "Canceled")
        with UnitOfWork(self.publisher) as uow:
            order = Order.objects.filter(pk=order_id).first()
            if order is None:
                raise NotFound("Order not found.", order=order_id)
            now = timezone.now()
            canceled = Order.objects.filter(pk=order.pk, status=Order.Status.NEW).update(
                status=Order.Status.CANCELED,
                canceled_at=now,
                canceled_by=actor,
                cancel_reason=reason,
                updated_at=now,
            )
            if not canceled:
                raise InvalidState(
                    "Only NEW orders can be canceled.", order=order.pk, status=order.status
                )
            uow.publish(ORDER_CANCELED, {"order_id": order.pk, "reason": reason})

        order.refresh_from_db()
        logger.info("Order %s canceled by %s", order.pk, actor)
        return order

    def cancel_sale(self, sale_id, actor, reason=""):
        """Cancel a completed sale and put the unreturned goods back on stock.

        Balances and sale totals are left untouched.
        """
        reason = self._reason(reason, "Sale canceled")
        with UnitOfWork(self.publisher) as uow:
            sale = Sale.objects.select_for_update().filter(pk=sale_id).first()
            if sale is None:
                raise NotFound("Sale not found.", sale=sale_id)
            if sale.status != Sale.Status.COMPLETED:
                raise InvalidState(
                    "Sale is already canceled.", sale=sale.pk, status=sale.status
                )

            sold = defaultdict(Decimal)
            for item in sale.items.all():
                sold[(item.product_id, item.warehouse_id)] += item.qty
            returned = returned_quantities(sale.pk)
            for (product_id, warehouse_id), qty in sold.items():
                remaining = qty - returned.get((product_id, warehouse_id), 0)
                if remaining > 0:
                    self.stock.restock(uow, product_id, remaining)

            sale.status = Sale.Status.CANCELED
            sale.canceled_at = timezone.now()
            sale.canceled_by = actor
            sale.cancel_reason = reason
            sale.save(
                update_fields=[
                    "status",
                    "canceled_at",
                    "canceled_by",
                    "cancel_reason",
                    "updated_at",
                ]
            )
            uow.publish(
                SALE_CANCELED,
                {"sale_id": sale.pk, "invoice_no": sale.invoice_no, "reason": reason},
            )

        logger.info("Sale %s canceled by %s", sale.invoice_no, actor)
        return sale

    def _resolve_warehouses(self, currencies):
        warehouses = {
            warehouse.currency: warehouse
            for warehouse in Warehouse.objects.filter(currency__in=currencies)
        }
        for currency in sorted(currencies):
            if currency not in warehouses:
                raise NotFound(
                    "No warehouse for currency.",
                    code="warehouse_missing",
                    currency=currency,
                )
        return warehouses

    def _reason(self, reason, default):
        limit = _trading_setting("CANCEL_REASON_MAX_LENGTH", 300)
        return (reason or "").strip()[:limit] or default

    def _direct_line(self, index, item, products):
        product = products.get(item.get("product"))
        if product is None or not product.is_active:
            raise ValidationError(
                "Product not found or inactive.", line=index, product=item.get("product")
            )
        if product.warehouse_currency not in Currency.values:
            raise ValidationError(
                "Unsupported currency.",
                line=index,
                product=product.pk,
                currency=product.warehouse_currency,
            )
        qty = positive(item.get("qty"), "qty", line=index, product=product.pk)
        price = item.get("price")
        if price is None:
            price = product.sell_price
        price = positive(price, "price", line=index, product=product.pk).quantize(CENT)
        return SaleItem(
            product=product,
            name_snapshot=product.name,
            unit_snapshot=product.unit,
            currency=product.warehouse_currency,
            qty=qty,
            price=price,
            subtotal=(qty * price).quantize(CENT),
        )

    def _direct_payment(self, index, payment):
        currency = payment.get("currency")
        if currency not in Currency.values:
            raise ValidationError("Unsupported currency.", payment=index, currency=currency)
        method = payment.get("method") or CashIn.Method.CASH
        if method not in CashIn.Method.values:
            raise ValidationError("Unknown payment method.", payment=index, method=method)
        amount = positive(payment.get("amount"), "amount", payment=index).quantize(CENT)
        return currency, amount, method

    def _direct_totals(self, lines, discounts, payments):
        unknown = set(discounts) - set(Currency.values)
        if unknown:
            raise ValidationError("Unsupported currency.", currency=sorted(unknown)[0])
        totals = {}
        for currency in Currency.values:
            subtotal = sum(
                (line.subtotal for line in lines if line.currency == currency), ZERO
            )
            discount = to_money(
                discounts.get(currency) or ZERO, "discount", currency=currency
            )
            if discount < 0 or discount > subtotal:
                raise ValidationError(
                    "Discount must be between zero and the subtotal.",
                    currency=currency,
                    discount=discount,
                    subtotal=subtotal,
                )
            grand_total = subtotal - discount
            paid = sum(
                (amount for cur, amount, _ in payments if cur == currency), ZERO
            )
            if paid > grand_total:
                raise ValidationError(
                    "Payment exceeds the amount due.",
                    currency=currency,
                    paid=paid,
                    grand_total=grand_total,
                )
            totals[currency] = CurrencyTotals(
                subtotal=subtotal,
                discount=discount,
                grand_total=grand_total,
                paid=paid,
                debt=grand_total - paid,
            )
        return totals
