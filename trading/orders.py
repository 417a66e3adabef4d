import logging

from .events import ORDER_CREATED, get_event_publisher
from .exceptions import NotFound, ValidationError
from .models import ZERO, Currency, Customer, Order, OrderItem, Product
from .money import CENT, positive
from .unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


class OrderService:
    """Accepts agent orders and freezes product data onto each line."""

    def __init__(self, publisher=None):
        self.publisher = publisher or get_event_publisher()

    def create_order(self, customer_id, items, agent, note=""):
        if not items:
            raise ValidationError("An order needs at least one item.")

        customer = Customer.objects.filter(pk=customer_id).first()
        if customer is None:
            raise NotFound("Customer not found.", customer=customer_id)

        products = Product.objects.in_bulk(
            {item.get("product") for item in items if item.get("product") is not None}
        )
        lines = [
            self._build_line(index, item, products) for index, item in enumerate(items)
        ]

        totals = {currency: ZERO for currency in Currency.values}
        for line in lines:
            totals[line.currency_snapshot] += line.subtotal

        with UnitOfWork(self.publisher) as uow:
            order = Order.objects.create(
                agent=agent,
                customer=customer,
                note=(note or "").strip()[:500],
                total_uzs=totals[Currency.UZS],
                total_usd=totals[Currency.USD],
            )
            for line in lines:
                line.order = order
            OrderItem.objects.bulk_create(lines)
            uow.publish(
                ORDER_CREATED,
                {
                    "order_id": order.pk,
                    "agent_id": agent.pk,
                    "total_uzs": str(order.total_uzs),
                    "total_usd": str(order.total_usd),
                },
            )

        logger.info("Order %s created by %s (%s lines)", order.pk, agent, len(lines))
        return order

    def _build_line(self, index, item, products):
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
        if product.sell_price <= 0:
            raise ValidationError("Product has no sell price.", line=index, product=product.pk)
        qty = positive(item.get("qty"), "qty", line=index, product=product.pk)
        return OrderItem(
            product=product,
            name_snapshot=product.name,
            unit_snapshot=product.unit,
            price_snapshot=product.sell_price,
            currency_snapshot=product.warehouse_currency,
            qty=qty,
            subtotal=(qty * product.sell_price).quantize(CENT),
        )
