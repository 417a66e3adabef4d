import logging
from decimal import Decimal

from django.db.models import F

from .exceptions import InsufficientStock, NotFound, ValidationError
from .models import Product, ProductWriteOff
from .money import CENT, positive, to_decimal

logger = logging.getLogger(__name__)


class StockLedger:
    """Quantity adjustments for a single product.

    Each adjustment is one conditional UPDATE, so concurrent workers never need
    a lock to keep ``Product.qty`` non-negative. Calls must run inside a
    :class:`~trading.unit_of_work.UnitOfWork` so that multi-line operations
    roll back together.
    """

    def reserve_and_decrement(self, uow, product_id, qty):
        uow.ensure_active()
        qty = positive(qty, "qty", product=product_id)
        updated = Product.objects.filter(pk=product_id, qty__gte=qty).update(
            qty=F("qty") - qty
        )
        if not updated:
            current = (
                Product.objects.filter(pk=product_id).values_list("qty", flat=True).first()
            )
            if current is None:
                raise NotFound("Product not found.", product=product_id)
            raise InsufficientStock(
                "Not enough stock.",
                product=product_id,
                requested=qty,
                available=current,
            )
        return Product.objects.get(pk=product_id)

    def restock(self, uow, product_id, qty):
        """Add ``qty`` back to stock.

        A negative ``qty`` is an adjustment; if it would take stock below zero
        the quantity is clamped to zero and the shortfall is logged.
        """
        uow.ensure_active()
        qty = to_decimal(qty, "qty", product=product_id)
        if qty >= 0:
            updated = Product.objects.filter(pk=product_id).update(qty=F("qty") + qty)
            if not updated:
                raise NotFound("Product not found.", product=product_id)
            return Product.objects.get(pk=product_id)

        product = Product.objects.select_for_update().filter(pk=product_id).first()
        if product is None:
            raise NotFound("Product not found.", product=product_id)
        new_qty = product.qty + qty
        if new_qty < 0:
            logger.warning(
                "Stock underflow clamped to zero: product=%s qty=%s adjustment=%s",
                product_id,
                product.qty,
                qty,
            )
            new_qty = Decimal("0")
        product.qty = new_qty
        product.save(update_fields=["qty", "updated_at"])
        return product

    def write_off(self, uow, product_id, qty, reason, actor=None):
        """Remove damaged or lost goods and record the loss at buy price."""
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("A write-off reason is required.", product=product_id)
        qty = positive(qty, "qty", product=product_id)
        product = self.reserve_and_decrement(uow, product_id, qty)
        write_off = ProductWriteOff.objects.create(
            product=product,
            qty=qty,
            currency=product.warehouse_currency,
            loss_amount=(qty * product.buy_price).quantize(CENT),
            reason=reason[:255],
            created_by=actor,
        )
        logger.info(
            "Wrote off %s of product %s (%s)", qty, product_id, write_off.loss_amount
        )
        return write_off

