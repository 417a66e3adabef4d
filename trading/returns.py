import logging
from collections import defaultdict
from dataclasses import replace
from decimal import Decimal

from django.db.models import Sum

from .balances import BalanceLedger
from .events import get_event_publisher
from .exceptions import Conflict, InvalidState, NotFound, ValidationError
from .models import ZERO, Sale, SaleReturn, SaleReturnItem, Warehouse
from .money import CENT, positive, to_money
from .stock import StockLedger
from .unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


def returned_quantities(sale_id):
    """Total quantity already returned per ``(product_id, warehouse_id)``."""
    rows = (
        SaleReturnItem.objects.filter(sale_return__sale_id=sale_id)
        .values("product_id", "sale_return__warehouse_id")
        .annotate(total=Sum("qty"))
        .order_by()
    )
    return {
        (row["product_id"], row["sale_return__warehouse_id"]): row["total"]
        for row in rows
    }


def derive_return_status(sold, returned):
    if returned <= 0:
        return Sale.ReturnStatus.NO_RETURN
    if returned >= sold:
        return Sale.ReturnStatus.FULL_RETURN
    return Sale.ReturnStatus.PARTIAL_RETURN


class ReturnEngine:
    """Records goods coming back against a sale.

    The cumulative returned quantity for a (product, warehouse) pair of a sale
    never exceeds what was sold from that warehouse. The sale row is locked
    for the whole operation and the totals are checked again after the new
    return is written; a concurrent return that slipped past the first check
    turns into a ``Conflict`` and everything rolls back.
    """

    def __init__(self, stock=None, balances=None, publisher=None):
        self.stock = stock or StockLedger()
        self.balances = balances or BalanceLedger()
        self.publisher = publisher or get_event_publisher()

    def create_return(
        self, sale_id, warehouse_id, items, refund_type, refund_amount, actor, note=""
    ):
        if refund_type not in SaleReturn.RefundType.values:
            raise ValidationError("Unknown refund type.", refund_type=refund_type)
        refund_amount = to_money(refund_amount or ZERO, "refund_amount")
        if not items:
            raise ValidationError("A return needs at least one item.", sale=sale_id)

        with UnitOfWork(self.publisher) as uow:
            sale = (
                Sale.objects.select_for_update()
                .select_related("customer")
                .filter(pk=sale_id)
                .first()
            )
            if sale is None:
                raise NotFound("Sale not found.", sale=sale_id)
            if sale.status != Sale.Status.COMPLETED:
                raise InvalidState(
                    "Canceled sales cannot take returns.", sale=sale.pk, status=sale.status
                )
            warehouse = Warehouse.objects.filter(pk=warehouse_id).first()
            if warehouse is None:
                raise NotFound("Warehouse not found.", warehouse=warehouse_id)

            sold = defaultdict(Decimal)
            sale_lines = {}
            for sale_item in sale.items.all():
                key = (sale_item.product_id, sale_item.warehouse_id)
                sold[key] += sale_item.qty
                sale_lines.setdefault(key, sale_item)

            returned = returned_quantities(sale.pk)
            requested = defaultdict(Decimal)
            lines = []
            for index, item in enumerate(items):
                product_id = item.get("product")
                key = (product_id, warehouse.pk)
                if key not in sold:
                    raise ValidationError(
                        "Product was not sold from this warehouse.",
                        line=index,
                        product=product_id,
                        warehouse=warehouse.pk,
                    )
                qty = positive(item.get("qty"), "qty", line=index, product=product_id)
                already = returned.get(key, ZERO) + requested[key]
                if already + qty > sold[key]:
                    raise ValidationError(
                        "Return exceeds the sold quantity.",
                        line=index,
                        product=product_id,
                        warehouse=warehouse.pk,
                        sold=sold[key],
                        returned=already,
                        requested=qty,
                    )
                requested[key] += qty
                sale_line = sale_lines[key]
                lines.append(
                    SaleReturnItem(
                        product_id=product_id,
                        name_snapshot=sale_line.name_snapshot,
                        qty=qty,
                        price=sale_line.price,
                        subtotal=(sale_line.price * qty).quantize(CENT),
                        reason=(item.get("reason") or "")[:255],
                    )
                )

            return_subtotal = sum((line.subtotal for line in lines), ZERO)
            self._check_refund(refund_type, refund_amount, return_subtotal)

            sale_return = SaleReturn.objects.create(
                sale=sale,
                warehouse=warehouse,
                customer=sale.customer,
                currency=warehouse.currency,
                refund_type=refund_type,
                refund_amount=refund_amount,
                return_subtotal=return_subtotal,
                note=(note or "")[:300],
                created_by=actor,
            )
            for line in lines:
                line.sale_return = sale_return
            SaleReturnItem.objects.bulk_create(lines)

            for (product_id, _), qty in requested.items():
                self.stock.restock(uow, product_id, qty)

            update_fields = ["return_status", "updated_at"]
            if refund_type == SaleReturn.RefundType.BALANCE and refund_amount > 0:
                if sale.customer is None:
                    raise ValidationError(
                        "Balance refunds need a customer on the sale.", sale=sale.pk
                    )
                self.balances.record_payment(
                    uow,
                    sale.customer,
                    warehouse.currency,
                    refund_amount,
                    note=f"Return for {sale.invoice_no}",
                )
                sale_totals = sale.totals_for(warehouse.currency)
                cleared = min(refund_amount, sale_totals.debt)
                if cleared > 0:
                    sale.set_totals(
                        warehouse.currency,
                        replace(sale_totals, debt=sale_totals.debt - cleared),
                    )
                    update_fields.append(f"debt_{warehouse.currency.lower()}")

            totals = returned_quantities(sale.pk)
            for key in requested:
                if totals.get(key, ZERO) > sold[key]:
                    raise Conflict(
                        "Concurrent return exceeded the sold quantity.",
                        sale=sale.pk,
                        product=key[0],
                        warehouse=key[1],
                    )

            sale.return_status = derive_return_status(
                sum(sold.values(), ZERO), sum(totals.values(), ZERO)
            )
            sale.save(update_fields=update_fields)

        logger.info(
            "Return %s recorded for %s (%s %s, refund %s)",
            sale_return.pk,
            sale.invoice_no,
            return_subtotal,
            warehouse.currency,
            refund_type,
        )
        return sale_return

    def _check_refund(self, refund_type, refund_amount, return_subtotal):
        if refund_type == SaleReturn.RefundType.NO_REFUND:
            if refund_amount != 0:
                raise ValidationError(
                    "NO_REFUND returns cannot carry a refund amount.",
                    refund_amount=refund_amount,
                )
            return
        if refund_amount < 0 or refund_amount > return_subtotal:
            raise ValidationError(
                "Refund amount must be between zero and the returned value.",
                refund_amount=refund_amount,
                return_subtotal=return_subtotal,
            )

