import logging
from dataclasses import dataclass, replace
from decimal import Decimal

from django.utils import timezone

from .balances import BalanceLedger
from .exceptions import NotFound, ValidationError
from .models import ZERO, CashIn, Currency, Customer, Sale, Supplier
from .money import to_money
from .unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentResult:
    cash_in: CashIn
    applied: Decimal
    change: Decimal
    previous_debt: Decimal
    remaining_debt: Decimal


class PaymentService:
    """Cash movements between us and our counterparties.

    The part of a payment that covers outstanding debt is booked as PAYMENT,
    anything above it as PREPAYMENT, which leaves the balance negative
    (an advance).
    """

    def __init__(self, balances=None):
        self.balances = balances or BalanceLedger()

    def receive_customer_payment(
        self,
        customer_id,
        currency,
        amount,
        method=CashIn.Method.CASH,
        note="",
        payment_date=None,
        actor=None,
    ):
        """Take money from a customer and settle their open sales oldest first."""
        amount = self._clean(currency, amount, method)
        payment_date = payment_date or timezone.now()
        with UnitOfWork() as uow:
            customer = Customer.objects.select_for_update().filter(pk=customer_id).first()
            if customer is None:
                raise NotFound("Customer not found.", customer=customer_id)
            applied, change, previous_debt = self._book(
                uow, customer, currency, amount, note, payment_date
            )
            if applied > 0:
                self._settle_sales(customer, currency, applied)
            cash_in = CashIn.objects.create(
                target_type=CashIn.Target.CUSTOMER,
                customer=customer,
                amount=amount,
                currency=currency,
                method=method,
                payment_date=payment_date,
                note=(note or "")[:255],
                recorded_by=actor,
            )

        logger.info(
            "Customer %s paid %s %s (applied %s, advance %s)",
            customer.pk,
            amount,
            currency,
            applied,
            change,
        )
        return PaymentResult(
            cash_in=cash_in,
            applied=applied,
            change=change,
            previous_debt=previous_debt,
            remaining_debt=previous_debt - applied,
        )

    def pay_supplier(
        self,
        supplier_id,
        currency,
        amount,
        method=CashIn.Method.CASH,
        note="",
        payment_date=None,
        actor=None,
    ):
        amount = self._clean(currency, amount, method)
        payment_date = payment_date or timezone.now()
        with UnitOfWork() as uow:
            supplier = Supplier.objects.select_for_update().filter(pk=supplier_id).first()
            if supplier is None:
                raise NotFound("Supplier not found.", supplier=supplier_id)
            applied, change, previous_debt = self._book(
                uow, supplier, currency, amount, note, payment_date
            )
            cash_in = CashIn.objects.create(
                target_type=CashIn.Target.SUPPLIER,
                supplier=supplier,
                amount=amount,
                currency=currency,
                method=method,
                payment_date=payment_date,
                note=(note or "")[:255],
                recorded_by=actor,
            )

        logger.info("Paid supplier %s %s %s", supplier.pk, amount, currency)
        return PaymentResult(
            cash_in=cash_in,
            applied=applied,
            change=change,
            previous_debt=previous_debt,
            remaining_debt=previous_debt - applied,
        )

    def adjust_customer_balance(self, customer_id, currency, delta, note=""):
        """Manual correction: a positive ``delta`` adds debt, a negative one removes it."""
        with UnitOfWork() as uow:
            customer = Customer.objects.filter(pk=customer_id).first()
            if customer is None:
                raise NotFound("Customer not found.", customer=customer_id)
            delta = to_money(delta, "amount")
            entry = self.balances.apply_delta(
                uow, customer, currency, -delta, note or "Balance adjusted"
            )
        logger.info("Customer %s balance adjusted by %s %s", customer.pk, delta, currency)
        return entry

    def _clean(self, currency, amount, method):
        if currency not in Currency.values:
            raise ValidationError("Unsupported currency.", currency=currency)
        if method not in CashIn.Method.values:
            raise ValidationError("Unknown payment method.", method=method)
        amount = to_money(amount, "amount")
        if amount <= 0:
            raise ValidationError("amount must be positive.", amount=amount)
        return amount

    def _book(self, uow, entity, currency, amount, note, payment_date):
        previous_debt = max(entity.balance_for(currency), ZERO)
        applied = min(amount, previous_debt)
        change = amount - applied
        if applied > 0:
            self.balances.record_payment(
                uow, entity, currency, applied, note or "Debt payment", date=payment_date
            )
        if change > 0:
            self.balances.record_payment(
                uow,
                entity,
                currency,
                change,
                note or "Advance",
                prepayment=True,
                date=payment_date,
            )
        return applied, change, previous_debt

    def _settle_sales(self, customer, currency, amount):
        suffix = currency.lower()
        sales = (
            Sale.objects.select_for_update()
            .filter(
                customer=customer,
                status=Sale.Status.COMPLETED,
                **{f"debt_{suffix}__gt": 0},
            )
            .order_by("sale_date", "id")
        )
        remaining = amount
        for sale in sales:
            if remaining <= 0:
                break
            totals = sale.totals_for(currency)
            used = min(remaining, totals.debt)
            sale.set_totals(
                currency,
                replace(totals, paid=totals.paid + used, debt=totals.debt - used),
            )
            sale.save(update_fields=[f"paid_{suffix}", f"debt_{suffix}", "updated_at"])
            remaining -= used
