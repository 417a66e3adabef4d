import logging

from django.utils import timezone

from .exceptions import ValidationError
from .models import BalanceEntry, Currency, Customer, Supplier
from .money import to_money

logger = logging.getLogger(__name__)


class BalanceLedger:
    """Append-only balance book for customers and suppliers.

    Sign convention for ``signed_amount``: a positive amount is money received
    or paid against the balance and lowers it; a negative amount is new debt and
    raises it. Every mutation appends one ``BalanceEntry`` carrying the absolute
    amount, so replaying the entries from the opening balance always yields the
    stored balance.
    """

    def apply_delta(
        self, uow, entity, currency, signed_amount, note="", direction=None, date=None
    ):
        uow.ensure_active()
        if currency not in Currency.values:
            raise ValidationError("Unsupported currency.", currency=currency)
        signed_amount = to_money(signed_amount, "amount", currency=currency)
        if signed_amount == 0:
            raise ValidationError("Balance delta must be non-zero.", currency=currency)
        if direction is None:
            direction = (
                BalanceEntry.Direction.PAYMENT
                if signed_amount > 0
                else BalanceEntry.Direction.DEBT
            )
        elif (direction == BalanceEntry.Direction.DEBT) != (signed_amount < 0):
            raise ValidationError(
                "Direction does not match the sign of the amount.",
                direction=direction,
                amount=signed_amount,
            )

        locked = type(entity).objects.select_for_update().get(pk=entity.pk)
        field = f"balance_{currency.lower()}"
        new_balance = getattr(locked, field) - signed_amount
        setattr(locked, field, new_balance)
        locked.save(update_fields=[field, "updated_at"])
        setattr(entity, field, new_balance)

        entry = BalanceEntry.objects.create(
            currency=currency,
            amount=abs(signed_amount),
            direction=direction,
            note=(note or "")[:255],
            date=date or timezone.now(),
            balance_after=new_balance,
            **_owner(entity),
        )
        logger.debug(
            "%s %s %s %s -> %s",
            type(entity).__name__,
            entity.pk,
            direction,
            entry.amount,
            new_balance,
        )
        return entry

    def record_debt(self, uow, entity, currency, amount, note="", date=None):
        return self.apply_delta(
            uow,
            entity,
            currency,
            -to_money(amount),
            note,
            BalanceEntry.Direction.DEBT,
            date,
        )

    def record_payment(
        self, uow, entity, currency, amount, note="", prepayment=False, date=None
    ):
        direction = (
            BalanceEntry.Direction.PREPAYMENT
            if prepayment
            else BalanceEntry.Direction.PAYMENT
        )
        return self.apply_delta(
            uow, entity, currency, to_money(amount), note, direction, date
        )

    def history(self, entity, currency=None):
        entries = BalanceEntry.objects.filter(**_owner(entity))
        if currency:
            entries = entries.filter(currency=currency)
        return entries.order_by("created_at", "id")

    def replay(self, entity, currency, opening=None):
        """Rebuild the balance for ``currency`` from the payment history."""
        balance = entity.opening_balance_for(currency) if opening is None else opening
        for entry in self.history(entity, currency):
            balance += entry.signed_amount
        return balance


def _owner(entity):
    if isinstance(entity, Customer):
        return {"customer": entity}
    if isinstance(entity, Supplier):
        return {"supplier": entity}
    raise TypeError(f"{type(entity).__name__} has no balance ledger")
