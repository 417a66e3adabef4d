from dataclasses import dataclass
from decimal import Decimal

from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone

ZERO = Decimal("0.00")
MONEY = dict(max_digits=18, decimal_places=2, default=ZERO)
QTY = dict(max_digits=14, decimal_places=3)


class Currency(models.TextChoices):
    UZS = "UZS", "UZS"
    USD = "USD", "USD"


class TimeStampedModel(models.Model):
    """Abstract base model adding created/updated timestamps."""

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class Counterparty(TimeStampedModel):
    """Anyone we keep a two-currency balance with.

    A positive balance is outstanding debt (the customer owes us, or we owe the
    supplier); a negative balance is an advance. Balances only move through
    ``trading.balances.BalanceLedger`` so that ``entries`` always replays to them.
    """

    name = models.CharField(max_length=120)
    phone = models.CharField(max_length=30, blank=True)
    balance_uzs = models.DecimalField(**MONEY)
    balance_usd = models.DecimalField(**MONEY)
    opening_balance_uzs = models.DecimalField(**MONEY)
    opening_balance_usd = models.DecimalField(**MONEY)
    is_active = models.BooleanField(default=True)

    class Meta:
        abstract = True

    def balance_for(self, currency):
        return getattr(self, f"balance_{currency.lower()}")

    def opening_balance_for(self, currency):
        return getattr(self, f"opening_balance_{currency.lower()}")

    @property
    def balance(self):
        return {Currency.UZS: self.balance_uzs, Currency.USD: self.balance_usd}

    def __str__(self):
        return self.name


class Supplier(Counterparty):
    class Meta:
        ordering = ["name"]


class Customer(Counterparty):
    address = models.CharField(max_length=250, blank=True)
    note = models.CharField(max_length=300, blank=True)

    class Meta:
        ordering = ["name"]
        indexes = [
            models.Index(fields=["name", "phone"], name="customer_name_phone_idx")
        ]


class BalanceEntry(TimeStampedModel):
    """One line of a counterparty's payment history. Never edited or deleted."""

    class Direction(models.TextChoices):
        DEBT = "DEBT", "Debt"
        PAYMENT = "PAYMENT", "Payment"
        PREPAYMENT = "PREPAYMENT", "Prepayment"

    customer = models.ForeignKey(
        Customer,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="entries",
    )
    supplier = models.ForeignKey(
        Supplier,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="entries",
    )
    currency = models.CharField(max_length=3, choices=Currency.choices)
    amount = models.DecimalField(max_digits=18, decimal_places=2)
    direction = models.CharField(max_length=12, choices=Direction.choices)
    note = models.CharField(max_length=255, blank=True)
    date = models.DateTimeField(default=timezone.now)
    balance_after = models.DecimalField(max_digits=18, decimal_places=2)

    class Meta:
        ordering = ["created_at", "id"]
        verbose_name_plural = "Balance entries"
        constraints = [
            models.CheckConstraint(
                condition=Q(amount__gte=0), name="balance_entry_amount_non_negative"
            ),
            models.CheckConstraint(
                condition=(
                    Q(customer__isnull=False, supplier__isnull=True)
                    | Q(customer__isnull=True, supplier__isnull=False)
                ),
                name="balance_entry_single_owner",
            ),
        ]

    @property
    def signed_amount(self):
        """Effect of this entry on the running balance."""
        if self.direction == self.Direction.DEBT:
            return self.amount
        return -self.amount

    def __str__(self):
        return f"{self.direction} {self.amount} {self.currency}"


class Warehouse(TimeStampedModel):
    """Currency-scoped stock partition. Exactly one exists per currency."""

    name = models.CharField(max_length=150, unique=True)
    currency = models.CharField(max_length=3, choices=Currency.choices, unique=True)

    def __str__(self):
        return f"{self.name} ({self.currency})"


class Product(TimeStampedModel):
    class Unit(models.TextChoices):
        DONA = "DONA", "Piece"
        PACHKA = "PACHKA", "Pack"
        KG = "KG", "Kilogram"

    supplier = models.ForeignKey(
        Supplier, on_delete=models.PROTECT, related_name="products"
    )
    name = models.CharField(max_length=200)
    model = models.CharField(max_length=120, blank=True)
    color = models.CharField(max_length=60, blank=True)
    category = models.CharField(max_length=120, blank=True)
    unit = models.CharField(max_length=10, choices=Unit.choices, default=Unit.DONA)
    warehouse_currency = models.CharField(max_length=3, choices=Currency.choices)
    qty = models.DecimalField(default=Decimal("0"), **QTY)
    buy_price = models.DecimalField(**MONEY)
    sell_price = models.DecimalField(**MONEY)
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["name"]
        constraints = [
            models.CheckConstraint(
                condition=Q(qty__gte=0), name="product_qty_non_negative"
            ),
            models.UniqueConstraint(
                fields=["supplier", "name", "model", "color", "warehouse_currency"],
                name="unique_product_per_supplier_currency",
            ),
        ]

    def __str__(self):
        return f"{self.name} ({self.warehouse_currency})"


class Order(TimeStampedModel):
    """Pending order submitted by an agent, awaiting a cashier's decision."""

    class Status(models.TextChoices):
        NEW = "NEW", "New"
        CONFIRMED = "CONFIRMED", "Confirmed"
        CANCELED = "CANCELED", "Canceled"

    agent = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="submitted_orders",
    )
    customer = models.ForeignKey(
        Customer, on_delete=models.PROTECT, related_name="orders"
    )
    note = models.CharField(max_length=500, blank=True)
    total_uzs = models.DecimalField(**MONEY)
    total_usd = models.DecimalField(**MONEY)
    status = models.CharField(
        max_length=10, choices=Status.choices, default=Status.NEW, db_index=True
    )
    confirmed_at = models.DateTimeField(null=True, blank=True)
    confirmed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="confirmed_orders",
    )
    canceled_at = models.DateTimeField(null=True, blank=True)
    canceled_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="canceled_orders",
    )
    cancel_reason = models.CharField(max_length=300, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["agent", "created_at"], name="order_agent_created_idx"
            ),
            models.Index(
                fields=["customer", "created_at"], name="order_customer_created_idx"
            ),
        ]

    @property
    def is_terminal(self):
        return self.status != self.Status.NEW

    def __str__(self):
        return f"Order #{self.pk} ({self.status})"


class OrderItem(models.Model):
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="items")
    product = models.ForeignKey(
        Product, on_delete=models.PROTECT, related_name="order_items"
    )
    name_snapshot = models.CharField(max_length=200)
    unit_snapshot = models.CharField(max_length=10, blank=True)
    price_snapshot = models.DecimalField(max_digits=18, decimal_places=2)
    currency_snapshot = models.CharField(max_length=3, choices=Currency.choices)
    qty = models.DecimalField(**QTY)
    subtotal = models.DecimalField(max_digits=18, decimal_places=2)

    class Meta:
        ordering = ["order", "id"]

    def __str__(self):
        return f"{self.name_snapshot} x{self.qty}"


class InvoiceCounter(models.Model):
    """Per-year invoice sequence; see ConfirmationEngine.next_invoice_no."""

    year = models.PositiveIntegerField(unique=True)
    last_value = models.PositiveIntegerField(default=0)

    def __str__(self):
        return f"{self.year}: {self.last_value}"


@dataclass(frozen=True)
class CurrencyTotals:
    subtotal: Decimal = ZERO
    discount: Decimal = ZERO
    grand_total: Decimal = ZERO
    paid: Decimal = ZERO
    debt: Decimal = ZERO


class Sale(TimeStampedModel):
    """Finalized sale. Only ``return_status``, the cancel fields and the
    ``paid``/``debt`` columns (payments and balance refunds) change after
    creation."""

    class Status(models.TextChoices):
        COMPLETED = "COMPLETED", "Completed"
        CANCELED = "CANCELED", "Canceled"

    class ReturnStatus(models.TextChoices):
        NO_RETURN = "NO_RETURN", "No return"
        PARTIAL_RETURN = "PARTIAL_RETURN", "Partial return"
        FULL_RETURN = "FULL_RETURN", "Full return"

    invoice_no = models.CharField(max_length=50, unique=True)
    order = models.OneToOneField(
        Order,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="sale",
    )
    sold_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="sales"
    )
    customer = models.ForeignKey(
        Customer,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="sales",
    )
    customer_name = models.CharField(max_length=120, blank=True)
    customer_phone = models.CharField(max_length=30, blank=True)
    customer_address = models.CharField(max_length=250, blank=True)
    sale_date = models.DateTimeField(default=timezone.now)
    note = models.CharField(max_length=500, blank=True)

    subtotal_uzs = models.DecimalField(**MONEY)
    discount_uzs = models.DecimalField(**MONEY)
    grand_total_uzs = models.DecimalField(**MONEY)
    paid_uzs = models.DecimalField(**MONEY)
    debt_uzs = models.DecimalField(**MONEY)
    subtotal_usd = models.DecimalField(**MONEY)
    discount_usd = models.DecimalField(**MONEY)
    grand_total_usd = models.DecimalField(**MONEY)
    paid_usd = models.DecimalField(**MONEY)
    debt_usd = models.DecimalField(**MONEY)

    status = models.CharField(
        max_length=10, choices=Status.choices, default=Status.COMPLETED, db_index=True
    )
    return_status = models.CharField(
        max_length=16, choices=ReturnStatus.choices, default=ReturnStatus.NO_RETURN
    )
    canceled_at = models.DateTimeField(null=True, blank=True)
    canceled_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="canceled_sales",
    )
    cancel_reason = models.CharField(max_length=300, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["customer", "sale_date"], name="sale_customer_date_idx"
            ),
            models.Index(
                fields=["status", "created_at"], name="sale_status_created_idx"
            ),
        ]

    def totals_for(self, currency):
        suffix = currency.lower()
        return CurrencyTotals(
            subtotal=getattr(self, f"subtotal_{suffix}"),
            discount=getattr(self, f"discount_{suffix}"),
            grand_total=getattr(self, f"grand_total_{suffix}"),
            paid=getattr(self, f"paid_{suffix}"),
            debt=getattr(self, f"debt_{suffix}"),
        )

    def set_totals(self, currency, totals):
        suffix = currency.lower()
        setattr(self, f"subtotal_{suffix}", totals.subtotal)
        setattr(self, f"discount_{suffix}", totals.discount)
        setattr(self, f"grand_total_{suffix}", totals.grand_total)
        setattr(self, f"paid_{suffix}", totals.paid)
        setattr(self, f"debt_{suffix}", totals.debt)

    @property
    def currency_totals(self):
        return {currency: self.totals_for(currency) for currency in Currency.values}

    def __str__(self):
        return self.invoice_no


class SaleItem(models.Model):
    sale = models.ForeignKey(Sale, on_delete=models.CASCADE, related_name="items")
    product = models.ForeignKey(
        Product, on_delete=models.PROTECT, related_name="sale_items"
    )
    name_snapshot = models.CharField(max_length=200)
    unit_snapshot = models.CharField(max_length=10, blank=True)
    warehouse = models.ForeignKey(
        Warehouse, on_delete=models.PROTECT, related_name="sale_items"
    )
    currency = models.CharField(max_length=3, choices=Currency.choices)
    qty = models.DecimalField(**QTY)
    price = models.DecimalField(max_digits=18, decimal_places=2)
    buy_price = models.DecimalField(**MONEY)
    subtotal = models.DecimalField(max_digits=18, decimal_places=2)

    class Meta:
        ordering = ["sale", "id"]

    def __str__(self):
        return f"{self.sale.invoice_no} - {self.name_snapshot}"


class SaleReturn(TimeStampedModel):
    """Append-only record of goods coming back against a sale."""

    class RefundType(models.TextChoices):
        CASH = "CASH", "Cash"
        BALANCE = "BALANCE", "Customer balance"
        NO_REFUND = "NO_REFUND", "No refund"

    sale = models.ForeignKey(Sale, on_delete=models.PROTECT, related_name="returns")
    warehouse = models.ForeignKey(
        Warehouse, on_delete=models.PROTECT, related_name="returns"
    )
    customer = models.ForeignKey(
        Customer,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="returns",
    )
    currency = models.CharField(max_length=3, choices=Currency.choices)
    refund_type = models.CharField(max_length=10, choices=RefundType.choices)
    refund_amount = models.DecimalField(**MONEY)
    return_subtotal = models.DecimalField(**MONEY)
    note = models.CharField(max_length=300, blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="sale_returns",
    )

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"Return #{self.pk} for {self.sale_id}"


class SaleReturnItem(models.Model):
    sale_return = models.ForeignKey(
        SaleReturn, on_delete=models.CASCADE, related_name="items"
    )
    product = models.ForeignKey(
        Product, on_delete=models.PROTECT, related_name="return_items"
    )
    name_snapshot = models.CharField(max_length=200)
    qty = models.DecimalField(**QTY)
    price = models.DecimalField(max_digits=18, decimal_places=2)
    subtotal = models.DecimalField(max_digits=18, decimal_places=2)
    reason = models.CharField(max_length=255, blank=True)

    class Meta:
        ordering = ["sale_return", "id"]

    def __str__(self):
        return f"{self.name_snapshot} x{self.qty}"


class Purchase(TimeStampedModel):
    """Goods received from a supplier (a batch)."""

    supplier = models.ForeignKey(
        Supplier, on_delete=models.PROTECT, related_name="purchases"
    )
    batch_no = models.CharField(max_length=60)
    total_uzs = models.DecimalField(**MONEY)
    total_usd = models.DecimalField(**MONEY)
    paid_uzs = models.DecimalField(**MONEY)
    paid_usd = models.DecimalField(**MONEY)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="purchases",
    )

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.supplier} / {self.batch_no}"


class PurchaseItem(models.Model):
    purchase = models.ForeignKey(
        Purchase, on_delete=models.CASCADE, related_name="items"
    )
    product = models.ForeignKey(
        Product, on_delete=models.PROTECT, related_name="purchase_items"
    )
    name = models.CharField(max_length=200)
    model = models.CharField(max_length=120, blank=True)
    unit = models.CharField(max_length=10, choices=Product.Unit.choices)
    currency = models.CharField(max_length=3, choices=Currency.choices)
    qty = models.DecimalField(**QTY)
    buy_price = models.DecimalField(max_digits=18, decimal_places=2)
    sell_price = models.DecimalField(max_digits=18, decimal_places=2)
    row_total = models.DecimalField(max_digits=18, decimal_places=2)

    class Meta:
        ordering = ["purchase", "id"]

    def __str__(self):
        return f"{self.name} x{self.qty}"


class CashIn(TimeStampedModel):
    class Target(models.TextChoices):
        CUSTOMER = "CUSTOMER", "Customer"
        SUPPLIER = "SUPPLIER", "Supplier"

    class Method(models.TextChoices):
        CASH = "CASH", "Cash"
        CARD = "CARD", "Card"

    target_type = models.CharField(max_length=10, choices=Target.choices)
    customer = models.ForeignKey(
        Customer,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="cash_ins",
    )
    supplier = models.ForeignKey(
        Supplier,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="cash_ins",
    )
    amount = models.DecimalField(max_digits=18, decimal_places=2)
    currency = models.CharField(max_length=3, choices=Currency.choices)
    method = models.CharField(max_length=10, choices=Method.choices, default=Method.CASH)
    payment_date = models.DateTimeField(default=timezone.now)
    note = models.CharField(max_length=255, blank=True)
    recorded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="cash_ins",
    )

    class Meta:
        ordering = ["-payment_date"]

    def __str__(self):
        return f"{self.target_type} {self.amount} {self.currency}"


class ProductWriteOff(TimeStampedModel):
    product = models.ForeignKey(
        Product, on_delete=models.PROTECT, related_name="write_offs"
    )
    qty = models.DecimalField(**QTY)
    currency = models.CharField(max_length=3, choices=Currency.choices)
    loss_amount = models.DecimalField(max_digits=18, decimal_places=2)
    reason = models.CharField(max_length=255)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="write_offs",
    )

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"Write-off {self.qty} of {self.product}"
