import decimal

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Supplier",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("name", models.CharField(max_length=120)),
                ("phone", models.CharField(blank=True, max_length=30)),
                (
                    "balance_uzs",
                    models.DecimalField(
                        decimal_places=2, default=decimal.Decimal("0.00"), max_digits=18
                    ),
                ),
                (
                    "balance_usd",
                    models.DecimalField(
                        decimal_places=2, default=decimal.Decimal("0.00"), max_digits=18
                    ),
                ),
                (
                    "opening_balance_uzs",
                    models.DecimalField(
                        decimal_places=2, default=decimal.Decimal("0.00"), max_digits=18
                    ),
                ),
                (
                    "opening_balance_usd",
                    models.DecimalField(
                        decimal_places=2, default=decimal.Decimal("0.00"), max_digits=18
                    ),
                ),
                ("is_active", models.BooleanField(default=True)),
            ],
            options={
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="Customer",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("name", models.CharField(max_length=120)),
                ("phone", models.CharField(blank=True, max_length=30)),
                (
                    "balance_uzs",
                    models.DecimalField(
                        decimal_places=2, default=decimal.Decimal("0.00"), max_digits=18
                    ),
                ),
                (
                    "balance_usd",
                    models.DecimalField(
                        decimal_places=2, default=decimal.Decimal("0.00"), max_digits=18
                    ),
                ),
                (
                    "opening_balance_uzs",
                    models.DecimalField(
                        decimal_places=2, default=decimal.Decimal("0.00"), max_digits=18
                    ),
                ),
                (
                    "opening_balance_usd",
                    models.DecimalField(
                        decimal_places=2, default=decimal.Decimal("0.00"), max_digits=18
                    ),
                ),
                ("is_active", models.BooleanField(default=True)),
                ("address", models.CharField(blank=True, max_length=250)),
                ("note", models.CharField(blank=True, max_length=300)),
            ],
            options={
                "ordering": ["name"],
                "indexes": [
                    models.Index(
                        fields=["name", "phone"], name="customer_name_phone_idx"
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="BalanceEntry",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "currency",
                    models.CharField(
                        choices=[("UZS", "UZS"), ("USD", "USD")], max_length=3
                    ),
                ),
                ("amount", models.DecimalField(decimal_places=2, max_digits=18)),
                (
                    "direction",
                    models.CharField(
                        choices=[
                            ("DEBT", "Debt"),
                            ("PAYMENT", "Payment"),
                            ("PREPAYMENT", "Prepayment"),
                        ],
                        max_length=12,
                    ),
                ),
                ("note", models.CharField(blank=True, max_length=255)),
                ("date", models.DateTimeField(default=django.utils.timezone.now)),
                ("balance_after", models.DecimalField(decimal_places=2, max_digits=18)),
                (
                    "customer",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="entries",
                        to="trading.customer",
                    ),
                ),
                (
                    "supplier",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="entries",
                        to="trading.supplier",
                    ),
                ),
            ],
            options={
                "verbose_name_plural": "Balance entries",
                "ordering": ["created_at", "id"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount__gte", 0)),
                        name="balance_entry_amount_non_negative",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(("customer__isnull", False), ("supplier__isnull", True)),
                            models.Q(("customer__isnull", True), ("supplier__isnull", False)),
                            _connector="OR",
                        ),
                        name="balance_entry_single_owner",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Warehouse",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("name", models.CharField(max_length=150, unique=True)),
                (
                    "currency",
                    models.CharField(
                        choices=[("UZS", "UZS"), ("USD", "USD")],
                        max_length=3,
                        unique=True,
                    ),
                ),
            ],
            options={
                "abstract": False,
            },
        ),
        migrations.CreateModel(
            name="Product",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("name", models.CharField(max_length=200)),
                ("model", models.CharField(blank=True, max_length=120)),
                ("color", models.CharField(blank=True, max_length=60)),
                ("category", models.CharField(blank=True, max_length=120)),
                (
                    "unit",
                    models.CharField(
                        choices=[("DONA", "Piece"), ("PACHKA", "Pack"), ("KG", "Kilogram")],
                        default="DONA",
                        max_length=10,
                    ),
                ),
                (
                    "warehouse_currency",
                    models.CharField(
                        choices=[("UZS", "UZS"), ("USD", "USD")], max_length=3
                    ),
                ),
                (
                    "qty",
                    models.DecimalField(
                        decimal_places=3, default=decimal.Decimal("0"), max_digits=14
                    ),
                ),
                (
                    "buy_price",
                    models.DecimalField(
                        decimal_places=2, default=decimal.Decimal("0.00"), max_digits=18
                    ),
                ),
                (
                    "sell_price",
                    models.DecimalField(
                        decimal_places=2, default=decimal.Decimal("0.00"), max_digits=18
                    ),
                ),
                ("is_active", models.BooleanField(default=True)),
                (
                    "supplier",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="products",
                        to="trading.supplier",
                    ),
                ),
            ],
            options={
                "ordering": ["name"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("qty__gte", 0)),
                        name="product_qty_non_negative",
                    ),
                    models.UniqueConstraint(
                        fields=("supplier", "name", "model", "color", "warehouse_currency"),
                        name="unique_product_per_supplier_currency",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Order",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("note", models.CharField(blank=True, max_length=500)),
                (
                    "total_uzs",
                    models.DecimalField(
                        decimal_places=2, default=decimal.Decimal("0.00"), max_digits=18
                    ),
                ),
                (
                    "total_usd",
                    models.DecimalField(
                        decimal_places=2, default=decimal.Decimal("0.00"), max_digits=18
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("NEW", "New"),
                            ("CONFIRMED", "Confirmed"),
                            ("CANCELED", "Canceled"),
                        ],
                        db_index=True,
                        default="NEW",
                        max_length=10,
                    ),
                ),
                ("confirmed_at", models.DateTimeField(blank=True, null=True)),
                ("canceled_at", models.DateTimeField(blank=True, null=True)),
                ("cancel_reason", models.CharField(blank=True, max_length=300)),
                (
                    "agent",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="submitted_orders",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "canceled_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="canceled_orders",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "confirmed_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="confirmed_orders",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "customer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="orders",
                        to="trading.customer",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["agent", "created_at"], name="order_agent_created_idx"
                    ),
                    models.Index(
                        fields=["customer", "created_at"],
                        name="order_customer_created_idx",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="OrderItem",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("name_snapshot", models.CharField(max_length=200)),
                ("unit_snapshot", models.CharField(blank=True, max_length=10)),
                ("price_snapshot", models.DecimalField(decimal_places=2, max_digits=18)),
                (
                    "currency_snapshot",
                    models.CharField(
                        choices=[("UZS", "UZS"), ("USD", "USD")], max_length=3
                    ),
                ),
                ("qty", models.DecimalField(decimal_places=3, max_digits=14)),
                ("subtotal", models.DecimalField(decimal_places=2, max_digits=18)),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="items",
                        to="trading.order",
                    ),
                ),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="order_items",
                        to="trading.product",
                    ),
                ),
            ],
            options={
                "ordering": ["order", "id"],
            },
        ),
        migrations.CreateModel(
            name="InvoiceCounter",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("year", models.PositiveIntegerField(unique=True)),
                ("last_value", models.PositiveIntegerField(default=0)),
            ],
        ),
        migrations.CreateModel(
            name="Sale",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("invoice_no", models.CharField(max_length=50, unique=True)),
                ("customer_name", models.CharField(blank=True, max_length=120)),
                ("customer_phone", models.CharField(blank=True, max_length=30)),
                ("customer_address", models.CharField(blank=True, max_length=250)),
                ("sale_date", models.DateTimeField(default=django.utils.timezone.now)),
                ("note", models.CharField(blank=True, max_length=500)),
                (
                    "subtotal_uzs",
                    models.DecimalField(
                        decimal_places=2, default=decimal.Decimal("0.00"), max_digits=18
                    ),
                ),
                (
                    "discount_uzs",
                    models.DecimalField(
                        decimal_places=2, default=decimal.Decimal("0.00"), max_digits=18
                    ),
                ),
                (
                    "grand_total_uzs",
                    models.DecimalField(
                        decimal_places=2, default=decimal.Decimal("0.00"), max_digits=18
                    ),
                ),
                (
                    "paid_uzs",
                    models.DecimalField(
                        decimal_places=2, default=decimal.Decimal("0.00"), max_digits=18
                    ),
                ),
                (
                    "debt_uzs",
                    models.DecimalField(
                        decimal_places=2, default=decimal.Decimal("0.00"), max_digits=18
                    ),
                ),
                (
                    "subtotal_usd",
                    models.DecimalField(
                        decimal_places=2, default=decimal.Decimal("0.00"), max_digits=18
                    ),
                ),
                (
                    "discount_usd",
                    models.DecimalField(
                        decimal_places=2, default=decimal.Decimal("0.00"), max_digits=18
                    ),
                ),
                (
                    "grand_total_usd",
                    models.DecimalField(
                        decimal_places=2, default=decimal.Decimal("0.00"), max_digits=18
                    ),
                ),
                (
                    "paid_usd",
                    models.DecimalField(
                        decimal_places=2, default=decimal.Decimal("0.00"), max_digits=18
                    ),
                ),
                (
                    "debt_usd",
                    models.DecimalField(
                        decimal_places=2, default=decimal.Decimal("0.00"), max_digits=18
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[("COMPLETED", "Completed"), ("CANCELED", "Canceled")],
                        db_index=True,
                        default="COMPLETED",
                        max_length=10,
                    ),
                ),
                (
                    "return_status",
                    models.CharField(
                        choices=[
                            ("NO_RETURN", "No return"),
                            ("PARTIAL_RETURN", "Partial return"),
                            ("FULL_RETURN", "Full return"),
                        ],
                        default="NO_RETURN",
                        max_length=16,
                    ),
                ),
                ("canceled_at", models.DateTimeField(blank=True, null=True)),
                ("cancel_reason", models.CharField(blank=True, max_length=300)),
                (
                    "canceled_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="canceled_sales",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "customer",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="sales",
                        to="trading.customer",
                    ),
                ),
                (
                    "order",
                    models.OneToOneField(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="sale",
                        to="trading.order",
                    ),
                ),
                (
                    "sold_by",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="sales",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["customer", "sale_date"], name="sale_customer_date_idx"
                    ),
                    models.Index(
                        fields=["status", "created_at"], name="sale_status_created_idx"
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="SaleItem",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("name_snapshot", models.CharField(max_length=200)),
                ("unit_snapshot", models.CharField(blank=True, max_length=10)),
                (
                    "currency",
                    models.CharField(
                        choices=[("UZS", "UZS"), ("USD", "USD")], max_length=3
                    ),
                ),
                ("qty", models.DecimalField(decimal_places=3, max_digits=14)),
                ("price", models.DecimalField(decimal_places=2, max_digits=18)),
                (
                    "buy_price",
                    models.DecimalField(
                        decimal_places=2, default=decimal.Decimal("0.00"), max_digits=18
                    ),
                ),
                ("subtotal", models.DecimalField(decimal_places=2, max_digits=18)),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="sale_items",
                        to="trading.product",
                    ),
                ),
                (
                    "sale",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="items",
                        to="trading.sale",
                    ),
                ),
                (
                    "warehouse",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="sale_items",
                        to="trading.warehouse",
                    ),
                ),
            ],
            options={
                "ordering": ["sale", "id"],
            },
        ),
        migrations.CreateModel(
            name="SaleReturn",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "currency",
                    models.CharField(
                        choices=[("UZS", "UZS"), ("USD", "USD")], max_length=3
                    ),
                ),
                (
                    "refund_type",
                    models.CharField(
                        choices=[
                            ("CASH", "Cash"),
                            ("BALANCE", "Customer balance"),
                            ("NO_REFUND", "No refund"),
                        ],
                        max_length=10,
                    ),
                ),
                (
                    "refund_amount",
                    models.DecimalField(
                        decimal_places=2, default=decimal.Decimal("0.00"), max_digits=18
                    ),
                ),
                (
                    "return_subtotal",
                    models.DecimalField(
                        decimal_places=2, default=decimal.Decimal("0.00"), max_digits=18
                    ),
                ),
                ("note", models.CharField(blank=True, max_length=300)),
                (
                    "created_by",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="sale_returns",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "customer",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="returns",
                        to="trading.customer",
                    ),
                ),
                (
                    "sale",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="returns",
                        to="trading.sale",
                    ),
                ),
                (
                    "warehouse",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="returns",
                        to="trading.warehouse",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="SaleReturnItem",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("name_snapshot", models.CharField(max_length=200)),
                ("qty", models.DecimalField(decimal_places=3, max_digits=14)),
                ("price", models.DecimalField(decimal_places=2, max_digits=18)),
                ("subtotal", models.DecimalField(decimal_places=2, max_digits=18)),
                ("reason", models.CharField(blank=True, max_length=255)),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="return_items",
                        to="trading.product",
                    ),
                ),
                (
                    "sale_return",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="items",
                        to="trading.salereturn",
                    ),
                ),
            ],
            options={
                "ordering": ["sale_return", "id"],
            },
        ),
        migrations.CreateModel(
            name="Purchase",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("batch_no", models.CharField(max_length=60)),
                (
                    "total_uzs",
                    models.DecimalField(
                        decimal_places=2, default=decimal.Decimal("0.00"), max_digits=18
                    ),
                ),
                (
                    "total_usd",
                    models.DecimalField(
                        decimal_places=2, default=decimal.Decimal("0.00"), max_digits=18
                    ),
                ),
                (
                    "paid_uzs",
                    models.DecimalField(
                        decimal_places=2, default=decimal.Decimal("0.00"), max_digits=18
                    ),
                ),
                (
                    "paid_usd",
                    models.DecimalField(
                        decimal_places=2, default=decimal.Decimal("0.00"), max_digits=18
                    ),
                ),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="purchases",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "supplier",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="purchases",
                        to="trading.supplier",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="PurchaseItem",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("name", models.CharField(max_length=200)),
                ("model", models.CharField(blank=True, max_length=120)),
                (
                    "unit",
                    models.CharField(
                        choices=[("DONA", "Piece"), ("PACHKA", "Pack"), ("KG", "Kilogram")],
                        max_length=10,
                    ),
                ),
                (
                    "currency",
                    models.CharField(
                        choices=[("UZS", "UZS"), ("USD", "USD")], max_length=3
                    ),
                ),
                ("qty", models.DecimalField(decimal_places=3, max_digits=14)),
                ("buy_price", models.DecimalField(decimal_places=2, max_digits=18)),
                ("sell_price", models.DecimalField(decimal_places=2, max_digits=18)),
                ("row_total", models.DecimalField(decimal_places=2, max_digits=18)),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="purchase_items",
                        to="trading.product",
                    ),
                ),
                (
                    "purchase",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="items",
                        to="trading.purchase",
                    ),
                ),
            ],
            options={
                "ordering": ["purchase", "id"],
            },
        ),
        migrations.CreateModel(
            name="CashIn",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "target_type",
                    models.CharField(
                        choices=[("CUSTOMER", "Customer"), ("SUPPLIER", "Supplier")],
                        max_length=10,
                    ),
                ),
                ("amount", models.DecimalField(decimal_places=2, max_digits=18)),
                (
                    "currency",
                    models.CharField(
                        choices=[("UZS", "UZS"), ("USD", "USD")], max_length=3
                    ),
                ),
                (
                    "method",
                    models.CharField(
                        choices=[("CASH", "Cash"), ("CARD", "Card")],
                        default="CASH",
                        max_length=10,
                    ),
                ),
                (
                    "payment_date",
                    models.DateTimeField(default=django.utils.timezone.now),
                ),
                ("note", models.CharField(blank=True, max_length=255)),
                (
                    "customer",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="cash_ins",
                        to="trading.customer",
                    ),
                ),
                (
                    "recorded_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="cash_ins",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "supplier",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="cash_ins",
                        to="trading.supplier",
                    ),
                ),
            ],
            options={
                "ordering": ["-payment_date"],
            },
        ),
        migrations.CreateModel(
            name="ProductWriteOff",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("qty", models.DecimalField(decimal_places=3, max_digits=14)),
                (
                    "currency",
                    models.CharField(
                        choices=[("UZS", "UZS"), ("USD", "USD")], max_length=3
                    ),
                ),
                ("loss_amount", models.DecimalField(decimal_places=2, max_digits=18)),
                ("reason", models.CharField(max_length=255)),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="write_offs",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="write_offs",
                        to="trading.product",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
    ]
