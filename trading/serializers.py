from decimal import Decimal

from rest_framework import serializers

from .models import (
    BalanceEntry,
    CashIn,
    Currency,
    Customer,
    Order,
    OrderItem,
    Product,
    ProductWriteOff,
    Purchase,
    PurchaseItem,
    Sale,
    SaleItem,
    SaleReturn,
    SaleReturnItem,
    Supplier,
    Warehouse,
)
from .confirmation import ConfirmationEngine
from .orders import OrderService
from .purchases import PurchaseService
from .returns import ReturnEngine
from .stock import StockLedger
from .unit_of_work import UnitOfWork

COUNTERPARTY_FIELDS = [
    "id",
    "name",
    "phone",
    "balance_uzs",
    "balance_usd",
    "opening_balance_uzs",
    "opening_balance_usd",
    "is_active",
    "created_at",
    "updated_at",
]


def _actor(serializer):
    request = serializer.context.get("request")
    if request and request.user.is_authenticated:
        return request.user
    return None


class CounterpartySerializer(serializers.ModelSerializer):
    """Balances start at the opening balance and then only move via the ledger."""

    def create(self, validated_data):
        validated_data["balance_uzs"] = validated_data.get(
            "opening_balance_uzs", Decimal("0.00")
        )
        validated_data["balance_usd"] = validated_data.get(
            "opening_balance_usd", Decimal("0.00")
        )
        return super().create(validated_data)

    def update(self, instance, validated_data):
        validated_data.pop("opening_balance_uzs", None)
        validated_data.pop("opening_balance_usd", None)
        return super().update(instance, validated_data)


class SupplierSerializer(CounterpartySerializer):
    class Meta:
        model = Supplier
        fields = COUNTERPARTY_FIELDS
        read_only_fields = ["id", "balance_uzs", "balance_usd", "created_at", "updated_at"]


class CustomerSerializer(CounterpartySerializer):
    class Meta:
        model = Customer
        fields = COUNTERPARTY_FIELDS + ["address", "note"]
        read_only_fields = ["id", "balance_uzs", "balance_usd", "created_at", "updated_at"]


class BalanceEntrySerializer(serializers.ModelSerializer):
    class Meta:
        model = BalanceEntry
        fields = [
            "id",
            "customer",
            "supplier",
            "currency",
            "amount",
            "direction",
            "note",
            "date",
            "balance_after",
            "created_at",
        ]
        read_only_fields = fields


class WarehouseSerializer(serializers.ModelSerializer):
    class Meta:
        model = Warehouse
        fields = ["id", "name", "currency", "created_at", "updated_at"]
        read_only_fields = ["id", "created_at", "updated_at"]


class ProductSerializer(serializers.ModelSerializer):
    supplier_name = serializers.CharField(source="supplier.name", read_only=True)

    class Meta:
        model = Product
        fields = [
            "id",
            "supplier",
            "supplier_name",
            "name",
            "model",
            "color",
            "category",
            "unit",
            "warehouse_currency",
            "qty",
            "buy_price",
            "sell_price",
            "is_active",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "supplier_name", "qty", "created_at", "updated_at"]


class OrderItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderItem
        fields = [
            "id",
            "product",
            "name_snapshot",
            "unit_snapshot",
            "price_snapshot",
            "currency_snapshot",
            "qty",
            "subtotal",
        ]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    items = OrderItemSerializer(many=True, read_only=True)
    customer_name = serializers.CharField(source="customer.name", read_only=True)
    agent_username = serializers.CharField(source="agent.username", read_only=True)
    sale_id = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = [
            "id",
            "agent",
            "agent_username",
            "customer",
            "customer_name",
            "note",
            "total_uzs",
            "total_usd",
            "status",
            "confirmed_at",
            "confirmed_by",
            "canceled_at",
            "canceled_by",
            "cancel_reason",
            "sale_id",
            "items",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_sale_id(self, obj):
        sale = getattr(obj, "sale", None)
        return sale.pk if sale else None


class OrderItemWriteSerializer(serializers.Serializer):
    product = serializers.IntegerField()
    qty = serializers.DecimalField(max_digits=14, decimal_places=3)


class OrderWriteSerializer(serializers.Serializer):
    customer = serializers.IntegerField()
    note = serializers.CharField(required=False, allow_blank=True, default="")
    items = OrderItemWriteSerializer(many=True, allow_empty=False)

    def create(self, validated_data):
        return OrderService().create_order(
            validated_data["customer"],
            validated_data["items"],
            agent=_actor(self),
            note=validated_data["note"],
        )


class ReasonSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class SaleItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = SaleItem
        fields = [
            "id",
            "product",
            "name_snapshot",
            "unit_snapshot",
            "warehouse",
            "currency",
            "qty",
            "price",
            "buy_price",
            "subtotal",
        ]
        read_only_fields = fields


class SaleSerializer(serializers.ModelSerializer):
    items = SaleItemSerializer(many=True, read_only=True)
    currency_totals = serializers.SerializerMethodField()

    class Meta:
        model = Sale
        fields = [
            "id",
            "invoice_no",
            "order",
            "sold_by",
            "customer",
            "customer_name",
            "customer_phone",
            "customer_address",
            "sale_date",
            "note",
            "currency_totals",
            "status",
            "return_status",
            "canceled_at",
            "canceled_by",
            "cancel_reason",
            "items",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_currency_totals(self, obj):
        return {
            currency: {
                "subtotal": str(totals.subtotal),
                "discount": str(totals.discount),
                "grand_total": str(totals.grand_total),
                "paid": str(totals.paid),
                "debt": str(totals.debt),
            }
            for currency, totals in obj.currency_totals.items()
        }


class SaleItemWriteSerializer(OrderItemWriteSerializer):
    price = serializers.DecimalField(
        max_digits=18, decimal_places=2, required=False, allow_null=True, default=None
    )


class SalePaymentWriteSerializer(serializers.Serializer):
    currency = serializers.ChoiceField(choices=Currency.choices)
    amount = serializers.DecimalField(max_digits=18, decimal_places=2)
    method = serializers.ChoiceField(
        choices=CashIn.Method.choices, default=CashIn.Method.CASH
    )


class SaleWriteSerializer(serializers.Serializer):
    """Counter sale. Leave ``customer`` out for a walk-in buyer."""

    customer = serializers.IntegerField(required=False, allow_null=True, default=None)
    customer_name = serializers.CharField(required=False, allow_blank=True, default="")
    customer_phone = serializers.CharField(required=False, allow_blank=True, default="")
    customer_address = serializers.CharField(
        required=False, allow_blank=True, default=""
    )
    items = SaleItemWriteSerializer(many=True, allow_empty=False)
    discount_uzs = serializers.DecimalField(
        max_digits=18, decimal_places=2, required=False, default=Decimal("0")
    )
    discount_usd = serializers.DecimalField(
        max_digits=18, decimal_places=2, required=False, default=Decimal("0")
    )
    payments = SalePaymentWriteSerializer(many=True, required=False, default=list)
    sale_date = serializers.DateTimeField(required=False, allow_null=True, default=None)
    note = serializers.CharField(required=False, allow_blank=True, default="")

    def create(self, validated_data):
        return ConfirmationEngine().create_direct_sale(
            validated_data["items"],
            actor=_actor(self),
            customer_id=validated_data["customer"],
            customer_name=validated_data["customer_name"],
            customer_phone=validated_data["customer_phone"],
            customer_address=validated_data["customer_address"],
            discounts={
                Currency.UZS: validated_data["discount_uzs"],
                Currency.USD: validated_data["discount_usd"],
            },
            payments=validated_data["payments"],
            note=validated_data["note"],
            sale_date=validated_data["sale_date"],
        )


class SaleReturnItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = SaleReturnItem
        fields = ["id", "product", "name_snapshot", "qty", "price", "subtotal", "reason"]
        read_only_fields = fields


class SaleReturnSerializer(serializers.ModelSerializer):
    items = SaleReturnItemSerializer(many=True, read_only=True)
    invoice_no = serializers.CharField(source="sale.invoice_no", read_only=True)

    class Meta:
        model = SaleReturn
        fields = [
            "id",
            "sale",
            "invoice_no",
            "warehouse",
            "customer",
            "currency",
            "refund_type",
            "refund_amount",
            "return_subtotal",
            "note",
            "created_by",
            "items",
            "created_at",
        ]
        read_only_fields = fields


class SaleReturnItemWriteSerializer(serializers.Serializer):
    product = serializers.IntegerField()
    qty = serializers.DecimalField(max_digits=14, decimal_places=3)
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class SaleReturnWriteSerializer(serializers.Serializer):
    sale = serializers.IntegerField()
    warehouse = serializers.IntegerField()
    items = SaleReturnItemWriteSerializer(many=True, allow_empty=False)
    refund_type = serializers.ChoiceField(choices=SaleReturn.RefundType.choices)
    refund_amount = serializers.DecimalField(
        max_digits=18, decimal_places=2, required=False, default=Decimal("0.00")
    )
    note = serializers.CharField(required=False, allow_blank=True, default="")

    def create(self, validated_data):
        return ReturnEngine().create_return(
            validated_data["sale"],
            validated_data["warehouse"],
            validated_data["items"],
            validated_data["refund_type"],
            validated_data["refund_amount"],
            actor=_actor(self),
            note=validated_data["note"],
        )


class PurchaseItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = PurchaseItem
        fields = [
            "id",
            "product",
            "name",
            "model",
            "unit",
            "currency",
            "qty",
            "buy_price",
            "sell_price",
            "row_total",
        ]
        read_only_fields = fields


class PurchaseSerializer(serializers.ModelSerializer):
    items = PurchaseItemSerializer(many=True, read_only=True)
    supplier_name = serializers.CharField(source="supplier.name", read_only=True)

    class Meta:
        model = Purchase
        fields = [
            "id",
            "supplier",
            "supplier_name",
            "batch_no",
            "total_uzs",
            "total_usd",
            "paid_uzs",
            "paid_usd",
            "created_by",
            "items",
            "created_at",
        ]
        read_only_fields = fields


class PurchaseItemWriteSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=200)
    model = serializers.CharField(max_length=120, required=False, allow_blank=True)
    color = serializers.CharField(max_length=60, required=False, allow_blank=True)
    category = serializers.CharField(max_length=120, required=False, allow_blank=True)
    unit = serializers.ChoiceField(choices=Product.Unit.choices, default=Product.Unit.DONA)
    currency = serializers.ChoiceField(choices=Currency.choices)
    qty = serializers.DecimalField(max_digits=14, decimal_places=3)
    buy_price = serializers.DecimalField(max_digits=18, decimal_places=2)
    sell_price = serializers.DecimalField(
        max_digits=18, decimal_places=2, required=False, default=Decimal("0.00")
    )


class PurchaseWriteSerializer(serializers.Serializer):
    supplier = serializers.IntegerField()
    batch_no = serializers.CharField(max_length=60)
    items = PurchaseItemWriteSerializer(many=True, allow_empty=False)
    paid_uzs = serializers.DecimalField(
        max_digits=18, decimal_places=2, required=False, default=Decimal("0.00")
    )
    paid_usd = serializers.DecimalField(
        max_digits=18, decimal_places=2, required=False, default=Decimal("0.00")
    )

    def create(self, validated_data):
        return PurchaseService().create_purchase(
            validated_data["supplier"],
            validated_data["batch_no"],
            validated_data["items"],
            paid_uzs=validated_data["paid_uzs"],
            paid_usd=validated_data["paid_usd"],
            actor=_actor(self),
        )


class CashInSerializer(serializers.ModelSerializer):
    class Meta:
        model = CashIn
        fields = [
            "id",
            "target_type",
            "customer",
            "supplier",
            "amount",
            "currency",
            "method",
            "payment_date",
            "note",
            "recorded_by",
            "created_at",
        ]
        read_only_fields = fields


class PaymentSerializer(serializers.Serializer):
    currency = serializers.ChoiceField(choices=Currency.choices)
    amount = serializers.DecimalField(
        max_digits=18, decimal_places=2, min_value=Decimal("0.01")
    )
    method = serializers.ChoiceField(
        choices=CashIn.Method.choices, default=CashIn.Method.CASH
    )
    note = serializers.CharField(required=False, allow_blank=True, default="")
    payment_date = serializers.DateTimeField(required=False, allow_null=True, default=None)


class PaymentResultSerializer(serializers.Serializer):
    cash_in = CashInSerializer()
    applied = serializers.DecimalField(max_digits=18, decimal_places=2)
    change = serializers.DecimalField(max_digits=18, decimal_places=2)
    previous_debt = serializers.DecimalField(max_digits=18, decimal_places=2)
    remaining_debt = serializers.DecimalField(max_digits=18, decimal_places=2)


class BalanceAdjustmentSerializer(serializers.Serializer):
    currency = serializers.ChoiceField(choices=Currency.choices)
    amount = serializers.DecimalField(max_digits=18, decimal_places=2)
    note = serializers.CharField(required=False, allow_blank=True, default="")

    def validate_amount(self, value):
        if value == 0:
            raise serializers.ValidationError("Amount must be non-zero.")
        return value


class ProductWriteOffSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source="product.name", read_only=True)

    class Meta:
        model = ProductWriteOff
        fields = [
            "id",
            "product",
            "product_name",
            "qty",
            "currency",
            "loss_amount",
            "reason",
            "created_by",
            "created_at",
        ]
        read_only_fields = [
            "id",
            "product_name",
            "currency",
            "loss_amount",
            "created_by",
            "created_at",
        ]

    def create(self, validated_data):
        with UnitOfWork() as uow:
            return StockLedger().write_off(
                uow,
                validated_data["product"].pk,
                validated_data["qty"],
                validated_data["reason"],
                actor=_actor(self),
            )
