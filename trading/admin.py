from django.contrib import admin
from .models import (
    BalanceEntry,
    CashIn,
    Customer,
    InvoiceCounter,
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


class ReadOnlyInline(admin.TabularInline):
    extra = 0
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False


class BalanceEntryInline(ReadOnlyInline):
    model = BalanceEntry
    fields = ("date", "currency", "direction", "amount", "balance_after", "note")


@admin.register(Supplier)
class SupplierAdmin(admin.ModelAdmin):
    list_display = ("name", "phone", "balance_uzs", "balance_usd", "is_active")
    search_fields = ("name", "phone")
    list_filter = ("is_active",)
    readonly_fields = ("balance_uzs", "balance_usd")
    inlines = [BalanceEntryInline]


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ("name", "phone", "balance_uzs", "balance_usd", "is_active")
    search_fields = ("name", "phone")
    list_filter = ("is_active",)
    readonly_fields = ("balance_uzs", "balance_usd")
    inlines = [BalanceEntryInline]


@admin.register(BalanceEntry)
class BalanceEntryAdmin(admin.ModelAdmin):
    list_display = (
        "date",
        "customer",
        "supplier",
        "currency",
        "direction",
        "amount",
        "balance_after",
    )
    list_filter = ("currency", "direction")

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Warehouse)
class WarehouseAdmin(admin.ModelAdmin):
    list_display = ("name", "currency", "created_at")


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = (
        "name",
        "model",
        "color",
        "supplier",
        "warehouse_currency",
        "qty",
        "buy_price",
        "sell_price",
        "is_active",
    )
    search_fields = ("name", "model", "category")
    list_filter = ("warehouse_currency", "unit", "is_active", "supplier")
    readonly_fields = ("qty",)


class OrderItemInline(ReadOnlyInline):
    model = OrderItem


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ("id", "customer", "agent", "status", "total_uzs", "total_usd", "created_at")
    list_filter = ("status",)
    search_fields = ("customer__name",)
    inlines = [OrderItemInline]


class SaleItemInline(ReadOnlyInline):
    model = SaleItem


@admin.register(Sale)
class SaleAdmin(admin.ModelAdmin):
    list_display = (
        "invoice_no",
        "customer_name",
        "grand_total_uzs",
        "grand_total_usd",
        "status",
        "return_status",
        "sale_date",
    )
    list_filter = ("status", "return_status")
    search_fields = ("invoice_no", "customer_name", "customer_phone")
    inlines = [SaleItemInline]

    def has_change_permission(self, request, obj=None):
        return False


class SaleReturnItemInline(ReadOnlyInline):
    model = SaleReturnItem


@admin.register(SaleReturn)
class SaleReturnAdmin(admin.ModelAdmin):
    list_display = ("id", "sale", "warehouse", "refund_type", "refund_amount", "created_at")
    list_filter = ("refund_type", "currency")
    inlines = [SaleReturnItemInline]

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class PurchaseItemInline(ReadOnlyInline):
    model = PurchaseItem


@admin.register(Purchase)
class PurchaseAdmin(admin.ModelAdmin):
    list_display = ("batch_no", "supplier", "total_uzs", "total_usd", "created_at")
    search_fields = ("batch_no", "supplier__name")
    inlines = [PurchaseItemInline]


@admin.register(CashIn)
class CashInAdmin(admin.ModelAdmin):
    list_display = ("target_type", "customer", "supplier", "amount", "currency", "method")
    list_filter = ("target_type", "currency", "method")


@admin.register(ProductWriteOff)
class ProductWriteOffAdmin(admin.ModelAdmin):
    list_display = ("product", "qty", "currency", "loss_amount", "reason", "created_at")


@admin.register(InvoiceCounter)
class InvoiceCounterAdmin(admin.ModelAdmin):
    list_display = ("year", "last_value")
