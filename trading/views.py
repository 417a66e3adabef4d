from django.contrib.auth import get_user_model
from drf_spectacular.utils import extend_schema
from rest_framework import filters, mixins, permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from accounts.permissions import RolePermission
from .balances import BalanceLedger
from .confirmation import ConfirmationEngine
from .models import (
    Customer,
    Order,
    Product,
    ProductWriteOff,
    Purchase,
    Sale,
    SaleReturn,
    Supplier,
    Warehouse,
)
from .payments import PaymentService
from .purchases import PurchaseService
from .serializers import (
    BalanceAdjustmentSerializer,
    BalanceEntrySerializer,
    CustomerSerializer,
    OrderSerializer,
    OrderWriteSerializer,
    PaymentResultSerializer,
    PaymentSerializer,
    ProductSerializer,
    ProductWriteOffSerializer,
    PurchaseSerializer,
    PurchaseWriteSerializer,
    ReasonSerializer,
    SaleReturnSerializer,
    SaleReturnWriteSerializer,
    SaleSerializer,
    SaleWriteSerializer,
    SupplierSerializer,
    WarehouseSerializer,
)

User = get_user_model()

STAFF = [User.Roles.ADMIN, User.Roles.CASHIER, User.Roles.ACCOUNTANT]


class BaseAuthPermission(permissions.IsAuthenticated):
    """Ensures requests are authenticated before role checks."""


class CounterpartyHistoryMixin:
    @extend_schema(responses=BalanceEntrySerializer(many=True))
    @action(detail=True, methods=["get"], url_path="history")
    def history(self, request, pk=None):
        entity = self.get_object()
        entries = BalanceLedger().history(entity, request.query_params.get("currency"))
        return Response(BalanceEntrySerializer(entries, many=True).data)


@extend_schema(tags=["suppliers"])
class SupplierViewSet(CounterpartyHistoryMixin, viewsets.ModelViewSet):
    queryset = Supplier.objects.all()
    serializer_class = SupplierSerializer
    permission_classes = [BaseAuthPermission, RolePermission]
    allowed_roles = STAFF + [User.Roles.WAREHOUSE]
    filter_backends = [filters.SearchFilter]
    search_fields = ["name", "phone"]

    @extend_schema(request=PaymentSerializer, responses=PaymentResultSerializer)
    @action(detail=True, methods=["post"], url_path="pay")
    def pay(self, request, pk=None):
        supplier = self.get_object()
        serializer = PaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = PaymentService().pay_supplier(
            supplier.pk, actor=request.user, **serializer.validated_data
        )
        return Response(PaymentResultSerializer(result).data)


@extend_schema(tags=["customers"])
class CustomerViewSet(CounterpartyHistoryMixin, viewsets.ModelViewSet):
    queryset = Customer.objects.all()
    serializer_class = CustomerSerializer
    permission_classes = [BaseAuthPermission, RolePermission]
    allowed_roles = STAFF + [User.Roles.AGENT]
    action_roles = {
        "pay": STAFF,
        "adjust_balance": [User.Roles.ADMIN, User.Roles.ACCOUNTANT],
    }
    filter_backends = [filters.SearchFilter]
    search_fields = ["name", "phone"]

    @extend_schema(request=PaymentSerializer, responses=PaymentResultSerializer)
    @action(detail=True, methods=["post"], url_path="pay")
    def pay(self, request, pk=None):
        customer = self.get_object()
        serializer = PaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = PaymentService().receive_customer_payment(
            customer.pk, actor=request.user, **serializer.validated_data
        )
        return Response(PaymentResultSerializer(result).data)

    @extend_schema(
        request=BalanceAdjustmentSerializer, responses=BalanceEntrySerializer
    )
    @action(detail=True, methods=["post"], url_path="adjust-balance")
    def adjust_balance(self, request, pk=None):
        customer = self.get_object()
        serializer = BalanceAdjustmentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        entry = PaymentService().adjust_customer_balance(
            customer.pk,
            serializer.validated_data["currency"],
            serializer.validated_data["amount"],
            note=serializer.validated_data["note"],
        )
        return Response(BalanceEntrySerializer(entry).data)


@extend_schema(tags=["warehouses"])
class WarehouseViewSet(viewsets.ModelViewSet):
    queryset = Warehouse.objects.all().order_by("currency")
    serializer_class = WarehouseSerializer
    permission_classes = [BaseAuthPermission, RolePermission]
    allowed_roles = [User.Roles.ADMIN, User.Roles.WAREHOUSE]


@extend_schema(tags=["products"])
class ProductViewSet(viewsets.ModelViewSet):
    queryset = Product.objects.select_related("supplier")
    serializer_class = ProductSerializer
    permission_classes = [BaseAuthPermission, RolePermission]
    allowed_roles = STAFF + [User.Roles.WAREHOUSE, User.Roles.AGENT]
    action_roles = {
        "create": [User.Roles.ADMIN, User.Roles.WAREHOUSE],
        "update": [User.Roles.ADMIN, User.Roles.WAREHOUSE],
        "partial_update": [User.Roles.ADMIN, User.Roles.WAREHOUSE],
        "destroy": [User.Roles.ADMIN],
    }
    filter_backends = [filters.SearchFilter]
    search_fields = ["name", "model", "color", "category"]

    def get_queryset(self):
        queryset = super().get_queryset()
        currency = self.request.query_params.get("currency")
        if currency:
            queryset = queryset.filter(warehouse_currency=currency)
        if self.request.query_params.get("active") == "1":
            queryset = queryset.filter(is_active=True)
        return queryset


@extend_schema(tags=["orders"])
class OrderViewSet(
    mixins.CreateModelMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    queryset = Order.objects.select_related("customer", "agent", "sale").prefetch_related(
        "items"
    )
    permission_classes = [BaseAuthPermission, RolePermission]
    allowed_roles = [User.Roles.ADMIN, User.Roles.CASHIER, User.Roles.AGENT]
    action_roles = {
        "confirm": [User.Roles.ADMIN, User.Roles.CASHIER],
        "cancel": [User.Roles.ADMIN, User.Roles.CASHIER],
    }

    def get_serializer_class(self):
        if self.action == "create":
            return OrderWriteSerializer
        return OrderSerializer

    def get_queryset(self):
        queryset = super().get_queryset()
        user = self.request.user
        if getattr(user, "role", None) == User.Roles.AGENT and not user.is_superuser:
            queryset = queryset.filter(agent=user)
        order_status = self.request.query_params.get("status")
        if order_status:
            queryset = queryset.filter(status=order_status)
        return queryset

    @extend_schema(request=OrderWriteSerializer, responses={201: OrderSerializer})
    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        order = serializer.save()
        return Response(OrderSerializer(order).data, status=status.HTTP_201_CREATED)

    @extend_schema(request=None, responses={200: SaleSerializer})
    @action(detail=True, methods=["post"], url_path="confirm")
    def confirm(self, request, pk=None):
        sale = ConfirmationEngine().confirm_order(pk, actor=request.user)
        return Response(SaleSerializer(sale).data)

    @extend_schema(request=ReasonSerializer, responses={200: OrderSerializer})
    @action(detail=True, methods=["post"], url_path="cancel")
    def cancel(self, request, pk=None):
        serializer = ReasonSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        order = ConfirmationEngine().cancel_order(
            pk, actor=request.user, reason=serializer.validated_data["reason"]
        )
        return Response(OrderSerializer(order).data)


@extend_schema(tags=["sales"])
class SaleViewSet(mixins.CreateModelMixin, viewsets.ReadOnlyModelViewSet):
    queryset = Sale.objects.select_related("customer").prefetch_related("items")
    permission_classes = [BaseAuthPermission, RolePermission]
    allowed_roles = STAFF
    action_roles = {
        "create": [User.Roles.ADMIN, User.Roles.CASHIER],
        "cancel": [User.Roles.ADMIN],
    }

    def get_serializer_class(self):
        if self.action == "create":
            return SaleWriteSerializer
        return SaleSerializer

    def get_queryset(self):
        queryset = super().get_queryset()
        customer = self.request.query_params.get("customer")
        if customer:
            queryset = queryset.filter(customer_id=customer)
        return queryset

    @extend_schema(request=SaleWriteSerializer, responses={201: SaleSerializer})
    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        sale = serializer.save()
        return Response(SaleSerializer(sale).data, status=status.HTTP_201_CREATED)

    @extend_schema(request=ReasonSerializer, responses={200: SaleSerializer})
    @action(detail=True, methods=["post"], url_path="cancel")
    def cancel(self, request, pk=None):
        serializer = ReasonSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        sale = ConfirmationEngine().cancel_sale(
            pk, actor=request.user, reason=serializer.validated_data["reason"]
        )
        return Response(SaleSerializer(sale).data)


@extend_schema(tags=["sales"])
class SaleReturnViewSet(
    mixins.CreateModelMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    queryset = SaleReturn.objects.select_related("sale").prefetch_related("items")
    permission_classes = [BaseAuthPermission, RolePermission]
    allowed_roles = [User.Roles.ADMIN, User.Roles.CASHIER]

    def get_serializer_class(self):
        if self.action == "create":
            return SaleReturnWriteSerializer
        return SaleReturnSerializer

    @extend_schema(request=SaleReturnWriteSerializer, responses={201: SaleReturnSerializer})
    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        sale_return = serializer.save()
        return Response(
            SaleReturnSerializer(sale_return).data, status=status.HTTP_201_CREATED
        )


@extend_schema(tags=["purchases"])
class PurchaseViewSet(
    mixins.CreateModelMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.DestroyModelMixin,
    viewsets.GenericViewSet,
):
    queryset = Purchase.objects.select_related("supplier").prefetch_related("items")
    permission_classes = [BaseAuthPermission, RolePermission]
    allowed_roles = [User.Roles.ADMIN, User.Roles.WAREHOUSE, User.Roles.ACCOUNTANT]
    action_roles = {"destroy": [User.Roles.ADMIN]}

    def get_serializer_class(self):
        if self.action == "create":
            return PurchaseWriteSerializer
        return PurchaseSerializer

    @extend_schema(request=PurchaseWriteSerializer, responses={201: PurchaseSerializer})
    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        purchase = serializer.save()
        return Response(PurchaseSerializer(purchase).data, status=status.HTTP_201_CREATED)

    def destroy(self, request, *args, **kwargs):
        purchase = self.get_object()
        PurchaseService().delete_purchase(purchase.pk)
        return Response(status=status.HTTP_204_NO_CONTENT)


@extend_schema(tags=["write-offs"])
class ProductWriteOffViewSet(
    mixins.CreateModelMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    queryset = ProductWriteOff.objects.select_related("product")
    serializer_class = ProductWriteOffSerializer
    permission_classes = [BaseAuthPermission, RolePermission]
    allowed_roles = [User.Roles.ADMIN, User.Roles.WAREHOUSE]
