"""
URL configuration for the trading project.

All API endpoints live under ``/api/`` and are registered on a single
DefaultRouter; the OpenAPI schema and its viewers sit next to them.
"""

from django.conf import settings
from django.conf.urls.static import static
from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import (
    SpectacularAPIView,
    SpectacularRedocView,
    SpectacularSwaggerView,
)
from rest_framework.routers import DefaultRouter

from accounts.views import UserViewSet
from trading.views import (
    CustomerViewSet,
    OrderViewSet,
    ProductViewSet,
    ProductWriteOffViewSet,
    PurchaseViewSet,
    SaleReturnViewSet,
    SaleViewSet,
    SupplierViewSet,
    WarehouseViewSet,
)

router = DefaultRouter()
router.register(r"users", UserViewSet, basename="user")
router.register(r"suppliers", SupplierViewSet, basename="supplier")
router.register(r"customers", CustomerViewSet, basename="customer")
router.register(r"warehouses", WarehouseViewSet, basename="warehouse")
router.register(r"products", ProductViewSet, basename="product")
router.register(r"orders", OrderViewSet, basename="order")
router.register(r"sales", SaleViewSet, basename="sale")
router.register(r"sale-returns", SaleReturnViewSet, basename="sale-return")
router.register(r"purchases", PurchaseViewSet, basename="purchase")
router.register(r"write-offs", ProductWriteOffViewSet, basename="write-off")

urlpatterns = [
    # OpenAPI schema & docs
    path("api/schema/", SpectacularAPIView.as_view(), name="schema"),
    path(
        "api/docs/",
        SpectacularSwaggerView.as_view(url_name="schema"),
        name="swagger-ui",
    ),
    path(
        "api/redoc/",
        SpectacularRedocView.as_view(url_name="schema"),
        name="redoc",
    ),
    path("api/auth/", include("rest_framework.urls")),
    path("api/", include(router.urls)),
    path("admin/", admin.site.urls),
]

if settings.DEBUG:
    urlpatterns += static(settings.STATIC_URL, document_root=settings.STATIC_ROOT)

handler404 = "config.handlers.handler404"
handler500 = "config.handlers.handler500"
