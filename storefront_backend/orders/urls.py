# orders/urls.py

"""
ORDER API URLS

Mounted at /api/ in backend/urls.py:

- POST /api/checkout/
- POST /api/checkout/preview/
- GET  /api/orders/
- GET  /api/orders/<uuid>/
- POST /api/orders/<uuid>/cancel/
- POST /api/orders/<uuid>/retry-payment/
- GET  /api/orders/<uuid>/tracking/

Back office:
- POST /api/admin/orders/<uuid>/fulfil/
- POST /api/admin/orders/<uuid>/cancel/
- POST /api/admin/orders/<uuid>/tracking/
"""

from django.urls import path

from orders.views.admin_actions import (
    AdminOrderCancelView,
    AdminOrderFulfilView,
    AdminOrderTrackingView,
)
from orders.views.checkout import CheckoutPreviewView, CheckoutView
from orders.views.order import (
    OrderCancelView,
    OrderDetailView,
    OrderListView,
    OrderRetryPaymentView,
    OrderTrackingView,
)

urlpatterns = [
    path("checkout/", CheckoutView.as_view(), name="checkout"),
    path("checkout/preview/", CheckoutPreviewView.as_view(), name="checkout-preview"),
    path("orders/", OrderListView.as_view(), name="order-list"),
    path("orders/<uuid:order_id>/", OrderDetailView.as_view(), name="order-detail"),
    path("orders/<uuid:order_id>/cancel/", OrderCancelView.as_view(), name="order-cancel"),
    path("orders/<uuid:order_id>/retry-payment/", OrderRetryPaymentView.as_view(), name="order-retry-payment"),
    path("orders/<uuid:order_id>/tracking/", OrderTrackingView.as_view(), name="order-tracking"),
    path("admin/orders/<uuid:order_id>/fulfil/", AdminOrderFulfilView.as_view(), name="admin-order-fulfil"),
    path("admin/orders/<uuid:order_id>/cancel/", AdminOrderCancelView.as_view(), name="admin-order-cancel"),
    path("admin/orders/<uuid:order_id>/tracking/", AdminOrderTrackingView.as_view(), name="admin-order-tracking"),
]
