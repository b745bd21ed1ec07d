# orders/views/order.py
from __future__ import annotations

from django.shortcuts import get_object_or_404
from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import generics, status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from common.api import error_response_for
from common.exceptions import StateConflictError, StorefrontError
from orders.models import Order, OrderTracking
from orders.serializers import OrderSerializer, OrderTrackingSerializer
from orders.services.order_lifecycle import cancel_order, retry_order_payment

# A refused transition is the caller's problem to correct: 400, not 409.
TRANSITION_ERROR_STATUS = {StateConflictError: status.HTTP_400_BAD_REQUEST}


def _own_orders(user):
    return (
        Order.objects
        .filter(user=user)
        .select_related("shipping_method")
        .prefetch_related("items", "payments", "tracking")
    )


class OrderListView(generics.ListAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = OrderSerializer

    def get_queryset(self):
        return _own_orders(self.request.user)

    @extend_schema(tags=["Orders"])
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)


class OrderDetailView(generics.RetrieveAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = OrderSerializer
    lookup_url_kwarg = "order_id"

    def get_queryset(self):
        return _own_orders(self.request.user)

    @extend_schema(tags=["Orders"], responses={200: OrderSerializer, 404: OpenApiResponse(description="Not found")})
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)


class OrderCancelView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        tags=["Orders"],
        request=None,
        responses={
            200: OrderSerializer,
            400: OpenApiResponse(description="Order is not cancellable"),
            404: OpenApiResponse(description="Not found"),
        },
        description="Cancel an own order while it is awaiting payment. Reserved stock is released.",
    )
    def post(self, request, order_id, *args, **kwargs):
        try:
            order = cancel_order(order_id=order_id, user=request.user)
        except StorefrontError as exc:
            return error_response_for(exc, overrides=TRANSITION_ERROR_STATUS)

        return Response(OrderSerializer(_own_orders(request.user).get(pk=order.pk)).data)


class OrderRetryPaymentView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        tags=["Orders"],
        request=None,
        responses={
            200: OrderSerializer,
            400: OpenApiResponse(description="No failed payment to retry / retry limit reached"),
            404: OpenApiResponse(description="Not found"),
        },
        description="Return a payment_failed order to pending_payment. Stock stays reserved.",
    )
    def post(self, request, order_id, *args, **kwargs):
        try:
            order = retry_order_payment(order_id=order_id, user=request.user)
        except StorefrontError as exc:
            return error_response_for(exc, overrides=TRANSITION_ERROR_STATUS)

        return Response(OrderSerializer(_own_orders(request.user).get(pk=order.pk)).data)


class OrderTrackingView(generics.ListAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = OrderTrackingSerializer
    pagination_class = None

    def get_queryset(self):
        order = get_object_or_404(Order, pk=self.kwargs["order_id"], user=self.request.user)
        return OrderTracking.objects.filter(order=order).order_by("created_at", "pk")

    @extend_schema(tags=["Orders"], responses={200: OrderTrackingSerializer(many=True), 404: OpenApiResponse(description="Not found")})
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)
