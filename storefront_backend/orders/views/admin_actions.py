# orders/views/admin_actions.py

"""
Back-office order actions (admin / pharmacist).
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from common.api import error_response_for
from common.exceptions import StorefrontError
from orders.models import Order
from orders.serializers import (
    FulfilOrderSerializer,
    OrderSerializer,
    OrderTrackingSerializer,
    TrackingEntrySerializer,
)
from orders.services.order_lifecycle import cancel_order, fulfil_order, record_tracking_entry
from users.permissions import IsBackOffice


def _order_payload(order_id):
    order = (
        Order.objects
        .select_related("shipping_method")
        .prefetch_related("items", "payments", "tracking")
        .get(pk=order_id)
    )
    return OrderSerializer(order).data


class AdminOrderFulfilView(APIView):
    permission_classes = [IsAuthenticated, IsBackOffice]

    @extend_schema(
        tags=["Admin"],
        request=FulfilOrderSerializer,
        responses={
            200: OrderSerializer,
            404: OpenApiResponse(description="Not found"),
            409: OpenApiResponse(description="Order is not processing"),
        },
        description="processing -> completed, with a delivered tracking entry.",
    )
    def post(self, request, order_id, *args, **kwargs):
        s = FulfilOrderSerializer(data=request.data)
        s.is_valid(raise_exception=True)

        try:
            order = fulfil_order(
                order_id=order_id,
                actor=request.user,
                location=s.validated_data.get("location") or "",
            )
        except StorefrontError as exc:
            return error_response_for(exc)

        return Response(_order_payload(order.pk))


class AdminOrderCancelView(APIView):
    permission_classes = [IsAuthenticated, IsBackOffice]

    @extend_schema(
        tags=["Admin"],
        request=None,
        responses={
            200: OrderSerializer,
            404: OpenApiResponse(description="Not found"),
            409: OpenApiResponse(description="Order is terminal or already paid"),
        },
        description="Cancel any non-terminal order without a confirmed payment; releases stock.",
    )
    def post(self, request, order_id, *args, **kwargs):
        try:
            order = cancel_order(order_id=order_id, user=request.user, by_staff=True)
        except StorefrontError as exc:
            return error_response_for(exc)

        return Response(_order_payload(order.pk))


class AdminOrderTrackingView(APIView):
    permission_classes = [IsAuthenticated, IsBackOffice]

    @extend_schema(
        tags=["Admin"],
        request=TrackingEntrySerializer,
        responses={
            201: OrderTrackingSerializer,
            404: OpenApiResponse(description="Not found"),
            409: OpenApiResponse(description="Order is not paid or already delivered"),
        },
        description="Append a shipment tracking entry. A delivered entry completes the order.",
    )
    def post(self, request, order_id, *args, **kwargs):
        s = TrackingEntrySerializer(data=request.data)
        s.is_valid(raise_exception=True)

        try:
            entry = record_tracking_entry(
                order_id=order_id,
                actor=request.user,
                status=s.validated_data["status"],
                description=s.validated_data.get("description") or "",
                location=s.validated_data.get("location") or "",
            )
        except StorefrontError as exc:
            return error_response_for(exc)

        return Response(OrderTrackingSerializer(entry).data, status=status.HTTP_201_CREATED)
