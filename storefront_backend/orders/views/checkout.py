# orders/views/checkout.py
from __future__ import annotations

import logging

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.throttling import UserRateThrottle
from rest_framework.views import APIView

from common.api import error_response_for
from common.exceptions import StorefrontError
from orders.serializers import (
    CheckoutResponseSerializer,
    CheckoutSerializer,
    PriceBreakdownSerializer,
)
from orders.services.checkout_orchestrator import checkout, preview_checkout

logger = logging.getLogger(__name__)

# Every checkout failure is correctable by the shopper: 400 with a specific code.
CHECKOUT_ERROR_STATUS = {StorefrontError: status.HTTP_400_BAD_REQUEST}


class CheckoutThrottle(UserRateThrottle):
    """
    Uses REST_FRAMEWORK['DEFAULT_THROTTLE_RATES']['checkout'].
    """

    scope = "checkout"


class CheckoutView(APIView):
    permission_classes = [IsAuthenticated]
    throttle_classes = [CheckoutThrottle]

    @extend_schema(
        tags=["Checkout"],
        request=CheckoutSerializer,
        responses={
            201: CheckoutResponseSerializer,
            400: OpenApiResponse(description="Validation / coupon / stock / shipping error"),
            429: OpenApiResponse(description="Rate limited"),
        },
        description="Price the cart, reserve stock and create an order awaiting payment (atomic).",
    )
    def post(self, request, *args, **kwargs):
        s = CheckoutSerializer(data=request.data)
        s.is_valid(raise_exception=True)

        try:
            result = checkout(user=request.user, request=s.to_request())
        except StorefrontError as exc:
            logger.info(
                "Checkout rejected",
                extra={"user_id": str(request.user.pk), "code": exc.code},
            )
            return error_response_for(exc, overrides=CHECKOUT_ERROR_STATUS)

        order = result.order
        return Response(
            CheckoutResponseSerializer(
                {
                    "order_id": order.id,
                    "order_no": order.order_no,
                    "status": order.status,
                    "total_amount": order.total_amount,
                    "breakdown": result.breakdown,
                }
            ).data,
            status=status.HTTP_201_CREATED,
        )


class CheckoutPreviewView(APIView):
    permission_classes = [IsAuthenticated]
    throttle_classes = [CheckoutThrottle]

    @extend_schema(
        tags=["Checkout"],
        request=CheckoutSerializer,
        responses={
            200: PriceBreakdownSerializer,
            400: OpenApiResponse(description="Validation / coupon / stock / shipping error"),
        },
        description="Dry-run pricing. Nothing is reserved or written.",
    )
    def post(self, request, *args, **kwargs):
        s = CheckoutSerializer(data=request.data)
        s.is_valid(raise_exception=True)

        try:
            breakdown = preview_checkout(user=request.user, request=s.to_request())
        except StorefrontError as exc:
            return error_response_for(exc, overrides=CHECKOUT_ERROR_STATUS)

        return Response(PriceBreakdownSerializer(breakdown).data, status=status.HTTP_200_OK)
