# payments/views/gateway.py
from __future__ import annotations

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.throttling import UserRateThrottle
from rest_framework.views import APIView

from common.api import error_response_for
from common.exceptions import StorefrontError
from payments.serializers import (
    CreateSourceResponseSerializer,
    CreateSourceSerializer,
    VerifyPaymentResponseSerializer,
    VerifyPaymentSerializer,
)
from payments.services.reconciliation import (
    OrderNotPayableError,
    create_gateway_payment,
    verify_gateway_payment,
)


class PaymentThrottle(UserRateThrottle):
    """
    Uses REST_FRAMEWORK['DEFAULT_THROTTLE_RATES']['payments'].
    """

    scope = "payments"


class CreateSourceView(APIView):
    permission_classes = [IsAuthenticated]
    throttle_classes = [PaymentThrottle]

    @extend_schema(
        tags=["Payments"],
        request=CreateSourceSerializer,
        responses={
            201: CreateSourceResponseSerializer,
            400: OpenApiResponse(description="Amount does not match the order total"),
            404: OpenApiResponse(description="Order not found or not payable"),
            502: OpenApiResponse(description="Payment provider error"),
        },
        description="Open a GCash source for an order awaiting payment and return its checkout URL.",
    )
    def post(self, request, *args, **kwargs):
        s = CreateSourceSerializer(data=request.data)
        s.is_valid(raise_exception=True)

        try:
            payment = create_gateway_payment(
                user=request.user,
                order_id=s.validated_data["order_id"],
                amount=s.validated_data["amount"],
            )
        except StorefrontError as exc:
            return error_response_for(exc, overrides={OrderNotPayableError: status.HTTP_404_NOT_FOUND})

        return Response(
            {
                "payment_id": str(payment.id),
                "source_id": payment.external_reference,
                "checkout_url": payment.checkout_url,
            },
            status=status.HTTP_201_CREATED,
        )


class VerifyPaymentView(APIView):
    permission_classes = [IsAuthenticated]
    throttle_classes = [PaymentThrottle]

    @extend_schema(
        tags=["Payments"],
        request=VerifyPaymentSerializer,
        responses={
            200: VerifyPaymentResponseSerializer,
            404: OpenApiResponse(description="Payment not found"),
            422: OpenApiResponse(description="Gateway amount mismatch (flagged for review)"),
            502: OpenApiResponse(description="Payment provider error"),
        },
        description="Poll the gateway for a source after the redirect; settles the payment when possible.",
    )
    def post(self, request, *args, **kwargs):
        s = VerifyPaymentSerializer(data=request.data)
        s.is_valid(raise_exception=True)

        try:
            result = verify_gateway_payment(user=request.user, source_id=s.validated_data["source_id"])
        except StorefrontError as exc:
            return error_response_for(exc)

        payment = result.payment
        return Response(
            {
                "status": payment.status if payment is not None else result.outcome,
                "order_status": result.order_status,
            },
            status=status.HTTP_200_OK,
        )
