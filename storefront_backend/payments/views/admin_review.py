# payments/views/admin_review.py

"""
Back-office payment screens:
- list payments (filter by status / method / needs_review)
- approve or reject a pending payment
"""

from __future__ import annotations

from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import generics
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from common.api import error_response_for
from common.exceptions import StorefrontError
from payments.models import Payment
from payments.serializers import PaymentReviewSerializer, PaymentSerializer
from payments.services.reconciliation import review_manual_payment
from users.permissions import IsBackOffice


class AdminPaymentListView(generics.ListAPIView):
    permission_classes = [IsAuthenticated, IsBackOffice]
    serializer_class = PaymentSerializer
    filter_backends = [DjangoFilterBackend]
    filterset_fields = ["status", "method", "needs_review"]

    queryset = Payment.objects.select_related("order", "reviewed_by").order_by("-created_at")

    @extend_schema(tags=["Admin"])
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)


class AdminPaymentReviewView(APIView):
    permission_classes = [IsAuthenticated, IsBackOffice]

    @extend_schema(
        tags=["Admin"],
        request=PaymentReviewSerializer,
        responses={
            200: PaymentSerializer,
            404: OpenApiResponse(description="Payment not found"),
            409: OpenApiResponse(description="Order cannot take this transition"),
        },
        description="Approve (payment confirmed) or reject (payment failed) a pending payment.",
    )
    def post(self, request, payment_id, *args, **kwargs):
        s = PaymentReviewSerializer(data=request.data)
        s.is_valid(raise_exception=True)

        try:
            review_manual_payment(
                payment_id=payment_id,
                reviewer=request.user,
                approve=s.validated_data["decision"] == PaymentReviewSerializer.DECISION_APPROVE,
                note=s.validated_data.get("note") or "",
            )
        except StorefrontError as exc:
            return error_response_for(exc)

        payment = Payment.objects.select_related("order", "reviewed_by").get(pk=payment_id)
        return Response(PaymentSerializer(payment).data)
