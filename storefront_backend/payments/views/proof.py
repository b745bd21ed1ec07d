# payments/views/proof.py
from __future__ import annotations

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from common.api import error_response_for
from common.exceptions import StorefrontError
from payments.serializers import PaymentProofSerializer, PaymentSerializer
from payments.services.reconciliation import OrderNotPayableError, submit_payment_proof
from payments.views.gateway import PaymentThrottle


class PaymentProofView(APIView):
    permission_classes = [IsAuthenticated]
    parser_classes = [MultiPartParser, FormParser]
    throttle_classes = [PaymentThrottle]

    @extend_schema(
        tags=["Payments"],
        request={"multipart/form-data": PaymentProofSerializer},
        responses={
            201: PaymentSerializer,
            400: OpenApiResponse(description="Order is not awaiting payment"),
            404: OpenApiResponse(description="Order not found"),
        },
        description="Upload a manual proof of payment (e.g. GCash transfer reference + screenshot).",
    )
    def post(self, request, *args, **kwargs):
        s = PaymentProofSerializer(data=request.data)
        s.is_valid(raise_exception=True)

        try:
            payment = submit_payment_proof(
                user=request.user,
                order_id=s.validated_data["order_id"],
                reference_number=s.validated_data["reference_number"],
                proof_file=s.validated_data["proof_file"],
            )
        except StorefrontError as exc:
            return error_response_for(exc, overrides={OrderNotPayableError: status.HTTP_400_BAD_REQUEST})

        return Response(PaymentSerializer(payment).data, status=status.HTTP_201_CREATED)
