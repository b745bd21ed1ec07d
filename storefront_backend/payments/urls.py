# payments/urls.py

"""
PAYMENT API URLS

Mounted at /api/ in backend/urls.py:

- POST /api/payments/source/    (gateway: open GCash source)
- POST /api/payments/verify/    (gateway: client poll after redirect)
- POST /api/payments/webhook/   (gateway: PayMongo events, signature-checked)
- POST /api/payments/proof/     (manual proof of payment, multipart)

Back office:
- GET  /api/admin/payments/
- POST /api/admin/payments/<uuid>/review/
"""

from django.urls import path

from payments.views.admin_review import AdminPaymentListView, AdminPaymentReviewView
from payments.views.gateway import CreateSourceView, VerifyPaymentView
from payments.views.proof import PaymentProofView
from payments.views.webhook import PayMongoWebhookView

urlpatterns = [
    path("payments/source/", CreateSourceView.as_view(), name="payment-source"),
    path("payments/verify/", VerifyPaymentView.as_view(), name="payment-verify"),
    path("payments/webhook/", PayMongoWebhookView.as_view(), name="payment-webhook"),
    path("payments/proof/", PaymentProofView.as_view(), name="payment-proof"),
    path("admin/payments/", AdminPaymentListView.as_view(), name="admin-payment-list"),
    path("admin/payments/<uuid:payment_id>/review/", AdminPaymentReviewView.as_view(), name="admin-payment-review"),
]
