"""
Payments Blueprint — payment records and their approval.

  POST   /api/payments                                    – enter payment (paying authority)
  GET    /api/payments                                    – list visible payments
  GET    /api/payments/ledger                             – approved payments with running total
  GET    /api/payments/pdf-range                          – approved payments as PDF (?start&end)
  PATCH  /api/payments/by-payment-id/<paymentID>/approve  – approve / reject (admin)
  POST   /api/payments/<id>/comments                      – add to the comment trail
  DELETE /api/payments/<id>                               – withdraw own pending payment
"""

from flask import Blueprint, jsonify, request

from sitetrack.blueprints._streaming import pdf_response, report_range
from sitetrack.middleware.permission_required import current_user, require_role
from sitetrack.models.auth import ROLE_ADMIN, ROLE_PAYING_AUTHORITY
from sitetrack.models.records import Payment
from sitetrack.schemas import CommentTextPayload, DecisionPayload, PaymentCreatePayload
from sitetrack.services import approval, payment_service
from sitetrack.utils.helpers import parse_date_range

payments_bp = Blueprint("payments_bp", __name__, url_prefix="/api/payments")


@payments_bp.route("", methods=["POST"])
@require_role(ROLE_PAYING_AUTHORITY)
def create_payment():
    """
    Body: { paymentID, date, amount, description?, remarks? }
    """
    payload = PaymentCreatePayload.from_payload(request.get_json(silent=True))
    payment = payment_service.create_payment(payload, current_user())
    return jsonify(payment.to_dict()), 201


@payments_bp.route("", methods=["GET"])
def list_payments():
    start, end = parse_date_range(request.args.get("startDate"), request.args.get("endDate"))
    items = payment_service.list_payments(
        current_user(), start, end, request.args.get("status")
    )
    return jsonify([p.to_dict() for p in items])


@payments_bp.route("/ledger", methods=["GET"])
def payment_ledger():
    start, end = parse_date_range(request.args.get("startDate"), request.args.get("endDate"))
    return jsonify(payment_service.ledger(start, end))


@payments_bp.route("/pdf-range", methods=["GET"])
def payment_pdf():
    start, end = report_range(request.args)
    records = approval.approved_between(Payment, start, end)
    return pdf_response("payment", records, start, end)


@payments_bp.route("/by-payment-id/<string:payment_id>/approve", methods=["PATCH"])
@require_role(ROLE_ADMIN)
def decide_payment(payment_id):
    payload = DecisionPayload.from_payload(request.get_json(silent=True))
    payment = payment_service.decide_payment(
        payment_id, payload.status, current_user(), payload.comments
    )
    return jsonify({"message": f"Payment {payload.status}", "payment": payment.to_dict()})


@payments_bp.route("/<int:record_id>/comments", methods=["POST"])
def comment_payment(record_id):
    payload = CommentTextPayload.from_payload(request.get_json(silent=True))
    payment = approval.add_comment(Payment, record_id, current_user(), payload.text)
    return jsonify(payment.to_dict())


@payments_bp.route("/<int:record_id>", methods=["DELETE"])
@require_role(ROLE_PAYING_AUTHORITY)
def delete_payment(record_id):
    payment_service.delete_payment(record_id, current_user())
    return jsonify({"message": "Payment deleted successfully"})
