import logging

from flask import Blueprint, request, jsonify

from security.cors import apply_cors_headers
from services.otp_service import send_otp, verify_otp, check_user
from utils.errors import OtpError, Internal, InvalidRequest

logger = logging.getLogger(__name__)

otp_bp = Blueprint("otp", __name__)


@otp_bp.after_request
def _cors(resp):
    return apply_cors_headers(resp)


def _error_response(err: OtpError):
    return jsonify(err.to_dict()), err.status_code


def _handle_send(data):
    send_otp(data.get("email"))
    return jsonify(success=True, message="OTP sent successfully"), 200


def _handle_verify(data):
    verify_otp(data.get("email"), data.get("otp"))
    return jsonify(success=True, verified=True), 200


def _handle_check_user(data):
    return jsonify(exists=check_user(data.get("email"))), 200


ACTIONS = {
    "send": _handle_send,
    "verify": _handle_verify,
    "check-user": _handle_check_user,
}


@otp_bp.route("/otp", methods=["POST", "OPTIONS"])
def otp():
    if request.method == "OPTIONS":
        return "", 204

    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        logger.warning("Malformed /otp request body")
        return _error_response(Internal())

    handler = ACTIONS.get(data.get("action"))
    if handler is None:
        return _error_response(InvalidRequest("Invalid action"))

    try:
        return handler(data)
    except OtpError as err:
        return _error_response(err)
    except Exception:
        logger.exception("Unhandled error in /otp action=%s", data.get("action"))
        return _error_response(Internal())
