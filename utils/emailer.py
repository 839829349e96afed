import logging

import requests
from flask import current_app

logger = logging.getLogger(__name__)

OTP_EMAIL_TEMPLATE = """\
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
  <h1 style="color: #333; text-align: center;">Login Verification</h1>
  <p style="color: #666; font-size: 16px;">Hello,</p>
  <p style="color: #666; font-size: 16px;">Your one-time password (OTP) for logging into Vriddhion &amp; Udaanex is:</p>
  <div style="background: linear-gradient(135deg, #667eea 0%, #764ba2 100%); color: white; font-size: 32px; font-weight: bold; text-align: center; padding: 20px; border-radius: 10px; margin: 20px 0; letter-spacing: 8px;">
    {code}
  </div>
  <p style="color: #666; font-size: 14px;">This OTP is valid for {ttl_minutes} minutes.</p>
  <p style="color: #999; font-size: 12px;">If you didn't request this OTP, please ignore this email.</p>
  <hr style="border: none; border-top: 1px solid #eee; margin: 20px 0;">
  <p style="color: #999; font-size: 12px; text-align: center;">&copy; Vriddhion &amp; Udaanex IT Solutions Pvt Ltd</p>
</div>
"""


def email_configured() -> bool:
    return bool(current_app.config.get("RESEND_API_KEY"))


def render_otp_email(code: str) -> str:
    ttl_minutes = current_app.config.get("OTP_TTL_SECONDS", 600) // 60
    return OTP_EMAIL_TEMPLATE.format(code=code, ttl_minutes=ttl_minutes)


def send_otp_email(to_email: str, code: str):
    """
    Deliver the code through the transactional email API.
    Returns (ok, error). The error string is for server logs only.
    """
    api_key = current_app.config.get("RESEND_API_KEY")
    if not api_key:
        return False, "Email not configured"

    payload = {
        "from": current_app.config.get("OTP_EMAIL_FROM"),
        "to": [to_email],
        "subject": current_app.config.get("OTP_EMAIL_SUBJECT"),
        "html": render_otp_email(code),
    }

    try:
        response = requests.post(
            current_app.config.get("RESEND_API_URL", "https://api.resend.com/emails"),
            headers={"Authorization": f"Bearer {api_key}"},
            json=payload,
            timeout=current_app.config.get("EMAIL_TIMEOUT_SECONDS", 15),
        )
    except requests.Timeout:
        return False, "Email API timed out"
    except requests.RequestException as exc:
        return False, f"Email API request failed: {exc.__class__.__name__}"

    if not response.ok:
        return False, f"Email API error: {response.status_code} {response.text[:200]}"

    logger.debug("Email API accepted OTP message for %s", to_email)
    return True, None
