"""SMS gateway dispatcher for citizen one-time codes."""
import requests
from flask import current_app


class SMSDeliveryError(Exception):
    """Raised when the SMS gateway rejects or cannot receive a message."""


def _otp_message(otp: str, ttl_seconds: int) -> str:
    minutes = max(1, ttl_seconds // 60)
    return f"Your SWM portal verification code is {otp}. It expires in {minutes} minute(s)."


def send_otp_sms(phone: str, otp: str) -> bool:
    """Deliver ``otp`` to ``phone``. Returns False when no gateway is configured."""
    gateway_url = current_app.config.get("SMS_GATEWAY_URL")
    if not gateway_url:
        # Development fallback: no gateway, surface the code in the log instead.
        current_app.logger.warning("SMS gateway not configured; OTP for %s is %s", phone, otp)
        return False

    payload = {
        "to": f"+91{phone}",
        "message": _otp_message(otp, int(current_app.config.get("OTP_TTL_SECONDS", 300))),
    }
    headers = {"Authorization": f"Bearer {current_app.config.get('SMS_GATEWAY_KEY', '')}"}
    timeout = int(current_app.config.get("SMS_GATEWAY_TIMEOUT", 15))
    try:
        response = requests.post(gateway_url, json=payload, headers=headers, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as exc:
        raise SMSDeliveryError(f"SMS gateway request failed: {exc}") from exc

    current_app.logger.info("OTP SMS dispatched", extra={"phone_suffix": phone[-4:]})
    return True
