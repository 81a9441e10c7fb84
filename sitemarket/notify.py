# sitemarket/notify.py
"""Outbound adapters: SMTP email and reCAPTCHA verification.

Email is best effort: failures are logged and never surface to the caller.
"""
import os
import smtplib
from email.message import EmailMessage

import requests
from dotenv import load_dotenv

from .errors import UpstreamError
from .utils import logger

load_dotenv()

SMTP_HOST = os.getenv("SMTP_HOST")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USER = os.getenv("SMTP_USER")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
MAIL_FROM = os.getenv("MAIL_FROM", "no-reply@sitemarket.local")

RECAPTCHA_SECRET = os.getenv("RECAPTCHA_SECRET")
RECAPTCHA_VERIFY_URL = os.getenv("RECAPTCHA_VERIFY_URL", "https://www.google.com/recaptcha/api/siteverify")

def send_email(to: str, subject: str, body: str) -> bool:
    if not SMTP_HOST:
        logger.info("SMTP not configured; skipping email to %s (%s)", to, subject)
        return False
    msg = EmailMessage()
    msg["From"] = MAIL_FROM
    msg["To"] = to
    msg["Subject"] = subject
    msg.set_content(body)
    try:
        with smtplib.SMTP(SMTP_HOST, SMTP_PORT, timeout=10) as smtp:
            smtp.starttls()
            if SMTP_USER:
                smtp.login(SMTP_USER, SMTP_PASSWORD or "")
            smtp.send_message(msg)
    except (smtplib.SMTPException, OSError) as e:
        logger.error("Failed sending email to %s: %s", to, e)
        return False
    logger.info("Sent email to %s: %s", to, subject)
    return True

def verify_captcha(token) -> bool:
    """Check a reCAPTCHA response token. Always passes when no secret is configured."""
    if not RECAPTCHA_SECRET:
        return True
    if not token:
        return False
    try:
        resp = requests.post(
            RECAPTCHA_VERIFY_URL,
            data={"secret": RECAPTCHA_SECRET, "response": token},
            timeout=10,
        )
        resp.raise_for_status()
        data = resp.json()
    except (requests.RequestException, ValueError) as e:
        logger.error("Captcha verification failed: %s", e)
        raise UpstreamError("Captcha verification unavailable")
    return bool(data.get("success"))
