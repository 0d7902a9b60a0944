"""Razorpay adapter.

A Razorpay order is the payment intent for a milestone: it is opened for the
milestone amount in minor units and later reported ``paid`` by the gateway.
"""
import logging
from decimal import ROUND_HALF_UP, Decimal

import razorpay
import requests
from django.conf import settings

from core.exceptions import InvalidState, UpstreamFailure

logger = logging.getLogger(__name__)


def to_minor_units(amount):
    """Convert a decimal amount to integer minor units (paise), rounding half up."""
    return int((Decimal(str(amount)) * 100).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


class RazorpayGateway:
    def __init__(self, key_id=None, key_secret=None, webhook_secret=None, timeout=None):
        self.key_id = key_id or settings.RAZORPAY_KEY_ID
        self.key_secret = key_secret or settings.RAZORPAY_KEY_SECRET
        self.webhook_secret = webhook_secret or settings.RAZORPAY_WEBHOOK_SECRET
        self.timeout = timeout or settings.PAYMENT_GATEWAY_TIMEOUT
        self.client = razorpay.Client(auth=(self.key_id, self.key_secret))

    def create_order(self, amount, currency, notes):
        payload = {
            "amount": to_minor_units(amount),
            "currency": currency,
            "payment_capture": 1,
            "notes": {key: str(value) for key, value in notes.items()},
        }
        try:
            return self.client.order.create(payload, timeout=self.timeout)
        except requests.exceptions.Timeout:
            logger.error(f"Timed out creating Razorpay order: {notes}")
            raise UpstreamFailure("Payment gateway timed out; the order status is unknown.")
        except (razorpay.errors.BadRequestError, razorpay.errors.GatewayError,
                razorpay.errors.ServerError, requests.exceptions.RequestException) as e:
            logger.error(f"Razorpay order creation failed: {e}")
            raise UpstreamFailure("Payment gateway is unavailable.")

    def fetch_order(self, order_id):
        try:
            return self.client.order.fetch(order_id, timeout=self.timeout)
        except requests.exceptions.Timeout:
            logger.error(f"Timed out fetching Razorpay order {order_id}")
            raise UpstreamFailure("Payment gateway timed out; the payment status is unknown.")
        except (razorpay.errors.BadRequestError, razorpay.errors.GatewayError,
                razorpay.errors.ServerError, requests.exceptions.RequestException) as e:
            logger.error(f"Fetching Razorpay order {order_id} failed: {e}")
            raise UpstreamFailure("Payment gateway is unavailable.")

    def verify_webhook(self, body, signature):
        """Raise InvalidState unless ``signature`` is the webhook secret's HMAC of ``body``."""
        if not signature or not self.webhook_secret:
            raise InvalidState("Missing webhook signature.")
        if isinstance(body, bytes):
            body = body.decode('utf-8')
        try:
            verified = self.client.utility.verify_webhook_signature(body, signature, self.webhook_secret)
        except razorpay.errors.SignatureVerificationError:
            verified = False
        if not verified:
            logger.warning("Rejected Razorpay webhook with an invalid signature")
            raise InvalidState("Invalid webhook signature.")
