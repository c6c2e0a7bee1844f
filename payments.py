"""
Payment processor integration (Stripe).

When STRIPE_SECRET_KEY is not configured charges are simulated as succeeded so
the checkout flow can be exercised end to end in development.
"""
import logging
import os

import stripe

from config import FRONTEND_URL, PAYMENT_CURRENCY, STRIPE_SECRET_KEY

logger = logging.getLogger(__name__)

if STRIPE_SECRET_KEY:
    stripe.api_key = STRIPE_SECRET_KEY


class PaymentError(Exception):
    pass


def to_minor_units(amount: float) -> int:
    return int(round(amount * 100))


def charge(amount: float, payment_method_id: str, order_id: str) -> dict:
    """Create and confirm a payment intent for `amount` in the major currency unit.

    Returns {"id", "status", "simulated"}. Raises PaymentError when the
    processor rejects the request.
    """
    if not STRIPE_SECRET_KEY:
        payment_id = "pi_sim_" + os.urandom(8).hex()
        logger.info("Simulated payment %s for order %s", payment_id, order_id)
        return {"id": payment_id, "status": "succeeded", "simulated": True}

    try:
        intent = stripe.PaymentIntent.create(
            amount=to_minor_units(amount),
            currency=PAYMENT_CURRENCY,
            payment_method=payment_method_id,
            confirmation_method="manual",
            confirm=True,
            return_url=f"{FRONTEND_URL}/order/{order_id}",
            metadata={"order_id": order_id},
        )
    except stripe.StripeError as e:
        logger.warning("Stripe rejected payment for order %s: %s", order_id, e)
        raise PaymentError(e.user_message or str(e))

    return {"id": intent.id, "status": intent.status, "simulated": False}
