"""Application-wide constants for the auto-école backend."""

from __future__ import annotations

BRAND_NAME = "AutoEcole"

DEFAULT_SCHOOL_TIMEZONE = "Europe/Paris"
DEFAULT_CURRENCY = "EUR"

# Text constraints
MAX_SLOT_COMMENT_LENGTH = 2000
MAX_APPRECIATION_COMMENT_LENGTH = 1000
MAX_VEHICLE_LENGTH = 100

# Query limits
DEFAULT_QUERY_LIMIT = 100
MAX_QUERY_LIMIT = 500

# Stripe
STRIPE_CHECKOUT_COMPLETED = "checkout.session.completed"
PAYMENT_METHOD_STRIPE = "stripe"
