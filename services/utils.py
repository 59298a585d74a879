# services/utils.py

import uuid
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from flask_mail import Message
from db.extensions import mail
from flask import current_app
from services.exceptions import InvalidAmount, NotFound

CENT = Decimal('0.01')


def quantize_money(value):
    """Round a Decimal (or None) to currency precision."""
    if value is None:
        return Decimal('0.00')
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def parse_amount(value, field='amount'):
    """
    Parse a caller-supplied monetary amount into a cent-precision Decimal.
    Floats go through str() so 49.99 stays 49.99.
    """
    if isinstance(value, bool) or value is None:
        raise InvalidAmount(f"Valid {field} is required")
    try:
        amount = Decimal(str(value).strip())
        if not amount.is_finite():
            raise InvalidAmount(f"Valid {field} is required")
        rounded = amount.quantize(CENT, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError):
        raise InvalidAmount(f"Valid {field} is required")
    if amount != rounded:
        raise InvalidAmount(f"{field} must have at most two decimal places")
    return rounded


def as_uuid(value, not_found_message='Not found'):
    """Coerce an id to uuid.UUID; a malformed id can't exist, so it's NotFound."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        raise NotFound(not_found_message)


def send_email(subject, recipients, body, html=None):
    msg = Message(subject, recipients=recipients)
    msg.body = body
    if html:
        msg.html = html
    current_app.logger.info(f"msg: {msg.subject} -> {recipients}")
    try:
        mail.send(msg)
        current_app.logger.info("Mail Sent Successfully")
        return True
    except Exception as e:
        current_app.logger.error(f"Failed to send email: {e}")
        return False
