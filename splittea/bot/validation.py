"""Parsers for the data-entry steps. Each raises InputValidationError
carrying the retry prompt to show the user."""

from decimal import Decimal, InvalidOperation

from splittea.exceptions import IdentityError, InputValidationError
from splittea.models.schemas import IncomingMessage

# Matches the 28 significant digits of the default decimal context
MAX_AMOUNT_DIGITS = 28


def require_sender(message: IncomingMessage) -> str:
    if not message.sender:
        raise IdentityError()
    return message.sender


def require_text(text: str, prompt: str) -> str:
    text = text.strip()
    if not text:
        raise InputValidationError(prompt)
    return text


def parse_group_id(text: str) -> int:
    try:
        return int(text.strip())
    except ValueError:
        raise InputValidationError("Please, send an integer value:") from None


def parse_amount(text: str) -> Decimal:
    text = text.strip()
    # Plain notation only: "1e30" is not an amount anybody types
    if "e" in text.lower():
        raise InputValidationError("Please, provide some decimal value:")
    try:
        amount = Decimal(text)
    except InvalidOperation:
        raise InputValidationError("Please, provide some decimal value:") from None
    if not amount.is_finite():
        raise InputValidationError("Please, provide some decimal value:")
    # Whole digits plus cents must fit the context
    whole_digits = max(amount.adjusted(), 0) + 1
    if whole_digits + 2 > MAX_AMOUNT_DIGITS or len(amount.as_tuple().digits) > MAX_AMOUNT_DIGITS:
        raise InputValidationError("Please, provide some decimal value:")
    if amount <= 0:
        raise InputValidationError("Please, provide some positive amount:")
    return amount


def parse_handle(text: str) -> str:
    handle = text.strip()
    if len(handle) < 2 or not handle.startswith("@") or any(c.isspace() for c in handle):
        raise InputValidationError("Please, provide a username, starting from `@`:")
    return handle
