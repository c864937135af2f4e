"""Payment policy normalization.

Collapses the historical and representational forms of "how will this
order be paid" (string codes, display labels, partially filled objects)
into one PaymentDescriptor with derived flags and a display label.

Payment display is informational: nothing in this module raises. Malformed
input degrades to the empty descriptor (code "", label "N/A").
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from types import MappingProxyType
from typing import Any, Mapping

from order_lifecycle.core.domain.types import PaymentDescriptor

NOT_AVAILABLE = "N/A"

PAYMENT_CODE_ALIASES: Mapping[str, str] = MappingProxyType(
    {
        "COD": "COD",
        "CASH ON DELIVERY": "COD",
        "CASH": "COD",
        "SPLIT PAYMENT": "SPLIT",
        "SPLIT": "SPLIT",
        "ADVANCE": "ADVANCE",
        "ADVANCE PAYMENT": "ADVANCE",
        "CREDIT": "CREDIT_CYCLE",
        "CREDIT CYCLE": "CREDIT_CYCLE",
        "EOM": "END_OF_MONTH",
        "END OF MONTH": "END_OF_MONTH",
        "UPI": "UPI",
        "NET BANKING": "NET_BANKING",
        "NEFT": "NET_BANKING",
        "RTGS": "NET_BANKING",
        "CHEQUE": "CHEQUE",
        "CHECK": "CHEQUE",
        "OTHER": "OTHER",
    }
)

PAYMENT_LABELS: Mapping[str, str] = MappingProxyType(
    {
        "COD": "Cash on Delivery",
        "SPLIT": "Split Payment",
        "ADVANCE": "Advance Payment",
        "CREDIT_CYCLE": "Credit Cycle",
        "END_OF_MONTH": "End of Month",
        "UPI": "UPI",
        "NET_BANKING": "Net Banking",
        "CHEQUE": "Cheque",
    }
)

CREDIT_CODES: frozenset[str] = frozenset({"CREDIT_CYCLE", "END_OF_MONTH"})


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _normalize_code(raw: Any) -> str:
    if raw is None or raw == "":
        return ""
    text = " ".join(str(raw).split()).upper()
    if not text:
        return ""
    if text in PAYMENT_CODE_ALIASES:
        return PAYMENT_CODE_ALIASES[text]
    # "credit_cycle" / "cash_on_delivery" style spellings
    spaced = " ".join(text.replace("_", " ").split())
    return PAYMENT_CODE_ALIASES.get(spaced, text)


def _as_mapping(value: Any) -> Mapping[str, Any] | None:
    if isinstance(value, PaymentDescriptor):
        return value.model_dump(by_alias=True, exclude_none=True)
    if isinstance(value, Mapping):
        return value
    return None


def extract_payment_code(value: Any) -> str:
    """Return the canonical payment code for a raw input.

    Unrecognized non-empty input passes through uppercased, as an opaque
    custom code. Unusable input yields "".
    """
    if not value:
        return ""
    if isinstance(value, str):
        return _normalize_code(value)
    if isinstance(value, PaymentDescriptor):
        return value.code

    data = _as_mapping(value)
    if data is None:
        return ""
    if data.get("code"):
        return _normalize_code(data["code"])
    if data.get("label") and data["label"] != NOT_AVAILABLE:
        return _normalize_code(data["label"])
    return ""


def normalize_payment_mode(value: Any) -> PaymentDescriptor:
    """Return the PaymentDescriptor for a raw input (never raises)."""
    code = extract_payment_code(value)

    credit_days = None
    advance_amount = None
    split_ratio = None

    data = _as_mapping(value)
    if data is not None:
        if _is_number(data.get("creditDays")):
            credit_days = data["creditDays"]
        if _is_number(data.get("advanceAmount")):
            advance_amount = data["advanceAmount"]
        if isinstance(data.get("splitRatio"), str):
            split_ratio = data["splitRatio"]

    return PaymentDescriptor(
        code=code,
        label=PAYMENT_LABELS.get(code, code) if code else NOT_AVAILABLE,
        is_cod=code == "COD",
        is_split=code == "SPLIT",
        is_advance=code == "ADVANCE",
        is_credit=code in CREDIT_CODES,
        is_upi=code == "UPI",
        is_net_banking=code == "NET_BANKING",
        is_cheque=code == "CHEQUE",
        credit_days=credit_days,
        advance_amount=advance_amount,
        split_ratio=split_ratio,
    )


def _format_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return f"{value:g}"


def _whole_amount(value: float) -> str:
    # Halves round away from zero (2.5 -> 3), not to even.
    return str(Decimal(value).to_integral_value(rounding=ROUND_HALF_UP))


def format_payment_label(value: Any) -> str:
    """Render a display string for a raw payment input."""
    payment = normalize_payment_mode(value)
    if not payment.code:
        return NOT_AVAILABLE
    if payment.code == "CREDIT_CYCLE" and payment.credit_days:
        return f"Credit Cycle ({_format_number(payment.credit_days)} days)"
    if payment.code == "ADVANCE" and payment.advance_amount:
        return f"Advance ₹{_whole_amount(payment.advance_amount)}"
    if payment.code == "SPLIT" and payment.split_ratio:
        return f"Split ({payment.split_ratio})"
    return payment.label


def payment_flags(value: Any) -> dict[str, bool]:
    """Return the compact flags stored next to a newly placed order.

    ``isAdvance`` means an advance was actually paid (``advancePaid > 0``).
    Without an ``advancePaid`` amount it falls back to the ADVANCE code.
    """
    payment = normalize_payment_mode(value)
    data = _as_mapping(value)

    advance_paid = None
    if data is not None and _is_number(data.get("advancePaid")):
        advance_paid = data["advancePaid"]

    if advance_paid is None:
        is_advance = payment.is_advance
    else:
        is_advance = advance_paid > 0

    return {
        "isCredit": payment.is_credit,
        "isAdvance": is_advance,
    }
