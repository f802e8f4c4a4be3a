# upi.py
"""UPI payment intents and the QR image link handed to the client."""
from urllib.parse import quote

import config

# encodeURIComponent leaves these unescaped
_URI_COMPONENT_SAFE = "-_.!~*'()"


def _component(value: str) -> str:
    return quote(value, safe=_URI_COMPONENT_SAFE)


def upi_uri(amount: float, note: str, payee_id: str | None = None, payee_name: str | None = None,
            currency: str | None = None) -> str:
    pa = payee_id or config.UPI_PAYEE_ID
    pn = payee_name or config.UPI_PAYEE_NAME
    cu = currency or config.CURRENCY
    return f"upi://pay?pa={pa}&pn={_component(pn)}&am={amount:.2f}&cu={cu}&tn={_component(note)}"


def qr_image_url(data: str, size: int = 200) -> str:
    return f"{config.QR_API_URL}?size={size}x{size}&data={_component(data)}"


def payment_intent(amount: float, note: str) -> dict:
    uri = upi_uri(amount, note)
    return {
        "amount": round(amount, 2),
        "currency": config.CURRENCY,
        "payeeId": config.UPI_PAYEE_ID,
        "payeeName": config.UPI_PAYEE_NAME,
        "note": note,
        "upiUri": uri,
        "qrUrl": qr_image_url(uri),
    }
