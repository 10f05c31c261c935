"""
Bank-transfer QR codes for invoice payment.

The QR encodes `bankId|accountNo|accountName|amount|content` and is returned
as a PNG data URL so the payment page can render it inline.
"""
import base64
import logging
from decimal import Decimal
from io import BytesIO

import qrcode
from django.conf import settings

from .dtos import BankInfoDTO

logger = logging.getLogger(__name__)

TRANSFER_PREFIX = "STAYEASE"


def get_bank_info() -> BankInfoDTO:
    return BankInfoDTO(
        bank_id=settings.BANK_ID,
        account_no=settings.BANK_ACCOUNT_NO,
        account_name=settings.BANK_ACCOUNT_NAME,
    )


def format_amount(amount) -> str:
    """Whole amounts without decimals (VND), otherwise plain fixed-point."""
    amount = Decimal(str(amount))
    if amount == amount.to_integral_value():
        return str(int(amount))
    return format(amount.normalize(), 'f')


def build_transfer_content(invoice_number: str, amount) -> str:
    return f"{TRANSFER_PREFIX} {invoice_number} {format_amount(amount)}"


def build_qr_payload(bank_info: BankInfoDTO, amount, content: str) -> str:
    return "|".join([
        bank_info.bank_id,
        bank_info.account_no,
        bank_info.account_name,
        format_amount(amount),
        content,
    ])


def render_qr_data_url(payload: str) -> str:
    """Render the payload as a PNG QR code (error correction M) and base64 it."""
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=10,
        border=2,
    )
    qr.add_data(payload)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")

    buf = BytesIO()
    img.save(buf, format="PNG")
    encoded = base64.b64encode(buf.getvalue()).decode("ascii")
    return f"data:image/png;base64,{encoded}"
