"""
PaymentInfo model: mobile payment details submitted by a guest.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class PaymentInfo:
    bank: str = ""
    id_type: str = ""
    id_number: str = ""
    phone_code: str = ""
    phone_number: str = ""
