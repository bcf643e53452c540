import time
from datetime import datetime
from typing import List, Optional
from zoneinfo import ZoneInfo

from app.core.config import settings
from app.models.submission import DecodedForm

CUSTOMER_ID_PREFIX = "CUST_"

_ARABIC_DIGITS = str.maketrans("0123456789", "٠١٢٣٤٥٦٧٨٩")

# Date parts are separated by a right-to-left mark and a slash
_RLM_SLASH = "\u200f/"

def _epoch_millis() -> int:
    return int(time.time() * 1000)

def generate_customer_id() -> str:
    return f"{CUSTOMER_ID_PREFIX}{_epoch_millis()}"

def format_registration_timestamp(moment: Optional[datetime] = None) -> str:
    """
    Renders the registration time in the ar-SA style already used in the sheet:
    DD/MM/YYYY، hh:mm followed by ص (AM) or م (PM), each slash preceded
    by U+200F, Arabic-Indic digits, in the configured timezone.
    """
    zone = ZoneInfo(settings.TIMEZONE)
    local = moment.astimezone(zone) if moment else datetime.now(zone)
    meridiem = "ص" if local.hour < 12 else "م"
    date_part = _RLM_SLASH.join((f"{local:%d}", f"{local:%m}", f"{local:%Y}"))
    text = f"{date_part}، {local:%I:%M} {meridiem}"
    return text.translate(_ARABIC_DIGITS)

def build_customer_row(
    form: DecodedForm,
    customer_id: str,
    file_url: str,
    registered_at: Optional[str] = None,
) -> List[str]:
    """
    Lays out one customer as the 17 values of columns A..Q.
    The order must match the header row of the destination sheet.
    Optional fields that were not sent become empty strings so no column shifts.
    """
    if registered_at is None:
        registered_at = format_registration_timestamp()

    return [
        customer_id,                    # A
        form.first("cust_name"),        # B
        form.first("contact_name"),     # C
        form.first("phone"),            # D
        form.first("email"),            # E
        form.first("city"),             # F
        form.first("district"),         # G
        form.first("building_no"),      # H
        form.first("street"),           # I
        form.first("postal"),           # J
        form.first("extra_no"),         # K
        form.first("maps_url"),         # L
        form.first("cr_no"),            # M
        form.first("vat_no"),           # N
        file_url,                       # O
        form.first("agent"),            # P
        registered_at,                  # Q
    ]
