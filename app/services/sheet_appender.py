import os
from typing import List

import structlog
from google.auth.exceptions import GoogleAuthError
from gspread.exceptions import GSpreadException
from requests.exceptions import RequestException
from starlette.concurrency import run_in_threadpool

from app.models.errors import AppendError
from app.models.submission import UploadedFile
from app.services.google_clients import GoogleClients

logger = structlog.get_logger()

def _append(clients: GoogleClients, row: List[str]) -> None:
    # RAW keeps values such as "0512345678" or "=..." exactly as typed
    clients.spreadsheet.values_append(
        clients.sheet_range,
        params={"valueInputOption": "RAW"},
        body={"values": [row]},
    )

async def append_customer_row(clients: GoogleClients, row: List[str]) -> None:
    try:
        await run_in_threadpool(_append, clients, row)
    except (GSpreadException, GoogleAuthError, RequestException) as e:
        raise AppendError(f"Sheet append failed: {e}") from e
    logger.info("customer_row_appended", customer_id=row[0], sheet_range=clients.sheet_range)

async def discard_temp_file(document: UploadedFile) -> None:
    """
    Removes the local copy once the row is stored. A failure here does not
    undo a successful registration, so it is only logged.
    """
    try:
        await run_in_threadpool(os.remove, document.path)
    except OSError as e:
        logger.warning("temp_file_cleanup_failed", path=document.path, error=str(e))
