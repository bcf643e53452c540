from typing import Any, Dict

import structlog
from google.auth.exceptions import GoogleAuthError
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseUpload
from starlette.concurrency import run_in_threadpool

from app.models.errors import UploadError
from app.models.submission import UploadedFile
from app.services.google_clients import GoogleClients

logger = structlog.get_logger()

PUBLIC_READ_PERMISSION = {"role": "reader", "type": "anyone"}

def destination_name(customer_id: str, document: UploadedFile) -> str:
    return f"{customer_id}_{document.original_filename}"

def view_url(file_id: str) -> str:
    return f"https://drive.google.com/file/d/{file_id}/view"

def _create_file(clients: GoogleClients, document: UploadedFile, name: str) -> Dict[str, Any]:
    with open(document.path, "rb") as stream:
        media = MediaIoBaseUpload(stream, mimetype=document.content_type, resumable=True)
        return clients.drive.files().create(
            body={"name": name, "parents": [clients.folder_id]},
            media_body=media,
            fields="id",
        ).execute(http=clients.authorized_http())

def _grant_public_read(clients: GoogleClients, file_id: str) -> None:
    clients.drive.permissions().create(
        fileId=file_id,
        body=PUBLIC_READ_PERMISSION,
    ).execute(http=clients.authorized_http())

async def upload_document(clients: GoogleClients, document: UploadedFile, customer_id: str) -> str:
    """
    Pushes the document into the Drive folder, makes it readable by anyone
    with the link and returns that link. The permission is only requested
    once the file exists; nothing is cleaned up if either call fails.
    """
    name = destination_name(customer_id, document)
    try:
        created = await run_in_threadpool(_create_file, clients, document, name)
        file_id = created["id"]
        await run_in_threadpool(_grant_public_read, clients, file_id)
    except (HttpError, GoogleAuthError, OSError, KeyError) as e:
        raise UploadError(f"Drive upload failed: {e}") from e

    file_url = view_url(file_id)
    logger.info("document_uploaded", customer_id=customer_id, drive_file_id=file_id, name=name)
    return file_url
