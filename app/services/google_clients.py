import json
from dataclasses import dataclass
from typing import Any

import google_auth_httplib2
import gspread
import httplib2
import structlog
from fastapi import Request
from google.oauth2.service_account import Credentials
from googleapiclient.discovery import build

from app.core.config import Settings

logger = structlog.get_logger()

SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive.file",
]

@dataclass
class GoogleClients:
    """Authenticated handles shared by every request for the process lifetime."""
    drive: Any          # googleapiclient Drive v3 resource
    spreadsheet: Any    # gspread.Spreadsheet of the destination sheet
    folder_id: str
    sheet_range: str
    credentials: Any = None

    def authorized_http(self) -> google_auth_httplib2.AuthorizedHttp:
        """
        A fresh authorized transport for one Drive call. httplib2 connections
        are not thread-safe, so worker threads never share the resource's own.
        """
        return google_auth_httplib2.AuthorizedHttp(self.credentials, http=httplib2.Http())

def load_credentials(settings: Settings) -> Credentials:
    if settings.GOOGLE_CREDENTIALS:
        info = json.loads(settings.GOOGLE_CREDENTIALS)
        return Credentials.from_service_account_info(info, scopes=SCOPES)
    if settings.GOOGLE_CREDENTIALS_FILE:
        return Credentials.from_service_account_file(settings.GOOGLE_CREDENTIALS_FILE, scopes=SCOPES)
    raise RuntimeError("Set GOOGLE_CREDENTIALS or GOOGLE_CREDENTIALS_FILE")

def init_google_clients(settings: Settings) -> GoogleClients:
    """
    Builds the Drive and Sheets clients once. Called from the application
    lifespan; fails fast when the destination is not configured.
    """
    if not settings.SHEET_ID:
        raise RuntimeError("SHEET_ID is not configured")
    if not settings.DRIVE_FOLDER_ID:
        raise RuntimeError("DRIVE_FOLDER_ID is not configured")

    credentials = load_credentials(settings)
    drive = build("drive", "v3", credentials=credentials, cache_discovery=False)
    spreadsheet = gspread.authorize(credentials).open_by_key(settings.SHEET_ID)

    logger.info(
        "google_clients_initialized",
        sheet_id=settings.SHEET_ID,
        folder_id=settings.DRIVE_FOLDER_ID,
    )
    return GoogleClients(
        drive=drive,
        spreadsheet=spreadsheet,
        folder_id=settings.DRIVE_FOLDER_ID,
        sheet_range=settings.SHEET_RANGE,
        credentials=credentials,
    )

def get_google_clients(request: Request) -> GoogleClients:
    # Populated by the lifespan in app.main
    return request.app.state.google_clients
