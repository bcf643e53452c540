from typing import Optional
from pydantic import BaseModel

class ErrorResponse(BaseModel):
    success: bool = False
    message: str
    error: Optional[str] = None

class RegistrationResponse(BaseModel):
    success: bool = True
    message: str
    customer_id: str
    file_url: str

class IntakeError(Exception):
    """Base class for failures that end a submission with a 500."""

class ParseError(IntakeError):
    """The multipart body could not be decoded or stored locally."""

class UploadError(IntakeError):
    """Drive rejected the document upload or the permission grant."""

class AppendError(IntakeError):
    """Sheets rejected the customer row."""
