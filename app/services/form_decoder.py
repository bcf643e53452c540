import os
import uuid
from typing import AsyncIterator, Dict, List

import structlog
from python_multipart.multipart import parse_options_header
from starlette.datastructures import UploadFile
from starlette.formparsers import MultiPartException, MultiPartParser
from starlette.requests import Request

from app.core.config import settings
from app.models.errors import ParseError
from app.models.submission import DecodedForm, UploadedFile

logger = structlog.get_logger()

CHUNK_SIZE = 1024 * 1024

def _discard(path: str) -> None:
    if os.path.exists(path):
        os.remove(path)

async def save_uploaded_file(upload_file: UploadFile) -> UploadedFile:
    """
    Streams one uploaded part into UPLOAD_DIR under a random name that keeps
    the original extension. Enforces MAX_UPLOAD_SIZE_MB while copying.
    """
    original_filename = os.path.basename(upload_file.filename or "")
    _, extension = os.path.splitext(original_filename)
    dest_path = os.path.join(settings.UPLOAD_DIR, uuid.uuid4().hex + extension)
    max_bytes = settings.MAX_UPLOAD_SIZE_MB * 1024 * 1024

    size = 0
    try:
        with open(dest_path, "wb") as out_file:
            while True:
                chunk = await upload_file.read(CHUNK_SIZE)
                if not chunk:
                    break
                size += len(chunk)
                if size > max_bytes:
                    raise ParseError(
                        f"File too large. Max size is {settings.MAX_UPLOAD_SIZE_MB} MB."
                    )
                out_file.write(chunk)
    except ParseError:
        _discard(dest_path)
        raise
    except OSError as e:
        _discard(dest_path)
        raise ParseError(f"Could not store uploaded file: {e}") from e

    return UploadedFile(
        path=dest_path,
        original_filename=original_filename,
        content_type=upload_file.content_type,
        size=size,
    )

class ClosingBoundaryWatch:
    """
    Passes request body chunks through unchanged while keeping the last few
    bytes, so the caller can tell whether the multipart stream was terminated.
    """

    def __init__(self, chunks: AsyncIterator[bytes], boundary: bytes):
        self._chunks = chunks
        self._delimiter = b"--" + boundary + b"--"
        self._tail = b""

    async def stream(self) -> AsyncIterator[bytes]:
        keep = len(self._delimiter) + 4
        async for chunk in self._chunks:
            self._tail = (self._tail + chunk)[-keep:]
            yield chunk

    def terminated(self) -> bool:
        return self._tail.rstrip(b"\r\n").endswith(self._delimiter)

async def decode_form(request: Request) -> DecodedForm:
    """
    Structural decoding of a multipart body. Text parts are collected per name
    in arrival order, file parts are written to disk. Nothing is validated here.
    Anything that is not a complete multipart/form-data body is a ParseError.
    """
    content_type, options = parse_options_header(request.headers.get("content-type", ""))
    if content_type != b"multipart/form-data":
        received = content_type.decode("latin-1") or "no content type"
        raise ParseError(f"Malformed form body: expected multipart/form-data, got {received}")
    boundary = options.get(b"boundary")
    if not boundary:
        raise ParseError("Malformed form body: missing multipart boundary")

    body = ClosingBoundaryWatch(request.stream(), boundary)
    try:
        form = await MultiPartParser(request.headers, body.stream()).parse()
    except (MultiPartException, ValueError, OSError) as e:
        detail = getattr(e, "message", None) or str(e)
        raise ParseError(f"Malformed form body: {detail}") from e

    fields: Dict[str, List[str]] = {}
    files: Dict[str, List[UploadedFile]] = {}
    try:
        if not body.terminated():
            raise ParseError("Malformed form body: missing closing boundary")

        for name, value in form.multi_items():
            if isinstance(value, UploadFile):
                # An empty file input is sent as a part without a filename
                if not value.filename:
                    continue
                files.setdefault(name, []).append(await save_uploaded_file(value))
            else:
                fields.setdefault(name, []).append(value)
    finally:
        await form.close()

    logger.info(
        "form_decoded",
        field_count=len(fields),
        files={name: [f.original_filename for f in items] for name, items in files.items()},
    )
    return DecodedForm(fields=fields, files=files)
