import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from app.models.errors import ErrorResponse, RegistrationResponse
from app.models.schema_def import REGISTRATION_SCHEMA
from app.services import drive_uploader, form_decoder, sheet_appender, validator
from app.services.customer_record import build_customer_row, generate_customer_id
from app.services.google_clients import GoogleClients, get_google_clients

logger = structlog.get_logger()

router = APIRouter()

SUCCESS_MESSAGE = "تم تسجيل العميل بنجاح"
SERVER_ERROR_MESSAGE = "حدث خطأ في الخادم. يرجى المحاولة مرة أخرى."

def _respond(status_code: int, body) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))

@router.get("/schema")
async def get_schema():
    return REGISTRATION_SCHEMA

@router.post(
    "/register",
    response_model=RegistrationResponse,
    responses={
        400: {"model": ErrorResponse},
        405: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def register_customer(
    request: Request,
    clients: GoogleClients = Depends(get_google_clients),
):
    try:
        # 1. Decode the multipart body
        form = await form_decoder.decode_form(request)

        # 2. Validate, first failure wins
        result = validator.validate_submission(form)
        if not result.is_valid:
            logger.info("submission_rejected", reason=result.message)
            return _respond(400, ErrorResponse(message=result.message))

        document = form.first_file(REGISTRATION_SCHEMA.document.name)
        customer_id = generate_customer_id()

        # 3. Push the document to Drive and make it readable by link
        file_url = await drive_uploader.upload_document(clients, document, customer_id)

        # 4. Store the customer row; an uploaded file is not rolled back if this fails
        row = build_customer_row(form, customer_id, file_url)
        await sheet_appender.append_customer_row(clients, row)

        await sheet_appender.discard_temp_file(document)

        return _respond(
            200,
            RegistrationResponse(
                message=SUCCESS_MESSAGE,
                customer_id=customer_id,
                file_url=file_url,
            ),
        )

    except Exception as e:
        logger.exception("registration_failed", error=str(e))
        return _respond(500, ErrorResponse(message=SERVER_ERROR_MESSAGE, error=str(e)))
