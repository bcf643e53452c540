import re

from app.models.schema_def import RegistrationSchema, REGISTRATION_SCHEMA
from app.models.submission import DecodedForm, ValidationResult

PHONE_FORMAT_MESSAGE = "رقم الجوال يجب أن يبدأ بـ 05 ويتكون من 10 أرقام"
DOCUMENT_REQUIRED_MESSAGE = "يجب رفع ملف السجل التجاري والرقم الضريبي"
UNSUPPORTED_TYPE_MESSAGE = "نوع الملف غير مسموح. يجب أن يكون PDF أو صورة"

def required_field_message(field_name: str) -> str:
    return f"الحقل {field_name} مطلوب"

def _failure(message: str) -> ValidationResult:
    return ValidationResult(is_valid=False, message=message)

# VALIDATION LOGIC
#----------------------------------------------------------------
def check_required_fields(form: DecodedForm, schema: RegistrationSchema) -> ValidationResult:
    """
    Walks the required fields in schema order and reports the first one that
    is missing or blank. Only the first value of each field is looked at.
    """
    for field_name in schema.required_field_names():
        values = form.fields.get(field_name)
        if not values or values[0].strip() == "":
            return _failure(required_field_message(field_name))
    return ValidationResult(is_valid=True)

def is_valid_phone(phone: str, schema: RegistrationSchema = REGISTRATION_SCHEMA) -> bool:
    field = schema.field_by_name("phone")
    return re.fullmatch(field.pattern, phone) is not None

def check_phone(form: DecodedForm, schema: RegistrationSchema) -> ValidationResult:
    # Matched as sent, untrimmed
    if not is_valid_phone(form.first("phone"), schema):
        return _failure(PHONE_FORMAT_MESSAGE)
    return ValidationResult(is_valid=True)

def check_document(form: DecodedForm, schema: RegistrationSchema) -> ValidationResult:
    document = form.first_file(schema.document.name)
    if document is None:
        return _failure(DOCUMENT_REQUIRED_MESSAGE)
    if document.content_type not in schema.document.allowed_types:
        return _failure(UNSUPPORTED_TYPE_MESSAGE)
    return ValidationResult(is_valid=True)

def validate_submission(
    form: DecodedForm,
    schema: RegistrationSchema = REGISTRATION_SCHEMA,
) -> ValidationResult:
    """
    Main entry point for submission validation.
    Runs the checks in a fixed order and stops at the first failure.
    """
    checks = (
        lambda: check_required_fields(form, schema),
        lambda: check_phone(form, schema),
        lambda: check_document(form, schema),
    )
    for check in checks:
        result = check()
        if not result.is_valid:
            return result
    return ValidationResult(is_valid=True)
