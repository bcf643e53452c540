from typing import List, Optional
from pydantic import BaseModel, Field

class SchemaField(BaseModel):
    name: str
    label: str                          # Arabic column title in the sheet
    required: bool = False
    description: Optional[str] = None
    pattern: Optional[str] = None       # regex the trimmed value must match

class FileField(BaseModel):
    name: str
    label: str
    required: bool = True
    allowed_types: List[str] = Field(default_factory=list)
    max_size_mb: int = 1024

class RegistrationSchema(BaseModel):
    name: str
    version: str
    fields: List[SchemaField]
    document: FileField

    def required_field_names(self) -> List[str]:
        return [f.name for f in self.fields if f.required]

    def optional_field_names(self) -> List[str]:
        return [f.name for f in self.fields if not f.required]

    def field_by_name(self, name: str) -> Optional[SchemaField]:
        return next((f for f in self.fields if f.name == name), None)

PHONE_PATTERN = r"^05[0-9]{8}$"

ALLOWED_DOCUMENT_TYPES = [
    "application/pdf",
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/heic",
]

# Required fields are listed in the order they are checked
REGISTRATION_SCHEMA = RegistrationSchema(
    name="CustomerRegistration",
    version="1.0",
    fields=[
        SchemaField(name="cust_name", label="اسم العميل", required=True),
        SchemaField(name="contact_name", label="مسؤول الاتصال", required=True),
        SchemaField(
            name="phone",
            label="رقم الجوال",
            required=True,
            description="Saudi mobile number, 05 followed by 8 digits",
            pattern=PHONE_PATTERN,
        ),
        SchemaField(name="city", label="المدينة", required=True),
        SchemaField(name="district", label="الحي", required=True),
        SchemaField(name="building_no", label="رقم المبنى", required=True),
        SchemaField(name="street", label="اسم الشارع", required=True),
        SchemaField(name="postal", label="الرمز البريدي", required=True),
        SchemaField(name="extra_no", label="الرقم الإضافي", required=True),
        SchemaField(name="cr_no", label="رقم السجل التجاري", required=True),
        SchemaField(name="vat_no", label="الرقم الضريبي", required=True),
        SchemaField(name="email", label="البريد الإلكتروني"),
        SchemaField(name="maps_url", label="رابط الموقع"),
        SchemaField(name="agent", label="كود المندوب", description="Referring sales agent code"),
    ],
    document=FileField(
        name="cr_vat_file",
        label="ملف السجل التجاري والرقم الضريبي",
        allowed_types=ALLOWED_DOCUMENT_TYPES,
        max_size_mb=1024,
    ),
)

def get_current_schema() -> RegistrationSchema:
    return REGISTRATION_SCHEMA
