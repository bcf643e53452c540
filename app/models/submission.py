from typing import Dict, List, Optional
from pydantic import BaseModel, Field

# Multipart fields can repeat, so every name maps to a list; only the first value counts.
SubmissionForm = Dict[str, List[str]]

class UploadedFile(BaseModel):
    path: str                   # local temporary copy
    original_filename: str
    content_type: Optional[str] = None
    size: int = 0

class DecodedForm(BaseModel):
    fields: SubmissionForm = Field(default_factory=dict)
    files: Dict[str, List[UploadedFile]] = Field(default_factory=dict)

    def first(self, name: str, default: str = "") -> str:
        values = self.fields.get(name)
        if not values:
            return default
        return values[0]

    def first_file(self, name: str) -> Optional[UploadedFile]:
        files = self.files.get(name)
        if not files:
            return None
        return files[0]

class ValidationResult(BaseModel):
    is_valid: bool
    message: Optional[str] = None
