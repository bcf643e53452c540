import re
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from gspread.exceptions import GSpreadException
from unittest.mock import MagicMock, patch

from app.api.errors import register_exception_handlers
from app.api.routes import router
from app.core.config import settings
from app.services.google_clients import GoogleClients, get_google_clients

REQUIRED_FIELDS = [
    "cust_name", "contact_name", "phone", "city", "district",
    "building_no", "street", "postal", "extra_no", "cr_no", "vat_no",
]

VALID_FORM = {
    "cust_name": "مؤسسة النور التجارية",
    "contact_name": "خالد",
    "phone": "0512345678",
    "city": "الرياض",
    "district": "العليا",
    "building_no": "1234",
    "street": "طريق الملك فهد",
    "postal": "12211",
    "extra_no": "5678",
    "cr_no": "1010123456",
    "vat_no": "300123456700003",
}

PDF_FILE = {"cr_vat_file": ("cr.pdf", b"%PDF-1.4 fake document", "application/pdf")}

# --- Fixtures ---

@pytest.fixture
def upload_dir(tmp_path, monkeypatch):
    # Keep every decoded upload inside the test's own directory.
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(tmp_path))
    return tmp_path

@pytest.fixture
def fake_clients():
    # Stand-ins for the Drive resource and the gspread spreadsheet.
    drive = MagicMock()
    drive.files.return_value.create.return_value.execute.return_value = {"id": "drive-file-1"}
    spreadsheet = MagicMock()
    return GoogleClients(drive=drive, spreadsheet=spreadsheet, folder_id="folder-1", sheet_range="A:Q")

@pytest.fixture
def client(fake_clients, upload_dir):
    app = FastAPI()
    app.include_router(router)
    register_exception_handlers(app)
    app.dependency_overrides[get_google_clients] = lambda: fake_clients
    return TestClient(app)

def _no_remote_calls(clients: GoogleClients):
    assert not clients.drive.files.return_value.create.called
    assert not clients.drive.permissions.return_value.create.called
    assert not clients.spreadsheet.values_append.called

# --- Request Gate ---

@pytest.mark.parametrize("method", ["GET", "PUT", "PATCH", "DELETE", "OPTIONS", "TRACE", "PROPFIND"])
def test_non_post_is_rejected(client, fake_clients, method):
    """
    Goal: Anything other than POST gets 405 with the JSON failure body,
    including methods nobody thought to list.
    """
    response = client.request(method, "/register")

    assert response.status_code == 405
    assert response.json() == {"success": False, "message": "Method not allowed"}
    assert response.headers["allow"] == "POST"
    _no_remote_calls(fake_clients)

def test_other_http_errors_keep_default_body(client):
    response = client.get("/unknown")

    assert response.status_code == 404
    assert response.json() == {"detail": "Not Found"}

# --- Validation ---

@pytest.mark.parametrize("missing", REQUIRED_FIELDS)
def test_missing_required_field(client, fake_clients, missing):
    """
    Goal: Dropping any required field returns 400 naming exactly that field.
    """
    data = {k: v for k, v in VALID_FORM.items() if k != missing}

    response = client.post("/register", data=data, files=PDF_FILE)

    assert response.status_code == 400
    assert response.json() == {"success": False, "message": f"الحقل {missing} مطلوب"}
    _no_remote_calls(fake_clients)

def test_whitespace_only_field_counts_as_missing(client, fake_clients):
    data = dict(VALID_FORM, city="   ")

    response = client.post("/register", data=data, files=PDF_FILE)

    assert response.status_code == 400
    assert response.json()["message"] == "الحقل city مطلوب"
    _no_remote_calls(fake_clients)

def test_first_missing_field_wins(client):
    """
    Goal: Errors are not aggregated; the first field in the fixed order is reported.
    """
    data = {k: v for k, v in VALID_FORM.items() if k not in ("street", "contact_name")}

    response = client.post("/register", data=data, files=PDF_FILE)

    assert response.json()["message"] == "الحقل contact_name مطلوب"

@pytest.mark.parametrize("phone", ["1234567890", "051234567", "051234567a", "05123456789", "05-1234567"])
def test_invalid_phone(client, fake_clients, phone):
    response = client.post("/register", data=dict(VALID_FORM, phone=phone), files=PDF_FILE)

    assert response.status_code == 400
    assert response.json()["message"] == "رقم الجوال يجب أن يبدأ بـ 05 ويتكون من 10 أرقام"
    _no_remote_calls(fake_clients)

def test_missing_document(client, fake_clients):
    response = client.post("/register", data=VALID_FORM, files={"other": ("x.pdf", b"x", "application/pdf")})

    assert response.status_code == 400
    assert response.json()["message"] == "يجب رفع ملف السجل التجاري والرقم الضريبي"
    _no_remote_calls(fake_clients)

def test_unsupported_document_type(client, fake_clients):
    files = {"cr_vat_file": ("cr.txt", b"plain text", "text/plain")}

    response = client.post("/register", data=VALID_FORM, files=files)

    assert response.status_code == 400
    assert response.json()["message"] == "نوع الملف غير مسموح. يجب أن يكون PDF أو صورة"
    _no_remote_calls(fake_clients)

# --- Full registration ---

def test_register_success(client, fake_clients, upload_dir):
    """
    Goal: A clean submission uploads the file, opens it to link readers,
    appends the 17-column row and removes the local copy.
    """
    # 1. Action
    response = client.post("/register", data=VALID_FORM, files=PDF_FILE)

    # 2. Check: response body
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "تم تسجيل العميل بنجاح"
    assert re.fullmatch(r"CUST_\d+", body["customer_id"])
    assert body["file_url"] == "https://drive.google.com/file/d/drive-file-1/view"

    # 3. Verify: Drive got the document under the prefixed name, then the permission
    create_kwargs = fake_clients.drive.files.return_value.create.call_args.kwargs
    assert create_kwargs["body"] == {
        "name": f"{body['customer_id']}_cr.pdf",
        "parents": ["folder-1"],
    }
    fake_clients.drive.permissions.return_value.create.assert_called_once_with(
        fileId="drive-file-1",
        body={"role": "reader", "type": "anyone"},
    )

    # 4. Verify: the row layout
    fake_clients.spreadsheet.values_append.assert_called_once()
    args, kwargs = fake_clients.spreadsheet.values_append.call_args
    assert args[0] == "A:Q"
    assert kwargs["params"] == {"valueInputOption": "RAW"}
    row = kwargs["body"]["values"][0]
    assert len(row) == 17
    assert row[:4] == [body["customer_id"], VALID_FORM["cust_name"], VALID_FORM["contact_name"], "0512345678"]
    assert row[4] == ""     # email omitted
    assert row[11] == ""    # maps_url omitted
    assert row[12:14] == [VALID_FORM["cr_no"], VALID_FORM["vat_no"]]
    assert row[14] == body["file_url"]
    assert row[15] == ""    # agent omitted

    # 5. Verify: temp file is gone
    assert list(upload_dir.iterdir()) == []

def test_register_uses_first_value_of_repeated_field(client, fake_clients):
    data = dict(VALID_FORM, email=["first@example.com", "second@example.com"], agent="AG-7")

    response = client.post("/register", data=data, files=PDF_FILE)

    assert response.status_code == 200
    row = fake_clients.spreadsheet.values_append.call_args.kwargs["body"]["values"][0]
    assert row[4] == "first@example.com"
    assert row[15] == "AG-7"

def test_same_data_twice_creates_two_customers(client, fake_clients):
    """
    Goal: There is no dedup key; each submission gets its own id and row.
    """
    with patch("app.services.customer_record._epoch_millis", side_effect=[1000, 2000]):
        first = client.post("/register", data=VALID_FORM, files=PDF_FILE)
        second = client.post("/register", data=VALID_FORM, files=PDF_FILE)

    assert first.json()["customer_id"] == "CUST_1000"
    assert second.json()["customer_id"] == "CUST_2000"
    assert fake_clients.spreadsheet.values_append.call_count == 2

# --- Failures behind validation ---

def test_upload_failure_returns_500(client, fake_clients, upload_dir):
    fake_clients.drive.files.return_value.create.return_value.execute.side_effect = OSError("connection reset")

    response = client.post("/register", data=VALID_FORM, files=PDF_FILE)

    assert response.status_code == 500
    body = response.json()
    assert body["success"] is False
    assert body["message"] == "حدث خطأ في الخادم. يرجى المحاولة مرة أخرى."
    assert "connection reset" in body["error"]
    assert not fake_clients.spreadsheet.values_append.called

def test_append_failure_leaves_uploaded_file(client, fake_clients, upload_dir):
    """
    Goal: When the sheet rejects the row the Drive file stays, public, with no rollback.
    """
    fake_clients.spreadsheet.values_append.side_effect = GSpreadException("quota exceeded")

    response = client.post("/register", data=VALID_FORM, files=PDF_FILE)

    assert response.status_code == 500
    assert "quota exceeded" in response.json()["error"]
    fake_clients.drive.permissions.return_value.create.assert_called_once()
    assert not fake_clients.drive.files.return_value.delete.called
    # Local copy is left for external cleanup
    assert len(list(upload_dir.iterdir())) == 1

def test_temp_cleanup_failure_still_succeeds(client):
    with patch("app.services.sheet_appender.os.remove", side_effect=OSError("busy")):
        response = client.post("/register", data=VALID_FORM, files=PDF_FILE)

    assert response.status_code == 200
    assert response.json()["success"] is True

def test_oversized_document_returns_500(client, fake_clients, monkeypatch):
    monkeypatch.setattr(settings, "MAX_UPLOAD_SIZE_MB", 0)

    response = client.post("/register", data=VALID_FORM, files=PDF_FILE)

    assert response.status_code == 500
    assert "File too large" in response.json()["error"]
    _no_remote_calls(fake_clients)

# --- Malformed bodies ---

@pytest.mark.parametrize(
    "content_type,body",
    [
        # multipart stream cut off before the closing boundary
        ("multipart/form-data; boundary=xx", b"--xx\r\nContent-Disposition: form-data; name=\"a\"\r\n\r\nbroken"),
        # not a form at all
        ("application/json", b"{}"),
        ("application/x-www-form-urlencoded", b"cust_name=x"),
        # multipart without a boundary parameter
        ("multipart/form-data", b"--xx--\r\n"),
    ],
)
def test_malformed_body_returns_500(client, fake_clients, content_type, body):
    """
    Goal: A body that cannot be decoded as a complete multipart form is a server-side
    parse failure (500), not a missing-field validation error (400).
    """
    response = client.post("/register", content=body, headers={"content-type": content_type})

    assert response.status_code == 500
    data = response.json()
    assert data["success"] is False
    assert data["message"] == "حدث خطأ في الخادم. يرجى المحاولة مرة أخرى."
    assert "Malformed form body" in data["error"]
    _no_remote_calls(fake_clients)

def test_truncated_upload_leaves_no_record(client, fake_clients, upload_dir):
    """
    Goal: A file part whose stream ends early is rejected before anything is saved.
    """
    body = (
        b"--xx\r\n"
        b"Content-Disposition: form-data; name=\"cr_vat_file\"; filename=\"cr.pdf\"\r\n"
        b"Content-Type: application/pdf\r\n\r\n"
        b"%PDF-1.4 partial"
    )

    response = client.post(
        "/register", content=body, headers={"content-type": "multipart/form-data; boundary=xx"}
    )

    assert response.status_code == 500
    assert "Malformed form body" in response.json()["error"]
    assert list(upload_dir.iterdir()) == []
    _no_remote_calls(fake_clients)

# --- Schema ---

def test_get_schema(client):
    response = client.get("/schema")

    assert response.status_code == 200
    data = response.json()
    assert data["document"]["name"] == "cr_vat_file"
    assert "image/heic" in data["document"]["allowed_types"]
    assert [f["name"] for f in data["fields"] if f["required"]] == REQUIRED_FIELDS

def test_empty_file_input_counts_as_missing_document(client, fake_clients):
    """
    Goal: A browser sends an unselected file input as a part with an empty filename.
    """
    files = {"cr_vat_file": ("", b"", "application/octet-stream")}

    response = client.post("/register", data=VALID_FORM, files=files)

    assert response.status_code == 400
    assert response.json()["message"] == "يجب رفع ملف السجل التجاري والرقم الضريبي"
    _no_remote_calls(fake_clients)
