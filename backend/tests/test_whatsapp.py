from urllib.parse import parse_qs

import httpx
import pytest

from config import settings
from models.log import Log
from models.whatsapp_job import WhatsAppJob
from services.notifications import NotificationService, personalize, process_jobs, run_queued_jobs
from utils.errors import BusinessError
from utils.whatsapp_client import WhatsAppClient, WhatsAppError

PDF_BYTES = b"%PDF-1.4\n1 0 obj\n<<>>\nendobj\ntrailer\n<<>>\n%%EOF\n"


@pytest.fixture
def customers(make_customer):
    return [
        make_customer(name="Amal", whatsapp_number="+971500000001"),
        make_customer(name="Bilal", whatsapp_number="+971500000002"),
    ]


# ---- number helpers ----

def test_validate_number(client, auth_headers):
    response = client.post("/api/v1/whatsapp/validate-number", headers=auth_headers,
                           json={"whatsapp_number": "050 123 4567"})
    assert response.json()["data"] == {
        "valid": True,
        "whatsapp_number": "050 123 4567",
        "formatted": "whatsapp:+971501234567",
        "country_code": "+971",
    }

    response = client.post("/api/v1/whatsapp/validate-number", headers=auth_headers,
                           json={"whatsapp_number": "call me"})
    assert response.json()["data"]["valid"] is False
    assert response.json()["message"] == "Invalid WhatsApp number format"


def test_personalize(make_customer):
    customer = make_customer(name="Huda")
    assert personalize("Hi {{name}}!", customer) == "Hi Huda!"
    assert personalize(None, customer) is None


# ---- sending ----

def test_sync_send_reports_each_recipient(client, auth_headers, whatsapp, customers, make_customer):
    broken = make_customer(name="Broken", whatsapp_number="not a number")
    whatsapp.failing.add("whatsapp:+971500000002")

    response = client.post("/api/v1/whatsapp/send-message", headers=auth_headers, json={
        "customer_ids": [c.id for c in customers] + [broken.id],
        "message": "Hello {{name}}",
        "include_pdf": False,
        "async_send": False,
    })

    assert response.status_code == 200
    data = response.json()["data"]
    assert (data["total"], data["successful"], data["failed"]) == (3, 1, 2)
    by_customer = {r["customer_id"]: r for r in data["results"]}
    assert by_customer[customers[0].id]["success"] is True
    assert by_customer[customers[1].id]["error_code"] == 21211
    assert by_customer[broken.id]["error"] == "Invalid WhatsApp number"
    assert whatsapp.sent == [{
        "to": "whatsapp:+971500000001", "body": "Hello Amal", "media_url": None,
        "template_id": None, "content_variables": None,
    }]
    assert response.json()["message"] == "Messages sent: 1 successful, 2 failed"


def test_template_and_message_are_exclusive(client, auth_headers, customers):
    response = client.post("/api/v1/whatsapp/send-message", headers=auth_headers, json={
        "customer_ids": [customers[0].id], "message": "Hi", "template_id": "HX123",
    })
    assert response.status_code == 422
    assert set(response.json()["errors"]) == {"template_id", "message"}


def test_recipients_are_required(client, auth_headers):
    response = client.post("/api/v1/whatsapp/send-message", headers=auth_headers, json={"include_pdf": False})
    assert response.status_code == 422
    assert response.json()["message"] == "No customers selected"


def test_async_send_queues_and_delivers(client, auth_headers, db, whatsapp, customers, make_customer):
    make_customer(name="Dormant", active=False)

    response = client.post("/api/v1/whatsapp/send-message", headers=auth_headers, json={
        "send_to_all": True, "template_id": "HX123", "content_variables": {"1": "today"}, "include_pdf": False,
    })

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["queued"] == 2
    assert response.json()["message"] == "2 message(s) queued for sending"

    # delivered by the background task in its own session
    db.expire_all()
    jobs =db.query(WhatsAppJob).order_by(WhatsAppJob.id).all()
    assert [job.status for job in jobs] == ["sent", "sent"]
    assert [job.attempts for job in jobs] == [1, 1]
    assert {s["to"] for s in whatsapp.sent} == {"whatsapp:+971500000001", "whatsapp:+971500000002"}
    assert all(s["template_id"] == "HX123" and s["body"] is None for s in whatsapp.sent)
    assert db.query(Log).filter(Log.action == "WHATSAPP_SEND").count() == 1


def test_default_message_is_used(db, whatsapp, customers):
    result = NotificationService(db, whatsapp).send_to_customers(
        {"customer_ids": [customers[0].id], "include_pdf": False, "async_send": False},
    )
    assert result["successful"] == 1
    assert whatsapp.sent[0]["body"] == settings.WHATSAPP_DEFAULT_MESSAGE.replace("{{name}}", "Amal")


def test_failed_job_is_retried_on_later_passes(db, whatsapp, customers):
    service = NotificationService(db, whatsapp)
    result = service.send_to_customers({"customer_ids": [customers[1].id], "message": "Prices", "include_pdf": False})
    whatsapp.failing.add("whatsapp:+971500000002")

    summary = process_jobs(db, whatsapp, result["job_ids"])

    assert summary == {"processed": 1, "sent": 0, "failed": 0, "pending": 1}
    job = db.get(WhatsAppJob, result["job_ids"][0])
    assert (job.status, job.attempts) == ("pending", 1)

    for _ in range(settings.WHATSAPP_MAX_ATTEMPTS - 1):
        summary = process_jobs(db, whatsapp, result["job_ids"])

    assert summary == {"processed": 1, "sent": 0, "failed": 1, "pending": 0}
    assert job.status == "failed"
    assert job.attempts == job.max_attempts == settings.WHATSAPP_MAX_ATTEMPTS
    assert "Invalid recipient phone number" in job.last_error

    assert service.job_summary()["counts"] == {"pending": 0, "sent": 0, "failed": 1}
    assert service.retry_failed() == [job.id]
    assert (job.status, job.attempts, job.last_error) == ("pending", 0, None)

    whatsapp.failing.clear()
    assert process_jobs(db, whatsapp) == {"processed": 1, "sent": 1, "failed": 0, "pending": 0}


class FlakyClient:
    """Fails the first send with a rate-limit error, then delegates."""

    def __init__(self, inner):
        self.inner = inner
        self.calls = 0

    def send(self, to, **kwargs):
        self.calls += 1
        if self.calls == 1:
            raise WhatsAppError(20429, "Too many requests")
        return self.inner.send(to, **kwargs)


def test_queue_run_retries_until_sent(db, whatsapp, customers):
    result = NotificationService(db, whatsapp).send_to_customers(
        {"customer_ids": [customers[0].id], "message": "Prices", "include_pdf": False},
    )
    flaky = FlakyClient(whatsapp)

    run_queued_jobs(result["job_ids"], flaky)

    db.expire_all()
    job = db.get(WhatsAppJob, result["job_ids"][0])
    assert (job.status, job.attempts, job.last_error) == ("sent", 2, None)
    assert flaky.calls == 2


def test_jobs_endpoints(client, auth_headers, db, whatsapp, customers):
    service = NotificationService(db, whatsapp)
    result = service.send_to_customers({"customer_ids": [customers[0].id], "message": "Hi", "include_pdf": False})
    whatsapp.failing.add("whatsapp:+971500000001")
    run_queued_jobs(result["job_ids"], whatsapp)

    db.expire_all()
    summary = client.get("/api/v1/whatsapp/jobs", headers=auth_headers).json()["data"]
    assert summary["counts"]["failed"] == 1
    assert summary["failed"][0]["customer_id"] == customers[0].id

    whatsapp.failing.clear()
    response = client.post("/api/v1/whatsapp/jobs/retry-failed", headers=auth_headers, json={})
    assert response.json()["data"]["requeued"] == 1

    db.expire_all()
    assert db.get(WhatsAppJob, result["job_ids"][0]).status == "sent"


def test_process_endpoint_sends_pending_jobs(client, auth_headers, db, whatsapp, customers):
    result = NotificationService(db, whatsapp).send_to_customers(
        {"send_to_all": True, "message": "Hi", "include_pdf": False},
    )

    response = client.post("/api/v1/whatsapp/jobs/process", headers=auth_headers)

    assert response.status_code == 200
    db.expire_all()
    assert [db.get(WhatsAppJob, job_id).status for job_id in result["job_ids"]] == ["sent", "sent"]


def test_product_update_checks_types(client, auth_headers, customers, make_product):
    daily = make_product(product_type="daily")

    response = client.post("/api/v1/whatsapp/send-product-update", headers=auth_headers, json={
        "product_ids": [daily.id], "product_types": ["standard"],
    })
    assert response.status_code == 422

    response = client.post("/api/v1/whatsapp/send-product-update", headers=auth_headers, json={
        "product_ids": [daily.id], "product_types": ["daily"], "message": "Fresh today", "async_send": False,
    })
    data = response.json()["data"]
    assert data["successful"] == 2
    assert data["pdf_url"].startswith("http://testserver/pdfs/")


def test_test_message(client, auth_headers, whatsapp, customers):
    response = client.post(f"/api/v1/whatsapp/test-message/{customers[0].id}", headers=auth_headers, json={})
    assert response.status_code == 200
    assert response.json()["data"]["message_sid"]
    assert whatsapp.sent[0]["body"].startswith("Hello Amal")

    whatsapp.failing.add("whatsapp:+971500000002")
    response = client.post(f"/api/v1/whatsapp/test-message/{customers[1].id}", headers=auth_headers, json={})
    assert response.status_code == 400
    assert "Invalid recipient phone number" in response.json()["message"]

    assert client.post("/api/v1/whatsapp/test-message/999", headers=auth_headers, json={}).status_code == 404


# ---- price list files ----

def test_generate_price_list(client, auth_headers, storage, make_product):
    make_product(name="Onion")

    response = client.post("/api/v1/whatsapp/generate-price-list", headers=auth_headers, json={"pdf_layout": "catalog"})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["pdf_url"].startswith("http://testserver/pdfs/")
    assert (storage / data["pdf_path"]).read_bytes().startswith(b"%PDF")


def test_generate_price_list_without_products(client, auth_headers):
    response = client.post("/api/v1/whatsapp/generate-price-list", headers=auth_headers, json={})
    assert response.status_code == 400


def test_send_includes_generated_pdf(db, whatsapp, customers, make_product):
    product = make_product()
    result = NotificationService(db, whatsapp).send_to_customers({
        "customer_ids": [customers[0].id], "product_ids": [product.id], "async_send": False,
    })
    assert whatsapp.sent[0]["media_url"] == result["pdf_url"]
    assert result["pdf_url"].endswith(".pdf")


def test_upload_pdf(client, auth_headers, storage):
    response = client.post("/api/v1/whatsapp/upload-pdf", headers=auth_headers,
                           files={"custom_pdf": ("weekly offers.pdf", PDF_BYTES, "application/pdf")})
    assert response.status_code == 200
    url = response.json()["data"]["pdf_url"]
    assert url.endswith("_weekly-offers.pdf")
    assert len(list((storage / "pdfs").glob("*.pdf"))) == 1

    response = client.post("/api/v1/whatsapp/upload-pdf", headers=auth_headers,
                           files={"custom_pdf": ("offers.txt", b"hello", "text/plain")})
    assert response.status_code == 422
    assert "custom_pdf" in response.json()["errors"]


def test_custom_pdf_url_is_attached(db, whatsapp, customers):
    NotificationService(db, whatsapp).send_to_customers({
        "customer_ids": [customers[0].id], "custom_pdf_url": "http://testserver/pdfs/offers.pdf", "async_send": False,
    })
    assert whatsapp.sent[0]["media_url"] == "http://testserver/pdfs/offers.pdf"


# ---- Twilio client ----

@pytest.fixture
def twilio(monkeypatch):
    monkeypatch.setattr(settings, "TWILIO_ACCOUNT_SID", "AC123")
    monkeypatch.setattr(settings, "TWILIO_AUTH_TOKEN", "secret")
    monkeypatch.setattr(settings, "TWILIO_WHATSAPP_NUMBER", "+14155238886")
    requests = []

    def use(handler):
        def recording(request):
            requests.append(request)
            return handler(request)

        real_client = httpx.Client
        monkeypatch.setattr(httpx, "Client", lambda **kwargs: real_client(transport=httpx.MockTransport(recording), **kwargs))
        return requests

    return use


def test_client_posts_to_messages_api(twilio):
    requests = twilio(lambda request: httpx.Response(201, json={"sid": "SM42", "status": "queued"}))

    result = WhatsAppClient().send("whatsapp:+971501234567", body="Hi", media_url="http://x/list.pdf")

    assert result == {"sid": "SM42", "status": "queued"}
    request = requests[0]
    assert request.url.path == "/2010-04-01/Accounts/AC123/Messages.json"
    form = parse_qs(request.content.decode())
    assert form["From"] == ["whatsapp:+14155238886"]
    assert form["To"] == ["whatsapp:+971501234567"]
    assert form["Body"] == ["Hi"]
    assert form["MediaUrl"] == ["http://x/list.pdf"]


def test_client_sends_templates(twilio):
    requests = twilio(lambda request: httpx.Response(201, json={"sid": "SM43", "status": "queued"}))

    WhatsAppClient().send("whatsapp:+971501234567", template_id="HX1", content_variables={"1": "Amal"})

    form = parse_qs(requests[0].content.decode())
    assert form["ContentSid"] == ["HX1"]
    assert form["ContentVariables"] == ['{"1": "Amal"}']
    assert "Body" not in form


def test_client_maps_twilio_errors(twilio):
    twilio(lambda request: httpx.Response(400, json={"code": 63038, "message": "limit"}))

    with pytest.raises(WhatsAppError) as exc:
        WhatsAppClient().send("whatsapp:+971501234567", body="Hi")

    assert exc.value.code == 63038
    assert exc.value.message.startswith("Daily message limit exceeded")
    assert exc.value.detail == "limit"


def test_client_requires_configuration(monkeypatch):
    monkeypatch.setattr(settings, "TWILIO_ACCOUNT_SID", "")

    with pytest.raises(WhatsAppError) as exc:
        WhatsAppClient().send("whatsapp:+971501234567", body="Hi")

    assert exc.value.message == "WhatsApp messaging is not configured."


def test_failing_test_message_raises_business_error(db, whatsapp, customers):
    whatsapp.failing.add("whatsapp:+971500000001")
    with pytest.raises(BusinessError):
        NotificationService(db, whatsapp).send_test_message(customers[0].id)


def test_generated_pdf_needs_products(client, auth_headers, whatsapp, customers):
    response = client.post("/api/v1/whatsapp/send-message", headers=auth_headers, json={
        "send_to_all": True, "message": "hi", "include_pdf": True, "async_send": False,
    })

    assert response.status_code == 422
    assert "product_ids" in response.json()["errors"]
    assert whatsapp.sent == []

    response = client.post("/api/v1/whatsapp/send-product-update", headers=auth_headers, json={"message": "hi"})
    assert response.status_code == 422
    assert "product_ids" in response.json()["errors"]
