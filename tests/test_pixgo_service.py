import json
from decimal import Decimal

import httpx
import pytest

from pix_checkout.config import Settings
from pix_checkout.errors import TransportError
from pix_checkout.pixgo_service import CONNECTION_ERROR_MESSAGE, GatewayClient
from pix_checkout.schemas import CreatePaymentRequest

BASE_URL = "https://pixgo.test/api/v1"


def make_settings(api_key="pk_test_123"):
    return Settings(
        pixgo_api_key=api_key,
        pixgo_base_url=BASE_URL,
        poll_interval=5.0,
        database_url="sqlite://",
        jwt_secret="secret",
        admin_password="staff",
        public_base_url="http://localhost:8000",
        log_level="INFO",
    )


def make_request(**overrides):
    fields = dict(
        amount=Decimal("25.50"),
        description="Consultoria",
        customer_name="Maria Silva",
        customer_cpf="12345678909",
        customer_email="maria@example.com",
        external_id="abc123def4567",
    )
    fields.update(overrides)
    return CreatePaymentRequest(**fields)


CREATED = {
    "success": True,
    "data": {
        "payment_id": "dep_1",
        "external_id": "abc123def4567",
        "amount": 25.5,
        "status": "pending",
        "qr_code": "00020126580014br.gov.bcb.pix",
        "qr_image_url": "https://pixgo.test/qr/dep_1.png",
        "expires_at": "2026-10-19T21:00:00Z",
        "created_at": "2026-10-19T20:40:00Z",
    },
}


@pytest.mark.asyncio
async def test_create_payment_sends_key_and_body():
    seen = {}

    def handler(request: httpx.Request):
        seen["method"] = request.method
        seen["url"] = str(request.url)
        seen["key"] = request.headers.get("X-API-Key")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=CREATED)

    async with GatewayClient(make_settings(), transport=httpx.MockTransport(handler)) as client:
        result = await client.create_payment(make_request())

    assert seen["method"] == "POST"
    assert seen["url"] == f"{BASE_URL}/payment/create"
    assert seen["key"] == "pk_test_123"
    assert seen["body"]["amount"] == 25.5
    assert seen["body"]["external_id"] == "abc123def4567"
    # unset optional fields are not sent
    assert "customer_phone" not in seen["body"]
    assert "webhook_url" not in seen["body"]

    assert result.success is True
    assert result.data.payment_id == "dep_1"
    assert result.data.qr_code == "00020126580014br.gov.bcb.pix"


@pytest.mark.asyncio
async def test_create_payment_returns_business_failure_envelope():
    def handler(request):
        return httpx.Response(400, json={"success": False, "message": "saldo insuficiente"})

    async with GatewayClient(make_settings(), transport=httpx.MockTransport(handler)) as client:
        result = await client.create_payment(make_request())

    assert result.success is False
    assert result.message == "saldo insuficiente"
    assert result.data is None


@pytest.mark.asyncio
@pytest.mark.parametrize("data", [{}, {"payment_id": "dep_1"}, None, "sem dados"])
async def test_create_payment_failure_envelope_with_partial_data(data):
    def handler(request):
        return httpx.Response(400, json={"success": False, "message": "saldo insuficiente", "data": data})

    async with GatewayClient(make_settings(), transport=httpx.MockTransport(handler)) as client:
        result = await client.create_payment(make_request())

    assert result.success is False
    assert result.message == "saldo insuficiente"
    assert result.data is None
    assert result.failure_data == data


@pytest.mark.asyncio
async def test_check_status_failure_envelope_with_partial_data():
    def handler(request):
        return httpx.Response(200, json={"success": False, "error": "not_found", "data": {"status": None}})

    async with GatewayClient(make_settings(), transport=httpx.MockTransport(handler)) as client:
        result = await client.check_status("dep_1")

    assert result.success is False
    assert result.error == "not_found"
    assert result.data is None


@pytest.mark.asyncio
async def test_create_payment_connection_failure_raises_transport_error():
    def handler(request):
        raise httpx.ConnectError("", request=request)

    async with GatewayClient(make_settings(), transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(TransportError) as excinfo:
            await client.create_payment(make_request())

    assert str(excinfo.value) == CONNECTION_ERROR_MESSAGE


@pytest.mark.asyncio
async def test_check_status_and_details_paths():
    paths = []

    def handler(request):
        paths.append(request.url.path)
        return httpx.Response(200, json={
            "success": True,
            "data": {
                "payment_id": "dep_1",
                "external_id": "abc123def4567",
                "amount": 25.5,
                "status": "completed",
                "created_at": "2026-10-19T20:40:00Z",
                "updated_at": "2026-10-19T20:45:00Z",
            },
        })

    async with GatewayClient(make_settings(), transport=httpx.MockTransport(handler)) as client:
        status = await client.check_status("dep_1")
        details = await client.get_details("dep_1")

    assert paths == ["/api/v1/payment/dep_1/status", "/api/v1/payment/dep_1"]
    assert status.data.status == "completed"
    assert details.data.payment_id == "dep_1"


@pytest.mark.asyncio
async def test_check_status_propagates_failures():
    def handler(request):
        if request.url.path.endswith("/status"):
            raise httpx.ReadTimeout("timed out", request=request)
        return httpx.Response(503, text="unavailable")

    async with GatewayClient(make_settings(), transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(TransportError):
            await client.check_status("dep_1")
        with pytest.raises(TransportError):
            await client.get_details("dep_1")
