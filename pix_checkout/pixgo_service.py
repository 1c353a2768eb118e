"""
PixGo gateway client.

Thin async wrapper over the gateway's create / status / details endpoints.
The API key comes from the immutable Settings passed at construction.
"""
import logging

import httpx
import pydantic

from pix_checkout.config import Settings
from pix_checkout.errors import TransportError
from pix_checkout.schemas import CreatePaymentRequest, CreateResponse, StatusResponse

logger = logging.getLogger(__name__)

CONNECTION_ERROR_MESSAGE = "Erro ao conectar com servidor de pagamento"


class GatewayClient:

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None):
        self._client = httpx.AsyncClient(
            base_url=settings.pixgo_base_url,
            headers={"X-API-Key": settings.pixgo_api_key or ""},
            transport=transport,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def create_payment(self, request: CreatePaymentRequest) -> CreateResponse:
        """Create a PIX charge.

        Any envelope the gateway answers with is returned as-is, including
        ``success: false`` business failures; callers inspect ``success`` and
        ``message``. Only a missing or unreadable response raises.
        """
        try:
            response = await self._client.post(
                "/payment/create",
                json=request.to_payload(),
                headers={"Content-Type": "application/json"},
            )
        except httpx.RequestError as e:
            logger.warning("PixGo create failed for %s: %r", request.external_id, e)
            raise TransportError(str(e) or CONNECTION_ERROR_MESSAGE) from e

        try:
            return CreateResponse.model_validate(response.json())
        except (ValueError, pydantic.ValidationError) as e:
            raise TransportError(
                f"{CONNECTION_ERROR_MESSAGE} (HTTP {response.status_code})"
            ) from e

    async def check_status(self, payment_id: str) -> StatusResponse:
        return await self._get(f"/payment/{payment_id}/status")

    async def get_details(self, payment_id: str) -> StatusResponse:
        return await self._get(f"/payment/{payment_id}")

    async def _get(self, path: str) -> StatusResponse:
        try:
            response = await self._client.get(path)
            response.raise_for_status()
            return StatusResponse.model_validate(response.json())
        except httpx.HTTPError as e:
            raise TransportError(str(e) or CONNECTION_ERROR_MESSAGE) from e
        except (ValueError, pydantic.ValidationError) as e:
            raise TransportError(f"Unexpected gateway response for {path}") from e
