"""
Payment gateway client (Khalti-style ePayment API)

Only two calls are used: initiate, which returns a payment reference (pidx)
and a hosted payment page, and lookup, which reports the reference's status.
"""
import logging
from typing import Any, Dict, Optional

import httpx

from gymapp.core import config
from gymapp.core.exceptions import ConfigurationError, UpstreamError
from gymapp.payments.schemas.payments import (
    GatewayInitiation,
    GatewayInitiationRequest,
    GatewayLookup,
)

logger = logging.getLogger(__name__)

SERVICE_NAME = "payment_gateway"


class PaymentGateway:
    """Async client; every call opens a short-lived httpx client with a bounded timeout"""

    def __init__(
        self,
        secret_key: Optional[str] = None,
        api_base: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.secret_key = secret_key
        self.api_base = api_base or config.PAYMENT_GATEWAY_API_BASE
        self.timeout = timeout or config.PAYMENT_GATEWAY_TIMEOUT_SECONDS
        self.transport = transport

    def _headers(self) -> Dict[str, str]:
        secret_key = self.secret_key or config.PAYMENT_GATEWAY_SECRET_KEY
        if not secret_key:
            raise ConfigurationError(
                "PAYMENT_GATEWAY_SECRET_KEY", "Payment gateway secret key is not configured"
            )
        return {
            "Authorization": f"Key {secret_key}",
            "Content-Type": "application/json",
        }

    async def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        headers = self._headers()

        try:
            async with httpx.AsyncClient(
                base_url=self.api_base, timeout=self.timeout, transport=self.transport
            ) as client:
                response = await client.post(path, json=payload, headers=headers)
                response.raise_for_status()
                return response.json()

        except httpx.TimeoutException:
            logger.error(
                f"Payment gateway timed out on {path}",
                extra={"path": path, "timeout": self.timeout},
            )
            raise UpstreamError(
                SERVICE_NAME, "Payment gateway timed out", status_code=504
            )

        except httpx.HTTPStatusError as e:
            gateway_status = e.response.status_code
            try:
                body = e.response.json()
            except ValueError:
                body = {"raw": e.response.text[:500]}

            message = body.get("detail") if isinstance(body, dict) else None
            logger.error(
                f"Payment gateway returned {gateway_status} on {path}",
                extra={"path": path, "gateway_status": gateway_status},
            )
            raise UpstreamError(
                SERVICE_NAME,
                message or "Payment gateway rejected the request",
                status_code=gateway_status if 400 <= gateway_status < 500 else 502,
                retryable=gateway_status >= 500,
                details={"gateway_status": gateway_status, "gateway_response": body},
            )

        except httpx.HTTPError as e:
            logger.error(f"Payment gateway request failed on {path}: {str(e)}")
            raise UpstreamError(SERVICE_NAME, "Payment gateway is unreachable")

        except ValueError:
            logger.error(f"Payment gateway sent a non-JSON response on {path}")
            raise UpstreamError(SERVICE_NAME, "Payment gateway sent an invalid response")

    async def initiate(self, request: GatewayInitiationRequest) -> GatewayInitiation:
        data = await self._post(
            "/epayment/initiate/", request.model_dump(exclude_none=True)
        )

        if not data.get("pidx"):
            raise UpstreamError(
                SERVICE_NAME,
                "Payment gateway did not return a payment reference",
                details={"gateway_response": data},
            )

        logger.info(
            "Payment initiated with gateway",
            extra={
                "purchase_order_id": request.purchase_order_id,
                "gateway_reference": data["pidx"],
                "amount_minor": request.amount,
            },
        )

        return GatewayInitiation(
            gateway_reference=data["pidx"],
            payment_url=data.get("payment_url"),
            expires_at=data.get("expires_at"),
        )

    async def lookup(self, gateway_reference: str) -> GatewayLookup:
        data = await self._post("/epayment/lookup/", {"pidx": gateway_reference})

        return GatewayLookup(
            gateway_reference=data.get("pidx") or gateway_reference,
            status=data.get("status"),
            transaction_id=data.get("transaction_id"),
            total_amount=data.get("total_amount"),
            raw=data,
        )


payment_gateway = PaymentGateway()


def get_payment_gateway() -> PaymentGateway:
    """FastAPI dependency; tests override it with an in-memory fake"""
    return payment_gateway
