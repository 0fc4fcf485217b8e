"""Clearing house clients for external (CBU/CVU) transfers"""

import logging
import secrets
from datetime import datetime

import httpx

from mipago_gateway.config import settings
from mipago_gateway.domain.exceptions import ClearingError
from mipago_gateway.domain.ports import ClearingConfirmation, ClearingRequest
from mipago_gateway.utils.date_utils import utcnow

logger = logging.getLogger(__name__)


def _operation_number(now: datetime) -> str:
    return f"EXT-{int(now.timestamp() * 1000)}-{secrets.token_hex(4).upper()}"


class SimulatedClearing:
    """In-process clearing that accepts every well-formed request immediately"""

    def submit(self, request: ClearingRequest) -> ClearingConfirmation:
        now = utcnow()
        confirmation = ClearingConfirmation(operation_number=_operation_number(now), accepted_at=now)
        logger.info(
            "Simulated clearing accepted transfer",
            extra={"transfer_id": request.transfer_id, "operation_number": confirmation.operation_number},
        )
        return confirmation


class HttpClearingClient:
    """Client for the external clearing API"""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        client: httpx.Client | None = None,
    ):
        self.base_url = base_url or settings.clearing_api_base
        self.timeout = timeout or settings.http_timeout_seconds
        self._client = client

    def submit(self, request: ClearingRequest) -> ClearingConfirmation:
        """
        Submit a transfer to the clearing house.

        Raises:
            ClearingError: On timeout, rejection, HTTP errors, or invalid response
        """
        payload = {
            "transfer_id": request.transfer_id,
            "account_number": request.destination_account_number,
            "amount_cents": request.amount_cents,
            "reference": request.reference,
        }
        client = self._client or httpx.Client(timeout=self.timeout)
        try:
            response = client.post(f"{self.base_url}/clearing/transfers", json=payload)
            response.raise_for_status()
            data = response.json()
            return ClearingConfirmation(
                operation_number=data["operation_number"],
                accepted_at=datetime.fromisoformat(data["accepted_at"]),
            )
        except httpx.TimeoutException as e:
            raise ClearingError(f"Clearing API timeout after {self.timeout}s") from e
        except httpx.HTTPStatusError as e:
            raise ClearingError(
                f"Clearing API error: {e.response.status_code}",
                context={"status_code": e.response.status_code},
            ) from e
        except httpx.HTTPError as e:
            raise ClearingError(f"Clearing API unavailable: {e.__class__.__name__}") from e
        except (KeyError, ValueError, TypeError) as e:
            raise ClearingError(f"Invalid confirmation from clearing API: {e}") from e
        finally:
            if self._client is None:
                client.close()
