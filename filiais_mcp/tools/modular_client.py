"""HTTP client for the Modular ClickTrans API."""

import logging
from typing import Any, Dict, List, Optional

import httpx

from ..config import get_settings

logger = logging.getLogger(__name__)

# Gateway errors worth a second attempt; everything else is final.
TRANSIENT_STATUS_CODES = frozenset({502, 503, 504})


class ModularAPIError(Exception):
    """Exception raised when the Modular API call fails."""
    pass


class ModularClient:
    """Client for the Modular branch listing endpoint.

    Authentication is a bearer token sent on every request. Transport errors
    and gateway failures are retried up to ``max_retries`` times; client
    errors and undecodable bodies fail immediately.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        api_token: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the client.

        Args:
            url: Branch listing URL. Default from settings.
            api_token: Bearer token. Default from settings.
            timeout: Request timeout in seconds. Default from settings.
            max_retries: Extra attempts on transient failures. Default from settings.
            transport: Optional httpx transport, used to stub the upstream.
        """
        settings = get_settings()
        self.url = url or settings.FILIAIS_API_URL
        self.api_token = settings.API_TOKEN if api_token is None else api_token
        self.timeout = timeout or settings.REQUEST_TIMEOUT
        self.max_retries = settings.MAX_RETRIES if max_retries is None else max(0, max_retries)
        self.transport = transport

    @property
    def headers(self) -> Dict[str, str]:
        """Default headers for upstream requests."""
        return {
            "Accept": "application/json",
            "Authorization": f"Bearer {self.api_token}",
        }

    async def fetch_filiais(self) -> List[Any]:
        """Fetch the full branch list.

        Returns:
            The decoded JSON array, records untouched.

        Raises:
            ModularAPIError: On missing token, HTTP failure, invalid JSON or
                a body that is not an array.
        """
        if not self.api_token:
            raise ModularAPIError("API_TOKEN não configurado.")

        response = await self._get_with_retry()

        try:
            data = response.json()
        except ValueError as e:
            raise ModularAPIError(f"resposta inválida da API (JSON malformado): {e}") from e

        if not isinstance(data, list):
            raise ModularAPIError(
                f"resposta inesperada da API: esperado um array JSON, recebido {type(data).__name__}"
            )

        logger.info(f"Fetched {len(data)} branches from Modular API")
        return data

    async def _get_with_retry(self) -> httpx.Response:
        attempts = self.max_retries + 1

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            for attempt in range(1, attempts + 1):
                try:
                    logger.info(f"GET {self.url} (attempt {attempt}/{attempts})")
                    response = await client.get(self.url, headers=self.headers)
                except httpx.TransportError as e:
                    if attempt < attempts:
                        logger.warning(f"Transient error calling Modular API: {e!r}. Retrying...")
                        continue
                    logger.error(f"Modular API unreachable after {attempts} attempts: {e!r}")
                    raise ModularAPIError(f"falha de comunicação com a API: {e!r}") from e

                if response.status_code in TRANSIENT_STATUS_CODES and attempt < attempts:
                    logger.warning(f"Modular API answered {response.status_code}. Retrying...")
                    continue

                if response.status_code >= 400:
                    logger.error(f"Modular API error: HTTP {response.status_code}")
                    raise ModularAPIError(
                        f"HTTP {response.status_code} - {response.text[:500]}"
                    )

                return response

        # Unreachable: the last attempt either returns or raises.
        raise ModularAPIError("nenhuma tentativa realizada")
