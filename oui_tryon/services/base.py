"""Shared HTTP plumbing for the inference service clients."""

import httpx

from ..config import ApiConfig
from ..utils import DiagnosticLog


class ApiClient:
    """Owns a lazily created ``httpx.AsyncClient`` bound to one service."""

    def __init__(
        self,
        config: ApiConfig,
        log: DiagnosticLog,
        timeout: float,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config
        self.log = log
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                headers=self.config.headers,
                transport=self._transport,
            )
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
