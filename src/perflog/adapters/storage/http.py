"""HTTP sink forwarding batches to a log collector."""

from collections.abc import Mapping, Sequence

import httpx

from perflog.core.exceptions import DeliveryError


class HttpSink:
    """HTTP implementation of SinkPort.

    POSTs each batch as newline-joined text to ``<endpoint>/<destination>``.
    A collector that is down or answers with a non-2xx status raises
    DeliveryError, which the delivery layer turns into a re-queue.

    Args:
        endpoint: Base URL of the collector.
        headers: Extra headers (credentials, tenant ids) sent with each batch.
        timeout: Seconds before a send is abandoned.
        client: Client to reuse; by default one is opened per batch.
    """

    def __init__(
        self,
        endpoint: str,
        headers: Mapping[str, str] | None = None,
        timeout: float = 2.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.endpoint = endpoint.rstrip("/")
        self.headers = {"content-type": "application/x-ndjson", **(headers or {})}
        self.timeout = timeout
        self._client = client

    def url_for(self, destination: str) -> str:
        return f"{self.endpoint}/{destination.lstrip('/')}"

    async def write(self, destination: str, lines: Sequence[str]) -> None:
        """POST ``lines`` to the collector."""
        body = "\n".join(lines) + "\n"
        url = self.url_for(destination)
        try:
            if self._client is not None:
                response = await self._client.post(
                    url, content=body, headers=self.headers, timeout=self.timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(url, content=body, headers=self.headers)
        except httpx.HTTPError as exc:
            raise DeliveryError(destination, str(exc) or type(exc).__name__) from exc
        if not response.is_success:
            raise DeliveryError(destination, f"collector returned {response.status_code}")
