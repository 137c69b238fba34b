"""
Discovery of this process's public endpoint.
"""

import logging

import httpx

logger = logging.getLogger(__name__)


class PublicEndpoint:
    """
    Resolves the public base URL webhooks should point at.

    A configured ``public_base_url`` always wins. Otherwise the local tunnel
    agent's API is asked for its first https tunnel, optionally the one
    forwarding to ``port``.
    """

    def __init__(
        self,
        public_base_url: str | None = None,
        tunnel_api_url: str | None = None,
        port: int | None = None,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.public_base_url = public_base_url.rstrip("/") if public_base_url else None
        self.tunnel_api_url = tunnel_api_url
        self.port = port
        self.timeout = timeout
        self.transport = transport

    async def resolve(self) -> str | None:
        if self.public_base_url:
            return self.public_base_url
        if not self.tunnel_api_url:
            return None

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self.transport
            ) as client:
                response = await client.get(self.tunnel_api_url)
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.debug("Tunnel agent unavailable", extra={"error": str(e)})
            return None

        tunnels = data.get("tunnels") if isinstance(data, dict) else None
        if not isinstance(tunnels, list):
            logger.debug("Unexpected tunnel agent response")
            return None

        for tunnel in tunnels:
            if not isinstance(tunnel, dict):
                continue
            if tunnel.get("proto") != "https" or not tunnel.get("public_url"):
                continue
            addr = str((tunnel.get("config") or {}).get("addr", ""))
            if self.port is not None and str(self.port) not in addr:
                continue
            return tunnel["public_url"].rstrip("/")
        return None
