import logging
from typing import Protocol

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from app.core.config import settings
from app.core.errors import TransientDeliveryError

log = logging.getLogger(__name__)


class PushGateway(Protocol):
    enabled: bool

    async def register(self, token: str, platform: str, device_id: str | None) -> None: ...

    async def send(self, tokens: list[str], title: str, body: str, data: dict) -> None: ...


class NullPushGateway:
    """No durable push channel: registration is skipped and sends only log."""
    enabled = False

    async def register(self, token: str, platform: str, device_id: str | None) -> None:
        return None

    async def send(self, tokens: list[str], title: str, body: str, data: dict) -> None:
        log.debug("Push disabled, not sending %r to %s device(s)", title, len(tokens))


class HttpPushGateway:
    """
    JSON push relay. 5xx, 429 and transport errors are transient; sends are
    retried with backoff and then surface as TransientDeliveryError.
    """
    enabled = True

    def __init__(self, base_url: str, api_key: str | None = None, *, timeout: float = 10.0,
                 attempts: int = 3, wait=None, transport: httpx.AsyncBaseTransport | None = None):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.attempts = attempts
        self.wait = wait if wait is not None else wait_exponential(multiplier=1, max=4)
        self._transport = transport

    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}

    async def _post(self, path: str, payload: dict) -> None:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                r = await client.post(f"{self.base_url}{path}", json=payload, headers=self._headers())
        except httpx.RequestError as e:
            raise TransientDeliveryError(f"Push gateway unreachable: {e}") from e
        if r.status_code >= 500 or r.status_code == 429:
            raise TransientDeliveryError(f"Push gateway returned HTTP {r.status_code}")
        r.raise_for_status()

    async def register(self, token: str, platform: str, device_id: str | None) -> None:
        await self._post("/register", {"token": token, "platform": platform, "deviceId": device_id})

    async def send(self, tokens: list[str], title: str, body: str, data: dict) -> None:
        if not tokens:
            return
        payload = {"to": tokens, "title": title, "body": body, "data": data}
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.attempts),
            wait=self.wait,
            retry=retry_if_exception_type(TransientDeliveryError),
            reraise=True,
        ):
            with attempt:
                await self._post("/send", payload)


def build_push_gateway() -> PushGateway:
    if settings.PUSH_GATEWAY_URL:
        return HttpPushGateway(settings.PUSH_GATEWAY_URL, settings.PUSH_GATEWAY_API_KEY)
    return NullPushGateway()
