"""Remote gateway: one authenticated JSON channel to the server.

Every call goes through ``RemoteGateway.request``. A 401 triggers exactly
one token refresh followed by one retry; nothing else is retried.
"""
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

import httpx

from fieldsync.offline.config import ClientSettings
from fieldsync.offline.errors import NetworkError, error_for_status
from fieldsync.offline.tokens import TokenStore

logger = logging.getLogger(__name__)

REFRESH_PATH = "/auth/refresh"


class AuthPhase(str, Enum):
    INITIAL = "initial"
    REFRESHING = "refreshing"
    RETRIED = "retried"


class AuthRetryCycle:
    """
    Auth retry state of a single request.

    ``initial`` -> ``refreshing`` on the first 401, -> ``retried`` once the
    refreshed request was sent. No transition leads back to ``initial``.
    """

    def __init__(self):
        self.phase = AuthPhase.INITIAL

    def should_refresh(self, status_code: int) -> bool:
        return status_code == 401 and self.phase == AuthPhase.INITIAL

    def begin_refresh(self) -> None:
        if self.phase != AuthPhase.INITIAL:
            raise RuntimeError(f"cannot refresh from phase {self.phase.value}")
        self.phase = AuthPhase.REFRESHING

    def mark_retried(self) -> None:
        if self.phase != AuthPhase.REFRESHING:
            raise RuntimeError(f"cannot retry from phase {self.phase.value}")
        self.phase = AuthPhase.RETRIED


def read_payload(response: httpx.Response) -> Any:
    """Body as JSON when possible, else ``{"message": text}``."""
    content_type = response.headers.get("content-type", "")
    if "json" in content_type:
        try:
            return response.json()
        except ValueError:
            pass
    text = response.text
    return {"message": text} if text else {}


def unwrap(payload: Any) -> Any:
    """Strip a ``{status, message, data}`` envelope."""
    if isinstance(payload, dict) and "data" in payload and "status" in payload:
        return payload["data"]
    return payload


def error_message(payload: Any) -> str:
    if isinstance(payload, dict):
        detail = payload.get("detail")
        if isinstance(detail, dict) and detail.get("message"):
            return str(detail["message"])
        if isinstance(detail, str) and detail:
            return detail
        if isinstance(detail, list):
            messages = [str(item.get("msg")) for item in detail if isinstance(item, dict) and item.get("msg")]
            if messages:
                return "; ".join(messages)
        for name in ("message", "error"):
            if isinstance(payload.get(name), str) and payload[name]:
                return payload[name]
    if isinstance(payload, str) and payload:
        return payload
    return "Request failed"


def error_details(payload: Any) -> Any:
    if isinstance(payload, dict):
        if isinstance(payload.get("detail"), (dict, list)):
            return payload["detail"]
        if "details" in payload:
            return payload["details"]
    return payload or None


class RemoteGateway:
    """Authenticated JSON client over ``httpx.AsyncClient``."""

    def __init__(
        self,
        tokens: TokenStore,
        base_url: Optional[str] = None,
        device_id: Optional[Callable[[], Awaitable[str]]] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: Optional[float] = None,
        settings: Optional[ClientSettings] = None,
    ):
        if base_url is None or timeout is None:
            settings = settings or ClientSettings()
            base_url = base_url or settings.base_url
            timeout = timeout if timeout is not None else settings.REQUEST_TIMEOUT_SECONDS
        self.base_url = base_url.strip().rstrip("/")
        self.tokens = tokens
        self._device_id = device_id
        self._client = httpx.AsyncClient(transport=transport, timeout=timeout)

    async def __aenter__(self) -> "RemoteGateway":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def url_for(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    async def _send(
        self,
        method: str,
        url: str,
        json: Any,
        params: Optional[Mapping[str, Any]],
        auth: bool,
    ) -> httpx.Response:
        headers = {"Accept": "application/json"}
        if auth:
            access = (await self.tokens.get()).access
            if access:
                headers["Authorization"] = f"Bearer {access}"
        logger.debug("%s %s", method, url)
        try:
            return await self._client.request(method, url, json=json, params=params, headers=headers)
        except httpx.RequestError as exc:
            raise NetworkError(
                f"Network request failed (url={url})",
                details={"original": str(exc)},
                url=url,
                method=method,
            ) from exc

    async def _refresh(self) -> bool:
        """Try once to renew the access token; clears stored tokens when refused."""
        refresh = (await self.tokens.get()).refresh
        if not refresh:
            return False
        body: Dict[str, Any] = {"refresh_token": refresh}
        if self._device_id is not None:
            body["device_id"] = await self._device_id()

        logger.info("Access token rejected; refreshing")
        response = await self._send("POST", self.url_for(REFRESH_PATH), body, None, auth=False)
        if response.is_error:
            logger.info("Refresh refused with %s; clearing tokens", response.status_code)
            await self.tokens.clear()
            return False
        await self.tokens.save(unwrap(read_payload(response)))
        return True

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Optional[Mapping[str, Any]] = None,
        auth: bool = True,
    ) -> Any:
        """
        Send a request and return the unwrapped JSON payload.

        Raises:
            GatewayError: A subclass matching the HTTP status, or NetworkError
        """
        method = method.upper()
        url = self.url_for(path)
        if params is not None:
            params = {k: v for k, v in params.items() if v is not None and v != ""}

        cycle = AuthRetryCycle()
        response = await self._send(method, url, json, params, auth)
        if auth and cycle.should_refresh(response.status_code):
            cycle.begin_refresh()
            if await self._refresh():
                cycle.mark_retried()
                response = await self._send(method, url, json, params, auth)

        payload = read_payload(response)
        if response.is_error:
            error_cls = error_for_status(response.status_code)
            raise error_cls(
                error_message(payload),
                status=response.status_code,
                details=error_details(payload),
                url=url,
                method=method,
            )
        return unwrap(payload)
