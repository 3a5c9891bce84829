"""Minimal JSON-over-HTTP client used for the external services."""
from __future__ import annotations

import http.client
import json
import logging
from typing import Any, Callable, Dict, Mapping, Optional, Tuple
from urllib import error as urllib_error, parse as urllib_parse, request as urllib_request

from .errors import AccessDenied, NotFound, UpstreamUnavailable, ValidationError


logger = logging.getLogger("upstream")

# (method, url, headers, body, timeout) -> (status code, raw body)
Transport = Callable[[str, str, Mapping[str, str], Optional[bytes], float], Tuple[int, bytes]]


def _read_error_body(exc: urllib_error.HTTPError) -> bytes:
    try:
        return exc.read() or b""
    except (AttributeError, OSError, ValueError):
        return b""


def urllib_transport(
    method: str,
    url: str,
    headers: Mapping[str, str],
    body: Optional[bytes],
    timeout: float,
) -> Tuple[int, bytes]:
    """Send a request with :mod:`urllib`; HTTP error statuses are returned, not raised."""

    request = urllib_request.Request(url, data=body, headers=dict(headers), method=method)
    try:
        with urllib_request.urlopen(request, timeout=timeout) as response:
            return response.status, response.read()
    except urllib_error.HTTPError as exc:
        return exc.code, _read_error_body(exc)


def _decode(raw: bytes) -> Dict[str, Any]:
    if not raw:
        return {}
    payload = json.loads(raw.decode("utf-8"))
    if not isinstance(payload, dict):
        raise ValueError("Expected a JSON object")
    return payload


class JsonServiceClient:
    """Sends authenticated JSON requests and maps failures to engine errors.

    Every request carries the caller's bearer credential and an explicit
    timeout. Connection failures, timeouts and 5xx responses become
    :class:`UpstreamUnavailable`; 401/403 become :class:`AccessDenied` and
    404 becomes :class:`NotFound`.
    """

    service_name = "upstream"

    def __init__(
        self,
        *,
        base_url: str,
        timeout: float,
        transport: Optional[Transport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport or urllib_transport

    def _url(self, path: str, params: Optional[Mapping[str, str]] = None) -> str:
        url = f"{self.base_url}/{path.lstrip('/')}" if path else self.base_url
        if params:
            url = f"{url}?{urllib_parse.urlencode(params)}"
        return url

    def _request(
        self,
        method: str,
        path: str,
        *,
        credential: str,
        params: Optional[Mapping[str, str]] = None,
        body: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        url = self._url(path, params)
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if credential:
            headers["Authorization"] = f"Bearer {credential}"
        data = json.dumps(body).encode("utf-8") if body is not None else None

        try:
            status_code, raw = self._transport(method, url, headers, data, self.timeout)
        except (OSError, http.client.HTTPException) as exc:
            logger.warning(
                "%s request failed",
                self.service_name,
                extra={"upstream_method": method, "upstream_url": url, "error": str(exc)},
            )
            raise UpstreamUnavailable(
                f"{self.service_name} is unreachable: {exc}", service=self.service_name
            ) from exc

        try:
            payload = _decode(raw)
        except (ValueError, UnicodeDecodeError) as exc:
            if status_code >= 400:
                payload = {}
            else:
                raise UpstreamUnavailable(
                    f"{self.service_name} returned a malformed response", service=self.service_name
                ) from exc

        if status_code < 400:
            return payload

        message = str(payload.get("message") or payload.get("error") or f"HTTP {status_code}")
        detail = {"service": self.service_name, "upstream_status": status_code}
        if status_code in (401, 403):
            raise AccessDenied(f"{self.service_name} refused the request: {message}", detail=detail)
        if status_code == 404:
            raise NotFound(f"{self.service_name}: {message}", detail=detail)
        if status_code >= 500 or status_code in (408, 429):
            raise UpstreamUnavailable(
                f"{self.service_name} failed: {message}", service=self.service_name, detail=detail
            )
        raise ValidationError(f"{self.service_name} rejected the request: {message}", detail=detail)


__all__ = ["JsonServiceClient", "Transport", "urllib_transport"]
