"""FEATUREGATE FILE PURPOSE
Purpose: sandboxed package activation through a loopback HTTP call to the local activation endpoint.
Hot path: no (only during feature enable).
Feature flags: GATE_LOOPBACK_URL, GATE_LOOPBACK_TIMEOUT, GATE_ADMIN_API_KEY.
Failure mode:
  - endpoint unreachable / timeout / 401 / 403 / ambiguous 200 => None (indeterminate, caller falls back)
  - structured failure payload => FeatureError with the endpoint's code
  - any other error status or dropped connection => activation_fatal
"""

from __future__ import annotations

import http.client
import json
import urllib.error
import urllib.request
from typing import Any, Callable

from gate.config import admin_api_key, loopback_timeout, loopback_url
from gate.errors import ErrorKind, FeatureError
from gate.logging import debug_note

# (url, body, headers, timeout) -> (status, body) or None when the endpoint could not be reached.
Transport = Callable[[str, bytes, dict[str, str], int], tuple[int, str] | None]
CredentialsProvider = Callable[[], dict[str, str]]


def _urllib_post(url: str, body: bytes, headers: dict[str, str], timeout: int) -> tuple[int, str] | None:
    req = urllib.request.Request(url=url, data=body, headers=headers, method="POST")
    try:
        with urllib.request.urlopen(req, timeout=timeout) as resp:
            return int(resp.status), resp.read().decode("utf-8", errors="replace")
    except urllib.error.HTTPError as e:
        try:
            detail = e.read().decode("utf-8", errors="replace")
        except OSError:
            detail = ""
        return int(e.code), detail
    except (http.client.RemoteDisconnected, http.client.IncompleteRead):
        # The request reached the endpoint and the worker died mid-response.
        return 0, ""
    except (urllib.error.URLError, OSError):
        return None


def _bearer_from_config() -> dict[str, str]:
    key = admin_api_key()
    return {"Authorization": f"Bearer {key}"} if key else {}


def _decode(text: str) -> Any:
    try:
        return json.loads(text)
    except ValueError:
        return None


def _kind_for(code: str) -> ErrorKind | str:
    try:
        return ErrorKind(code)
    except ValueError:
        return code


class LoopbackActivator:
    def __init__(
        self,
        url: str | None = None,
        timeout: int | None = None,
        credentials: CredentialsProvider | None = None,
        transport: Transport | None = None,
    ) -> None:
        self._url = url
        self._timeout = timeout
        self._credentials = credentials or _bearer_from_config
        self._transport = transport or _urllib_post

    @property
    def url(self) -> str | None:
        return self._url if self._url is not None else loopback_url()

    @property
    def timeout(self) -> int:
        return self._timeout if self._timeout is not None else loopback_timeout()

    def activate(self, package_ref: str) -> bool | FeatureError | None:
        """Activate ``package_ref`` in the loopback worker.

        Returns True on confirmed success, a FeatureError on a definitive
        failure, or None when the outcome is indeterminate and the caller
        should fall back.
        """
        url = self.url
        if not url:
            debug_note(f"LOOPBACK_UNAVAILABLE package_ref={package_ref} reason=no_url")
            return None

        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        headers.update(self._credentials())
        body = json.dumps({"package_ref": package_ref}).encode("utf-8")

        outcome = self._transport(url, body, headers, self.timeout)
        if outcome is None:
            debug_note(f"LOOPBACK_UNAVAILABLE package_ref={package_ref} reason=transport")
            return None

        status, text = outcome
        if status in (401, 403):
            debug_note(f"LOOPBACK_UNAVAILABLE package_ref={package_ref} reason=http_{status}")
            return None

        decoded = _decode(text)
        if isinstance(decoded, dict) and isinstance(decoded.get("success"), bool):
            if decoded["success"]:
                return True
            data = decoded.get("data")
            if not isinstance(data, dict):
                data = {}
            code = data.get("code")
            message = data.get("message")
            if not isinstance(code, str) or not code:
                code = "activation_failed"
            if not isinstance(message, str) or not message:
                message = "Unknown activation error."
            return FeatureError(_kind_for(code), message)

        if status >= 400 or status == 0:
            return FeatureError(
                ErrorKind.ACTIVATION_FATAL,
                f'Fatal error during activation of "{package_ref}": the package caused a fatal error (HTTP {status}).',
            )

        debug_note(f"LOOPBACK_AMBIGUOUS package_ref={package_ref} status={status}")
        return None
