"""HTTP session that drives a server-rendered application through its forms.

The session keeps one cookie jar and one current document. Element lookups
use CSS selectors against the parsed document; clicking a submit control
posts the enclosing form the way a browser would, including values typed or
radios selected since the page was loaded.
"""

from __future__ import annotations

import asyncio
from typing import Any
from urllib.parse import urljoin

import httpx
from bs4 import BeautifulSoup, Tag

from tradekit.exceptions import InteractionError, SessionError, WaitTimeoutError
from tradekit.logger import Logger, session_logger
from tradekit.session.base import Action, Condition, ConditionKind, Locator, WaitResult

_NON_DATA_INPUTS = frozenset({"submit", "button", "image", "reset", "file"})
_SUBMIT_INPUTS = frozenset({"submit", "image"})

# Index used for values typed into elements outside any form.
_NO_FORM = -1


class HttpFormSession:
    """Session implementation backed by httpx and BeautifulSoup.

    Example:
        session = HttpFormSession(timeout_seconds=10.0)
        await session.open()
        await session.navigate("https://trader.example/trader")
        await session.wait_for(Condition.visible(Locator.by_name("id")), 30.0)
        await session.close()
    """

    def __init__(
        self,
        *,
        timeout_seconds: float = 30.0,
        poll_interval: float = 0.25,
        verify_tls: bool = True,
        refresh_on_poll: bool = True,
        label: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        logger: Logger | None = None,
    ) -> None:
        """Initialize the session.

        Args:
            timeout_seconds: Per-request HTTP timeout
            poll_interval: Delay between condition checks while waiting
            verify_tls: Verify the target's TLS certificate
            refresh_on_poll: Re-fetch GET pages while a condition is unmet
            label: Correlation label included in log events
            transport: Optional httpx transport (used by tests)
            logger: Logger for request events
        """
        self._timeout_seconds = timeout_seconds
        self._poll_interval = poll_interval
        self._verify_tls = verify_tls
        self._refresh_on_poll = refresh_on_poll
        self._label = label
        self._transport = transport
        self._logger = logger or session_logger

        self._client: httpx.AsyncClient | None = None
        self._url = ""
        self._html = ""
        self._soup: BeautifulSoup | None = None
        self._last_method = "GET"
        self._staged: dict[int, dict[str, str]] = {}

    @property
    def is_open(self) -> bool:
        return self._client is not None

    async def open(self) -> None:
        if self._client is not None:
            return
        try:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout_seconds),
                follow_redirects=True,
                verify=self._verify_tls,
                transport=self._transport,
                headers={
                    "User-Agent": "stocktrader-loadsim/0.1",
                    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
                },
            )
        except (httpx.HTTPError, OSError, ValueError) as exc:
            raise SessionError(
                f"Failed to open HTTP session: {exc}",
                {"label": self._label},
            ) from exc

    async def close(self) -> None:
        client, self._client = self._client, None
        if client is None:
            return
        try:
            await client.aclose()
        except (httpx.HTTPError, OSError) as exc:
            raise SessionError(
                f"Failed to close HTTP session: {exc}",
                {"label": self._label},
            ) from exc

    async def navigate(self, url: str) -> None:
        await self._request("GET", url)

    def location_and_content(self) -> tuple[str, str]:
        return self._url, self._html

    async def wait_for(
        self,
        condition: Condition,
        timeout: float,
        *,
        required: bool = True,
    ) -> WaitResult:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + max(0.0, timeout)
        poll_error: SessionError | None = None

        while not self._satisfied(condition):
            remaining = deadline - loop.time()
            if remaining <= 0:
                if required:
                    raise WaitTimeoutError(
                        f"Timed out after {timeout}s waiting for {condition}",
                        {
                            "condition": str(condition),
                            "timeout_seconds": timeout,
                            "url": self._url,
                            "last_poll_error": str(poll_error) if poll_error else None,
                        },
                    ) from poll_error
                return WaitResult.ABSENT

            await asyncio.sleep(min(self._poll_interval, remaining))
            # Only GET pages are safe to re-fetch.
            if self._refresh_on_poll and self._last_method == "GET" and self._url:
                try:
                    await self._request("GET", self._url)
                except SessionError as exc:
                    # The previous document stays current until a refresh succeeds.
                    poll_error = exc
                    self._logger.debug(
                        "session.poll_error",
                        label=self._label,
                        url=self._url,
                        condition=str(condition),
                        error=str(exc),
                    )

        return WaitResult.PRESENT

    async def interact(
        self,
        locator: Locator,
        action: Action,
        text: str | None = None,
    ) -> str | None:
        element = self._find(locator)

        if action is Action.READ:
            if element.name in ("input", "textarea") and element.has_attr("value"):
                return str(element["value"])
            return element.get_text(strip=True)

        if action is Action.SET_TEXT:
            if text is None:
                raise InteractionError(f"No text given for {locator}", {"selector": locator.selector})
            name = element.get("name")
            if element.name not in ("input", "textarea") or not name:
                raise InteractionError(
                    f"Element {locator} does not accept text",
                    {"selector": locator.selector, "tag": element.name},
                )
            self._staged_for(element)[str(name)] = text
            return None

        if not _is_visible(element) or element.has_attr("disabled"):
            raise InteractionError(
                f"Element {locator} is not interactable",
                {"selector": locator.selector, "url": self._url},
            )

        input_type = str(element.get("type") or "").lower()
        if element.name == "a" and element.get("href"):
            await self.navigate(urljoin(self._url, str(element["href"])))
        elif element.name == "input" and input_type in ("radio", "checkbox"):
            name = element.get("name")
            if name:
                self._staged_for(element)[str(name)] = str(element.get("value") or "on")
        elif (element.name == "input" and input_type in _SUBMIT_INPUTS) or (
            element.name == "button" and input_type in ("", "submit")
        ):
            await self._submit(element)
        return None

    async def _request(self, method: str, url: str, data: dict[str, Any] | None = None) -> None:
        if self._client is None:
            raise SessionError("Session is not open", {"label": self._label, "url": url})

        try:
            if method == "GET":
                response = await self._client.get(url, params=data)
            else:
                response = await self._client.request(method, url, data=data)
        except httpx.HTTPError as exc:
            raise SessionError(
                f"{method} {url} failed: {type(exc).__name__}: {exc}",
                {"url": url, "method": method},
            ) from exc

        self._logger.debug(
            "session.request",
            label=self._label,
            method=method,
            url=url,
            final_url=str(response.url),
            status_code=response.status_code,
        )

        if response.status_code >= 400:
            raise SessionError(
                f"{method} {url} returned HTTP {response.status_code}",
                {"url": url, "method": method, "status_code": response.status_code},
            )

        self._url = str(response.url)
        self._html = response.text
        self._soup = BeautifulSoup(self._html, "html.parser")
        self._last_method = response.request.method
        self._staged = {}

    def _find(self, locator: Locator) -> Tag:
        element = self._soup.select_one(locator.selector) if self._soup is not None else None
        if element is None:
            raise InteractionError(
                f"No element matches {locator}",
                {"selector": locator.selector, "url": self._url},
            )
        return element

    def _satisfied(self, condition: Condition) -> bool:
        if self._soup is None:
            return False
        element = self._soup.select_one(condition.locator.selector)
        if element is None:
            return False
        if condition.kind is ConditionKind.PRESENT:
            return True
        if not _is_visible(element):
            return False
        if condition.kind is ConditionKind.CLICKABLE:
            return not element.has_attr("disabled")
        return True

    def _form_key(self, form: Tag | None) -> int:
        if form is None or self._soup is None:
            return _NO_FORM
        for index, candidate in enumerate(self._soup.find_all("form")):
            if candidate is form:
                return index
        return _NO_FORM

    def _staged_for(self, element: Tag) -> dict[str, str]:
        key = self._form_key(element.find_parent("form"))
        return self._staged.setdefault(key, {})

    async def _submit(self, control: Tag) -> None:
        form = control.find_parent("form")
        if form is None:
            raise InteractionError(
                "Submit control is not inside a form",
                {"url": self._url, "control": str(control)[:200]},
            )

        fields = self._collect_fields(form)
        name = control.get("name")
        if name:
            fields.setdefault(str(name), []).append(str(control.get("value") or ""))

        method = str(form.get("method") or "get").upper()
        action = urljoin(self._url, str(form.get("action") or self._url))
        payload: dict[str, Any] = {k: v[0] if len(v) == 1 else v for k, v in fields.items()}
        await self._request("POST" if method == "POST" else "GET", action, data=payload)

    def _collect_fields(self, form: Tag) -> dict[str, list[str]]:
        """Gather the successful controls of ``form`` plus staged values."""
        staged = self._staged.get(self._form_key(form), {})
        fields: dict[str, list[str]] = {}
        staged_radios: set[str] = set()

        for element in form.find_all(["input", "select", "textarea"]):
            name = element.get("name")
            if not name or element.has_attr("disabled"):
                continue
            name = str(name)

            if element.name == "input":
                input_type = str(element.get("type") or "text").lower()
                if input_type in _NON_DATA_INPUTS:
                    continue
                if input_type == "radio":
                    if name in staged:
                        if name not in staged_radios:
                            staged_radios.add(name)
                            fields.setdefault(name, []).append(staged[name])
                    elif element.has_attr("checked"):
                        fields.setdefault(name, []).append(str(element.get("value") or "on"))
                    continue
                if input_type == "checkbox":
                    value = str(element.get("value") or "on")
                    if element.has_attr("checked") or staged.get(name) == value:
                        fields.setdefault(name, []).append(value)
                    continue
                value = staged.get(name, str(element.get("value") or ""))
            elif element.name == "select":
                option = element.find("option", selected=True) or element.find("option")
                default = ""
                if option is not None:
                    default = str(option.get("value") or option.get_text(strip=True))
                value = staged.get(name, default)
            else:
                value = staged.get(name, element.get_text())

            fields.setdefault(name, []).append(value)

        return fields


def _is_visible(element: Tag) -> bool:
    if element.name == "input" and str(element.get("type") or "").lower() == "hidden":
        return False
    node: Tag | None = element
    while node is not None and node.name != "[document]":
        if node.has_attr("hidden"):
            return False
        style = str(node.get("style") or "").replace(" ", "").lower()
        if "display:none" in style or "visibility:hidden" in style:
            return False
        node = node.parent
    return True
