from __future__ import annotations

import html
import os
import secrets
import threading
from dataclasses import dataclass, field
from http.cookies import SimpleCookie
from typing import Iterable
from urllib.parse import parse_qs, urlparse

from tradekit.logger import Logger, session_logger

SESSION_COOKIE = "JSESSIONID"
KEYCLOAK_AUTH_PATH = "/auth/realms/stocktrader/protocol/openid-connect/auth"
KEYCLOAK_POST_PATH = "/auth/realms/stocktrader/login-actions/authenticate"
FORM_LOGIN_PATH = "/trader/login"
SUMMARY_PATH = "/trader/summary"


@dataclass
class _TraderState:
    username: str
    password: str
    sessions: set[str] = field(default_factory=set)
    portfolios: dict[str, dict[str, int]] = field(default_factory=dict)
    lock: threading.Lock = field(default_factory=threading.Lock)


class TraderFixtureServer:
    """Local stand-in for the StockTrader web app, for CI-safe runs.

    Serves the pages a trader journey walks through: a login page (plain
    form or KeyCloak style), the portfolio summary, add-portfolio, add-stock
    and an optional sell confirmation. Portfolios are kept in memory and
    shared by every client, like the real app.

    Args:
        login_style: "form" or "keycloak"
        username: Accepted login id
        password: Accepted password
        confirm_on_sell: Show an OK confirmation page after a sale
        unavailable_paths: Paths answered with HTTP 503
        port: Port to bind; 0 picks a free one
    """

    def __init__(
        self,
        *,
        login_style: str = "form",
        username: str = "stock",
        password: str = "trader",
        confirm_on_sell: bool = True,
        unavailable_paths: Iterable[str] = (),
        port: int = 0,
        logger: Logger | None = None,
    ) -> None:
        if login_style not in ("form", "keycloak"):
            raise ValueError("login_style must be 'form' or 'keycloak'")

        self._logger = logger or session_logger
        self._login_style = login_style
        self._confirm_on_sell = confirm_on_sell
        self._unavailable = frozenset(unavailable_paths)
        self._state = _TraderState(username=username, password=password)
        self.port = port

        self._bind_host = os.environ.get("LOADSIM_FIXTURE_HOST", "127.0.0.1")
        self._external_host = os.environ.get("LOADSIM_FIXTURE_EXTERNAL_HOST", "127.0.0.1")

        self._server = None
        self._thread = None

    def start(self) -> None:
        import http.server

        server = self

        class Handler(http.server.BaseHTTPRequestHandler):
            def do_GET(self) -> None:  # noqa: N802
                server._dispatch(self, "GET")

            def do_POST(self) -> None:  # noqa: N802
                server._dispatch(self, "POST")

            def log_message(self, format, *args):  # noqa: A002, ARG002
                # Keep output deterministic and avoid noisy logs.
                pass

        class ReusableHTTPServer(http.server.ThreadingHTTPServer):
            allow_reuse_address = True
            daemon_threads = True

        self._server = ReusableHTTPServer((self._bind_host, self.port), Handler)
        self.port = int(self._server.server_port)
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()

        self._logger.info(
            "sim.fixture_server_started",
            bind_host=self._bind_host,
            external_host=self._external_host,
            port=self.port,
            login_style=self._login_style,
        )

    def stop(self) -> None:
        if self._server:
            self._server.shutdown()
            self._server.server_close()
            self._server = None
        if self._thread:
            self._thread.join(timeout=5)
            self._thread = None

        self._logger.info("sim.fixture_server_stopped", port=self.port)

    def get_url(self, path: str = "") -> str:
        path = path.lstrip("/")
        return f"http://{self._external_host}:{self.port}/{path}"

    @property
    def base_url(self) -> str:
        """Entry point of the trader app, used as the run's target URL."""
        return self.get_url("trader")

    def portfolios(self) -> dict[str, dict[str, int]]:
        with self._state.lock:
            return {owner: dict(holdings) for owner, holdings in self._state.portfolios.items()}

    def __enter__(self) -> "TraderFixtureServer":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
        return None

    # ------------------------------------------------------------------
    # Request handling
    # ------------------------------------------------------------------

    def _dispatch(self, handler, method: str) -> None:
        parsed = urlparse(handler.path)
        path = parsed.path.rstrip("/") or "/"

        if path in self._unavailable:
            self._send(handler, 503, "<html><body><h1>Service Unavailable</h1></body></html>")
            return

        form: dict[str, str] = {}
        if method == "POST":
            length = int(handler.headers.get("Content-Length") or 0)
            body = handler.rfile.read(length).decode("utf-8") if length else ""
            form = {key: values[0] for key, values in parse_qs(body).items()}

        if path in (FORM_LOGIN_PATH, KEYCLOAK_AUTH_PATH, KEYCLOAK_POST_PATH):
            self._handle_login(handler, method, path, form)
            return

        if not path.startswith("/trader"):
            self._send(handler, 404, "<html><body><h1>Not Found</h1></body></html>")
            return

        if not self._authenticated(handler):
            self._redirect(handler, self._login_url())
            return

        if path in ("/trader", SUMMARY_PATH) and method == "GET":
            self._send(handler, 200, self._summary_page())
        elif path == SUMMARY_PATH:
            self._handle_summary_post(handler, form)
        elif path == "/trader/addPortfolio" and method == "POST":
            owner = form.get("owner", "").strip()
            if not owner:
                self._send(handler, 400, "<html><body>Owner is required</body></html>")
                return
            with self._state.lock:
                self._state.portfolios.setdefault(owner, {})
            self._redirect(handler, SUMMARY_PATH)
        elif path == "/trader/addStock" and method == "POST":
            self._handle_trade(handler, form)
        else:
            self._send(handler, 404, "<html><body><h1>Not Found</h1></body></html>")

    def _handle_login(self, handler, method: str, path: str, form: dict[str, str]) -> None:
        if method == "GET":
            if path == FORM_LOGIN_PATH:
                self._send(handler, 200, _form_login_page())
            else:
                self._send(handler, 200, _keycloak_login_page())
            return

        user_key = "id" if path == FORM_LOGIN_PATH else "username"
        if form.get(user_key) != self._state.username or form.get("password") != self._state.password:
            page = _form_login_page(error=True) if path == FORM_LOGIN_PATH else _keycloak_login_page(error=True)
            self._send(handler, 200, page)
            return

        token = secrets.token_hex(16)
        with self._state.lock:
            self._state.sessions.add(token)
        self._redirect(handler, SUMMARY_PATH, cookie=token)

    def _handle_summary_post(self, handler, form: dict[str, str]) -> None:
        action = form.get("action", "retrieve")
        owner = form.get("owner", "")

        if action == "create":
            self._send(handler, 200, _add_portfolio_page())
            return

        with self._state.lock:
            holdings = dict(self._state.portfolios.get(owner, {})) if owner in self._state.portfolios else None
        if holdings is None:
            self._send(handler, 400, "<html><body>Select an existing portfolio</body></html>")
            return

        if action == "update":
            self._send(handler, 200, _add_stock_page(owner))
        elif action == "delete":
            with self._state.lock:
                self._state.portfolios.pop(owner, None)
            self._redirect(handler, SUMMARY_PATH)
        else:
            self._send(handler, 200, _view_portfolio_page(owner, holdings))

    def _handle_trade(self, handler, form: dict[str, str]) -> None:
        owner = form.get("owner", "")
        symbol = form.get("symbol", "").strip().upper()
        try:
            shares = int(form.get("shares", ""))
        except ValueError:
            self._send(handler, 400, "<html><body>Shares must be a number</body></html>")
            return

        selling = form.get("action") == "Sell"
        with self._state.lock:
            holdings = self._state.portfolios.get(owner)
            if holdings is None or not symbol or shares < 1:
                holdings = None
            elif selling:
                holdings[symbol] = max(0, holdings.get(symbol, 0) - shares)
            else:
                holdings[symbol] = holdings.get(symbol, 0) + shares

        if holdings is None:
            self._send(handler, 400, "<html><body>Invalid trade</body></html>")
        elif selling and self._confirm_on_sell:
            self._send(handler, 200, _confirmation_page(owner, symbol, shares))
        else:
            self._redirect(handler, SUMMARY_PATH)

    def _authenticated(self, handler) -> bool:
        cookie = SimpleCookie(handler.headers.get("Cookie") or "")
        morsel = cookie.get(SESSION_COOKIE)
        if morsel is None:
            return False
        with self._state.lock:
            return morsel.value in self._state.sessions

    def _login_url(self) -> str:
        if self._login_style == "keycloak":
            return f"{KEYCLOAK_AUTH_PATH}?client_id=stocktrader&redirect_uri={SUMMARY_PATH}"
        return FORM_LOGIN_PATH

    def _summary_page(self) -> str:
        with self._state.lock:
            rows = [
                (owner, sum(holdings.values())) for owner, holdings in sorted(self._state.portfolios.items())
            ]
        body = "".join(
            f'<tr><td><input type="radio" name="owner" value="{html.escape(owner, quote=True)}"></td>'
            f"<td>{html.escape(owner)}</td><td>{total}</td></tr>"
            for owner, total in rows
        )
        return _page(
            "Stock Trader",
            '<form method="post" action="/trader/summary">'
            f"<table><tr><th></th><th>Owner</th><th>Shares</th></tr>{body}</table>"
            '<input type="radio" name="action" value="retrieve" checked> Retrieve selected portfolio<br>'
            '<input type="radio" name="action" value="create"> Create a new portfolio<br>'
            '<input type="radio" name="action" value="update"> Update selected portfolio (add stock)<br>'
            '<input type="radio" name="action" value="delete"> Delete selected portfolio<br>'
            '<input type="submit" name="submit" value="Submit">'
            "</form>",
        )

    def _redirect(self, handler, location: str, cookie: str | None = None) -> None:
        handler.send_response(303)
        handler.send_header("Location", location)
        if cookie is not None:
            handler.send_header("Set-Cookie", f"{SESSION_COOKIE}={cookie}; Path=/; HttpOnly")
        handler.send_header("Content-Length", "0")
        handler.end_headers()

    def _send(self, handler, status: int, body: str) -> None:
        payload = body.encode("utf-8")
        handler.send_response(status)
        handler.send_header("Content-Type", "text/html; charset=utf-8")
        handler.send_header("Content-Length", str(len(payload)))
        handler.end_headers()
        handler.wfile.write(payload)


def _page(title: str, body: str) -> str:
    return f"<html><head><title>{title}</title></head><body><h1>{title}</h1>{body}</body></html>"


def _form_login_page(error: bool = False) -> str:
    message = '<p class="error">Invalid credentials</p>' if error else ""
    return _page(
        "Stock Trader Login",
        f'{message}<form method="post" action="{FORM_LOGIN_PATH}">'
        'User: <input type="text" name="id"><br>'
        'Password: <input type="password" name="password"><br>'
        '<input type="submit" name="submit" value="Submit">'
        "</form>",
    )


def _keycloak_login_page(error: bool = False) -> str:
    message = '<span id="input-error">Invalid username or password.</span>' if error else ""
    return _page(
        "Sign in to stocktrader",
        f'{message}<form id="kc-form-login" method="post" action="{KEYCLOAK_POST_PATH}">'
        '<input id="username" name="username" type="text" autofocus>'
        '<input id="password" name="password" type="password">'
        '<input id="kc-login" name="login" type="submit" value="Sign In">'
        "</form>",
    )


def _add_portfolio_page() -> str:
    return _page(
        "Create Portfolio",
        '<form method="post" action="/trader/addPortfolio">'
        'Owner: <input type="text" name="owner"><br>'
        '<input type="submit" name="submit" value="Submit">'
        "</form>",
    )


def _add_stock_page(owner: str) -> str:
    escaped = html.escape(owner, quote=True)
    return _page(
        f"Update Portfolio {html.escape(owner)}",
        '<form method="post" action="/trader/addStock">'
        f'<input type="hidden" name="owner" value="{escaped}">'
        'Symbol: <input type="text" name="symbol"><br>'
        'Shares: <input type="text" name="shares"><br>'
        '<input type="radio" name="action" value="Buy" checked> Buy '
        '<input type="radio" name="action" value="Sell"> Sell<br>'
        '<input type="submit" name="submit" value="Submit">'
        "</form>",
    )


def _view_portfolio_page(owner: str, holdings: dict[str, int]) -> str:
    rows = "".join(
        f"<tr><td>{html.escape(symbol)}</td><td>{shares}</td></tr>" for symbol, shares in sorted(holdings.items())
    )
    return _page(
        f"Portfolio {html.escape(owner)}",
        f'<table>{rows}</table><a href="{SUMMARY_PATH}">Return to summary</a>',
    )


def _confirmation_page(owner: str, symbol: str, shares: int) -> str:
    return _page(
        "Trade Confirmation",
        f"<p>Sold {shares} shares of {html.escape(symbol)} for {html.escape(owner)}.</p>"
        f'<form method="get" action="{SUMMARY_PATH}">'
        '<input type="submit" name="submit" value="OK">'
        "</form>",
    )
