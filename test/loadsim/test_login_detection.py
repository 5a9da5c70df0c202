"""Tests for login page classification and credential submission."""

from __future__ import annotations

import pytest

from tradekit.session import Action

from loadsim.core.login import (
    FormLogin,
    KeycloakLogin,
    LoginKind,
    classify_login_page,
    presentation_for,
)
from loadsim.core.models import Credentials


class TestClassifyLoginPage:
    @pytest.mark.parametrize(
        "url,content",
        [
            ("https://sso.example/keycloak/realms/x", "<html></html>"),
            ("https://host/auth/realms/stocktrader/protocol/openid-connect/auth", ""),
            ("https://host/trader/login", '<input id="kc-login" type="submit">'),
            ("https://host/OAUTH/start", ""),
        ],
    )
    def test_keycloak(self, url, content):
        assert classify_login_page(url, content) is LoginKind.KEYCLOAK

    def test_form(self):
        assert classify_login_page("https://host/trader/login", "<input name='id'>") is LoginKind.FORM

    def test_presentation_for(self):
        assert isinstance(presentation_for("https://host/auth", ""), KeycloakLogin)
        assert isinstance(presentation_for("https://host/trader", ""), FormLogin)


class TestSubmit:
    @pytest.mark.asyncio
    async def test_keycloak_uses_kc_selectors(self, fake_sessions):
        factory = fake_sessions()
        session = factory("owner-0")

        await KeycloakLogin().submit(session, Credentials("stock", "trader"), 2.0)

        assert session.interactions == [
            ("#username", Action.CLICK, None),
            ("#username", Action.SET_TEXT, "stock"),
            ("#password", Action.CLICK, None),
            ("#password", Action.SET_TEXT, "trader"),
            ("#kc-login", Action.CLICK, None),
        ]
        condition, timeout, required = session.waits[0]
        assert condition.locator.selector == "#username"
        assert timeout == 2.0
        assert required is True

    @pytest.mark.asyncio
    async def test_form_uses_named_fields(self, fake_sessions):
        factory = fake_sessions()
        session = factory("owner-0")

        await FormLogin().submit(session, Credentials("stock", "trader"), 1.0)

        selectors = [selector for selector, _, _ in session.interactions]
        assert selectors[0] == "[name='id']"
        assert "[name='password']" in selectors
        assert selectors[-1] == "input[type='submit'][name='submit'][value='Submit']"
