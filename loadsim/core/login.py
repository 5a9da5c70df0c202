"""Login presentation detection and credential submission.

The target fronts the trader app with one of two login pages: a KeyCloak
(OIDC) page or the application's own form. ``classify_login_page`` decides
which one is showing from the current URL and page content only, so the
decision is testable without a Session.
"""

from __future__ import annotations

from enum import Enum
from typing import Protocol

from tradekit.session import Action, Condition, Locator, Session

from loadsim.core.models import Credentials

KEYCLOAK_URL_MARKERS = ("keycloak", "auth")
KEYCLOAK_CONTENT_MARKER = "kc-login"

LANDING_INDICATOR = Locator.css("input[name='action'][value='create']")


class LoginKind(str, Enum):
    KEYCLOAK = "keycloak"
    FORM = "form"


def classify_login_page(url: str, content: str) -> LoginKind:
    lowered = url.lower()
    if any(marker in lowered for marker in KEYCLOAK_URL_MARKERS) or KEYCLOAK_CONTENT_MARKER in content:
        return LoginKind.KEYCLOAK
    return LoginKind.FORM


class LoginPresentation(Protocol):
    kind: LoginKind

    async def submit(self, session: Session, credentials: Credentials, timeout: float) -> None: ...


class _FieldLogin:
    """Wait for the user field, fill both fields, press the submit control."""

    kind: LoginKind
    user_field: Locator
    password_field: Locator
    submit_control: Locator

    async def submit(self, session: Session, credentials: Credentials, timeout: float) -> None:
        await session.wait_for(Condition.clickable(self.user_field), timeout)
        await session.interact(self.user_field, Action.CLICK)
        await session.interact(self.user_field, Action.SET_TEXT, credentials.username)
        await session.interact(self.password_field, Action.CLICK)
        await session.interact(self.password_field, Action.SET_TEXT, credentials.password)
        await session.interact(self.submit_control, Action.CLICK)


class KeycloakLogin(_FieldLogin):
    kind = LoginKind.KEYCLOAK
    user_field = Locator.by_id("username")
    password_field = Locator.by_id("password")
    submit_control = Locator.by_id("kc-login")


class FormLogin(_FieldLogin):
    kind = LoginKind.FORM
    user_field = Locator.by_name("id")
    password_field = Locator.by_name("password")
    submit_control = Locator.css("input[type='submit'][name='submit'][value='Submit']")


PRESENTATIONS: dict[LoginKind, LoginPresentation] = {
    LoginKind.KEYCLOAK: KeycloakLogin(),
    LoginKind.FORM: FormLogin(),
}


def presentation_for(url: str, content: str) -> LoginPresentation:
    return PRESENTATIONS[classify_login_page(url, content)]
