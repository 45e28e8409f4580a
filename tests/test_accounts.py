#!/usr/bin/env python3
"""Tests for account registration and sign-in."""

from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from fleetguard import CheckoutError, MemoryStore, ValidationError
from fleetguard import loader
from fleetguard.accounts import (
    DuplicateEmailError,
    PLAN_LIMITS,
    activate_account,
    authenticate,
    register_account,
    url_checkout,
    url_confirm,
)


@pytest.fixture
def store():
    return MemoryStore()


class TestRegisterAccount:
    """Tests for register_account."""

    def test_free_plan_active(self, store):
        account = register_account(store, "Pat", " Pat@Example.com ", "secret")
        assert account["email"] == "pat@example.com"
        assert account["plan"] == "Free"
        assert account["vehicleLimit"] == 5
        assert account["active"]
        assert account["passwordHash"] != "secret"
        assert loader.load_accounts(store)[0]["email"] == "pat@example.com"

    def test_paid_plan_inactive(self, store):
        account = register_account(store, "Pat", "pat@example.com", "secret", "Growth")
        assert not account["active"]
        assert account["vehicleLimit"] == 25

    def test_plan_limits(self):
        assert PLAN_LIMITS == {"Free": 5, "Growth": 25, "Scale": 50}

    def test_required_fields(self, store):
        with pytest.raises(ValidationError):
            register_account(store, "Pat", "pat@example.com", "  ")

    def test_invalid_plan(self, store):
        with pytest.raises(ValidationError):
            register_account(store, "Pat", "pat@example.com", "secret", "Platinum")

    def test_duplicate_email(self, store):
        register_account(store, "Pat", "pat@example.com", "secret")
        with pytest.raises(DuplicateEmailError):
            register_account(store, "Pat", "PAT@example.com", "other")

    def test_non_text_fields(self, store):
        with pytest.raises(ValidationError):
            register_account(store, ["Pat"], "pat@example.com", "secret")
        with pytest.raises(ValidationError):
            register_account(store, "Pat", "pat@example.com", "secret", phone=5551234)
        with pytest.raises(ValidationError):
            register_account(store, "Pat", "pat@example.com", "secret", ["Growth"])
        assert loader.load_accounts(store) == []


class TestAuthenticate:
    """Tests for authenticate and activate_account."""

    def test_correct_password(self, store):
        register_account(store, "Pat", "pat@example.com", "secret")
        assert authenticate(store, "PAT@example.com", "secret")["name"] == "Pat"

    def test_wrong_password(self, store):
        register_account(store, "Pat", "pat@example.com", "secret")
        assert authenticate(store, "pat@example.com", "wrong") is None

    def test_unknown_email(self, store):
        assert authenticate(store, "nobody@example.com", "secret") is None

    def test_inactive_until_activated(self, store):
        register_account(store, "Pat", "pat@example.com", "secret", "Scale")
        assert authenticate(store, "pat@example.com", "secret") is None
        assert activate_account(store, "pat@example.com")["active"]
        assert authenticate(store, "pat@example.com", "secret") is not None

    def test_activate_unknown(self, store):
        assert activate_account(store, "nobody@example.com") is None


class TestUrlCheckout:
    """Tests for url_checkout."""

    def test_builds_redirect(self):
        start = url_checkout("https://pay.example.com/checkout")
        url = start({"plan": "Growth", "email": "pat@example.com"}, "http://localhost/register/success")
        parsed = urlparse(url)
        assert parsed.netloc == "pay.example.com"
        query = parse_qs(parsed.query)
        assert query["plan"] == ["Growth"]
        assert query["return_url"] == ["http://localhost/register/success"]

    def test_not_configured(self):
        with pytest.raises(CheckoutError):
            url_checkout(None)({"plan": "Growth", "email": "pat@example.com"}, "/")


def confirm_with(handler):
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return url_confirm("https://pay.example.com/sessions/", client)


class TestUrlConfirm:
    """Tests for url_confirm."""

    def test_paid_session(self):
        seen = []

        def handler(request):
            seen.append(str(request.url))
            return httpx.Response(200, json={"payment_status": "paid", "customer_email": "Pat@Example.com"})

        assert confirm_with(handler)("cs_123") == "pat@example.com"
        assert seen == ["https://pay.example.com/sessions/cs_123"]

    def test_unpaid_session(self):
        confirm = confirm_with(
            lambda request: httpx.Response(200, json={"payment_status": "unpaid", "email": "pat@example.com"})
        )
        assert confirm("cs_123") is None

    def test_unknown_session(self):
        assert confirm_with(lambda request: httpx.Response(404))("cs_forged") is None

    def test_session_id_is_escaped(self):
        seen = []

        def handler(request):
            seen.append(request.url.raw_path)
            return httpx.Response(404)

        confirm_with(handler)("../admin")
        assert seen == [b"/sessions/..%2Fadmin"]

    def test_provider_error(self):
        with pytest.raises(CheckoutError):
            confirm_with(lambda request: httpx.Response(500))("cs_123")

    def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(CheckoutError):
            confirm_with(handler)("cs_123")

    def test_not_json(self):
        with pytest.raises(CheckoutError):
            confirm_with(lambda request: httpx.Response(200, text="<html>"))("cs_123")

    def test_not_configured(self):
        with pytest.raises(CheckoutError):
            url_confirm(None)("cs_123")
