"""Account registration and plan handling for the dashboard's session gate."""

import logging
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import quote, urlencode

import httpx
from werkzeug.security import check_password_hash, generate_password_hash

from . import loader
from .errors import CheckoutError, ValidationError

logger = logging.getLogger(__name__)

PLAN_LIMITS = {
    "Free": 5,
    "Growth": 25,
    "Scale": 50,
}
FREE_PLAN = "Free"


class DuplicateEmailError(ValidationError):
    """Registration used an email that already has an account."""


def _text(value: Any, label: str) -> str:
    """Stripped text; None counts as empty, other non-text is rejected."""
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError(f"{label} must be text.")
    return value.strip()


def find_account(accounts: List[Dict[str, Any]], email: str) -> Optional[Dict[str, Any]]:
    key = email.strip().lower()
    for account in accounts:
        if account["email"] == key:
            return account
    return None


def register_account(
    store,
    name: str,
    email: str,
    password: str,
    plan: str = FREE_PLAN,
    phone: Optional[str] = None,
    company: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Create an account.

    Free accounts are active at once; paid accounts stay inactive until
    the checkout redirect-back confirms them (see activate_account).
    """
    name = _text(name, "Name")
    email = _text(email, "Email").lower()
    password = _text(password, "Password")
    phone = _text(phone, "Phone") or None
    company = _text(company, "Company") or None
    plan = plan or FREE_PLAN

    if not name or not email or not password:
        raise ValidationError("Name, email and password are required.")
    if not isinstance(plan, str) or plan not in PLAN_LIMITS:
        raise ValidationError("Invalid package.")

    accounts = loader.load_accounts(store)
    if find_account(accounts, email):
        raise DuplicateEmailError("Email is already registered.")

    account = {
        "name": name,
        "email": email,
        "phone": phone,
        "company": company,
        "passwordHash": generate_password_hash(password),
        "plan": plan,
        "vehicleLimit": PLAN_LIMITS[plan],
        "active": plan == FREE_PLAN,
    }
    accounts.append(account)
    loader.save_accounts(store, accounts)
    logger.info("Registered %s on the %s plan", email, plan)
    return account


def activate_account(store, email: str) -> Optional[Dict[str, Any]]:
    """Mark a paid account active after checkout; None if unknown."""
    accounts = loader.load_accounts(store)
    account = find_account(accounts, email)
    if account is None:
        return None
    account["active"] = True
    loader.save_accounts(store, accounts)
    return account


def authenticate(store, email: str, password: str) -> Optional[Dict[str, Any]]:
    """The active account matching the credentials, else None."""
    if not isinstance(email, str) or not isinstance(password, str):
        return None
    account = find_account(loader.load_accounts(store), email)
    if account is None or not account.get("active"):
        return None
    if not check_password_hash(account["passwordHash"], password):
        return None
    return account


def url_checkout(base_url: Optional[str]) -> Callable[[Dict[str, Any], str], str]:
    """
    Checkout that redirects to a hosted payment page.

    The page is expected to send the customer back to return_url with a
    session_id query parameter.
    """

    def start(account: Dict[str, Any], return_url: str) -> str:
        if not base_url:
            raise CheckoutError("Checkout is not configured.")
        query = urlencode(
            {"plan": account["plan"], "email": account["email"], "return_url": return_url}
        )
        return f"{base_url}?{query}"

    return start


def url_confirm(
    base_url: Optional[str], client: Optional[httpx.Client] = None
) -> Callable[[str], Optional[str]]:
    """
    Look up a checkout session with the payment provider.

    GET {base_url}/{session_id} must answer with JSON carrying the
    customer's email and a paid status. confirm(session_id) returns that
    email, or None for an unknown or unpaid session. Transport failures
    and non-404 error responses raise CheckoutError.
    """

    def confirm(session_id: str) -> Optional[str]:
        if not base_url:
            raise CheckoutError("Checkout confirmation is not configured.")
        url = f"{base_url.rstrip('/')}/{quote(session_id, safe='')}"
        http = client or httpx.Client(timeout=10.0)
        try:
            resp = http.get(url)
            if resp.status_code == 404:
                return None
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPError as e:
            raise CheckoutError(f"Could not confirm checkout session: {e}") from e
        except ValueError as e:
            raise CheckoutError("Checkout session response is not JSON.") from e
        finally:
            if client is None:
                http.close()

        if not isinstance(data, dict):
            raise CheckoutError("Checkout session response is not an object.")
        if data.get("payment_status") != "paid" and data.get("status") != "complete":
            logger.warning("Checkout session %s is not paid", session_id)
            return None
        email = data.get("customer_email") or data.get("email")
        if not isinstance(email, str) or not email.strip():
            return None
        return email.strip().lower()

    return confirm
