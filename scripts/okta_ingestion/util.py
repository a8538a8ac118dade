"""Small helpers shared by the graph mapping steps."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional
from urllib.parse import urlsplit, urlunsplit


def get_okta_account_admin_url(org_url: str) -> str:
    """Return the admin console URL for an org.

    https://acme.okta.com/ -> https://acme-admin.okta.com/
    """
    parts = urlsplit(org_url)
    host = parts.netloc
    subdomain, dot, rest = host.partition(".")
    if dot and not subdomain.endswith("-admin"):
        host = f"{subdomain}-admin.{rest}"
    return urlunsplit((parts.scheme, host, parts.path or "/", "", ""))


def convert_credential_emails(credentials: Optional[dict]) -> Optional[dict[str, list[str]]]:
    """Split a user's credential emails by verification status.

    Returns None when the user carries no credential emails.
    """
    emails = (credentials or {}).get("emails") or []
    if not emails:
        return None

    verified: list[str] = []
    unverified: list[str] = []
    for email in emails:
        value = email.get("value")
        if not value:
            continue
        if email.get("status") == "VERIFIED":
            verified.append(value)
        else:
            unverified.append(value)
    return {"verified_emails": verified, "unverified_emails": unverified}


def parse_time_property_value(value: Any) -> Optional[int]:
    """Convert an Okta ISO-8601 timestamp to epoch milliseconds."""
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp() * 1000)
