"""Google and GitHub OAuth2 authorization-code flow."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx

from ..core.config import settings

logger = logging.getLogger(__name__)


class OAuthError(Exception):
    """Raised when a provider rejects the exchange or returns unusable data."""


class ProviderNotConfigured(OAuthError):
    pass


class OAuthProfile:
    def __init__(self, *, provider: str, account_id: str, email: str, name: str | None, image: str | None,
                 access_token: str | None = None, scope: str | None = None) -> None:
        self.provider = provider
        self.account_id = account_id
        self.email = email
        self.name = name
        self.image = image
        self.access_token = access_token
        self.scope = scope


PROVIDERS: Dict[str, Dict[str, Any]] = {
    "google": {
        "label": "Google",
        "authorize_url": "https://accounts.google.com/o/oauth2/v2/auth",
        "token_url": "https://oauth2.googleapis.com/token",
        "userinfo_url": "https://openidconnect.googleapis.com/v1/userinfo",
        "scope": "openid email profile",
        "client_id": "GOOGLE_CLIENT_ID",
        "client_secret": "GOOGLE_CLIENT_SECRET",
    },
    "github": {
        "label": "GitHub",
        "authorize_url": "https://github.com/login/oauth/authorize",
        "token_url": "https://github.com/login/oauth/access_token",
        "userinfo_url": "https://api.github.com/user",
        "emails_url": "https://api.github.com/user/emails",
        "scope": "read:user user:email",
        "client_id": "GITHUB_CLIENT_ID",
        "client_secret": "GITHUB_CLIENT_SECRET",
    },
}


def get_provider(provider: str) -> Dict[str, Any]:
    config = PROVIDERS.get(provider)
    if config is None:
        raise LookupError(f"Unknown provider: {provider}")
    return config


def _credentials(provider: str) -> tuple[str, str]:
    config = get_provider(provider)
    client_id = getattr(settings, config["client_id"])
    client_secret = getattr(settings, config["client_secret"])
    if not client_id or not client_secret:
        raise ProviderNotConfigured(f"{provider} sign-in is not configured")
    return client_id, client_secret


def callback_url(provider: str) -> str:
    return f"{settings.BASE_URL.rstrip('/')}/api/v1/auth/callback/{provider}"


def build_authorize_url(provider: str, state: str) -> str:
    config = get_provider(provider)
    client_id, _ = _credentials(provider)
    params = {
        "client_id": client_id,
        "redirect_uri": callback_url(provider),
        "response_type": "code",
        "scope": config["scope"],
        "state": state,
    }
    if provider == "google":
        params["access_type"] = "online"
        params["prompt"] = "select_account"
    return f"{config['authorize_url']}?{urlencode(params)}"


def exchange_code(provider: str, code: str) -> Dict[str, Any]:
    config = get_provider(provider)
    client_id, client_secret = _credentials(provider)
    data = {
        "client_id": client_id,
        "client_secret": client_secret,
        "code": code,
        "grant_type": "authorization_code",
        "redirect_uri": callback_url(provider),
    }
    try:
        response = httpx.post(config["token_url"], data=data, headers={"Accept": "application/json"}, timeout=10.0)
        response.raise_for_status()
    except httpx.HTTPError as exc:
        logger.error("OAuth token exchange with %s failed: %s", provider, exc)
        raise OAuthError("Could not complete sign-in with provider") from exc
    payload = response.json()
    if "access_token" not in payload:
        raise OAuthError(payload.get("error_description") or "Provider did not return an access token")
    return payload


def _primary_github_email(client: httpx.Client, url: str) -> Optional[str]:
    response = client.get(url)
    response.raise_for_status()
    emails = response.json() or []
    for entry in emails:
        if entry.get("primary") and entry.get("verified"):
            return entry.get("email")
    for entry in emails:
        if entry.get("verified"):
            return entry.get("email")
    return None


def fetch_profile(provider: str, token: Dict[str, Any]) -> OAuthProfile:
    config = get_provider(provider)
    access_token = token["access_token"]
    headers = {"Authorization": f"Bearer {access_token}", "Accept": "application/json"}
    try:
        with httpx.Client(headers=headers, timeout=10.0) as client:
            response = client.get(config["userinfo_url"])
            response.raise_for_status()
            info = response.json()
            email = info.get("email")
            if provider == "github" and not email:
                email = _primary_github_email(client, config["emails_url"])
    except httpx.HTTPError as exc:
        logger.error("OAuth profile request to %s failed: %s", provider, exc)
        raise OAuthError("Could not load profile from provider") from exc

    if not email:
        raise OAuthError("Provider did not share an email address")
    if provider == "google":
        account_id = str(info.get("sub") or "")
        name = info.get("name")
        image = info.get("picture")
    else:
        account_id = str(info.get("id") or "")
        name = info.get("name") or info.get("login")
        image = info.get("avatar_url")
    if not account_id:
        raise OAuthError("Provider did not return an account id")
    return OAuthProfile(
        provider=provider,
        account_id=account_id,
        email=email.strip().lower(),
        name=name,
        image=image,
        access_token=access_token,
        scope=token.get("scope"),
    )
