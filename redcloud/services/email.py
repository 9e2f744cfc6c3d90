from __future__ import annotations

import logging
from typing import Any

import httpx

from ..core.config import settings
from ..core.jinja import get_templates

logger = logging.getLogger(__name__)


class EmailDeliveryError(Exception):
    """Raised when the email API rejects a message or is not configured."""


def render_email(template: str, **context: Any) -> str:
    return get_templates().env.get_template(f"email/{template}").render(app_name=settings.APP_NAME, **context)


def send_email(to: str, subject: str, html: str) -> None:
    """Deliver one message through the Resend HTTP API."""

    api_key = settings.RESEND_API_KEY
    if not api_key:
        raise EmailDeliveryError("Email delivery is not configured")
    payload = {"from": settings.email_from, "to": [to], "subject": subject, "html": html}
    try:
        response = httpx.post(
            settings.RESEND_API_URL,
            json=payload,
            headers={"Authorization": f"Bearer {api_key}"},
            timeout=10.0,
        )
    except httpx.HTTPError as exc:
        logger.error("Email request failed: %s", exc)
        raise EmailDeliveryError("Email delivery failed") from exc
    if response.status_code >= 400:
        logger.error("Email API returned %s: %s", response.status_code, response.text[:200])
        raise EmailDeliveryError("Email delivery failed")
    logger.info("email.sent", extra={"extra_data": {"subject": subject}})


def send_verification_code(email: str, otp: str) -> None:
    if settings.is_dev:
        logger.info("Sending sign-in code to %s: %s", email, otp)
        return
    send_email(email, "Your Verification Code", render_email("verification_code.html", otp=otp))


def send_delete_account_confirmation(email: str, url: str, token: str) -> None:
    if settings.is_dev:
        logger.info("Account deletion link for %s: %s", email, url)
        return
    send_email(email, "Confirm Account Deletion", render_email("delete_account.html", url=url, token=token))


def send_workspace_invitation(
    email: str,
    *,
    invitation_url: str,
    organization_name: str,
    inviter_name: str | None,
    inviter_email: str,
) -> None:
    if settings.is_dev:
        logger.info("Sending workspace invitation to %s for organization %s", email, organization_name)
        logger.info("Invitation URL: %s", invitation_url)
        return
    html = render_email(
        "workspace_invitation.html",
        invitation_url=invitation_url,
        organization_name=organization_name,
        inviter_name=inviter_name or inviter_email,
        inviter_email=inviter_email,
    )
    send_email(email, f"Invitation to join {organization_name}", html)
