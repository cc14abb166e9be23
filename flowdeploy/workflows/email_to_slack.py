"""email-to-slack: forward unread Gmail messages with attachments to Slack.

Lists unread messages that carry attachments, posts one summary to the
configured Slack channel, then marks those messages read.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

from flowdeploy.config import settings
from flowdeploy.errors import AutomationError
from flowdeploy.workflows.builtins import HandlerResult, builtin_workflows

if TYPE_CHECKING:
    from flowdeploy.workflows.client import AutomationClient

logger = logging.getLogger(__name__)

WORKFLOW_ID = "email-to-slack"
GMAIL_API = "https://gmail.googleapis.com/gmail/v1/users/me"
SLACK_POST_MESSAGE = "https://slack.com/api/chat.postMessage"
MAX_MESSAGES = 100


def find_account(user_accounts: list[dict[str, Any]] | None, app_name: str) -> dict | None:
    """Return the first connected account whose app name contains *app_name*."""
    for account in user_accounts or []:
        name = ((account or {}).get("app") or {}).get("name") or ""
        if app_name in name.lower():
            return account
    return None


def _header(headers: list[dict[str, str]], name: str, default: str) -> str:
    for header in headers:
        if header.get("name") == name:
            return header.get("value") or default
    return default


def _format_summary(emails: list[dict[str, Any]]) -> str:
    if not emails:
        return "No new emails with attachments found."
    plural = "s" if len(emails) > 1 else ""
    lines = [f"*New Email{plural} Found!*", ""]
    for email in emails:
        lines.append(f"*Subject:* {email['subject']}")
        lines.append(f"*From:* {email['from']}")
        lines.append(f"*Attachments:* {len(email['attachments'])} file(s)")
        lines.extend(f"• {filename}" for filename in email["attachments"])
        lines.append("")
    return "\n".join(lines)


@builtin_workflows.handler(WORKFLOW_ID)
async def email_to_slack(
    client: AutomationClient,
    external_user_id: str,
    user_accounts: list[dict[str, Any]] | None,
) -> HandlerResult:
    slack = find_account(user_accounts, "slack")
    gmail = find_account(user_accounts, "gmail")
    if not external_user_id or slack is None or gmail is None:
        return HandlerResult(success=False, error="Missing Slack, Gmail, or externalUserId")

    logger.info("email-to-slack: gmail=%s slack=%s", gmail["id"], slack["id"])

    try:
        listing = await client.proxy_get(
            external_user_id,
            gmail["id"],
            f"{GMAIL_API}/messages?q={quote('has:attachment')}&labelIds=UNREAD"
            f"&maxResults={MAX_MESSAGES}",
        )

        emails = []
        for message in listing.get("messages") or []:
            detail = await client.proxy_get(
                external_user_id, gmail["id"], f"{GMAIL_API}/messages/{message['id']}"
            )
            payload = detail.get("payload") or {}
            attachments = [
                part["filename"]
                for part in payload.get("parts") or []
                if part.get("filename") and (part.get("body") or {}).get("attachmentId")
            ]
            if not attachments:
                continue
            headers = payload.get("headers") or []
            emails.append(
                {
                    "id": message["id"],
                    "subject": _header(headers, "Subject", "No Subject"),
                    "from": _header(headers, "From", "Unknown Sender"),
                    "attachments": attachments,
                }
            )

        response = await client.proxy_post(
            external_user_id,
            slack["id"],
            SLACK_POST_MESSAGE,
            {"channel": settings.slack_channel, "text": _format_summary(emails), "mrkdwn": True},
        )
        sent = bool(response.get("ok"))
        if not sent:
            logger.error("email-to-slack: Slack post failed: %s", response.get("error"))

        for email in emails:
            try:
                await client.proxy_post(
                    external_user_id,
                    gmail["id"],
                    f"{GMAIL_API}/messages/{email['id']}/modify",
                    {"removeLabelIds": ["UNREAD"]},
                )
            except AutomationError:
                logger.exception("email-to-slack: failed to mark %s read", email["id"])
    except AutomationError as exc:
        logger.exception("email-to-slack failed for user %s", external_user_id)
        return HandlerResult(success=False, error=exc.message)

    logger.info("email-to-slack: processed %d email(s)", len(emails))
    return HandlerResult(success=True, processed_count=len(emails), notification_sent=sent)
