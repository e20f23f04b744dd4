# price_watch/notifier.py
from __future__ import annotations

import asyncio
import smtplib
from email.message import EmailMessage
from email.utils import formatdate
from pathlib import Path
from typing import Any, Dict, Optional

from .logger import log
from .models import ComparisonResult

ALERT_SUBJECT = "Competitor prices loaded: lower prices found!"


def build_alert_body(result: ComparisonResult) -> str:
    lines = ["Competitors are at or below our price for:", ""]
    for company, model, price, baseline in result.undercuts():
        lines.append(f"  {model}: {company} {price} (ours {baseline})")
    return "\n".join(lines)


def send_alert_email_sync(
    smtp: Dict[str, Any],
    subject: str,
    body: str,
    attachment_path: Optional[Path] = None,
) -> None:
    msg = EmailMessage()
    msg["From"] = smtp["from"]
    msg["To"] = smtp["to"]
    msg["Subject"] = subject
    msg["Date"] = formatdate(localtime=True)
    msg.set_content(body)

    if attachment_path is not None and Path(attachment_path).exists():
        attachment_path = Path(attachment_path)
        msg.add_attachment(
            attachment_path.read_bytes(),
            maintype="application",
            subtype="vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            filename=attachment_path.name,
        )

    with smtplib.SMTP(smtp["server"], int(smtp["port"])) as server:
        server.starttls()
        server.login(smtp["username"], smtp["password"])
        server.send_message(msg)

    print(f"📧 Alert sent to {smtp['to']}")


async def notify_undercuts_async(
    result: ComparisonResult,
    smtp: Optional[Dict[str, Any]] = None,
    attachment_path: Optional[Path] = None,
) -> bool:
    """
    Alert the operator, but only when some competitor undercuts the baseline.

    Always prints to the console; emails too when SMTP settings are given.
    A failed email is logged, not raised: the snapshot is already saved.
    """
    if not result.any_undercut:
        log("No undercuts; no alert raised.", context="notifier")
        return False

    body = build_alert_body(result)
    print(f"\n⚠️  {ALERT_SUBJECT}\n{body}")
    log(
        ALERT_SUBJECT,
        context="notifier",
        extra={"undercuts": len(result.undercuts())},
    )

    if smtp:
        try:
            await asyncio.to_thread(
                send_alert_email_sync, smtp, ALERT_SUBJECT, body, attachment_path
            )
        except (smtplib.SMTPException, OSError) as e:
            print(f"[notifier] Could not send alert email: {e}")
            log(f"Alert email failed: {e!r}", context="notifier")

    return True
