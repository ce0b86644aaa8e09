"""Outcome notification events."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

import markdown

SUCCESS_SUBJECT = "Cross Post Successful!"
FAILURE_SUBJECT = "Cross Post Failed!"

PLATFORM_LABELS = {
    "dev": "Dev.to",
    "medium": "Medium",
    "hashnode": "Hashnode",
}

_MD = markdown.Markdown(extensions=["extra"])


def md_to_html(text: str) -> str:
    _MD.reset()
    return _MD.convert(text)


@dataclass(frozen=True)
class NotificationEvent:
    subject: str
    to: str
    html: str | None = None
    text: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


def success_event(to: str, file_name: str, links: dict[str, str]) -> NotificationEvent:
    """Summary of a fully published post with a link per platform."""
    lines = [
        "Republishing of your new blog post was successful!",
        "",
        f"Found file: *{file_name}*",
        "",
        "**Links**",
        "",
    ]
    for platform_id, url in sorted(links.items()):
        label = PLATFORM_LABELS.get(platform_id, platform_id)
        lines.append(f"- **[{label}]({url})**")
    text = "\n".join(lines) + "\n"
    return NotificationEvent(subject=SUCCESS_SUBJECT, to=to, html=md_to_html(text), text=text)


def failure_event(
    to: str,
    file_name: str,
    execution_id: str,
    execution_url: str = "",
) -> NotificationEvent:
    """Failure notice naming the source file and the run to investigate."""
    reference = f"{execution_url}/{execution_id}" if execution_url else execution_id
    if execution_url:
        reference_line = f"[View workflow execution]({reference})"
    else:
        reference_line = f"Workflow execution: `{reference}`"
    text = (
        "Republishing of your new blog post failed :(\n\n"
        f"Found file: *{file_name}*\n\n"
        f"{reference_line}\n"
    )
    return NotificationEvent(subject=FAILURE_SUBJECT, to=to, html=md_to_html(text), text=text)
