"""HTML for share and conversation permalinks."""

from __future__ import annotations

from html import escape
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.characters.models import Character
    from src.conversations.models import ConversationRecord, ShareRecord

_PAGE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>{title}</title>
<style>
body {{ font-family: Georgia, serif; max-width: 40rem; margin: 2rem auto; padding: 0 1rem; }}
.speaker {{ color: {color}; font-weight: bold; }}
.question {{ font-style: italic; }}
.notice {{ color: #555; }}
</style>
</head>
<body>
{body}
</body>
</html>
"""


def _render(title: str, body: str, color: str = "#8B4513") -> str:
    return _PAGE.format(title=escape(title), body=body, color=escape(color))


def _exchange(
    name: str, question: str, response: str, audio_url: str | None
) -> str:
    parts = [
        f'<p class="question">You asked: {escape(question)}</p>',
        f'<p><span class="speaker">{escape(name)}:</span> {escape(response)}</p>',
    ]
    if audio_url:
        parts.append(f'<audio controls preload="none" src="{escape(audio_url)}"></audio>')
    return "\n".join(parts)


def render_share(record: ShareRecord, character: Character | None) -> str:
    name = character.name if character else record.character_id.title()
    color = character.color if character else "#8B4513"
    body = (
        f"<h1>A word from {escape(name)}</h1>\n"
        + _exchange(name, record.question_text, record.response_text, record.audio_url)
        + f'\n<p class="notice">Shared {escape(record.created_at[:10])}</p>'
    )
    return _render(f"{name} | Echoes of Logos", body, color)


def render_conversation(record: ConversationRecord, character: Character | None) -> str:
    name = character.name if character else record.character_id.title()
    color = character.color if character else "#8B4513"
    body = f"<h1>Conversation with {escape(name)}</h1>\n" + _exchange(
        name, record.question_text, record.response_text, record.audio_url
    )
    return _render(f"{name} | Echoes of Logos", body, color)


def render_not_found(what: str = "message") -> str:
    """The page for a link whose record does not exist."""
    body = (
        f"<h1>Not found</h1>\n<p class=\"notice\">This {escape(what)} could not be found. "
        "It may have been mistyped or never existed.</p>\n"
        '<p><a href="/">Talk with a biblical figure</a></p>'
    )
    return _render("Not found | Echoes of Logos", body)


def render_unavailable() -> str:
    body = (
        "<h1>Please try again</h1>\n"
        '<p class="notice">This page is temporarily unavailable. Please try again in a moment.</p>\n'
        '<p><a href="/">Talk with a biblical figure</a></p>'
    )
    return _render("Try again later | Echoes of Logos", body)
