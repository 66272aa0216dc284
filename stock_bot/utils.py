"""Text helpers for Telegram messages."""

import html


def escape_html(text: str) -> str:
    """
    Escape special characters for Telegram HTML parse mode.
    Handles: < > & and preserves other characters.
    """
    return html.escape(str(text), quote=False)
