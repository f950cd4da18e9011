"""Clipboard support for share links, via pyperclip."""

from __future__ import annotations

import logging

import pyperclip

logger = logging.getLogger(__name__)


def copy_to_clipboard(text: str) -> bool:
    """Copy text to the system clipboard.

    Returns False when no clipboard mechanism is available (headless hosts);
    the caller still has the text on stdout in that case.
    """
    try:
        pyperclip.copy(text)
    except pyperclip.PyperclipException as e:
        logger.warning("clipboard unavailable: %s", e)
        return False
    return True
