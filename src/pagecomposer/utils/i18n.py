#!/usr/bin/env python3
"""
PageComposer - Internationalization Module

This module initializes gettext for internationalization support.
"""

import gettext
import os
import sys
from collections.abc import Callable

from pagecomposer.config import APP_ID


def _dummy_translate(text: str) -> str:
    """Fallback translation function that returns the original text.

    Args:
        text: The text to translate.

    Returns:
        The original text unchanged.
    """
    return text


# Initialize _ with the fallback function
_: Callable[[str], str] = _dummy_translate

# Configure gettext
try:
    locale_dirs = [
        "/usr/share/locale",
        os.path.join(sys.prefix, "share", "locale"),
        os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "locale"),
    ]

    for locale_dir in locale_dirs:
        if os.path.exists(locale_dir):
            gettext.bindtextdomain(APP_ID, locale_dir)

    gettext.textdomain(APP_ID)

    # Update _ to use the real gettext
    _ = gettext.gettext

except OSError:
    # Keep using the dummy function if the locale directories are unusable
    pass


def N_(text: str) -> str:
    """Mark a string for extraction without translating it at definition time.

    Use this for strings that are defined as constants but translated later
    via ``_()``.
    """
    return text
