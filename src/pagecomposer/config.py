#!/usr/bin/env python3
"""
PageComposer - Configuration Module

This module contains all configuration constants and paths used by the application.
"""

import logging
import os
from typing import Final

# ============================================================================
# Application Constants
# ============================================================================

APP_NAME: Final[str] = "Page Composer"
APP_ID: Final[str] = "pagecomposer"
APP_VERSION: Final[str] = "1.0.0"
APP_DESCRIPTION: Final[str] = "Assemble new PDF documents from pages of several sources"


# ============================================================================
# Page Constants
# ============================================================================

VALID_ROTATIONS: Final[tuple[int, ...]] = (0, 90, 180, 270)
ROTATION_STEP: Final[int] = 90

# Random suffix length appended to page ids
PAGE_ID_SUFFIX_LENGTH: Final[int] = 5

DEFAULT_SOURCE_NAME: Final[str] = "document-{n}.pdf"


# ============================================================================
# Assembly Constants
# ============================================================================

DEFAULT_MAX_WORKERS: Final[int] = 4
DEFAULT_PRODUCER: Final[str] = APP_NAME
DEFAULT_OUTPUT_PREFIX: Final[str] = "composed"


# ============================================================================
# Preview Constants
# ============================================================================

DEFAULT_PREVIEW_SCALE: Final[float] = 0.5
DEFAULT_PREVIEW_CACHE_SIZE: Final[int] = 200
# pdftoppm renders at 72 dpi for scale 1.0 (1 point = 1 pixel)
PREVIEW_BASE_DPI: Final[int] = 72
PREVIEW_TIMEOUT_SECONDS: Final[int] = 60


# ============================================================================
# Configuration Directory
# ============================================================================

CONFIG_DIR: Final[str] = os.path.expanduser("~/.config/pagecomposer")


# ============================================================================
# Logging Configuration
# ============================================================================

LOG_LEVEL: int = logging.INFO
LOG_FORMAT: Final[str] = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOGGER_NAME: Final[str] = "PageComposer"
