"""Application state container."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .settings import PilotSettings


@dataclass
class AppState:
    """Settings and logger shared by every CLI command for one invocation."""

    settings: PilotSettings
    logger: logging.Logger
