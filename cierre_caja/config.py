"""Application configuration utilities for the cierre_caja backend.

This module centralises environment-driven configuration so the rest of the
code base does not need to read environment variables directly.  The
reconciliation core never imports it; only the API layer and the entrypoint
build an :class:`AppConfig`.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .channels import DEFAULT_DELIVERY_CHANNELS, DeliveryChannel

# Load any variables defined in a local .env file.
load_dotenv()

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


@dataclass(frozen=True)
class AppConfig:
    """Strongly-typed container for runtime configuration.

    Attributes:
        project_root: Root directory of the project. Used to derive default
            paths so the app works out of the box after cloning the repo.
        database_file: Absolute path to the SQLite database holding the daily
            closing records.
        log_level: Name of the root logging level, e.g. ``"INFO"``.
        share_url: Base URL of the messaging deep link used to share a
            closing summary.
        delivery_channels: Delivery platforms offered as sales channels, in
            display order.
    """

    project_root: Path
    database_file: Path
    log_level: str
    share_url: str
    delivery_channels: tuple[DeliveryChannel, ...]

    @property
    def database_uri(self) -> str:
        """Return a SQLite URI pointing at :attr:`database_file`."""

        return f"file:{self.database_file}?mode=rwc"


def load_config() -> AppConfig:
    """Create a new :class:`AppConfig` instance based on environment settings."""

    project_root = Path(__file__).resolve().parent.parent
    database_file = Path(
        getenv_with_default(
            "CIERRE_CAJA_DB_FILE",
            project_root / "cierre_caja.db",
        )
    )
    log_level = getenv_with_default("CIERRE_CAJA_LOG_LEVEL", "INFO").upper()
    share_url = getenv_with_default("CIERRE_CAJA_SHARE_URL", "https://wa.me/")
    delivery_channels = parse_delivery_channels(getenv_with_default("CIERRE_CAJA_DELIVERY_CHANNELS"))

    # Ensure the directories exist so later code can safely create files.
    database_file.parent.mkdir(parents=True, exist_ok=True)

    return AppConfig(
        project_root=project_root,
        database_file=database_file,
        log_level=log_level,
        share_url=share_url,
        delivery_channels=delivery_channels,
    )


def parse_delivery_channels(value: Optional[str]) -> tuple[DeliveryChannel, ...]:
    """Parse an ``id:Label,id:Label`` list of delivery channels.

    Entries without a label reuse the identifier as label.  An empty or missing
    value yields the default channel set.
    """

    if not value or not value.strip():
        return DEFAULT_DELIVERY_CHANNELS

    channels: list[DeliveryChannel] = []
    seen: set[str] = set()
    for chunk in value.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        channel_id, _, label = chunk.partition(":")
        channel_id = channel_id.strip()
        if not channel_id or channel_id in seen:
            continue
        seen.add(channel_id)
        channels.append(DeliveryChannel(channel_id, label.strip() or channel_id))
    return tuple(channels) or DEFAULT_DELIVERY_CHANNELS


def configure_logging(level: str = "INFO") -> None:
    """Install a basic root handler once; later calls only adjust the level."""

    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level, format=LOG_FORMAT)
    root.setLevel(level)


def getenv_with_default(name: str, default: Optional[Path | str] = None) -> Optional[str]:
    """Return the value of an environment variable or a sensible default.

    ``None`` values are propagated so callers can make explicit decisions about
    optional configuration values. Paths are converted to strings.
    """

    from os import getenv

    value = getenv(name)
    if value is not None:
        return value
    if default is None:
        return None
    return str(default)
