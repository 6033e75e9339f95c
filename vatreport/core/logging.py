"""Logging utilities."""
from __future__ import annotations

import logging.config
import os
from pathlib import Path

_DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent / "../.." / "configs" / "logging.yaml"


def configure_logging(config_path: Path | None = None) -> None:
    """Configure logging from YAML, honouring ``VATREPORT_LOGGING_CONFIG``."""
    env_path = os.environ.get("VATREPORT_LOGGING_CONFIG")
    path = config_path or (Path(env_path) if env_path else _DEFAULT_CONFIG_PATH)
    if path.exists():
        import yaml  # type: ignore[import-untyped]

        with path.open("r", encoding="utf-8") as config_file:
            logging.config.dictConfig(yaml.safe_load(config_file))
    else:
        logging.basicConfig(level=logging.INFO)
