"""Project configuration: defaults, ``.issuemap/config.json``, then ISSUEMAP_* environment variables."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path

logger = logging.getLogger(__name__)

CONFIG_DIR_NAME = ".issuemap"
CONFIG_FILE_NAME = "config.json"

_ENV_PREFIX = "ISSUEMAP_"


@dataclass
class IssueMapConfig:
    root_dir: Path = field(default_factory=lambda: Path(CONFIG_DIR_NAME))
    fanout_threshold: int = 5
    top_n: int = 5
    log_level: str = "WARNING"
    default_author: str = ""

    @property
    def config_file(self) -> Path:
        return self.root_dir / CONFIG_FILE_NAME

    def to_dict(self) -> dict:
        data = asdict(self)
        data.pop("root_dir")
        return data


def _coerce(name: str, raw: object) -> object:
    if name in ("fanout_threshold", "top_n"):
        value = int(raw)  # type: ignore[arg-type]
        if value < 0:
            raise ValueError(f"{name} must be >= 0")
        return value
    if name == "log_level":
        return str(raw).upper()
    return str(raw)


def load_config(root_dir: Path | None = None) -> IssueMapConfig:
    """Build the effective configuration for a ``.issuemap`` directory.

    ``ISSUEMAP_DIR`` overrides ``root_dir``; other ISSUEMAP_* variables
    override values persisted in the config file.
    """
    env_root = os.getenv(f"{_ENV_PREFIX}DIR")
    root = Path(env_root) if env_root else Path(root_dir or CONFIG_DIR_NAME)

    values: dict[str, object] = {}
    config_file = root / CONFIG_FILE_NAME
    try:
        if config_file.exists():
            values.update(json.loads(config_file.read_text(encoding="utf-8")))
    except (OSError, ValueError) as e:
        logger.warning("Ignoring unreadable config %s: %s", config_file, e)

    known = {f.name for f in fields(IssueMapConfig)} - {"root_dir"}
    for name in known:
        env_value = os.getenv(f"{_ENV_PREFIX}{name.upper()}")
        if env_value is not None:
            values[name] = env_value

    kwargs: dict[str, object] = {}
    for name, raw in values.items():
        if name not in known:
            continue
        try:
            kwargs[name] = _coerce(name, raw)
        except (TypeError, ValueError) as e:
            logger.warning("Ignoring invalid config value %s=%r: %s", name, raw, e)

    return IssueMapConfig(root_dir=root, **kwargs)  # type: ignore[arg-type]


def save_config(config: IssueMapConfig) -> Path:
    """Write the persisted part of the config to disk."""
    config.root_dir.mkdir(parents=True, exist_ok=True)
    config.config_file.write_text(json.dumps(config.to_dict(), indent=2) + "\n", encoding="utf-8")
    return config.config_file
