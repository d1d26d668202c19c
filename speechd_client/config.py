"""Client settings from ~/.speechd-client/settings.yaml and the environment.

Priority: explicit overrides > environment > settings file > defaults.
"""

import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from loguru import logger

SETTINGS_FILE = "settings.yaml"

# Environment variable -> settings field
ENV_OVERRIDES = {
    "SPEECHD_ADDRESS": "address",
    "SPEECHD_CMD": "server_command",
    "SPEECHD_CLIENT_LOG_LEVEL": "log_level",
}


def default_config_dir() -> Path:
    return Path.home() / ".speechd-client"


@dataclass
class ClientSettings:
    address: Optional[str] = None
    client_name: str = "speechd-client"
    component: str = "default"
    user: str = "unknown"
    autospawn: bool = True
    server_command: Optional[str] = None
    reply_timeout: Optional[float] = None
    log_level: str = "ERROR"


def _read_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    section = data.get("client", {})
    if not isinstance(section, dict):
        raise ValueError(f"'client' section in {path} must be a mapping")
    return section


def load_settings(config_dir: Optional[Path] = None, **overrides) -> ClientSettings:
    """Resolve settings from every source.

    Overrides whose value is None are ignored, so argparse results can be
    passed straight through.
    """
    config_dir = Path(config_dir) if config_dir else default_config_dir()
    known = {f.name for f in fields(ClientSettings)}

    values: Dict[str, Any] = {}

    for key, value in _read_yaml(config_dir / SETTINGS_FILE).items():
        if key in known:
            values[key] = value
        else:
            logger.warning(f"Ignoring unknown setting in {SETTINGS_FILE}: {key}")

    for env_name, key in ENV_OVERRIDES.items():
        if os.environ.get(env_name):
            values[key] = os.environ[env_name]

    for key, value in overrides.items():
        if key not in known:
            raise TypeError(f"Unknown setting: {key}")
        if value is not None:
            values[key] = value

    settings = ClientSettings(**values)
    if settings.reply_timeout is not None:
        settings.reply_timeout = float(settings.reply_timeout)
    return settings


def write_default_settings(config_dir: Optional[Path] = None, overwrite: bool = False) -> Path:
    """Write a settings file holding the defaults and return its path."""
    config_dir = Path(config_dir) if config_dir else default_config_dir()
    config_dir.mkdir(parents=True, exist_ok=True)
    path = config_dir / SETTINGS_FILE

    if path.exists() and not overwrite:
        logger.info(f"Settings file already exists: {path}")
        return path

    with open(path, "w") as f:
        yaml.safe_dump({"client": asdict(ClientSettings())}, f, sort_keys=False)
    logger.info(f"Wrote default settings: {path}")
    return path
