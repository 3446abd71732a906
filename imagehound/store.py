"""Read and write the YAML config/cache file.

The file holds provider settings and the cached edge resolves::

    providers:
      globalping:
        token: null
    cache:
      locations:
        globalping: [Eastern Asia, Western Europe]
      resolves: [203.0.113.7, 2001:db8::1]

A missing file reads as an empty config.  The hunt only ever reads the
cached resolves; the ``cache`` command is the only writer.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Iterable, Optional, Union

import yaml

from imagehound.config import CONFIG_ENV_VAR, DEFAULT_CONFIG_NAME
from imagehound.errors import ConfigError
from imagehound.models import (
    CacheConfig,
    GlobalPingConfig,
    HoundConfig,
    IPAddress,
    ProvidersConfig,
    parse_ip,
)

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]


def default_config_path() -> Path:
    """``$IMAGEHOUND_CONFIG`` if set, else ``~/.imagehound.yaml``."""
    env = os.environ.get(CONFIG_ENV_VAR)
    if env:
        return Path(env).expanduser()
    return Path.home() / DEFAULT_CONFIG_NAME


def unique_ips(ips: Iterable[IPAddress]) -> list[IPAddress]:
    """De-duplicate *ips*, keeping first-seen order."""
    seen: set[IPAddress] = set()
    result: list[IPAddress] = []
    for ip in ips:
        if ip not in seen:
            seen.add(ip)
            result.append(ip)
    return result


# ---------------------------------------------------------------------------
# Load
# ---------------------------------------------------------------------------

def load_config(path: Optional[PathLike] = None) -> HoundConfig:
    """Load the config file at *path* (default location when None)."""
    path = Path(path) if path is not None else default_config_path()
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.debug("Config file %s not found, using defaults", path)
        return HoundConfig()
    except OSError as exc:
        raise ConfigError(f"failed to read config file {path}: {exc}") from exc

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"failed to parse config file {path}: {exc}") from exc

    if data is None:
        return HoundConfig()
    if not isinstance(data, dict):
        raise ConfigError(f"config file {path} must contain a mapping")
    return _config_from_dict(data)


def _config_from_dict(data: dict) -> HoundConfig:
    providers = data.get("providers") or {}
    cache = data.get("cache") or {}
    if not isinstance(providers, dict) or not isinstance(cache, dict):
        raise ConfigError("'providers' and 'cache' must be mappings")

    gp = providers.get("globalping") or {}
    token = gp.get("token") if isinstance(gp, dict) else None

    raw_locations = cache.get("locations") or {}
    if not isinstance(raw_locations, dict):
        raise ConfigError("'cache.locations' must be a mapping")
    locations: dict[str, list[str]] = {}
    for name, values in raw_locations.items():
        locations[str(name)] = [str(v) for v in (values or [])]

    resolves: list[IPAddress] = []
    for raw in cache.get("resolves") or []:
        try:
            resolves.append(parse_ip(raw))
        except ValueError:
            logger.warning("Skipping invalid cached address %r", raw)

    return HoundConfig(
        providers=ProvidersConfig(globalping=GlobalPingConfig(token=token)),
        cache=CacheConfig(locations=locations, resolves=unique_ips(resolves)),
    )


# ---------------------------------------------------------------------------
# Save
# ---------------------------------------------------------------------------

def _config_to_dict(config: HoundConfig) -> dict:
    return {
        "providers": {
            "globalping": {"token": config.providers.globalping.token},
        },
        "cache": {
            "locations": {k: list(v) for k, v in config.cache.locations.items()},
            "resolves": [str(ip) for ip in config.cache.resolves],
        },
    }


def save_config(config: HoundConfig, path: Optional[PathLike] = None) -> Path:
    """Atomically write *config* to *path* and return the path written."""
    path = Path(path) if path is not None else default_config_path()
    text = yaml.safe_dump(_config_to_dict(config), sort_keys=False, allow_unicode=True)

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(text)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
    except OSError as exc:
        raise ConfigError(f"failed to write config file {path}: {exc}") from exc

    logger.debug("Saved config to %s", path)
    return path
