# PATH: config/__init__.py
"""
Configuration loading for Sentinel.

Two sources:
- Environment (a .env file is honoured): RPC_URL, PRIVATE_KEY,
  VAULT_ADDRESS, POLL_INTERVAL_MS, PORT. Required, validated at startup.
- config/agent.yaml (optional): non-secret tuning (timeouts, gas
  multiplier, asset decimals, health bind host).

Every problem is collected before failing so one run reports them all.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from dotenv import load_dotenv

from core.constants import (
    DEFAULT_ASSET_DECIMALS,
    DEFAULT_GAS_LIMIT_MULTIPLIER,
    DEFAULT_HEALTH_HOST,
    DEFAULT_HEALTH_PORT,
    DEFAULT_RECEIPT_POLL_INTERVAL_MS,
    DEFAULT_RECEIPT_TIMEOUT_SECONDS,
    DEFAULT_RPC_TIMEOUT_SECONDS,
)
from core.exceptions import ConfigError
from core.validators import (
    parse_positive_int,
    validate_address,
    validate_private_key,
    validate_url,
)


CONFIG_DIR = Path(__file__).parent
DEFAULT_TUNING_FILE = CONFIG_DIR / "agent.yaml"


@dataclass(frozen=True)
class TuningConfig:
    """Non-secret knobs, from agent.yaml."""
    rpc_timeout_seconds: float = DEFAULT_RPC_TIMEOUT_SECONDS
    receipt_timeout_seconds: float = DEFAULT_RECEIPT_TIMEOUT_SECONDS
    receipt_poll_interval_ms: int = DEFAULT_RECEIPT_POLL_INTERVAL_MS
    gas_limit_multiplier: float = DEFAULT_GAS_LIMIT_MULTIPLIER
    asset_decimals: int = DEFAULT_ASSET_DECIMALS
    health_host: str = DEFAULT_HEALTH_HOST
    require_authorized_agent: bool = False


@dataclass(frozen=True)
class AgentSettings:
    """Validated process configuration."""
    rpc_urls: tuple[str, ...]
    private_key: str = field(repr=False)
    vault_address: str
    poll_interval_ms: int
    port: int = DEFAULT_HEALTH_PORT
    tuning: TuningConfig = field(default_factory=TuningConfig)

    def to_log_dict(self) -> Dict[str, Any]:
        """Loggable view (no secrets, no endpoint paths)."""
        return {
            "rpc_endpoints": len(self.rpc_urls),
            "vault_address": self.vault_address,
            "poll_interval_ms": self.poll_interval_ms,
            "port": self.port,
            "receipt_timeout_seconds": self.tuning.receipt_timeout_seconds,
        }


def load_yaml(path: Path) -> Dict[str, Any]:
    """
    Load a YAML configuration file.

    Returns:
        Parsed YAML as dict ({} if the file does not exist)
    """
    if not path.exists():
        return {}

    with open(path, "r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Cannot parse {path}", [str(e)]) from e

    if not isinstance(data, dict):
        raise ConfigError(f"Cannot parse {path}", ["top level must be a mapping"])
    return data


# (key, type, must_be_positive)
_TUNING_FIELDS = (
    ("rpc_timeout_seconds", (int, float), True),
    ("receipt_timeout_seconds", (int, float), True),
    ("receipt_poll_interval_ms", (int,), True),
    ("gas_limit_multiplier", (int, float), True),
    ("asset_decimals", (int,), False),
    ("health_host", (str,), False),
    ("require_authorized_agent", (bool,), False),
)


def load_tuning(path: Optional[Path] = None) -> TuningConfig:
    """
    Load tuning from YAML. Unknown keys are ignored.

    Raises:
        ConfigError: a known key has the wrong type or range
    """
    data = load_yaml(path or DEFAULT_TUNING_FILE)
    values: Dict[str, Any] = {}
    errors: list[str] = []

    for key, types, positive in _TUNING_FIELDS:
        if key not in data or data[key] is None:
            continue
        value = data[key]
        # bool is an int subclass; only accept it where bool is expected
        if isinstance(value, bool) and bool not in types:
            errors.append(f"{key}: expected {types[0].__name__}, got bool")
            continue
        if not isinstance(value, types):
            errors.append(f"{key}: expected {types[0].__name__}, got {type(value).__name__}")
            continue
        if positive and value <= 0:
            errors.append(f"{key}: must be positive")
            continue
        if key == "asset_decimals" and not 0 <= value <= 36:
            errors.append(f"{key}: must be between 0 and 36")
            continue
        values[key] = value

    if errors:
        raise ConfigError("Invalid tuning configuration", errors)
    return TuningConfig(**values)


def load_settings(
    env: Optional[Mapping[str, str]] = None,
    tuning_path: Optional[Path] = None,
    use_dotenv: bool = True,
) -> AgentSettings:
    """
    Load and validate settings.

    Args:
        env: Variables to read (default: os.environ, after .env is loaded)
        tuning_path: YAML tuning file (default: config/agent.yaml)
        use_dotenv: Load .env into os.environ first (ignored when env is given)

    Raises:
        ConfigError: listing every invalid or missing setting
    """
    if env is None:
        if use_dotenv:
            load_dotenv()
        env = os.environ

    errors: list[str] = []

    raw_urls = env.get("RPC_URL") or ""
    rpc_urls = tuple(u.strip() for u in raw_urls.split(",") if u.strip())
    if not rpc_urls:
        errors.append("RPC_URL: required")
    for url in rpc_urls:
        error = validate_url("RPC_URL", url)
        if error:
            errors.append(error)

    private_key = env.get("PRIVATE_KEY")
    error = validate_private_key("PRIVATE_KEY", private_key)
    if error:
        errors.append(error)

    vault_address = env.get("VAULT_ADDRESS")
    error = validate_address("VAULT_ADDRESS", vault_address)
    if error:
        errors.append(error)

    poll_interval_ms, error = parse_positive_int("POLL_INTERVAL_MS", env.get("POLL_INTERVAL_MS"))
    if error:
        errors.append(error)

    port = DEFAULT_HEALTH_PORT
    if env.get("PORT"):
        port, error = parse_positive_int("PORT", env.get("PORT"), maximum=65535)
        if error:
            errors.append(error)

    try:
        tuning = load_tuning(tuning_path)
    except ConfigError as e:
        errors.extend(e.errors)
        tuning = TuningConfig()

    if errors:
        raise ConfigError("Configuration validation failed", errors)

    return AgentSettings(
        rpc_urls=rpc_urls,
        private_key=private_key,
        vault_address=vault_address,
        poll_interval_ms=poll_interval_ms,
        port=port,
        tuning=tuning,
    )
