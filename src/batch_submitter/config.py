"""Configuration loading: TOML file + environment variables."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Mapping

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:
    import tomli as tomllib  # type: ignore[no-redef]

from batch_submitter.models.config import DEFAULT_HD_PATH, SubmitterConfig


class ConfigError(Exception):
    """Configuration is missing or malformed."""


def _bool_true(value: str) -> bool:
    return str(value).strip().lower() == "true"


def _non_empty(value: str) -> bool:
    return bool(str(value))


# env var -> (field, TOML section, TOML key, parser). The env names are the
# historical ones so existing deployments keep working.
REQUIRED_VARS: dict[str, tuple[str, str, str, Any]] = {
    "L1_NODE_WEB3_URL": ("l1_rpc_url", "l1", "rpc_url", str),
    "L2_NODE_WEB3_URL": ("l2_rpc_url", "l2", "rpc_url", str),
    "MIN_TX_SIZE": ("min_tx_size", "submitter", "min_tx_size", int),
    "MAX_TX_SIZE": ("max_tx_size", "submitter", "max_tx_size", int),
    "MAX_BATCH_SIZE": ("max_batch_size", "submitter", "max_batch_size", int),
    # seconds
    "MAX_BATCH_SUBMISSION_TIME": (
        "max_batch_submission_time", "submitter", "max_batch_submission_time", float,
    ),
    # milliseconds, converted below
    "POLL_INTERVAL": ("poll_interval", "submitter", "poll_interval_ms", float),
    "NUM_CONFIRMATIONS": ("num_confirmations", "submitter", "num_confirmations", int),
    # seconds
    "RESUBMISSION_TIMEOUT": (
        "resubmission_timeout", "resubmission", "timeout", float,
    ),
    "FINALITY_CONFIRMATIONS": (
        "finality_confirmations", "submitter", "finality_confirmations", int,
    ),
    "RUN_TX_BATCH_SUBMITTER": (
        "run_tx_batch_submitter", "submitter", "run_tx_batch_submitter", _bool_true,
    ),
    "RUN_STATE_BATCH_SUBMITTER": (
        "run_state_batch_submitter", "submitter", "run_state_batch_submitter", _bool_true,
    ),
    "SAFE_MINIMUM_ETHER_BALANCE": (
        "safe_minimum_ether_balance", "signer", "safe_minimum_ether_balance", float,
    ),
    "CLEAR_PENDING_TXS": (
        "clear_pending_txs", "signer", "clear_pending_txs", _bool_true,
    ),
    "ADDRESS_MANAGER_ADDRESS": (
        "address_manager_address", "l1", "address_manager_address", str,
    ),
}

OPTIONAL_VARS: dict[str, tuple[str, str, str, Any]] = {
    "SEQUENCER_PRIVATE_KEY": ("sequencer_private_key", "signer", "private_key", str),
    "MNEMONIC": ("mnemonic", "signer", "mnemonic", str),
    "HD_PATH": ("hd_path", "signer", "hd_path", str),
    "FRAUD_SUBMISSION_ADDRESS": (
        "fraud_submission_address", "submitter", "fraud_submission_address", str,
    ),
    "DISABLE_QUEUE_BATCH_APPEND": (
        "disable_queue_batch_append", "submitter", "disable_queue_batch_append", _non_empty,
    ),
    "BATCH_SUBMITTER_FACTORY": ("submitter_factory", "submitter", "factory", str),
    "GAS_PRICE_BUMP": ("gas_price_bump", "resubmission", "gas_price_bump", float),
    "MAX_GAS_PRICE_IN_GWEI": (
        "max_gas_price_gwei", "resubmission", "max_gas_price_gwei", float,
    ),
    "MAX_RESUBMISSIONS": ("max_resubmissions", "resubmission", "max_resubmissions", int),
    "LOG_LEVEL": ("log_level", "logging", "level", str),
}


def _read_toml(config_path: str | Path | None) -> dict:
    if config_path is None:
        return {}
    p = Path(config_path).expanduser()
    if not p.exists():
        raise ConfigError(f"Config file not found: {p}")
    try:
        with open(p, "rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in {p}: {exc}") from exc


def _lookup(
    env_name: str,
    section: str,
    key: str,
    raw: dict,
    environ: Mapping[str, str],
) -> tuple[Any, str] | None:
    """Find a value, environment first. Returns (value, source) or None."""
    if environ.get(env_name):
        return environ[env_name], f"environment variable {env_name}"
    value = raw.get(section, {}).get(key)
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        value = "true" if value else ""
    return value, f"[{section}] {key}"


def _parse(parser: Any, value: Any, source: str) -> Any:
    try:
        return parser(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid value for {source}: {value!r}") from exc


def load_config(
    config_path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> SubmitterConfig:
    """Load the submitter configuration from a TOML file and the environment.

    Priority (highest wins):
        1. Environment variables (L1_NODE_WEB3_URL, POLL_INTERVAL, etc.)
        2. TOML config file
        3. Defaults from SubmitterConfig (optional settings only)

    Every required setting must resolve to a non-empty value; all missing
    names are reported together in one ConfigError.
    """
    environ = os.environ if environ is None else environ
    raw = _read_toml(config_path)

    values: dict[str, Any] = {}
    missing: list[str] = []

    for env_name, (field_name, section, key, parser) in REQUIRED_VARS.items():
        found = _lookup(env_name, section, key, raw, environ)
        if found is None:
            missing.append(env_name)
            continue
        values[field_name] = _parse(parser, *found)

    if missing:
        raise ConfigError(f"Missing environment variable: {', '.join(missing)}")

    for env_name, (field_name, section, key, parser) in OPTIONAL_VARS.items():
        found = _lookup(env_name, section, key, raw, environ)
        if found is not None:
            values[field_name] = _parse(parser, *found)

    values["poll_interval"] = values["poll_interval"] / 1000
    values.setdefault("hd_path", DEFAULT_HD_PATH)

    if values.get("gas_price_bump", 1.125) <= 1:
        raise ConfigError("GAS_PRICE_BUMP must be greater than 1")
    if values["num_confirmations"] < 0 or values["poll_interval"] < 0:
        raise ConfigError("NUM_CONFIRMATIONS and POLL_INTERVAL must not be negative")

    return SubmitterConfig(**values)


def require_signer_key(cfg: SubmitterConfig) -> None:
    """Raise ConfigError unless a private key or mnemonic is configured."""
    if not cfg.sequencer_private_key and not cfg.mnemonic:
        raise ConfigError("Must pass one of SEQUENCER_PRIVATE_KEY or MNEMONIC")
