"""
TOML-based configuration for starksign.

Loads settings from a TOML file and/or environment variables.
Environment variables take precedence over file values.

Usage:
    from starksign.config import load_config
    cfg = load_config("starksign.toml")
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

if sys.version_info >= (3, 11):
    import tomllib
else:
    try:
        import tomllib  # type: ignore[import]
    except ModuleNotFoundError:
        import tomli as tomllib  # type: ignore[import,no-redef]

from starksign.derivation import DerivationContext
from starksign.nonce import CounterNonce, MonotonicNonce, NonceProvider, TimestampNonce

NONCE_POLICIES = ("timestamp", "monotonic", "counter")


@dataclass
class DerivationConfig:
    """Derivation context shared by every client of one deployment."""
    layer: str = "starkex"
    application: str = "starksign"
    message: str = "Only sign this request if you've initiated an action with a trusted application."


@dataclass
class NonceConfig:
    """Replay-protection policy."""
    policy: str = "timestamp"   # "timestamp", "monotonic" or "counter"
    counter_file: str = ""      # persist the counter here (counter policy only)


@dataclass
class WalletConfig:
    """Where the Ethereum signature comes from.

    ``rpc_url`` selects an external JSON-RPC wallet; otherwise
    ``private_key_file`` holds a hex secp256k1 key for a local account.
    """
    rpc_url: str = ""
    address: str = ""
    private_key_file: str = ""


@dataclass
class LoggingConfig:
    """Logging settings."""
    level: str = "INFO"
    format: str = "human"   # "human" or "json"
    file: str | None = None


@dataclass
class StarkSignConfig:
    """Top-level configuration container."""
    derivation: DerivationConfig = field(default_factory=DerivationConfig)
    nonce: NonceConfig = field(default_factory=NonceConfig)
    wallet: WalletConfig = field(default_factory=WalletConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _merge(dc: Any, raw: dict[str, Any]) -> None:
    """Merge a raw dict into a dataclass instance (in-place)."""
    for key, value in raw.items():
        key_under = key.replace("-", "_")
        if hasattr(dc, key_under):
            setattr(dc, key_under, value)


def load_config(path: str | None = None) -> StarkSignConfig:
    """
    Load configuration from a TOML file, then overlay environment variables.

    Env-var mapping:
        STARKSIGN_LAYER            -> derivation.layer
        STARKSIGN_APPLICATION      -> derivation.application
        STARKSIGN_MESSAGE          -> derivation.message
        STARKSIGN_NONCE_POLICY     -> nonce.policy
        STARKSIGN_COUNTER_FILE     -> nonce.counter_file
        STARKSIGN_RPC_URL          -> wallet.rpc_url
        STARKSIGN_ADDRESS          -> wallet.address
        STARKSIGN_PRIVATE_KEY_FILE -> wallet.private_key_file
        STARKSIGN_LOG_LEVEL        -> logging.level
        STARKSIGN_LOG_FMT          -> logging.format
    """
    cfg = StarkSignConfig()

    # ── TOML file ────────────────────────────────────────────────
    if path is not None:
        p = Path(path)
        if p.exists():
            with open(p, "rb") as f:
                data = tomllib.load(f)
            for section_name, section_dc in [
                ("derivation", cfg.derivation),
                ("nonce", cfg.nonce),
                ("wallet", cfg.wallet),
                ("logging", cfg.logging),
            ]:
                if section_name in data:
                    _merge(section_dc, data[section_name])

    # ── Environment variable overrides ───────────────────────────
    if v := os.environ.get("STARKSIGN_LAYER"):
        cfg.derivation.layer = v
    if v := os.environ.get("STARKSIGN_APPLICATION"):
        cfg.derivation.application = v
    if v := os.environ.get("STARKSIGN_MESSAGE"):
        cfg.derivation.message = v
    if v := os.environ.get("STARKSIGN_NONCE_POLICY"):
        cfg.nonce.policy = v.lower()
    if v := os.environ.get("STARKSIGN_COUNTER_FILE"):
        cfg.nonce.counter_file = v
    if v := os.environ.get("STARKSIGN_RPC_URL"):
        cfg.wallet.rpc_url = v
    if v := os.environ.get("STARKSIGN_ADDRESS"):
        cfg.wallet.address = v
    if v := os.environ.get("STARKSIGN_PRIVATE_KEY_FILE"):
        cfg.wallet.private_key_file = v
    if v := os.environ.get("STARKSIGN_LOG_LEVEL"):
        cfg.logging.level = v.upper()
    if v := os.environ.get("STARKSIGN_LOG_FMT"):
        cfg.logging.format = v

    return cfg


def build_context(cfg: StarkSignConfig) -> DerivationContext:
    d = cfg.derivation
    return DerivationContext(layer=d.layer, application=d.application, message=d.message)


def build_nonce_provider(cfg: StarkSignConfig) -> NonceProvider:
    """Instantiate the configured nonce policy."""
    policy = cfg.nonce.policy
    if policy == "timestamp":
        return TimestampNonce()
    if policy == "monotonic":
        return MonotonicNonce()
    if policy == "counter":
        return CounterNonce(path=cfg.nonce.counter_file or None)
    raise ValueError(f"Unknown nonce policy {policy!r}; expected one of {', '.join(NONCE_POLICIES)}")
