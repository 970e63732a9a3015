"""
Configuration for Stacks wallet operations.

Values come from the environment (optionally a .env file loaded by the
server) and are passed into the core as plain values.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from stx_identity import SUPPORTED_NETWORKS, STXNetwork

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

HIRO_MAINNET = "https://api.hiro.so"
HIRO_TESTNET = "https://api.testnet.hiro.so"
DEVNET_API = "http://localhost:3999"

EXPLORER_URL = "https://explorer.hiro.so"

DEFAULT_API_URLS = {
    "mainnet": HIRO_MAINNET,
    "testnet": HIRO_TESTNET,
    "devnet": DEVNET_API,
}

API_URL_ENV_VARS = {
    "mainnet": "STACKS_MAINNET_API_URL",
    "testnet": "STACKS_TESTNET_API_URL",
    "devnet": "STACKS_DEVNET_API_URL",
}

# Stacks transaction versions
TX_VERSION_MAINNET = 0x00
TX_VERSION_TESTNET = 0x80

# Chain IDs
CHAIN_ID_MAINNET = 0x00000001
CHAIN_ID_TESTNET = 0x80000000


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() not in ("false", "0", "no", "off", "")


def normalize_network(raw: str) -> STXNetwork:
    network = (raw or "").strip().lower()
    if network not in SUPPORTED_NETWORKS:
        raise ValueError(
            f"Unsupported network: {raw}. Supported: {', '.join(SUPPORTED_NETWORKS)}"
        )
    return network  # type: ignore[return-value]


def tx_version(network: str) -> int:
    return TX_VERSION_MAINNET if network == "mainnet" else TX_VERSION_TESTNET


def chain_id(network: str) -> int:
    return CHAIN_ID_MAINNET if network == "mainnet" else CHAIN_ID_TESTNET


@dataclass
class STXConfig:
    """Network and secret settings for Stacks wallet operations."""

    network: STXNetwork
    hiro_api_url: str
    api_key: str | None = None
    explorer_url: str = EXPLORER_URL
    # None means no timeout: requests block until the remote side answers.
    http_timeout: float | None = None
    dry_run_default: bool = False
    private_key: str | None = None
    mnemonic: str | None = None
    mnemonic_passphrase: str = ""

    def __repr__(self) -> str:
        return (
            f"STXConfig(network={self.network!r}, hiro_api_url={self.hiro_api_url!r}, "
            f"api_key={'set' if self.api_key else None}, dry_run_default={self.dry_run_default})"
        )

    @classmethod
    def for_network(cls, network: str, **overrides) -> STXConfig:
        """Config with default endpoints for a network."""
        net = normalize_network(network)
        overrides.setdefault("hiro_api_url", DEFAULT_API_URLS[net])
        return cls(network=net, **overrides)

    @classmethod
    def from_env(cls) -> STXConfig:
        """Build STXConfig from environment variables."""
        network = normalize_network(os.getenv("STACKS_NETWORK", "testnet"))

        api_url = os.getenv(API_URL_ENV_VARS[network]) or DEFAULT_API_URLS[network]

        timeout_raw = os.getenv("STACKS_HTTP_TIMEOUT", "").strip()
        http_timeout = float(timeout_raw) if timeout_raw else None

        return cls(
            network=network,
            hiro_api_url=api_url.rstrip("/"),
            api_key=os.getenv("HIRO_API_KEY") or None,
            explorer_url=(os.getenv("STACKS_EXPLORER_URL") or EXPLORER_URL).rstrip("/"),
            http_timeout=http_timeout,
            dry_run_default=_env_flag("STX_DRY_RUN", "false"),
            private_key=os.getenv("WALLET_PRIVATE_KEY") or None,
            mnemonic=os.getenv("WALLET_MNEMONIC") or None,
            mnemonic_passphrase=os.getenv("WALLET_MNEMONIC_PASSPHRASE", ""),
        )
