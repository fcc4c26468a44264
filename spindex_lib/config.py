"""
Configuration loading for the Silent Payments indexer.

Settings are resolved in three layers, later layers winning:

1. An optional YAML file with ``bitcoinCore`` and ``indexer`` sections
2. ``SPINDEX_*`` environment variables
3. Command-line flags (applied by the entry point)

Example file::

    bitcoinCore:
      protocol: http
      rpcHost: 127.0.0.1
      rpcPort: 18443
      rpcUser: user
      rpcPass: pass
    indexer:
      database: silent_blocks.db
      startHeight: 0
      batchSize: 10
      pollInterval: 5
      maxRetries: 3
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from .core.constants import (
    DEFAULT_HOST, DEFAULT_DATABASE, DEFAULT_BATCH_SIZE, DEFAULT_POLL_INTERVAL,
    DEFAULT_MAX_RETRIES, DEFAULT_RETRY_DELAY, RPC_TIMEOUT, BITCOIN_RPC_PORTS, NETWORKS,
)
from .utils import validate_port


class ConfigurationError(RuntimeError):
    """Raised when configuration is invalid."""


@dataclass
class RPCConfig:
    """Bitcoin Core RPC connection details."""
    user: str = ''
    password: str = ''
    host: str = DEFAULT_HOST
    port: int = BITCOIN_RPC_PORTS['mainnet']
    use_ssl: bool = False
    timeout: float = RPC_TIMEOUT


@dataclass
class IndexerConfig:
    """Top-level indexer settings."""
    rpc: RPCConfig = field(default_factory=RPCConfig)
    network: str = 'mainnet'
    database: str = DEFAULT_DATABASE
    start_height: int = 0
    batch_size: int = DEFAULT_BATCH_SIZE
    poll_interval: float = DEFAULT_POLL_INTERVAL
    max_retries: int = DEFAULT_MAX_RETRIES
    retry_delay: float = DEFAULT_RETRY_DELAY

    def validate(self) -> None:
        """
        Check value ranges.

        Raises:
            ConfigurationError: On the first invalid value
        """
        if self.network not in NETWORKS:
            raise ConfigurationError(f"Unknown network: {self.network}")
        if not validate_port(self.rpc.port):
            raise ConfigurationError(f"RPC port must be between 1 and 65535, got {self.rpc.port}")
        if self.start_height < 0:
            raise ConfigurationError(f"Start height cannot be negative, got {self.start_height}")
        if self.batch_size < 1:
            raise ConfigurationError(f"Batch size must be at least 1, got {self.batch_size}")
        if self.poll_interval <= 0:
            raise ConfigurationError(f"Poll interval must be positive, got {self.poll_interval}")
        if self.max_retries < 0:
            raise ConfigurationError(f"Max retries cannot be negative, got {self.max_retries}")


def _load_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise ConfigurationError(f"Config file not found: {path}")
    try:
        loaded = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in config file {path}: {e}")
    if not isinstance(loaded, dict):
        raise ConfigurationError(f"Expected {path} to contain a YAML mapping")
    return loaded


def _coerce(value: Any, kind: type, name: str) -> Any:
    if kind is bool and isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {'1', 'true', 'yes', 'on', 'https'}:
            return True
        if normalized in {'0', 'false', 'no', 'off', 'http'}:
            return False
        raise ConfigurationError(f"Invalid boolean for {name}: {value}")
    try:
        return kind(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"Invalid value for {name}: {value!r}")


def load_config(
    path: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None
) -> IndexerConfig:
    """
    Build an IndexerConfig from a YAML file and the environment.

    Args:
        path: Optional YAML config file path
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Validated IndexerConfig

    Raises:
        ConfigurationError: If the file is missing/invalid or a value is out of range
    """
    environ = os.environ if environ is None else environ
    config = IndexerConfig()

    data = _load_file(Path(path).expanduser()) if path else {}
    core = data.get('bitcoinCore') or {}
    indexer = data.get('indexer') or {}

    network = environ.get('SPINDEX_NETWORK', indexer.get('network', config.network))
    config.network = str(network)
    config.rpc.port = BITCOIN_RPC_PORTS.get(config.network, config.rpc.port)

    # (config attribute, yaml value, env var, type)
    rpc_settings = [
        ('host', core.get('rpcHost'), 'SPINDEX_RPC_HOST', str),
        ('port', core.get('rpcPort'), 'SPINDEX_RPC_PORT', int),
        ('user', core.get('rpcUser'), 'SPINDEX_RPC_USER', str),
        ('password', core.get('rpcPass'), 'SPINDEX_RPC_PASSWORD', str),
        ('use_ssl', core.get('protocol'), 'SPINDEX_RPC_SSL', bool),
        ('timeout', core.get('timeout'), 'SPINDEX_RPC_TIMEOUT', float),
    ]
    for attr, file_value, env_var, kind in rpc_settings:
        value = environ.get(env_var, file_value)
        if value is not None:
            setattr(config.rpc, attr, _coerce(value, kind, attr))

    indexer_settings = [
        ('database', indexer.get('database'), 'SPINDEX_DATABASE', str),
        ('start_height', indexer.get('startHeight'), 'SPINDEX_START_HEIGHT', int),
        ('batch_size', indexer.get('batchSize'), 'SPINDEX_BATCH_SIZE', int),
        ('poll_interval', indexer.get('pollInterval'), 'SPINDEX_POLL_INTERVAL', float),
        ('max_retries', indexer.get('maxRetries'), 'SPINDEX_MAX_RETRIES', int),
        ('retry_delay', indexer.get('retryDelay'), 'SPINDEX_RETRY_DELAY', float),
    ]
    for attr, file_value, env_var, kind in indexer_settings:
        value = environ.get(env_var, file_value)
        if value is not None:
            setattr(config, attr, _coerce(value, kind, attr))

    config.validate()
    return config
