"""
Configuration Dataclasses

Type-safe configuration structures for the gateway client.
Loaded from a YAML file and/or overridden from the command line.
"""

from dataclasses import dataclass, field
from pathlib import Path

import yaml

from .exceptions import ConfigError


@dataclass
class GatewayConfig:
    """Modbus TCP gateway endpoint"""
    host: str = ""
    port: int = 502
    connect_timeout_s: float = 3.0


@dataclass
class RetrySettings:
    """Per-read timeout and retry policy"""
    read_timeout_ms: int = 500
    backoff_base_ms: int = 100
    max_retries: int = 1


@dataclass
class ScanSettings:
    """Slave address range walked by the scan command"""
    start_slave: int = 1
    end_slave: int = 255


@dataclass
class ClientConfig:
    """Complete client configuration"""
    gateway: GatewayConfig = field(default_factory=GatewayConfig)
    retry: RetrySettings = field(default_factory=RetrySettings)
    scan: ScanSettings = field(default_factory=ScanSettings)


def load_client_config(data: dict) -> ClientConfig:
    """Load ClientConfig from dictionary (e.g., parsed YAML)"""
    gateway_data = data.get("gateway", {}) or {}
    gateway = GatewayConfig(
        host=gateway_data.get("host", ""),
        port=int(gateway_data.get("port", 502)),
        connect_timeout_s=float(gateway_data.get("connect_timeout_s", 3.0)),
    )

    retry_data = data.get("retry", {}) or {}
    retry = RetrySettings(
        read_timeout_ms=int(retry_data.get("read_timeout_ms", 500)),
        backoff_base_ms=int(retry_data.get("backoff_base_ms", 100)),
        max_retries=int(retry_data.get("max_retries", 1)),
    )

    scan_data = data.get("scan", {}) or {}
    scan = ScanSettings(
        start_slave=int(scan_data.get("start_slave", 1)),
        end_slave=int(scan_data.get("end_slave", 255)),
    )

    if not 1 <= scan.start_slave <= scan.end_slave <= 255:
        raise ConfigError(
            f"Invalid scan range {scan.start_slave}-{scan.end_slave} (must be within 1-255)"
        )

    return ClientConfig(gateway=gateway, retry=retry, scan=scan)


def load_config_file(config_path: str) -> ClientConfig:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to configuration file

    Returns:
        Parsed ClientConfig

    Raises:
        ConfigError: File missing, unreadable or not a mapping
    """
    path = Path(config_path)
    if not path.exists():
        raise ConfigError(f"Configuration file not found: {config_path}")

    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Error loading configuration: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration root must be a mapping: {config_path}")

    return load_client_config(data)
