"""
Configuration management for KoalaSwap Adapter

Loads settings from environment variables and .env file.
Includes logging configuration with file output and correlation ID support.

There is no module level config instance: build one with load_config() at
process start and pass it to KoalaSwapClient (or the modules directly).
"""

import os
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, List

from dotenv import load_dotenv


def _load_env_file():
    """Load .env file from project root"""
    current = Path(__file__).parent.parent  # koala_swap_adapter package parent
    env_file = current / ".env"

    if env_file.exists():
        load_dotenv(env_file)


def _get_env(key: str, default: Optional[str] = "") -> Optional[str]:
    """Get environment variable with default"""
    value = os.getenv(key)
    if value is None:
        return default
    return value


def _get_env_float(key: str, default: float) -> float:
    """Get environment variable as float"""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        logging.getLogger(__name__).warning(
            f"Invalid float value for {key}='{value}', using default={default}"
        )
        return default


def _get_env_int(key: str, default: int) -> int:
    """Get environment variable as int"""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        logging.getLogger(__name__).warning(
            f"Invalid int value for {key}='{value}', using default={default}"
        )
        return default


def _get_env_bool(key: str, default: bool) -> bool:
    """Get environment variable as bool"""
    value = os.getenv(key)
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def _get_env_list(key: str, default: List[str]) -> List[str]:
    """Get comma separated environment variable as list"""
    value = os.getenv(key)
    if not value:
        return list(default)
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass
class KoalaSwapConfig:
    """KoalaSwap connector settings"""
    # Default slippage percentage (0-100) when a request omits slippagePct
    slippage_pct: float = field(default_factory=lambda: _get_env_float("KOALA_SWAP_SLIPPAGE_PCT", 1.0))
    # 'mainnet' is an alias for 'koala' (Unit Zero Mainnet)
    networks: List[str] = field(default_factory=lambda: _get_env_list("KOALA_SWAP_NETWORKS", ["koala", "mainnet"]))
    default_network: str = field(default_factory=lambda: _get_env("KOALA_SWAP_DEFAULT_NETWORK", "koala"))
    wrapped_native_symbol: str = field(default_factory=lambda: _get_env("KOALA_SWAP_WRAPPED_NATIVE", "WUNIT0"))
    # Optional JSON token list ({"tokens": [{symbol, address, decimals, name}]})
    token_list_path: str = field(default_factory=lambda: _get_env("KOALA_SWAP_TOKEN_LIST", ""))
    # Fee tiers tried when a CLMM pool is looked up by token pair
    fee_tiers: List[int] = field(default_factory=lambda: [100, 500, 3000, 10000])


@dataclass
class ChainConfig:
    """Unit Zero chain access"""
    rpc_url: str = field(default_factory=lambda: _get_env("KOALA_RPC_URL", ""))
    chain_id: int = field(default_factory=lambda: _get_env_int("KOALA_CHAIN_ID", 88811))
    timeout: float = field(default_factory=lambda: _get_env_float("KOALA_RPC_TIMEOUT", 30.0))
    # Seconds to wait for a receipt before reporting the transaction as pending
    receipt_timeout: float = field(default_factory=lambda: _get_env_float("KOALA_RECEIPT_TIMEOUT", 120.0))
    poa: bool = field(default_factory=lambda: _get_env_bool("KOALA_POA_MIDDLEWARE", False))
    # Priority fee (tip) in gwei when no gas price is supplied
    priority_fee_gwei: float = field(default_factory=lambda: _get_env_float("KOALA_PRIORITY_FEE_GWEI", 0.1))
    # maxFeePerGas = baseFee * multiplier + priority fee
    base_fee_multiplier: float = field(default_factory=lambda: _get_env_float("KOALA_BASE_FEE_MULTIPLIER", 2.0))


@dataclass
class EVMConfig:
    """Transaction defaults for router and position manager calls"""
    # Transaction deadline in seconds (default: 20 minutes)
    tx_deadline_seconds: int = field(default_factory=lambda: _get_env_int("EVM_TX_DEADLINE_SECONDS", 1200))
    amm_add_liquidity_gas_limit: int = field(default_factory=lambda: _get_env_int("EVM_AMM_ADD_LIQUIDITY_GAS_LIMIT", 500_000))
    amm_remove_liquidity_gas_limit: int = field(default_factory=lambda: _get_env_int("EVM_AMM_REMOVE_LIQUIDITY_GAS_LIMIT", 300_000))
    swap_gas_limit: int = field(default_factory=lambda: _get_env_int("EVM_SWAP_GAS_LIMIT", 300_000))
    clmm_open_position_gas_limit: int = field(default_factory=lambda: _get_env_int("EVM_CLMM_OPEN_POSITION_GAS_LIMIT", 600_000))
    clmm_position_gas_limit: int = field(default_factory=lambda: _get_env_int("EVM_CLMM_POSITION_GAS_LIMIT", 500_000))
    clmm_collect_gas_limit: int = field(default_factory=lambda: _get_env_int("EVM_CLMM_COLLECT_GAS_LIMIT", 200_000))
    clmm_burn_gas_limit: int = field(default_factory=lambda: _get_env_int("EVM_CLMM_BURN_GAS_LIMIT", 100_000))
    wrap_gas_limit: int = field(default_factory=lambda: _get_env_int("EVM_WRAP_GAS_LIMIT", 100_000))


def _get_default_log_path() -> str:
    """Get default log file path under koala_swap_adapter/log/ with UTC timestamp"""
    from datetime import datetime, timezone
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    log_dir = Path(__file__).parent / "log"
    return str(log_dir / f"koala_swap_{timestamp}.log")


@dataclass
class LoggingConfig:
    """
    Logging configuration with file output and correlation ID support.

    Environment variables:
        LOG_FILE: Path to log file (empty disables file output)
        LOG_LEVEL: DEBUG, INFO, WARNING, ERROR, CRITICAL (default: INFO)
        LOG_FORMAT: Custom log format string
        LOG_CONSOLE: Enable console output (default: true)
        LOG_MAX_BYTES: Max log file size before rotation (default: 10MB)
        LOG_BACKUP_COUNT: Number of backup files to keep (default: 5)
    """
    log_file: str = field(default_factory=lambda: _get_env("LOG_FILE", _get_default_log_path()))
    log_level: str = field(default_factory=lambda: _get_env("LOG_LEVEL", "INFO"))
    log_format: str = field(default_factory=lambda: _get_env(
        "LOG_FORMAT",
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    ))
    console_output: bool = field(default_factory=lambda: _get_env_bool("LOG_CONSOLE", True))
    max_bytes: int = field(default_factory=lambda: _get_env_int("LOG_MAX_BYTES", 10 * 1024 * 1024))  # 10MB
    backup_count: int = field(default_factory=lambda: _get_env_int("LOG_BACKUP_COUNT", 5))

    @property
    def level(self) -> int:
        """Get numeric log level"""
        return getattr(logging, self.log_level.upper(), logging.INFO)


@dataclass
class Config:
    """
    Main configuration container

    Usage:
        from koala_swap_adapter.config import load_config

        config = load_config()
        client = KoalaSwapClient(config)
    """
    koala_swap: KoalaSwapConfig = field(default_factory=KoalaSwapConfig)
    chain: ChainConfig = field(default_factory=ChainConfig)
    evm: EVMConfig = field(default_factory=EVMConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_env(cls) -> "Config":
        """Load .env and build configuration from environment"""
        _load_env_file()
        return cls()


def load_config() -> Config:
    """Build a configuration from .env and the environment"""
    return Config.from_env()


def setup_logging(
    log_config: LoggingConfig,
    logger_name: str = "koala_swap_adapter",
) -> logging.Logger:
    """
    Set up logging based on configuration.

    Creates handlers for file and/or console output with optional rotation.
    The log file directory is created automatically if it doesn't exist.

    Args:
        log_config: Logging configuration
        logger_name: Name of the logger to configure (default: koala_swap_adapter)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(logger_name)
    logger.setLevel(log_config.level)

    # Close before removing to flush buffers and release file handles
    for handler in logger.handlers[:]:
        handler.close()
        logger.removeHandler(handler)

    formatter = logging.Formatter(log_config.log_format)

    handlers: List[logging.Handler] = []

    if log_config.log_file:
        from logging.handlers import RotatingFileHandler

        log_path = Path(log_config.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_config.log_file,
            maxBytes=log_config.max_bytes,
            backupCount=log_config.backup_count,
            encoding='utf-8',
        )
        file_handler.setLevel(log_config.level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if log_config.console_output:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(log_config.level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    for handler in handlers:
        logger.addHandler(handler)

    # Child loggers inherit handlers from parent
    for name in [
        f"{logger_name}.infra",
        f"{logger_name}.modules",
        f"{logger_name}.protocols",
    ]:
        logging.getLogger(name).setLevel(log_config.level)

    if log_config.log_file:
        logger.info(f"Logging initialized: file={log_config.log_file}, level={log_config.log_level}")

    return logger


def enable_file_logging(
    log_file: Optional[str] = None,
    level: str = "INFO",
    console: bool = True,
) -> logging.Logger:
    """
    Quick setup for file logging.

    Args:
        log_file: Path to log file (defaults to koala_swap_adapter/log/koala_swap_<ts>.log)
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        console: Also output to console

    Returns:
        Configured logger
    """
    log_config = LoggingConfig(
        log_file=log_file or _get_default_log_path(),
        log_level=level,
        console_output=console,
    )
    return setup_logging(log_config)
