"""
ConfigLoader module for loading and validating client TOML configuration files
"""

import os
import tomllib
from pathlib import Path
from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional


DEFAULT_PROGRESS_POLL_INTERVAL = 0.05


class ConfigurationError(Exception):
    """Raised when configuration is invalid or incomplete"""
    pass


class EnvironmentVariableError(Exception):
    """Raised when required environment variables are missing"""
    pass


@dataclass
class TransportSettings:
    """Transport section of the client configuration"""
    verify_certificates: bool = True
    ca_bundle: Optional[str] = None
    timeout_seconds: Optional[float] = None


@dataclass
class ClientConfig:
    """Configuration data class for the pinning service client from TOML file"""
    name: str
    base_url: str
    authentication: Dict[str, Any]
    transport: TransportSettings = field(default_factory=TransportSettings)
    progress_poll_interval: float = DEFAULT_PROGRESS_POLL_INTERVAL
    default_headers: Dict[str, str] = field(default_factory=dict)
    logging: Dict[str, Any] = field(default_factory=dict)


class ConfigLoader:
    """Loads and validates TOML configuration files"""

    # Required configuration sections and their mandatory keys
    REQUIRED_SECTIONS = {
        'api': ['name', 'base_url'],
        'authentication': ['type'],
    }

    # Optional sections that default to empty values
    OPTIONAL_SECTIONS = [
        'transport',
        'queue',
        'headers',
        'logging',
    ]

    @staticmethod
    def load_toml_config(config_path: Path) -> ClientConfig:
        """
        Load client configuration from TOML file

        Args:
            config_path: Path to the TOML configuration file

        Returns:
            ClientConfig object with all configuration data

        Raises:
            FileNotFoundError: If config file doesn't exist
            ConfigurationError: If required configuration is missing or TOML is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        try:
            with open(config_path, 'rb') as f:
                config_data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationError(f"Invalid TOML syntax in {config_path}: {e}")

        return ConfigLoader.from_dict(config_data)

    @staticmethod
    def from_dict(config_data: Dict[str, Any]) -> ClientConfig:
        """
        Build a ClientConfig from already parsed configuration data

        Args:
            config_data: Parsed TOML configuration data

        Returns:
            ClientConfig object

        Raises:
            ConfigurationError: If required configuration is missing or malformed
        """
        ConfigLoader._validate_required_sections(config_data)

        transport_data = config_data.get('transport', {})
        queue_data = config_data.get('queue', {})

        poll_interval = queue_data.get('progress_poll_interval', DEFAULT_PROGRESS_POLL_INTERVAL)
        if not isinstance(poll_interval, (int, float)) or poll_interval < 0:
            raise ConfigurationError(
                f"Key 'progress_poll_interval' in section [queue] must be a non-negative number, "
                f"got {poll_interval!r}"
            )

        verify = transport_data.get('verify_certificates', True)
        if not isinstance(verify, bool):
            raise ConfigurationError(
                f"Key 'verify_certificates' in section [transport] must be a boolean, got {verify!r}"
            )

        return ClientConfig(
            name=config_data['api']['name'],
            base_url=config_data['api']['base_url'].rstrip('/'),
            authentication=config_data['authentication'],
            transport=TransportSettings(
                verify_certificates=verify,
                ca_bundle=transport_data.get('ca_bundle'),
                timeout_seconds=transport_data.get('timeout_seconds'),
            ),
            progress_poll_interval=float(poll_interval),
            default_headers={str(k): str(v) for k, v in config_data.get('headers', {}).items()},
            logging=config_data.get('logging', {}),
        )

    @staticmethod
    def _validate_required_sections(config_data: Dict[str, Any]) -> None:
        """
        Validate that all required configuration sections and keys are present

        Args:
            config_data: Parsed TOML configuration data

        Raises:
            ConfigurationError: If any required section or key is missing
        """
        missing_items: List[str] = []

        for section_name, required_keys in ConfigLoader.REQUIRED_SECTIONS.items():
            if section_name not in config_data:
                missing_items.append(f"Section [{section_name}]")
            else:
                section_data = config_data[section_name]
                for key in required_keys:
                    if key not in section_data:
                        missing_items.append(f"Key '{key}' in section [{section_name}]")

        if missing_items:
            raise ConfigurationError(
                f"Missing required configuration items: {', '.join(missing_items)}"
            )

    @staticmethod
    def validate_environment_variables(config: ClientConfig) -> bool:
        """
        Validate that all environment variables referenced by credentials are set

        Args:
            config: ClientConfig object to validate

        Returns:
            True if all environment variables are present

        Raises:
            EnvironmentVariableError: If any required environment variables are missing
        """
        missing_vars = []

        for key, value in config.authentication.items():
            if key.endswith('_env') and isinstance(value, str):
                if not os.getenv(value):
                    missing_vars.append(value)

        if missing_vars:
            raise EnvironmentVariableError(
                f"Missing required environment variables: {', '.join(missing_vars)}"
            )

        return True

    @staticmethod
    def get_environment_value(env_var_name: str) -> str:
        """
        Get environment variable value with proper error handling

        Args:
            env_var_name: Name of the environment variable

        Returns:
            Value of the environment variable

        Raises:
            EnvironmentVariableError: If environment variable is not set
        """
        value = os.getenv(env_var_name)
        if value is None:
            raise EnvironmentVariableError(f"Environment variable '{env_var_name}' is not set")
        return value
