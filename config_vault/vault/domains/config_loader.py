"""Configuration loader for config-vault."""
import os
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional
import yaml

from .models import DEFAULT_SHARED_GROUP, InvalidNamespaceError, Namespace

logger = logging.getLogger(__name__)

CONFIG_PATH_ENV = "CONFIG_VAULT_CONFIG"
DEFAULT_CONFIG_PATH = Path.home() / ".config" / "config-vault" / "config.yml"

# setting name -> environment variable
ENV_VARS = {
    "gcp_project": "GCP_PROJECT",
    "service_account_path": "GOOGLE_APPLICATION_CREDENTIALS",
    "project": "VAULT_PROJECT",
    "group": "VAULT_GROUP",
    "env": "VAULT_ENV",
    "shared_group": "VAULT_SHARED_GROUP",
}

SUPPORTED_AUTH_TYPES = ("service_account", "application_default")


class ConfigError(Exception):
    """Configuration error exception."""
    pass


class MissingSettingError(ConfigError):
    """A required setting was not supplied by any source."""
    pass


class InvalidSettingError(ConfigError):
    """A setting was supplied but can't be used as given."""
    pass


@dataclass
class GCPCredentials:
    """Where and as whom to reach Secret Manager."""
    project_id: str
    service_account_path: Optional[str] = None

    def load(self):
        """
        Build google.auth credentials.

        Returns:
            Service account credentials, or None to let the client use
            application default credentials
        """
        if not self.service_account_path:
            return None

        from google.oauth2 import service_account

        return service_account.Credentials.from_service_account_file(self.service_account_path)


@dataclass
class VaultSettings:
    """Fully resolved settings for one vault."""
    namespace: Namespace
    credentials: GCPCredentials


def get_config_path(explicit: Optional[str] = None) -> Optional[Path]:
    """
    Locate the config file.

    Priority order:
    1. Explicit path (``--config``), which must exist
    2. CONFIG_VAULT_CONFIG environment variable, which must exist
    3. Default location: ~/.config/config-vault/config.yml, if present

    Returns:
        Path to the config file, or None when no file is configured

    Raises:
        ConfigError: If an explicitly requested file doesn't exist
    """
    requested = explicit or os.getenv(CONFIG_PATH_ENV)
    if requested:
        config_path = Path(requested).expanduser()
        if not config_path.is_file():
            raise ConfigError(f"Configuration file not found at: {config_path}")
        return config_path

    if DEFAULT_CONFIG_PATH.is_file():
        logger.info(f"Using default config location: {DEFAULT_CONFIG_PATH}")
        return DEFAULT_CONFIG_PATH

    return None


def load_config(config_path: Path) -> Dict[str, Any]:
    """
    Load and validate configuration from YAML file.

    Returns:
        Dict containing configuration with optional sections:
        - authentication: dict with type and service_account_path
        - gcp: dict with project_id
        - vault: dict with project, group, env, shared_group

    Raises:
        ConfigError: If config file is invalid or service account file doesn't exist
    """
    try:
        with open(config_path, 'r') as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse YAML config at {config_path}: {e}")
    except OSError as e:
        raise ConfigError(f"Failed to read config file at {config_path}: {e}")

    if not config:
        raise ConfigError(f"Config file at {config_path} is empty")

    if not isinstance(config, dict):
        raise ConfigError(f"Config file at {config_path} must contain a mapping")

    for section in ("authentication", "gcp", "vault"):
        if not isinstance(config.get(section, {}), dict):
            raise ConfigError(f"Section '{section}' in config at {config_path} must be a mapping")

    auth = config.get("authentication")
    if auth:
        auth_type = auth.get("type", "service_account")
        if auth_type not in SUPPORTED_AUTH_TYPES:
            raise ConfigError(
                f"Unsupported authentication type: {auth_type}\n"
                f"Supported types: {', '.join(SUPPORTED_AUTH_TYPES)}"
            )

        if auth_type == "service_account":
            if "service_account_path" not in auth:
                raise ConfigError(
                    "Missing 'authentication.service_account_path' in config\n"
                    "Please specify the absolute path to your service account JSON file."
                )
            _check_service_account(auth["service_account_path"])

    logger.info(f"Configuration loaded successfully from {config_path}")
    return config


def _check_service_account(service_account_path: str) -> None:
    if not os.path.exists(service_account_path):
        raise ConfigError(
            f"Service account file not found at: {service_account_path}\n"
            f"Please ensure the file exists or update the path in your config"
        )

    if not os.path.isfile(service_account_path):
        raise ConfigError(f"Service account path is not a file: {service_account_path}")


def _from_file(config: Mapping[str, Any]) -> Dict[str, Any]:
    auth = config.get("authentication") or {}
    vault = config.get("vault") or {}
    settings = {
        "gcp_project": (config.get("gcp") or {}).get("project_id"),
        "service_account_path": auth.get("service_account_path"),
    }
    for field in ("project", "group", "env", "shared_group"):
        settings[field] = vault.get(field)
    return settings


def _text(value: Any) -> Optional[str]:
    # YAML may hand back numbers, e.g. "env: 2024"
    return str(value) if value else None


def resolve_settings(overrides: Optional[Mapping[str, Any]] = None,
                     config_path: Optional[str] = None,
                     environ: Optional[Mapping[str, str]] = None) -> VaultSettings:
    """
    Merge config file, environment and explicit overrides.

    Precedence: overrides > environment variables > config file > defaults.

    Args:
        overrides: Values given explicitly (CLI flags); None entries are ignored
        config_path: Explicit config file path
        environ: Environment to read (defaults to os.environ)

    Raises:
        MissingSettingError: If the vault project or the GCP project can't be resolved
        InvalidSettingError: If the resolved namespace parts are not usable,
            wherever they came from
    """
    environ = os.environ if environ is None else environ
    settings: Dict[str, Any] = dict.fromkeys(ENV_VARS)

    path = get_config_path(config_path)
    if path:
        settings.update({k: v for k, v in _from_file(load_config(path)).items() if v})

    for field, var in ENV_VARS.items():
        if environ.get(var):
            logger.debug(f"Using {var} from environment")
            settings[field] = environ[var]

    for field, value in (overrides or {}).items():
        if value is not None:
            settings[field] = value

    if not settings["project"]:
        raise MissingSettingError(
            "Vault project not configured. Pass --project, set VAULT_PROJECT "
            "or add 'vault.project' to your config file"
        )

    if not settings["gcp_project"]:
        raise MissingSettingError(
            "GCP project not configured. Pass --gcp-project, set GCP_PROJECT "
            "or add 'gcp.project_id' to your config file"
        )

    try:
        namespace = Namespace(
            project=_text(settings["project"]),
            group=_text(settings["group"]),
            env=_text(settings["env"]),
            shared_group=_text(settings["shared_group"]) or DEFAULT_SHARED_GROUP,
        )
    except InvalidNamespaceError as e:
        raise InvalidSettingError(str(e))

    credentials = GCPCredentials(
        project_id=settings["gcp_project"],
        service_account_path=settings["service_account_path"] or None,
    )
    return VaultSettings(namespace=namespace, credentials=credentials)
