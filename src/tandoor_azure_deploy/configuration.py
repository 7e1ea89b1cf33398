# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.

import json
import secrets
import uuid
from dataclasses import dataclass, fields
from typing import Any, Optional

import yaml

from az_shared.az_cmd import AzCmd, execute
from az_shared.errors import FatalError, InputParamValidationError
from az_shared.logs import log

from .constants import (
    DEPLOYMENT_ID_LENGTH,
    LOG_LEVELS,
    NIL_UUID,
    POSTGRES_HOST_SUFFIX,
    STORAGE_ACCOUNT_KEY_FULL_PERMISSIONS,
    TANDOOR_IMAGE,
    TANDOOR_PORT,
)

REQUIRED_CONFIG_KEYS = ["resource_group", "region"]


def get_storage_account_key(storage_account_name: str, resource_group: str) -> str:
    """Returns the first storage account key with full read/write permissions."""

    log.debug(f"Retrieving storage account key for {storage_account_name}")
    try:
        output = execute(
            AzCmd("storage", "account keys list")
            .param("--account-name", storage_account_name)
            .param("--resource-group", resource_group)
            .param("--output", "json")
        )
        keys_json = json.loads(output)
    except json.JSONDecodeError as e:
        raise FatalError(f"Failed to parse storage account keys for {storage_account_name}: {e}") from e

    if not isinstance(keys_json, list) or len(keys_json) == 0:
        raise FatalError(f"Failed to retrieve storage account keys for {storage_account_name}")

    for key_entry in keys_json:
        if key_entry.get("permissions") == STORAGE_ACCOUNT_KEY_FULL_PERMISSIONS and key_entry.get("value"):
            return key_entry["value"]

    raise FatalError(f"No storage account keys with full read/write permissions found for {storage_account_name}")


@dataclass
class Configuration:
    """User-specified configuration parameters and derivations necessary for deployment"""

    # Required user-specified params
    resource_group: str
    region: str

    # Optional user-specified params with defaults
    db_admin_password: str = ""
    subscription: str = ""
    app_name: str = "tandoor-app"
    environment_name: str = "tandoor-env"
    image: str = TANDOOR_IMAGE

    # Database
    db_server_name: str = ""
    db_admin_user: str = "tandooradmin"
    db_name: str = "tandoor"
    db_sku: str = "Standard_B1ms"
    db_tier: str = "Burstable"
    db_version: str = "16"
    db_storage_size_gb: int = 32
    client_ip: str = ""

    # Container
    cpu: str = "0.5"
    memory: str = "1.0Gi"
    min_replicas: int = 1
    max_replicas: int = 3
    target_port: int = TANDOOR_PORT

    # Application settings
    secret_key: str = ""
    debug: bool = False
    allowed_hosts: str = "*"
    timezone: str = "UTC"
    enable_signup: bool = False

    # Storage + backup
    storage_account_name: str = ""
    media_container: str = "mediafiles"
    backup_storage_account_name: str = ""
    backup_container: str = "mediafiles-backup"
    backup_schedule: str = "0 2 * * *"

    # Monitoring
    alert_email: str = ""
    cpu_alert_threshold_percent: int = 80
    memory_alert_threshold_percent: int = 80
    alert_window_size: str = "5m"
    alert_evaluation_frequency: str = "1m"

    log_level: str = "INFO"

    def generate_deployment_id(self) -> str:
        """Returns a short unique ID based on user input parameters.
        It is suffixed on globally-unique resource names so that re-running with the same inputs targets the same resources.
        """

        combined = f"{self.resource_group}{self.region}{self.app_name}".lower()

        namespace = uuid.UUID(NIL_UUID)
        guid = str(uuid.uuid5(namespace, combined)).replace("-", "")
        return guid[:DEPLOYMENT_ID_LENGTH]

    @property
    def resource_group_scope(self) -> str:
        if not self.subscription:
            raise FatalError("Subscription ID must be resolved before building resource scopes")
        return f"/subscriptions/{self.subscription}/resourceGroups/{self.resource_group}"

    def get_storage_key(self) -> str:
        """Returns the key for the media storage account, lazily loaded."""
        if not self.storage_account_key:
            self.storage_account_key = get_storage_account_key(self.storage_account_name, self.resource_group)
        return self.storage_account_key

    def get_backup_storage_key(self) -> str:
        """Returns the key for the backup storage account, lazily loaded."""
        if not self.backup_storage_account_key:
            self.backup_storage_account_key = get_storage_account_key(
                self.backup_storage_account_name, self.resource_group
            )
        return self.backup_storage_account_key

    def __post_init__(self):
        """Calculates derived values from user-specified params."""

        self.deployment_id = self.generate_deployment_id()
        log.debug(f"Generated deployment ID: {self.deployment_id}")

        self.secret_key_generated = not self.secret_key
        if self.secret_key_generated:
            self.secret_key = secrets.token_urlsafe(50)

        # Globally-unique names
        self.db_server_name = self.db_server_name or f"tandoor-db-{self.deployment_id}"
        self.storage_account_name = self.storage_account_name or f"tandoormedia{self.deployment_id}"
        self.backup_storage_account_name = self.backup_storage_account_name or f"tandoorbackup{self.deployment_id}"
        self.storage_account_key: Optional[str] = None  # lazy-loaded
        self.backup_storage_account_key: Optional[str] = None  # lazy-loaded

        self.db_host = f"{self.db_server_name}.{POSTGRES_HOST_SUFFIX}"

        # Monitoring
        self.insights_name = f"{self.app_name}-insights"
        self.action_group_name = f"{self.app_name}-alerts"
        self.cpu_alert_name = f"{self.app_name}-high-cpu"
        self.memory_alert_name = f"{self.app_name}-high-memory"

        # Backup
        self.backup_job_name = f"{self.app_name}-backup"


def load_config_file(path: str) -> dict[str, Any]:
    """Load and validate a YAML configuration file. Keys are Configuration field names."""
    try:
        with open(path, "r") as file:
            config_data = yaml.safe_load(file) or {}
    except OSError as e:
        raise InputParamValidationError(f"Cannot read configuration file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise InputParamValidationError(f"Configuration file {path} is not valid YAML: {e}") from e

    if not isinstance(config_data, dict):
        raise InputParamValidationError(f"Configuration file {path} must contain a mapping")

    known_keys = {f.name for f in fields(Configuration)}
    unknown_keys = sorted(set(config_data) - known_keys)
    if unknown_keys:
        raise InputParamValidationError(f"Unknown configuration keys in {path}: {', '.join(unknown_keys)}")

    return config_data


TRUE_VALUES = {"true", "yes", "on", "1"}
FALSE_VALUES = {"false", "no", "off", "0"}


def coerce_value(key: str, value: Any, field_type: type) -> Any:
    """Convert a YAML or command-line value to the type of its Configuration field."""
    if field_type is bool:
        if isinstance(value, bool):
            return value
        if str(value).strip().lower() in TRUE_VALUES:
            return True
        if str(value).strip().lower() in FALSE_VALUES:
            return False
        raise InputParamValidationError(f"Configuration key '{key}' must be true or false, got {value!r}")

    if field_type is int:
        if isinstance(value, bool):
            raise InputParamValidationError(f"Configuration key '{key}' must be an integer, got {value!r}")
        if isinstance(value, float) and not value.is_integer():
            raise InputParamValidationError(f"Configuration key '{key}' must be an integer, got {value!r}")
        try:
            return int(value)
        except (TypeError, ValueError) as e:
            raise InputParamValidationError(f"Configuration key '{key}' must be an integer, got {value!r}") from e

    if field_type is str:
        if isinstance(value, (dict, list)):
            raise InputParamValidationError(f"Configuration key '{key}' must be a single value, got {value!r}")
        if isinstance(value, bool):
            return str(value).lower()
        return str(value)

    return value


def build_configuration(
    file_values: dict[str, Any], overrides: dict[str, Any], extra_required: tuple[str, ...] = ()
) -> Configuration:
    """Merge file values with command-line overrides (None means not given) and build the Configuration."""
    merged = {k: v for k, v in file_values.items() if v is not None}
    merged.update({k: v for k, v in overrides.items() if v is not None})
    field_types = {f.name: f.type for f in fields(Configuration)}
    unknown_keys = sorted(set(merged) - set(field_types))
    if unknown_keys:
        raise InputParamValidationError(f"Unknown configuration keys: {', '.join(unknown_keys)}")
    merged = {k: coerce_value(k, v, field_types[k]) for k, v in merged.items()}

    missing = [key for key in [*REQUIRED_CONFIG_KEYS, *extra_required] if not merged.get(key)]
    if missing:
        raise InputParamValidationError(f"Missing required configuration key(s): {', '.join(missing)}")

    if "log_level" in merged:
        merged["log_level"] = merged["log_level"].upper()
        if merged["log_level"] not in LOG_LEVELS:
            raise InputParamValidationError(
                f"Log level must be one of {', '.join(LOG_LEVELS)}, got '{merged['log_level']}'"
            )

    return Configuration(**merged)
