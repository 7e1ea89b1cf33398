# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.

"""Environment variables consumed by the Tandoor container.

The variable names are fixed by the Tandoor image. They are introduced in three
groups, matching the deployment phase that has the values available.
"""

from .configuration import Configuration
from .constants import (
    DB_PASSWORD_SECRET,
    POSTGRES_DB_ENGINE,
    POSTGRES_PORT,
    SECRET_KEY_SECRET,
    STORAGE_KEY_SECRET,
)

CORE_ENV_VAR_NAMES = [
    "SECRET_KEY",
    "DB_ENGINE",
    "POSTGRES_HOST",
    "POSTGRES_PORT",
    "POSTGRES_USER",
    "POSTGRES_PASSWORD",
    "POSTGRES_DB",
    "DEBUG",
    "ALLOWED_HOSTS",
    "TZ",
    "ENABLE_SIGNUP",
]
STORAGE_ENV_VAR_NAMES = ["AZURE_ACCOUNT_NAME", "AZURE_ACCOUNT_KEY", "AZURE_CONTAINER"]
TELEMETRY_ENV_VAR_NAMES = ["APPINSIGHTS_INSTRUMENTATIONKEY"]

EXPECTED_ENV_VAR_NAMES = frozenset(CORE_ENV_VAR_NAMES + STORAGE_ENV_VAR_NAMES + TELEMETRY_ENV_VAR_NAMES)


def _flag(value: bool) -> str:
    return "1" if value else "0"


def secret_ref(secret_name: str) -> str:
    return f"secretref:{secret_name}"


def core_secrets(config: Configuration) -> dict[str, str]:
    return {
        SECRET_KEY_SECRET: config.secret_key,
        DB_PASSWORD_SECRET: config.db_admin_password,
    }


def core_env_vars(config: Configuration) -> dict[str, str]:
    """Database and Django settings, available once the database exists."""
    return {
        "SECRET_KEY": secret_ref(SECRET_KEY_SECRET),
        "DB_ENGINE": POSTGRES_DB_ENGINE,
        "POSTGRES_HOST": config.db_host,
        "POSTGRES_PORT": POSTGRES_PORT,
        "POSTGRES_USER": config.db_admin_user,
        "POSTGRES_PASSWORD": secret_ref(DB_PASSWORD_SECRET),
        "POSTGRES_DB": config.db_name,
        "DEBUG": _flag(config.debug),
        "ALLOWED_HOSTS": config.allowed_hosts,
        "TZ": config.timezone,
        "ENABLE_SIGNUP": _flag(config.enable_signup),
    }


def storage_secrets(config: Configuration) -> dict[str, str]:
    return {STORAGE_KEY_SECRET: config.get_storage_key()}


def storage_env_vars(config: Configuration) -> dict[str, str]:
    """Media storage settings, available once the storage account exists."""
    return {
        "AZURE_ACCOUNT_NAME": config.storage_account_name,
        "AZURE_ACCOUNT_KEY": secret_ref(STORAGE_KEY_SECRET),
        "AZURE_CONTAINER": config.media_container,
    }


def telemetry_env_vars(instrumentation_key: str) -> dict[str, str]:
    return {"APPINSIGHTS_INSTRUMENTATIONKEY": instrumentation_key}


def format_pairs(values: dict[str, str]) -> list[str]:
    """Format a mapping as NAME=value tokens for --env-vars / --secrets."""
    return [f"{name}={value}" for name, value in values.items()]
