# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.

import json
import re

from az_shared.az_cmd import AzCmd, execute
from az_shared.errors import (
    AzCliNotAuthenticatedError,
    ExistenceCheckError,
    InputParamValidationError,
    ResourceNameAvailabilityError,
    ResourceNotFoundError,
    ResourceProviderRegistrationValidationError,
)
from az_shared.logs import log
from az_shared.util import is_empty_or_whitespace

from .configuration import Configuration
from .constants import LOG_LEVELS, REQUIRED_RESOURCE_PROVIDERS, RESOURCE_PROVIDER_REGISTERED_STATUS

STORAGE_ACCOUNT_NAME_PATTERN = re.compile(r"^[a-z0-9]{3,24}$")
SERVER_NAME_PATTERN = re.compile(r"^[a-z0-9][a-z0-9-]{1,61}[a-z0-9]$")
CONTAINER_NAME_PATTERN = re.compile(r"^[a-z0-9](?!.*--)[a-z0-9-]{1,61}[a-z0-9]$")
PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 128


def validate_user_parameters(config: Configuration):
    """Validate user-specified parameters and the Azure environment."""

    validate_user_config(config)
    validate_resource_provider_registrations(config.subscription)
    validate_resource_names(config)


def validate_az_cli():
    """Ensure Azure CLI is installed and user is authenticated."""
    try:
        execute(AzCmd("account", "show"))
        log.debug("Azure CLI authentication verified")
    except Exception as e:
        raise AzCliNotAuthenticatedError("Azure CLI is not authenticated. Please run 'az login' first and retry") from e


def validate_db_password(password: str, admin_user: str):
    """Flexible Server password rules: length, 3 of 4 character classes, no user name."""
    if not PASSWORD_MIN_LENGTH <= len(password) <= PASSWORD_MAX_LENGTH:
        raise InputParamValidationError(
            f"Database password must be between {PASSWORD_MIN_LENGTH} and {PASSWORD_MAX_LENGTH} characters"
        )

    classes = [
        any(c.isupper() for c in password),
        any(c.islower() for c in password),
        any(c.isdigit() for c in password),
        any(not c.isalnum() for c in password),
    ]
    if sum(classes) < 3:
        raise InputParamValidationError(
            "Database password must contain characters from three of: uppercase, lowercase, digits, symbols"
        )

    if admin_user and admin_user.lower() in password.lower():
        raise InputParamValidationError("Database password must not contain the admin user name")


def validate_user_config(config: Configuration):
    """Validate user-specified configuration parameters."""
    log.info("Validating configuration parameters...")

    if is_empty_or_whitespace(config.resource_group):
        raise InputParamValidationError("Resource group cannot be empty")

    if is_empty_or_whitespace(config.region):
        raise InputParamValidationError("Region cannot be empty")

    if is_empty_or_whitespace(config.app_name):
        raise InputParamValidationError("Container App name cannot be empty")

    validate_db_password(config.db_admin_password, config.db_admin_user)

    for name in (config.storage_account_name, config.backup_storage_account_name):
        if not STORAGE_ACCOUNT_NAME_PATTERN.match(name):
            raise InputParamValidationError(
                f"Storage account name '{name}' must be 3-24 lowercase letters and digits"
            )

    if not SERVER_NAME_PATTERN.match(config.db_server_name):
        raise InputParamValidationError(
            f"Database server name '{config.db_server_name}' must be 3-63 lowercase letters, digits and hyphens"
        )

    for name in (config.media_container, config.backup_container):
        if not CONTAINER_NAME_PATTERN.match(name):
            raise InputParamValidationError(
                f"Blob container name '{name}' must be 3-63 lowercase letters, digits and single hyphens"
            )

    if config.min_replicas < 0 or config.max_replicas < 1 or config.min_replicas > config.max_replicas:
        raise InputParamValidationError(
            f"Replica bounds must satisfy 0 <= min ({config.min_replicas}) <= max ({config.max_replicas}) and max >= 1"
        )

    for label, percent in (
        ("CPU", config.cpu_alert_threshold_percent),
        ("Memory", config.memory_alert_threshold_percent),
    ):
        if not 0 < percent <= 100:
            raise InputParamValidationError(f"{label} alert threshold must be between 1 and 100 percent, got {percent}")

    if config.log_level not in LOG_LEVELS:
        raise InputParamValidationError(f"Log level must be one of {', '.join(LOG_LEVELS)}, got '{config.log_level}'")

    log.debug("Configuration validation completed")


def check_unregistered_providers(sub_id: str) -> list[str]:
    """Return the required resource providers that are not registered in the subscription."""
    try:
        output = execute(
            AzCmd("provider", "list")
            .param("--subscription", sub_id)
            .param("--query", '"[].{namespace:namespace, registrationState:registrationState}"')
            .param("--output", "json")
        )
        provider_states = {p["namespace"]: p["registrationState"] for p in json.loads(output)}
    except Exception as e:
        log.error(f"Failed to validate resource providers in subscription {sub_id}: {e}")
        raise ResourceProviderRegistrationValidationError(
            f"Resource provider validation failed for subscription {sub_id}: {e}"
        ) from e

    unregistered = []
    for provider in REQUIRED_RESOURCE_PROVIDERS:
        state = provider_states.get(provider, "NotFound")
        if state != RESOURCE_PROVIDER_REGISTERED_STATUS:
            log.debug(f"Subscription {sub_id}: Resource provider {provider} is {state}")
            unregistered.append(provider)
    return unregistered


def validate_resource_provider_registrations(sub_id: str):
    """Ensure the required Azure resource providers are registered."""

    log.info(f"Checking required resource providers in subscription {sub_id}...")
    unregistered = check_unregistered_providers(sub_id)

    if unregistered:
        log.error(f"Detected unregistered resource providers: {', '.join(unregistered)}")
        log.error("Please run the following commands to register the missing resource providers:")
        log.error(f"az account set --subscription {sub_id}")
        for provider in unregistered:
            log.error(f"az provider register --namespace {provider}")
        raise ResourceProviderRegistrationValidationError(
            f"Unregistered resource providers in subscription {sub_id}: {', '.join(unregistered)}"
        )

    log.info("Resource provider validation successful")


def _storage_account_in_resource_group(storage_account_name: str, resource_group: str) -> bool:
    try:
        execute(
            AzCmd("storage", "account show")
            .param("--name", storage_account_name)
            .param("--resource-group", resource_group)
        )
        return True
    except (ResourceNotFoundError, RuntimeError):
        return False


def validate_resource_names(config: Configuration):
    """Check that resource group and globally-unique names are usable."""
    log.info("Validating resource name availability...")

    try:
        output = execute(AzCmd("group", "exists").param("--name", config.resource_group))
    except Exception as e:
        raise ExistenceCheckError(f"Cannot check resource group availability: {e}") from e
    group_exists = output.strip().lower() == "true"
    if group_exists:
        log.warning(f"Resource group {config.resource_group} already exists - will use existing")

    for storage_account_name in (config.storage_account_name, config.backup_storage_account_name):
        try:
            result = json.loads(execute(AzCmd("storage", "account check-name").param("--name", storage_account_name)))
        except json.JSONDecodeError as e:
            raise ExistenceCheckError("Failed to parse storage account name availability check") from e

        if result.get("nameAvailable", False):
            log.debug(f"Storage account name available: {storage_account_name}")
            continue

        if group_exists and _storage_account_in_resource_group(storage_account_name, config.resource_group):
            log.info(f"Storage account '{storage_account_name}' exists in {config.resource_group} - will use existing")
            continue

        raise ResourceNameAvailabilityError(
            f"Storage account name '{storage_account_name}' is not available: {result.get('message') or result.get('reason')}"
        )
