# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.

import json
import subprocess
from collections.abc import Iterable
from re import search
from time import sleep
from typing import Any, Optional, Type

from common.shell import Cmd

from .errors import (
    AccessError,
    ContainerResourceError,
    DatabaseConnectionError,
    PolicyError,
    RateLimitExceededError,
    RefreshTokenError,
    ResourceNameAvailabilityError,
    ResourceNotFoundError,
    StorageAccessError,
)
from .logs import log
from .util import get_az_and_python_version

AUTH_FAILED_ERROR = "AuthorizationFailed"
AZURE_THROTTLING_ERRORS = ["TooManyRequests", "Too Many Requests", "ResourceCollectionRequestsThrottled"]
REFRESH_TOKEN_EXPIRED_ERROR = "AADSTS700082"
RESOURCE_NOT_FOUND_ERRORS = ["ResourceNotFound", "ResourceGroupNotFound", "ParentResourceNotFound"]
POLICY_ERROR = "RequestDisallowedByPolicy"
NAME_TAKEN_ERRORS = ["StorageAccountAlreadyTaken", "ServerNameAlreadyExists", "NameAlreadyExists"]
STORAGE_AUTH_ERRORS = ["AuthenticationFailed", "Server failed to authenticate the request"]
DATABASE_CONNECTION_ERRORS = ["could not connect to server", "no pg_hba.conf entry", "Connection refused"]
CONTAINER_RESOURCE_ERRORS = ["ContainerAppInvalidResourceTotal", "OOMKilled"]

INITIAL_RETRY_DELAY = 2  # seconds
RETRY_DELAY_MULTIPLIER = 2
MAX_RETRIES = 7


class AzCmd(Cmd):
    """Builder for Azure CLI commands."""

    def __init__(self, service: str, action: str):
        """Initialize with service and action (e.g., 'containerapp', 'env create')."""
        super().__init__([service] + action.split())

    def __str__(self) -> str:
        return "az " + super().__str__()

    def param(self, key: str, value: str, quote: bool = False) -> "Cmd":
        """Adds a key-value pair parameter"""
        return super().param(key, value, quote=quote)

    def param_list(self, key: str, values: Iterable[str], quote: bool = False) -> "Cmd":
        """Adds a list of parameters with the same key"""
        return super().param_list(key, values, quote=quote)

    def secret_param(self, key: str, value: str, quote: bool = True) -> "Cmd":
        """Adds a masked key-value pair; secrets are quoted since they may contain shell characters"""
        return super().secret_param(key, value, quote=quote)


def check_access_error(stderr: str) -> Optional[str]:
    # Sample:
    # (AuthorizationFailed) The client 'user@example.com' with object id '00000000-0000-0000-0000-000000000000'
    # does not have authorization to perform action 'Microsoft.App/containerApps/write'
    # over scope '/subscriptions/00000000-0000-0000-0000-000000000000/resourceGroups/tandoor-rg' or the scope is invalid.

    client_match = search(r"client '([^']*)'", stderr)
    action_match = search(r"action '([^']*)'", stderr)
    scope_match = search(r"scope '([^']*)'", stderr)

    if not (action_match and scope_match and client_match):
        return None

    return f"Insufficient permissions for {client_match.group(1)} to perform {action_match.group(1)} on {scope_match.group(1)}"


def _raise_with_versions(error_type: Type[Exception], message: str, cause: Optional[Exception] = None):
    """Raise error_type(message), appending az/python versions to the exception args only.
    The user-facing message computed by the error's constructor stays unchanged.
    """
    exc = error_type(message)
    exc.args = (f"{message}{get_az_and_python_version()}",) + tuple(exc.args[1:])
    if cause:
        raise exc from cause
    raise exc


def _contains_any(text: str, markers: list[str]) -> bool:
    return any(marker in text for marker in markers)


def execute(cmd: Cmd, can_fail: bool = False) -> str:
    """Run an Azure CLI command and return output or raise error."""

    full_command = str(cmd)
    printable_command = cmd.redacted()
    log.debug(f"Running: {printable_command}")
    delay = INITIAL_RETRY_DELAY

    for attempt in range(MAX_RETRIES):
        try:
            result = subprocess.run(full_command, shell=True, check=True, capture_output=True, text=True)
            return result.stdout
        except subprocess.CalledProcessError as e:
            stderr = str(e.stderr)
            stdout = str(e.stdout)
            details = f"'{printable_command}'\nstdout: {stdout}\nstderr: {stderr}"

            if _contains_any(stderr, AZURE_THROTTLING_ERRORS):
                if attempt < MAX_RETRIES - 1:
                    log.warning(f"Azure throttling ongoing. Retrying in {delay} seconds...")
                    sleep(delay)
                    delay *= RETRY_DELAY_MULTIPLIER
                    continue
                _raise_with_versions(
                    RateLimitExceededError, "Rate limit exceeded. Please wait a few minutes and try again.", e
                )
            if _contains_any(stderr, RESOURCE_NOT_FOUND_ERRORS):
                _raise_with_versions(ResourceNotFoundError, f"Resource not found when executing {details}", e)
            if REFRESH_TOKEN_EXPIRED_ERROR in stderr:
                _raise_with_versions(RefreshTokenError, stderr, e)
            if AUTH_FAILED_ERROR in stderr:
                error_message = f"Insufficient permissions to access resource when executing '{printable_command}'"
                if error_details := check_access_error(stderr):
                    error_message = f"{error_message}: {error_details}"
                _raise_with_versions(AccessError, error_message, e)
            if POLICY_ERROR in stderr:
                error_before_and_after_code = stderr.split(f"({POLICY_ERROR}) ")
                policy_error_message = (
                    "\n".join(error_before_and_after_code[1:]) if len(error_before_and_after_code) > 1 else stderr
                )
                _raise_with_versions(PolicyError, policy_error_message, e)
            if _contains_any(stderr, NAME_TAKEN_ERRORS):
                _raise_with_versions(ResourceNameAvailabilityError, f"Name already taken when executing {details}", e)
            if _contains_any(stderr, STORAGE_AUTH_ERRORS):
                _raise_with_versions(StorageAccessError, f"Storage authentication failed when executing {details}", e)
            if _contains_any(stderr, DATABASE_CONNECTION_ERRORS):
                _raise_with_versions(DatabaseConnectionError, f"Database connection failed when executing {details}", e)
            if _contains_any(stderr, CONTAINER_RESOURCE_ERRORS):
                _raise_with_versions(ContainerResourceError, f"Invalid container resources when executing {details}", e)
            if can_fail:
                return ""
            log.error(f"Command failed: {printable_command}")
            log.error(stderr)
            _raise_with_versions(RuntimeError, f"Command failed: {details}", e)

    raise SystemExit(1)  # unreachable


def execute_json(cmd: Cmd) -> Any:
    if result := execute(cmd):
        return json.loads(result)
    return None


def set_subscription(sub_id: str):
    """Set the active Azure subscription."""
    log.debug(f"Setting active subscription to {sub_id}")
    execute(AzCmd("account", "set").param("--subscription", sub_id))


def get_current_subscription() -> dict[str, str]:
    """Return the id and name of the subscription the CLI is logged into."""
    account = execute_json(AzCmd("account", "show").param("--output", "json"))
    return {"id": account["id"], "name": account["name"]}
