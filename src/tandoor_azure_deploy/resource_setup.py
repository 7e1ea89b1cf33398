# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.

from time import sleep, time

from az_shared.az_cmd import AzCmd, execute
from az_shared.errors import ExistenceCheckError, ResourceNotFoundError, TimeoutError
from az_shared.logs import log
from common.shell import Cmd

from .app_settings import format_pairs
from .configuration import Configuration
from .constants import SECRET_KEY_SECRET, STORAGE_POLL_INTERVAL, STORAGE_READY_TIMEOUT


def resource_exists(show_cmd: Cmd, description: str) -> bool:
    """Run a 'show' command and report whether the resource exists."""
    try:
        log.info(f"Checking if {description} already exists...")
        execute(show_cmd)
        return True
    except ResourceNotFoundError:
        return False
    except Exception as e:
        raise ExistenceCheckError(f"Failed to check if {description} exists: {e}") from e


# =============================================================================
# Resource Group, Storage Account
# =============================================================================


def create_resource_group(resource_group: str, region: str):
    """Create the resource group that holds every resource of the deployment"""
    log.info(f"Creating resource group {resource_group} in {region}")
    execute(AzCmd("group", "create").param("--name", resource_group).param("--location", region))


def create_storage_account(storage_account_name: str, resource_group: str, region: str):
    """Create a storage account for blob data if it does not exist"""
    show_cmd = (
        AzCmd("storage", "account show")
        .param("--name", storage_account_name)
        .param("--resource-group", resource_group)
    )
    if resource_exists(show_cmd, f"storage account '{storage_account_name}'"):
        log.info(f"Storage account '{storage_account_name}' already exists - reusing existing account")
        return

    log.info(f"Creating storage account {storage_account_name}")
    execute(
        AzCmd("storage", "account create")
        .param("--name", storage_account_name)
        .param("--resource-group", resource_group)
        .param("--location", region)
        .param("--sku", "Standard_LRS")
        .param("--kind", "StorageV2")
        .param("--access-tier", "Hot")
        .param("--min-tls-version", "TLS1_2")
        .param("--allow-blob-public-access", "false")
        .flag("--https-only")
    )


def wait_for_storage_account_ready(storage_account_name: str, resource_group: str) -> None:
    """Waits for storage account to be in 'Succeeded' provisioning state.
    Storage accounts are created asynchronously, so keys and containers are unavailable until then.
    """
    log.info(f"Waiting for storage account {storage_account_name} to be ready...")

    start_time = time()
    while time() - start_time < STORAGE_READY_TIMEOUT:
        output = execute(
            AzCmd("storage", "account show")
            .param("--name", storage_account_name)
            .param("--resource-group", resource_group)
            .param("--query", "provisioningState")
            .param("--output", "tsv")
        )

        state = output.strip()
        log.debug(f"Storage account {storage_account_name} provisioning state: {state}")

        if state == "Succeeded":
            log.info(f"Storage account {storage_account_name} is ready")
            return
        elif state in ["Failed", "Canceled"]:
            raise RuntimeError(f"Storage account {storage_account_name} provisioning failed with state: {state}")

        sleep(STORAGE_POLL_INTERVAL)

    raise TimeoutError(
        f"Timeout waiting for storage account {storage_account_name} to be ready after {STORAGE_READY_TIMEOUT} seconds"
    )


def create_blob_container(storage_account_name: str, account_key: str, container_name: str):
    """Create a private blob container"""
    log.info(f"Creating blob container {container_name} in {storage_account_name}")
    execute(
        AzCmd("storage", "container create")
        .param("--account-name", storage_account_name)
        .secret_param("--account-key", account_key)
        .param("--name", container_name)
        .param("--public-access", "off")
    )


# =============================================================================
# Container App Environment + App
# =============================================================================


def create_container_app_environment(environment_name: str, resource_group: str, region: str):
    """Create the Container App environment if it does not exist"""

    show_cmd = AzCmd("containerapp", "env show").param("--name", environment_name).param("--resource-group", resource_group)
    if resource_exists(show_cmd, f"Container App environment '{environment_name}'"):
        log.info(f"Container App environment '{environment_name}' already exists - reusing existing environment")
        return

    log.info(f"Creating Container App environment {environment_name}")
    execute(
        AzCmd("containerapp", "env create")
        .param("--name", environment_name)
        .param("--resource-group", resource_group)
        .param("--location", region)
    )


def set_container_app_secrets(app_name: str, resource_group: str, secrets: dict[str, str]):
    """Add or replace Container App secrets"""
    log.info(f"Setting secrets {', '.join(secrets)} on Container App {app_name}")
    cmd = (
        AzCmd("containerapp", "secret set")
        .param("--name", app_name)
        .param("--resource-group", resource_group)
        .param_list("--secrets", format_pairs(secrets), quote=True)
    )
    for value in secrets.values():
        cmd.mask(value)
    execute(cmd)


def set_container_app_env_vars(app_name: str, resource_group: str, env_vars: dict[str, str]):
    """Add or replace environment variables; creates a new revision"""
    log.info(f"Setting environment variables {', '.join(env_vars)} on Container App {app_name}")
    execute(
        AzCmd("containerapp", "update")
        .param("--name", app_name)
        .param("--resource-group", resource_group)
        .param_list("--set-env-vars", format_pairs(env_vars), quote=True)
    )


def update_container_app(config: Configuration, env_vars: dict[str, str]):
    """Apply image, resources, scale and environment variables to an existing app in one new revision"""
    log.info(
        f"Updating Container App {config.app_name}: image {config.image}, {config.cpu} vCPU / {config.memory}, "
        f"replicas {config.min_replicas}-{config.max_replicas}"
    )
    execute(
        AzCmd("containerapp", "update")
        .param("--name", config.app_name)
        .param("--resource-group", config.resource_group)
        .param("--image", config.image)
        .param("--cpu", config.cpu)
        .param("--memory", config.memory)
        .param("--min-replicas", str(config.min_replicas))
        .param("--max-replicas", str(config.max_replicas))
        .param_list("--set-env-vars", format_pairs(env_vars), quote=True)
    )


def create_container_app(config: Configuration, env_vars: dict[str, str], secrets: dict[str, str]) -> str:
    """Create the Tandoor Container App, or update an existing one. Returns the public FQDN."""

    show_cmd = AzCmd("containerapp", "show").param("--name", config.app_name).param("--resource-group", config.resource_group)
    if resource_exists(show_cmd, f"Container App '{config.app_name}'"):
        log.info(f"Container App '{config.app_name}' already exists - updating secrets and configuration")
        if config.secret_key_generated and SECRET_KEY_SECRET in secrets:
            # Replacing the Django key would invalidate every session
            log.info(f"Keeping the existing '{SECRET_KEY_SECRET}' secret of Container App {config.app_name}")
            secrets = {name: value for name, value in secrets.items() if name != SECRET_KEY_SECRET}
        if secrets:
            set_container_app_secrets(config.app_name, config.resource_group, secrets)
        update_container_app(config, env_vars)
        return get_container_app_fqdn(config.app_name, config.resource_group)

    log.info(f"Creating Container App {config.app_name} from image {config.image}")
    cmd = (
        AzCmd("containerapp", "create")
        .param("--name", config.app_name)
        .param("--resource-group", config.resource_group)
        .param("--environment", config.environment_name)
        .param("--image", config.image)
        .param("--target-port", str(config.target_port))
        .param("--ingress", "external")
        .param("--cpu", config.cpu)
        .param("--memory", config.memory)
        .param("--min-replicas", str(config.min_replicas))
        .param("--max-replicas", str(config.max_replicas))
        .param_list("--secrets", format_pairs(secrets), quote=True)
        .param_list("--env-vars", format_pairs(env_vars), quote=True)
        .param("--query", "properties.configuration.ingress.fqdn")
        .param("--output", "tsv")
    )
    for value in secrets.values():
        cmd.mask(value)
    return execute(cmd).strip()


def update_container_image(app_name: str, resource_group: str, image: str):
    """Point the Container App at an image; replaces the running revision wholesale"""
    log.info(f"Updating Container App {app_name} to image {image}")
    execute(
        AzCmd("containerapp", "update")
        .param("--name", app_name)
        .param("--resource-group", resource_group)
        .param("--image", image)
    )


def get_container_app_fqdn(app_name: str, resource_group: str) -> str:
    return execute(
        AzCmd("containerapp", "show")
        .param("--name", app_name)
        .param("--resource-group", resource_group)
        .param("--query", "properties.configuration.ingress.fqdn")
        .param("--output", "tsv")
    ).strip()


def get_container_app_id(app_name: str, resource_group: str) -> str:
    return execute(
        AzCmd("containerapp", "show")
        .param("--name", app_name)
        .param("--resource-group", resource_group)
        .param("--query", "id")
        .param("--output", "tsv")
    ).strip()
