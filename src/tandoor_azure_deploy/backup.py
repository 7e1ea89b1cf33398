# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.

from az_shared.az_cmd import AzCmd, execute, execute_json
from az_shared.logs import log

from .app_settings import format_pairs, secret_ref
from .configuration import Configuration
from .constants import AZURE_CLI_IMAGE, BACKUP_DEST_KEY_SECRET, BACKUP_SOURCE_KEY_SECRET
from .resource_setup import (
    create_blob_container,
    create_storage_account,
    resource_exists,
    wait_for_storage_account_ready,
)

# Runs inside the azure-cli image; the variables come from the job's env vars
BACKUP_SCRIPT = (
    "az storage blob copy start-batch"
    " --account-name $DEST_ACCOUNT --account-key $DEST_KEY --destination-container $DEST_CONTAINER"
    " --source-account-name $SOURCE_ACCOUNT --source-account-key $SOURCE_KEY --source-container $SOURCE_CONTAINER"
)


def create_backup_storage(config: Configuration):
    """Create the backup storage account and its container"""
    create_storage_account(config.backup_storage_account_name, config.resource_group, config.region)
    wait_for_storage_account_ready(config.backup_storage_account_name, config.resource_group)
    create_blob_container(
        config.backup_storage_account_name,
        config.get_backup_storage_key(),
        config.backup_container,
    )


def build_copy_command(
    source_account: str,
    source_key: str,
    source_container: str,
    dest_account: str,
    dest_key: str,
    dest_container: str,
) -> AzCmd:
    """Server-side copy of every blob in the source container, keeping blob names."""
    return (
        AzCmd("storage", "blob copy start-batch")
        .param("--account-name", dest_account)
        .secret_param("--account-key", dest_key)
        .param("--destination-container", dest_container)
        .param("--source-account-name", source_account)
        .secret_param("--source-account-key", source_key)
        .param("--source-container", source_container)
    )


def run_backup(config: Configuration):
    """Copy all media blobs to the backup container now."""
    log.info(
        f"Copying blobs from {config.storage_account_name}/{config.media_container} "
        f"to {config.backup_storage_account_name}/{config.backup_container}"
    )
    execute(
        build_copy_command(
            config.storage_account_name,
            config.get_storage_key(),
            config.media_container,
            config.backup_storage_account_name,
            config.get_backup_storage_key(),
            config.backup_container,
        )
    )
    log.info("Backup copy started")


def create_backup_job(config: Configuration):
    """Create the scheduled Container App job that copies media blobs to the backup container"""

    show_cmd = (
        AzCmd("containerapp", "job show")
        .param("--name", config.backup_job_name)
        .param("--resource-group", config.resource_group)
    )
    if resource_exists(show_cmd, f"Container App job '{config.backup_job_name}'"):
        log.info(f"Container App job '{config.backup_job_name}' already exists - reusing existing job")
        return

    log.info(f"Creating backup job {config.backup_job_name} with schedule '{config.backup_schedule}'")

    secrets = {
        BACKUP_SOURCE_KEY_SECRET: config.get_storage_key(),
        BACKUP_DEST_KEY_SECRET: config.get_backup_storage_key(),
    }
    env_vars = {
        "SOURCE_ACCOUNT": config.storage_account_name,
        "SOURCE_KEY": secret_ref(BACKUP_SOURCE_KEY_SECRET),
        "SOURCE_CONTAINER": config.media_container,
        "DEST_ACCOUNT": config.backup_storage_account_name,
        "DEST_KEY": secret_ref(BACKUP_DEST_KEY_SECRET),
        "DEST_CONTAINER": config.backup_container,
    }

    cmd = (
        AzCmd("containerapp", "job create")
        .param("--name", config.backup_job_name)
        .param("--resource-group", config.resource_group)
        .param("--environment", config.environment_name)
        .param("--trigger-type", "Schedule")
        .param("--cron-expression", config.backup_schedule, quote=True)
        .param("--replica-timeout", "1800")
        .param("--replica-retry-limit", "1")
        .param("--parallelism", "1")
        .param("--replica-completion-count", "1")
        .param("--image", AZURE_CLI_IMAGE)
        .param("--cpu", "0.25")
        .param("--memory", "0.5Gi")
        .param_list("--secrets", format_pairs(secrets), quote=True)
        .param_list("--env-vars", format_pairs(env_vars), quote=True)
        .param("--command", "/bin/sh")
        .param_list("--args", ["-c", BACKUP_SCRIPT], quote=True)
    )
    for value in secrets.values():
        cmd.mask(value)
    execute(cmd)


def start_backup_job(config: Configuration):
    """Trigger the scheduled backup job outside its schedule"""
    log.info(f"Starting backup job {config.backup_job_name}")
    execute(
        AzCmd("containerapp", "job start")
        .param("--name", config.backup_job_name)
        .param("--resource-group", config.resource_group)
    )


def list_blob_names(storage_account_name: str, account_key: str, container_name: str) -> set[str]:
    names = execute_json(
        AzCmd("storage", "blob list")
        .param("--account-name", storage_account_name)
        .secret_param("--account-key", account_key)
        .param("--container-name", container_name)
        .param("--num-results", "*", quote=True)
        .param("--query", "[].name", quote=True)
        .param("--output", "json")
    )
    return set(names or [])
