# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.

from az_shared.az_cmd import AzCmd, execute
from az_shared.errors import InputParamValidationError
from az_shared.logs import log

from .configuration import Configuration


def destroy_deployment(config: Configuration, confirm: bool = False):
    """Delete the resource group and everything in it. Deletion continues in the background."""
    if not confirm:
        raise InputParamValidationError(
            f"Deleting resource group '{config.resource_group}' removes the database, media and backups. "
            "Re-run with --yes to confirm."
        )

    log.warning(f"Deleting resource group {config.resource_group} and all of its resources")
    execute(
        AzCmd("group", "delete")
        .param("--name", config.resource_group)
        .flag("--yes")
        .flag("--no-wait")
    )
    log.info(f"Deletion of {config.resource_group} started; check progress with 'az group show --name {config.resource_group}'")
