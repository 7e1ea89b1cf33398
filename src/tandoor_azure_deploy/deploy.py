# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.

from az_shared.logs import log, log_header

from .app_settings import (
    core_env_vars,
    core_secrets,
    storage_env_vars,
    storage_secrets,
    telemetry_env_vars,
)
from .backup import create_backup_job, create_backup_storage
from .configuration import Configuration
from .database import (
    allow_extensions,
    create_database,
    create_firewall_rules,
    create_postgres_server,
    wait_for_postgres_server_ready,
)
from .monitoring import create_alerts, create_app_insights
from .resource_setup import (
    create_blob_container,
    create_container_app,
    create_container_app_environment,
    create_resource_group,
    create_storage_account,
    set_container_app_env_vars,
    set_container_app_secrets,
    wait_for_storage_account_ready,
)


def deploy_database(config: Configuration):
    """Server, firewall rules, allowed extensions and the logical database."""
    create_postgres_server(config)
    wait_for_postgres_server_ready(config.db_server_name, config.resource_group)
    create_firewall_rules(config)
    allow_extensions(config)
    create_database(config)
    log.info(f"Database {config.db_name} available at {config.db_host}")


def deploy_app(config: Configuration) -> str:
    """Hosting environment and the Tandoor container. Returns the public FQDN."""
    create_container_app_environment(config.environment_name, config.resource_group, config.region)
    fqdn = create_container_app(config, core_env_vars(config), core_secrets(config))
    log.info(f"Container App {config.app_name} deployed at https://{fqdn}")
    return fqdn


def deploy_media_storage(config: Configuration):
    """Media storage account + container, wired into the app."""
    create_storage_account(config.storage_account_name, config.resource_group, config.region)
    wait_for_storage_account_ready(config.storage_account_name, config.resource_group)
    create_blob_container(config.storage_account_name, config.get_storage_key(), config.media_container)

    set_container_app_secrets(config.app_name, config.resource_group, storage_secrets(config))
    set_container_app_env_vars(config.app_name, config.resource_group, storage_env_vars(config))
    log.info("Media storage setup completed")


def deploy_backup(config: Configuration):
    create_backup_storage(config)
    create_backup_job(config)
    log.info("Backup storage and schedule setup completed")


def deploy_monitoring(config: Configuration):
    instrumentation_key = create_app_insights(config)
    set_container_app_env_vars(config.app_name, config.resource_group, telemetry_env_vars(instrumentation_key))
    create_alerts(config)
    log.info("Monitoring and alerts setup completed")


def deploy_all(config: Configuration) -> str:
    """Provision every phase in order; each phase relies on resources from the previous ones.
    Returns the public URL of the app.
    """

    log_header("STEP 2: Creating resource group...")
    create_resource_group(config.resource_group, config.region)

    log_header("STEP 3: Deploying PostgreSQL database...")
    deploy_database(config)

    log_header("STEP 4: Deploying Container App...")
    fqdn = deploy_app(config)

    log_header("STEP 5: Setting up media storage...")
    deploy_media_storage(config)

    log_header("STEP 6: Setting up backups...")
    deploy_backup(config)

    log_header("STEP 7: Setting up monitoring...")
    deploy_monitoring(config)

    return f"https://{fqdn}"
