# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.

from time import sleep, time

from az_shared.az_cmd import AzCmd, execute
from az_shared.errors import InputParamValidationError, TimeoutError
from az_shared.logs import log, log_header

from .configuration import Configuration
from .constants import (
    POSTGRES_EXTENSIONS,
    POSTGRES_POLL_INTERVAL,
    POSTGRES_READY_STATE,
    POSTGRES_READY_TIMEOUT,
)
from .resource_setup import resource_exists

ALLOW_AZURE_SERVICES_RULE = "AllowAzureServices"
ALLOW_CLIENT_IP_RULE = "AllowClientIP"
MIGRATE_COMMAND = "python manage.py migrate"


# =============================================================================
# Server, Firewall, Database
# =============================================================================


def create_postgres_server(config: Configuration):
    """Create the PostgreSQL Flexible Server if it does not exist"""

    show_cmd = (
        AzCmd("postgres", "flexible-server show")
        .param("--name", config.db_server_name)
        .param("--resource-group", config.resource_group)
    )
    if resource_exists(show_cmd, f"PostgreSQL server '{config.db_server_name}'"):
        log.info(f"PostgreSQL server '{config.db_server_name}' already exists - reusing existing server")
        return

    log.info(f"Creating PostgreSQL server {config.db_server_name} ({config.db_tier} {config.db_sku}, v{config.db_version})")
    execute(
        AzCmd("postgres", "flexible-server create")
        .param("--name", config.db_server_name)
        .param("--resource-group", config.resource_group)
        .param("--location", config.region)
        .param("--admin-user", config.db_admin_user)
        .secret_param("--admin-password", config.db_admin_password)
        .param("--sku-name", config.db_sku)
        .param("--tier", config.db_tier)
        .param("--version", config.db_version)
        .param("--storage-size", str(config.db_storage_size_gb))
        .param("--public-access", "None")
        .flag("--yes")
    )


def wait_for_postgres_server_ready(server_name: str, resource_group: str) -> None:
    """Waits for the server to report the 'Ready' state."""
    log.info(f"Waiting for PostgreSQL server {server_name} to be ready...")

    start_time = time()
    while time() - start_time < POSTGRES_READY_TIMEOUT:
        state = execute(
            AzCmd("postgres", "flexible-server show")
            .param("--name", server_name)
            .param("--resource-group", resource_group)
            .param("--query", "state")
            .param("--output", "tsv")
        ).strip()
        log.debug(f"PostgreSQL server {server_name} state: {state}")

        if state == POSTGRES_READY_STATE:
            log.info(f"PostgreSQL server {server_name} is ready")
            return

        sleep(POSTGRES_POLL_INTERVAL)

    raise TimeoutError(
        f"Timeout waiting for PostgreSQL server {server_name} to be ready after {POSTGRES_READY_TIMEOUT} seconds"
    )


def create_firewall_rule(config: Configuration, rule_name: str, start_ip: str, end_ip: str):
    log.info(f"Creating firewall rule {rule_name} ({start_ip}-{end_ip}) on {config.db_server_name}")
    execute(
        AzCmd("postgres", "flexible-server firewall-rule create")
        .param("--resource-group", config.resource_group)
        .param("--name", config.db_server_name)
        .param("--rule-name", rule_name)
        .param("--start-ip-address", start_ip)
        .param("--end-ip-address", end_ip)
    )


def create_firewall_rules(config: Configuration):
    """Allow Azure services (the Container App) and optionally the operator's IP."""

    # 0.0.0.0-0.0.0.0 is Azure's marker for "connections from within Azure"
    create_firewall_rule(config, ALLOW_AZURE_SERVICES_RULE, "0.0.0.0", "0.0.0.0")
    if config.client_ip:
        create_firewall_rule(config, ALLOW_CLIENT_IP_RULE, config.client_ip, config.client_ip)


def allow_extensions(config: Configuration):
    """Allow-list the extensions Tandoor creates; Flexible Server rejects CREATE EXTENSION otherwise."""
    extensions = ",".join(ext.upper() for ext in POSTGRES_EXTENSIONS)
    log.info(f"Allowing PostgreSQL extensions {extensions} on {config.db_server_name}")
    execute(
        AzCmd("postgres", "flexible-server parameter set")
        .param("--resource-group", config.resource_group)
        .param("--server-name", config.db_server_name)
        .param("--name", "azure.extensions")
        .param("--value", extensions)
    )


def create_database(config: Configuration):
    """Create the logical database if it does not exist"""

    show_cmd = (
        AzCmd("postgres", "flexible-server db show")
        .param("--resource-group", config.resource_group)
        .param("--server-name", config.db_server_name)
        .param("--database-name", config.db_name)
    )
    if resource_exists(show_cmd, f"database '{config.db_name}'"):
        log.info(f"Database '{config.db_name}' already exists - reusing existing database")
        return

    log.info(f"Creating database {config.db_name} on {config.db_server_name}")
    execute(
        AzCmd("postgres", "flexible-server db create")
        .param("--resource-group", config.resource_group)
        .param("--server-name", config.db_server_name)
        .param("--database-name", config.db_name)
    )


# =============================================================================
# SQL + migrations
# =============================================================================


def execute_sql(config: Configuration, sql: str) -> str:
    """Run SQL against the Tandoor database as the admin user."""
    log.debug(f"Executing SQL on {config.db_name}: {sql}")
    return execute(
        AzCmd("postgres", "flexible-server execute")
        .param("--name", config.db_server_name)
        .param("--admin-user", config.db_admin_user)
        .secret_param("--admin-password", config.db_admin_password)
        .param("--database-name", config.db_name)
        .param("--querytext", sql, quote=True)
    )


def run_migrations(config: Configuration) -> str:
    """Run Django migrations inside the running Tandoor container."""
    log.info(f"Running migrations in Container App {config.app_name}")
    return execute(
        AzCmd("containerapp", "exec")
        .param("--name", config.app_name)
        .param("--resource-group", config.resource_group)
        .param("--command", MIGRATE_COMMAND, quote=True)
    )


def schema_reset_statements(admin_user: str) -> list[str]:
    return [
        "DROP SCHEMA public CASCADE;",
        "CREATE SCHEMA public;",
        f"GRANT ALL ON SCHEMA public TO {admin_user};",
        "GRANT ALL ON SCHEMA public TO public;",
        f"ALTER DEFAULT PRIVILEGES IN SCHEMA public GRANT ALL ON TABLES TO {admin_user};",
    ]


def extension_statements() -> list[str]:
    return [f"CREATE EXTENSION IF NOT EXISTS {ext};" for ext in POSTGRES_EXTENSIONS]


def reset_database_schema(config: Configuration, confirm: bool = False):
    """Recover a broken database by recreating the public schema.

    This destroys every table in the Tandoor database. Steps, in order: drop and
    recreate the public schema, restore privileges, migrate, recreate the
    extensions Tandoor relies on, then migrate again so the migrations that need
    those extensions are applied.
    """
    if not confirm:
        raise InputParamValidationError(
            f"Resetting the schema of database '{config.db_name}' deletes all data. Re-run with --yes to confirm."
        )

    log_header(f"Resetting schema of database {config.db_name} on {config.db_server_name}")
    log.warning(f"Dropping schema 'public' of database {config.db_name}")
    for statement in schema_reset_statements(config.db_admin_user):
        execute_sql(config, statement)

    run_migrations(config)

    log.info(f"Recreating extensions {', '.join(POSTGRES_EXTENSIONS)}")
    for statement in extension_statements():
        execute_sql(config, statement)

    run_migrations(config)
    log.info(f"Database {config.db_name} schema reset completed")
