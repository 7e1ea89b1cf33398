#!/usr/bin/env python3
# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.

"""
Tandoor Recipes on Azure Container Apps

Provisions the resource group, PostgreSQL Flexible Server, Container Apps environment and app,
media and backup storage, and monitoring for Tandoor, then operates the deployment.

usage: tandoor-azure-deploy [-h] {deploy,update-image,reset-db,backup,verify,workflow,destroy} ...
"""

import argparse
import logging
import os
import sys
from logging import basicConfig
from typing import Any, Optional

from az_shared.az_cmd import get_current_subscription, set_subscription
from az_shared.errors import InputParamValidationError, UserActionRequiredError
from az_shared.logs import log, log_header

from .backup import run_backup, start_backup_job
from .configuration import Configuration, build_configuration, load_config_file
from .constants import LOG_LEVELS
from .database import reset_database_schema
from .deploy import deploy_all
from .destroy import destroy_deployment
from .github_workflow import CREDENTIALS_SECRET, DEFAULT_WORKFLOW_PATH, create_ci_credentials, write_workflow
from .resource_setup import update_container_image
from .validation import validate_az_cli, validate_user_parameters
from .verify import run_acceptance_checks

DB_PASSWORD_ENV_VAR = "TANDOOR_DB_PASSWORD"
SECRET_KEY_ENV_VAR = "TANDOOR_SECRET_KEY"

# Commands that need the database admin password
PASSWORD_COMMANDS = {"deploy", "reset-db"}

# argparse dest -> Configuration field, for options shared by all commands
COMMON_CONFIG_ARGS = {
    "resource_group": "resource_group",
    "region": "region",
    "subscription": "subscription",
    "app_name": "app_name",
    "db_admin_password": "db_admin_password",
    "environment_name": "environment_name",
    "db_server_name": "db_server_name",
    "storage_account_name": "storage_account_name",
    "backup_storage_account_name": "backup_storage_account_name",
    "log_level": "log_level",
}

# argparse dest -> Configuration field, for the deploy command
DEPLOY_CONFIG_ARGS = {
    "image": "image",
    "db_admin_user": "db_admin_user",
    "db_name": "db_name",
    "db_sku": "db_sku",
    "db_tier": "db_tier",
    "db_version": "db_version",
    "client_ip": "client_ip",
    "cpu": "cpu",
    "memory": "memory",
    "min_replicas": "min_replicas",
    "max_replicas": "max_replicas",
    "debug": "debug",
    "allowed_hosts": "allowed_hosts",
    "timezone": "timezone",
    "enable_signup": "enable_signup",
    "backup_schedule": "backup_schedule",
    "alert_email": "alert_email",
}


def _common_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(add_help=False)
    parser.add_argument("--config", type=str, help="YAML configuration file; command-line options take precedence")
    parser.add_argument("--resource-group", type=str, help="Resource group holding the deployment (required)")
    parser.add_argument("--region", type=str, help="Azure region, e.g. westeurope (required)")
    parser.add_argument("--subscription", type=str, help="Subscription ID (default: the active az subscription)")
    parser.add_argument("--app-name", type=str, help="Container App name (default: tandoor-app)")
    parser.add_argument("--environment-name", type=str, help="Container Apps environment name (default: tandoor-env)")
    parser.add_argument("--db-server-name", type=str, help="PostgreSQL server name, globally unique")
    parser.add_argument("--storage-account-name", type=str, help="Media storage account name, globally unique")
    parser.add_argument("--backup-storage-account-name", type=str, help="Backup storage account name, globally unique")
    parser.add_argument(
        "--db-admin-password",
        type=str,
        default=os.environ.get(DB_PASSWORD_ENV_VAR),
        help=f"PostgreSQL admin password (default: ${DB_PASSWORD_ENV_VAR})",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=LOG_LEVELS,
        help="Set the log level (default: INFO)",
    )
    return parser


def _add_deploy_arguments(parser: argparse.ArgumentParser):
    parser.add_argument("--image", type=str, help="Container image (default: vabene1111/recipes:latest)")
    parser.add_argument("--db-admin-user", type=str, help="PostgreSQL admin user (default: tandooradmin)")
    parser.add_argument("--db-name", type=str, help="Database name (default: tandoor)")
    parser.add_argument("--db-sku", type=str, help="Flexible Server SKU (default: Standard_B1ms)")
    parser.add_argument("--db-tier", type=str, help="Flexible Server tier (default: Burstable)")
    parser.add_argument("--db-version", type=str, help="PostgreSQL major version (default: 16)")
    parser.add_argument("--client-ip", type=str, help="Your public IP, allowed through the database firewall")
    parser.add_argument("--cpu", type=str, help="vCPU per replica (default: 0.5)")
    parser.add_argument("--memory", type=str, help="Memory per replica (default: 1.0Gi)")
    parser.add_argument("--min-replicas", type=int, help="Minimum replicas (default: 1)")
    parser.add_argument("--max-replicas", type=int, help="Maximum replicas (default: 3)")
    parser.add_argument("--debug", action="store_true", default=None, help="Run Tandoor with DEBUG=1")
    parser.add_argument("--allowed-hosts", type=str, help="Django ALLOWED_HOSTS (default: *)")
    parser.add_argument("--timezone", type=str, help="TZ for the container (default: UTC)")
    parser.add_argument("--enable-signup", action="store_true", default=None, help="Allow public sign-up")
    parser.add_argument("--backup-schedule", type=str, help="Cron schedule for backups (default: '0 2 * * *')")
    parser.add_argument("--alert-email", type=str, help="E-mail address notified by the CPU/memory alerts")


def build_parser() -> argparse.ArgumentParser:
    common = _common_parser()
    parser = argparse.ArgumentParser(
        description="Deploy and operate Tandoor Recipes on Azure Container Apps",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    deploy = subparsers.add_parser("deploy", parents=[common], help="Provision every resource of the deployment")
    _add_deploy_arguments(deploy)

    update = subparsers.add_parser("update-image", parents=[common], help="Deploy a new revision from an image")
    update.add_argument("--image", type=str, help="Container image (default: vabene1111/recipes:latest)")

    reset = subparsers.add_parser(
        "reset-db", parents=[common], help="Drop and recreate the database schema, then migrate (DESTROYS DATA)"
    )
    reset.add_argument("--db-admin-user", type=str, help="PostgreSQL admin user (default: tandooradmin)")
    reset.add_argument("--db-name", type=str, help="Database name (default: tandoor)")
    reset.add_argument("--yes", action="store_true", help="Confirm the schema reset")

    backup = subparsers.add_parser("backup", parents=[common], help="Back up media blobs")
    backup.add_argument("--now", action="store_true", help="Copy from this machine instead of starting the backup job")

    subparsers.add_parser("verify", parents=[common], help="Run acceptance checks against the deployment")

    workflow = subparsers.add_parser("workflow", parents=[common], help="Write the GitHub Actions deploy workflow")
    workflow.add_argument("--image", type=str, help="Image the workflow deploys (default: vabene1111/recipes:latest)")
    workflow.add_argument("--output", type=str, default=DEFAULT_WORKFLOW_PATH, help="Workflow file path")
    workflow.add_argument("--branch", type=str, default="main", help="Branch that triggers deployment")
    workflow.add_argument(
        "--create-credentials",
        action="store_true",
        help=f"Create a service principal and print the JSON for the {CREDENTIALS_SECRET} secret",
    )

    destroy = subparsers.add_parser("destroy", parents=[common], help="Delete the resource group and all resources")
    destroy.add_argument("--yes", action="store_true", help="Confirm the deletion")

    return parser


def parse_arguments(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    return build_parser().parse_args(argv)


def configuration_from_args(args: argparse.Namespace) -> Configuration:
    file_values: dict[str, Any] = load_config_file(args.config) if args.config else {}

    arg_values = vars(args)
    overrides = {field: arg_values.get(dest) for dest, field in {**COMMON_CONFIG_ARGS, **DEPLOY_CONFIG_ARGS}.items()}
    if os.environ.get(SECRET_KEY_ENV_VAR):
        overrides["secret_key"] = os.environ[SECRET_KEY_ENV_VAR]

    extra_required = ("db_admin_password",) if args.command in PASSWORD_COMMANDS else ()
    return build_configuration(file_values, overrides, extra_required)


def resolve_subscription(config: Configuration):
    """Pin the CLI to the configured subscription, or record the active one."""
    if config.subscription:
        set_subscription(config.subscription)
    else:
        account = get_current_subscription()
        config.subscription = account["id"]
        log.info(f"Using active subscription {account['name']} ({account['id']})")


def run_deploy(config: Configuration):
    log_header("STEP 1: Validating user configuration...")
    validate_user_parameters(config)
    if config.secret_key_generated:
        log.warning(
            f"Generated a new Django SECRET_KEY; set {SECRET_KEY_ENV_VAR} to keep it stable across deployments"
        )

    url = deploy_all(config)
    log_header(f"Success! Tandoor is deployed at {url}")


def run_command(args: argparse.Namespace, config: Configuration) -> int:
    if args.command == "deploy":
        run_deploy(config)
    elif args.command == "update-image":
        update_container_image(config.app_name, config.resource_group, config.image)
    elif args.command == "reset-db":
        reset_database_schema(config, confirm=args.yes)
    elif args.command == "backup":
        if args.now:
            run_backup(config)
        else:
            start_backup_job(config)
    elif args.command == "verify":
        results = run_acceptance_checks(config)
        if not all(result.passed for result in results):
            return 1
    elif args.command == "workflow":
        write_workflow(config, args.output, args.branch)
        if args.create_credentials:
            credentials = create_ci_credentials(config)
            log.info(f"Store the following JSON as the GitHub repository secret {CREDENTIALS_SECRET}:")
            print(credentials)
    elif args.command == "destroy":
        destroy_deployment(config, confirm=args.yes)
    return 0


def main(argv: Optional[list[str]] = None):
    """Entry point: parse arguments, validate the az session and run the chosen command."""

    args = parse_arguments(argv)
    try:
        config = configuration_from_args(args)
    except UserActionRequiredError as e:
        log.error(e.user_action_message)
        sys.exit(1)
    except Exception as e:
        log.error(f"Failed to parse arguments: {e}")
        raise InputParamValidationError(f"Failed to initialize: {e}") from e

    basicConfig(level=getattr(logging, config.log_level, logging.INFO))

    try:
        validate_az_cli()
        resolve_subscription(config)
        exit_code = run_command(args, config)
    except UserActionRequiredError as e:
        log.error(e.user_action_message)
        sys.exit(1)
    except Exception as e:
        log.error(f"Failed with error: {e}")
        log.error("Check the Azure CLI output for more details")
        raise

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
