# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.

import re
from typing import Optional

from az_shared.az_cmd import AzCmd, execute
from az_shared.errors import InputParamValidationError
from az_shared.logs import log

from .configuration import Configuration
from .constants import CPU_METRIC, MEMORY_METRIC, NANOCORES_PER_CORE
from .resource_setup import get_container_app_id, resource_exists

MEMORY_UNITS = {"Gi": 1024**3, "Mi": 1024**2, "G": 1000**3, "M": 1000**2}
ACTION_GROUP_SHORT_NAME_MAX = 12


def compute_cpu_threshold(cpu: str, percent: int) -> int:
    """Alert threshold in nanocores for a share of the container's CPU allocation."""
    try:
        cores = float(cpu)
    except ValueError as e:
        raise InputParamValidationError(f"Invalid CPU allocation '{cpu}'") from e
    return int(cores * NANOCORES_PER_CORE * percent / 100)


def parse_memory_bytes(memory: str) -> int:
    match = re.fullmatch(r"\s*(\d+(?:\.\d+)?)\s*(Gi|Mi|G|M)\s*", memory)
    if not match:
        raise InputParamValidationError(f"Invalid memory allocation '{memory}' (expected e.g. 1.0Gi or 512Mi)")
    return int(float(match.group(1)) * MEMORY_UNITS[match.group(2)])


def compute_memory_threshold(memory: str, percent: int) -> int:
    """Alert threshold in bytes for a share of the container's memory allocation."""
    return int(parse_memory_bytes(memory) * percent / 100)


def create_app_insights(config: Configuration) -> str:
    """Create the Application Insights component if needed and return its instrumentation key"""

    show_cmd = (
        AzCmd("monitor", "app-insights component show")
        .param("--app", config.insights_name)
        .param("--resource-group", config.resource_group)
    )
    if resource_exists(show_cmd, f"Application Insights component '{config.insights_name}'"):
        log.info(f"Application Insights component '{config.insights_name}' already exists - reusing it")
        action = AzCmd("monitor", "app-insights component show")
    else:
        log.info(f"Creating Application Insights component {config.insights_name}")
        action = (
            AzCmd("monitor", "app-insights component create")
            .param("--location", config.region)
            .param("--kind", "web")
            .param("--application-type", "web")
        )

    return execute(
        action.param("--app", config.insights_name)
        .param("--resource-group", config.resource_group)
        .param("--query", "instrumentationKey")
        .param("--output", "tsv")
    ).strip()


def create_action_group(config: Configuration) -> Optional[str]:
    """Create an e-mail action group for the alerts. Returns its resource ID, or None when no e-mail is configured."""
    if not config.alert_email:
        log.info("No alert e-mail configured - alerts will only be visible in the Azure Portal")
        return None

    log.info(f"Creating action group {config.action_group_name} notifying {config.alert_email}")
    return execute(
        AzCmd("monitor", "action-group create")
        .param("--name", config.action_group_name)
        .param("--resource-group", config.resource_group)
        .param("--short-name", config.app_name.replace("-", "")[:ACTION_GROUP_SHORT_NAME_MAX])
        .param_list("--action", ["email", "admin", config.alert_email], quote=True)
        .param("--query", "id")
        .param("--output", "tsv")
    ).strip()


def create_metric_alert(
    config: Configuration,
    alert_name: str,
    condition: str,
    description: str,
    scope: str,
    action_group_id: Optional[str] = None,
):
    """Create a metric alert rule on the given resource if it does not exist"""

    show_cmd = (
        AzCmd("monitor", "metrics alert show").param("--name", alert_name).param("--resource-group", config.resource_group)
    )
    if resource_exists(show_cmd, f"alert rule '{alert_name}'"):
        log.info(f"Alert rule '{alert_name}' already exists - reusing existing rule")
        return

    log.info(f"Creating alert rule {alert_name}: {condition}")
    cmd = (
        AzCmd("monitor", "metrics alert create")
        .param("--name", alert_name)
        .param("--resource-group", config.resource_group)
        .param("--scopes", scope)
        .param("--condition", condition, quote=True)
        .param("--window-size", config.alert_window_size)
        .param("--evaluation-frequency", config.alert_evaluation_frequency)
        .param("--description", description, quote=True)
    )
    if action_group_id:
        cmd.param("--action", action_group_id)
    execute(cmd)


def create_alerts(config: Configuration):
    """CPU and memory alerts on the Tandoor container app"""
    app_id = get_container_app_id(config.app_name, config.resource_group)
    action_group_id = create_action_group(config)

    cpu_threshold = compute_cpu_threshold(config.cpu, config.cpu_alert_threshold_percent)
    create_metric_alert(
        config,
        config.cpu_alert_name,
        f"avg {CPU_METRIC} > {cpu_threshold}",
        f"CPU usage above {config.cpu_alert_threshold_percent}% of {config.cpu} cores",
        app_id,
        action_group_id,
    )

    memory_threshold = compute_memory_threshold(config.memory, config.memory_alert_threshold_percent)
    create_metric_alert(
        config,
        config.memory_alert_name,
        f"avg {MEMORY_METRIC} > {memory_threshold}",
        f"Memory usage above {config.memory_alert_threshold_percent}% of {config.memory}",
        app_id,
        action_group_id,
    )
