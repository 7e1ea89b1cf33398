# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.

"""Acceptance checks against a live deployment."""

import urllib.error
import urllib.request
from dataclasses import dataclass

from az_shared.az_cmd import AzCmd, execute_json
from az_shared.errors import ResourceNotFoundError
from az_shared.logs import log

from .app_settings import EXPECTED_ENV_VAR_NAMES
from .backup import list_blob_names
from .configuration import Configuration
from .resource_setup import get_container_app_fqdn

HTTP_TIMEOUT = 30  # seconds


@dataclass
class CheckResult:
    name: str
    passed: bool
    detail: str = ""


def check_app_responds(url: str, timeout: int = HTTP_TIMEOUT) -> CheckResult:
    """The public URL answers with a success status (redirects are followed)."""
    name = "app responds"
    try:
        req = urllib.request.Request(url, headers={"User-Agent": "tandoor-azure-deploy"})
        with urllib.request.urlopen(req, timeout=timeout) as response:
            status = response.status
    except urllib.error.HTTPError as e:
        return CheckResult(name, False, f"{url} returned HTTP {e.code} {e.reason}")
    except urllib.error.URLError as e:
        return CheckResult(name, False, f"{url} is unreachable: {e.reason}")
    except TimeoutError:
        return CheckResult(name, False, f"{url} did not answer within {timeout}s")
    except OSError as e:
        return CheckResult(name, False, f"{url} connection failed: {e}")

    return CheckResult(name, 200 <= status < 400, f"{url} returned HTTP {status}")


def get_container_env_var_names(app_name: str, resource_group: str) -> set[str]:
    names = execute_json(
        AzCmd("containerapp", "show")
        .param("--name", app_name)
        .param("--resource-group", resource_group)
        .param("--query", "properties.template.containers[0].env[].name", quote=True)
        .param("--output", "json")
    )
    return set(names or [])


def check_env_var_names(config: Configuration) -> CheckResult:
    """The deployed container defines exactly the documented variables."""
    actual = get_container_env_var_names(config.app_name, config.resource_group)
    missing = sorted(EXPECTED_ENV_VAR_NAMES - actual)
    unexpected = sorted(actual - EXPECTED_ENV_VAR_NAMES)

    problems = []
    if missing:
        problems.append(f"missing: {', '.join(missing)}")
    if unexpected:
        problems.append(f"unexpected: {', '.join(unexpected)}")
    detail = "; ".join(problems) or f"all {len(EXPECTED_ENV_VAR_NAMES)} variables present"
    return CheckResult("environment variables", not problems, detail)


def check_backup_contains_primary(config: Configuration) -> CheckResult:
    """Every media blob has a copy with the same name in the backup container."""
    primary = list_blob_names(config.storage_account_name, config.get_storage_key(), config.media_container)
    backup = list_blob_names(
        config.backup_storage_account_name, config.get_backup_storage_key(), config.backup_container
    )
    missing = sorted(primary - backup)
    if missing:
        shown = ", ".join(missing[:10])
        more = f" (+{len(missing) - 10} more)" if len(missing) > 10 else ""
        return CheckResult("backup", False, f"{len(missing)} blob(s) not backed up: {shown}{more}")
    return CheckResult("backup", True, f"{len(primary)} blob(s) present in backup")


def check_alert_rules(config: Configuration) -> CheckResult:
    """Both alert rules exist and are enabled."""
    problems = []
    for alert_name in (config.cpu_alert_name, config.memory_alert_name):
        try:
            rule = execute_json(
                AzCmd("monitor", "metrics alert show")
                .param("--name", alert_name)
                .param("--resource-group", config.resource_group)
                .param("--output", "json")
            )
        except ResourceNotFoundError:
            problems.append(f"{alert_name} not found")
            continue
        if not rule or not rule.get("enabled", False):
            problems.append(f"{alert_name} disabled")

    return CheckResult("alert rules", not problems, "; ".join(problems) or "CPU and memory alerts enabled")


def run_acceptance_checks(config: Configuration) -> list[CheckResult]:
    fqdn = get_container_app_fqdn(config.app_name, config.resource_group)
    results = [
        check_app_responds(f"https://{fqdn}"),
        check_env_var_names(config),
        check_backup_contains_primary(config),
        check_alert_rules(config),
    ]

    for result in results:
        if result.passed:
            log.info(f"PASS {result.name}: {result.detail}")
        else:
            log.error(f"FAIL {result.name}: {result.detail}")
    return results
