# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.

"""GitHub Actions workflow that redeploys the container image on push."""

import os

import yaml

from az_shared.az_cmd import AzCmd, execute
from az_shared.logs import log

from .configuration import Configuration

CREDENTIALS_SECRET = "AZURE_CREDENTIALS"
DEFAULT_WORKFLOW_PATH = os.path.join(".github", "workflows", "deploy.yml")


class _WorkflowDumper(yaml.SafeDumper):
    """Dumps multi-line strings (the run script) as literal blocks."""


def _str_representer(dumper: yaml.SafeDumper, data: str):
    style = "|" if "\n" in data else None
    return dumper.represent_scalar("tag:yaml.org,2002:str", data, style=style)


_WorkflowDumper.add_representer(str, _str_representer)


def build_workflow(config: Configuration, branch: str = "main") -> dict:
    update_script = "\n".join(
        [
            "az containerapp update \\",
            "  --name $CONTAINER_APP_NAME \\",
            "  --resource-group $RESOURCE_GROUP \\",
            f"  --image {config.image}",
            "",
        ]
    )
    return {
        "name": "Deploy Tandoor to Azure",
        "on": {
            "push": {"branches": [branch]},
            "workflow_dispatch": None,
        },
        "env": {
            "RESOURCE_GROUP": config.resource_group,
            "CONTAINER_APP_NAME": config.app_name,
        },
        "jobs": {
            "deploy": {
                "runs-on": "ubuntu-latest",
                "steps": [
                    {"uses": "actions/checkout@v4"},
                    {
                        "name": "Log in to Azure",
                        "uses": "azure/login@v2",
                        "with": {"creds": "${{ secrets.%s }}" % CREDENTIALS_SECRET},
                    },
                    {"name": "Deploy to Container Apps", "run": update_script},
                ],
            }
        },
    }


def render_workflow(config: Configuration, branch: str = "main") -> str:
    return yaml.dump(build_workflow(config, branch), Dumper=_WorkflowDumper, sort_keys=False)


def write_workflow(config: Configuration, path: str = DEFAULT_WORKFLOW_PATH, branch: str = "main") -> str:
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(path, "w") as f:
        f.write(render_workflow(config, branch))
    log.info(f"Wrote GitHub Actions workflow to {path}")
    return path


def create_ci_credentials(config: Configuration) -> str:
    """Create a service principal limited to the resource group; its JSON goes into the AZURE_CREDENTIALS secret."""
    sp_name = f"{config.app_name}-github-deploy"
    log.info(f"Creating service principal {sp_name} scoped to {config.resource_group_scope}")
    return execute(
        AzCmd("ad", "sp create-for-rbac")
        .param("--name", sp_name)
        .param("--role", "contributor")
        .param("--scopes", config.resource_group_scope)
        .flag("--json-auth")
    )
