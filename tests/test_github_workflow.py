# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.

import os
import tempfile
from unittest import TestCase
from unittest.mock import patch as mock_patch

import yaml

from tandoor_azure_deploy import github_workflow

from tests.test_data import RESOURCE_GROUP, SUBSCRIPTION_ID, get_test_config


class TestGithubWorkflow(TestCase):
    def setUp(self) -> None:
        self.log_mock = self.patch("tandoor_azure_deploy.github_workflow.log")
        self.execute_mock = self.patch("tandoor_azure_deploy.github_workflow.execute")

        self.config = get_test_config()

    def patch(self, path: str, **kwargs):
        """Helper method to patch and auto-cleanup"""
        patcher = mock_patch(path, **kwargs)
        self.addCleanup(patcher.stop)
        return patcher.start()

    def test_render_workflow(self):
        rendered = github_workflow.render_workflow(self.config)
        workflow = yaml.safe_load(rendered)

        self.assertEqual(workflow["name"], "Deploy Tandoor to Azure")
        self.assertEqual(workflow["on"]["push"]["branches"], ["main"])
        self.assertIn("workflow_dispatch", workflow["on"])
        self.assertEqual(workflow["env"], {"RESOURCE_GROUP": RESOURCE_GROUP, "CONTAINER_APP_NAME": "tandoor-app"})

        steps = workflow["jobs"]["deploy"]["steps"]
        self.assertEqual(steps[0]["uses"], "actions/checkout@v4")
        self.assertEqual(steps[1]["uses"], "azure/login@v2")
        self.assertEqual(steps[1]["with"]["creds"], "${{ secrets.AZURE_CREDENTIALS }}")
        self.assertTrue(steps[2]["run"].startswith("az containerapp update"))
        self.assertIn("--image vabene1111/recipes:latest", steps[2]["run"])

    def test_run_script_is_literal_block(self):
        rendered = github_workflow.render_workflow(self.config)

        self.assertIn("run: |", rendered)
        self.assertIn("  --name $CONTAINER_APP_NAME \\", rendered)

    def test_render_workflow_branch_and_image(self):
        config = get_test_config(image="ghcr.io/example/recipes:2.0")

        workflow = yaml.safe_load(github_workflow.render_workflow(config, branch="release"))

        self.assertEqual(workflow["on"]["push"]["branches"], ["release"])
        self.assertIn("--image ghcr.io/example/recipes:2.0", workflow["jobs"]["deploy"]["steps"][2]["run"])

    def test_committed_workflow_matches_render(self):
        committed = os.path.join(os.path.dirname(os.path.dirname(__file__)), ".github", "workflows", "deploy.yml")
        config = get_test_config(resource_group="tandoor-rg", region="westeurope")

        with open(committed) as f:
            self.assertEqual(yaml.safe_load(f), github_workflow.build_workflow(config))

    def test_write_workflow(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, ".github", "workflows", "deploy.yml")

            self.assertEqual(github_workflow.write_workflow(self.config, path), path)

            with open(path) as f:
                self.assertEqual(f.read(), github_workflow.render_workflow(self.config))

    def test_create_ci_credentials(self):
        self.execute_mock.return_value = '{"clientId": "id", "clientSecret": "secret"}'

        self.assertEqual(
            github_workflow.create_ci_credentials(self.config), '{"clientId": "id", "clientSecret": "secret"}'
        )
        cmd_str = str(self.execute_mock.call_args[0][0])
        self.assertIn("ad sp create-for-rbac --name tandoor-app-github-deploy", cmd_str)
        self.assertIn("--role contributor", cmd_str)
        self.assertIn(f"--scopes /subscriptions/{SUBSCRIPTION_ID}/resourceGroups/{RESOURCE_GROUP}", cmd_str)
        self.assertIn("--json-auth", cmd_str)
