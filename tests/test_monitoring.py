# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.

from unittest import TestCase
from unittest.mock import patch as mock_patch

from az_shared.errors import InputParamValidationError
from tandoor_azure_deploy import monitoring

from tests.test_data import APP_ID, INSTRUMENTATION_KEY, REGION, RESOURCE_GROUP, get_test_config

ACTION_GROUP_ID = f"/subscriptions/sub/resourceGroups/{RESOURCE_GROUP}/providers/microsoft.insights/actionGroups/tandoor-app-alerts"


class TestThresholds(TestCase):
    def test_cpu_threshold(self):
        self.assertEqual(monitoring.compute_cpu_threshold("0.5", 80), 400_000_000)
        self.assertEqual(monitoring.compute_cpu_threshold("2", 50), 1_000_000_000)

    def test_invalid_cpu(self):
        with self.assertRaises(InputParamValidationError):
            monitoring.compute_cpu_threshold("half", 80)

    def test_parse_memory_bytes(self):
        self.assertEqual(monitoring.parse_memory_bytes("1.0Gi"), 1024**3)
        self.assertEqual(monitoring.parse_memory_bytes("512Mi"), 512 * 1024**2)
        self.assertEqual(monitoring.parse_memory_bytes("2G"), 2 * 1000**3)

    def test_invalid_memory(self):
        with self.assertRaises(InputParamValidationError):
            monitoring.parse_memory_bytes("1 gigabyte")

    def test_memory_threshold(self):
        self.assertEqual(monitoring.compute_memory_threshold("1.0Gi", 80), 858_993_459)


class TestMonitoring(TestCase):
    def setUp(self) -> None:
        self.log_mock = self.patch("tandoor_azure_deploy.monitoring.log")
        self.execute_mock = self.patch("tandoor_azure_deploy.monitoring.execute")
        self.exists_mock = self.patch("tandoor_azure_deploy.monitoring.resource_exists")
        self.exists_mock.return_value = False

        self.config = get_test_config()

    def patch(self, path: str, **kwargs):
        """Helper method to patch and auto-cleanup"""
        patcher = mock_patch(path, **kwargs)
        self.addCleanup(patcher.stop)
        return patcher.start()

    def test_create_app_insights(self):
        self.execute_mock.return_value = f"{INSTRUMENTATION_KEY}\n"

        self.assertEqual(monitoring.create_app_insights(self.config), INSTRUMENTATION_KEY)
        cmd_str = str(self.execute_mock.call_args[0][0])
        self.assertIn("app-insights component create", cmd_str)
        self.assertIn(f"--location {REGION}", cmd_str)
        self.assertIn("--app tandoor-app-insights", cmd_str)
        self.assertIn("--query instrumentationKey", cmd_str)

    def test_create_app_insights_exists(self):
        self.exists_mock.return_value = True
        self.execute_mock.return_value = f"{INSTRUMENTATION_KEY}\n"

        self.assertEqual(monitoring.create_app_insights(self.config), INSTRUMENTATION_KEY)
        cmd_str = str(self.execute_mock.call_args[0][0])
        self.assertIn("app-insights component show", cmd_str)
        self.assertNotIn("create", cmd_str)

    def test_create_action_group_without_email(self):
        self.assertIsNone(monitoring.create_action_group(self.config))

        self.execute_mock.assert_not_called()

    def test_create_action_group(self):
        self.execute_mock.return_value = f"{ACTION_GROUP_ID}\n"
        config = get_test_config(alert_email="ops@example.com")

        self.assertEqual(monitoring.create_action_group(config), ACTION_GROUP_ID)
        cmd_str = str(self.execute_mock.call_args[0][0])
        self.assertIn("monitor action-group create", cmd_str)
        self.assertIn("--short-name tandoorapp", cmd_str)
        self.assertIn("--action email admin ops@example.com", cmd_str)

    def test_create_metric_alert(self):
        monitoring.create_metric_alert(
            self.config, "tandoor-app-high-cpu", "avg UsageNanoCores > 400000000", "CPU high", APP_ID, ACTION_GROUP_ID
        )

        cmd_str = str(self.execute_mock.call_args[0][0])
        self.assertIn("monitor metrics alert create", cmd_str)
        self.assertIn(f"--scopes {APP_ID}", cmd_str)
        self.assertIn("--condition 'avg UsageNanoCores > 400000000'", cmd_str)
        self.assertIn("--window-size 5m", cmd_str)
        self.assertIn("--evaluation-frequency 1m", cmd_str)
        self.assertIn(f"--action {ACTION_GROUP_ID}", cmd_str)

    def test_create_metric_alert_without_action_group(self):
        monitoring.create_metric_alert(self.config, "tandoor-app-high-cpu", "avg UsageNanoCores > 1", "CPU", APP_ID)

        self.assertNotIn("--action", str(self.execute_mock.call_args[0][0]))

    def test_create_metric_alert_exists(self):
        self.exists_mock.return_value = True

        monitoring.create_metric_alert(self.config, "tandoor-app-high-cpu", "avg UsageNanoCores > 1", "CPU", APP_ID)

        self.execute_mock.assert_not_called()

    def test_create_alerts(self):
        self.patch("tandoor_azure_deploy.monitoring.get_container_app_id", return_value=APP_ID)
        self.patch("tandoor_azure_deploy.monitoring.create_action_group", return_value=ACTION_GROUP_ID)
        alert_mock = self.patch("tandoor_azure_deploy.monitoring.create_metric_alert")

        monitoring.create_alerts(self.config)

        self.assertEqual(alert_mock.call_count, 2)
        cpu_call, memory_call = alert_mock.call_args_list
        self.assertEqual(cpu_call[0][1], "tandoor-app-high-cpu")
        self.assertEqual(cpu_call[0][2], "avg UsageNanoCores > 400000000")
        self.assertEqual(memory_call[0][1], "tandoor-app-high-memory")
        self.assertEqual(memory_call[0][2], "avg WorkingSetBytes > 858993459")
        for alert_call in (cpu_call, memory_call):
            self.assertEqual(alert_call[0][4], APP_ID)
            self.assertEqual(alert_call[0][5], ACTION_GROUP_ID)
