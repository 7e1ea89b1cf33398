# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.

from unittest import TestCase
from unittest.mock import patch as mock_patch

from az_shared.errors import InputParamValidationError, TimeoutError
from tandoor_azure_deploy import database

from tests.test_data import DB_ADMIN_PASSWORD, RESOURCE_GROUP, get_test_config


class TestDatabase(TestCase):
    def setUp(self) -> None:
        self.log_mock = self.patch("tandoor_azure_deploy.database.log")
        self.execute_mock = self.patch("tandoor_azure_deploy.database.execute")
        self.exists_mock = self.patch("tandoor_azure_deploy.database.resource_exists")
        self.time_mock = self.patch("tandoor_azure_deploy.database.time")
        self.sleep_mock = self.patch("tandoor_azure_deploy.database.sleep")
        self.exists_mock.return_value = False

        self.config = get_test_config()

    def patch(self, path: str, **kwargs):
        """Helper method to patch and auto-cleanup"""
        patcher = mock_patch(path, **kwargs)
        self.addCleanup(patcher.stop)
        return patcher.start()

    def executed_commands(self) -> list[str]:
        return [str(c[0][0]) for c in self.execute_mock.call_args_list]

    # ===== Server Tests ===== #

    def test_create_postgres_server(self):
        database.create_postgres_server(self.config)

        cmd = self.execute_mock.call_args[0][0]
        cmd_str = str(cmd)
        self.assertIn("postgres flexible-server create", cmd_str)
        self.assertIn(f"--name {self.config.db_server_name}", cmd_str)
        self.assertIn("--admin-user tandooradmin", cmd_str)
        self.assertIn("--sku-name Standard_B1ms", cmd_str)
        self.assertIn("--tier Burstable", cmd_str)
        self.assertIn("--version 16", cmd_str)
        self.assertIn("--yes", cmd_str)
        self.assertIn(f"'{DB_ADMIN_PASSWORD}'", cmd_str)
        self.assertNotIn(DB_ADMIN_PASSWORD, cmd.redacted())

    def test_create_postgres_server_exists(self):
        self.exists_mock.return_value = True

        database.create_postgres_server(self.config)

        self.execute_mock.assert_not_called()

    def test_wait_for_postgres_server_ready(self):
        self.time_mock.side_effect = [0, 1, 2]
        self.execute_mock.side_effect = ["Starting\n", "Ready\n"]

        database.wait_for_postgres_server_ready(self.config.db_server_name, RESOURCE_GROUP)

        self.assertEqual(self.execute_mock.call_count, 2)
        self.sleep_mock.assert_called_once_with(15)

    def test_wait_for_postgres_server_timeout(self):
        self.time_mock.side_effect = [0, 10, 1000]
        self.execute_mock.return_value = "Starting\n"

        with self.assertRaises(TimeoutError):
            database.wait_for_postgres_server_ready(self.config.db_server_name, RESOURCE_GROUP)

    # ===== Firewall, Extensions, Database Tests ===== #

    def test_firewall_allows_azure_services(self):
        database.create_firewall_rules(self.config)

        self.execute_mock.assert_called_once()
        cmd_str = self.executed_commands()[0]
        self.assertIn("firewall-rule create", cmd_str)
        self.assertIn("--rule-name AllowAzureServices", cmd_str)
        self.assertIn("--start-ip-address 0.0.0.0 --end-ip-address 0.0.0.0", cmd_str)

    def test_firewall_allows_client_ip(self):
        config = get_test_config(client_ip="203.0.113.7")

        database.create_firewall_rules(config)

        commands = self.executed_commands()
        self.assertEqual(len(commands), 2)
        self.assertIn("--rule-name AllowClientIP", commands[1])
        self.assertIn("--start-ip-address 203.0.113.7 --end-ip-address 203.0.113.7", commands[1])

    def test_allow_extensions(self):
        database.allow_extensions(self.config)

        cmd_str = self.executed_commands()[0]
        self.assertIn("flexible-server parameter set", cmd_str)
        self.assertIn("--name azure.extensions --value PG_TRGM,UNACCENT", cmd_str)

    def test_create_database(self):
        database.create_database(self.config)

        cmd_str = self.executed_commands()[0]
        self.assertIn("flexible-server db create", cmd_str)
        self.assertIn("--database-name tandoor", cmd_str)

    def test_create_database_exists(self):
        self.exists_mock.return_value = True

        database.create_database(self.config)

        self.execute_mock.assert_not_called()

    # ===== Schema Reset Tests ===== #

    def test_execute_sql(self):
        database.execute_sql(self.config, "CREATE SCHEMA public;")

        cmd = self.execute_mock.call_args[0][0]
        self.assertIn("--querytext 'CREATE SCHEMA public;'", str(cmd))
        self.assertNotIn(DB_ADMIN_PASSWORD, cmd.redacted())

    def test_run_migrations(self):
        database.run_migrations(self.config)

        cmd_str = self.executed_commands()[0]
        self.assertIn("containerapp exec --name tandoor-app", cmd_str)
        self.assertIn("--command 'python manage.py migrate'", cmd_str)

    def test_schema_reset_statements(self):
        statements = database.schema_reset_statements("tandooradmin")

        self.assertEqual(statements[0], "DROP SCHEMA public CASCADE;")
        self.assertEqual(statements[1], "CREATE SCHEMA public;")
        self.assertIn("GRANT ALL ON SCHEMA public TO tandooradmin;", statements)
        self.assertIn("GRANT ALL ON SCHEMA public TO public;", statements)

    def test_reset_requires_confirmation(self):
        with self.assertRaises(InputParamValidationError):
            database.reset_database_schema(self.config)

        self.execute_mock.assert_not_called()

    def test_reset_database_schema_order(self):
        database.reset_database_schema(self.config, confirm=True)

        commands = self.executed_commands()
        self.assertEqual(len(commands), 9)
        self.assertIn("'DROP SCHEMA public CASCADE;'", commands[0])
        self.assertIn("'CREATE SCHEMA public;'", commands[1])
        self.assertIn("containerapp exec", commands[5])
        self.assertIn("'CREATE EXTENSION IF NOT EXISTS pg_trgm;'", commands[6])
        self.assertIn("'CREATE EXTENSION IF NOT EXISTS unaccent;'", commands[7])
        self.assertIn("containerapp exec", commands[8])
