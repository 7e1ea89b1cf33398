# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.

from unittest import TestCase

from tandoor_azure_deploy.app_settings import (
    CORE_ENV_VAR_NAMES,
    EXPECTED_ENV_VAR_NAMES,
    core_env_vars,
    core_secrets,
    format_pairs,
    storage_env_vars,
    storage_secrets,
    telemetry_env_vars,
)

from tests.test_data import DB_ADMIN_PASSWORD, INSTRUMENTATION_KEY, SECRET_KEY, STORAGE_KEY, get_test_config


class TestAppSettings(TestCase):
    def setUp(self) -> None:
        self.config = get_test_config()

    def test_core_env_vars(self):
        env_vars = core_env_vars(self.config)

        self.assertEqual(list(env_vars), CORE_ENV_VAR_NAMES)
        self.assertEqual(env_vars["DB_ENGINE"], "django.db.backends.postgresql")
        self.assertEqual(env_vars["POSTGRES_HOST"], self.config.db_host)
        self.assertEqual(env_vars["POSTGRES_PORT"], "5432")
        self.assertEqual(env_vars["POSTGRES_USER"], "tandooradmin")
        self.assertEqual(env_vars["POSTGRES_DB"], "tandoor")
        self.assertEqual(env_vars["DEBUG"], "0")
        self.assertEqual(env_vars["ALLOWED_HOSTS"], "*")
        self.assertEqual(env_vars["TZ"], "UTC")
        self.assertEqual(env_vars["ENABLE_SIGNUP"], "0")

    def test_core_env_vars_reference_secrets(self):
        env_vars = core_env_vars(self.config)

        self.assertEqual(env_vars["SECRET_KEY"], "secretref:secret-key")
        self.assertEqual(env_vars["POSTGRES_PASSWORD"], "secretref:db-password")
        self.assertNotIn(DB_ADMIN_PASSWORD, env_vars.values())
        self.assertNotIn(SECRET_KEY, env_vars.values())

    def test_boolean_flags(self):
        env_vars = core_env_vars(get_test_config(debug=True, enable_signup=True))

        self.assertEqual(env_vars["DEBUG"], "1")
        self.assertEqual(env_vars["ENABLE_SIGNUP"], "1")

    def test_core_secrets(self):
        self.assertEqual(core_secrets(self.config), {"secret-key": SECRET_KEY, "db-password": DB_ADMIN_PASSWORD})

    def test_storage_settings(self):
        self.assertEqual(storage_secrets(self.config), {"storage-key": STORAGE_KEY})
        self.assertEqual(
            storage_env_vars(self.config),
            {
                "AZURE_ACCOUNT_NAME": self.config.storage_account_name,
                "AZURE_ACCOUNT_KEY": "secretref:storage-key",
                "AZURE_CONTAINER": "mediafiles",
            },
        )

    def test_telemetry_env_vars(self):
        self.assertEqual(telemetry_env_vars(INSTRUMENTATION_KEY), {"APPINSIGHTS_INSTRUMENTATIONKEY": INSTRUMENTATION_KEY})

    def test_expected_names_cover_every_phase(self):
        names = set(core_env_vars(self.config)) | set(storage_env_vars(self.config)) | set(telemetry_env_vars("k"))

        self.assertEqual(names, EXPECTED_ENV_VAR_NAMES)
        self.assertEqual(len(EXPECTED_ENV_VAR_NAMES), 15)

    def test_format_pairs(self):
        self.assertEqual(format_pairs({"A": "1", "B": "x=y"}), ["A=1", "B=x=y"])
