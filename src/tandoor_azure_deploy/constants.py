# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.

NIL_UUID = "00000000-0000-0000-0000-000000000000"
DEPLOYMENT_ID_LENGTH = 10

TANDOOR_IMAGE = "vabene1111/recipes:latest"
TANDOOR_PORT = 8080
AZURE_CLI_IMAGE = "mcr.microsoft.com/azure-cli:latest"

POSTGRES_PORT = "5432"
POSTGRES_DB_ENGINE = "django.db.backends.postgresql"
POSTGRES_HOST_SUFFIX = "postgres.database.azure.com"
POSTGRES_EXTENSIONS = ["pg_trgm", "unaccent"]
POSTGRES_READY_STATE = "Ready"
POSTGRES_READY_TIMEOUT = 900  # 15 minutes, server creation is slow
POSTGRES_POLL_INTERVAL = 15  # seconds

STORAGE_ACCOUNT_KEY_FULL_PERMISSIONS = "FULL"
STORAGE_READY_TIMEOUT = 60  # seconds
STORAGE_POLL_INTERVAL = 5  # seconds

# Container App secret names referenced via secretref:
SECRET_KEY_SECRET = "secret-key"
DB_PASSWORD_SECRET = "db-password"
STORAGE_KEY_SECRET = "storage-key"
BACKUP_SOURCE_KEY_SECRET = "source-key"
BACKUP_DEST_KEY_SECRET = "dest-key"

# Container Apps metric names used by the alert rules
CPU_METRIC = "UsageNanoCores"
MEMORY_METRIC = "WorkingSetBytes"
NANOCORES_PER_CORE = 1_000_000_000

REQUIRED_RESOURCE_PROVIDERS = [
    "Microsoft.App",  # Container Apps + Envs + Jobs
    "Microsoft.OperationalInsights",  # Log Analytics workspace behind the environment
    "Microsoft.DBforPostgreSQL",  # Flexible Server
    "Microsoft.Storage",  # Storage Accounts
    "Microsoft.Insights",  # Application Insights + metric alerts
]
RESOURCE_PROVIDER_REGISTERED_STATUS = "Registered"

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]
