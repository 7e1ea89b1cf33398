# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.


def format_error_details(message: str) -> str:
    return f"\n\nError Details:\n{message}"


# Errors that prevent the deployment from completing successfully
class FatalError(Exception):
    """An error that prevents the deployment from completing successfully."""


class TimeoutError(FatalError):
    """Timeout occurred when waiting for a resource to be ready."""


class ExistenceCheckError(FatalError):
    """Error occurred while checking if a resource exists."""


class RefreshTokenError(FatalError):
    """Auth token has expired."""


# Expected Errors
class RateLimitExceededError(Exception):
    """We have exceeded the rate limit for the Azure API. Commands are retried until MAX_RETRIES are reached."""


class ResourceNotFoundError(Exception):
    """Azure resource was not found. This gets thrown during resource existence checks."""


# Errors users can resolve through manual action
class UserActionRequiredError(Exception):
    """An error that requires user action to resolve."""

    def __init__(self, message: str, user_action_message: str | None = None):
        super().__init__(message)
        self.user_action_message = user_action_message or message


class AzCliNotAuthenticatedError(UserActionRequiredError):
    """Azure CLI is not authenticated. User needs to run 'az login'."""

    def __init__(self, message: str = "Azure CLI is not authenticated"):
        super().__init__(
            message,
            user_action_message="Azure CLI is not authenticated. Please run 'az login' first and retry",
        )


class AccessError(UserActionRequiredError):
    """Not authorized to access the resource."""

    def __init__(self, message: str):
        user_action_message = "You don't have the necessary Azure permissions to create or modify a required resource."
        user_action_message += "\nThe deployment needs Contributor access on the target subscription or resource group."
        user_action_message += format_error_details(message)
        super().__init__(message, user_action_message)


class InputParamValidationError(UserActionRequiredError):
    """Validation error in user input parameters."""

    def __init__(self, message: str):
        user_action_message = "Invalid input parameter. Please check your input(s) and try again."
        user_action_message += format_error_details(message)
        super().__init__(message, user_action_message)


class ResourceProviderRegistrationValidationError(UserActionRequiredError):
    """Resource provider is not registered."""

    def __init__(self, message: str):
        user_action_message = "Deploying Tandoor requires the following Azure resource providers to be registered: Microsoft.App, Microsoft.OperationalInsights, Microsoft.DBforPostgreSQL, Microsoft.Storage, and Microsoft.Insights."
        user_action_message += "\nPlease register the missing resource providers in the Azure Portal or with 'az provider register'."
        user_action_message += format_error_details(message)
        super().__init__(message, user_action_message)


class ResourceNameAvailabilityError(UserActionRequiredError):
    """Resource name is not available."""

    def __init__(self, message: str):
        user_action_message = "Storage account and database server names must be globally unique across Azure."
        user_action_message += "\nPick a different name (or a different resource group/region, which changes the generated suffix) and retry."
        user_action_message += format_error_details(message)
        super().__init__(message, user_action_message)


class PolicyError(UserActionRequiredError):
    """The request was denied by an Azure Policy assignment."""

    def __init__(self, message: str):
        user_action_message = "An Azure Policy assignment blocked the creation of a resource."
        user_action_message += "\nAsk your Azure administrator for an exemption or adjust the deployment settings."
        user_action_message += format_error_details(message)
        super().__init__(message, user_action_message)


class DatabaseConnectionError(UserActionRequiredError):
    """The database server refused or could not accept a connection."""

    def __init__(self, message: str):
        user_action_message = "Could not connect to the PostgreSQL server."
        user_action_message += "\nCheck the server firewall rules (AllowAzureServices and your client IP) and the admin credentials."
        user_action_message += format_error_details(message)
        super().__init__(message, user_action_message)


class StorageAccessError(UserActionRequiredError):
    """Blob storage rejected the supplied account key."""

    def __init__(self, message: str):
        user_action_message = "Could not access the storage account."
        user_action_message += "\nVerify the storage account keys configured on the container app (AZURE_ACCOUNT_KEY) are current."
        user_action_message += format_error_details(message)
        super().__init__(message, user_action_message)


class ContainerResourceError(UserActionRequiredError):
    """The container app was restarted or rejected because of its resource allocation."""

    def __init__(self, message: str):
        user_action_message = "The container app ran out of its CPU or memory allocation."
        user_action_message += "\nIncrease --cpu/--memory (valid Container Apps pairs, e.g. 1.0/2.0Gi) and redeploy."
        user_action_message += format_error_details(message)
        super().__init__(message, user_action_message)
