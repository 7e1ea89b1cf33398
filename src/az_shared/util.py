# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.

import subprocess
import sys

AZ_VERS_TIMEOUT = 5  # seconds


def get_az_and_python_version(timeout: int = AZ_VERS_TIMEOUT) -> str:
    """
    Return the az and python versions on success, otherwise return a failure string.
    Appended to command errors so bug reports carry the toolchain versions.
    """
    python_version = sys.version_info
    python_result = f"python version: {python_version[0]}.{python_version[1]}.{python_version[2]}"
    try:
        res = subprocess.run(
            ["az", "version", "--output", "json"],
            check=True,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
        az_result = f"az version:\n{res.stdout.strip()}"
    except subprocess.TimeoutExpired:
        az_result = f"Could not retrieve 'az version': timeout after {timeout}s"
    except Exception as e:
        az_result = f"Could not retrieve 'az version': {e}"
    return f"\n{az_result}\n{python_result}"


def is_empty_or_whitespace(s: str) -> bool:
    """Check if a string is empty or contains only whitespace."""

    return not s or s.isspace()
