"""Error description mapping for failure reports and log events.

Converts exceptions raised while driving the target into a machine-readable
error code, a message and a recovery hint.
"""

from typing import Any, Dict

from tradekit.exceptions import (
    ConfigurationError,
    HarnessError,
    InteractionError,
    SessionError,
    ValidationError,
    WaitTimeoutError,
)


# Recovery hints for the error codes produced while driving the trader app
RECOVERY_STRATEGIES: Dict[str, str] = {
    # Waits and element lookup
    "WAIT_TIMEOUT": "The expected element did not appear in time. Check the target is healthy or raise --step-timeout.",
    "INTERACTION": "The element was missing or not interactable. The target markup may have changed.",

    # Transport
    "SESSION": "Could not reach the target. Verify --target-url, TLS settings and network connectivity.",

    # Journey stages
    "STAGE_FAILURE": "Inspect the wrapped cause; the stage name shows how far the journey progressed.",
    "RUN_CANCELLED": "The run was interrupted before this instance finished.",

    # Configuration errors
    "CONFIGURATION": "Review the run options; instances, batch size and timeouts must be positive.",
}


def get_error_code(error: BaseException) -> str:
    """Extract error code from exception class name.

    Converts class names like WaitTimeoutError to WAIT_TIMEOUT.
    """
    name = error.__class__.__name__
    # Remove 'Error' suffix
    if name.endswith("Error"):
        name = name[:-5]
    # Convert CamelCase to UPPER_SNAKE_CASE
    result = []
    for i, char in enumerate(name):
        if char.isupper() and i > 0:
            result.append("_")
        result.append(char.upper())
    return "".join(result)


def get_recovery_strategy(error_code: str, error: BaseException) -> str:
    """Get recovery strategy for an error.

    Returns specific strategy if available, otherwise a generic one.
    """
    if error_code in RECOVERY_STRATEGIES:
        return RECOVERY_STRATEGIES[error_code]

    # Generic strategies based on error type
    if isinstance(error, WaitTimeoutError):
        return RECOVERY_STRATEGIES["WAIT_TIMEOUT"]
    elif isinstance(error, InteractionError):
        return RECOVERY_STRATEGIES["INTERACTION"]
    elif isinstance(error, SessionError):
        return RECOVERY_STRATEGIES["SESSION"]
    elif isinstance(error, ConfigurationError):
        return RECOVERY_STRATEGIES["CONFIGURATION"]
    elif isinstance(error, ValidationError):
        return "Review the validation error details and correct the input."

    return "Unexpected error. Re-run with a single instance and inspect the logs."


def describe_error(error: BaseException) -> Dict[str, Any]:
    """Build a structured description of an error.

    Args:
        error: The exception to describe

    Returns:
        Dictionary with error_code, message, details and recovery keys
    """
    error_code = get_error_code(error)

    details: Dict[str, Any] = {}
    if isinstance(error, HarnessError) and error.details:
        details = dict(error.details)

    return {
        "error_code": error_code,
        "message": str(error) or type(error).__name__,
        "details": details,
        "recovery": get_recovery_strategy(error_code, error),
    }
