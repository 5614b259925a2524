"""Main entry point for the Key Vault lifecycle workflow.

This is the single top-level error boundary: every failure is logged here
and mapped to a process exit code.

Exit codes:
    0: workflow and cleanup succeeded
    1: configuration or resource-operation failure
    2: authentication failure
    3: workflow succeeded but resource-group cleanup failed
"""

from __future__ import annotations

import dataclasses
import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any

from .client import VaultResourceClient
from .config import Config, ConfigurationError
from .errors import AuthenticationError, WorkflowError
from .security import get_client_secret_credential, load_credentials
from .workflow import VaultWorkflow, WorkflowResult

EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_AUTHENTICATION_FAILURE = 2
EXIT_CLEANUP_FAILURE = 3

# LogRecord attributes that are not user-supplied extras
_RESERVED_RECORD_ATTRS = frozenset(
    (
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "taskName",
        "message",
    )
)


class JsonFormatter(logging.Formatter):
    """Format logs as JSON for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }

        # Add extra fields from the record
        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_ATTRS:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(level: int = logging.INFO) -> None:
    """Configure structured logging with JSON output to stdout."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    # Reduce noise from Azure SDK
    logging.getLogger("azure").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def exit_code_for(result: WorkflowResult) -> int:
    """Map a finished workflow to a process exit code."""
    if isinstance(result.error, AuthenticationError):
        return EXIT_AUTHENTICATION_FAILURE
    if result.error is not None:
        return EXIT_FAILURE
    if result.cleanup_error is not None:
        return EXIT_CLEANUP_FAILURE
    return EXIT_SUCCESS


def run_workflow(overrides: dict[str, Any] | None = None) -> WorkflowResult:
    """Authenticate, build the Resource Client and run the workflow.

    Args:
        overrides: Config fields replacing the values read from the environment.

    Raises:
        AuthenticationError: If credentials are missing or malformed. No
            Azure call has been made at that point.
        ConfigurationError: If the non-secret configuration is invalid.
    """
    credentials = load_credentials()
    config = Config.from_env()
    if overrides:
        config = dataclasses.replace(config, **overrides)

    credential = get_client_secret_credential(credentials)
    client = VaultResourceClient(credential, config)
    return VaultWorkflow(client, config).run()


def main(overrides: dict[str, Any] | None = None) -> int:
    """Run the workflow and return the process exit code."""
    logger = logging.getLogger(__name__)

    try:
        result = run_workflow(overrides)
    except AuthenticationError as e:
        logger.critical("Authentication failed", extra={"error": str(e)})
        logger.info("Did not create any resources in Azure. No clean up is necessary")
        return EXIT_AUTHENTICATION_FAILURE
    except ConfigurationError as e:
        logger.error("Configuration error", extra={"error": str(e)})
        return EXIT_FAILURE
    except WorkflowError as e:
        logger.error("Workflow failed", extra={"error": str(e), "error_type": type(e).__name__})
        return EXIT_FAILURE
    except Exception as e:
        logger.exception("Vault workflow failed unexpectedly", extra={"error": str(e)})
        return EXIT_FAILURE

    if result.error is not None:
        logger.error(
            "Vault workflow failed",
            extra={"error": str(result.error), "error_type": type(result.error).__name__},
        )
    if result.cleanup_error is not None:
        logger.error(
            "Resource group cleanup failed; resources may still be billed",
            extra={"error": str(result.cleanup_error), "secondary_failure": True},
        )

    return exit_code_for(result)


def run() -> None:
    """Entry point for the vault-workflow console script."""
    setup_logging()
    sys.exit(main())


if __name__ == "__main__":
    run()
