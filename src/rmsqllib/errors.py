"""Error types and error-message helpers for rmsql."""

from __future__ import annotations

from typing import Any


class RmsqlError(RuntimeError):
    pass


class BackendError(RmsqlError):
    """Any failure reported by the database adapter."""


class PersistenceError(RmsqlError):
    """Reading or writing user config / SQL history failed."""


class ConfigError(RmsqlError):
    pass


def format_error_message(operation: str, error: Exception, context: dict[str, Any] | None = None) -> str:
    """Format a user-friendly error message based on the exception type and context."""
    error_str = str(error)
    lowered = error_str.lower()
    context = context or {}

    # Server unreachable
    if any(word in lowered for word in ["can't connect", "connection refused", "timed out", "timeout", "lost connection"]):
        host = context.get("host", "the MySQL server")
        return (
            f"Failed to connect to {host}. "
            f"Please check that MySQL is running and accessible. "
            f"Original error: {error_str}"
        )

    # Authentication errors
    if "access denied" in lowered or "authentication" in lowered:
        return (
            f"Authentication failed. Please check your username, password and grants. "
            f"Original error: {error_str}"
        )

    if "unknown database" in lowered:
        database = context.get("database", "database")
        return (
            f"Database '{database}' not found. "
            f"Use 'rmsql db list' to see available databases. "
            f"Original error: {error_str}"
        )

    if "doesn't exist" in lowered:
        table = context.get("table", "table")
        return (
            f"Table '{table}' not found. "
            f"Use 'rmsql tables list --db <database>' to see available tables. "
            f"Original error: {error_str}"
        )

    if "syntax" in lowered:
        return f"SQL syntax error. Original error: {error_str}"

    # Generic error with helpful context
    return f"Failed to {operation}: {error_str}"


def suggest_troubleshooting_steps(operation: str, error: Exception) -> list[str]:
    """Suggest troubleshooting steps based on the operation and error."""
    error_str = str(error).lower()
    suggestions = []

    if "can't connect" in error_str or "refused" in error_str or "timeout" in error_str:
        suggestions.extend([
            "Check that the MySQL service is running: systemctl status mysql",
            "Verify host and port: rmsql --host <host> --port <port>",
            "Try connecting without SSL: rmsql connections add --no-ssl ...",
        ])

    elif "access denied" in error_str:
        suggestions.extend([
            "Check the username and password of the connection",
            "Verify the account is allowed to connect from this host",
            "List saved connections: rmsql connections list",
        ])

    elif "unknown database" in error_str or "doesn't exist" in error_str:
        if "table" in operation.lower():
            suggestions.extend([
                "List available tables: rmsql tables list --db <database>",
                "Check the table name spelling",
            ])
        else:
            suggestions.extend([
                "List available databases: rmsql db list",
                "Check the database name spelling",
            ])

    if not suggestions:
        suggestions.extend([
            "Check the logs with -v/--verbose flag for more details",
            "Verify your connections file is correct",
        ])

    return suggestions


def format_config_error(error: Exception) -> str:
    """Format configuration-related error messages."""
    error_str = str(error)

    if "no saved connection" in error_str.lower():
        return (
            "No connection available. Please either:\n"
            "  • Pass --host/--username on the command line, or\n"
            "  • Save one with 'rmsql connections add --name ...'\n"
        )

    if "username is required" in error_str.lower():
        return f"{error_str}\nUse -u/--username or run as root."

    return f"Configuration error: {error_str}"
