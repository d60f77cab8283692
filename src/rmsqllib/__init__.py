"""Core library for rmsql.

Contains connection configuration, the SQL history store and the MySQL adapter
shared by the CLI and the TUI.
"""

__all__ = [
    "clients",
    "config",
    "errors",
    "history",
]
