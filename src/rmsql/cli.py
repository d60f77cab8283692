from __future__ import annotations

import json
import logging
from typing import Optional

import click
from tabulate import tabulate

import rmsqllib.clients as clients
from rmsqllib.config import (
    DEFAULT_HOST,
    DEFAULT_PORT,
    ConnectionConfig,
    ConnectionStore,
    cache_dir,
    config_dir,
    is_running_as_root,
)
from rmsqllib.errors import (
    BackendError,
    ConfigError,
    PersistenceError,
    format_config_error,
    format_error_message,
    suggest_troubleshooting_steps,
)
from rmsqllib.history import HistoryStore


def resolve_cli_connection(
    host: str,
    port: int,
    username: Optional[str],
    password: Optional[str],
    database: Optional[str],
) -> Optional[ConnectionConfig]:
    """Build a connection from command-line flags, or None if none were given."""
    if host == DEFAULT_HOST and port == DEFAULT_PORT and username is None and password is None:
        return None
    if username is None:
        if not is_running_as_root():
            raise ConfigError("Username is required")
        username = "root"
    return ConnectionConfig(
        name="Command Line",
        host=host,
        port=port,
        username=username,
        password=password or "",
        default_database=database,
    )


def open_history() -> HistoryStore:
    try:
        return HistoryStore.load()
    except PersistenceError as e:
        click.echo(f"Warning: {e}; starting with empty history", err=True)
        return HistoryStore(config_dir() / "user_config.json", cache_dir() / "sql_history.json")


def _fail(ctx: click.Context, operation: str, error: Exception, context: Optional[dict] = None) -> None:
    click.echo(format_error_message(operation, error, context), err=True)
    if ctx.obj.get("verbose"):
        suggestions = suggest_troubleshooting_steps(operation, error)
        if suggestions:
            click.echo("\nTroubleshooting suggestions:", err=True)
            for suggestion in suggestions[:3]:  # Show top 3 suggestions
                click.echo(f"  • {suggestion}", err=True)
    raise SystemExit(2)


def _connection_for_command(ctx: click.Context) -> ConnectionConfig:
    """Connection for scriptable commands: flags first, then the last used one."""
    log = logging.getLogger("rmsql.connections")
    try:
        conn = resolve_cli_connection(**ctx.obj["connection"])
        if conn is None:
            store = ConnectionStore.load()
            conn = store.get_last_used()
            if conn is None:
                raise ConfigError("No saved connection has been used yet")
            log.info("Using last used connection '%s'", conn.name)
    except ConfigError as e:
        click.echo(format_config_error(e), err=True)
        raise SystemExit(2)
    return conn.expanded()


@click.group(
    invoke_without_command=True,
    context_settings={"help_option_names": ["--help"]},
)
@click.option("-h", "--host", default=DEFAULT_HOST, show_default=True, help="MySQL host")
@click.option("-P", "--port", default=DEFAULT_PORT, show_default=True, type=int, help="MySQL port")
@click.option("-u", "--username", default=None, help="MySQL username (default: root when running with sudo)")
@click.option("-p", "--password", default=None, help="MySQL password")
@click.option("-d", "--database", default=None, help="Initial database to open")
@click.option(
    "--json-output",
    "json_output",
    is_flag=True,
    help="Output JSON instead of tables (pretty-printed)",
)
@click.option(
    "-v",
    "--verbose",
    is_flag=True,
    help="Enable verbose logging to stderr (what the CLI is doing)",
)
@click.pass_context
def cli(
    ctx: click.Context,
    host: str,
    port: int,
    username: Optional[str],
    password: Optional[str],
    database: Optional[str],
    json_output: bool,
    verbose: bool,
) -> None:
    """A vim-inspired MySQL client.

    Without a command the full-screen browser starts. When no connection flags
    are given a picker over saved connections is shown first.
    """
    ctx.ensure_object(dict)
    ctx.obj["json"] = json_output
    ctx.obj["verbose"] = verbose
    ctx.obj["connection"] = {
        "host": host,
        "port": port,
        "username": username,
        "password": password,
        "database": database,
    }

    # Configure logging once per process
    level = logging.INFO if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    logging.getLogger("pymysql").setLevel(logging.WARNING)

    if ctx.invoked_subcommand is None:
        launch_tui(ctx)


def launch_tui(ctx: click.Context) -> None:
    # imported here so scriptable commands never load Textual
    from rmsqltui.app import configure_tui_logging, pick_connection, run_tui
    from rmsqltui.controller import Controller

    try:
        conn = resolve_cli_connection(**ctx.obj["connection"])
        if conn is None:
            conn = pick_connection(ConnectionStore.load())
            if conn is None:
                return  # user quit the picker
    except ConfigError as e:
        click.echo(format_config_error(e), err=True)
        raise SystemExit(2)
    conn = conn.expanded()

    configure_tui_logging()
    history_store = open_history()
    initial_database = ctx.obj["connection"]["database"] or conn.default_database

    with clients.MySQLAdapter(conn) as adapter:
        try:
            adapter.ping()
            controller = Controller(adapter, history_store, conn.id)
            controller.start(initial_database)
        except BackendError as e:
            _fail(ctx, "connect", e, {"host": f"{conn.host}:{conn.port}"})
        code = run_tui(controller)
    if code:
        raise SystemExit(code)


def main() -> None:  # entry point
    cli(standalone_mode=True)


# DB commands


@cli.group()
@click.pass_context
def db(ctx: click.Context) -> None:  # noqa: D401
    """Database commands."""
    pass


@db.command("list")
@click.pass_context
def db_list(ctx: click.Context) -> None:
    """List user databases on the server."""
    log = logging.getLogger("rmsql.db")
    conn = _connection_for_command(ctx)
    try:
        with clients.MySQLAdapter(conn) as adapter:
            databases = adapter.list_databases()
        log.info("Found %d databases", len(databases))
    except BackendError as e:
        _fail(ctx, "list databases", e, {"host": f"{conn.host}:{conn.port}"})

    if ctx.obj.get("json"):
        click.echo(json.dumps({"databases": databases}, indent=2, sort_keys=True))
        return

    if not databases:
        click.echo("No databases found")
        return
    click.echo(tabulate([[name] for name in databases], headers=["DATABASE"]))


# TABLES commands


@cli.group()
@click.pass_context
def tables(ctx: click.Context) -> None:  # noqa: D401
    """Table-related commands."""
    pass


@tables.command("list")
@click.option("--db", "database", required=True, help="Database name")
@click.pass_context
def tables_list(ctx: click.Context, database: str) -> None:
    """List tables in a database."""
    log = logging.getLogger("rmsql.tables")
    conn = _connection_for_command(ctx)
    try:
        with clients.MySQLAdapter(conn) as adapter:
            names = adapter.list_tables(database)
        log.info("Found %d tables in '%s'", len(names), database)
    except BackendError as e:
        _fail(ctx, "list tables", e, {"database": database})

    if ctx.obj.get("json"):
        click.echo(json.dumps({"database": database, "tables": names}, indent=2, sort_keys=True))
        return

    if not names:
        click.echo("No tables found")
        return
    click.echo(tabulate([[name] for name in names], headers=["TABLE"]))


@tables.command("show")
@click.argument("table")
@click.option("--db", "database", required=True, help="Database name")
@click.pass_context
def tables_show(ctx: click.Context, table: str, database: str) -> None:
    """Show the first rows of a table."""
    conn = _connection_for_command(ctx)
    try:
        with clients.MySQLAdapter(conn) as adapter:
            columns, rows = adapter.fetch_table_prefix(database, table)
    except BackendError as e:
        _fail(ctx, "show table", e, {"database": database, "table": table})

    if ctx.obj.get("json"):
        out = {"database": database, "table": table, "columns": columns, "rows": rows}
        click.echo(json.dumps(out, indent=2, sort_keys=True))
        return
    click.echo(tabulate(rows, headers=columns))


# SQL command


@cli.command("sql")
@click.argument("statement")
@click.option("--db", "database", default=None, help="Database to run the statement in")
@click.pass_context
def sql_command(ctx: click.Context, statement: str, database: Optional[str]) -> None:
    """Execute one SQL statement and record it in the history."""
    conn = _connection_for_command(ctx)
    database = database or ctx.obj["connection"]["database"] or conn.default_database

    # Reuse the editor's execution path so the history entry matches
    from rmsqltui.controller import Controller

    with clients.MySQLAdapter(conn) as adapter:
        controller = Controller(adapter, open_history(), conn.id)
        controller.state.current_database = database
        controller.execute_sql_query(statement.strip())
    result = controller.state.sql_result

    if ctx.obj.get("json"):
        out = {"columns": result.columns, "rows": result.rows, "message": result.message}
        click.echo(json.dumps(out, indent=2, sort_keys=True))
    else:
        if result.columns:
            click.echo(tabulate(result.rows, headers=result.columns))
        click.echo(result.message)

    if result.message.startswith("Error: "):
        raise SystemExit(2)


# HISTORY commands


@cli.group()
@click.pass_context
def history(ctx: click.Context) -> None:  # noqa: D401
    """SQL history commands."""
    pass


@history.command("list")
@click.option("--limit", default=20, show_default=True, type=int, help="Number of entries to show")
@click.pass_context
def history_list(ctx: click.Context, limit: int) -> None:
    """Show the most recent SQL statements, newest first."""
    store = open_history()
    entries = list(reversed(store.entries))[: max(0, limit)]

    if ctx.obj.get("json"):
        click.echo(json.dumps({"entries": [e.to_dict() for e in entries]}, indent=2, sort_keys=True))
        return

    if not entries:
        click.echo("No SQL history yet")
        return
    rows = [
        [
            e.to_dict()["timestamp"],
            e.database or "—",
            "ok" if e.success else "error",
            e.execution_time_ms if e.execution_time_ms is not None else "—",
            e.sql,
        ]
        for e in entries
    ]
    click.echo(tabulate(rows, headers=["TIMESTAMP", "DATABASE", "STATUS", "MS", "SQL"]))


@history.command("clear")
@click.pass_context
def history_clear(ctx: click.Context) -> None:
    """Delete all saved SQL history."""
    store = open_history()
    try:
        store.clear()
    except PersistenceError as e:
        click.echo(str(e), err=True)
        raise SystemExit(2)
    click.echo("SQL history cleared")


# CONNECTIONS commands


@cli.group()
@click.pass_context
def connections(ctx: click.Context) -> None:  # noqa: D401
    """Saved connection commands."""
    pass


def _load_store() -> ConnectionStore:
    try:
        return ConnectionStore.load()
    except ConfigError as e:
        click.echo(format_config_error(e), err=True)
        raise SystemExit(2)


@connections.command("list")
@click.pass_context
def connections_list(ctx: click.Context) -> None:
    """List saved connections."""
    store = _load_store()
    last_used = store.last_used
    saved = store.list()

    if ctx.obj.get("json"):
        out = {
            "connections": [
                {
                    "id": c.id,
                    "name": c.name,
                    "host": c.host,
                    "port": c.port,
                    "username": c.username,
                    "default_database": c.default_database,
                    "use_ssl": c.use_ssl,
                    "last_used": c.id == last_used,
                }
                for c in saved
            ]
        }
        click.echo(json.dumps(out, indent=2, sort_keys=True))
        return

    rows = [
        [c.id, c.name, c.display_target(), c.default_database or "—", "yes" if c.id == last_used else "—"]
        for c in saved
    ]
    click.echo(tabulate(rows, headers=["ID", "NAME", "TARGET", "DATABASE", "LAST USED"]))


@connections.command("add")
@click.option("--name", required=True, help="Display name")
@click.option("--host", default=DEFAULT_HOST, show_default=True)
@click.option("--port", default=DEFAULT_PORT, show_default=True, type=int)
@click.option("--username", required=True)
@click.option("--password", default="", help="Password; ${VAR} references are resolved when connecting")
@click.option("--database", "default_database", default=None, help="Database opened on connect")
@click.option("--no-ssl", "no_ssl", is_flag=True, help="Never negotiate SSL")
@click.pass_context
def connections_add(
    ctx: click.Context,
    name: str,
    host: str,
    port: int,
    username: str,
    password: str,
    default_database: Optional[str],
    no_ssl: bool,
) -> None:
    """Save a new connection."""
    store = _load_store()
    conn = ConnectionConfig(
        name=name,
        host=host,
        port=port,
        username=username,
        password=password,
        default_database=default_database,
        use_ssl=not no_ssl,
    )
    try:
        store.add(conn)
    except ConfigError as e:
        click.echo(format_config_error(e), err=True)
        raise SystemExit(2)
    click.echo(conn.id)


@connections.command("edit")
@click.argument("conn_id")
@click.option("--name", default=None, help="Display name")
@click.option("--host", default=None)
@click.option("--port", default=None, type=int)
@click.option("--username", default=None)
@click.option("--password", default=None, help="Password; ${VAR} references are resolved when connecting")
@click.option("--database", "default_database", default=None, help="Database opened on connect")
@click.option("--ssl/--no-ssl", "use_ssl", default=None, help="Negotiate SSL or never do")
@click.pass_context
def connections_edit(
    ctx: click.Context,
    conn_id: str,
    name: Optional[str],
    host: Optional[str],
    port: Optional[int],
    username: Optional[str],
    password: Optional[str],
    default_database: Optional[str],
    use_ssl: Optional[bool],
) -> None:
    """Change a saved connection; options left out keep their value."""
    changes = {
        field: value
        for field, value in (
            ("name", name),
            ("host", host),
            ("port", port),
            ("username", username),
            ("password", password),
            ("default_database", default_database),
            ("use_ssl", use_ssl),
        )
        if value is not None
    }
    store = _load_store()
    try:
        updated = store.update(conn_id, **changes)
    except ConfigError as e:
        click.echo(format_config_error(e), err=True)
        raise SystemExit(2)
    if updated is None:
        click.echo(f"Connection not found: {conn_id}", err=True)
        raise SystemExit(2)
    click.echo(f"Updated connection {conn_id}")


@connections.command("remove")
@click.argument("conn_id")
@click.pass_context
def connections_remove(ctx: click.Context, conn_id: str) -> None:
    """Delete a saved connection."""
    store = _load_store()
    try:
        removed = store.remove(conn_id)
    except ConfigError as e:
        click.echo(format_config_error(e), err=True)
        raise SystemExit(2)
    if not removed:
        click.echo(f"Connection not found: {conn_id}", err=True)
        raise SystemExit(2)
    click.echo(f"Removed connection {conn_id}")


if __name__ == "__main__":  # pragma: no cover
    main()
