#!/usr/bin/env python3
"""
IEstagram - query layer command-line tool

Run builder queries against the configured backend from the shell.
"""
import sys
import argparse
import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from iestagram.client import Client, create_client
from iestagram.config import init_config
from iestagram.query import QueryBuilder, QueryResponse, SqlCompiler

logger = logging.getLogger(__name__)


console = Console()


def parse_assignment(s: str) -> Tuple[str, str]:
    """Split ``field=value``."""
    if "=" not in s:
        raise argparse.ArgumentTypeError(f"Expected field=value, got {s!r}")
    key, value = s.split("=", 1)
    return key.strip(), value


def parse_json_payload(s: str) -> Any:
    """Parse a JSON object (or list of objects) from the command line."""
    try:
        payload = json.loads(s)
    except json.JSONDecodeError as e:
        raise argparse.ArgumentTypeError(f"Invalid JSON: {e}")
    if not isinstance(payload, (dict, list)):
        raise argparse.ArgumentTypeError("Payload must be a JSON object or array")
    return payload


def apply_filters(builder: QueryBuilder, args) -> QueryBuilder:
    """Apply --eq/--neq/--in/--ilike/--or options to a builder."""
    for field, value in getattr(args, "eq", None) or []:
        builder.eq(field, value)
    for field, value in getattr(args, "neq", None) or []:
        builder.neq(field, value)
    for field, value in getattr(args, "in_", None) or []:
        builder.in_(field, [v.strip() for v in value.split(",") if v.strip()])
    for field, pattern in getattr(args, "ilike", None) or []:
        builder.ilike(field, pattern)
    for expr in getattr(args, "or_", None) or []:
        builder.or_(expr)
    return builder


def build_select(client: Client, args) -> QueryBuilder:
    """Translate query arguments into a builder."""
    builder = client.from_(args.table)
    builder.select(args.select, count="exact" if args.count else None)
    apply_filters(builder, args)

    if args.order:
        field, _, direction = args.order.partition(":")
        builder.order(field, ascending=direction.lower() != "desc")
    if args.limit is not None:
        builder.limit(args.limit)
    if args.single:
        builder.single()
    return builder


def run(builder: QueryBuilder) -> QueryResponse:
    """Force a builder from synchronous code."""
    return asyncio.run(builder.execute())


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    return str(value)


def output_response(response: QueryResponse, format: str = "table", title: Optional[str] = None):
    """Output a query response in the specified format."""
    if format == "json":
        print(json.dumps(response.to_dict(), indent=2, default=str))
        return

    if response.count is not None:
        console.print(f"[cyan]{response.count}[/cyan]")
        return

    rows: List[Dict[str, Any]]
    if response.data is None:
        rows = []
    elif isinstance(response.data, dict):
        rows = [response.data]
    else:
        rows = response.data

    if not rows:
        console.print("[yellow]No rows[/yellow]")
        return

    columns: List[str] = []
    for row in rows:
        for key in row:
            if key not in columns:
                columns.append(key)

    table = Table(title=title)
    for column in columns:
        table.add_column(column, style="cyan" if column == "id" else None)
    for row in rows:
        table.add_row(*[escape(_cell(row.get(c))[:60]) for c in columns])
    console.print(table)


def finish(response: QueryResponse, args, title: Optional[str] = None):
    """Print a response, or its error, and set the exit status."""
    if response.error is not None:
        console.print(f"[red]Error: {escape(str(response.error))}[/red]")
        sys.exit(1)
    output_response(response, args.output, title=title)


# =============================================================================
# Commands
# =============================================================================

def cmd_query(args):
    """Run a select or count query."""
    client = create_client(args.config_obj)
    builder = build_select(client, args)

    if args.explain:
        config = args.config_obj
        compiler = SqlCompiler(dialect=config.sql_dialect or "postgresql")
        stmt = compiler.compile(builder.spec)
        console.print(stmt.sql, soft_wrap=True, markup=False, highlight=False)
        console.print(f"[dim]params: {stmt.params}[/dim]")
        return

    finish(run(builder), args, title=args.table)


def cmd_insert(args):
    """Insert one or more rows."""
    client = create_client(args.config_obj)
    builder = client.from_(args.table).insert(args.payload)
    finish(run(builder), args, title=f"Inserted into {args.table}")


def cmd_update(args):
    """Update matching rows."""
    if not (args.eq or args.neq or args.in_ or args.ilike or args.or_) and not args.all:
        console.print("[red]Refusing to update every row; pass a filter or --all[/red]")
        sys.exit(1)
    client = create_client(args.config_obj)
    builder = apply_filters(client.from_(args.table).update(args.payload), args)
    finish(run(builder), args, title=f"Updated in {args.table}")


def cmd_delete(args):
    """Delete matching rows."""
    if not (args.eq or args.neq or args.in_ or args.ilike or args.or_) and not args.all:
        console.print("[red]Refusing to delete every row; pass a filter or --all[/red]")
        sys.exit(1)
    client = create_client(args.config_obj)
    builder = apply_filters(client.from_(args.table).delete(), args)
    finish(run(builder), args, title=f"Deleted from {args.table}")


def cmd_db(args):
    """Database management commands."""
    from iestagram.db import Database

    config = args.config_obj
    db = Database(url=config.get_database_url(), create=False, config=config)

    if args.db_command == "init":
        db.create_schema()
        console.print(f"[green]Schema ready at {db.url}[/green]")
    elif args.db_command == "info":
        client = create_client(config)
        table = Table(title="Tables")
        table.add_column("Table", style="cyan")
        table.add_column("Rows", style="magenta")
        for name in db.table_names():
            response = run(client.from_(name).select("*", count="exact", head=True))
            table.add_row(name, "?" if response.error else str(response.count))
        console.print(table)


# =============================================================================
# Argument parsing
# =============================================================================

def add_filter_arguments(parser: argparse.ArgumentParser):
    """Filter options shared by query, update and delete."""
    parser.add_argument("--eq", action="append", type=parse_assignment, metavar="FIELD=VALUE",
                        help="Field equals value")
    parser.add_argument("--neq", action="append", type=parse_assignment, metavar="FIELD=VALUE",
                        help="Field differs from value")
    parser.add_argument("--in", dest="in_", action="append", type=parse_assignment, metavar="FIELD=A,B",
                        help="Field is one of the comma-separated values")
    parser.add_argument("--ilike", action="append", type=parse_assignment, metavar="FIELD=PATTERN",
                        help="Case-insensitive LIKE pattern (%% and _ wildcards)")
    parser.add_argument("--or", dest="or_", action="append", metavar="EXPR",
                        help="Disjunction, e.g. 'email.eq.a@b.c,username.eq.alice'")


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="IEstagram query layer",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  iestagram db init
  iestagram query users --select "id, username" --ilike "username=%%ali%%"
  iestagram query posts --select "*, users:user_id(id, username)" --order created_at:desc --limit 10
  iestagram query follows --eq following_id=u1 --count
  iestagram query users --or "email.eq.a@b.c,username.eq.alice" --explain
  iestagram insert users '{"username": "alice"}'
  iestagram update posts '{"title": "New"}' --eq id=p1
  iestagram delete likes --eq user_id=u1 --eq post_id=p1

Configuration:
  Config file: ~/.config/iestagram/config.toml or ./iestagram.toml
  Environment: IESTAGRAM_DATABASE, IESTAGRAM_DATABASE_URL, IESTAGRAM_BACKEND
        """
    )

    parser.add_argument("--db", help="Database file (default: iestagram.db)")
    parser.add_argument("--config", help="Config file path")
    parser.add_argument("--backend", choices=["sql", "memory"], help="Query backend")
    parser.add_argument("-o", "--output", choices=["table", "json"], help="Output format")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True, help="Commands")

    q = subparsers.add_parser("query", help="Select rows or count them")
    q.add_argument("table", help="Table name")
    q.add_argument("--select", default="*", help="Projection (default: *)")
    add_filter_arguments(q)
    q.add_argument("--order", metavar="FIELD[:desc]", help="Order by a field")
    q.add_argument("--limit", type=int, help="Maximum rows")
    q.add_argument("--single", action="store_true", help="Return a single row")
    q.add_argument("--count", action="store_true", help="Only count matching rows")
    q.add_argument("--explain", action="store_true", help="Print the compiled SQL instead of running it")
    q.set_defaults(func=cmd_query)

    ins = subparsers.add_parser("insert", help="Insert rows")
    ins.add_argument("table", help="Table name")
    ins.add_argument("payload", type=parse_json_payload, help="JSON object or array of objects")
    ins.set_defaults(func=cmd_insert)

    upd = subparsers.add_parser("update", help="Update rows")
    upd.add_argument("table", help="Table name")
    upd.add_argument("payload", type=parse_json_payload, help="JSON object of new values")
    add_filter_arguments(upd)
    upd.add_argument("--all", action="store_true", help="Allow updating every row")
    upd.set_defaults(func=cmd_update)

    dele = subparsers.add_parser("delete", help="Delete rows")
    dele.add_argument("table", help="Table name")
    add_filter_arguments(dele)
    dele.add_argument("--all", action="store_true", help="Allow deleting every row")
    dele.set_defaults(func=cmd_delete)

    db_parser = subparsers.add_parser("db", help="Database management")
    db_subparsers = db_parser.add_subparsers(dest="db_command", required=True)
    db_subparsers.add_parser("init", help="Create the schema")
    db_subparsers.add_parser("info", help="Show row counts per table")
    db_parser.set_defaults(func=cmd_db)

    args = parser.parse_args()

    config_args = {}
    if args.output:
        config_args["output_format"] = args.output
    if args.backend:
        config_args["backend"] = args.backend
    if args.verbose:
        config_args["log_level"] = "DEBUG"

    config = init_config(
        database=args.db,
        config_file=Path(args.config) if args.config else None,
        **config_args
    )
    logging.basicConfig(level=getattr(logging, config.log_level.upper(), logging.WARNING))

    if not args.output:
        args.output = config.output_format
    args.config_obj = config

    try:
        args.func(args)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        sys.exit(130)
    except Exception as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
