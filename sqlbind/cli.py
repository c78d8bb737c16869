import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from click import Group

__all__ = ("get_sqlbind_group", "main")


def _split_assignment(value: str, option: str) -> "tuple[str, str]":
    key, separator, text = value.partition("=")
    if not separator or not key:
        msg = f"{option} expects KEY=VALUE, got {value!r}"
        raise ValueError(msg)
    return key, text


def get_sqlbind_group() -> "Group":
    """Get the sqlbind CLI group.

    Raises:
        MissingDependencyError: If the `click` package is not installed.

    Returns:
        The sqlbind CLI group.
    """
    from sqlbind.exceptions import MissingDependencyError

    try:
        import rich_click as click
    except ImportError:
        try:
            import click  # type: ignore[no-redef]
        except ImportError as e:
            raise MissingDependencyError(package="click", install_package="cli") from e

    from rich import get_console
    from rich.table import Table

    from sqlbind.core.parameters import ParameterStyle, rewrite_placeholders, substitute_literals
    from sqlbind.core.values import TypedValue
    from sqlbind.exceptions import SQLBindError
    from sqlbind.loader import load_catalog
    from sqlbind.utils.logging import configure_logging

    console = get_console()

    catalog_argument = click.argument("catalog", type=click.Path(exists=True, dir_okay=False, path_type=Path))

    def _load(catalog: Path) -> Any:
        try:
            return load_catalog(catalog)
        except SQLBindError as e:
            console.print(f"[red]{e}[/]")
            raise SystemExit(1) from e

    @click.group(name="sqlbind")
    @click.option(
        "--log-level",
        type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
        default=None,
        help="Log sqlbind activity to stderr at this level.",
    )
    @click.option(
        "--log-format",
        type=click.Choice(["structured", "simple"]),
        default="simple",
        show_default=True,
        help="JSON lines or plain text log records.",
    )
    def sqlbind_group(log_level: "Optional[str]", log_format: str) -> None:
        """Inspect statement catalogs."""
        if log_level is not None:
            configure_logging(level=log_level, format_style=log_format, stream=sys.stderr)

    @sqlbind_group.command(name="list", help="List the statements of a catalog.")
    @catalog_argument
    def list_statements(catalog: Path) -> None:  # pyright: ignore[reportUnusedFunction]
        """List the statements of a catalog."""
        parsed = _load(catalog)
        table = Table(title=str(catalog))
        table.add_column("Statement", style="cyan", no_wrap=True)
        table.add_column("Datasource", style="magenta")
        table.add_column("SQL")
        for statement_id in sorted(parsed.statements):
            info = parsed.statements[statement_id]
            table.add_row(statement_id, info.datasource or "-", info.sql)
        console.print(table)
        if not parsed.statements:
            console.rule("[yellow]No statements found[/]", align="left")

    @sqlbind_group.command(name="show", help="Show the rewritten SQL and parameters of a statement.")
    @catalog_argument
    @click.argument("statement_id", type=str)
    @click.option("--literal", "literals", multiple=True, help="Literal fragment as TOKEN=TEXT.")
    @click.option(
        "--bind", "binds", multiple=True, help="Bound value as NAME=VALUE; repeat a name to bind a sequence."
    )
    @click.option(
        "--style",
        type=click.Choice([style.value for style in ParameterStyle]),
        default=ParameterStyle.QMARK.value,
        show_default=True,
        help="Positional marker style.",
    )
    def show_statement(  # pyright: ignore[reportUnusedFunction]
        catalog: Path, statement_id: str, literals: "tuple[str, ...]", binds: "tuple[str, ...]", style: str
    ) -> None:
        """Show the rewritten SQL and parameters of a statement."""
        parsed = _load(catalog)
        info = parsed.statements.get(statement_id)
        if info is None:
            console.print(f"[red]Statement '{statement_id}' not found in {catalog}[/]")
            raise SystemExit(1)

        try:
            literal_map = dict(_split_assignment(item, "--literal") for item in literals)
            grouped: dict[str, list[TypedValue]] = {}
            for item in binds:
                name, text = _split_assignment(item, "--bind")
                grouped.setdefault(name, []).append(TypedValue.of_string(text))
        except ValueError as e:
            console.print(f"[red]{e}[/]")
            raise SystemExit(2) from e
        bindings: dict[str, Any] = {
            name: tuple(values) if len(values) > 1 else values[0] for name, values in grouped.items()
        }

        text = substitute_literals(info.sql, literal_map)
        rewritten = rewrite_placeholders(
            text, bindings, style=ParameterStyle(style), require_bindings=False, statement_id=statement_id
        )
        console.rule(f"[yellow]{statement_id}[/]", align="left")
        console.print(rewritten.sql, markup=False, highlight=False)
        table = Table()
        table.add_column("#", justify="right")
        table.add_column("Variable", style="cyan")
        table.add_column("Value")
        position = 0
        for name in rewritten.names:
            binding = bindings.get(name)
            values = binding if isinstance(binding, tuple) else (binding,)
            for value in values:
                position += 1
                table.add_row(str(position), name, _describe(value))
        console.print(table)

    return sqlbind_group


def _describe(value: "Any") -> str:
    if value is None:
        return "<unbound>"
    return repr(value.to_parameter())


def main() -> None:
    """Run the sqlbind CLI."""
    get_sqlbind_group()()
