from __future__ import annotations

import importlib
import json
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console
from rich.table import Table

from spectype.config import get_settings
from spectype.observability import setup_logging
from spectype.openapi.projector import generate_openapi, openapi_path
from spectype.openapi.service import swagger_html
from spectype.routing.table import RouteTable
from spectype.store.doc_cache import SQLiteDocumentCache
from spectype.types.introspect import AnnotationSignatureSource, SignatureSource

app = typer.Typer(no_args_is_help=True, add_completion=False)

cache_app = typer.Typer(no_args_is_help=True)
app.add_typer(cache_app, name="cache")

console = Console()
err_console = Console(stderr=True)


@app.callback()
def main_callback(
    log_level: Optional[str] = typer.Option(None, help="Log level (default: SPECTYPE_LOG_LEVEL)"),
) -> None:
    settings = get_settings()
    setup_logging(level=log_level or settings.log_level, fmt=settings.log_format)


def _load_attr(target: str) -> tuple[Any, Any]:
    module_name, sep, attr = target.partition(":")
    if not sep or not module_name or not attr:
        raise typer.BadParameter(f"expected module:attribute, got {target!r}")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise typer.BadParameter(f"cannot import {module_name}: {exc}") from exc
    try:
        return getattr(module, attr), module
    except AttributeError:
        raise typer.BadParameter(f"{module_name} has no attribute {attr!r}") from None


def _load_routes(target: str) -> tuple[RouteTable, SignatureSource]:
    routes, module = _load_attr(target)
    if not isinstance(routes, RouteTable):
        raise typer.BadParameter(f"{target} is not a RouteTable")
    # reuse the module's own source so its registry is shared with its dispatcher
    source = getattr(module, "source", None)
    if source is None or not hasattr(source, "lookup_signature"):
        source = AnnotationSignatureSource()
    return routes, source


def _write_or_print(text: str, out: Optional[str], what: str) -> None:
    if out:
        out_path = Path(out).expanduser()
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(text, encoding="utf-8")
        err_console.print(f"[bold green]Wrote[/bold green] {what} to: {out_path}")
    else:
        console.print(text, markup=False, highlight=False, soft_wrap=True)


@app.command()
def openapi(
    target: str = typer.Argument(..., help="RouteTable to document, as module:attribute"),
    title: str = typer.Option("API", help="info.title"),
    version: str = typer.Option("1.0.0", help="info.version"),
    out: Optional[str] = typer.Option(None, help="Output path (default: print to stdout)"),
    indent: int = typer.Option(2, help="JSON indentation"),
) -> None:
    """Generate the OpenAPI document for a route table."""
    routes, source = _load_routes(target)
    result = generate_openapi(routes, source, {"title": title, "version": version})

    if not result.ok:
        table = Table(show_header=True, header_style="bold red")
        table.add_column("METHOD", no_wrap=True)
        table.add_column("PATH")
        table.add_column("ERROR")
        for e in result.errors:
            table.add_row(e.method, e.path, e.message)
        err_console.print(table)
        raise typer.Exit(code=1)

    _write_or_print(json.dumps(result.document, indent=indent or None), out, "OpenAPI document")


@app.command()
def routes(
    target: str = typer.Argument(..., help="RouteTable to list, as module:attribute"),
    format: str = typer.Option("table", help="Output format: table|json"),
) -> None:
    """List routes and whether each one is documented."""
    table_routes, source = _load_routes(target)

    rows = []
    for ep in table_routes:
        documented = source.lookup_signature(ep.handler, ep.action) is not None
        rows.append(
            {
                "method": ep.method,
                "path": openapi_path(ep.path),
                "handler": ep.handler_name,
                "action": ep.action,
                "documented": documented,
            }
        )

    if format.lower() == "json":
        console.print(json.dumps(rows, indent=2), markup=False, highlight=False, soft_wrap=True)
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("METHOD", no_wrap=True)
    table.add_column("PATH")
    table.add_column("HANDLER")
    table.add_column("DOCUMENTED", no_wrap=True)
    for r in rows:
        table.add_row(r["method"], r["path"], f"{r['handler']}.{r['action']}", "yes" if r["documented"] else "no")
    console.print(table)


@app.command()
def swagger(
    openapi_url: Optional[str] = typer.Option(None, help="URL of the JSON document (default: SPECTYPE_OPENAPI_URL)"),
    out: Optional[str] = typer.Option(None, help="Output path (default: print to stdout)"),
) -> None:
    """Render the Swagger UI page."""
    _write_or_print(swagger_html(openapi_url or get_settings().openapi_url), out, "Swagger UI")


@cache_app.command("clear")
def cache_clear(
    key: str = typer.Argument(..., help="Document cache key to erase"),
    db: Optional[str] = typer.Option(None, help="Cache database (default: SPECTYPE_CACHE_DB_PATH)"),
) -> None:
    db_path = Path(db).expanduser() if db else get_settings().cache_db_path
    if db_path is None:
        raise typer.BadParameter("no cache database: pass --db or set SPECTYPE_CACHE_DB_PATH")
    cache = SQLiteDocumentCache(db_path)
    cache.erase(key)
    console.print(f"Erased [bold]{key}[/bold] from {db_path}")


@cache_app.command("list")
def cache_list(
    db: Optional[str] = typer.Option(None, help="Cache database (default: SPECTYPE_CACHE_DB_PATH)"),
) -> None:
    db_path = Path(db).expanduser() if db else get_settings().cache_db_path
    if db_path is None:
        raise typer.BadParameter("no cache database: pass --db or set SPECTYPE_CACHE_DB_PATH")
    for key in SQLiteDocumentCache(db_path).list_keys():
        console.print(key, markup=False)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
