"""Command line interface for xconf."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from xconf.config import COLLECTION_CONFIG_FILENAME, AppConfig, config_path_for
from xconf.dialect.parser import XConfParseError, parse_document
from xconf.dialect.serializer import XmlFormat
from xconf.document import ConfigDocument
from xconf.models import ACTION_INCLUDE
from xconf.storage.base import ResourceStore, StoreError
from xconf.storage.rest import RestResourceStore
from xconf.storage.sqlite import SQLiteResourceStore


console = Console()
app = typer.Typer(help="xconf - edit collection index and trigger configuration")

DbOption = typer.Option(None, "--db", help="SQLite resource database path")
ServerOption = typer.Option(None, "--server", help="REST base URL of a database server")
UserOption = typer.Option(None, "--user", "-u", help="Server user name")
PasswordOption = typer.Option(None, "--password", "-p", help="Server password")
VerboseOption = typer.Option(False, "--verbose", "-v", help="Verbose logging")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _ensure_db_parent(db_path: Path) -> None:
    db_path.parent.mkdir(parents=True, exist_ok=True)


def _open_store(
    db: Optional[Path],
    server: Optional[str],
    user: Optional[str] = None,
    password: Optional[str] = None,
) -> ResourceStore:
    config = AppConfig(
        db_path=db if db is not None else AppConfig().db_path,
        server_url=server,
        username=user,
        password=password,
    )
    if config.server_url:
        return RestResourceStore(
            config.server_url, username=config.username, password=config.password
        )

    resolved_db = config.resolve_db_path(Path.cwd())
    _ensure_db_parent(resolved_db)
    return SQLiteResourceStore(resolved_db)


def _load(
    store: ResourceStore, collection: str, config: Optional[AppConfig] = None
) -> ConfigDocument:
    fmt = XmlFormat(newline=(config or AppConfig()).newline)
    try:
        return ConfigDocument(collection, store, fmt=fmt, strict=True)
    except XConfParseError as exc:
        store.close()
        raise typer.BadParameter(f"Configuration of {collection} is unreadable: {exc}") from exc
    except StoreError as exc:
        store.close()
        raise typer.BadParameter(f"Unable to reach the store: {exc}") from exc


def _save(document: ConfigDocument) -> None:
    try:
        saved = document.save()
    finally:
        document.store.close()
    if not saved:
        console.print(f"[red]Failed to save configuration for {document.collection_name}.[/red]")
        raise typer.Exit(code=1)
    console.print(f"Saved [bold]{document.path}/{COLLECTION_CONFIG_FILENAME}[/bold]")


def _edit(
    collection: str,
    db: Optional[Path],
    server: Optional[str],
    user: Optional[str],
    password: Optional[str],
    verbose: bool,
    config: Optional[AppConfig] = None,
) -> ConfigDocument:
    _setup_logging(verbose)
    return _load(_open_store(db, server, user, password), collection, config)


def _bool_label(value: bool) -> str:
    return "[green]yes[/green]" if value else "[dim]no[/dim]"


def _print_document(document: ConfigDocument) -> None:
    console.print(f"Configuration for [bold]{document.collection_name}[/bold] ({document.path})")

    if document.has_fulltext_index():
        console.print(
            f"Full-text: default all {_bool_label(document.get_fulltext_default_all())}, "
            f"attributes {_bool_label(document.get_fulltext_attributes())}, "
            f"alphanum {_bool_label(document.get_fulltext_alphanum())}"
        )
    else:
        console.print("[yellow]No full-text index configured.[/yellow]")

    if document.get_fulltext_path_count():
        table = Table(title="Full-text paths", show_header=True, header_style="bold magenta")
        table.add_column("#")
        table.add_column("Action")
        table.add_column("Path")
        for i in range(document.get_fulltext_path_count()):
            table.add_row(str(i), document.get_fulltext_path_action(i), escape(document.get_fulltext_path(i)))
        console.print(table)

    if document.get_range_index_count() or document.get_qname_index_count():
        table = Table(title="Range indexes", show_header=True, header_style="bold magenta")
        table.add_column("#")
        table.add_column("Kind")
        table.add_column("Target")
        table.add_column("Type")
        for i, entry in enumerate(document.get_range_indexes()):
            table.add_row(str(i), "path", escape(entry.xpath), entry.scalar_type)
        for i, qname_entry in enumerate(document.get_qname_indexes()):
            table.add_row(str(i), "qname", escape(qname_entry.qname), qname_entry.scalar_type)
        console.print(table)
    else:
        console.print("[yellow]No range indexes configured.[/yellow]")

    if document.get_trigger_count():
        table = Table(title="Triggers", show_header=True, header_style="bold magenta")
        table.add_column("#")
        table.add_column("Event")
        table.add_column("Class")
        table.add_column("Parameters")
        for i, trigger in enumerate(document.get_triggers()):
            params = ", ".join(f"{k}={v}" for k, v in trigger.parameters.items())
            table.add_row(str(i), trigger.event, trigger.handler_class, escape(params))
        console.print(table)


def _parse_parameters(values: List[str]) -> dict[str, str]:
    parameters: dict[str, str] = {}
    for value in values:
        name, sep, param_value = value.partition("=")
        if not sep or not name:
            raise typer.BadParameter(f"Parameter must look like name=value: {value}")
        parameters[name] = param_value
    return parameters


@app.command()
def show(
    collection: str = typer.Argument(..., help="Collection path, e.g. /db/books"),
    db: Path = DbOption,
    server: Optional[str] = ServerOption,
    user: Optional[str] = UserOption,
    password: Optional[str] = PasswordOption,
    verbose: bool = VerboseOption,
) -> None:
    """Display the index and trigger configuration of a collection."""
    document = _edit(collection, db, server, user, password, verbose)
    document.store.close()
    _print_document(document)


@app.command()
def export(
    collection: str = typer.Argument(..., help="Collection path"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write to file instead of stdout"),
    crlf: bool = typer.Option(False, "--crlf", help="Use CRLF line endings"),
    db: Path = DbOption,
    server: Optional[str] = ServerOption,
    user: Optional[str] = UserOption,
    password: Optional[str] = PasswordOption,
) -> None:
    """Print the configuration in collection.xconf form."""
    config = AppConfig(newline="\r\n" if crlf else "\n")
    document = _edit(collection, db, server, user, password, False, config)
    document.store.close()
    xml = document.to_xml()
    if output is None:
        typer.echo(xml)
        return
    output.write_text(xml, encoding="utf-8", newline="")
    console.print(f"Wrote [bold]{output}[/bold]")


@app.command("import")
def import_config(
    collection: str = typer.Argument(..., help="Collection path"),
    source: Path = typer.Argument(..., exists=True, dir_okay=False, help="collection.xconf file"),
    db: Path = DbOption,
    server: Optional[str] = ServerOption,
    user: Optional[str] = UserOption,
    password: Optional[str] = PasswordOption,
) -> None:
    """Store a collection.xconf file as the configuration of a collection."""
    content = source.read_text(encoding="utf-8")
    result = parse_document(content)
    if result.error is not None:
        raise typer.BadParameter(str(result.error))

    store = _open_store(db, server, user, password)
    path = config_path_for(collection)
    try:
        target = store.get_collection(path) or store.create_collection(path)
        target.store_resource(COLLECTION_CONFIG_FILENAME, content)
    except StoreError as exc:
        console.print(f"[red]Import failed: {exc}[/red]")
        raise typer.Exit(code=1)
    finally:
        store.close()
    console.print(f"Imported {source} into [bold]{path}[/bold]")


@app.command()
def collections(
    db: Path = DbOption,
    server: Optional[str] = ServerOption,
    user: Optional[str] = UserOption,
    password: Optional[str] = PasswordOption,
) -> None:
    """List collections known to the store."""
    store = _open_store(db, server, user, password)
    try:
        paths = list(store.list_collections())
    except StoreError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)
    finally:
        store.close()

    if not paths:
        console.print("[yellow]No collections found.[/yellow]")
        return
    for path in paths:
        console.print(path)


@app.command("add-range")
def add_range(
    collection: str = typer.Argument(...),
    xpath: str = typer.Argument(..., help="Path to index"),
    scalar_type: str = typer.Argument(..., metavar="TYPE", help="XML Schema type, e.g. xs:string"),
    db: Path = DbOption,
    server: Optional[str] = ServerOption,
    user: Optional[str] = UserOption,
    password: Optional[str] = PasswordOption,
    verbose: bool = VerboseOption,
) -> None:
    """Add a range index on a path."""
    document = _edit(collection, db, server, user, password, verbose)
    document.add_range_index(xpath, scalar_type)
    _save(document)


@app.command("update-range")
def update_range(
    collection: str = typer.Argument(...),
    index: int = typer.Argument(..., help="Position as shown by 'show'"),
    xpath: Optional[str] = typer.Option(None, "--path", help="New path"),
    scalar_type: Optional[str] = typer.Option(None, "--type", help="New type"),
    db: Path = DbOption,
    server: Optional[str] = ServerOption,
    user: Optional[str] = UserOption,
    password: Optional[str] = PasswordOption,
    verbose: bool = VerboseOption,
) -> None:
    """Change the path or type of a range index."""
    document = _edit(collection, db, server, user, password, verbose)
    try:
        document.update_range_index(index, xpath, scalar_type)
    except IndexError as exc:
        document.store.close()
        raise typer.BadParameter(f"No range index at position {index}") from exc
    _save(document)


@app.command("delete-range")
def delete_range(
    collection: str = typer.Argument(...),
    index: int = typer.Argument(..., help="Position as shown by 'show'"),
    db: Path = DbOption,
    server: Optional[str] = ServerOption,
    user: Optional[str] = UserOption,
    password: Optional[str] = PasswordOption,
    verbose: bool = VerboseOption,
) -> None:
    """Remove a range index."""
    document = _edit(collection, db, server, user, password, verbose)
    document.delete_range_index(index)
    if not document.has_changed():
        document.store.close()
        console.print("[yellow]Nothing to delete.[/yellow]")
        return
    _save(document)


@app.command("add-qname")
def add_qname(
    collection: str = typer.Argument(...),
    qname: str = typer.Argument(..., help="Qualified element or attribute name"),
    scalar_type: str = typer.Argument(..., metavar="TYPE", help="XML Schema type"),
    db: Path = DbOption,
    server: Optional[str] = ServerOption,
    user: Optional[str] = UserOption,
    password: Optional[str] = PasswordOption,
    verbose: bool = VerboseOption,
) -> None:
    """Add a qname index."""
    document = _edit(collection, db, server, user, password, verbose)
    document.add_qname_index(qname, scalar_type)
    _save(document)


@app.command("update-qname")
def update_qname(
    collection: str = typer.Argument(...),
    index: int = typer.Argument(...),
    qname: Optional[str] = typer.Option(None, "--qname", help="New qualified name"),
    scalar_type: Optional[str] = typer.Option(None, "--type", help="New type"),
    db: Path = DbOption,
    server: Optional[str] = ServerOption,
    user: Optional[str] = UserOption,
    password: Optional[str] = PasswordOption,
    verbose: bool = VerboseOption,
) -> None:
    """Change the name or type of a qname index."""
    document = _edit(collection, db, server, user, password, verbose)
    try:
        document.update_qname_index(index, qname, scalar_type)
    except IndexError as exc:
        document.store.close()
        raise typer.BadParameter(f"No qname index at position {index}") from exc
    _save(document)


@app.command("delete-qname")
def delete_qname(
    collection: str = typer.Argument(...),
    index: int = typer.Argument(...),
    db: Path = DbOption,
    server: Optional[str] = ServerOption,
    user: Optional[str] = UserOption,
    password: Optional[str] = PasswordOption,
    verbose: bool = VerboseOption,
) -> None:
    """Remove a qname index."""
    document = _edit(collection, db, server, user, password, verbose)
    document.delete_qname_index(index)
    if not document.has_changed():
        document.store.close()
        console.print("[yellow]Nothing to delete.[/yellow]")
        return
    _save(document)


@app.command("add-path")
def add_path(
    collection: str = typer.Argument(...),
    xpath: str = typer.Argument(..., help="Path to include or exclude"),
    action: str = typer.Option(ACTION_INCLUDE, "--action", "-a", help="include or exclude"),
    db: Path = DbOption,
    server: Optional[str] = ServerOption,
    user: Optional[str] = UserOption,
    password: Optional[str] = PasswordOption,
    verbose: bool = VerboseOption,
) -> None:
    """Add an include/exclude path to the full-text index."""
    document = _edit(collection, db, server, user, password, verbose)
    try:
        document.add_fulltext_path(xpath, action)
    except ValueError as exc:
        document.store.close()
        raise typer.BadParameter(str(exc)) from exc
    _save(document)


@app.command("update-path")
def update_path(
    collection: str = typer.Argument(...),
    index: int = typer.Argument(...),
    xpath: Optional[str] = typer.Option(None, "--path", help="New path"),
    action: Optional[str] = typer.Option(None, "--action", "-a", help="include or exclude"),
    db: Path = DbOption,
    server: Optional[str] = ServerOption,
    user: Optional[str] = UserOption,
    password: Optional[str] = PasswordOption,
    verbose: bool = VerboseOption,
) -> None:
    """Change a full-text index path."""
    document = _edit(collection, db, server, user, password, verbose)
    try:
        document.update_fulltext_path(index, xpath, action)
    except (IndexError, ValueError) as exc:
        document.store.close()
        raise typer.BadParameter(str(exc)) from exc
    _save(document)


@app.command("delete-path")
def delete_path(
    collection: str = typer.Argument(...),
    index: int = typer.Argument(...),
    db: Path = DbOption,
    server: Optional[str] = ServerOption,
    user: Optional[str] = UserOption,
    password: Optional[str] = PasswordOption,
    verbose: bool = VerboseOption,
) -> None:
    """Remove a full-text index path."""
    document = _edit(collection, db, server, user, password, verbose)
    document.delete_fulltext_path(index)
    if not document.has_changed():
        document.store.close()
        console.print("[yellow]Nothing to delete.[/yellow]")
        return
    _save(document)


@app.command("set-fulltext")
def set_fulltext(
    collection: str = typer.Argument(...),
    default_all: Optional[bool] = typer.Option(
        None, "--default-all/--no-default-all", help="Index all nodes by default"
    ),
    attributes: Optional[bool] = typer.Option(
        None, "--attributes/--no-attributes", help="Index attribute values"
    ),
    alphanum: Optional[bool] = typer.Option(
        None, "--alphanum/--no-alphanum", help="Index alphanumeric values"
    ),
    db: Path = DbOption,
    server: Optional[str] = ServerOption,
    user: Optional[str] = UserOption,
    password: Optional[str] = PasswordOption,
    verbose: bool = VerboseOption,
) -> None:
    """Change the full-text index flags."""
    if default_all is None and attributes is None and alphanum is None:
        raise typer.BadParameter("Nothing to change, pass at least one flag")

    document = _edit(collection, db, server, user, password, verbose)
    if default_all is not None:
        document.set_fulltext_default_all(default_all)
    if attributes is not None:
        document.set_fulltext_attributes(attributes)
    if alphanum is not None:
        document.set_fulltext_alphanum(alphanum)
    _save(document)


@app.command("add-trigger")
def add_trigger(
    collection: str = typer.Argument(...),
    event: str = typer.Argument(..., help="Event name(s), e.g. store,update"),
    handler_class: str = typer.Argument(..., metavar="CLASS", help="Trigger class"),
    parameter: List[str] = typer.Option([], "--param", help="Parameter as name=value"),
    db: Path = DbOption,
    server: Optional[str] = ServerOption,
    user: Optional[str] = UserOption,
    password: Optional[str] = PasswordOption,
    verbose: bool = VerboseOption,
) -> None:
    """Declare a trigger."""
    parameters = _parse_parameters(parameter)
    document = _edit(collection, db, server, user, password, verbose)
    document.add_trigger(event, handler_class, parameters)
    _save(document)


@app.command("delete-trigger")
def delete_trigger(
    collection: str = typer.Argument(...),
    index: int = typer.Argument(...),
    db: Path = DbOption,
    server: Optional[str] = ServerOption,
    user: Optional[str] = UserOption,
    password: Optional[str] = PasswordOption,
    verbose: bool = VerboseOption,
) -> None:
    """Remove a trigger declaration."""
    document = _edit(collection, db, server, user, password, verbose)
    document.delete_trigger(index)
    if not document.has_changed():
        document.store.close()
        console.print("[yellow]Nothing to delete.[/yellow]")
        return
    _save(document)


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", help="Host interface"),
    port: int = typer.Option(8000, help="Server port"),
    db: Path = typer.Option(None, "--db", help="SQLite resource database path"),
) -> None:
    """Start the HTTP editing API."""
    try:
        import uvicorn
    except ImportError as exc:  # pragma: no cover - defensive
        raise typer.BadParameter(
            "uvicorn is not installed. Install the web extras with \"python -m pip install '.[web]'\""
        ) from exc

    from xconf.web.app import app as web_app

    config = AppConfig(db_path=db if db is not None else AppConfig().db_path)
    resolved_db = config.resolve_db_path(Path.cwd())

    console.print(f"Starting xconf API on http://{host}:{port} (database: {resolved_db})")
    web_app.state.db_path = resolved_db
    uvicorn.run(
        web_app,
        host=host,
        port=port,
        reload=False,
        log_level="info",
    )
