"""Main CLI application."""

import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import click
from rich.console import Console
from rich.table import Table

from kimai import __version__
from kimai.cli.config_commands import config
from kimai.core.config import ConfigManager
from kimai.core.logging_setup import setup_logging
from kimai.core.models import Role, User
from kimai.core.security import hash_password
from kimai.core.storage import StorageManager
from kimai.plugin import MarketplaceClient
from kimai.utils.file_helper import FileHelper
from kimai.utils.xliff import (
    TranslationFile,
    find_duplicates,
    find_translation_files,
    lint_translations,
)

console = Console()
error_console = Console(stderr=True)

ERROR_CACHE_CLEAN = 2
ERROR_CACHE_WARMUP = 4
ERROR_LINT_CONFIG = 8
ERROR_LINT_TRANSLATIONS = 16

# locales whose empty translations are filled from another locale than english
FILL_FROM = {"de_CH": "de", "pt_BR": "pt", "pt": "pt_BR"}


def load_config(ctx: click.Context) -> ConfigManager:
    """Load the configuration selected with --config."""
    path = ctx.obj.get("config_path") if ctx.obj else None
    try:
        config_mgr = ConfigManager(Path(path) if path else None)
    except ValueError as e:
        error_console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)
    setup_logging(config_mgr)
    return config_mgr


def get_storage(ctx: click.Context, config_mgr: Optional[ConfigManager] = None) -> StorageManager:
    """Storage for --data-dir, falling back to general.data_dir."""
    data_dir = ctx.obj.get("data_dir") if ctx.obj else None
    if data_dir:
        return StorageManager(Path(data_dir))
    config_mgr = config_mgr or load_config(ctx)
    return StorageManager(config_mgr.get_path("general.data_dir"))


def find_user(storage: StorageManager, username: str) -> User:
    user = storage.get_user_by_username(username)
    if user is None:
        error_console.print(f"[red]Error:[/red] User {username} not found")
        sys.exit(1)
    return user


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "config_path", help="Path to config file", type=click.Path())
@click.option("--data-dir", help="Custom data directory", type=click.Path())
@click.option("--no-color", is_flag=True, help="Disable colored output")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[str], data_dir: Optional[str], no_color: bool) -> None:
    """Kimai - time tracking for teams.

    Maintenance commands, user management and the API server.
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["data_dir"] = data_dir

    if no_color:
        console.no_color = True


cli.add_command(config)


# API server


@cli.command()
@click.option("--host", default=None, help="Host address (default: from config)")
@click.option("--port", type=int, default=None, help="Port number (default: from config)")
@click.option("--reload", is_flag=True, help="Enable auto-reload for development")
@click.option("--ssl-cert", type=click.Path(exists=True), help="Path to SSL certificate file")
@click.option("--ssl-key", type=click.Path(exists=True), help="Path to SSL key file")
@click.pass_context
def serve(
    ctx: click.Context,
    host: Optional[str],
    port: Optional[int],
    reload: bool,
    ssl_cert: Optional[str],
    ssl_key: Optional[str],
) -> None:
    """Start the API server.

    Examples:
        kimai serve
        kimai serve --host 0.0.0.0 --port 8080
        kimai serve --ssl-cert cert.pem --ssl-key key.pem
    """
    from kimai.api.server import run_server

    config_mgr = load_config(ctx)

    if not config_mgr.get("api.enabled", False):
        error_console.print("[yellow]API is not enabled in configuration[/yellow]")
        console.print("\nTo enable the API, run:")
        console.print("  kimai config set api.enabled true")
        sys.exit(1)

    config_mgr.ensure_api_secret_key()

    final_host = host or config_mgr.get("api.host", "localhost")
    final_port = port or config_mgr.get("api.port", 8000)

    ssl_cert_path = None
    ssl_key_path = None
    if ssl_cert and ssl_key:
        ssl_cert_path = Path(ssl_cert)
        ssl_key_path = Path(ssl_key)
    elif config_mgr.get("api.ssl.enabled", False):
        cert_file = config_mgr.get("api.ssl.cert_file")
        key_file = config_mgr.get("api.ssl.key_file")
        if cert_file and key_file:
            ssl_cert_path = Path(cert_file)
            ssl_key_path = Path(key_file)

    protocol = "https" if ssl_cert_path and ssl_key_path else "http"
    console.print("Starting Kimai API server...")
    console.print(f"  URL: {protocol}://{final_host}:{final_port}")
    console.print(f"  Docs: {protocol}://{final_host}:{final_port}/docs")

    try:
        run_server(
            config=config_mgr,
            host=final_host,
            port=final_port,
            reload=reload,
            workers=config_mgr.get("api.workers", 1),
            ssl_certfile=ssl_cert_path,
            ssl_keyfile=ssl_key_path,
        )
    except KeyboardInterrupt:
        console.print("\nShutting down API server...")


@cli.group()
def token() -> None:
    """Manage API authentication tokens."""
    pass


@token.command("create")
@click.argument("username")
@click.pass_context
def token_create(ctx: click.Context, username: str) -> None:
    """Create a bearer token for USERNAME.

    Example:
        kimai token create susan_super
    """
    from kimai.api.auth import create_token_for_user

    config_mgr = load_config(ctx)
    user = find_user(get_storage(ctx, config_mgr), username)
    if not user.enabled:
        error_console.print(f"[red]Error:[/red] User {user.username} is disabled")
        sys.exit(1)

    token_data = create_token_for_user(config_mgr, user.username)
    hours = token_data["expires_in"] // 3600

    console.print("[green]✓[/green] Token created")
    console.print(f"Token: {token_data['access_token']}", soft_wrap=True)
    console.print(f"Expires in: {hours} hours")
    console.print(f"Use it as header: Authorization: Bearer {token_data['access_token']}", soft_wrap=True)


# users


@cli.group()
def user() -> None:
    """Manage user accounts."""
    pass


@user.command("create")
@click.argument("username")
@click.argument("email")
@click.option("--role", "roles", multiple=True, type=click.Choice([r.value for r in Role]), help="Role to assign")
@click.password_option(help="Password (prompted when omitted)")
@click.pass_context
def user_create(ctx: click.Context, username: str, email: str, roles: tuple[str, ...], password: str) -> None:
    """Create a new user.

    Example:
        kimai user create clara_customer clara@example.com --role ROLE_TEAMLEAD
    """
    storage = get_storage(ctx)
    if storage.get_user_by_username(username) or storage.get_user_by_username(email):
        error_console.print("[red]Error:[/red] The username or email is already used.")
        sys.exit(1)
    if len(password) < 8:
        error_console.print("[red]Error:[/red] The password must have at least 8 characters.")
        sys.exit(1)

    new_user = User(username=username, email=email, password_hash=hash_password(password))
    for role in roles:
        new_user.add_role(role)
    saved = storage.save_user(new_user)
    console.print(f"[green]✓[/green] Created user {saved.username} (id {saved.id})")


@user.command("list")
@click.pass_context
def user_list(ctx: click.Context) -> None:
    """List all users."""
    users = get_storage(ctx).load_users()
    if not users:
        console.print("[yellow]No users found[/yellow]")
        return

    table = Table(title="Users")
    table.add_column("ID", style="dim")
    table.add_column("Username", style="cyan")
    table.add_column("Email")
    table.add_column("Roles", style="magenta")
    table.add_column("Enabled", justify="center")
    for u in sorted(users, key=lambda u: u.username.lower()):
        table.add_row(
            str(u.id),
            u.username,
            u.email,
            ", ".join(u.get_roles()),
            "[green]✓[/green]" if u.enabled else "[red]✗[/red]",
        )
    console.print(table)


@user.command("promote")
@click.argument("username")
@click.argument("role", required=False, type=click.Choice([r.value for r in Role]))
@click.pass_context
def user_promote(ctx: click.Context, username: str, role: Optional[str]) -> None:
    """Add ROLE to a user; without ROLE the user becomes super admin."""
    storage = get_storage(ctx)
    target = find_user(storage, username)
    role = role or Role.SUPER_ADMIN.value
    if target.has_role(role):
        error_console.print(f'[red]Error:[/red] User "{username}" did already have "{role}" role.')
        sys.exit(1)
    target.add_role(role)
    storage.save_user(target)
    console.print(f'[green]✓[/green] Role "{role}" has been added to user "{username}".')


@user.command("demote")
@click.argument("username")
@click.argument("role", required=False, type=click.Choice([r.value for r in Role]))
@click.pass_context
def user_demote(ctx: click.Context, username: str, role: Optional[str]) -> None:
    """Remove ROLE from a user; without ROLE super admin is removed."""
    storage = get_storage(ctx)
    target = find_user(storage, username)
    role = role or Role.SUPER_ADMIN.value
    if role not in target.roles:
        error_console.print(f'[red]Error:[/red] User "{username}" didn\'t have "{role}" role.')
        sys.exit(1)
    target.remove_role(role)
    storage.save_user(target)
    console.print(f'[green]✓[/green] Role "{role}" has been removed from user "{username}".')


def _set_enabled(ctx: click.Context, username: str, enabled: bool) -> None:
    storage = get_storage(ctx)
    target = find_user(storage, username)
    target.enabled = enabled
    storage.save_user(target)
    state = "enabled" if enabled else "disabled"
    console.print(f"[green]✓[/green] User {username} has been {state}.")


@user.command("enable")
@click.argument("username")
@click.pass_context
def user_enable(ctx: click.Context, username: str) -> None:
    """Allow a user to log in again."""
    _set_enabled(ctx, username, True)


@user.command("disable")
@click.argument("username")
@click.pass_context
def user_disable(ctx: click.Context, username: str) -> None:
    """Block a user from logging in."""
    _set_enabled(ctx, username, False)


@user.command("password")
@click.argument("username")
@click.password_option(help="New password (prompted when omitted)")
@click.pass_context
def user_password(ctx: click.Context, username: str, password: str) -> None:
    """Change the password of a user."""
    storage = get_storage(ctx)
    target = find_user(storage, username)
    if len(password) < 8:
        error_console.print("[red]Error:[/red] The password must have at least 8 characters.")
        sys.exit(1)
    target.password_hash = hash_password(password)
    storage.save_user(target)
    console.print(f"[green]✓[/green] Changed password for user {username}.")


# maintenance


@cli.command("convert-timezone")
@click.option("--first-id", "-f", type=int, help="The ID which should be converted first")
@click.option("--last-id", "-l", type=int, help="The ID which should be converted last")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@click.pass_context
def convert_timezone(ctx: click.Context, first_id: Optional[int], last_id: Optional[int], yes: bool) -> None:
    """Convert timesheet dates from the configured timezone to UTC.

    Only needed for data imported from installations that stored local times.

    Example:
        kimai convert-timezone --first-id 100 --last-id 250
    """
    config_mgr = load_config(ctx)
    storage = get_storage(ctx, config_mgr)

    try:
        local = ZoneInfo(config_mgr.get("general.timezone", "UTC"))
    except (ZoneInfoNotFoundError, ValueError) as e:
        error_console.print(f"[red]Error:[/red] Unknown timezone: {e}")
        sys.exit(1)

    timesheets = storage.load_timesheets()
    selected = [
        t
        for t in timesheets
        if t.id is not None
        and (first_id is None or t.id >= first_id)
        and (last_id is None or t.id <= last_id)
    ]
    amount = len(selected)

    if not yes:
        answer = click.prompt(
            f"This will update {amount} timesheet records, continue (y/n) ?", default="n", show_default=False
        )
        if answer != "y":
            console.print("Aborting.")
            return

    def to_utc(value: datetime) -> datetime:
        return value.replace(tzinfo=local).astimezone(timezone.utc).replace(tzinfo=None)

    for i, timesheet in enumerate(sorted(selected, key=lambda t: t.id or 0), start=1):
        timesheet.begin = to_utc(timesheet.begin)
        if timesheet.end is not None:
            timesheet.end = to_utc(timesheet.end)
        if i % 80 == 0:
            console.print(f". ({i}/{amount})")
        else:
            console.print(".", end="")

    storage.save_timesheets(selected)
    console.print("")
    console.print(f"[green]✓[/green] Converted {amount} timesheet records")


@cli.command()
@click.pass_context
def reload(ctx: click.Context) -> None:
    """Validate configuration and translations, then rebuild caches.

    Exit codes: 8 invalid config, 16 invalid translations, 2 cache could
    not be cleared, 4 cache could not be rebuilt.
    """
    console.print("[bold]Reloading configurations ...[/bold]")

    path = ctx.obj.get("config_path") if ctx.obj else None
    try:
        config_mgr = ConfigManager(Path(path) if path else None)
        config_mgr.validate()
    except ValueError as e:
        error_console.print(f"[red]Error:[/red] Config file seems to be invalid: {e}")
        sys.exit(ERROR_LINT_CONFIG)
    setup_logging(config_mgr)

    errors = lint_translations(config_mgr.get_path("translations.directory"))
    if errors:
        for message in errors:
            error_console.print(f"  {message}")
        error_console.print("[red]Error:[/red] Translation files seem to be invalid")
        sys.exit(ERROR_LINT_TRANSLATIONS)

    console.print("Rebuilding your cache, please be patient ...")
    cache_dir = config_mgr.get_path("general.data_dir").parent / "cache"
    try:
        MarketplaceClient(url=config_mgr.get("plugins.marketplace_url"), cache_dir=cache_dir).clear_cache()
    except OSError as e:
        error_console.print(f"[red]Error:[/red] Could not clear cache, missing permissions? {e}")
        sys.exit(ERROR_CACHE_CLEAN)

    try:
        for key in ("invoice.documents_dir", "invoice.archive_dir", "plugins.directory"):
            FileHelper(config_mgr.get_path(key)).get_data_directory()
        FileHelper(cache_dir).get_data_directory()
    except OSError as e:
        error_console.print(f"[red]Error:[/red] Could not warmup cache, missing permissions? {e}")
        sys.exit(ERROR_CACHE_WARMUP)

    console.print("[green]✓[/green] Kimai config was reloaded")


@cli.command()
@click.option("--resname", is_flag=True, help="Fix the resname vs. id attribute")
@click.option("--duplicates", is_flag=True, help="Find duplicate translation keys")
@click.option("--delete-resname", help="Deletes the translation by resname")
@click.option("--extension", is_flag=True, help="Find translation files with wrong extensions")
@click.option("--fill-empty", is_flag=True, help="Pre-fills empty translations with the english version")
@click.option("--directory", type=click.Path(), help="Translation directory (default: from config)")
@click.pass_context
def translations(
    ctx: click.Context,
    resname: bool,
    duplicates: bool,
    delete_resname: Optional[str],
    extension: bool,
    fill_empty: bool,
    directory: Optional[str],
) -> None:
    """Translation file adjustments.

    Examples:
        kimai translations --duplicates
        kimai translations --delete-resname menu.admin
    """
    base = Path(directory) if directory else load_config(ctx).get_path("translations.directory")
    files = find_translation_files(base)

    try:
        if delete_resname:
            for path in files:
                translation = TranslationFile.load(path)
                if translation.delete_resname(delete_resname):
                    translation.save()
                    console.print(f"Removed {delete_resname} from {path.name}")

        if resname:
            for path in files:
                translation = TranslationFile.load(path)
                if translation.fix_resnames():
                    translation.save()
                    console.print(f"Fixed {path.name}")

        if fill_empty:
            _fill_empty_translations(files)

        if extension:
            wrong = [p for p in files if p.suffix != ".xlf"]
            for path in wrong:
                error_console.print(f"Invalid file extension: {path.name}, expected .xlf")
            if wrong:
                sys.exit(1)

        if duplicates:
            found = find_duplicates(files)
            if found:
                table = Table(title="Duplicate translation keys")
                table.add_column("Key", style="cyan")
                table.add_column("Domains")
                for key, domains in sorted(found.items()):
                    table.add_row(key, ", ".join(domains))
                console.print(table)
            else:
                console.print("[green]✓[/green] No duplicate keys found")
    except (ValueError, KeyError) as e:
        error_console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)


def _fill_empty_translations(files: list[Path]) -> None:
    """Fill empty targets from the english (or configured source) file of the same domain.

    Raises:
        ValueError: If the source file is missing
    """
    for path in files:
        translation = TranslationFile.load(path)
        source_locale = FILL_FROM.get(translation.locale, "en")
        if translation.locale == source_locale:
            continue
        source_path = path.with_name(f"{translation.domain}.{source_locale}{path.suffix}")
        if not source_path.exists():
            raise ValueError(f"Could not find translation file: {source_path}")
        filled = translation.fill_empty(TranslationFile.load(source_path).get_translations())
        if filled:
            translation.save()
            console.print(f"Filled {filled} translations in {path.name}")


if __name__ == "__main__":
    cli(obj={})
