"""CLI interface for syncing and building Monaca projects."""

import asyncio
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, TypeVar

import click

from ._version import __version__
from .api import MonacaClient
from .build import BuildOrchestrator, BuildRequest
from .cli_progress import BuildProgressDisplay, TransferProgressDisplay
from .config import ConfigStore
from .exceptions import MonacaError, MonacaTransferError
from .local_properties import get_project_id, get_project_info, set_project_id
from .output import OutputFormatter
from .sync import SyncEngine, SyncReport, TransferCoordinator

T = TypeVar("T")


def _make_client(ctx: Any) -> MonacaClient:
    return MonacaClient(api_root=ctx.obj.get("api_root"))


def _run_with_session(
    ctx: Any, action: Callable[[MonacaClient], Awaitable[T]]
) -> T:
    """Relogin with the saved token, run ``action``, then close the client."""

    async def runner() -> T:
        async with _make_client(ctx) as client:
            await client.relogin()
            return await action(client)

    return asyncio.run(runner())


def _make_engine(client: MonacaClient, jobs: Optional[int]) -> SyncEngine:
    return SyncEngine(client, coordinator=TransferCoordinator(max_concurrency=jobs))


def _report_sync(out: OutputFormatter, report: SyncReport, verb: str) -> None:
    if out.json_output:
        out.output_json(
            {
                "project_id": report.project_id,
                "direction": report.direction.value,
                "dry_run": report.dry_run,
                "files": report.paths,
            }
        )
        return

    if report.dry_run:
        if not report.tasks:
            out.info("No changes needed - everything is in sync!")
            return
        out.info(f"Would {verb.lower()} {len(report.tasks)} file(s):")
        for path in report.paths:
            out.print(f"  {path}")
        return

    if not report.tasks:
        out.success("No changes needed - everything is in sync!")
    else:
        out.success(f"{verb}ed {len(report.tasks)} file(s)")


def _transfer_failed(
    out: OutputFormatter, error: MonacaTransferError, display: TransferProgressDisplay
) -> None:
    out.error(str(error))
    if display.total:
        out.info(
            f"{display.completed - len(display.failed)}/{display.total} file(s) "
            "were transferred before the batch failed"
        )


def _transfer_command(
    ctx: Any,
    verb: str,
    run: Callable[[SyncEngine, TransferProgressDisplay], Awaitable[SyncReport]],
    jobs: Optional[int],
    show_progress: bool,
) -> None:
    out: OutputFormatter = ctx.obj["out"]
    display = TransferProgressDisplay(f"{verb}ing files")

    async def action(client: MonacaClient) -> SyncReport:
        engine = _make_engine(client, jobs)
        if show_progress and not out.quiet and not out.json_output:
            with display:
                return await run(engine, display)
        return await run(engine, display)

    try:
        report = _run_with_session(ctx, action)
    except MonacaTransferError as e:
        _transfer_failed(out, e, display)
        ctx.exit(1)
    except MonacaError as e:
        out.error(str(e))
        ctx.exit(1)
    else:
        _report_sync(out, report, verb)


@click.group()
@click.option(
    "--api-root",
    envvar="MONACA_API_ROOT",
    default=None,
    help="Root of the Monaca web API",
)
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(version=__version__)
@click.pass_context
def main(
    ctx: Any,
    api_root: Optional[str],
    quiet: bool,
    json: bool,
    verbose: bool,
) -> None:
    """PyMonaca - Sync and build Monaca projects from the command line."""
    # Store settings in context for subcommands to access
    ctx.ensure_object(dict)
    ctx.obj["api_root"] = api_root
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)
    ctx.obj["verbose"] = verbose

    # Configure logging based on verbose flag
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("pymonaca").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)


# =========================
# Session commands
# =========================


@main.command()
@click.option("--email", "-e", prompt="Email", help="Monaca account email")
@click.option(
    "--password",
    "-p",
    prompt="Password",
    hide_input=True,
    help="Monaca account password",
)
@click.pass_context
def login(ctx: Any, email: str, password: str) -> None:
    """Sign in to Monaca and save a relogin token."""
    out: OutputFormatter = ctx.obj["out"]

    async def do_login() -> None:
        async with _make_client(ctx) as client:
            await client.login(email, password)

    try:
        asyncio.run(do_login())
    except MonacaError as e:
        out.error(f"Login failed: {e}")
        ctx.exit(1)
    out.success(f"Logged in as {email}")


@main.command()
@click.pass_context
def logout(ctx: Any) -> None:
    """Forget the saved login."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        _make_client(ctx).logout()
    except MonacaError as e:
        out.error(str(e))
        ctx.exit(1)
    out.success("Logged out")


@main.command()
@click.pass_context
def projects(ctx: Any) -> None:
    """List the projects of the logged in user."""
    out: OutputFormatter = ctx.obj["out"]

    async def action(client: MonacaClient) -> list[dict[str, Any]]:
        return await client.get_projects()

    try:
        items = _run_with_session(ctx, action)
    except MonacaError as e:
        out.error(str(e))
        ctx.exit(1)

    rows = [
        [str(item.get("projectId", "")), str(item.get("name", ""))] for item in items
    ]
    out.print_table("Projects", ["ID", "Name"], rows)


@main.command()
@click.argument("name")
@click.option("--description", "-d", default="", help="Project description")
@click.option("--template", "-t", default=None, help="Template ID (e.g. minimum)")
@click.pass_context
def create(ctx: Any, name: str, description: str, template: Optional[str]) -> None:
    """Create a new cloud project called NAME."""
    out: OutputFormatter = ctx.obj["out"]

    async def action(client: MonacaClient) -> dict[str, Any]:
        return await client.create_project(name, description, template)

    try:
        project = _run_with_session(ctx, action)
    except MonacaError as e:
        out.error(str(e))
        ctx.exit(1)

    if out.json_output:
        out.output_json(project)
        return
    out.success(f"Created project {name} ({project.get('projectId', '?')})")


@main.command()
@click.argument(
    "directory",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
)
@click.pass_context
def info(ctx: Any, directory: Path) -> None:
    """Show name, description and project id of a linked DIRECTORY."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        project = get_project_info(directory)
    except MonacaError as e:
        out.error(str(e))
        ctx.exit(1)

    out.print_summary(
        "Project",
        [
            ("name", project.name),
            ("description", project.description),
            ("directory", str(project.directory)),
            ("project_id", project.project_id),
        ],
    )


# =========================
# Sync commands
# =========================


@main.command()
@click.argument(
    "directory", type=click.Path(file_okay=False, path_type=Path), default="."
)
@click.argument("project_id")
@click.pass_context
def link(ctx: Any, directory: Path, project_id: str) -> None:
    """Link a local DIRECTORY to the Monaca project PROJECT_ID."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        set_project_id(directory, project_id)
    except MonacaError as e:
        out.error(str(e))
        ctx.exit(1)
    out.success(f"Linked {directory} to project {project_id}")


@main.command()
@click.argument(
    "directory",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
)
@click.option("--dry-run", is_flag=True, help="Only show what would be uploaded")
@click.option(
    "--jobs", "-j", type=click.IntRange(min=1), default=None, help="Parallel transfers"
)
@click.pass_context
def upload(ctx: Any, directory: Path, dry_run: bool, jobs: Optional[int]) -> None:
    """Upload changed files of a linked project DIRECTORY."""

    async def run(engine: SyncEngine, display: TransferProgressDisplay) -> SyncReport:
        return await engine.upload_project(
            directory, dry_run=dry_run, progress_callback=display.handle_event
        )

    _transfer_command(ctx, "Upload", run, jobs, show_progress=not dry_run)


@main.command()
@click.argument(
    "directory",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
)
@click.option("--dry-run", is_flag=True, help="Only show what would be downloaded")
@click.option(
    "--jobs", "-j", type=click.IntRange(min=1), default=None, help="Parallel transfers"
)
@click.pass_context
def download(ctx: Any, directory: Path, dry_run: bool, jobs: Optional[int]) -> None:
    """Download changed files of a linked project DIRECTORY."""

    async def run(engine: SyncEngine, display: TransferProgressDisplay) -> SyncReport:
        return await engine.download_project(
            directory, dry_run=dry_run, progress_callback=display.handle_event
        )

    _transfer_command(ctx, "Download", run, jobs, show_progress=not dry_run)


@main.command()
@click.argument("project_id")
@click.argument("dest", type=click.Path(file_okay=False, path_type=Path))
@click.option(
    "--jobs", "-j", type=click.IntRange(min=1), default=None, help="Parallel transfers"
)
@click.pass_context
def clone(ctx: Any, project_id: str, dest: Path, jobs: Optional[int]) -> None:
    """Download project PROJECT_ID into a new directory DEST."""

    async def run(engine: SyncEngine, display: TransferProgressDisplay) -> SyncReport:
        return await engine.clone_project(
            project_id, dest, progress_callback=display.handle_event
        )

    _transfer_command(ctx, "Download", run, jobs, show_progress=True)


# =========================
# Build command
# =========================


@main.command()
@click.argument(
    "directory",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
)
@click.option(
    "--platform",
    "-p",
    type=click.Choice(["android", "ios", "winrt"]),
    default=None,
    help="Target platform",
)
@click.option(
    "--purpose",
    type=click.Choice(["debug", "release"]),
    default="debug",
    show_default=True,
    help="Type of build",
)
@click.option("--framework-version", default="3.5", show_default=True)
@click.option(
    "--android-webview",
    type=click.Choice(["default", "crosswalk"]),
    default=None,
    help="Android webview",
)
@click.option(
    "--android-arch",
    type=click.Choice(["x86", "arm"]),
    default=None,
    help="CPU architecture (required for Crosswalk)",
)
@click.option("--upload/--no-upload", default=True, help="Upload changes first")
@click.pass_context
def build(
    ctx: Any,
    directory: Path,
    platform: Optional[str],
    purpose: str,
    framework_version: str,
    android_webview: Optional[str],
    android_arch: Optional[str],
    upload: bool,
) -> None:
    """Build a linked project DIRECTORY in the cloud."""
    out: OutputFormatter = ctx.obj["out"]
    request = BuildRequest(
        platform=platform,
        framework_version=framework_version,
        purpose=purpose,
        options={
            "android_webview": android_webview or "",
            "android_arch": android_arch or "",
        },
    )
    show_progress = not out.quiet and not out.json_output

    async def action(client: MonacaClient) -> Any:
        if upload:
            report = await SyncEngine(client).upload_project(directory)
            project_id = report.project_id
            out.info(f"Uploaded {len(report.tasks)} changed file(s)")
        else:
            project_id = get_project_id(directory)

        orchestrator = BuildOrchestrator(client)
        if show_progress:
            with BuildProgressDisplay() as display:
                return await orchestrator.run(
                    project_id, request, status_callback=display.handle_status
                )
        return await orchestrator.run(project_id, request)

    try:
        result = _run_with_session(ctx, action)
    except MonacaError as e:
        out.error(str(e))
        ctx.exit(1)

    if out.json_output:
        out.output_json({"queue_id": result.queue_id, "result": result.artifact})
        return
    out.success("Build finished")
    out.print_summary(
        "Build result",
        [(str(key), str(value)) for key, value in result.artifact.items()],
    )


# =========================
# Config commands
# =========================


@main.group(name="config")
def config_group() -> None:
    """Read and change client settings (e.g. http_proxy)."""


@config_group.command(name="get")
@click.argument("key")
@click.pass_context
def config_get(ctx: Any, key: str) -> None:
    """Print the value of KEY."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        value = ConfigStore().get(key)
    except MonacaError as e:
        out.error(str(e))
        ctx.exit(1)
    if out.json_output:
        out.output_json({key: value})
    else:
        click.echo("" if value is None else value)


@config_group.command(name="set")
@click.argument("key")
@click.argument("value")
@click.pass_context
def config_set(ctx: Any, key: str, value: str) -> None:
    """Set KEY to VALUE."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        ConfigStore().set(key, value)
    except MonacaError as e:
        out.error(str(e))
        ctx.exit(1)
    out.success(f"{key} = {value}")


@config_group.command(name="remove")
@click.argument("key")
@click.pass_context
def config_remove(ctx: Any, key: str) -> None:
    """Remove KEY."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        previous = ConfigStore().remove(key)
    except MonacaError as e:
        out.error(str(e))
        ctx.exit(1)
    if previous is None:
        out.warning(f"{key} was not set")
    else:
        out.success(f"Removed {key}")


@config_group.command(name="list")
@click.pass_context
def config_list(ctx: Any) -> None:
    """Print all settings."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        settings = ConfigStore().get_all()
    except MonacaError as e:
        out.error(str(e))
        ctx.exit(1)
    if out.json_output:
        out.output_json(settings)
        return
    for key, value in sorted(settings.items()):
        click.echo(f"{key}={value}")


if __name__ == "__main__":
    main()
