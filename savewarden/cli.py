"""
Command Line Interface entry point using Typer.
"""
import json
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.markup import escape

from . import __version__
from .config import (
    delete_profile,
    list_profiles,
    load_profile,
    load_settings,
    local_backup_root,
    mirror_backup_root,
    resolve_profile,
    save_profile,
    save_settings,
    update_profile,
)
from .errors import RestoreError, SaveWardenError, SourceUnavailableError
from .models import ArchiveClass, GameProfile, Location, RetentionLimits
from .orchestrator import BackupOrchestrator
from .restore import RestoreSelector
from .session import MonitorSession, Trigger
from .store import open_store
from .ui import (
    SEPARATOR,
    confirm,
    console,
    render_archives,
    render_banner,
    render_error,
    render_progress,
    render_report,
    render_status,
    render_table,
    render_warning,
)

app = typer.Typer(
    help=(
        "[bold cyan]SAVEWARDEN[/]\n\n"
        "Timestamped manual and automatic backups of game save folders, "
        "with per-location retention limits and one-step restore.\n"
    ),
    no_args_is_help=True,
    rich_markup_mode="rich"
)

@app.command(name="add")
def add_profile_cmd(
    name: str = typer.Option(..., "--name", "-n", prompt="Game name"),
    source: str = typer.Option(..., "--source", "-s", prompt="Full path to the game's save folder"),
    interval: int = typer.Option(10, "--interval", "-i", min=1, prompt="Auto-save interval in minutes"),
    mirror: bool = typer.Option(False, "--mirror/--no-mirror", help="Also copy backups to the mirror folder"),
):
    """Add a new game profile."""
    try:
        settings = load_settings()
        if mirror and not settings.mirror_available:
            render_warning("Mirror folder not set. Mirror backup disabled for this game. Set it with 'savewarden settings --mirror-root'.")
            mirror = False

        profile = GameProfile(
            name=name,
            source_dir=str(Path(source).expanduser().resolve()),
            auto_save_interval=interval * 60,
            mirror_enabled=mirror,
        )
        save_profile(profile)
        if not Path(profile.source_dir).is_dir():
            render_warning(f"Save folder does not exist yet: {profile.source_dir}")

        if not settings.active_profile:
            save_settings(settings.model_copy(update={"active_profile": profile.name}))
            render_status("profile", f"'{profile.name}' is now the active profile.")
        render_status("success", f"Profile '{profile.name}' saved.")
    except (ValueError, SaveWardenError) as e:
        render_error(str(e))
        raise typer.Exit(1)

@app.command(name="profiles")
def list_profiles_cmd(
    json_output: bool = typer.Option(False, "--json", help="Output in JSON format.")
):
    """List all configured game profiles."""
    try:
        settings = load_settings()
    except SaveWardenError as e:
        render_error(str(e))
        raise typer.Exit(1)
    profiles = list_profiles()
    if json_output:
        profiles_data = []
        for p in profiles:
            try:
                prof = load_profile(p)
                profiles_data.append(json.loads(prof.model_dump_json()))
            except SaveWardenError:
                pass
        print(json.dumps(profiles_data, indent=2))
        return

    if not profiles:
        typer.echo("No profiles found.")
        return

    rows = []
    for p in profiles:
        marker = "*" if p == settings.active_profile else ""
        try:
            prof = load_profile(p)
            rows.append([marker, escape(prof.name), escape(prof.source_dir),
                         f"{prof.auto_save_interval // 60} min", "on" if prof.mirror_enabled else "off"])
        except SaveWardenError as e:
            err_msg = str(e).split('\n')[0]
            if len(err_msg) > 60: err_msg = err_msg[:57] + "..."
            rows.append([marker, escape(p), f"[red]ERROR[/] {escape(err_msg)}", "", ""])

    render_table("Game Profiles", ["Active", "Name", "Save Folder", "Interval", "Mirror"], rows)

@app.command(name="select")
def select_profile_cmd(name: str = typer.Argument(..., help="Profile to make active")):
    """Select the active profile."""
    try:
        load_profile(name)
        save_settings(load_settings().model_copy(update={"active_profile": name}))
    except SaveWardenError as e:
        render_error(str(e))
        raise typer.Exit(1)
    render_status("profile", f"'{name}' is now the active profile.")

@app.command(name="edit")
def edit_profile_cmd(
    name: str = typer.Argument(..., help="Profile to edit"),
    new_name: Optional[str] = typer.Option(None, "--name", "-n", help="Rename the profile"),
    source: Optional[str] = typer.Option(None, "--source", "-s", help="New save folder"),
    interval: Optional[int] = typer.Option(None, "--interval", "-i", min=1, help="New interval in minutes"),
    mirror: Optional[bool] = typer.Option(None, "--mirror/--no-mirror", help="Toggle mirror backups"),
):
    """Edit a game profile. Renaming also moves its backups."""
    try:
        settings = load_settings()
        profile = load_profile(name)
        changes = {}
        if new_name is not None:
            changes["name"] = new_name
        if source is not None:
            changes["source_dir"] = str(Path(source).expanduser().resolve())
        if interval is not None:
            changes["auto_save_interval"] = interval * 60
        if mirror is not None:
            if mirror and not settings.mirror_available:
                render_warning("Mirror folder not set. Mirror backup stays disabled.")
                mirror = False
            changes["mirror_enabled"] = mirror
        if not changes:
            render_status("info", "Nothing to change.")
            return

        # Re-run validation on the merged record.
        updated = GameProfile(**{**profile.model_dump(), **changes})
        update_profile(updated, old_name=name)

        if updated.name != name:
            for location in Location:
                store = open_store(settings, location)
                if store is not None and store.rename_profile_tree(name, updated.name):
                    render_status("info", f"Moved {location.label.lower()} backups to '{updated.name}'.")
            if settings.active_profile == name:
                save_settings(settings.model_copy(update={"active_profile": updated.name}))
    except (ValueError, SaveWardenError, OSError) as e:
        render_error(str(e))
        raise typer.Exit(1)
    render_status("success", f"Profile '{updated.name}' updated.")

@app.command(name="delete")
def delete_profile_cmd(
    name: str = typer.Argument(..., help="Profile to delete"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
    purge_local: Optional[bool] = typer.Option(None, "--purge-local/--keep-local", help="Also delete local backups"),
    purge_mirror: Optional[bool] = typer.Option(None, "--purge-mirror/--keep-mirror", help="Also delete mirror backups"),
):
    """Delete a profile and, optionally, all of its backups."""
    from .audit import AuditLogger
    try:
        settings = load_settings()
        load_profile(name)
        if not yes and not confirm(f"Delete the game profile '{name}'?"):
            raise typer.Exit(0)
        delete_profile(name)
        if settings.active_profile == name:
            save_settings(settings.model_copy(update={"active_profile": None}))
        render_status("delete", f"Profile '{name}' deleted.")

        for location, wanted in ((Location.LOCAL, purge_local), (Location.MIRROR, purge_mirror)):
            store = open_store(settings, location)
            if store is None or not store.profile_dir(name).exists():
                continue
            if wanted is None:
                wanted = confirm(f"Also delete all {location.label.lower()} backups for '{name}'? This is permanent.")
            if wanted:
                try:
                    store.remove_profile_tree(name)
                    render_status("delete", f"{location.label} backups deleted.")
                except SaveWardenError as e:
                    render_error(str(e))
        AuditLogger().log("profile_deleted", profile=name)
    except SaveWardenError as e:
        render_error(str(e))
        raise typer.Exit(1)

@app.command(name="settings")
def settings_cmd(
    mirror_root: Optional[str] = typer.Option(None, "--mirror-root", help="Synced cloud folder to mirror backups into"),
    clear_mirror: bool = typer.Option(False, "--clear-mirror", help="Disable mirroring globally"),
    local_root: Optional[str] = typer.Option(None, "--local-root", help="Folder for local backups"),
    local_auto: Optional[int] = typer.Option(None, "--local-auto", min=0, help="Local auto-save limit (0 = keep all)"),
    local_manual: Optional[int] = typer.Option(None, "--local-manual", min=0, help="Local manual-save limit (0 = keep all)"),
    mirror_auto: Optional[int] = typer.Option(None, "--mirror-auto", min=0, help="Mirror auto-save limit (0 = keep all)"),
    mirror_manual: Optional[int] = typer.Option(None, "--mirror-manual", min=0, help="Mirror manual-save limit (0 = keep all)"),
):
    """Show or change backup & storage settings."""
    try:
        settings = load_settings()
        limit_changes = {
            k: v for k, v in {
                "local_auto": local_auto,
                "local_manual": local_manual,
                "mirror_auto": mirror_auto,
                "mirror_manual": mirror_manual,
            }.items() if v is not None
        }
        changes = {}
        if limit_changes:
            changes["limits"] = RetentionLimits(**{**settings.limits.model_dump(), **limit_changes})
        if clear_mirror:
            changes["mirror_root"] = None
        elif mirror_root is not None:
            root = Path(mirror_root).expanduser()
            if not root.is_dir():
                render_error(f"Mirror folder does not exist: {root}")
                raise typer.Exit(1)
            changes["mirror_root"] = str(root.resolve())
        if local_root is not None:
            changes["local_root"] = str(Path(local_root).expanduser().resolve())
        if changes:
            settings = settings.model_copy(update=changes)
            save_settings(settings)
            render_status("success", "Settings saved. Changes apply from the next backup.")
    except SaveWardenError as e:
        render_error(str(e))
        raise typer.Exit(1)

    mirror = mirror_backup_root(settings)
    limits = settings.limits
    def fmt(n: int) -> str:
        return "keep all" if n == 0 else str(n)

    render_table("Backup & Storage Settings", ["Setting", "Value"], [
        ["Local backups", escape(str(local_backup_root(settings)))],
        ["Mirror backups", escape(str(mirror)) if mirror else "[dim]not configured[/]"],
        ["Local auto-save limit", fmt(limits.local_auto)],
        ["Local manual-save limit", fmt(limits.local_manual)],
        ["Mirror auto-save limit", fmt(limits.mirror_auto)],
        ["Mirror manual-save limit", fmt(limits.mirror_manual)],
        ["Active profile", escape(settings.active_profile or "-")],
    ])

@app.command(name="backup")
def backup_cmd(name: Optional[str] = typer.Argument(None, help="Profile (defaults to the active one)")):
    """Take a manual backup now."""
    try:
        settings = load_settings()
        profile = resolve_profile(name, settings)
    except SaveWardenError as e:
        render_error(str(e))
        raise typer.Exit(1)

    with render_progress(f"Backing up {profile.name}..."):
        report = BackupOrchestrator(settings).run_backup(profile, ArchiveClass.MANUAL)
    render_report(report)
    if not report.succeeded:
        raise typer.Exit(1)

@app.command(name="list")
def list_archives_cmd(
    name: Optional[str] = typer.Argument(None, help="Profile (defaults to the active one)"),
    location: Location = typer.Option(Location.LOCAL, "--location", "-l", help="Where to list backups from"),
):
    """List backups, newest first."""
    try:
        settings = load_settings()
        profile = resolve_profile(name, settings)
    except SaveWardenError as e:
        render_error(str(e))
        raise typer.Exit(1)

    if location is Location.MIRROR and not settings.mirror_available:
        render_status("info", "Mirror folder is not configured.")
        return
    archives = RestoreSelector.from_settings(settings).list_for_display(location, profile.name)
    if not archives:
        render_status("info", f"No {location.label.lower()} backups found for {profile.name}.")
        return
    render_archives(f"{location.label} Backups for {escape(profile.name)} (newest first)", archives)

def _choose_and_restore(restore_fn, selector: RestoreSelector, profile: GameProfile, location: Location, yes: bool = False) -> None:
    """Interactive list -> pick -> confirm -> restore."""
    archives = selector.list_for_display(location, profile.name)
    if not archives:
        render_status("info", f"No {location.label.lower()} backups found for {profile.name}.")
        return
    render_archives(f"{location.label} Backups for {escape(profile.name)} (newest first)", archives)
    choice = typer.prompt("Enter a number to restore (or 'x' to cancel)").strip()
    if choice.lower() == "x":
        render_status("info", "Cancelled.")
        return
    try:
        identity = selector.pick(location, profile.name, int(choice))
    except ValueError:
        render_error("Invalid selection.")
        return
    except RestoreError as e:
        render_error(str(e))
        return
    if not yes and not confirm(f"This will OVERWRITE your current save files with {identity.name}. Are you sure?"):
        render_status("info", "Restore cancelled.")
        return
    try:
        restore_fn(location, identity)
    except (RestoreError, SourceUnavailableError) as e:
        render_error(f"{e}\nAnother program might be using the save files, or permissions may be insufficient.")
        return
    render_status("restore", f"Restore from {location.label.lower()} backup {escape(identity.name)} complete.", "green")

@app.command(name="restore")
def restore_cmd(
    name: Optional[str] = typer.Argument(None, help="Profile (defaults to the active one)"),
    latest: bool = typer.Option(False, "--latest", help="Restore the newest local manual backup without asking"),
    number: Optional[int] = typer.Option(None, "--number", "-n", min=1, help="Position in the newest-first listing"),
    location: Location = typer.Option(Location.LOCAL, "--location", "-l", help="Where to restore from"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
):
    """Restore a backup over the live save folder."""
    try:
        settings = load_settings()
        profile = resolve_profile(name, settings)
        selector = RestoreSelector.from_settings(settings)
        if latest:
            identity = selector.restore_latest_manual(profile)
        elif number is not None:
            identity = selector.pick(location, profile.name, number)
            if not yes and not confirm(f"This will OVERWRITE your current save files with {identity.name}. Are you sure?"):
                raise typer.Exit(0)
            selector.restore_chosen(profile, location, identity)
        else:
            _choose_and_restore(
                lambda loc, ident: selector.restore_chosen(profile, loc, ident),
                selector, profile, location, yes,
            )
            return
    except SaveWardenError as e:
        render_error(str(e))
        raise typer.Exit(1)
    render_status("restore", f"Restored from {location.label.lower() if not latest else 'latest manual'} backup: {escape(identity.name)}", "green")

MONITOR_HELP = """[bold]Commands[/]
  [cyan]b[/]  take a manual backup
  [cyan]r[/]  restore the latest manual backup (no confirmation)
  [cyan]l[/]  list backups and restore one
  [cyan]o[/]  show backup folders
  [cyan]h[/]  show this help
  [cyan]q[/]  stop monitoring"""

def _render_monitor(profile: GameProfile) -> None:
    render_banner()
    render_status("monitor", f"Monitoring [bold]{escape(profile.name)}[/]: auto-save every {profile.auto_save_interval // 60} min"
                  f"{' + mirror' if profile.mirror_enabled else ''}")
    render_status("info", f"Save folder: {escape(profile.source_dir)}")
    console.print(MONITOR_HELP)
    console.print(SEPARATOR, style="dim")

@app.command(name="monitor")
def monitor_cmd(name: Optional[str] = typer.Argument(None, help="Profile (defaults to the active one)")):
    """Auto-save a profile in the background and take commands from the keyboard."""
    from .utils import setup_signal_handlers

    try:
        settings = load_settings()
        profile = resolve_profile(name, settings)
    except SaveWardenError as e:
        render_error(str(e))
        raise typer.Exit(1)

    session = MonitorSession(
        profile,
        BackupOrchestrator(settings, settings_loader=load_settings),
        RestoreSelector.from_settings(settings),
        on_report=render_report,
        on_error=lambda e: render_error(f"Auto-save error: {e}"),
    )
    try:
        session.start()
    except SaveWardenError as e:
        render_error(str(e))
        raise typer.Exit(1)
    setup_signal_handlers()
    # Keep scheduler notices out of the prompt.
    logging.getLogger("apscheduler").setLevel(logging.ERROR)

    _render_monitor(profile)
    try:
        while True:
            try:
                key = console.input("> ").strip().lower()
            except EOFError:
                break
            if key == "q":
                break
            elif key == "b":
                session.handle(Trigger.MANUAL_BACKUP)
            elif key == "r":
                try:
                    identity = session.handle(Trigger.RESTORE_LATEST_MANUAL)
                    render_status("restore", f"Restored from latest manual backup: {escape(identity.name)}", "green")
                except (RestoreError, SourceUnavailableError) as e:
                    render_error(str(e))
                console.print(SEPARATOR, style="dim")
            elif key == "l":
                location = Location.LOCAL
                if settings.mirror_available and typer.confirm("Restore from the mirror folder instead of local?", default=False):
                    location = Location.MIRROR
                _choose_and_restore(session.restore_chosen, session.selector, profile, location)
            elif key == "o":
                for location in Location:
                    store = open_store(settings, location)
                    if store is not None:
                        render_status("info", f"{location.label} backups: {escape(str(store.profile_dir(profile.name)))}")
            elif key == "h":
                _render_monitor(profile)
            elif key:
                render_status("warn", f"Unknown command '{escape(key)}'. Press h for help.", "yellow")
    finally:
        session.handle(Trigger.STOP)
    render_status("info", "Monitoring stopped.")

@app.command(name="daemon")
def run_daemon(
    name: str = typer.Argument(..., help="Profile name"),
    generate: bool = typer.Option(False, "--generate", help="Just generate service file instead of running")
):
    """Run auto-saves headless until stopped."""
    from rich.panel import Panel

    from .daemon import DaemonProcess, generate_systemd_unit, generate_windows_task_xml
    import sys

    if generate:
        if sys.platform == "win32":
            xml = generate_windows_task_xml(name)
            console.print(Panel(escape(xml), title="Windows Task Scheduler XML", border_style="cyan"))
        else:
            unit = generate_systemd_unit(name)
            console.print(Panel(escape(unit), title="Systemd Unit File", border_style="cyan"))
        return

    render_status("daemon", f"Starting auto-save daemon for {escape(name)}...")
    try:
        DaemonProcess(name, on_report=render_report).start()
    except SaveWardenError as e:
        render_error(str(e))
        raise typer.Exit(1)

@app.command(name="doctor")
def run_doctor():
    """Run the diagnostic suite."""
    from .doctor import run_diagnostics
    results = run_diagnostics()

    rows = []
    for r in results:
        status_text = "[bold green]PASS[/]" if r.status == "pass" else "[bold yellow]WARN[/]" if r.status == "warn" else "[bold red]FAIL[/]"
        rows.append([status_text, r.name, escape(r.detail)])

    render_table("SaveWarden Doctor", ["Status", "Check", "Details"], rows)

@app.command(name="audit")
def show_audit(last_n: int = typer.Option(50, "--last", "-n", help="Number of recent events to show")):
    """Show recent backup, purge and restore events."""
    from .audit import get_audit_log
    events = get_audit_log(last_n)
    if not events:
        render_status("info", "No audit events found.")
        return

    rows = []
    for e in events:
        rows.append([e["timestamp"], e["event"], escape(str(e["details"]))])

    render_table("Audit Log", ["Timestamp", "Event", "Details"], rows)

@app.command(name="version")
def version_cmd():
    """Display SaveWarden version information."""
    from rich.panel import Panel
    console.print(Panel(f"[bold cyan]SAVEWARDEN[/] v{__version__}", border_style="cyan", expand=False))

if __name__ == "__main__":
    app()
