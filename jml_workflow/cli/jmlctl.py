#!/usr/bin/env python3
"""
JML Control CLI - Command Line Interface for the JML Workflow Engine.

Provides commands for running joiner, mover and leaver events, detecting
candidate events, inspecting users and role templates, and reading the
audit trail.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Type

import click
from pydantic import BaseModel, ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..audit import AuditLogger
from ..engine import RoleTemplateResolver, StateManager
from ..models import EventStatus, EventType, JoinerMetadata, LeaverMetadata, LifecycleEvent, MoverMetadata
from ..workflows import EventDetector, WorkflowOrchestrator, create_event_summary, validate_metadata

logger = logging.getLogger(__name__)

# Rich console for pretty output
console = Console()

METADATA_MODELS: Dict[EventType, Type[BaseModel]] = {
    EventType.JOINER: JoinerMetadata,
    EventType.MOVER: MoverMetadata,
    EventType.LEAVER: LeaverMetadata,
}

STATUS_STYLES = {
    "completed": "green",
    "failed": "red",
    "skipped": "yellow",
    "pending": "blue",
    "in_progress": "cyan",
    "cancelled": "magenta",
}


class JMLController:
    """Main controller for JML Workflow Engine operations."""

    def __init__(self, config_path: Optional[str] = None, overrides: Optional[Dict[str, Any]] = None):
        """Initialize the JML controller."""
        self.config_path = Path(config_path) if config_path else None

        self.config = self._load_config()
        self.config.update({key: value for key, value in (overrides or {}).items() if value is not None})

        self.state_manager = StateManager(self.config["state_file"])
        self.audit_logger = AuditLogger(self.config["audit_dir"])
        self.orchestrator = WorkflowOrchestrator(
            self.state_manager,
            tenant_id=self.config["tenant_id"],
            config=self.config,
            audit_logger=self.audit_logger,
        )
        self.detector = EventDetector(self.state_manager, self.config["tenant_id"], self.config)

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from file or use defaults."""
        config = {
            "tenant_id": "default",
            "state_file": "jml_state.json",
            "audit_dir": "audit",
            "evidence_dir": "evidence",
            "access_review_days": 30,
            "joiner_lookback_days": 7,
            "automation_actor": "jml_automation",
        }

        if self.config_path and self.config_path.exists():
            with open(self.config_path, encoding="utf-8") as f:
                config.update(json.load(f))
            logger.info(f"Loaded configuration from {self.config_path}")

        return config


@click.group()
@click.option('--config', '-c', help='Path to JSON configuration file')
@click.option('--state-file', help='Identity state file (overrides configuration)')
@click.option('--tenant', help='Tenant ID (overrides configuration)')
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
@click.pass_context
def cli(ctx, config, state_file, tenant, verbose):
    """JML Control CLI - Identity Lifecycle Workflow Engine"""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )
    ctx.ensure_object(dict)
    try:
        ctx.obj['controller'] = JMLController(config, {"state_file": state_file, "tenant_id": tenant})
    except (OSError, ValueError) as e:
        raise click.ClickException(f"Failed to initialize: {e}") from e


def _run_event(ctx, event_type: EventType, user_id: str, metadata_file: str, triggered_by: str):
    controller = ctx.obj['controller']

    with open(metadata_file, encoding='utf-8') as f:
        data = json.load(f)

    try:
        metadata = METADATA_MODELS[event_type].model_validate({**data, "event_type": event_type.value})
    except ValidationError as e:
        raise click.ClickException(f"Invalid {event_type.value} metadata: {e}") from e

    validation_errors = validate_metadata(event_type, metadata)
    if validation_errors:
        console.print("[red]Metadata validation failed:[/red]")
        for error in validation_errors:
            console.print(f"  - {error}")
        ctx.exit(2)

    console.print(f"[blue]Processing {event_type.value} event for {user_id}[/blue]")
    event = controller.orchestrator.process_event(event_type, user_id, metadata, triggered_by)
    display_event_results(event)

    if event.status == EventStatus.FAILED:
        ctx.exit(1)


@cli.command()
@click.argument('user_id')
@click.argument('metadata_file', type=click.Path(exists=True))
@click.option('--triggered-by', default='cli', help='Actor recorded on the event')
@click.pass_context
def joiner(ctx, user_id, metadata_file, triggered_by):
    """Onboard USER_ID using joiner metadata from a JSON file."""
    _run_event(ctx, EventType.JOINER, user_id, metadata_file, triggered_by)


@cli.command()
@click.argument('user_id')
@click.argument('metadata_file', type=click.Path(exists=True))
@click.option('--triggered-by', default='cli', help='Actor recorded on the event')
@click.pass_context
def mover(ctx, user_id, metadata_file, triggered_by):
    """Move USER_ID to a new role using mover metadata from a JSON file."""
    _run_event(ctx, EventType.MOVER, user_id, metadata_file, triggered_by)


@cli.command()
@click.argument('user_id')
@click.argument('metadata_file', type=click.Path(exists=True))
@click.option('--triggered-by', default='cli', help='Actor recorded on the event')
@click.pass_context
def leaver(ctx, user_id, metadata_file, triggered_by):
    """Offboard USER_ID using leaver metadata from a JSON file."""
    _run_event(ctx, EventType.LEAVER, user_id, metadata_file, triggered_by)


@cli.command()
@click.option('--process', 'process_events', is_flag=True, help='Run detected events through the workflows')
@click.pass_context
def detect(ctx, process_events):
    """Detect candidate joiner and leaver events."""
    controller = ctx.obj['controller']

    detected = controller.detector.detect_events()

    table = Table(title="Detected Lifecycle Events")
    table.add_column("Type", style="cyan")
    table.add_column("User ID", style="green")
    table.add_column("Date", style="yellow")

    for joiner_candidate in detected.joiners:
        table.add_row("joiner", joiner_candidate.user_id, joiner_candidate.start_date.strftime("%Y-%m-%d"))
    for leaver_candidate in detected.leavers:
        table.add_row("leaver", leaver_candidate.user_id, leaver_candidate.last_day.strftime("%Y-%m-%d"))

    if not detected.joiners and not detected.leavers:
        console.print("[yellow]No candidate events found[/yellow]")
    else:
        console.print(table)

    if process_events:
        summary = controller.detector.process_detected_events(controller.orchestrator)
        console.print(
            f"[green]Processed {summary.processed_joiners} joiners, "
            f"{summary.processed_leavers} leavers[/green]"
        )


@cli.command()
@click.argument('user_id')
@click.pass_context
def show_user(ctx, user_id):
    """Show a user record and its application access."""
    controller = ctx.obj['controller']
    store = controller.state_manager

    user = store.get_user(user_id)
    if not user:
        console.print(f"[red]User {user_id} not found[/red]")
        ctx.exit(1)

    console.print(Panel.fit(f"[bold blue]{user.full_name or user.id}[/bold blue]\n{user.email}"))
    console.print(f"Department: {user.department or 'N/A'}")
    console.print(f"Title: {user.job_title or 'N/A'}")
    console.print(f"Manager: {user.manager or 'N/A'}")
    console.print(f"Active: {'yes' if user.is_active else 'no'}")

    access = store.get_user_app_access_list(user_id, controller.config["tenant_id"])
    if access:
        table = Table(title=f"Application Access ({len(access)})")
        table.add_column("App", style="cyan")
        table.add_column("Access Type", style="green")
        table.add_column("Granted", style="yellow")
        table.add_column("Granted By", style="magenta")

        for record in access:
            table.add_row(
                record.app_name or record.app_id,
                record.access_type,
                record.granted_at.strftime("%Y-%m-%d"),
                record.granted_by or "N/A",
            )

        console.print(table)
    else:
        console.print("[yellow]No application access found[/yellow]")


@cli.command()
@click.pass_context
def templates(ctx):
    """List configured role templates."""
    controller = ctx.obj['controller']
    resolver: RoleTemplateResolver = controller.orchestrator.resolver

    table = Table(title="Role Templates")
    table.add_column("ID", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("Department", style="yellow")
    table.add_column("Required Apps", style="magenta")

    for template in resolver.list_templates():
        table.add_row(template.id, template.name, template.department or "N/A",
                      ", ".join(template.required_app_ids()))

    console.print(table)


@cli.command()
@click.argument('user_id')
@click.option('--limit', default=50, help='Maximum number of records to show')
@click.pass_context
def audit_trail(ctx, user_id, limit):
    """Show the task audit trail for a user."""
    controller = ctx.obj['controller']

    records = controller.audit_logger.get_events(user_id=user_id, limit=limit)
    if not records:
        console.print(f"[yellow]No audit records found for {user_id}[/yellow]")
        return

    table = Table(title=f"Audit Trail for {user_id}")
    table.add_column("Timestamp", style="cyan")
    table.add_column("Event", style="green")
    table.add_column("Task", style="yellow")
    table.add_column("Target", style="blue")
    table.add_column("Status")

    for record in records:
        style = STATUS_STYLES.get(record.status.value, "white")
        table.add_row(
            record.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            record.event_type.value,
            record.task_type,
            record.target or "",
            f"[{style}]{record.status.value}[/{style}]",
        )

    console.print(table)


def display_event_results(event: LifecycleEvent):
    """Display lifecycle event results."""
    style = STATUS_STYLES.get(event.status.value, "white")
    if event.status == EventStatus.COMPLETED:
        console.print("[green]✓ Event completed successfully[/green]")
    elif event.status == EventStatus.PENDING:
        console.print(f"[blue]Event pending until {event.effective_date}[/blue]")
    else:
        console.print(f"[{style}]✗ Event {event.status.value}: {event.error}[/{style}]")

    summary = create_event_summary(event)
    table = Table(title="Lifecycle Event Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="magenta")

    table.add_row("Event ID", event.id)
    table.add_row("User", f"{event.user_name} ({event.user_id})")
    table.add_row("Event Type", event.event_type.value)
    table.add_row("Status", event.status.value)
    table.add_row("Total Tasks", str(summary["total_tasks"]))
    for status, count in summary["tasks_by_status"].items():
        if count:
            table.add_row(f"Tasks {status}", str(count))

    console.print(table)

    if event.tasks:
        tasks_table = Table(title="Tasks")
        tasks_table.add_column("#", style="cyan")
        tasks_table.add_column("Type", style="green")
        tasks_table.add_column("Description")
        tasks_table.add_column("Status")

        for position, task in enumerate(event.tasks, start=1):
            task_style = STATUS_STYLES.get(task.status.value, "white")
            tasks_table.add_row(
                str(position),
                task.type,
                task.description,
                f"[{task_style}]{task.status.value}[/{task_style}]",
            )

        console.print(tasks_table)


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
