"""
Command-line interface for the exercise prescription core.

Provides commands for:
- Pre-exercise safety screening
- Prescription generation (fusion or legacy mode)
- Weekly adjustment from adherence logs
- Browsing the rule catalog
- Normalizing condition names to canonical tags
"""

import json
from pathlib import Path
from typing import Any, List, Optional

import typer
from pydantic import BaseModel, TypeAdapter, ValidationError
from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from exercise_rx.adjustment import AdjustmentEngine, apply_adjustment
from exercise_rx.conditions import display_label, extract_from_text, normalize
from exercise_rx.config import build_fusion_config, configure_logging, get_fusion_config
from exercise_rx.exceptions import ExerciseRxError
from exercise_rx.prescriber import PrescriptionOrchestrator
from exercise_rx.rules import RuleCatalog, default_catalog
from exercise_rx.safety_gate import SafetyGate
from exercise_rx.schemas import (
    AdherenceLog,
    GateResult,
    GateStatus,
    Measurement,
    Prescription,
    UserProfile,
    WeeklyAdjustment,
)
from exercise_rx.vitals import classify_bmi

app = typer.Typer(
    help="Exercise prescription core - safety gate, FITT prescriptions and weekly adjustment"
)
console = Console()

GATE_COLORS = {
    GateStatus.GREEN: "green",
    GateStatus.YELLOW: "yellow",
    GateStatus.RED: "red",
}


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Logging level (defaults to EXERCISE_RX_LOG_LEVEL)",
    ),
):
    configure_logging(log_level)


# ===== LOADING HELPERS =====


def _read_json(path: Path) -> Any:
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        console.print(f"[red]✗ Failed to read {path}: {escape(str(e))}[/red]")
        raise typer.Exit(1)


def _load_profile(path: Path) -> UserProfile:
    try:
        return UserProfile(**_read_json(path))
    except (ValidationError, TypeError) as e:
        console.print(f"[red]✗ Invalid profile {path}: {escape(str(e))}[/red]")
        raise typer.Exit(1)


def _load_list(path: Optional[Path], item_type: type) -> List[Any]:
    if path is None:
        return []
    try:
        return TypeAdapter(List[item_type]).validate_python(_read_json(path))
    except ValidationError as e:
        console.print(f"[red]✗ Invalid {item_type.__name__} list in {path}: {escape(str(e))}[/red]")
        raise typer.Exit(1)


def _print_json(model: BaseModel):
    console.print_json(model.model_dump_json())


# ===== DISPLAY HELPER FUNCTIONS =====


def _display_gate(result: GateResult):
    color = GATE_COLORS[result.status]
    lines = [f"[bold {color}]{result.status.value.upper()}[/bold {color}]"]
    for reason in result.reasons:
        lines.append(f"  • {reason}")
    if result.suggested_action:
        lines.append(f"\n[bold]Action:[/bold] {result.suggested_action}")
    console.print(Panel("\n".join(lines), title="Safety Gate", border_style=color))


def _display_prescription(prescription: Prescription, catalog: RuleCatalog):
    fit = prescription.fit

    table = Table(title=f"Prescription {prescription.id}", box=box.ROUNDED)
    table.add_column("Field", style="cyan")
    table.add_column("Prescribed", style="bold")
    table.add_column("Baseline", style="dim")

    base = prescription.baseline_fit
    table.add_row("Frequency", f"{fit.freq}x/week", f"{base.freq}x/week" if base else "-")
    table.add_row("Intensity", fit.intensity.value, base.intensity.value if base else "-")
    table.add_row("Time", f"{fit.time} min", f"{base.time} min" if base else "-")
    table.add_row("Type", fit.exercise_type, base.exercise_type if base else "-")
    console.print(table)
    console.print(f"Mode: [cyan]{prescription.fusion_mode}[/cyan]")

    if prescription.explain and prescription.explain.top:
        console.print("\n[bold]Top contributing rules:[/bold]")
        for score in prescription.explain.top:
            console.print(f"  • {score.id}: {score.score:.2f}")

    if prescription.rule_ids_for_display:
        console.print("\n[bold]Rules:[/bold]")
        for rule_id in prescription.rule_ids_for_display:
            rule = catalog.get(rule_id)
            marker = "✓" if rule_id in prescription.rule_ids else "·"
            name = rule.name if rule else rule_id
            console.print(f"  {marker} [cyan]{rule_id}[/cyan] {name}")

    if prescription.adjustment_tags:
        console.print("\n[bold]Adjustments:[/bold]")
        for tag in prescription.adjustment_tags:
            console.print(f"  • {tag}")

    if prescription.gate:
        console.print()
        _display_gate(prescription.gate)


def _display_adjustment(adjustment: WeeklyAdjustment):
    console.print(f"\n[bold]Weekly Adjustment: x{adjustment.multiplier:.2f}[/bold]")
    console.print(f"  Logs considered: {adjustment.window_days}")
    console.print(f"  Completion rate: {adjustment.completion_rate:.0%}")
    console.print(f"  Average RPE: {adjustment.avg_rpe:.1f}")
    if adjustment.fit.intensity:
        console.print(f"  Intensity cap: {adjustment.fit.intensity.value}")
    for tag in adjustment.rule_tags:
        console.print(f"  • {tag}")


# ===== COMMANDS =====


@app.command()
def gate(
    profile: Path = typer.Option(
        ...,
        "--profile",
        "-p",
        help="Path to user profile JSON file",
        exists=True,
    ),
    measurements: Optional[Path] = typer.Option(
        None,
        "--measurements",
        "-m",
        help="Path to measurements JSON list",
        exists=True,
    ),
    as_json: bool = typer.Option(False, "--json", help="Print raw JSON"),
):
    """
    Run the pre-exercise safety gate.
    """
    user = _load_profile(profile)
    readings = _load_list(measurements, Measurement)

    result = SafetyGate().evaluate(user, readings)
    if as_json:
        _print_json(result)
    else:
        _display_gate(result)


@app.command()
def prescribe(
    profile: Path = typer.Option(
        ...,
        "--profile",
        "-p",
        help="Path to user profile JSON file",
        exists=True,
    ),
    measurements: Optional[Path] = typer.Option(
        None,
        "--measurements",
        "-m",
        help="Path to measurements JSON list",
        exists=True,
    ),
    alpha: Optional[float] = typer.Option(None, "--alpha", help="Override fusion alpha"),
    beta: Optional[float] = typer.Option(None, "--beta", help="Override fusion beta"),
    fusion: Optional[bool] = typer.Option(
        None,
        "--fusion/--no-fusion",
        help="Fuse triggered rules, or use legacy last-rule-wins",
    ),
    as_json: bool = typer.Option(False, "--json", help="Print raw JSON"),
):
    """
    Generate a FITT exercise prescription.
    """
    user = _load_profile(profile)
    readings = _load_list(measurements, Measurement)

    overrides = {"alpha": alpha, "beta": beta, "use_fusion": fusion}
    overrides = {k: v for k, v in overrides.items() if v is not None}
    try:
        config = get_fusion_config()
        if overrides:
            config = build_fusion_config(**{**config.model_dump(), **overrides})
        catalog = default_catalog()
    except ExerciseRxError as e:
        console.print(f"[red]✗ Invalid configuration: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    prescription = PrescriptionOrchestrator(catalog=catalog, config=config).generate(
        user, readings
    )
    if as_json:
        _print_json(prescription)
        return

    if user.bmi is not None:
        console.print(f"BMI: {user.bmi:.1f} ({classify_bmi(user.bmi)})")
    _display_prescription(prescription, catalog)


@app.command()
def adjust(
    logs: Path = typer.Option(
        ...,
        "--logs",
        "-l",
        help="Path to adherence log JSON list",
        exists=True,
    ),
    prescription: Optional[Path] = typer.Option(
        None,
        "--prescription",
        help="Prescription JSON to apply the adjustment to",
        exists=True,
    ),
    as_json: bool = typer.Option(False, "--json", help="Print raw JSON"),
):
    """
    Review the last 7 days of adherence and propose a weekly adjustment.
    """
    history = _load_list(logs, AdherenceLog)
    adjustment = AdjustmentEngine().adjust_weekly(history)

    if prescription is None:
        if as_json:
            _print_json(adjustment)
        else:
            _display_adjustment(adjustment)
        return

    try:
        current = Prescription(**_read_json(prescription))
    except (ValidationError, TypeError) as e:
        console.print(f"[red]✗ Invalid prescription {prescription}: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    adjusted = apply_adjustment(current, adjustment)
    if as_json:
        _print_json(adjusted)
    else:
        _display_adjustment(adjustment)
        _display_prescription(adjusted, default_catalog())


@app.command()
def rules(
    show: Optional[str] = typer.Option(
        None,
        "--show",
        "-s",
        help="Rule ID to display",
    ),
):
    """
    List the rule catalog or show one rule.
    """
    catalog = default_catalog()

    if show:
        rule = catalog.get(show)
        if rule is None:
            console.print(f"[red]✗ Rule not found: {show}[/red]")
            raise typer.Exit(1)

        lines = [
            f"[bold]Priority:[/bold] {rule.priority}",
            f"[bold]Evidence:[/bold] {rule.evidence_source}",
            f"[bold]When:[/bold] {rule.condition}",
            f"[bold]Action:[/bold] {rule.action.model_dump(mode='json', exclude_none=True)}",
        ]
        for tier in rule.tiers:
            lines.append(f"[bold]Tier:[/bold] {tier.when} -> {tier.fit.model_dump(mode='json', exclude_none=True)}")
        console.print(Panel("\n".join(lines), title=f"{rule.id} {rule.name}", padding=(1, 2)))
        return

    table = Table(title=f"Rule Catalog v{catalog.version}", box=box.ROUNDED)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Priority", justify="right")
    table.add_column("Name")
    table.add_column("Evidence", style="dim")
    for rule in catalog:
        table.add_row(rule.id, str(rule.priority), rule.name, rule.evidence_source)
    console.print(table)


@app.command("normalize")
def normalize_conditions(
    tags: List[str] = typer.Argument(None, help="Condition names in any supported wording"),
    text: Optional[str] = typer.Option(
        None,
        "--text",
        "-t",
        help="Free-text medical history to scan",
    ),
):
    """
    Map condition names (Chinese or English) to canonical tags.
    """
    canonical = normalize(tags or [])
    if text:
        canonical |= extract_from_text(text)

    if not canonical:
        console.print("[yellow]No recognized conditions[/yellow]")
        return

    for tag in sorted(canonical):
        console.print(f"  • [cyan]{tag}[/cyan] ({display_label(tag)})")


if __name__ == "__main__":
    app()
