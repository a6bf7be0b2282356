#!/usr/bin/env python3
"""
Quick start script to demonstrate the exercise prescription core.

This script shows the complete workflow:
1. Load a user profile and recent measurements
2. Run the pre-exercise safety gate
3. Generate a fused FITT prescription
4. Compare with legacy "last rule wins" mode
5. Apply a weekly adjustment from adherence logs
"""

import json
from pathlib import Path
from typing import List

from pydantic import TypeAdapter
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from exercise_rx.adjustment import adjust_weekly, apply_adjustment
from exercise_rx.config import configure_logging, get_fusion_config
from exercise_rx.prescriber import PrescriptionOrchestrator
from exercise_rx.rules import default_catalog
from exercise_rx.safety_gate import SafetyGate
from exercise_rx.schemas import AdherenceLog, Measurement, UserProfile

console = Console()

FIXTURES = Path(__file__).parent / "tests" / "fixtures"


def print_header(title: str):
    """Print a formatted header."""
    console.print(f"\n[bold cyan]{title}[/bold cyan]")
    console.print("=" * len(title))


def load_json(name: str):
    with open(FIXTURES / name, encoding="utf-8") as f:
        return json.load(f)


def main():
    """Run the complete demonstration workflow."""
    configure_logging("WARNING")
    console.print("\n[bold magenta]Exercise Prescription Core[/bold magenta]")
    console.print("[dim]Demonstration of complete workflow[/dim]\n")

    # ===== STEP 1: Load Profile =====
    print_header("Step 1: Load Profile and Measurements")

    profile = UserProfile(**load_json("profile_elderly_diabetic.json"))
    measurements = TypeAdapter(List[Measurement]).validate_python(
        load_json("measurements_elderly_diabetic.json")
    )

    console.print(f"✓ Loaded: [green]{profile.user_id}[/green]")
    console.print(f"  Age: {profile.age}")
    console.print(f"  Conditions: {', '.join(sorted(profile.conditions)) or 'none'}")
    console.print(f"  Measurements: {len(measurements)}")

    # ===== STEP 2: Safety Gate =====
    print_header("Step 2: Safety Gate")

    gate = SafetyGate().evaluate(profile, measurements)
    color = {"green": "green", "yellow": "yellow", "red": "red"}[gate.status.value]
    console.print(f"Status: [{color}]{gate.status.value.upper()}[/{color}]")
    for reason in gate.reasons:
        console.print(f"  • {reason}")

    # ===== STEP 3: Fused Prescription =====
    print_header("Step 3: Fused Prescription")

    catalog = default_catalog()
    config = get_fusion_config()
    fused = PrescriptionOrchestrator(catalog=catalog, config=config).generate(profile, measurements)

    table = Table(title="Triggered Rules", box=box.ROUNDED)
    table.add_column("Rule", style="cyan")
    table.add_column("Priority", justify="right")
    table.add_column("Evidence", style="dim")
    for rule_id in fused.rule_ids:
        rule = catalog.get(rule_id)
        table.add_row(f"{rule.id} {rule.name}", str(rule.priority), rule.evidence_source)
    console.print(table)

    fit = fused.fit
    console.print(
        f"\n[bold]FITT:[/bold] {fit.freq}x/week, {fit.intensity.value}, "
        f"{fit.time} min, {fit.exercise_type}"
    )
    if fused.explain:
        console.print(f"  alpha={fused.explain.alpha} beta={fused.explain.beta}")
        for score in fused.explain.top:
            console.print(f"  {score.id}: {score.score:.2f}")

    # ===== STEP 4: Legacy Mode =====
    print_header("Step 4: Legacy Mode")

    legacy_config = config.model_copy(update={"use_fusion": False})
    legacy = PrescriptionOrchestrator(catalog=catalog, config=legacy_config).generate(
        profile, measurements
    )
    lfit = legacy.fit
    console.print(
        f"[bold]FITT:[/bold] {lfit.freq}x/week, {lfit.intensity.value}, "
        f"{lfit.time} min, {lfit.exercise_type}"
    )

    # ===== STEP 5: Weekly Adjustment =====
    print_header("Step 5: Weekly Adjustment")

    history = TypeAdapter(List[AdherenceLog]).validate_python(
        load_json("adherence_full_week.json")
    )
    adjustment = adjust_weekly(history)
    adjusted = apply_adjustment(fused, adjustment)

    console.print(f"  Completion: {adjustment.completion_rate:.0%}, avg RPE {adjustment.avg_rpe:.1f}")
    console.print(f"  Multiplier: x{adjustment.multiplier:.2f} ({adjustment.rule_tags[0]})")
    console.print(
        f"  Next week: {adjusted.fit.freq}x/week, {adjusted.fit.intensity.value}, "
        f"{adjusted.fit.time} min"
    )

    # ===== COMPLETION =====
    console.print("\n")
    panel = Panel(
        "[green]✓[/green] Demonstration complete!\n\n"
        "The system successfully:\n"
        "  1. Screened the user with the safety gate\n"
        "  2. Evaluated the rule catalog\n"
        "  3. Fused triggered rules into one prescription\n"
        "  4. Adjusted the prescription from adherence logs",
        title="[bold green]Success[/bold green]",
        border_style="green",
    )
    console.print(panel)

    console.print("\n[bold cyan]Next Steps:[/bold cyan]")
    console.print("  • Run CLI: exercise-rx prescribe --profile <profile.json> --measurements <m.json>")
    console.print("  • Start the API: uvicorn exercise_rx.api.main:app --reload")
    console.print("  • Run tests: python3 -m pytest\n")


if __name__ == "__main__":
    try:
        main()
    except Exception as e:
        console.print(f"\n[red]Error: {e}[/red]")
        console.print("\n[dim]Install the package first: pip install -e .[/dim]")
        raise
