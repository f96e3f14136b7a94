"""Engine commands — cycle, status, weights, prophecy."""

from __future__ import annotations

import json as json_mod
import time
from typing import IO, Optional

import click

from moodring.affect.state import PrimaryEmotion
from moodring.cli.formatters import (
    build_table,
    format_age,
    get_console,
    intensity_bar,
    weight_style,
)
from moodring.persistence import EMOTION_STATE_FILE, dump_model
from moodring.store import StateStore


def _store(ctx: click.Context) -> StateStore:
    config = ctx.obj["config"]
    return StateStore(
        config.data_dir,
        max_snapshots=config.learning.max_snapshots,
        weight_history_entries=config.learning.weight_history_entries,
    )


def _wants_json(ctx: click.Context, json_output: bool) -> bool:
    return json_output or ctx.obj.get("json", False)


@click.command("cycle")
@click.argument("input_file", type=click.File("r"), required=False)
@click.option("--json", "json_output", is_flag=True, help="JSON output")
@click.option("--diagnostics", is_flag=True, help="Print the per-cycle diagnostics report")
@click.pass_context
def cycle_cmd(
    ctx: click.Context,
    input_file: Optional[IO[str]],
    json_output: bool,
    diagnostics: bool,
) -> None:
    """Run one emotion cycle. INPUT_FILE is a JSON document ('-' for stdin)."""
    from moodring.cycle import CycleInputs, EmotionCycle

    data: dict = {}
    if input_file is not None:
        try:
            data = json_mod.load(input_file)
        except ValueError as e:
            raise click.ClickException(f"input is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise click.ClickException("input must be a JSON object")

    config = ctx.obj["config"]
    result = EmotionCycle(config, store=_store(ctx)).run(CycleInputs.from_dict(data))

    if _wants_json(ctx, json_output):
        click.echo(json_mod.dumps(result.to_dict(), indent=2))
        return

    console = get_console(no_color=ctx.obj.get("no_color", False))
    state = result.state
    console.print(f"[bold]Cycle #{result.cycle}[/bold]  {state.dominant_label} ({state.dominant.value})")
    rows = [
        [e.value, f"{state.emotions[e]:.2f}", intensity_bar(state.emotions[e])]
        for e in PrimaryEmotion
    ]
    console.print(build_table("Emotions", ["Emotion", "Value", ""], rows))
    if state.compounds:
        console.print(f"Compounds: {', '.join(state.compounds)}")
    for adj in result.adjustments:
        console.print(
            f"Weight {adj.category.value}: {adj.before:.2f} -> {adj.after:.2f} ({adj.direction})"
        )
    for evaluation in result.evaluations:
        verdict = "correct" if evaluation.majority_correct else "wrong"
        console.print(
            f"Prophecy from cycle {evaluation.snapshot_cycle}: "
            f"{evaluation.correct_categories}/{evaluation.total_categories} ({verdict})"
        )
    if diagnostics:
        console.print()
        console.print(result.diagnostics.report, markup=False)


@click.command("status")
@click.option("--json", "json_output", is_flag=True, help="JSON output")
@click.option("--prompt", is_flag=True, help="Print the state as a prompt fragment")
@click.pass_context
def status_cmd(ctx: click.Context, json_output: bool, prompt: bool) -> None:
    """Show the current emotional state and mood."""
    store = _store(ctx)
    state = store.load_emotion_state()

    if _wants_json(ctx, json_output):
        click.echo(json_mod.dumps(state.to_dict(), indent=2))
        return
    if prompt:
        click.echo(state.to_prompt_fragment())
        return

    console = get_console(no_color=ctx.obj.get("no_color", False))
    if not store.exists(EMOTION_STATE_FILE):
        console.print("[dim]No saved state yet; showing the waking state.[/dim]")

    rows = [
        [
            e.value,
            f"{state.emotions[e]:.2f}",
            intensity_bar(state.emotions[e]),
            f"{state.mood[e]:.2f}",
        ]
        for e in PrimaryEmotion
    ]
    console.print(build_table("Emotional state", ["Emotion", "Now", "", "Mood"], rows))
    console.print(f"Dominant: [bold]{state.dominant_label}[/bold] ({state.dominant.value})")
    console.print(f"Compounds: {', '.join(state.compounds) or 'none'}")
    console.print(f"Trigger: {state.trigger}", markup=False)
    console.print(f"Updated: {format_age(time.time() - state.last_updated)}")


@click.command("weights")
@click.option("--json", "json_output", is_flag=True, help="JSON output")
@click.option("--history", "history_count", type=int, default=0, help="Show the last N weight changes")
@click.pass_context
def weights_cmd(ctx: click.Context, json_output: bool, history_count: int) -> None:
    """Show strategy weights and what they say was learned."""
    from moodring.learning.stats import CATEGORY_LABELS, compute_learning_stats

    store = _store(ctx)
    sw = store.load_strategy_weights()
    cycles = store.load_rolling_averages().cycles_tracked
    stats = compute_learning_stats(sw, cycles)
    history = store.weight_history.load()[-history_count:] if history_count > 0 else []

    if _wants_json(ctx, json_output):
        click.echo(json_mod.dumps({
            "weights": dump_model(sw),
            "cycles": cycles,
            "totalDeviation": stats.total_deviation,
            "amplified": [k.value for k in stats.amplified],
            "dampened": [k.value for k in stats.dampened],
            "narrative": stats.narrative,
            "history": [e.model_dump(mode="json") for e in history],
        }, indent=2))
        return

    console = get_console(no_color=ctx.obj.get("no_color", False))
    rows = [
        [
            c.category.value,
            f"[{weight_style(c.current_weight)}]{c.current_weight:.2f}[/]",
            c.direction,
            c.intensity,
            c.estimated_adjustments,
            CATEGORY_LABELS[c.category],
        ]
        for c in stats.categories
    ]
    console.print(build_table(
        f"Strategy weights after {cycles} cycles",
        ["Category", "Weight", "Learned", "Intensity", "Min. adj.", "Signal"],
        rows,
    ))
    console.print(stats.narrative, markup=False)

    for entry in history:
        moved = ", ".join(f"{c.category.value} {c.delta:+.3f}" for c in entry.changes)
        console.print(f"  cycle {entry.cycle} [{entry.type}] {moved}", markup=False)


@click.command("prophecy")
@click.option("--json", "json_output", is_flag=True, help="JSON output")
@click.pass_context
def prophecy_cmd(ctx: click.Context, json_output: bool) -> None:
    """Show how often past feelings predicted what happened next."""
    from moodring.learning.prophecy import format_prophecy_report

    store = _store(ctx)
    stats = store.load_prophecy_stats()

    if _wants_json(ctx, json_output):
        payload = dump_model(stats)
        payload["pendingSnapshots"] = sum(1 for s in store.load_prophecy_snapshots() if not s.evaluated)
        click.echo(json_mod.dumps(payload, indent=2))
        return

    click.echo(format_prophecy_report(stats))
