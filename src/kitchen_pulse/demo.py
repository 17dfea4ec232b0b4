"""CLI demo runner: sample store week -> scores, guardrail, demand drops, awards, weekly review."""

from __future__ import annotations

import argparse
import json
import logging
from datetime import timedelta

import pandas as pd

from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from kitchen_pulse import queries
from kitchen_pulse.models.availability import is_available
from kitchen_pulse.models.awards import AwardStatus
from kitchen_pulse.models.demand_drop import DropSeverity, build_drop_alerts
from kitchen_pulse.models.guardrail import GuardrailStatus
from kitchen_pulse.serializers import (
    serialize_awards, serialize_drop_alert, serialize_guardrail_projection,
    serialize_team_score, serialize_weekly,
)
from kitchen_pulse.simulator.scenarios import SampleStore, get_scenarios

console = Console()
logger = logging.getLogger(__name__)

STATUS_COLORS = {GuardrailStatus.GOOD: "green", GuardrailStatus.CAUTION: "yellow", GuardrailStatus.BAD: "red"}


def _fmt(value, spec: str = "") -> str:
    return format(value, spec) if is_available(value) else "[dim]--[/dim]"


def _load(args) -> SampleStore:
    scenarios = get_scenarios()
    scenario = scenarios[args.scenario]
    console.print(Panel.fit(
        f"[bold cyan]{scenario.name}[/bold cyan]\n[dim]{scenario.description}[/dim]",
        border_style="cyan",
    ))
    with console.status("[cyan]Generating sample week..."):
        store = scenario.build()
    logger.debug("Scenario %s: %d events", args.scenario, len(store.log))
    return store


def _day(args, store: SampleStore):
    return args.date or store.week_start.isoformat()


# ── Subcommands ──────────────────────────────────────────────────────────────

def cmd_score(args) -> None:
    store = _load(args)
    result = queries.team_score(store.log, store.refs, store.store_id, _day(args, store), as_of=store.as_of)
    if args.json:
        console.print_json(json.dumps(serialize_team_score(result)))
        return

    table = Table(title=f"Scores for {_day(args, store)}", box=box.SIMPLE)
    table.add_column("Staff", style="bold")
    for col in ("Task", "Time", "Break", "OT", "Total", "Grade"):
        table.add_column(col, justify="right")
    rows = [("TEAM", result.team)] + [(ss.staff.display_name, ss.result) for ss in result.staff_scores]
    for name, score in rows:
        if not is_available(score):
            table.add_row(name, *["[dim]--[/dim]"] * 5, "[dim]not tracked[/dim]")
            continue
        b = score.breakdown
        table.add_row(name, str(b.task_completion), str(b.time_variance), str(b.break_compliance),
                      str(b.zero_overtime), f"[bold]{score.total}[/bold]", f"{score.grade} {'★' * score.stars}")
    console.print(table)

    if is_available(result.team) and result.team.deductions:
        console.print("[bold]Top deductions[/bold]")
        for d in result.team.top_deductions:
            console.print(f"  [red]{d}[/red] [dim]({', '.join(d.event_ids)})[/dim]")
    for ss, reason in result.needs_support:
        console.print(f"  [yellow]Needs support:[/yellow] {ss.staff.display_name} - {reason}")


def cmd_guardrail(args) -> None:
    store = _load(args)
    day = _day(args, store)
    as_of = store.as_of
    if args.hour is not None:
        as_of = pd.Timestamp(day) + pd.Timedelta(hours=args.hour)
    proj = queries.labor_guardrail(store.log, store.refs, store.store_id, day, as_of)
    if args.json:
        console.print_json(json.dumps(serialize_guardrail_projection(proj)))
        return

    r = proj.projected
    color = STATUS_COLORS.get(r.status, "dim") if is_available(r.status) else "dim"
    console.print(Panel(
        f"[bold]Day type:[/bold] {r.day_type.value}   [bold]Hour:[/bold] {proj.current_hour:.1f}\n"
        f"[bold]Forecast sales:[/bold] {proj.forecast_sales:,.0f}   "
        f"[bold]Run-rate sales:[/bold] {proj.run_rate_sales:,.0f}\n"
        f"[bold]Labor cost:[/bold] {r.labor_cost:,.0f}   "
        f"[bold]Projected rate:[/bold] {_fmt(r.labor_rate, '.1%')}\n"
        f"[bold]Bracket:[/bold] good <= {r.bracket.good_rate:.1%}, bad > {r.bracket.bad_rate:.1%}\n"
        f"[bold]Delta to good:[/bold] {_fmt(r.delta_to_good, '+.1%')}   "
        f"[bold]Delta to bad:[/bold] {_fmt(r.delta_to_bad, '+.1%')}",
        title=f"[bold {color}]LABOR GUARDRAIL: {r.status.label if is_available(r.status) else '--'}[/bold {color}]",
        border_style=color,
    ))


def cmd_drops(args) -> None:
    store = _load(args)
    drops = queries.demand_drops(store.log, store.refs, store.store_id, args.date)
    alerts = build_drop_alerts(drops)
    if args.json:
        console.print_json(json.dumps([serialize_drop_alert(a) for a in alerts]))
        return
    if not alerts:
        console.print("[green]✓[/green] No demand drops detected")
        return

    table = Table(title="Demand Drops (3-day vs 7-day)", box=box.SIMPLE)
    table.add_column("Menu", style="bold")
    table.add_column("7d avg", justify="right")
    table.add_column("3d avg", justify="right")
    table.add_column("Drop", justify="right")
    table.add_column("Severity")
    table.add_column("Channels", style="dim")
    for a in alerts:
        d = a.drop
        color = "red" if d.severity == DropSeverity.CRITICAL else "yellow"
        table.add_row(d.menu_name, f"{d.avg7_day:.1f}", f"{d.avg3_day:.1f}", f"{d.drop_rate:.0%}",
                      f"[{color}]{d.severity.value}[/{color}]", ", ".join(c for c, _ in d.affected_channels))
    console.print(table)
    for a in alerts:
        console.print(f"[bold]{a.title}[/bold]")
        for h in a.hypotheses:
            console.print(f"  [dim]? {h.text} ({h.confidence})[/dim]")
        for x in a.actions:
            console.print(f"  [cyan]→ {x.text}[/cyan]")


def cmd_awards(args) -> None:
    store = _load(args)
    start = store.week_start
    end = start + timedelta(days=6)
    metrics = queries.awards_metrics(store.log, store.refs, store.store_id, start, end, as_of=store.as_of)
    if args.json:
        console.print_json(json.dumps(serialize_awards(metrics)))
        return

    table = Table(title=f"Awards {start} .. {end}", box=box.SIMPLE)
    table.add_column("Award", style="bold")
    table.add_column("Status")
    table.add_column("Winner")
    table.add_column("Evidence", style="dim")
    for a in metrics.awards:
        if a.status == AwardStatus.AWARDED:
            table.add_row(a.label, "[green]awarded[/green]", a.winner.name, "; ".join(a.evidence_bullets))
        else:
            table.add_row(a.label, f"[dim]{a.status.value}[/dim]", "-", a.not_tracked_reason or "")
    console.print(table)

    nominees = Table(title="Nominees", box=box.SIMPLE)
    for col in ("Staff", "Score", "Quests", "Delay", "NG", "Hours"):
        nominees.add_column(col, justify="left" if col == "Staff" else "right")
    for n in metrics.nominees:
        nominees.add_row(n.name, _fmt(n.score), str(n.quests_done), _fmt(n.delay_rate, ".0f"),
                         str(n.quality_ng_count), _fmt(n.hours_worked, ".1f"))
    console.print(nominees)


def cmd_weekly(args) -> None:
    store = _load(args)
    week = queries.weekly_labor_metrics(store.log, store.refs, store.store_id, store.week_start, as_of=store.as_of)
    if args.json:
        console.print_json(json.dumps(serialize_weekly(week)))
        return

    table = Table(title=f"Weekly Labor {week.week_start} .. {week.week_end}", box=box.SIMPLE)
    for col in ("Day", "Sales", "Hours", "Labor %", "Staff", "★3/★2/★1", "Score", "OT min", "Late"):
        table.add_column(col, justify="left" if col == "Day" else "right")
    for r in week.daily:
        m = r.skill_mix
        table.add_row(f"{r.day_label} {r.date:%m-%d}", _fmt(r.sales, ",.0f"), f"{r.labor_hours:.1f}",
                      _fmt(r.labor_rate, ".1%"), str(r.staff_count), f"{m.star3}/{m.star2}/{m.star1}",
                      _fmt(r.day_score), str(r.overtime_minutes), str(r.quest_delay_count))
    console.print(table)

    s = week.summary
    console.print(
        f"[bold]Week:[/bold] sales {s.total_sales:,.0f} | hours {s.total_hours:.1f} | "
        f"labor {_fmt(s.avg_labor_rate, '.1%')} | avg score {_fmt(s.avg_day_score, '.1f')} | "
        f"OT {s.total_overtime_minutes} min"
    )
    h = week.highlights
    if is_available(h.winning_mix):
        w = h.winning_mix
        console.print(f"[green]Winning mix:[/green] {w.day_label} {w.date} score {w.day_score} "
                      f"(★3 {w.skill_mix.star3}, ★2 {w.skill_mix.star2}, ★1 {w.skill_mix.star1})")
    for spot in h.weak_spots:
        console.print(f"  [yellow]{spot.day_label} {spot.issue.value}:[/yellow] {spot.detail}")
    for c in h.chronic_delay_quests:
        console.print(f"  [red]Chronic delay:[/red] {c.title} x{c.occurrences} (avg {c.avg_delay_minutes:.0f} min)")


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Kitchen Pulse: restaurant ops read-models on a sample week")
    parser.add_argument("--scenario", "-s", default="normal", choices=sorted(get_scenarios()),
                        help="Sample scenario")
    parser.add_argument("--json", action="store_true", help="Print serialized JSON instead of tables")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("score", help="Team and staff scores for a day")
    p.add_argument("--date", default=None, help="Business date (default: first day of the week)")
    p.set_defaults(func=cmd_score)

    p = sub.add_parser("guardrail", help="Labor-cost guardrail projection")
    p.add_argument("--date", default=None)
    p.add_argument("--hour", type=float, default=None, help="Hour of day to project from (0-24)")
    p.set_defaults(func=cmd_guardrail)

    p = sub.add_parser("drops", help="Demand-drop alerts")
    p.add_argument("--date", default=None, help="Detect with history up to this date")
    p.set_defaults(func=cmd_drops)

    p = sub.add_parser("awards", help="Weekly awards with evidence")
    p.set_defaults(func=cmd_awards)

    p = sub.add_parser("weekly", help="Weekly labor review")
    p.set_defaults(func=cmd_weekly)

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )
    args.func(args)


if __name__ == "__main__":
    main()
