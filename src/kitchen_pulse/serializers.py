"""Convert result dataclasses to JSON-safe dicts."""

from __future__ import annotations

from datetime import date

import pandas as pd

from kitchen_pulse.models.availability import Unavailable, is_available
from kitchen_pulse.models.awards import Award, AwardNominee, AwardsMetrics
from kitchen_pulse.models.demand_drop import DemandDropResult, DropAlert
from kitchen_pulse.models.guardrail import GuardrailProjection, GuardrailResult
from kitchen_pulse.models.labor import LaborMetrics, SkillMix
from kitchen_pulse.models.sales import DailySalesMetrics
from kitchen_pulse.models.scoring import ScoreBreakdown, ScoreDeduction, ScoreResult, TeamScore
from kitchen_pulse.models.weekly import WeeklyLaborMetrics


def serialize_unavailable(u: Unavailable) -> dict:
    return {"available": False, "kind": u.kind.value, "reason": u.reason}


def _num(value, digits: int = 3):
    """Rounded number, or the unavailable marker."""
    if not is_available(value):
        return serialize_unavailable(value)
    if isinstance(value, int):
        return value
    return round(float(value), digits)


def _ts(value: pd.Timestamp | date | None) -> str | None:
    return value.isoformat() if value is not None else None


def serialize_skill_mix(m: SkillMix) -> dict:
    return {"star3": m.star3, "star2": m.star2, "star1": m.star1}


# ── Scores ───────────────────────────────────────────────────────────────────

def serialize_breakdown(b: ScoreBreakdown) -> dict:
    return {
        "task_completion": b.task_completion,
        "time_variance": b.time_variance,
        "break_compliance": b.break_compliance,
        "zero_overtime": b.zero_overtime,
        "total": b.total,
    }


def serialize_deduction(d: ScoreDeduction) -> dict:
    return {
        "id": d.id,
        "category": d.category.value,
        "points": d.points,
        "reason": d.reason,
        "event_ids": list(d.event_ids),
        "event_type": d.event_type.value,
        "timestamp": _ts(d.timestamp),
        "staff_id": d.staff_id,
        "details": {"expected": d.expected, "actual": d.actual},
    }


def serialize_score(result: ScoreResult | Unavailable, all_deductions: bool = False) -> dict:
    if not is_available(result):
        return serialize_unavailable(result)
    deductions = result.deductions if all_deductions else result.top_deductions
    s = result.stats
    return {
        "available": True,
        "staff_id": result.staff_id,
        "start": _ts(result.start),
        "end": _ts(result.end),
        "total": result.total,
        "grade": result.grade,
        "stars": result.stars,
        "breakdown": serialize_breakdown(result.breakdown),
        "deductions": [serialize_deduction(d) for d in deductions],
        "deduction_count": len(result.deductions),
        "stats": {
            "total_quests": s.total_quests,
            "completed_quests": s.completed_quests,
            "on_time_quests": s.on_time_quests,
            "breaks_taken": s.breaks_taken,
            "breaks_expected": s.breaks_expected,
            "planned_hours": round(s.planned_hours, 1),
            "actual_hours": round(s.actual_hours, 1),
            "overtime_minutes": s.overtime_minutes,
        },
        "bottlenecks": list(result.bottlenecks),
        "improvements": list(result.improvements),
    }


def serialize_team_score(t: TeamScore) -> dict:
    return {
        "team": serialize_score(t.team),
        "staff": [
            {"staff_id": ss.staff.id, "name": ss.staff.display_name, "score": serialize_score(ss.result)}
            for ss in t.staff_scores
        ],
        "top_performers": [ss.staff.id for ss in t.top_performers],
        "needs_support": [{"staff_id": ss.staff.id, "reason": reason} for ss, reason in t.needs_support],
    }


# ── Guardrail, sales, labor ──────────────────────────────────────────────────

def serialize_guardrail(r: GuardrailResult) -> dict:
    return {
        "day_type": r.day_type.value,
        "bracket": {
            "low_sales": r.bracket.low_sales,
            "high_sales": r.bracket.high_sales,
            "good_rate": r.bracket.good_rate,
            "bad_rate": r.bracket.bad_rate,
        },
        "sales": round(r.sales, 2),
        "labor_cost": round(r.labor_cost, 2),
        "labor_rate": _num(r.labor_rate, 4),
        "status": r.status.value if is_available(r.status) else serialize_unavailable(r.status),
        "delta_to_good": _num(r.delta_to_good, 4),
        "delta_to_bad": _num(r.delta_to_bad, 4),
    }


def serialize_guardrail_projection(p: GuardrailProjection) -> dict:
    return {
        "business_date": _ts(p.business_date),
        "current_hour": round(p.current_hour, 2),
        "forecast_sales": round(p.forecast_sales, 2),
        "run_rate_sales": round(p.run_rate_sales, 2),
        "good_rate_sales": p.good_rate_sales,
        "bad_rate_sales": p.bad_rate_sales,
        "projected": serialize_guardrail(p.projected),
    }


def serialize_daily_sales(m: DailySalesMetrics) -> dict:
    return {
        "date": _ts(m.date),
        "time_band": m.time_band.value,
        "forecast_customers": _num(m.forecast_customers),
        "forecast_sales": _num(m.forecast_sales, 2),
        "actual_customers": m.actual_customers,
        "actual_sales": round(m.actual_sales, 2),
        "achievement_rate": _num(m.achievement_rate, 1),
    }


def serialize_labor_metrics(m: LaborMetrics) -> dict:
    return {
        "active_staff_count": m.active_staff_count,
        "on_break_count": m.on_break_count,
        "total_hours": round(m.total_hours, 2),
        "labor_cost": round(m.labor_cost, 2),
        "overtime_minutes": m.overtime_minutes,
        "staff_ids": sorted(m.staff_ids),
        "skill_mix": serialize_skill_mix(m.skill_mix),
    }


# ── Demand drops ─────────────────────────────────────────────────────────────

def serialize_demand_drop(d: DemandDropResult) -> dict:
    return {
        "menu_id": d.menu_id,
        "menu_name": d.menu_name,
        "avg3_day": round(d.avg3_day, 2),
        "avg7_day": round(d.avg7_day, 2),
        "drop_rate": round(d.drop_rate, 3),
        "absolute_drop": round(d.absolute_drop, 2),
        "severity": d.severity.value,
        "affected_channels": [{"channel": c, "drop_rate": round(r, 3)} for c, r in d.affected_channels],
        "affected_time_bands": [{"time_band": t, "drop_rate": round(r, 3)} for t, r in d.affected_time_bands],
    }


def serialize_drop_alert(a: DropAlert) -> dict:
    return {
        "id": a.id,
        "title": a.title,
        "drop": serialize_demand_drop(a.drop),
        "hypotheses": [{"id": h.id, "text": h.text, "confidence": h.confidence} for h in a.hypotheses],
        "actions": [
            {"id": x.id, "text": x.text, "proposal_type": x.proposal_type, "target_roles": list(x.target_roles)}
            for x in a.actions
        ],
    }


# ── Awards ───────────────────────────────────────────────────────────────────

def serialize_nominee(n: AwardNominee) -> dict:
    return {
        "staff_id": n.staff_id,
        "name": n.name,
        "star_level": n.star_level,
        "score": _num(n.score),
        "quests_done": n.quests_done,
        "delay_rate": _num(n.delay_rate, 1),
        "quality_ng_count": n.quality_ng_count,
        "hours_worked": _num(n.hours_worked, 1),
    }


def serialize_award(a: Award) -> dict:
    out = {
        "category": a.category,
        "label": a.label,
        "rule": a.rule,
        "status": a.status.value,
        "winner": serialize_nominee(a.winner) if a.winner is not None else None,
        "evidence_bullets": list(a.evidence_bullets),
        "not_tracked_reason": a.not_tracked_reason,
        "evidence": None,
    }
    if a.evidence is not None:
        ev = a.evidence
        out["evidence"] = {
            "score_breakdown": (serialize_breakdown(ev.score_breakdown) if is_available(ev.score_breakdown)
                                else serialize_unavailable(ev.score_breakdown)),
            "quest_history": [
                {
                    "proposal_id": q.proposal_id,
                    "title": q.title,
                    "started_at": _ts(q.started_at),
                    "completed_at": _ts(q.completed_at),
                    "duration_minutes": round(q.duration_minutes, 1) if q.duration_minutes is not None else None,
                    "estimated_minutes": _num(q.estimated_minutes, 1),
                    "quality_status": q.quality_status.value if q.quality_status else None,
                }
                for q in ev.quest_history
            ],
            "labor_timeline": [
                {"event_id": e.event_id, "time": e.timestamp.strftime("%H:%M"), "action": e.action.value}
                for e in ev.labor_timeline
            ],
            "reason_text": ev.reason_text,
        }
    return out


def serialize_awards(m: AwardsMetrics) -> dict:
    return {
        "snapshot": {
            "winners_count": m.snapshot.winners_count,
            "eligible_staff_count": m.snapshot.eligible_staff_count,
            "start": _ts(m.snapshot.start),
            "end": _ts(m.snapshot.end),
        },
        "awards": [serialize_award(a) for a in m.awards],
        "nominees": [serialize_nominee(n) for n in m.nominees],
        "data_availability": {
            "has_labor_data": m.data_availability.has_labor_data,
            "has_quest_data": m.data_availability.has_quest_data,
            "has_quality_data": m.data_availability.has_quality_data,
        },
    }


# ── Weekly ───────────────────────────────────────────────────────────────────

def serialize_weekly(w: WeeklyLaborMetrics) -> dict:
    s = w.summary
    h = w.highlights
    winning = h.winning_mix
    return {
        "week_start": _ts(w.week_start),
        "week_end": _ts(w.week_end),
        "daily": [
            {
                "date": _ts(r.date),
                "day_label": r.day_label,
                "sales": _num(r.sales, 2),
                "labor_hours": round(r.labor_hours, 2),
                "labor_cost": round(r.labor_cost, 2),
                "labor_rate": _num(r.labor_rate, 4),
                "sales_per_labor_cost": _num(r.sales_per_labor_cost, 2),
                "staff_count": r.staff_count,
                "skill_mix": serialize_skill_mix(r.skill_mix),
                "day_score": _num(r.day_score),
                "overtime_minutes": r.overtime_minutes,
                "quest_delay_count": r.quest_delay_count,
            }
            for r in w.daily
        ],
        "summary": {
            "total_sales": round(s.total_sales, 2),
            "total_hours": round(s.total_hours, 2),
            "total_labor_cost": round(s.total_labor_cost, 2),
            "total_overtime_minutes": s.total_overtime_minutes,
            "total_quest_delays": s.total_quest_delays,
            "avg_labor_rate": _num(s.avg_labor_rate, 4),
            "avg_day_score": _num(s.avg_day_score, 1),
            "sales_per_labor_cost": _num(s.sales_per_labor_cost, 2),
            "staff_count_total": s.staff_count_total,
            "star_mix_total": serialize_skill_mix(s.star_mix_total),
        },
        "highlights": {
            "winning_mix": (
                {
                    "date": _ts(winning.date),
                    "day_label": winning.day_label,
                    "day_score": winning.day_score,
                    "skill_mix": serialize_skill_mix(winning.skill_mix),
                }
                if is_available(winning) else serialize_unavailable(winning)
            ),
            "weak_spots": [
                {"date": _ts(x.date), "day_label": x.day_label, "issue": x.issue.value, "detail": x.detail}
                for x in h.weak_spots
            ],
            "chronic_delay_quests": [
                {"key": c.key, "title": c.title, "occurrences": c.occurrences,
                 "avg_delay_minutes": round(c.avg_delay_minutes, 1)}
                for c in h.chronic_delay_quests
            ],
        },
    }
