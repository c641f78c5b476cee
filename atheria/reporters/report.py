# atheria/reporters/report.py
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

from atheria.note import current_mood
from atheria.remote import RemoteStore
from atheria.utils import datetime_from_ms, ms_from_datetime
from atheria.view import streak


@dataclass
class Window:
    period: str  # daily | weekly | monthly
    start: datetime  # local, naive
    end: datetime


def _window_for(period: str, now: datetime | None = None) -> Window:
    period = period.lower()
    now = now or datetime.now()
    today = datetime(now.year, now.month, now.day)
    if period == "daily":
        start = today
        end = start + timedelta(days=1)
    elif period == "weekly":
        # last 7 full days ending today
        end = today + timedelta(days=1)
        start = end - timedelta(days=7)
    elif period == "monthly":
        # last 30 days rolling
        end = today + timedelta(days=1)
        start = end - timedelta(days=30)
    else:
        raise ValueError(f"unknown period: {period}")
    return Window(period=period, start=start, end=end)


async def collect(store: RemoteStore, user_id: str, period: str, now: datetime | None = None) -> dict[str, Any]:
    """
    Collect simple stats for journal entries created in the reporting window:
      - entry count and average mood score
      - mood sequence (oldest first)
      - top tags
      - current writing streak
    """
    win = _window_for(period, now)
    lo, hi = ms_from_datetime(win.start), ms_from_datetime(win.end)

    all_notes = await store.fetch_all(user_id)
    journal = [n for n in all_notes if n.type == "journal"]
    in_window = sorted((n for n in journal if lo <= n.created_at < hi), key=lambda n: n.created_at)

    moods = []
    for n in in_window:
        entry = current_mood(n)
        if entry is not None:
            moods.append({"mood": entry.mood, "score": entry.score, "color": entry.color})
    avg_score = sum(m["score"] for m in moods) / len(moods) if moods else None

    counter = Counter(tag for n in in_window for tag in n.tags)

    return {
        "period": win.period,
        "start": win.start,
        "end": win.end,
        "note_count": len(in_window),
        "avg_mood_score": avg_score,
        "moods": moods,
        "top_tags": counter.most_common(10),
        "streak": streak(journal, today=(now or datetime.now()).date()),
        "notes": [
            dict(id=n.id, title=n.title, created_at=datetime_from_ms(n.created_at), favorite=n.is_favorite)
            for n in in_window
        ],
    }


def render_md(bundle: dict[str, Any]) -> str:
    def fmt_dt(dt: datetime) -> str:
        return dt.strftime("%Y-%m-%d %H:%M")

    period = bundle["period"]
    start = bundle["start"].strftime("%Y-%m-%d")
    end = bundle["end"].strftime("%Y-%m-%d")
    s = bundle["avg_mood_score"]

    lines: list[str] = []
    lines.append(f"# {period.capitalize()} journal ({start} → {end})")
    lines.append("")
    lines.append(f"- Entries: **{bundle['note_count']}**")
    if s is not None:
        lines.append(f"- Mean mood score: **{s:.1f}/10**")
    else:
        lines.append("- Mean mood score: _n/a_")
    lines.append(f"- Current streak: **{bundle['streak']}** day(s)")
    lines.append("")
    lines.append("## Emotional flow")
    if bundle["moods"]:
        lines.append(" → ".join(f"{m['mood']} ({m['score']:g})" for m in bundle["moods"]))
    else:
        lines.append("_(no analyzed entries this period)_")
    lines.append("")
    lines.append("## Top tags")
    if bundle["top_tags"]:
        for tag, cnt in bundle["top_tags"]:
            lines.append(f"- {tag} ({cnt})")
    else:
        lines.append("_(no tags this period)_")
    lines.append("")
    lines.append("## Entries")
    if bundle["notes"]:
        for row in bundle["notes"]:
            title = row["title"] or "(untitled)"
            star = " ★" if row["favorite"] else ""
            lines.append(f"- **{title}**{star} — {fmt_dt(row['created_at'])}  _(id: {row['id']})_")
    else:
        lines.append("_(no entries in this window)_")
    lines.append("")
    return "\n".join(lines)


def write_report(markdown: str, reports_dir: Path, period: str, start: datetime, end: datetime) -> Path:
    """
    Write Markdown to reports_dir with a deterministic filename.
    Returns the Path to the written file.
    """
    reports_dir = reports_dir.expanduser()
    reports_dir.mkdir(parents=True, exist_ok=True)

    def ts(d: datetime) -> str:
        return d.strftime("%Y%m%d")

    fname = f"{period}_journal_{ts(start)}_{ts(end)}.md"
    path = reports_dir / fname
    path.write_text(markdown, encoding="utf-8")
    return path
