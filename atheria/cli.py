# atheria/cli.py
from __future__ import annotations

import asyncio
import sys
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import AsyncIterator, Optional
import click

from atheria.config import DEFAULT_CONFIG_PATH, load_settings
from atheria.db import make_engine, ensure_schema
from atheria.errors import AnalysisError
from atheria.note import NOVEL_CATEGORIES, Note, category_of, current_mood
from atheria.remote import RemoteStore
from atheria.services.saver import UnloadGuard
from atheria.services.session import JournalSession
from atheria.utils import datetime_from_ms, ms_from_datetime
from atheria.view import SORT_KEYS, available_moods, streak

from atheria.log import setup_logging
setup_logging()


@click.group()
@click.option("--user", "user", default=None, help="User id (default: default_user from config.toml).")
@click.pass_context
def cli(ctx: click.Context, user: Optional[str]):
    """Atheria — journal and novel notes, synced."""
    ctx.ensure_object(dict)
    ctx.obj["user"] = user


# ---------------------------------------------------------------------
# helpers
# ---------------------------------------------------------------------
@asynccontextmanager
async def _open_session(user: Optional[str], *, with_provider: bool = False) -> AsyncIterator[JournalSession]:
    s = load_settings()
    eng, session_factory = make_engine(s.remote_url)
    await ensure_schema(eng)
    store = RemoteStore(eng, session_factory)
    provider = None
    if with_provider:
        from atheria.llm.factory import get_provider
        provider = get_provider(s)
    session = JournalSession.from_settings(s, store, provider=provider)
    await session.start(user or s.default_user)
    try:
        yield session
    finally:
        await session.stop()
        await store.close()


def _resolve(session: JournalSession, prefix: str) -> Note:
    """Find a note by id or unique id prefix."""
    matches = [n for n in session.notes if n.id.startswith(prefix)]
    if not matches:
        raise click.ClickException(f"No note found with id: {prefix}")
    if len(matches) > 1:
        raise click.ClickException(f"Ambiguous id prefix {prefix!r} ({len(matches)} notes)")
    return matches[0]


def _fmt_ms(ms: int) -> str:
    return datetime_from_ms(ms).strftime("%Y-%m-%d %H:%M")


def _line(n: Note) -> str:
    star = "★" if n.is_favorite else " "
    mood = current_mood(n)
    kind = category_of(n) or n.type
    title = n.title or "(untitled)"
    return f"{star} {n.id[:8]}  {_fmt_ms(n.updated_at)}  {kind:<9} {title}" + (f"  [{mood.mood}]" if mood else "")


# ---------------------------------------------------------------------
# init: create default config + directories
# ---------------------------------------------------------------------
@cli.command("init")
@click.option("--force", is_flag=True, help="Overwrite existing config.toml if present.")
def init_command(force: bool) -> None:
    """Create a default config.toml and the data/import/reports directories."""
    import tomli_w

    cfg_path = Path(DEFAULT_CONFIG_PATH).expanduser()
    cfg_path.parent.mkdir(parents=True, exist_ok=True)

    default = {
        "data_dir": "~/Documents/Atheria",
        "import_dir": "~/Documents/Atheria/import",
        "reports_dir": "~/Documents/Atheria/reports",
        "default_user": "local",
        "debounce_ms": 500,
        "saved_display_ms": 2000,
        "poll_interval": 0,
        "remote_allowed": False,
        "llm_backend": "local",  # local | openai
        "report_times": {"daily": "23:00", "weekly": "Sun 18:00"},
    }

    if cfg_path.exists() and not force:
        click.echo(f"Config already exists at {cfg_path} (use --force to overwrite).")
    else:
        with open(cfg_path, "wb") as f:
            tomli_w.dump(default, f)
        click.echo(f"Wrote default config to {cfg_path}")

    data_dir = Path(default["data_dir"]).expanduser()
    import_dir = Path(default["import_dir"]).expanduser()
    reports_dir = Path(default["reports_dir"]).expanduser()
    for d in (data_dir, import_dir, reports_dir, data_dir / ".atheria"):
        d.mkdir(parents=True, exist_ok=True)

    click.echo("Created directories:")
    click.echo(f"  - {data_dir}")
    click.echo(f"  - {import_dir}")
    click.echo(f"  - {reports_dir}")
    click.echo("Done.")


@cli.command()
def initdb():
    """Create the remote store schema and show its URL."""
    s = load_settings()
    eng, _ = make_engine(s.remote_url)

    async def go():
        await ensure_schema(eng)
        await eng.dispose()
        click.echo(f"Store ready: {s.remote_url}")

    asyncio.run(go())


@cli.command("doctor")
@click.option("--json", "as_json", is_flag=True, help="Output JSON summary.")
def doctor_cmd(as_json: bool) -> None:
    """Run diagnostics: config, remote store, offline cache."""
    import json as _json
    from atheria.doctor import run_checks

    res = asyncio.run(run_checks())
    if as_json:
        click.echo(_json.dumps(res.to_dict(), indent=2, default=str))
        return
    click.echo("Atheria Doctor\n--------------")
    click.echo(f"OK: {res.ok}")
    if res.errors:
        click.echo("Errors:")
        for e in res.errors:
            click.echo(f"  - {e}")
    if res.warnings:
        click.echo("Warnings:")
        for w in res.warnings:
            click.echo(f"  - {w}")
    click.echo("Details:")
    for k, v in res.details.items():
        click.echo(f"  {k}: {v}")


# ---------------------------------------------------------------------
# notes
# ---------------------------------------------------------------------
@cli.command()
@click.option("--novel", is_flag=True, help="Create a novel note instead of a journal entry.")
@click.option("--category", type=click.Choice(NOVEL_CATEGORIES), default=None, help="Novel category (default: chapter).")
@click.option("--title", default=None)
@click.option("--content", default=None)
@click.pass_context
def new(ctx: click.Context, novel: bool, category: Optional[str], title: Optional[str], content: Optional[str]):
    """Create a note."""
    async def go():
        async with _open_session(ctx.obj["user"]) as session:
            note = await session.create_note("novel" if novel else "journal", category)
            changes = {k: v for k, v in (("title", title), ("content", content)) if v is not None}
            if changes:
                session.update_note(**changes)
            click.echo(f"CREATED: {note.id}")

    asyncio.run(go())


@cli.command("import")
@click.argument("files", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--novel", is_flag=True, help="Import as novel notes.")
@click.pass_context
def import_cmd(ctx: click.Context, files: tuple[Path, ...], novel: bool):
    """Import .txt/.md/.docx files as notes, dated from their content when possible."""
    async def go():
        async with _open_session(ctx.obj["user"]) as session:
            for p in files:
                try:
                    note = await session.import_file(p, "novel" if novel else "journal")
                except ValueError as e:
                    click.echo(f"SKIP: {p.name} ({e})")
                    continue
                click.echo(f"IMPORTED: {p.name}  →  {note.id}  ({_fmt_ms(note.created_at)})")

    asyncio.run(go())


@cli.command("list")
@click.option("--search", "-s", default="", help="Case-insensitive text in title, content or tags.")
@click.option("--mood", default=None, help="Only notes whose current mood is exactly this.")
@click.option("--favorites", is_flag=True, help="Only favorites.")
@click.option("--novel", is_flag=True, help="List novel notes instead of journal entries.")
@click.option("--category", type=click.Choice(NOVEL_CATEGORIES), default=None)
@click.option("--sort", "sort_by", type=click.Choice(SORT_KEYS), default="updatedAt", show_default=True)
@click.option("--order", "sort_order", type=click.Choice(["asc", "desc"]), default="desc", show_default=True)
@click.pass_context
def list_cmd(ctx: click.Context, search: str, mood: Optional[str], favorites: bool, novel: bool,
             category: Optional[str], sort_by: str, sort_order: str):
    """List notes (filtered and sorted)."""
    async def go():
        async with _open_session(ctx.obj["user"]) as session:
            rows = session.view(
                search_term=search,
                mood_filter=mood,
                favorites_only=favorites,
                type_filter="novel" if novel else "journal",
                category_filter=category,
                sort_by=sort_by,
                sort_order=sort_order,
            )
            if not rows:
                click.echo("No notes.")
                return
            for n in rows:
                click.echo(_line(n))

    asyncio.run(go())


@cli.command()
@click.argument("note_id")
@click.pass_context
def show(ctx: click.Context, note_id: str):
    """Print one note with its insights."""
    async def go():
        async with _open_session(ctx.obj["user"]) as session:
            n = _resolve(session, note_id)
            click.echo(f"# {n.title or '(untitled)'}")
            click.echo(f"id: {n.id}")
            click.echo(f"created: {_fmt_ms(n.created_at)}  updated: {_fmt_ms(n.updated_at)}")
            if n.tags:
                click.echo("tags: " + ", ".join(f"#{t}" for t in n.tags))
            mood = current_mood(n)
            if mood:
                click.echo(f"mood: {mood.mood} ({mood.score:g}/10, {mood.color})")
            if n.ai_summary:
                click.echo(f"summary: {n.ai_summary}")
            if n.ai_reflection:
                click.echo(f"reflect: {n.ai_reflection}")
            click.echo("")
            click.echo(n.content)

    asyncio.run(go())


@cli.command()
@click.argument("note_id")
@click.option("--title", default=None)
@click.option("--content", default=None)
@click.option("--created", type=click.DateTime(formats=["%Y-%m-%d", "%Y-%m-%d %H:%M"]), default=None,
              help="Backdate the entry.")
@click.option("--tag", "tags", multiple=True, help="Add a tag (repeatable).")
@click.option("--untag", "untags", multiple=True, help="Remove a tag (repeatable).")
@click.option("--mood-color", default=None, help="Recolor the current mood (hex).")
@click.pass_context
def edit(ctx: click.Context, note_id: str, title: Optional[str], content: Optional[str], created: Optional[datetime],
         tags: tuple[str, ...], untags: tuple[str, ...], mood_color: Optional[str]):
    """Edit a note's fields."""
    async def go():
        async with _open_session(ctx.obj["user"]) as session:
            n = _resolve(session, note_id)
            session.select(n.id)
            changes = {}
            if title is not None:
                changes["title"] = title
            if content is not None:
                changes["content"] = content
            if created is not None:
                changes["created_at"] = ms_from_datetime(created)
            if changes:
                session.update_note(**changes)
            for t in tags:
                session.add_tag(n.id, t)
            for t in untags:
                session.remove_tag(n.id, t)
            if mood_color:
                session.recolor_mood(n.id, mood_color)
            session.saver.flush()
            await session.saver.drain()
            click.echo(f"{session.saver.status.value.upper()}: {n.id}")

    asyncio.run(go())


@cli.command()
@click.argument("note_id")
@click.pass_context
def write(ctx: click.Context, note_id: str):
    """Append lines to a note interactively; a line with a single '.' ends."""
    async def go():
        async with _open_session(ctx.obj["user"]) as session:
            n = _resolve(session, note_id)
            session.select(n.id)
            guard = UnloadGuard(session.saver)
            session.saver.on_status(lambda st: click.echo(f"[{st.value}]", err=True))
            click.echo(f"Writing to {n.title or n.id}. End with '.' on its own line.", err=True)
            while True:
                line = await asyncio.to_thread(sys.stdin.readline)
                if not line or line.rstrip("\n") == ".":
                    break
                current = session.selected
                if current is None:
                    raise click.ClickException("The note was deleted elsewhere.")
                session.update_note(content=current.content + line)
            if guard.confirm_exit(lambda msg: click.confirm(msg, default=False)):
                if guard.armed:
                    session.saver.cancel()
                    click.echo("Left without waiting; unsaved lines are only in the local cache.", err=True)
            else:
                session.saver.flush()
                await session.saver.drain()
            guard.detach()

    asyncio.run(go())


@cli.command()
@click.argument("note_id")
@click.pass_context
def fav(ctx: click.Context, note_id: str):
    """Toggle a note's favorite flag."""
    async def go():
        async with _open_session(ctx.obj["user"]) as session:
            n = await session.toggle_favorite(_resolve(session, note_id).id)
            click.echo(("★ " if n.is_favorite else "☆ ") + n.id)

    asyncio.run(go())


@cli.command()
@click.argument("note_id")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation.")
@click.pass_context
def delete(ctx: click.Context, note_id: str, yes: bool):
    """Delete a note."""
    async def go():
        async with _open_session(ctx.obj["user"]) as session:
            n = _resolve(session, note_id)
            if not yes and not click.confirm(f"Delete '{n.title or n.id}'?", default=False):
                click.echo("Cancelled.")
                return
            await session.delete_note(n.id)
            click.echo(f"DELETED: {n.id}")

    asyncio.run(go())


# ---------------------------------------------------------------------
# AI assistance
# ---------------------------------------------------------------------
@cli.command()
@click.argument("note_id")
@click.pass_context
def analyze(ctx: click.Context, note_id: str):
    """Detect mood, tags, a summary and a reflection question (respects remote_allowed)."""
    async def go():
        async with _open_session(ctx.obj["user"], with_provider=True) as session:
            n = _resolve(session, note_id)
            try:
                res = await session.analyze(n.id)
            except AnalysisError as e:
                raise click.ClickException(str(e)) from e
            click.echo(f"mood: {res.mood} ({res.mood_score:g}/10, {res.mood_color})")
            if res.tags:
                click.echo("tags: " + ", ".join(res.tags))
            click.echo(f"summary: {res.summary}")
            click.echo(f"reflect: {res.reflection_question}")

    asyncio.run(go())


@cli.command("continue")
@click.argument("note_id")
@click.pass_context
def continue_cmd(ctx: click.Context, note_id: str):
    """Append 2-3 sentences continuing the note in its own voice."""
    async def go():
        async with _open_session(ctx.obj["user"], with_provider=True) as session:
            n = _resolve(session, note_id)
            text = await session.continue_writing(n.id)
            if not text:
                click.echo("No continuation generated.")
                return
            click.echo(text)

    asyncio.run(go())


# ---------------------------------------------------------------------
# overview
# ---------------------------------------------------------------------
@cli.command()
@click.pass_context
def moods(ctx: click.Context):
    """List the moods present in journal entries."""
    async def go():
        async with _open_session(ctx.obj["user"]) as session:
            found = available_moods(session.view(type_filter="journal"))
            click.echo("\n".join(found) if found else "No moods yet. Run: atheria analyze <id>")

    asyncio.run(go())


@cli.command("streak")
@click.pass_context
def streak_cmd(ctx: click.Context):
    """Show the current daily journaling streak."""
    async def go():
        async with _open_session(ctx.obj["user"]) as session:
            days = streak(session.view(type_filter="journal"))
            click.echo(f"{days} day streak" + ("! Keep it up." if days else ""))

    asyncio.run(go())


@cli.command("report")
@click.option(
    "--period",
    type=click.Choice(["daily", "weekly", "monthly"], case_sensitive=False),
    default="weekly",
    show_default=True,
    help="Reporting window.",
)
@click.pass_context
def report_cmd(ctx: click.Context, period: str):
    """Generate a Markdown journal report and write it into reports/."""
    from atheria.reporters.report import collect, render_md, write_report

    s = load_settings()

    async def go():
        eng, session_factory = make_engine(s.remote_url)
        await ensure_schema(eng)
        store = RemoteStore(eng, session_factory)
        try:
            bundle = await collect(store, ctx.obj["user"] or s.default_user, period)
        finally:
            await store.close()
        path = write_report(render_md(bundle), s.reports_dir, bundle["period"], bundle["start"], bundle["end"])
        click.echo(f"Wrote {period} report → {path}")

    asyncio.run(go())


# ---------------------------------------------------------------------
# automation
# ---------------------------------------------------------------------
@cli.command()
@click.pass_context
def watch(ctx: click.Context):
    """Watch import_dir and import new files automatically."""
    from atheria.services.watcher import run_watch
    run_watch(ctx.obj["user"])


@cli.command()
def schedule():
    """Run background scheduler (nightly cache refresh; weekly report)."""
    from atheria.services.scheduler import run_scheduler
    run_scheduler()


# allow `python -m atheria.cli ...` and console entry point
if __name__ == "__main__":
    cli()
