from atheria.cache import LocalCache
from atheria.services.session import JournalSession
from atheria.services.watcher import import_pending


def test_import_pending_imports_and_archives(run_async, open_store, clock, tmp_path):
    inbox = tmp_path / "inbox"
    archive = tmp_path / "archive"
    inbox.mkdir()
    (inbox / "one.md").write_text("2023-04-01\nSpring.", encoding="utf-8")
    (inbox / "two.txt").write_text("No date here.", encoding="utf-8")
    (inbox / "skip.pdf").write_text("ignored", encoding="utf-8")

    async def go():
        store = await open_store()
        session = JournalSession(store, LocalCache(tmp_path / "cache"), clock)
        try:
            await session.start("alice")
            added = await import_pending(session, inbox, archive)
            titles = sorted(n.title for n in await store.fetch_all("alice"))
            again = await import_pending(session, inbox, archive)
            return added, titles, again
        finally:
            await session.stop()
            await store.close()

    added, titles, again = run_async(go())
    assert added == 2
    assert titles == ["one", "two"]
    assert again == 0
    assert sorted(p.name for p in archive.iterdir()) == ["one.md", "two.txt"]
    assert (inbox / "skip.pdf").exists()
