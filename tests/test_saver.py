import asyncio

from atheria.errors import RemoteWriteError
from atheria.note import mutate_note, new_note
from atheria.services.saver import SavePipeline, SaveStatus, UnloadGuard


def _pipeline(clock, written, fail=False):
    async def write(note):
        if fail:
            raise RemoteWriteError("store offline")
        written.append(note)
    return SavePipeline(write, clock, debounce_ms=500, saved_display_ms=2000)


def test_burst_of_edits_writes_once_with_last_value(run_async, clock):
    written = []

    async def go():
        p = _pipeline(clock, written)
        seen = []
        p.on_status(seen.append)
        n = new_note(now=1)
        for i in range(1, 6):
            p.schedule(mutate_note(n, now=10 + i, content="x" * i))
            clock.advance(0.1)
        assert written == []
        assert p.status is SaveStatus.SAVING

        clock.advance(0.5)
        await p.drain()
        assert [w.content for w in written] == ["xxxxx"]
        assert p.status is SaveStatus.SAVED

        clock.advance(2.0)
        assert p.status is SaveStatus.IDLE
        assert seen == [SaveStatus.SAVING, SaveStatus.SAVED, SaveStatus.IDLE]

    run_async(go())


def test_failed_write_sets_error_until_next_edit(run_async, clock):
    written = []

    async def go():
        p = _pipeline(clock, written, fail=True)
        n = new_note(now=1)
        p.schedule(n)
        clock.advance(0.5)
        await p.drain()
        assert p.status is SaveStatus.ERROR
        # no retry on its own
        clock.advance(10)
        assert p.status is SaveStatus.ERROR

        p.schedule(mutate_note(n, now=2, content="again"))
        assert p.status is SaveStatus.SAVING

    run_async(go())


def test_edit_during_saved_display_goes_back_to_saving(run_async, clock):
    written = []

    async def go():
        p = _pipeline(clock, written)
        n = new_note(now=1)
        p.schedule(n)
        clock.advance(0.5)
        await p.drain()
        assert p.status is SaveStatus.SAVED

        p.schedule(mutate_note(n, now=2, content="more"))
        assert p.status is SaveStatus.SAVING
        # the old reset timer must not flip the status to idle
        clock.advance(0.4)
        assert p.status is SaveStatus.SAVING

    run_async(go())


def test_newer_edit_while_write_in_flight_stays_saving(run_async, clock):
    written = []

    async def go():
        p = _pipeline(clock, written)
        n = new_note(now=1)
        p.schedule(mutate_note(n, now=2, content="first"))
        clock.advance(0.5)
        p.schedule(mutate_note(n, now=3, content="second"))
        await p.drain()
        assert [w.content for w in written] == ["first"]
        assert p.status is SaveStatus.SAVING

        clock.advance(0.5)
        await p.drain()
        assert [w.content for w in written] == ["first", "second"]
        assert p.status is SaveStatus.SAVED

    run_async(go())


def test_switching_notes_sends_the_waiting_edit(run_async, clock):
    written = []

    async def go():
        p = _pipeline(clock, written)
        a = mutate_note(new_note(now=1), now=2, content="a body")
        b = mutate_note(new_note(now=1), now=3, content="b body")
        p.schedule(a)
        p.schedule(b)
        await p.drain()
        assert [w.id for w in written] == [a.id]

        clock.advance(0.5)
        await p.drain()
        assert [w.id for w in written] == [a.id, b.id]

    run_async(go())


def test_flush_and_cancel(run_async, clock):
    written = []

    async def go():
        p = _pipeline(clock, written)
        n = new_note(now=1)
        p.schedule(n)
        p.flush()
        await p.drain()
        assert [w.id for w in written] == [n.id]

        p.schedule(mutate_note(n, now=2, content="dropped"))
        p.cancel()
        clock.advance(5)
        await p.drain()
        assert len(written) == 1
        assert p.status is SaveStatus.IDLE
        assert not p.has_pending

    run_async(go())


def test_unload_guard_asks_only_while_busy(run_async, clock):
    written = []

    async def go():
        p = _pipeline(clock, written)
        guard = UnloadGuard(p)
        asked = []

        def ask(msg):
            asked.append(msg)
            return False

        assert not guard.armed
        assert guard.confirm_exit(ask) is True
        assert asked == []

        p.schedule(new_note(now=1))
        assert guard.armed
        assert guard.confirm_exit(ask) is False
        assert asked == [UnloadGuard.PROMPT]

        clock.advance(0.5)
        await p.drain()
        assert not guard.armed
        assert guard.confirm_exit(ask) is True

        guard.detach()
        p.schedule(new_note(now=2))
        assert not guard.armed

    run_async(go())


def test_unload_guard_released_after_error(run_async, clock):
    async def go():
        p = _pipeline(clock, [], fail=True)
        guard = UnloadGuard(p)
        p.schedule(new_note(now=1))
        assert guard.armed
        clock.advance(0.5)
        await asyncio.sleep(0)
        await p.drain()
        assert p.status is SaveStatus.ERROR
        assert not guard.armed

    run_async(go())


def test_saved_only_after_every_write_lands(run_async, clock):
    async def go():
        a = mutate_note(new_note(now=1), now=2, content="a body")
        b = mutate_note(new_note(now=1), now=3, content="b body")
        gate = asyncio.Event()
        written = []

        async def write(note):
            if note.id == b.id:
                await gate.wait()
            written.append(note.id)

        p = SavePipeline(write, clock, debounce_ms=500, saved_display_ms=2000)
        guard = UnloadGuard(p)
        p.schedule(a)
        p.schedule(b)
        clock.advance(0.5)
        for _ in range(5):
            await asyncio.sleep(0)
        assert written == [a.id]
        assert p.status is SaveStatus.SAVING
        assert guard.armed

        gate.set()
        await p.drain()
        assert written == [a.id, b.id]
        assert p.status is SaveStatus.SAVED
        assert not guard.armed

    run_async(go())


def test_discard_drops_only_that_note(run_async, clock):
    written = []

    async def go():
        p = _pipeline(clock, written)
        n = new_note(now=1)
        p.schedule(n)
        p.discard("some-other-id")
        assert p.has_pending
        p.discard(n.id)
        assert not p.has_pending
        assert p.status is SaveStatus.IDLE
        clock.advance(1)
        await p.drain()
        assert written == []

    run_async(go())


def test_recapture_replaces_pending_value(run_async, clock):
    written = []

    async def go():
        p = _pipeline(clock, written)
        n = mutate_note(new_note(now=1), now=2, title="draft")
        p.schedule(n)
        p.recapture(mutate_note(n, now=2, is_favorite=True))
        p.recapture(new_note(now=3))
        clock.advance(0.5)
        await p.drain()
        assert len(written) == 1
        assert written[0].id == n.id and written[0].is_favorite

    run_async(go())
