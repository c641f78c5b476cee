import asyncio
import pytest
from pathlib import Path


@pytest.fixture(autouse=True)
def temp_config(tmp_path_factory, monkeypatch):
    cfg_root = tmp_path_factory.mktemp("atheria-config")
    data_dir = cfg_root / "Atheria"
    import_dir = data_dir / "import"
    archive_dir = import_dir / "archive"
    reports_dir = data_dir / "reports"
    (data_dir / ".atheria").mkdir(parents=True, exist_ok=True)
    archive_dir.mkdir(parents=True, exist_ok=True)
    reports_dir.mkdir(parents=True, exist_ok=True)

    cfg = (
        f"data_dir = \"{data_dir}\"\n"
        f"import_dir = \"{import_dir}\"\n"
        f"archive_dir = \"{archive_dir}\"\n"
        f"reports_dir = \"{reports_dir}\"\n"
        f"default_user = \"alice\"\n"
        f"remote_allowed = false\n"
        f"llm_backend = \"local\"\n"
        f"report_times = {{ daily = \"23:00\", weekly = \"Sun 18:00\" }}\n"
    )
    cfg_path = cfg_root / "config.toml"
    cfg_path.write_text(cfg, encoding="utf-8")
    monkeypatch.setenv("ATHERIA_CONFIG", str(cfg_path))
    yield
    monkeypatch.delenv("ATHERIA_CONFIG", raising=False)


@pytest.fixture
def run_async():
    def _run(coro):
        return asyncio.run(coro)
    return _run


class _Handle:
    def __init__(self, due: float, seq: int, callback):
        self.due = due
        self.seq = seq
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualTimers:
    """Timers driven by hand: nothing fires until advance() passes its deadline."""

    def __init__(self):
        self.now = 0.0
        self._seq = 0
        self._handles: list[_Handle] = []

    def call_later(self, delay, callback):
        self._seq += 1
        h = _Handle(self.now + delay, self._seq, callback)
        self._handles.append(h)
        return h

    @property
    def pending(self) -> int:
        return sum(1 for h in self._handles if not h.cancelled)

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [h for h in self._handles if not h.cancelled and h.due <= target]
            if not due:
                break
            h = min(due, key=lambda x: (x.due, x.seq))
            self._handles.remove(h)
            self.now = h.due
            h.callback()
        self.now = target
        self._handles = [h for h in self._handles if not h.cancelled]


@pytest.fixture
def clock():
    return ManualTimers()


@pytest.fixture
def store_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'remote.db'}"


@pytest.fixture
def open_store(store_url):
    """Coroutine factory returning a RemoteStore with its schema created."""
    from atheria.db import make_engine, ensure_schema
    from atheria.remote import RemoteStore

    async def _open(poll_interval: float = 0.0):
        eng, sf = make_engine(store_url)
        await ensure_schema(eng)
        return RemoteStore(eng, sf, poll_interval=poll_interval)
    return _open
