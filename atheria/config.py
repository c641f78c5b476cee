from pathlib import Path
import os
import tomllib

# Canonical default config location (used by `atheria init`)
DEFAULT_CONFIG_PATH = "~/.config/atheria/config.toml"

def _resolve_config_path(path: str | None) -> Path:
    """
    Resolve the configuration file path in priority order:
    1) Explicit path argument (if provided)
    2) ATHERIA_CONFIG environment variable (if set)
    3) ./config.toml in current working directory
    4) ~/.config/atheria/config.toml
    Raises FileNotFoundError with guidance if not found.
    """
    candidates: list[Path] = []
    if path:
        candidates.append(Path(path).expanduser())
    env_path = os.getenv("ATHERIA_CONFIG")
    if env_path:
        candidates.append(Path(env_path).expanduser())
    candidates.append(Path("config.toml").absolute())
    candidates.append(Path(DEFAULT_CONFIG_PATH).expanduser())
    for p in candidates:
        if p.is_file():
            return p
    raise FileNotFoundError(
        "No config.toml found. Set ATHERIA_CONFIG, place a config.toml in the working directory, "
        "or run 'atheria init' to create one at ~/.config/atheria/config.toml."
    )

class Settings:
    def __init__(self, data: dict):
        self.data_dir    = Path(data.get("data_dir", "~/Documents/Atheria")).expanduser()
        self.import_dir  = Path(data.get("import_dir", self.data_dir / "import")).expanduser()
        self.archive_dir = Path(data.get("archive_dir", self.import_dir / "archive")).expanduser()
        self.reports_dir = Path(data.get("reports_dir", self.data_dir / "reports")).expanduser()
        self.remote_url  = data.get("remote_url") or f"sqlite+aiosqlite:///{self.state_dir / 'remote.db'}"
        self.default_user = data.get("default_user", "local")
        # Save pipeline timing, in milliseconds
        self.debounce_ms = int(data.get("debounce_ms", 500))
        self.saved_display_ms = int(data.get("saved_display_ms", 2000))
        # Seconds between remote polls for changes made elsewhere; 0 disables polling
        self.poll_interval = float(data.get("poll_interval", 0))
        self.analysis_min_chars = int(data.get("analysis_min_chars", 10))
        self.remote_allowed = bool(data.get("remote_allowed", False))
        self.llm_backend = data.get("llm_backend", "local")
        self.openai_model = data.get("openai_model", "gpt-4o-mini")
        self.report_times = data.get(
            "report_times",
            {"daily": "23:00", "weekly": "Sun 18:00"}
        )

    @property
    def state_dir(self) -> Path:
        return (self.data_dir / ".atheria").expanduser()

    @property
    def cache_dir(self) -> Path:
        return self.state_dir / "cache"

def load_settings(path: str | None = None) -> Settings:
    cfg_path = _resolve_config_path(path)
    with open(cfg_path, "rb") as f:
        cfg = tomllib.load(f)
    s = Settings(cfg)
    s.state_dir.mkdir(parents=True, exist_ok=True)
    return s
