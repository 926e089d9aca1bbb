"""
Autosave store: timestamped text snapshots in a local directory.

Runs on the desktop side, next to the editor, independent of the network.
Every autosave writes a snapshot plus the preferences sidecar and then
prunes old snapshots, so the directory bounds itself without a timer.

Operations never raise on filesystem errors; they return a StoreResult with
success=False so the editor keeps running. Pruning failures are only logged.
"""
import json
import logging
import os
import re
from dataclasses import dataclass, field
from datetime import datetime, UTC

from envvars import int_env

logger = logging.getLogger(__name__)

DEFAULT_AUTOSAVE_DIR = os.getenv(
    "AUTOSAVE_DIR",
    os.path.join(os.path.expanduser("~"), "Documents", "Script Writer Autosaves"),
)

MAX_AUTOSAVES = int_env("MAX_AUTOSAVES", 50)

SNAPSHOT_PREFIX = "autosave_"
TEXT_EXT = ".txt"
PREFERENCES_FILE = "preferences.json"
DEFAULT_BACKGROUND_MODE = "light"


@dataclass
class SnapshotInfo:
    name: str
    path: str
    modified_at: float  # epoch seconds

    @property
    def date(self) -> str:
        """Local display string for the picker."""
        return datetime.fromtimestamp(self.modified_at).strftime("%Y-%m-%d %H:%M:%S")


@dataclass
class StoreResult:
    """
    Outcome of a store operation.

    - not_found: nothing to load (no snapshots, or the file vanished).
    - error: human-readable failure reason when success is False.
    """
    success: bool
    path: str | None = None
    content: str | None = None
    background_mode: str | None = None
    files: list[SnapshotInfo] = field(default_factory=list)
    not_found: bool = False
    error: str | None = None


def snapshot_timestamp(now: datetime | None = None) -> str:
    """ISO-8601 UTC timestamp with ':' and '.' replaced so it is filesystem safe."""
    now = now or datetime.now(UTC)
    iso = now.strftime("%Y-%m-%dT%H:%M:%S.%f") + "Z"
    return re.sub(r"[:.]", "-", iso)


def safe_filename(name: str) -> str:
    """Replace path separators and reserved chars so name stays inside the store."""
    safe = re.sub(r'[\\/:*?"<>|\x00-\x1f]+', "_", name).strip()
    # no hidden files or parent references
    safe = safe.lstrip(".")
    if len(safe) > 200:
        safe = safe[:200]
    return safe or "unnamed"


class AutosaveStore:
    """Directory of snapshots plus a preferences.json sidecar."""

    def __init__(self, directory: str = DEFAULT_AUTOSAVE_DIR, max_snapshots: int = MAX_AUTOSAVES):
        self.directory = os.path.abspath(directory)
        self.max_snapshots = max_snapshots

    @property
    def preferences_path(self) -> str:
        return os.path.join(self.directory, PREFERENCES_FILE)

    def ensure_store(self) -> None:
        """Create the directory if needed; errors are logged, never raised."""
        try:
            os.makedirs(self.directory, exist_ok=True)
        except OSError as e:
            logger.warning("Could not create autosave directory %s: %s", self.directory, e)

    def _scan(self, only_snapshots: bool) -> list[SnapshotInfo]:
        """Text files in the store, newest first. Files that vanish mid-scan are skipped."""
        result: list[SnapshotInfo] = []
        for name in os.listdir(self.directory):
            if not name.endswith(TEXT_EXT):
                continue
            if only_snapshots and not name.startswith(SNAPSHOT_PREFIX):
                continue
            path = os.path.join(self.directory, name)
            try:
                st = os.stat(path)
            except FileNotFoundError:
                continue
            if not os.path.isfile(path):
                continue
            result.append(SnapshotInfo(name=name, path=path, modified_at=st.st_mtime))
        # mtime first; name breaks ties since snapshot names embed the timestamp
        result.sort(key=lambda f: (f.modified_at, f.name), reverse=True)
        return result

    @staticmethod
    def _write_text(path: str, content: str) -> None:
        """
        Encode first so unencodable text (lone surrogates) fails before the
        file exists. A write that fails midway removes the partial file.
        """
        data = content.encode("utf-8")
        try:
            with open(path, "wb") as f:
                f.write(data)
        except OSError:
            if os.path.exists(path):
                os.remove(path)
            raise

    @staticmethod
    def _read_text(path: str) -> str:
        # non UTF-8 bytes become U+FFFD rather than failing the load
        with open(path, encoding="utf-8", errors="replace") as f:
            return f.read()

    def write_snapshot(self, content: str, background_mode: str | None) -> StoreResult:
        """Write autosave_<timestamp>.txt and preferences.json, then prune."""
        try:
            self.ensure_store()
            timestamp = snapshot_timestamp()
            path = os.path.join(self.directory, f"{SNAPSHOT_PREFIX}{timestamp}{TEXT_EXT}")
            self._write_text(path, content)
            self.write_preferences(background_mode, timestamp)
        except (OSError, ValueError) as e:
            logger.warning("Autosave failed: %s", e)
            return StoreResult(success=False, error=str(e))
        self.prune()
        return StoreResult(success=True, path=path)

    def write_preferences(self, background_mode: str | None, last_autosave: str) -> None:
        """Overwrite the sidecar atomically; raises OSError to the caller."""
        tmp_path = self.preferences_path + ".tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump({"backgroundMode": background_mode, "lastAutosave": last_autosave}, f)
        os.replace(tmp_path, self.preferences_path)

    def read_preferences(self) -> dict:
        """
        Read preferences.json leniently. A missing or corrupt file yields the
        defaults so it can never block loading snapshot text.
        """
        prefs = {"backgroundMode": DEFAULT_BACKGROUND_MODE, "lastAutosave": None}
        try:
            with open(self.preferences_path, encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return prefs
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable preferences file: %s", e)
            return prefs
        if isinstance(data, dict):
            prefs["backgroundMode"] = data.get("backgroundMode") or DEFAULT_BACKGROUND_MODE
            prefs["lastAutosave"] = data.get("lastAutosave")
        return prefs

    def prune(self, max_snapshots: int | None = None) -> int:
        """
        Keep the newest max_snapshots autosave files, delete the rest.
        Returns the number deleted. Best effort: failures are logged only.
        """
        keep = self.max_snapshots if max_snapshots is None else max_snapshots
        try:
            files = self._scan(only_snapshots=True)
        except OSError as e:
            logger.warning("Error cleaning old autosaves: %s", e)
            return 0
        deleted = 0
        for info in files[keep:]:
            try:
                os.remove(info.path)
                deleted += 1
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.warning("Could not delete old autosave %s: %s", info.path, e)
        return deleted

    def load_most_recent(self) -> StoreResult:
        """Content of the newest autosave plus the saved background mode."""
        try:
            self.ensure_store()
            files = self._scan(only_snapshots=True)
        except OSError as e:
            return StoreResult(success=False, error=str(e))
        for info in files:
            # a concurrent prune may remove a file between scan and read
            try:
                content = self._read_text(info.path)
            except FileNotFoundError:
                continue
            except OSError as e:
                return StoreResult(success=False, error=str(e))
            prefs = self.read_preferences()
            return StoreResult(
                success=True,
                path=info.path,
                content=content,
                background_mode=prefs["backgroundMode"],
            )
        return StoreResult(success=False, not_found=True)

    def save_named(self, content: str, filename: str) -> StoreResult:
        """Write content under a caller-chosen name; .txt appended if missing."""
        name = safe_filename(filename)
        if not name.endswith(TEXT_EXT):
            name += TEXT_EXT
        try:
            self.ensure_store()
            path = os.path.join(self.directory, name)
            self._write_text(path, content)
        except (OSError, ValueError) as e:
            logger.warning("Save to autosave directory failed: %s", e)
            return StoreResult(success=False, error=str(e))
        return StoreResult(success=True, path=path)

    def list_all(self) -> StoreResult:
        """Autosaves and named saves, newest first (never preferences.json)."""
        try:
            self.ensure_store()
            files = self._scan(only_snapshots=False)
        except OSError as e:
            return StoreResult(success=False, error=str(e))
        return StoreResult(success=True, files=files)

    def load_by_path(self, path: str) -> StoreResult:
        """Read one stored file. A vanished file is not_found, not an error."""
        full = os.path.abspath(path)
        if os.path.dirname(full) != self.directory:
            return StoreResult(success=False, error="Path is outside the autosave directory")
        try:
            content = self._read_text(full)
        except FileNotFoundError:
            return StoreResult(success=False, not_found=True, error="File not found")
        except OSError as e:
            return StoreResult(success=False, error=str(e))
        return StoreResult(success=True, path=full, content=content)
