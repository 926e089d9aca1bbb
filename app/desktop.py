"""
Desktop bridge: the calls the editor window makes into the local process.

One method per channel (save-file, autosave, load-last-autosave, ...). Each
returns a JSON-ready dict in the editor's camelCase shape; none of them
raises on filesystem problems. The save dialog and the file manager are
injected so the bridge works with any window toolkit.
"""
import logging
import os
import subprocess
import sys
from datetime import date
from typing import Callable

from services.autosave_store import AutosaveStore, StoreResult

logger = logging.getLogger(__name__)


def open_in_file_manager(path: str) -> None:
    """Open a directory in the platform file manager."""
    if sys.platform == "darwin":
        subprocess.Popen(["open", path])
    elif os.name == "nt":
        os.startfile(path)  # type: ignore[attr-defined]
    else:
        subprocess.Popen(["xdg-open", path])


def _ipc(result: StoreResult) -> dict:
    out: dict = {"success": result.success}
    if result.path is not None:
        out["path"] = result.path
    if result.error is not None:
        out["error"] = result.error
    return out


class DesktopBridge:
    def __init__(
        self,
        store: AutosaveStore,
        choose_save_path: Callable[[str], str | None] | None = None,
        opener: Callable[[str], None] = open_in_file_manager,
    ):
        """
        choose_save_path(default_name) shows the save dialog and returns the
        chosen path, or None when the user cancels.
        """
        self.store = store
        self.choose_save_path = choose_save_path
        self.opener = opener

    def startup(self) -> None:
        """Called once when the window opens."""
        self.store.ensure_store()
        self.store.prune()

    def save_file(self, content: str) -> dict:
        """Save-as: write content wherever the user picks."""
        if self.choose_save_path is None:
            return {"success": False, "canceled": True}
        path = self.choose_save_path(f"script_{date.today().isoformat()}.txt")
        if not path:
            return {"success": False, "canceled": True}
        try:
            with open(path, "w", encoding="utf-8") as f:
                f.write(content)
        except OSError as e:
            return {"success": False, "error": str(e)}
        return {"success": True, "path": path}

    def autosave(self, content: str, background_mode: str | None = None) -> dict:
        return _ipc(self.store.write_snapshot(content, background_mode))

    def get_autosave_dir(self) -> str:
        return self.store.directory

    def open_autosave_folder(self) -> dict:
        self.store.ensure_store()
        try:
            self.opener(self.store.directory)
        except OSError as e:
            logger.warning("Could not open autosave folder: %s", e)
            return {"success": False, "error": str(e)}
        return {"success": True}

    def load_last_autosave(self) -> dict:
        result = self.store.load_most_recent()
        if result.success:
            return {
                "success": True,
                "content": result.content,
                "backgroundMode": result.background_mode,
            }
        if result.not_found:
            return {"success": False, "noFiles": True}
        return _ipc(result)

    def save_file_to_dir(self, content: str, filename: str) -> dict:
        return _ipc(self.store.save_named(content, filename))

    def list_autosave_files(self) -> dict:
        result = self.store.list_all()
        if not result.success:
            return {"success": False, "error": result.error, "files": []}
        files = [
            {
                "name": f.name,
                "path": f.path,
                "time": int(f.modified_at * 1000),
                "date": f.date,
            }
            for f in result.files
        ]
        return {"success": True, "files": files}

    def load_autosave_file(self, path: str) -> dict:
        result = self.store.load_by_path(path)
        if result.success:
            return {"success": True, "content": result.content}
        return {"success": False, "error": result.error or "File not found"}
