"""
JSON state files under the agent's brain directory.
"""

import json
import logging
import os
from pathlib import Path

logger = logging.getLogger("Storage")


class JsonStore:
    def __init__(self, path):
        self.path = Path(path)

    def load(self, default=None):
        """Read the file. Missing or corrupt files return `default`."""
        if self.path.exists():
            try:
                with open(self.path, "r", encoding="utf-8") as f:
                    return json.load(f)
            except (json.JSONDecodeError, IOError) as e:
                logger.warning(f"⚠️ Could not read {self.path.name}: {e}")
        return default

    def save(self, data):
        """Write atomically (temp file + replace)."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, default=str)
        os.replace(tmp_path, self.path)


def brain_store(brain_dir, name):
    """Shortcut for a store named `<name>.json` inside the brain directory."""
    return JsonStore(Path(brain_dir) / f"{name}.json")
