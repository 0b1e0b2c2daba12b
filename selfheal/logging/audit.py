from __future__ import annotations

import json
import threading
from dataclasses import asdict
from pathlib import Path
from typing import Any

from selfheal.core.metadata import HealAttempt


class HealingAuditLogger:
    """Appends every heal attempt to a JSON-lines trail."""

    def __init__(self, root: str | Path = "artifacts") -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        self.healed_elements_path = self.root / "healed_elements.jsonl"
        self._lock = threading.Lock()

    def write(self, attempt: HealAttempt) -> None:
        line = json.dumps(asdict(attempt))
        with self._lock, self.healed_elements_path.open("a", encoding="utf-8") as handle:
            handle.write(line + "\n")

    def read_attempts(self) -> list[dict[str, Any]]:
        if not self.healed_elements_path.exists():
            return []
        attempts: list[dict[str, Any]] = []
        with self.healed_elements_path.open("r", encoding="utf-8") as handle:
            for line in handle:
                if line.strip():
                    attempts.append(json.loads(line))
        return attempts
