"""
Client state.

Durable flags survive across sessions on the same device and live in a small
JSON file; session flags live only as long as this object.

Contract for the first-visit auto-prompt: ``claim_auto_prompt()`` is the only
way to obtain permission to prompt. It reads the durable flag and, when
unset, writes it *before* returning True, so a prompt flow that fails
halfway can never cause a second auto-prompt. If the flag cannot be written,
no prompt is granted. Write failures never raise; they are logged and the
in-memory value is kept for this session.
"""

import contextlib
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

PUSH_PROMPT_SHOWN = "push_prompt_shown"
REGISTERED_ENDPOINT = "registered_endpoint"


class ClientStateStore:
    def __init__(self, path: Optional[str] = None):
        self.path = Path(path) if path else None
        self._durable: Dict[str, Any] = self._load()
        self._session: Dict[str, Any] = {}

    def _load(self) -> Dict[str, Any]:
        if self.path is None or not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Client state unreadable, starting fresh: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self) -> bool:
        """Persist durable flags. 실패 시 False; 메모리 상태는 유지"""
        if self.path is None:
            return True
        tmp_path = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=str(self.path.parent), prefix=".state-")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self._durable, f)
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.warning(f"Client state not persisted: {e}")
            if tmp_path:
                with contextlib.suppress(OSError):
                    os.unlink(tmp_path)
            return False
        return True

    # durable
    @property
    def push_prompt_shown(self) -> bool:
        return bool(self._durable.get(PUSH_PROMPT_SHOWN, False))

    def claim_auto_prompt(self) -> bool:
        if self.push_prompt_shown:
            return False
        self._durable[PUSH_PROMPT_SHOWN] = True
        # 기록하지 못하면 다음 방문에 다시 묻게 되므로 이번에도 묻지 않는다
        return self._save()

    @property
    def registered_endpoint(self) -> Optional[str]:
        return self._durable.get(REGISTERED_ENDPOINT)

    def mark_registered(self, endpoint: str) -> None:
        self._durable[REGISTERED_ENDPOINT] = endpoint
        self._save()

    def clear_registration(self) -> None:
        if self._durable.pop(REGISTERED_ENDPOINT, None) is not None:
            self._save()

    # session only
    @property
    def install_prompt_dismissed(self) -> bool:
        return bool(self._session.get("install_prompt_dismissed", False))

    def dismiss_install_prompt(self) -> None:
        self._session["install_prompt_dismissed"] = True
