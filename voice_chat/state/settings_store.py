"""Per-group chat settings with change notifications."""

import asyncio
import json
import os
import tempfile
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Awaitable, Callable, Dict, Optional, Any
import structlog


logger = structlog.get_logger()


@dataclass
class ChatSettings:
    """Settings bound to a chat group."""

    id: int
    name: str
    author: str = "user"
    model: Optional[str] = None
    instructions: Optional[str] = None
    language: Optional[str] = None
    temperature: Optional[float] = None
    show_in_sidebar: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChatSettings":
        return cls(
            id=data["id"],
            name=data["name"],
            author=data.get("author", "user"),
            model=data.get("model"),
            instructions=data.get("instructions"),
            language=data.get("language"),
            temperature=data.get("temperature"),
            show_in_sidebar=data.get("show_in_sidebar", 0),
        )


SettingsListener = Callable[[Optional[int]], Awaitable[None]]


class SettingsStore:
    """
    JSON-backed chat settings keyed by group id.

    Listeners receive the group id that changed, or None for a change that
    may affect every group.
    """

    def __init__(self, base_path: Optional[str] = None):
        self.base_path = Path(base_path or "~/.voice-chat").expanduser()
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.settings_path = self.base_path / "chat_settings.json"
        self._listeners: list[SettingsListener] = []

    def _load_all(self) -> Dict[int, ChatSettings]:
        if not self.settings_path.exists():
            return {}
        with open(self.settings_path, "r") as f:
            raw = json.load(f)
        return {int(key): ChatSettings.from_dict(value) for key, value in raw.items()}

    def _save_all(self, all_settings: Dict[int, ChatSettings]) -> None:
        with tempfile.NamedTemporaryFile(
            mode="w", dir=self.base_path, delete=False, suffix=".tmp"
        ) as tmp_file:
            json.dump(
                {str(key): value.to_dict() for key, value in all_settings.items()},
                tmp_file,
                indent=2,
                ensure_ascii=False,
            )
            tmp_file.flush()
            os.fsync(tmp_file.fileno())
            tmp_path = tmp_file.name
        os.replace(tmp_path, self.settings_path)

    async def get(self, group_id: int) -> Optional[ChatSettings]:
        all_settings = await asyncio.to_thread(self._load_all)
        return all_settings.get(group_id)

    async def put(self, chat_settings: ChatSettings) -> None:
        """Create or replace a group's settings and notify listeners."""
        all_settings = await asyncio.to_thread(self._load_all)
        all_settings[chat_settings.id] = chat_settings
        await asyncio.to_thread(self._save_all, all_settings)
        logger.info("Chat settings saved", group_id=chat_settings.id)
        await self.emit(chat_settings.id)

    async def update_show_in_sidebar(self, group_id: int, value: int) -> None:
        all_settings = await asyncio.to_thread(self._load_all)
        chat_settings = all_settings.get(group_id)
        if chat_settings is None:
            logger.warning("No chat settings for group", group_id=group_id)
            return
        chat_settings.show_in_sidebar = value
        await asyncio.to_thread(self._save_all, all_settings)
        await self.emit(group_id)

    def subscribe(self, listener: SettingsListener) -> Callable[[], None]:
        """Register a change listener. Returns a callable that unsubscribes it."""
        self._listeners.append(listener)
        return lambda: self.unsubscribe(listener)

    def unsubscribe(self, listener: SettingsListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def emit(self, group_id: Optional[int] = None) -> None:
        """Notify every listener of a settings change."""
        if not self._listeners:
            return

        results = await asyncio.gather(
            *[listener(group_id) for listener in list(self._listeners)],
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, Exception):
                logger.error("Settings listener failed", group_id=group_id, error=str(result))
