from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

from launchauth.logging import get_logger

logger = get_logger(__name__)

LANG_DIR = Path(__file__).resolve().parent.parent / "lang"
DEFAULT_LANGUAGE = "en_US"


class MessageCatalog(Protocol):
    def lookup(self, key: str) -> str: ...


def _flatten(tree: Dict[str, Any], prefix: str = "") -> Dict[str, str]:
    flat: Dict[str, str] = {}
    for key, value in tree.items():
        path = f"{prefix}.{key}" if prefix else key
        if isinstance(value, dict):
            flat.update(_flatten(value, path))
        else:
            flat[path] = str(value)
    return flat


class LangCatalog:
    """Localized strings loaded from ``lang/<language>.json``.

    Keys missing from the requested language fall back to ``en_US``; keys
    missing from both resolve to the key itself, so ``lookup`` is total.
    """

    def __init__(self, language: str = DEFAULT_LANGUAGE, *, lang_dir: Optional[Path] = None) -> None:
        self.language = language
        self.lang_dir = Path(lang_dir) if lang_dir else LANG_DIR
        self._fallback = self._load(DEFAULT_LANGUAGE)
        if language == DEFAULT_LANGUAGE:
            self._strings = self._fallback
        else:
            self._strings = self._load(language)

    def _load(self, language: str) -> Dict[str, str]:
        path = self.lang_dir / f"{language}.json"
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            logger.warning("lang_file_missing", language=language, path=str(path))
            return {}
        return _flatten(data)

    def lookup(self, key: str) -> str:
        value = self._strings.get(key)
        if value is None:
            value = self._fallback.get(key)
        if value is None:
            logger.warning("lang_key_missing", key=key, language=self.language)
            return key
        return value


class DictCatalog:
    """Catalog over a plain mapping, used when strings come from elsewhere."""

    def __init__(self, strings: Dict[str, str]) -> None:
        self._strings = dict(strings)

    def lookup(self, key: str) -> str:
        return self._strings.get(key, key)


__all__ = ["DictCatalog", "LangCatalog", "MessageCatalog"]
