"""
Entry cache contract.

The engine only talks to a cache through lookup()/store(), which key a
translation by (source text, target language, instructions). Storage
backends implement the raw get/set/clear.
"""

import hashlib
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


def compute_entry_key(
    source_text: str,
    target_language: str,
    instructions: Optional[str] = None,
) -> str:
    """
    Generate a stable cache key for one subtitle entry.

    Text is compared case-insensitively after trimming, so "Hello" and
    " hello " share a key. Custom instructions change the key.

    Examples:
        >>> compute_entry_key("Hello", "French") == compute_entry_key(" hello ", "French")
        True
        >>> compute_entry_key("Hello", "French") != compute_entry_key("Hello", "German")
        True
    """
    instructions_hash = (
        hashlib.sha256(instructions.encode("utf-8")).hexdigest()[:8]
        if instructions else "default"
    )
    key_components = {
        "text": source_text.strip().lower(),
        "target_language": target_language.strip().lower(),
        "instructions": instructions_hash,
    }
    key_json = json.dumps(key_components, sort_keys=True, ensure_ascii=False)
    return hashlib.sha256(key_json.encode("utf-8")).hexdigest()


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    writes: int = 0
    evictions: int = 0
    size: int = 0
    max_size: int = 0

    @property
    def hit_rate(self) -> float:
        lookups = self.hits + self.misses
        return self.hits / lookups if lookups else 0.0


class CacheInterface(ABC):
    """Key/value store of translated entry texts"""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> bool:
        """Store a value; writing the same key twice is harmless"""
        ...

    @abstractmethod
    def clear(self) -> int:
        """Drop everything, return how many entries were removed"""
        ...

    @abstractmethod
    def stats(self) -> CacheStats:
        ...

    def lookup(self, source_text: str, target_language: str,
               instructions: Optional[str] = None) -> Optional[str]:
        return self.get(compute_entry_key(source_text, target_language, instructions))

    def store(self, source_text: str, target_language: str, translated_text: str,
              instructions: Optional[str] = None) -> None:
        self.set(compute_entry_key(source_text, target_language, instructions), translated_text)
