#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Credential pool and per-batch rotation.

CredentialStore keeps the secret values in a private tuple and has no
serialization path: repr/str mask the values and pickling is refused.
Rotation state is never shared between workers; each batch gets its own
CredentialBinding copy.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Tuple

from config.logging_config import get_logger

logger = get_logger(__name__)


class RotationMode(Enum):
    PER_BATCH = "per_batch"  # round robin by batch index
    NONE = "none"            # always the first credential


def mask_secret(value: str) -> str:
    if not value:
        return "<empty>"
    if len(value) <= 8:
        return "****"
    return f"{value[:4]}...{value[-4:]}"


class Credential:
    """One API key. Compares by value, never prints it."""

    __slots__ = ("_value", "slot")

    def __init__(self, value: str, slot: int = 0):
        self._value = value
        self.slot = slot

    @property
    def value(self) -> str:
        return self._value

    def __eq__(self, other) -> bool:
        return isinstance(other, Credential) and other._value == self._value

    def __hash__(self) -> int:
        return hash(self._value)

    def __repr__(self) -> str:
        return f"<Credential #{self.slot} {mask_secret(self._value)}>"

    __str__ = __repr__

    def __reduce__(self):
        raise TypeError("Credential objects cannot be serialized")


class CredentialStore:
    """Ordered, read-only pool of interchangeable credentials"""

    def __init__(self, secrets: Iterable[str] = (), mode: RotationMode = RotationMode.PER_BATCH):
        values = []
        for secret in secrets:
            secret = (secret or "").strip()
            if secret and secret not in values:
                values.append(secret)
        self.__credentials: Tuple[Credential, ...] = tuple(
            Credential(value, slot) for slot, value in enumerate(values)
        )
        self.mode = RotationMode(mode)

    def __len__(self) -> int:
        return len(self.__credentials)

    def __bool__(self) -> bool:
        return bool(self.__credentials)

    def get(self, slot: int) -> Optional[Credential]:
        if not self.__credentials:
            return None
        return self.__credentials[slot % len(self.__credentials)]

    @property
    def rotation_enabled(self) -> bool:
        return self.mode == RotationMode.PER_BATCH and len(self.__credentials) > 1

    def __repr__(self) -> str:
        return f"<CredentialStore size={len(self.__credentials)} mode={self.mode.value}>"

    __str__ = __repr__

    def __reduce__(self):
        raise TypeError("CredentialStore cannot be serialized")


@dataclass
class CredentialBinding:
    """A worker's private view of the pool: a cursor into the store"""
    store: CredentialStore
    slot: int = 0
    rotations: int = 0

    @property
    def credential(self) -> Optional[Credential]:
        return self.store.get(self.slot)

    def rotate(self) -> Optional[Credential]:
        """Advance to the next credential (local to this binding)"""
        if len(self.store) <= 1:
            return self.credential
        self.slot = (self.slot + 1) % len(self.store)
        self.rotations += 1
        logger.info(f"Rotated to credential #{self.slot}")
        return self.credential

    def copy(self) -> "CredentialBinding":
        return CredentialBinding(store=self.store, slot=self.slot, rotations=0)


class CredentialRotator:
    """Hands out a fresh binding for each batch"""

    def __init__(self, store: Optional[CredentialStore] = None):
        self.store = store or CredentialStore()

    def binding_for_batch(self, batch_index: int) -> CredentialBinding:
        if self.store.mode == RotationMode.PER_BATCH and len(self.store) > 1:
            slot = batch_index % len(self.store)
            logger.debug(f"Batch {batch_index + 1} uses credential #{slot}")
        else:
            slot = 0
        return CredentialBinding(store=self.store, slot=slot)
