"""Interface of the decryption capability used to verify ZenLocks."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class Decryptor(Protocol):
    """Decrypts every value of a ZenLock's encryptedData with one identity.

    Any exception raised is treated as opaque and its text is shown in the
    ZenLock status.
    """

    def decrypt_map(self, encrypted_data: dict[str, str], identity: str) -> dict[str, bytes]: ...
