"""Request bodies accepted by the asset routes."""

from __future__ import annotations

import threading
import time

from pydantic import BaseModel, ConfigDict, Field


class _Body(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True, str_strip_whitespace=True)


class CreateAssetRequest(_Body):
    color: str = Field(..., min_length=1)
    size: str = Field(..., min_length=1)
    owner: str = Field(..., min_length=1)
    value: str = Field(..., min_length=1)


class TransferAssetRequest(_Body):
    assetId: str = Field(..., min_length=1)
    newOwner: str = Field(..., min_length=1)


class UpdateAssetRequest(CreateAssetRequest):
    assetId: str = Field(..., min_length=1)


class AssetIdGenerator:
    """Issues ``asset<epoch millis>`` ids, strictly increasing per process.

    Two requests in the same millisecond get consecutive values. Ids from
    separate processes can still collide.
    """

    def __init__(self, clock=time.time, prefix: str = "asset"):
        self._clock = clock
        self._prefix = prefix
        self._last = 0
        self._lock = threading.Lock()

    def __call__(self) -> str:
        with self._lock:
            now = int(self._clock() * 1000)
            self._last = max(now, self._last + 1)
            return f"{self._prefix}{self._last}"
