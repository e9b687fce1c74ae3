from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class QualityVerdict:
    """
    Outcome of the quality gate for a single face.

    Mandatory:
      - passed : True if the face may be used as reference or probe
      - reason : short human-readable rejection reason, None when passed

    A failed verdict is terminal; retrying with a new capture is up to
    the caller.
    """

    passed: bool
    reason: Optional[str] = None

    def __bool__(self) -> bool:
        return self.passed
