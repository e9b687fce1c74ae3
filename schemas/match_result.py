from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Optional


@dataclass(frozen=True)
class MatchResult:
    """
    Result of comparing a reference face with a probe face.

    Mandatory:
      - is_match         : sole authorization signal
      - similarity_score : weighted aggregate in [0, 1] in practice
                           (0.0 on every early reject)

    Explainability:
      - failed_features  : feature names whose similarity fell below the
                           per-feature floor
      - details          : rotation diffs, eye ratio, per-feature
                           similarities, valid feature count, effective
                           threshold, decision path
      - reason           : reason code of the decision (see face.matcher.ReasonCode)
    """

    is_match: bool
    similarity_score: float = 0.0
    failed_features: FrozenSet[str] = frozenset()
    details: Dict[str, Any] = field(default_factory=dict)
    reason: Optional[str] = None

    @property
    def similarities(self) -> Dict[str, float]:
        return dict(self.details.get("similarities") or {})

    @classmethod
    def rejected(cls, reason: str, details: Optional[Dict[str, Any]] = None) -> "MatchResult":
        d = dict(details or {})
        return cls(
            is_match=False,
            similarity_score=0.0,
            failed_features=frozenset(d.get("failed_features") or ()),
            details=d,
            reason=reason,
        )
