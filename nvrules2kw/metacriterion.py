"""Meta criteria: single NeuVector criteria that stand for a group of basic ones."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import ClassVar

from nvrules2kw.handlers.security import (
    RULE_ALLOW_PRIVILEGED_ESCALATION,
    RULE_RUN_AS_PRIVILEGED,
    RULE_RUN_AS_ROOT,
    RULE_SHARE_IPC,
    RULE_SHARE_NETWORK,
    RULE_SHARE_PID,
)
from nvrules2kw.share import CRITERIA_OP_EQUAL, Criterion

RULE_PSP_BEST_PRACTICES = "pspCompliance"


class MetaCriterion(ABC):
    """A composite criterion that expands into several basic criteria."""

    supported_ops: ClassVar[frozenset[str]] = frozenset()

    @abstractmethod
    def expand(self) -> list[Criterion]:
        """Return the basic criteria that replace this one in a rule."""


class PSPBestPracticeMetaCriterion(MetaCriterion):
    """The PSP best-practice bundle of pod security criteria."""

    supported_ops = frozenset({CRITERIA_OP_EQUAL})

    _EXPANDED_NAMES = (
        RULE_SHARE_IPC,
        RULE_SHARE_NETWORK,
        RULE_SHARE_PID,
        RULE_RUN_AS_PRIVILEGED,
        RULE_RUN_AS_ROOT,
        RULE_ALLOW_PRIVILEGED_ESCALATION,
    )

    def expand(self) -> list[Criterion]:
        return [
            Criterion(name=name, op=CRITERIA_OP_EQUAL, value="true")
            for name in self._EXPANDED_NAMES
        ]