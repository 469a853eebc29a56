"""Common behaviour of the handlers that turn rule criteria into policy settings."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any, ClassVar

from nvrules2kw.share import (
    MSG_UNSUPPORTED_CRITERIA_OPERATOR,
    MSG_UNSUPPORTED_RULE_CRITERIA,
    ConversionError,
    Criterion,
)

RESOURCE_PVC = "pvc"
RESOURCE_WORKLOAD = "workload"


class PolicyHandler(ABC):
    """Maps one kind of NeuVector criterion onto a Kubewarden policy module.

    Subclasses describe the module they target through class attributes and
    build its settings from the criteria that map to it.
    """

    name: ClassVar[str] = ""
    module: ClassVar[str] = ""
    unsupported: ClassVar[bool] = False
    applicable_resource: ClassVar[str] = RESOURCE_WORKLOAD
    supported_ops: ClassVar[frozenset[str]] = frozenset()
    # Each entry is a mapping with "apiVersion" and "kind" keys.
    context_aware_resources: ClassVar[tuple[dict[str, str], ...]] = ()

    def validate(self, criterion: Criterion) -> None:
        """Raise ConversionError if the criterion or its operator is not supported."""
        if self.unsupported:
            raise ConversionError(MSG_UNSUPPORTED_RULE_CRITERIA)
        if criterion.op not in self.supported_ops:
            raise ConversionError(MSG_UNSUPPORTED_CRITERIA_OPERATOR)

    @abstractmethod
    def build_policy_settings(self, criteria: Sequence[Criterion]) -> dict[str, Any]:
        """Return the policy settings for criteria that map to this handler's module."""