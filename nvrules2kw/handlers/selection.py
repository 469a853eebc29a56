"""Handlers for criteria that select on values: labels, annotations, env vars, storage and images."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, ClassVar

from nvrules2kw.handlers.base import RESOURCE_PVC, RESOURCE_WORKLOAD, PolicyHandler
from nvrules2kw.share import (
    CRITERIA_OP_CONTAINS_ALL,
    CRITERIA_OP_CONTAINS_ANY,
    CRITERIA_OP_CONTAINS_OTHER_THAN,
    CRITERIA_OP_NOT_CONTAINS_ANY,
    ConversionError,
    Criterion,
    extract_module_name,
)

RULE_ANNOTATIONS = "annotations"
RULE_LABELS = "labels"
RULE_ENV_VARS = "envVars"
RULE_STORAGE_CLASS = "storageClassName"
RULE_IMAGE_REGISTRY = "imageRegistry"
RULE_IMAGE = "image"

POLICY_ANNOTATIONS_POLICY_URI = "registry://ghcr.io/kubewarden/policies/annotations:v0.1.2"
POLICY_LABELS_POLICY_URI = "registry://ghcr.io/kubewarden/policies/labels:v0.1.2"
POLICY_ENVIRONMENT_VARIABLE_URI = (
    "registry://ghcr.io/kubewarden/policies/environment-variable-policy:v3.0.2"
)
POLICY_PVC_STORAGE_CLASS_URI = (
    "registry://ghcr.io/kubewarden/policies/persistentvolumeclaim-storageclass-policy:v1.1.0"
)
POLICY_TRUSTED_REPOS_POLICY_URI = "registry://ghcr.io/kubewarden/policies/trusted-repos:v2.0.1"

# Only deny rules are converted, so each positive operator maps to its negation.
CRITERIA_NEGATION = {
    CRITERIA_OP_CONTAINS_ALL: "doesNotContainAllOf",
    CRITERIA_OP_CONTAINS_ANY: "doesNotContainAnyOf",
    CRITERIA_OP_CONTAINS_OTHER_THAN: "doesNotContainOtherThan",
    CRITERIA_OP_NOT_CONTAINS_ANY: "containsAnyOf",
}

_SET_OPS = frozenset(CRITERIA_NEGATION)
_ANY_OPS = frozenset({CRITERIA_OP_CONTAINS_ANY, CRITERIA_OP_NOT_CONTAINS_ANY})


def _single(criteria: Sequence[Criterion]) -> Criterion:
    if len(criteria) != 1:
        raise ConversionError("only one criterion is allowed")
    return criteria[0]


class _NegatedSetHandler(PolicyHandler):
    """Builds ``criteria``/``values`` settings from one set-operator criterion."""

    applicable_resource = RESOURCE_WORKLOAD
    supported_ops = _SET_OPS
    _strict_ops: ClassVar[bool] = False

    def build_policy_settings(self, criteria: Sequence[Criterion]) -> dict[str, Any]:
        criterion = _single(criteria)
        negated = CRITERIA_NEGATION.get(criterion.op)
        if negated is None:
            if self._strict_ops:
                raise ConversionError(f"unsupported criteria operator: {criterion.op}")
            negated = ""
        return {"criteria": negated, "values": criterion.value.split(",")}


class AnnotationsPolicyHandler(_NegatedSetHandler):
    """Checks the annotations of a workload."""

    module = POLICY_ANNOTATIONS_POLICY_URI
    name = extract_module_name(POLICY_ANNOTATIONS_POLICY_URI)

    def build_policy_settings(self, criteria: Sequence[Criterion]) -> dict[str, Any]:
        return super().build_policy_settings(criteria)


class LabelsPolicyHandler(_NegatedSetHandler):
    """Checks the labels of a workload."""

    module = POLICY_LABELS_POLICY_URI
    name = extract_module_name(POLICY_LABELS_POLICY_URI)

    def build_policy_settings(self, criteria: Sequence[Criterion]) -> dict[str, Any]:
        return super().build_policy_settings(criteria)


class EnvVarHandler(_NegatedSetHandler):
    """Checks the environment variables of a workload's containers."""

    module = POLICY_ENVIRONMENT_VARIABLE_URI
    name = extract_module_name(POLICY_ENVIRONMENT_VARIABLE_URI)
    _strict_ops = True

    def build_policy_settings(self, criteria: Sequence[Criterion]) -> dict[str, Any]:
        return super().build_policy_settings(criteria)


class PVCStorageClassHandler(PolicyHandler):
    """Restricts the storage classes of persistent volume claims."""

    module = POLICY_PVC_STORAGE_CLASS_URI
    name = extract_module_name(POLICY_PVC_STORAGE_CLASS_URI)
    applicable_resource = RESOURCE_PVC
    supported_ops = _ANY_OPS

    def build_policy_settings(self, criteria: Sequence[Criterion]) -> dict[str, Any]:
        criterion = _single(criteria)
        key = (
            "deniedStorageClasses"
            if criterion.op == CRITERIA_OP_CONTAINS_ANY
            else "allowedStorageClasses"
        )
        return {key: criterion.value.split(",")}


class TrustedReposHandler(PolicyHandler):
    """Allows or rejects images and registries.

    ``containsAny`` rejects the listed values; any other operator allows only them.
    """

    module = POLICY_TRUSTED_REPOS_POLICY_URI
    name = extract_module_name(POLICY_TRUSTED_REPOS_POLICY_URI)
    applicable_resource = RESOURCE_WORKLOAD
    supported_ops = _ANY_OPS

    _SECTION_FOR_RULE = {RULE_IMAGE_REGISTRY: "registries", RULE_IMAGE: "images"}

    def build_policy_settings(self, criteria: Sequence[Criterion]) -> dict[str, Any]:
        settings: dict[str, dict[str, list[str]]] = {}
        for criterion in criteria:
            operator = "reject" if criterion.op == CRITERIA_OP_CONTAINS_ANY else "allow"
            section = self._SECTION_FOR_RULE.get(criterion.name)
            if section is None:
                raise ConversionError(f"unsupported criterion: {criterion.name}")
            settings.setdefault(section, {})[operator] = criterion.value.split(",")
        return settings