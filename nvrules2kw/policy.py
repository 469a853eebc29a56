"""Building Kubewarden ClusterAdmissionPolicy and ClusterAdmissionPolicyGroup objects."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from typing import Any

from nvrules2kw.handlers.base import RESOURCE_PVC, RESOURCE_WORKLOAD, PolicyHandler
from nvrules2kw.handlers.security import RULE_NAMESPACE
from nvrules2kw.share import (
    CRITERIA_KEY_NAMESPACE,
    CRITERIA_OP_CONTAINS_ANY,
    AdmissionRule,
    ConversionConfig,
    ConversionError,
    Criterion,
    extract_module_name,
)

KW_API_VERSION = "policies.kubewarden.io/v1"
CLUSTER_ADMISSION_POLICY_KIND = "ClusterAdmissionPolicy"
CLUSTER_ADMISSION_POLICY_GROUP_KIND = "ClusterAdmissionPolicyGroup"
DEFAULT_MODE = "protect"

_OP_CREATE = "CREATE"
_OP_UPDATE = "UPDATE"


def _rule(operations: list[str], api_group: str, resources: list[str]) -> dict[str, Any]:
    return {
        "operations": operations,
        "apiGroups": [api_group],
        "apiVersions": ["v1"],
        "resources": resources,
    }


def _context_resources(handler: PolicyHandler) -> list[dict[str, str]]:
    return [dict(resource) for resource in handler.context_aware_resources]


def _metadata(name: str) -> dict[str, Any]:
    return {"name": name, "creationTimestamp": None}


class BaseBuilder(ABC):
    """Shared parts of the builders: rules, naming, mode and namespace selectors."""

    def __init__(self, handlers: Mapping[str, PolicyHandler] | None = None) -> None:
        self.handlers: dict[str, PolicyHandler] = dict(handlers or {})

    def build_rules(self, resources: Iterable[str]) -> list[dict[str, Any]]:
        """Return the admission rules for the given resource kinds, each kind once."""
        rules: list[dict[str, Any]] = []
        seen: set[str] = set()
        for resource in resources:
            if resource in seen:
                continue
            seen.add(resource)
            if resource == RESOURCE_PVC:
                rules.extend(self.build_pvc_rules())
            elif resource == RESOURCE_WORKLOAD:
                rules.extend(self.build_workload_rules())
        return rules

    def build_pvc_rules(self) -> list[dict[str, Any]]:
        """Rules matching creation of persistent volume claims."""
        return [_rule([_OP_CREATE], "", ["persistentvolumeclaims"])]

    def build_workload_rules(self) -> list[dict[str, Any]]:
        """Rules matching creation and update of pods and workload controllers."""
        return [
            _rule([_OP_CREATE, _OP_UPDATE], "", ["pods"]),
            _rule(
                [_OP_CREATE, _OP_UPDATE],
                "apps",
                ["deployments", "replicasets", "daemonsets", "statefulsets"],
            ),
            _rule([_OP_CREATE, _OP_UPDATE], "batch", ["jobs", "cronjobs"]),
        ]

    def generate_policy_name(self, rule: AdmissionRule) -> str:
        """Name the policy after the rule ID so the source rule can be traced."""
        return f"neuvector-rule-{rule.id}-conversion"

    def rule_mode(self, rule: AdmissionRule, config: ConversionConfig) -> str:
        """Pick the mode: command line first, then the rule's own, then the default."""
        if config.mode:
            return config.mode
        if rule.rule_mode:
            return rule.rule_mode
        return DEFAULT_MODE

    def build_namespace_selector(self, criterion: Criterion) -> dict[str, Any]:
        """A deny on listed namespaces excludes them; otherwise only they are selected."""
        operator = "NotIn" if criterion.op == CRITERIA_OP_CONTAINS_ANY else "In"
        return {
            "matchExpressions": [
                {
                    "key": "metadata.namespace",
                    "operator": operator,
                    "values": criterion.value.split(","),
                }
            ]
        }

    def _lookup(self, criterion: Criterion) -> PolicyHandler:
        handler = self.handlers.get(criterion.name)
        if handler is None:
            raise ConversionError(f"no handler found for criterion: {criterion.name}")
        return handler

    @staticmethod
    def _settings(handler: PolicyHandler, criteria: list[Criterion]) -> dict[str, Any]:
        try:
            return handler.build_policy_settings(criteria)
        except (ConversionError, ValueError) as err:
            raise ConversionError(f"failed to build policy settings: {err}") from err

    @abstractmethod
    def generate_policy(self, rule: AdmissionRule, config: ConversionConfig) -> dict[str, Any]:
        """Return the Kubewarden policy object for the rule."""


class CAPBuilder(BaseBuilder):
    """Builds a single ClusterAdmissionPolicy from a rule with one policy criterion."""

    def generate_policy(self, rule: AdmissionRule, config: ConversionConfig) -> dict[str, Any]:
        namespace_selector: dict[str, Any] | None = None
        policy_handler: PolicyHandler | None = None
        resources: list[str] = []
        policy_criteria: list[Criterion] = []

        for criterion in rule.criteria:
            handler = self._lookup(criterion)
            if criterion.name == RULE_NAMESPACE:
                if namespace_selector is not None:
                    raise ConversionError("rule skipped: contains multiple namespace selectors")
                namespace_selector = self.build_namespace_selector(criterion)
                continue
            policy_handler = handler
            policy_criteria.append(criterion)
            resources.append(handler.applicable_resource)

        if policy_handler is None:
            raise ConversionError(
                "rule skipped: contains only namespace selector without enforceable "
                "policy conditions for criteria"
            )

        settings = self._settings(policy_handler, policy_criteria)

        spec: dict[str, Any] = {
            "rules": self.build_rules(resources),
            "mode": self.rule_mode(rule, config),
            "module": policy_handler.module,
            "policyServer": config.policy_server,
            "backgroundAudit": config.background_audit,
            "mutating": False,
            "settings": settings,
        }
        if namespace_selector is not None:
            spec["namespaceSelector"] = namespace_selector
        context_resources = _context_resources(policy_handler)
        if context_resources:
            spec["contextAwareResources"] = context_resources

        return {
            "apiVersion": KW_API_VERSION,
            "kind": CLUSTER_ADMISSION_POLICY_KIND,
            "metadata": _metadata(self.generate_policy_name(rule)),
            "spec": spec,
            "status": {"policyStatus": ""},
        }


class CAPGBuilder(BaseBuilder):
    """Builds a ClusterAdmissionPolicyGroup from a rule with several policy criteria."""

    def group_criteria_by_module(
        self, rule: AdmissionRule
    ) -> tuple[dict[str, list[Criterion]], list[str]]:
        """Group criteria by their handler's module; also return the sorted resource kinds."""
        resources: list[str] = []
        groups: dict[str, list[Criterion]] = {}
        for criterion in rule.criteria:
            try:
                handler = self._lookup(criterion)
            except ConversionError as err:
                raise ConversionError(f"failed to group criteria by module: {err}") from err
            resources.append(handler.applicable_resource)
            groups.setdefault(handler.module, []).append(criterion)
        return groups, sorted(resources)

    def generate_policy(self, rule: AdmissionRule, config: ConversionConfig) -> dict[str, Any]:
        groups, resources = self.group_criteria_by_module(rule)

        namespace_selector: dict[str, Any] | None = None
        policies: dict[str, dict[str, Any]] = {}
        conditions: list[str] = []

        for module, criteria in groups.items():
            handler = self.handlers[criteria[0].name]
            if criteria[0].name == RULE_NAMESPACE:
                if len(criteria) > 1:
                    raise ConversionError("rule skipped: contains multiple namespace selectors")
                namespace_selector = self.build_namespace_selector(criteria[0])
                continue

            policy_name = extract_module_name(module)
            member: dict[str, Any] = {
                "module": module,
                "settings": self._settings(handler, criteria),
            }
            context_resources = _context_resources(handler)
            if context_resources:
                member["contextAwareResources"] = context_resources
            policies[policy_name] = member
            conditions.append(f"{policy_name}()")

        conditions.sort()

        spec: dict[str, Any] = {
            "message": f"violate NeuVector rule (id={rule.id}), comment {rule.comment}",
            "rules": self.build_rules(resources),
            "mode": self.rule_mode(rule, config),
            "policyServer": config.policy_server,
            "backgroundAudit": config.background_audit,
            "expression": " && ".join(conditions),
            "policies": policies,
        }
        if namespace_selector is not None:
            spec["namespaceSelector"] = namespace_selector

        return {
            "apiVersion": KW_API_VERSION,
            "kind": CLUSTER_ADMISSION_POLICY_GROUP_KIND,
            "metadata": _metadata(self.generate_policy_name(rule)),
            "spec": spec,
            "status": {"policyStatus": ""},
        }


class Factory:
    """Chooses between a single policy and a policy group for each rule."""

    def __init__(self, handlers: Mapping[str, PolicyHandler] | None = None) -> None:
        self.handlers: dict[str, PolicyHandler] = dict(handlers or {})

    def create_builder(self, rule: AdmissionRule) -> BaseBuilder:
        """Return a group builder when the rule has several policy criteria."""
        if self.requires_policy_group(rule):
            return CAPGBuilder(self.handlers)
        return CAPBuilder(self.handlers)

    def generate_policy(self, rule: AdmissionRule, config: ConversionConfig) -> dict[str, Any]:
        """Build the policy object for the rule."""
        return self.create_builder(rule).generate_policy(rule, config)

    def requires_policy_group(self, rule: AdmissionRule) -> bool:
        """True if more than one criterion is not a namespace criterion."""
        count = sum(1 for c in rule.criteria if c.name != CRITERIA_KEY_NAMESPACE)
        return count > 1