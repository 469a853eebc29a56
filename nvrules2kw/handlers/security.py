"""Handlers for pod security criteria: privileges, host namespaces and namespaces."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from nvrules2kw.handlers.base import RESOURCE_WORKLOAD, PolicyHandler
from nvrules2kw.share import (
    CRITERIA_OP_CONTAINS_ANY,
    CRITERIA_OP_EQUAL,
    CRITERIA_OP_NOT_CONTAINS_ANY,
    ConversionError,
    Criterion,
    extract_module_name,
)

RULE_ALLOW_PRIVILEGED_ESCALATION = "allowPrivEscalation"
RULE_RUN_AS_ROOT = "runAsRoot"
RULE_RUN_AS_PRIVILEGED = "runAsPrivileged"
RULE_SHARE_IPC = "shareIpcWithHost"
RULE_SHARE_NETWORK = "shareNetWithHost"
RULE_SHARE_PID = "sharePidWithHost"
RULE_NAMESPACE = "namespace"

POLICY_ALLOW_PRIV_ESCALATION_URI = (
    "registry://ghcr.io/kubewarden/policies/allow-privilege-escalation-psp:v1.0.0"
)
POLICY_CONTAINER_RUNNING_AS_USER_URI = (
    "registry://ghcr.io/kubewarden/policies/container-running-as-user:v1.0.4"
)
POLICY_POD_PRIVILEGED_URI = "registry://ghcr.io/kubewarden/policies/pod-privileged:v1.0.3"
POLICY_HOST_NAMESPACES_PSP_URI = "registry://ghcr.io/kubewarden/policies/host-namespaces-psp:v1.1.0"

POLICY_SETTING_ALLOW_HOST_IPC = "allow_host_ipc"
POLICY_SETTING_ALLOW_HOST_NETWORK = "allow_host_network"
POLICY_SETTING_ALLOW_HOST_PID = "allow_host_pid"

_TRUE_STRINGS = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE_STRINGS = frozenset({"0", "f", "F", "FALSE", "false", "False"})


def _parse_bool(value: str) -> bool:
    if value in _TRUE_STRINGS:
        return True
    if value in _FALSE_STRINGS:
        return False
    raise ConversionError(f'parsing "{value}": invalid syntax')


class AllowPrivilegedEscalationHandler(PolicyHandler):
    """Denies containers that allow privilege escalation."""

    module = POLICY_ALLOW_PRIV_ESCALATION_URI
    name = extract_module_name(POLICY_ALLOW_PRIV_ESCALATION_URI)
    applicable_resource = RESOURCE_WORKLOAD
    supported_ops = frozenset({CRITERIA_OP_EQUAL})

    def build_policy_settings(self, criteria: Sequence[Criterion]) -> dict[str, Any]:
        # NeuVector only expresses this criterion as true.
        return {"default_allow_privilege_escalation": True}


class ContainerRunningAsUserHandler(PolicyHandler):
    """Denies containers running as root."""

    module = POLICY_CONTAINER_RUNNING_AS_USER_URI
    name = extract_module_name(POLICY_CONTAINER_RUNNING_AS_USER_URI)
    applicable_resource = RESOURCE_WORKLOAD
    supported_ops = frozenset({CRITERIA_OP_EQUAL})

    def build_policy_settings(self, criteria: Sequence[Criterion]) -> dict[str, Any]:
        return {}


class PodPrivilegedHandler(PolicyHandler):
    """Denies privileged pods."""

    module = POLICY_POD_PRIVILEGED_URI
    name = extract_module_name(POLICY_POD_PRIVILEGED_URI)
    applicable_resource = RESOURCE_WORKLOAD
    supported_ops = frozenset({CRITERIA_OP_EQUAL})

    def build_policy_settings(self, criteria: Sequence[Criterion]) -> dict[str, Any]:
        # The target policy takes no settings.
        return {}


class HostNamespaceHandler(PolicyHandler):
    """Combines the host IPC, network and PID sharing criteria into one policy."""

    module = POLICY_HOST_NAMESPACES_PSP_URI
    name = extract_module_name(POLICY_HOST_NAMESPACES_PSP_URI)
    applicable_resource = RESOURCE_WORKLOAD
    supported_ops = frozenset({CRITERIA_OP_EQUAL})

    _SETTING_FOR_RULE = {
        RULE_SHARE_IPC: POLICY_SETTING_ALLOW_HOST_IPC,
        RULE_SHARE_NETWORK: POLICY_SETTING_ALLOW_HOST_NETWORK,
        RULE_SHARE_PID: POLICY_SETTING_ALLOW_HOST_PID,
    }

    def get_bool_value(self, value: str) -> bool:
        """Parse a criterion value and invert it: a deny on sharing means sharing is not allowed."""
        return not _parse_bool(value)

    def build_policy_settings(self, criteria: Sequence[Criterion]) -> dict[str, Any]:
        settings = {
            POLICY_SETTING_ALLOW_HOST_IPC: True,
            POLICY_SETTING_ALLOW_HOST_NETWORK: True,
            POLICY_SETTING_ALLOW_HOST_PID: True,
        }
        for criterion in criteria:
            setting = self._SETTING_FOR_RULE.get(criterion.name)
            if setting is None:
                raise ConversionError(f"unsupported criterion: {criterion.name}")
            settings[setting] = self.get_bool_value(criterion.value)
        return settings


class NamespaceHandler(PolicyHandler):
    """Namespace criteria become a namespace selector rather than a policy module."""

    name = "namespace_selector"
    applicable_resource = RESOURCE_WORKLOAD
    supported_ops = frozenset({CRITERIA_OP_CONTAINS_ANY, CRITERIA_OP_NOT_CONTAINS_ANY})

    def build_policy_settings(self, criteria: Sequence[Criterion]) -> dict[str, Any]:
        raise ConversionError(
            "building policy settings for namespace handler should never be done"
        )