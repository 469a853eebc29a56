"""Turning NeuVector admission rules into Kubewarden policy manifests."""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from tabulate import tabulate

from nvrules2kw.customrule import is_custom_rule
from nvrules2kw.handlers.base import PolicyHandler
from nvrules2kw.handlers.security import (
    RULE_ALLOW_PRIVILEGED_ESCALATION,
    RULE_NAMESPACE,
    RULE_RUN_AS_PRIVILEGED,
    RULE_RUN_AS_ROOT,
    RULE_SHARE_IPC,
    RULE_SHARE_NETWORK,
    RULE_SHARE_PID,
    AllowPrivilegedEscalationHandler,
    ContainerRunningAsUserHandler,
    HostNamespaceHandler,
    NamespaceHandler,
    PodPrivilegedHandler,
)
from nvrules2kw.handlers.selection import (
    RULE_ANNOTATIONS,
    RULE_ENV_VARS,
    RULE_IMAGE,
    RULE_IMAGE_REGISTRY,
    RULE_LABELS,
    RULE_STORAGE_CLASS,
    AnnotationsPolicyHandler,
    EnvVarHandler,
    LabelsPolicyHandler,
    PVCStorageClassHandler,
    TrustedReposHandler,
)
from nvrules2kw.handlers.workload import (
    RULE_HIGH_CVE_COUNT,
    RULE_HIGH_RISK_SERVICE_ACCOUNT,
    RULE_IMAGE_SCANNED,
    RULE_MED_CVE_COUNT,
    HighRiskServiceAccountHandler,
    ImageCVEHandler,
)
from nvrules2kw.metacriterion import RULE_PSP_BEST_PRACTICES, MetaCriterion, PSPBestPracticeMetaCriterion
from nvrules2kw.policy import Factory
from nvrules2kw.rule_parser import RuleParser
from nvrules2kw.share import (
    MSG_NEUVECTOR_RULE_ONLY,
    MSG_ONLY_DENY_RULE_SUPPORTED,
    MSG_RULE_CONVERTED_SUCCESSFULLY,
    MSG_RULE_DISABLED,
    MSG_RULE_GENERATE_KW_POLICY_ERROR,
    MSG_UNSUPPORTED_CRITERIA_OPERATOR,
    MSG_UNSUPPORTED_RULE_CRITERIA,
    RULE_TYPE_DENY,
    AdmissionRule,
    ConversionConfig,
    ConversionError,
)

DEFAULT_COLUMN_WIDTH = 50
DEFAULT_NV_RULE_ID_MAX = 1000

SUMMARY_STATUS_OK = "OK"
SUMMARY_STATUS_SKIPPED = "Skipped"

MSG_CUSTOM_RULE_UNAVAILABLE = (
    "custom rule criteria cannot be converted: Rego policy generation is unavailable"
)

_YAML_WIDTH = 2**31 - 1


@dataclass(frozen=True)
class SummaryEntry:
    """Outcome of converting one rule."""

    id: int
    status: str
    notes: str


@dataclass
class ConversionResult:
    """Policies produced from a set of rules, with one summary entry per rule."""

    policies: list[dict[str, Any]] = field(default_factory=list)
    rego_count: int = 0
    summary: list[SummaryEntry] = field(default_factory=list)


def _build_handlers(config: ConversionConfig) -> dict[str, PolicyHandler]:
    def image_cve() -> ImageCVEHandler:
        return ImageCVEHandler(config.vul_report_namespace, config.platform)

    return {
        RULE_SHARE_IPC: HostNamespaceHandler(),
        RULE_SHARE_NETWORK: HostNamespaceHandler(),
        RULE_SHARE_PID: HostNamespaceHandler(),
        RULE_ALLOW_PRIVILEGED_ESCALATION: AllowPrivilegedEscalationHandler(),
        RULE_RUN_AS_ROOT: ContainerRunningAsUserHandler(),
        RULE_RUN_AS_PRIVILEGED: PodPrivilegedHandler(),
        RULE_STORAGE_CLASS: PVCStorageClassHandler(),
        RULE_ENV_VARS: EnvVarHandler(),
        RULE_IMAGE: TrustedReposHandler(),
        RULE_IMAGE_REGISTRY: TrustedReposHandler(),
        RULE_NAMESPACE: NamespaceHandler(),
        RULE_HIGH_RISK_SERVICE_ACCOUNT: HighRiskServiceAccountHandler(),
        RULE_LABELS: LabelsPolicyHandler(),
        RULE_ANNOTATIONS: AnnotationsPolicyHandler(),
        RULE_IMAGE_SCANNED: image_cve(),
        RULE_HIGH_CVE_COUNT: image_cve(),
        RULE_MED_CVE_COUNT: image_cve(),
    }


class RuleConverter:
    """Converts a rules file into Kubewarden policies according to a configuration."""

    def __init__(self, config: ConversionConfig) -> None:
        self.config = config
        self.show_summary = config.show_summary
        self.logger = logging.getLogger("nvrules2kw")
        self.handlers: dict[str, PolicyHandler] = _build_handlers(config)
        self.meta_criteria: dict[str, MetaCriterion] = {
            RULE_PSP_BEST_PRACTICES: PSPBestPracticeMetaCriterion(),
        }
        self._factory = Factory(self.handlers)

    def convert(self, rule_file: str | os.PathLike) -> ConversionResult:
        """Convert the rules in a file, write the policies and report on the run."""
        try:
            rules = RuleParser(rule_file).parse_rules()
        except ConversionError as err:
            raise ConversionError(f"failed to parse NeuVector Admission rules: {err}") from err

        result = self.convert_rules(rules)

        # Only write output when something was generated.
        if result.policies:
            try:
                self.output_policies(result.policies, self.config.output_file)
            except (OSError, yaml.YAMLError) as err:
                raise ConversionError(f"failed to write output YAML: {err}") from err

        if self.show_summary:
            self.render_results_table(result.summary)

        if result.rego_count > 0:
            self.logger.info(
                "rego policies generated count=%d directory=rego_policies/", result.rego_count
            )

        if self.config.output_file != "-" and result.policies:
            self.logger.info("Conversion done output_file=%s", self.config.output_file)

        return result

    def expand_meta_criterion(self, rule: AdmissionRule) -> None:
        """Replace meta criteria in the rule, in place, by the criteria they stand for."""
        expanded = []
        for criterion in rule.criteria:
            meta = self.meta_criteria.get(criterion.name)
            if meta is None:
                expanded.append(criterion)
                continue
            if criterion.op not in meta.supported_ops:
                raise ConversionError(f"{MSG_UNSUPPORTED_CRITERIA_OPERATOR}: {criterion.op}")
            expanded.extend(meta.expand())
        rule.criteria = expanded

    def contains_custom_rule(self, rule: AdmissionRule) -> bool:
        """True if any criterion of the rule is a custom-path criterion."""
        return any(is_custom_rule(criterion.name) for criterion in rule.criteria)

    def convert_rules(self, rules: list[AdmissionRule]) -> ConversionResult:
        """Convert each rule, recording the outcome of every one in the summary."""
        result = ConversionResult()
        for rule in rules:
            try:
                self.expand_meta_criterion(rule)
            except ConversionError as err:
                result.summary.append(SummaryEntry(rule.id, SUMMARY_STATUS_SKIPPED, str(err)))
                continue

            if self.contains_custom_rule(rule):
                result.summary.append(
                    SummaryEntry(rule.id, SUMMARY_STATUS_SKIPPED, MSG_CUSTOM_RULE_UNAVAILABLE)
                )
                continue

            try:
                policy = self.convert_rule(rule)
            except ConversionError as err:
                result.summary.append(SummaryEntry(rule.id, SUMMARY_STATUS_SKIPPED, str(err)))
                continue

            result.summary.append(
                SummaryEntry(rule.id, SUMMARY_STATUS_OK, MSG_RULE_CONVERTED_SUCCESSFULLY)
            )
            result.policies.append(policy)
        return result

    def validate_rule(self, rule: AdmissionRule) -> None:
        """Raise ConversionError if the rule cannot be converted."""
        if rule.id < DEFAULT_NV_RULE_ID_MAX:
            raise ConversionError(MSG_NEUVECTOR_RULE_ONLY)
        if rule.rule_type != RULE_TYPE_DENY:
            raise ConversionError(f"{MSG_ONLY_DENY_RULE_SUPPORTED} got {rule.rule_type}")
        if rule.disable:
            raise ConversionError(f"{MSG_RULE_DISABLED}, got true")

        for criterion in rule.criteria:
            # Custom criteria have no fixed operators to check.
            if is_custom_rule(criterion.name):
                continue
            handler = self.handlers.get(criterion.name)
            if handler is None or handler.unsupported:
                raise ConversionError(f"{MSG_UNSUPPORTED_RULE_CRITERIA}: {criterion.name}")
            if criterion.op not in handler.supported_ops:
                raise ConversionError(f"{MSG_UNSUPPORTED_CRITERIA_OPERATOR}: {criterion.op}")

    def convert_rule(self, rule: AdmissionRule) -> dict[str, Any]:
        """Validate one rule and build its policy object."""
        self.validate_rule(rule)
        try:
            return self._factory.generate_policy(rule, self.config)
        except ConversionError as err:
            self.logger.info("error when generating Kubewarden policy error=%s", err)
            raise ConversionError(f"{MSG_RULE_GENERATE_KW_POLICY_ERROR}: {err}") from err

    def render_results_table(self, summary: list[SummaryEntry]) -> str:
        """Print a table of the summary to standard output and return it."""
        rows = [[str(entry.id), entry.status, entry.notes] for entry in summary]
        options: dict[str, Any] = {
            "headers": ["ID", "STATUS", "NOTES"],
            "tablefmt": "grid",
            "stralign": "left",
            "disable_numparse": True,
        }
        if rows:
            options["maxcolwidths"] = [DEFAULT_COLUMN_WIDTH] * 3
        table = tabulate(rows, **options)
        print(table)
        return table

    def output_policies(self, policies: list[dict[str, Any]], file_path: str) -> None:
        """Write the policies as YAML documents to a file, or to stdout for ``-``."""
        documents = [
            yaml.safe_dump(
                policy,
                sort_keys=True,
                default_flow_style=False,
                allow_unicode=True,
                width=_YAML_WIDTH,
            )
            for policy in policies
        ]
        text = "\n---\n".join(documents)

        if file_path == "-":
            sys.stdout.write(text)
            sys.stdout.flush()
            return

        path = Path(file_path)
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(text)