"""Reading NeuVector admission rules from JSON dumps or YAML CRD manifests."""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from nvrules2kw.share import RULE_TYPE_DENY, AdmissionRule, ConversionError, Criterion

DEFAULT_RULE_BASE_ID = 1000

_RULE_MODE_KEYS = ("rule_mode", "rulemode")
_CONVERSION_ID_KEYS = ("conversion_id_ref", "conversionidref", "conversionIdRef")


def _first_present(data: Mapping, keys: tuple[str, ...]) -> Any:
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return None


class RuleParser:
    """Loads admission rules from a file, chosen by its extension."""

    def __init__(self, file_path: str | os.PathLike) -> None:
        self.file_path = os.fspath(file_path)
        self._next_id = DEFAULT_RULE_BASE_ID

    def parse_rules(self) -> list[AdmissionRule]:
        """Read the file and return its rules."""
        try:
            data = Path(self.file_path).read_bytes()
        except OSError as err:
            raise ConversionError(f'failed to open file "{self.file_path}": {err}') from err
        if self.is_yaml_file():
            return self.parse_yaml_rules(data)
        return self.parse_json_rules(data)

    def is_yaml_file(self) -> bool:
        """Return True if the file name ends in .yaml or .yml."""
        return self.file_path.endswith((".yaml", ".yml"))

    def parse_json_rules(self, data: bytes | str) -> list[AdmissionRule]:
        """Parse rules saved from the NeuVector UI as JSON."""
        try:
            document = json.loads(data)
        except ValueError as err:
            raise ConversionError(f"failed to decode JSON rules: {err}") from err
        if document is None:
            return []
        if not isinstance(document, Mapping):
            raise ConversionError("failed to decode JSON rules: expected a JSON object")
        rules = document.get("rules")
        if rules is None:
            return []
        if not isinstance(rules, list):
            raise ConversionError("failed to decode JSON rules: 'rules' must be a list")
        try:
            return [AdmissionRule.from_dict(rule) for rule in rules]
        except (TypeError, ValueError) as err:
            raise ConversionError(f"failed to decode JSON rules: {err}") from err

    def parse_yaml_rules(self, data: bytes | str) -> list[AdmissionRule]:
        """Parse the first NvAdmissionControlSecurityRule document of a manifest."""
        try:
            document = next(yaml.safe_load_all(data), None)
        except yaml.YAMLError as err:
            raise ConversionError(f"failed to decode YAML rules: {err}") from err
        if document is None:
            return []
        if not isinstance(document, Mapping):
            raise ConversionError("failed to decode YAML rules: expected a mapping")
        spec = document.get("spec") or {}
        if not isinstance(spec, Mapping):
            raise ConversionError("failed to decode YAML rules: 'spec' must be a mapping")
        native_rules = spec.get("rules") or []
        if not isinstance(native_rules, list):
            raise ConversionError("failed to decode YAML rules: 'rules' must be a list")
        config = spec.get("config")

        rules = []
        for index, native in enumerate(native_rules):
            try:
                rules.append(self._convert_native_rule(native, config))
            except (ConversionError, TypeError, ValueError) as err:
                raise ConversionError(f"failed to convert rule at index {index}: {err}") from err
        return rules

    def next_rule_id(self, conversion_id_ref: int | None) -> int:
        """Return the preserved rule ID, or the next generated one.

        Older rule files do not keep rule IDs, so those rules are numbered from 1000.
        """
        if conversion_id_ref is not None:
            return conversion_id_ref
        current = self._next_id
        self._next_id += 1
        return current

    def _convert_native_rule(self, native: Any, config: Any) -> AdmissionRule:
        if native is None:
            raise ConversionError("native rule cannot be nil")
        if not isinstance(native, Mapping):
            raise TypeError(f"rule must be a mapping, got {type(native).__name__}")

        id_ref = _first_present(native, _CONVERSION_ID_KEYS)
        if id_ref is not None and (isinstance(id_ref, bool) or not isinstance(id_ref, int)):
            raise TypeError("conversion id reference must be an integer")

        raw = {
            "id": self.next_rule_id(id_ref),
            "criteria": native.get("criteria"),
            "rule_type": RULE_TYPE_DENY,
            "containers": native.get("containers"),
        }

        rule_mode = _first_present(native, _RULE_MODE_KEYS)
        if not rule_mode:
            mode = config.get("mode") if isinstance(config, Mapping) else None
            if mode is None:
                raise ConversionError("rule has no mode and the spec config has no default mode")
            rule_mode = mode
        raw["rule_mode"] = rule_mode

        if native.get("action") is not None:
            raw["rule_type"] = native["action"]
        if native.get("comment") is not None:
            raw["comment"] = native["comment"]
        if native.get("disabled") is not None:
            raw["disable"] = native["disabled"]

        return AdmissionRule.from_dict(raw)


__all__ = ["DEFAULT_RULE_BASE_ID", "RuleParser", "Criterion"]