# nvrules2kw

`nvrules2kw` converts NeuVector Admission Control rules into Kubewarden
`ClusterAdmissionPolicy` and `ClusterAdmissionPolicyGroup` YAML documents.

## Installation

```
pip install .
```

## Usage

Convert a set of rules:

```
nvrules2kw convert rules.json
```

The input file is read by its extension:

- `.yaml` or `.yml`: a manifest whose first document is an
  `NvAdmissionControlSecurityRule` object; its `spec.rules` are converted.
  Rules without an ID are numbered from 1000 upwards.
- anything else: JSON as saved from the NeuVector UI, with a top-level
  `rules` list.

When several input files are given, the last one is used.

The generated policies are written to `policies.yaml` by default, one YAML
document per rule, separated by `---`. Use `--output -` to write them to
standard output instead. No file is written when no policy was generated.

Options of `convert`:

| Option | Default | Meaning |
| --- | --- | --- |
| `--policyserver` | `default` | PolicyServer the policies are bound to |
| `--vulreportnamespace` | `sbomscanner` | Namespace holding vulnerability reports |
| `--platform` | `amd64` | Platform architecture (e.g. `amd64`, `arm64`, `s390x`) |
| `--backgroundaudit` | `true` | Run the policies in background audit mode (`true`/`false`) |
| `--output` | `policies.yaml` | Output file, `-` for stdout |
| `--mode` | `protect` | `protect` or `monitor` |
| `--show-summary` | off | Print a table with the outcome of every rule |

Print version information:

```
nvrules2kw version
```

The command exits with status 1 and prints the reason on standard error when
the rules file cannot be read or the options are invalid.

## Which rules are converted

Only enabled `deny` rules with an ID of 1000 or more are converted. A rule with
one policy criterion (besides an optional `namespace` criterion) becomes a
`ClusterAdmissionPolicy`; a rule with several becomes a
`ClusterAdmissionPolicyGroup`, with criteria that target the same Kubewarden
module combined into one member. A `namespace` criterion becomes a namespace
selector. The `pspCompliance` criterion is expanded into the host IPC, network
and PID sharing, privileged, run-as-root and privilege escalation criteria.

Handled criteria: `shareIpcWithHost`, `shareNetWithHost`, `sharePidWithHost`,
`allowPrivEscalation`, `runAsRoot`, `runAsPrivileged`, `storageClassName`,
`envVars`, `image`, `imageRegistry`, `namespace`, `saBindRiskyRole`,
`labels`, `annotations`, `imageScanned`, `cveHighCount`, `cveMediumCount`.

Rules that cannot be converted are skipped; with `--show-summary` the table
gives the reason for each.

## What it does not do

- Rules with custom path criteria are not converted: they are skipped and
  listed as such in the summary. No Rego policies are generated.
- There is no command that prints a matrix of the handled criteria; the list
  above is the reference.

## Library use

```python
from nvrules2kw.converter import RuleConverter
from nvrules2kw.share import ConversionConfig

converter = RuleConverter(ConversionConfig(output_file="-", mode="protect"))
result = converter.convert("rules.json")
for entry in result.summary:
    print(entry.id, entry.status, entry.notes)
```

`RuleConverter.convert` returns a `ConversionResult` holding the generated
policy objects (plain dictionaries) and one `SummaryEntry` per rule. It raises
`nvrules2kw.share.ConversionError` when the rules cannot be read or written.
For finer control, `nvrules2kw.rule_parser.RuleParser` reads rules into
`AdmissionRule` objects and `nvrules2kw.policy.Factory` builds the policy for
a single rule.

## Running the tests

```
pip install .[test]
pytest
```