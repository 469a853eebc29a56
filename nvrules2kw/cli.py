"""Command line entry point."""

from __future__ import annotations

import argparse
import logging
import sys

from nvrules2kw.converter import RuleConverter
from nvrules2kw.share import ConversionConfig, ConversionError
from nvrules2kw.version import current_version

APP_DESCRIPTION = (
    "nvrules2kw converts NeuVector Admission Control rules into Kubewarden "
    "ClusterAdmissionPolicy YAMLs.\n\n"
    'Use "nvrules2kw <command> --help" for details on each command.'
)

_TRUE = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE = {"0", "f", "F", "FALSE", "false", "False"}


def _bool_arg(value: str) -> bool:
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise argparse.ArgumentTypeError(f"invalid boolean value: {value!r}")


def _run_convert(args: argparse.Namespace) -> int:
    if args.mode not in ("protect", "monitor"):
        raise ConversionError(
            f'invalid mode: {args.mode}. Allowed values are "protect" or "monitor"'
        )
    if not args.input:
        raise ConversionError("input file is required")

    config = ConversionConfig(
        output_file=args.output,
        mode=args.mode,
        policy_server=args.policyserver,
        background_audit=args.backgroundaudit,
        show_summary=args.show_summary,
        vul_report_namespace=args.vulreportnamespace,
        platform=args.platform,
    )
    try:
        RuleConverter(config).convert(args.input[-1])
    except ConversionError as err:
        raise ConversionError(f"error processing rules: {err}") from err
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Return the argument parser with its subcommands."""
    parser = argparse.ArgumentParser(
        prog="nvrules2kw",
        description="Convert NeuVector Admission Control Rules to Kubewarden Policies",
        epilog=APP_DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    commands = parser.add_subparsers(dest="command", metavar="command")

    convert = commands.add_parser(
        "convert",
        help="Convert NeuVector Admission Control rules into Kubewarden policies",
        description=(
            "INPUT_FILE is either rules.json saved from the NeuVector UI, or YAML "
            "with NvAdmissionControlSecurityRule CRD objects."
        ),
    )
    convert.add_argument(
        "--policyserver",
        default="default",
        help="Name of the PolicyServer to bind the generated policies to",
    )
    convert.add_argument(
        "--vulreportnamespace",
        default="sbomscanner",
        help="Namespace where the vulnerability report is stored",
    )
    convert.add_argument(
        "--platform",
        default="amd64",
        help="Architecture of the platform, as a GOARCH value (e.g.: amd64, arm64, s390x)",
    )
    convert.add_argument(
        "--backgroundaudit",
        type=_bool_arg,
        nargs="?",
        const=True,
        default=True,
        help="Run the generated policies in audit (background) mode",
    )
    convert.add_argument(
        "--output",
        default="policies.yaml",
        help="Path to the output file (use '-' for stdout)",
    )
    convert.add_argument(
        "--mode",
        default="protect",
        help="Execution mode of the policies: 'protect' or 'monitor'",
    )
    convert.add_argument(
        "--show-summary",
        action="store_true",
        help="Display a summary table of the conversion results",
    )
    convert.add_argument("input", nargs="*", metavar="INPUT_FILE")
    convert.set_defaults(handler=_run_convert)

    commands.add_parser("version", help="Print version information")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the command line tool and return its exit status."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 0
    if args.command == "version":
        print(current_version())
        return 0

    logging.basicConfig(level=logging.INFO, stream=sys.stdout, format="%(levelname)s %(message)s")
    try:
        return args.handler(args)
    except ConversionError as err:
        print(err, file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())