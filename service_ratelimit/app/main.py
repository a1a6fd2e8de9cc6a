"""
Command-line entry point for the rate-limit policy resolver.

    ratelimit-policy validate rules.json other.ini
    ratelimit-policy resolve rules.json method=GET path=/ping ip=1.2.3.4
"""

import argparse
import json
import sys
from typing import Dict, List, Optional, Sequence

from shared.config import get_settings
from shared.errors import NoMatchingRuleError, RateLimitPolicyException
from shared.logging import configure_logging
from .loader import SUFFIX_FORMATS, load_from_file
from .rules.engine import RuleEngine


def parse_attributes(pairs: Sequence[str]) -> Dict[str, str]:
    """Turn key=value arguments into request attributes."""
    attributes = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise argparse.ArgumentTypeError(f"Request attributes must be key=value, got {pair!r}")
        attributes[key] = value
    return attributes


def validate_files(paths: Sequence[str], fmt: Optional[str], require_catch_all: bool) -> int:
    """Load every rule document and report problems."""
    total_errors = 0

    for path in paths:
        try:
            store = load_from_file(path, fmt=fmt, require_catch_all=require_catch_all)
        except RateLimitPolicyException as e:
            print(f"❌ {path}: {e.code}: {e.message}")
            total_errors += 1
            continue

        catch_all = "catch-all" if store.has_catch_all() else "no catch-all"
        print(f"✅ {path}: {len(store)} rules ({catch_all})")

    print(f"\nValidation complete: {total_errors} invalid documents")
    return 0 if total_errors == 0 else 1


def resolve_request(path: str, fmt: Optional[str], attributes: Dict[str, str]) -> int:
    """Resolve one request against a rule document and print the quota."""
    try:
        engine = RuleEngine(load_from_file(path, fmt=fmt))
        resolved = engine.resolve(attributes)
    except NoMatchingRuleError as e:
        print(json.dumps(e.to_response().model_dump(), indent=2))
        return 1
    except RateLimitPolicyException as e:
        print(json.dumps(e.to_response().model_dump(), indent=2))
        return 2

    print(json.dumps(resolved.to_dict(), indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ratelimit-policy",
        description="Validate rate-limit rule documents and resolve requests against them."
    )
    parser.add_argument(
        "--format",
        dest="fmt",
        choices=sorted(set(SUFFIX_FORMATS.values())),
        help="Rule document format (default: inferred from file suffix)"
    )
    parser.add_argument("--log-level", default=None, help="Log level (default: RATELIMIT_LOG_LEVEL or info)")

    subparsers = parser.add_subparsers(dest="command", required=True)

    validate = subparsers.add_parser("validate", help="Check rule documents for invalid or unreachable rules")
    validate.add_argument("paths", nargs="+", metavar="FILE")
    validate.add_argument(
        "--require-catch-all",
        action="store_true",
        help="Fail documents that do not end with an empty-pattern rule"
    )

    resolve = subparsers.add_parser("resolve", help="Print the rule governing a request")
    resolve.add_argument("path", metavar="FILE")
    resolve.add_argument("attributes", nargs="*", metavar="KEY=VALUE")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main function for the ratelimit-policy command."""
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging("ratelimit", args.log_level or settings.log_level)

    if args.command == "validate":
        require_catch_all = args.require_catch_all or settings.require_catch_all
        return validate_files(args.paths, args.fmt, require_catch_all)

    try:
        attributes = parse_attributes(args.attributes)
    except argparse.ArgumentTypeError as e:
        parser.error(str(e))
    return resolve_request(args.path, args.fmt, attributes)


if __name__ == "__main__":
    sys.exit(main())
