"""Main CLI entry point for the xml-document command-line tool.

Provides query, validation and export commands over XML files loaded into a
:class:`~xml_document_model.Document`.
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from lxml import etree

from xml_document_model import (
    Document,
    DocumentConfig,
    DocumentParseError,
    NamespaceRegistry,
    QueryError,
)
from xml_document_model.shared.config import ConfigError
from xml_document_model.shared.logging import configure_logging, get_logger

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_INPUT_ERROR = 2

logger = get_logger(__name__, None, "cli")


def parse_namespace(value: str) -> Tuple[str, str]:
    """argparse type for ``prefix=uri`` pairs."""
    prefix, sep, uri = value.partition("=")
    if not sep or not prefix or not uri:
        raise argparse.ArgumentTypeError(f"Expected prefix=uri, got '{value}'")
    return prefix, uri


def build_registry(args: argparse.Namespace) -> NamespaceRegistry:
    """Namespace registry from ``--default-namespace`` and ``--namespace`` flags."""
    return NamespaceRegistry(
        default_uri=args.default_namespace,
        prefixes=dict(args.namespace or []),
    )


def build_config(args: argparse.Namespace) -> DocumentConfig:
    """Document configuration from ``--config`` plus per-command flags.

    Raises:
        ConfigError: If the configuration file has unknown keys or bad values
        OSError: If the configuration file cannot be read
    """
    if args.config is not None:
        config = DocumentConfig.from_json(Path(args.config).read_text())
    else:
        config = DocumentConfig()
    if getattr(args, "pretty", False):
        config = config.override(
            parsing__remove_blank_text=True, output__pretty_print=True
        )
    if getattr(args, "default_prefix", None):
        config = config.override(query__default_prefix=args.default_prefix)
    return config


def load_document(args: argparse.Namespace, config: DocumentConfig) -> Document:
    """Load ``args.file`` into a document.

    Raises:
        DocumentParseError: If the file is not well-formed XML
        OSError: If the file cannot be read
    """
    return Document(
        args.root_name,
        build_registry(args),
        schema_locator=getattr(args, "schema", None),
        xml=Path(args.file).read_bytes(),
        config=config,
    )


def describe_match(match: Any) -> Dict[str, Any]:
    """JSON-friendly description of one query match."""
    if isinstance(match, etree._Element) and isinstance(match.tag, str):
        return {
            "type": "element",
            "tag": match.tag,
            "path": match.getroottree().getpath(match),
            "text": match.text,
        }
    return {"type": type(match).__name__, "value": str(match)}


def create_argument_parser() -> argparse.ArgumentParser:
    """Create the argument parser for all subcommands."""
    parser = argparse.ArgumentParser(
        prog="xml-document",
        description="Query, validate and export XML documents",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("-q", "--quiet", action="store_true", help="Errors only")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("file", type=Path, help="XML file to load")
    common.add_argument("--root-name", default="document",
                        help="Root element name recorded for the document")
    common.add_argument("--default-namespace", default=None,
                        help="Default namespace URI of the document family")
    common.add_argument("--namespace", action="append", type=parse_namespace,
                        metavar="PREFIX=URI", help="Register a namespace prefix")
    common.add_argument("--format", choices=["text", "json"], default="text")
    common.add_argument("--config", type=Path, default=None,
                        help="JSON document configuration file")

    subparsers = parser.add_subparsers(dest="command")

    query_parser = subparsers.add_parser("query", parents=[common],
                                         help="Run an XPath query")
    query_parser.add_argument("expression", help="XPath expression")
    query_parser.add_argument("--context", default=None,
                              help="XPath selecting the context element")
    query_parser.add_argument("--default-prefix", default=None,
                              help="Prefix that addresses the default namespace")

    validate_parser = subparsers.add_parser("validate", parents=[common],
                                            help="Validate against a schema")
    validate_parser.add_argument("--schema", required=True,
                                 help="Path or URL of an XSD or RELAX NG schema")

    export_parser = subparsers.add_parser("export", parents=[common],
                                          help="Print the document as loaded")
    export_parser.add_argument("--pretty", action="store_true",
                               help="Drop blank text and indent the output")
    export_parser.add_argument("--round-trip", action="store_true",
                               help="Put the document to sleep and wake it first")

    return parser


def cmd_query(args: argparse.Namespace, config: DocumentConfig) -> int:
    """Handle query command."""
    document = load_document(args, config)
    try:
        context = None
        if args.context:
            candidates = document.query(args.context)
            if not candidates:
                print(f"Context expression matched nothing: {args.context}",
                      file=sys.stderr)
                return EXIT_FAILED
            context = candidates[0]
        matches = document.query(args.expression, context)
    except QueryError as e:
        print(f"Query failed: {e.reason}", file=sys.stderr)
        return EXIT_FAILED

    if args.format == "json":
        print(json.dumps([describe_match(m) for m in matches], indent=2))
    else:
        for match in matches:
            if isinstance(match, etree._Element):
                print(document.save_xml(match).rstrip())
            else:
                print(match)
    return EXIT_OK


def cmd_validate(args: argparse.Namespace, config: DocumentConfig) -> int:
    """Handle validate command."""
    document = load_document(args, config)
    if document.schema is None:
        for diagnostic in document.diagnostics:
            print(diagnostic.message, file=sys.stderr)
        return EXIT_INPUT_ERROR

    valid = document.valid()
    errors = [entry.to_dict() for entry in document.validation_errors()]
    if args.format == "json":
        print(json.dumps({"file": str(args.file), "valid": valid, "errors": errors},
                         indent=2))
    else:
        print(f"{args.file}: {'valid' if valid else 'invalid'}")
        for error in errors:
            line = (error["position"] or {}).get("line", "?")
            print(f"  line {line}: {error['message']}")
    return EXIT_OK if valid else EXIT_FAILED


def cmd_export(args: argparse.Namespace, config: DocumentConfig) -> int:
    """Handle export command."""
    document = load_document(args, config)
    if args.round_trip:
        document.sleep()
        document.wake()
    if args.format == "json":
        print(json.dumps({"file": str(args.file), "xml": document.save_xml()}, indent=2))
    else:
        print(document.save_xml(), end="")
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return EXIT_FAILED

    handlers = {
        "query": cmd_query,
        "validate": cmd_validate,
        "export": cmd_export,
    }
    try:
        config = build_config(args)
        if args.verbose:
            configure_logging("DEBUG")
        elif args.quiet:
            configure_logging("ERROR")
        elif args.config is not None:
            configure_logging(config.global_.logging_level)
        return handlers[args.command](args, config)
    except ConfigError as e:
        print(f"Invalid configuration {args.config}: {e}", file=sys.stderr)
        for suggestion in getattr(e, "suggestions", []):
            print(f"  {suggestion}", file=sys.stderr)
        return EXIT_INPUT_ERROR
    except DocumentParseError as e:
        print(f"Cannot parse {args.file}: {e}", file=sys.stderr)
        return EXIT_INPUT_ERROR
    except (OSError, ValueError) as e:
        logger.debug("Command failed", extra={"command": args.command, "error": str(e)})
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_INPUT_ERROR
    except KeyboardInterrupt:
        print("\nOperation interrupted by user", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
