#!/usr/bin/env python3
"""crowsfoot CLI - compile, inspect and serialize ER diagrams. Output is JSON."""

import argparse
import json
import sys
from pathlib import Path

from .analysis import LayoutStrategy, analyze
from .config.logging import setup_logging
from .errors import EmptyInputError, ERSyntaxError, SerializationError
from .generator import generate
from .parser import parse
from .serializer import CanvasGraph, serialize
from .validation import validate_diagram, validation_summary


def _json_out(data, code=0):
    print(json.dumps(data))
    sys.exit(code)


def _read_source(path):
    """Read a source file, or stdin for '-'."""
    if path == "-":
        return sys.stdin.read()
    try:
        return Path(path).read_text(encoding="utf-8")
    except OSError as e:
        _json_out({"success": False, "error": f"Cannot read {path}: {e.strerror}"}, 1)


def _parse_or_exit(text):
    try:
        return parse(text)
    except ERSyntaxError as e:
        _json_out({"success": False, "error": e.message, "line": e.line}, 1)


# ── Compile ──────────────────────────────────────────────────────────────────

def cmd_generate(args):
    text = _read_source(args.file)
    try:
        result = generate(text, strategy=args.strategy)
    except ERSyntaxError as e:
        _json_out({"success": False, "error": e.message, "line": e.line}, 1)
    except EmptyInputError as e:
        _json_out({"success": False, "error": str(e)}, 1)
    _json_out({"success": True, **result.to_dict()})


def cmd_parse(args):
    diagram = _parse_or_exit(_read_source(args.file))
    _json_out({"success": True, "diagram": diagram.to_json_dict()})


# ── Analysis ─────────────────────────────────────────────────────────────────

def cmd_analyze(args):
    diagram = _parse_or_exit(_read_source(args.file))
    _json_out({"success": True, "analysis": analyze(diagram).to_dict()})


def cmd_validate(args):
    diagram = _parse_or_exit(_read_source(args.file))
    issues = validate_diagram(diagram)
    _json_out({
        "success": True,
        "issues": [issue.to_dict() for issue in issues],
        "summary": validation_summary(issues)
    })


# ── Serialize ────────────────────────────────────────────────────────────────

def cmd_serialize(args):
    raw = _read_source(args.file)
    try:
        graph = CanvasGraph(**json.loads(raw))
    except (json.JSONDecodeError, TypeError, ValueError) as e:
        _json_out({"success": False, "error": f"Invalid canvas graph: {e}"}, 1)
    try:
        text = serialize(graph)
    except SerializationError as e:
        _json_out({"success": False, "error": str(e)}, 1)
    _json_out({"success": True, "text": text})


# ── Main ─────────────────────────────────────────────────────────────────────

def main(argv=None):
    parser = argparse.ArgumentParser(description="Crow's-Foot ER diagram compiler")
    parser.add_argument("--log-level", default=None)
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("generate")
    p.add_argument("file", help="Source file, or - for stdin")
    p.add_argument("--strategy", default=None, choices=[s.value for s in LayoutStrategy])

    p = sub.add_parser("parse")
    p.add_argument("file")

    p = sub.add_parser("analyze")
    p.add_argument("file")

    p = sub.add_parser("validate")
    p.add_argument("file")

    p = sub.add_parser("serialize")
    p.add_argument("file", help="JSON canvas graph, or - for stdin")

    args = parser.parse_args(argv)
    setup_logging(level=args.log_level)

    cmd_map = {
        "generate": cmd_generate,
        "parse": cmd_parse,
        "analyze": cmd_analyze,
        "validate": cmd_validate,
        "serialize": cmd_serialize,
    }
    cmd_map[args.command](args)


if __name__ == "__main__":
    main()
