"""Entry point for the BATS server and command-line tools."""

import argparse
import json
import os
import sys

import uvicorn


def _serve(args):
    from bats_server.server import app

    uvicorn.run(app, host=args.host, port=args.port)


def _create(args):
    from bats_server.service import create_resume

    result = create_resume(args.keywords, output_path=args.output, visible_lines=args.line)
    print(result.model_dump_json(indent=2))


def _modify(args):
    from bats_server.service import modify_resume

    result = modify_resume(args.pdf_path, args.keywords, output_path=args.output)
    print(result.model_dump_json(indent=2))


def _analyze(args):
    from bats_server.ats import ExternalSource, TaxonomySource
    from bats_server.service import analyze_resume

    source = None
    if args.category:
        source = TaxonomySource(category_ids=args.category)
    elif args.keywords:
        source = ExternalSource(keywords=args.keywords.split(","))
    result = analyze_resume(args.pdf_path, keyword_source=source)
    print(json.dumps(result.model_dump(), indent=2))


def _extract(args):
    from bats_server.service import extract_resume_text

    result = extract_resume_text(args.pdf_path, exclude_invisible=args.exclude_invisible)
    if args.json:
        print(result.model_dump_json(indent=2))
    else:
        print(result.text)


def main():
    parser = argparse.ArgumentParser(description="BATS resume keyword server")
    parser.add_argument(
        "--output-dir",
        default=None,
        help="Directory for generated PDFs. Overrides BATS_OUTPUT_DIR env var.",
    )
    commands = parser.add_subparsers(dest="command")

    serve = commands.add_parser("serve", help="Run the HTTP API (default)")
    serve.add_argument("--host", default="0.0.0.0", help="Bind host (default: 0.0.0.0)")
    serve.add_argument("--port", type=int, default=8000, help="Bind port (default: 8000)")
    serve.set_defaults(func=_serve)

    create = commands.add_parser("create", help="Generate a resume with invisible keywords")
    create.add_argument("--keywords", default=None, help="Space-separated keywords")
    create.add_argument("--line", action="append", default=None, help="Visible line (repeatable)")
    create.add_argument("--output", default=None, help="Output PDF path")
    create.set_defaults(func=_create)

    modify = commands.add_parser("modify", help="Embed invisible keywords into an existing PDF")
    modify.add_argument("pdf_path", help="Path to PDF file")
    modify.add_argument("--keywords", default=None, help="Space-separated keywords")
    modify.add_argument("--output", default=None, help="Output PDF path")
    modify.set_defaults(func=_modify)

    analyze = commands.add_parser("analyze", help="Score a PDF for ATS compatibility")
    analyze.add_argument("pdf_path", help="Path to PDF file")
    analyze.add_argument("--category", action="append", default=None, help="Taxonomy category id")
    analyze.add_argument("--keywords", default=None, help="Comma-separated reference keywords")
    analyze.set_defaults(func=_analyze)

    extract = commands.add_parser("extract", help="Print the text of a PDF")
    extract.add_argument("pdf_path", help="Path to PDF file")
    extract.add_argument(
        "--exclude-invisible",
        action="store_true",
        help="Leave out text a viewer cannot see",
    )
    extract.add_argument("--json", action="store_true", help="Print counts as JSON")
    extract.set_defaults(func=_extract)

    args = parser.parse_args()

    if args.output_dir:
        os.environ["BATS_OUTPUT_DIR"] = args.output_dir

    if args.command is None:
        args = parser.parse_args(["serve"])

    from bats_server.errors import BatsError

    try:
        args.func(args)
    except BatsError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
