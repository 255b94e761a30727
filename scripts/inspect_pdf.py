#!/usr/bin/env python3
"""Inspection script for PDF structure and text runs.

Usage:
    python scripts/inspect_pdf.py <pdf_path> [--pages N] [--tolerance T]

Prints revisions, pages and every text run with its fill colour so the
invisible keyword layer can be checked by eye.
"""

import argparse
import sys
from pathlib import Path

from bats_server.pdf import extract_runs, parse_pdf_file
from bats_server.pdf.content import parse_content


def main():
    parser = argparse.ArgumentParser(description="Inspect PDF text runs")
    parser.add_argument("pdf_path", help="Path to PDF file")
    parser.add_argument(
        "--pages", type=int, default=5, help="Number of pages to display (default: 5)"
    )
    parser.add_argument(
        "--tolerance", type=float, default=8.0, help="Background colour tolerance (default: 8.0)"
    )
    args = parser.parse_args()

    pdf_path = Path(args.pdf_path)
    if not pdf_path.exists():
        print(f"Error: File not found: {pdf_path}")
        sys.exit(1)

    print(f"Parsing: {pdf_path}")
    print("=" * 80)

    doc = parse_pdf_file(pdf_path)

    print(f"PDF version: {doc.version}, revisions: {doc.revisions}, objects: {len(doc.xref)}")
    print(f"Total pages: {len(doc.pages)}")
    print(f"Showing first {min(args.pages, len(doc.pages))} pages")
    print("=" * 80)

    runs_by_page: dict[int, list] = {}
    for run in extract_runs(doc):
        runs_by_page.setdefault(run.page, []).append(run)

    for index, page in enumerate(doc.pages[: args.pages]):
        runs = runs_by_page.get(index, [])
        print(f"\n--- Page {index + 1} ({page.width:.0f} x {page.height:.0f}) ---")
        operators = parse_content(doc.page_content(page))
        print(
            f"Content streams: {len(doc.content_refs(page))}, "
            f"operators: {len(operators)}, text runs: {len(runs)}"
        )
        print()

        for run in runs:
            marker = "[I]" if run.is_invisible(tolerance=args.tolerance) else "[V]"
            color = "?" if run.color is None else ",".join(f"{c:.0f}" for c in run.color)
            # Truncate long text for display
            text = run.text[:200] + "..." if len(run.text) > 200 else run.text
            print(
                f"  {marker} ({run.kind} font={run.font} size={run.size:.1f} "
                f"color={color} opacity={run.opacity:.2f}) {text}"
            )

    print("\n" + "=" * 80)
    print("Inspection complete.")


if __name__ == "__main__":
    main()
