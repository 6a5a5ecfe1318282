#!/usr/bin/env python3
"""Export the stored grimoire (or one herb) to a PDF without running the API."""

import argparse
import asyncio
import logging
import sys

from grimoire import config
from grimoire.kv_store import JsonFileStore
from grimoire.log_redact import install_log_redaction
from grimoire.report import build_engine
from grimoire.report.document import save_document
from grimoire.store import GrimoireStore


async def _export(data_dir: str, output_dir: str, herb: str | None) -> int:
    state = GrimoireStore(JsonFileStore(data_dir)).load()
    engine = build_engine()

    if herb:
        favorite = state.find_favorite(herb)
        if favorite is None:
            print(f"'{herb}' is not in the grimoire at {data_dir}.", file=sys.stderr)
            return 1
        result = await engine.export_single(favorite, state.spells)
    else:
        result = await engine.export_report(state.favorites, state.categories, state.spells)

    path = save_document(result.content, result.filename, output_dir)
    print(f"Wrote {path} ({result.page_count} pages)")
    for label in result.failed_items:
        print(f"  could not render: {label}", file=sys.stderr)
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Export favorites to a paginated PDF report.")
    parser.add_argument("--data-dir", default=config.DATA_DIR, help="Directory holding the grimoire JSON files.")
    parser.add_argument("--output-dir", default=config.EXPORT_DIR, help="Directory the PDF is written to.")
    parser.add_argument("--herb", default=None, help="Export only this favorite as a single page.")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )
    install_log_redaction()
    return asyncio.run(_export(args.data_dir, args.output_dir, args.herb))


if __name__ == "__main__":
    sys.exit(main())
