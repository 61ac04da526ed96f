from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import List, Optional

from loguru import logger

from rcbeam_app.core.loader import discover_tools
from rcbeam_app.core.logging import configure_logging


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="rcbeam-toolbox", description="RC beam toolbox (headless host)")
    parser.add_argument("--tool", help="Tool id to run; lists the available tools when omitted")
    parser.add_argument("--input", type=Path, help="JSON request file passed to the tool's run_batch")
    parser.add_argument("--log-level", default="INFO", help="Console log level")
    args = parser.parse_args(argv)

    configure_logging(console_level=args.log_level)
    tools = discover_tools()
    logger.info(f"Discovered {len(tools)} tool(s)")

    if not args.tool:
        for t in tools:
            print(f"{t.meta.id}\t{t.meta.category}\t{t.meta.name} {t.meta.version}")
        return 0

    tool_by_id = {t.meta.id: t for t in tools}
    tool = tool_by_id.get(args.tool)
    if tool is None:
        logger.error(f"Unknown tool: {args.tool}")
        return 2

    if args.input is not None:
        request = json.loads(args.input.read_text(encoding="utf-8"))
    else:
        request = tool.default_inputs()

    result = tool.run_batch(request)
    print(json.dumps(result, indent=2, default=str))
    return 0 if result.get("ok") else 1


if __name__ == "__main__":
    raise SystemExit(main())
