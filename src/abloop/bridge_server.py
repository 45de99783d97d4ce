"""Simple JSON-RPC style bridge server.

Reads JSON commands from stdin, executes them, and writes JSON responses to stdout.
Keeps the process running so the engine's activation state survives between calls.

    {"id": 1, "method": "open_video", "params": ["movie.mp4", 24]}
    {"id": 2, "method": "tick", "params": {"time": 12.0}}
"""
import argparse
import json
import logging
import sys
import time
from typing import Optional, TextIO

from .bridge import HostBridge
from .config import EngineConfig, resolve_store_path
from .engine import LoopEngine
from .store import JsonFileStore

logger = logging.getLogger("abloop.bridge")


def handle_request(bridge: HostBridge, line: str) -> dict:
    """Execute one request line and build its response."""
    request_id = None
    method = None
    try:
        request = json.loads(line)
        if not isinstance(request, dict):
            raise ValueError("Request must be a JSON object")
        method = request.get("method")
        params = request.get("params", [])
        request_id = request.get("id")

        logger.info("→ %s(%s)", method, params)
        start = time.time()

        fn = getattr(bridge, method, None) if isinstance(method, str) and not method.startswith("_") else None
        if fn is None or not callable(fn):
            logger.warning("✗ Unknown method: %s", method)
            return {"id": request_id, "error": {"message": f"Unknown method: {method}"}}

        # Call with positional args if list, kwargs if dict
        if isinstance(params, list):
            result = fn(*params)
        else:
            result = fn(**params)

        elapsed = time.time() - start
        logger.info("✓ %s completed in %.3fs", method, elapsed)
        return {"id": request_id, "result": result}

    except Exception as e:
        logger.warning("✗ %s failed: %s", method, e)
        return {"id": request_id, "error": {"message": str(e), "type": type(e).__name__}}


def serve(bridge: HostBridge, stdin: TextIO, stdout: TextIO) -> None:
    """Main loop: read commands, execute, respond."""
    for line in stdin:
        line = line.strip()
        if not line:
            continue
        response = handle_request(bridge, line)
        stdout.write(json.dumps(response) + "\n")
        stdout.flush()


def main(argv: Optional[list[str]] = None):
    parser = argparse.ArgumentParser(prog="abloop-bridge", description="JSON-lines bridge to the A-B loop engine")
    parser.add_argument("--store", default=None, help="Catalog store file (default: $ABLOOP_STORE or ~/.abloop/store.json)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log every request")
    args = parser.parse_args(argv)

    # stdout is the response channel; logs go to stderr
    logging.basicConfig(
        stream=sys.stderr,
        level=logging.INFO if args.verbose else logging.WARNING,
        format="[abloop] %(message)s",
    )

    engine = LoopEngine(JsonFileStore(resolve_store_path(args.store)), EngineConfig())
    logger.info("Bridge server started")
    serve(HostBridge(engine), sys.stdin, sys.stdout)


if __name__ == "__main__":
    main()
