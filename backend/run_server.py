#!/usr/bin/env python3
"""
Launch script for the Ride Log Decoder backend.

Usage:
    python run_server.py [data_folder] [--port PORT] [--host HOST]
                         [--no-smart-recording] [--hwm SECONDS]

Examples:
    python run_server.py                    # Use default ./data/activities folder
    python run_server.py /path/to/tcx       # Use custom folder
    python run_server.py --hwm 40           # Treat gaps of 40s or more as real gaps
"""

import argparse
import os
import sys
from pathlib import Path

# Add ridelog to path
sys.path.insert(0, str(Path(__file__).parent))


def main():
    parser = argparse.ArgumentParser(description="Ride Log Decoder Backend Server")
    parser.add_argument(
        "data_folder",
        nargs="?",
        default="./data/activities",
        help="Path to folder containing TCX files (default: ./data/activities)"
    )
    parser.add_argument(
        "--port", "-p",
        type=int,
        default=8000,
        help="Port to run server on (default: 8000)"
    )
    parser.add_argument(
        "--host", "-H",
        default="127.0.0.1",
        help="Host to bind to (default: 127.0.0.1, use 0.0.0.0 for all interfaces)"
    )
    parser.add_argument(
        "--no-smart-recording",
        action="store_true",
        help="Keep raw trackpoints, do not fill smart recording gaps"
    )
    parser.add_argument(
        "--hwm",
        type=int,
        default=None,
        help="Smart recording high-water mark in seconds (default: 25)"
    )
    parser.add_argument(
        "--debug", "-d",
        action="store_true",
        help="Run in debug mode"
    )

    args = parser.parse_args()

    data_folder = Path(args.data_folder)

    print("Ride Log Decoder Backend")
    print("=" * 40)
    print(f"Data folder: {data_folder.absolute()}")
    print(f"Server: http://{args.host}:{args.port}")
    print("=" * 40)

    if not data_folder.exists():
        print(f"\nWarning: Data folder does not exist: {data_folder}")
        print("You can set it later via POST /folder")

    # Settings are read from the environment by the app (also under --reload)
    if data_folder.exists():
        os.environ["RIDELOG_DATA_FOLDER"] = str(data_folder)
    if args.no_smart_recording:
        os.environ["RIDELOG_SMART_RECORDING"] = "0"
    if args.hwm is not None:
        os.environ["RIDELOG_SMART_RECORDING_HWM"] = str(args.hwm)

    print("\nAPI Endpoints:")
    print("  GET  /                          - Health check")
    print("  GET  /health                    - Detailed health")
    print("  GET  /folder                    - Current folder info")
    print("  POST /folder                    - Set data folder")
    print("  GET  /activities                - List all activities")
    print("  GET  /activities/{id}           - Get activity metadata and laps")
    print("  GET  /activities/{id}/samples   - Get the sample series")
    print("  POST /activities/{id}/reload    - Re-decode with other settings")
    print("\nStarting server...")

    import uvicorn

    uvicorn.run(
        "ridelog.main:app",
        host=args.host,
        port=args.port,
        reload=args.debug,
        log_level="info",
    )


if __name__ == "__main__":
    main()
