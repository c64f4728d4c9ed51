#!/usr/bin/env python3
"""
PZEM CLI - Scan, Read and Re-address Meters

Command-line tool for meters behind one Modbus TCP gateway.

Usage:
    # Walk slave ids 1-255 and report every meter that answers
    pzem-gateway --host 10.0.0.5 --port 4196 scan

    # Read a few known meters
    pzem-gateway --host 10.0.0.5 --port 4196 read --slaves 101-103

    # Move the meter at slave 1 to the id in NEW_SLAVE_ID
    NEW_SLAVE_ID=42 pzem-gateway --host 10.0.0.5 --port 4196 set-address

Output is JSON on stdout; logs go to stderr.
"""

import argparse
import asyncio
import json
import os
import sys
from datetime import datetime, timezone

from pzem_gateway.common.config import ClientConfig, load_config_file
from pzem_gateway.common.exceptions import ConfigError, ConnectError, PzemError
from pzem_gateway.common.logging_setup import get_service_logger
from pzem_gateway.device.modbus_client import PzemClient, validate_slave_id

logger = get_service_logger("cli")

NEW_SLAVE_ID_ENV = "NEW_SLAVE_ID"


def parse_slave_list(text: str) -> list[int]:
    """
    Parse "101,102,110-112" into [101, 102, 110, 111, 112].

    Raises:
        ValueError: Malformed entry or id outside 1-255
    """
    slaves: list[int] = []
    for part in text.split(","):
        part = part.strip()
        if not part:
            continue
        if "-" in part:
            start_text, end_text = part.split("-", 1)
            start, end = int(start_text), int(end_text)
            if start > end:
                raise ValueError(f"Empty slave range: {part}")
            slaves.extend(validate_slave_id(i) for i in range(start, end + 1))
        else:
            slaves.append(validate_slave_id(int(part)))
    return slaves


def parse_new_slave_id(environ: dict | None = None) -> int:
    """
    Read the target address for set-address from the environment.

    Raises:
        ConfigError: Variable missing or not a valid slave id
    """
    environ = os.environ if environ is None else environ
    raw = environ.get(NEW_SLAVE_ID_ENV)
    if raw is None or raw.strip() == "":
        raise ConfigError(f"must set {NEW_SLAVE_ID_ENV}")
    try:
        return validate_slave_id(int(raw))
    except ValueError as e:
        raise ConfigError(f"{NEW_SLAVE_ID_ENV} must be a slave id (1-255): {raw!r}") from e


async def read_meters(client: PzemClient, slaves: list[int]) -> dict:
    """
    Read the measurement block of each slave.

    Returns:
        {
            "success": bool,
            "gateway": "host:port",
            "readings": {"<slave>": {"volts": ..., ...}, ...},
            "errors": {"<slave>": "message", ...},
            "timestamp": str
        }
    """
    result = {
        "success": False,
        "gateway": client.address,
        "readings": {},
        "errors": {},
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    for slave_id in slaves:
        try:
            reading = await client.get_data(slave_id)
        except PzemError as e:
            result["errors"][str(slave_id)] = e.message
            continue

        logger.info(f"slave={slave_id} data={reading}")
        result["readings"][str(slave_id)] = reading.as_dict()

    result["success"] = len(result["readings"]) > 0
    return result


async def scan_meters(client: PzemClient, start: int, end: int) -> dict:
    """Brute-force walk of slave ids start..end (inclusive)"""
    result = await read_meters(client, list(range(start, end + 1)))
    found = sorted(int(s) for s in result["readings"])
    logger.info(f"Scan {start}-{end} found {len(found)} meter(s): {found}")
    result["found"] = found
    return result


async def set_address(client: PzemClient, current_slave: int, new_slave_id: int) -> dict:
    """
    Re-address the meter at current_slave, then read it back at new_slave_id.

    Returns:
        {
            "success": bool,
            "previous_slave": int,
            "new_slave": int,
            "reading": dict | None,
            "error": str | None
        }
    """
    result = {
        "success": False,
        "previous_slave": current_slave,
        "new_slave": new_slave_id,
        "reading": None,
        "error": None,
    }

    await client.select_slave(current_slave)
    try:
        await client.set_unit_slave_address(new_slave_id)
    except PzemError as e:
        result["error"] = e.message
        return result

    result["success"] = True

    # Confirm the meter now answers on its new address
    try:
        reading = await client.get_data(new_slave_id)
        result["reading"] = reading.as_dict()
    except PzemError as e:
        result["error"] = f"Address written but read-back failed: {e.message}"

    return result


def resolve_config(args: argparse.Namespace) -> ClientConfig:
    """Config file (optional) with --host/--port overrides"""
    config = load_config_file(args.config) if args.config else ClientConfig()

    if args.host:
        config.gateway.host = args.host
    if args.port:
        config.gateway.port = args.port

    if not config.gateway.host:
        raise ConfigError("No gateway host configured (use --host or a config file)")

    return config


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pzem-gateway",
        description="Read PZEM energy meters behind a Modbus TCP gateway",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--config", help="YAML configuration file")
    parser.add_argument("--host", help="Gateway host (overrides config)")
    parser.add_argument("--port", type=int, help="Gateway port (overrides config)")

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    # Scan command
    scan_parser = subparsers.add_parser("scan", help="Scan a slave id range for meters")
    scan_parser.add_argument("--start", type=int, help="First slave id (default from config, 1)")
    scan_parser.add_argument("--end", type=int, help="Last slave id (default from config, 255)")

    # Read command
    read_parser = subparsers.add_parser("read", help="Read specific meters")
    read_parser.add_argument(
        "--slaves", required=True, help="Slave ids, e.g. 101,102 or 101-103"
    )

    # Set-address command
    set_parser = subparsers.add_parser(
        "set-address", help=f"Re-address a meter to ${NEW_SLAVE_ID_ENV}"
    )
    set_parser.add_argument(
        "--current-slave", type=int, default=1, help="Slave id the meter answers on now"
    )

    return parser


async def run(args: argparse.Namespace) -> int:
    """Execute the parsed command; returns the process exit code"""
    # Validate user input before touching the network
    if args.command == "set-address":
        new_slave_id = parse_new_slave_id()
        validate_slave_id(args.current_slave)
    elif args.command == "read":
        slaves = parse_slave_list(args.slaves)

    config = resolve_config(args)

    async with await PzemClient.from_config(config) as client:
        if args.command == "scan":
            start = args.start if args.start is not None else config.scan.start_slave
            end = args.end if args.end is not None else config.scan.end_slave
            validate_slave_id(start)
            validate_slave_id(end)
            result = await scan_meters(client, start, end)
        elif args.command == "read":
            result = await read_meters(client, slaves)
        else:
            result = await set_address(client, args.current_slave, new_slave_id)

    print(json.dumps(result))
    return 0 if result["success"] else 1


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    try:
        return asyncio.run(run(args))
    except (ConfigError, ValueError) as e:
        logger.error(str(e))
        print(json.dumps({"success": False, "error": str(e)}))
        return 1
    except ConnectError as e:
        logger.error(e.message)
        print(json.dumps({"success": False, "error": e.message}))
        return 1


if __name__ == "__main__":
    sys.exit(main())
