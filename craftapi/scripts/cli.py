"""
Ad-hoc CLI for craft-api (server status, search, projects, versions, loaders).
Run from repo root with: python -m craftapi.scripts.cli <command> [args]
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, List

from pydantic import BaseModel

from ..config import LOG_LEVEL, STATUS_TIMEOUT_SECONDS
from ..errors import CraftApiError
from ..schemas import ReleaseType
from ..services.loaders import FabricMetaClient
from ..services.search import default_aggregator
from ..services.vanilla import get_jre_binaries, get_minecraft_versions, get_supported_platforms
from ..status.client import DEFAULT_PORT, probe_server_status

log = logging.getLogger(__name__)


def _dump(value: Any) -> str:
    if isinstance(value, BaseModel):
        value = value.model_dump(mode="json")
    elif isinstance(value, list):
        value = [item.model_dump(mode="json") if isinstance(item, BaseModel) else item for item in value]
    return json.dumps(value, indent=2)


async def _run(args: argparse.Namespace) -> Any:
    if args.command == "status":
        return await probe_server_status(args.host, args.port, timeout=args.timeout)

    if args.command == "minecraft":
        return await get_minecraft_versions(args.filter, snapshots=args.snapshots)

    if args.command == "jre":
        if args.platforms:
            return await get_supported_platforms()
        return await get_jre_binaries(args.os)

    if args.command == "fabric":
        client = FabricMetaClient()
        if args.loaders:
            return await client.get_loader_versions()
        if args.installer:
            return await client.get_installer(args.installer)
        return await client.get_installers()

    aggregator = default_aggregator()
    if args.command == "search":
        return await aggregator.search_projects(
            args.query,
            project_type=args.type,
            loader=args.loader,
            game_version=args.game_version,
            limit=args.limit,
            offset=args.offset,
        )
    if args.command == "project":
        return await aggregator.get_project(args.project_id, args.type)
    if args.command == "versions":
        return await aggregator.get_project_versions(
            args.project_id,
            game_versions=args.game_version,
            loaders=args.loader,
            release_types=[ReleaseType.parse(t) for t in args.release_type],
            limit=args.limit,
            offset=args.offset,
        )
    raise ValueError(f"Unknown command: {args.command}")


def parse_args(argv: List[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Query Minecraft servers, mod platforms and loader metadata."
    )
    parser.add_argument("--log-level", default=LOG_LEVEL, help="Logging level (default from CRAFTAPI_LOG_LEVEL).")
    sub = parser.add_subparsers(dest="command", required=True)

    status = sub.add_parser("status", help="Ping a Minecraft server for its status.")
    status.add_argument("host")
    status.add_argument("port", nargs="?", type=int, default=DEFAULT_PORT)
    status.add_argument("--timeout", type=float, default=STATUS_TIMEOUT_SECONDS)

    search = sub.add_parser("search", help="Search Modrinth and CurseForge.")
    search.add_argument("query")
    search.add_argument("--type", default="mod", help="mod, modpack or resourcepack")
    search.add_argument("--loader")
    search.add_argument("--version", dest="game_version")
    search.add_argument("--limit", type=int, default=20)
    search.add_argument("--offset", type=int, default=0)

    project = sub.add_parser("project", help="Show one project.")
    project.add_argument("project_id")
    project.add_argument("--type", default="")

    versions = sub.add_parser("versions", help="List a project's versions.")
    versions.add_argument("project_id")
    versions.add_argument("--game-version", action="append", default=[])
    versions.add_argument("--loader", action="append", default=[])
    versions.add_argument("--release-type", action="append", default=[])
    versions.add_argument("--limit", type=int, default=0)
    versions.add_argument("--offset", type=int, default=0)

    minecraft = sub.add_parser("minecraft", help="List vanilla Minecraft versions.")
    minecraft.add_argument("--filter", help="Keep releases of one minor line, e.g. 1.20")
    minecraft.add_argument("--snapshots", action="store_true")

    jre = sub.add_parser("jre", help="List the Java runtimes Mojang ships for the launcher.")
    jre.add_argument("--os", help="Platform key, e.g. linux, mac-os or windows-x64")
    jre.add_argument("--platforms", action="store_true", help="Only list the supported platform keys.")

    fabric = sub.add_parser("fabric", help="List Fabric installers or loader versions.")
    fabric.add_argument("--installer", help="Show a single installer version.")
    fabric.add_argument("--loaders", action="store_true", help="List loader versions instead of installers.")

    return parser.parse_args(argv)


def main(argv: List[str] | None = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        result = asyncio.run(_run(args))
    except CraftApiError as exc:
        log.error("%s: %s", type(exc).__name__, exc)
        return 1
    print(_dump(result))
    return 0


if __name__ == "__main__":
    sys.exit(main())
