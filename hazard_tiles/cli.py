"""CLI entry point for the winter hazard tile service."""

import argparse
import json
import logging
from dataclasses import asdict
from pathlib import Path

import yaml

from hazard_tiles.config.loader import (
    DEFAULT_CONFIG_PATH,
    get_config_value,
    load_config,
    resolve_config_path,
    set_config_value,
)
from hazard_tiles.ingest.hazard_fetcher import UpstreamFetchFailed
from hazard_tiles.models.tile import InvalidTileAddress, TileAddress
from hazard_tiles.pipeline.tile_pipeline import build_service
from hazard_tiles.reporting.health_checker import HealthChecker


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="hazard-tiles",
        description="WSSI winter hazard raster tile service",
    )
    parser.add_argument(
        "--config", default=None, help=f"Config YAML path (default {DEFAULT_CONFIG_PATH})"
    )

    sub = parser.add_subparsers(dest="command")

    # serve
    serve_p = sub.add_parser("serve", help="Run the tile HTTP server")
    serve_p.add_argument("--host", default=None)
    serve_p.add_argument("--port", type=int, default=None)

    # render
    render_p = sub.add_parser("render", help="Render one tile to a PNG file")
    render_p.add_argument("day")
    render_p.add_argument("z")
    render_p.add_argument("x")
    render_p.add_argument("y")
    render_p.add_argument("--out", default=None, help="Output path (default day_z_x_y.png)")

    # fetch
    fetch_p = sub.add_parser("fetch", help="Fetch a day's hazard snapshot and print metrics")
    fetch_p.add_argument("day", type=int)

    # health
    sub.add_parser("health", help="Run health checks")

    # config show / config set
    config_p = sub.add_parser("config", help="Config operations")
    config_sub = config_p.add_subparsers(dest="config_command")
    config_sub.add_parser("show", help="Display current config")
    set_p = config_sub.add_parser("set", help="Set a config value and write it back")
    set_p.add_argument("keyvalue", help="key=value to set")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    config = load_config(args.config)

    logging.basicConfig(
        level=getattr(logging, config.server.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "serve":
        return _cmd_serve(config, args)
    elif args.command == "render":
        return _cmd_render(config, args)
    elif args.command == "fetch":
        return _cmd_fetch(config, args)
    elif args.command == "health":
        return _cmd_health(config, args)
    elif args.command == "config":
        return _cmd_config(config, args)
    else:
        parser.print_help()
        return 1


def _cmd_serve(config, args) -> int:
    import uvicorn

    from hazard_tiles.server import create_app

    host = args.host or config.server.host
    port = args.port or config.server.port
    uvicorn.run(create_app(config), host=host, port=port, log_level=config.server.log_level.lower())
    return 0


def _cmd_render(config, args) -> int:
    try:
        address = TileAddress.parse(args.day, args.z, args.x, args.y)
    except InvalidTileAddress as e:
        print(f"Error: {e}")
        return 1

    service = build_service(config)
    result = service.get_tile(address)
    out = Path(args.out or f"{address.day}_{address.zoom}_{address.x}_{address.y}.png")
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_bytes(result.tile.png)
    print(
        f"Wrote {out} ({len(result.tile.png)} bytes) "
        f"status={result.status.value} sigma={result.sigma_px:.2f}"
    )
    return 0


def _cmd_fetch(config, args) -> int:
    service = build_service(config)
    try:
        metrics = service.snapshot_metrics(args.day)
    except UpstreamFetchFailed as e:
        print(f"Error: {e}")
        return 1
    print(json.dumps(asdict(metrics), indent=2))
    return 0


def _cmd_health(config, args) -> int:
    service = build_service(config)
    checker = HealthChecker(service.cache, service.fetcher.client, config.upstream.source.value)
    status = checker.check()

    print(f"Cache ({status.cache_backend}): {'OK' if status.cache_ok else 'FAIL'}")
    print(f"Upstream: {'OK' if status.upstream_reachable else 'FAIL'}")
    print(f"Source: {status.upstream_source}")
    return 0 if status.cache_ok and status.upstream_reachable else 1


def _cmd_config(config, args) -> int:
    if args.config_command == "show":
        print(config.model_dump_json(indent=2))
        return 0
    elif args.config_command == "set":
        kv = args.keyvalue
        if "=" not in kv:
            print("Error: use key=value format")
            return 1
        key, value = kv.split("=", 1)
        try:
            new_config = set_config_value(config, key.strip(), value.strip())
        except Exception as e:
            print(f"Error: {e}")
            return 1
        _write_config(new_config, resolve_config_path(args.config))
        print(f"Set {key} = {get_config_value(new_config, key.strip())}")
        return 0
    else:
        print("Use: config show | config set key=value")
        return 1


def _write_config(config, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.exists():
        # Backup before writing
        path.with_suffix(".yaml.bak").write_text(path.read_text())
    with open(path, "w") as f:
        yaml.safe_dump(config.model_dump(mode="json"), f, default_flow_style=False, sort_keys=False)
