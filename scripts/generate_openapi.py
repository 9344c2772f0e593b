"""Dump the OpenAPI document of each service as JSON."""

import argparse
import importlib
import json
import os
from pathlib import Path
from typing import Callable

from fastapi import FastAPI

SERVICES = {
    "giftcard-service": "services.giftcard_service.app.main:create_app",
}


def build_app(factory_path: str) -> FastAPI:
    module_path, factory_name = factory_path.split(":")
    factory: Callable[[], FastAPI] = getattr(importlib.import_module(module_path), factory_name)
    return factory()


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--out-dir", type=Path, default=Path("openapi"))
    parser.add_argument("--service", choices=sorted(SERVICES), action="append", dest="services")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    os.environ.setdefault("GIFTCARD_OTEL_ENABLED", "false")
    args.out_dir.mkdir(parents=True, exist_ok=True)
    for name in args.services or sorted(SERVICES):
        document = build_app(SERVICES[name]).openapi()
        target = args.out_dir / f"{name}.json"
        target.write_text(json.dumps(document, indent=2, sort_keys=True))
        print(f"{name}: {len(document.get('paths', {}))} paths -> {target}")


if __name__ == "__main__":
    main()
