"""Run a single monitoring tick and print its report."""

import argparse
import asyncio
import json
import sys

from opswatch.config import load_config
from opswatch.log import configure_logging
from opswatch.service import MonitoringService

FAMILIES = ("certificates", "wallets", "chain_health")


async def _run(family: str, config_path: str | None) -> int:
    config = load_config(config_path)
    configure_logging(config.log_level)
    service = MonitoringService(config)
    try:
        report = await service.run_once(family)
    finally:
        await service.close()
    print(json.dumps(report.to_dict(), indent=2, ensure_ascii=False))
    return 0 if report.ok else 1


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="opswatch", description=__doc__)
    parser.add_argument("family", choices=FAMILIES)
    parser.add_argument("--config", default=None, help="Path to a YAML config file")
    args = parser.parse_args(argv)
    return asyncio.run(_run(args.family, args.config))


if __name__ == "__main__":
    sys.exit(main())
