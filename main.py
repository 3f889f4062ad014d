"""
zap-http entry point.
Probes the health endpoint of every configured backend service.
"""

import asyncio
import sys

from loguru import logger

from zap_http.services.client import (
    check_all_services_health,
    close_service_clients,
    get_service_clients,
)
from zap_http.settings import global_settings


async def main() -> int:
    logger.remove()
    logger.add(sys.stderr, level=global_settings.log_level.upper())
    logger.info(f"Checking backend services ({global_settings.app_env})...")

    try:
        results = await check_all_services_health(get_service_clients())
    finally:
        await close_service_clients()

    failed = 0
    for name, result in results.items():
        if result["status"] == "error":
            failed += 1
            logger.error(f"{name}: {result['error']}")
        else:
            logger.info(f"{name}: {result['status']}")

    logger.info(f"{len(results) - failed}/{len(results)} services healthy")
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
