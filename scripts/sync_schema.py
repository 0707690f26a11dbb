#!/usr/bin/env python3
"""Manually trigger PocketBase schema sync."""

import asyncio

from planboard.core.config import settings
from planboard.core.logging import configure_logfire
from planboard.core.schema import sync_pocketbase_schema


async def main() -> None:
    configure_logfire(settings)
    await sync_pocketbase_schema(settings)


if __name__ == "__main__":
    asyncio.run(main())
