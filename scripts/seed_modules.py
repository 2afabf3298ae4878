"""Seed the Foundation School module catalog.

Loads a JSON catalog and upserts every module into ``fs_modules``. Running
it again overwrites modules with the same number; modules missing from the
file are left untouched (set ``is_active: false`` to retire one).

Usage:
    python -m scripts.seed_modules scripts/foundation_modules.json
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add the project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import structlog

from ecclesia.config.settings import get_settings
from ecclesia.core.database import init_async_cassandra, shutdown_async_cassandra
from ecclesia.core.logging import configure_structlog
from ecclesia.curriculum.catalog import load_catalog
from ecclesia.curriculum.service import CurriculumService


logger = structlog.get_logger(__name__)


async def run_seed(path: Path) -> None:
    """Load the catalog and upsert each module."""
    settings = get_settings()
    modules = load_catalog(path, settings.foundation_default_passing_score)

    logger.info(
        "seed_starting",
        catalog=str(path),
        modules=len(modules),
        keyspace=settings.cassandra_keyspace,
    )

    session = await init_async_cassandra()
    try:
        service = CurriculumService(session=session, keyspace=settings.cassandra_keyspace)
        for module in modules:
            await service.upsert_module(module)
        logger.info("seed_completed", modules=len(modules))
    finally:
        await shutdown_async_cassandra()


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("catalog", type=Path, help="Path to the JSON module catalog")
    args = parser.parse_args()

    configure_structlog(get_settings())
    asyncio.run(run_seed(args.catalog))


if __name__ == "__main__":
    main()
