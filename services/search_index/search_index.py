"""Search index runner entry point.

Runs one indexing command against the configured search engine and exits.
Schedule "index" periodically (cron, systemd timer, ...) for incremental updates.

Usage:
    python -m services.search_index.search_index index
    python -m services.search_index.search_index delete [--component mod_forum]
    python -m services.search_index.search_index optimize
    python -m services.search_index.search_index status
    python -m services.search_index.search_index setup-schema [--no-check-existing]
"""

import argparse
import asyncio
import sys

from services.search_index.SearchManager import SearchManager, create_search_manager
from shared.clients.engine.EngineClientManager import EngineClientManager
from shared.clients.engine.solr.EngineClientSolr import EngineClientSolr
from shared.clients.engine.solr.SolrSchema import SolrSchema
from shared.clients.host.HostClientManager import HostClientManager
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import setup_logging
from shared.models.errors import SearchError
from shared.stores.ConfigStoreManager import ConfigStoreManager


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Global search index maintenance")
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("index", help="Index the changes of every enabled search source")
    delete_parser = subparsers.add_parser("delete", help="Delete indexed documents and reset the counters")
    delete_parser.add_argument("--component", default=None, help="Only delete the documents of this search source")
    subparsers.add_parser("optimize", help="Optimize the search index")
    subparsers.add_parser("status", help="Print the indexing counters of every search source")
    schema_parser = subparsers.add_parser("setup-schema", help="Create the document fields in the search engine")
    schema_parser.add_argument("--no-check-existing", action="store_true", help="Do not fail if fields already exist")
    return parser.parse_args(argv)


async def _setup_schema(config: HelperConfig, check_existing: bool) -> None:
    engine = EngineClientManager(helper_config=config).get_client()
    if not isinstance(engine, EngineClientSolr):
        raise SearchError(f"Schema setup is not supported for engine '{engine.get_engine_name()}'.")
    await engine.boot()
    try:
        await SolrSchema(engine).setup(check_existing=check_existing)
    finally:
        await engine.close()


async def _run_command(args: argparse.Namespace, search_manager: SearchManager) -> None:
    logger = search_manager.logging
    if args.command == "index":
        updated = await search_manager.index()
        logger.info("Indexing finished, index %s.", "updated" if updated else "unchanged", color="green")
    elif args.command == "delete":
        await search_manager.delete_index(args.component)
    elif args.command == "optimize":
        await search_manager.optimize_index()
        logger.info("Search index optimized.", color="green")
    elif args.command == "status":
        for component, state in search_manager.get_sources_config().items():
            logger.info("%s: %s", component, state.model_dump())


async def main(argv: list[str] | None = None) -> int:
    """Run one index maintenance command."""
    args = _parse_args(argv)
    logger = setup_logging()
    config = HelperConfig(logger=logger)

    if args.command == "setup-schema":
        try:
            await _setup_schema(config, check_existing=not args.no_check_existing)
        except SearchError as e:
            logger.error(f"Schema setup failed: {e}")
            return 1
        logger.info("Search schema created.", color="green")
        return 0

    try:
        host_client = HostClientManager(helper_config=config).get_client()
        config_store = ConfigStoreManager(helper_config=config).get_store()
    except SearchError as e:
        logger.error(f"Search index command '{args.command}' failed: {e}")
        return 1
    search_manager: SearchManager | None = None

    await host_client.boot()
    try:
        search_manager = await create_search_manager(helper_config=config, host_client=host_client, config_store=config_store)
        await _run_command(args, search_manager)
    except SearchError as e:
        logger.error(f"Search index command '{args.command}' failed: {e}")
        return 1
    finally:
        if search_manager:
            await search_manager.close()
        await host_client.close()
    return 0


def run() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
