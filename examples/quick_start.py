"""Quick start example for lazysearch.

This script demonstrates the basic usage of the Transport and SearchService
classes: a plain GET with query parameters, a JSON POST and a
search against the default endpoint.
"""

import asyncio
import json
import logging
import sys
from pathlib import Path

# Ensure src is in python path for local testing
sys.path.append(str(Path(__file__).parent.parent / "src"))

from lazysearch import LazysearchError, SearchService, Transport, iter_highlights, setup_logging
from lazysearch.controller import DEFAULT_SEARCH_URL

logger = logging.getLogger("lazysearch.quick_start")


async def main(term: str) -> None:
    """Run the demonstration."""
    setup_logging(level=logging.DEBUG)

    logger.info("Starting headless browser...")
    async with Transport(
        profile_dir="./browser_data/quick_start_profile",
        headless=True,
        page_url="https://httpbin.org/",
    ) as transport:
        try:
            # 1. GET with the body turned into query parameters
            body = await transport.fetch(
                "https://httpbin.org/get", {"method": "GET", "body": {"q": term, "limit": 5}}
            )
            logger.info(f"GET echoed args: {json.loads(body)['args']}")

            # 2. POST with a JSON body
            echoed = await transport.fetch_json(
                "https://httpbin.org/post", {"method": "POST", "body": {"term": term}}
            )
            if isinstance(echoed, dict):
                logger.info(f"POST echoed json: {echoed.get('json')}")

            # 3. Search
            service = SearchService(transport, DEFAULT_SEARCH_URL)
            result = await service.search(term)
            logger.info(f"{result['hits']['total']} hits for {term!r}")
            for field, fragments in iter_highlights(result):
                logger.info(f"   {field}: {fragments}")

        except LazysearchError as e:
            logger.exception(f"Error: {e}")


if __name__ == "__main__":
    asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else "chair"))
