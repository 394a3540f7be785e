import logging

from .controller import PageSearchView, SearchController, render_template
from .exceptions import FetchError, LazysearchError
from .logger import setup_logging
from .query import build_match_query
from .response import Response
from .service import SearchService, iter_highlights
from .transport import Transport

__version__ = "1.0.0"

# Add NullHandler to prevent logging warnings if no handler is configured by the user.
logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "Transport",
    "Response",
    "SearchService",
    "SearchController",
    "PageSearchView",
    "build_match_query",
    "iter_highlights",
    "render_template",
    "FetchError",
    "LazysearchError",
    "setup_logging",
]
