#!/usr/bin/env python3
"""
Fetch ticker symbol logos and suggest a background for them.

Logos come from the Financial Modeling Prep image host as PNGs with
transparency. Set LOGO_BASE_URL to point at a mirror.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from analyze import (
    DEFAULT_DARK_COLOR,
    DEFAULT_LIGHT_COLOR,
    BackgroundSuggestion,
    SuggestionOptions,
    choose_background_color,
    suggest_background_from_image,
)

logger = logging.getLogger(__name__)

DEFAULT_LOGO_BASE_URL = 'https://images.financialmodelingprep.com/symbol'
DEFAULT_TIMEOUT = 10  # seconds


class LogoFetchError(Exception):
    """A logo request failed or returned a non-success status."""

    def __init__(self, symbol: str, status: Optional[int], reason: str = ''):
        self.symbol = symbol
        self.status = status
        message = f"Failed to fetch logo for {symbol}: {status if status is not None else reason}"
        super().__init__(message)


@dataclass(frozen=True)
class SymbolBackground:
    symbol: str
    color: str
    suggestion: BackgroundSuggestion
    url: str


def get_session() -> requests.Session:
    """Returns a requests Session with retries on rate limits and server errors."""
    session = requests.Session()
    # Hand back the final response instead of raising so the status is reported
    retries = Retry(total=3,
                    backoff_factor=0.5,
                    status_forcelist=[429, 500, 502, 503, 504],
                    raise_on_status=False)
    adapter = HTTPAdapter(max_retries=retries)
    session.mount('https://', adapter)
    session.mount('http://', adapter)
    return session


def logo_url(symbol: str, base_url: Optional[str] = None) -> str:
    """Build the logo URL for a symbol, e.g. 'BRK-A' -> .../symbol/BRK-A.png"""
    base = base_url or os.environ.get('LOGO_BASE_URL') or DEFAULT_LOGO_BASE_URL
    slug = quote(symbol.strip(), safe="!~*'()")
    return f"{base.rstrip('/')}/{slug}.png"


def fetch_logo(symbol: str,
               session: Optional[requests.Session] = None,
               timeout: float = DEFAULT_TIMEOUT) -> bytes:
    """
    Download the encoded logo image for a symbol.

    Raises:
        LogoFetchError: On a non-success status or a transport failure
    """
    url = logo_url(symbol)
    http = session or get_session()
    try:
        response = http.get(url, timeout=timeout)
    except requests.RequestException as e:
        raise LogoFetchError(symbol, None, str(e)) from e

    logger.debug("GET %s -> %s", url, response.status_code)
    if not response.ok:
        raise LogoFetchError(symbol, response.status_code)
    return response.content


def suggest_symbol_background(symbol: str,
                              options: Optional[SuggestionOptions] = None,
                              session: Optional[requests.Session] = None) -> BackgroundSuggestion:
    """Fetch a symbol's logo and suggest a light or dark background for it."""
    return suggest_background_from_image(fetch_logo(symbol, session=session), options)


def choose_symbol_background_color(symbol: str,
                                   options: Optional[SuggestionOptions] = None,
                                   light_color: str = DEFAULT_LIGHT_COLOR,
                                   dark_color: str = DEFAULT_DARK_COLOR,
                                   min_confidence: float = 0.0,
                                   fallback_color: Optional[str] = None,
                                   session: Optional[requests.Session] = None) -> SymbolBackground:
    """Fetch, analyze and map a symbol's logo to a concrete background color."""
    suggestion = suggest_symbol_background(symbol, options, session=session)
    color = choose_background_color(
        suggestion,
        light_color=light_color,
        dark_color=dark_color,
        min_confidence=min_confidence,
        fallback_color=fallback_color,
    )
    return SymbolBackground(symbol=symbol, color=color, suggestion=suggestion, url=logo_url(symbol))


def main(argv=None):
    import argparse
    import json
    import sys

    from analyze import ImageDecodeError, add_option_arguments, format_suggestion, options_from_args

    parser = argparse.ArgumentParser(
        description='Suggest background colors for ticker symbol logos.'
    )
    parser.add_argument('symbols', nargs='+', help='Ticker symbols, e.g. AMZN BRK-A')
    parser.add_argument('--light-color', default=DEFAULT_LIGHT_COLOR)
    parser.add_argument('--dark-color', default=DEFAULT_DARK_COLOR)
    parser.add_argument(
        '--min-confidence',
        type=float,
        default=0.0,
        help='Below this confidence the fallback color is used'
    )
    parser.add_argument('--fallback-color', default=None)
    parser.add_argument('--json', action='store_true', help='Print results as JSON')
    add_option_arguments(parser)

    args = parser.parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format='%(levelname)s %(name)s: %(message)s')

    try:
        options = options_from_args(args)
    except ValueError as e:
        parser.error(str(e))

    session = get_session()
    results = []
    failed = False
    for symbol in args.symbols:
        try:
            result = choose_symbol_background_color(
                symbol, options,
                light_color=args.light_color,
                dark_color=args.dark_color,
                min_confidence=args.min_confidence,
                fallback_color=args.fallback_color,
                session=session,
            )
        except (LogoFetchError, ImageDecodeError) as e:
            print(f"{symbol}: ERROR: {e}", file=sys.stderr)
            failed = True
            continue

        if args.json:
            results.append({
                'symbol': result.symbol,
                'url': result.url,
                'color': result.color,
                **result.suggestion.to_dict(),
            })
        else:
            print(f"{symbol}: {format_suggestion(result.suggestion, result.color)}")

    if args.json:
        print(json.dumps(results, indent=2))
    if failed:
        sys.exit(1)


if __name__ == '__main__':
    main()
