#!/usr/bin/env python3
"""Batch suggest backgrounds for logos and generate an HTML preview report."""

import argparse
import base64
import sys
import time
from dataclasses import dataclass
from html import escape
from pathlib import Path
from typing import Callable, Optional

from analyze import (
    DEFAULT_DARK_COLOR,
    DEFAULT_LIGHT_COLOR,
    BackgroundSuggestion,
    ImageDecodeError,
    SuggestionOptions,
    add_option_arguments,
    choose_background_color,
    options_from_args,
    suggest_background_from_image,
    text_color_for_background,
)
from fetch_logo import LogoFetchError, fetch_logo, get_session

IMAGE_TYPES = {
    '.png': 'image/png',
    '.webp': 'image/webp',
    '.gif': 'image/gif',
    '.jpg': 'image/jpeg',
    '.jpeg': 'image/jpeg',
}


@dataclass
class LogoResult:
    """Outcome for one logo: a suggestion, or the error that prevented one."""
    name: str
    image: bytes = b''
    mime: str = 'image/png'
    suggestion: Optional[BackgroundSuggestion] = None
    error: Optional[str] = None


def find_images(directory: Path) -> list[Path]:
    """Find all image files in directory."""
    return sorted(
        p for p in directory.iterdir()
        if p.is_file() and p.suffix.lower() in IMAGE_TYPES
    )


def analyze_one(name: str, read: Callable[[], bytes], mime: str,
                options: SuggestionOptions) -> LogoResult:
    try:
        image = read()
        suggestion = suggest_background_from_image(image, options)
    except (OSError, ImageDecodeError, LogoFetchError) as e:
        return LogoResult(name=name, mime=mime, error=f"{type(e).__name__}: {e}")
    return LogoResult(name=name, image=image, mime=mime, suggestion=suggestion)


def analyze_files(paths: list[Path], options: SuggestionOptions) -> list[LogoResult]:
    return [
        analyze_one(p.name, p.read_bytes, IMAGE_TYPES.get(p.suffix.lower(), 'image/png'), options)
        for p in paths
    ]


def analyze_symbols(symbols: list[str], options: SuggestionOptions,
                    session=None) -> list[LogoResult]:
    session = session or get_session()
    return [
        analyze_one(s, lambda s=s: fetch_logo(s, session=session), 'image/png', options)
        for s in symbols
    ]


def render_html(results: list[LogoResult],
                light_color: str = DEFAULT_LIGHT_COLOR,
                dark_color: str = DEFAULT_DARK_COLOR,
                min_confidence: float = 0.0,
                fallback_color: Optional[str] = None) -> str:
    """Render each logo over its suggested background as a standalone HTML page."""
    css = """
        * { box-sizing: border-box; margin: 0; padding: 0; }
        body {
            font-family: system-ui, -apple-system, sans-serif;
            background: #f5f5f5;
            color: #333;
            line-height: 1.5;
            padding: 2rem;
            max-width: 900px;
            margin: 0 auto;
        }
        h1 { font-size: 1.5rem; margin-bottom: 0.5rem; }
        .meta { color: #666; font-size: 0.9rem; margin-bottom: 1rem; }
        .grid {
            display: grid;
            grid-template-columns: repeat(auto-fill, minmax(200px, 1fr));
            gap: 1rem;
        }
        .logo-card {
            background: #fff;
            border-radius: 8px;
            overflow: hidden;
            box-shadow: 0 1px 3px rgba(0,0,0,0.08);
        }
        .logo-card .stage {
            height: 140px;
            display: flex;
            align-items: center;
            justify-content: center;
            padding: 1rem;
            font-size: 0.7rem;
            font-weight: 600;
        }
        .logo-card .stage img { max-width: 100%; max-height: 100%; }
        .logo-card .info { padding: 0.75rem; font-size: 0.85rem; }
        .logo-card .name { font-weight: 600; word-break: break-all; }
        .logo-card .values { font-family: monospace; color: #555; font-size: 0.8rem; }
        .logo-card.failed .info { color: #b42318; }
    """

    ok = sum(1 for r in results if r.suggestion is not None)
    lines = [
        '<!DOCTYPE html>',
        '<html lang="en">',
        '<head>',
        '<meta charset="utf-8">',
        '<title>Logo Backgrounds</title>',
        f'<style>{css}</style>',
        '</head>',
        '<body>',
        '<h1>Logo Backgrounds</h1>',
        f'<p class="meta">{ok} of {len(results)} logos analyzed · '
        f'light {escape(light_color)} · dark {escape(dark_color)} · '
        f'min confidence {min_confidence:.2f}</p>',
        '<div class="grid">',
    ]

    for result in results:
        name = escape(result.name)
        if result.suggestion is None:
            lines.append('<div class="logo-card failed">')
            lines.append(f'  <div class="info"><div class="name">{name}</div>'
                         f'{escape(result.error or "unknown error")}</div>')
            lines.append('</div>')
            continue

        s = result.suggestion
        color = choose_background_color(s, light_color, dark_color, min_confidence, fallback_color)
        encoded = base64.b64encode(result.image).decode('ascii')
        lines.append('<div class="logo-card">')
        lines.append(f'  <div class="stage" style="background:{escape(color)}; '
                     f'color:{text_color_for_background(color)}">')
        lines.append(f'    <img src="data:{result.mime};base64,{encoded}" alt="{name}">')
        lines.append('  </div>')
        lines.append('  <div class="info">')
        lines.append(f'    <div class="name">{name}</div>')
        lines.append(f'    <div>{s.tone} background ({escape(color)})</div>')
        lines.append(f'    <div class="values">confidence {s.confidence:.2f} · '
                     f'L {s.foreground_lightness:.3f} · '
                     f'{s.foreground_sampled:,}/{s.total_sampled:,} px</div>')
        lines.append('  </div>')
        lines.append('</div>')

    lines.append('</div>')
    lines.append('</body>')
    lines.append('</html>')

    return '\n'.join(lines)


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Batch suggest logo backgrounds and generate an HTML report.'
    )
    parser.add_argument(
        '--input', '-i',
        help='Directory containing logo images to analyze'
    )
    parser.add_argument(
        '--symbol', '-s',
        action='append',
        default=[],
        help='Ticker symbol whose logo is fetched (repeatable)'
    )
    parser.add_argument(
        '--output', '-o',
        required=True,
        help='Path of the HTML report'
    )
    parser.add_argument('--light-color', default=DEFAULT_LIGHT_COLOR)
    parser.add_argument('--dark-color', default=DEFAULT_DARK_COLOR)
    parser.add_argument('--min-confidence', type=float, default=0.0)
    parser.add_argument('--fallback-color', default=None)
    add_option_arguments(parser)

    args = parser.parse_args(argv)
    if args.verbose:
        import logging
        logging.basicConfig(level=logging.DEBUG, format='%(levelname)s %(name)s: %(message)s')

    if not args.input and not args.symbol:
        parser.error('give --input and/or at least one --symbol')

    try:
        options = options_from_args(args)
    except ValueError as e:
        parser.error(str(e))

    images = []
    if args.input:
        input_dir = Path(args.input)
        if not input_dir.is_dir():
            print(f"Error: Input directory not found: {input_dir}", file=sys.stderr)
            sys.exit(2)
        images = find_images(input_dir)
        if not images and not args.symbol:
            print(f"No images found in {input_dir}", file=sys.stderr)
            sys.exit(2)

    batch_start = time.perf_counter()
    results = analyze_files(images, options)
    if args.symbol:
        results.extend(analyze_symbols(args.symbol, options))
    batch_elapsed = time.perf_counter() - batch_start

    total = len(results)
    for i, result in enumerate(results, 1):
        if result.suggestion is None:
            print(f"[{i}/{total}] {result.name} → ERROR: {result.error}", file=sys.stderr)
        else:
            s = result.suggestion
            print(f"[{i}/{total}] {result.name} → {s.tone} ({s.confidence:.2f})")

    output_path = Path(args.output)
    html = render_html(results, args.light_color, args.dark_color,
                       args.min_confidence, args.fallback_color)
    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(html, encoding='utf-8')
    except OSError as e:
        print(f"Error writing output: {e}", file=sys.stderr)
        sys.exit(1)

    failed = [r for r in results if r.suggestion is None]
    print()
    print(f"Completed: {total - len(failed)}/{total} succeeded in {batch_elapsed:.2f}s")
    print(f"Wrote: {output_path}")
    if failed:
        print(f"Failed ({len(failed)}):")
        for r in failed:
            print(f"  - {r.name}: {r.error}")
        sys.exit(1)


if __name__ == '__main__':
    main()
