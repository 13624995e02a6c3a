#!/usr/bin/env python3
"""
Docs Archiver - mirror a documentation website for offline viewing.

This tool crawls a docs site, renders its pages with Playwright,
downloads every script, stylesheet, image and font, and rewrites all
references so the mirror works from the local filesystem.

Usage:
    archive docs.example.com 20 --output ./mirror

Features:
    - Renders JavaScript pages with Playwright (or plain HTTP with --no-js)
    - Mirrors resources from the site and its allow-listed CDNs
    - Rewrites markup, stylesheet and script references to local paths
    - Exports Next.js page data to json_data/
"""

import argparse
import asyncio
import logging
import os
import sys
from typing import List, Optional
from urllib.parse import urlparse

from docs_archiver.crawler import SiteArchiver
from docs_archiver.utils.constants import (
    DEFAULT_ALLOWED_HOSTS,
    DEFAULT_BATCH_SIZE,
    DEFAULT_MAX_PAGES,
    DEFAULT_OUTPUT_DIR,
    DEFAULT_PAGE_TIMEOUT,
    DEFAULT_TIMEOUT,
    DEFAULT_WORKERS,
)
from docs_archiver.utils.errors import OutputRootError
from docs_archiver.utils.log import (
    setup_logger,
    print_status,
    print_success,
    print_error,
    print_info
)


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command line arguments.

    Args:
        argv: Argument list (defaults to sys.argv[1:])

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        prog='archive',
        description='Archive a documentation website for offline viewing',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    %(prog)s docs.example.com
    %(prog)s docs.example.com 50 --output ./mirror
    %(prog)s docs.example.com -1 --workers 4 --no-js
        """
    )

    parser.add_argument(
        'domain',
        type=str,
        help='Domain of the site to archive (e.g., docs.example.com)'
    )

    parser.add_argument(
        'max_pages',
        type=int,
        nargs='?',
        default=DEFAULT_MAX_PAGES,
        help=f'Maximum number of pages to archive, -1 for unlimited (default: {DEFAULT_MAX_PAGES})'
    )

    parser.add_argument(
        '--output', '-o',
        type=str,
        default=DEFAULT_OUTPUT_DIR,
        help=f'Output directory for the mirror (default: {DEFAULT_OUTPUT_DIR})'
    )

    parser.add_argument(
        '--allow',
        type=str,
        action='append',
        default=None,
        metavar='HOST',
        help='Extra host whose resources may be mirrored, added to the default '
             'CDN hosts (repeatable; defaults: ' + ', '.join(DEFAULT_ALLOWED_HOSTS) + ')'
    )

    parser.add_argument(
        '--workers', '-w',
        type=int,
        default=DEFAULT_WORKERS,
        help=f'Pages rendered concurrently (default: {DEFAULT_WORKERS})'
    )

    parser.add_argument(
        '--batch-size',
        type=int,
        default=DEFAULT_BATCH_SIZE,
        help=f'Resources downloaded per batch (default: {DEFAULT_BATCH_SIZE})'
    )

    parser.add_argument(
        '--timeout',
        type=int,
        default=DEFAULT_TIMEOUT,
        help=f'Resource download timeout in seconds (default: {DEFAULT_TIMEOUT})'
    )

    parser.add_argument(
        '--render-timeout',
        type=int,
        default=DEFAULT_PAGE_TIMEOUT,
        help=f'Page load timeout in milliseconds (default: {DEFAULT_PAGE_TIMEOUT})'
    )

    parser.add_argument(
        '--no-js',
        action='store_true',
        help='Fetch pages over plain HTTP instead of rendering them in a browser'
    )

    parser.add_argument(
        '--no-headless',
        action='store_true',
        help='Run browser in visible mode (useful for debugging)'
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose logging'
    )

    parser.add_argument(
        '--quiet', '-q',
        action='store_true',
        help='Suppress output except errors'
    )

    parser.add_argument(
        '--log-file',
        type=str,
        default=None,
        help='Also write logs to this file'
    )

    return parser.parse_args(argv)


def validate_domain(domain: str) -> str:
    """
    Validate the domain argument.

    Args:
        domain: Domain, optionally with a scheme

    Returns:
        The domain as given, stripped

    Raises:
        ValueError: If the domain is invalid
    """
    domain = domain.strip()
    url = domain if '://' in domain else f"https://{domain}"
    parsed = urlparse(url)

    if parsed.scheme not in ('http', 'https'):
        raise ValueError(f"Unsupported scheme: {parsed.scheme}")
    if not parsed.hostname or '.' not in parsed.hostname:
        raise ValueError(f"Domain must contain a dot: {domain}")

    return domain


def print_banner() -> None:
    """Print the application banner."""
    banner = """
╔═══════════════════════════════════════════════════════════════╗
║                        DOCS ARCHIVER                          ║
║            Offline mirrors of documentation sites             ║
╚═══════════════════════════════════════════════════════════════╝
    """
    print_status(banner, "bold cyan")


def print_summary(result) -> None:
    """
    Print the archive summary.

    Args:
        result: ArchiveResult object
    """
    print("\n" + "=" * 60)
    print_success("ARCHIVE SUMMARY")
    print("=" * 60)
    print(f"  Pages archived:       {result.pages_archived}")
    print(f"  Pages failed:         {result.pages_failed}")
    print(f"  Resources downloaded: {result.resources_downloaded} ({result.resources_cached} cached)")
    print(f"  Resources failed:     {result.resources_failed}")
    print(f"  Files rewritten:      {result.files_rewritten}")
    print(f"  Unresolved refs:      {len(result.unresolved)}")
    print(f"  Errors:               {len(result.errors)}")
    print(f"  Duration:             {result.duration_seconds:.1f} seconds")

    if result.summary_file:
        print(f"  Summary:              {result.summary_file}")

    print("=" * 60 + "\n")


async def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the docs archiver.

    Args:
        argv: Argument list (defaults to sys.argv[1:])

    Returns:
        Exit code (0 for success, 1 for error)
    """
    args = parse_arguments(argv)

    # Set up logging
    log_level = logging.DEBUG if args.verbose else (logging.WARNING if args.quiet else logging.INFO)
    setup_logger(level=log_level, log_file=args.log_file)

    if not args.quiet:
        print_banner()

    try:
        domain = validate_domain(args.domain)
        allowed_hosts = list(DEFAULT_ALLOWED_HOSTS)
        allowed_hosts.extend(host for host in args.allow or [] if host not in allowed_hosts)

        if not args.quiet:
            print_info(f"Target: {domain}")
            print_info(f"Output: {args.output}")
            print_info(f"Allowed hosts: {', '.join(allowed_hosts)}")

        archiver = SiteArchiver(
            domain=domain,
            output_dir=args.output,
            max_pages=args.max_pages,
            allowed_hosts=allowed_hosts,
            workers=args.workers,
            batch_size=args.batch_size,
            timeout=args.timeout,
            render_timeout=args.render_timeout,
            render_js=not args.no_js,
            headless=not args.no_headless,
        )

        result = await archiver.archive()

        if not args.quiet:
            print_summary(result)

        print_success(f"Site archived to: {os.path.abspath(args.output)}")

        return 0

    except KeyboardInterrupt:
        print_error("\nArchive interrupted by user")
        return 1
    except ValueError as e:
        print_error(f"Invalid input: {e}")
        return 1
    except OutputRootError as e:
        print_error(str(e))
        return 1
    except Exception as e:
        print_error(f"Error: {e}")
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1


def run() -> None:
    """Entry point wrapper for running as module."""
    sys.exit(asyncio.run(main()))


if __name__ == '__main__':
    run()
