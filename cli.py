#!/usr/bin/env python3
"""
ProNetAnalyzer CLI - Single-page content and network-call discovery
"""

import asyncio
import json
import sys

from colorama import init, Fore, Style
init(autoreset=True)

from pronet.analyzers.classifier import CONTENT_MODE, MODES, available_modes
from pronet.core.config import get_default_config
from pronet.core.errors import ProNetError
from pronet.core.logger import logger, set_verbose, set_silent
from pronet.output.json_exporter import JSONExporter
from pronet.scan_engine import ScanEngine


MODE_DESCRIPTIONS = {
    'posts': 'Post/article links from feeds, markup and structured data',
    'post': 'POST call sites in page scripts',
    'fetch': 'fetch() call sites',
    'xhr': 'XMLHttpRequest call sites',
    'graphql': 'GraphQL endpoints and operations (static + live)',
    'ws': 'WebSocket endpoints (static + live)',
    'scripts': 'External script loads',
    'sitemap': 'sitemap.xml entries',
    'robots': 'robots.txt paths',
    'hidden': 'API-like endpoints, including beautified and encoded literals',
    'all-endpoints': 'Every static call site',
    'all': 'Static call sites, script loads and special files',
    'full': 'Everything, including live capture',
}


def print_banner():
    banner = f"""
{Fore.CYAN}╔═══════════════════════════════════════════════╗
║   {Fore.WHITE}ProNetAnalyzer{Fore.CYAN}                              ║
║   {Fore.GREEN}Single-page network and content discovery{Fore.CYAN}   ║
╚═══════════════════════════════════════════════╝{Style.RESET_ALL}
"""
    print(banner, flush=True)


def show_help():
    print(f"""
{Fore.CYAN}Usage:{Style.RESET_ALL}
    python cli.py <command> [url] [options]

{Fore.CYAN}Commands:{Style.RESET_ALL}
    {Fore.GREEN}scan{Style.RESET_ALL}        Analyze one page
    {Fore.GREEN}modes{Style.RESET_ALL}       List supported modes

{Fore.CYAN}Options:{Style.RESET_ALL}
    -m, --mode <mode>     Analysis mode (default: {CONTENT_MODE})
    -p, --proxy <proxy>   Proxy as host:port or full URL
    -o, --output <file>   Write the JSON report to a file
    --no-dynamic          Skip headless browser capture
    -v, --verbose         Verbose output
    -s, --silent          Silent mode (JSON only)

{Fore.CYAN}Examples:{Style.RESET_ALL}
    python cli.py scan example.com
    python cli.py scan https://example.com -m hidden -o hidden.json
    python cli.py scan example.com -m full -p 127.0.0.1:8080
""")


def parse_args(args):
    options = {
        'mode': CONTENT_MODE,
        'proxy': '',
        'output': None,
        'dynamic': True,
        'verbose': False,
        'silent': False,
    }

    positional = []
    i = 0
    while i < len(args):
        arg = args[i]
        if arg in ['-m', '--mode']:
            if i + 1 < len(args):
                options['mode'] = args[i + 1]
                i += 2
                continue
        elif arg in ['-p', '--proxy']:
            if i + 1 < len(args):
                options['proxy'] = args[i + 1]
                i += 2
                continue
        elif arg in ['-o', '--output']:
            if i + 1 < len(args):
                options['output'] = args[i + 1]
                i += 2
                continue
        elif arg == '--no-dynamic':
            options['dynamic'] = False
        elif arg in ['-v', '--verbose']:
            options['verbose'] = True
        elif arg in ['-s', '--silent']:
            options['silent'] = True
        elif arg in ['-h', '--help']:
            return 'help', [], options
        elif not arg.startswith('-'):
            positional.append(arg)
        i += 1

    command = positional[0] if positional else None
    targets = positional[1:] if len(positional) > 1 else []

    return command, targets, options


def show_modes():
    print(f"\n{Fore.CYAN}Supported modes:{Style.RESET_ALL}")
    for mode in available_modes():
        flags = []
        if mode in MODES:
            if MODES[mode].dynamic:
                flags.append('browser')
            if MODES[mode].special_files:
                flags.append('special files')
        suffix = f" {Fore.YELLOW}[{', '.join(flags)}]{Style.RESET_ALL}" if flags else ''
        print(f"  {Fore.GREEN}{mode:<14}{Style.RESET_ALL}{MODE_DESCRIPTIONS.get(mode, '')}{suffix}")
    print()


def print_result(result):
    if result.is_content:
        print(f"\n{Fore.GREEN}[+] {len(result.items)} content candidates{Style.RESET_ALL}")
        for item in result.items:
            print(f"  {Fore.YELLOW}{item.score:.2f}{Style.RESET_ALL} [{item.signal.value}] {item.url}")
            if item.title:
                print(f"       {Fore.WHITE}{item.title[:100]}{Style.RESET_ALL}")
        return

    print(f"\n{Fore.GREEN}[+] {len(result.items)} network-call candidates{Style.RESET_ALL}")
    for item in result.items:
        color = Fore.RED if item.score >= 0.9 else Fore.YELLOW if item.score >= 0.7 else Fore.WHITE
        print(f"  {color}{item.score:.2f}{Style.RESET_ALL} {item.method:<8} [{item.category.value}] {item.url}")

    if result.page_info is not None:
        info = result.page_info
        if info.error:
            print(f"\n  {Fore.YELLOW}[!] Live capture failed: {info.error}{Style.RESET_ALL}")
        else:
            print(f"\n  {Fore.CYAN}Page: {info.title!r}, loaded in {info.load_time_ms}ms, "
                  f"{info.captured} live events{Style.RESET_ALL}")


def run_scan(target, options):
    if options['verbose']:
        set_verbose(True)
    elif options['silent']:
        set_silent(True)

    if not options['silent']:
        print_banner()

    config = get_default_config()
    config.dynamic.enabled = config.dynamic.enabled and options['dynamic']
    config.output_file = options['output']

    if not options['silent']:
        print(f"  Target: {target}")
        print(f"  Mode: {options['mode']}")
        if options['proxy']:
            print(f"  Proxy: {options['proxy']}")
        print()

    try:
        engine = ScanEngine(config, silent_mode=options['silent'])
        result = asyncio.run(engine.run(target, options['mode'], options['proxy']))

        if options['silent']:
            print(json.dumps(result.to_dict(), indent=2))
        else:
            print_result(result)

        if config.output_file:
            JSONExporter().export(result, config.output_file)

        return result

    except KeyboardInterrupt:
        print(f"\n{Fore.YELLOW}[!] Scan interrupted{Style.RESET_ALL}")
        sys.exit(1)
    except ProNetError as e:
        print(f"{Fore.RED}[-] {e.error_type}: {e.message}{Style.RESET_ALL}")
        if e.details:
            print(f"    {e.details}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Scan failed: {e}")
        sys.exit(1)


def main():
    args = sys.argv[1:]

    if not args:
        print_banner()
        show_help()
        return

    command, targets, options = parse_args(args)

    if command == 'help':
        print_banner()
        show_help()
    elif command == 'scan':
        if not targets:
            print(f"{Fore.RED}[-] Error: No URL specified{Style.RESET_ALL}")
            print(f"Usage: python cli.py scan <url> [-m mode]")
            sys.exit(1)
        run_scan(targets[0], options)
    elif command == 'modes':
        show_modes()
    else:
        print(f"{Fore.RED}[-] Unknown command: {command}{Style.RESET_ALL}")
        show_help()
        sys.exit(1)


if __name__ == '__main__':
    main()
