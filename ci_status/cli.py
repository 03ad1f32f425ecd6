# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""
CLI wrapper for ci_status.

Commands map one-to-one onto CIStatusService operations; everything that decides
*what* to show lives in `core.py`, `aggregator.py` and `presenter.py`.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

import argparse
import logging
import sys
import webbrowser

import git

from common_github import DEFAULT_API_URL, GitHubAPIClient
from common_github.api.commit_status_cached import DEFAULT_TTL_S
from common_github.commit_status_types import StatusReport
from common_github.exceptions import GitHubAPIError

from . import presenter
from .core import CIStatusService
from .errors import CIStatusError

logger = logging.getLogger(__name__)


def _prompt_choice(labels: List[str]) -> Optional[str]:
    """Numbered prompt on stdin; empty input or EOF cancels."""
    for i, label in enumerate(labels, start=1):
        print(f"{i:>3}) {label}")
    while True:
        try:
            answer = input("Open which status? [1-%d, empty to cancel] " % len(labels)).strip()
        except EOFError:
            return None
        if not answer:
            return None
        if answer.isdigit() and 1 <= int(answer) <= len(labels):
            return labels[int(answer) - 1]
        print(f"Not a choice: {answer}")


def _print_report(svc: CIStatusService, ref: str, report: Optional[StatusReport], *, stale: bool = False) -> None:
    if report is None:
        print(f"{ref}: no CI status available")
        return
    state = svc.summarize(report)
    note = " (cached; rebase in progress)" if stale else ""
    print(f"{ref}: {state.detail}{note}")
    for line in presenter.format_report_lines(report):
        print(f"  {line}")


def _print_stats(api: GitHubAPIClient) -> None:
    rest = api.get_rest_call_stats()
    cache = api.get_cache_stats()
    print(f"REST calls: {rest['total']} (ok={rest['success_total']}, errors={rest['error_total']}, {rest['time_total_s']:.2f}s)")
    for label, n in sorted(rest["by_label"].items()):
        print(f"  {label}: {n}")
    print(f"Cache: hits={cache['hits_total']} misses={cache['misses_total']}")
    for name, n in sorted(cache["suppressed"].items()):
        print(f"  suppressed {name}: {n}")
    rl = rest.get("core_rate_limit")
    if rl:
        print(f"Rate limit: {rl['remaining']}/{rl['limit']} remaining (resets {rl['reset_local']})")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ci-status",
        description="Show the GitHub CI status of the current branch (or any ref).",
        epilog="Examples:\n"
               "  %(prog)s status                 # current branch, as pushed\n"
               "  %(prog)s status v1.2.0          # a tag (resolved to its commit)\n"
               "  %(prog)s refresh --force        # refetch even during a rebase\n"
               "  %(prog)s open --browser         # open a status page",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-C", dest="repo_path", default=".", help="Run as if started in PATH (default: .)")
    parser.add_argument("--token", default=None, help="GitHub token (default: ~/.config/github-token, then gh's hosts.yml)")
    parser.add_argument("--ttl", type=int, default=DEFAULT_TTL_S, help=f"Seconds a cached status stays fresh (default: {DEFAULT_TTL_S})")
    parser.add_argument("--offline", action="store_true", help="Never touch the network; show cached statuses only.")
    parser.add_argument("--api-url", default=DEFAULT_API_URL, help=f"GitHub REST root (default: {DEFAULT_API_URL})")
    parser.add_argument("--remote", default=None, help="Remote naming the GitHub repo (default: the push remote, then origin)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")
    parser.add_argument("--stats", action="store_true", help="Print REST call and cache statistics at exit.")

    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    p = sub.add_parser("status", help="Summary and individual statuses of REF (default: current branch).")
    p.add_argument("ref", nargs="?", default=None)

    p = sub.add_parser("refresh", help="Drop cached statuses and fetch REF again.")
    p.add_argument("ref", nargs="?", default=None)
    p.add_argument("--force", action="store_true", help="Fetch even in --offline mode or during a rebase.")

    p = sub.add_parser("open", help="Print (or open) the URL of a status of REF.")
    p.add_argument("ref", nargs="?", default=None, help="A ref, or a URL to pass through.")
    p.add_argument("--browser", action="store_true", help="Open the URL in a web browser.")

    sub.add_parser("last-built", help="Most recent commit not marked [ci skip] / [skip ci].")
    sub.add_parser("enable", help="Turn CI status on for this repository.")
    sub.add_parser("disable", help="Turn CI status off for this repository.")
    return parser


def _run(args: argparse.Namespace) -> int:
    api = GitHubAPIClient(
        token=args.token,
        base_url=args.api_url,
        cache_only_mode=bool(args.offline),
        debug_rest=bool(args.verbose),
    )
    try:
        return _run_command(args, api)
    finally:
        if args.stats:
            _print_stats(api)


def _run_command(args: argparse.Namespace, api: GitHubAPIClient) -> int:
    svc = CIStatusService.from_repo(
        args.repo_path,
        api=api,
        remote=args.remote,
        ttl_s=args.ttl,
        verbose=bool(args.verbose),
    )

    if args.command == "enable":
        svc.set_enabled(True)
        print("CI status enabled")
        return 0
    if args.command == "disable":
        svc.set_enabled(False)
        print("CI status disabled")
        return 0
    if args.command == "last-built":
        sha = svc.most_recent_non_skip_commit()
        if not sha:
            logger.error("Every commit is marked to skip CI")
            return 1
        print(sha)
        return 0

    if not svc.is_enabled():
        logger.info("CI status is disabled for this repository (ci-status enable to turn it on)")
        return 0

    if args.command == "open":
        if args.ref and presenter.is_url(args.ref):
            url: Optional[str] = args.ref
        else:
            url = svc.navigate(svc.select_ref(args.ref), _prompt_choice)
        if url is None:
            return 0
        print(url)
        if args.browser:
            webbrowser.open(url)
        return 0

    ref = svc.select_ref(args.ref)
    if args.command == "refresh":
        report = svc.refresh(ref, force_even_if_suppressed=bool(args.force))
    else:
        report = svc.get_status(ref)
    stale = False
    if report is None and svc.git.is_rebase_in_progress():
        report = svc.peek_status(ref)
        stale = report is not None
    _print_report(svc, ref, report, stale=stale)
    return 0


def _cli(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO, format="%(message)s")
    if not args.command:
        args.command = "status"
        args.ref = None

    try:
        return _run(args)
    except (git.InvalidGitRepositoryError, git.NoSuchPathError) as e:
        logger.error("Not a git repository: %s", e)
        return 1
    except (CIStatusError, GitHubAPIError) as e:
        logger.error("%s", e)
        return 1


def main() -> None:
    """Console-script entry point."""
    sys.exit(_cli())
