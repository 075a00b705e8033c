from __future__ import annotations

import argparse
import sys

from . import config
from .cli_shared import GlobalOpts, _print_json


def cmd_config_view(args: argparse.Namespace, g: GlobalOpts) -> int:
    del args
    doc = config.redacted_view(g)
    doc["path"] = str(config.config_file(g))
    _print_json(doc)
    return 0


def cmd_config_use_context(args: argparse.Namespace, g: GlobalOpts) -> int:
    path = config.use_context(g, str(args.name or "").strip())
    sys.stdout.write(f"Switched to context {args.name!r} in {path}\n")
    return 0


def cmd_config_new_context(args: argparse.Namespace, g: GlobalOpts) -> int:
    path = config.new_context(
        g,
        str(args.name or ""),
        cluster_target=args.cluster_target,
        sso_target=args.sso_target,
        mgmt_api_target=args.mgmt_api_target,
        activate=not args.no_activate,
    )
    sys.stdout.write(f"Created context {args.name!r} in {path}\n")
    return 0
