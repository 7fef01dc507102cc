# Copyright 2024 Shane Loretz.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

import argparse
import sys

from .build_log import BuildLogs
from .config import load_settings
from .dockerfile import BaseImageInspector
from .docker import Docker
from .errors import BrewError
from .executor import BuildExecutor
from .git import Git
from .manifest import ManifestLoader
from .mirror import SourceTreeResolver
from .plan import gather, library_requests, resolve_sources
from .scheduler import Scheduler


EPILOG = """\
examples:
  brewlot --all
  brewlot debian ubuntu:12.04
  brewlot ./path/to/manifest:variant
  brewlot https://example.com/library/debian:bookworm

Builds the images listed in manifest files from the git repositories and
commits the manifests name, building base images before the images that
use them.
"""


def parse_arguments(argv=None):
    parser = argparse.ArgumentParser(
        prog="brewlot",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--all", action="store_true", help="build every manifest in the library")
    parser.add_argument("--no-clone", action="store_true", help="don't clone or fetch git repositories")
    parser.add_argument("--no-build", action="store_true", help="don't build, just show what would be built")
    parser.add_argument("--config", default=None, help="YAML settings file (default: brewlot.yaml if present)")
    parser.add_argument("--library", default=None, help="where to find manifest files")
    parser.add_argument("--src", default=None, help="where to keep cloned git repositories")
    parser.add_argument("--logs", default=None, help="where to store build logs")
    parser.add_argument(
        "--namespaces",
        default=None,
        help="space separated namespaces to tag images in after building",
    )
    parser.add_argument("--docker", default=None, help="docker binary to use")
    parser.add_argument(
        "--default-variant",
        default=None,
        help="tag assumed for a FROM line without one",
    )
    parser.add_argument("--debug", action="store_true", help="echo command output while building")
    parser.add_argument("repos", nargs="*", metavar="repo[:tag]")

    return parser, parser.parse_args(argv)


def main(argv=None):
    parser, args = parse_arguments(argv)

    try:
        settings = load_settings(args.config)
    except BrewError as e:
        sys.stderr.write(f"error: {e}\n")
        return 1
    settings = settings.override(
        library=args.library,
        src=args.src,
        logs=args.logs,
        namespaces=args.namespaces,
        docker=args.docker,
        default_variant=args.default_variant,
    )

    requests = []
    if args.all:
        try:
            requests.extend(library_requests(settings.library))
        except BrewError as e:
            sys.stderr.write(f"error: {e}\n")
            return 1
    requests.extend(args.repos)
    if not requests:
        sys.stderr.write("error: no repos specified\n")
        parser.print_usage(sys.stderr)
        return 1

    logs = BuildLogs(settings.logs, echo=args.debug)
    git = Git(fetch_attempts=settings.fetch_attempts)

    plan = gather(requests, settings.library, ManifestLoader(), logs)
    resolve_sources(plan, SourceTreeResolver(settings.src, git, allow_network=not args.no_clone))

    executor = BuildExecutor(
        git,
        Docker(settings.docker),
        namespaces=settings.namespaces,
        logs=logs,
        dry_run=args.no_build,
    )
    scheduler = Scheduler(BaseImageInspector(git, settings.default_variant), executor)
    report = scheduler.run(plan)

    if args.debug:
        print("-----------------")
        print("- Build order")
        for tag in report.built_order:
            print(f"  {tag}")
    for tag, record in report.final.items():
        print(f"{tag}: {record.status.value}")

    return 1 if report.failed else 0
