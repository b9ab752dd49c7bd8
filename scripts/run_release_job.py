#!/usr/bin/env python3
"""Run a release job over a working directory of partitioned record files."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT / "src"))

from releasehub import (  # noqa: E402
    FileType,
    JobContext,
    JobProfileLoader,
    JobType,
    PartitionedJsonStore,
    ReleaseHubError,
    build_default_job_registry,
)
from releasehub.profiles import parse_override_value  # noqa: E402

logger = logging.getLogger("releasehub.cli")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a release ETL job")
    parser.add_argument(
        "--job",
        default=JobType.JOIN.value,
        choices=build_default_job_registry().available(),
        help="Registered job name.",
    )
    parser.add_argument("--working-dir", required=True, help="Directory holding input and output file types.")
    parser.add_argument(
        "--project",
        action="append",
        default=[],
        dest="projects",
        help=(
            "Project to process. Repeat for multiple projects. Defaults to every project "
            "partition found under the primary ssm input."
        ),
    )
    parser.add_argument("--release-name", default="", help="Release label recorded in the run summary.")
    parser.add_argument("--profile", default="default", help="Profile name or path to a profile JSON file.")
    parser.add_argument("--profiles-dir", default=None, help="Directory containing profile JSON files.")
    parser.add_argument(
        "--set",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Override profile values using dotted keys. Example: --set settings.compressed=true",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Runner log level.",
    )
    return parser.parse_args(argv)


def parse_overrides(entries: list[str]) -> dict[str, object]:
    overrides: dict[str, object] = {}
    for entry in entries:
        if "=" not in entry:
            raise ValueError(f"Override must use KEY=VALUE format: {entry}")
        key, raw_value = entry.split("=", 1)
        overrides[key.strip()] = parse_override_value(raw_value.strip())
    return overrides


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )

    loader = JobProfileLoader(args.profiles_dir)
    profile = loader.load(args.profile, overrides=parse_overrides(args.set))

    store = PartitionedJsonStore(args.working_dir)
    projects = args.projects or store.project_names(FileType.SSM_P_MASKED_SURROGATE_KEY)
    if not projects:
        logger.warning("No projects given or found under %s", store.location(FileType.SSM_P_MASKED_SURROGATE_KEY))

    job = build_default_job_registry().create(args.job)
    job_context = JobContext(
        job_type=job.job_type,
        working_dir=args.working_dir,
        project_names=projects,
        release_name=args.release_name,
        settings=profile.settings,
        store=store,
    )
    logger.info("Using profile %s: %s", profile.name, profile.settings.to_mapping())

    try:
        report = job.run(job_context)
    except ReleaseHubError:
        print(json.dumps({**job_context.describe(), **job.report.to_dict()}, indent=2))
        return 1

    print(json.dumps({**job_context.describe(), **report.to_dict()}, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
