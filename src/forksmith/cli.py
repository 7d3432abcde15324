"""
Command-line interface for forksmith.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from . import docker, envfile, manifests, schemas, sync, updates, workspaces
from .config import ForkConfig, load_config
from .errors import ForksmithError
from .logging_utils import configure_logging
from .rewrite import all_rules, ordered_rules, run_codemods
from .runner import RunSummary, report_failures
from .version import __version__

DRY_RUN_NOTICE = "Dry run. Re-run without --dry-run to apply changes."


def _positive_int(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected an integer, got {raw!r}") from exc
    if value < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {value}")
    return value


def _add_run_output(cmd: argparse.ArgumentParser) -> None:
    output = cmd.add_mutually_exclusive_group()
    output.add_argument("--dry-run", action="store_true", help="List the commands without running them")
    output.add_argument("--json", action="store_true", help="Print a JSON report")


def build_cli_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=argparse.SUPPRESS,
        help="Log debug details",
    )

    cli = argparse.ArgumentParser(prog="forksmith", description="Fork maintenance toolkit", parents=[common])
    cli.add_argument(
        "--version",
        action="version",
        version=f"forksmith {__version__} (Python {sys.version.split()[0]})",
    )
    sub = cli.add_subparsers(dest="command", required=True)

    def register(name: str, **kwargs):
        return sub.add_parser(name, parents=[common], **kwargs)

    codemods_cmd = register("codemods", help="List or apply the fork's codemods")
    codemods_sub = codemods_cmd.add_subparsers(dest="codemods_command", required=True)
    list_cmd = codemods_sub.add_parser("list", parents=[common], help="List codemods in execution order")
    list_cmd.add_argument("--all", action="store_true", help="Include codemods that only run on request")
    run_cmd = codemods_sub.add_parser("run", parents=[common], help="Apply codemods to the working tree")
    run_cmd.add_argument("paths", nargs="*", type=Path, help="Files or directories to rewrite (default: the whole tree)")
    run_cmd.add_argument("--rule", action="append", dest="rules", help="Only run this codemod (repeatable)")
    run_cmd.add_argument("--glob", action="append", dest="globs", help="Only rewrite files matching this pattern (repeatable)")
    run_cmd.add_argument("--dry-run", action="store_true", help="Show what would change without writing")
    run_cmd.add_argument("--backup", action="store_true", help="Keep a copy of every rewritten file")
    run_cmd.add_argument("--strict", action="store_true", help="Fail on files that cannot be parsed")
    run_cmd.add_argument("--json", action="store_true", help="Print a JSON report")

    env_cmd = register("env", help="Environment file helpers")
    env_sub = env_cmd.add_subparsers(dest="env_command", required=True)
    env_update_cmd = env_sub.add_parser("update", parents=[common], help="Fill placeholders from the environment")
    env_update_cmd.add_argument("output", type=Path, help="Env file to write")
    env_update_cmd.add_argument("inputs", nargs="*", type=Path, help="Env files to read (default: .env* here)")
    env_update_cmd.add_argument("--fallback", help="Value for placeholders missing from the environment")
    env_update_cmd.add_argument("--strict", action="store_true", help="Fail when a placeholder has no value")
    env_update_cmd.add_argument("--dry-run", action="store_true", help="Show the result without writing")
    env_update_cmd.add_argument("--json", action="store_true", help="Print a JSON report")

    deps_cmd = register("deps", help="package.json helpers")
    deps_sub = deps_cmd.add_subparsers(dest="deps_command", required=True)
    ensure_cmd = deps_sub.add_parser("ensure", parents=[common], help="Pin the fork's required dependencies")
    ensure_cmd.add_argument("--requirements", type=Path, help="JSON file mapping manifests to required dependencies")
    deps_sub.add_parser("bump-version", parents=[common], help="Bump the patch version in every manifest")
    check_cmd = deps_sub.add_parser("check-updates", parents=[common], help="List recently published dependency versions")
    check_cmd.add_argument("manifests", nargs="*", type=Path, help="Manifests to read (default: all)")
    check_cmd.add_argument("--days", type=_positive_int, default=3, help="Look-back window in days (default: 3)")
    check_cmd.add_argument("--format", choices=["text", "json"], default="text")
    check_cmd.add_argument("--strict", action="store_true", help="Fail when no dependencies are found")

    install_cmd = register("install-all", help="Run bun install in every package")
    install_cmd.add_argument("--concurrency", type=_positive_int, default=1)
    _add_run_output(install_cmd)

    test_cmd = register("test-all", help="Run bun test in every package")
    test_cmd.add_argument("--jobs", type=_positive_int, help="Packages tested at once (default: BUN_TEST_JOBS or 1)")
    test_cmd.add_argument("--watch", action="store_true", default=None, help="Keep watching for changes")
    test_cmd.add_argument("--json", action="store_true", help="Print a JSON report")

    build_cmd = register("build-all", help="Build every workspace")
    build_cmd.add_argument("--concurrency", type=_positive_int, default=1)
    _add_run_output(build_cmd)

    docker_cmd = register("docker", help="Build and publish the container image")
    docker_sub = docker_cmd.add_subparsers(dest="docker_command", required=True)
    docker_build_cmd = docker_sub.add_parser("build", parents=[common], help="Build the image")
    docker_build_cmd.add_argument("context_arg", nargs="?", type=Path, metavar="context")
    docker_build_cmd.add_argument("--tag", help="Image tag (default: LIBRE_CHAT_DOCKER_TAG or latest)")
    docker_build_cmd.add_argument("--dockerfile", type=Path, help="Dockerfile path (default: Dockerfile)")
    docker_build_cmd.add_argument("--context", type=Path, help="Build context (default: .)")
    docker_build_cmd.add_argument("--build-arg", action="append", dest="build_args", default=[], help="KEY=VALUE (repeatable)")
    docker_push_cmd = docker_sub.add_parser("push", parents=[common], help="Push and verify the image")
    docker_push_cmd.add_argument("--tag", help="Image tag (default: LIBRE_CHAT_DOCKER_TAG or latest)")
    docker_push_cmd.add_argument("--registry", help="Remote registry (default: DOCKER_REMOTE_REGISTRY)")

    sync_cmd = register("sync", help="Merge upstream and reapply fork customizations")
    sync_cmd.add_argument("--dry-run", action="store_true", help="Print the commands without running them")
    sync_cmd.add_argument("--force-push", action="store_true", help="Force-push the merged main branch")

    return cli


def _finish(summary: RunSummary, label: str, dry_run: bool = False, as_json: bool = False) -> None:
    if dry_run:
        print(DRY_RUN_NOTICE)
        return
    if as_json:
        print(schemas.dump(schemas.run_report(summary)))
    else:
        report_failures(summary, label)
    if summary.exit_code:
        raise SystemExit(summary.exit_code)


def _codemods(args: argparse.Namespace, config: ForkConfig) -> None:
    if args.codemods_command == "list":
        for rule in all_rules():
            if not rule.default and not args.all:
                continue
            suffix = "" if rule.default else " (optional)"
            print(f"{rule.name:<20} {rule.description}{suffix}")
        return

    rules = ordered_rules(args.rules)
    run = run_codemods(
        config,
        rules,
        paths=args.paths or None,
        globs=args.globs,
        write=not args.dry_run,
        backup=args.backup,
        strict=args.strict,
    )
    if args.json:
        print(schemas.dump(schemas.rewrite_report(run, config.root)))
    else:
        verb = "Would update" if args.dry_run else "Updated"
        for result in run.changed:
            print(f"{verb} {result.path} ({', '.join(result.applied)})")
        for result in run.failed:
            print(f"Failed {result.path}: {result.error}", file=sys.stderr)
        print(f"{len(run.changed)} of {len(run.results)} file(s) changed.")
        if args.dry_run:
            print(DRY_RUN_NOTICE)
    if run.exit_code:
        raise SystemExit(run.exit_code)


def _env(args: argparse.Namespace, config: ForkConfig) -> None:
    output = args.output if args.output.is_absolute() else config.root / args.output
    inputs = list(args.inputs) or envfile.detect_env_files(config.root, output, config.backup_suffix)
    result = envfile.update_env(
        output,
        inputs,
        config.env,
        placeholder=config.env_placeholder,
        fallback=args.fallback,
        strict=args.strict,
        dry_run=args.dry_run,
    )
    if args.json:
        print(schemas.dump(schemas.env_report(result)))
        return
    for update in result.updates:
        print(f"{update.key}: {update.old.strip()} -> {update.new}")
    for key in result.missing:
        print(f"{key}: no value available")
    if args.dry_run:
        print(DRY_RUN_NOTICE)
    else:
        print(f"Wrote {result.output} ({len(result.updates)} placeholder(s) filled).")


def _deps(args: argparse.Namespace, config: ForkConfig) -> None:
    if args.deps_command == "ensure":
        requirements = manifests.load_requirements(args.requirements) if args.requirements else None
        changed = [u for u in manifests.ensure_dependencies(config.root, requirements) if u.changed]
        for update in changed:
            print(f"Updated {update.path}")
        if not changed:
            print("All required dependencies are already pinned.")
        return
    if args.deps_command == "bump-version":
        print(manifests.bump_version(config.root))
        return
    paths = list(args.manifests) or manifests.discover_manifests(config.root)
    releases = updates.check_updates(paths, cwd=config.root, days=args.days, strict=args.strict)
    if args.format == "json":
        print(schemas.dump(schemas.release_report(releases, args.days)))
        return
    if not releases:
        print(f"No dependency releases in the last {args.days} day(s).")
    for release in releases:
        print(release.describe())


def _docker(args: argparse.Namespace, config: ForkConfig) -> None:
    if args.docker_command == "build":
        build = docker.build_image(
            config,
            tag=args.tag,
            dockerfile=args.dockerfile,
            context=args.context or args.context_arg,
            build_args=args.build_args,
        )
        print(f"Built {build.image}")
        return
    push = docker.push_image(config, tag=args.tag, registry=args.registry)
    print(f"Pushed {push.remote_image}{' (signed)' if push.signed else ''}")


def _dispatch(args: argparse.Namespace, config: ForkConfig) -> None:
    if args.command == "codemods":
        _codemods(args, config)
        return
    if args.command == "env":
        _env(args, config)
        return
    if args.command == "deps":
        _deps(args, config)
        return
    if args.command == "install-all":
        summary = workspaces.install_all(config, concurrency=args.concurrency, dry_run=args.dry_run)
        _finish(summary, "installs", dry_run=args.dry_run, as_json=args.json)
        return
    if args.command == "test-all":
        jobs = args.jobs or config.test_jobs
        watch = config.test_watch if args.watch is None else args.watch
        _finish(workspaces.test_all(config, jobs=jobs, watch=watch), "test runs", as_json=args.json)
        return
    if args.command == "build-all":
        summary = workspaces.build_all(config, concurrency=args.concurrency, dry_run=args.dry_run)
        _finish(summary, "builds", dry_run=args.dry_run, as_json=args.json)
        return
    if args.command == "docker":
        _docker(args, config)
        return
    if args.command == "sync":
        result = sync.sync_upstream(config, dry_run=args.dry_run, force_push=args.force_push)
        if result.dry_run:
            print(DRY_RUN_NOTICE)
        else:
            print("Upstream merged and fork customizations reapplied.")
        return


def main(argv: list[str] | None = None) -> None:
    cli = build_cli_parser()
    args = cli.parse_args(argv)
    try:
        config = load_config()
        configure_logging(verbose=getattr(args, "verbose", False), debug=config.debug)
        _dispatch(args, config)
    except ForksmithError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc


if __name__ == "__main__":  # pragma: no cover
    main()
