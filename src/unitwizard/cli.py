from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from unitwizard import __version__
from unitwizard.audit.eventlog import EventLog
from unitwizard.config import Settings, load_settings
from unitwizard.core.models import WorkloadInfo
from unitwizard.core.proposal import build_controller_proposal, build_proposal
from unitwizard.gitops.repo import RepoParseError, parse_repo
from unitwizard.k8s.argocd import ArgoCDClient
from unitwizard.k8s.cluster import KubectlCluster
from unitwizard.store.cub import CubStore, CubWorkerLauncher
from unitwizard.workflow.machine import ImportWizard
from unitwizard.workflow.runner import Runner
from unitwizard.workflow.state import CleanupOption, Step

CLEANUP_CHOICES = {
    "disable-sync": CleanupOption.DISABLE_SYNC,
    "delete": CleanupOption.DELETE_APP,
    "keep": CleanupOption.KEEP_AS_IS,
}


def _print_json(payload: dict) -> None:
    print(json.dumps(payload, indent=2, sort_keys=True))


def _write_latest(out_dir: Path, name: str, payload: dict) -> Path:
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / name
    path.write_text(json.dumps(payload, indent=2, sort_keys=True) + "\n", encoding="utf-8")
    return path


def _discover(cluster: KubectlCluster, namespaces: list[str] | None) -> tuple[list[WorkloadInfo], str | None]:
    targets = namespaces
    if not targets:
        targets, err = cluster.list_namespaces()
        if err:
            return [], err
    workloads: list[WorkloadInfo] = []
    for ns in targets:
        items, err = cluster.list_workloads(ns)
        if err:
            return [], f"namespace {ns}: {err}"
        workloads.extend(items)
    return workloads, None


def cmd_suggest(args: argparse.Namespace) -> int:
    settings = load_settings()
    cluster = KubectlCluster(settings.kubectl, timeout_s=settings.cmd_timeout_s)
    workloads, err = _discover(cluster, args.namespace)
    if err:
        print(f"ERROR: {err}", file=sys.stderr)
        return 1

    if args.controller:
        proposal = build_controller_proposal(workloads, args.space or "")
    else:
        declared = None
        if args.repo:
            try:
                declared = parse_repo(args.repo).apps
            except RepoParseError as e:
                print(f"ERROR: {e}", file=sys.stderr)
                return 2
        proposal = build_proposal(workloads, declared, args.space or "")

    payload = proposal.to_dict()
    if args.out:
        _write_latest(Path(args.out), "proposal_latest.json", payload)
    _print_json(payload)
    return 0


def cmd_parse_repo(args: argparse.Namespace) -> int:
    try:
        structure = parse_repo(args.path)
    except RepoParseError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2
    _print_json(structure.to_dict())
    return 0


def _build_wizard(args: argparse.Namespace, settings: Settings) -> ImportWizard:
    return ImportWizard(
        KubectlCluster(settings.kubectl, timeout_s=settings.cmd_timeout_s),
        CubStore(settings.cub, timeout_s=settings.cmd_timeout_s),
        ArgoCDClient(settings.kubectl, timeout_s=settings.cmd_timeout_s),
        CubWorkerLauncher(settings.cub),
        app_space_hint=args.space or "",
        event_log=None if args.no_log else EventLog(settings.event_log_path),
        snapshot_path=settings.snapshot_path,
        snapshot_max_age_s=settings.snapshot_max_age_s,
        debug_dir=settings.test_debug_dir,
        sync_wait_s=settings.sync_wait_s,
        sync_poll_s=settings.sync_poll_s,
        target_wait_s=settings.target_wait_s,
        target_poll_s=settings.target_poll_s,
    )


def _drive_import(args: argparse.Namespace, runner: Runner) -> int:
    wizard = runner.wizard
    timeout = args.timeout

    runner.start()
    runner.run_until(lambda w: not w.namespaces.loading, timeout)
    if wizard.error or wizard.namespaces.loading:
        print(f"ERROR: {wizard.error or 'timed out listing namespaces'}", file=sys.stderr)
        return 1

    available = {item.name: item for item in wizard.namespaces.items}
    if args.namespace:
        missing = [ns for ns in args.namespace if ns not in available]
        if missing:
            print(f"ERROR: namespace(s) not found: {', '.join(missing)}", file=sys.stderr)
            return 2
    for item in wizard.namespaces.items:
        item.selected = not args.namespace or item.name in args.namespace
    if not wizard.namespaces.items:
        print("ERROR: no namespaces with workloads", file=sys.stderr)
        return 1

    runner.press("enter")
    runner.run_until(lambda w: w.step == Step.REVIEW_WORKLOADS and not w.workloads.loading, timeout)
    if wizard.error:
        print(f"ERROR: {wizard.error}", file=sys.stderr)
        return 1
    if not wizard.workloads.selected():
        print("ERROR: no workloads found", file=sys.stderr)
        return 1

    runner.press("enter")
    runner.run_until(lambda w: w.proposal is not None or bool(w.error), timeout)
    if wizard.proposal is None:
        print(f"ERROR: {wizard.error or 'timed out building proposal'}", file=sys.stderr)
        return 1
    if args.dry_run:
        _print_json(wizard.proposal.to_dict())
        wizard.quit()
        return 0

    runner.press("enter")
    runner.run_until(lambda w: w.apply.complete or bool(w.apply.error), timeout)
    if wizard.apply.error:
        _print_json(wizard.summary())
        return 1

    if wizard.cleanup.apps:
        if args.cleanup:
            runner.press(*(["down"] * int(CLEANUP_CHOICES[args.cleanup])), "enter")
            runner.run_until(lambda w: w.cleanup.done or bool(w.cleanup.error), timeout)
        else:
            runner.press("s")
            runner.drain()

    want_worker = args.worker or args.test
    if want_worker and (not wizard.cleanup.apps or wizard.cleanup.done):
        runner.press("w")
        runner.run_until(lambda w: w.worker_started or bool(w.error), timeout)
        if wizard.worker_started:
            runner.run_until(lambda w: not w.targets.running, timeout)
            if args.test:
                runner.press("t")
                runner.run_until(lambda w: w.test.complete, timeout)

    _print_json(wizard.summary())
    wizard.quit()
    ok = wizard.apply.complete and wizard.apply.failed == 0 and not wizard.cleanup.error
    if want_worker:
        ok = ok and wizard.worker_started and not wizard.targets.error and wizard.targets.failed == 0
    if args.test:
        ok = ok and wizard.test.passed
    return 0 if ok else 1


def cmd_import(args: argparse.Namespace) -> int:
    settings = load_settings()
    runner = Runner(_build_wizard(args, settings))
    try:
        return _drive_import(args, runner)
    finally:
        runner.shutdown()


def cmd_config(args: argparse.Namespace) -> int:
    _print_json(load_settings().to_dict())
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="unitwizard")
    parser.add_argument("--version", action="version", version=f"unitwizard {__version__}")

    sub = parser.add_subparsers(dest="command", required=True)

    suggest = sub.add_parser("suggest", help="Propose Units for the workloads in a cluster")
    suggest.add_argument("-n", "--namespace", action="append", help="Namespace (repeatable; default: all)")
    suggest.add_argument("--space", help="App Space name (default: inferred)")
    suggest.add_argument("--repo", help="Path to a GitOps repository to align against")
    suggest.add_argument(
        "--controller",
        action="store_true",
        help="Group Flux/Argo-managed workloads by their controlling object",
    )
    suggest.add_argument("--out", help="Also write proposal_latest.json into this directory")
    suggest.set_defaults(func=cmd_suggest)

    repo = sub.add_parser("parse-repo", help="Print the app layout of a GitOps repository")
    repo.add_argument("path", help="Repository root")
    repo.set_defaults(func=cmd_parse_repo)

    imp = sub.add_parser("import", help="Import workloads as Units (non-interactive)")
    imp.add_argument("-n", "--namespace", action="append", help="Namespace (repeatable; default: all)")
    imp.add_argument("--space", help="App Space name (default: inferred)")
    imp.add_argument("--dry-run", action="store_true", help="Print the proposal and stop")
    imp.add_argument(
        "--cleanup",
        choices=sorted(CLEANUP_CHOICES),
        help="What to do with Argo CD Applications owning imported workloads (default: skip)",
    )
    imp.add_argument("--test", action="store_true", help="Start a worker and run the end-to-end test")
    imp.add_argument(
        "--worker",
        action="store_true",
        help="Start a worker and point every imported Unit at its Kubernetes target",
    )
    imp.add_argument("--timeout", type=float, default=600.0, help="Seconds to wait for each stage")
    imp.add_argument("--no-log", action="store_true", help="Do not write the event log")
    imp.set_defaults(func=cmd_import)

    config = sub.add_parser("config", help="Show effective settings")
    config.set_defaults(func=cmd_config)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
