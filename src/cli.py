#!/usr/bin/env python3
"""
CLI for the MetaKube Project reconciler.

Reads Project, ProviderConfig and Secret manifests from YAML/JSON files and
reconciles the Projects against MetaKube, either once or continuously.
"""

import asyncio
import json
import logging
import signal
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import aiohttp
import click
import yaml
from tabulate import tabulate

from config import Config, get_config
from errors import ConfigResolutionError
from events import EventRecorder, ReconcileEvent
from manifests import load_all, load_documents
from plugins.metakube import ProjectConnector, ProviderConfigResolver
from reconciler import ManagedReconciler, ReconcileResult
from resources import PROJECT_KIND, ProjectResource, get_external_name
from validation import validate_manifest

logger = logging.getLogger(__name__)

# (filename, project) pairs, in file order
LoadedProjects = List[Tuple[str, ProjectResource]]
EventSink = Callable[[ReconcileEvent], None]


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _read(filename: str) -> List[Dict[str, Any]]:
    try:
        return load_documents(filename)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise click.ClickException(f"Cannot read {filename}: {e}")


def _load_projects(filenames: Sequence[str]) -> Tuple[LoadedProjects, List[Dict]]:
    """Load and validate Projects; also return every document that was read."""
    projects: LoadedProjects = []
    documents: List[Dict[str, Any]] = []
    seen = set()

    for filename in filenames:
        for doc in _read(filename):
            documents.append(doc)
            if not isinstance(doc, dict) or doc.get("kind") != PROJECT_KIND:
                continue

            is_valid, error = validate_manifest(doc)
            if not is_valid:
                raise click.ClickException(f"{filename}: invalid Project: {error}")

            project = ProjectResource.from_manifest(doc)
            if project.name in seen:
                raise click.ClickException(
                    f"{filename}: duplicate Project {project.name}"
                )
            seen.add(project.name)
            projects.append((filename, project))

    return projects, documents


def _build_resolver(
    cfg: Config, documents: List[Dict[str, Any]], provider_configs: Sequence[str]
) -> ProviderConfigResolver:
    paths = list(cfg.metakube.provider_config_paths) + list(provider_configs)
    try:
        extra = load_all(paths)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise click.ClickException(f"Cannot read provider configuration: {e}")

    try:
        return ProviderConfigResolver.from_documents(
            [d for d in documents + extra if isinstance(d, dict)],
            default_endpoint=cfg.metakube.endpoint,
        )
    except ConfigResolutionError as e:
        raise click.ClickException(str(e))


def _new_session(cfg: Config) -> aiohttp.ClientSession:
    connector = aiohttp.TCPConnector(limit=cfg.metakube.max_connections)
    return aiohttp.ClientSession(connector=connector)


def _new_reconciler(
    cfg: Config,
    resolver: ProviderConfigResolver,
    session: aiohttp.ClientSession,
    on_event: Optional[EventSink] = None,
) -> ManagedReconciler:
    connector = ProjectConnector(
        resolver, session, request_timeout=cfg.metakube.request_timeout
    )
    return ManagedReconciler(
        connector, config=cfg.controller, recorder=EventRecorder(sink=on_event)
    )


async def reconcile_once(
    cfg: Config,
    resolver: ProviderConfigResolver,
    projects: List[ProjectResource],
    on_event: Optional[EventSink] = None,
) -> List[ReconcileResult]:
    """Run one pass for every project, sharing a single HTTP session."""
    async with _new_session(cfg) as session:
        reconciler = _new_reconciler(cfg, resolver, session, on_event)
        return await reconciler.reconcile_many(projects)


async def run_forever(
    cfg: Config,
    resolver: ProviderConfigResolver,
    projects: List[ProjectResource],
    on_pass: Callable[[List[ProjectResource], List[ReconcileResult]], None],
    stop_event: Optional[asyncio.Event] = None,
    on_event: Optional[EventSink] = None,
) -> None:
    """
    Reconcile projects repeatedly until stopped or until all are finalized.

    Each project is reconciled again once its ``requeue_after`` has elapsed.
    """
    stop_event = stop_event or asyncio.Event()
    loop = asyncio.get_running_loop()

    def signal_handler():
        logger.info("Received shutdown signal")
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, signal_handler)
        except (NotImplementedError, RuntimeError):
            # Not available outside the main thread or on some platforms
            pass

    pending = list(projects)
    next_due: Dict[str, float] = {p.name: 0.0 for p in pending}

    async with _new_session(cfg) as session:
        reconciler = _new_reconciler(cfg, resolver, session, on_event)

        while pending and not stop_event.is_set():
            now = loop.time()
            due = [p for p in pending if next_due[p.name] <= now]

            if due:
                results = await reconciler.reconcile_many(due)
                for project, result in zip(due, results):
                    if result.finalized:
                        pending.remove(project)
                        logger.info(f"Project {project.name} finalized")
                    else:
                        delay = result.requeue_after or cfg.controller.reconcile_interval
                        next_due[project.name] = loop.time() + delay
                on_pass(due, results)

            if not pending:
                break

            wait = min(next_due[p.name] for p in pending) - loop.time()
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=max(wait, 0.1))
            except asyncio.TimeoutError:
                pass

    logger.info("Reconciler stopped")


def _results_table(
    projects: Sequence[ProjectResource], results: Sequence[ReconcileResult]
) -> str:
    headers = ["NAME", "EXTERNAL-NAME", "ACTION", "SYNCED", "REQUEUE", "MESSAGE"]
    rows = []
    for project, result in zip(projects, results):
        rows.append(
            [
                project.name,
                get_external_name(project) or "-",
                result.action,
                "✓" if result.success else "✗",
                "-" if result.finalized else f"{result.requeue_after or 0:.0f}s",
                result.message,
            ]
        )
    return tabulate(rows, headers=headers, tablefmt="simple")


def _echo_event(event: ReconcileEvent) -> None:
    click.echo(event.to_json(), err=True)


def _write_back(loaded: LoadedProjects, finalized: set) -> None:
    """Rewrite input files with updated Projects, dropping finalized ones."""
    by_file: Dict[str, Dict[str, ProjectResource]] = {}
    for filename, project in loaded:
        by_file.setdefault(filename, {})[project.name] = project

    for filename, projects in by_file.items():
        out = []
        for doc in load_documents(filename):
            if isinstance(doc, dict) and doc.get("kind") == PROJECT_KIND:
                name = doc["metadata"]["name"]
                if name in finalized:
                    continue
                doc = projects[name].to_manifest()
            out.append(doc)

        with open(filename, "w") as f:
            if filename.endswith(".json"):
                json.dump(out if len(out) != 1 else out[0], f, indent=2)
            else:
                yaml.safe_dump_all(out, f, default_flow_style=False, sort_keys=False)
        logger.info(f"Wrote {len(out)} document(s) to {filename}")


@click.group()
@click.option("--log-level", default=None, help="Override LOG_LEVEL")
@click.pass_context
def cli(ctx, log_level):
    """MetaKube Project reconciler - converge MetaKube projects to manifests"""
    cfg = get_config()
    _configure_logging(log_level or cfg.logging.log_level)
    ctx.obj = cfg


@cli.command()
@click.argument("filenames", nargs=-1, required=True, type=click.Path(exists=True))
def validate(filenames):
    """Validate manifests against their schemas"""
    failed = False
    for filename in filenames:
        for index, doc in enumerate(_read(filename)):
            is_valid, error = validate_manifest(doc)
            if is_valid:
                click.echo(f"{filename}[{index}]: {doc['kind']}/{doc['metadata']['name']} OK")
            else:
                failed = True
                click.echo(f"{filename}[{index}]: {error}", err=True)
    if failed:
        raise SystemExit(1)


@cli.command()
@click.argument("filename", type=click.Path(exists=True))
@click.option("--output", "-o", type=click.Choice(["yaml", "json"]), default="yaml")
def describe(filename, output):
    """Describe the Projects in a file"""
    projects, _ = _load_projects([filename])
    manifests = [project.to_manifest() for _, project in projects]

    if output == "json":
        click.echo(json.dumps(manifests, indent=2))
    else:
        click.echo(yaml.safe_dump_all(manifests, default_flow_style=False, sort_keys=False))


@cli.command()
@click.argument("filenames", nargs=-1, required=True, type=click.Path(exists=True))
@click.option(
    "--provider-config",
    "-p",
    multiple=True,
    type=click.Path(exists=True),
    help="File with ProviderConfig/Secret manifests",
)
@click.option("--output", "-o", type=click.Choice(["table", "json"]), default="table")
@click.option("--in-place", is_flag=True, help="Write updated Projects back to files")
@click.option("--events", is_flag=True, help="Print recorded events as JSON lines to stderr")
@click.pass_obj
def reconcile(cfg, filenames, provider_config, output, in_place, events):
    """Run one reconciliation pass for every Project

    A Project that already carries the crossplane.io/external-name annotation
    is never created again. Remove the annotation to create a new MetaKube
    project for it.
    """
    loaded, documents = _load_projects(filenames)
    if not loaded:
        click.echo("No Projects found")
        return

    resolver = _build_resolver(cfg, documents, provider_config)
    projects = [project for _, project in loaded]
    results = asyncio.run(
        reconcile_once(cfg, resolver, projects, on_event=_echo_event if events else None)
    )

    if output == "json":
        click.echo(
            json.dumps(
                [
                    {
                        "name": project.name,
                        "externalName": get_external_name(project),
                        "success": result.success,
                        "action": result.action,
                        "message": result.message,
                        "requeueAfter": result.requeue_after,
                        "finalized": result.finalized,
                    }
                    for project, result in zip(projects, results)
                ],
                indent=2,
            )
        )
    else:
        click.echo(_results_table(projects, results))

    if in_place:
        _write_back(loaded, {p.name for p, r in zip(projects, results) if r.finalized})

    if not all(result.success for result in results):
        raise SystemExit(1)


@cli.command()
@click.argument("filenames", nargs=-1, required=True, type=click.Path(exists=True))
@click.option(
    "--provider-config",
    "-p",
    multiple=True,
    type=click.Path(exists=True),
    help="File with ProviderConfig/Secret manifests",
)
@click.option("--interval", "-i", type=int, default=None, help="Seconds between passes")
@click.option("--in-place", is_flag=True, help="Write updated Projects back after each pass")
@click.option("--events", is_flag=True, help="Print recorded events as JSON lines to stderr")
@click.pass_obj
def run(cfg, filenames, provider_config, interval, in_place, events):
    """Reconcile Projects continuously until interrupted"""
    loaded, documents = _load_projects(filenames)
    if not loaded:
        click.echo("No Projects found")
        return

    if interval is not None:
        cfg.controller.reconcile_interval = interval

    resolver = _build_resolver(cfg, documents, provider_config)
    finalized: set = set()

    def on_pass(projects, results):
        click.echo(_results_table(projects, results))
        finalized.update(p.name for p, r in zip(projects, results) if r.finalized)
        if in_place:
            _write_back(loaded, finalized)

    asyncio.run(
        run_forever(
            cfg,
            resolver,
            [p for _, p in loaded],
            on_pass,
            on_event=_echo_event if events else None,
        )
    )


if __name__ == "__main__":
    cli()
