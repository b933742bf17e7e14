"""Click CLI — orchestrates config loading, provider selection, collaboration, and output."""

import asyncio
import json
import logging
import sys
from dataclasses import asdict, replace
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from config.config_loader import REQUIRED_ROLES, AppConfig, load_config
from design_studio.healthcheck import run_health_checks
from design_studio.inbox import archive_file, ensure_dirs, parse_request_file, scan_inbox
from design_studio.models import DesignContext, DesignRequest
from design_studio.output import print_discussion, print_proposal, print_result, result_to_dict, save_to_file
from design_studio.providers import PROVIDER_CLASSES
from design_studio.providers.base import TextCompletionProvider
from design_studio.studio import AIStudio

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)
# Logs and, under --json, status lines go here so stdout stays machine-readable
err_console = Console(stderr=True, legacy_windows=False)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, rich_tracebacks=True, show_path=False)],
    )


def _build_all_providers(config: AppConfig) -> dict[str, TextCompletionProvider]:
    """Build all available providers. Returns dict keyed by name."""
    providers: dict[str, TextCompletionProvider] = {}
    for name in sorted(config.available_providers):
        model_cfg = config.models[name]
        provider_cls = PROVIDER_CLASSES.get(model_cfg.sdk)
        if provider_cls is None:
            logger.warning("Provider '%s' has unknown sdk '%s', skipping", name, model_cfg.sdk)
            continue
        try:
            providers[name] = provider_cls(model_cfg)
        except Exception as exc:
            logger.warning("Failed to instantiate provider '%s': %s", name, exc)
    return providers


def _resolve_role_providers(
    config: AppConfig,
    all_providers: dict[str, TextCompletionProvider],
    provider_override: str | None = None,
) -> dict[str, TextCompletionProvider]:
    """Pick a provider per role. --provider > persona provider > studio default.

    Falls back to the first available provider when the preferred one is missing.

    Raises:
        ValueError: If no providers are available, or --provider names an unavailable one.
    """
    if not all_providers:
        raise ValueError("No providers available")
    if provider_override and provider_override not in all_providers:
        raise ValueError(
            f"Provider '{provider_override}' is not available "
            f"(available: {', '.join(sorted(all_providers))})"
        )

    first_available = next(iter(all_providers.values()))
    resolved: dict[str, TextCompletionProvider] = {}
    for role in REQUIRED_ROLES:
        persona = config.personas[role]
        preferred = provider_override or persona.provider or config.studio.provider
        if preferred in all_providers:
            resolved[role] = all_providers[preferred]
        else:
            logger.warning(
                "Provider '%s' unavailable for %s, using %s", preferred, role, first_available.name()
            )
            resolved[role] = first_available
    return resolved


def _merge_request(
    base: DesignRequest,
    mood: str | None,
    time_of_day: str | None,
    feature: str | None,
    constraints: tuple[str, ...],
) -> DesignRequest:
    """CLI flags win; request-file values only fill in what the CLI left unset."""
    return replace(
        base,
        user_mood=mood if mood is not None else base.user_mood,
        time_of_day=time_of_day if time_of_day is not None else base.time_of_day,
        feature=feature if feature is not None else base.feature,
        constraints=list(constraints) if constraints else list(base.constraints),
    )


def _check_and_filter_providers(
    all_providers: dict[str, TextCompletionProvider],
    out: Console = console,
) -> dict[str, TextCompletionProvider]:
    """Run health checks, print results, and ask user what to do on failures.

    Returns the filtered dict of working providers. Exits if the user
    declines to continue or no providers pass.
    """
    out.print("\n[bold]Checking providers...[/bold]")
    results: dict[str, tuple[bool, str]] = asyncio.run(run_health_checks(all_providers))

    failed_names: list[str] = []
    for name in sorted(results):
        ok, err = results[name]
        if ok:
            out.print(f"  [green]OK  [/green] {name}")
        else:
            short_err = err.splitlines()[0][:120] if err else "unknown error"
            out.print(f"  [red]FAIL[/red] {name}: {short_err}")
            failed_names.append(name)

    if not failed_names:
        out.print()
        return all_providers

    working = {n: p for n, p in all_providers.items() if n not in failed_names}

    if not working:
        out.print("\n[yellow]No providers passed the health check.[/yellow] "
                  "Agents will answer with fallback responses.")
        if not click.confirm("Continue anyway?", default=False, err=out.stderr):
            sys.exit(1)
        return all_providers

    out.print(
        f"\n[yellow]{len(failed_names)} provider(s) failed:[/yellow] {', '.join(failed_names)}"
    )
    out.print(f"Working providers: {', '.join(sorted(working))}")

    if not click.confirm("Continue with working providers only?", default=True, err=out.stderr):
        sys.exit(0)

    out.print()
    return working


async def _run_single(
    studio: AIStudio,
    request: DesignRequest,
    quick: bool,
    output_dir: Path,
    as_json: bool,
    slug_override: str | None = None,
) -> Path | None:
    """Run one collaboration (or quick design). Returns the saved report path, if any."""
    prompt_preview = request.prompt[:80] + ("..." if len(request.prompt) > 80 else "")

    if quick:
        context = DesignContext(
            user_mood=request.user_mood,
            time_of_day=request.time_of_day,
            feature=request.feature,
            constraints=tuple(request.constraints),
        )
        proposal = await studio.quick_design(request.prompt, context)
        if as_json:
            click.echo(json.dumps(asdict(proposal), indent=2))
        else:
            print_proposal(proposal)
        return None

    if not as_json:
        console.print(
            f"\n[bold cyan]Design Studio[/bold cyan] — designer, engineer, ux "
            f"(max {studio.max_iterations} iterations)"
        )
        console.print(f"Request: [italic]{prompt_preview}[/italic]\n")

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
        disable=as_json,
    ) as progress:
        progress.add_task("Agents are collaborating...", total=None)
        result = await studio.generate_design(request)

    saved_path = save_to_file(result, output_dir, slug_override=slug_override)

    if as_json:
        click.echo(json.dumps(result_to_dict(result), indent=2))
    else:
        print_discussion(result.discussion)
        print_result(result)
        console.print(f"\n[dim]Saved to: {saved_path}[/dim]")
    return saved_path


async def _run_inbox(
    studio: AIStudio,
    inbox_dir: Path,
    archive_dir: Path,
    output_dir: Path,
    quick_cli: bool,
    as_json: bool,
) -> None:
    """Process all .md request files in the inbox folder."""
    ensure_dirs(inbox_dir, archive_dir)
    files = scan_inbox(inbox_dir)

    if not files:
        click.echo("No files in inbox.", err=as_json)
        return

    for file_path in files:
        try:
            request, meta = parse_request_file(file_path)
            quick = quick_cli or bool(meta.get("quick", False))
            saved = await _run_single(
                studio,
                request,
                quick=quick,
                output_dir=output_dir,
                as_json=as_json,
                slug_override=file_path.stem,
            )
            archived = archive_file(file_path, archive_dir)
            click.echo(
                f"Processed: {file_path.name} -> {saved or 'console'} (archived: {archived.name})",
                err=as_json,
            )
        except Exception as e:
            logger.error("Failed: %s -- %s", file_path.name, e)
            archive_file(file_path, archive_dir, failed=True)


@click.command()
@click.argument("prompt", required=False)
@click.option("--file", "request_file", type=click.Path(exists=True), help="Read the request from a .md file")
@click.option("--mood", default=None, help="Inferred user mood (e.g. stressed, focused, relaxed)")
@click.option("--time-of-day", default=None, help="Time of day (e.g. morning, evening)")
@click.option("--feature", default=None, help="Dashboard feature the design targets")
@click.option("--constraint", "constraints", multiple=True, help="Design constraint (repeatable)")
@click.option("--quick", is_flag=True, help="Designer-only proposal, no review or consensus")
@click.option("--provider", "provider_override", default=None,
              help="Provider for all agents, overrides config (e.g. gemini, claude, ollama)")
@click.option("--max-iterations", default=None, type=click.IntRange(min=1),
              help="Max propose/review iterations (default: from config)")
@click.option("--output", "output_path", default=None, help="Output directory (default: from config)")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
@click.option("--inbox", "use_inbox", is_flag=True, default=False,
              help="Process all .md request files in the inbox folder")
@click.option("--inbox-dir", "inbox_dir_override", default=None,
              help="Override inbox folder path (default: from config)")
@click.option("--skip-health-check", is_flag=True, default=False,
              help="Skip the API connectivity check at startup")
def main(
    prompt: str | None,
    request_file: str | None,
    mood: str | None,
    time_of_day: str | None,
    feature: str | None,
    constraints: tuple[str, ...],
    quick: bool,
    provider_override: str | None,
    max_iterations: int | None,
    output_path: str | None,
    as_json: bool,
    verbose: bool,
    use_inbox: bool,
    inbox_dir_override: str | None,
    skip_health_check: bool,
) -> None:
    """MorphUI Design Studio -- designer, engineer and UX agents reach consensus on a design.

    \b
    Examples:
      morphui-studio "Design a calming dashboard for a stressed user" --mood stressed
      morphui-studio "Evening theme for the analytics view" --time-of-day evening --quick
      morphui-studio "Focus mode" --constraint "no animations" --provider ollama
      morphui-studio --file request.md
      morphui-studio --inbox
    """
    load_dotenv()
    _setup_logging(verbose)
    out = err_console if as_json else console

    try:
        config = load_config()
    except (FileNotFoundError, ValueError) as exc:
        out.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)

    effective_output = Path(output_path) if output_path else config.studio.output_dir

    all_providers = _build_all_providers(config)

    if not all_providers:
        out.print("[bold red]Error:[/bold red] No providers available. Check API keys in .env.")
        sys.exit(1)

    if not skip_health_check:
        all_providers = _check_and_filter_providers(all_providers, out)

    try:
        role_providers = _resolve_role_providers(config, all_providers, provider_override)
    except ValueError as exc:
        out.print(f"[bold red]Error:[/bold red] {exc}")
        sys.exit(1)

    studio = AIStudio.from_config(config, role_providers, max_iterations=max_iterations)

    if use_inbox:
        inbox_dir = Path(inbox_dir_override) if inbox_dir_override else config.inbox.dir
        asyncio.run(
            _run_inbox(
                studio,
                inbox_dir=inbox_dir,
                archive_dir=config.inbox.archive_dir,
                output_dir=effective_output,
                quick_cli=quick,
                as_json=as_json,
            )
        )
        return

    if request_file:
        try:
            base_request, meta = parse_request_file(Path(request_file))
        except ValueError as exc:
            out.print(f"[bold red]Error:[/bold red] {exc}")
            sys.exit(1)
        quick = quick or bool(meta.get("quick", False))
    elif prompt:
        base_request = DesignRequest(prompt=prompt)
    else:
        out.print("[bold red]Error:[/bold red] Provide a PROMPT argument, --file, or --inbox.")
        sys.exit(1)

    request = _merge_request(base_request, mood, time_of_day, feature, constraints)

    asyncio.run(
        _run_single(
            studio,
            request,
            quick=quick,
            output_dir=effective_output,
            as_json=as_json,
        )
    )


if __name__ == "__main__":
    main()
