"""GitMind CLI interface.

Commands:
- analyze: Analyze a repository and render the report
- insights: Issues, pull requests, team, dependencies and code health
- explain: Explain one file of a repository
- chat: Ask a question about a repository
- audit: Security audit and remediation plan
- narrate: Speak a piece of text to an audio file
- walkthrough: Generate a walkthrough video for a repository
- check: Validate credentials and dependencies
- init: Initialize GitMind configuration

Global options:
- --config: Path to configuration file
- --verbose: Enable verbose output with timestamps
- --quiet: Suppress info messages
- --ci: JSON log lines
- --version: Show version and exit
"""

import asyncio
import base64
import json
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Annotated, Any, TypeVar

import typer

from gitmind import __version__
from gitmind.budget import RequestBudget
from gitmind.cache import ResultCache
from gitmind.config import GitMindConfig, create_default_config, load_config
from gitmind.errors import ErrorKind, GitMindError
from gitmind.llm import AnalysisGateway, create_client
from gitmind.persistence import RecordStore
from gitmind.pipeline import Orchestrator, PipelineOptions, RunResult
from gitmind.source import SourceGateway
from gitmind.utils.logging import StageLog, configure_from_cli, get_logger

T = TypeVar("T")

# Create Typer app
app = typer.Typer(
    name="gitmind",
    help="Repository intelligence for GitHub repositories",
    add_completion=False,
    no_args_is_help=True,
)

# Global state
_config: GitMindConfig | None = None
_logger = get_logger()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"gitmind {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    config: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Path to configuration file",
            exists=True,
            dir_okay=False,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable verbose output with timestamps",
        ),
    ] = False,
    quiet: Annotated[
        bool,
        typer.Option(
            "--quiet",
            "-q",
            help="Suppress info messages (warnings and errors only)",
        ),
    ] = False,
    ci: Annotated[
        bool,
        typer.Option(
            "--ci",
            help="Enable CI mode with JSON log lines",
        ),
    ] = False,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit",
        ),
    ] = False,
) -> None:
    """GitMind - Repository intelligence.

    Turns a GitHub repository into an analysis report, an onboarding guide
    and on-demand insights.
    """
    global _config

    configure_from_cli(verbose=verbose, quiet=quiet, ci=ci)

    try:
        _config = load_config(config_path=config)
        if _config.config_path:
            _logger.debug(f"Loaded config from: {_config.config_path}")
    except FileNotFoundError as e:
        _logger.error(str(e))
        raise typer.Exit(1)
    except Exception as e:
        _logger.error(f"Failed to load config: {e}")
        raise typer.Exit(1)


# =============================================================================
# Wiring
# =============================================================================


def _get_config() -> GitMindConfig:
    return _config if _config is not None else GitMindConfig()


def build_orchestrator(config: GitMindConfig, fast_mode: bool | None = None) -> Orchestrator:
    """Wire gateways, caches and budgets from configuration.

    Raises:
        InvalidConfigurationError: If the inference provider has no usable key
    """
    pipeline = config.pipeline
    options = PipelineOptions.from_config(pipeline)
    if fast_mode is not None:
        options.fast_mode = fast_mode

    analysis = AnalysisGateway(
        create_client(config.llm),
        budget=RequestBudget(
            capacity=pipeline.budget_capacity,
            window_ms=pipeline.budget_window_seconds * 1000,
        ),
        cache=ResultCache(ttl_seconds=pipeline.analysis_cache_ttl_seconds),
        call_timeout=pipeline.call_timeout_seconds,
        poll_interval=pipeline.media_poll_interval_seconds,
        max_wait=pipeline.media_max_wait_seconds,
    )
    source = SourceGateway(
        config.github,
        cache=ResultCache(ttl_seconds=pipeline.structure_cache_ttl_seconds),
    )
    record_store = RecordStore(config.record_store) if config.record_store.enabled else None

    return Orchestrator(
        source,
        analysis,
        options=options,
        record_store=record_store,
        log=StageLog(capacity=pipeline.log_capacity),
    )


@asynccontextmanager
async def _session(fast_mode: bool | None = None) -> AsyncIterator[Orchestrator]:
    orchestrator = build_orchestrator(_get_config(), fast_mode=fast_mode)
    try:
        yield orchestrator
    finally:
        await orchestrator.source.aclose()
        if orchestrator.record_store is not None:
            await orchestrator.record_store.aclose()


def _run(coro: Awaitable[T]) -> T:
    """Run a coroutine, turning classified failures into exit codes.

    Exit codes:
        1: Any failure
        2: A rate limit or daily cap was reached
    """
    try:
        return asyncio.run(coro)  # type: ignore[arg-type]
    except GitMindError as e:
        _logger.error(f"{e.kind.value}: {e.message}")
        raise typer.Exit(2 if e.kind == ErrorKind.RATE_LIMIT_EXCEEDED else 1)


async def _analyzed(
    orchestrator: Orchestrator,
    url: str,
    user_id: str | None = None,
    wait: bool = True,
) -> RunResult:
    result = await orchestrator.submit(url, user_id=user_id)
    _logger.info(f"Core analysis ready for {result.reference.slug}")
    if wait:
        result = await orchestrator.wait_until_complete() or result
    for step, error in result.enrichment_errors.items():
        _logger.warning(f"{step} skipped: {error.message}")
    return result


def _on_current(
    url: str,
    action: Callable[[Orchestrator], Awaitable[T]],
) -> T:
    """Analyze `url` (core only) and run `action` against the loaded run."""

    async def go() -> T:
        async with _session(fast_mode=True) as orchestrator:
            await _analyzed(orchestrator, url, wait=False)
            return await action(orchestrator)

    return _run(go())


def _echo_json(data: Any) -> None:
    typer.echo(json.dumps(data, indent=2))


# =============================================================================
# analyze command
# =============================================================================


@app.command()
def analyze(
    url: Annotated[str, typer.Argument(help="Repository URL, e.g. https://github.com/owner/name")],
    output: Annotated[
        Path | None,
        typer.Option(
            "--output",
            "-o",
            help="Write the markdown report to this file instead of stdout",
        ),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Output the run as JSON",
        ),
    ] = False,
    user_id: Annotated[
        str | None,
        typer.Option(
            "--user-id",
            help="Identity for the daily limit and the record store",
        ),
    ] = None,
    core_only: Annotated[
        bool,
        typer.Option(
            "--core-only",
            help="Stop after core analysis (skip the onboarding guide)",
        ),
    ] = False,
) -> None:
    """Analyze a repository and render the report.

    Exit codes:
        0: Analysis complete
        1: Analysis failed
        2: Rate limit or daily limit reached
    """
    from gitmind.templates import ReportRenderer

    async def go() -> RunResult:
        async with _session() as orchestrator:
            return await _analyzed(orchestrator, url, user_id=user_id, wait=not core_only)

    _logger.info(f"Analyzing repository: {url}")
    result = _run(go())

    if json_output:
        _echo_json(result.to_dict())
        return

    renderer = ReportRenderer()
    if output is not None:
        path = renderer.render_to_file(result, output)
        typer.echo(f"\n📄 Report written to: {path}")
    else:
        typer.echo(renderer.render(result))


# =============================================================================
# On-demand commands
# =============================================================================


@app.command()
def insights(
    url: Annotated[str, typer.Argument(help="Repository URL")],
    json_output: Annotated[bool, typer.Option("--json", help="Output results as JSON")] = False,
) -> None:
    """Show issues, pull requests, team, dependencies and code health."""
    bundle = _on_current(url, lambda o: o.load_insights())

    if json_output:
        _echo_json(bundle.to_dict())
        return

    health = bundle.health
    typer.echo("\n📊 Code health\n")
    typer.echo(f"  Files: {health.file_count}  Directories: {health.directory_count}")
    typer.echo(f"  Test files: {health.test_file_count} ({health.test_ratio:.1%})")
    for flag, label in (
        (health.has_readme, "README"),
        (health.has_license, "License"),
        (health.has_ci, "CI"),
        (health.has_contributing, "Contributing guide"),
    ):
        typer.echo(f"  {'✅' if flag else '❌'} {label}")

    if bundle.frameworks:
        typer.echo(f"\n🧰 Frameworks: {', '.join(bundle.frameworks)}")
    typer.echo(f"📦 Dependencies: {len(bundle.dependencies)}")

    for title, narrative in (
        ("Issues", bundle.issues_narrative),
        ("Pull requests", bundle.pull_requests_narrative),
        ("Team", bundle.team_narrative),
    ):
        if narrative is None:
            continue
        typer.echo(f"\n## {title}\n\n{narrative.overview}")
        for section in narrative.sections:
            typer.echo(f"\n{section.heading}")
            for bullet in section.bullets:
                typer.echo(f"  • {bullet}")


@app.command()
def explain(
    url: Annotated[str, typer.Argument(help="Repository URL")],
    path: Annotated[str, typer.Argument(help="File path inside the repository")],
) -> None:
    """Explain one file of a repository."""
    typer.echo(_on_current(url, lambda o: o.explain_file(path)))


@app.command()
def chat(
    url: Annotated[str, typer.Argument(help="Repository URL")],
    questions: Annotated[list[str], typer.Argument(help="One or more questions, asked in order")],
) -> None:
    """Ask questions about a repository.

    Questions share one conversation, so later ones can refer to earlier
    answers.
    """

    async def ask(orchestrator: Orchestrator) -> list[str]:
        return [await orchestrator.chat(question) for question in questions]

    for question, answer in zip(questions, _on_current(url, ask), strict=True):
        typer.echo(f"\n❓ {question}\n\n{answer}")


@app.command()
def audit(
    url: Annotated[str, typer.Argument(help="Repository URL")],
    json_output: Annotated[bool, typer.Option("--json", help="Output results as JSON")] = False,
) -> None:
    """Run a security audit and plan remediation.

    Exit codes:
        0: No critical or high findings
        1: Audit failed
        2: Critical or high findings reported
    """
    report, plan = _on_current(url, lambda o: o.audit())

    if json_output:
        _echo_json({"audit": report.model_dump(mode="json"), "remediation": plan.model_dump(mode="json")})
    else:
        typer.echo(f"\n🔒 Risk level: {report.risk_level}\n\n{report.summary}\n")
        for finding in report.findings:
            location = f" ({finding.location})" if finding.location else ""
            typer.echo(f"  [{finding.severity}] {finding.title}{location}")
            typer.echo(f"     └─ {finding.description}")
        if plan.steps:
            typer.echo("\n🛠  Remediation plan\n")
            for index, step in enumerate(plan.steps, start=1):
                typer.echo(f"  {index}. {step.title} ({step.priority})")
                for action in step.actions:
                    typer.echo(f"     • {action}")

    if any(f.severity in ("Critical", "High") for f in report.findings):
        raise typer.Exit(2)


@app.command()
def narrate(
    text: Annotated[str, typer.Argument(help="Text to speak")],
    output: Annotated[
        Path,
        typer.Option("--output", "-o", help="Audio file to write"),
    ] = Path("narration.mp3"),
) -> None:
    """Speak a piece of text to an audio file."""

    async def go() -> Any:
        async with _session() as orchestrator:
            return await orchestrator.narrate(text)

    clip = _run(go())
    output.write_bytes(base64.b64decode(clip.audio_base64))
    typer.echo(f"🔊 Narration written to: {output}")


@app.command()
def walkthrough(
    url: Annotated[str, typer.Argument(help="Repository URL")],
    output: Annotated[
        Path,
        typer.Option("--output", "-o", help="Video file to write"),
    ] = Path("walkthrough.mp4"),
) -> None:
    """Generate a walkthrough video. This can take several minutes."""
    asset = _on_current(url, lambda o: o.synthesize_walkthrough())
    if asset.content_base64:
        output.write_bytes(base64.b64decode(asset.content_base64))
        typer.echo(f"🎬 Walkthrough written to: {output}")
    else:
        typer.echo(f"🎬 Walkthrough available at: {asset.uri or asset.job_id}")


# =============================================================================
# check command
# =============================================================================


@app.command()
def check(
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Output results as JSON",
        ),
    ] = False,
    online: Annotated[
        bool,
        typer.Option(
            "--online",
            help="Also contact GitHub and local model servers",
        ),
    ] = False,
) -> None:
    """Validate credentials and dependencies.

    Exit codes:
        0: Everything available
        1: A required check failed
        2: Only optional checks failed (warnings)
    """
    from gitmind.utils.preflight import PreflightChecker

    result = PreflightChecker().check_all(_get_config(), online=online)

    if json_output:
        _echo_json(result.to_dict())
    else:
        typer.echo("\n🔍 Preflight Check Results\n")

        for check_result in result.checks:
            status = "✅" if check_result.available else "❌"
            version_str = f" ({check_result.version})" if check_result.version else ""
            required_str = " [required]" if check_result.required else " [optional]"

            typer.echo(f"  {status} {check_result.name}{version_str}{required_str}")
            if check_result.message:
                typer.echo(f"     └─ {check_result.message}")

        typer.echo()

    if result.errors:
        if not json_output:
            typer.echo("❌ Preflight check FAILED")
            for error in result.errors:
                typer.echo(f"   • {error}")
        raise typer.Exit(1)
    elif result.warnings:
        if not json_output:
            typer.echo("⚠️  Preflight check passed with WARNINGS")
            for warning in result.warnings:
                typer.echo(f"   • {warning}")
        raise typer.Exit(2)
    elif not json_output:
        typer.echo("✅ All preflight checks passed")


# =============================================================================
# init command
# =============================================================================


@app.command()
def init(
    force: Annotated[
        bool,
        typer.Option(
            "--force",
            help="Overwrite existing config",
        ),
    ] = False,
) -> None:
    """Initialize GitMind configuration in `.gitmind/config.yaml`."""
    gitmind_dir = Path(".gitmind")
    gitmind_dir.mkdir(exist_ok=True)
    config_file = gitmind_dir / "config.yaml"

    if config_file.exists() and not force:
        _logger.error(f"Config already exists: {config_file}")
        _logger.info("Use --force to overwrite")
        raise typer.Exit(1)

    config_file.write_text(create_default_config())
    _logger.info(f"Created config: {config_file}")

    typer.echo("\n✅ GitMind configuration initialized")
    typer.echo(f"   Config: {config_file}")
    typer.echo("   Set GITHUB_TOKEN and your provider key before running `gitmind check`.")


if __name__ == "__main__":
    app()
