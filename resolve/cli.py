"""Click CLI: loads config, builds providers and a session, runs a question and resolve rounds."""

import asyncio
import json
import logging
import sys
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from config.config_loader import AppConfig, load_config
from resolve.arbiter import Arbiter
from resolve.classifier import StanceClassifier
from resolve.fanout import AdvocateFanOut
from resolve.healthcheck import run_health_checks
from resolve.labeler import OptionLabeler
from resolve.models import ProblemType, Provider, TurnResult
from resolve.output import print_turn, save_transcript
from resolve.providers import LLMProvider, MissingKeyError, ProviderError, build_provider
from resolve.question_file import parse_question_file
from resolve.session import DeliberationSession, LabelingError

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _build_advocates(config: AppConfig) -> dict[Provider, LLMProvider]:
    """Build every advocate that has a key. Missing ones answer 'Missing API key.' later."""
    advocates: dict[Provider, LLMProvider] = {}
    for provider in Provider:
        model_cfg = config.advocates.get(provider)
        if model_cfg is None:
            continue
        try:
            advocates[provider] = build_provider(model_cfg)
        except MissingKeyError:
            logger.info("Advocate %s not configured (no API key)", provider.display_name)
        except ProviderError as exc:
            logger.warning("Failed to instantiate advocate %s: %s", provider.display_name, exc)
    return advocates


def _build_assistant(config: AppConfig, role: str) -> LLMProvider | None:
    try:
        return build_provider(config.assistant(role))
    except ProviderError as exc:
        logger.warning("No %s available: %s", role, exc)
        return None


def _build_session(
    config: AppConfig,
    advocates: dict[Provider, LLMProvider],
    unavailable: set[Provider] | None = None,
) -> DeliberationSession:
    prompts = config.prompts
    return DeliberationSession(
        fanout=AdvocateFanOut(advocates, prompts.advocate_systems, unavailable or ()),
        labeler=OptionLabeler(_build_assistant(config, "labeler"), prompts.labeler),
        classifier=StanceClassifier(_build_assistant(config, "classifier"), prompts.classifier),
        arbiter=Arbiter(_build_assistant(config, "arbiter"), prompts),
        max_rounds=config.defaults.max_rounds,
    )


def _resolve_problem_type(
    cli_value: str | None,
    file_value: ProblemType | None,
    config: AppConfig,
) -> ProblemType:
    """CLI flag > question-file frontmatter > config default."""
    if cli_value:
        return ProblemType(cli_value)
    if file_value is not None:
        return file_value
    return config.defaults.problem_type


async def _check_and_filter_providers(
    advocates: dict[Provider, LLMProvider],
) -> tuple[dict[Provider, LLMProvider], set[Provider]]:
    """Run health checks, print results, and ask the user what to do on failures.

    Returns:
        (working advocates, advocates that failed). Failed advocates answer
        "No response." for the rest of the session.
    """
    console.print("\n[bold]Checking advocates...[/bold]")
    results = await run_health_checks(advocates)

    failed: list[Provider] = []
    for provider in Provider:
        if provider not in results:
            continue
        ok, err = results[provider]
        if ok:
            console.print(f"  [green]OK  [/green] {provider.display_name}")
        else:
            short_err = err.splitlines()[0][:120] if err else "unknown error"
            console.print(f"  [red]FAIL[/red] {provider.display_name}: {escape(short_err)}")
            failed.append(provider)

    if not failed:
        console.print()
        return advocates, set()

    working = {p: c for p, c in advocates.items() if p not in failed}
    if not working:
        console.print("\n[bold red]Error:[/bold red] No advocates passed the health check.")
        sys.exit(1)

    console.print(f"\n[yellow]{len(failed)} advocate(s) failed:[/yellow] {', '.join(p.display_name for p in failed)}")
    if not click.confirm("Continue with working advocates only?", default=True):
        sys.exit(0)

    console.print()
    return working, set(failed)


def _show(turn: TurnResult, as_json: bool) -> None:
    if as_json:
        click.echo(json.dumps(turn.to_dict(), ensure_ascii=False, indent=2))
    else:
        print_turn(turn)


async def _run_session(
    session: DeliberationSession,
    question_text: str,
    problem_type: ProblemType,
    resolve_rounds: int | None,
    as_json: bool,
) -> list[TurnResult]:
    """Answer the question, then run resolve rounds while advocates disagree.

    With resolve_rounds=None the user is asked before each round.
    """
    turns = [await session.submit_question(question_text, problem_type)]
    _show(turns[-1], as_json)

    rounds_run = 0
    while session.can_resolve():
        if resolve_rounds is None:
            prompt = f"Advocates disagree. Run resolve round {session.round_index + 1}/{session.max_rounds}?"
            if not click.confirm(prompt, default=True):
                break
        elif rounds_run >= resolve_rounds:
            break
        turns.append(await session.resolve_round())
        rounds_run += 1
        _show(turns[-1], as_json)

    reason = session.rejection_reason()
    if reason and not as_json:
        console.print(f"[dim]{reason}[/dim]")
    return turns


async def _main_async(
    config: AppConfig,
    question_text: str,
    problem_type: ProblemType,
    resolve_rounds: int | None,
    as_json: bool,
    skip_health_check: bool,
) -> list[TurnResult]:
    advocates = _build_advocates(config)
    if not advocates:
        console.print("[bold red]Error:[/bold red] No advocates available. Check API keys in .env.")
        sys.exit(1)
    failed: set[Provider] = set()
    if not skip_health_check:
        advocates, failed = await _check_and_filter_providers(advocates)

    session = _build_session(config, advocates, failed)
    return await _run_session(session, question_text, problem_type, resolve_rounds, as_json)


@click.command()
@click.argument("question", required=False)
@click.option("--file", "question_file", type=click.Path(exists=True), help="Read question from .md file")
@click.option("--type", "problem_type", type=click.Choice([t.value for t in ProblemType]), default=None,
              help="Question type (default: frontmatter, then config)")
@click.option("--resolve-rounds", type=click.IntRange(min=0), default=None,
              help="Run up to N resolve rounds without asking (default: ask each time)")
@click.option("--output", "output_path", default=None, help="Transcript directory (default: from config)")
@click.option("--no-save", is_flag=True, default=False, help="Do not write a transcript file")
@click.option("--json", "as_json", is_flag=True, default=False, help="Print run records as JSON")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
@click.option("--skip-health-check", is_flag=True, default=False,
              help="Skip the API connectivity check at startup")
def main(
    question: str | None,
    question_file: str | None,
    problem_type: str | None,
    resolve_rounds: int | None,
    output_path: str | None,
    no_save: bool,
    as_json: bool,
    verbose: bool,
    skip_health_check: bool,
) -> None:
    """Resolve -- ask several AI advocates one question and see where they disagree.

    \b
    Examples:
      resolve "Is a hot dog a sandwich?"
      resolve "Which is prime? A) 9 B) 11 C) 15" --type single-select
      resolve --file question.md --resolve-rounds 2
    """
    load_dotenv()
    _setup_logging(verbose)

    try:
        config = load_config()
    except (FileNotFoundError, ValueError) as exc:
        console.print(f"[bold red]Config error:[/bold red] {escape(str(exc))}")
        sys.exit(1)

    file_type: ProblemType | None = None
    if question_file:
        try:
            question_text, file_type = parse_question_file(Path(question_file))
        except ValueError as exc:
            console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
            sys.exit(1)
    elif question:
        question_text = question
    else:
        console.print("[bold red]Error:[/bold red] Provide a QUESTION argument or --file.")
        sys.exit(1)

    effective_type = _resolve_problem_type(problem_type, file_type, config)

    try:
        turns = asyncio.run(
            _main_async(config, question_text, effective_type, resolve_rounds, as_json, skip_health_check)
        )
    except LabelingError as exc:
        console.print(f"[bold red]Could not read the options:[/bold red] {escape(str(exc))}")
        sys.exit(1)

    if not no_save:
        output_dir = Path(output_path) if output_path else config.defaults.output_dir
        saved = save_transcript(question_text, turns, output_dir)
        if not as_json:
            console.print(f"\n[dim]Saved to: {saved}[/dim]")


if __name__ == "__main__":
    main()
