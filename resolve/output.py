"""Rich console output and markdown transcript save for deliberation turns."""

import logging
import re
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from resolve.models import AdvocateOutput, StanceGroup, TurnResult
from resolve.parsing import split_bold_spans

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)


def _slug(text: str, max_len: int = 40) -> str:
    """Convert text to a filename-safe slug."""
    slug = re.sub(r"[^\w\s-]", "", text.lower())
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug[:max_len]


def render_marked(text: str) -> Text:
    """Rich Text with <bold> spans rendered bold."""
    rendered = Text()
    for segment, is_bold in split_bold_spans(text):
        rendered.append(segment, style="bold" if is_bold else None)
    return rendered


def to_markdown(text: str) -> str:
    return "".join(f"**{s}**" if is_bold else s for s, is_bold in split_bold_spans(text))


def _turn_title(turn: TurnResult) -> str:
    if turn.run.run_type == "initial":
        return "Initial Answers"
    return f"Resolve Round {turn.run.run_index}"


def print_advocates(outputs: list[AdvocateOutput]) -> None:
    for out in outputs:
        console.print(
            Panel(
                Text(out.detailed_response),
                title=f"[bold]{out.provider}[/bold]",
                subtitle=Text(out.summary),
                border_style="dim",
            )
        )


def print_stance_groups(groups: list[StanceGroup]) -> None:
    table = Table(title="Stances", show_lines=False)
    table.add_column("Stance", style="cyan", no_wrap=True)
    table.add_column("Advocates")
    table.add_column("Position")
    for group in groups:
        table.add_row(
            group.stance_id,
            ", ".join(p.display_name for p in group.members),
            Text(group.stance_summary),
        )
    console.print(table)


def print_turn(turn: TurnResult) -> None:
    """Print advocates, stance groups and the arbiter summary of one turn."""
    run = turn.run
    console.print(Rule(f"[bold cyan]{_turn_title(turn)}[/bold cyan]"))
    print_advocates(run.advocate_outputs)
    print_stance_groups(run.classifier_output)

    console.print(Rule("[bold green]Arbiter[/bold green]"))
    if run.arbiter_output:
        console.print(render_marked(run.arbiter_output))
    else:
        console.print(f"[bold red]Arbiter unavailable:[/bold red] {escape(run.arbiter_error or '')}")
    if run.mcq_disagreement:
        console.print(Text("Advocates disagree on the answer.", style="yellow"))


def save_transcript(
    question: str,
    turns: list[TurnResult],
    output_dir: Path,
    slug_override: str | None = None,
) -> Path:
    """Save every turn of a question session as a markdown file.

    Returns:
        Path to the saved file.
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    slug = slug_override if slug_override is not None else _slug(question)
    filepath = output_dir / f"{timestamp}_{slug}.md"

    problem_type = turns[0].run.problem_type.value if turns else "unknown"
    lines: list[str] = [
        f"# Resolve: {question[:80]}",
        "",
        f"**Date:** {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
        f"**Type:** {problem_type}",
        f"**Rounds:** {max((t.run.run_index for t in turns), default=0)}",
        "",
        "---",
        "",
    ]

    for turn in turns:
        run = turn.run
        lines += [f"## {_turn_title(turn)}", ""]
        for out in run.advocate_outputs:
            lines += [f"### {out.provider}", "", out.detailed_response, "", f"*Summary: {out.summary}*", ""]

        lines += ["### Stances", ""]
        for group in run.classifier_output:
            names = ", ".join(p.display_name for p in group.members)
            lines.append(f"- **{group.stance_id}** ({names}): {group.stance_summary}")
        lines += ["", "### Arbiter", ""]
        if run.arbiter_output:
            lines.append(to_markdown(run.arbiter_output))
        else:
            lines.append(f"*Arbiter unavailable: {run.arbiter_error}*")
        lines.append("")

    filepath.write_text("\n".join(lines), encoding="utf-8")
    logger.info("Transcript saved to: %s", filepath)
    return filepath
