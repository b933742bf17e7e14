"""Rich console output and markdown file save for collaboration results."""

import logging
import re
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.rule import Rule
from rich.text import Text

from design_studio.models import AgentResponse, CollaborationResult, DiscussionEntry

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

_ROLE_STYLES = {
    "designer": "magenta",
    "engineer": "cyan",
    "ux": "green",
    "system": "dim",
}


def _slug(text: str, max_len: int = 40) -> str:
    """Convert text to a filename-safe slug."""
    slug = re.sub(r"[^\w\s-]", "", text.lower())
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug[:max_len].strip("-") or "design"


def _approval_label(entry: DiscussionEntry) -> str:
    approves = entry.metadata.get("approves")
    if approves is None:
        return ""
    return "approves" if approves else "requests changes"


def _entry_subtitle(entry: DiscussionEntry) -> str:
    bits = []
    if entry.confidence is not None:
        bits.append(f"confidence {entry.confidence:.2f}")
    label = _approval_label(entry)
    if label:
        bits.append(label)
    return " | ".join(bits)


def print_discussion(entries: list[DiscussionEntry]) -> None:
    """Print the transcript, one panel per entry."""
    console.print(Rule("[bold cyan]Studio Discussion[/bold cyan]"))
    for entry in entries:
        style = _ROLE_STYLES.get(entry.role, "dim")
        console.print(
            Panel(
                Text(entry.content),
                title=f"[bold {style}]{entry.role}[/bold {style}]",
                subtitle=_entry_subtitle(entry) or None,
                border_style=style,
            )
        )


def print_result(result: CollaborationResult) -> None:
    """Print the final design using Rich markdown."""
    console.print(Rule("[bold green]Final Design[/bold green]"))
    consensus = "[green]consensus[/green]" if result.consensus else "[yellow]no consensus[/yellow]"
    console.print(
        Text.from_markup(
            f"[dim]{consensus} | Confidence: {result.confidence:.2f} | "
            f"Iterations: {result.iteration_count} | "
            f"Duration: {result.total_duration_sec:.1f}s[/dim]"
        )
    )
    console.print(Markdown(result.final_design))


def print_proposal(proposal: AgentResponse) -> None:
    """Print a single quick-design proposal."""
    console.print(Rule(f"[bold magenta]Quick Design ({proposal.agent_type})[/bold magenta]"))
    console.print(Text(f"Confidence: {proposal.confidence:.2f}", style="dim"))
    console.print(Markdown(proposal.message))
    if proposal.suggestions:
        console.print(Markdown("\n".join(f"- {s}" for s in proposal.suggestions)))
    if proposal.reasoning:
        console.print(Text(proposal.reasoning, style="italic dim"))


def result_to_dict(result: CollaborationResult) -> dict[str, Any]:
    """JSON-serializable view of a result (field names as in the web API)."""
    data = asdict(result)
    return {
        "prompt": data["request"]["prompt"],
        "finalDesign": data["final_design"],
        "consensus": data["consensus"],
        "confidence": data["confidence"],
        "discussion": data["discussion"],
        "designerProposal": data["designer_proposal"],
        "engineerReview": data["engineer_review"],
        "uxReview": data["ux_review"],
        "iterationCount": data["iteration_count"],
        "timestamp": data["timestamp"],
    }


def save_to_file(result: CollaborationResult, output_dir: Path, slug_override: str | None = None) -> Path:
    """Save the final design and full discussion as a markdown file.

    Args:
        result: The completed CollaborationResult.
        output_dir: Directory to save the file in.
        slug_override: If provided, use this as the filename stem instead of
            deriving one from the prompt text. Useful for inbox mode.

    Returns:
        Path to the saved file.
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    slug = slug_override if slug_override is not None else _slug(result.request.prompt)
    filepath = output_dir / f"{timestamp}_{slug}.md"

    request = result.request
    lines: list[str] = [
        f"# Design Studio: {request.prompt[:80]}",
        "",
        f"**Date:** {datetime.fromtimestamp(result.timestamp).strftime('%Y-%m-%d %H:%M:%S')}",
        f"**Consensus:** {'yes' if result.consensus else 'no'}",
        f"**Confidence:** {result.confidence:.2f}",
        f"**Iterations:** {result.iteration_count}",
        f"**Duration:** {result.total_duration_sec:.1f}s",
        f"**Source:** {request.source}",
    ]
    if request.user_mood:
        lines.append(f"**User Mood:** {request.user_mood}")
    if request.time_of_day:
        lines.append(f"**Time of Day:** {request.time_of_day}")
    if request.feature:
        lines.append(f"**Feature:** {request.feature}")
    if request.constraints:
        lines.append(f"**Constraints:** {', '.join(request.constraints)}")
    lines += ["", "---", "", "# Final Design", "", result.final_design, "", "---", "", "# Discussion", ""]

    for entry in result.discussion:
        lines.append(f"### {entry.role.title()}")
        lines.append("")
        lines.append(entry.content)
        subtitle = _entry_subtitle(entry)
        if subtitle:
            lines.append("")
            lines.append(f"*{subtitle}*")
        lines.append("")

    filepath.write_text("\n".join(lines), encoding="utf-8")
    logger.info("Design saved to: %s", filepath)
    return filepath
