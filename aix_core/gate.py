# aix_core/gate.py
from __future__ import annotations

from typing import Callable, Optional

from rich.console import Console
from rich.table import Table
from rich.text import Text

from aix_brain import CommandProposal
from security_rules import MAX_LEVEL, RiskVerdict

CONFIRM_PROMPT = "Execute this command? (y/N): "
AFFIRMATIVE = {"y", "yes"}
BLOCKED_WARNING = (
    "Warning: this command was rated high risk and was NOT executed. "
    "Review it manually and run it yourself in a shell if you really mean it."
)


def danger_line(verdict: RiskVerdict) -> Text:
    return Text(f"Danger Level: {verdict.final_level} (1~{MAX_LEVEL})", style=verdict.style)


def arguments_table(proposal: CommandProposal) -> Optional[Table]:
    if not proposal.arguments:
        return None
    table = Table(show_header=True, header_style="bold", box=None, pad_edge=False)
    table.add_column("Argument", style="bold", no_wrap=True)
    table.add_column("Reason")
    for note in proposal.arguments:
        table.add_row(Text(note.arg), Text(note.reason))
    return table


def render_proposal(console: Console, proposal: CommandProposal, verdict: RiskVerdict) -> None:
    """Command, explanation, per-argument rationale and the coloured risk line."""
    console.print(Text.assemble(("Generated command: ", "bold"), (proposal.command, "bold")))
    console.print()
    if proposal.explanation:
        console.print("Explanation:")
        console.print(Text(proposal.explanation))
        console.print()
    table = arguments_table(proposal)
    if table is not None:
        console.print("Arguments:")
        console.print(table)
        console.print()
    console.print(danger_line(verdict))
    if verdict.blocked:
        console.print(Text(BLOCKED_WARNING, style="red"))
    console.print()


def confirm(
    proposal: CommandProposal,
    verdict: RiskVerdict,
    auto_approve: bool = False,
    console: Optional[Console] = None,
    ask: Optional[Callable[[str], str]] = None,
) -> bool:
    """
    Consent gate. Blocked verdicts never pass, --yes skips the question,
    otherwise one line is read: only y/yes (any case) approves, anything
    else declines without re-asking.
    """
    if verdict.blocked:
        return False
    if auto_approve:
        return True
    console = console or Console()
    ask = ask or console.input
    try:
        answer = ask(CONFIRM_PROMPT)
    except EOFError:
        return False
    # surrounding whitespace is ignored; "ye s" or "yep" still decline
    return (answer or "").strip().lower() in AFFIRMATIVE
