"""Rich terminal renderer for component reports.

Color scheme
------------
- green     : ok / match / locked
- red       : hard failures (size, hash, html, download) / mismatch
- yellow    : warnings / placeholder / drift
- dim       : skipped
"""

from __future__ import annotations

from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from manifestwarden.core.gpg_validator import ComputedFingerprint
from manifestwarden.models.reports import (
    DriftReport,
    KeyCheck,
    KeyOutcome,
    LengthProbe,
    LockPlan,
    LockStatus,
    PolicyReport,
    VerificationResult,
    VerificationSummary,
)


# ---------------------------------------------------------------------------
# Outcome -> Rich markup
# ---------------------------------------------------------------------------

_RESULT_ICONS: dict[VerificationResult, str] = {
    VerificationResult.OK: "[green]OK[/green]",
    VerificationResult.SIZE_MISMATCH: "[bold red]SIZE-MISMATCH[/bold red]",
    VerificationResult.HASH_MISMATCH: "[bold red]HASH-MISMATCH[/bold red]",
    VerificationResult.HTML_ERROR: "[bold red]HTML-ERROR[/bold red]",
    VerificationResult.DOWNLOAD_FAIL: "[bold red]DOWNLOAD-FAIL[/bold red]",
    VerificationResult.SKIPPED: "[dim]SKIPPED[/dim]",
}

_KEY_ICONS: dict[KeyOutcome, str] = {
    KeyOutcome.MATCH: "[green]MATCH[/green]",
    KeyOutcome.MISMATCH: "[bold red]MISMATCH[/bold red]",
    KeyOutcome.PLACEHOLDER: "[yellow]PLACEHOLDER[/yellow]",
    KeyOutcome.ERROR: "[bold red]ERROR[/bold red]",
    KeyOutcome.SKIPPED: "[dim]SKIPPED[/dim]",
}

_LOCK_ICONS: dict[LockStatus, str] = {
    LockStatus.LOCKED: "[green]LOCKED[/green]",
    LockStatus.FAILED: "[bold red]FAILED[/bold red]",
    LockStatus.SKIPPED: "[dim]SKIPPED[/dim]",
}

_POLICY_STATES: dict[str, str] = {
    "ok": "[green]ok[/green]",
    "exempt": "[dim]exempt[/dim]",
    "missing": "[yellow]missing[/yellow]",
    "malformed": "[bold red]malformed[/bold red]",
}


def _short(digest: str, width: int = 16) -> str:
    return f"{digest[:width]}..." if len(digest) > width else (digest or "[dim]-[/dim]")


class ReportRenderer:
    """Renders component reports as Rich terminal output.

    Parameters
    ----------
    console:
        Rich Console instance.  A new one is created if not provided.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    # ------------------------------------------------------------------
    # Archive verification
    # ------------------------------------------------------------------

    def render_verification(self, summary: VerificationSummary) -> Panel:
        table = Table(show_header=True, header_style="bold cyan", expand=True)
        table.add_column("Archive", min_width=20)
        table.add_column("Result", justify="center", min_width=14)
        table.add_column("Expected", justify="right")
        table.add_column("Actual", justify="right")
        table.add_column("Details", min_width=20)

        for report in summary.artifacts:
            details: list[str] = []
            if report.detail:
                details.append(report.detail)
            if report.timed_out:
                details.append("[red]timed out[/red]")
            details.extend(f"[yellow]{w}[/yellow]" for w in report.warnings)
            table.add_row(
                report.name,
                _RESULT_ICONS.get(report.result, report.result.value),
                "" if report.expected_length is None else str(report.expected_length),
                "" if report.actual_length is None else str(report.actual_length),
                "\n".join(details) if details else "[dim]-[/dim]",
            )

        failures = summary.failures
        footer = "  |  ".join([
            f"[bold]Mode:[/bold] {summary.mode.value}",
            f"[bold]Checked:[/bold] {summary.count}",
            f"[bold]Failures:[/bold] " + (f"[bold red]{failures}[/bold red]" if failures else "0"),
            f"[bold]Warnings:[/bold] " + (f"[yellow]{summary.warnings}[/yellow]" if summary.warnings else "0"),
            f"[bold]Duration:[/bold] {summary.duration_ms} ms",
        ] + (["[yellow]cancelled[/yellow]"] if summary.cancelled else []))

        return Panel(
            Group(table, Text(""), Text.from_markup(footer)),
            title="[bold]Archive Verification[/bold]",
            border_style="red" if failures else ("yellow" if summary.warnings else "green"),
            padding=(1, 2),
        )

    def render_lengths(self, probes: list[LengthProbe]) -> Table:
        table = Table(title="Remote Content-Length", header_style="bold cyan")
        table.add_column("Archive", style="cyan")
        table.add_column("content_length", justify="right")
        table.add_column("URL", style="dim", overflow="fold")
        for p in probes:
            if p.error:
                length = f"[red]{p.error}[/red]"
            elif p.content_length is None:
                length = "[yellow]unknown[/yellow]"
            else:
                length = str(p.content_length)
            table.add_row(p.name, length, p.url)
        return table

    # ------------------------------------------------------------------
    # Policy
    # ------------------------------------------------------------------

    def render_policy(self, report: PolicyReport, *, strict: bool = False) -> Panel:
        table = Table(show_header=True, header_style="bold cyan", expand=True)
        table.add_column("Section", style="dim")
        table.add_column("Entry", min_width=20)
        table.add_column("State", justify="center")
        for entry in report.entries:
            table.add_row(entry.section, entry.name, _POLICY_STATES.get(entry.state, entry.state))

        if report.passed:
            status = "[green]pass[/green]"
        elif strict:
            status = f"[bold red]FAIL[/bold red] ({len(report.findings)} violation(s))"
        else:
            status = f"[yellow]pass with {len(report.findings)} finding(s)[/yellow]"
        return Panel(
            Group(table, Text(""), Text.from_markup(f"[bold]Policy:[/bold] {status}")),
            title="[bold]Checksum Policy[/bold]",
            border_style="green" if report.passed else ("red" if strict else "yellow"),
            padding=(1, 2),
        )

    # ------------------------------------------------------------------
    # GPG keys
    # ------------------------------------------------------------------

    def render_keys(self, checks: list[KeyCheck]) -> Table:
        table = Table(title="GPG Key Pins", header_style="bold cyan")
        table.add_column("Key", style="cyan")
        table.add_column("Outcome", justify="center")
        table.add_column("Expected")
        table.add_column("Actual")
        table.add_column("Details")
        for c in checks:
            table.add_row(
                c.name,
                _KEY_ICONS.get(c.outcome, c.outcome.value),
                c.expected or "[dim]-[/dim]",
                c.actual or "[dim]-[/dim]",
                c.detail or "[dim]-[/dim]",
            )
        return table

    def render_fingerprints(self, results: list[ComputedFingerprint]) -> Table:
        table = Table(title="Computed Fingerprints", header_style="bold cyan")
        table.add_column("URL", overflow="fold")
        table.add_column("Fingerprint")
        for r in results:
            table.add_row(r.url, r.fingerprint or f"[red]{r.error}[/red]")
        return table

    # ------------------------------------------------------------------
    # Drift / lock
    # ------------------------------------------------------------------

    def render_drift(self, report: DriftReport) -> Panel:
        if not report.drift:
            return Panel("[green]No drift detected.[/green]", title="[bold]Drift[/bold]", border_style="green")
        table = Table(show_header=True, header_style="bold cyan", expand=True)
        table.add_column("Kind", style="yellow")
        table.add_column("Archive")
        table.add_column("Baseline")
        table.add_column("Current")
        for e in report.events:
            table.add_row(
                e.kind.value,
                e.name,
                _short(str(e.baseline)) if e.baseline is not None else "[dim]-[/dim]",
                _short(str(e.current)) if e.current is not None else "[dim]-[/dim]",
            )
        return Panel(
            table,
            title=f"[bold]Drift[/bold] ({len(report.events)} event(s))",
            border_style="yellow",
            padding=(1, 2),
        )

    def render_lock(self, plan: LockPlan) -> Table:
        table = Table(title="Checksum Locking", header_style="bold cyan")
        table.add_column("Section", style="dim")
        table.add_column("Entry", style="cyan")
        table.add_column("Status", justify="center")
        table.add_column("sha256 / detail", overflow="fold")
        for o in plan.outcomes:
            table.add_row(
                o.section, o.name, _LOCK_ICONS.get(o.status, o.status.value), o.sha256 or o.detail,
            )
        return table

    # ------------------------------------------------------------------
    # Standalone print
    # ------------------------------------------------------------------

    def print(self, renderable: Panel | Table) -> None:
        self.console.print(renderable)

    def print_chain_verification(self, count: int, valid: bool, detail: str = "") -> None:
        """Print a ledger verification result."""
        if valid:
            self.console.print(f"[green]OK chain intact ({count} record(s)).[/green]")
        else:
            self.console.print(f"[bold red]FAIL ledger chain is BROKEN:[/bold red] {detail}")
