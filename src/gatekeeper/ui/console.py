"""Rich-powered console output for PR Gatekeeper."""

from __future__ import annotations

from rich.console import Console as RichConsole
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from gatekeeper import __version__
from gatekeeper.github.renderer import action_badge
from gatekeeper.models import DecisionAction, Finding, Severity
from gatekeeper.pipeline import AnalysisResult
from gatekeeper.policy.models import PolicyResult, PolicyStatus

_ACTION_COLORS = {
    DecisionAction.AUTO_APPROVE: "green",
    DecisionAction.AUTO_APPROVE_COMMENT: "green",
    DecisionAction.REQUIRE_REVIEW: "yellow",
    DecisionAction.REQUIRE_SENIOR_REVIEW: "dark_orange",
    DecisionAction.BLOCK: "red",
}

_SEVERITY_COLORS = {
    Severity.LOW: "dim",
    Severity.MEDIUM: "yellow",
    Severity.HIGH: "dark_orange",
    Severity.CRITICAL: "bold red",
}

_STATUS_COLORS = {
    PolicyStatus.PASSED: "green",
    PolicyStatus.WARNING: "yellow",
    PolicyStatus.FAILED: "red",
    PolicyStatus.SKIPPED: "dim",
}


class Console:
    """Terminal output for PR Gatekeeper using Rich."""

    def __init__(self, **kwargs) -> None:
        self.console = RichConsole(**kwargs)

    def banner(self) -> None:
        """Show the PR Gatekeeper banner."""
        self.console.print(
            Panel(
                f"[bold cyan]PR Gatekeeper[/bold cyan] [dim]v{__version__}[/dim]\n"
                "[dim]Risk-based merge decisions for pull requests[/dim]",
                border_style="cyan",
                padding=(1, 2),
            )
        )

    def success(self, message: str) -> None:
        self.console.print(f"[green]✓[/green] {message}")

    def error(self, message: str) -> None:
        self.console.print(f"[red]✗[/red] {message}")

    def warning(self, message: str) -> None:
        self.console.print(f"[yellow]![/yellow] {message}")

    def info(self, message: str) -> None:
        self.console.print(f"[blue]i[/blue] {message}")

    def markdown(self, text: str) -> None:
        """Render markdown text."""
        self.console.print(Markdown(text))

    def show_decision(self, result: AnalysisResult) -> None:
        """Display the decision panel, factor table, findings and policies."""
        decision = result.decision
        color = _ACTION_COLORS[decision.action]
        emoji, label = action_badge(decision.action)
        pr = result.pr

        self.console.print(
            Panel(
                f"[bold]PR:[/bold] #{pr.number} {escape(pr.title)}\n"
                f"[bold]Decision:[/bold] [{color}]{emoji} {label}[/{color}]\n"
                f"[bold]Confidence:[/bold] {decision.confidence:.1%}\n"
                f"[bold]Blast Radius:[/bold] {result.blast_radius.score}/100\n"
                f"[dim]{decision.reasoning.summary}[/dim]",
                title="[bold]PR Gatekeeper[/bold]",
                border_style=color,
            )
        )

        table = Table(title="Decision Factors", border_style="cyan")
        table.add_column("Factor", style="bold")
        table.add_column("Impact")
        table.add_column("Score", justify="right", style="cyan")
        table.add_column("Details", style="dim")
        for factor in decision.reasoning.factors:
            table.add_row(
                factor.factor, factor.impact, f"{factor.score:.2f}", escape(factor.details)
            )
        self.console.print(table)

        if result.security_findings:
            self.show_findings(result.security_findings)
        self.show_policies(result.policy_results)

        if decision.recommendations:
            self.console.print("\n[bold]Recommendations:[/bold]")
            for rec in decision.recommendations:
                self.console.print(f"  [yellow]→[/yellow] {rec}")

        if decision.next_steps:
            self.console.print("\n[bold]Next steps:[/bold]")
            for i, step in enumerate(decision.next_steps, start=1):
                self.console.print(f"  {i}. {step}")

    def show_findings(self, findings: list[Finding]) -> None:
        table = Table(title="Security Findings", border_style="red")
        table.add_column("Severity")
        table.add_column("Type")
        table.add_column("Location", style="cyan")
        table.add_column("Snippet", style="dim")
        for f in findings:
            style = _SEVERITY_COLORS[f.severity]
            table.add_row(
                f"[{style}]{f.severity.value}[/{style}]",
                f.type.value,
                escape(f.location),
                escape(f.snippet),
            )
        self.console.print(table)

    def show_policies(self, results: list[PolicyResult]) -> None:
        applicable = [r for r in results if r.status != PolicyStatus.SKIPPED]
        if not applicable:
            return
        self.console.print("\n[bold]Policies:[/bold]")
        for r in applicable:
            color = _STATUS_COLORS[r.status]
            self.console.print(f"  [{color}]{r.status.value:<8}[/{color}] {escape(r.name)}")
