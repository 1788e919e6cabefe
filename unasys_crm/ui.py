"""
Display helpers for the CLI.

This module provides:
- Table display functions for every entity
- Date and amount formatting for French-speaking users
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Iterable, Optional

from rich.console import Console
from rich.table import Table

from .models import Company, DashboardStats, SalesSummary

console = Console()

STATUS_LABELS = {
    # clients
    "active": "Actif",
    "inactive": "Inactif",
    "prospect": "Prospect",
    # proposals
    "draft": "Brouillon",
    "sent": "Envoyée",
    "viewed": "Consultée",
    "approved": "Approuvée",
    "rejected": "Refusée",
    "expired": "Expirée",
    # tasks
    "todo": "À faire",
    "in_progress": "En cours",
    "review": "En revue",
    "done": "Terminée",
}

PRIORITY_STYLES = {
    "low": "dim",
    "medium": "",
    "high": "yellow",
    "urgent": "bold red",
}


def _format_datetime_display(value: Any) -> str:
    """Format a date or datetime as DD/MM/YYYY (HH:MM for datetimes)."""
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.strftime("%d/%m/%Y %H:%M")
    if isinstance(value, date):
        return value.strftime("%d/%m/%Y")
    return str(value)


def _format_amount(value: Optional[float]) -> str:
    return f"R$ {value or 0:,.2f}"


def _truncate(text: Optional[str], size: int = 50) -> str:
    if not text:
        return ""
    return text[:size] + "..." if len(text) > size else text


def _status(value: str) -> str:
    return STATUS_LABELS.get(value, value)


def print_companies_table(companies: Iterable[Company], current_id: Optional[str]) -> None:
    """Display the companies of the user, marking the current one."""
    table = Table(title="Entreprises", expand=True)

    table.add_column("", width=1)
    table.add_column("ID", overflow="fold")
    table.add_column("Nom", overflow="fold")
    table.add_column("Email", overflow="fold")
    table.add_column("Plan")
    table.add_column("Statut")

    for c in companies:
        table.add_row(
            "*" if c.id == current_id else "",
            c.id,
            c.name,
            c.email,
            c.plan,
            c.status,
        )

    console.print(table)


def print_clients_table(clients: Iterable[Any]) -> None:
    table = Table(title="Clients", expand=True)

    table.add_column("ID", overflow="fold")
    table.add_column("Nom", overflow="fold")
    table.add_column("Type")
    table.add_column("Email", overflow="fold")
    table.add_column("Téléphone", overflow="fold")
    table.add_column("Ville", overflow="fold")
    table.add_column("Statut")
    table.add_column("Créé le", overflow="fold")

    for c in clients:
        table.add_row(
            c.id,
            c.name,
            "Entreprise" if c.type == "company" else "Particulier",
            c.email or "",
            c.phone or "",
            " / ".join(part for part in (c.city, c.state) if part),
            _status(c.status),
            _format_datetime_display(c.created_at),
        )

    console.print(table)


def print_client_details(client: Any) -> None:
    """Display every field of one client."""
    table = Table(title=f"Client: {client.name}", show_header=False, expand=True)
    table.add_column("Champ", style="bold")
    table.add_column("Valeur", overflow="fold")

    for label, value in [
        ("ID", client.id),
        ("Type", "Entreprise" if client.type == "company" else "Particulier"),
        ("Statut", _status(client.status)),
        ("Email", client.email),
        ("Téléphone", client.phone),
        ("Document", client.document),
        ("Adresse", client.address),
        ("Ville", client.city),
        ("État", client.state),
        ("Code postal", client.zip_code),
        ("Catégorie", client.category),
        ("Notes", client.notes),
        ("Créé le", _format_datetime_display(client.created_at)),
        ("Modifié le", _format_datetime_display(client.updated_at)),
    ]:
        table.add_row(label, value or "")

    console.print(table)


def print_proposals_table(proposals: Iterable[Any], title: str = "Propositions") -> None:
    table = Table(title=title, expand=True)

    table.add_column("ID", overflow="fold")
    table.add_column("Titre", overflow="fold")
    table.add_column("Client", overflow="fold")
    table.add_column("Total", justify="right")
    table.add_column("Statut")
    table.add_column("Valide jusqu'au")
    table.add_column("Créée le")

    for p in proposals:
        table.add_row(
            p.id,
            p.title,
            p.client.name if p.client is not None else p.client_id,
            _format_amount(p.total_amount),
            _status(p.status),
            _format_datetime_display(p.valid_until),
            _format_datetime_display(p.created_at),
        )

    console.print(table)


def print_proposal_details(proposal: Any) -> None:
    """Display a proposal with its priced lines."""
    console.print(f"[bold]{proposal.title}[/bold] ({_status(proposal.status)})")
    if proposal.client is not None:
        console.print(f"Client: {proposal.client.name}")
    if proposal.description:
        console.print(proposal.description)

    table = Table(title="Lignes", expand=True)
    table.add_column("Description", overflow="fold")
    table.add_column("Qté", justify="right")
    table.add_column("Prix unitaire", justify="right")
    table.add_column("Total", justify="right")

    for item in proposal.items:
        table.add_row(
            item.description,
            f"{item.quantity:g}",
            _format_amount(item.unit_price),
            _format_amount(item.total),
        )

    console.print(table)
    if proposal.discount:
        console.print(f"Remise: {_format_amount(proposal.discount)}")
    console.print(f"[bold]Total: {_format_amount(proposal.total_amount)}[/bold]")


def print_tasks_table(tasks: Iterable[Any], title: str = "Tâches") -> None:
    table = Table(title=title, expand=True)

    table.add_column("ID", overflow="fold")
    table.add_column("Titre", overflow="fold")
    table.add_column("Statut")
    table.add_column("Priorité")
    table.add_column("Échéance")
    table.add_column("Assignée à", overflow="fold")
    table.add_column("Description", overflow="fold")

    for t in tasks:
        style = PRIORITY_STYLES.get(t.priority, "")
        priority = f"[{style}]{t.priority}[/{style}]" if style else t.priority
        table.add_row(
            t.id,
            t.title,
            _status(t.status),
            priority,
            _format_datetime_display(t.due_date),
            t.assigned_to or "",
            _truncate(t.description),
        )

    console.print(table)


def print_messages_table(messages: Iterable[Any]) -> None:
    table = Table(title="Messages", expand=True)

    table.add_column("", width=1)
    table.add_column("ID", overflow="fold")
    table.add_column("Type")
    table.add_column("Titre", overflow="fold")
    table.add_column("Message", overflow="fold")
    table.add_column("Reçu le")

    for m in messages:
        table.add_row(
            "" if m.is_read else "•",
            m.id,
            m.type,
            m.title,
            _truncate(m.message, 80),
            _format_datetime_display(m.created_at),
        )

    console.print(table)


def print_dashboard(stats: DashboardStats, company_name: str = "") -> None:
    table = Table(title=f"Tableau de bord {company_name}".strip(), show_header=False)
    table.add_column("Indicateur", style="bold")
    table.add_column("Valeur", justify="right")

    table.add_row("Clients", str(stats.total_clients))
    table.add_row("Clients actifs", str(stats.active_clients))
    table.add_row("Propositions", str(stats.total_proposals))
    table.add_row("Propositions approuvées", str(stats.approved_proposals))
    table.add_row("Tâches", str(stats.total_tasks))
    table.add_row("Tâches terminées", str(stats.completed_tasks))
    table.add_row("Tâches en attente", str(stats.pending_tasks))
    table.add_row("Tâches en retard", f"[red]{stats.overdue_tasks}[/red]"
                  if stats.overdue_tasks else "0")

    console.print(table)


def print_sales_summary(summary: SalesSummary) -> None:
    console.print(f"Ventes: [bold]{summary.count}[/bold]")
    console.print(f"Chiffre d'affaires: [bold]{_format_amount(summary.revenue)}[/bold]")
    console.print(f"Ticket moyen: [bold]{_format_amount(summary.average_ticket)}[/bold]")
