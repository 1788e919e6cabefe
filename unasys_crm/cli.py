"""
UNASYS CRM - Command Line Interface.

This module provides the main CLI using Typer, with:
- Session commands (login, logout, register, password recovery)
- Company switching
- Client / proposal / task / sales / message commands
- Proper error handling with user-friendly messages
"""

from __future__ import annotations

import functools
import json
from typing import Optional

import sentry_sdk
import typer
from rich.markup import escape

from .context import AppContext, build_context
from .exceptions import (
    AuthenticationError,
    AuthorizationError,
    BackendError,
    CompanyError,
    ConfigurationError,
    CRMException,
    EntityNotFoundError,
    NotAuthenticatedError,
    ValidationError,
    is_retriable_error,
)
from .principal import Principal
from .sentry_init import configure_logging, init_sentry
from .services import (
    create_client,
    create_proposal,
    create_task,
    filter_clients,
    get_client,
    get_dashboard_stats,
    get_proposal,
    get_task,
    list_clients,
    list_messages,
    list_overdue_tasks,
    list_proposals,
    list_sales,
    list_tasks,
    mark_all_as_read,
    mark_as_read,
    sales_summary,
    send_message,
    set_proposal_status,
    set_task_status,
    unread_count,
    update_client,
    update_proposal,
    update_task,
)
from .ui import (
    console,
    print_client_details,
    print_clients_table,
    print_companies_table,
    print_dashboard,
    print_messages_table,
    print_proposal_details,
    print_proposals_table,
    print_sales_summary,
    print_tasks_table,
)
from .validators import parse_date

# Root Typer app for the whole CRM command line interface.
app = typer.Typer(help="UNASYS CRM - Interface en ligne de commande")

# Sub-apps to group commands by domain.
companies_app = typer.Typer(help="Entreprises de l'utilisateur")
clients_app = typer.Typer(help="Gestion des clients")
proposals_app = typer.Typer(help="Gestion des propositions commerciales")
tasks_app = typer.Typer(help="Gestion des tâches")
sales_app = typer.Typer(help="Ventes (propositions approuvées)")
messages_app = typer.Typer(help="Messagerie interne")

# Register sub-apps into the main Typer application.
app.add_typer(companies_app, name="companies")
app.add_typer(clients_app, name="clients")
app.add_typer(proposals_app, name="proposals")
app.add_typer(tasks_app, name="tasks")
app.add_typer(sales_app, name="sales")
app.add_typer(messages_app, name="messages")


@app.callback()
def _setup(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Journalisation détaillée"),
):
    """Configure logging and error tracking before any command."""
    configure_logging("DEBUG" if verbose else None)
    init_sentry()


# =============================================================================
# CONTEXT
# =============================================================================

_context: Optional[AppContext] = None


def get_context() -> AppContext:
    """Build the application context once per process (restores the session)."""
    global _context
    if _context is None:
        _context = build_context()
    return _context


def _require_principal() -> tuple[AppContext, Principal]:
    """
    Return the context and the acting principal.

    Raises:
        NotAuthenticatedError: If not logged in.
        NoCompanySelectedError: If the user has no company.
    """
    ctx = get_context()
    return ctx, ctx.principal()


# =============================================================================
# ERROR HANDLING UTILITIES
# =============================================================================

def _handle_error(exc: Exception) -> None:
    """
    Display a user-friendly message for an exception.

    Args:
        exc: The exception to handle.
    """
    # Messages may contain "[field]" prefixes that Rich would read as markup
    text = escape(str(exc))
    if isinstance(exc, ValidationError):
        console.print(f"[red]Erreur de validation:[/red] {text}")
    elif isinstance(exc, NotAuthenticatedError):
        console.print(f"[yellow]Non connecté:[/yellow] {text}")
    elif isinstance(exc, AuthorizationError):
        console.print(f"[red]Permission refusée:[/red] {text}")
    elif isinstance(exc, AuthenticationError):
        console.print(f"[red]Erreur d'authentification:[/red] {text}")
    elif isinstance(exc, CompanyError):
        console.print(f"[yellow]Entreprise:[/yellow] {text}")
    elif isinstance(exc, EntityNotFoundError):
        console.print(f"[yellow]Non trouvé:[/yellow] {text}")
    elif isinstance(exc, ConfigurationError):
        console.print(f"[red]Configuration:[/red] {text}")
    elif isinstance(exc, BackendError):
        console.print(f"[red]Erreur du service:[/red] {text}")
        if is_retriable_error(exc):
            console.print("[dim]Le service semble indisponible, réessayez plus tard.[/dim]")
    elif isinstance(exc, CRMException):
        console.print(f"[red]Erreur:[/red] {text}")
    else:
        # Unexpected error - log to Sentry
        sentry_sdk.capture_exception(exc)
        console.print(f"[red]Erreur inattendue:[/red] {type(exc).__name__}: {text}")


def handle_errors(func):
    """Turn CRM errors into a message and exit code 1."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except (CRMException, ValueError) as exc:
            _handle_error(exc)
            raise typer.Exit(1)

    return wrapper


def _parse_json_data(data: str, entity_name: str = "données") -> dict:
    """
    Parse a JSON object given on the command line.

    Raises:
        typer.Exit: If the JSON is invalid or not an object.
    """
    try:
        payload = json.loads(data)
    except json.JSONDecodeError as exc:
        console.print(f"[red]JSON invalide pour {entity_name}:[/red] {escape(exc.msg)}")
        raise typer.Exit(1)
    if not isinstance(payload, dict):
        console.print(f"[red]JSON invalide pour {entity_name}:[/red] un objet est attendu")
        raise typer.Exit(1)
    return payload


# =============================================================================
# SESSION COMMANDS
# =============================================================================

@app.command("login")
@handle_errors
def login_cmd(
    email: str = typer.Option(..., "--email", "-e", prompt="Email"),
    password: str = typer.Option(..., "--password", prompt="Mot de passe", hide_input=True),
):
    """Se connecter à l'application."""
    ctx = get_context()
    session = ctx.auth.sign_in(email.strip(), password)
    console.print(f"[green]✓ Connecté en tant que[/green] {session.user.email}")

    company = ctx.company.current_company
    if company is not None:
        console.print(f"[green]Entreprise:[/green] {company.name}")
    else:
        console.print("[yellow]Aucune entreprise associée à ce compte.[/yellow]")


@app.command("logout")
@handle_errors
def logout_cmd():
    """Se déconnecter de l'application."""
    get_context().auth.sign_out()
    console.print("[cyan]✓ Déconnecté[/cyan]")


@app.command("register")
@handle_errors
def register_cmd(
    name: str = typer.Option(..., "--name", prompt="Nom"),
    email: str = typer.Option(..., "--email", "-e", prompt="Email"),
    password: str = typer.Option(
        ..., "--password", prompt="Mot de passe", hide_input=True, confirmation_prompt=True
    ),
):
    """Créer un compte."""
    session = get_context().auth.sign_up(email.strip(), password, name.strip())
    if session is None:
        console.print(
            "[green]✓ Compte créé.[/green] Confirmez votre email avant de vous connecter."
        )
    else:
        console.print(f"[green]✓ Compte créé et connecté:[/green] {session.user.email}")


@app.command("reset-password")
@handle_errors
def reset_password_cmd(email: str):
    """Envoyer un email de récupération du mot de passe."""
    get_context().auth.reset_password(email.strip())
    console.print("[green]✓ Email de récupération envoyé[/green]")


@app.command("whoami")
@handle_errors
def whoami_cmd():
    """Afficher l'utilisateur et l'entreprise courante."""
    ctx = get_context()
    user = ctx.auth.user
    if user is None:
        console.print("[yellow]Non connecté[/yellow]")
        return

    console.print(f"[green]Connecté en tant que:[/green] {user.email}")
    company = ctx.company.current_company
    profile = ctx.company.current_profile
    if company is not None:
        console.print(f"[green]Entreprise:[/green] {company.name}")
    if profile is not None:
        console.print(f"[green]Rôle:[/green] {profile.role}")


@app.command("dashboard")
@handle_errors
def dashboard_cmd():
    """Afficher les indicateurs de l'entreprise courante."""
    ctx, principal = _require_principal()
    stats = get_dashboard_stats(ctx.backend, principal)
    company = ctx.company.current_company
    print_dashboard(stats, company.name if company else "")


# =============================================================================
# COMPANIES COMMANDS
# =============================================================================

@companies_app.command("list")
@handle_errors
def companies_list():
    """Lister les entreprises accessibles."""
    ctx = get_context()
    ctx.auth.require_user()
    companies = ctx.company.refresh_companies()
    if not companies:
        console.print("[yellow]Aucune entreprise trouvée.[/yellow]")
        return
    current = ctx.company.current_company
    print_companies_table(companies, current.id if current else None)


@companies_app.command("switch")
@handle_errors
def companies_switch(company_id: str):
    """Changer d'entreprise courante."""
    ctx = get_context()
    ctx.auth.require_user()
    company = ctx.company.switch_company(company_id)
    console.print(f"[green]✓ Entreprise changée pour[/green] {company.name}")


# =============================================================================
# CLIENTS COMMANDS
# =============================================================================

@clients_app.command("list")
@handle_errors
def clients_list(
    search: str = typer.Option("", "--search", "-s", help="Nom, email ou téléphone"),
    status: str = typer.Option("all", "--status", help="active / inactive / prospect"),
    client_type: str = typer.Option("all", "--type", help="individual / company"),
):
    """Lister les clients de l'entreprise courante."""
    ctx, principal = _require_principal()
    clients = filter_clients(
        list_clients(ctx.backend, principal), search, status, client_type
    )
    if not clients:
        console.print("[yellow]Aucun client trouvé.[/yellow]")
        return
    print_clients_table(clients)


@clients_app.command("show")
@handle_errors
def clients_show(client_id: str):
    """Afficher le détail d'un client."""
    ctx, principal = _require_principal()
    print_client_details(get_client(ctx.backend, principal, client_id))


@clients_app.command("create")
@handle_errors
def clients_create(data: str):
    """Créer un client (JSON: name, type, email, phone, ...)."""
    ctx, principal = _require_principal()
    payload = _parse_json_data(data, "client")
    client = create_client(ctx.backend, principal, payload)
    console.print(f"[green]✓ Client créé:[/green] ID={client.id}, {client.name}")


@clients_app.command("update")
@handle_errors
def clients_update(client_id: str, data: str):
    """Modifier un client existant."""
    ctx, principal = _require_principal()
    payload = _parse_json_data(data, "client")
    client = update_client(ctx.backend, principal, client_id, payload)
    console.print(f"[green]✓ Client mis à jour:[/green] ID={client.id}")


# =============================================================================
# PROPOSALS COMMANDS
# =============================================================================

@proposals_app.command("list")
@handle_errors
def proposals_list(
    status: Optional[str] = typer.Option(None, "--status", help="Filtrer par statut"),
):
    """Lister les propositions."""
    ctx, principal = _require_principal()
    proposals = list_proposals(ctx.backend, principal, status=status)
    if not proposals:
        console.print("[yellow]Aucune proposition trouvée.[/yellow]")
        return
    print_proposals_table(proposals)


@proposals_app.command("show")
@handle_errors
def proposals_show(proposal_id: str):
    """Afficher une proposition et ses lignes."""
    ctx, principal = _require_principal()
    print_proposal_details(get_proposal(ctx.backend, principal, proposal_id))


@proposals_app.command("create")
@handle_errors
def proposals_create(data: str):
    """Créer une proposition (JSON: client_id, title, items, discount, ...)."""
    ctx, principal = _require_principal()
    payload = _parse_json_data(data, "proposition")
    proposal = create_proposal(ctx.backend, principal, payload)
    console.print(
        f"[green]✓ Proposition créée:[/green] ID={proposal.id}, "
        f"total={proposal.total_amount:.2f}"
    )


@proposals_app.command("update")
@handle_errors
def proposals_update(proposal_id: str, data: str):
    """Modifier une proposition existante."""
    ctx, principal = _require_principal()
    payload = _parse_json_data(data, "proposition")
    proposal = update_proposal(ctx.backend, principal, proposal_id, payload)
    console.print(f"[green]✓ Proposition mise à jour:[/green] ID={proposal.id}")


@proposals_app.command("status")
@handle_errors
def proposals_status(proposal_id: str, status: str):
    """Changer le statut d'une proposition."""
    ctx, principal = _require_principal()
    proposal = set_proposal_status(ctx.backend, principal, proposal_id, status)
    console.print(f"[green]✓ Statut:[/green] {proposal.status}")


# =============================================================================
# TASKS COMMANDS
# =============================================================================

@tasks_app.command("list")
@handle_errors
def tasks_list(
    status: Optional[str] = typer.Option(None, "--status"),
    priority: Optional[str] = typer.Option(None, "--priority"),
    mine: bool = typer.Option(False, "--mine", help="Seulement mes tâches"),
):
    """Lister les tâches."""
    ctx, principal = _require_principal()
    tasks = list_tasks(
        ctx.backend,
        principal,
        status=status,
        priority=priority,
        assigned_to=principal.user_id if mine else None,
    )
    if not tasks:
        console.print("[yellow]Aucune tâche trouvée.[/yellow]")
        return
    print_tasks_table(tasks)


@tasks_app.command("overdue")
@handle_errors
def tasks_overdue():
    """Lister les tâches en retard."""
    ctx, principal = _require_principal()
    tasks = list_overdue_tasks(ctx.backend, principal)
    if not tasks:
        console.print("[green]Aucune tâche en retard.[/green]")
        return
    print_tasks_table(tasks, title="Tâches en retard")


@tasks_app.command("show")
@handle_errors
def tasks_show(task_id: str):
    """Afficher une tâche."""
    ctx, principal = _require_principal()
    print_tasks_table([get_task(ctx.backend, principal, task_id)], title="Tâche")


@tasks_app.command("create")
@handle_errors
def tasks_create(data: str):
    """Créer une tâche (JSON: title, priority, due_date, assigned_to, ...)."""
    ctx, principal = _require_principal()
    payload = _parse_json_data(data, "tâche")
    task = create_task(ctx.backend, principal, payload)
    console.print(f"[green]✓ Tâche créée:[/green] ID={task.id}, {task.title}")


@tasks_app.command("update")
@handle_errors
def tasks_update(task_id: str, data: str):
    """Modifier une tâche existante."""
    ctx, principal = _require_principal()
    payload = _parse_json_data(data, "tâche")
    task = update_task(ctx.backend, principal, task_id, payload)
    console.print(f"[green]✓ Tâche mise à jour:[/green] ID={task.id}")


@tasks_app.command("status")
@handle_errors
def tasks_status(task_id: str, status: str):
    """Changer le statut d'une tâche."""
    ctx, principal = _require_principal()
    task = set_task_status(ctx.backend, principal, task_id, status)
    console.print(f"[green]✓ Statut:[/green] {task.status}")


# =============================================================================
# SALES COMMANDS
# =============================================================================

def _parse_since(since: Optional[str]):
    return parse_date(since) if since else None


@sales_app.command("list")
@handle_errors
def sales_list(
    since: Optional[str] = typer.Option(None, "--since", help="Date de début"),
):
    """Lister les ventes (propositions approuvées)."""
    ctx, principal = _require_principal()
    sales = list_sales(ctx.backend, principal, _parse_since(since))
    if not sales:
        console.print("[yellow]Aucune vente trouvée.[/yellow]")
        return
    print_proposals_table(sales, title="Ventes")


@sales_app.command("summary")
@handle_errors
def sales_summary_cmd(
    since: Optional[str] = typer.Option(None, "--since", help="Date de début"),
):
    """Afficher le chiffre d'affaires."""
    ctx, principal = _require_principal()
    print_sales_summary(sales_summary(ctx.backend, principal, _parse_since(since)))


# =============================================================================
# MESSAGES COMMANDS
# =============================================================================

@messages_app.command("list")
@handle_errors
def messages_list(
    unread: bool = typer.Option(False, "--unread", help="Seulement les non lus"),
):
    """Lister mes messages."""
    ctx, principal = _require_principal()
    messages = list_messages(ctx.backend, principal, unread_only=unread)
    if not messages:
        console.print("[yellow]Aucun message.[/yellow]")
        return
    print_messages_table(messages)
    console.print(f"Non lus: {unread_count(ctx.backend, principal)}")


@messages_app.command("send")
@handle_errors
def messages_send(
    user_id: str,
    title: str = typer.Option(..., "--title", "-t"),
    message: str = typer.Option(..., "--message", "-m"),
    msg_type: str = typer.Option("info", "--type", help="info / success / warning / error"),
):
    """Envoyer un message à un membre de l'entreprise."""
    ctx, principal = _require_principal()
    sent = send_message(ctx.backend, principal, user_id, title, message, type=msg_type)
    console.print(f"[green]✓ Message envoyé:[/green] ID={sent.id}")


@messages_app.command("read")
@handle_errors
def messages_read(message_id: str):
    """Marquer un message comme lu."""
    ctx, principal = _require_principal()
    mark_as_read(ctx.backend, principal, message_id)
    console.print("[green]✓ Message lu[/green]")


@messages_app.command("read-all")
@handle_errors
def messages_read_all():
    """Marquer tous les messages comme lus."""
    ctx, principal = _require_principal()
    changed = mark_all_as_read(ctx.backend, principal)
    console.print(f"[green]✓ {changed} message(s) marqué(s) comme lu(s)[/green]")


def main():
    """Entry point for: python -m unasys_crm.cli"""
    app()


if __name__ == "__main__":
    main()
