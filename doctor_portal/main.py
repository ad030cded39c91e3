"""Doctor portal console for reviewing prescription requests."""

import logging
import sys

from rich.console import Console
from rich.status import Status
from rich.table import Table

from doctor_portal.auth_actions import register_doctor, sign_in, sign_out
from doctor_portal.config import configure_logging, load_settings
from doctor_portal.patient_actions import list_patients
from doctor_portal.portal_context import PortalContext, create_context
from doctor_portal.prescription_actions import (
    approve_request,
    deny_request,
    get_dashboard_summary,
    list_approved_requests,
    list_denied_requests,
    list_pending_requests,
    request_additional_info,
)
from doctor_portal.profile_actions import get_doctor_profile
from doctor_portal.results import ActionResult, ResolvedRequest

console = Console()
logger = logging.getLogger(__name__)

HELP_TEXT = """\
[bold]Commands[/bold]
  register                   Create a doctor account
  login <email>              Sign in
  logout                     Sign out
  dashboard                  Pending requests and counts
  pending | approved | denied
                             List requests by status
  approve <id> \\[notes]       Approve a request and issue the prescription
  deny <id> <reason>         Deny a request
  info <id> <message>        Ask the patient for more information
  patients \\[search]          List patients
  profile                    Show your doctor profile
  help                       Show this help
  quit                       Exit
"""

REGISTRATION_PROMPTS = [
    ("email", "Email"),
    ("password", "Password"),
    ("firstName", "First name"),
    ("lastName", "Last name"),
    ("title", "Title (optional)"),
    ("specialty", "Specialty (optional)"),
    ("licenseNumber", "License number"),
    ("phoneNumber", "Phone number"),
]

ADDRESS_PROMPTS = [
    ("street", "Street"),
    ("city", "City"),
    ("postalCode", "Postal code"),
    ("country", "Country"),
]


# Rendering

def show_error(result: ActionResult) -> None:
    console.print(f"[bold red]Error:[/bold red] {result.error}")
    for field_name, message in (result.field_errors or {}).items():
        console.print(f"  [red]{field_name}[/red]: {message}")


def requests_table(title: str, requests: list[ResolvedRequest], decided_column: str | None = None) -> Table:
    table = Table(title=title)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Patient")
    table.add_column("Age", justify="right")
    table.add_column("Status")
    table.add_column("Requested")
    table.add_column("Products")
    if decided_column:
        table.add_column(decided_column)

    for request in requests:
        products = ", ".join(f"{p.name} {p.quantity:g}{p.unit}" for p in request.products)
        row = [
            request.id,
            request.patient_name,
            str(request.age) if request.age is not None else "-",
            request.status,
            (request.request_date or "")[:10],
            products or "-",
        ]
        if decided_column == "Approved by":
            row.append(request.approved_by or "-")
        elif decided_column == "Denied by":
            row.append(request.denied_by or "-")
        table.add_row(*row)
    return table


def show_requests(title: str, result: ActionResult, decided_column: str | None = None) -> None:
    if not result.success:
        show_error(result)
        return
    if not result.data:
        console.print(f"[dim]No {title.lower()}.[/dim]")
        return
    console.print(requests_table(title, result.data, decided_column))


# Command handlers

def handle_register(ctx: PortalContext, args: str) -> None:
    form = {}
    for key, label in REGISTRATION_PROMPTS:
        form[key] = console.input(f"{label}: ", password=(key == "password")).strip()
    form["address"] = {key: console.input(f"{label}: ").strip() for key, label in ADDRESS_PROMPTS}

    result = register_doctor(ctx, form)
    if result.success:
        console.print("[bold green]Registration received.[/bold green] Your account will be activated after review.")
    else:
        show_error(result)


def handle_login(ctx: PortalContext, args: str) -> None:
    email = args.strip() or console.input("Email: ").strip()
    password = console.input("Password: ", password=True)
    result = sign_in(ctx, email, password)
    if result.success:
        console.print(f"[bold green]Signed in as {result.user.email}[/bold green]")
    elif result.not_verified:
        console.print(f"[bold yellow]{result.error}[/bold yellow]")
    else:
        show_error(result)


def handle_logout(ctx: PortalContext, args: str) -> None:
    result = sign_out(ctx)
    if result.success:
        console.print("Signed out.")
    else:
        show_error(result)


def handle_dashboard(ctx: PortalContext, args: str) -> None:
    with Status("Loading dashboard...", console=console, spinner="dots"):
        result = get_dashboard_summary(ctx)
    if not result.success:
        show_error(result)
        return
    summary = result.data
    console.print(
        f"[bold]Pending:[/bold] {summary.pending_count}   "
        f"[bold]Approved:[/bold] {summary.approved_count}   "
        f"[bold]Patients:[/bold] {summary.patient_count}"
    )
    if summary.pending_requests:
        console.print(requests_table("Pending requests", summary.pending_requests))


def handle_pending(ctx: PortalContext, args: str) -> None:
    show_requests("Pending requests", list_pending_requests(ctx))


def handle_approved(ctx: PortalContext, args: str) -> None:
    show_requests("Approved requests", list_approved_requests(ctx), "Approved by")


def handle_denied(ctx: PortalContext, args: str) -> None:
    show_requests("Denied requests", list_denied_requests(ctx), "Denied by")


def handle_approve(ctx: PortalContext, args: str) -> None:
    request_id, notes = _split_id(args)
    if not request_id:
        console.print("Usage: approve <id> \\[notes]")
        return
    result = approve_request(ctx, request_id, notes)
    if result.success:
        console.print(f"[bold green]Approved.[/bold green] Prescription {result.data['prescriptionId']}")
    else:
        show_error(result)


def handle_deny(ctx: PortalContext, args: str) -> None:
    request_id, reason = _split_id(args)
    if not request_id:
        console.print("Usage: deny <id> <reason>")
        return
    result = deny_request(ctx, request_id, reason)
    if result.success:
        console.print("[bold]Request denied.[/bold]")
    else:
        show_error(result)


def handle_info(ctx: PortalContext, args: str) -> None:
    request_id, message = _split_id(args)
    if not request_id:
        console.print("Usage: info <id> <message>")
        return
    result = request_additional_info(ctx, request_id, message)
    if result.success:
        console.print("[bold]Information requested from the patient.[/bold]")
    else:
        show_error(result)


def handle_patients(ctx: PortalContext, args: str) -> None:
    result = list_patients(ctx, search=args.strip() or None)
    if not result.success:
        show_error(result)
        return
    if not result.data:
        console.print("[dim]No patients.[/dim]")
        return
    table = Table(title="Patients")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name")
    table.add_column("Email")
    table.add_column("Birth date")
    table.add_column("Created")
    for patient in result.data:
        table.add_row(
            patient.id, patient.full_name, patient.email or "-",
            patient.birth_date or "-", (patient.created_at or "")[:10],
        )
    console.print(table)


def handle_profile(ctx: PortalContext, args: str) -> None:
    result = get_doctor_profile(ctx)
    if not result.success:
        show_error(result)
        return
    profile = result.data
    table = Table(show_header=False, title="Doctor profile")
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Title", profile.title or "-")
    table.add_row("Specialty", profile.specialty or "-")
    table.add_row("License number", profile.license_number)
    table.add_row("Phone", profile.phone_number or "-")
    if profile.address:
        table.add_row("Address", ", ".join(v for v in profile.address.values() if v))
    table.add_row("Verified", "yes" if profile.is_verified else "no")
    console.print(table)


def handle_help(ctx: PortalContext, args: str) -> None:
    console.print(HELP_TEXT)


COMMANDS = {
    "register": handle_register,
    "login": handle_login,
    "logout": handle_logout,
    "dashboard": handle_dashboard,
    "pending": handle_pending,
    "approved": handle_approved,
    "denied": handle_denied,
    "approve": handle_approve,
    "deny": handle_deny,
    "info": handle_info,
    "patients": handle_patients,
    "profile": handle_profile,
    "help": handle_help,
}


def process_command(ctx: PortalContext, line: str) -> bool:
    """Run one command line. Returns False when the user asked to quit."""
    command, _, args = line.strip().partition(" ")
    command = command.lower()
    if command in ("quit", "exit"):
        return False

    handler = COMMANDS.get(command)
    if handler is None:
        console.print(f"Unknown command [bold]{command}[/bold]. Type 'help' for a list.")
        return True

    handler(ctx, args)
    return True


def _split_id(args: str) -> tuple[str, str | None]:
    request_id, _, rest = args.strip().partition(" ")
    return request_id, rest.strip() or None


def main():
    """Main command loop."""
    settings = load_settings()
    configure_logging(settings.log_level)
    ctx = create_context(settings)
    ctx.on_revalidate(lambda path: logger.debug("View %s is stale", path))

    console.print("[bold blue]Doctor Portal[/bold blue]")
    console.print("Type 'help' for commands, 'quit' to exit.\n")
    if not settings.is_configured:
        console.print("[yellow]Auth keys are not set; sign-in and registration are disabled.[/yellow]\n")

    is_tty = sys.stdin.isatty()

    while True:
        try:
            line = console.input("[bold green]portal>[/bold green] ").strip()
            # Echo input when stdin is piped (not interactive)
            if not is_tty and line:
                console.print(f"[dim]{line}[/dim]")
        except (EOFError, KeyboardInterrupt):
            console.print("\n[bold blue]Goodbye![/bold blue]")
            break

        if not line:
            continue

        if not process_command(ctx, line):
            console.print("[bold blue]Goodbye![/bold blue]")
            break

    if ctx.session is not None:
        sign_out(ctx)


if __name__ == "__main__":
    main()
