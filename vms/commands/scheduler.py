import click
from flask.cli import AppGroup

from vms.engine import AdmissionEngine
from vms.exceptions import VMSError

vms_cli = AppGroup("vms", help="Visitor admission jobs.")


@vms_cli.command("midnight-sweep")
@click.option(
    "--date",
    "visit_date",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    default=None,
    help="Day to close (YYYY-MM-DD). Defaults to today in the club timezone.",
)
def midnight_sweep(visit_date):
    """Sign out everyone still signed in, then recalculate every person."""
    engine = AdmissionEngine.from_app()
    result = engine.midnight_sweep(visit_date.date() if visit_date else None)
    click.echo(
        f"Swept {result.visit_date}: {result.signed_out_count} signed out, "
        f"{result.recalculated_count} recalculated, {len(result.transitions)} status change(s)"
    )
    if result.failed_person_ids:
        click.echo(f"Failed for person(s): {', '.join(map(str, result.failed_person_ids))}", err=True)


@vms_cli.command("reset-monthly-limits")
def reset_monthly_limits():
    """Reactivate people suspended automatically for reaching a limit."""
    result = AdmissionEngine.from_app().reset_monthly_limits()
    click.echo(
        f"Reactivated {len(result.reactivated_ids)}, still suspended {len(result.still_suspended_ids)}"
    )


@vms_cli.command("reset-yearly-limits")
def reset_yearly_limits():
    """Yearly counterpart of reset-monthly-limits."""
    result = AdmissionEngine.from_app().reset_yearly_limits()
    click.echo(
        f"Reactivated {len(result.reactivated_ids)}, still suspended {len(result.still_suspended_ids)}"
    )


@vms_cli.command("recalculate")
@click.option("--person-id", type=int, required=True)
def recalculate(person_id):
    """Recalculate one person's visit statuses and standing."""
    try:
        result = AdmissionEngine.from_app().recalculate_person(person_id)
    except VMSError as e:
        raise click.ClickException(e.message)
    click.echo(
        f"Person {person_id}: {len(result.transitions)} status change(s), standing {result.new_standing.value}"
    )
    for transition in result.transitions:
        click.echo(
            f"  visit {transition.visit_id} {transition.visit_date}: "
            f"{transition.old_status.value} -> {transition.new_status.value}"
        )
