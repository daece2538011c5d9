from datetime import date, timedelta

import click

from bloodbank.extensions import db


def register_commands(app):
    @app.cli.command("init-db")
    def init_db():
        """Create all tables."""
        db.create_all()
        click.echo("Database initialised.")

    @app.cli.command("seed")
    @click.option("--units", default=10, show_default=True, help="Starting units for the sample stock.")
    def seed(units):
        """Insert one bank, recipient, donor, stock row and pending request for local use."""
        from bloodbank.api import build_services

        db.create_all()
        registry, ledger, lifecycle = build_services()
        bank = registry.create_bank("City Central Blood Bank", "Pune", "(555) 010-2000",
                                    "central@example.com", 500)
        rec = registry.create_recipient("Sample General Hospital", "Hospital", "Dr. Sample",
                                        "(555) 123-4567", "hospital@example.com", "Erandwane, Pune")
        registry.create_donor("Alice", "AB+", "900000001")
        ledger.credit(bank.id, "AB+", units)
        db.session.commit()
        req = lifecycle.submit(rec.id, bank.id, "AB+", 1, date.today() + timedelta(days=7),
                               "Scheduled Surgery", "Sample request")
        click.echo(f"Seeded bank {bank.id}, recipient {rec.id}, request {req.id}.")
