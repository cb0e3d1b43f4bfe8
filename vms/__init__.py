from flask import Flask
from dotenv import load_dotenv
import os
from vms.extensions import db, migrate
from vms.utils.email import mail
import logging

# Load environment variables
load_dotenv()


def create_app(test_config=None):
    app = Flask(__name__)

    # Set testing mode from environment variable
    app.config["TESTING"] = os.getenv("FLASK_ENV") in ["development", "testing"]

    # Configure logging
    logging.basicConfig(level=logging.INFO)
    app.logger.setLevel(logging.INFO)

    # Configure database
    app.config["SQLALCHEMY_DATABASE_URI"] = os.getenv(
        "DATABASE_URL", "postgresql://localhost/vms"
    )
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False

    # Admission limits
    app.config["GUEST_MONTHLY_LIMIT"] = int(os.getenv("GUEST_MONTHLY_LIMIT", 4))
    app.config["GUEST_YEARLY_LIMIT"] = int(os.getenv("GUEST_YEARLY_LIMIT", 12))
    app.config["RECIP_MONTHLY_LIMIT"] = int(os.getenv("RECIP_MONTHLY_LIMIT", 4))
    # Open question with the club whether this should be 12
    app.config["RECIP_YEARLY_LIMIT"] = int(os.getenv("RECIP_YEARLY_LIMIT", 24))
    app.config["HOST_DAILY_LIMIT"] = int(os.getenv("HOST_DAILY_LIMIT", 4))
    app.config["MIN_ID_NUMBER_LENGTH"] = int(os.getenv("MIN_ID_NUMBER_LENGTH", 5))
    app.config["CLUB_TIMEZONE"] = os.getenv("CLUB_TIMEZONE", "Africa/Nairobi")
    app.config["CLUB_NAME"] = os.getenv("CLUB_NAME", "Club")

    # Notifications: "log", "mail" or both comma separated
    app.config["NOTIFICATION_BACKEND"] = os.getenv("NOTIFICATION_BACKEND", "log")

    # Email configuration
    app.config['MAIL_SERVER'] = os.getenv('MAIL_SERVER')
    app.config['MAIL_PORT'] = int(os.getenv('MAIL_PORT', 587))
    app.config['MAIL_USE_TLS'] = os.getenv('MAIL_USE_TLS', 'true').lower() in ['true', '1', 't']
    app.config['MAIL_USERNAME'] = os.getenv('MAIL_USERNAME')
    app.config['MAIL_PASSWORD'] = os.getenv('MAIL_PASSWORD')

    if test_config:
        app.config.update(test_config)

    # Initialize Flask extensions
    db.init_app(app)
    migrate.init_app(app, db)
    mail.init_app(app)

    # Import models so metadata knows every table
    from vms import models  # noqa: F401

    # Register CLI commands
    from vms.commands.scheduler import vms_cli

    app.cli.add_command(vms_cli)

    app.logger.info(
        f"Admission engine configured for {app.config['CLUB_NAME']} "
        f"({app.config['CLUB_TIMEZONE']}, notifications: {app.config['NOTIFICATION_BACKEND']})"
    )

    return app
