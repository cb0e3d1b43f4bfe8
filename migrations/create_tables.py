import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from vms import create_app, db


def create_tables():
    app = create_app()
    with app.app_context():
        # Create persons, hosts and visits
        db.create_all()
        print(f"Created tables: {', '.join(sorted(db.metadata.tables))}")

if __name__ == "__main__":
    create_tables()
