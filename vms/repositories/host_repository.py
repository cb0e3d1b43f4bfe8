from typing import Optional

from vms.models import Host


class HostRepository:
    def __init__(self, session):
        self.session = session

    def find_by_id(self, host_id: int) -> Optional[Host]:
        return self.session.query(Host).filter_by(id=host_id).first()

    def lock(self, host_id: int) -> Optional[Host]:
        """Serializes every check-then-write against one host's daily capacity."""
        return (
            self.session.query(Host)
            .filter_by(id=host_id)
            .with_for_update()
            .populate_existing()
            .first()
        )

    def create_host(self, attrs: dict) -> Host:
        host = Host(**attrs)
        self.session.add(host)
        self.session.flush()
        return host
