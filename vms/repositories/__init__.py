from vms.repositories.person_repository import PersonRepository
from vms.repositories.host_repository import HostRepository
from vms.repositories.visit_repository import VisitRepository
from vms.repositories.ledger import Ledger
