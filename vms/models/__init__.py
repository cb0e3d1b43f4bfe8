from vms.models.person import Person
from vms.models.host import Host
from vms.models.visit import Visit
from vms.models.enums import (
    LimitKind,
    NotificationEvent,
    PersonKind,
    Standing,
    VisitPurpose,
    VisitState,
    VisitStatus,
)
