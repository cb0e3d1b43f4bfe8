"""Repository aggregate bound to one session, plus the transaction boundary."""

import logging
from contextlib import contextmanager
from typing import Callable, List

from sqlalchemy.exc import IntegrityError, OperationalError

from vms.exceptions import ConcurrencyConflict
from vms.repositories.host_repository import HostRepository
from vms.repositories.person_repository import PersonRepository
from vms.repositories.visit_repository import VisitRepository

logger = logging.getLogger(__name__)


class Ledger:
    def __init__(self, session):
        self.session = session
        self.persons = PersonRepository(session)
        self.hosts = HostRepository(session)
        self.visits = VisitRepository(session)
        self._depth = 0
        self._after_commit: List[Callable[[], None]] = []

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    @contextmanager
    def atomic(self):
        """Re-entrant unit of work. Only the outermost block commits or rolls back."""
        outermost = self._depth == 0
        self._depth += 1
        try:
            yield self
            if outermost:
                self.session.commit()
        except (IntegrityError, OperationalError) as e:
            if outermost:
                self._rollback()
            logger.warning(f"Ledger write rejected by the database: {e}")
            raise ConcurrencyConflict() from e
        except Exception:
            if outermost:
                self._rollback()
            raise
        finally:
            self._depth -= 1
        if outermost:
            self._run_after_commit()

    def after_commit(self, callback: Callable[[], None]):
        """Defer a side effect until the surrounding transaction has committed."""
        if self.in_transaction:
            self._after_commit.append(callback)
        else:
            callback()

    def _rollback(self):
        self.session.rollback()
        discarded = len(self._after_commit)
        self._after_commit.clear()
        if discarded:
            logger.info(f"Rolled back ledger transaction, dropped {discarded} pending notification(s)")

    def _run_after_commit(self):
        pending, self._after_commit = self._after_commit, []
        for callback in pending:
            callback()
