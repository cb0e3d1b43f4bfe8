"""Entry points for the periodic jobs. Every job is safe to re-run."""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional

from vms.exceptions import VMSError
from vms.models import NotificationEvent, Standing

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    visit_date: date
    signed_out_count: int = 0
    recalculated_count: int = 0
    transitions: List = field(default_factory=list)
    failed_person_ids: List[int] = field(default_factory=list)


@dataclass
class ResetResult:
    period: str
    reactivated_ids: List[int] = field(default_factory=list)
    still_suspended_ids: List[int] = field(default_factory=list)


class SchedulerService:
    def __init__(self, ledger, outbox, clock, settings, recalculation, visits):
        self.ledger = ledger
        self.outbox = outbox
        self.clock = clock
        self.settings = settings
        self.recalculation = recalculation
        self.visits = visits

    def midnight_sweep(self, visit_date: Optional[date] = None) -> SweepResult:
        """Auto sign-out for the day, then recalculate everyone with visits on record."""
        visit_date = visit_date or self.clock.today()
        logger.info(f"Starting midnight sweep for {visit_date}")

        sign_out = self.visits.auto_sign_out_all(visit_date)
        result = SweepResult(
            visit_date=visit_date,
            signed_out_count=sign_out.signed_out_count,
            transitions=list(sign_out.transitions),
        )

        # One transaction per person so an interrupted sweep keeps its progress
        for person_id in self.ledger.persons.list_ids_with_visits():
            try:
                recalculated = self.recalculation.recalculate_person(person_id)
            except VMSError as e:
                logger.error(f"Recalculation failed for person {person_id}: {e}", exc_info=True)
                result.failed_person_ids.append(person_id)
                continue
            result.recalculated_count += 1
            result.transitions.extend(recalculated.transitions)

        logger.info(
            f"Midnight sweep for {visit_date} done: {result.signed_out_count} signed out, "
            f"{result.recalculated_count} recalculated, {len(result.transitions)} transition(s), "
            f"{len(result.failed_person_ids)} failure(s)"
        )
        return result

    def reset_monthly_limits(self) -> ResetResult:
        return self._reset_auto_suspensions("monthly")

    def reset_yearly_limits(self) -> ResetResult:
        return self._reset_auto_suspensions("yearly")

    def _reset_auto_suspensions(self, period: str) -> ResetResult:
        """Reactivate people the engine suspended itself; manual suspensions stay."""
        result = ResetResult(period=period)
        logger.info(f"Running {period} limit reset")

        for person in self.ledger.persons.list_auto_suspended():
            with self.ledger.atomic():
                [person] = self.recalculation.lock_persons([person.id])
                if not (person.standing == Standing.SUSPENDED and person.auto_suspended):
                    continue
                self.ledger.persons.update_person_standing(person, Standing.ACTIVE)

                # Still at a limit in the new period: the suspension stands
                _, replay = self.recalculation.evaluate(person)
                if replay.at_limit(self.clock.today()):
                    self.ledger.persons.update_person_standing(
                        person, Standing.SUSPENDED, auto=True
                    )
                    result.still_suspended_ids.append(person.id)
                    continue

                recalculated = self.recalculation._recalculate(person)
                self.recalculation._settle(recalculated.transitions)
                result.reactivated_ids.append(person.id)
                self.outbox.queue_for_person(
                    person,
                    NotificationEvent.STANDING_CHANGED,
                    {
                        "old_standing": Standing.SUSPENDED.value,
                        "new_standing": Standing.ACTIVE.value,
                        "automatic": True,
                        "reason": f"{period}_reset",
                    },
                )

        logger.info(
            f"{period.capitalize()} reset: {len(result.reactivated_ids)} reactivated, "
            f"{len(result.still_suspended_ids)} still over a limit"
        )
        return result
