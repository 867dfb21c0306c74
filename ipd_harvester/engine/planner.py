"""Work out where a run should resume from the date lookup snapshot."""

from __future__ import annotations

from datetime import date, datetime
from typing import Mapping

import structlog

from .jobs import parse_identifier

RELEASE_DATE_FORMAT = "%d/%m/%Y"


def parse_release_date(text: str) -> date:
    return datetime.strptime(text.strip(), RELEASE_DATE_FORMAT).date()


class RangePlanner:
    """Find the boundary set: identifiers sharing the latest date before the cutoff.

    Boundary records are fetched again on every run because their effective
    date may have changed since they were indexed; scanning continues from the
    highest boundary number.
    """

    def __init__(self, prefix: str, logger: structlog.BoundLogger | None = None) -> None:
        self.prefix = prefix
        self.logger = logger or structlog.get_logger("ipd_harvester.planner")

    def plan(self, snapshot: Mapping[str, str], cutoff: date) -> list[int]:
        dated: list[tuple[int, date]] = []
        for identifier, text in snapshot.items():
            number = parse_identifier(self.prefix, identifier)
            if number is None:
                self.logger.debug("planner_foreign_identifier", identifier=identifier)
                continue
            try:
                released = parse_release_date(text)
            except ValueError:
                self.logger.debug("planner_bad_date", identifier=identifier, date=text)
                continue
            dated.append((number, released))

        prior = [released for _, released in dated if released < cutoff]
        if not prior:
            return []
        nearest = max(prior)
        return sorted(number for number, released in dated if released == nearest)


__all__ = ["RELEASE_DATE_FORMAT", "RangePlanner", "parse_release_date"]
