#!/usr/bin/env python3
"""Apply late-payment penalties to overdue service charge demands in every building."""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import date
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from buildingdesk.config import SessionLocal, settings  # noqa: E402
from buildingdesk.constants import SERVICE_CHARGE_DEMANDS  # noqa: E402
from buildingdesk.core.logging import configure_logging  # noqa: E402
from buildingdesk.models.models import Document  # noqa: E402
from buildingdesk.services.context import WorkflowContext  # noqa: E402
from buildingdesk.services.notifications import SqlNotificationSink  # noqa: E402
from buildingdesk.services.service_charges import check_and_apply_penalties  # noqa: E402
from buildingdesk.services.store import SqlDocumentStore  # noqa: E402

SYSTEM_ACTOR = "system"


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--as-of", type=date.fromisoformat, default=None, help="Evaluation date (YYYY-MM-DD).")
    args = parser.parse_args(argv)

    configure_logging(settings.log_level, json_logs=settings.json_logs)
    with SessionLocal() as session:
        building_ids = [
            building_id
            for (building_id,) in session.query(Document.building_id)
            .filter(Document.collection == SERVICE_CHARGE_DEMANDS, Document.building_id.isnot(None))
            .distinct()
            .order_by(Document.building_id)
        ]
        penalized: list[str] = []
        for building_id in building_ids:
            ctx = WorkflowContext(
                building_id=building_id,
                actor_id=SYSTEM_ACTOR,
                store=SqlDocumentStore(session),
                notifier=SqlNotificationSink(session, building_id=building_id),
            )
            penalized.extend(check_and_apply_penalties(ctx, args.as_of))

    if penalized:
        print(f"Penalties applied to demands: {', '.join(penalized)}")
    else:
        print("No penalties due.")


if __name__ == "__main__":
    main()
