# scripts/broadcast_all_residents.py
from sqlalchemy import select

from apps.api.device.schema import AllResidents
from apps.api.device.service import TokenDirectory
from apps.api.notification.schema import ActionType, NotificationPayload
from apps.api.notification.service import NotificationDispatcher
from apps.api.residency.models import Residency
from apps.api.visitor.service import RequestStore
from apps.settings import settings
from core.db.core import get_session
from core.fastapi.app import build_push_gateway, discover_modules
from core.utils.commands.command import Command


class BroadcastAllResidentsCommand(Command):
    help = "Send a notification to every resident (and admin) of every residency"

    def add_arguments(self, parser):
        parser.add_argument("--title", default="VisitGate Notification")
        parser.add_argument(
            "--body", default="This is a live test notification to all residents."
        )
        parser.add_argument(
            "--residency-id",
            dest="residency_id",
            default=None,
            help="Only this residency (default: all)",
        )

    async def handle(self, **options):
        discover_modules("apps", "models")
        gateway = build_push_gateway()
        if gateway is None:
            print("Push gateway is not configured; nothing sent.")
            return

        payload = NotificationPayload(
            title=options["title"],
            body=options["body"],
            action_type=ActionType.ADMIN_BROADCAST,
            data={"type": "admin-broadcast", "url": "/"},
        )
        total_success = total_failure = 0
        async with get_session() as session:
            query = select(Residency.id)
            if options.get("residency_id"):
                query = query.where(Residency.id == options["residency_id"])
            residency_ids = list((await session.scalars(query)).all())

            dispatcher = NotificationDispatcher(
                session=session,
                directory=TokenDirectory(session=session),
                store=RequestStore(session=session),
                gateway=gateway,
                base_url=settings.PUBLIC_BASE_URL or "",
            )
            for residency_id in residency_ids:
                result = await dispatcher.dispatch(residency_id, AllResidents(), payload)
                total_success += result.success_count
                total_failure += result.failure_count
                print(
                    f"{residency_id}: {result.success_count} sent, "
                    f"{result.failure_count} failed, {result.invalidated_count} pruned"
                    + (f" ({result.skipped_reason})" if result.skipped_reason else "")
                )

        print(
            f"Done: {len(residency_ids)} residencies, "
            f"{total_success} sent, {total_failure} failed"
        )
