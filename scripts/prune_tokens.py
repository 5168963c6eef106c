# scripts/prune_tokens.py
from sqlalchemy import select

from apps.api.device.adapter import ADMIN_TOKENS, PRINCIPAL_TOKENS
from apps.api.device.service import TokenDirectory
from apps.api.residency.models import Residency
from apps.api.user.models import Guard, Resident
from core.db.core import get_session
from core.fastapi.app import build_push_gateway, discover_modules
from core.notifications.firebase_cloud_messaging.schema import (
    FCMMulticastMessage,
    FCMNotification,
)
from core.notifications.gateway import PushErrorCode
from core.utils.commands.command import Command


class PruneTokensCommand(Command):
    help = "Validate stored device tokens with an FCM dry run and drop dead ones"

    def add_arguments(self, parser):
        parser.add_argument(
            "--apply",
            action="store_true",
            help="Remove dead tokens (default only reports them)",
        )

    async def handle(self, **options):
        discover_modules("apps", "models")
        gateway = build_push_gateway()
        if gateway is None:
            print("Push gateway is not configured.")
            return

        ping = FCMMulticastMessage(
            notification=FCMNotification(title="ping", body="ping")
        )
        dead_total = 0
        async with get_session() as session:
            directory = TokenDirectory(session=session)
            residencies = (await session.scalars(select(Residency))).all()
            for residency in residencies:
                tokens = set(ADMIN_TOKENS.read(residency))
                for model in (Resident, Guard):
                    rows = await session.scalars(
                        select(model).where(model.residency_id == residency.id)
                    )
                    for row in rows.all():
                        tokens.update(PRINCIPAL_TOKENS.read(row))

                ordered = sorted(tokens)
                results = await gateway.send_multicast(ping, ordered, dry_run=True)
                dead = [
                    r.token for r in results if PushErrorCode.is_permanent(r.error_code)
                ]

                print(f"{residency.id}: {len(ordered)} tokens, {len(dead)} dead")
                if options.get("apply"):
                    for token in dead:
                        await directory.invalidate(residency.id, token)
                dead_total += len(dead)

        action = "removed" if options.get("apply") else "found (use --apply to remove)"
        print(f"Done: {dead_total} dead tokens {action}")
