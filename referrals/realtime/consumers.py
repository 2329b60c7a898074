import json

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncWebsocketConsumer

from referrals.identity import resolve_caller
from referrals.services.realtime import groups_for


class UpdatesConsumer(AsyncWebsocketConsumer):
    """Relays ``referral.updated`` events to signed-in dashboards.

    The socket joins only the groups its caller's read scope covers; see
    :mod:`referrals.services.realtime`.
    """

    async def connect(self):
        self.subscriptions = []
        user = self.scope.get("user")
        if user is None or not user.is_authenticated:
            await self.close(code=4401)
            return
        caller = await database_sync_to_async(resolve_caller)(user)
        if caller is None:
            await self.close(code=4403)
            return
        self.subscriptions = groups_for(caller)
        for group in self.subscriptions:
            await self.channel_layer.group_add(group, self.channel_name)
        await self.accept()
        await self.send(json.dumps({"type": "welcome", "message": "connected", "role": caller.role}))

    async def disconnect(self, close_code):
        for group in getattr(self, "subscriptions", []):
            await self.channel_layer.group_discard(group, self.channel_name)

    async def referral_updated(self, event):
        await self.send(json.dumps(event))
