"""Like and subscription toggles with at-most-one-record semantics.

A toggle is check-then-act: look for the record, delete it if present,
insert it otherwise. Two concurrent toggles on the same key can both see
"absent" and both insert. The store's unique index rejects the second
insert, and that rejection is read as "already in the desired state".
"""

from dataclasses import dataclass
from typing import Any

from videohub.adapters.store.base import EntityStore
from videohub.domain.enums import Collection, TargetKind, ToggleState
from videohub.domain.ids import require_id
from videohub.domain.models import Like, LikeTarget, Subscription
from videohub.errors import DuplicateKeyError, InvalidOperation, NotFound
from videohub.logging import get_logger
from videohub.services.base import StoreBackedService

logger = get_logger(__name__)


@dataclass
class ToggleOutcome:
    """End state of a toggle and the record it concerns."""

    state: ToggleState
    record_id: str | None
    recovered_conflict: bool = False

    @property
    def added(self) -> bool:
        return self.state == ToggleState.ADDED


class ToggleEngine(StoreBackedService):
    """Flips liked/subscribed relationships."""

    def __init__(self, store: EntityStore, store_timeout: float | None = None) -> None:
        super().__init__(store, store_timeout=store_timeout)

    async def _require_exists(self, collection: Collection, doc_id: str, label: str) -> None:
        if not await self._store(f"check_{label}", self.store.exists(collection, doc_id)):
            raise NotFound(f"{label.capitalize()} {doc_id} not found")

    async def _toggle(
        self,
        collection: Collection,
        key: dict[str, Any],
        document: dict[str, Any],
    ) -> ToggleOutcome:
        existing = await self._store("find_existing", self.store.find_one(collection, key))
        if existing is not None:
            await self._store("delete_existing", self.store.delete_by_id(collection, existing["id"]))
            # Already gone means a concurrent toggle removed it; the state is the same
            return ToggleOutcome(ToggleState.REMOVED, existing["id"])

        try:
            record_id = await self._store("insert_new", self.store.insert(collection, document))
        except DuplicateKeyError:
            winner = await self._store("find_winner", self.store.find_one(collection, key))
            logger.info(
                "toggle_conflict_recovered",
                collection=str(collection),
                record_id=winner["id"] if winner else None,
            )
            return ToggleOutcome(
                ToggleState.ADDED,
                winner["id"] if winner else None,
                recovered_conflict=True,
            )
        return ToggleOutcome(ToggleState.ADDED, record_id)

    async def toggle_like(self, actor_id: str, target: LikeTarget) -> ToggleOutcome:
        """Like the target if the actor has not liked it yet, otherwise unlike it.

        Raises:
            InvalidReference: If either id is malformed
            NotFound: If the actor or the target does not exist
        """
        require_id(actor_id, "actor_id")
        require_id(target.id, f"{target.kind}_id")
        await self._require_exists(Collection.USERS, actor_id, "user")
        await self._require_exists(target.kind.collection, target.id, str(target.kind))

        like = Like(id="", liked_by_id=actor_id, target=target)
        outcome = await self._toggle(
            Collection.LIKES,
            {"liked_by_id": actor_id, **target.to_filter()},
            like.to_document(),
        )
        logger.info(
            "like_toggled",
            actor_id=actor_id,
            target_kind=str(target.kind),
            target_id=target.id,
            state=str(outcome.state),
        )
        return outcome

    async def toggle_video_like(self, actor_id: str, video_id: str) -> ToggleOutcome:
        return await self.toggle_like(actor_id, LikeTarget(TargetKind.VIDEO, video_id))

    async def toggle_comment_like(self, actor_id: str, comment_id: str) -> ToggleOutcome:
        return await self.toggle_like(actor_id, LikeTarget(TargetKind.COMMENT, comment_id))

    async def toggle_tweet_like(self, actor_id: str, tweet_id: str) -> ToggleOutcome:
        return await self.toggle_like(actor_id, LikeTarget(TargetKind.TWEET, tweet_id))

    async def toggle_subscription(self, subscriber_id: str, channel_id: str) -> ToggleOutcome:
        """Subscribe to the channel, or unsubscribe if already subscribed.

        Raises:
            InvalidReference: If either id is malformed
            InvalidOperation: If the subscriber is the channel
            NotFound: If the subscriber or the channel does not exist
        """
        require_id(subscriber_id, "subscriber_id")
        require_id(channel_id, "channel_id")
        if subscriber_id == channel_id:
            raise InvalidOperation("A user cannot subscribe to their own channel")
        await self._require_exists(Collection.USERS, subscriber_id, "subscriber")
        await self._require_exists(Collection.USERS, channel_id, "channel")

        subscription = Subscription(id="", subscriber_id=subscriber_id, channel_id=channel_id)
        outcome = await self._toggle(
            Collection.SUBSCRIPTIONS,
            {"subscriber_id": subscriber_id, "channel_id": channel_id},
            subscription.to_document(),
        )
        logger.info(
            "subscription_toggled",
            subscriber_id=subscriber_id,
            channel_id=channel_id,
            state=str(outcome.state),
        )
        return outcome
