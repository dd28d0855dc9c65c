"""User-scoped watchlist and diary actions over the document store."""

import logging
import random
from typing import Callable, Optional, Union

from pydantic import ValidationError

from . import watch_history
from .constants import MEDIA_ITEMS_COLLECTION, ErrorKind, MediaStatus
from .decide import available_genres, describe_filters, select_random
from .errors import InvalidInputError, NotFoundError, UnscrollError
from .formatting import utc_now_iso
from .models import (
    ActionResult,
    CurrentUser,
    MediaItem,
    MediaItemCreate,
    MediaItemUpdate,
    SpinFilters,
    validate_rating,
)
from .store import DocumentStore, Subscription

logger = logging.getLogger(__name__)


class MediaService:
    """Actions on one user's media items.

    Every public action returns an ``ActionResult``; expected problems such
    as a missing item or an invalid index become a failed result instead of
    an exception.
    """

    def __init__(self, store: DocumentStore, user: CurrentUser):
        self.store = store
        self.user = user

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _run(self, action: str, fn: Callable[[], ActionResult]) -> ActionResult:
        try:
            return fn()
        except UnscrollError as e:
            logger.info(f"{action} for user {self.user.id} rejected: {e.message}")
            return ActionResult.fail(e.kind, e.message)
        except ValidationError as e:
            logger.info(f"{action} for user {self.user.id} got invalid input: {e}")
            return ActionResult.fail(ErrorKind.INVALID_INPUT, str(e))
        except Exception as e:
            logger.exception(f"{action} failed for user {self.user.id}")
            return ActionResult.fail(ErrorKind.FAILURE, str(e) or f"Failed to {action}")

    def _owned(self, item_id: str, doc: Optional[dict]) -> MediaItem:
        # Items of other users are reported exactly like missing ones
        if not doc or doc.get("user_id") != self.user.id:
            raise NotFoundError("Media item not found")
        return MediaItem.from_document(item_id, doc)

    def _transition(self, item_id: str, rule: Callable[..., dict], *args) -> MediaItem:
        """Apply a watch-history rule to one item in a single transaction."""

        def compute(current: Optional[dict]) -> dict:
            return rule(self._owned(item_id, current), *args)

        doc = self.store.transact(MEDIA_ITEMS_COLLECTION, item_id, compute)
        return MediaItem.from_document(item_id, doc)

    def load_items(self, status: Optional[MediaStatus] = None) -> list[MediaItem]:
        """All of the user's items, newest first (raises on store errors)."""
        where = [("user_id", self.user.id)]
        if status is not None:
            where.append(("status", MediaStatus(status).value))
        docs = self.store.query(MEDIA_ITEMS_COLLECTION, where=where, order_by="created_at", descending=True)
        return self._to_items(docs)

    def _to_items(self, docs: list[dict]) -> list[MediaItem]:
        items = []
        for doc in docs:
            try:
                items.append(MediaItem.from_document(doc["id"], doc))
            except ValidationError as e:
                logger.warning(f"Skipping unreadable media item {doc.get('id')}: {e}")
        return items

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def add_item(self, data: Union[MediaItemCreate, dict]) -> ActionResult:
        def action():
            payload = data if isinstance(data, MediaItemCreate) else MediaItemCreate.model_validate(data)
            now = utc_now_iso()
            doc = payload.model_dump(mode="json")
            if payload.status == MediaStatus.WATCHED and not payload.watched_at:
                doc["watched_at"] = now
            doc.update(
                user_id=self.user.id,
                rewatch_count=0,
                rewatch_dates=[],
                created_at=now,
                updated_at=now,
            )
            created = self.store.create(MEDIA_ITEMS_COLLECTION, doc)
            logger.info(f"Added '{payload.title}' for user {self.user.id}")
            return ActionResult.ok(MediaItem.from_document(created["id"], created))

        return self._run("add media", action)

    def get_item(self, item_id: str) -> ActionResult:
        def action():
            return ActionResult.ok(self._owned(item_id, self.store.get(MEDIA_ITEMS_COLLECTION, item_id)))

        return self._run("get media", action)

    def list_items(self, status: Optional[MediaStatus] = None) -> ActionResult:
        return self._run("list media", lambda: ActionResult.ok(self.load_items(status)))

    def update_item(self, item_id: str, data: Union[MediaItemUpdate, dict]) -> ActionResult:
        def action():
            update = data if isinstance(data, MediaItemUpdate) else MediaItemUpdate.model_validate(data)
            changes = update.model_dump(mode="json", exclude_unset=True)
            if "title" in changes:
                if not (changes["title"] or "").strip():
                    raise InvalidInputError("Title is required")
                changes["title"] = changes["title"].strip()

            def compute(current):
                item = self._owned(item_id, current)
                watch_history.apply_changes(item, changes)
                return {**changes, "updated_at": utc_now_iso()}

            doc = self.store.transact(MEDIA_ITEMS_COLLECTION, item_id, compute)
            return ActionResult.ok(MediaItem.from_document(item_id, doc))

        return self._run("update media", action)

    def delete_item(self, item_id: str) -> ActionResult:
        def action():
            self._owned(item_id, self.store.get(MEDIA_ITEMS_COLLECTION, item_id))
            self.store.delete(MEDIA_ITEMS_COLLECTION, item_id)
            logger.info(f"Deleted media item {item_id} for user {self.user.id}")
            return ActionResult.ok()

        return self._run("delete media", action)

    def bulk_delete(self, item_ids: list[str]) -> ActionResult:
        """Delete several items; if any is missing or foreign, nothing is deleted."""

        def action():
            unique_ids = list(dict.fromkeys(item_ids))
            for item_id in unique_ids:
                self._owned(item_id, self.store.get(MEDIA_ITEMS_COLLECTION, item_id))
            deleted = self.store.batch_delete(MEDIA_ITEMS_COLLECTION, unique_ids)
            logger.info(f"Bulk deleted {deleted} media items for user {self.user.id}")
            return ActionResult.ok({"deleted": deleted})

        return self._run("bulk delete media", action)

    # ------------------------------------------------------------------
    # Watch history
    # ------------------------------------------------------------------

    def mark_as_watched(self, item_id: str, date: Optional[str] = None) -> ActionResult:
        return self._run(
            "mark as watched",
            lambda: ActionResult.ok(self._transition(item_id, watch_history.mark_watched, date)),
        )

    def mark_as_rewatched(self, item_id: str, date: Optional[str] = None) -> ActionResult:
        return self._run(
            "add rewatch",
            lambda: ActionResult.ok(self._transition(item_id, watch_history.add_rewatch, date)),
        )

    def remove_rewatch(self, item_id: str, index: Optional[int] = None) -> ActionResult:
        return self._run(
            "remove rewatch",
            lambda: ActionResult.ok(self._transition(item_id, watch_history.remove_rewatch, index)),
        )

    def update_watch_date(self, item_id: str, date: str) -> ActionResult:
        return self._run(
            "update watch date",
            lambda: ActionResult.ok(self._transition(item_id, watch_history.update_watch_date, date)),
        )

    def set_status(self, item_id: str, status: MediaStatus) -> ActionResult:
        def action():
            try:
                new_status = MediaStatus(status)
            except ValueError:
                raise InvalidInputError(f"Unknown status: {status}")
            return ActionResult.ok(self._transition(item_id, watch_history.set_status, new_status))

        return self._run("update status", action)

    # ------------------------------------------------------------------
    # Rating and review
    # ------------------------------------------------------------------

    def rate(self, item_id: str, rating: Optional[float]) -> ActionResult:
        def action():
            try:
                value = validate_rating(rating)
            except (TypeError, ValueError) as e:
                raise InvalidInputError(str(e))

            def compute(current):
                self._owned(item_id, current)
                return {"user_rating": value, "updated_at": utc_now_iso()}

            doc = self.store.transact(MEDIA_ITEMS_COLLECTION, item_id, compute)
            return ActionResult.ok(MediaItem.from_document(item_id, doc))

        return self._run("rate media", action)

    def review(self, item_id: str, text: Optional[str]) -> ActionResult:
        def action():
            value = (text or "").strip() or None

            def compute(current):
                self._owned(item_id, current)
                return {"user_review": value, "updated_at": utc_now_iso()}

            doc = self.store.transact(MEDIA_ITEMS_COLLECTION, item_id, compute)
            return ActionResult.ok(MediaItem.from_document(item_id, doc))

        return self._run("review media", action)

    # ------------------------------------------------------------------
    # Decide
    # ------------------------------------------------------------------

    def get_random_unwatched(
        self,
        filters: Optional[SpinFilters] = None,
        rng: Optional[random.Random] = None,
    ) -> ActionResult:
        """Pick a random unwatched item; an empty pool is a successful, empty result."""

        def action():
            choice = select_random(self.load_items(MediaStatus.UNWATCHED), filters, rng)
            if choice is not None:
                return ActionResult.ok(choice)
            description = describe_filters(filters)
            if description:
                return ActionResult.ok(None, message=f"No unwatched films match: {description}")
            return ActionResult.ok(None, message="No unwatched films in your watchlist")

        return self._run("pick random media", action)

    def get_all_genres(self) -> ActionResult:
        return self._run(
            "get genres",
            lambda: ActionResult.ok(available_genres(self.load_items(MediaStatus.UNWATCHED))),
        )

    def counts(self) -> ActionResult:
        def action():
            items = self.load_items()
            totals = {status.value: 0 for status in MediaStatus}
            for item in items:
                totals[item.status.value] += 1
            totals["total"] = len(items)
            return ActionResult.ok(totals)

        return self._run("count media", action)

    # ------------------------------------------------------------------
    # Live updates
    # ------------------------------------------------------------------

    def subscribe(self, callback: Callable[[list[MediaItem]], None]) -> Subscription:
        """Push the user's full item list now and after every change."""
        return self.store.subscribe(
            MEDIA_ITEMS_COLLECTION,
            lambda docs: callback(self._to_items(docs)),
            where=[("user_id", self.user.id)],
            order_by="created_at",
            descending=True,
        )
