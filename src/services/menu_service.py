"""Menu generation: weighted, cooldown-aware item selection across lists."""

import logging
import random
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from src.database import storage_errors
from src.models.item import ListItem
from src.models.list import List
from src.models.mixins import utcnow
from src.services.errors import InvalidInputError, NotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MenuSelection:
    """An item picked for a menu, with the weight it was drawn with."""

    item: ListItem
    list_id: int
    weight: float


def weighted_sample(
    candidates: Sequence[tuple[ListItem, float]], k: int | None, rng: random.Random
) -> list[tuple[ListItem, float]]:
    """Weighted sampling without replacement (Efraimidis-Spirakis).

    Each candidate gets the key ``u ** (1 / w)`` with ``u`` uniform in [0, 1);
    the ``k`` largest keys win. With ``k=None`` every candidate is returned in
    weighted random order.
    """
    keyed = [(rng.random() ** (1.0 / weight), item, weight) for item, weight in candidates]
    keyed.sort(key=lambda entry: entry[0], reverse=True)
    if k is not None:
        keyed = keyed[:k]
    return [(item, weight) for _, item, weight in keyed]


class MenuGenerator:
    """Read-only selection of items from one or more lists."""

    def __init__(self, db: Session, rng: random.Random | None = None):
        self.db = db
        self.rng = rng or random.Random()

    def generate_menu(
        self,
        list_ids: Iterable[int],
        cooldown_days: int | None = None,
        max_items: int | None = None,
        exclude_item_ids: Iterable[int] = (),
        now: datetime | None = None,
    ) -> list[MenuSelection]:
        """Pick up to ``max_items`` eligible items, weighted, without replacement.

        An item is eligible when it was never used or last used before
        ``now - cooldown_days``. Without ``cooldown_days`` each list's own
        cooldown applies. The item's weight falls back to its list's
        ``default_weight``. Nothing is written: use marks happen separately.
        """
        ids = list(dict.fromkeys(list_ids))
        if not ids:
            raise InvalidInputError("At least one list ID is required")
        if max_items is not None and max_items <= 0:
            raise InvalidInputError("max_items must be positive")
        if cooldown_days is not None and cooldown_days < 0:
            raise InvalidInputError("cooldown_days cannot be negative")
        now = now or utcnow()
        excluded = set(exclude_item_ids)

        with storage_errors("generate_menu", ids):
            lists = self.db.query(List).filter(List.id.in_(ids), List.deleted_at.is_(None)).all()
            found = {lst.id: lst for lst in lists}
            missing = [list_id for list_id in ids if list_id not in found]
            if missing:
                raise NotFoundError(f"Lists not found: {', '.join(map(str, missing))}")

            eligibility = []
            for lst in lists:
                days = cooldown_days if cooldown_days is not None else (lst.cooldown_days or 0)
                cutoff = now - timedelta(days=days)
                eligibility.append(
                    and_(
                        ListItem.list_id == lst.id,
                        or_(ListItem.last_used_at.is_(None), ListItem.last_used_at < cutoff),
                    )
                )

            query = self.db.query(ListItem).filter(ListItem.deleted_at.is_(None), or_(*eligibility))
            if excluded:
                query = query.filter(ListItem.id.not_in(excluded))
            items = query.order_by(ListItem.id).all()

        candidates = []
        for item in items:
            weight = item.effective_weight(found[item.list_id].default_weight)
            if weight > 0:
                candidates.append((item, weight))

        picked = weighted_sample(candidates, max_items, self.rng)
        logger.debug(f"Menu from lists {ids}: {len(picked)} of {len(candidates)} eligible items")
        return [MenuSelection(item=item, list_id=item.list_id, weight=weight) for item, weight in picked]
