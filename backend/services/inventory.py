# backend/services/inventory.py
"""
Inventory mutation engine.

Applies (consume) or reverses (restore) the stock effect of an order:
for every order line and every article the line's product is made of,
the article quantity changes by ``required quantity * ordered quantity``.

Rules:
- consume never drives a quantity below zero, it pins it at 0 (the deficit
  is lost and reported as ``clamped`` on the outcome);
- every composition row is processed on its own, so an article reached by
  two lines moves twice;
- a line whose product, or a composition whose article, no longer exists is
  skipped and reported as ``skipped_missing_reference``; the pass goes on;
- the whole pass is one unit of work: all article updates commit, or none.
"""
import enum
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy import case, update
from sqlalchemy.orm import Session

from models.article import Article
from models.order import Order
from services.composition import get_order_lines, get_product_compositions
from services.errors import NotFoundError, ValidationError
from services.transaction import atomic

logger = logging.getLogger(__name__)


class EffectDirection(str, enum.Enum):
    CONSUME = "consume"
    RESTORE = "restore"


class OutcomeKind(str, enum.Enum):
    APPLIED = "applied"
    SKIPPED_MISSING_REFERENCE = "skipped_missing_reference"


@dataclass(frozen=True)
class CompositionOutcome:
    kind: OutcomeKind
    line_id: int
    product_id: int
    article_id: Optional[int] = None
    delta: int = 0
    quantity_before: Optional[int] = None
    quantity_after: Optional[int] = None
    clamped: bool = False


@dataclass
class InventoryEffectResult:
    order_id: int
    direction: EffectDirection
    outcomes: List[CompositionOutcome] = field(default_factory=list)

    @property
    def applied(self) -> List[CompositionOutcome]:
        return [o for o in self.outcomes if o.kind == OutcomeKind.APPLIED]

    @property
    def skipped(self) -> List[CompositionOutcome]:
        return [o for o in self.outcomes if o.kind == OutcomeKind.SKIPPED_MISSING_REFERENCE]

    @property
    def clamped(self) -> List[CompositionOutcome]:
        return [o for o in self.outcomes if o.clamped]

    @property
    def fully_applied(self) -> bool:
        """False when at least one dangling reference was skipped."""
        return not self.skipped

    def to_meta(self) -> dict:
        """Compact summary used for audit log entries."""
        return {
            "order_id": self.order_id,
            "direction": self.direction.value,
            "applied": len(self.applied),
            "skipped": [
                {"line_id": o.line_id, "product_id": o.product_id, "article_id": o.article_id}
                for o in self.skipped
            ],
            "clamped_articles": [o.article_id for o in self.clamped],
        }


def _adjust_article(db: Session, article_id: int, delta: int, direction: EffectDirection):
    """Relative, row-locked update of one article. Returns (before, after) or None if the article is gone."""
    article = (
        db.query(Article)
        .filter(Article.id == article_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if article is None:
        return None

    before = article.quantity
    if direction == EffectDirection.CONSUME:
        new_quantity = case(
            (Article.quantity - delta < 0, 0),
            else_=Article.quantity - delta,
        )
    else:
        new_quantity = Article.quantity + delta

    db.execute(
        update(Article)
        .where(Article.id == article_id)
        .values(quantity=new_quantity)
        .execution_options(synchronize_session=False)
    )
    db.refresh(article, ["quantity"])
    return before, article.quantity


def apply_order_effect(db: Session, order_id: int, direction) -> InventoryEffectResult:
    try:
        direction = EffectDirection(direction)
    except ValueError:
        raise ValidationError(f"Unknown inventory direction: {direction}", field="direction")

    result = InventoryEffectResult(order_id=order_id, direction=direction)

    with atomic(db):
        order = db.query(Order).filter(Order.id == order_id).first()
        if order is None:
            raise NotFoundError("Order", order_id)

        for line in get_order_lines(db, order_id):
            if line.product is None:
                logger.warning(
                    "Order %s line %s references missing product %s, skipped",
                    order_id, line.id, line.product_id,
                )
                result.outcomes.append(CompositionOutcome(
                    kind=OutcomeKind.SKIPPED_MISSING_REFERENCE,
                    line_id=line.id,
                    product_id=line.product_id,
                ))
                continue

            for composition in get_product_compositions(db, line.product_id):
                delta = composition.quantity * line.quantity
                adjusted = _adjust_article(db, composition.article_id, delta, direction)

                if adjusted is None:
                    logger.warning(
                        "Order %s product %s references missing article %s, skipped",
                        order_id, line.product_id, composition.article_id,
                    )
                    result.outcomes.append(CompositionOutcome(
                        kind=OutcomeKind.SKIPPED_MISSING_REFERENCE,
                        line_id=line.id,
                        product_id=line.product_id,
                        article_id=composition.article_id,
                        delta=delta,
                    ))
                    continue

                before, after = adjusted
                clamped = direction == EffectDirection.CONSUME and before < delta
                if clamped:
                    logger.warning(
                        "Article %s clamped at 0 by order %s (had %s, needed %s)",
                        composition.article_id, order_id, before, delta,
                    )
                logger.debug(
                    "Order %s %s article %s: %s -> %s",
                    order_id, direction.value, composition.article_id, before, after,
                )
                result.outcomes.append(CompositionOutcome(
                    kind=OutcomeKind.APPLIED,
                    line_id=line.id,
                    product_id=line.product_id,
                    article_id=composition.article_id,
                    delta=delta,
                    quantity_before=before,
                    quantity_after=after,
                    clamped=clamped,
                ))

    logger.info(
        "Order %s %s: %d article updates applied, %d skipped",
        order_id, direction.value, len(result.applied), len(result.skipped),
    )
    return result
