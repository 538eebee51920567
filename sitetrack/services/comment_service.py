"""
Standalone discussion comments keyed by (item id, item type).

Unlike a record's own comment trail these are not tied to the approval
workflow; any authenticated account may read and post them.
"""

import logging

from sqlalchemy import select

from sitetrack.core.exceptions import ValidationError
from sitetrack.models import db
from sitetrack.models.library import COMMENT_ITEM_TYPES, Comment

logger = logging.getLogger(__name__)


def list_comments(item_id, item_type) -> list[Comment]:
    """Comments on one item, newest first."""
    if not item_id or not item_type:
        raise ValidationError(
            "Missing itemId or type", details={"itemId": item_id, "type": item_type}
        )
    try:
        item_id = int(item_id)
    except (TypeError, ValueError) as exc:
        raise ValidationError("itemId must be an integer", details={"itemId": item_id}) from exc
    if item_type not in COMMENT_ITEM_TYPES:
        raise ValidationError(
            f"type must be one of {sorted(COMMENT_ITEM_TYPES)}", details={"type": item_type}
        )

    stmt = (
        select(Comment)
        .where(Comment.item_id == item_id, Comment.item_type == item_type)
        .order_by(Comment.created_at.desc(), Comment.id.desc())
    )
    return list(db.session.execute(stmt).scalars())


def post_comment(payload, actor) -> Comment:
    comment = Comment(
        item_id=payload.item_id,
        item_type=payload.item_type,
        text=payload.text,
        user_id=actor.id,
    )
    db.session.add(comment)
    db.session.commit()
    logger.debug("Comment %s on %s %s by %s", comment.id, comment.item_type,
                 comment.item_id, actor.username)
    return comment
