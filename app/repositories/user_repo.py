from sqlalchemy.orm import Session
from sqlalchemy import select
from sqlalchemy.orm import aliased
from app.db.models import User, BuddyLink, CommunityMembership
from uuid import UUID

def get_users(db: Session, user_ids: list[UUID]) -> dict[UUID, User]:
    if not user_ids:
        return {}
    q = select(User).where(User.id.in_(user_ids))
    return {u.id: u for u in db.execute(q).scalars()}

def list_buddy_ids(db: Session, user_id: UUID) -> list[UUID]:
    # Buddy links are symmetric whichever side created them
    forward = select(BuddyLink.buddy_id).where(BuddyLink.user_id == user_id)
    backward = select(BuddyLink.user_id).where(BuddyLink.buddy_id == user_id)
    ids = set(db.execute(forward).scalars()) | set(db.execute(backward).scalars())
    ids.discard(user_id)
    return sorted(ids, key=str)

def list_community_peer_ids(db: Session, user_id: UUID) -> list[UUID]:
    mine = aliased(CommunityMembership)
    peers = aliased(CommunityMembership)
    q = (
        select(peers.user_id)
        .join(mine, mine.community_id == peers.community_id)
        .where(mine.user_id == user_id, peers.user_id != user_id)
        .distinct()
    )
    return sorted(db.execute(q).scalars(), key=str)

def list_all_user_ids(db: Session, exclude: UUID | None = None) -> list[UUID]:
    q = select(User.id)
    if exclude is not None:
        q = q.where(User.id != exclude)
    return sorted(db.execute(q).scalars(), key=str)
