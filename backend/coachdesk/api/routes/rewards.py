import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from coachdesk.api import deps
from coachdesk.db.session import get_db
from coachdesk.models.profile import Profile, Role
from coachdesk.models.reward import Reward
from coachdesk.schemas.reward import RewardCreate, RewardPublic
from coachdesk.services import accounts

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/", response_model=RewardPublic, status_code=status.HTTP_201_CREATED)
def create_reward(
    payload: RewardCreate,
    db: Session = Depends(get_db),
    coach: Profile = Depends(deps.require_role(Role.COACH)),
) -> RewardPublic:
    if accounts.get_pair(db, coach.id, payload.student_id) is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only reward your own students",
        )
    reward = Reward(coach_id=coach.id, **payload.model_dump())
    db.add(reward)
    db.commit()
    db.refresh(reward)
    logger.info(f"Coach {coach.id} created reward {reward.id} for {reward.student_id}")
    return reward


@router.get("/", response_model=list[RewardPublic])
def list_rewards(
    student_id: str | None = Query(default=None),
    db: Session = Depends(get_db),
    profile: Profile = Depends(deps.require_role(Role.STUDENT, Role.COACH)),
) -> list[RewardPublic]:
    query = db.query(Reward)
    if profile.role == Role.COACH.value:
        query = query.filter(Reward.coach_id == profile.id)
        if student_id is not None:
            query = query.filter(Reward.student_id == student_id)
    else:
        query = query.filter(Reward.student_id == profile.id)
    return query.order_by(Reward.created_at.desc()).all()


@router.post("/{reward_id}/claim", response_model=RewardPublic)
def claim_reward(
    reward_id: str,
    db: Session = Depends(get_db),
    student: Profile = Depends(deps.require_role(Role.STUDENT)),
) -> RewardPublic:
    reward = (
        db.query(Reward)
        .filter(Reward.id == reward_id, Reward.student_id == student.id)
        .first()
    )
    if not reward:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Reward not found")
    claimed = (
        db.query(Reward)
        .filter(Reward.id == reward_id, Reward.is_claimed.is_(False))
        .update({Reward.is_claimed: True}, synchronize_session=False)
    )
    db.commit()
    if not claimed:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT, detail="Reward already claimed"
        )
    db.refresh(reward)
    return reward
