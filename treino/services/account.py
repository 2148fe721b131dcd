import logging

from .. import db
from ..models.affiliate import AffiliateBonus, AffiliateInvite
from ..models.assessment import AISuggestedWorkout, Assessment, WorkoutChatHistory
from ..models.feedback import UserFeedback
from ..models.goal import FitnessGoal
from ..models.measurement import BodyMeasurement
from ..models.payment import PaymentTransaction
from ..models.user import User
from ..models.workout import (
    WorkoutExercise,
    WorkoutList,
    WorkoutSession,
    WorkoutSessionDetail,
)

logger = logging.getLogger(__name__)


class AccountDeletionError(Exception):
    def __init__(self, step, cause):
        super().__init__(f"account deletion failed at step '{step}': {cause}")
        self.step = step


def _delete_sessions(user_id):
    session_ids = db.session.query(WorkoutSession.id).filter(WorkoutSession.user_id == user_id)
    WorkoutSessionDetail.query.filter(
        WorkoutSessionDetail.session_id.in_(session_ids.scalar_subquery())
    ).delete(synchronize_session=False)
    WorkoutSession.query.filter_by(user_id=user_id).delete(synchronize_session=False)


def _delete_workout_lists(user_id):
    list_ids = db.session.query(WorkoutList.id).filter(WorkoutList.user_id == user_id)
    WorkoutExercise.query.filter(
        WorkoutExercise.workout_list_id.in_(list_ids.scalar_subquery())
    ).delete(synchronize_session=False)
    WorkoutList.query.filter_by(user_id=user_id).delete(synchronize_session=False)


def _delete_ai_data(user_id):
    WorkoutChatHistory.query.filter_by(user_id=user_id).delete(synchronize_session=False)
    AISuggestedWorkout.query.filter_by(user_id=user_id).delete(synchronize_session=False)
    Assessment.query.filter_by(user_id=user_id).delete(synchronize_session=False)


def _delete_profile_data(user_id):
    BodyMeasurement.query.filter_by(user_id=user_id).delete(synchronize_session=False)
    FitnessGoal.query.filter_by(user_id=user_id).delete(synchronize_session=False)
    PaymentTransaction.query.filter_by(user_id=user_id).delete(synchronize_session=False)
    UserFeedback.query.filter_by(user_id=user_id).update(
        {"user_id": None}, synchronize_session=False
    )


def _delete_affiliate_data(user_id):
    AffiliateInvite.query.filter_by(sender_id=user_id).delete(synchronize_session=False)
    AffiliateBonus.query.filter(
        (AffiliateBonus.referrer_id == user_id) | (AffiliateBonus.referred_id == user_id)
    ).delete(synchronize_session=False)
    User.query.filter_by(referred_by=user_id).update(
        {"referred_by": None}, synchronize_session=False
    )


def _delete_user(user_id):
    deleted = User.query.filter_by(id=user_id).delete(synchronize_session=False)
    if deleted != 1:
        raise LookupError("user record not found")


# Order matters: training data first, the auth record last.
DELETION_STEPS = (
    ("workout_sessions", _delete_sessions),
    ("workout_lists", _delete_workout_lists),
    ("ai_data", _delete_ai_data),
    ("profile_data", _delete_profile_data),
    ("affiliate_data", _delete_affiliate_data),
    ("user", _delete_user),
)


def delete_account(user_id):
    """Remove the user and everything they own in one transaction."""
    for step, func in DELETION_STEPS + (("commit", lambda _: db.session.commit()),):
        try:
            func(user_id)
        except Exception as e:
            db.session.rollback()
            logger.exception("account deletion for user %s failed at %s", user_id, step)
            raise AccountDeletionError(step, e) from e
    logger.info("account %s deleted", user_id)
