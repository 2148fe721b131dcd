from .user import User
from .workout import WorkoutList, WorkoutExercise, WorkoutSession, WorkoutSessionDetail
from .measurement import BodyMeasurement
from .assessment import Assessment, AISuggestedWorkout, WorkoutChatHistory
from .affiliate import AffiliateInvite, AffiliateBonus
from .payment import PaymentTransaction
from .goal import FitnessGoal
from .feedback import UserFeedback, AppSetting

__all__ = [
    "User",
    "WorkoutList",
    "WorkoutExercise",
    "WorkoutSession",
    "WorkoutSessionDetail",
    "BodyMeasurement",
    "Assessment",
    "AISuggestedWorkout",
    "WorkoutChatHistory",
    "AffiliateInvite",
    "AffiliateBonus",
    "PaymentTransaction",
    "FitnessGoal",
    "UserFeedback",
    "AppSetting",
]
