# Import every model so relationship targets resolve
from artrec.models.base import Base  # noqa: F401
from artrec.models.user import User  # noqa: F401
from artrec.models.artwork import Artwork  # noqa: F401
from artrec.models.user_behavior_log import UserBehaviorLog  # noqa: F401
from artrec.models.artwork_analysis import ArtworkAnalysis  # noqa: F401
from artrec.models.user_preference_profile import UserPreferenceProfile  # noqa: F401
from artrec.models.precomputed_recommendation import PrecomputedRecommendation  # noqa: F401
