from .base import Base
from .user import User
from .payment_intent import PaymentIntent
from .prompt import Prompt
from .community_post import CommunityPost
from .error_code import ErrorCode

__all__ = [
    "Base",
    "User",
    "PaymentIntent",
    "Prompt",
    "CommunityPost",
    "ErrorCode",
]
