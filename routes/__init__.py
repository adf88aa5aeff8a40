from .accounts import router as accounts_router
from .posts import router as posts_router
from .profiles import router as profiles_router
from .quests import router as quests_router
from .social import router as social_router

routers = [accounts_router, profiles_router, posts_router, quests_router, social_router]

__all__ = ["routers"]
