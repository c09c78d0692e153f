# Models package init
"""
Importing this package registers every table with Base.metadata, which
Alembic and the test fixtures rely on.
"""

from bizzylink.models.user import User, ReputationVote, Vouch, Transaction  # noqa: F401
from bizzylink.models.forum import ForumCategory, ForumThread, ForumPost, PostLike  # noqa: F401
from bizzylink.models.social import FriendRequest, Friendship, Follow  # noqa: F401
from bizzylink.models.link_code import LinkCode  # noqa: F401
from bizzylink.models.notification import Notification, AuditLog  # noqa: F401
from bizzylink.models.wall import WallPost, WallPostLike, WallComment, WallPostView  # noqa: F401
