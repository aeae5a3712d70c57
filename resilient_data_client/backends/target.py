"""
Backend selection for logical operations.

A single process-wide flag decides whether operations that the secondary
data service can serve are routed to it. The flag is read on every call,
so flipping it takes effect immediately. There is no automatic failover:
a primary failure is never retried against the secondary.
"""

import logging
from enum import Enum

logger = logging.getLogger(__name__)


class BackendTarget(str, Enum):
    """The backend a call is sent to."""
    PRIMARY = "primary"
    SECONDARY = "secondary"


class Operation(str, Enum):
    """Logical operations exposed by the Facade."""
    HEALTH_CHECK = "health_check"
    # Auth
    LOGIN = "login"
    REGISTER = "register"
    GET_PROFILE = "get_profile"
    # Articles
    GET_ARTICLES = "get_articles"
    GET_ARTICLE = "get_article"
    GET_ARTICLE_BY_SLUG = "get_article_by_slug"
    CREATE_ARTICLE = "create_article"
    UPDATE_ARTICLE = "update_article"
    DELETE_ARTICLE = "delete_article"
    GET_FEATURED_ARTICLE = "get_featured_article"
    SET_FEATURED_ARTICLE = "set_featured_article"
    UNSET_FEATURED_ARTICLE = "unset_featured_article"
    GET_RELATED_ARTICLES = "get_related_articles"
    # Authors
    GET_AUTHORS = "get_authors"
    GET_AUTHOR = "get_author"
    CREATE_AUTHOR = "create_author"
    UPDATE_AUTHOR = "update_author"
    DELETE_AUTHOR = "delete_author"
    # Categories
    GET_CATEGORIES = "get_categories"
    GET_CATEGORY = "get_category"
    CREATE_CATEGORY = "create_category"
    UPDATE_CATEGORY = "update_category"
    DELETE_CATEGORY = "delete_category"
    # Tags
    GET_TAGS = "get_tags"
    # Gallery
    GET_GALLERY_ITEMS = "get_gallery_items"
    GET_GALLERY_ITEM = "get_gallery_item"
    CREATE_GALLERY_ITEM = "create_gallery_item"
    UPDATE_GALLERY_ITEM = "update_gallery_item"
    DELETE_GALLERY_ITEM = "delete_gallery_item"
    GET_GALLERY_CATEGORIES = "get_gallery_categories"
    # AI
    ASK_AI = "ask_ai"
    GENERATE_SUMMARY = "generate_summary"
    GET_AI_STATUS = "get_ai_status"


# Operations the secondary data service can answer. Authentication and
# mutations are owned by the primary backend.
SECONDARY_OPERATIONS: frozenset[Operation] = frozenset({
    Operation.HEALTH_CHECK,
    Operation.GET_ARTICLES,
    Operation.GET_ARTICLE_BY_SLUG,
    Operation.GET_FEATURED_ARTICLE,
    Operation.GET_AUTHORS,
    Operation.GET_CATEGORIES,
    Operation.GET_GALLERY_ITEMS,
    Operation.GET_GALLERY_CATEGORIES,
})


class BackendSelector:
    """
    Chooses the backend for each logical operation.

    Attributes:
        use_secondary: Process-wide flag routing supported operations to the
            secondary backend
    """

    def __init__(self, use_secondary: bool = False):
        self.use_secondary = use_secondary

    def route(self, operation: Operation) -> BackendTarget:
        """
        Select the backend for an operation.

        Args:
            operation: The logical operation being called

        Returns:
            SECONDARY if the flag is set and the operation has a secondary
            mapping, PRIMARY otherwise
        """
        if self.use_secondary and operation in SECONDARY_OPERATIONS:
            return BackendTarget.SECONDARY
        return BackendTarget.PRIMARY

    def set_target(self, target: BackendTarget) -> None:
        """Flip the process-wide flag."""
        use_secondary = target == BackendTarget.SECONDARY
        if use_secondary != self.use_secondary:
            logger.info(
                "Backend routing changed",
                extra={"extra_data": {"target": target.value}}
            )
        self.use_secondary = use_secondary
