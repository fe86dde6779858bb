"""
Cache key management.

Naming convention: {domain}:{entity}:{id}:{subtype}
"""


class CacheKeys:
    """
    Centralized cache key definitions.

    Examples:
        - feed:user:123:20 -> user 123's feed, limit 20
        - trending:168:1:10 -> trending list for a 168h window
    """

    @staticmethod
    def user_feed(user_id: int, limit: int) -> str:
        return f"feed:user:{user_id}:{limit}"

    @staticmethod
    def user_feed_pattern(user_id: int) -> str:
        """Pattern to match every cached feed of a user."""
        return f"feed:user:{user_id}:*"

    @staticmethod
    def trending(window_hours: float, min_engagement: float, limit: int) -> str:
        return f"trending:{window_hours:g}:{min_engagement:g}:{limit}"

    @staticmethod
    def trending_pattern() -> str:
        return "trending:*"

    @staticmethod
    def feed_pattern() -> str:
        """Pattern to match every cached feed."""
        return "feed:*"

    @staticmethod
    def index_generation() -> str:
        """Counter bumped whenever a worker changes the search indexes."""
        return "index:generation"
