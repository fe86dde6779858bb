"""
contribux opportunity engine.

Discovery and ranking core that matches developers to open-source
contribution opportunities: vector and lexical indexes, hybrid ranking,
personalized matching, trending and repository health scoring.

Usage:
    # Database
    from contribux.db import db
    from contribux.models import Opportunity, Repository, User

    # Config
    from contribux.config import get_settings

    # Logging
    from contribux.logging import get_logger, configure_logging

    # Services
    from contribux.services import DiscoveryService, IngestionService
"""

__version__ = "1.0.0"

# Lazy imports to avoid circular dependencies
# Users should import directly from submodules:
#   from contribux.db import db
#   from contribux.config import get_settings
#   from contribux.logging import get_logger
