"""
Application constants for the contribux engine.

Contains technology synonym mappings, match reason labels and the default
scoring weights. The weights are defaults for the validated configuration
records in ``contribux.scoring``; they are tunable, not proven optimal.
"""

# =============================================================================
# Technology Mappings
# =============================================================================

TECHNOLOGY_SYNONYMS = {
    "javascript": ["js", "ecmascript"],
    "js": ["javascript", "ecmascript"],
    "typescript": ["ts"],
    "ts": ["typescript"],
    "node": ["node.js", "nodejs"],
    "node.js": ["node", "nodejs"],
    "nodejs": ["node", "node.js"],
    "python": ["py", "python3"],
    "py": ["python", "python3"],
    "python3": ["python", "py"],
    "react": ["reactjs", "react.js"],
    "next.js": ["nextjs", "next"],
    "nextjs": ["next.js", "next"],
    "vue": ["vue.js", "vuejs"],
    "vue.js": ["vue", "vuejs"],
    "go": ["golang"],
    "golang": ["go"],
    "c++": ["cpp", "cplusplus"],
    "cpp": ["c++", "cplusplus"],
    "c#": [".net", "dotnet", "csharp"],
    "csharp": ["c#", ".net", "dotnet"],
    "postgresql": ["postgres", "pg"],
    "postgres": ["postgresql", "pg"],
    "mongodb": ["mongo"],
    "mongo": ["mongodb"],
    "rust": ["rs"],
    "ruby": ["rb"],
    "kotlin": ["kt"],
}

# =============================================================================
# Scoring Weights (defaults)
# =============================================================================

# Hybrid ranking
DEFAULT_TEXT_WEIGHT = 0.3
DEFAULT_VECTOR_WEIGHT = 0.7
DEFAULT_SIMILARITY_THRESHOLD = 0.1

# Lexical scoring
LEXICAL_TITLE_WEIGHT = 1.0
LEXICAL_DESCRIPTION_WEIGHT = 0.6
LEXICAL_TERM_MATCH_SCORE = 0.8

# Preference matching (maximum contribution of each term)
BASE_RELEVANCE_WEIGHT = 0.4
SKILL_COMPATIBILITY_WEIGHT = 0.3
TYPE_ALIGNMENT_WEIGHT = 0.2
TIME_BUDGET_WEIGHT = 0.2
TECHNOLOGY_ALIGNMENT_WEIGHT = 0.2
REASON_EPSILON = 0.01
SEMANTIC_REASON_THRESHOLD = 0.7

# Trending
APPLICATION_WEIGHT = 3.0
TRENDING_DECAY_EXPONENT = 1.5
TRENDING_AGE_OFFSET_HOURS = 2.0

# Repository health (points)
RECENCY_POINTS = ((7, 30.0), (30, 20.0), (90, 10.0))  # (max age days, points)
RESPONSIVENESS_POINTS = ((24, 25.0), (24 * 7, 15.0), (24 * 30, 10.0))  # (max hours, points)
PR_MERGE_RATE_POINTS = 20.0
ISSUE_CLOSE_RATE_POINTS = 15.0
CONTRIBUTING_GUIDE_POINTS = 10.0

# Health report thresholds
HEALTH_STATUS_THRESHOLDS = ((80.0, "excellent"), (60.0, "good"), (40.0, "fair"))
STRENGTH_THRESHOLD = 70.0
IMPROVEMENT_THRESHOLD = 50.0

# =============================================================================
# Match Reasons
# =============================================================================

REASON_SIMILAR_INTERESTS = "Similar to your interests"
REASON_HIGH_PRIORITY = "High priority for maintainers"
REASON_RELEVANT = "Relevant opportunity"
REASON_SKILL_EXACT = "Matches your skill level"
REASON_SKILL_CLOSE = "Close to your skill level"
REASON_TYPE = "Preferred contribution type"
REASON_TIME_FITS = "Fits your time budget"
REASON_TIME_STRETCH = "Slightly over your time budget"
REASON_LANGUAGES = "Uses your preferred languages"
REASON_GOOD_FIRST_ISSUE = "Good first issue"
REASON_HELP_WANTED = "Help wanted"
REASON_MENTORSHIP = "Mentorship available"

__all__ = [
    "TECHNOLOGY_SYNONYMS",
    "DEFAULT_TEXT_WEIGHT",
    "DEFAULT_VECTOR_WEIGHT",
    "DEFAULT_SIMILARITY_THRESHOLD",
    "LEXICAL_TITLE_WEIGHT",
    "LEXICAL_DESCRIPTION_WEIGHT",
    "LEXICAL_TERM_MATCH_SCORE",
    "BASE_RELEVANCE_WEIGHT",
    "SKILL_COMPATIBILITY_WEIGHT",
    "TYPE_ALIGNMENT_WEIGHT",
    "TIME_BUDGET_WEIGHT",
    "TECHNOLOGY_ALIGNMENT_WEIGHT",
    "REASON_EPSILON",
    "SEMANTIC_REASON_THRESHOLD",
    "APPLICATION_WEIGHT",
    "TRENDING_DECAY_EXPONENT",
    "TRENDING_AGE_OFFSET_HOURS",
    "RECENCY_POINTS",
    "RESPONSIVENESS_POINTS",
    "PR_MERGE_RATE_POINTS",
    "ISSUE_CLOSE_RATE_POINTS",
    "CONTRIBUTING_GUIDE_POINTS",
    "HEALTH_STATUS_THRESHOLDS",
    "STRENGTH_THRESHOLD",
    "IMPROVEMENT_THRESHOLD",
]
