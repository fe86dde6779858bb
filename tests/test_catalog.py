"""
Tests for the catalog store and candidate filtering.
"""

from datetime import datetime, timedelta

from contribux.catalog import CandidateFilter, RepositoryFilter
from contribux.enums import ContributionType, OpportunityStatus, SkillLevel
from contribux.utils import utcnow


class TestCandidateOpportunities:
    def test_open_only_by_default(self, catalog, ingestion, seeded):
        ingestion.transition_status(seeded["flaky"].id, "in_progress")

        ids = [o.id for o in catalog.list_candidate_opportunities(CandidateFilter())]

        assert ids == [seeded["docs"].id, seeded["parser"].id]

    def test_filters_by_type_difficulty_and_language(self, catalog, seeded):
        by_type = catalog.list_candidate_opportunities(CandidateFilter(types=(ContributionType.TEST,)))
        by_difficulty = catalog.list_candidate_opportunities(
            CandidateFilter(difficulties=(SkillLevel.ADVANCED,))
        )
        by_language = catalog.list_candidate_opportunities(CandidateFilter(languages=("Rust",)))

        assert [o.id for o in by_type] == [seeded["flaky"].id]
        assert [o.id for o in by_difficulty] == [seeded["parser"].id]
        assert [o.id for o in by_language] == [seeded["parser"].id]

    def test_min_stars_and_excluded_repositories(self, catalog, seeded):
        popular = catalog.list_candidate_opportunities(CandidateFilter(min_repo_stars=1000))
        excluded = catalog.list_candidate_opportunities(
            CandidateFilter(exclude_repository_ids=frozenset({seeded["python_repo"].id}))
        )

        assert {o.repository_id for o in popular} == {seeded["python_repo"].id}
        assert [o.id for o in excluded] == [seeded["parser"].id]

    def test_expired_opportunities_dropped(self, catalog, ingestion, seeded):
        now = utcnow()
        ingestion.upsert_opportunity(
            seeded["rust_repo"].id,
            "Port the lexer",
            type="feature",
            difficulty="expert",
            created_at=now - timedelta(days=10),
            expires_at=now - timedelta(days=1),
        )

        titles = [o.title for o in catalog.list_candidate_opportunities(CandidateFilter(), now=now)]

        assert "Port the lexer" not in titles

    def test_keyset_pages_follow_id_order(self, catalog, seeded):
        first = catalog.list_candidate_opportunities(CandidateFilter(limit=2))
        rest = catalog.list_candidate_opportunities(CandidateFilter(after_id=first[-1].id, limit=2))

        assert [o.id for o in first] == [seeded["docs"].id, seeded["flaky"].id]
        assert [o.id for o in rest] == [seeded["parser"].id]

    def test_empty_id_restriction_returns_nothing(self, catalog, seeded):
        assert catalog.list_candidate_opportunities(CandidateFilter(ids=())) == []

    def test_snapshot_carries_repository_attributes(self, catalog, seeded):
        snapshot = catalog.get_opportunity(seeded["docs"].id)

        assert snapshot.repository_language == "Python"
        assert snapshot.repository_health > 0
        assert snapshot.status == OpportunityStatus.OPEN
        assert snapshot.description_embedding is not None


class TestCatalogStore:
    def test_missing_entities_return_none(self, catalog):
        assert catalog.get_user(404) is None
        assert catalog.get_repository(404) is None
        assert catalog.get_opportunity(404) is None
        assert catalog.get_preferences(404) is None

    def test_excluded_repositories_are_contributed_ones(self, catalog, ingestion, seeded):
        user_id = seeded["user"].id
        ingestion.record_interaction(user_id, seeded["python_repo"].id, contributed=True)
        ingestion.record_interaction(user_id, seeded["rust_repo"].id, starred=True, visited=True)

        assert catalog.get_excluded_repository_ids(user_id) == frozenset({seeded["python_repo"].id})

    def test_count_opportunities(self, catalog, ingestion, seeded):
        ingestion.transition_status(seeded["docs"].id, "closed")

        assert catalog.count_opportunities(seeded["python_repo"].id) == (2, 1)

    def test_repository_filter(self, catalog, seeded):
        python_only = catalog.list_candidate_repositories(RepositoryFilter(language="python"))
        popular = catalog.list_candidate_repositories(RepositoryFilter(min_stars=500))

        assert [r.id for r in python_only] == [seeded["python_repo"].id]
        assert [r.id for r in popular] == [seeded["python_repo"].id]

    def test_topics_deduplicated(self, catalog, ingestion):
        repository = ingestion.upsert_repository("octo/dupes", topics=["cli", "cli", "python"])

        assert catalog.get_repository(repository.id).topics == ("cli", "python")

    def test_mutation_stamps_updated_at(self, ingestion, seeded):
        repository = seeded["python_repo"]
        repository.updated_at = datetime(2020, 1, 1)

        ingestion.upsert_repository("octo/pyweb", stars=1300)

        assert repository.updated_at > datetime(2020, 1, 1)
        assert repository.stars == 1300

    def test_delete_cascades(self, catalog, ingestion, seeded):
        ingestion.record_interaction(seeded["user"].id, seeded["python_repo"].id, contributed=True)

        ingestion.delete_repository(seeded["python_repo"].id)

        assert catalog.get_repository(seeded["python_repo"].id) is None
        assert catalog.get_opportunity(seeded["docs"].id) is None
        assert catalog.get_excluded_repository_ids(seeded["user"].id) == frozenset()
