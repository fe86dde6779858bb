"""User, preference and interaction data access."""

from typing import Optional

from contribux.models import User, UserPreference, UserRepositoryInteraction
from contribux.utils import ordered_set, utcnow

from .base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Repository for User operations."""

    model = User

    def get_by_username(self, github_username: str) -> User | None:
        return self.session.query(User).filter(User.github_username == github_username).first()

    def create_user(self, **fields) -> User:
        return self.create(**self._normalize(fields))

    def replace(self, user: User, **fields) -> User:
        return self.apply(user, **self._normalize(fields))

    def list_embeddings(self) -> list[tuple[int, bytes]]:
        """(id, profile embedding) for users with a profile embedding."""
        return [
            (row.id, row.profile_embedding)
            for row in self.session.query(User.id, User.profile_embedding)
            .filter(User.profile_embedding.isnot(None))
            .order_by(User.id)
            .all()
        ]

    @staticmethod
    def _normalize(fields: dict) -> dict:
        fields = dict(fields)
        if "preferred_languages" in fields:
            fields["preferred_languages"] = list(ordered_set(fields["preferred_languages"]))
        level = fields.get("skill_level")
        if level is not None and hasattr(level, "value"):
            fields["skill_level"] = level.value
        return fields


class PreferenceRepository(BaseRepository[UserPreference]):
    """Repository for the one-to-one user preferences row."""

    model = UserPreference

    def get_for_user(self, user_id: int) -> UserPreference | None:
        return self.session.query(UserPreference).filter(UserPreference.user_id == user_id).first()

    def upsert(self, user_id: int, **fields) -> UserPreference:
        """Insert or wholesale-update the preferences of ``user_id``."""
        if "preferred_contribution_types" in fields:
            fields["preferred_contribution_types"] = [
                getattr(t, "value", t) for t in ordered_set(fields["preferred_contribution_types"])
            ]
        preference = self.get_for_user(user_id)
        if preference is None:
            return self.create(user_id=user_id, **fields)
        return self.apply(preference, **fields)


class InteractionRepository(BaseRepository[UserRepositoryInteraction]):
    """Repository for (user, repository) interaction records."""

    model = UserRepositoryInteraction

    def get(self, user_id: int, repository_id: int) -> UserRepositoryInteraction | None:
        return (
            self.session.query(UserRepositoryInteraction)
            .filter(
                UserRepositoryInteraction.user_id == user_id,
                UserRepositoryInteraction.repository_id == repository_id,
            )
            .first()
        )

    def record(
        self,
        user_id: int,
        repository_id: int,
        contributed: Optional[bool] = None,
        starred: Optional[bool] = None,
        visited: Optional[bool] = None,
        opportunities_viewed: int = 0,
        opportunities_applied: int = 0,
    ) -> UserRepositoryInteraction:
        """
        Upsert the interaction row for a (user, repository) pair.

        Flags given as ``None`` are left unchanged; counters are incremented.
        A visit increments ``visit_count``.
        """
        interaction = self.get(user_id, repository_id)
        if interaction is None:
            interaction = self.create(user_id=user_id, repository_id=repository_id)

        changes: dict = {"last_interaction_at": utcnow()}
        if contributed is not None:
            changes["contributed"] = contributed
        if starred is not None:
            changes["starred"] = starred
        if visited:
            changes["visited"] = True
            changes["visit_count"] = (interaction.visit_count or 0) + 1
        if opportunities_viewed:
            changes["opportunities_viewed"] = (interaction.opportunities_viewed or 0) + opportunities_viewed
        if opportunities_applied:
            changes["opportunities_applied"] = (interaction.opportunities_applied or 0) + opportunities_applied
        return self.apply(interaction, **changes)

    def contributed_repository_ids(self, user_id: int) -> frozenset[int]:
        """Repositories the user contributed to: the hard feed exclusion set."""
        rows = (
            self.session.query(UserRepositoryInteraction.repository_id)
            .filter(
                UserRepositoryInteraction.user_id == user_id,
                UserRepositoryInteraction.contributed.is_(True),
            )
            .all()
        )
        return frozenset(row[0] for row in rows)
