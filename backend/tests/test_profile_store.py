"""
Tests for typed profile records and the in-memory profile store.
"""

import pytest

from tutor_guard.core.exceptions import ProfileSchemaError
from tutor_guard.profile import (
    InMemoryProfileStore,
    LearningStylePreferences,
    OptInFlags,
    ProfileStore,
    SkillScores,
    UserProfile,
)


class TestProfileModels:
    def test_parses_camel_case_document(self, opted_in_document):
        profile = UserProfile.from_document(opted_in_document)

        assert profile.user_id == "student-1"
        assert profile.learning_preferences.visual == 0.8
        assert profile.learning_preferences.preferred_depth == "detailed"
        assert profile.skill_scores.subject_mastery == {"algebra": 0.7}
        assert profile.opt_in_flags.profile_storage is True

    def test_defaults_for_missing_fields(self):
        profile = UserProfile.from_document({"userId": "u"})

        assert profile.learning_preferences == LearningStylePreferences()
        assert profile.opt_in_flags.any_enabled is False

    def test_unknown_fields_ignored(self):
        profile = UserProfile.from_document({"userId": "u", "favouriteColour": "green"})
        assert "favouriteColour" not in profile.to_document()

    @pytest.mark.parametrize("version", [0, 2, "1"])
    def test_unsupported_schema_version_rejected(self, version):
        with pytest.raises(ProfileSchemaError):
            UserProfile.from_document({"userId": "u", "schemaVersion": version})

    def test_invalid_field_rejected(self):
        with pytest.raises(ProfileSchemaError):
            UserProfile.from_document({"userId": "u", "learningPreferences": {"visual": 2.0}})

    def test_document_round_trip_uses_camel_case(self, opted_in_document):
        document = UserProfile.from_document(opted_in_document).to_document()

        assert document["learningPreferences"]["preferredDepth"] == "detailed"
        assert document["optInFlags"]["profileStorage"] is True
        assert document["schemaVersion"] == 1

    def test_dominant_style_prefers_earlier_on_tie(self):
        assert LearningStylePreferences().dominant_style() == "visual"
        assert LearningStylePreferences(reading=0.9).dominant_style() == "reading"


@pytest.mark.asyncio
class TestInMemoryProfileStore:
    async def test_satisfies_protocol(self, profile_store):
        assert isinstance(profile_store, ProfileStore)

    async def test_get_opted_in_profile(self, profile_store):
        profile = await profile_store.get_profile("student-1")
        assert profile is not None
        assert profile.display_name == "Sam"

    async def test_missing_profile(self, profile_store):
        assert await profile_store.get_profile("nobody") is None

    async def test_not_opted_in_profile_hidden(self):
        store = InMemoryProfileStore({"u": {"userId": "u", "optInFlags": {"profileStorage": False}}})
        assert await store.get_profile("u") is None
        assert not await store.has_opted_in("u")

    async def test_set_profile_requires_opt_in(self):
        store = InMemoryProfileStore()

        assert not await store.set_profile("u", UserProfile(user_id="u"))
        assert await store.set_profile("u", UserProfile(user_id="u", opt_in_flags=OptInFlags(profile_storage=True)))
        assert await store.has_opted_in("u")

    async def test_merge_updates_existing(self, profile_store):
        merged = await profile_store.merge_profile("student-1", {"display_name": "Samira"})
        profile = await profile_store.get_profile("student-1")

        assert merged
        assert profile.display_name == "Samira"
        assert profile.learning_preferences.visual == 0.8

    async def test_merge_creates_only_with_opt_in(self):
        store = InMemoryProfileStore()

        assert not await store.merge_profile("u", {"displayName": "Ann"})
        assert await store.merge_profile("u", {"displayName": "Ann", "optInFlags": {"profileStorage": True}})
        assert (await store.get_profile("u")).display_name == "Ann"

    async def test_merge_rejects_invalid_patch(self, profile_store):
        assert not await profile_store.merge_profile("student-1", {"learningPreferences": {"visual": 5}})
        assert (await profile_store.get_profile("student-1")).learning_preferences.visual == 0.8

    async def test_update_learning_preferences_and_skills(self, profile_store):
        await profile_store.update_learning_preferences(
            "student-1", LearningStylePreferences(auditory=0.9)
        )
        await profile_store.update_skill_scores(
            "student-1", SkillScores(subject_mastery={"geometry": 0.4})
        )
        profile = await profile_store.get_profile("student-1")

        assert profile.learning_preferences.auditory == 0.9
        assert profile.skill_scores.subject_mastery == {"geometry": 0.4}

    async def test_opt_out_hides_profile(self, profile_store):
        await profile_store.update_opt_in_flags("student-1", OptInFlags(profile_storage=False))
        assert await profile_store.get_profile("student-1") is None

    async def test_delete(self, profile_store):
        assert await profile_store.delete_profile("student-1")
        assert await profile_store.get_profile("student-1") is None
        assert not await profile_store.delete_profile("student-1")

    async def test_privacy_notice(self):
        assert "opt out at any time" in InMemoryProfileStore.privacy_notice()
