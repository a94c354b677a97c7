"""Tests for the SQLite storage layer."""

from __future__ import annotations

import threading

import pytest

from nova_orchestrator.storage import Storage


class TestActionHistory:
    def test_add_and_list_most_recent_first(self, storage: Storage) -> None:
        storage.add_action("u1", "p1", "create_page", "first", {"path": "/a"})
        storage.add_action("u1", "p1", "delete_page", "second", {"path": "/b"})

        actions = storage.recent_actions("u1", "p1")

        assert [a["description"] for a in actions] == ["second", "first"]
        assert actions[0]["input"] == {"path": "/b"}
        assert actions[0]["status"] == "completed"

    def test_scoped_by_user_and_project(self, storage: Storage) -> None:
        storage.add_action("u1", "p1", "x", "mine", {})
        storage.add_action("u2", "p1", "x", "other user", {})
        storage.add_action("u1", "p2", "x", "other project", {})

        assert [a["description"] for a in storage.recent_actions("u1", "p1")] == ["mine"]

    def test_limit(self, storage: Storage) -> None:
        for i in range(5):
            storage.add_action("u1", "p1", "x", f"a{i}", {})
        assert len(storage.recent_actions("u1", "p1", limit=3)) == 3

    def test_output_and_status(self, storage: Storage) -> None:
        storage.add_action("u1", "p1", "ai_execute", "AI: hi", {"prompt": "hi"},
                           {"response": "ok", "toolCalls": 0}, status="cancelled")
        [action] = storage.recent_actions("u1", "p1")
        assert action["output"] == {"response": "ok", "toolCalls": 0}
        assert action["status"] == "cancelled"


class TestUserContext:
    def test_empty_context(self, storage: Storage) -> None:
        ctx = storage.get_user_context("u1", "p1")
        assert ctx.tool_frequency == {}
        assert ctx.expertise_level is None
        assert ctx.active_paths == []

    def test_tool_frequency_counts_repeats(self, storage: Storage) -> None:
        storage.increment_tool_frequency("u1", "p1", ["list_pages", "read_page", "read_page"])
        storage.increment_tool_frequency("u1", "p1", ["read_page"])

        assert storage.get_user_context("u1", "p1").tool_frequency == {
            "list_pages": 1,
            "read_page": 3,
        }

    def test_expertise_only_rises(self, storage: Storage) -> None:
        assert storage.raise_expertise_level("u1", "p1", "intermediate") is True
        assert storage.raise_expertise_level("u1", "p1", "beginner") is False
        assert storage.get_user_context("u1", "p1").expertise_level == "intermediate"

        assert storage.raise_expertise_level("u1", "p1", "advanced") is True
        assert storage.raise_expertise_level("u1", "p1", "intermediate") is False
        assert storage.get_user_context("u1", "p1").expertise_level == "advanced"

    def test_same_level_is_not_rewritten(self, storage: Storage) -> None:
        storage.raise_expertise_level("u1", "p1", "beginner")
        assert storage.raise_expertise_level("u1", "p1", "beginner") is False

    def test_unknown_level_rejected(self, storage: Storage) -> None:
        with pytest.raises(ValueError):
            storage.raise_expertise_level("u1", "p1", "guru")

    def test_active_paths_most_recent_first_deduplicated(self, storage: Storage) -> None:
        storage.touch_active_paths("u1", "p1", ["/a", "/b"])
        result = storage.touch_active_paths("u1", "p1", ["/a", "/c"])

        assert result == ["/c", "/a", "/b"]
        assert storage.get_user_context("u1", "p1").active_paths == ["/c", "/a", "/b"]

    def test_active_paths_capped(self, storage: Storage) -> None:
        storage.touch_active_paths("u1", "p1", [f"/p{i}" for i in range(30)])
        paths = storage.get_user_context("u1", "p1").active_paths

        assert len(paths) == 20
        assert paths[0] == "/p29"
        assert len(set(paths)) == 20

    def test_concurrent_frequency_updates_are_not_lost(self, storage: Storage) -> None:
        def bump() -> None:
            for _ in range(10):
                storage.increment_tool_frequency("u1", "p1", ["list_pages"])

        threads = [threading.Thread(target=bump) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert storage.get_user_context("u1", "p1").tool_frequency == {"list_pages": 40}


class TestDeliveryConfig:
    def test_longest_matching_pattern_wins(self, storage: Storage) -> None:
        storage.set_delivery_mode("p1", "/products/*", "generative")
        storage.set_delivery_mode("p1", "/products/special/*", "hybrid")

        assert storage.get_delivery_mode("p1", "/products/shoes") == "generative"
        assert storage.get_delivery_mode("p1", "/products/special/one") == "hybrid"
        assert storage.get_delivery_mode("p1", "/about") is None

    def test_upsert_keeps_unspecified_fields(self, storage: Storage) -> None:
        storage.upsert_generative_config("p1", "/blog/*", delivery_mode="generative",
                                         intent_config='{"a": 1}')
        storage.upsert_generative_config("p1", "/blog/*", confidence_thresholds='{"min": 0.5}')

        row = storage.get_generative_config("p1", "/blog/*")
        assert row is not None
        assert row["delivery_mode"] == "generative"
        assert row["intent_config"] == '{"a": 1}'
        assert row["confidence_thresholds"] == '{"min": 0.5}'


class TestSearchIndex:
    def test_keywords_are_and_matched(self, storage: Storage) -> None:
        storage.index_page("p1", "/en/pricing", "Pricing", "Enterprise plans and pricing tiers")
        storage.index_page("p1", "/en/about", "About", "Our enterprise story")

        results = storage.search("p1", ["enterprise", "tiers"])
        assert [r["path"] for r in results] == ["/en/pricing"]

    def test_remove_page(self, storage: Storage) -> None:
        storage.index_page("p1", "/en/a", "A", "alpha")
        storage.remove_page("p1", "/en/a")
        assert storage.search("p1", ["alpha"]) == []


class TestProjectData:
    def test_brand_profile_round_trip(self, storage: Storage) -> None:
        assert storage.get_brand_profile("p1") is None
        storage.save_brand_profile("p1", {"voice": {"tone": "warm"}})
        profile = storage.get_brand_profile("p1")
        assert profile is not None
        assert profile["voice"] == {"tone": "warm"}
        assert profile["designTokens"] == {}

    def test_block_library(self, storage: Storage) -> None:
        storage.save_block("p1", {"name": "hero", "category": "Media", "css": ".hero{}"})
        assert storage.list_blocks("p1") == [
            {"name": "hero", "category": "Media", "description": "", "status": "draft"}
        ]
        block = storage.get_block("p1", "hero")
        assert block is not None
        assert block["css"] == ".hero{}"

    def test_value_scores_ordered_by_composite(self, storage: Storage) -> None:
        storage.save_value_score("p1", "/a", composite_score=0.2)
        storage.save_value_score("p1", "/b", composite_score=0.9)
        assert [s["path"] for s in storage.get_value_scores("p1")] == ["/b", "/a"]

    def test_telemetry_since(self, storage: Storage) -> None:
        storage.record_telemetry("p1", "/a", "2026-01-01", page_views=5)
        storage.record_telemetry("p1", "/a", "2026-03-01", page_views=9)
        rows = storage.get_telemetry("p1", "2026-02-01")
        assert [r["page_views"] for r in rows] == [9]

    def test_project(self, storage: Storage) -> None:
        storage.save_project("p1", "Acme", slug="acme", da_org="acme", da_repo="site")
        project = storage.get_project("p1")
        assert project is not None
        assert project["name"] == "Acme"
        assert storage.get_project("missing") is None


def test_storage_creates_schema_once(tmp_path) -> None:
    Storage(tmp_path / "x.db")
    Storage(tmp_path / "x.db")
