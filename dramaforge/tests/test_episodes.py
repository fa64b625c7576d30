"""
Unit tests for episode progress and the auto-advance policy.
"""

import json

from dramaforge.core.episodes import (
    AdvanceKind,
    build_progress,
    decide_advance,
    derive_status,
    episode_id_for,
    episode_number,
    episode_path,
    next_episode_number,
)
from dramaforge.models import AutoAdvancePreference, Document, EpisodeStatus

PROJECT = "p1"


def _doc(path: str, content: str) -> Document:
    return Document(project_id=PROJECT, path=path, content=content)


def _script(length: int) -> str:
    return "# The Drowned Bell\n" + "x" * length


class TestEpisodeIds:
    """Tests for id and path helpers."""

    def test_ids_and_paths(self):
        """Test zero-padded ids and their paths."""
        assert episode_id_for(3) == "EP-03"
        assert episode_path(12) == "episodes/EP-12.md"
        assert episode_number("episodes/EP-07.md") == 7
        assert episode_number("ep-2") == 2
        assert episode_number("world.md") is None


class TestDeriveStatus:
    """Tests for derive_status thresholds."""

    def test_thresholds(self):
        """Test status bands on trimmed length."""
        assert derive_status("", False) == EpisodeStatus.NOT_STARTED
        assert derive_status("x" * 20, False) == EpisodeStatus.NOT_STARTED
        assert derive_status("x" * 21, False) == EpisodeStatus.IN_PROGRESS
        assert derive_status("x" * 200, False) == EpisodeStatus.IN_PROGRESS
        assert derive_status("x" * 201, False) == EpisodeStatus.SCRIPT_COMPLETED

    def test_whitespace_is_ignored(self):
        """Test padding does not count toward length."""
        assert derive_status("   " + "x" * 10 + "\n" * 300, False) == EpisodeStatus.NOT_STARTED

    def test_storyboard_wins(self):
        """Test a scene breakdown upgrades the status regardless of length."""
        assert derive_status("", True) == EpisodeStatus.STORYBOARD_COMPLETED


class TestBuildProgress:
    """Tests for the derived progress snapshot."""

    def test_locks_follow_previous_episode(self):
        """Test an episode is locked until the one before it is complete."""
        docs = [
            _doc("episodes/EP-01.md", _script(250)),
            _doc("episodes/EP-02.md", _script(50)),
            _doc("episodes/EP-03.md", ""),
            _doc("world.md", "Tides"),
        ]
        progress = build_progress(docs)

        assert [e.episode_id for e in progress] == ["EP-01", "EP-02", "EP-03"]
        assert [e.status for e in progress] == [
            EpisodeStatus.SCRIPT_COMPLETED,
            EpisodeStatus.IN_PROGRESS,
            EpisodeStatus.NOT_STARTED,
        ]
        assert [e.is_locked for e in progress] == [False, False, True]
        assert [e.can_advance for e in progress] == [True, False, False]
        assert progress[0].title == "The Drowned Bell"

    def test_scenes_mark_storyboard_completed(self):
        """Test a non-empty scene collection completes the storyboard."""
        scenes = json.dumps([{"location": "Bell tower", "summary": "s", "shots": []}])
        docs = [_doc("episodes/EP-01.md", "short"), _doc("scenes/EP-01.json", scenes)]
        progress = build_progress(docs)
        assert progress[0].status == EpisodeStatus.STORYBOARD_COMPLETED
        assert progress[0].scene_count == 1

    def test_gaps_are_not_reported(self):
        """Test missing episodes are absent, and locks follow listed order."""
        docs = [_doc("episodes/EP-01.md", _script(250)), _doc("episodes/EP-03.md", "")]
        progress = build_progress(docs)
        assert [e.number for e in progress] == [1, 3]
        assert progress[1].is_locked is False

    def test_next_episode_number(self):
        """Test the next number follows the highest existing episode."""
        docs = [_doc("episodes/EP-01.md", ""), _doc("episodes/EP-04.md", ""), _doc("scenes/EP-09.json", "[]")]
        assert next_episode_number(docs) == 5
        assert next_episode_number([]) == 1


class TestDecideAdvance:
    """Tests for the auto-advance policy."""

    def _progress(self, *lengths):
        return build_progress([_doc(episode_path(i + 1), _script(n)) for i, n in enumerate(lengths)])

    def test_disabled(self):
        """Test nothing happens when auto-advance is off."""
        decision = decide_advance(AutoAdvancePreference.DISABLED, self._progress(250), "episodes/EP-01.md")
        assert decision.kind == AdvanceKind.NONE

    def test_incomplete_episode_does_not_advance(self):
        """Test an unfinished script never advances."""
        decision = decide_advance(AutoAdvancePreference.IMMEDIATE, self._progress(50), "episodes/EP-01.md")
        assert decision.kind == AdvanceKind.NONE

    def test_confirm_proposes_new_episode(self):
        """Test confirm mode proposes creating the next episode."""
        decision = decide_advance(AutoAdvancePreference.CONFIRM, self._progress(250), "episodes/EP-01.md")
        assert decision.kind == AdvanceKind.PROMPT
        assert decision.next_episode_id == "EP-02"
        assert decision.next_path == "episodes/EP-02.md"
        assert decision.create_next is True

    def test_immediate_moves_to_existing_episode(self):
        """Test immediate mode targets an existing later episode without creating one."""
        decision = decide_advance(AutoAdvancePreference.IMMEDIATE, self._progress(250, 0), "episodes/EP-01.md")
        assert decision.kind == AdvanceKind.MOVE
        assert decision.next_path == "episodes/EP-02.md"
        assert decision.create_next is False
