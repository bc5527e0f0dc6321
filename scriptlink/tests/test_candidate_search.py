import tempfile
import unittest
from pathlib import Path

from scriptlink.models import Candidate, RepoCommitRef
from scriptlink.search import CandidateSearchEngine, MatchKind, group_by_repository, resolve_match
from scriptlink.tests.fakes import MemoryRepository


class CandidateSearchTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _repo(self, name: str) -> MemoryRepository:
        return MemoryRepository(self.root / name, name)

    def test_exact_commit_match_yields_single_candidate(self) -> None:
        repo = self._repo("scripts")
        commit_id = repo.commit({"door.lsl": b"X", "lib/window.lsl": b"W"})
        engine = CandidateSearchEngine([repo], ".lsl")

        candidates = engine.find_candidates("door", commit_id, b"X", dirty=False)

        self.assertEqual(len(candidates), 1)
        self.assertIs(candidates[0].repository, repo)
        self.assertEqual(candidates[0].commit_id, commit_id)
        self.assertEqual(candidates[0].path, "door.lsl")
        self.assertTrue(engine.find_match("door", commit_id, b"X", dirty=False).is_match)

    def test_content_mismatch_on_clean_script_finds_nothing(self) -> None:
        repo = self._repo("scripts")
        first = repo.commit({"door.lsl": b"X"})
        repo.commit({"door.lsl": b"Y"})
        engine = CandidateSearchEngine([repo], ".lsl")

        self.assertEqual(engine.find_candidates("door", first, b"Y", dirty=False), [])
        self.assertEqual(engine.find_match("door", first, b"Y", dirty=False).kind, MatchKind.NO_MATCH)

    def test_unknown_version_finds_nothing(self) -> None:
        repo = self._repo("scripts")
        repo.commit({"door.lsl": b"X"})
        engine = CandidateSearchEngine([repo], ".lsl")

        self.assertEqual(engine.find_candidates("door", "deadbeef", b"Q", dirty=False), [])

    def test_same_file_in_two_repositories_is_ambiguous(self) -> None:
        first = self._repo("one")
        second = self._repo("two")
        first.commit({"door.lsl": b"X"}, commit_id="C")
        second.commit({"door.lsl": b"X"}, commit_id="C")
        engine = CandidateSearchEngine([first, second], ".lsl")

        outcome = engine.find_match("door", "C", b"X", dirty=False)

        self.assertEqual(outcome.kind, MatchKind.AMBIGUOUS_REPOSITORIES)
        self.assertIsNone(outcome.candidate)
        self.assertIn("Multiple repositories", str(outcome.error()))

    def test_two_paths_in_one_repository_are_ambiguous(self) -> None:
        repo = self._repo("scripts")
        commit_id = repo.commit({"a/door.lsl": b"X", "b/door.lsl": b"X"})
        engine = CandidateSearchEngine([repo], ".lsl")

        outcome = engine.find_match("door", commit_id, b"X", dirty=False)

        self.assertEqual(outcome.kind, MatchKind.AMBIGUOUS_PATHS)
        self.assertEqual(outcome.error().paths, ["a/door.lsl", "b/door.lsl"])

    def test_dirty_script_links_to_earliest_later_commit(self) -> None:
        repo = self._repo("scripts")
        stamped = repo.commit({"door.lsl": b"X"})
        earliest = repo.commit({"door.lsl": b"Y"})
        repo.commit({"door.lsl": b"Z"})
        repo.commit({"door.lsl": b"Y"})
        engine = CandidateSearchEngine([repo], ".lsl")

        candidates = engine.find_candidates("door", stamped, b"Y", dirty=True)

        self.assertEqual([(c.commit_id, c.path) for c in candidates], [(earliest, "door.lsl")])

    def test_clean_script_never_searches_history(self) -> None:
        repo = self._repo("scripts")
        stamped = repo.commit({"door.lsl": b"X"})
        repo.commit({"door.lsl": b"Y"})
        engine = CandidateSearchEngine([repo], ".lsl")

        self.assertEqual(engine.find_candidates("door", stamped, b"Y", dirty=False), [])

    def test_history_search_skips_repositories_without_name_match(self) -> None:
        stamped_repo = self._repo("one")
        other = self._repo("two")
        stamped_repo.commit({"door.lsl": b"X"}, commit_id="C")
        stamped_repo.commit({"door.lsl": b"Y"})
        other.commit({"window.lsl": b"W"}, commit_id="D")
        other.commit({"door.lsl": b"Y"})
        engine = CandidateSearchEngine([stamped_repo, other], ".lsl")

        candidates = engine.find_candidates("door", "C", b"Y", dirty=True)

        self.assertEqual(len(candidates), 1)
        self.assertIs(candidates[0].repository, stamped_repo)

    def test_working_copy_search_finds_uncommitted_script(self) -> None:
        repo = self._repo("scripts")
        head = repo.commit({"door.lsl": b"X"})
        new_file = repo.working_dir / "rooms" / "door.lsl"
        new_file.parent.mkdir()
        new_file.write_bytes(b"fresh")
        git_copy = repo.working_dir / ".git" / "door.lsl"
        git_copy.parent.mkdir()
        git_copy.write_bytes(b"fresh")
        engine = CandidateSearchEngine([repo], ".lsl")

        candidates = engine.find_candidates("door", "", b"fresh", dirty=True)

        self.assertEqual([(c.path, c.commit_id) for c in candidates], [("rooms/door.lsl", head)])

    def test_working_copy_search_runs_only_when_history_is_empty(self) -> None:
        repo = self._repo("scripts")
        stamped = repo.commit({"door.lsl": b"X"})
        committed = repo.commit({"door.lsl": b"Y"})
        (repo.working_dir / "copy").mkdir()
        (repo.working_dir / "copy" / "door.lsl").write_bytes(b"Y")
        engine = CandidateSearchEngine([repo], ".lsl")

        candidates = engine.find_candidates("door", stamped, b"Y", dirty=True)

        self.assertEqual([(c.path, c.commit_id) for c in candidates], [("door.lsl", committed)])

    def test_extension_is_normalized(self) -> None:
        self.assertEqual(CandidateSearchEngine([], "lsl").file_name("door"), "door.lsl")
        self.assertEqual(CandidateSearchEngine([], ".lsl").file_name("door"), "door.lsl")


class ResolveMatchTests(unittest.TestCase):
    def test_grouping_keeps_repository_order(self) -> None:
        first, second = object(), object()
        candidates = [
            Candidate(RepoCommitRef(second, "c"), "a.lsl", b""),
            Candidate(RepoCommitRef(first, "c"), "a.lsl", b""),
            Candidate(RepoCommitRef(second, "c"), "b.lsl", b""),
        ]

        groups = group_by_repository(candidates)

        self.assertEqual([repo for repo, _ in groups], [second, first])
        self.assertEqual([c.path for c in groups[0][1]], ["a.lsl", "b.lsl"])

    def test_empty_result_is_no_match(self) -> None:
        outcome = resolve_match([], "door", "abc")

        self.assertEqual(outcome.kind, MatchKind.NO_MATCH)
        self.assertIn("door", str(outcome.error()))

    def test_single_candidate_is_match(self) -> None:
        repo = object()
        candidate = Candidate(RepoCommitRef(repo, "c"), "door.lsl", b"X")

        outcome = resolve_match([candidate])

        self.assertTrue(outcome.is_match)
        self.assertIs(outcome.repository, repo)
        self.assertIs(outcome.candidate, candidate)
        self.assertIsNone(outcome.error())

    def test_commit_refs_compare_repository_identity(self) -> None:
        repo = object()
        self.assertEqual(RepoCommitRef(repo, "c"), RepoCommitRef(repo, "c"))
        self.assertNotEqual(RepoCommitRef(repo, "c"), RepoCommitRef(object(), "c"))
        self.assertNotEqual(RepoCommitRef(repo, "c"), RepoCommitRef(repo, "d"))


if __name__ == "__main__":
    unittest.main()
