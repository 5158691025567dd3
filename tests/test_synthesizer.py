"""Tests for note generation and context capture."""

import textwrap

import pytest

from wherewasi.context.models import CursorPosition, RepoInfo
from wherewasi.context.synthesizer import (
    ContextExtractor,
    file_basename,
    generate_note,
    strip_keyword_prefix,
    synthesize,
)


class FakeRepoSource:
    def __init__(self, info=None):
        self.info = info or RepoInfo()
        self.calls = []

    def repo_info(self, file_path):
        self.calls.append(file_path)
        return self.info


class BrokenSource:
    def repo_info(self, file_path):
        raise RuntimeError("provider crashed")

    def symbols_for(self, file_path, text):
        raise RuntimeError("language server gone")


class TestGenerateNote:
    def test_comment_with_symbol(self):
        note = generate_note("/src/repo.ts", "Method: save()", "TODO: fix bug")
        assert note == "fix bug in Method: save()"

    def test_comment_only(self):
        assert generate_note("/src/repo.ts", None, "FIXME: handle None") == "handle None"

    def test_symbol_only(self):
        assert generate_note("/src/repo.ts", "Class: Repo", None) == "Working on Class: Repo in repo.ts"

    def test_file_only(self):
        assert generate_note("/src/repo.ts", None, None) == "Editing repo.ts"

    def test_windows_path(self):
        assert generate_note("C:\\proj\\main.py", None, None) == "Editing main.py"

    def test_custom_keyword_prefix(self):
        assert strip_keyword_prefix("REVIEW: naming", ["REVIEW"]) == "naming"
        assert strip_keyword_prefix("review: naming", ["REVIEW"]) == "naming"

    def test_basename(self):
        assert file_basename("/a/b/c.py") == "c.py"
        assert file_basename("") == "unknown file"


class TestSynthesize:
    def test_all_fields(self):
        ctx = synthesize(
            "/src/repo.ts",
            "Method: save()",
            "TODO: fix bug",
            RepoInfo(branch="main", last_commit="Add repo", uncommitted_files=3),
            timestamp=1234,
            workspace_folder="/src",
            line=5,
            column=2,
        )
        assert ctx.note == "fix bug in Method: save()"
        assert ctx.git_branch == "main"
        assert ctx.git_last_commit == "Add repo"
        assert ctx.git_uncommitted_files == 3
        assert ctx.timestamp == 1234
        assert ctx.workspace_folder == "/src"
        assert (ctx.line, ctx.column) == (5, 2)

    def test_absent_repo_info(self):
        ctx = synthesize("/src/a.py", None, None, None, timestamp=1)
        assert ctx.git_branch is None
        assert ctx.git_last_commit is None
        assert ctx.git_uncommitted_files is None
        assert ctx.note == "Editing a.py"

    def test_snapshot_is_immutable(self):
        ctx = synthesize("/src/a.py", None, None, None, timestamp=1)
        with pytest.raises(Exception):
            ctx.line = 3


@pytest.fixture
def source_file(tmp_path):
    path = tmp_path / "service.py"
    path.write_text(
        textwrap.dedent(
            """\
            class Service:
                def run(self):
                    # TODO: retry on timeout
                    return self.call()
            """
        )
    )
    return path


class TestContextExtractor:
    def test_capture(self, source_file):
        repo = FakeRepoSource(RepoInfo(branch="feature/x", uncommitted_files=1))
        extractor = ContextExtractor(repo_source=repo, clock=lambda: 99)

        ctx = extractor.capture(CursorPosition(file_path=str(source_file), line=3, column=8, workspace_folder="/ws"))

        assert ctx.function_name == "Method: run()"
        assert ctx.todo_comment == "TODO: retry on timeout"
        assert ctx.note == "retry on timeout in Method: run()"
        assert ctx.git_branch == "feature/x"
        assert ctx.timestamp == 99
        assert ctx.workspace_folder == "/ws"
        assert repo.calls == [str(source_file)]

    def test_keywords_update_live(self, source_file):
        extractor = ContextExtractor(repo_source=FakeRepoSource())
        extractor.set_todo_keywords(["FIXME"])
        ctx = extractor.capture(CursorPosition(file_path=str(source_file), line=3))
        assert ctx.todo_comment is None
        assert ctx.note == "Working on Method: run() in service.py"

    def test_failing_collaborators_degrade(self, source_file):
        broken = BrokenSource()
        extractor = ContextExtractor(symbol_source=broken, repo_source=broken)

        ctx = extractor.capture(CursorPosition(file_path=str(source_file), line=3))

        assert ctx.function_name is None
        assert ctx.git_branch is None
        assert ctx.todo_comment == "TODO: retry on timeout"

    def test_missing_file_still_captures(self, tmp_path):
        extractor = ContextExtractor(repo_source=FakeRepoSource())
        ctx = extractor.capture(CursorPosition(file_path=str(tmp_path / "gone.py"), line=4))
        assert ctx.function_name is None
        assert ctx.todo_comment is None
        assert ctx.note == "Editing gone.py"
        assert ctx.line == 4

    def test_preview(self, source_file, tmp_path):
        extractor = ContextExtractor(repo_source=FakeRepoSource())
        ctx = extractor.capture(CursorPosition(file_path=str(source_file), line=1))
        assert "→ 2:     def run(self):" in extractor.preview(ctx, context_lines=1)

        missing = extractor.capture(CursorPosition(file_path=str(tmp_path / "gone.py")))
        assert extractor.preview(missing) is None
