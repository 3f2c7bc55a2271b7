"""Tests for built-in file operation tools."""

import pytest

from taskpilot.task.models import TaskConfig
from taskpilot.tools.builtin.file import MAX_LISTED_ENTRIES, ListFilesTool, ReadFileTool, WriteToFileTool


class TestReadFileTool:
    """Tests for ReadFileTool."""

    def test_tool_properties(self):
        """Test tool basic properties."""
        tool = ReadFileTool()

        assert tool.name == "read_file"
        assert "Read" in tool.description

        params = {p.name: p for p in tool.parameters}
        assert params["path"].required is True
        assert params["start_line"].required is False

    @pytest.mark.asyncio
    async def test_read_file_with_line_numbers(self, tmp_path):
        (tmp_path / "test.py").write_text("import os\nprint('hi')\n")
        tool = ReadFileTool(tmp_path)

        result = await tool.execute(path="test.py", tool_call_id="call_123")

        assert result.tool_call_id == "call_123"
        assert result.is_error is False
        assert result.output.splitlines() == [
            "File: test.py (lines 1-2 of 2)",
            "1 | import os",
            "2 | print('hi')",
        ]

    @pytest.mark.asyncio
    async def test_read_line_range(self, tmp_path):
        (tmp_path / "long.txt").write_text("\n".join(f"line {n}" for n in range(1, 21)))
        tool = ReadFileTool(tmp_path)

        result = await tool.execute(path="long.txt", start_line=9, end_line=11)

        assert result.output.splitlines()[1:] == [" 9 | line 9", "10 | line 10", "11 | line 11"]

    @pytest.mark.asyncio
    async def test_start_past_end(self, tmp_path):
        (tmp_path / "short.txt").write_text("one\n")
        tool = ReadFileTool(tmp_path)

        result = await tool.execute(path="short.txt", start_line=5)

        assert result.is_error is True
        assert "past the end" in result.error

    @pytest.mark.asyncio
    async def test_read_file_not_found(self, tmp_path):
        result = await ReadFileTool(tmp_path).execute(path="nonexistent.txt")

        assert result.is_error is True
        assert "not found" in result.error.lower()

    @pytest.mark.asyncio
    async def test_read_directory(self, tmp_path):
        """Test reading a directory fails."""
        result = await ReadFileTool(tmp_path).execute(path=str(tmp_path))

        assert result.is_error is True
        assert "not a file" in result.error.lower()

    @pytest.mark.asyncio
    async def test_read_binary_file(self, tmp_path):
        (tmp_path / "blob.bin").write_bytes(b"\xff\xfe\x00\x81")

        result = await ReadFileTool(tmp_path).execute(path="blob.bin")

        assert result.is_error is True
        assert "UTF-8" in result.error

    @pytest.mark.asyncio
    async def test_empty_file(self, tmp_path):
        (tmp_path / "empty.txt").write_text("")

        result = await ReadFileTool(tmp_path).execute(path="empty.txt")

        assert result.is_error is False
        assert result.output == "File: empty.txt (empty)"


class TestListFilesTool:
    """Tests for ListFilesTool."""

    @pytest.fixture
    def tree(self, tmp_path):
        (tmp_path / "src" / "pkg").mkdir(parents=True)
        (tmp_path / "src" / "pkg" / "mod.py").write_text("")
        (tmp_path / "README.md").write_text("")
        (tmp_path / ".git").mkdir()
        (tmp_path / "node_modules").mkdir()
        return tmp_path

    @pytest.mark.asyncio
    async def test_list_top_level(self, tree):
        result = await ListFilesTool(tree).execute()

        assert result.output.splitlines() == ["src/", "README.md"]

    @pytest.mark.asyncio
    async def test_list_recursive(self, tree):
        result = await ListFilesTool(tree).execute(path=".", recursive=True)

        assert result.output.splitlines() == ["src/", "README.md", "src/pkg/", "src/pkg/mod.py"]

    @pytest.mark.asyncio
    async def test_empty_directory(self, tmp_path):
        result = await ListFilesTool(tmp_path).execute()
        assert result.output == "No files found."

    @pytest.mark.asyncio
    async def test_listing_is_truncated(self, tmp_path):
        for n in range(MAX_LISTED_ENTRIES + 5):
            (tmp_path / f"f{n:04d}.txt").write_text("")

        result = await ListFilesTool(tmp_path).execute()

        assert "truncated" in result.output
        assert len([line for line in result.output.splitlines() if line.endswith(".txt")]) == MAX_LISTED_ENTRIES

    @pytest.mark.asyncio
    async def test_missing_directory(self, tmp_path):
        result = await ListFilesTool(tmp_path).execute(path="nope")

        assert result.is_error is True
        assert "not found" in result.error.lower()


class TestWriteToFileTool:
    """Tests for WriteToFileTool."""

    def test_requires_approval_by_default(self):
        assert TaskConfig().requires_approval(WriteToFileTool().name) is True

    @pytest.mark.asyncio
    async def test_create_with_parents(self, tmp_path):
        tool = WriteToFileTool(tmp_path)

        result = await tool.execute(path="a/b/new.txt", content="one\ntwo\n")

        assert result.output == "Created a/b/new.txt (2 lines)"
        assert (tmp_path / "a" / "b" / "new.txt").read_text() == "one\ntwo\n"

    @pytest.mark.asyncio
    async def test_overwrite(self, tmp_path):
        (tmp_path / "x.txt").write_text("old")

        result = await WriteToFileTool(tmp_path).execute(path="x.txt", content="new")

        assert result.output.startswith("Updated x.txt")
        assert (tmp_path / "x.txt").read_text() == "new"

    @pytest.mark.asyncio
    async def test_directory_target(self, tmp_path):
        (tmp_path / "dir").mkdir()

        result = await WriteToFileTool(tmp_path).execute(path="dir", content="x")

        assert result.is_error is True

    @pytest.mark.asyncio
    async def test_missing_content_is_rejected(self, tmp_path):
        with pytest.raises(ValueError, match="content"):
            await WriteToFileTool(tmp_path).execute(path="x.txt")
