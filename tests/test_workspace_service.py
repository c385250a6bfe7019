import pytest

from remote_workspace.backend.exception import (
    AccessDeniedError,
    InvalidOperationError,
    NotFoundError,
)
from remote_workspace.backend.workspace.service import match_lines, normalize_encoding


# ==================== File CRUD ====================

def test_write_then_read_round_trip(service):
    content = "héllo wörld ✓\nsecond line\n"
    service.create_file("notes.txt")
    service.write_file("notes.txt", content)

    assert service.read_file("notes.txt") == content


def test_read_with_base64_encoding(service, workspace):
    (workspace / "blob.bin").write_bytes(b"\x00\x01\xff")

    assert service.read_file("blob.bin", "base64") == "AAH/"


def test_unknown_encoding_is_rejected(service):
    with pytest.raises(InvalidOperationError):
        service.read_file("any.txt", "klingon")


def test_node_style_encoding_names():
    assert normalize_encoding("utf8") == "utf-8"
    assert normalize_encoding("latin1") == "iso8859-1"
    assert normalize_encoding("hex") == "hex"


def test_read_missing_file(service):
    with pytest.raises(NotFoundError):
        service.read_file("missing.txt")


def test_read_directory_is_invalid(service, workspace):
    (workspace / "src").mkdir()

    with pytest.raises(InvalidOperationError):
        service.read_file("src")


def test_write_does_not_create_parents(service, workspace):
    with pytest.raises(NotFoundError):
        service.write_file("no/such/dir/file.txt", "x")
    assert not (workspace / "no").exists()


def test_create_file_creates_parents(service, workspace):
    service.create_file("a/b/c.txt", "deep")

    assert (workspace / "a" / "b" / "c.txt").read_text() == "deep"


def test_create_file_outside_root_is_denied(service, workspace):
    with pytest.raises(AccessDeniedError):
        service.create_file("../escape.txt", "x")
    assert not (workspace.parent / "escape.txt").exists()


def test_delete_file(service, workspace):
    (workspace / "gone.txt").write_text("bye")
    service.delete_file("gone.txt")

    assert not (workspace / "gone.txt").exists()


def test_delete_directory_without_recursive_is_refused(service, workspace):
    directory = workspace / "dir"
    directory.mkdir()
    (directory / "keep.txt").write_text("keep")

    with pytest.raises(InvalidOperationError) as exc_info:
        service.delete_file("dir")

    assert exc_info.value.message == "Cannot delete directory without recursive flag"
    assert (directory / "keep.txt").read_text() == "keep"


def test_delete_directory_recursive(service, workspace):
    (workspace / "dir" / "sub").mkdir(parents=True)
    (workspace / "dir" / "sub" / "file.txt").write_text("x")

    service.delete_file("dir", recursive=True)

    assert not (workspace / "dir").exists()


def test_delete_missing(service):
    with pytest.raises(NotFoundError):
        service.delete_file("missing.txt")


def test_delete_root_is_refused(service, workspace):
    with pytest.raises(InvalidOperationError):
        service.delete_file("", recursive=True)
    assert workspace.is_dir()


def test_delete_symlink_removes_link_only(service, workspace, tmp_path):
    outside = tmp_path / "outside.txt"
    outside.write_text("untouched")
    (workspace / "link.txt").symlink_to(outside)

    service.delete_file("link.txt")

    assert not (workspace / "link.txt").exists()
    assert outside.read_text() == "untouched"


def test_rename_creates_destination_parent(service, workspace):
    (workspace / "a").mkdir()
    (workspace / "a" / "b.txt").write_text("moved")

    service.rename_file("a/b.txt", "c/d.txt")

    assert (workspace / "c").is_dir()
    assert (workspace / "c" / "d.txt").read_text() == "moved"
    assert not (workspace / "a" / "b.txt").exists()


def test_rename_missing_source(service):
    with pytest.raises(NotFoundError):
        service.rename_file("missing.txt", "other.txt")


def test_rename_outside_root_is_denied(service, workspace):
    (workspace / "a.txt").write_text("x")

    with pytest.raises(AccessDeniedError):
        service.rename_file("a.txt", "../a.txt")
    assert (workspace / "a.txt").exists()


# ==================== Listing ====================

def test_list_directory_single_level(service, workspace):
    (workspace / "zeta.txt").write_text("12345")
    (workspace / "alpha").mkdir()
    (workspace / "alpha" / "inner.txt").write_text("x")

    items = service.list_directory("")

    assert [i.name for i in items] == ["alpha", "zeta.txt"]
    alpha, zeta = items
    assert alpha.type == "directory"
    assert zeta.type == "file"
    assert zeta.size == 5
    assert zeta.path == "zeta.txt"
    assert zeta.modified_at.endswith("Z")


def test_list_directory_recursive_paths_are_relative(service, workspace):
    (workspace / "pkg" / "sub").mkdir(parents=True)
    (workspace / "pkg" / "sub" / "mod.py").write_text("")
    (workspace / "pkg" / "__init__.py").write_text("")

    items = service.list_directory("pkg", recursive=True)

    assert [i.path for i in items] == ["sub", "sub/mod.py", "__init__.py"]


def test_list_directory_does_not_descend_symlinks(service, workspace, tmp_path):
    outside = tmp_path / "outside"
    outside.mkdir()
    (outside / "secret.txt").write_text("s")
    (workspace / "link").symlink_to(outside)

    paths = [i.path for i in service.list_directory("", recursive=True)]

    assert "link" in paths
    assert "link/secret.txt" not in paths


def test_list_directory_errors(service, workspace):
    (workspace / "file.txt").write_text("x")

    with pytest.raises(NotFoundError):
        service.list_directory("missing")
    with pytest.raises(InvalidOperationError):
        service.list_directory("file.txt")
    with pytest.raises(AccessDeniedError):
        service.list_directory("..")


# ==================== Search ====================

def test_search_reports_matching_lines(service, workspace):
    lines = [f"line {n}" for n in range(1, 11)]
    lines[2] = "here is the needle"
    lines[6] = "needle again"
    (workspace / "haystack.txt").write_text("\n".join(lines))
    (workspace / "other.txt").write_text("nothing to see")

    results = service.search_files("needle")

    assert len(results) == 1
    assert results[0].file == "haystack.txt"
    assert [m.line for m in results[0].matches] == [3, 7]
    assert all("needle" in m.preview for m in results[0].matches)


def test_search_preview_window():
    line = "x" * 30 + "needle" + "y" * 30

    (match,) = match_lines(line, "needle")

    assert match.preview == "x" * 20 + "needle" + "y" * 20
    assert match.content == line


def test_search_content_is_trimmed():
    (match,) = match_lines("    indented needle   ", "needle")

    assert match.content == "indented needle"


def test_empty_query_matches_nothing(service, workspace):
    (workspace / "a.txt").write_text("anything")

    assert service.search_files("") == []


def test_search_include_and_exclude(service, workspace):
    (workspace / "a.py").write_text("needle")
    (workspace / "b.txt").write_text("needle")
    (workspace / "node_modules").mkdir()
    (workspace / "node_modules" / "c.py").write_text("needle")

    included = service.search_files("needle", include=r"\.py$")
    excluded = service.search_files("needle", exclude=r"^node_modules$")

    assert [r.file for r in included] == ["a.py"]
    assert sorted(r.file for r in excluded) == ["a.py", "b.txt"]


def test_search_paths_relative_to_cwd(service, workspace):
    (workspace / "src" / "pkg").mkdir(parents=True)
    (workspace / "src" / "pkg" / "m.py").write_text("needle")

    results = service.search_files("needle", cwd="src")

    assert [r.file for r in results] == ["pkg/m.py"]


def test_search_skips_undecodable_files(service, workspace):
    (workspace / "binary.bin").write_bytes(b"\xff\xfe needle \x80")
    (workspace / "text.txt").write_text("needle")

    assert [r.file for r in service.search_files("needle")] == ["text.txt"]


def test_search_invalid_regex(service):
    with pytest.raises(InvalidOperationError):
        service.search_files("needle", include="(")


def test_search_outside_root_is_denied(service):
    with pytest.raises(AccessDeniedError):
        service.search_files("needle", cwd="../")
