"""
Tests for the local filesystem adapters — files, directories, symlinks, lines.

Driven through the reconciler so the presence / acquire / update flow
is exercised the way a real run does it.
"""

import os
import re
from pathlib import Path

import pytest

from dotboot.adapters.shell.filesystem import (
    FileCopyAdapter,
    backup_file,
    contains_credentials,
    ensure_directory,
    is_excluded,
    remove_path,
)
from dotboot.core.errors import FilesystemError
from dotboot.core.models import ReconcileStatus, Resource


def _backups(directory: Path, name: str) -> list[Path]:
    return sorted(directory.glob(f"{name}.backup.*"))


# ── Helpers ──────────────────────────────────────────────────────────


class TestHelpers:
    def test_contains_credentials(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text('{"github.copilot": {"enable": true}}')
        assert contains_credentials(path)

    def test_git_credential_helper(self, tmp_path):
        path = tmp_path / ".gitconfig"
        path.write_text("[credential]\n\thelper = !gh auth git-credential\n")
        assert contains_credentials(path)

    def test_plain_file_has_no_credentials(self, tmp_path):
        path = tmp_path / ".vimrc"
        path.write_text("set number\n")
        assert not contains_credentials(path)

    def test_unreadable_file_has_no_credentials(self, tmp_path):
        assert not contains_credentials(tmp_path / "missing")

    def test_backup_name(self, tmp_path):
        path = tmp_path / ".tmux.conf"
        path.write_text("old")
        backup = backup_file(path)
        assert re.fullmatch(r"\.tmux\.conf\.backup\.\d{8}_\d{6}", backup.name)
        assert backup.read_text() == "old"

    def test_backup_names_never_collide(self, tmp_path):
        path = tmp_path / ".digrc"
        path.write_text("x")
        first, second = backup_file(path), backup_file(path)
        assert first != second
        assert first.exists() and second.exists()

    def test_ensure_directory_reports_created(self, tmp_path, adapter_ctx):
        created = ensure_directory(tmp_path / "a" / "b" / "c", adapter_ctx)
        assert created == [tmp_path / "a", tmp_path / "a" / "b", tmp_path / "a" / "b" / "c"]
        assert ensure_directory(tmp_path / "a" / "b", adapter_ctx) == []

    def test_remove_path(self, tmp_path):
        tree = tmp_path / "tree"
        (tree / "sub").mkdir(parents=True)
        (tree / "sub" / "f").write_text("")
        link = tmp_path / "link"
        link.symlink_to(tmp_path / "missing")
        remove_path(tree)
        remove_path(link)
        remove_path(tmp_path / "never-existed")
        assert not tree.exists()
        assert not os.path.lexists(link)

    @pytest.mark.parametrize(
        "relative, excluded",
        [
            ("logs/today.log", True),
            ("projects/a/b.json", True),
            ("settings.json.backup.20240101_000000", True),
            ("nested/settings.json.backup.1", True),
            ("settings.json", False),
            ("commands/review.md", False),
        ],
    )
    def test_is_excluded(self, relative, excluded):
        patterns = ["logs/*", "projects/*", "*.backup.*"]
        assert is_excluded(relative, patterns) is excluded


# ── File ─────────────────────────────────────────────────────────────


class TestFileResource:
    @pytest.fixture
    def resource(self) -> Resource:
        return Resource(name="tmux-conf", kind="file", source=".tmux.conf", dest=".tmux.conf")

    def test_created(self, reconciler, target, home, source_dir, resource):
        (source_dir / ".tmux.conf").write_text("set -g mouse on\n")
        result = reconciler.reconcile(resource, target)
        assert result.status == ReconcileStatus.CREATED
        assert (home / ".tmux.conf").read_text() == "set -g mouse on\n"

    def test_identical_is_skipped_without_backup(self, reconciler, target, home, source_dir, resource):
        (source_dir / ".tmux.conf").write_text("same\n")
        (home / ".tmux.conf").write_text("same\n")
        result = reconciler.reconcile(resource, target)
        assert result.status == ReconcileStatus.SKIPPED
        assert _backups(home, ".tmux.conf") == []

    def test_changed_is_backed_up_and_replaced(self, reconciler, target, home, source_dir, resource):
        (source_dir / ".tmux.conf").write_text("new\n")
        (home / ".tmux.conf").write_text("old\n")
        result = reconciler.reconcile(resource, target)
        assert result.status == ReconcileStatus.UPDATED
        assert (home / ".tmux.conf").read_text() == "new\n"
        backups = _backups(home, ".tmux.conf")
        assert len(backups) == 1
        assert backups[0].read_text() == "old\n"

    def test_backup_disabled(self, reconciler, target, home, source_dir):
        resource = Resource(name="digrc", kind="file", source=".digrc", dest=".digrc", backup=False)
        (source_dir / ".digrc").write_text("+short\n")
        (home / ".digrc").write_text("+noall\n")
        assert reconciler.reconcile(resource, target).status == ReconcileStatus.UPDATED
        assert _backups(home, ".digrc") == []

    def test_credentials_are_never_touched(self, reconciler, target, home, source_dir):
        resource = Resource(name="claude-json", kind="file", source=".claude.json", dest=".claude.json")
        (source_dir / ".claude.json").write_text('{"theme": "dark"}\n')
        original = b'{"theme": "light", "sessionToken": "s3cret"}\n'
        (home / ".claude.json").write_bytes(original)

        result = reconciler.reconcile(resource, target)

        assert result.status == ReconcileStatus.SKIPPED
        assert "sensitive" in result.detail
        assert (home / ".claude.json").read_bytes() == original
        assert _backups(home, ".claude.json") == []

    def test_missing_source_is_skipped(self, reconciler, target, home, resource):
        result = reconciler.reconcile(resource, target)
        assert result.status == ReconcileStatus.SKIPPED
        assert "source file not found" in result.detail
        assert not (home / ".tmux.conf").exists()

    def test_parent_directories_created(self, reconciler, target, home, source_dir):
        resource = Resource(
            name="p10k-theme",
            kind="file",
            source="themes/p10k.omp.json",
            dest=".oh-my-posh/themes/p10k.omp.json",
        )
        (source_dir / "themes").mkdir()
        (source_dir / "themes" / "p10k.omp.json").write_text("{}")
        assert reconciler.reconcile(resource, target).status == ReconcileStatus.CREATED
        assert (home / ".oh-my-posh" / "themes").is_dir()

    def test_directory_in_the_way_fails(self, reconciler, target, home, source_dir, resource):
        (source_dir / ".tmux.conf").write_text("x")
        (home / ".tmux.conf").mkdir()
        result = reconciler.reconcile(resource, target)
        assert result.status == ReconcileStatus.FAILED
        assert "is a directory" in result.detail
        assert result.metadata["remote"] is False

    def test_update_raises_for_directory(self, adapter_ctx, home, source_dir, resource):
        (source_dir / ".tmux.conf").write_text("x")
        (home / ".tmux.conf").mkdir()
        with pytest.raises(FilesystemError):
            FileCopyAdapter().update(resource, adapter_ctx)


# ── Directory ────────────────────────────────────────────────────────


class TestDirectoryResource:
    def test_bare_directory_created(self, reconciler, target, home):
        resource = Resource(name="dir-vim-plugins", kind="directory", dest=".vim/pack/plugin/start")
        result = reconciler.reconcile(resource, target)
        assert result.status == ReconcileStatus.CREATED
        assert (home / ".vim" / "pack" / "plugin" / "start").is_dir()

    def test_bare_directory_existing_is_skipped(self, reconciler, target, home):
        (home / ".cache").mkdir()
        resource = Resource(name="dir-cache", kind="directory", dest=".cache")
        assert reconciler.reconcile(resource, target).status == ReconcileStatus.SKIPPED

    def test_merge_into_absent(self, reconciler, target, home, source_dir):
        src = source_dir / ".claude"
        (src / "commands").mkdir(parents=True)
        (src / "settings.json").write_text("{}")
        (src / "commands" / "review.md").write_text("# review")
        (src / "logs").mkdir()
        (src / "logs" / "run.log").write_text("noise")

        resource = Resource(name="claude-config", kind="directory", source=".claude", dest=".claude")
        result = reconciler.reconcile(resource, target)

        assert result.status == ReconcileStatus.CREATED
        assert result.detail == "2 files copied"
        assert (home / ".claude" / "commands" / "review.md").exists()
        assert not (home / ".claude" / "logs").exists()

    def test_merge_never_deletes_and_preserves_credentials(self, reconciler, target, home, source_dir):
        src = source_dir / ".vscode"
        src.mkdir()
        (src / "settings.json").write_text('{"editor.fontSize": 14}')
        (src / "keybindings.json").write_text("[]")
        (src / "extensions.json").write_text("{}")

        dest = home / ".vscode"
        dest.mkdir()
        secret = b'{"github.copilot": {"accessToken": "abc"}}'
        (dest / "settings.json").write_bytes(secret)
        (dest / "keybindings.json").write_text('[{"key": "ctrl+k"}]')
        (dest / "local-only.json").write_text("mine")

        resource = Resource(name="vscode-config", kind="directory", source=".vscode", dest=".vscode", backup=False)
        result = reconciler.reconcile(resource, target)

        assert result.status == ReconcileStatus.UPDATED
        assert result.detail == "1 added, 1 replaced, 1 sensitive files preserved"
        assert (dest / "settings.json").read_bytes() == secret
        assert (dest / "keybindings.json").read_text() == "[]"
        assert (dest / "local-only.json").read_text() == "mine"
        assert (dest / "extensions.json").exists()

    def test_merge_current_is_skipped(self, reconciler, target, home, source_dir):
        (source_dir / "cfg").mkdir()
        (source_dir / "cfg" / "a").write_text("a")
        (home / "cfg").mkdir()
        (home / "cfg" / "a").write_text("a")
        resource = Resource(name="cfg", kind="directory", source="cfg", dest="cfg")
        result = reconciler.reconcile(resource, target)
        assert result.status == ReconcileStatus.SKIPPED
        assert result.detail == "already current"

    def test_merge_backs_up_replaced_files(self, reconciler, target, home, source_dir):
        (source_dir / "cfg").mkdir()
        (source_dir / "cfg" / "a").write_text("new")
        (home / "cfg").mkdir()
        (home / "cfg" / "a").write_text("old")
        resource = Resource(name="cfg", kind="directory", source="cfg", dest="cfg")
        assert reconciler.reconcile(resource, target).status == ReconcileStatus.UPDATED
        assert [b.read_text() for b in _backups(home / "cfg", "a")] == ["old"]

    def test_missing_source_directory_is_skipped(self, reconciler, target, home):
        resource = Resource(name="cfg", kind="directory", source="nope", dest="cfg")
        result = reconciler.reconcile(resource, target)
        assert result.status == ReconcileStatus.SKIPPED
        assert not (home / "cfg").exists()

    def test_file_in_the_way_fails(self, reconciler, target, home):
        (home / ".config").write_text("not a dir")
        resource = Resource(name="dir-config", kind="directory", dest=".config")
        result = reconciler.reconcile(resource, target)
        assert result.status == ReconcileStatus.FAILED
        assert (home / ".config").read_text() == "not a dir"


# ── Symlink ──────────────────────────────────────────────────────────


class TestSymlinkResource:
    def test_first_existing_candidate(self, reconciler, target, home, tmp_path):
        real = tmp_path / "opt" / "claude"
        real.parent.mkdir()
        real.write_text("#!/bin/sh\n")
        resource = Resource(
            name="claude-link",
            kind="symlink",
            source=str(tmp_path / "missing" / "claude"),
            alternatives=[str(real)],
            dest=".local/bin/claude",
        )
        result = reconciler.reconcile(resource, target)
        assert result.status == ReconcileStatus.CREATED
        link = home / ".local" / "bin" / "claude"
        assert link.is_symlink()
        assert Path(os.readlink(link)) == real

    def test_no_candidate_is_skipped(self, reconciler, target, home, tmp_path):
        resource = Resource(name="claude-link", kind="symlink", source=str(tmp_path / "x"), dest="claude")
        result = reconciler.reconcile(resource, target)
        assert result.status == ReconcileStatus.SKIPPED
        assert not os.path.lexists(home / "claude")

    def test_existing_link_is_skipped(self, reconciler, target, home, tmp_path):
        real = tmp_path / "tool"
        real.write_text("")
        (home / "tool").symlink_to(real)
        resource = Resource(name="tool", kind="symlink", source=str(real), dest="tool")
        assert reconciler.reconcile(resource, target).status == ReconcileStatus.SKIPPED

    def test_stale_link_is_repointed(self, reconciler, target, home, tmp_path):
        old, new = tmp_path / "old", tmp_path / "new"
        old.write_text("")
        new.write_text("")
        (home / "tool").symlink_to(old)
        resource = Resource(name="tool", kind="symlink", source=str(new), dest="tool")
        assert reconciler.reconcile(resource, target).status == ReconcileStatus.UPDATED
        assert Path(os.readlink(home / "tool")) == new


# ── Line ─────────────────────────────────────────────────────────────


class TestLineResource:
    @pytest.fixture
    def resource(self) -> Resource:
        return Resource(
            name="zshrc-local-bin",
            kind="line",
            dest=".zshrc",
            line='export PATH="$HOME/.local/bin:$PATH"',
            pattern=r"export PATH=.*\.local/bin",
        )

    def test_appended(self, reconciler, target, home, resource):
        (home / ".zshrc").write_text("plugins=(git)")
        result = reconciler.reconcile(resource, target)
        assert result.status == ReconcileStatus.UPDATED
        assert (home / ".zshrc").read_text() == 'plugins=(git)\nexport PATH="$HOME/.local/bin:$PATH"\n'

    def test_present_is_skipped(self, reconciler, target, home, resource):
        (home / ".zshrc").write_text('export PATH="/home/x/.local/bin:$PATH"\n')
        result = reconciler.reconcile(resource, target)
        assert result.status == ReconcileStatus.SKIPPED
        assert result.detail == "already present"

    def test_idempotent(self, reconciler, target, home, resource):
        (home / ".zshrc").write_text("")
        reconciler.reconcile(resource, target)
        reconciler.reconcile(resource, target)
        assert (home / ".zshrc").read_text().count(".local/bin") == 1

    def test_missing_file_is_not_created(self, reconciler, target, home, resource):
        result = reconciler.reconcile(resource, target)
        assert result.status == ReconcileStatus.SKIPPED
        assert not (home / ".zshrc").exists()

    def test_invalid_pattern_fails(self, reconciler, target, home):
        resource = Resource(name="bad", kind="line", dest=".zshrc", line="x", pattern="([")
        (home / ".zshrc").write_text("")
        result = reconciler.reconcile(resource, target)
        assert result.status == ReconcileStatus.FAILED
        assert "invalid pattern" in result.detail
