"""Pytest configuration and shared fixtures."""

import os

import pytest


@pytest.fixture
def tmp_config_dir(tmp_path):
    """Create a temporary config directory."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def sample_config_toml():
    """Return a sample valid TOML configuration string."""
    return """
[global]
hash_algorithm = "sha256"
share_size = 50
parallel_jobs = 2
lock_file_name = ".backup.lock"

[[jobs]]
name = "documents"
source = "/home/user/Documents"
destination = "/mnt/backup/Documents"

[[jobs]]
source = "/home/user/Pictures"
destination = "/mnt/backup/Pictures"
mirror = true
skip_content_check = true
preserve_symlinks = false
enabled = false
"""


@pytest.fixture
def minimal_config_toml():
    """Return a minimal valid TOML configuration string."""
    return """
[[jobs]]
source = "/home"
destination = "/mnt/backup"
"""


@pytest.fixture
def config_file(tmp_config_dir, sample_config_toml):
    """Create a temporary config file with sample content."""
    config_path = tmp_config_dir / "config.toml"
    config_path.write_text(sample_config_toml)
    return config_path


@pytest.fixture
def minimal_config_file(tmp_config_dir, minimal_config_toml):
    """Create a temporary config file with minimal content."""
    config_path = tmp_config_dir / "minimal.toml"
    config_path.write_text(minimal_config_toml)
    return config_path


@pytest.fixture
def source_tree(tmp_path):
    """Create a small source tree with files, directories and symlinks.

    Layout:
        file1               "test"
        dir1/
        dir1/nested.txt     "nested content"
        dir1/sub/
        dir1/sub/deep.bin   bytes 0..255
        empty/
        link_inside  -> <src>/dir1/nested.txt   (absolute, inside source)
        link_outside -> /nonexistent/target     (absolute, outside source)
        link_relative -> file1                  (relative)
    """
    src = tmp_path / "src"
    (src / "dir1" / "sub").mkdir(parents=True)
    (src / "empty").mkdir()
    (src / "file1").write_text("test")
    (src / "dir1" / "nested.txt").write_text("nested content")
    (src / "dir1" / "sub" / "deep.bin").write_bytes(bytes(range(256)))
    os.symlink(src / "dir1" / "nested.txt", src / "link_inside")
    os.symlink("/nonexistent/target", src / "link_outside")
    os.symlink("file1", src / "link_relative")
    return src


@pytest.fixture
def dest_dir(tmp_path):
    """Return a not-yet-created destination directory path."""
    return tmp_path / "dst"
