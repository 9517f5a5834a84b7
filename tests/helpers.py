"""Shared fakes and helpers for the sync tests."""

from __future__ import annotations

import threading
from pathlib import Path

from git import Actor, Repo

from template_fleet_sync.errors import ProvisionError
from template_fleet_sync.meta_consts import ErrorKind, TeamRole

# Copies the template source into the workspace and stamps the requested name into Cargo.toml.
MATERIALIZE_SCRIPT = """
import shutil
import sys
from pathlib import Path

source, dest, name = Path(sys.argv[1]), Path(sys.argv[2]), sys.argv[3]
shutil.copytree(source, dest, dirs_exist_ok=True)
cargo = dest / "Cargo.toml"
if cargo.exists():
    cargo.write_text(cargo.read_text().replace("TEMPLATE_NAME", name))
"""

LOCK_SCRIPT = """
from pathlib import Path

Path("Cargo.lock").write_text("# locked at sync time\\n")
"""

FAILING_SCRIPT = """
import sys

sys.stderr.write("template is broken\\n")
sys.exit(3)
"""

SEED_AUTHOR = Actor("Seed Author", "seed@example.com")


class FakeHostingProvider:
    """In-memory hosting provider whose repositories are local bare git repositories."""

    def __init__(self, remotes_dir: Path, *, existing: set[str] | None = None) -> None:
        self.remotes_dir = remotes_dir
        self.remotes_dir.mkdir(parents=True, exist_ok=True)
        self.repositories: dict[str, dict[str, object]] = {}
        self.calls: list[tuple[str, ...]] = []
        self.fail_create: dict[str, ErrorKind] = {}
        self.fail_grant: dict[str, ErrorKind] = {}
        self._lock = threading.Lock()

        for name in existing or set():
            self._ensure_remote(name)
            self.repositories[name] = {"is_template": False, "public": True, "teams": {}}

    def _ensure_remote(self, name: str) -> Path:
        path = self.remotes_dir / f"{name}.git"
        if not path.exists():
            Repo.init(path, bare=True).close()
        return path

    def create_repository(self, owner: str, name: str, *, public: bool = True) -> bool:
        with self._lock:
            self.calls.append(("create", owner, name))
            if name in self.fail_create:
                raise ProvisionError(f"cannot create {name}", kind=self.fail_create[name])
            if name in self.repositories:
                return False
            self._ensure_remote(name)
            self.repositories[name] = {"is_template": False, "public": public, "teams": {}}
            return True

    def grant_team_permission(self, owner: str, name: str, team: str, role: TeamRole) -> None:
        with self._lock:
            self.calls.append(("grant", owner, name, team, str(role)))
            if name in self.fail_grant:
                raise ProvisionError(f"cannot grant on {name}", kind=self.fail_grant[name])
            self.repositories[name]["teams"][team] = role  # type: ignore[index]

    def set_template_flag(self, owner: str, name: str, value: bool = True) -> None:
        with self._lock:
            self.calls.append(("template", owner, name, str(value)))
            self.repositories[name]["is_template"] = value

    def push_url(self, owner: str, name: str) -> str:
        return str(self.remotes_dir / f"{name}.git")

    def authenticated_push_url(self, owner: str, name: str) -> str:
        return self.push_url(owner, name)

    def display_url(self, owner: str, name: str) -> str:
        return f"https://github.com/{owner}/{name}"

    def remote(self, name: str) -> Repo:
        return Repo(self.remotes_dir / f"{name}.git")


def write_template(root: Path, source_path: str, *, readme: str | None = "# My Template\n") -> Path:
    """Create a minimal template source directory under `root`."""
    template_dir = root / source_path
    (template_dir / "src").mkdir(parents=True, exist_ok=True)
    (template_dir / "Cargo.toml").write_text('[package]\nname = "TEMPLATE_NAME"\nversion = "0.1.0"\n')
    (template_dir / "src" / "main.rs").write_text('fn main() {\n    println!("hello");\n}\n')
    if readme is not None:
        (template_dir / "README.md").write_text(readme)
    return template_dir


def seed_remote_history(remote: Path, work_dir: Path, *, branch: str = "main", commits: int = 2) -> list[str]:
    """Push `commits` unrelated commits to `branch` of the bare repository `remote`."""
    repo = Repo.init(work_dir)
    shas = []
    for index in range(commits):
        file_path = work_dir / f"old-{index}.txt"
        file_path.write_text(f"old content {index}\n")
        repo.index.add([str(file_path)])
        commit = repo.index.commit(f"Old commit {index}", author=SEED_AUTHOR, committer=SEED_AUTHOR)
        shas.append(commit.hexsha)
    repo.create_remote("origin", str(remote))
    repo.git.push("origin", f"HEAD:refs/heads/{branch}")
    repo.close()
    return shas


def branch_commits(remote: Repo, branch: str = "main") -> list[str]:
    """Return the commit SHAs reachable from `branch` of `remote`, newest first."""
    return [commit.hexsha for commit in remote.iter_commits(branch)]
