"""Git 差异收集（subprocess 调用被替换为假实现）"""

import subprocess

import pytest

import git_service
from errors import GitError
from git_service import GitService


class FakeGit:
    """按命令参数返回预设输出；未登记的命令返回非零退出码"""

    def __init__(self, outputs):
        self.outputs = outputs
        self.commands = []

    def __call__(self, command, **kwargs):
        self.commands.append(command)
        key = " ".join(command[1:])
        if key in self.outputs:
            return subprocess.CompletedProcess(command, 0, stdout=self.outputs[key], stderr="")
        return subprocess.CompletedProcess(command, 128, stdout="", stderr=f"fatal: {key}")


@pytest.fixture
def fake_git(monkeypatch):
    def install(outputs):
        fake = FakeGit(outputs)
        monkeypatch.setattr(git_service.subprocess, "run", fake)
        return fake

    return install


BASE_OUTPUTS = {
    "rev-parse --git-dir": ".git\n",
    "branch --show-current": "feature/lock\n",
}


class TestGitService:
    def test_not_a_repository(self, fake_git):
        fake_git({})
        service = GitService("/tmp/x")
        assert not service.is_git_repository()
        with pytest.raises(GitError, match="不是 Git 仓库"):
            service.get_git_diff_info()

    def test_diff_info_against_main(self, fake_git):
        fake_git(
            {
                **BASE_OUTPUTS,
                "diff main...feature/lock": "diff --git a/a.py b/a.py\n",
                "diff main...feature/lock --name-only": "a.py\nb.py\n",
                "cherry -v main feature/lock": "+ abc123 增加锁定\n- def456 已合并\n+ 789fff 修复提示\n",
            }
        )
        info = GitService().get_git_diff_info("main")
        assert info.branch == "feature/lock"
        assert info.diff == "diff --git a/a.py b/a.py\n"
        assert info.files == ("a.py", "b.py")
        assert info.commits == ("abc123 增加锁定", "789fff 修复提示")

    def test_current_branch_queried_once(self, fake_git):
        fake = fake_git(
            {
                **BASE_OUTPUTS,
                "diff main...feature/lock": "d",
                "diff main...feature/lock --name-only": "a.py\n",
                "cherry -v main feature/lock": "+ abc123 增加锁定\n",
            }
        )
        GitService().get_git_diff_info("main")
        assert fake.commands.count(["git", "branch", "--show-current"]) == 1

    def test_explicit_branch_skips_lookup(self, fake_git):
        fake = fake_git({"diff main...release --name-only": "r.py\n"})
        assert GitService().get_changed_files("main", "release") == ["r.py"]
        assert ["git", "branch", "--show-current"] not in fake.commands

    def test_falls_back_to_master(self, fake_git):
        fake_git(
            {
                **BASE_OUTPUTS,
                "diff master...feature/lock": "master diff",
                "diff master...feature/lock --name-only": "m.py\n",
                "cherry -v master feature/lock": "+ 111 来自 master\n",
            }
        )
        info = GitService().get_git_diff_info()
        assert info.diff == "master diff"
        assert info.files == ("m.py",)
        assert info.commits == ("111 来自 master",)

    def test_falls_back_to_head(self, fake_git):
        fake_git({**BASE_OUTPUTS, "diff HEAD": "working tree diff", "diff HEAD --name-only": "w.py\n"})
        service = GitService()
        assert service.get_branch_diff("develop") == "working tree diff"
        assert service.get_changed_files("develop") == ["w.py"]
        assert service.get_branch_commits("develop") == []

    def test_runs_in_workspace(self, fake_git, monkeypatch):
        captured = {}

        def run(command, **kwargs):
            captured.update(kwargs)
            return subprocess.CompletedProcess(command, 0, stdout="main\n", stderr="")

        monkeypatch.setattr(git_service.subprocess, "run", run)
        assert GitService("/repo").get_current_branch() == "main"
        assert captured["cwd"] == "/repo"

    def test_git_not_installed(self, monkeypatch):
        def run(command, **kwargs):
            raise FileNotFoundError("git")

        monkeypatch.setattr(git_service.subprocess, "run", run)
        with pytest.raises(GitError):
            GitService().get_current_branch()
