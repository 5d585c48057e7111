"""
Git 差异收集模块
通过 subprocess 调用 git 命令，获取当前分支相对基准分支的 diff、变更文件和提交记录。
基准分支不存在时依次尝试 master 和 HEAD。
"""

import subprocess

from loguru import logger

from errors import GitError
from models import DiffInfo

FALLBACK_BASE_BRANCH = "master"


class GitService:
    def __init__(self, workspace_root="."):
        self.workspace_root = workspace_root

    def _run(self, *args):
        command = ["git", *args]
        try:
            result = subprocess.run(
                command, cwd=self.workspace_root, capture_output=True, text=True, encoding="utf-8", check=False
            )
        except FileNotFoundError as e:
            raise GitError("未找到 git 命令，请确保已安装 git 且在 PATH 中。") from e
        if result.returncode != 0:
            raise GitError(f"git 命令执行失败: {' '.join(command)}: {result.stderr.strip()}")
        return result.stdout

    def is_git_repository(self):
        try:
            self._run("rev-parse", "--git-dir")
            return True
        except GitError:
            return False

    def get_current_branch(self):
        try:
            return self._run("branch", "--show-current").strip()
        except GitError as e:
            raise GitError("无法获取当前分支") from e

    def get_branch_commits(self, base_branch="main", branch=None):
        """
        使用 git cherry 找出真正属于当前分支的提交，
        输出中 '+ ' 开头的行表示该提交不在基准分支上。
        """
        branch = branch or self.get_current_branch()
        for base in (base_branch, FALLBACK_BASE_BRANCH):
            try:
                output = self._run("cherry", "-v", base, branch)
            except GitError as e:
                logger.warning(f"获取相对 {base} 的提交记录失败: {e}")
                continue
            return [line[2:] for line in output.split("\n") if line.startswith("+ ") and line[2:]]
        return []

    def _diff_with_fallback(self, base_branch, *extra, branch=None):
        branch = branch or self.get_current_branch()
        for base in (base_branch, FALLBACK_BASE_BRANCH):
            try:
                return self._run("diff", f"{base}...{branch}", *extra)
            except GitError as e:
                logger.warning(f"获取相对 {base} 的差异失败: {e}")
        # 都失败时退回到工作区未提交的变更
        return self._run("diff", "HEAD", *extra)

    def get_branch_diff(self, base_branch="main", branch=None):
        return self._diff_with_fallback(base_branch, branch=branch)

    def get_changed_files(self, base_branch="main", branch=None):
        output = self._diff_with_fallback(base_branch, "--name-only", branch=branch)
        return [line for line in output.strip().split("\n") if line]

    def get_git_diff_info(self, base_branch=None):
        if not self.is_git_repository():
            raise GitError("当前目录不是 Git 仓库")
        base = base_branch or "main"
        branch = self.get_current_branch()
        # 只查询一次当前分支，后续命令共用
        diff = self.get_branch_diff(base, branch)
        files = self.get_changed_files(base, branch)
        commits = self.get_branch_commits(base, branch)
        logger.info(f"分支 {branch} 相对 {base}: 变更文件 {len(files)} 个, 提交 {len(commits)} 个")
        return DiffInfo(branch=branch, diff=diff, files=tuple(files), commits=tuple(commits))
