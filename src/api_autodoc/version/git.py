"""Git metadata for version records, read through the ``git`` executable."""

import logging
import re
import subprocess
from pathlib import Path

logger = logging.getLogger("api_autodoc.version.git")

VERSION_TAG = re.compile(r"^v?(\d+)\.(\d+)\.(\d+)$")


class GitInfo:
    """Read-only view of a repository. Lookups never raise."""

    def __init__(self, repo_path: Path | str = "."):
        self.repo_path = Path(repo_path)

    def _run(self, *args: str) -> str | None:
        try:
            result = subprocess.run(
                ["git", *args],
                cwd=self.repo_path,
                capture_output=True,
                text=True,
                timeout=10,
            )
        except (OSError, subprocess.SubprocessError) as e:
            logger.warning("git %s failed: %s", " ".join(args), e)
            return None

        if result.returncode != 0:
            logger.debug("git %s exited with %d: %s", " ".join(args), result.returncode, result.stderr.strip())
            return None
        return result.stdout.strip()

    def current_commit_hash(self) -> str | None:
        return self._run("rev-parse", "HEAD") or None

    def current_branch(self) -> str | None:
        return self._run("rev-parse", "--abbrev-ref", "HEAD") or None

    def tags(self) -> list[str]:
        output = self._run("tag", "--list")
        if not output:
            return []
        return [line.strip() for line in output.splitlines() if line.strip()]

    def latest_version_tag(self) -> str | None:
        """Highest ``vX.Y.Z`` / ``X.Y.Z`` tag, compared numerically."""
        versioned = []
        for tag in self.tags():
            match = VERSION_TAG.match(tag)
            if match:
                versioned.append((tuple(int(part) for part in match.groups()), tag))
        if not versioned:
            return None
        return max(versioned)[1]
