"""Credentials for pushing the report branch."""

from __future__ import annotations

import subprocess
from typing import TYPE_CHECKING
from urllib.parse import urlparse

import pygit2

if TYPE_CHECKING:
    from pygit2.enums import CredentialType


class HelperCredentials(pygit2.RemoteCallbacks):
    """RemoteCallbacks backed by the SSH agent and ``git credential fill``."""

    def credentials(  # type: ignore[override]
        self,
        url: str,
        username_from_url: str | None,
        allowed_types: CredentialType,
    ) -> pygit2.Username | pygit2.UserPass | pygit2.Keypair | None:
        if allowed_types & pygit2.enums.CredentialType.SSH_KEY:
            return pygit2.KeypairFromAgent(username_from_url or "git")

        if allowed_types & pygit2.enums.CredentialType.USERPASS_PLAINTEXT:
            creds = fill_credentials(url)
            if creds:
                return pygit2.UserPass(creds["username"], creds["password"])

        return None


def fill_credentials(url: str) -> dict[str, str] | None:
    """Ask the configured git credential helper for ``url``.

    See: https://git-scm.com/docs/git-credential
    """
    parsed = urlparse(url)
    request = [f"protocol={parsed.scheme}", f"host={parsed.hostname or parsed.netloc}"]
    if parsed.port is not None:
        request.append(f"port={parsed.port}")
    if parsed.path:
        request.append(f"path={parsed.path.lstrip('/')}")
    request.append("")

    try:
        result = subprocess.run(
            ["git", "credential", "fill"],
            input="\n".join(request),
            capture_output=True,
            text=True,
            timeout=30,
            check=False,
        )
    except (subprocess.TimeoutExpired, OSError):
        # No git binary or helper; the push reports the auth failure
        return None
    if result.returncode != 0:
        return None

    creds = dict(line.split("=", 1) for line in result.stdout.splitlines() if "=" in line)
    if "username" in creds and "password" in creds:
        return creds
    return None
