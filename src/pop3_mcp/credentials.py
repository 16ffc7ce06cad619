"""
Credentials Management
======================

Abstraction for credential retrieval through the biosecret CLI. Tests mock
``subprocess.run``.

Credentials are held in memory only, never written to disk or logged.
"""

import json
import subprocess
from dataclasses import dataclass, field

from contracts import (
    BiosecretDeniedError,
    BiosecretNotFoundError,
)
from pop3_mcp.config import ClientOptions


@dataclass(frozen=True)
class Credentials:
    """POP3 credentials held in memory only."""

    username: str
    password: str = field(repr=False)
    server: str
    port: int = 995
    use_ssl: bool = True
    skip_verify: bool = False

    @property
    def address(self) -> str:
        if ":" in self.server:
            return f"[{self.server}]:{self.port}"
        return f"{self.server}:{self.port}"

    def options(self, dial_timeout: float = 3.0) -> ClientOptions:
        return ClientOptions(
            dial_timeout=dial_timeout,
            tls_enabled=self.use_ssl,
            tls_skip_verify=self.skip_verify,
        )


def retrieve_credentials(account_id: str) -> Credentials:
    """
    Retrieve credentials via biosecret CLI.

    Requires the biosecret CLI in PATH and credentials stored under the key
    ``pop3-mcp/{account_id}``.

    ERRORS:
    - BiosecretDeniedError: User cancelled biometric prompt
    - BiosecretNotFoundError: No credentials under expected key
    """
    try:
        result = subprocess.run(
            ["biosecret", "get", f"pop3-mcp/{account_id}"],
            capture_output=True,
            text=True,
            timeout=30,
        )

        if result.returncode != 0:
            stderr = result.stderr.lower() if result.stderr else ""
            if "cancel" in stderr or "denied" in stderr:
                raise BiosecretDeniedError("User cancelled biometric authentication")
            raise BiosecretNotFoundError(f"No credentials found for {account_id}")

        data = json.loads(result.stdout)
        use_ssl = data.get("use_ssl", True)
        return Credentials(
            username=data["username"],
            password=data["password"],
            server=data.get("server", "pop.gmail.com"),
            port=data.get("port", 995 if use_ssl else 110),
            use_ssl=use_ssl,
            skip_verify=data.get("skip_verify", False),
        )
    except subprocess.TimeoutExpired as e:
        raise BiosecretDeniedError("Biometric authentication timed out") from e
    except json.JSONDecodeError as e:
        raise BiosecretNotFoundError("Invalid credential format") from e
    except KeyError as e:
        raise BiosecretNotFoundError(f"Credential entry missing {e.args[0]!r}") from e
    except FileNotFoundError as e:
        raise BiosecretNotFoundError("biosecret CLI not found in PATH") from e
