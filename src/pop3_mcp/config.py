"""
Client Options
==============

Explicit, caller-constructed connection options. There is no module-level
default instance; ``dial()`` builds a fresh ``ClientOptions()`` when none is
given.
"""

from dataclasses import dataclass

DEFAULT_DIAL_TIMEOUT = 3.0
MIN_DIAL_TIMEOUT = 1.0


@dataclass(frozen=True)
class ClientOptions:
    """
    POP3 connection options.

    tls_skip_verify is INSECURE: it disables both hostname checking and
    certificate chain validation. Use it only against test servers.

    tls_ca_file trusts an extra CA bundle (PEM) on top of the system store,
    for servers signed by a private CA.
    """

    dial_timeout: float = DEFAULT_DIAL_TIMEOUT
    tls_enabled: bool = True
    tls_skip_verify: bool = False
    tls_ca_file: str | None = None
    read_timeout: float | None = None
    encoding: str = "utf-8"

    def __post_init__(self) -> None:
        if self.dial_timeout < MIN_DIAL_TIMEOUT:
            object.__setattr__(self, "dial_timeout", MIN_DIAL_TIMEOUT)
        if self.read_timeout is not None and self.read_timeout <= 0:
            raise ValueError("read_timeout must be positive or None")
