# portproxy/exceptions.py
# -*- coding: utf-8 -*-
"""
Exception types raised while resolving, generating and applying a port proxy.
"""

from typing import List, Optional, Union


class PortProxyError(Exception):
    """Base class for all installer errors."""


class PrivilegeError(PortProxyError):
    """Raised when the installer is not running with root privileges."""


class InvalidConfiguration(PortProxyError):
    """Raised when the resolved configuration vector fails validation."""


class TemplateError(PortProxyError):
    """Raised when an artifact cannot be rendered from the configuration."""


class NotFound(PortProxyError):
    """
    Raised by collaborators when an artifact to be removed does not exist.

    Uninstall treats this as an already-satisfied target, never as a failure.
    """

    def __init__(self, kind: str, name: str):
        self.kind = kind
        self.name = name
        super().__init__(f"{kind} '{name}' not found")


class ExternalToolFailure(PortProxyError):
    """
    Raised when an external tool (apt-get, systemctl, nft, useradd...) fails
    or cannot be found. The tool's stderr is carried verbatim.
    """

    def __init__(
        self,
        command: Union[List[str], str],
        returncode: Optional[int] = None,
        stderr: Optional[str] = None,
    ):
        self.command = command
        self.returncode = returncode
        self.stderr = (stderr or "").strip()
        command_str = (
            " ".join(command) if isinstance(command, list) else command
        )
        if returncode is None:
            message = f"Command `{command_str}` could not be executed"
        else:
            message = f"Command `{command_str}` failed (rc {returncode})"
        if self.stderr:
            message = f"{message}: {self.stderr}"
        super().__init__(message)
