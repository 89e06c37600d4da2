"""Installer exceptions."""


class InstallerError(Exception):
    """Error that stops an install or uninstall before it touches the target."""


class ReleaseSourceError(InstallerError):
    """The release tree to install from is missing or unusable."""

    def __init__(self, message: str, source_dir=None):
        self.source_dir = source_dir
        super().__init__(message)
