"""Install, upgrade and uninstall of the Ariadna content tree."""

from ariadna.setup.installer import Installer, InstallSummary, RunPhase
from ariadna.setup.layout import InstallContext, ManagedRoot
from ariadna.setup.uninstaller import Uninstaller, UninstallSummary

__all__ = [
    "InstallContext",
    "InstallSummary",
    "Installer",
    "ManagedRoot",
    "RunPhase",
    "UninstallSummary",
    "Uninstaller",
]
