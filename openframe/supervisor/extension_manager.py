"""Install and initialize frame extensions through an external package manager."""

from __future__ import annotations

import asyncio
import importlib
import logging
import subprocess
import sys
from importlib import metadata
from typing import Any, Callable, Sequence

from openframe.errors import ExtensionInstallError
from openframe.supervisor.models import DeviceRecord

logger = logging.getLogger("openframe.supervisor.extension_manager")

DEFAULT_INSTALL_COMMAND: tuple[str, ...] = (sys.executable, "-m", "pip", "install")


def install_spec(name: str, version: str | None) -> str:
    """Return the package-manager argument for one extension entry."""
    version = (version or "").strip()
    if version in {"", "*"}:
        return name
    if version.startswith("git+") or "://" in version:
        return version
    return f"{name}=={version}"


def module_name_for(name: str) -> str:
    return name.strip().replace("-", "_")


class ExtensionManager:
    """Keeps installed extensions in line with the frame's plugin map."""

    def __init__(
        self,
        install_command: Sequence[str] = DEFAULT_INSTALL_COMMAND,
        *,
        is_installed: Callable[[str], bool] | None = None,
    ) -> None:
        self.install_command = list(install_command)
        self._is_installed = is_installed or self._distribution_installed
        self.initialized: dict[str, Any] = {}

    @staticmethod
    def _distribution_installed(name: str) -> bool:
        try:
            metadata.version(name)
        except metadata.PackageNotFoundError:
            return False
        return True

    async def _run_command(self, args: list[str]) -> subprocess.CompletedProcess:
        """Run a subprocess command and capture stdout/stderr."""
        logger.info("Running command: %s", " ".join(args))
        return await asyncio.to_thread(
            subprocess.run,
            args,
            capture_output=True,
            text=True,
        )

    async def install_extension(self, name: str, version: str | None, force: bool = False) -> bool:
        """Install one extension; returns False when it was already present."""
        if not force and self._is_installed(name):
            logger.info("Extension %s already installed; skipping.", name)
            return False

        args = [*self.install_command, install_spec(name, version)]
        try:
            result = await self._run_command(args)
        except OSError as e:
            raise ExtensionInstallError(f"could not run installer for {name}", cause=e) from e
        if result.stdout:
            logger.debug("Installer stdout for %s:\n%s", name, result.stdout)
        if result.returncode != 0:
            raise ExtensionInstallError(
                f"installer exited with code {result.returncode} for {name}: {result.stderr.strip()}"
            )
        logger.info("Installed extension %s", name)
        return True

    async def install_extensions(self, plugins: dict[str, str], force: bool = False) -> list[str]:
        """Install each extension in plugins; returns the names actually installed."""
        installed: list[str] = []
        for name, version in plugins.items():
            if await self.install_extension(name, version, force=force):
                installed.append(name)
        return installed

    def init_extensions(self, plugins: dict[str, str], events: Any) -> dict[str, Any]:
        """Import each extension and hand it the event bus via its `init` hook."""
        for name in plugins:
            module_name = module_name_for(name)
            try:
                module = importlib.import_module(module_name)
            except ImportError as e:
                logger.warning("The %s extension hasn't been installed: %s", name, e)
                continue
            hook = getattr(module, "init", None)
            self.initialized[name] = hook(events) if callable(hook) else module
            logger.info("Initialized extension %s", name)
        return self.initialized

    async def sync(self, device: DeviceRecord, events: Any) -> None:
        """Install then initialize the extensions listed on device."""
        if not device.plugins:
            logger.debug("Frame %s lists no extensions.", device.id)
            return
        if await self.install_extensions(device.plugins):
            importlib.invalidate_caches()
        self.init_extensions(device.plugins, events)
