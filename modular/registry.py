"""
Registry for mode installers.

Installers register themselves under the mode they implement; the
orchestrator looks them up by ``config.mode``.
"""

from typing import Any, Dict, Optional, Type

from modular.base_installer import BaseInstaller


class InstallerRegistry:
    """
    Registry mapping mode names to installer classes.
    """

    _registry: Dict[str, Type[BaseInstaller]] = {}

    @classmethod
    def register(cls, name: str, metadata: Optional[Dict[str, Any]] = None):
        """
        Decorator for registering installer classes.

        Args:
            name: The mode the installer implements.
            metadata: Optional metadata such as required packages and a description.

        Returns:
            A decorator function that registers the installer class.
        """

        def decorator(
            installer_class: Type[BaseInstaller],
        ) -> Type[BaseInstaller]:
            if name in cls._registry and cls._registry[name] is not installer_class:
                raise ValueError(
                    f"Installer with name '{name}' already registered"
                )

            if metadata:
                installer_class.metadata = metadata

            cls._registry[name] = installer_class
            return installer_class

        return decorator

    @classmethod
    def get_installer(cls, name: str) -> Type[BaseInstaller]:
        """
        Get an installer class by mode name.

        Raises:
            KeyError: If no installer with the given name is registered.
        """
        if name not in cls._registry:
            raise KeyError(f"No installer registered with name '{name}'")

        return cls._registry[name]

    @classmethod
    def get_all_installers(cls) -> Dict[str, Type[BaseInstaller]]:
        return cls._registry.copy()
