"""
Configuration Store - Shared configuration with live reload
===========================================================

The store owns the current Configuration snapshot and hands it to any
number of concurrent message handlers. Reloads and saves build or write
the new configuration first and only take the store lock to swap the
reference, so readers are never held up by file I/O.

Reload is fail-soft: a bad file is logged and the previous snapshot stays
in service. Save is strict: write failures are raised to the caller.
"""

import threading
from dataclasses import replace
from pathlib import Path
from typing import Optional

from .config import Configuration, load_config, save_config
from .exceptions import ResponderError
from .logging import get_logger

logger = get_logger("core.store")


class ConfigStore:
    """
    Many-reader / single-writer holder of the current Configuration.

    Example:
        store = ConfigStore.open("config.yaml")
        content = store.snapshot().registry.evaluate(text, reference)
        store.reload()   # e.g. from the file watcher
    """

    def __init__(
        self,
        config: Configuration,
        config_path: Optional[str] = None,
        load_env: bool = True,
    ):
        """
        Initialize the store with an already loaded configuration.

        Args:
            config: Initial configuration
            config_path: File used for reload/save (defaults to config.config_path)
            load_env: Apply environment overrides when reloading
        """
        self.config_path = str(config_path or config.config_path)
        self.load_env = load_env
        self.generation = 1
        self.last_reload_error: Optional[str] = None

        # Guards the snapshot reference only.
        self._lock = threading.Lock()
        # Serializes writers (reload, save, replace) with each other.
        self._write_lock = threading.Lock()
        self._config = config

    @classmethod
    def open(cls, config_path: Optional[str] = None, load_env: bool = True) -> "ConfigStore":
        """
        Load the configuration and wrap it in a store.

        Raises:
            ConfigError: If the initial load fails (fatal at startup)
        """
        config = load_config(config_path, load_env=load_env)
        return cls(config, config.config_path, load_env=load_env)

    def snapshot(self) -> Configuration:
        """Return the current configuration generation."""
        with self._lock:
            return self._config

    def _install(self, config: Configuration) -> None:
        with self._lock:
            self._config = config
            self.generation += 1

    def reload(self) -> bool:
        """
        Re-read the configuration file.

        Trigger times of responses that keep their name are carried over.
        On any failure the current snapshot is kept.

        Returns:
            True if a new configuration was installed
        """
        with self._write_lock:
            current = self.snapshot()
            try:
                config = load_config(self.config_path, load_env=self.load_env, previous=current)
            except ResponderError as e:
                self.last_reload_error = str(e)
                logger.warning(f"Config reload failed, keeping previous configuration: {e}")
                return False

            self._install(config)
            self.last_reload_error = None

        logger.info(f"Config reloaded ({len(config.registry)} responses, generation {self.generation})")
        return True

    def replace(self, config: Configuration) -> None:
        """
        Install a programmatically built configuration without saving it.

        Args:
            config: New configuration; must not be in use by other threads yet
        """
        with self._write_lock:
            config.registry.carry_state_from(self.snapshot().registry)
            self._install(replace(config, config_path=self.config_path))

    def save(self, config: Optional[Configuration] = None) -> Path:
        """
        Write a configuration to the store's file.

        Args:
            config: Configuration to save and install; defaults to the
                current snapshot (nothing is swapped then)

        Returns:
            Path that was written

        Raises:
            PersistError: If writing fails; the in-memory snapshot is
                left unchanged
        """
        with self._write_lock:
            current = self.snapshot()
            target = config if config is not None else current
            path = save_config(target, self.config_path)

            if config is not None:
                config.registry.carry_state_from(current.registry)
                self._install(replace(config, config_path=self.config_path))

        return path
