#!/usr/bin/env python3
"""vncslots - run jobs against a dedicated Xvnc display."""

from __future__ import annotations

import json
import os
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

from vncslots.cli.parsing import apply_cli_overrides, parse_display_number
from vncslots.constants import CONFIG_ENV_VAR, DEFAULT_CONFIG_FILE
from vncslots.core.config import ConfigLoader
from vncslots.core.registry import SessionRegistry
from vncslots.core.run_executor import RunExecutor
from vncslots.templates import CONFIG_TEMPLATE
from vncslots.utils import format_displays, get_host_name, log_and_print_error


class VncSlots:
    """Main CLI interface for vncslots."""

    def __init__(
        self,
        executor_factory: Callable[[SessionRegistry], RunExecutor] | None = None,
        host_name_getter: Callable[[], str] | None = None,
    ) -> None:
        """Initialize VncSlots with optional dependency injection."""
        self._config_loader = ConfigLoader()
        self._executor_factory = executor_factory or RunExecutor
        self._host_name_getter = host_name_getter or get_host_name

    def _host_config(self, host: str) -> dict[str, Any]:
        config = self._config_loader.load_config()
        return self._config_loader.get_host_config(config, host)

    def _open_registry(self, config: dict[str, Any]) -> SessionRegistry:
        registry = SessionRegistry(
            state_path=config["state_file"],
            min_display=config["min_display_number"],
            max_display=config["max_display_number"],
        )
        registry.load()
        return registry

    def run(
        self,
        command: str | None = None,
        host: str | None = None,
        min_display: int | None = None,
        max_display: int | None = None,
        retries: int | None = None,
        xvnc: str | None = None,
        use_xauthority: str | bool | None = None,
        clean_up: str | bool | None = None,
        json_output: bool = False,
    ) -> dict[str, Any] | str:
        """Run a command with its own Xvnc display."""
        host = host or self._host_name_getter()

        merged_config = apply_cli_overrides(
            self._host_config(host),
            min_display=min_display,
            max_display=max_display,
            retries=retries,
            xvnc=xvnc,
            use_xauthority=use_xauthority,
            clean_up=clean_up,
        )
        self._config_loader.validate_config(merged_config)

        registry = self._open_registry(merged_config)
        executor = self._executor_factory(registry)
        result = executor.execute(host=host, command=command or "", config=merged_config)

        if json_output:
            return json.dumps(result)

        return result

    def status(
        self, host: str | None = None, json_output: bool = False
    ) -> str | None:
        """Show allocated and blacklisted displays per host."""
        config = self._host_config(host or self._host_name_getter())
        self._config_loader.validate_config(config)
        registry = self._open_registry(config)

        hosts = [host] if host is not None else registry.hosts()
        report: dict[str, Any] = {}
        for name in hosts:
            if name not in registry.hosts():
                report[name] = {"allocated": [], "blacklisted": []}
                continue

            state = registry.get(name).to_dict()
            report[name] = {
                "range": [state["min_display"], state["max_display"]],
                "allocated": state["allocated"],
                "blacklisted": state["blacklisted"],
            }

        if json_output:
            return json.dumps(report, indent=2)

        if not report:
            print("No display allocations recorded")
            return None

        print(f"{'HOST':<24} {'ALLOCATED':<30} BLACKLISTED")
        for name, entry in report.items():
            print(
                f"{name:<24} {format_displays(entry['allocated']):<30} "
                f"{format_displays(entry['blacklisted'])}"
            )

        return None

    def free(self, display: str | int, host: str | None = None) -> None:
        """Release a display left allocated by a job that never tore down."""
        host = host or self._host_name_getter()
        number = parse_display_number(display)

        config = self._host_config(host)
        self._config_loader.validate_config(config)
        registry = self._open_registry(config)

        if host not in registry.hosts():
            log_and_print_error("No display allocations recorded for host '%s'.", host)
            sys.exit(1)

        with registry.locked():
            allocator = registry.get(host)
            if number not in allocator.allocated:
                print(f"Display :{number} is not allocated on {host}")
                return

            allocator.free(number)

        print(f"Freed display :{number} on {host}")

    def init(self, force: bool = False) -> None:
        """Create a default vncslots.yaml configuration file."""
        config_path = os.environ.get(CONFIG_ENV_VAR, DEFAULT_CONFIG_FILE)
        config_file = Path(config_path)

        if config_file.exists() and not force:
            log_and_print_error(
                "%s already exists. Use --force to overwrite.",
                config_path,
            )
            sys.exit(1)

        config_file.parent.mkdir(parents=True, exist_ok=True)

        with open(config_file, "w") as f:
            f.write(CONFIG_TEMPLATE)

        print(f"Created {config_path} configuration file.")


if __name__ == "__main__":
    from vncslots.cli.main import main

    main()
