from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, List, Optional, Sequence, Union

from src.common.config import TrackerConfig
from src.common.methods import InstallMethod, package_name_of, r_call, r_string, r_vector
from src.common.r_runtime import RRuntime, join_expressions

from .log_store import LogStore
from .records import SUCCESS_MESSAGE, InstallRecord

logger = logging.getLogger(__name__)


class Installer:
    """Installs R packages into the project library and records every attempt."""

    def __init__(
        self,
        config: TrackerConfig,
        store: Optional[LogStore] = None,
        runtime: Optional[RRuntime] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.config = config
        self.store = store or LogStore(config.history_json_path, config.history_text_path)
        self.runtime = runtime or RRuntime(config.rscript_cmd)
        self.clock = clock

    def install(
        self,
        packages: Union[str, Sequence[str]],
        method: Union[str, InstallMethod] = InstallMethod.CRAN,
        **options: Any,
    ) -> InstallRecord:
        install_method = InstallMethod.parse(method)
        names = [packages] if isinstance(packages, str) else [str(name) for name in packages]
        if not names:
            raise ValueError("At least one package name is required")

        self.config.lib_path.mkdir(parents=True, exist_ok=True)

        timestamp = self.clock()
        try:
            self.runtime.run(self.dispatch_expression(names, install_method, options))
        except (RuntimeError, OSError) as exc:
            success = False
            output = str(exc)
            logger.error("Installation failed: %s", output)
        else:
            success = True
            output = SUCCESS_MESSAGE
            logger.info("Installation successful: %s", ", ".join(names))

        record = InstallRecord(
            timestamp=timestamp,
            packages=tuple(names),
            method=install_method,
            r_version=self.runtime.version(),
            platform=self.runtime.platform(),
            command=self.wrapper_command(names, install_method, options),
            actual_command=install_method.actual_command(names),
            success=success,
            output=output,
        )
        self.store.append(record)
        return record

    def install_cran(self, packages: Union[str, Sequence[str]], **options: Any) -> InstallRecord:
        return self.install(packages, InstallMethod.CRAN, **options)

    def install_bioc(self, packages: Union[str, Sequence[str]], **options: Any) -> InstallRecord:
        return self.install(packages, InstallMethod.BIOC, **options)

    def install_github(self, packages: Union[str, Sequence[str]], **options: Any) -> InstallRecord:
        return self.install(packages, InstallMethod.GITHUB, **options)

    def install_gitlab(self, packages: Union[str, Sequence[str]], **options: Any) -> InstallRecord:
        return self.install(packages, InstallMethod.GITLAB, **options)

    def install_bitbucket(self, packages: Union[str, Sequence[str]], **options: Any) -> InstallRecord:
        return self.install(packages, InstallMethod.BITBUCKET, **options)

    def dispatch_expression(self, packages: Sequence[str], method: InstallMethod, options: dict) -> str:
        lib = r_string(self.config.lib_path.as_posix())
        lines: List[str] = [
            f"options(repos = c(CRAN = {r_string(self.config.cran_mirror)}), "
            f"timeout = max({int(self.config.download_timeout)}, getOption(\"timeout\")))",
            f".libPaths(c({lib}, .libPaths()))",
        ]
        helper = method.helper_package
        if helper is not None:
            lines.append(
                f"if (!requireNamespace({r_string(helper)}, quietly = TRUE)) "
                f"install.packages({r_string(helper)}, lib = {lib})"
            )
        call_options = dict(method.installer_defaults)
        call_options.update(options)
        lines.append(r_call(method.function, [r_vector(packages), f"lib = {lib}"], call_options))
        # install.packages() only warns about unavailable packages; make that a hard error.
        installed = [package_name_of(name) for name in packages]
        lines.append(
            f"missing <- setdiff(c({', '.join(r_string(name) for name in installed)}), "
            f"rownames(installed.packages(lib.loc = {lib})))"
        )
        lines.append(
            'if (length(missing) > 0) stop("package(s) not installed: ", '
            'paste(missing, collapse = ", "))'
        )
        return join_expressions(lines)

    @staticmethod
    def wrapper_command(packages: Sequence[str], method: InstallMethod, options: dict) -> str:
        parts = ["rlib-track", "install", "--method", method.value]
        for key, value in options.items():
            parts.extend(["--option", f"{key}={value}"])
        parts.extend(packages)
        return " ".join(parts)


__all__ = ["Installer"]
