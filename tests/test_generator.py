import json
import os
import stat
import tempfile
import unittest
from datetime import datetime
from pathlib import Path

from src.analyzer.analyzer import (
    AnalysisSummary,
    MANUAL,
    PackageAnalysis,
    PackageAnalyzer,
    PackageMetadata,
    reproduce_command,
)
from src.common.config import TrackerConfig
from src.common.methods import InstallMethod
from src.reproduce.generator import ContainerFormat, ReproducibilityGenerator
from src.tracker.log_store import LogStore
from src.tracker.records import InstallRecord


class FakeRuntime:
    def version(self) -> str:
        return "4.3.2"

    def platform(self) -> str:
        return "x86_64-pc-linux-gnu"


class FakeClock:
    def __init__(self) -> None:
        self.current = datetime(2024, 5, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        value = self.current
        self.current = self.current.replace(second=self.current.second + 1)
        return value


def _package(name, version="1.0.0", manual=False, actual=None, used=None, repository="CRAN"):
    return PackageMetadata(
        name=name,
        version=version,
        repository=repository,
        install_command_used=used if used is not None else actual,
        actual_install_command=actual,
        reproduce_install=reproduce_command(name, version, repository, None, None, None, None),
        classification=MANUAL if manual else "dependency",
    )


def _analysis(manual, dependencies):
    return PackageAnalysis(
        manually_installed={pkg.name: pkg for pkg in manual},
        dependencies={pkg.name: pkg for pkg in dependencies},
        summary=AnalysisSummary(
            total_packages=len(manual) + len(dependencies),
            manually_installed_count=len(manual),
            dependencies_count=len(dependencies),
            r_version="4.3.2",
            lib_path="R_libs",
        ),
    )


MANUAL_PACKAGES = [
    _package("dplyr", "1.1.4", manual=True, actual='install.packages(c("dplyr", "ggplot2"))'),
    _package("ggplot2", "3.5.0", manual=True, actual='install.packages(c("dplyr", "ggplot2"))'),
    _package("DESeq2", "1.42.0", manual=True, actual='BiocManager::install("DESeq2")', repository="Bioconductor 3.18"),
]
DEPENDENCY_PACKAGES = [
    _package("rlang", "1.1.3"),
    _package("vctrs", "0.6.5"),
    _package("tibble", "3.2.1"),
    _package("cli", "3.6.2"),
    _package("mystery", None, repository=None),
]


def _install_lines(script: str):
    marker = "# Install packages"
    body = script.split(marker, 1)[1]
    return [line for line in body.splitlines() if line.strip()]


class InstallScriptTests(unittest.TestCase):
    def setUp(self) -> None:
        self.tmpdir = tempfile.TemporaryDirectory()
        self.config = TrackerConfig(project_dir=Path(self.tmpdir.name))
        self.output = []
        self.generator = ReproducibilityGenerator(
            self.config,
            runtime=FakeRuntime(),
            clock=FakeClock(),
            echo=self.output.append,
        )
        self.analysis = _analysis(MANUAL_PACKAGES, DEPENDENCY_PACKAGES)

    def tearDown(self) -> None:
        self.tmpdir.cleanup()

    def test_manual_packages_only_by_default(self) -> None:
        script = self.generator.generate_install_script(self.analysis, output_path=None)
        lines = _install_lines(script)
        self.assertEqual(
            lines,
            [
                'remotes::install_version("dplyr", version = "1.1.4")',
                'remotes::install_version("ggplot2", version = "3.5.0")',
                'BiocManager::install("DESeq2") # version: 1.42.0',
            ],
        )
        for dep in ("rlang", "vctrs", "tibble", "cli", "mystery"):
            self.assertNotIn(dep, script)

    def test_actual_commands_are_deduplicated(self) -> None:
        script = self.generator.generate_install_script(self.analysis, prefer_pinned=False, output_path=None)
        self.assertEqual(
            _install_lines(script),
            ['install.packages(c("dplyr", "ggplot2"))', 'BiocManager::install("DESeq2")'],
        )

    def test_dependencies_add_pinned_commands_only(self) -> None:
        script = self.generator.generate_install_script(
            self.analysis,
            include_dependencies=True,
            output_path=None,
        )
        lines = _install_lines(script)
        self.assertEqual(len(lines), 7)
        self.assertIn('remotes::install_version("cli", version = "3.6.2")', lines)
        self.assertNotIn("mystery", script)

    def test_header_bootstraps_library_before_installs(self) -> None:
        script = self.generator.generate_install_script(self.analysis, output_path=None)
        self.assertTrue(script.startswith("#!/usr/bin/env Rscript\n"))
        self.assertIn("# R version: 4.3.2", script)
        self.assertLess(script.index(".libPaths(c(lib_path"), script.index("remotes::install_version"))
        self.assertIn('lib_path <- "R_libs"', script)

    def test_library_path_is_escaped_for_r(self) -> None:
        config = TrackerConfig(project_dir=Path(self.tmpdir.name), lib_dir=Path("/srv/o'brien/R \"libs\""))
        generator = ReproducibilityGenerator(
            config,
            runtime=FakeRuntime(),
            clock=FakeClock(),
            echo=self.output.append,
        )
        script = generator.generate_install_script(self.analysis, output_path=None)
        self.assertIn('lib_path <- "/srv/o\'brien/R \\"libs\\""', script)

    def test_written_script_is_executable(self) -> None:
        script = self.generator.generate_install_script(self.analysis, output_path=Path("install_r_packages.R"))
        path = self.config.project_dir / "install_r_packages.R"
        self.assertEqual(path.read_text(encoding="utf-8"), script)
        self.assertTrue(os.stat(path).st_mode & stat.S_IXUSR)
        self.assertIn("   Commands: 3", self.output)

    def test_package_without_any_command_is_skipped(self) -> None:
        orphan = PackageMetadata(name="orphan", classification=MANUAL, reproduce_install="# Unknown source for orphan")
        script = self.generator.generate_install_script(_analysis([orphan], []), output_path=None)
        self.assertEqual(_install_lines(script), [])


class ContainerScriptTests(unittest.TestCase):
    def setUp(self) -> None:
        self.tmpdir = tempfile.TemporaryDirectory()
        self.config = TrackerConfig(project_dir=Path(self.tmpdir.name))
        self.generator = ReproducibilityGenerator(
            self.config,
            runtime=FakeRuntime(),
            clock=FakeClock(),
            echo=lambda _line: None,
        )
        self.analysis = _analysis(MANUAL_PACKAGES, DEPENDENCY_PACKAGES)

    def tearDown(self) -> None:
        self.tmpdir.cleanup()

    def test_script_format_prefers_actual_commands(self) -> None:
        script = self.generator.generate_container_install_script(self.analysis, output_path=None)
        self.assertIn('install.packages(c("dplyr", "ggplot2"))', script)
        self.assertEqual(script.count('install.packages(c("dplyr", "ggplot2"))'), 1)
        self.assertNotIn("rlib-track", script)
        self.assertIn("cat('Installation complete!\\n')", script)

    def test_wrapper_command_is_never_emitted(self) -> None:
        pkg = _package("Matrix", "1.6-5", manual=True, actual=None, used="rlib-track install Matrix")
        script = self.generator.generate_container_install_script(_analysis([pkg], []), output_path=None)
        self.assertIn('remotes::install_version("Matrix", version = "1.6-5")', script)
        self.assertNotIn("rlib-track", script)

    def test_wrapper_call_from_rhistory_is_replaced_by_pinned_command(self) -> None:
        pkg_dir = self.config.lib_path / "dplyr"
        pkg_dir.mkdir(parents=True)
        (pkg_dir / "DESCRIPTION").write_text("Package: dplyr\nVersion: 1.1.4\nRepository: CRAN\n", encoding="utf-8")
        self.config.rhistory_path.write_text('install_tracked("dplyr", method = "cran")\n', encoding="utf-8")

        script = self.generator.generate_container_install_script(
            output_path=None,
            format=ContainerFormat.CONTAINER_POST,
        )
        post = [line for line in script.splitlines() if line.startswith("    R -e ")]
        self.assertEqual(post, ["    R -e 'remotes::install_version(\"dplyr\", version = \"1.1.4\")'"])
        self.assertNotIn("install_tracked", script)

    def test_post_format_quotes_each_command(self) -> None:
        script = self.generator.generate_container_install_script(
            self.analysis,
            output_path=Path("post.txt"),
            format=ContainerFormat.CONTAINER_POST,
        )
        post = [line for line in script.splitlines() if line.startswith("    R -e ")]
        self.assertEqual(
            post,
            [
                "    R -e 'install.packages(c(\"dplyr\", \"ggplot2\"))'",
                "    R -e 'BiocManager::install(\"DESeq2\")'",
            ],
        )
        path = self.config.project_dir / "post.txt"
        self.assertFalse(os.stat(path).st_mode & stat.S_IXUSR)

    def test_format_accepts_string_value(self) -> None:
        script = self.generator.generate_container_install_script(
            self.analysis,
            output_path=None,
            format="container_post",
        )
        self.assertIn("%post section", script)

    def test_definition_is_buildable_recipe(self) -> None:
        definition = self.generator.generate_container_definition(self.analysis, output_path=None)
        lines = definition.splitlines()
        self.assertEqual(lines[0], "Bootstrap: docker")
        self.assertEqual(lines[1], "From: rocker/r-ver:4.3.2")
        self.assertIn("%post", lines)
        self.assertIn("    R -e 'BiocManager::install(\"DESeq2\")'", lines)


class ReportTests(unittest.TestCase):
    def setUp(self) -> None:
        self.tmpdir = tempfile.TemporaryDirectory()
        self.config = TrackerConfig(project_dir=Path(self.tmpdir.name))
        lib = self.config.lib_path
        for name, version in (("dplyr", "1.1.4"), ("rlang", "1.1.3")):
            (lib / name).mkdir(parents=True)
            (lib / name / "DESCRIPTION").write_text(
                f"Package: {name}\nVersion: {version}\nRepository: CRAN\n",
                encoding="utf-8",
            )
        self.store = LogStore(self.config.history_json_path, self.config.history_text_path)
        self.store.append(
            InstallRecord(
                timestamp=datetime(2024, 5, 1, 10, 0, 0),
                packages=("dplyr",),
                method=InstallMethod.CRAN,
                r_version="4.3.2",
                platform="x86_64-pc-linux-gnu",
                command="rlib-track install dplyr",
                actual_command='install.packages("dplyr")',
                success=True,
                output="Installation completed successfully",
            )
        )
        runtime = FakeRuntime()
        self.output = []
        self.generator = ReproducibilityGenerator(
            self.config,
            analyzer=PackageAnalyzer(self.config, store=self.store, runtime=runtime),
            store=self.store,
            runtime=runtime,
            clock=FakeClock(),
            echo=self.output.append,
        )

    def tearDown(self) -> None:
        self.tmpdir.cleanup()

    def test_report_contents(self) -> None:
        report = self.generator.generate_report()
        self.assertEqual(report.total_packages, 2)
        self.assertEqual(report.manually_installed_count, 1)
        self.assertEqual(list(report.dependencies), ["rlang"])
        self.assertEqual(len(report.install_history), 1)
        path = self.config.project_dir / "r_reproducibility_report_20240501_120000.json"
        data = json.loads(path.read_text(encoding="utf-8"))
        self.assertEqual(data["platform"], "x86_64-pc-linux-gnu")
        self.assertEqual(
            data["manually_installed"]["dplyr"]["reproduce_install"],
            'remotes::install_version("dplyr", version = "1.1.4")',
        )
        self.assertTrue(any("Reproducibility report saved" in line for line in self.output))

    def test_repeated_reports_differ_only_in_timestamp(self) -> None:
        self.generator.generate_report()
        self.generator.generate_report()
        reports = sorted(self.config.project_dir.glob("r_reproducibility_report_*.json"))
        self.assertEqual(len(reports), 2)
        first, second = (json.loads(path.read_text(encoding="utf-8")) for path in reports)
        self.assertNotEqual(first["generated_at"], second["generated_at"])
        first.pop("generated_at")
        second.pop("generated_at")
        self.assertEqual(first, second)

    def test_full_reproducibility_writes_report_and_script(self) -> None:
        bundle = self.generator.generate_full_reproducibility()
        self.assertTrue(bundle.report_path.exists())
        self.assertTrue(bundle.script_path.exists())
        self.assertIn("dplyr", bundle.analysis.manually_installed)
        script = bundle.script_path.read_text(encoding="utf-8")
        self.assertIn('remotes::install_version("dplyr", version = "1.1.4")', script)
        self.assertNotIn("rlang", script)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
