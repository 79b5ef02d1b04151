"""Integration tests for the canon CLI."""

from pathlib import Path

from typer.testing import CliRunner

from codecanon import __version__, config
from codecanon.cli import app

runner = CliRunner()


class TestLanguagesCommand:

    def test_lists_stock_languages(self):
        result = runner.invoke(app, ["languages"])
        assert result.exit_code == 0
        for tag in ("java", "python", "javascript", "typescript"):
            assert tag in result.stdout


class TestParseCommand:

    def test_parse_java(self, sample_code_path: Path):
        result = runner.invoke(app, ["parse", str(sample_code_path / "ShapeRegistry.java")])
        assert result.exit_code == 0
        assert "Class ShapeRegistry" in result.stdout
        assert "Method register" in result.stdout

    def test_parse_depth(self, sample_code_path: Path):
        result = runner.invoke(app, ["parse", str(sample_code_path / "inventory.py"), "--depth", "1"])
        assert result.exit_code == 0
        assert "Module inventory" in result.stdout
        assert "Class Inventory" not in result.stdout

    def test_parse_broken_file_exits_1(self, sample_code_path: Path):
        result = runner.invoke(app, ["parse", str(sample_code_path / "Broken.java")])
        assert result.exit_code == 1
        assert "Could not parse" in result.stdout

    def test_parse_unknown_extension(self, temp_dir: Path):
        path = temp_dir / "notes.cob"
        path.write_text("IDENTIFICATION DIVISION.")
        result = runner.invoke(app, ["parse", str(path)])
        assert result.exit_code == 1
        assert "Unsupported language: cob" in result.stdout

    def test_parse_missing_file(self):
        result = runner.invoke(app, ["parse", "/nonexistent/file.java"])
        assert result.exit_code != 0

    def test_language_override(self, temp_dir: Path):
        path = temp_dir / "script.txt"
        path.write_text("def hello():\n    return 1\n")
        result = runner.invoke(app, ["parse", str(path), "--language", "python"])
        assert result.exit_code == 0
        assert "Method hello" in result.stdout


class TestValidateCommand:

    def test_valid(self, sample_code_path: Path):
        result = runner.invoke(app, ["validate", str(sample_code_path / "wallet.ts")])
        assert result.exit_code == 0
        assert "syntax OK" in result.stdout

    def test_invalid(self, sample_code_path: Path):
        result = runner.invoke(app, ["validate", str(sample_code_path / "Broken.java")])
        assert result.exit_code == 1
        assert "syntax errors found" in result.stdout


class TestPatternsCommand:

    def test_reports_findings_and_complexity(self, sample_code_path: Path):
        result = runner.invoke(app, ["patterns", str(sample_code_path / "ShapeRegistry.java")])
        assert result.exit_code == 0
        assert "Singleton" in result.stdout
        assert "Cyclomatic complexity" in result.stdout
        assert "ShapeRegistry.register" in result.stdout


class TestSimilarCommand:

    def test_reports_pairs(self, temp_dir: Path):
        path = temp_dir / "Geometry.java"
        path.write_text(
            "class Geometry {\n"
            "  double circleArea(double r) { return r * r; }\n"
            "  double squareArea(double s) { return s * s; }\n"
            "}\n"
        )
        result = runner.invoke(app, ["similar", str(path), "--threshold", "0.5"])
        assert result.exit_code == 0
        assert "circleArea" in result.stdout
        assert "squareArea" in result.stdout

    def test_nothing_above_threshold(self, sample_code_path: Path):
        result = runner.invoke(app, ["similar", str(sample_code_path / "wallet.ts"), "--threshold", "1.0"])
        assert result.exit_code == 0
        assert "No method pairs" in result.stdout


class TestDepsCommand:

    def test_reports_edges(self, sample_code_path: Path):
        result = runner.invoke(app, ["deps", str(sample_code_path / "inventory.py")])
        assert result.exit_code == 0
        assert "extends" in result.stdout
        assert "Base" in result.stdout
        assert "Circular" not in result.stdout

    def test_reports_cycles(self, temp_dir: Path):
        path = temp_dir / "Orders.java"
        path.write_text("class Order { Customer customer; }\nclass Customer { Order last; }\n")
        result = runner.invoke(app, ["deps", str(path)])
        assert result.exit_code == 0
        assert "Circular dependency: Order -> Customer -> Order" in result.stdout

    def test_nothing_to_report(self, temp_dir: Path):
        path = temp_dir / "Empty.java"
        path.write_text("class Empty {}\n")
        result = runner.invoke(app, ["deps", str(path)])
        assert result.exit_code == 0
        assert "No dependencies found in Empty.java." in result.stdout

    def test_broken_file_exits_1(self, sample_code_path: Path):
        result = runner.invoke(app, ["deps", str(sample_code_path / "Broken.java")])
        assert result.exit_code == 1


class TestConfigCommand:

    def test_show(self):
        result = runner.invoke(app, ["config"])
        assert result.exit_code == 0
        assert "workers = 4" in result.stdout
        assert "similarity_threshold = 0.7" in result.stdout

    def test_update(self):
        result = runner.invoke(app, ["config", "--workers", "2", "--threshold", "0.9"])
        assert result.exit_code == 0
        assert "Saved" in result.stdout
        assert config.load_analysis_config()["workers"] == 2
        assert "similarity_threshold = 0.9" in result.stdout


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.stdout
