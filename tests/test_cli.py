"""CLI tests."""

from pathlib import Path
from unittest.mock import patch

import pytest

from rasterclass.cli import main


@pytest.fixture
def cli_config(temp_dir):
    """Isolated config path so the user's config is never read."""
    return temp_dir / "config.toml"


def _invoke(runner, *args):
    return runner.invoke(main, [*map(str, args), "--no-progress"])


class TestMainCommand:
    """Tests for the entry point itself."""

    def test_version(self, runner):
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_help(self, runner):
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        assert "INPUT_FOLDER" in result.output
        assert "--backend" in result.output
        assert "--continue-on-error" in result.output

    def test_missing_arguments(self, runner):
        """Test usage is printed with exit code 1."""
        result = runner.invoke(main, [])
        assert result.exit_code == 1
        assert "Usage:" in result.output

    def test_missing_output_argument(self, runner, image_dir):
        result = runner.invoke(main, [str(image_dir)])
        assert result.exit_code == 1
        assert "<input_folder> <output_file>" in result.output

    def test_invalid_class_count(self, runner, image_dir, temp_dir):
        result = runner.invoke(main, [str(image_dir), str(temp_dir / "r.txt"), "--classes", "0"])
        assert result.exit_code != 0


class TestClassifyRun:
    """Tests for complete runs through the CLI."""

    def test_success(self, runner, no_accelerator, image_dir, white_tiff, temp_dir, cli_config):
        report = temp_dir / "report.txt"

        result = _invoke(runner, image_dir, report, "--allow-cpu", "--classes", "4", "-c", cli_config)

        assert result.exit_code == 0, result.output
        lines = report.read_text(encoding="utf-8").splitlines()
        assert lines[0] == f"File: {white_tiff}"
        assert lines[1].startswith("Predicted class: ")
        assert len(lines[2].split(": ")[1].split()) == 4
        assert lines[3] == ""

    def test_custom_backend(self, runner, no_accelerator, image_dir, white_tiff, temp_dir, cli_config):
        report = temp_dir / "report.txt"

        result = _invoke(
            runner,
            image_dir,
            report,
            "--allow-cpu",
            "--classes",
            "3",
            "--backend",
            "conftest:StubBackend",
            "-c",
            cli_config,
        )

        assert result.exit_code == 0, result.output
        assert report.read_text(encoding="utf-8") == (
            f"File: {white_tiff}\nPredicted class: 1\nClass probabilities: 0.1 0.9 0.2\n\n"
        )

    def test_corrupt_file_exits_1(self, runner, no_accelerator, image_dir, corrupted_tiff, make_tiff, temp_dir, cli_config):
        make_tiff(image_dir / "valid.tiff")
        report = temp_dir / "report.txt"

        result = _invoke(runner, image_dir, report, "--allow-cpu", "-c", cli_config)

        assert result.exit_code == 1
        assert "Error:" in result.output
        assert report.read_text(encoding="utf-8") == ""

    def test_continue_on_error_exits_2(self, runner, no_accelerator, image_dir, corrupted_tiff, make_tiff, temp_dir, cli_config):
        make_tiff(image_dir / "valid.tiff")
        report = temp_dir / "report.txt"

        result = _invoke(runner, image_dir, report, "--allow-cpu", "--continue-on-error", "-c", cli_config)

        assert result.exit_code == 2
        text = report.read_text(encoding="utf-8")
        assert f"File: {corrupted_tiff}\nError: " in text
        assert f"File: {image_dir / 'valid.tiff'}\nPredicted class: " in text

    def test_no_accelerator_exits_1(self, runner, no_accelerator, image_dir, white_tiff, temp_dir, cli_config):
        result = _invoke(runner, image_dir, temp_dir / "report.txt", "-c", cli_config)

        assert result.exit_code == 1
        assert "No accelerator" in result.output

    def test_unknown_backend(self, runner, no_accelerator, image_dir, temp_dir, cli_config):
        result = _invoke(runner, image_dir, temp_dir / "r.txt", "--backend", "nope", "-c", cli_config)

        assert result.exit_code == 1
        assert "Unknown backend" in result.output

    def test_missing_input_folder(self, runner, no_accelerator, temp_dir, cli_config):
        result = _invoke(runner, temp_dir / "missing", temp_dir / "r.txt", "--allow-cpu", "-c", cli_config)

        assert result.exit_code == 1
        assert "not found" in result.output

    def test_empty_folder(self, runner, no_accelerator, image_dir, temp_dir, cli_config):
        report = temp_dir / "report.txt"

        result = _invoke(runner, image_dir, report, "--allow-cpu", "-c", cli_config)

        assert result.exit_code == 0
        assert "No tagged images found" in result.output
        assert report.read_text(encoding="utf-8") == ""

    def test_progress_bar_run(self, runner, no_accelerator, image_dir, white_tiff, temp_dir, cli_config):
        report = temp_dir / "report.txt"
        result = runner.invoke(main, [str(image_dir), str(report), "--allow-cpu", "-c", str(cli_config)])

        assert result.exit_code == 0, result.output
        assert report.exists()


class TestConfigIntegration:
    """Tests for config file handling through the CLI."""

    def test_config_file_values_used(self, runner, no_accelerator, image_dir, white_tiff, temp_dir, cli_config):
        cli_config.write_text("[general]\nclass_count = 5\n\n[device]\nrequire_accelerator = false\n")
        report = temp_dir / "report.txt"

        result = _invoke(runner, image_dir, report, "-c", cli_config)

        assert result.exit_code == 0, result.output
        scores_line = report.read_text(encoding="utf-8").splitlines()[2]
        assert len(scores_line.split(": ")[1].split()) == 5

    def test_save_config(self, runner, no_accelerator, image_dir, temp_dir, cli_config):
        result = _invoke(
            runner, image_dir, temp_dir / "r.txt", "--allow-cpu", "--seed", "9", "--save-config", "-c", cli_config
        )

        assert result.exit_code == 0, result.output
        saved = cli_config.read_text()
        assert "seed = 9" in saved
        assert "require_accelerator = false" in saved

    def test_malformed_config(self, runner, image_dir, temp_dir, cli_config):
        cli_config.write_text("not toml [")

        result = _invoke(runner, image_dir, temp_dir / "r.txt", "-c", cli_config)

        assert result.exit_code == 1
        assert "Failed to load config" in result.output


class TestInterrupt:
    def test_keyboard_interrupt(self, runner, no_accelerator, image_dir, temp_dir, cli_config):
        with patch("rasterclass.cli.ClassificationEngine.run", side_effect=KeyboardInterrupt):
            result = _invoke(runner, image_dir, temp_dir / "r.txt", "--allow-cpu", "-c", cli_config)

        assert result.exit_code == 130

    def test_interrupt_during_inference(self, runner, no_accelerator, image_dir, white_tiff, temp_dir, cli_config):
        """Test Ctrl-C inside a backend exits 130 rather than a cleanup error."""
        result = _invoke(
            runner,
            image_dir,
            temp_dir / "r.txt",
            "--allow-cpu",
            "--classes",
            "3",
            "--backend",
            "conftest:InterruptingBackend",
            "-c",
            cli_config,
        )

        assert result.exit_code == 130
        assert "Cannot release context" not in result.output
