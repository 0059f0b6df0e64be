"""Tests for the openframe command-line entry points."""

import tempfile
import unittest
from pathlib import Path

from typer.testing import CliRunner

from openframe.cli import app
from openframe.supervisor.frame_config import save_config


class CliTests(unittest.TestCase):
    def setUp(self) -> None:
        self.runner = CliRunner()

    def test_status_shows_frame_and_artwork(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "ofrc.json"
            save_config(
                {
                    "settings": {"api_domain": "api.example.com", "api_port": 8888},
                    "frame": {
                        "id": "f1",
                        "name": "hall",
                        "plugins": {"openframe-image": "*"},
                        "current_artwork": {
                            "id": "a1",
                            "url": "http://cdn.example.com/a.png",
                            "format": {"start_command": "feh -F"},
                        },
                    },
                },
                path=path,
            )
            result = self.runner.invoke(app, ["status", "--config", str(path)])

        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("API: http://api.example.com:8888", result.output)
        self.assertIn("Frame: hall (f1)", result.output)
        self.assertIn("Artwork: a1 [feh -F] http://cdn.example.com/a.png", result.output)
        self.assertIn(" - openframe-image (*)", result.output)

    def test_start_without_credentials_exits_nonzero(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            result = self.runner.invoke(app, ["start", "--config", str(Path(tmpdir) / "missing.json")])
        self.assertEqual(result.exit_code, 1)
        self.assertIn("No credentials configured", result.output)


if __name__ == "__main__":
    unittest.main()
