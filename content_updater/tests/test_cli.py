"""
Тесты командной строки
"""

import pytest

from content_updater.cli import main

from .conftest import publish_site


@pytest.mark.usefixtures("restore_root_logging")
class TestCli:

    def test_check_command(self, content_server, dist_dir, capsys):
        publish_site(content_server, "3")

        code = main(["check", "--dist", str(dist_dir), "--url", content_server.url])

        assert code == 0
        assert "3" in capsys.readouterr().out

    def test_run_command(self, content_server, dist_dir):
        publish_site(content_server, "3")

        code = main(["run", "--dist", str(dist_dir), "--url", content_server.url])

        assert code == 0
        assert (dist_dir / "content.json").exists()

    def test_run_command_failure(self, content_server, dist_dir):
        code = main(["run", "--dist", str(dist_dir), "--url", content_server.url])

        assert code == 1

    def test_config_file(self, content_server, dist_dir, tmp_path):
        publish_site(content_server, "3")
        config_file = tmp_path / "updater.yaml"
        config_file.write_text(f"content_updater:\n  remote_base_url: {content_server.url}\n")

        code = main(["--config", str(config_file), "check", "--dist", str(dist_dir)])

        assert code == 0
