"""Tests for the command line interface."""

import pytest
from typer.testing import CliRunner

from conftest import DOWNLOAD_CONTENT, FILE_FIELD, KEY
from httpxfer.cli import app

runner = CliRunner()


def _flat(output: str) -> str:
    """Output with the console's line wrapping undone."""
    return " ".join(output.split())


@pytest.fixture
def config_path(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    path = tmp_path / "httpxfer.yaml"
    path.write_text("logging:\n  level: WARNING\n")
    return str(path)


class TestGetCommand:
    """Test the get command."""
    
    def test_get(self, http_server, config_path):
        base_url, _ = http_server
        result = runner.invoke(app, ["get", base_url + "/get_hello", "-k", "-c", config_path])
        
        assert result.exit_code == 0, result.output
        assert "200" in result.output
        assert "hello" in result.output
    
    def test_get_with_cookie(self, http_server, config_path):
        base_url, _ = http_server
        result = runner.invoke(
            app, ["get", base_url + "/get_with_cookie", "-k", "-c", config_path, "-b", f"{KEY}=world"]
        )
        
        assert result.exit_code == 0, result.output
        assert "world" in result.output
    
    def test_invalid_url(self, config_path):
        result = runner.invoke(app, ["get", "http://example.test/\t", "-k", "-c", config_path])
        
        assert result.exit_code == 1
        assert "GET failed" in result.output
    
    def test_missing_cert_file(self, config_path, tmp_path):
        result = runner.invoke(
            app, ["get", "https://example.test/", "-c", config_path, "--cacert", str(tmp_path / "none.pem")]
        )
        
        assert result.exit_code == 1
        assert "Client setup failed" in result.output


class TestPostCommands:
    """Test post and upload."""
    
    def test_post_without_redirect(self, http_server, config_path):
        base_url, state = http_server
        result = runner.invoke(
            app, ["post", base_url + "/post_data_redirect_302", "-d", f"{KEY}=hello", "--no-redirect", "-k", "-c", config_path]
        )
        
        assert result.exit_code == 0, result.output
        assert "302" in result.output
        assert "/post_data" in result.output
        assert state.hits["/post_data"] == 0
    
    def test_upload(self, http_server, config_path, tmp_path):
        base_url, _ = http_server
        upload = tmp_path / "hello.txt"
        upload.write_text("some test contents")
        
        result = runner.invoke(
            app, ["upload", base_url + "/post_file_chunk_with_cookie", str(upload), "--field", FILE_FIELD,
                  "-d", f"{KEY}=hello", "-k", "-c", config_path]
        )
        
        assert result.exit_code == 0, result.output
        assert "some test contents" in result.output


class TestDownloadCommand:
    """Test the download command."""
    
    def test_download_then_skip(self, http_server, config_path, tmp_path):
        base_url, state = http_server
        state.files["/hello.txt"] = DOWNLOAD_CONTENT
        dest_path = tmp_path / "out" / "hello.txt"
        args = ["download", base_url + "/hello.txt", str(dest_path), "-k", "-c", config_path]
        
        result = runner.invoke(app, args)
        assert result.exit_code == 0, result.output
        assert dest_path.read_bytes() == DOWNLOAD_CONTENT
        
        result = runner.invoke(app, args)
        assert result.exit_code == 0, result.output
        assert "already exists, skipped" in _flat(result.output)
        assert state.hits["/hello.txt"] == 1
        
        result = runner.invoke(app, args + ["--force"])
        assert result.exit_code == 0, result.output
        assert state.hits["/hello.txt"] == 2
    
    def test_existing_file_skipped_before_progress(self, http_server, config_path, tmp_path, monkeypatch):
        """An existing file is reported without contacting the server or drawing progress."""
        base_url, state = http_server
        state.files["/hello.txt"] = DOWNLOAD_CONTENT
        dest_path = tmp_path / "hello.txt"
        dest_path.write_bytes(b"old")
        
        def no_progress(*args, **kwargs):
            raise AssertionError("progress display started for a skipped download")
        
        monkeypatch.setattr("httpxfer.cli.Progress", no_progress)
        result = runner.invoke(app, ["download", base_url + "/hello.txt", str(dest_path), "-k", "-c", config_path])
        
        assert result.exit_code == 0, result.output
        assert "already exists, skipped (use --force to re-download)" in _flat(result.output)
        assert dest_path.read_bytes() == b"old"
        assert state.hits["/hello.txt"] == 0
    
    def test_download_error(self, http_server, config_path, tmp_path):
        base_url, _ = http_server
        result = runner.invoke(
            app, ["download", base_url + "/status/404", str(tmp_path / "x"), "-k", "-c", config_path]
        )
        
        assert result.exit_code == 1
        assert "Download failed" in result.output


def test_config_command(config_path):
    result = runner.invoke(app, ["config", "-c", config_path])
    
    assert result.exit_code == 0, result.output
    assert "http.max_redirects" in result.output
    assert "logging.level" in result.output
