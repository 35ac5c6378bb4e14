"""Tests for the CLI implementation."""

import re

import pytest
import typer
from pytest_httpserver import HTTPServer
from typer.testing import CliRunner
from werkzeug import Request, Response

from virtualstream.cli import app, parse_file_specs


class TestCLI:
    """Test the CLI functionality."""

    @pytest.fixture
    def runner(self):
        """CLI test runner."""
        return CliRunner()

    @pytest.fixture
    def stream(self, httpserver: HTTPServer):
        """A 300-byte stream served in 64-byte windows."""
        data = bytes(range(100)) * 3

        def handler(request: Request) -> Response:
            m = re.match(r"bytes=(\d+)-(\d*)$", request.headers.get("Range", ""))
            start = int(m.group(1))
            end = min(int(m.group(2)) if m.group(2) else len(data) - 1, start + 63)
            return Response(
                data[start:end + 1],
                status=206,
                headers={"Content-Range": f"bytes {start}-{end}/{len(data)}"},
            )

        httpserver.expect_request("/virtual-stream/clip/300").respond_with_handler(handler)
        return httpserver.url_for("/virtual-stream/clip/300"), data

    def test_help(self, runner):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("serve", "peer", "fetch"):
            assert command in result.stdout

    def test_fetch_whole_stream(self, runner, stream, tmp_path):
        url, data = stream
        out = tmp_path / "out.bin"
        result = runner.invoke(app, ["fetch", url, "-o", str(out)])

        assert result.exit_code == 0
        assert out.read_bytes() == data

    def test_fetch_sync_slice(self, runner, stream, tmp_path):
        url, data = stream
        out = tmp_path / "slice.bin"
        result = runner.invoke(app, ["fetch", url, "-o", str(out), "--sync", "--start", "10", "--length", "100"])

        assert result.exit_code == 0
        assert out.read_bytes() == data[10:110]

    def test_fetch_failure(self, runner, httpserver: HTTPServer, tmp_path):
        httpserver.expect_request("/virtual-stream/gone/300").respond_with_data("Error fetching data", status=500)
        result = runner.invoke(app, ["fetch", httpserver.url_for("/virtual-stream/gone/300"), "-o", str(tmp_path / "x")])

        assert result.exit_code == 1
        assert "Fetch failed" in result.output

    def test_peer_missing_file(self, runner, tmp_path):
        result = runner.invoke(app, ["peer", "http://127.0.0.1:1", "--file", f"clip={tmp_path / 'nope.mp4'}"])
        assert result.exit_code == 1


class TestFileSpecs:
    def test_id_and_path(self, tmp_path):
        specs = parse_file_specs([f"clip={tmp_path / 'a.mp4'}", str(tmp_path / "b.mp4")])
        assert specs == {"clip": tmp_path / "a.mp4", "b.mp4": tmp_path / "b.mp4"}

    def test_bad_id(self):
        with pytest.raises(typer.BadParameter):
            parse_file_specs(["=x.mp4"])
