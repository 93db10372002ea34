"""
Integration tests for the ``panchang`` command line.
"""

import json

import pytest

from panchang import cli


@pytest.fixture
def patched_cli(aggregator, monkeypatch):
    monkeypatch.setattr(cli, "default_aggregator", lambda: aggregator)
    monkeypatch.setattr(cli, "iana_timezone_for", lambda lat, lon: "Asia/Kolkata")
    monkeypatch.setattr("panchang.aggregator.iana_timezone_for", lambda lat, lon: "Asia/Kolkata")
    return aggregator


class TestParser:
    """Tests for argument parsing."""

    def test_requires_coordinates(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["--year", "2025"])

    def test_day_parsed(self):
        args = cli.build_parser().parse_args(["--lat", "1", "--lon", "2", "--day", "2025-01-05"])

        assert args.day.isoformat() == "2025-01-05"

    def test_bad_day(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["--lat", "1", "--lon", "2", "--day", "05/01/2025"])


class TestMain:
    """Tests for cli.main."""

    def test_month_json(self, patched_cli, capsys):
        cli.main(["--lat", "12.97", "--lon", "77.59", "--year", "2025", "--month", "1"])
        data = json.loads(capsys.readouterr().out)

        assert data["month"] == 1
        assert len(data["days"]) == 31

    def test_day_json(self, patched_cli, capsys):
        cli.main(["--lat", "12.97", "--lon", "77.59", "--day", "2025-01-05"])
        data = json.loads(capsys.readouterr().out)

        assert data["tithi"]["index"] == 5
        assert data["festivals"][0]["key"] == "vasant_panchami"

    def test_year_festivals(self, patched_cli, capsys):
        cli.main(["--lat", "12.97", "--lon", "77.59", "--year", "2025", "--region", "marathi"])
        data = json.loads(capsys.readouterr().out)

        assert data["region"] == "marathi"
        assert len(data["months"]) == 12

    def test_tradition_flag(self, patched_cli, capsys):
        cli.main(["--lat", "12.97", "--lon", "77.59", "--year", "2025", "--month", "1",
                  "--tradition", "vaishnava"])
        data = json.loads(capsys.readouterr().out)

        assert data["tradition"] == "vaishnava"

    def test_ics_written(self, patched_cli, tmp_path, capsys):
        out = tmp_path / "cal.ics"

        cli.main(["--lat", "12.97", "--lon", "77.59", "--year", "2025", "--ics", "--outfile", str(out)])

        assert out.read_bytes().startswith(b"BEGIN:VCALENDAR")
        assert "Wrote" in capsys.readouterr().out

    def test_error_exits(self, patched_cli):
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["--lat", "12.97", "--lon", "77.59", "--year", "2025", "--region", "atlantis"])

        assert "CONFIGURATION_ERROR" in str(exc_info.value)

    def test_missing_year(self, patched_cli):
        with pytest.raises(SystemExit):
            cli.main(["--lat", "12.97", "--lon", "77.59"])
