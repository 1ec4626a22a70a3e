"""Tests for configuration, utilities and the CLI entry point."""

import logging
import re
from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import pytest

from tweet_importer.core import ImportConfig, ImportJob, ImportResult, JobStatus, PreprocessingOptions
from tweet_importer.core.exceptions import ParseError
from tweet_importer.main import main
from tweet_importer.utils import ProgressLogger, new_id, parse_datetime, setup_logging, to_iso


class TestImportConfig:

    def test_defaults(self):
        config = ImportConfig()
        assert config.collection_name == "tweets"
        assert config.embedding_dimension == 384
        assert config.chunk_size == 500
        assert config.indexing_threshold == 20000
        assert config.history_file_path.name == "import-history.json"

    @pytest.mark.parametrize("field,value", [
        ("collection_name", ""),
        ("chunk_size", 0),
        ("embedding_batch_size", 0),
        ("embedding_dimension", -1),
        ("sample_limit", 0),
        ("embedding_timeout", 0),
        ("log_level", "LOUD"),
        ("download_timeout", 0),
        ("remote_archive_url", "https://example.com/archive.json"),
    ])
    def test_invalid_values(self, field, value):
        with pytest.raises(ValueError):
            ImportConfig(**{field: value})

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("QDRANT_URL", "http://qdrant:6333")
        monkeypatch.setenv("COLLECTION_NAME", "my_tweets")
        monkeypatch.setenv("CHUNK_SIZE", "50")
        monkeypatch.setenv("FORCE_REIMPORT", "true")

        config = ImportConfig.from_env()

        assert config.qdrant_url == "http://qdrant:6333"
        assert config.collection_name == "my_tweets"
        assert config.chunk_size == 50
        assert config.force_reimport is True

    def test_remote_archive_settings_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("REMOTE_ARCHIVE_URL", "https://archives.test/{username}.json")
        monkeypatch.setenv("ARCHIVES_DIR", str(tmp_path / "kept"))
        monkeypatch.setenv("DOWNLOAD_TIMEOUT", "30")

        config = ImportConfig.from_env()

        assert config.remote_archive_url == "https://archives.test/{username}.json"
        assert config.archives_dir_path == tmp_path / "kept"
        assert config.download_timeout == 30.0

    def test_from_dict_ignores_unknown_keys(self):
        config = ImportConfig.from_dict({"chunk_size": 10, "unknown": "x"})
        assert config.chunk_size == 10

    def test_preprocessing_options_hashable(self):
        options = PreprocessingOptions(keep_important_hashtags=["AI"])
        assert options.keep_important_hashtags == ("AI",)
        assert hash(options) == hash(PreprocessingOptions(keep_important_hashtags=("AI",)))

    def test_negative_min_length(self):
        with pytest.raises(ValueError):
            PreprocessingOptions(min_length=-1)


class TestDates:

    def test_archive_format(self):
        parsed = parse_datetime("Wed Oct 10 20:19:24 +0000 2018")
        assert parsed == datetime(2018, 10, 10, 20, 19, 24, tzinfo=timezone.utc)

    def test_iso_with_z(self):
        assert parse_datetime("2018-10-10T20:19:24.000Z") == datetime(
            2018, 10, 10, 20, 19, 24, tzinfo=timezone.utc
        )

    def test_offsets_normalised(self):
        parsed = parse_datetime("Wed Oct 10 22:19:24 +0200 2018")
        assert to_iso(parsed) == "2018-10-10T20:19:24.000Z"

    @pytest.mark.parametrize("value", [None, "", "not a date"])
    def test_unparsable(self, value):
        assert parse_datetime(value) is None

    def test_ids_are_time_ordered(self):
        ids = [new_id() for _ in range(3)]
        assert all(re.fullmatch(r"[0-9a-f]{8}-[0-9a-f]{4}-7[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}", i)
                   for i in ids)
        assert [i[:13] for i in ids] == sorted(i[:13] for i in ids)


class TestLogging:

    def test_setup_logging_replaces_handlers(self, tmp_path):
        root = logging.getLogger()
        saved = list(root.handlers), root.level
        try:
            setup_logging("DEBUG", log_file=str(tmp_path / "logs" / "import.log"))
            setup_logging("DEBUG", log_file=str(tmp_path / "logs" / "import.log"))

            assert root.level == logging.DEBUG
            assert len(root.handlers) == 2
            assert (tmp_path / "logs" / "import.log").exists()
        finally:
            for handler in list(root.handlers):
                root.removeHandler(handler)
                handler.close()
            for handler in saved[0]:
                root.addHandler(handler)
            root.setLevel(saved[1])

    def test_progress_logger(self, caplog):
        progress = ProgressLogger(logging.getLogger("test.progress"))

        with caplog.at_level(logging.INFO, logger="test.progress"):
            progress.update(50, 200, "Processing tweets")
            progress.complete()

        assert "[50/200] 25.0%" in caplog.text
        assert "Processing tweets" in caplog.text
        assert "Completed 200 items" in caplog.text


class TestMain:

    @patch("tweet_importer.main.setup_logging")
    @patch("dotenv.load_dotenv")
    def test_success(self, mock_dotenv, mock_logging, capsys, tmp_path):
        result = ImportResult(username="alice", success_count=3, total_count=3)
        with patch("tweet_importer.main.import_file", new=AsyncMock(return_value=result)) as run:
            code = main([str(tmp_path / "tweets.json"), "--force", "--collection", "other"])

        assert code == 0
        config = run.call_args.args[1]
        assert config.collection_name == "other"
        assert run.call_args.kwargs["force"] is True
        assert "Successfully processed: 3 threads" in capsys.readouterr().out
        mock_dotenv.assert_called_once()

    @patch("tweet_importer.main.setup_logging")
    @patch("dotenv.load_dotenv")
    def test_failure_exit_code(self, mock_dotenv, mock_logging, tmp_path):
        error = ParseError(str(tmp_path / "x.json"), reason="File not found")
        with patch("tweet_importer.main.import_file", new=AsyncMock(side_effect=error)):
            assert main([str(tmp_path / "x.json")]) == 1

    @patch("tweet_importer.main.setup_logging")
    @patch("dotenv.load_dotenv")
    def test_remote_import(self, mock_dotenv, mock_logging, capsys):
        job = ImportJob(
            id="job-1",
            start_time=datetime(2024, 1, 1, tzinfo=timezone.utc),
            username="alice",
            status=JobStatus.COMPLETED,
            total=12,
            archive_path="/kept/alice_2024.json",
        )
        with patch("tweet_importer.main.import_remote", new=AsyncMock(return_value=job)) as run:
            code = main(["--username", "alice", "--save-archive"])

        assert code == 0
        assert run.call_args.args[:2] == (None, "alice")
        assert run.call_args.kwargs["save_archive"] is True
        out = capsys.readouterr().out
        assert "Archive saved to /kept/alice_2024.json" in out
        assert "Imported 12 tweets for alice" in out

    @patch("tweet_importer.main.setup_logging")
    @patch("dotenv.load_dotenv")
    def test_failed_remote_job_exit_code(self, mock_dotenv, mock_logging):
        job = ImportJob(
            id="job-2",
            start_time=datetime(2024, 1, 1, tzinfo=timezone.utc),
            status=JobStatus.FAILED,
            error="Failed to download archive: 404 Not Found",
        )
        with patch("tweet_importer.main.import_remote", new=AsyncMock(return_value=job)):
            assert main(["--url", "https://archives.test/x.json"]) == 1

    def test_file_and_url_are_exclusive(self, tmp_path):
        with pytest.raises(SystemExit):
            main([str(tmp_path / "x.json"), "--url", "https://archives.test/x.json"])

    def test_source_required(self):
        with pytest.raises(SystemExit):
            main([])
