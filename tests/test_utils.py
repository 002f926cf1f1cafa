"""
유틸리티 함수 테스트 모듈

식별자 생성, 시각 계산, JSON 문서 입출력, 로깅을 테스트합니다.
"""

import json
import logging
from datetime import datetime, timedelta, timezone

from userscript_bridge.config.settings import Settings
from userscript_bridge.utils.helpers import (
    age_in_hours,
    generate_correlation_id,
    generate_script_id,
    read_json_document,
    utc_now,
    write_json_document,
)
from userscript_bridge.utils.logging import KoreanFormatter, get_logger, setup_logging


class TestIdentifiers:
    """식별자 생성 테스트"""

    def test_generate_script_id(self):
        script_id = generate_script_id()

        assert len(script_id) == 36
        assert script_id != generate_script_id()

    def test_generate_correlation_id(self):
        correlation_id = generate_correlation_id()

        assert correlation_id.startswith("req_")
        assert generate_correlation_id("gm").startswith("gm_")


class TestTime:
    """시각 계산 테스트"""

    def test_utc_now_is_aware(self):
        assert utc_now().tzinfo is not None

    def test_age_in_hours(self):
        now = datetime(2024, 1, 2, 0, 0, tzinfo=timezone.utc)

        assert age_in_hours(now - timedelta(minutes=90), now) == 1.5

    def test_age_with_naive_moment(self):
        """시간대 없는 시각은 UTC로 간주"""
        now = datetime(2024, 1, 2, 0, 0, tzinfo=timezone.utc)

        assert age_in_hours(datetime(2024, 1, 1, 0, 0), now) == 24


class TestJsonDocuments:
    """JSON 문서 입출력 테스트"""

    def test_missing_file_returns_default(self, tmp_path):
        assert read_json_document(tmp_path / "missing.json", []) == []

    def test_malformed_file_returns_default(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")

        assert read_json_document(path, {}) == {}

    def test_write_and_read(self, tmp_path):
        path = tmp_path / "nested" / "doc.json"
        document = [{"name": "한글 스크립트", "order": 1}]

        write_json_document(path, document)

        assert read_json_document(path, []) == document
        assert "한글 스크립트" in path.read_text(encoding="utf-8")

    def test_write_replaces_whole_document(self, tmp_path):
        """전체 문서 교체 및 임시 파일 정리 테스트"""
        path = tmp_path / "doc.json"
        write_json_document(path, {"a": 1, "b": 2})
        write_json_document(path, {"c": 3})

        assert json.loads(path.read_text(encoding="utf-8")) == {"c": 3}
        assert [p.name for p in tmp_path.iterdir()] == ["doc.json"]


class TestLogging:
    """로깅 시스템 테스트"""

    def test_korean_formatter(self):
        formatter = KoreanFormatter(fmt="%(levelname)s - %(message)s")
        record = logging.LogRecord("test", logging.WARNING, __file__, 1, "메시지", None, None)

        assert formatter.format(record) == "경고 - 메시지"
        assert record.levelname == "WARNING"

    def test_get_logger_nests_under_root(self):
        assert get_logger("tests.sample").name == "userscript_bridge.tests.sample"
        assert get_logger("userscript_bridge.scripts").name == "userscript_bridge.scripts"

    def test_setup_logging_with_file(self, tmp_path):
        log_file = tmp_path / "logs" / "bridge.log"
        settings = Settings(data_dir=str(tmp_path), log_file=str(log_file), log_level="DEBUG")

        logger = setup_logging(settings)

        try:
            assert logger.name == "userscript_bridge"
            assert len(logger.handlers) == 2
            assert log_file.exists()
        finally:
            for handler in logger.handlers:
                handler.close()
            logger.handlers.clear()
