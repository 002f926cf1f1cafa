"""
명령줄 인터페이스 테스트
"""

import logging
from unittest.mock import AsyncMock, patch

import pytest
from conftest import userscript

from userscript_bridge.cli import build_parser, main
from userscript_bridge.scripts.fetcher import ScriptFetcher

SCRIPT_URL = "https://scripts.test/cli.user.js"


@pytest.fixture
def data_dir(tmp_path):
    return str(tmp_path / "cli-data")


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    root = logging.getLogger("userscript_bridge")
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()


def run(data_dir, *args):
    return main(["--data-dir", data_dir, *args])


def script_id_from_list(output: str) -> str:
    return output.strip().splitlines()[-1].split()[2]


class TestParser:
    """인자 파싱 테스트"""

    def test_subcommand_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_toggle_state_choices(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["toggle", "abc", "maybe"])

    def test_reorder_order_is_int(self):
        args = build_parser().parse_args(["reorder", "abc", "3"])

        assert args.order == 3


class TestCommands:
    """하위 명령 실행 테스트"""

    def test_empty_list(self, data_dir, capsys):
        assert run(data_dir, "list") == 0

        assert "설치된 스크립트가 없습니다" in capsys.readouterr().out

    def test_add_toggle_delete(self, data_dir, capsys):
        fetch = AsyncMock(return_value=userscript(name="CLI Script", version="2.1"))
        with patch.object(ScriptFetcher, "fetch", new=fetch):
            assert run(data_dir, "add", SCRIPT_URL) == 0
        assert "추가됨:" in capsys.readouterr().out

        assert run(data_dir, "list") == 0
        listing = capsys.readouterr().out
        assert "CLI Script v2.1" in listing
        script_id = script_id_from_list(listing)

        assert run(data_dir, "toggle", script_id, "off") == 0
        assert "off" in capsys.readouterr().out

        assert run(data_dir, "delete", script_id) == 0
        assert f"삭제됨: CLI Script ({script_id})" in capsys.readouterr().out

    def test_insecure_url_fails(self, data_dir, capsys):
        assert run(data_dir, "add", "http://scripts.test/a.user.js") == 1

        assert "오류: 보안상 HTTPS URL만 지원합니다" in capsys.readouterr().err

    def test_unknown_script_fails(self, data_dir, capsys):
        assert run(data_dir, "toggle", "missing", "on") == 1

        assert "스크립트를 찾을 수 없습니다: missing" in capsys.readouterr().err

    def test_update_with_no_scripts(self, data_dir, capsys):
        assert run(data_dir, "update") == 0

        assert "업데이트된 스크립트: 0개" in capsys.readouterr().out

    def test_build_to_file(self, data_dir, tmp_path, capsys):
        output = tmp_path / "payload.js"

        assert run(data_dir, "build", "--output", str(output)) == 0

        assert "__userscriptBridgeInjected" in output.read_text(encoding="utf-8")
        assert "페이로드 저장" in capsys.readouterr().out

    def test_build_to_stdout(self, data_dir, capsys):
        assert run(data_dir, "build") == 0

        assert "bridge listener initialized" in capsys.readouterr().out
