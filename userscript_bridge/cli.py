"""
명령줄 인터페이스 모듈

레지스트리를 명시적으로 생성해 작업 하나를 실행하고 결과를 출력합니다.
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional, Sequence

from .config.settings import Settings, get_settings
from .exceptions import UserscriptBridgeException
from .injection.assembler import PayloadAssembler
from .models.base import Script
from .scripts.registry import ScriptRegistry
from .scripts.updater import AutoUpdater
from .utils.logging import setup_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="userscript-bridge",
        description="유저스크립트 레지스트리 관리 도구",
    )
    parser.add_argument("--data-dir", help="스크립트/의존성 문서 디렉토리 (기본값: 설정의 DATA_DIR)")

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("list", help="설치된 스크립트 목록")

    add_parser = subparsers.add_parser("add", help="URL에서 스크립트 추가")
    add_parser.add_argument("url", help="HTTPS 스크립트 URL")

    toggle_parser = subparsers.add_parser("toggle", help="스크립트 활성화/비활성화")
    toggle_parser.add_argument("script_id")
    toggle_parser.add_argument("state", choices=["on", "off"])

    reorder_parser = subparsers.add_parser("reorder", help="스크립트 로드 순서 변경")
    reorder_parser.add_argument("script_id")
    reorder_parser.add_argument("order", type=int)

    delete_parser = subparsers.add_parser("delete", help="스크립트 삭제")
    delete_parser.add_argument("script_id")

    refresh_parser = subparsers.add_parser("refresh", help="원본 URL에서 스크립트 새로고침")
    refresh_parser.add_argument("script_id")

    subparsers.add_parser("update", help="자동 업데이트 1회 실행")

    build_parser_ = subparsers.add_parser("build", help="주입 페이로드 생성")
    build_parser_.add_argument("--output", "-o", help="출력 파일 (기본값: 표준 출력)")

    return parser


def format_script(script: Script) -> str:
    state = "on" if script.enabled else "off"
    version = f" v{script.version}" if script.version else ""
    line = f"{script.order:>4}  {state:<3}  {script.id}  {script.name}{version}"
    if script.last_fetch_error:
        line += f"\n      ! {script.last_fetch_error}"
    return line


async def run_command(args: argparse.Namespace, settings: Settings) -> int:
    """
    하위 명령 실행

    Args:
        args: 파싱된 인자
        settings: 시스템 설정

    Returns:
        종료 코드
    """
    async with ScriptRegistry(settings) as registry:
        if args.command == "list":
            scripts = await registry.list_scripts()
            if not scripts:
                print("설치된 스크립트가 없습니다")
            for script in scripts:
                print(format_script(script))

        elif args.command == "add":
            script = await registry.add_from_url(args.url)
            print(f"추가됨: {format_script(script)}")

        elif args.command == "toggle":
            script = await registry.toggle(args.script_id, args.state == "on")
            print(f"변경됨: {format_script(script)}")

        elif args.command == "reorder":
            script = await registry.reorder(args.script_id, args.order)
            print(f"변경됨: {format_script(script)}")

        elif args.command == "delete":
            script = await registry.delete(args.script_id)
            print(f"삭제됨: {script.name} ({script.id})")

        elif args.command == "refresh":
            script = await registry.refresh(args.script_id)
            print(f"새로고침됨: {format_script(script)}")

        elif args.command == "update":
            updated = await AutoUpdater(settings, registry).run_once()
            print(f"업데이트된 스크립트: {updated}개")

        elif args.command == "build":
            payload = await PayloadAssembler(settings).build_from_registry(registry)
            if args.output:
                Path(args.output).write_text(payload.code, encoding="utf-8")
                print(f"페이로드 저장: {args.output} (스크립트 {len(payload.script_ids)}개)")
            else:
                print(payload.code)
            for url in payload.missing_dependencies:
                print(f"경고: 캐시에 없는 의존성 {url}", file=sys.stderr)

    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """명령줄 진입점"""
    args = build_parser().parse_args(argv)

    try:
        if args.data_dir:
            settings = Settings(data_dir=args.data_dir)
            settings.validate_configuration()
        else:
            settings = get_settings()
        setup_logging(settings)
        return asyncio.run(run_command(args, settings))
    except UserscriptBridgeException as e:
        print(f"오류: {e.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
