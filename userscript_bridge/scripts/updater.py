"""
자동 업데이트 모듈

레지스트리를 순회하며 스크립트별로 다시 가져올지 결정하고,
실패는 스크립트에 기록한 뒤 다음 스크립트로 계속 진행합니다.
"""

from datetime import datetime
from typing import Optional

from ..config.settings import Settings
from ..exceptions import UserscriptBridgeException
from ..models.base import Script
from ..monitoring.metrics import record_auto_update
from ..utils.helpers import age_in_hours, utc_now
from ..utils.logging import get_logger
from .registry import ScriptRegistry

logger = get_logger(__name__)


class AutoUpdater:
    """원격 스크립트 자동 업데이트 정책"""

    def __init__(self, settings: Settings, registry: ScriptRegistry):
        self.settings = settings
        self.registry = registry
        self.logger = logger

    def is_due(self, script: Script, now: Optional[datetime] = None) -> bool:
        """
        업데이트 시도 여부 판단

        오류가 기록된 스크립트는 재시도 간격(기본 1시간), 정상 스크립트는
        업데이트 간격(기본 24시간)이 지나야 다시 가져옵니다.

        Args:
            script: 대상 스크립트
            now: 기준 시각 (기본값: 현재 UTC)

        Returns:
            시도해야 하면 True
        """
        if not script.is_refreshable:
            return False
        if script.last_updated is None:
            return True

        now = now or utc_now()
        age = age_in_hours(script.last_updated, now)
        if script.last_fetch_error:
            return age >= self.settings.error_retry_interval_hours
        return age >= self.settings.update_interval_hours

    async def run_once(self) -> int:
        """
        자동 업데이트 1회 실행

        스크립트별 실패는 호출자에게 전파하지 않고 스크립트의 오류 필드에 기록합니다.
        두 저장소는 마지막에 한 번 저장합니다.

        Returns:
            성공적으로 업데이트된 스크립트 수
        """
        scripts = await self.registry.list_scripts()
        now = utc_now()
        candidates = [script for script in scripts if self.is_due(script, now)]

        skipped = sum(1 for script in scripts if script.is_refreshable) - len(candidates)
        for _ in range(skipped):
            record_auto_update("skipped")

        self.logger.info(f"자동 업데이트 시작: 대상 {len(candidates)}개, 건너뜀 {skipped}개")

        updated = 0
        for script in candidates:
            try:
                fetched = await self.registry.fetch_with_dependencies(script.url)
            except UserscriptBridgeException as e:
                await self.registry.record_update_failure(script.id, e.message, utc_now())
                record_auto_update("failed")
                self.logger.warning(f"자동 업데이트 실패: {script.name} - {e.message}")
                continue
            except Exception as e:
                message = str(e) or type(e).__name__
                await self.registry.record_update_failure(script.id, message, utc_now())
                record_auto_update("failed")
                self.logger.error(f"자동 업데이트 처리 오류: {script.name} - {message}", exc_info=True)
                continue

            if await self.registry.apply_update(script.id, fetched, utc_now()):
                updated += 1
                record_auto_update("updated")
                self.logger.info(f"자동 업데이트 완료: {script.name}")

        if candidates:
            await self.registry.save()

        self.logger.info(f"자동 업데이트 종료: {updated}/{len(candidates)}개 성공")
        return updated
