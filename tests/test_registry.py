"""
스크립트 레지스트리 테스트

추가/토글/순서 변경/삭제/새로고침과 잠금 밖 네트워크 처리를 테스트합니다.
"""

import asyncio
import json

import pytest
from conftest import FakeResponse, userscript

from userscript_bridge.exceptions import (
    DependencyFetchException,
    DuplicateSourceException,
    HttpStatusException,
    ScriptNotFoundException,
    UnrefreshableScriptException,
)
from userscript_bridge.scripts.fetcher import ScriptFetcher
from userscript_bridge.scripts.metadata import DEFAULT_SCRIPT_NAME
from userscript_bridge.scripts.registry import ScriptRegistry

SCRIPT_A = "https://scripts.test/a.user.js"
SCRIPT_B = "https://scripts.test/b.user.js"
LIB_1 = "https://cdn.test/lib1.js"
LIB_2 = "https://cdn.test/lib2.js"
LIB_3 = "https://cdn.test/lib3.js"


class GatedFetcher:
    """게이트가 열릴 때까지 응답을 보류하는 다운로더"""

    def __init__(self, responses: dict):
        self.responses = responses
        self.gate = asyncio.Event()
        self.started = asyncio.Event()
        self.calls = []

    async def fetch(self, url: str, kind: str = "script") -> str:
        self.calls.append(url)
        self.started.set()
        await self.gate.wait()
        return self.responses[url]

    async def close(self) -> None:
        pass


@pytest.fixture
def registry(settings, fake_session):
    return ScriptRegistry(settings, fetcher=ScriptFetcher(settings, session=fake_session))


class TestAddFromUrl:
    """URL에서 스크립트 추가 테스트"""

    @pytest.mark.asyncio
    async def test_add_success(self, registry, fake_session, settings):
        fake_session.routes[SCRIPT_A] = FakeResponse(body=userscript(name="Alpha", requires=[LIB_1]))
        fake_session.routes[LIB_1] = FakeResponse(body="var lib1 = true;")

        script = await registry.add_from_url(SCRIPT_A)

        assert script.name == "Alpha"
        assert script.url == SCRIPT_A
        assert script.enabled is True
        assert script.order == 0
        assert script.version == "1.0.0"
        assert script.author == "tester"
        assert script.requires == [LIB_1]
        assert script.last_updated is not None
        assert script.last_fetch_error is None

        dependencies = await registry.get_dependencies()
        assert dependencies[LIB_1].code == "var lib1 = true;"

        # 두 문서 모두 저장
        stored_scripts = json.loads(settings.scripts_path.read_text(encoding="utf-8"))
        stored_dependencies = json.loads(settings.dependencies_path.read_text(encoding="utf-8"))
        assert stored_scripts[0]["id"] == script.id
        assert LIB_1 in stored_dependencies

    @pytest.mark.asyncio
    async def test_default_name_without_header(self, registry, fake_session):
        fake_session.routes[SCRIPT_A] = FakeResponse(body="console.log('bare');")

        script = await registry.add_from_url(SCRIPT_A)

        assert script.name == DEFAULT_SCRIPT_NAME
        assert script.requires == []

    @pytest.mark.asyncio
    async def test_order_is_max_plus_one(self, registry, fake_session):
        fake_session.routes[SCRIPT_A] = FakeResponse(body=userscript(name="A"))
        fake_session.routes[SCRIPT_B] = FakeResponse(body=userscript(name="B"))

        manual = await registry.add_manual("console.log('manual');", name="Manual")
        await registry.reorder(manual.id, 7)
        first = await registry.add_from_url(SCRIPT_A)
        second = await registry.add_from_url(SCRIPT_B)

        assert first.order == 8
        assert second.order == 9

    @pytest.mark.asyncio
    async def test_duplicate_url_rejected(self, registry, fake_session):
        """같은 URL을 두 번 추가하면 두 번째는 실패하고 크기 유지"""
        fake_session.routes[SCRIPT_A] = FakeResponse(body=userscript())
        await registry.add_from_url(SCRIPT_A)

        with pytest.raises(DuplicateSourceException):
            await registry.add_from_url(SCRIPT_A)

        assert len(await registry.list_scripts()) == 1
        assert fake_session.urls_requested().count(SCRIPT_A) == 1

    @pytest.mark.asyncio
    async def test_shared_dependency_fetched_once(self, registry, fake_session):
        """두 스크립트가 같은 의존성을 선언해도 한 번만 가져옴"""
        fake_session.routes[SCRIPT_A] = FakeResponse(body=userscript(name="A", requires=[LIB_1]))
        fake_session.routes[SCRIPT_B] = FakeResponse(body=userscript(name="B", requires=[LIB_1, LIB_2]))
        fake_session.routes[LIB_1] = FakeResponse(body="var lib1;")
        fake_session.routes[LIB_2] = FakeResponse(body="var lib2;")

        await registry.add_from_url(SCRIPT_A)
        await registry.add_from_url(SCRIPT_B)

        assert fake_session.urls_requested().count(LIB_1) == 1
        assert set(await registry.get_dependencies()) == {LIB_1, LIB_2}

    @pytest.mark.asyncio
    async def test_dependency_failure_aborts(self, registry, fake_session):
        """첫 의존성 실패에서 중단, 이미 캐시된 의존성은 유지"""
        fake_session.routes[SCRIPT_A] = FakeResponse(body=userscript(requires=[LIB_1, LIB_2, LIB_3]))
        fake_session.routes[LIB_1] = FakeResponse(body="var lib1;")
        fake_session.routes[LIB_2] = FakeResponse(status=404, reason="Not Found")
        fake_session.routes[LIB_3] = FakeResponse(body="var lib3;")

        with pytest.raises(DependencyFetchException) as exc_info:
            await registry.add_from_url(SCRIPT_A)

        assert exc_info.value.url == LIB_2
        assert isinstance(exc_info.value.cause, HttpStatusException)
        assert await registry.list_scripts() == []
        assert set(await registry.get_dependencies()) == {LIB_1}
        assert LIB_3 not in fake_session.urls_requested()

    @pytest.mark.asyncio
    async def test_script_fetch_error_propagates(self, registry, fake_session):
        fake_session.routes[SCRIPT_A] = FakeResponse(status=500, reason="Internal Server Error")

        with pytest.raises(HttpStatusException):
            await registry.add_from_url(SCRIPT_A)

        assert await registry.list_scripts() == []

    @pytest.mark.asyncio
    async def test_duplicate_detected_at_commit(self, settings):
        """가져오는 동안 같은 URL이 추가되면 커밋 시점에 거부"""
        fetcher = GatedFetcher({SCRIPT_A: userscript(name="A")})
        registry = ScriptRegistry(settings, fetcher=fetcher)

        first = asyncio.create_task(registry.add_from_url(SCRIPT_A))
        second = asyncio.create_task(registry.add_from_url(SCRIPT_A))
        await fetcher.started.wait()
        await asyncio.sleep(0)
        fetcher.gate.set()

        results = await asyncio.gather(first, second, return_exceptions=True)

        assert sum(isinstance(r, DuplicateSourceException) for r in results) == 1
        assert len(await registry.list_scripts()) == 1

    @pytest.mark.asyncio
    async def test_reads_not_blocked_by_fetch(self, settings):
        """네트워크 요청 중에도 조회는 대기하지 않음"""
        fetcher = GatedFetcher({SCRIPT_A: userscript(name="A")})
        registry = ScriptRegistry(settings, fetcher=fetcher)

        pending = asyncio.create_task(registry.add_from_url(SCRIPT_A))
        await fetcher.started.wait()

        scripts = await asyncio.wait_for(registry.list_scripts(), timeout=1)
        assert scripts == []

        fetcher.gate.set()
        await pending
        assert len(await registry.list_scripts()) == 1


class TestAddManual:
    """직접 작성한 스크립트 추가 테스트"""

    @pytest.mark.asyncio
    async def test_add_manual(self, registry, fake_session):
        fake_session.routes[LIB_1] = FakeResponse(body="var lib1;")

        script = await registry.add_manual(userscript(name="Local", requires=[LIB_1]))

        assert script.name == "Local"
        assert script.url is None
        assert script.is_refreshable is False
        assert LIB_1 in await registry.get_dependencies()

    @pytest.mark.asyncio
    async def test_explicit_name_wins(self, registry):
        script = await registry.add_manual(userscript(name="Header"), name="Explicit", enabled=False)

        assert script.name == "Explicit"
        assert script.enabled is False


class TestMutations:
    """토글/순서 변경/삭제 테스트"""

    @pytest.mark.asyncio
    async def test_toggle_persists(self, registry, settings):
        script = await registry.add_manual("alert(1)", name="X")

        updated = await registry.toggle(script.id, False)

        assert updated.enabled is False
        reloaded = ScriptRegistry(settings)
        assert (await reloaded.get_script(script.id)).enabled is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("operation, args", [
        ("toggle", (True,)),
        ("reorder", (3,)),
        ("delete", ()),
        ("refresh", ()),
        ("get_script", ()),
        ("move_up", ()),
    ])
    async def test_not_found(self, registry, operation, args):
        with pytest.raises(ScriptNotFoundException):
            await getattr(registry, operation)("missing-id", *args)

    @pytest.mark.asyncio
    async def test_reorder_allows_collisions(self, registry):
        """순서 값이 같으면 컬렉션 순서로 정렬"""
        first = await registry.add_manual("1", name="first")
        second = await registry.add_manual("2", name="second")
        third = await registry.add_manual("3", name="third")

        await registry.reorder(third.id, 0)

        scripts = await registry.list_scripts()
        assert [s.name for s in scripts] == ["first", "third", "second"]
        assert [s.order for s in scripts] == [0, 0, 1]
        assert (await registry.get_script(second.id)).order == 1
        assert (await registry.get_script(first.id)).order == 0

    @pytest.mark.asyncio
    async def test_move_up_and_down(self, registry):
        a = await registry.add_manual("a", name="a")
        b = await registry.add_manual("b", name="b")
        c = await registry.add_manual("c", name="c")

        await registry.move_up(c.id)
        assert [s.name for s in await registry.list_scripts()] == ["a", "c", "b"]

        await registry.move_down(a.id)
        assert [s.name for s in await registry.list_scripts()] == ["c", "a", "b"]

        # 맨 앞에서 위로 이동은 변화 없음
        await registry.move_up(c.id)
        assert [s.name for s in await registry.list_scripts()] == ["c", "a", "b"]
        assert b.id in [s.id for s in await registry.list_scripts()]

    @pytest.mark.asyncio
    async def test_move_with_tied_orders(self, registry, settings):
        """순서 값이 같은 스크립트 사이에서도 정확히 한 칸만 이동"""
        a = await registry.add_manual("a", name="a")
        b = await registry.add_manual("b", name="b")
        c = await registry.add_manual("c", name="c")
        await registry.reorder(b.id, 0)
        await registry.reorder(c.id, 0)

        await registry.move_down(a.id)
        assert [s.name for s in await registry.list_scripts()] == ["b", "a", "c"]

        await registry.move_up(c.id)
        assert [s.name for s in await registry.list_scripts()] == ["b", "c", "a"]

        await registry.move_up(c.id)
        scripts = await registry.list_scripts()
        assert [s.name for s in scripts] == ["c", "b", "a"]
        assert [s.order for s in scripts] == [0, 0, 0]

        # 바뀐 위치가 저장됨
        reloaded = ScriptRegistry(settings)
        assert [s.name for s in await reloaded.list_scripts()] == ["c", "b", "a"]

    @pytest.mark.asyncio
    async def test_delete_keeps_dependency_cache(self, registry, fake_session):
        fake_session.routes[SCRIPT_A] = FakeResponse(body=userscript(requires=[LIB_1]))
        fake_session.routes[LIB_1] = FakeResponse(body="var lib1;")
        script = await registry.add_from_url(SCRIPT_A)

        deleted = await registry.delete(script.id)

        assert deleted.id == script.id
        assert await registry.list_scripts() == []
        assert LIB_1 in await registry.get_dependencies()

    @pytest.mark.asyncio
    async def test_list_returns_copies(self, registry):
        script = await registry.add_manual("a", name="a")

        scripts = await registry.list_scripts()
        scripts[0].name = "changed"

        assert (await registry.get_script(script.id)).name == "a"


class TestRefresh:
    """새로고침 테스트"""

    @pytest.mark.asyncio
    async def test_refresh_preserves_identity(self, registry, fake_session):
        fake_session.routes[SCRIPT_A] = FakeResponse(body=userscript(name="Old", version="1.0"))
        script = await registry.add_from_url(SCRIPT_A)
        await registry.toggle(script.id, False)
        await registry.reorder(script.id, 42)

        fake_session.routes[SCRIPT_A] = FakeResponse(
            body=userscript(name="New", version="2.0", requires=[LIB_1])
        )
        fake_session.routes[LIB_1] = FakeResponse(body="var lib1;")
        refreshed = await registry.refresh(script.id)

        assert refreshed.id == script.id
        assert refreshed.enabled is False
        assert refreshed.order == 42
        assert refreshed.name == "New"
        assert refreshed.version == "2.0"
        assert refreshed.requires == [LIB_1]
        assert refreshed.last_updated >= script.last_updated
        assert LIB_1 in await registry.get_dependencies()

    @pytest.mark.asyncio
    async def test_refresh_clears_error(self, registry, fake_session):
        fake_session.routes[SCRIPT_A] = FakeResponse(body=userscript())
        script = await registry.add_from_url(SCRIPT_A)
        await registry.record_update_failure(script.id, "HTTP 500: x", script.last_updated)

        refreshed = await registry.refresh(script.id)

        assert refreshed.last_fetch_error is None

    @pytest.mark.asyncio
    async def test_refresh_unrefreshable_unchanged(self, registry, settings):
        """URL 없는 스크립트는 거부되고 그대로 유지"""
        script = await registry.add_manual("alert(1)", name="Manual")
        before = settings.scripts_path.read_bytes()

        with pytest.raises(UnrefreshableScriptException):
            await registry.refresh(script.id)

        assert await registry.get_script(script.id) == script
        assert settings.scripts_path.read_bytes() == before

    @pytest.mark.asyncio
    async def test_refresh_failure_leaves_script(self, registry, fake_session):
        """실패하면 스크립트와 오류 필드 모두 변경 없음"""
        fake_session.routes[SCRIPT_A] = FakeResponse(body=userscript(name="Stable"))
        script = await registry.add_from_url(SCRIPT_A)
        fake_session.routes[SCRIPT_A] = FakeResponse(status=503, reason="Service Unavailable")

        with pytest.raises(HttpStatusException):
            await registry.refresh(script.id)

        current = await registry.get_script(script.id)
        assert current == script
        assert current.last_fetch_error is None

    @pytest.mark.asyncio
    async def test_refresh_of_deleted_script(self, settings):
        """가져오는 동안 삭제되면 커밋 시점에 NotFound"""
        fetcher = GatedFetcher({SCRIPT_A: userscript(name="A")})
        registry = ScriptRegistry(settings, fetcher=fetcher)
        fetcher.gate.set()
        script = await registry.add_from_url(SCRIPT_A)

        fetcher.gate.clear()
        fetcher.started.clear()
        pending = asyncio.create_task(registry.refresh(script.id))
        await fetcher.started.wait()
        await registry.delete(script.id)
        fetcher.gate.set()

        with pytest.raises(ScriptNotFoundException):
            await pending


class TestPersistence:
    """저장/복원 테스트"""

    @pytest.mark.asyncio
    async def test_reload_round_trip(self, registry, fake_session, settings):
        fake_session.routes[SCRIPT_A] = FakeResponse(body=userscript(name="A", requires=[LIB_1]))
        fake_session.routes[LIB_1] = FakeResponse(body="var lib1;")
        await registry.add_from_url(SCRIPT_A)
        await registry.add_manual("alert(2)", name="B", enabled=False)

        reloaded = ScriptRegistry(settings)

        assert await reloaded.list_scripts() == await registry.list_scripts()
        assert await reloaded.get_dependencies() == await registry.get_dependencies()

    def test_get_data_dir(self, registry, settings):
        assert registry.get_data_dir() == str(settings.scripts_path.parent.resolve())
