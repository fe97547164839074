"""
Scoped plugins (di/scoped.py, di/request.py)

Tests per-request memoization, phase guards and boot-graph deduplication.
"""

import asyncio

import pytest
from starlette.applications import Starlette

from aviary import (
    DuplicateRegistrationFault,
    PhaseViolationFault,
    PluginDefinitionFault,
    ScopedGetter,
    app_plugin,
    scoped_plugin,
    service_plugin,
)
from aviary.di import RequestContext

from tests.conftest import boot, make_scope


def user_from_header():
    return scoped_plugin("user", lambda request, deps: {"id": request.headers.get("x-user-id")})


# ============================================================================
# Definition
# ============================================================================

class TestDefinition:

    def test_scoped_dependency_rejected(self):
        first = scoped_plugin("first", lambda request, deps: 1)

        with pytest.raises(PluginDefinitionFault, match="scoped plugins may only depend on service plugins"):
            scoped_plugin("second", lambda request, deps: 2, dependencies={"first": first})

    def test_produce_must_be_callable(self):
        with pytest.raises(PluginDefinitionFault):
            scoped_plugin("user", None)


# ============================================================================
# Request memoization
# ============================================================================

class TestRequestValues:

    @pytest.mark.asyncio
    async def test_value_from_request_header(self):
        user = user_from_header()

        def configure(app, deps, opts):
            @app.get("/me")
            async def me(request):
                current = await deps.scoped_services.user.get(request)
                return {"userId": current["id"]}

        runtime = await boot(scoped_services={"user": user}, configure=configure)
        try:
            response = await runtime.inject("GET", "/me", headers={"x-user-id": "alice"})
        finally:
            await runtime.close()

        assert response.status_code == 200
        assert response.json() == {"userId": "alice"}

    @pytest.mark.asyncio
    async def test_memoized_within_request(self, calls):
        counter = scoped_plugin("counter", calls.returning(lambda request, deps: object()))

        def configure(app, deps, opts):
            @app.get("/")
            async def index(request):
                first = await deps.scoped_services.counter.get(request)
                second = await deps.scoped_services.counter(request)
                third = await counter.get(request)
                return {"same": first is second is third}

        runtime = await boot(scoped_services={"counter": counter}, configure=configure)
        try:
            first = await runtime.inject("GET", "/")
            second = await runtime.inject("GET", "/")
        finally:
            await runtime.close()

        assert first.json() == {"same": True}
        assert second.json() == {"same": True}
        assert calls.count == 2

    @pytest.mark.asyncio
    async def test_concurrent_gets_share_one_production(self, calls):
        async def produce(request, deps):
            calls.count += 1
            await asyncio.sleep(0.01)
            return object()

        slow = scoped_plugin("slow", produce)

        def configure(app, deps, opts):
            @app.get("/")
            async def index(request):
                a, b = await asyncio.gather(
                    deps.scoped_services.slow.get(request),
                    deps.scoped_services.slow.get(request),
                )
                return {"same": a is b}

        runtime = await boot(scoped_services={"slow": slow}, configure=configure)
        try:
            response = await runtime.inject("GET", "/")
        finally:
            await runtime.close()

        assert response.json() == {"same": True}
        assert calls.count == 1

    @pytest.mark.asyncio
    async def test_failed_production_is_not_memoized(self, calls):
        def produce(request, deps):
            calls.count += 1
            if calls.count == 1:
                raise RuntimeError("flaky")
            return "ok"

        flaky = scoped_plugin("flaky", produce)

        def configure(app, deps, opts):
            @app.get("/")
            async def index(request):
                with pytest.raises(RuntimeError):
                    await deps.scoped_services.flaky.get(request)
                return {"value": await deps.scoped_services.flaky.get(request)}

        runtime = await boot(scoped_services={"flaky": flaky}, configure=configure)
        try:
            response = await runtime.inject("GET", "/")
        finally:
            await runtime.close()

        assert response.json() == {"value": "ok"}
        assert calls.count == 2

    @pytest.mark.asyncio
    async def test_service_dependencies_resolved_once_at_boot(self, calls):
        auth = service_plugin("auth", calls.returning(lambda deps: {"alice": "admin"}))
        role = scoped_plugin(
            "role",
            lambda request, deps: deps.auth.get(request.headers.get("x-user-id")),
            dependencies={"auth": auth},
        )

        def configure(app, deps, opts):
            @app.get("/role")
            async def get_role(request):
                return {"role": await deps.scoped_services.role.get(request)}

        runtime = await boot(scoped_services={"role": role}, configure=configure)
        try:
            responses = [
                await runtime.inject("GET", "/role", headers={"x-user-id": "alice"}),
                await runtime.inject("GET", "/role", headers={"x-user-id": "bob"}),
            ]
        finally:
            await runtime.close()

        assert [r.json() for r in responses] == [{"role": "admin"}, {"role": None}]
        assert calls.count == 1

    @pytest.mark.asyncio
    async def test_getter_published_in_registry(self):
        user = user_from_header()
        runtime = await boot(scoped_services={"user": user})
        try:
            getter = runtime.locator.get(user.key)
        finally:
            await runtime.close()

        assert isinstance(getter, ScopedGetter)
        assert getter.plugin is user


# ============================================================================
# Phase guards
# ============================================================================

class TestPhaseGuards:

    @pytest.mark.asyncio
    async def test_register_outside_boot_fails(self):
        with pytest.raises(PhaseViolationFault) as exc:
            await user_from_header().register(Starlette())

        assert exc.value.message == "You can only register a scoped plugin during booting."

    @pytest.mark.asyncio
    async def test_register_inside_configure_fails(self):
        user = user_from_header()

        async def configure(app, deps, opts):
            await user.register(app)

        with pytest.raises(PhaseViolationFault) as exc:
            await boot(configure=configure)

        assert exc.value.message == (
            "You can only inject a scoped plugin as a dependency, not register it manually."
        )

    @pytest.mark.asyncio
    async def test_get_before_ready_fails(self):
        user = user_from_header()

        async def configure(app, deps, opts):
            scope = make_scope(headers=[("x-user-id", "alice")])
            RequestContext(app.context).attach(scope)
            await deps.scoped_services.user.get(scope)

        with pytest.raises(PhaseViolationFault) as exc:
            await boot(scoped_services={"user": user}, configure=configure)

        assert exc.value.message == 'Cannot call .get() for "user" before the application is ready'

    @pytest.mark.asyncio
    async def test_get_without_request_context_fails(self):
        with pytest.raises(PhaseViolationFault, match="before the application is ready"):
            await user_from_header().get(make_scope())

    @pytest.mark.asyncio
    async def test_get_for_plugin_not_in_this_application(self):
        registered = user_from_header()
        stranger = scoped_plugin("stranger", lambda request, deps: 1)

        def configure(app, deps, opts):
            @app.get("/")
            async def index(request):
                with pytest.raises(PhaseViolationFault, match="is not registered in this application"):
                    await stranger.get(request)
                return {"ok": True}

        runtime = await boot(scoped_services={"user": registered}, configure=configure)
        try:
            response = await runtime.inject("GET", "/")
        finally:
            await runtime.close()

        assert response.json() == {"ok": True}


# ============================================================================
# Boot-graph deduplication
# ============================================================================

class TestDeduplication:

    @pytest.mark.asyncio
    async def test_same_plugin_in_sibling_applications_is_shared(self):
        user = user_from_header()
        seen = {}

        def remember(key):
            return lambda app, deps, opts: seen.update({key: deps.scoped_services.user})

        runtime = await boot(children=[
            app_plugin("left", scoped_services={"user": user}, configure=remember("left")),
            app_plugin("right", scoped_services={"user": user}, configure=remember("right")),
        ])
        await runtime.close()

        assert seen["left"] is seen["right"]

    @pytest.mark.asyncio
    async def test_different_plugin_with_same_name_fails(self):
        first = scoped_plugin("user", lambda request, deps: 1)
        second = scoped_plugin("user", lambda request, deps: 2)

        with pytest.raises(DuplicateRegistrationFault) as exc:
            await boot(children=[
                app_plugin("left", scoped_services={"user": first}),
                app_plugin("right", scoped_services={"user": second}),
            ])

        assert exc.value.message == (
            "Scoped service plugin with the name 'user' has already been registered on this encapsulation context."
        )


# ============================================================================
# Test mode
# ============================================================================

class TestForTesting:

    @pytest.mark.asyncio
    async def test_produces_with_test_mode_dependencies(self):
        auth = service_plugin("auth", lambda deps: {"alice": "admin"})
        role = scoped_plugin(
            "role",
            lambda request, deps: deps.auth.get(request["user"]),
            dependencies={"auth": auth},
        )

        assert await role.for_testing({"user": "alice"}) == "admin"


# ============================================================================
# Names shared with services
# ============================================================================

class TestNameSharedWithService:

    @staticmethod
    def transaction_over(db):
        return scoped_plugin("db", lambda request, deps: f"{deps.db}:tx", dependencies={"db": db})

    @pytest.mark.asyncio
    async def test_boot_resolves_service_with_same_name(self):
        db = service_plugin("db", lambda deps: "conn")
        tx = self.transaction_over(db)

        def configure(app, deps, opts):
            @app.get("/tx")
            async def current(request):
                return {"tx": await deps.scoped_services.db.get(request)}

        runtime = await boot(scoped_services={"db": tx}, configure=configure)
        try:
            response = await runtime.inject("GET", "/tx")
            service_value = runtime.locator.get(db.key)
        finally:
            await runtime.close()

        assert response.json() == {"tx": "conn:tx"}
        assert service_value == "conn"

    @pytest.mark.asyncio
    async def test_for_testing_resolves_service_with_same_name(self):
        tx = self.transaction_over(service_plugin("db", lambda deps: "conn"))

        assert await tx.for_testing(None) == "conn:tx"
