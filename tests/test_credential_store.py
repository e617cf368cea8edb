import asyncio

from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from database import Base
from services.credential_store import AuthData, CredentialStore

SHOP = "https://shop.example.com/graphql/"
OTHER = "https://other.example.com/graphql/"


def run_with_store(scenario):
    async def runner():
        engine = create_async_engine(
            "sqlite+aiosqlite:///:memory:",
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        store = CredentialStore(
            app_name="test-app",
            session_factory=async_sessionmaker(engine, expire_on_commit=False),
        )
        try:
            return await scenario(store)
        finally:
            await engine.dispose()

    return asyncio.run(runner())


def test_get_unknown_tenant_returns_none():
    async def scenario(store):
        return await store.get(SHOP)

    assert run_with_store(scenario) is None


def test_set_then_get():
    async def scenario(store):
        await store.set(AuthData(saleor_api_url=SHOP, token="tok-1", app_id="app-1"))
        return await store.get(SHOP)

    auth = run_with_store(scenario)
    assert auth.saleor_api_url == SHOP
    assert auth.token == "tok-1"
    assert auth.app_id == "app-1"


def test_set_replaces_existing_configuration():
    async def scenario(store):
        await store.set(AuthData(saleor_api_url=SHOP, token="old"))
        await store.set(AuthData(saleor_api_url=SHOP, token="new"))
        return await store.get(SHOP), await store.get_all()

    auth, everything = run_with_store(scenario)
    assert auth.token == "new"
    assert len(everything) == 1


def test_soft_delete_and_reactivate():
    async def scenario(store):
        await store.set(AuthData(saleor_api_url=SHOP, token="tok"))
        deleted = await store.delete(SHOP)
        after_delete = await store.get(SHOP)
        activated = await store.activate(SHOP)
        after_activate = await store.get(SHOP)
        return deleted, after_delete, activated, after_activate

    deleted, after_delete, activated, after_activate = run_with_store(scenario)
    assert deleted == 1
    assert after_delete is None
    assert activated == 1
    assert after_activate.token == "tok"


def test_get_all_lists_only_active_tenants():
    async def scenario(store):
        await store.set(AuthData(saleor_api_url=SHOP, token="a"))
        await store.set(AuthData(saleor_api_url=OTHER, token="b"))
        await store.delete(OTHER)
        return await store.get_all()

    tenants = [auth.saleor_api_url for auth in run_with_store(scenario)]
    assert tenants == [SHOP]


def test_tenants_are_scoped_by_app_name():
    async def scenario(store):
        await store.set(AuthData(saleor_api_url=SHOP, token="a"))
        other_app = CredentialStore(app_name="another-app", session_factory=store._session_factory)
        return await other_app.get(SHOP)

    assert run_with_store(scenario) is None


def test_is_ready():
    async def scenario(store):
        return await store.is_ready()

    assert run_with_store(scenario) == {"ready": True}


def test_configuration_round_trip_accepts_snake_case():
    auth = AuthData.from_configuration({"saleor_api_url": SHOP, "token": "t", "app_id": "x"})
    assert auth.saleor_api_url == SHOP
    assert auth.app_id == "x"
    assert AuthData.from_configuration(auth.to_configuration()) == auth
