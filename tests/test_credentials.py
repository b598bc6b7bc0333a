import pytest

from app.services import credentials
from app.services.credentials import INVALID_CREDENTIALS, CredentialStore
from app.utils.auth import get_password_hash, verify_password
from app.utils.errors import ConflictError, InputValidationError, UnauthorizedError


@pytest.mark.asyncio
async def test_register_persists_hash_not_password(store: CredentialStore, database) -> None:
    user = await store.register("Ann", "ann@example.com", "secret1")

    stored = database["users"].documents[0]
    assert user.name == "Ann"
    assert stored["hashed_password"] != "secret1"
    assert "password" not in stored
    assert stored["hashed_password"].startswith("$2")


@pytest.mark.asyncio
async def test_register_normalizes_email_and_trims_name(store: CredentialStore) -> None:
    user = await store.register("  Ann  ", "  A@X.com ", "secret1")

    assert user.email == "a@x.com"
    assert user.name == "Ann"


@pytest.mark.asyncio
async def test_duplicate_email_is_conflict_regardless_of_case(store: CredentialStore) -> None:
    await store.register("Ann", "ann@example.com", "secret1")

    with pytest.raises(ConflictError):
        await store.register("Other Ann", "ANN@Example.COM", "secret2")


@pytest.mark.asyncio
async def test_unique_index_race_maps_to_conflict(store: CredentialStore, users) -> None:
    await store.register("Ann", "ann@example.com", "secret1")

    async def nobody(email):
        return None

    # Pretend the pre-check ran before the other registration landed
    users.get_user_by_email = nobody

    with pytest.raises(ConflictError):
        await store.register("Ann Again", "ann@example.com", "secret1")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "name, email, password",
    [
        ("", "ann@example.com", "secret1"),
        ("   ", "ann@example.com", "secret1"),
        ("x" * 51, "ann@example.com", "secret1"),
        ("Ann", "not-an-email", "secret1"),
        ("Ann", "ann@example.com", "12345"),
        ("Ann", "ann@example.com", "é" * 40),
    ],
)
async def test_register_rejects_invalid_input(
    store: CredentialStore, name: str, email: str, password: str
) -> None:
    with pytest.raises(InputValidationError):
        await store.register(name, email, password)


@pytest.mark.asyncio
async def test_login_scenario_email_is_case_insensitive(store: CredentialStore) -> None:
    registered = await store.register("Ann", "A@X.com", "secret1")

    user = await store.verify_credentials("a@x.com", "secret1")

    assert user.id == registered.id


@pytest.mark.asyncio
async def test_wrong_password_and_unknown_email_fail_identically(store: CredentialStore) -> None:
    await store.register("Ann", "A@X.com", "secret1")

    with pytest.raises(UnauthorizedError) as wrong_password:
        await store.verify_credentials("a@x.com", "secret2")
    with pytest.raises(UnauthorizedError) as unknown_email:
        await store.verify_credentials("nobody@x.com", "secret1")

    assert wrong_password.value.message == INVALID_CREDENTIALS
    assert unknown_email.value.message == INVALID_CREDENTIALS


@pytest.mark.asyncio
async def test_find_by_id(store: CredentialStore) -> None:
    user = await store.register("Ann", "ann@example.com", "secret1")

    found = await store.find_by_id(user.id)

    assert found is not None
    assert found.email == "ann@example.com"
    assert await store.find_by_id("65a1f0c2e4b0a1b2c3d4e5f6") is None
    assert await store.find_by_id("not-an-id") is None


@pytest.fixture()
def offloaded(monkeypatch) -> list:
    calls = []

    async def recording_threadpool(func, *args):
        calls.append(func)
        return func(*args)

    monkeypatch.setattr(credentials, "run_in_threadpool", recording_threadpool)
    return calls


@pytest.mark.asyncio
async def test_bcrypt_work_goes_through_the_threadpool(store: CredentialStore, offloaded: list) -> None:
    await store.register("Ann", "ann@example.com", "secret1")
    await store.verify_credentials("ann@example.com", "secret1")

    assert offloaded == [get_password_hash, verify_password]


@pytest.mark.asyncio
async def test_unknown_email_still_checks_a_password_hash(store: CredentialStore, offloaded: list) -> None:
    for _ in range(2):
        with pytest.raises(UnauthorizedError):
            await store.verify_credentials("nobody@x.com", "secret1")

    # The placeholder hash is made once, every attempt runs a bcrypt check
    assert offloaded == [get_password_hash, verify_password, verify_password]
