try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import asyncio

import pytest

from marketplace_session.core.config import PushSettings
from marketplace_session.core.errors import ReauthenticationRequired, RegistrationFailed
from marketplace_session.models.session import UserProfile

pytestmark = pytest.mark.anyio("asyncio")


def _sign_in(ctx, backend) -> None:
    access, refresh = backend.issue_pair()
    ctx.token_store.save_tokens(access, refresh)
    ctx.token_store.save_user_info(UserProfile.from_api(backend.user))


async def test_first_registration_posts_and_caches(context, backend) -> None:
    _sign_in(context, backend)

    result = await context.registrar.register_if_needed("dev-123", "tok-xyz")

    assert result.did_register is True
    assert result.reason == "registered"
    assert backend.register_calls == [
        {"device_id": "dev-123", "device_type": "android", "device_token": "tok-xyz"}
    ]
    record = context.registration_cache.load()
    assert record.device_registered is True
    assert record.server_device_id == "srv-1"
    assert record.device_id == "dev-123"
    assert record.last_push_token == "tok-xyz"
    assert record.account_id == "user-1"
    assert record.last_registered_at is not None


async def test_unchanged_pair_is_a_no_op(context, backend) -> None:
    _sign_in(context, backend)
    await context.registrar.register_if_needed("dev-123", "tok-xyz")

    result = await context.registrar.register_if_needed("dev-123", "tok-xyz")

    assert result.did_register is False
    assert result.reason == "no-op"
    assert len(backend.register_calls) == 1


async def test_changed_token_registers_again(context, backend) -> None:
    _sign_in(context, backend)
    await context.registrar.register_if_needed("dev-123", "tok-xyz")
    first_seen = context.registration_cache.load().last_registered_at

    await context.registrar.register_if_needed("dev-123", "tok-new")

    record = context.registration_cache.load()
    assert len(backend.register_calls) == 2
    assert backend.register_calls[-1]["device_token"] == "tok-new"
    assert record.last_push_token == "tok-new"
    assert record.server_device_id == "srv-1"
    assert record.last_registered_at >= first_seen


async def test_rejected_registration_leaves_cache_untouched(context, backend) -> None:
    _sign_in(context, backend)
    backend.reject_registration = "Device limit reached"

    with pytest.raises(RegistrationFailed) as excinfo:
        await context.registrar.register_if_needed("dev-123", "tok-xyz")

    assert excinfo.value.server_message == "Device limit reached"
    assert context.registration_cache.load().device_registered is False


async def test_failed_session_leaves_cache_untouched(context, backend) -> None:
    _sign_in(context, backend)
    await context.registrar.register_if_needed("dev-123", "tok-xyz")
    before = context.registration_cache.load()
    backend.expire_access_tokens()
    backend.fail_refresh = True

    with pytest.raises(ReauthenticationRequired):
        await context.registrar.register_if_needed("dev-123", "tok-new")

    assert context.registration_cache.load() == before


async def test_concurrent_triggers_collapse_into_one_call(context, backend) -> None:
    _sign_in(context, backend)

    results = await asyncio.gather(
        *(context.registrar.register_if_needed("dev-123", "tok-xyz") for _ in range(4))
    )

    assert len(backend.register_calls) == 1
    assert sorted(result.reason for result in results) == ["no-op", "no-op", "no-op", "registered"]


async def test_update_in_place_uses_token_endpoint(make_context, app_settings, backend) -> None:
    settings = app_settings.model_copy(
        update={
            "push": PushSettings(
                MARKETPLACE_DEVICE_TYPE="android", MARKETPLACE_PUSH_UPDATE_IN_PLACE=True
            )
        }
    )
    async with make_context(settings) as ctx:
        _sign_in(ctx, backend)
        await ctx.registrar.register_if_needed("dev-123", "tok-xyz")

        result = await ctx.registrar.register_if_needed("dev-123", "tok-rotated")

        assert result.reason == "token-updated"
        assert backend.update_calls == [("srv-1", "tok-rotated")]
        assert len(backend.register_calls) == 1
        assert backend.devices["srv-1"]["FCMToken"] == "tok-rotated"
        assert ctx.registration_cache.load().last_push_token == "tok-rotated"


async def test_update_in_place_falls_back_to_post_when_record_is_gone(
    make_context, app_settings, backend
) -> None:
    settings = app_settings.model_copy(
        update={
            "push": PushSettings(
                MARKETPLACE_DEVICE_TYPE="android", MARKETPLACE_PUSH_UPDATE_IN_PLACE=True
            )
        }
    )
    async with make_context(settings) as ctx:
        _sign_in(ctx, backend)
        await ctx.registrar.register_if_needed("dev-123", "tok-xyz")
        backend.devices.clear()

        result = await ctx.registrar.register_if_needed("dev-123", "tok-rotated")

        assert result.reason == "registered"
        assert backend.update_calls == [("srv-1", "tok-rotated")]
        assert len(backend.register_calls) == 2
        assert ctx.registration_cache.load().server_device_id == "srv-2"


async def test_list_devices_returns_server_records(context, backend) -> None:
    _sign_in(context, backend)
    await context.registrar.register_if_needed("dev-123", "tok-xyz")

    devices = await context.device_api.list_devices()

    assert [device.id for device in devices] == ["srv-1"]
    assert devices[0].fcm_token == "tok-xyz"
    assert devices[0].platform == "android"
