from __future__ import annotations

import asyncio

import pytest

from services.giftcard_service.app.ledger import CardIdGenerationExhausted, CardIdGenerator, CardLockTimeout, CardLocks
from services.giftcard_service.app.ledger.card_ids import CARD_ID_ALPHABET


def _scripted(*tokens: str):
    remaining = iter(tokens)
    return lambda _length: next(remaining)


@pytest.mark.asyncio
async def test_random_ids_have_fixed_length_and_alphabet():
    generator = CardIdGenerator(length=7)

    async def never_taken(_candidate: str) -> bool:
        return False

    card_id = await generator.generate(never_taken)
    assert len(card_id) == 7
    assert set(card_id) <= set(CARD_ID_ALPHABET)


@pytest.mark.asyncio
async def test_collision_is_retried_until_free():
    generator = CardIdGenerator(token=_scripted("aaaaaaa", "bbbbbbb", "ccccccc"))
    seen: list[str] = []

    async def taken(candidate: str) -> bool:
        seen.append(candidate)
        return candidate == "aaaaaaa"

    assert await generator.generate(taken, reserved={"bbbbbbb"}) == "ccccccc"
    # reserved codes are skipped without asking the store
    assert seen == ["aaaaaaa", "ccccccc"]


@pytest.mark.asyncio
async def test_generation_gives_up_after_attempt_budget():
    calls = 0

    async def always_taken(_candidate: str) -> bool:
        nonlocal calls
        calls += 1
        return True

    generator = CardIdGenerator(max_attempts=3, token=lambda _length: "zzzzzzz")
    with pytest.raises(CardIdGenerationExhausted):
        await generator.generate(always_taken)
    assert calls == 3


@pytest.mark.asyncio
async def test_card_lock_times_out_while_held():
    locks = CardLocks(timeout=0.05)
    async with locks.hold("abc1234"):
        with pytest.raises(CardLockTimeout):
            async with locks.hold("abc1234"):
                pass
        # other cards are not blocked
        async with locks.hold("zzz9999"):
            pass
    assert len(locks) == 0


@pytest.mark.asyncio
async def test_card_lock_serializes_holders():
    locks = CardLocks(timeout=1.0)
    order: list[str] = []

    async def worker(name: str) -> None:
        async with locks.hold("abc1234"):
            order.append(f"{name}:enter")
            await asyncio.sleep(0.01)
            order.append(f"{name}:exit")

    await asyncio.gather(worker("a"), worker("b"))
    assert order in (
        ["a:enter", "a:exit", "b:enter", "b:exit"],
        ["b:enter", "b:exit", "a:enter", "a:exit"],
    )
    assert len(locks) == 0
