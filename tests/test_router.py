"""
Tests for the table event router: event flows, broadcasts and errors.
"""

import json
from decimal import Decimal

import pytest

from shared.config.constants import PaymentStatus, TableStatus
from partela.services.domain import PaymentService, SplitService, VoteService
from ws_gateway.components.events.router import TableEventRouter
from tests.conftest import FakeTransport


def frame(event: str, **data) -> str:
    return json.dumps({"event": event, "data": data})


PAYMENT = {
    "bank": "Banesco",
    "idType": "V",
    "idNumber": "12345678",
    "phoneCode": "0414",
    "phoneNumber": "1234567",
}


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def router(transport, registry):
    return TableEventRouter(
        transport,
        registry,
        VoteService(registry),
        SplitService(registry),
        PaymentService(registry),
    )


async def join(router, transport, count, table_id="MESA-A7B3"):
    for n in range(1, count + 1):
        await router.handle_message(f"conn-{n}", frame("table:join", tableId=table_id))
    transport.clear()


class TestJoin:

    @pytest.mark.asyncio
    async def test_join_broadcasts_guest_and_state(self, router, transport, registry):
        await router.handle_message("conn-1", frame("table:join", tableId="MESA-A7B3"))

        assert transport.rooms["MESA-A7B3"] == {"conn-1"}
        assert transport.events() == ["table:guest_joined", "table:state"]
        room, _, joined, exclude = transport.broadcasts[0]
        assert room == "MESA-A7B3"
        assert exclude == "conn-1"
        assert joined["guest"]["displayName"] == "Comensal 1"
        assert joined["guestCount"] == 1

        state = transport.last("table:state")
        assert state["id"] == "MESA-A7B3"
        assert state["tableStatus"] == "viewing"
        assert state["total"] == 15.5
        assert "connectionId" not in state["guests"][0]
        assert state["guests"][0]["isOnline"] is True

    @pytest.mark.asyncio
    async def test_join_without_table_id(self, router, transport):
        await router.handle_message("conn-1", frame("table:join"))

        (error,) = transport.errors_for("conn-1")
        assert error["code"] == "TABLE_NOT_FOUND"
        assert transport.broadcasts == []

    @pytest.mark.asyncio
    async def test_join_full_table(self, router, transport, registry):
        await join(router, transport, 4)

        await router.handle_message("conn-5", frame("table:join", tableId="MESA-A7B3"))

        (error,) = transport.errors_for("conn-5")
        assert error["code"] == "TABLE_FULL"
        assert registry.require("MESA-A7B3").guest_count == 4
        assert transport.broadcasts == []

    @pytest.mark.asyncio
    async def test_reconnect_with_guest_id(self, router, transport, registry):
        await join(router, transport, 2)
        guest_id = registry.binding("conn-1")[1]
        await router.handle_disconnect("conn-1")
        assert transport.last("table:state")["guests"][0]["isOnline"] is False

        await router.handle_message(
            "conn-9", frame("table:join", tableId="MESA-A7B3", guestId=guest_id)
        )

        state = transport.last("table:state")
        assert len(state["guests"]) == 2
        assert state["guests"][0]["id"] == guest_id
        assert state["guests"][0]["isOnline"] is True


class TestEventsWithoutTable:

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "raw",
        [
            frame("table:leave"),
            frame("table:reset"),
            frame("vote:cast", mode="split_equally"),
            frame("split:toggle_item", itemId="item-1"),
            frame("split:confirm"),
        ],
    )
    async def test_unbound_connection_gets_guest_not_found(self, router, transport, raw):
        await router.handle_message("stranger", raw)

        (error,) = transport.errors_for("stranger")
        assert error["code"] == "GUEST_NOT_FOUND"
        assert transport.broadcasts == []


class TestMalformedFrames:

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "raw",
        [
            "not json",
            "[1, 2, 3]",
            json.dumps({"event": "table:explode"}),
            json.dumps({"event": "vote:cast", "data": "split_equally"}),
            json.dumps({"event": "split:toggle_item", "data": {}}),
        ],
    )
    async def test_reported_as_unknown_error(self, router, transport, raw):
        await router.handle_message("conn-1", raw)

        (error,) = transport.errors_for("conn-1")
        assert error["code"] == "UNKNOWN_ERROR"

    @pytest.mark.asyncio
    async def test_bad_payment_payload(self, router, transport):
        await router.handle_message(
            "conn-1", json.dumps({"event": "payment:submit", "data": {"bank": ["x"]}})
        )

        (error,) = transport.errors_for("conn-1")
        assert error["code"] == "INVALID_PAYMENT_INFO"

    @pytest.mark.asyncio
    async def test_unexpected_failure_is_contained(self, router, transport, monkeypatch):
        await join(router, transport, 1)

        def explode(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(router._votes, "cast_vote", explode)
        await router.handle_message("conn-1", frame("vote:cast", mode="split_equally"))

        (error,) = transport.errors_for("conn-1")
        assert error == {"code": "UNKNOWN_ERROR", "message": "Error inesperado"}


class TestVoting:

    @pytest.mark.asyncio
    async def test_winner_runs_split(self, router, transport, registry):
        await join(router, transport, 2)

        await router.handle_message("conn-1", frame("vote:cast", mode="split_equally"))
        await router.handle_message("conn-2", frame("vote:cast", mode="split_equally"))

        assert transport.events()[-3:] == ["vote:updated", "vote:completed", "table:state"]
        completed = transport.last("vote:completed")
        assert completed["winningMode"] == "split_equally"
        assert completed["message"] == "¡Todos eligieron División Equitativa!"
        state = transport.last("table:state")
        assert state["tableStatus"] == "paying"
        assert [g["paymentAmount"] for g in state["guests"]] == [11.75, 11.75]

    @pytest.mark.asyncio
    async def test_vote_updated_payload(self, router, transport):
        await join(router, transport, 2)

        await router.handle_message("conn-1", frame("vote:cast", mode="custom_split"))

        updated = transport.last("vote:updated")
        assert updated["totalVotes"] == 1
        assert updated["totalGuests"] == 2
        assert [r["mode"] for r in updated["votes"]] == [
            "pay_my_part",
            "split_equally",
            "custom_split",
        ]
        assert updated["votes"][2]["voters"] == ["Comensal 1"]
        assert transport.last("table:state")["votingOpen"] is True

    @pytest.mark.asyncio
    async def test_tie_is_announced(self, router, transport):
        await join(router, transport, 2)

        await router.handle_message("conn-1", frame("vote:cast", mode="pay_my_part"))
        await router.handle_message("conn-2", frame("vote:cast", mode="split_equally"))

        tie = transport.last("vote:tie")
        assert tie["tiedModes"] == ["pay_my_part", "split_equally"]
        assert "empate" in tie["message"]

    @pytest.mark.asyncio
    async def test_invalid_mode(self, router, transport):
        await join(router, transport, 1)

        await router.handle_message("conn-1", frame("vote:cast", mode="bogus"))

        (error,) = transport.errors_for("conn-1")
        assert error["code"] == "INVALID_PAYMENT_MODE"
        assert transport.broadcasts == []


class TestCustomSplitFlow:

    async def _custom(self, router, transport, registry):
        await join(router, transport, 2)
        for cid in ("conn-1", "conn-2"):
            await router.handle_message(cid, frame("vote:cast", mode="custom_split"))
        transport.clear()
        return registry.require("MESA-A7B3")

    @pytest.mark.asyncio
    async def test_toggle_broadcasts_split_update(self, router, transport, registry):
        table = await self._custom(router, transport, registry)
        item_id = table.guests[0].items[0].id

        await router.handle_message("conn-2", frame("split:toggle_item", itemId=item_id))

        assert transport.events() == ["split:updated", "table:state"]
        update = transport.last("split:updated")
        assert update["itemAssignments"][item_id] == [table.guests[1].id]
        assert update["remainingBalance"] == 11.0
        assert update["allAssigned"] is False

    @pytest.mark.asyncio
    async def test_confirm_with_unassigned_items(self, router, transport, registry):
        table = await self._custom(router, transport, registry)

        await router.handle_message("conn-1", frame("split:confirm"))
        await router.handle_message("conn-2", frame("split:confirm"))

        validated = transport.last("split:validated")
        assert validated["valid"] is False
        assert len(validated["issues"]) == 3
        (error,) = transport.errors_for("conn-2")
        assert error["code"] == "ITEMS_NOT_ASSIGNED"
        assert error["details"] == validated["issues"]
        assert table.table_status == TableStatus.SPLITTING

    @pytest.mark.asyncio
    async def test_confirm_completes_split(self, router, transport, registry):
        table = await self._custom(router, transport, registry)
        for item in table.all_items():
            await router.handle_message("conn-1", frame("split:toggle_item", itemId=item.id))
        transport.clear()

        await router.handle_message("conn-1", frame("split:confirm"))
        await router.handle_message("conn-2", frame("split:confirm"))

        assert transport.events()[-2:] == ["split:validated", "table:state"]
        assert transport.last("split:validated") == {"valid": True, "issues": []}
        assert transport.last("table:state")["tableStatus"] == "paying"
        assert transport.sent == []

    @pytest.mark.asyncio
    async def test_confirm_outside_custom_split(self, router, transport):
        await join(router, transport, 1)
        await router.handle_message("conn-1", frame("vote:cast", mode="pay_my_part"))

        await router.handle_message("conn-1", frame("split:confirm"))

        (error,) = transport.errors_for("conn-1")
        assert error["code"] == "INVALID_PAYMENT_MODE"


class TestPaymentFlow:

    async def _paying(self, router, transport, registry):
        await join(router, transport, 2)
        for cid in ("conn-1", "conn-2"):
            await router.handle_message(cid, frame("vote:cast", mode="split_equally"))
        transport.clear()
        return registry.require("MESA-A7B3")

    @pytest.mark.asyncio
    async def test_all_payments_complete_table(self, router, transport, registry):
        table = await self._paying(router, transport, registry)

        await router.handle_message("conn-1", frame("payment:submit", **PAYMENT))
        await router.handle_message("conn-2", frame("payment:submit", **PAYMENT))

        assert transport.events() == [
            "payment:received",
            "table:state",
            "payment:received",
            "table:completed",
            "table:state",
        ]
        received = transport.last("payment:received")
        assert received == {"guestId": table.guests[1].id, "displayName": "Comensal 2"}
        assert transport.last("table:completed") == {}
        assert transport.last("table:state")["tableStatus"] == "completed"

    @pytest.mark.asyncio
    async def test_invalid_details_itemized(self, router, transport, registry):
        table = await self._paying(router, transport, registry)

        await router.handle_message(
            "conn-1", frame("payment:submit", **{**PAYMENT, "idType": "X", "phoneNumber": "1"})
        )

        (error,) = transport.errors_for("conn-1")
        assert error["code"] == "INVALID_PAYMENT_INFO"
        assert error["details"] == [
            "Tipo de documento inválido",
            "Número de teléfono debe tener 7 dígitos",
        ]
        assert table.guests[0].payment_status == PaymentStatus.READY
        assert transport.broadcasts == []

    @pytest.mark.asyncio
    async def test_numeric_fields_are_accepted(self, router, transport, registry):
        table = await self._paying(router, transport, registry)

        await router.handle_message(
            "conn-1", frame("payment:submit", **{**PAYMENT, "idNumber": 12345678})
        )

        assert transport.errors_for("conn-1") == []
        assert table.guests[0].payment_status == PaymentStatus.SUBMITTED

    @pytest.mark.asyncio
    async def test_payment_details_never_broadcast(self, router, transport, registry):
        await self._paying(router, transport, registry)

        await router.handle_message("conn-1", frame("payment:submit", **PAYMENT))

        assert "12345678" not in json.dumps([p for _, _, p, _ in transport.broadcasts])


class TestLeaveAndReset:

    @pytest.mark.asyncio
    async def test_leave_completes_pending_vote(self, router, transport, registry):
        await join(router, transport, 3)
        await router.handle_message("conn-1", frame("vote:cast", mode="pay_my_part"))
        await router.handle_message("conn-2", frame("vote:cast", mode="pay_my_part"))
        transport.clear()

        await router.handle_message("conn-3", frame("table:leave"))

        assert transport.events() == [
            "table:guest_left",
            "vote:updated",
            "vote:completed",
            "table:state",
        ]
        left = transport.last("table:guest_left")
        assert left["displayName"] == "Comensal 3"
        assert left["guestCount"] == 2
        assert "conn-3" not in transport.rooms["MESA-A7B3"]
        assert transport.last("table:state")["tableStatus"] == "paying"

    @pytest.mark.asyncio
    async def test_leave_completes_payments(self, router, transport, registry):
        await join(router, transport, 2)
        for cid in ("conn-1", "conn-2"):
            await router.handle_message(cid, frame("vote:cast", mode="split_equally"))
        await router.handle_message("conn-1", frame("payment:submit", **PAYMENT))
        transport.clear()

        await router.handle_message("conn-2", frame("table:leave"))

        assert "table:completed" in transport.events()
        assert registry.require("MESA-A7B3").table_status == TableStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_reset_returns_to_viewing(self, router, transport, registry):
        await join(router, transport, 2)
        for cid in ("conn-1", "conn-2"):
            await router.handle_message(cid, frame("vote:cast", mode="split_equally"))
        transport.clear()

        await router.handle_message("conn-2", frame("table:reset"))

        assert transport.events() == ["table:state"]
        state = transport.last("table:state")
        assert state["tableStatus"] == "viewing"
        assert state["winningMode"] is None
        assert state["votes"] == {"pay_my_part": [], "split_equally": [], "custom_split": []}
        assert all(g["paymentStatus"] == "pending" for g in state["guests"])

    @pytest.mark.asyncio
    async def test_disconnect_of_unbound_connection(self, router, transport):
        await router.handle_disconnect("never-joined")
        assert transport.broadcasts == []


class TestLeaveAfterSplit:
    """A departure never lets the table complete with part of the bill unpaid."""

    @pytest.mark.asyncio
    async def test_orphaned_items_reopen_custom_split(self, router, transport, registry):
        await join(router, transport, 2)
        for cid in ("conn-1", "conn-2"):
            await router.handle_message(cid, frame("vote:cast", mode="custom_split"))
        table = registry.require("MESA-A7B3")
        for item in table.all_items():
            await router.handle_message("conn-1", frame("split:toggle_item", itemId=item.id))
        for cid in ("conn-1", "conn-2"):
            await router.handle_message(cid, frame("split:confirm"))
        assert table.table_status == TableStatus.PAYING
        transport.clear()

        await router.handle_message("conn-1", frame("table:leave"))

        assert transport.events() == ["table:guest_left", "split:updated", "table:state"]
        update = transport.last("split:updated")
        assert update["allAssigned"] is False
        assert update["remainingBalance"] == 8.0
        state = transport.last("table:state")
        assert state["tableStatus"] == "splitting"
        assert [g["paymentStatus"] for g in state["guests"]] == ["pending"]

        remaining = table.guests[0]
        await router.handle_message(
            "conn-2", frame("split:toggle_item", itemId=remaining.items[0].id)
        )
        await router.handle_message("conn-2", frame("split:confirm"))
        await router.handle_message("conn-2", frame("payment:submit", **PAYMENT))

        assert transport.errors_for("conn-2") == []
        assert table.table_status == TableStatus.COMPLETED
        assert remaining.payment_amount == table.total

    @pytest.mark.asyncio
    async def test_unpaid_guests_cover_the_new_total(self, router, transport, registry):
        await join(router, transport, 3)
        for cid in ("conn-1", "conn-2", "conn-3"):
            await router.handle_message(cid, frame("vote:cast", mode="split_equally"))
        await router.handle_message("conn-1", frame("payment:submit", **PAYMENT))
        table = registry.require("MESA-A7B3")
        transport.clear()

        await router.handle_message("conn-3", frame("table:leave"))

        assert transport.events() == ["table:guest_left", "table:state"]
        assert table.table_status == TableStatus.WAITING_PAYMENTS
        assert [g.payment_amount for g in table.guests] == [Decimal("13.33"), Decimal("10.17")]

        await router.handle_message("conn-2", frame("payment:submit", **PAYMENT))

        assert table.table_status == TableStatus.COMPLETED
        assert sum(g.payment_amount for g in table.guests) == table.total
