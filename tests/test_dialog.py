"""Tests for the create/edit dialog lifecycle and selection confirm flow."""

import asyncio

from pyqt_entitylist.core import DialogController, OperationType, SelectionMode
from pyqt_entitylist.services import EntityMutated, SelectionOutcome

from conftest import FakeSDK, make_items


def test_dialog_modes():
    dialog = DialogController()
    assert not dialog.is_open

    dialog.add_new()
    assert dialog.is_open and dialog.is_create_mode and dialog.current_item is None

    dialog.edit({"id": 3})
    assert dialog.is_edit_mode and dialog.current_item == {"id": 3}

    result = dialog.close()
    assert not dialog.is_open and dialog.current_item is None
    assert result.refresh_needed is False


def test_close_handler_only_runs_after_save():
    closed = []
    dialog = DialogController(on_closed=closed.append)

    dialog.add_new()
    dialog.close(refresh_needed=False)
    assert closed == []

    dialog.add_new()
    dialog.close(True, "create", "Dr. Who")
    assert len(closed) == 1
    assert closed[0].operation is OperationType.CREATE
    assert closed[0].display_name == "Dr. Who"


def test_engine_dialog_save_refreshes_and_notifies(make_engine, notifier):
    sdk = FakeSDK(make_items(2))
    engine = make_engine(sdk)

    async def scenario():
        await engine.load()
        engine.edit(engine.raw_items[0])
        props = engine.dialog_props()
        assert props.is_open and props.current_item["id"] == 1
        props.on_close(True, "update", "Doctor 01")
        await engine.settle()

    asyncio.run(scenario())
    assert not engine.is_dialog_open
    assert sdk.list_calls == 2
    assert notifier.toasts[-1].description == "Successfully updated Doctor 01."


def test_engine_dialog_cancel_does_nothing(make_engine, notifier):
    sdk = FakeSDK(make_items(2))
    engine = make_engine(sdk)

    async def scenario():
        await engine.load()
        engine.add_new()
        engine.close_dialog(refresh_needed=False)
        await engine.settle()

    asyncio.run(scenario())
    assert sdk.list_calls == 1
    assert notifier.toasts == []


def test_generic_success_without_display_name(make_engine, notifier):
    engine = make_engine(FakeSDK())

    async def scenario():
        engine.add_new()
        engine.close_dialog(True)
        await engine.settle()

    asyncio.run(scenario())
    assert notifier.toasts[-1].description == "Action completed successfully."


def test_dialog_save_publishes_entity_mutated(make_engine):
    engine = make_engine(FakeSDK())
    events = []
    engine.events.subscribe(events.append)

    async def scenario():
        engine.add_new()
        engine.close_dialog(True, OperationType.CREATE, "Dr. New")
        await engine.settle()

    asyncio.run(scenario())
    assert events == [EntityMutated("doctors", OperationType.CREATE)]


def test_mutation_of_other_entity_is_ignored(make_engine):
    sdk = FakeSDK(make_items(2))
    engine = make_engine(sdk)

    async def scenario():
        await engine.load()
        engine.events.publish(EntityMutated("tariffs"))
        await engine.settle()
        assert sdk.list_calls == 1
        engine.events.publish(EntityMutated("doctors", OperationType.DELETE))
        await engine.settle()

    asyncio.run(scenario())
    assert sdk.list_calls == 2


# ========== confirm_selection_action ==========

def test_confirm_without_selection_prompts(make_engine, notifier):
    engine = make_engine(FakeSDK(make_items(3)))
    engine.start_selection(SelectionMode.DELETE)

    result = engine.confirm_selection_action()
    assert result.outcome is SelectionOutcome.PROMPT_SELECT
    assert engine.is_selection_mode_active
    assert notifier.toasts[-1].description == "Please select items to delete."


def test_confirm_edit_with_several_selected_stays_in_selection(make_engine, notifier):
    engine = make_engine(FakeSDK(make_items(3)))
    engine.start_selection(SelectionMode.EDIT)
    engine.toggle_selection(1)
    engine.toggle_selection(2)

    result = engine.confirm_selection_action()
    assert result.outcome is SelectionOutcome.PROMPT_SELECT_ONE
    assert engine.is_selection_mode_active
    assert notifier.titles[-1] == "Select One Item"


def test_confirm_edit_opens_dialog(make_engine):
    engine = make_engine(FakeSDK(make_items(3)))

    async def scenario():
        await engine.load()
        engine.start_selection(SelectionMode.EDIT)
        engine.toggle_selection(2)
        return engine.confirm_selection_action()

    result = asyncio.run(scenario())
    assert result.outcome is SelectionOutcome.EDIT_OPENED
    assert engine.is_dialog_open
    assert engine.current_item["id"] == 2
    assert not engine.is_selection_mode_active


def test_confirm_edit_of_vanished_item(make_engine, notifier):
    engine = make_engine(FakeSDK(make_items(3)))

    async def scenario():
        await engine.load()
        engine.start_selection(SelectionMode.EDIT)
        engine.toggle_selection(42)
        return engine.confirm_selection_action()

    result = asyncio.run(scenario())
    assert result.outcome is SelectionOutcome.ITEM_NOT_FOUND
    assert not engine.is_dialog_open
    assert notifier.titles[-1] == "Item Not Found"


def test_confirm_delete_builds_request(make_engine):
    engine = make_engine(FakeSDK(make_items(3)))

    async def scenario():
        await engine.load()
        engine.start_selection(SelectionMode.DELETE)
        engine.toggle_selection(3)
        single = engine.confirm_selection_action()
        engine.toggle_selection(1)
        several = engine.confirm_selection_action()
        return single, several

    single, several = asyncio.run(scenario())
    assert single.outcome is SelectionOutcome.DELETE_REQUESTED
    assert single.delete_request.ids == (3,)
    assert single.delete_request.item_name == "Doctor 03"
    assert set(several.delete_request.ids) == {1, 3}
    assert several.delete_request.item_name == "2 Doctors"
