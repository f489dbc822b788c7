"""
Where: f6n/tests/test_app.py
What: Headless end-to-end tests of F6nApp with the sample provider.
Why: Checks the wiring between Textual, the state machine and the dispatcher.
"""

import pytest

from f6n.services.archive import CodeArchiveManager
from f6n.ui.app import F6nApp
from f6n.ui.render import render
from f6n.ui.views import View


@pytest.fixture
def app(machine, sample_provider, tmp_path):
    return F6nApp(machine, sample_provider, CodeArchiveManager(sample_provider, tmp_path), stream_interval=0.01)


async def settle(app, pilot):
    await app.dispatcher.join()
    await pilot.pause()


@pytest.mark.asyncio
async def test_startup_lists_functions(app):
    async with app.run_test(size=(120, 40)) as pilot:
        await settle(app, pilot)

        state = app.machine.state
        assert state.loading is False
        assert len(state.registry.all) == 5
        assert state.account_id == "123456789012"
        assert "user-authentication-service" in render(state)
        assert app.query_one("#view") is not None


@pytest.mark.asyncio
async def test_navigate_to_details_and_back(app):
    async with app.run_test(size=(120, 40)) as pilot:
        await settle(app, pilot)

        await pilot.press("j", "enter")
        assert app.machine.state.view is View.DETAIL
        assert app.machine.state.selected_name == "payment-processor"

        await pilot.press("escape")
        assert app.machine.state.view is View.LIST


@pytest.mark.asyncio
async def test_download_and_browse_files(app, tmp_path):
    async with app.run_test(size=(120, 40)) as pilot:
        await settle(app, pilot)

        await pilot.press("j", "w")
        await settle(app, pilot)
        assert "payment-processor" in app.machine.state.downloaded
        assert (tmp_path / "payment-processor" / "app.py").exists()

        await pilot.press("c")
        await settle(app, pilot)
        await pilot.press("v")
        await settle(app, pilot)

        assert app.machine.state.view is View.CODE_FILES
        assert "📄 app.py" in app.machine.state.content


@pytest.mark.asyncio
async def test_quit_key_exits(app):
    async with app.run_test() as pilot:
        await settle(app, pilot)
        await pilot.press("q")
        await pilot.pause()
    assert app.return_code == 0
