import pytest

from sources.replay import ReplaySource
from sources.telegram import FrameAssembler


CAPTURE = """/ISk5\\2ME382-1003

1-0:1.8.1(00123.456*kWh)
1-0:1.8.2(00234.567*kWh)
!
/ISk5\\2ME382-1003

1-0:1.8.1(00123.460*kWh)
1-0:1.8.2(00234.570*kWh)
!
/ISk5\\2ME382-1003
1-0:1.8.1(00123.4
"""


@pytest.fixture
def capture_file(tmp_path):
    path = tmp_path / "telegrams.txt"
    path.write_text(CAPTURE.replace("\n", "\r\n"), encoding="ascii")
    return path


@pytest.mark.asyncio
async def test_replay_yields_stripped_lines(capture_file):
    async with ReplaySource(capture_file) as source:
        lines = [line async for line in source.lines()]

    assert lines[:5] == [
        "/ISk5\\2ME382-1003",
        "1-0:1.8.1(00123.456*kWh)",
        "1-0:1.8.2(00234.567*kWh)",
        "!",
        "/ISk5\\2ME382-1003",
    ]
    assert "" not in lines


@pytest.mark.asyncio
async def test_replay_drives_assembler(capture_file):
    """Test that a capture replays into complete readings and drops the cut-off telegram"""
    async with ReplaySource(capture_file) as source:
        readings = [r async for r in FrameAssembler().assemble_async(source.lines())]

    assert [r.delivered_energy_high_tariff for r in readings] == [234.567, 234.570]


@pytest.mark.asyncio
async def test_replay_is_restartable(capture_file):
    source = ReplaySource(capture_file)

    runs = []
    for _ in range(2):
        await source.connect()
        runs.append([line async for line in source.lines()])
        await source.close()

    assert runs[0] == runs[1]


@pytest.mark.asyncio
async def test_replay_delay_after_terminator(capture_file, mocker):
    mock_sleep = mocker.patch('sources.replay.asyncio.sleep')

    async with ReplaySource(capture_file, delay=1.5) as source:
        [line async for line in source.lines()]

    assert mock_sleep.call_count == 2
    mock_sleep.assert_called_with(1.5)


@pytest.mark.asyncio
async def test_replay_missing_file_exits(tmp_path, mocker):
    mock_exit = mocker.patch('sources.replay.sys.exit')

    await ReplaySource(tmp_path / "missing.txt").connect()

    mock_exit.assert_called_once_with(1)
