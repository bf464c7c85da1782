from __future__ import annotations

import io
from unittest.mock import MagicMock, patch

import pytest

from demoverify.models.reference import LoadStatus
from demoverify.models.schema_variant import SchemaVariant
from demoverify.services.progress import LoadProgress, progress_enabled


class _Tty(io.StringIO):
    def isatty(self) -> bool:
        return True


@pytest.mark.parametrize(
    ("stream", "expected"),
    [(_Tty(), True), (io.StringIO(), False), (object(), False)],
)
def test_progress_enabled_follows_isatty(stream, expected):
    assert progress_enabled(stream) is expected


def test_redirected_output_gets_no_bar():
    with patch("demoverify.services.progress.progress_enabled", return_value=False), patch(
        "demoverify.services.progress.tqdm"
    ) as bar_cls:
        with LoadProgress(3) as progress:
            progress.advance(SchemaVariant.DEMOGRAPHIC, LoadStatus(loaded=True, row_count=5))
            progress.advance(SchemaVariant.BIOMETRIC, LoadStatus(loaded=False, row_count=0))

    bar_cls.assert_not_called()
    assert progress.interactive is False
    assert progress.done == 2
    assert progress.rows == 5
    assert progress.failed == ["biometric"]


def test_terminal_bar_tracks_each_variant():
    bar = MagicMock()
    with patch("demoverify.services.progress.progress_enabled", return_value=True), patch(
        "demoverify.services.progress.tqdm", return_value=bar
    ) as bar_cls:
        with LoadProgress(3) as progress:
            assert progress.interactive is True
            progress.advance(SchemaVariant.ENROLLMENT, LoadStatus(loaded=True, row_count=120))
            progress.advance(SchemaVariant.BIOMETRIC, LoadStatus(loaded=False, row_count=0))

    assert bar_cls.call_args.kwargs["total"] == 3
    assert bar_cls.call_args.kwargs["unit"] == "variant"
    assert bar.update.call_count == 2
    bar.set_postfix_str.assert_called_with("biometric rows=120 unavailable=1")
    bar.close.assert_called_once()
    assert progress.interactive is False


def test_close_twice_closes_bar_once():
    bar = MagicMock()
    with patch("demoverify.services.progress.progress_enabled", return_value=True), patch(
        "demoverify.services.progress.tqdm", return_value=bar
    ):
        progress = LoadProgress(1)
        progress.close()
        progress.close()

    bar.close.assert_called_once()
