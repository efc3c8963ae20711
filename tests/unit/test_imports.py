"""Tests for task locator parsing and resolution."""

from __future__ import annotations

import os
import sys
import uuid
from pathlib import Path

import pytest

from cronloop.core.errors import ConfigurationError, ErrorCode
from cronloop.core.utils.imports import (
    _compute_synthetic_module_name,
    find_project_root,
    import_file_path,
    parse_locator,
    resolve_task,
    setup_sys_path_from_cwd,
)


def _write_module(directory: Path, body: str) -> Path:
    """Write a uniquely named module so sys.modules never collides across tests."""
    path = directory / f'jobs_{uuid.uuid4().hex[:8]}.py'
    path.write_text(body)
    return path


@pytest.fixture
def isolated_sys_path(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(sys, 'path', list(sys.path))


# =============================================================================
# parse_locator
# =============================================================================


@pytest.mark.unit
class TestParseLocator:
    """Tests for splitting 'module:attr' locators."""

    def test_dotted_module(self) -> None:
        assert parse_locator('app.jobs:cleanup') == ('app.jobs', 'cleanup')

    def test_file_path(self) -> None:
        assert parse_locator('/srv/app/jobs.py:cleanup') == ('/srv/app/jobs.py', 'cleanup')

    def test_splits_on_last_colon(self) -> None:
        assert parse_locator('C:/app/jobs.py:cleanup') == ('C:/app/jobs.py', 'cleanup')

    @pytest.mark.parametrize('locator', ['app.jobs', 'app.jobs:', ':cleanup', ''])
    def test_invalid_locator(self, locator: str) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            parse_locator(locator)

        assert exc_info.value.code == ErrorCode.TASK_INVALID_LOCATOR


# =============================================================================
# resolve_task
# =============================================================================


@pytest.mark.unit
@pytest.mark.usefixtures('isolated_sys_path')
class TestResolveTask:
    """Tests for importing the scheduled callable."""

    def test_from_file_path(self, tmp_path: Path) -> None:
        module_file = _write_module(tmp_path, 'def tick():\n    return "ticked"\n')

        task = resolve_task(f'{module_file}:tick')

        assert task() == 'ticked'

    def test_file_path_without_suffix(self, tmp_path: Path) -> None:
        module_file = _write_module(tmp_path, 'def tick():\n    return 1\n')
        without_suffix = str(module_file)[: -len('.py')]

        task = resolve_task(f'{without_suffix}:tick')

        assert task() == 1

    def test_from_dotted_module(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        module_file = _write_module(tmp_path, 'async def tick():\n    return None\n')
        monkeypatch.syspath_prepend(str(tmp_path))

        task = resolve_task(f'{module_file.stem}:tick')

        assert callable(task)
        assert task.__name__ == 'tick'

    def test_module_not_found(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            resolve_task(f'missing_{uuid.uuid4().hex[:8]}.jobs:tick')

        exc = exc_info.value
        assert exc.code == ErrorCode.TASK_INVALID_LOCATOR
        assert isinstance(exc.__cause__, ModuleNotFoundError)

    def test_missing_attribute(self, tmp_path: Path) -> None:
        module_file = _write_module(tmp_path, 'def tick():\n    pass\n')

        with pytest.raises(ConfigurationError) as exc_info:
            resolve_task(f'{module_file}:tock')

        assert exc_info.value.code == ErrorCode.TASK_INVALID_LOCATOR
        assert "no attribute 'tock'" in exc_info.value.message

    def test_not_callable(self, tmp_path: Path) -> None:
        module_file = _write_module(tmp_path, 'tick = 42\n')

        with pytest.raises(ConfigurationError) as exc_info:
            resolve_task(f'{module_file}:tick')

        exc = exc_info.value
        assert exc.code == ErrorCode.TASK_NOT_CALLABLE
        assert 'got int' in exc.notes

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            resolve_task(f'{tmp_path / "nope.py"}:tick')


# =============================================================================
# File imports and sys.path
# =============================================================================


@pytest.mark.unit
@pytest.mark.usefixtures('isolated_sys_path')
class TestImportFilePath:
    """Tests for loading standalone files."""

    def test_synthetic_name_is_stable(self, tmp_path: Path) -> None:
        path = str(tmp_path / 'jobs.py')

        first = _compute_synthetic_module_name(path)
        second = _compute_synthetic_module_name(path)

        assert first == second
        assert first.startswith('cronloop._dynamic.')

    def test_repeated_import_returns_same_module(self, tmp_path: Path) -> None:
        module_file = _write_module(tmp_path, 'counter = object()\n')

        first = import_file_path(str(module_file))
        second = import_file_path(str(module_file))

        assert first is second

    def test_parent_dir_added_to_sys_path(self, tmp_path: Path) -> None:
        module_file = _write_module(tmp_path, 'x = 1\n')

        import_file_path(str(module_file))

        assert os.path.realpath(tmp_path) in sys.path


@pytest.mark.unit
@pytest.mark.usefixtures('isolated_sys_path')
class TestProjectRoot:
    """Tests for the pyproject.toml cwd convenience."""

    def test_find_project_root_requires_marker(self, tmp_path: Path) -> None:
        assert find_project_root(str(tmp_path)) is None

        (tmp_path / 'pyproject.toml').write_text('')

        assert find_project_root(str(tmp_path)) == str(tmp_path)

    def test_does_not_traverse_up(self, tmp_path: Path) -> None:
        (tmp_path / 'pyproject.toml').write_text('')
        child = tmp_path / 'child'
        child.mkdir()

        assert find_project_root(str(child)) is None

    def test_setup_sys_path_from_cwd(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        (tmp_path / 'pyproject.toml').write_text('')
        monkeypatch.chdir(tmp_path)

        added = setup_sys_path_from_cwd()

        assert added == os.getcwd()
        assert sys.path[0] == os.getcwd()
        assert setup_sys_path_from_cwd() is None

    def test_setup_sys_path_without_marker(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.chdir(tmp_path)

        assert setup_sys_path_from_cwd() is None
