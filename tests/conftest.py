"""
共享测试夹具

每个测试在 tmp_path 下写出一个小型 TS/JS 项目，并以它作为项目根目录。
"""

from pathlib import Path
from textwrap import dedent
from typing import Callable

import pytest

from flowmaster.indexer.call_flow_extractor import CallFlowExtractor
from flowmaster.utils.config import Config


@pytest.fixture
def write_source(tmp_path: Path) -> Callable[[str, str], Path]:
    """写出源文件，内容自动去除公共缩进"""
    def _write(name: str, content: str) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(dedent(content).lstrip("\n"), encoding="utf-8")
        return path
    return _write


@pytest.fixture
def config(tmp_path: Path) -> Config:
    return Config(project_root=str(tmp_path), log_file=None)


@pytest.fixture
def extractor(config: Config) -> CallFlowExtractor:
    return CallFlowExtractor(config)

