"""
源码注册表测试
"""

import pytest

from flowmaster.indexer.errors import UnreadableSource
from flowmaster.indexer.source_registry import SourceRegistry, language_for_path
from flowmaster.utils.config import Config
from flowmaster.utils.file_utils import normalize_path


class TestSourceRegistry:
    """加载、缓存与刷新"""

    @pytest.fixture
    def registry(self, config):
        return SourceRegistry(config)

    def test_load_parses_file(self, registry, write_source):
        path = write_source("a.ts", """
            export function main(): void {}
        """)

        handle = registry.load(path)

        assert handle.path == normalize_path(path)
        assert handle.language == "typescript"
        assert handle.root.type == "program"
        assert path in registry
        assert len(registry) == 1

    def test_unchanged_file_reuses_handle(self, registry, write_source):
        path = write_source("a.ts", "function main() {}\n")

        first = registry.load(path)
        second = registry.load(path)

        assert first is second

    def test_edit_is_visible_on_next_load(self, registry, write_source):
        path = write_source("a.ts", "function main() {}\n")
        first = registry.load(path)

        path.write_text("function main() {}\nfunction added() {}\n", encoding="utf-8")
        second = registry.load(path)

        assert second is not first
        assert second.digest != first.digest
        assert "added" in second.source.decode()

    def test_deleted_file_is_evicted(self, registry, write_source):
        path = write_source("a.ts", "function main() {}\n")
        registry.load(path)

        path.unlink()

        with pytest.raises(UnreadableSource):
            registry.load(path)
        assert path not in registry

    def test_missing_file(self, registry, tmp_path):
        with pytest.raises(UnreadableSource) as exc_info:
            registry.load(tmp_path / "missing.ts")

        assert exc_info.value.file_path.endswith("missing.ts")

    def test_unsupported_extension(self, registry, write_source):
        path = write_source("data.json", "{}\n")

        with pytest.raises(UnreadableSource):
            registry.load(path)

    def test_file_size_limit(self, tmp_path, write_source):
        path = write_source("big.ts", "// " + "x" * 2048 + "\n")
        registry = SourceRegistry(Config(max_file_size_mb=0.001, log_file=None))

        with pytest.raises(UnreadableSource):
            registry.load(path)

    def test_syntax_errors_tolerated_by_default(self, registry, write_source):
        path = write_source("broken.ts", "function main( {\n  helper();\n")

        handle = registry.load(path)

        assert handle.root.has_error

    def test_syntax_errors_rejected_in_strict_mode(self, tmp_path, write_source):
        path = write_source("broken.ts", "function main( {\n  helper();\n")
        registry = SourceRegistry(Config(reject_syntax_errors=True, log_file=None))

        with pytest.raises(UnreadableSource):
            registry.load(path)

    def test_utf8_bom_is_stripped(self, registry, tmp_path):
        path = tmp_path / "bom.ts"
        path.write_bytes(b"\xef\xbb\xbffunction main() {}\n")

        handle = registry.load(path)

        assert handle.source.startswith(b"function")
        assert handle.root.named_children[0].type == "function_declaration"

    def test_invalidate_and_clear(self, registry, write_source):
        a = write_source("a.ts", "function a() {}\n")
        b = write_source("b.ts", "function b() {}\n")
        registry.load(a)
        registry.load(b)

        registry.invalidate(a)
        assert a not in registry
        assert registry.get_cached(b) is not None

        registry.clear()
        assert len(registry) == 0


class TestSourceHandle:
    """位置换算与 import/export 信息"""

    def test_code_reference_uses_characters(self, config, write_source):
        path = write_source("a.ts", 'const s = "héllo"; run();\n')
        handle = SourceRegistry(config).load(path)
        call = handle.root.named_children[1].named_children[0]

        reference = handle.code_reference(call, "run")

        assert call.type == "call_expression"
        assert reference.range.start.line == 0
        assert reference.range.start.character == 19
        assert reference.identifier == "run"

    def test_offset_of(self, config, write_source):
        path = write_source("a.ts", "ab\ncdé\n")
        handle = SourceRegistry(config).load(path)

        assert handle.offset_of(0, 0) == 0
        assert handle.offset_of(1, 1) == 4
        assert handle.offset_of(1, 3) == 7
        assert handle.offset_of(1, 4) is None
        assert handle.offset_of(9, 0) is None

    def test_imports(self, config, write_source):
        path = write_source("a.ts", """
            import run from './run';
            import * as utils from './utils';
            import { parse, format as fmt } from "./text";
            import 'side-effect';
        """)
        handle = SourceRegistry(config).load(path)

        imports = handle.imports

        assert set(imports) == {"run", "utils", "parse", "fmt"}
        assert imports["run"].imported == "default"
        assert imports["utils"].imported == "*"
        assert imports["parse"].specifier == "./text"
        assert imports["fmt"].imported == "format"

    def test_reexports(self, config, write_source):
        path = write_source("index.ts", """
            export { helper, other as renamed } from './impl';
            export * from './more';
            export * as ns from './ns';
        """)
        handle = SourceRegistry(config).load(path)

        pairs = {(item.exported, item.imported, item.specifier) for item in handle.reexports}

        assert pairs == {
            ("helper", "helper", "./impl"),
            ("renamed", "other", "./impl"),
            ("*", "*", "./more"),
        }


@pytest.mark.parametrize("name, language", [
    ("a.ts", "typescript"),
    ("a.mts", "typescript"),
    ("a.tsx", "tsx"),
    ("a.jsx", "javascript"),
    ("a.cjs", "javascript"),
    ("a.py", None),
])
def test_language_for_path(name, language):
    assert language_for_path(name) == language
